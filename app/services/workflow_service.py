"""
Workflow Status Engine — labour / parts / quote progress of a repair item.

    labour_status:  pending → in_progress → complete
    parts_status:   pending → in_progress → complete
    quote_status:   pending → ready

Automatic transitions (after any labour or parts insert) only move
forward: pending → in_progress when rows exist. ``complete`` is always an
explicit user action. The quote becomes ready once both sides are
satisfied (complete, or flagged as not required).
"""

import logging
from datetime import UTC, datetime

from sqlalchemy import func, or_, select

from app.models import db
from app.models.audit import write_audit
from app.models.health_check import HealthCheck
from app.models.repair import RepairItem, RepairLabour, RepairOption, RepairParts, work_ready
from app.services.helpers.scoped_queries import get_scoped
from app.services.helpers.transaction import atomic

logger = logging.getLogger(__name__)


def _now():
    return datetime.now(UTC)


# ═════════════════════════════════════════════════════════════════════════════
# Automatic refresh
# ═════════════════════════════════════════════════════════════════════════════


def _count_lines(model, item_id: int) -> int:
    """Rows of *model* owned by the item directly or by any of its options."""
    option_ids = select(RepairOption.id).where(RepairOption.repair_item_id == item_id)
    stmt = select(func.count(model.id)).where(
        or_(model.repair_item_id == item_id, model.repair_option_id.in_(option_ids))
    )
    return db.session.execute(stmt).scalar_one()


def _promote_quote(item: RepairItem) -> bool:
    if item.quote_status == "pending" and work_ready(item):
        item.quote_status = "ready"
        return True
    return False


def refresh_workflow_status(item: RepairItem | None = None, option: RepairOption | None = None) -> bool:
    """Advance the owning item's statuses from its labour / parts rows.

    Accepts the item itself or one of its options. Never regresses a
    status and never sets ``complete``. Flushes; the caller commits.

    Returns True when anything changed.
    """
    if item is None and option is not None:
        item = option.repair_item
    if item is None:
        return False

    db.session.flush()
    changed = False
    if item.labour_status == "pending" and _count_lines(RepairLabour, item.id) > 0:
        item.labour_status = "in_progress"
        changed = True
    if item.parts_status == "pending" and _count_lines(RepairParts, item.id) > 0:
        item.parts_status = "in_progress"
        changed = True
    if _promote_quote(item):
        changed = True

    if changed:
        db.session.flush()
        logger.debug(
            "Workflow refreshed item=%s labour=%s parts=%s quote=%s",
            item.id, item.labour_status, item.parts_status, item.quote_status,
        )
    return changed


# ═════════════════════════════════════════════════════════════════════════════
# Explicit actions
# ═════════════════════════════════════════════════════════════════════════════


def mark_labour_complete(org_id: int, item_id: int, user_id: int | None) -> RepairItem:
    with atomic():
        item = get_scoped(RepairItem, item_id, organization_id=org_id, for_update=True)
        item.labour_status = "complete"
        item.labour_completed_by = user_id
        item.labour_completed_at = _now()
        _promote_quote(item)
        write_audit(
            entity_type="repair_item", entity_id=item.id, action="labour.complete",
            organization_id=org_id, actor_user_id=user_id,
            diff={"labourTotal": item.labour_total, "quoteStatus": item.quote_status},
        )
    logger.info("Labour complete item=%s by user=%s", item.id, user_id)
    return item


def mark_parts_complete(org_id: int, item_id: int, user_id: int | None) -> RepairItem:
    with atomic():
        item = get_scoped(RepairItem, item_id, organization_id=org_id, for_update=True)
        item.parts_status = "complete"
        item.parts_completed_by = user_id
        item.parts_completed_at = _now()
        _promote_quote(item)
        write_audit(
            entity_type="repair_item", entity_id=item.id, action="parts.complete",
            organization_id=org_id, actor_user_id=user_id,
            diff={"partsTotal": item.parts_total, "quoteStatus": item.quote_status},
        )
    logger.info("Parts complete item=%s by user=%s", item.id, user_id)
    return item


def _set_flag(org_id, item_id, user_id, side, value):
    """Set or clear ``no_<side>_required``. Clearing never touches statuses."""
    with atomic():
        item = get_scoped(RepairItem, item_id, organization_id=org_id, for_update=True)
        setattr(item, f"no_{side}_required", value)
        setattr(item, f"no_{side}_required_by", user_id if value else None)
        setattr(item, f"no_{side}_required_at", _now() if value else None)
        if value:
            _promote_quote(item)
        write_audit(
            entity_type="repair_item", entity_id=item.id,
            action=f"{side}.not_required" if value else f"{side}.required",
            organization_id=org_id, actor_user_id=user_id,
        )
    logger.info("no_%s_required=%s item=%s", side, value, item.id)
    return item


def set_no_labour_required(org_id, item_id, user_id):
    return _set_flag(org_id, item_id, user_id, "labour", True)


def clear_no_labour_required(org_id, item_id, user_id):
    return _set_flag(org_id, item_id, user_id, "labour", False)


def set_no_parts_required(org_id, item_id, user_id):
    return _set_flag(org_id, item_id, user_id, "parts", True)


def clear_no_parts_required(org_id, item_id, user_id):
    return _set_flag(org_id, item_id, user_id, "parts", False)


# ═════════════════════════════════════════════════════════════════════════════
# Aggregate view
# ═════════════════════════════════════════════════════════════════════════════


def _aggregate(statuses: list[str]) -> str:
    if not statuses:
        return "na"
    if all(s == "complete" for s in statuses):
        return "complete"
    if any(s in ("in_progress", "complete") for s in statuses):
        return "in_progress"
    return "pending"


def health_check_workflow_status(org_id: int, health_check_id: int) -> dict:
    """Roll the statuses of top-level, non-deleted items up to the health check."""
    hc = get_scoped(HealthCheck, health_check_id, organization_id=org_id)
    items = (
        RepairItem.query_active()
        .filter(
            RepairItem.organization_id == org_id,
            RepairItem.health_check_id == hc.id,
            RepairItem.parent_repair_item_id.is_(None),
        )
        .all()
    )

    if items:
        quote_status = "complete" if all(i.quote_status == "ready" for i in items) else "pending"
    else:
        quote_status = "na"

    return {
        "labourStatus": _aggregate([i.labour_status for i in items]),
        "partsStatus": _aggregate([i.parts_status for i in items]),
        "quoteStatus": quote_status,
        "sentStatus": "complete" if hc.sent_at else "na",
        "repairItemCount": len(items),
    }
