"""
Outcome State Machine — customer decisions on top-level repair items.

    incomplete / ready ──▶ authorised | deferred | declined | deleted
    authorised         ──▶ deferred | declined
    deferred           ──▶ authorised | declined | deleted
    declined           ──▶ authorised | deferred | deleted
    deleted            ──▶ (terminal, except reset)

The current state is always read through ``resolve_outcome``; the legacy
``customer_approved`` flag is written for older clients but never
branched on here. ``reset`` returns any item to the derived
incomplete / ready state.

Bulk actions run each id in its own savepoint: a failing id is reported
and rolled back without undoing the ids that succeeded.
"""

import logging
from datetime import UTC, date, datetime

from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.models import db
from app.models.audit import write_audit
from app.models.catalog import OutcomeReason
from app.models.repair import (
    DECISION_OUTCOMES,
    RepairItem,
    resolve_outcome,
    validate_outcome_transition,
)
from app.services.helpers.scoped_queries import get_scoped, get_scoped_or_none
from app.services.helpers.transaction import atomic
from app.services.repair_item_service import get_health_check
from app.utils.helpers import parse_date, parse_id_list

logger = logging.getLogger(__name__)

ACTION_TARGETS = {
    "authorise": "authorised",
    "defer": "deferred",
    "decline": "declined",
    "delete": "deleted",
}

# Outcomes that let a health check be completed
ACTIONED_OUTCOMES = DECISION_OUTCOMES - {"deleted"}


def _now():
    return datetime.now(UTC)


def _today() -> date:
    return _now().date()


def _clean(notes):
    return (notes or "").strip() or None


# ═════════════════════════════════════════════════════════════════════════════
# Input validation
# ═════════════════════════════════════════════════════════════════════════════


def parse_deferred_until(value) -> date:
    """Required, parseable and strictly after today."""
    if value in (None, ""):
        raise ValidationError("deferred_until date is required",
                              details={"deferredUntil": "required"},
                              code="ERR_VALIDATION_REQUIRED")
    parsed = parse_date(value)
    if parsed is None:
        raise ValidationError("Invalid date format for deferred_until",
                              details={"deferredUntil": "invalid"})
    if parsed <= _today():
        raise ValidationError("deferred_until must be a future date",
                              details={"deferredUntil": "not in future"})
    return parsed


def resolve_reason(org_id: int, reason_id, reason_type: str, notes) -> OutcomeReason:
    """Active reason of *reason_type* in the organisation; "Other" needs notes."""
    field = f"{reason_type}_reason_id"
    if reason_id in (None, ""):
        raise ValidationError(f"{field} is required", details={field: "required"},
                              code="ERR_VALIDATION_REQUIRED")
    [pk] = parse_id_list([reason_id], field)
    reason = get_scoped_or_none(OutcomeReason, pk, organization_id=org_id)
    if reason is None or reason.reason_type != reason_type or not reason.is_active:
        raise NotFoundError(resource=f"{reason_type.title()}Reason", resource_id=pk)
    if reason.requires_notes and not _clean(notes):
        raise ValidationError(
            "Notes are required when selecting 'Other' as the reason",
            details={"notes": "required"},
            code="ERR_VALIDATION_REQUIRED",
        )
    return reason


# ═════════════════════════════════════════════════════════════════════════════
# Transition core (flush only; callers own the transaction)
# ═════════════════════════════════════════════════════════════════════════════


def _guard(item: RepairItem, action: str) -> str:
    if item.parent_repair_item_id is not None:
        raise ConflictError(
            "Outcome actions apply to top-level repair items only",
            details={"parentRepairItemId": item.parent_repair_item_id},
        )
    current = resolve_outcome(item).status
    target = ACTION_TARGETS.get(action)
    if target is not None and not validate_outcome_transition(current, target):
        logger.warning("Rejected %s on item=%s in state %s", action, item.id, current)
        raise ConflictError(
            f"Cannot {action} a repair item that is {current}",
            details={"currentStatus": current, "targetStatus": target},
        )
    return current


def _clear_decision_fields(item: RepairItem):
    item.deferred_until = None
    item.deferred_notes = None
    item.declined_reason_id = None
    item.declined_notes = None
    item.deleted_reason_id = None
    item.deleted_notes = None


def _record(item: RepairItem, status: str, user_id, source="manual"):
    _clear_decision_fields(item)
    item.outcome_status = status
    item.outcome_set_by = user_id
    item.outcome_set_at = _now()
    item.outcome_source = source


def _audit(org_id, item, action, user_id, previous, **extra):
    write_audit(
        entity_type="repair_item", entity_id=item.id, action=f"repair_item.{action}",
        organization_id=org_id, actor_user_id=user_id,
        diff={
            "outcomeStatus": {"old": previous, "new": resolve_outcome(item).status},
            "healthCheckId": item.health_check_id,
            **extra,
        },
    )


def _apply_authorise(org_id, item, user_id, notes=None):
    previous = _guard(item, "authorise")
    _record(item, "authorised", user_id)
    item.customer_approved = True
    item.customer_approved_at = item.outcome_set_at
    item.customer_declined_reason = None
    db.session.flush()
    _audit(org_id, item, "authorise", user_id, previous, notes=_clean(notes))


def _apply_defer(org_id, item, user_id, deferred_until: date, notes=None):
    previous = _guard(item, "defer")
    _record(item, "deferred", user_id)
    item.deferred_until = deferred_until
    item.deferred_notes = _clean(notes)
    item.customer_approved = None
    item.customer_approved_at = None
    db.session.flush()
    _audit(org_id, item, "defer", user_id, previous, deferredUntil=deferred_until.isoformat())


def _apply_decline(org_id, item, user_id, reason: OutcomeReason, notes=None):
    previous = _guard(item, "decline")
    _record(item, "declined", user_id)
    item.declined_reason_id = reason.id
    item.declined_notes = _clean(notes)
    item.customer_approved = False
    item.customer_approved_at = None
    item.customer_declined_reason = reason.reason
    db.session.flush()
    _audit(org_id, item, "decline", user_id, previous, reason=reason.reason)


def _apply_delete(org_id, item, user_id, reason: OutcomeReason, notes=None):
    previous = _guard(item, "delete")
    _record(item, "deleted", user_id)
    item.deleted_reason_id = reason.id
    item.deleted_notes = _clean(notes)
    item.customer_approved = None
    item.customer_approved_at = None
    item.soft_delete(user_id)
    db.session.flush()
    _audit(org_id, item, "delete", user_id, previous, reason=reason.reason)


def _apply_reset(org_id, item, user_id):
    previous = _guard(item, "reset")
    _clear_decision_fields(item)
    item.outcome_status = None
    item.outcome_set_by = None
    item.outcome_set_at = None
    item.outcome_source = None
    item.customer_approved = None
    item.customer_approved_at = None
    item.customer_declined_reason = None
    item.restore()
    db.session.flush()
    _audit(org_id, item, "reset", user_id, previous)


def _locked_item(org_id, item_id) -> RepairItem:
    return get_scoped(RepairItem, item_id, organization_id=org_id, for_update=True)


# ═════════════════════════════════════════════════════════════════════════════
# Single-item actions
# ═════════════════════════════════════════════════════════════════════════════


def authorise(org_id: int, item_id: int, user_id: int | None, notes=None) -> RepairItem:
    with atomic():
        item = _locked_item(org_id, item_id)
        _apply_authorise(org_id, item, user_id, notes)
    logger.info("Repair item authorised id=%s by user=%s", item.id, user_id)
    return item


def defer(org_id: int, item_id: int, user_id: int | None, deferred_until, notes=None) -> RepairItem:
    until = parse_deferred_until(deferred_until)
    with atomic():
        item = _locked_item(org_id, item_id)
        _apply_defer(org_id, item, user_id, until, notes)
    logger.info("Repair item deferred id=%s until=%s", item.id, until)
    return item


def decline(org_id: int, item_id: int, user_id: int | None, declined_reason_id, notes=None) -> RepairItem:
    with atomic():
        reason = resolve_reason(org_id, declined_reason_id, "declined", notes)
        item = _locked_item(org_id, item_id)
        _apply_decline(org_id, item, user_id, reason, notes)
    logger.info("Repair item declined id=%s reason=%s", item.id, reason.id)
    return item


def delete_with_reason(org_id: int, item_id: int, user_id: int | None, deleted_reason_id, notes=None) -> RepairItem:
    with atomic():
        reason = resolve_reason(org_id, deleted_reason_id, "deleted", notes)
        item = _locked_item(org_id, item_id)
        _apply_delete(org_id, item, user_id, reason, notes)
    logger.info("Repair item deleted id=%s reason=%s", item.id, reason.id)
    return item


def reset(org_id: int, item_id: int, user_id: int | None) -> RepairItem:
    with atomic():
        item = _locked_item(org_id, item_id)
        _apply_reset(org_id, item, user_id)
    logger.info("Repair item outcome reset id=%s by user=%s", item.id, user_id)
    return item


# ═════════════════════════════════════════════════════════════════════════════
# Bulk actions
# ═════════════════════════════════════════════════════════════════════════════


def _run_bulk(org_id, raw_ids, action, apply):
    """Apply *apply(item)* to each id in its own savepoint and report per id."""
    item_ids = parse_id_list(raw_ids, "repair_item_ids")
    results = []
    with atomic():
        for item_id in item_ids:
            try:
                with db.session.begin_nested():
                    item = _locked_item(org_id, item_id)
                    apply(item)
            except NotFoundError:
                results.append({"id": item_id, "success": False,
                                "error": "Repair item not found", "code": "ERR_NOT_FOUND"})
            except (ConflictError, ValidationError) as exc:
                results.append({"id": item_id, "success": False,
                                "error": str(exc), "code": exc.code})
            else:
                results.append({"id": item_id, "success": True,
                                "outcomeStatus": resolve_outcome(item).status})

    updated = [r["id"] for r in results if r["success"]]
    logger.info("Bulk %s org=%s updated=%d failed=%d",
                action, org_id, len(updated), len(results) - len(updated))
    return {
        "success": len(updated) == len(results),
        "updatedCount": len(updated),
        "updatedIds": updated,
        "failedCount": len(results) - len(updated),
        "results": results,
    }


def bulk_authorise(org_id, repair_item_ids, user_id, notes=None) -> dict:
    return _run_bulk(
        org_id, repair_item_ids, "authorise",
        lambda item: _apply_authorise(org_id, item, user_id, notes),
    )


def bulk_defer(org_id, repair_item_ids, user_id, deferred_until, notes=None) -> dict:
    until = parse_deferred_until(deferred_until)
    return _run_bulk(
        org_id, repair_item_ids, "defer",
        lambda item: _apply_defer(org_id, item, user_id, until, notes),
    )


def bulk_decline(org_id, repair_item_ids, user_id, declined_reason_id, notes=None) -> dict:
    reason = resolve_reason(org_id, declined_reason_id, "declined", notes)
    return _run_bulk(
        org_id, repair_item_ids, "decline",
        lambda item: _apply_decline(org_id, item, user_id, reason, notes),
    )


# ═════════════════════════════════════════════════════════════════════════════
# Health check completion
# ═════════════════════════════════════════════════════════════════════════════


def can_complete_health_check(org_id: int, health_check_id: int) -> dict:
    """A health check is complete once every live top-level item has a decision."""
    hc = get_health_check(org_id, health_check_id)
    items = (
        RepairItem.query_active()
        .filter(
            RepairItem.organization_id == org_id,
            RepairItem.health_check_id == hc.id,
            RepairItem.parent_repair_item_id.is_(None),
        )
        .order_by(RepairItem.id)
        .all()
    )
    if not items:
        return {"canComplete": True, "pendingItems": 0, "message": "No repair items to action"}

    pending = [i for i in items if resolve_outcome(i).status not in ACTIONED_OUTCOMES]
    if pending:
        return {
            "canComplete": False,
            "pendingItems": len(pending),
            "message": f"Cannot complete: {len(pending)} repair item(s) need an outcome",
            "items": [
                {"id": i.id, "name": i.name, "outcomeStatus": resolve_outcome(i).status}
                for i in pending
            ],
        }
    return {"canComplete": True, "pendingItems": 0, "message": "All repair items have been actioned"}


def outcome_payload(item: RepairItem) -> dict:
    """Compact outcome view returned by the outcome endpoints."""
    full = item.to_dict()
    keys = (
        "id", "outcomeStatus", "outcomeSetBy", "outcomeSetAt", "outcomeSource",
        "deferredUntil", "deferredNotes", "declinedReasonId", "declinedNotes",
        "deletedReasonId", "deletedNotes", "deletedAt", "customerApproved",
    )
    return {k: full[k] for k in keys}
