"""
Repair Item Store — CRUD and check-result linking for repair items.

Every operation is scoped by organization_id; an id from another
organisation behaves exactly like a missing id (NotFoundError → 404).
Group creation is delegated to the Grouping Engine.
"""

import logging

from sqlalchemy import select

from app.core.exceptions import ConflictError, ValidationError
from app.models import db
from app.models.audit import write_audit
from app.models.health_check import CheckResult, HealthCheck
from app.models.repair import RepairItem, RepairItemCheckResult
from app.services import grouping_service
from app.services.helpers.scoped_queries import get_scoped
from app.services.helpers.transaction import atomic
from app.services.pricing import money
from app.utils.helpers import get_field, has_field, parse_decimal, parse_id_list

logger = logging.getLogger(__name__)


def get_health_check(org_id: int, health_check_id: int) -> HealthCheck:
    return get_scoped(HealthCheck, health_check_id, organization_id=org_id)


def get_repair_item(org_id: int, item_id: int, *, for_update: bool = False) -> RepairItem:
    return get_scoped(RepairItem, item_id, organization_id=org_id, for_update=for_update)


def list_for_health_check(org_id: int, health_check_id: int, include_deleted: bool = False):
    """Top-level items of a health check, oldest first."""
    hc = get_health_check(org_id, health_check_id)
    query = RepairItem.query_for_org(org_id).filter(
        RepairItem.health_check_id == hc.id,
        RepairItem.parent_repair_item_id.is_(None),
    )
    if not include_deleted:
        query = query.filter(RepairItem.deleted_at.is_(None))
    return query.order_by(RepairItem.created_at, RepairItem.id).all()


def list_unassigned_check_results(org_id: int, health_check_id: int, include_green: bool = False):
    """Red / amber (optionally green) findings not linked to any repair item."""
    hc = get_health_check(org_id, health_check_id)
    statuses = ["red", "amber", "green"] if include_green else ["red", "amber"]
    linked = select(RepairItemCheckResult.check_result_id)
    return (
        CheckResult.query
        .filter(
            CheckResult.health_check_id == hc.id,
            CheckResult.rag_status.in_(statuses),
            CheckResult.id.not_in(linked),
        )
        .order_by(CheckResult.id)
        .all()
    )


# ═════════════════════════════════════════════════════════════════════════════
# Create / update / delete
# ═════════════════════════════════════════════════════════════════════════════


def _ensure_unowned(check_results, links):
    owned = [cr.id for cr in check_results if cr.id in links]
    if owned:
        raise ConflictError(
            "Check results are already linked to another repair item",
            details={"checkResultIds": owned},
        )


def create_repair_item(org_id: int, health_check_id: int, data: dict, user_id: int | None) -> RepairItem:
    name = (get_field(data, "name") or "").strip()
    if not name:
        raise ValidationError("name is required", details={"name": "required"},
                              code="ERR_VALIDATION_REQUIRED")
    description = (get_field(data, "description") or "").strip() or None
    is_group = bool(get_field(data, "is_group", False))
    raw_ids = get_field(data, "check_result_ids")
    check_result_ids = parse_id_list(raw_ids, "check_result_ids") if raw_ids else []

    hc = get_health_check(org_id, health_check_id)

    if is_group:
        return grouping_service.create_group(
            org_id, hc, name, check_result_ids, description=description, user_id=user_id,
        )

    with atomic():
        findings = grouping_service.resolve_check_results(hc, check_result_ids)
        _ensure_unowned(findings, grouping_service.owning_links(check_result_ids))

        item = RepairItem(
            organization_id=org_id,
            health_check_id=hc.id,
            name=name,
            description=description,
            is_group=False,
            created_by=user_id,
        )
        for cr in findings:
            item.check_result_links.append(RepairItemCheckResult(check_result_id=cr.id))
        db.session.add(item)
        db.session.flush()
        write_audit(
            entity_type="repair_item", entity_id=item.id, action="create",
            organization_id=org_id, actor_user_id=user_id,
            diff={"name": name, "checkResultIds": check_result_ids},
        )
    logger.info("RepairItem created id=%s hc=%s links=%d", item.id, hc.id, len(findings))
    return item


def update_repair_item(org_id: int, item_id: int, data: dict, user_id: int | None = None) -> RepairItem:
    with atomic():
        item = get_repair_item(org_id, item_id, for_update=True)
        changes = {}
        if has_field(data, "name"):
            name = (get_field(data, "name") or "").strip()
            if not name:
                raise ValidationError("name cannot be empty", details={"name": "required"})
            changes["name"] = name
        if has_field(data, "description"):
            changes["description"] = (get_field(data, "description") or "").strip() or None
        if has_field(data, "price_override"):
            override = parse_decimal(
                get_field(data, "price_override"), "price_override", required=False, minimum=0,
            )
            changes["price_override"] = money(override) if override is not None else None
        if has_field(data, "price_override_reason"):
            changes["price_override_reason"] = get_field(data, "price_override_reason") or None

        diff = {}
        for field, value in changes.items():
            old = getattr(item, field)
            if old != value:
                diff[field] = {"old": old, "new": value}
                setattr(item, field, value)
        if diff:
            write_audit(
                entity_type="repair_item", entity_id=item.id, action="update",
                organization_id=org_id, actor_user_id=user_id,
                diff=diff,
            )
    logger.info("RepairItem updated id=%s fields=%s", item.id, sorted(diff))
    return item


def delete_repair_item(org_id: int, item_id: int, user_id: int | None) -> RepairItem:
    """Soft delete. Authorised work (new outcome or legacy flag) is never deleted."""
    with atomic():
        item = get_repair_item(org_id, item_id, for_update=True)
        if item.deleted_at is not None:
            raise ConflictError("Repair item is already deleted")
        if item.outcome.status == "authorised":
            logger.warning("Refused delete of authorised item=%s", item.id)
            raise ConflictError(
                "Cannot delete a repair item that has been authorised",
                details={"outcomeStatus": "authorised"},
            )
        item.soft_delete(user_id)
        write_audit(
            entity_type="repair_item", entity_id=item.id, action="delete",
            organization_id=org_id, actor_user_id=user_id,
        )
    logger.info("RepairItem soft-deleted id=%s by user=%s", item.id, user_id)
    return item


# ═════════════════════════════════════════════════════════════════════════════
# Check-result links
# ═════════════════════════════════════════════════════════════════════════════


def link_check_result(org_id: int, item_id: int, check_result_id) -> RepairItemCheckResult:
    if check_result_id in (None, ""):
        raise ValidationError("check_result_id is required",
                              details={"checkResultId": "required"},
                              code="ERR_VALIDATION_REQUIRED")
    [cr_id] = parse_id_list([check_result_id], "check_result_id")

    with atomic():
        item = get_repair_item(org_id, item_id, for_update=True)
        if item.is_group:
            raise ConflictError(
                "Groups do not own check results; link them to a child item",
                details={"isGroup": True},
            )
        hc = get_health_check(org_id, item.health_check_id)
        [cr] = grouping_service.resolve_check_results(hc, [cr_id])
        existing = grouping_service.owning_links([cr.id]).get(cr.id)
        if existing is not None:
            if existing.repair_item_id == item.id:
                raise ConflictError("Check result already linked", code="ERR_CONFLICT_DUPLICATE")
            raise ConflictError(
                "Check result is linked to another repair item",
                details={"repairItemId": existing.repair_item_id},
            )
        link = RepairItemCheckResult(check_result_id=cr.id)
        item.check_result_links.append(link)
        db.session.flush()
    logger.info("Linked check result=%s to item=%s", cr_id, item.id)
    return link


def unlink_check_result(org_id: int, item_id: int, check_result_id: int) -> bool:
    """Remove the link if present. Returns False when there was nothing to remove."""
    with atomic():
        item = get_repair_item(org_id, item_id, for_update=True)
        removed = False
        for link in list(item.check_result_links):
            if link.check_result_id == check_result_id:
                item.check_result_links.remove(link)
                removed = True
    logger.info("Unlinked check result=%s from item=%s removed=%s", check_result_id, item.id, removed)
    return removed
