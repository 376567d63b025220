"""
Grouping Engine — merge findings into composite repair jobs and split them apart.

Group creation
    1. Partition the requested check results into already-linked / unlinked.
    2. Re-parent the owning (non-group) items under the new group.
    3. Move any labour / parts carried directly by those items onto one
       synthesised "Standard" option of the group.
    4. Create a child item (named after the finding) for every unlinked
       finding and link the finding to that child.
    5. The group itself never receives a direct check-result link.

Group dissolution
    Children become top-level again, the group's direct links are dropped,
    and the group is hard-deleted when it carries no pricing (otherwise it
    is kept as an ordinary item).

Both run in one transaction.
"""

import logging

from app.core.exceptions import ValidationError
from app.models import db
from app.models.audit import write_audit
from app.models.health_check import CheckResult
from app.models.repair import (
    STANDARD_OPTION_NAME,
    RepairItem,
    RepairItemCheckResult,
    RepairLabour,
    RepairOption,
    RepairParts,
)
from app.services.helpers.scoped_queries import get_scoped
from app.services.helpers.transaction import atomic
from app.services.repair_pricing_service import recalculate_totals
from app.services.workflow_service import refresh_workflow_status

logger = logging.getLogger(__name__)

MIGRATED_OPTION_DESCRIPTION = "Migrated from individual items"
UNNAMED_FINDING = "Unknown Item"


# ═════════════════════════════════════════════════════════════════════════════
# Check-result helpers (shared with repair_item_service)
# ═════════════════════════════════════════════════════════════════════════════


def resolve_check_results(health_check, check_result_ids: list[int]) -> list[CheckResult]:
    """Load the findings in request order; every id must belong to the health check."""
    if not check_result_ids:
        return []
    rows = CheckResult.query.filter(
        CheckResult.health_check_id == health_check.id,
        CheckResult.id.in_(check_result_ids),
    ).all()
    found = {cr.id: cr for cr in rows}
    missing = [pk for pk in check_result_ids if pk not in found]
    if missing:
        raise ValidationError(
            "Check results do not belong to this health check",
            details={"checkResultIds": missing},
        )
    return [found[pk] for pk in check_result_ids]


def owning_links(check_result_ids: list[int]) -> dict[int, RepairItemCheckResult]:
    """check_result_id → existing link (first one wins)."""
    if not check_result_ids:
        return {}
    links = (
        RepairItemCheckResult.query
        .filter(RepairItemCheckResult.check_result_id.in_(check_result_ids))
        .order_by(RepairItemCheckResult.id)
        .all()
    )
    result = {}
    for link in links:
        result.setdefault(link.check_result_id, link)
    return result


def migration_note(original_item_id: int, notes: str | None) -> str:
    if notes and notes.strip():
        return f"[From: {original_item_id}] {notes.strip()}"
    return f"[From: {original_item_id}] Migrated from child item"


# ═════════════════════════════════════════════════════════════════════════════
# Group creation
# ═════════════════════════════════════════════════════════════════════════════


def _migrate_pricing(group: RepairItem, owners: list[RepairItem]) -> RepairOption | None:
    """Move direct labour / parts of *owners* onto a new "Standard" option."""
    with_pricing = [o for o in owners if o.labour or o.parts]
    if not with_pricing:
        return None

    option = RepairOption(
        name=STANDARD_OPTION_NAME,
        description=MIGRATED_OPTION_DESCRIPTION,
        is_recommended=True,
        sort_order=1,
    )
    group.options.append(option)

    moved_labour = moved_parts = 0
    for owner in with_pricing:
        for lab in list(owner.labour):
            option.labour.append(RepairLabour(
                labour_code_id=lab.labour_code_id,
                hours=lab.hours,
                rate=lab.rate,
                discount_percent=lab.discount_percent,
                total=lab.total,
                is_vat_exempt=lab.is_vat_exempt,
                notes=migration_note(owner.id, lab.notes),
                created_by=lab.created_by,
            ))
            owner.labour.remove(lab)
            moved_labour += 1
        for part in list(owner.parts):
            option.parts.append(RepairParts(
                part_number=part.part_number,
                description=part.description,
                quantity=part.quantity,
                supplier_id=part.supplier_id,
                supplier_name=part.supplier_name,
                cost_price=part.cost_price,
                sell_price=part.sell_price,
                line_total=part.line_total,
                margin_percent=part.margin_percent,
                markup_percent=part.markup_percent,
                notes=migration_note(owner.id, part.notes),
                created_by=part.created_by,
            ))
            owner.parts.remove(part)
            moved_parts += 1
        recalculate_totals(owner)

    db.session.flush()
    recalculate_totals(option)
    recalculate_totals(group)
    logger.info(
        "Migrated pricing from %d item(s) to option=%s on group=%s (labour=%d parts=%d)",
        len(with_pricing), option.id, group.id, moved_labour, moved_parts,
    )
    return option


def build_group(
    org_id: int,
    health_check,
    name: str,
    check_result_ids: list[int],
    *,
    description: str | None = None,
    user_id: int | None = None,
) -> RepairItem:
    """Create the group inside the caller's transaction (flush only)."""
    findings = resolve_check_results(health_check, check_result_ids)
    links = owning_links([cr.id for cr in findings])

    owners: list[RepairItem] = []
    unlinked: list[CheckResult] = []
    skipped: list[int] = []
    for cr in findings:
        link = links.get(cr.id)
        if link is None:
            unlinked.append(cr)
            continue
        owner = link.repair_item
        if owner.is_group:
            # Only individual items can become children
            logger.warning("Skipping check result=%s owned by group=%s", cr.id, owner.id)
            skipped.append(cr.id)
            continue
        if owner not in owners:
            owners.append(owner)

    group = RepairItem(
        organization_id=org_id,
        health_check_id=health_check.id,
        name=name,
        description=description,
        is_group=True,
        created_by=user_id,
    )
    db.session.add(group)
    db.session.flush()

    for owner in owners:
        if owner.parent_repair_item_id is not None:
            logger.warning("Moving item=%s from group=%s to group=%s",
                           owner.id, owner.parent_repair_item_id, group.id)
        owner.parent = group

    option = _migrate_pricing(group, owners)

    children = []
    for cr in unlinked:
        child = RepairItem(
            organization_id=org_id,
            health_check_id=health_check.id,
            name=cr.name or UNNAMED_FINDING,
            is_group=False,
            created_by=user_id,
        )
        group.children.append(child)
        child.check_result_links.append(RepairItemCheckResult(check_result_id=cr.id))
        children.append(child)
    db.session.flush()

    if option is not None:
        refresh_workflow_status(item=group)

    write_audit(
        entity_type="repair_item", entity_id=group.id, action="repair_item.group",
        organization_id=org_id, actor_user_id=user_id,
        diff={
            "reparentedIds": [o.id for o in owners],
            "createdChildIds": [c.id for c in children],
            "skippedCheckResultIds": skipped,
            "migratedOptionId": option.id if option is not None else None,
        },
    )
    logger.info(
        "Group created id=%s hc=%s reparented=%d children_created=%d",
        group.id, health_check.id, len(owners), len(children),
    )
    return group


def create_group(org_id, health_check, name, check_result_ids, *, description=None, user_id=None):
    with atomic():
        return build_group(
            org_id, health_check, name, check_result_ids,
            description=description, user_id=user_id,
        )


# ═════════════════════════════════════════════════════════════════════════════
# Group dissolution
# ═════════════════════════════════════════════════════════════════════════════


def _has_pricing(target) -> bool:
    return (target.labour_total or 0) > 0 or (target.parts_total or 0) > 0


def ungroup(org_id: int, item_id: int, user_id: int | None = None) -> dict:
    with atomic():
        group = get_scoped(RepairItem, item_id, organization_id=org_id, for_update=True)
        if not group.is_group:
            raise ValidationError("Can only ungroup repair groups", details={"isGroup": False})
        children = list(group.children)
        if not children:
            raise ValidationError("No children to ungroup", details={"childCount": 0})

        for child in children:
            child.parent = None
        for link in list(group.check_result_links):
            group.check_result_links.remove(link)

        keep = _has_pricing(group) or any(_has_pricing(o) for o in group.options)
        if keep:
            group.is_group = False
        else:
            db.session.delete(group)
        db.session.flush()

        write_audit(
            entity_type="repair_item", entity_id=item_id, action="repair_item.ungroup",
            organization_id=org_id, actor_user_id=user_id,
            diff={"childIds": [c.id for c in children], "groupDeleted": not keep},
        )

    logger.info("Ungrouped group=%s children=%d group_deleted=%s",
                item_id, len(children), not keep)
    return {"success": True, "groupDeleted": not keep, "ungroupedCount": len(children)}
