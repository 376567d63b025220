"""
Repair pricing service — options, labour lines and parts lines.

Labour and parts rows belong to exactly one repair item OR one repair
option. After every labour / parts mutation the owner's totals are
recomputed with the Pricing Aggregator; inserts also refresh the owning
item's workflow status.

All lookups are organisation-scoped: rows without their own
organization_id are resolved through the owning repair item.
"""

import logging

from sqlalchemy import func, select

from app.core.exceptions import NotFoundError, ValidationError
from app.models import db
from app.models.catalog import LabourCode, Supplier
from app.models.organization import Organization
from app.models.repair import RepairItem, RepairLabour, RepairOption, RepairParts
from app.services import pricing
from app.services.helpers.scoped_queries import get_scoped, get_scoped_or_none
from app.services.helpers.transaction import atomic
from app.services.workflow_service import refresh_workflow_status
from app.utils.helpers import get_field, has_field, parse_decimal

logger = logging.getLogger(__name__)

_HUNDRED = pricing.HUNDRED


# ═════════════════════════════════════════════════════════════════════════════
# Totals
# ═════════════════════════════════════════════════════════════════════════════


def _owning_item(target) -> RepairItem:
    return target if isinstance(target, RepairItem) else target.repair_item


def recalculate_totals(target):
    """Recompute labour / parts / VAT totals on a RepairItem or RepairOption."""
    item = _owning_item(target)
    organization = db.session.get(Organization, item.organization_id)
    summary = pricing.summarise(target.labour, target.parts, pricing.resolve_vat_rate(organization))
    summary.apply_to(target)
    return summary


# ═════════════════════════════════════════════════════════════════════════════
# Scoped lookups
# ═════════════════════════════════════════════════════════════════════════════


def get_option(org_id: int, option_id: int) -> RepairOption:
    stmt = (
        select(RepairOption)
        .join(RepairItem, RepairItem.id == RepairOption.repair_item_id)
        .where(RepairOption.id == option_id, RepairItem.organization_id == org_id)
    )
    option = db.session.execute(stmt).scalar_one_or_none()
    if option is None:
        raise NotFoundError(resource="RepairOption", resource_id=option_id)
    return option


def _get_line(model, pk: int, org_id: int):
    """Labour / parts row whose owning item (direct or via option) is in *org_id*."""
    stmt = (
        select(model)
        .outerjoin(RepairOption, RepairOption.id == model.repair_option_id)
        .join(
            RepairItem,
            RepairItem.id == func.coalesce(model.repair_item_id, RepairOption.repair_item_id),
        )
        .where(model.id == pk, RepairItem.organization_id == org_id)
    )
    row = db.session.execute(stmt).scalar_one_or_none()
    if row is None:
        raise NotFoundError(resource=model.__name__, resource_id=pk)
    return row


def _resolve_owner(org_id, item_id=None, option_id=None):
    if (item_id is None) == (option_id is None):
        raise ValueError("exactly one of item_id / option_id is required")
    if item_id is not None:
        return get_scoped(RepairItem, item_id, organization_id=org_id, for_update=True)
    return get_option(org_id, option_id)


def _line_owner(row):
    return row.repair_item if row.repair_item_id is not None else row.repair_option


# ═════════════════════════════════════════════════════════════════════════════
# Options
# ═════════════════════════════════════════════════════════════════════════════


def list_options(org_id: int, item_id: int) -> list[RepairOption]:
    item = get_scoped(RepairItem, item_id, organization_id=org_id)
    return list(item.options)


def create_option(org_id: int, item_id: int, data: dict) -> RepairOption:
    name = (get_field(data, "name") or "").strip()
    if not name:
        raise ValidationError("name is required", details={"name": "required"},
                              code="ERR_VALIDATION_REQUIRED")

    with atomic():
        item = get_scoped(RepairItem, item_id, organization_id=org_id, for_update=True)
        max_sort = db.session.execute(
            select(func.max(RepairOption.sort_order)).where(RepairOption.repair_item_id == item.id)
        ).scalar()
        option = RepairOption(
            name=name,
            description=(get_field(data, "description") or "").strip() or None,
            is_recommended=bool(get_field(data, "is_recommended", False)),
            sort_order=(max_sort or 0) + 1,
        )
        item.options.append(option)
        db.session.flush()
    logger.info("RepairOption created id=%s item=%s", option.id, item.id)
    return option


def update_option(org_id: int, option_id: int, data: dict) -> RepairOption:
    with atomic():
        option = get_option(org_id, option_id)
        if has_field(data, "name"):
            name = (get_field(data, "name") or "").strip()
            if not name:
                raise ValidationError("name cannot be empty", details={"name": "required"})
            option.name = name
        if has_field(data, "description"):
            option.description = (get_field(data, "description") or "").strip() or None
        if has_field(data, "is_recommended"):
            option.is_recommended = bool(get_field(data, "is_recommended"))
        if has_field(data, "sort_order"):
            try:
                option.sort_order = int(get_field(data, "sort_order"))
            except (TypeError, ValueError):
                raise ValidationError("sort_order must be an integer",
                                      details={"sortOrder": "invalid"}) from None
    logger.info("RepairOption updated id=%s", option.id)
    return option


def delete_option(org_id: int, option_id: int) -> None:
    with atomic():
        option = get_option(org_id, option_id)
        item = option.repair_item
        if item.selected_option_id == option.id:
            item.selected_option_id = None
        item.options.remove(option)
        db.session.flush()
    logger.info("RepairOption deleted id=%s item=%s", option_id, item.id)


def select_option(org_id: int, item_id: int, option_id: int | None) -> RepairItem:
    """Choose one of the item's options, or clear the choice with None."""
    with atomic():
        item = get_scoped(RepairItem, item_id, organization_id=org_id, for_update=True)
        if option_id is not None:
            get_scoped(RepairOption, option_id, repair_item_id=item.id)
        item.selected_option_id = option_id
    logger.info("Selected option=%s on item=%s", option_id, item.id)
    return item


# ═════════════════════════════════════════════════════════════════════════════
# Labour
# ═════════════════════════════════════════════════════════════════════════════


def list_labour(org_id, *, item_id=None, option_id=None) -> list[RepairLabour]:
    if item_id is not None:
        return list(get_scoped(RepairItem, item_id, organization_id=org_id).labour)
    return list(get_option(org_id, option_id).labour)


def _parse_discount(data):
    discount = parse_decimal(
        get_field(data, "discount_percent"), "discount_percent",
        required=False, minimum=0, default=pricing.ZERO,
    )
    if discount > _HUNDRED:
        raise ValidationError("discount_percent must be <= 100",
                              details={"discountPercent": "out of range"})
    return discount


def add_labour(org_id, data, user_id, *, item_id=None, option_id=None) -> RepairLabour:
    labour_code_id = get_field(data, "labour_code_id")
    if labour_code_id in (None, ""):
        raise ValidationError("labour_code_id is required",
                              details={"labourCodeId": "required"},
                              code="ERR_VALIDATION_REQUIRED")
    hours = parse_decimal(get_field(data, "hours"), "hours", minimum=0)
    discount = _parse_discount(data)

    with atomic():
        owner = _resolve_owner(org_id, item_id, option_id)
        try:
            code_pk = int(labour_code_id)
        except (TypeError, ValueError):
            raise ValidationError("labour_code_id must be an integer",
                                  details={"labourCodeId": "invalid"}) from None
        code = get_scoped(LabourCode, code_pk, organization_id=org_id)
        if not code.is_active:
            raise ValidationError("Labour code is inactive", details={"labourCodeId": "inactive"})

        labour = RepairLabour(
            labour_code_id=code.id,
            hours=hours,
            rate=code.hourly_rate,
            discount_percent=discount,
            total=pricing.labour_total(code.hourly_rate, hours, discount),
            is_vat_exempt=bool(code.is_vat_exempt),
            notes=(get_field(data, "notes") or "").strip() or None,
            created_by=user_id,
        )
        owner.labour.append(labour)
        db.session.flush()
        recalculate_totals(owner)
        refresh_workflow_status(item=_owning_item(owner))
    logger.info("RepairLabour added id=%s owner=%r total=%s", labour.id, owner, labour.total)
    return labour


def update_labour(org_id, labour_id, data) -> RepairLabour:
    with atomic():
        labour = _get_line(RepairLabour, labour_id, org_id)
        if has_field(data, "hours"):
            labour.hours = parse_decimal(get_field(data, "hours"), "hours", minimum=0)
        if has_field(data, "discount_percent"):
            labour.discount_percent = _parse_discount(data)
        if has_field(data, "notes"):
            labour.notes = (get_field(data, "notes") or "").strip() or None
        labour.total = pricing.labour_total(labour.rate, labour.hours, labour.discount_percent)
        recalculate_totals(_line_owner(labour))
    logger.info("RepairLabour updated id=%s total=%s", labour.id, labour.total)
    return labour


def delete_labour(org_id, labour_id) -> None:
    with atomic():
        labour = _get_line(RepairLabour, labour_id, org_id)
        owner = _line_owner(labour)
        owner.labour.remove(labour)
        db.session.flush()
        recalculate_totals(owner)
    logger.info("RepairLabour deleted id=%s", labour_id)


# ═════════════════════════════════════════════════════════════════════════════
# Parts
# ═════════════════════════════════════════════════════════════════════════════


def list_parts(org_id, *, item_id=None, option_id=None) -> list[RepairParts]:
    if item_id is not None:
        return list(get_scoped(RepairItem, item_id, organization_id=org_id).parts)
    return list(get_option(org_id, option_id).parts)


def _apply_part_prices(part):
    part.line_total = pricing.part_line_total(part.quantity, part.sell_price)
    part.margin_percent = pricing.margin_percent(part.cost_price, part.sell_price)
    part.markup_percent = pricing.markup_percent(part.cost_price, part.sell_price)


def _parse_quantity(data, default=None):
    quantity = parse_decimal(
        get_field(data, "quantity"), "quantity", required=default is None,
        minimum=0, default=default,
    )
    if quantity <= 0:
        raise ValidationError("quantity must be > 0", details={"quantity": "out of range"})
    return quantity


def _resolve_supplier(org_id, data):
    supplier_id = get_field(data, "supplier_id")
    if supplier_id in (None, ""):
        return None, (get_field(data, "supplier_name") or "").strip() or None
    try:
        supplier_pk = int(supplier_id)
    except (TypeError, ValueError):
        raise ValidationError("supplier_id must be an integer",
                              details={"supplierId": "invalid"}) from None
    supplier = get_scoped_or_none(Supplier, supplier_pk, organization_id=org_id)
    if supplier is None:
        raise NotFoundError(resource="Supplier", resource_id=supplier_pk)
    return supplier.id, supplier.name


def add_parts(org_id, data, user_id, *, item_id=None, option_id=None) -> RepairParts:
    description = (get_field(data, "description") or "").strip()
    if not description:
        raise ValidationError("description is required", details={"description": "required"},
                              code="ERR_VALIDATION_REQUIRED")
    cost_price = parse_decimal(get_field(data, "cost_price"), "cost_price", minimum=0)
    sell_price = parse_decimal(get_field(data, "sell_price"), "sell_price", minimum=0)
    quantity = _parse_quantity(data, default=pricing.money(1))

    with atomic():
        owner = _resolve_owner(org_id, item_id, option_id)
        supplier_id, supplier_name = _resolve_supplier(org_id, data)
        part = RepairParts(
            part_number=(get_field(data, "part_number") or "").strip() or None,
            description=description,
            quantity=quantity,
            supplier_id=supplier_id,
            supplier_name=supplier_name,
            cost_price=cost_price,
            sell_price=sell_price,
            notes=(get_field(data, "notes") or "").strip() or None,
            created_by=user_id,
        )
        _apply_part_prices(part)
        owner.parts.append(part)
        db.session.flush()
        recalculate_totals(owner)
        refresh_workflow_status(item=_owning_item(owner))
    logger.info("RepairParts added id=%s owner=%r line_total=%s", part.id, owner, part.line_total)
    return part


def update_parts(org_id, parts_id, data) -> RepairParts:
    with atomic():
        part = _get_line(RepairParts, parts_id, org_id)
        if has_field(data, "description"):
            description = (get_field(data, "description") or "").strip()
            if not description:
                raise ValidationError("description cannot be empty",
                                      details={"description": "required"})
            part.description = description
        if has_field(data, "part_number"):
            part.part_number = (get_field(data, "part_number") or "").strip() or None
        if has_field(data, "quantity"):
            part.quantity = _parse_quantity(data)
        if has_field(data, "cost_price"):
            part.cost_price = parse_decimal(get_field(data, "cost_price"), "cost_price", minimum=0)
        if has_field(data, "sell_price"):
            part.sell_price = parse_decimal(get_field(data, "sell_price"), "sell_price", minimum=0)
        if has_field(data, "supplier_id") or has_field(data, "supplier_name"):
            part.supplier_id, part.supplier_name = _resolve_supplier(org_id, data)
        if has_field(data, "notes"):
            part.notes = (get_field(data, "notes") or "").strip() or None
        _apply_part_prices(part)
        recalculate_totals(_line_owner(part))
    logger.info("RepairParts updated id=%s line_total=%s", part.id, part.line_total)
    return part


def delete_parts(org_id, parts_id) -> None:
    with atomic():
        part = _get_line(RepairParts, parts_id, org_id)
        owner = _line_owner(part)
        owner.parts.remove(part)
        db.session.flush()
        recalculate_totals(owner)
    logger.info("RepairParts deleted id=%s", parts_id)
