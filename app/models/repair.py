"""
Vehicle Health Check — Repair domain models.

Models:
    - RepairItem:             one finding or one composite job (group) priced for the customer
    - RepairOption:           alternative priced configuration for a repair item
    - RepairLabour:           labour line owned by exactly one item OR one option
    - RepairParts:            parts line owned by exactly one item OR one option
    - RepairItemCheckResult:  finding → owning repair item link

Architecture:
    HealthCheck ──1:N──▶ RepairItem ──1:N──▶ RepairItem          (group → children)
    RepairItem  ──1:N──▶ RepairOption ──1:N──▶ RepairLabour / RepairParts
    RepairItem  ──1:N──▶ RepairLabour / RepairParts               (direct pricing)
    RepairItem  ──N:M──▶ CheckResult  (via RepairItemCheckResult)

Lifecycle states:
    labour_status / parts_status:  pending → in_progress → complete
    quote_status:                  pending → ready
    outcome:                       incomplete | ready → authorised | deferred | declined | deleted
"""

from dataclasses import dataclass
from datetime import datetime, timezone

from app.models import db
from app.models.base import OrgModel
from app.models.soft_delete import SoftDeleteMixin


# ── Constants ────────────────────────────────────────────────────────────────

WORK_STATUSES = {"pending", "in_progress", "complete"}

QUOTE_STATUSES = {"pending", "ready"}

OUTCOME_STATUSES = {
    "incomplete", "ready",
    "authorised", "deferred", "declined", "deleted",
}

# Outcomes that record a customer decision; the others are derived live.
DECISION_OUTCOMES = {"authorised", "deferred", "declined", "deleted"}

OUTCOME_SOURCES = {"manual", "online"}

STANDARD_OPTION_NAME = "Standard"


# ── Lifecycle Transition Guards ──────────────────────────────────────────────

OUTCOME_TRANSITIONS = {
    "incomplete": ["authorised", "deferred", "declined", "deleted"],
    "ready":      ["authorised", "deferred", "declined", "deleted"],
    "authorised": ["deferred", "declined"],   # approved work is never deleted
    "deferred":   ["authorised", "declined", "deleted"],
    "declined":   ["authorised", "deferred", "deleted"],
    "deleted":    [],
}


def validate_outcome_transition(old_status, new_status):
    """Return True if the outcome transition is valid."""
    return new_status in OUTCOME_TRANSITIONS.get(old_status, [])


# ── Outcome adapter ──────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Outcome:
    """Resolved customer-facing outcome of a repair item."""

    status: str
    source: str | None = None
    set_by: int | None = None
    set_at: datetime | None = None
    from_legacy: bool = False

    @property
    def is_decision(self) -> bool:
        return self.status in DECISION_OUTCOMES


def work_ready(item) -> bool:
    """Labour and parts are both complete (or explicitly not required)."""
    labour_done = item.labour_status == "complete" or bool(item.no_labour_required)
    parts_done = item.parts_status == "complete" or bool(item.no_parts_required)
    return labour_done and parts_done


def resolve_outcome(item) -> Outcome:
    """Single read path over the stored outcome columns.

    Precedence: deleted_at → stored decision → legacy customer_approved →
    derived incomplete/ready. Deferred / declined metadata without a stored
    outcome_status is ignored.
    """
    if item.deleted_at is not None:
        return Outcome(
            status="deleted",
            source=item.outcome_source,
            set_by=item.outcome_set_by or item.deleted_by,
            set_at=item.outcome_set_at or item.deleted_at,
        )
    if item.outcome_status in DECISION_OUTCOMES:
        return Outcome(
            status=item.outcome_status,
            source=item.outcome_source,
            set_by=item.outcome_set_by,
            set_at=item.outcome_set_at,
        )
    if item.customer_approved is True:
        return Outcome(status="authorised", set_at=item.customer_approved_at, from_legacy=True)
    if item.customer_approved is False:
        return Outcome(status="declined", from_legacy=True)
    return Outcome(status="ready" if work_ready(item) else "incomplete")


# ── Serialisation helpers ────────────────────────────────────────────────────


def _num(value):
    """Decimal → float for JSON; None stays None."""
    return float(value) if value is not None else None


def _iso(value):
    return value.isoformat() if value else None


def _now():
    return datetime.now(timezone.utc)


# ═════════════════════════════════════════════════════════════════════════════
# 1. RepairItem
# ═════════════════════════════════════════════════════════════════════════════


class RepairItem(SoftDeleteMixin, OrgModel):
    """
    A priced unit of work derived from one or more inspection findings.
    Groups (is_group=True) carry their pricing on options; their children
    own the check-result links.
    """

    __tablename__ = "repair_items"

    id = db.Column(db.Integer, primary_key=True)
    health_check_id = db.Column(
        db.Integer, db.ForeignKey("health_checks.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    parent_repair_item_id = db.Column(
        db.Integer, db.ForeignKey("repair_items.id", ondelete="SET NULL"),
        nullable=True, index=True,
        comment="Set on children of a group",
    )
    selected_option_id = db.Column(
        db.Integer, nullable=True,
        comment="repair_options.id of the same item (checked in service layer)",
    )

    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    is_group = db.Column(db.Boolean, nullable=False, default=False)

    # Pricing (direct labour/parts only; option totals live on the option)
    price_override = db.Column(db.Numeric(10, 2), nullable=True)
    price_override_reason = db.Column(db.Text, nullable=True)
    labour_total = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    parts_total = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    subtotal = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    vat_amount = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    total_inc_vat = db.Column(db.Numeric(10, 2), nullable=False, default=0)

    # Workflow
    labour_status = db.Column(db.String(20), nullable=False, default="pending")
    labour_completed_by = db.Column(db.Integer, nullable=True)
    labour_completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    parts_status = db.Column(db.String(20), nullable=False, default="pending")
    parts_completed_by = db.Column(db.Integer, nullable=True)
    parts_completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    quote_status = db.Column(db.String(20), nullable=False, default="pending")
    no_labour_required = db.Column(db.Boolean, nullable=False, default=False)
    no_labour_required_by = db.Column(db.Integer, nullable=True)
    no_labour_required_at = db.Column(db.DateTime(timezone=True), nullable=True)
    no_parts_required = db.Column(db.Boolean, nullable=False, default=False)
    no_parts_required_by = db.Column(db.Integer, nullable=True)
    no_parts_required_at = db.Column(db.DateTime(timezone=True), nullable=True)

    # Outcome
    outcome_status = db.Column(
        db.String(20), nullable=True,
        comment="NULL → derive from legacy customer_approved / work statuses",
    )
    outcome_set_by = db.Column(db.Integer, nullable=True)
    outcome_set_at = db.Column(db.DateTime(timezone=True), nullable=True)
    outcome_source = db.Column(db.String(20), nullable=True, comment="manual | online")
    deferred_until = db.Column(db.Date, nullable=True)
    deferred_notes = db.Column(db.Text, nullable=True)
    declined_reason_id = db.Column(
        db.Integer, db.ForeignKey("outcome_reasons.id", ondelete="SET NULL"), nullable=True,
    )
    declined_notes = db.Column(db.Text, nullable=True)
    deleted_reason_id = db.Column(
        db.Integer, db.ForeignKey("outcome_reasons.id", ondelete="SET NULL"), nullable=True,
    )
    deleted_notes = db.Column(db.Text, nullable=True)

    # Legacy approval fields (kept for older clients)
    customer_approved = db.Column(db.Boolean, nullable=True)
    customer_approved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    customer_declined_reason = db.Column(db.Text, nullable=True)

    work_completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    # Metadata
    created_by = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_now)
    updated_at = db.Column(db.DateTime(timezone=True), default=_now, onupdate=_now)

    # ── Constraints ──────────────────────────────────────────────────────
    __table_args__ = (
        db.CheckConstraint(
            "labour_status IN ('pending','in_progress','complete')",
            name="ck_repair_item_labour_status",
        ),
        db.CheckConstraint(
            "parts_status IN ('pending','in_progress','complete')",
            name="ck_repair_item_parts_status",
        ),
        db.CheckConstraint(
            "quote_status IN ('pending','ready')",
            name="ck_repair_item_quote_status",
        ),
        db.CheckConstraint(
            "outcome_status IS NULL OR outcome_status IN "
            "('incomplete','ready','authorised','deferred','declined','deleted')",
            name="ck_repair_item_outcome_status",
        ),
        db.Index("ix_repair_items_hc_parent", "health_check_id", "parent_repair_item_id"),
    )

    # ── Relationships ────────────────────────────────────────────────────
    children = db.relationship(
        "RepairItem",
        backref=db.backref("parent", remote_side=[id]),
        order_by="RepairItem.id",
    )
    options = db.relationship(
        "RepairOption", backref="repair_item",
        cascade="all, delete-orphan", order_by="RepairOption.sort_order",
    )
    labour = db.relationship(
        "RepairLabour", backref="repair_item",
        cascade="all, delete-orphan", order_by="RepairLabour.id",
    )
    parts = db.relationship(
        "RepairParts", backref="repair_item",
        cascade="all, delete-orphan", order_by="RepairParts.id",
    )
    check_result_links = db.relationship(
        "RepairItemCheckResult", backref="repair_item",
        cascade="all, delete-orphan", order_by="RepairItemCheckResult.id",
    )

    @property
    def is_top_level(self):
        return self.parent_repair_item_id is None

    @property
    def outcome(self) -> Outcome:
        return resolve_outcome(self)

    def to_dict(self, include_children=False):
        outcome = self.outcome
        result = {
            "id": self.id,
            "healthCheckId": self.health_check_id,
            "organizationId": self.organization_id,
            "name": self.name,
            "description": self.description,
            "isGroup": self.is_group,
            "parentRepairItemId": self.parent_repair_item_id,
            "selectedOptionId": self.selected_option_id,
            "priceOverride": _num(self.price_override),
            "priceOverrideReason": self.price_override_reason,
            "labourTotal": _num(self.labour_total) or 0.0,
            "partsTotal": _num(self.parts_total) or 0.0,
            "subtotal": _num(self.subtotal) or 0.0,
            "vatAmount": _num(self.vat_amount) or 0.0,
            "totalIncVat": _num(self.total_inc_vat) or 0.0,
            "labourStatus": self.labour_status,
            "labourCompletedBy": self.labour_completed_by,
            "labourCompletedAt": _iso(self.labour_completed_at),
            "partsStatus": self.parts_status,
            "partsCompletedBy": self.parts_completed_by,
            "partsCompletedAt": _iso(self.parts_completed_at),
            "quoteStatus": self.quote_status,
            "noLabourRequired": bool(self.no_labour_required),
            "noLabourRequiredBy": self.no_labour_required_by,
            "noLabourRequiredAt": _iso(self.no_labour_required_at),
            "noPartsRequired": bool(self.no_parts_required),
            "noPartsRequiredBy": self.no_parts_required_by,
            "noPartsRequiredAt": _iso(self.no_parts_required_at),
            "outcomeStatus": outcome.status,
            "outcomeSetBy": outcome.set_by,
            "outcomeSetAt": _iso(outcome.set_at),
            "outcomeSource": outcome.source,
            "deferredUntil": _iso(self.deferred_until),
            "deferredNotes": self.deferred_notes,
            "declinedReasonId": self.declined_reason_id,
            "declinedNotes": self.declined_notes,
            "deletedReasonId": self.deleted_reason_id,
            "deletedNotes": self.deleted_notes,
            "deletedAt": _iso(self.deleted_at),
            "deletedBy": self.deleted_by,
            "customerApproved": self.customer_approved,
            "customerApprovedAt": _iso(self.customer_approved_at),
            "customerDeclinedReason": self.customer_declined_reason,
            "workCompletedAt": _iso(self.work_completed_at),
            "createdBy": self.created_by,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }
        if include_children:
            result["checkResults"] = [
                link.check_result.to_dict() for link in self.check_result_links
            ]
            result["options"] = [o.to_dict(include_children=True) for o in self.options]
            result["labour"] = [lab.to_dict() for lab in self.labour]
            result["parts"] = [p.to_dict() for p in self.parts]
            result["children"] = [
                c.to_dict(include_children=True)
                for c in self.children
                if c.deleted_at is None
            ]
        return result

    def __repr__(self):
        kind = "group" if self.is_group else "item"
        return f"<RepairItem {self.id}: {self.name} [{kind}]>"


# ═════════════════════════════════════════════════════════════════════════════
# 2. RepairOption
# ═════════════════════════════════════════════════════════════════════════════


class RepairOption(db.Model):
    """Alternative quote line for a repair item (e.g. budget vs. premium tyres)."""

    __tablename__ = "repair_options"

    id = db.Column(db.Integer, primary_key=True)
    repair_item_id = db.Column(
        db.Integer, db.ForeignKey("repair_items.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    labour_total = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    parts_total = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    subtotal = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    vat_amount = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    total_inc_vat = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    is_recommended = db.Column(db.Boolean, nullable=False, default=False)
    sort_order = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime(timezone=True), default=_now)
    updated_at = db.Column(db.DateTime(timezone=True), default=_now, onupdate=_now)

    labour = db.relationship(
        "RepairLabour", backref="repair_option",
        cascade="all, delete-orphan", order_by="RepairLabour.id",
    )
    parts = db.relationship(
        "RepairParts", backref="repair_option",
        cascade="all, delete-orphan", order_by="RepairParts.id",
    )

    @property
    def has_pricing(self):
        return (self.labour_total or 0) > 0 or (self.parts_total or 0) > 0

    def to_dict(self, include_children=False):
        result = {
            "id": self.id,
            "repairItemId": self.repair_item_id,
            "name": self.name,
            "description": self.description,
            "labourTotal": _num(self.labour_total) or 0.0,
            "partsTotal": _num(self.parts_total) or 0.0,
            "subtotal": _num(self.subtotal) or 0.0,
            "vatAmount": _num(self.vat_amount) or 0.0,
            "totalIncVat": _num(self.total_inc_vat) or 0.0,
            "isRecommended": self.is_recommended,
            "sortOrder": self.sort_order,
        }
        if include_children:
            result["labour"] = [lab.to_dict() for lab in self.labour]
            result["parts"] = [p.to_dict() for p in self.parts]
        return result

    def __repr__(self):
        return f"<RepairOption {self.id}: {self.name} (item={self.repair_item_id})>"


# ═════════════════════════════════════════════════════════════════════════════
# 3. RepairLabour
# ═════════════════════════════════════════════════════════════════════════════


class RepairLabour(db.Model):
    """Labour line. Rate and VAT exemption are copied from the labour code at insert."""

    __tablename__ = "repair_labour"

    id = db.Column(db.Integer, primary_key=True)
    repair_item_id = db.Column(
        db.Integer, db.ForeignKey("repair_items.id", ondelete="CASCADE"),
        nullable=True, index=True,
    )
    repair_option_id = db.Column(
        db.Integer, db.ForeignKey("repair_options.id", ondelete="CASCADE"),
        nullable=True, index=True,
    )
    labour_code_id = db.Column(
        db.Integer, db.ForeignKey("labour_codes.id", ondelete="RESTRICT"),
        nullable=False,
    )
    hours = db.Column(db.Numeric(10, 2), nullable=False)
    rate = db.Column(db.Numeric(10, 2), nullable=False)
    discount_percent = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    total = db.Column(db.Numeric(10, 2), nullable=False)
    is_vat_exempt = db.Column(db.Boolean, nullable=False, default=False)
    notes = db.Column(db.Text, nullable=True)
    created_by = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_now)

    __table_args__ = (
        db.CheckConstraint(
            "(repair_item_id IS NULL) <> (repair_option_id IS NULL)",
            name="ck_repair_labour_single_owner",
        ),
    )

    labour_code = db.relationship("LabourCode")

    def to_dict(self):
        return {
            "id": self.id,
            "repairItemId": self.repair_item_id,
            "repairOptionId": self.repair_option_id,
            "labourCodeId": self.labour_code_id,
            "labourCode": self.labour_code.to_dict() if self.labour_code else None,
            "hours": _num(self.hours),
            "rate": _num(self.rate),
            "discountPercent": _num(self.discount_percent) or 0.0,
            "total": _num(self.total),
            "isVatExempt": self.is_vat_exempt,
            "notes": self.notes,
            "createdAt": _iso(self.created_at),
        }

    def __repr__(self):
        return f"<RepairLabour {self.id}: {self.hours}h @ {self.rate}>"


# ═════════════════════════════════════════════════════════════════════════════
# 4. RepairParts
# ═════════════════════════════════════════════════════════════════════════════


class RepairParts(db.Model):
    """Parts line with stored line total, margin and markup."""

    __tablename__ = "repair_parts"

    id = db.Column(db.Integer, primary_key=True)
    repair_item_id = db.Column(
        db.Integer, db.ForeignKey("repair_items.id", ondelete="CASCADE"),
        nullable=True, index=True,
    )
    repair_option_id = db.Column(
        db.Integer, db.ForeignKey("repair_options.id", ondelete="CASCADE"),
        nullable=True, index=True,
    )
    part_number = db.Column(db.String(100), nullable=True)
    description = db.Column(db.String(500), nullable=False)
    quantity = db.Column(db.Numeric(10, 2), nullable=False, default=1)
    supplier_id = db.Column(
        db.Integer, db.ForeignKey("suppliers.id", ondelete="SET NULL"), nullable=True,
    )
    supplier_name = db.Column(db.String(200), nullable=True)
    cost_price = db.Column(db.Numeric(10, 2), nullable=False)
    sell_price = db.Column(db.Numeric(10, 2), nullable=False)
    line_total = db.Column(db.Numeric(10, 2), nullable=False)
    margin_percent = db.Column(db.Numeric(7, 2), nullable=True)
    markup_percent = db.Column(db.Numeric(7, 2), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    created_by = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_now)

    __table_args__ = (
        db.CheckConstraint(
            "(repair_item_id IS NULL) <> (repair_option_id IS NULL)",
            name="ck_repair_parts_single_owner",
        ),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "repairItemId": self.repair_item_id,
            "repairOptionId": self.repair_option_id,
            "partNumber": self.part_number,
            "description": self.description,
            "quantity": _num(self.quantity),
            "supplierId": self.supplier_id,
            "supplierName": self.supplier_name,
            "costPrice": _num(self.cost_price),
            "sellPrice": _num(self.sell_price),
            "lineTotal": _num(self.line_total),
            "marginPercent": _num(self.margin_percent),
            "markupPercent": _num(self.markup_percent),
            "notes": self.notes,
            "createdAt": _iso(self.created_at),
        }

    def __repr__(self):
        return f"<RepairParts {self.id}: {self.description} x{self.quantity}>"


# ═════════════════════════════════════════════════════════════════════════════
# 5. RepairItemCheckResult
# ═════════════════════════════════════════════════════════════════════════════


class RepairItemCheckResult(db.Model):
    """Finding → owning repair item. Children of a group own the link, never the group."""

    __tablename__ = "repair_item_check_results"

    id = db.Column(db.Integer, primary_key=True)
    repair_item_id = db.Column(
        db.Integer, db.ForeignKey("repair_items.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    check_result_id = db.Column(
        db.Integer, db.ForeignKey("check_results.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    created_at = db.Column(db.DateTime(timezone=True), default=_now)

    __table_args__ = (
        db.UniqueConstraint(
            "repair_item_id", "check_result_id",
            name="uq_repair_item_check_result",
        ),
    )

    check_result = db.relationship("CheckResult")

    def __repr__(self):
        return f"<RepairItemCheckResult item={self.repair_item_id} cr={self.check_result_id}>"
