"""
Organisation reference data consumed by the repair workflow.

Models:
    - LabourCode:     hourly rate + VAT exemption copied onto labour lines
    - Supplier:       name copied onto parts lines
    - OutcomeReason:  declined / deleted reasons picked when recording an outcome
"""

from app.models import db
from app.models.base import OrgModel

REASON_TYPES = {"declined", "deleted"}


class LabourCode(OrgModel):
    __tablename__ = "labour_codes"

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(30), nullable=False)
    description = db.Column(db.String(200), default="")
    hourly_rate = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    is_vat_exempt = db.Column(db.Boolean, default=False, comment="true for MOT")
    is_active = db.Column(db.Boolean, default=True)

    def to_dict(self):
        return {
            "id": self.id,
            "code": self.code,
            "description": self.description,
        }


class Supplier(OrgModel):
    __tablename__ = "suppliers"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)


class OutcomeReason(OrgModel):
    __tablename__ = "outcome_reasons"

    id = db.Column(db.Integer, primary_key=True)
    reason_type = db.Column(db.String(20), nullable=False, comment="declined | deleted")
    reason = db.Column(db.String(200), nullable=False)
    is_system = db.Column(db.Boolean, default=False)
    is_active = db.Column(db.Boolean, default=True)

    __table_args__ = (
        db.CheckConstraint(
            "reason_type IN ('declined','deleted')",
            name="ck_outcome_reason_type",
        ),
    )

    @property
    def requires_notes(self):
        """The system "Other" reason is only meaningful with free-text notes."""
        return bool(self.is_system) and (self.reason or "").strip().lower() == "other"
