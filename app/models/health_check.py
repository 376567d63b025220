"""
Health check domain models (read side).

Models:
    - HealthCheck:  one vehicle inspection visit
    - CheckResult:  one inspected item with a red / amber / green finding

Both are written by the inspection service; the repair workflow only reads
them to scope repair items and to name children created from findings.
"""

from datetime import datetime, timezone

from app.models import db
from app.models.base import OrgModel

RAG_STATUSES = {"red", "amber", "green"}


class HealthCheck(OrgModel):
    __tablename__ = "health_checks"

    id = db.Column(db.Integer, primary_key=True)
    vehicle_reg = db.Column(db.String(20), default="")
    status = db.Column(db.String(30), default="created")
    sent_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    check_results = db.relationship(
        "CheckResult", backref="health_check", lazy="dynamic",
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<HealthCheck {self.id} [{self.status}]>"


class CheckResult(db.Model):
    __tablename__ = "check_results"

    id = db.Column(db.Integer, primary_key=True)
    health_check_id = db.Column(
        db.Integer, db.ForeignKey("health_checks.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    name = db.Column(db.String(200), nullable=False, comment="Template item name")
    rag_status = db.Column(db.String(10), nullable=True, comment="red | amber | green")
    notes = db.Column(db.Text, nullable=True)
    is_mot_failure = db.Column(db.Boolean, default=False)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "ragStatus": self.rag_status,
            "notes": self.notes,
            "isMotFailure": bool(self.is_mot_failure),
        }

    def __repr__(self):
        return f"<CheckResult {self.id}: {self.name} [{self.rag_status}]>"
