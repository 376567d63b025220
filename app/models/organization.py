"""
Organisation model — the tenant boundary for every repair record.

Organisations are owned by the account service; this table keeps only the
fields the repair workflow reads (active flag and VAT rate override).
"""

from datetime import datetime, timezone

from app.models import db


class Organization(db.Model):
    __tablename__ = "organizations"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    slug = db.Column(db.String(100), unique=True, nullable=False)
    is_active = db.Column(db.Boolean, default=True)
    vat_rate = db.Column(
        db.Numeric(5, 2), nullable=True,
        comment="Percentage; NULL falls back to DEFAULT_VAT_RATE",
    )
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "isActive": self.is_active,
            "vatRate": float(self.vat_rate) if self.vat_rate is not None else None,
        }

    def __repr__(self):
        return f"<Organization {self.id}: {self.slug}>"
