"""
Soft Delete Mixin.

Adds `deleted_at` / `deleted_by` columns and query helpers for soft delete.
Repair items are never physically removed once a customer-facing outcome
of ``deleted`` has been recorded; they are hidden from default listings.

Usage:
    class RepairItem(SoftDeleteMixin, OrgModel):
        ...

    item.soft_delete(user_id)
    db.session.commit()

    RepairItem.query_active().all()    # excludes deleted rows
    item.restore()                     # used by outcome reset
"""

from datetime import datetime, timezone

from app.models import db


class SoftDeleteMixin:
    """Mixin that adds soft delete support to any SQLAlchemy model."""

    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True, default=None, index=True)
    deleted_by = db.Column(db.Integer, nullable=True)

    def soft_delete(self, user_id=None):
        """Mark this record as deleted."""
        self.deleted_at = datetime.now(timezone.utc)
        self.deleted_by = user_id

    def restore(self):
        """Restore a soft-deleted record."""
        self.deleted_at = None
        self.deleted_by = None

    @property
    def is_deleted(self):
        return self.deleted_at is not None

    @classmethod
    def query_active(cls):
        """Return a query that excludes soft-deleted records."""
        return cls.query.filter(cls.deleted_at.is_(None))

    @classmethod
    def query_deleted(cls):
        """Return only soft-deleted records."""
        return cls.query.filter(cls.deleted_at.isnot(None))
