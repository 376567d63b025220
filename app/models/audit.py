"""
Audit domain model.

Models:
    - AuditLog: immutable, append-only audit trail for repair workflow events.
"""

import json
from datetime import UTC, datetime

from app.models import db

# ── Local coercion ───────────────────────────────────────────────────────────

def _as_int(value):
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


# ── Constants ────────────────────────────────────────────────────────────────

AUDIT_ENTITY_TYPES = {
    "repair_item", "repair_option", "repair_labour", "repair_parts",
}

AUDIT_ACTIONS = {
    # Outcome lifecycle
    "repair_item.authorise",
    "repair_item.defer",
    "repair_item.decline",
    "repair_item.delete",
    "repair_item.reset",
    # Grouping
    "repair_item.group",
    "repair_item.ungroup",
    # Workflow
    "labour.complete",
    "parts.complete",
    "labour.not_required",
    "labour.required",
    "parts.not_required",
    "parts.required",
    # Generic
    "create",
    "update",
    "delete",
}


class AuditLog(db.Model):
    """
    Immutable audit trail for every repair workflow event.

    One row per action.  ``diff_json`` carries the old→new snapshot of the
    fields the action touched.
    """

    __tablename__ = "audit_logs"
    __table_args__ = (
        db.Index("idx_audit_entity", "entity_type", "entity_id"),
        db.Index("idx_audit_actor", "actor_user_id"),
        db.Index("idx_audit_action", "action"),
        db.Index("idx_audit_ts", "timestamp"),
    )

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(
        db.Integer,
        db.ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )

    # Polymorphic entity reference
    entity_type = db.Column(
        db.String(30), nullable=False,
        comment="repair_item | repair_option | repair_labour | repair_parts",
    )
    entity_id = db.Column(db.String(36), nullable=False)

    # What happened
    action = db.Column(
        db.String(60), nullable=False,
        comment="repair_item.authorise | labour.complete | repair_item.group | …",
    )
    actor_user_id = db.Column(
        db.Integer, nullable=True,
        comment="NULL for system entries",
    )

    # Change payload
    diff_json = db.Column(db.Text, default="{}")

    # Timestamp (immutable)
    timestamp = db.Column(
        db.DateTime(timezone=True), nullable=False,
        default=lambda: datetime.now(UTC),
    )

    # ── Helpers ──────────────────────────────────────────────────────────

    @property
    def diff(self) -> dict:
        """Deserialise *diff_json* to a Python dict."""
        try:
            return json.loads(self.diff_json or "{}")
        except (json.JSONDecodeError, TypeError):
            return {}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "organizationId": self.organization_id,
            "entityType": self.entity_type,
            "entityId": self.entity_id,
            "action": self.action,
            "actorUserId": self.actor_user_id,
            "diff": self.diff,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }

    def __repr__(self):
        return f"<AuditLog {self.id}: {self.action} on {self.entity_type}/{self.entity_id}>"


# ── Convenience writer ───────────────────────────────────────────────────────

def write_audit(
    *,
    entity_type: str,
    entity_id,
    action: str,
    organization_id: int | None = None,
    actor_user_id: int | None = None,
    diff: dict | None = None,
) -> AuditLog:
    """
    Append a single audit row.  Uses ``flush`` so callers keep
    transaction control.

    organization_id / actor_user_id default to the authenticated request
    context when the caller does not pass them.
    """
    if entity_type not in AUDIT_ENTITY_TYPES:
        raise ValueError(f"Unknown audit entity type: {entity_type}")
    if action not in AUDIT_ACTIONS:
        raise ValueError(f"Unknown audit action: {action}")

    if organization_id is None or actor_user_id is None:
        from flask import g, has_request_context

        if has_request_context():
            auth = getattr(g, "auth", None)
            if auth is not None:
                if organization_id is None:
                    organization_id = auth.org_id
                if actor_user_id is None:
                    actor_user_id = auth.user_id

    log = AuditLog(
        organization_id=_as_int(organization_id),
        entity_type=entity_type,
        entity_id=str(entity_id),
        action=action,
        actor_user_id=_as_int(actor_user_id),
        diff_json=json.dumps(diff or {}, default=str),
    )
    db.session.add(log)
    db.session.flush()
    return log
