"""
Unit-of-work helper for multi-row mutations.

Services flush as they go and commit exactly once at the end; any
exception rolls the whole unit back before it propagates to the
blueprint error handlers.

Usage:
    with atomic():
        item = get_scoped(RepairItem, item_id, organization_id=org_id, for_update=True)
        ...
"""

from contextlib import contextmanager

from app.models import db


@contextmanager
def atomic():
    try:
        yield db.session
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
