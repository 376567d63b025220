"""
Organisation-scoped query helpers.

Every get-by-id in the service MUST use these helpers instead of
Model.query.get(pk) or db.session.get(Model, pk). Direct .get() calls
bypass tenant isolation.

Usage:
    # Scope by organization_id (OrgModel subclasses)
    item = get_scoped(RepairItem, item_id, organization_id=org_id)

    # Lock the row for a read-decide-write sequence
    item = get_scoped(RepairItem, item_id, organization_id=org_id, for_update=True)

    # Scope by parent (children without their own organization_id column)
    cr = get_scoped(CheckResult, cr_id, health_check_id=hc_id)
    opt = get_scoped(RepairOption, opt_id, repair_item_id=item_id)

    # When None is an acceptable outcome (optional FK lookups)
    supplier = get_scoped_or_none(Supplier, supplier_id, organization_id=org_id)

Scope field resolution:
    Each keyword argument maps directly to a column name on the model.
    If the model does not have that column, a ValueError is raised at
    call time so the bug surfaces during development rather than silently
    allowing unscoped access in production.
"""

import logging

from sqlalchemy import select

from app.core.exceptions import NotFoundError
from app.models import db

logger = logging.getLogger(__name__)

# Supported scope keyword → expected model column name mapping.
_SCOPE_KWARGS = ("organization_id", "health_check_id", "repair_item_id")


def get_scoped(
    model,
    pk: int,
    *,
    organization_id: int | None = None,
    health_check_id: int | None = None,
    repair_item_id: int | None = None,
    for_update: bool = False,
):
    """Fetch a single entity by PK with mandatory scope filter.

    At least one scope parameter MUST be provided and MUST correspond to a
    column that exists on the model.

    Cross-organisation access is indistinguishable from a missing record:
    both raise NotFoundError → HTTP 404.

    Args:
        model: SQLAlchemy model class with an ``id`` PK column.
        pk: Primary key value to look up.
        organization_id: Scope by organization_id column.
        health_check_id: Scope by health_check_id column.
        repair_item_id: Scope by repair_item_id column.
        for_update: Emit ``SELECT ... FOR UPDATE`` (ignored by SQLite).

    Raises:
        ValueError: If no scope is provided, or a provided scope names a
                    column the model does not have.
        NotFoundError: If the entity does not exist OR belongs to a
                       different scope.
    """
    provided_scopes = {
        "organization_id": organization_id,
        "health_check_id": health_check_id,
        "repair_item_id": repair_item_id,
    }
    provided_scopes = {k: v for k, v in provided_scopes.items() if v is not None}

    if not provided_scopes:
        raise ValueError(
            f"{model.__name__} id={pk} requires at least one scope filter "
            f"({', '.join(_SCOPE_KWARGS)}). Unscoped lookups are forbidden."
        )

    missing_fields = sorted(f for f in provided_scopes if not hasattr(model, f))
    if missing_fields:
        raise ValueError(
            f"{model.__name__} id={pk}: scope field(s) {missing_fields} "
            f"do not exist as columns on {model.__name__}."
        )

    stmt = select(model).where(model.id == pk)
    for field, value in provided_scopes.items():
        stmt = stmt.where(getattr(model, field) == value)
    if for_update:
        stmt = stmt.with_for_update()

    result = db.session.execute(stmt).scalar_one_or_none()

    if result is None:
        logger.debug(
            "get_scoped: %s id=%s not found in scope %s",
            model.__name__,
            pk,
            provided_scopes,
        )
        raise NotFoundError(resource=model.__name__, resource_id=pk)

    return result


def get_scoped_or_none(
    model,
    pk: int,
    *,
    organization_id: int | None = None,
    health_check_id: int | None = None,
    repair_item_id: int | None = None,
):
    """Same as get_scoped but returns None instead of raising NotFoundError.

    Still enforces the scope parameter requirement.
    """
    try:
        return get_scoped(
            model,
            pk,
            organization_id=organization_id,
            health_check_id=health_check_id,
            repair_item_id=repair_item_id,
        )
    except NotFoundError:
        return None
