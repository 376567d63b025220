"""
Vehicle Health Check — Repair Workflow Service
Blueprint registry and shared request helpers.
"""

from flask import g, request

from app.core.exceptions import ValidationError


def json_body() -> dict:
    """Request JSON object, or {} for an empty body. Non-object JSON is a 400."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def query_flag(name: str) -> bool:
    """``?name=true`` style boolean query parameter."""
    return request.args.get(name, "").lower() in ("1", "true", "yes")


def auth_scope() -> tuple[int, int]:
    """(org_id, user_id) of the authenticated caller."""
    return g.auth.org_id, g.auth.user_id


def all_blueprints():
    from app.blueprints.health_bp import health_bp
    from app.blueprints.repair_items_bp import repair_items_bp
    from app.blueprints.repair_outcomes_bp import repair_outcomes_bp
    from app.blueprints.repair_pricing_bp import repair_pricing_bp
    from app.blueprints.repair_workflow_bp import repair_workflow_bp

    return (health_bp, repair_items_bp, repair_pricing_bp, repair_outcomes_bp, repair_workflow_bp)
