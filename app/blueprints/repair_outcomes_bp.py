"""
Repair Outcomes Blueprint — customer decisions and health check completion.

Endpoints:
  Single:  POST /repair-items/<id>/authorise | defer | decline | delete | reset
  Bulk:    POST /repair-items/bulk-authorise | bulk-defer | bulk-decline
  Check:   GET  /health-checks/<id>/can-complete
"""

from flask import Blueprint, jsonify

from app.blueprints import auth_scope, json_body
from app.middleware.role_required import MUTATION_ROLES, require_role
from app.services import outcome_service
from app.utils.errors import register_error_handlers
from app.utils.helpers import get_field

repair_outcomes_bp = Blueprint("repair_outcomes", __name__, url_prefix="/api/v1")
register_error_handlers(repair_outcomes_bp)


def _outcome_response(item):
    return jsonify({"success": True, "repairItem": outcome_service.outcome_payload(item)})


# ── Single item ──────────────────────────────────────────────────────────


@repair_outcomes_bp.route("/repair-items/<int:item_id>/authorise", methods=["POST"])
@require_role(*MUTATION_ROLES)
def authorise(item_id):
    org_id, user_id = auth_scope()
    data = json_body()
    item = outcome_service.authorise(org_id, item_id, user_id, notes=get_field(data, "notes"))
    return _outcome_response(item)


@repair_outcomes_bp.route("/repair-items/<int:item_id>/defer", methods=["POST"])
@require_role(*MUTATION_ROLES)
def defer(item_id):
    org_id, user_id = auth_scope()
    data = json_body()
    item = outcome_service.defer(
        org_id, item_id, user_id,
        get_field(data, "deferred_until"), notes=get_field(data, "notes"),
    )
    return _outcome_response(item)


@repair_outcomes_bp.route("/repair-items/<int:item_id>/decline", methods=["POST"])
@require_role(*MUTATION_ROLES)
def decline(item_id):
    org_id, user_id = auth_scope()
    data = json_body()
    item = outcome_service.decline(
        org_id, item_id, user_id,
        get_field(data, "declined_reason_id"), notes=get_field(data, "notes"),
    )
    return _outcome_response(item)


@repair_outcomes_bp.route("/repair-items/<int:item_id>/delete", methods=["POST"])
@require_role(*MUTATION_ROLES)
def delete(item_id):
    org_id, user_id = auth_scope()
    data = json_body()
    item = outcome_service.delete_with_reason(
        org_id, item_id, user_id,
        get_field(data, "deleted_reason_id"), notes=get_field(data, "notes"),
    )
    return _outcome_response(item)


@repair_outcomes_bp.route("/repair-items/<int:item_id>/reset", methods=["POST"])
@require_role(*MUTATION_ROLES)
def reset(item_id):
    org_id, user_id = auth_scope()
    return _outcome_response(outcome_service.reset(org_id, item_id, user_id))


# ── Bulk ─────────────────────────────────────────────────────────────────


@repair_outcomes_bp.route("/repair-items/bulk-authorise", methods=["POST"])
@require_role(*MUTATION_ROLES)
def bulk_authorise():
    org_id, user_id = auth_scope()
    data = json_body()
    return jsonify(outcome_service.bulk_authorise(
        org_id, get_field(data, "repair_item_ids"), user_id, notes=get_field(data, "notes"),
    ))


@repair_outcomes_bp.route("/repair-items/bulk-defer", methods=["POST"])
@require_role(*MUTATION_ROLES)
def bulk_defer():
    org_id, user_id = auth_scope()
    data = json_body()
    return jsonify(outcome_service.bulk_defer(
        org_id, get_field(data, "repair_item_ids"), user_id,
        get_field(data, "deferred_until"), notes=get_field(data, "notes"),
    ))


@repair_outcomes_bp.route("/repair-items/bulk-decline", methods=["POST"])
@require_role(*MUTATION_ROLES)
def bulk_decline():
    org_id, user_id = auth_scope()
    data = json_body()
    return jsonify(outcome_service.bulk_decline(
        org_id, get_field(data, "repair_item_ids"), user_id,
        get_field(data, "declined_reason_id"), notes=get_field(data, "notes"),
    ))


# ── Completion ───────────────────────────────────────────────────────────


@repair_outcomes_bp.route("/health-checks/<int:hc_id>/can-complete", methods=["GET"])
def can_complete(hc_id):
    org_id, _ = auth_scope()
    return jsonify(outcome_service.can_complete_health_check(org_id, hc_id))
