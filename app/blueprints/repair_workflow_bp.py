"""
Repair Workflow Blueprint — labour / parts / quote progress.

Endpoints:
  POST   /repair-items/<id>/labour-complete
  POST   /repair-items/<id>/parts-complete
  POST   /repair-items/<id>/no-labour-required
  DELETE /repair-items/<id>/no-labour-required
  POST   /repair-items/<id>/no-parts-required
  DELETE /repair-items/<id>/no-parts-required
  GET    /health-checks/<id>/workflow-status
"""

from flask import Blueprint, jsonify

from app.blueprints import auth_scope
from app.middleware.role_required import MUTATION_ROLES, require_role
from app.services import workflow_service
from app.utils.errors import register_error_handlers

repair_workflow_bp = Blueprint("repair_workflow", __name__, url_prefix="/api/v1")
register_error_handlers(repair_workflow_bp)


def _workflow_response(item):
    return jsonify({
        "success": True,
        "repairItem": {
            "id": item.id,
            "labourStatus": item.labour_status,
            "partsStatus": item.parts_status,
            "quoteStatus": item.quote_status,
            "noLabourRequired": bool(item.no_labour_required),
            "noPartsRequired": bool(item.no_parts_required),
            "labourCompletedAt": item.labour_completed_at.isoformat() if item.labour_completed_at else None,
            "partsCompletedAt": item.parts_completed_at.isoformat() if item.parts_completed_at else None,
        },
    })


@repair_workflow_bp.route("/repair-items/<int:item_id>/labour-complete", methods=["POST"])
@require_role(*MUTATION_ROLES)
def labour_complete(item_id):
    org_id, user_id = auth_scope()
    return _workflow_response(workflow_service.mark_labour_complete(org_id, item_id, user_id))


@repair_workflow_bp.route("/repair-items/<int:item_id>/parts-complete", methods=["POST"])
@require_role(*MUTATION_ROLES)
def parts_complete(item_id):
    org_id, user_id = auth_scope()
    return _workflow_response(workflow_service.mark_parts_complete(org_id, item_id, user_id))


@repair_workflow_bp.route("/repair-items/<int:item_id>/no-labour-required", methods=["POST"])
@require_role(*MUTATION_ROLES)
def set_no_labour_required(item_id):
    org_id, user_id = auth_scope()
    return _workflow_response(workflow_service.set_no_labour_required(org_id, item_id, user_id))


@repair_workflow_bp.route("/repair-items/<int:item_id>/no-labour-required", methods=["DELETE"])
@require_role(*MUTATION_ROLES)
def clear_no_labour_required(item_id):
    org_id, user_id = auth_scope()
    return _workflow_response(workflow_service.clear_no_labour_required(org_id, item_id, user_id))


@repair_workflow_bp.route("/repair-items/<int:item_id>/no-parts-required", methods=["POST"])
@require_role(*MUTATION_ROLES)
def set_no_parts_required(item_id):
    org_id, user_id = auth_scope()
    return _workflow_response(workflow_service.set_no_parts_required(org_id, item_id, user_id))


@repair_workflow_bp.route("/repair-items/<int:item_id>/no-parts-required", methods=["DELETE"])
@require_role(*MUTATION_ROLES)
def clear_no_parts_required(item_id):
    org_id, user_id = auth_scope()
    return _workflow_response(workflow_service.clear_no_parts_required(org_id, item_id, user_id))


@repair_workflow_bp.route("/health-checks/<int:hc_id>/workflow-status", methods=["GET"])
def workflow_status(hc_id):
    org_id, _ = auth_scope()
    return jsonify(workflow_service.health_check_workflow_status(org_id, hc_id))
