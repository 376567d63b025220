"""
Repair Items Blueprint — repair item store and grouping engine.

Endpoints:
  RepairItem:     GET/POST /health-checks/<id>/repair-items
                  GET/PATCH/DELETE /repair-items/<id>
  Grouping:       POST /repair-items/<id>/ungroup
  Check results:  POST /repair-items/<id>/check-results
                  DELETE /repair-items/<id>/check-results/<crId>
                  GET  /health-checks/<id>/unassigned-check-results
"""

import logging

from flask import Blueprint, jsonify

from app.blueprints import auth_scope, json_body, query_flag
from app.middleware.role_required import MUTATION_ROLES, require_role
from app.services import grouping_service, repair_item_service
from app.utils.errors import register_error_handlers
from app.utils.helpers import get_field

logger = logging.getLogger(__name__)

repair_items_bp = Blueprint("repair_items", __name__, url_prefix="/api/v1")
register_error_handlers(repair_items_bp)


# ═════════════════════════════════════════════════════════════════════════
# RepairItem CRUD
# ═════════════════════════════════════════════════════════════════════════


@repair_items_bp.route("/health-checks/<int:hc_id>/repair-items", methods=["GET"])
def list_repair_items(hc_id):
    """Top-level items with children, options, labour, parts and findings."""
    org_id, _ = auth_scope()
    items = repair_item_service.list_for_health_check(
        org_id, hc_id, include_deleted=query_flag("include_deleted"),
    )
    return jsonify({
        "repairItems": [i.to_dict(include_children=True) for i in items],
        "total": len(items),
    })


@repair_items_bp.route("/health-checks/<int:hc_id>/repair-items", methods=["POST"])
@require_role(*MUTATION_ROLES)
def create_repair_item(hc_id):
    org_id, user_id = auth_scope()
    item = repair_item_service.create_repair_item(org_id, hc_id, json_body(), user_id)
    return jsonify(item.to_dict(include_children=True)), 201


@repair_items_bp.route("/repair-items/<int:item_id>", methods=["GET"])
def get_repair_item(item_id):
    org_id, _ = auth_scope()
    item = repair_item_service.get_repair_item(org_id, item_id)
    return jsonify(item.to_dict(include_children=True))


@repair_items_bp.route("/repair-items/<int:item_id>", methods=["PATCH"])
@require_role(*MUTATION_ROLES)
def update_repair_item(item_id):
    org_id, user_id = auth_scope()
    item = repair_item_service.update_repair_item(org_id, item_id, json_body(), user_id)
    return jsonify(item.to_dict())


@repair_items_bp.route("/repair-items/<int:item_id>", methods=["DELETE"])
@require_role(*MUTATION_ROLES)
def delete_repair_item(item_id):
    org_id, user_id = auth_scope()
    repair_item_service.delete_repair_item(org_id, item_id, user_id)
    return jsonify({"success": True})


# ═════════════════════════════════════════════════════════════════════════
# Grouping
# ═════════════════════════════════════════════════════════════════════════


@repair_items_bp.route("/repair-items/<int:item_id>/ungroup", methods=["POST"])
@require_role(*MUTATION_ROLES)
def ungroup(item_id):
    org_id, user_id = auth_scope()
    return jsonify(grouping_service.ungroup(org_id, item_id, user_id))


# ═════════════════════════════════════════════════════════════════════════
# Check-result links
# ═════════════════════════════════════════════════════════════════════════


@repair_items_bp.route("/repair-items/<int:item_id>/check-results", methods=["POST"])
@require_role(*MUTATION_ROLES)
def link_check_result(item_id):
    org_id, _ = auth_scope()
    link = repair_item_service.link_check_result(
        org_id, item_id, get_field(json_body(), "check_result_id"),
    )
    return jsonify({"id": link.id, "repairItemId": item_id,
                    "checkResultId": link.check_result_id}), 201


@repair_items_bp.route("/repair-items/<int:item_id>/check-results/<int:cr_id>", methods=["DELETE"])
@require_role(*MUTATION_ROLES)
def unlink_check_result(item_id, cr_id):
    org_id, _ = auth_scope()
    removed = repair_item_service.unlink_check_result(org_id, item_id, cr_id)
    return jsonify({"success": True, "removed": removed})


@repair_items_bp.route("/health-checks/<int:hc_id>/unassigned-check-results", methods=["GET"])
def unassigned_check_results(hc_id):
    org_id, _ = auth_scope()
    results = repair_item_service.list_unassigned_check_results(
        org_id, hc_id, include_green=query_flag("include_green"),
    )
    return jsonify({"checkResults": [cr.to_dict() for cr in results]})
