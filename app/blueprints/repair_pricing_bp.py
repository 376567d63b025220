"""
Repair Pricing Blueprint — options, labour lines and parts lines.

Labour and parts attach to exactly one owner: a repair item or one of its
options. Both owner kinds expose the same collection endpoints.

Endpoints:
  Options: GET/POST /repair-items/<id>/options
           PATCH/DELETE /repair-options/<id>
           POST /repair-items/<id>/select-option
  Labour:  GET/POST /repair-items/<id>/labour, /repair-options/<id>/labour
           PATCH/DELETE /repair-labour/<id>
  Parts:   GET/POST /repair-items/<id>/parts, /repair-options/<id>/parts
           PATCH/DELETE /repair-parts/<id>
"""

from flask import Blueprint, jsonify

from app.blueprints import auth_scope, json_body
from app.core.exceptions import ValidationError
from app.middleware.role_required import MUTATION_ROLES, require_role
from app.services import repair_pricing_service as svc
from app.utils.errors import register_error_handlers
from app.utils.helpers import get_field

repair_pricing_bp = Blueprint("repair_pricing", __name__, url_prefix="/api/v1")
register_error_handlers(repair_pricing_bp)


# ═════════════════════════════════════════════════════════════════════════
# Options
# ═════════════════════════════════════════════════════════════════════════


@repair_pricing_bp.route("/repair-items/<int:item_id>/options", methods=["GET"])
def list_options(item_id):
    org_id, _ = auth_scope()
    return jsonify({"options": [o.to_dict() for o in svc.list_options(org_id, item_id)]})


@repair_pricing_bp.route("/repair-items/<int:item_id>/options", methods=["POST"])
@require_role(*MUTATION_ROLES)
def create_option(item_id):
    org_id, _ = auth_scope()
    option = svc.create_option(org_id, item_id, json_body())
    return jsonify(option.to_dict()), 201


@repair_pricing_bp.route("/repair-options/<int:option_id>", methods=["PATCH"])
@require_role(*MUTATION_ROLES)
def update_option(option_id):
    org_id, _ = auth_scope()
    return jsonify(svc.update_option(org_id, option_id, json_body()).to_dict())


@repair_pricing_bp.route("/repair-options/<int:option_id>", methods=["DELETE"])
@require_role(*MUTATION_ROLES)
def delete_option(option_id):
    org_id, _ = auth_scope()
    svc.delete_option(org_id, option_id)
    return jsonify({"success": True})


@repair_pricing_bp.route("/repair-items/<int:item_id>/select-option", methods=["POST"])
@require_role(*MUTATION_ROLES)
def select_option(item_id):
    """Body ``{"optionId": <id>|null}``; null clears the selection."""
    org_id, _ = auth_scope()
    raw = get_field(json_body(), "option_id")
    option_id = None
    if raw not in (None, ""):
        try:
            option_id = int(raw)
        except (TypeError, ValueError):
            raise ValidationError("option_id must be an integer",
                                  details={"optionId": "invalid"}) from None
    item = svc.select_option(org_id, item_id, option_id)
    return jsonify({"success": True, "repairItemId": item.id,
                    "selectedOptionId": item.selected_option_id})


# ═════════════════════════════════════════════════════════════════════════
# Labour
# ═════════════════════════════════════════════════════════════════════════


def _labour_response(rows):
    return jsonify({"labour": [r.to_dict() for r in rows]})


@repair_pricing_bp.route("/repair-items/<int:item_id>/labour", methods=["GET"])
def list_item_labour(item_id):
    org_id, _ = auth_scope()
    return _labour_response(svc.list_labour(org_id, item_id=item_id))


@repair_pricing_bp.route("/repair-options/<int:option_id>/labour", methods=["GET"])
def list_option_labour(option_id):
    org_id, _ = auth_scope()
    return _labour_response(svc.list_labour(org_id, option_id=option_id))


@repair_pricing_bp.route("/repair-items/<int:item_id>/labour", methods=["POST"])
@require_role(*MUTATION_ROLES)
def add_item_labour(item_id):
    org_id, user_id = auth_scope()
    labour = svc.add_labour(org_id, json_body(), user_id, item_id=item_id)
    return jsonify(labour.to_dict()), 201


@repair_pricing_bp.route("/repair-options/<int:option_id>/labour", methods=["POST"])
@require_role(*MUTATION_ROLES)
def add_option_labour(option_id):
    org_id, user_id = auth_scope()
    labour = svc.add_labour(org_id, json_body(), user_id, option_id=option_id)
    return jsonify(labour.to_dict()), 201


@repair_pricing_bp.route("/repair-labour/<int:labour_id>", methods=["PATCH"])
@require_role(*MUTATION_ROLES)
def update_labour(labour_id):
    org_id, _ = auth_scope()
    return jsonify(svc.update_labour(org_id, labour_id, json_body()).to_dict())


@repair_pricing_bp.route("/repair-labour/<int:labour_id>", methods=["DELETE"])
@require_role(*MUTATION_ROLES)
def delete_labour(labour_id):
    org_id, _ = auth_scope()
    svc.delete_labour(org_id, labour_id)
    return jsonify({"success": True})


# ═════════════════════════════════════════════════════════════════════════
# Parts
# ═════════════════════════════════════════════════════════════════════════


def _parts_response(rows):
    return jsonify({"parts": [r.to_dict() for r in rows]})


@repair_pricing_bp.route("/repair-items/<int:item_id>/parts", methods=["GET"])
def list_item_parts(item_id):
    org_id, _ = auth_scope()
    return _parts_response(svc.list_parts(org_id, item_id=item_id))


@repair_pricing_bp.route("/repair-options/<int:option_id>/parts", methods=["GET"])
def list_option_parts(option_id):
    org_id, _ = auth_scope()
    return _parts_response(svc.list_parts(org_id, option_id=option_id))


@repair_pricing_bp.route("/repair-items/<int:item_id>/parts", methods=["POST"])
@require_role(*MUTATION_ROLES)
def add_item_parts(item_id):
    org_id, user_id = auth_scope()
    part = svc.add_parts(org_id, json_body(), user_id, item_id=item_id)
    return jsonify(part.to_dict()), 201


@repair_pricing_bp.route("/repair-options/<int:option_id>/parts", methods=["POST"])
@require_role(*MUTATION_ROLES)
def add_option_parts(option_id):
    org_id, user_id = auth_scope()
    part = svc.add_parts(org_id, json_body(), user_id, option_id=option_id)
    return jsonify(part.to_dict()), 201


@repair_pricing_bp.route("/repair-parts/<int:parts_id>", methods=["PATCH"])
@require_role(*MUTATION_ROLES)
def update_parts(parts_id):
    org_id, _ = auth_scope()
    return jsonify(svc.update_parts(org_id, parts_id, json_body()).to_dict())


@repair_pricing_bp.route("/repair-parts/<int:parts_id>", methods=["DELETE"])
@require_role(*MUTATION_ROLES)
def delete_parts(parts_id):
    org_id, _ = auth_scope()
    svc.delete_parts(org_id, parts_id)
    return jsonify({"success": True})
