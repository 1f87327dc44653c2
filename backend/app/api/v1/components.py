# app/api/v1/components.py
from flask import request, jsonify
from flask_jwt_extended import jwt_required

from app.application.bundles.lifecycle import get_lifecycle
from app.normalizers.bundle import normalize_bundle
from app.utils.decorators import current_actor, roles_required
from . import v1_bp

EDITOR_ROLES = ("manager", "admin", "extension")


@v1_bp.route("/components/<remote_product_id>/<remote_ref>", methods=["PUT"])
@jwt_required()
@roles_required(*EDITOR_ROLES)
def set_component_quantity(remote_product_id, remote_ref):
    data = request.get_json(silent=True) or {}
    draft = get_lifecycle().components.set_quantity(
        remote_product_id=remote_product_id,
        remote_ref=remote_ref,
        quantity=data.get("quantity"),
        actor=current_actor(),
    )
    return jsonify(normalize_bundle(draft, reviewer=True)), 200


@v1_bp.route("/components/<remote_product_id>", methods=["POST"])
@jwt_required()
@roles_required(*EDITOR_ROLES)
def add_component(remote_product_id):
    data = request.get_json(silent=True) or {}
    draft = get_lifecycle().components.add_component(
        remote_product_id=remote_product_id,
        remote_ref=data.get("remote_ref"),
        name=data.get("name"),
        quantity=data.get("quantity", 1),
        unit_price=data.get("unit_price"),
        image_url=data.get("image_url"),
        actor=current_actor(),
    )
    return jsonify(normalize_bundle(draft, reviewer=True)), 200


@v1_bp.route("/components/<remote_product_id>/<remote_ref>", methods=["DELETE"])
@jwt_required()
@roles_required(*EDITOR_ROLES)
def remove_component(remote_product_id, remote_ref):
    draft = get_lifecycle().components.remove_component(
        remote_product_id=remote_product_id,
        remote_ref=remote_ref,
        actor=current_actor(),
    )
    return jsonify(normalize_bundle(draft, reviewer=True)), 200
