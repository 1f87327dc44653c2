# app/api/v1/bundles.py
from flask import request, jsonify
from flask_jwt_extended import jwt_required

from app.application.bundles.lifecycle import get_lifecycle
from app.domain.exceptions import NotFoundError
from app.domain.lifecycle.bundle import BUNDLE_STATUSES
from app.normalizers.bundle import normalize_bundle
from app.utils.decorators import current_actor, roles_required
from . import v1_bp


# ------------------------
# Trainer bundles
# ------------------------

@v1_bp.route("/bundles", methods=["POST"])
@jwt_required()
@roles_required("trainer")
def create_bundle():
    data = request.get_json(silent=True) or {}
    draft = get_lifecycle().manager.create_draft(actor=current_actor(), data=data)

    return jsonify(normalize_bundle(draft)), 201


@v1_bp.route("/bundles", methods=["GET"])
@jwt_required()
@roles_required("trainer")
def list_bundles():
    status = request.args.get("status")
    if status and status not in BUNDLE_STATUSES:
        return jsonify({"error": f"Unknown status: {status}"}), 400

    drafts = get_lifecycle().drafts.list_by_trainer(current_actor().user_id, status)
    return jsonify({"items": [normalize_bundle(d) for d in drafts]}), 200


@v1_bp.route("/bundles/<draft_id>", methods=["GET"])
@jwt_required()
@roles_required("trainer")
def get_bundle(draft_id):
    draft = get_lifecycle().drafts.get_or_raise(draft_id)
    if draft.trainer_id != current_actor().user_id:
        # Other trainers' bundles are not disclosed
        raise NotFoundError("Bundle not found")

    return jsonify(normalize_bundle(draft)), 200


@v1_bp.route("/bundles/<draft_id>", methods=["PUT"])
@jwt_required()
@roles_required("trainer")
def update_bundle(draft_id):
    data = request.get_json(silent=True) or {}
    draft, changed = get_lifecycle().manager.edit_draft(
        draft_id=draft_id,
        actor=current_actor(),
        data=data,
    )

    return jsonify({
        "bundle": normalize_bundle(draft),
        "changed_fields": changed,
    }), 200


@v1_bp.route("/bundles/<draft_id>/submit", methods=["POST"])
@jwt_required()
@roles_required("trainer")
def submit_bundle(draft_id):
    draft = get_lifecycle().manager.submit_for_review(draft_id=draft_id, actor=current_actor())

    return jsonify({
        "message": "Bundle submitted for review",
        "bundle": normalize_bundle(draft),
    }), 200
