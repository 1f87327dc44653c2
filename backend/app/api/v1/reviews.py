# app/api/v1/reviews.py
from flask import request, jsonify
from flask_jwt_extended import jwt_required

from app.application.bundles.lifecycle import get_lifecycle
from app.normalizers.bundle import normalize_bundle
from app.normalizers.publication import (
    normalize_publish_job,
    normalize_remote_details,
    normalize_sync_summary,
)
from app.normalizers.review import normalize_review_event
from app.utils.decorators import current_actor, roles_required
from . import v1_bp

REVIEWER_ROLES = ("manager", "admin")


def _job_response(message, job, status_code=202):
    lifecycle = get_lifecycle()
    draft = lifecycle.drafts.get_or_raise(job.draft_id)
    return jsonify({
        "message": message,
        "job": normalize_publish_job(job),
        "bundle": normalize_bundle(draft, reviewer=True),
    }), status_code


# ------------------------
# Review queue
# ------------------------

@v1_bp.route("/reviews/pending", methods=["GET"])
@jwt_required()
@roles_required(*REVIEWER_ROLES)
def list_pending_reviews():
    drafts = get_lifecycle().reviews.pending_queue()
    return jsonify({"items": [normalize_bundle(d, reviewer=True) for d in drafts]}), 200


@v1_bp.route("/reviews/<draft_id>/history", methods=["GET"])
@jwt_required()
@roles_required(*REVIEWER_ROLES)
def review_history(draft_id):
    lifecycle = get_lifecycle()
    lifecycle.drafts.get_or_raise(draft_id)

    events = lifecycle.reviews.history(draft_id)
    return jsonify({"items": [normalize_review_event(e) for e in events]}), 200


# ------------------------
# Verdicts
# ------------------------

@v1_bp.route("/reviews/<draft_id>/approve", methods=["POST"])
@jwt_required()
@roles_required(*REVIEWER_ROLES)
def approve_bundle(draft_id):
    data = request.get_json(silent=True) or {}
    job = get_lifecycle().manager.approve(
        draft_id=draft_id,
        reviewer=current_actor(),
        notes=data.get("notes"),
    )
    return _job_response("Bundle approved", job)


@v1_bp.route("/reviews/<draft_id>/reject", methods=["POST"])
@jwt_required()
@roles_required(*REVIEWER_ROLES)
def reject_bundle(draft_id):
    data = request.get_json(silent=True) or {}
    draft = get_lifecycle().manager.reject(
        draft_id=draft_id,
        reviewer=current_actor(),
        reason=data.get("reason"),
    )
    return jsonify({"message": "Bundle rejected", "bundle": normalize_bundle(draft, reviewer=True)}), 200


@v1_bp.route("/reviews/<draft_id>/request-changes", methods=["POST"])
@jwt_required()
@roles_required(*REVIEWER_ROLES)
def request_bundle_changes(draft_id):
    data = request.get_json(silent=True) or {}
    draft = get_lifecycle().manager.request_changes(
        draft_id=draft_id,
        reviewer=current_actor(),
        notes=data.get("notes"),
    )
    return jsonify({"message": "Changes requested", "bundle": normalize_bundle(draft, reviewer=True)}), 200


# ------------------------
# Sync maintenance
# ------------------------

@v1_bp.route("/reviews/<draft_id>/retry", methods=["POST"])
@jwt_required()
@roles_required(*REVIEWER_ROLES)
def retry_bundle_sync(draft_id):
    job = get_lifecycle().manager.retry(draft_id=draft_id, reviewer=current_actor())
    return _job_response("Sync retry queued", job)


@v1_bp.route("/reviews/<draft_id>/resync", methods=["POST"])
@jwt_required()
@roles_required(*REVIEWER_ROLES)
def resync_bundle(draft_id):
    job = get_lifecycle().manager.resync(draft_id=draft_id, reviewer=current_actor())
    return _job_response("Re-sync queued", job)


@v1_bp.route("/reviews/<draft_id>/publication", methods=["GET"])
@jwt_required()
@roles_required(*REVIEWER_ROLES)
def bundle_publication(draft_id):
    details = get_lifecycle().manager.remote_details(draft_id=draft_id)
    return jsonify(normalize_remote_details(details)), 200


@v1_bp.route("/reviews/sync-summary", methods=["GET"])
@jwt_required()
@roles_required(*REVIEWER_ROLES)
def sync_summary():
    return jsonify(normalize_sync_summary(get_lifecycle().manager.sync_summary())), 200
