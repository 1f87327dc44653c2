# app/api/v1/audit.py
from flask import request, jsonify
from flask_jwt_extended import jwt_required
from dateutil.parser import isoparse
from sqlalchemy import select

from app.models.audit_log import AuditLog
from app.normalizers.audit import normalize_audit_log
from app.normalizers.pagination import normalize_pagination
from app.utils.decorators import roles_required
from app.utils.pagination import paginate_cursor
from . import v1_bp


@v1_bp.route("/audit", methods=["GET"])
@jwt_required()
@roles_required("admin")
def list_audit_logs():
    # Cursor Pagination
    try:
        limit = min(int(request.args.get("limit", 20)), 100)
    except ValueError:
        return jsonify({"error": "Invalid limit"}), 400
    cursor = request.args.get("cursor")

    stmt = select(AuditLog)

    # Optional filters
    if action := request.args.get("action"):
        stmt = stmt.where(AuditLog.action == action)

    if entity_type := request.args.get("entity_type"):
        stmt = stmt.where(AuditLog.entity_type == entity_type)

    if entity_id := request.args.get("entity_id"):
        stmt = stmt.where(AuditLog.entity_id == entity_id)

    if since := request.args.get("since"):
        try:
            stmt = stmt.where(AuditLog.created_at >= isoparse(since))
        except ValueError:
            return jsonify({"error": "Invalid since timestamp"}), 400

    logs, meta = paginate_cursor(stmt, model=AuditLog, limit=limit, cursor=cursor)

    return jsonify(normalize_pagination(logs, normalize_audit_log, cursor=meta)), 200
