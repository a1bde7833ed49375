"""
Analytics Blueprint — coverage dashboards and user listings.

  GET /api/analytics/team           — Team stats (manager)
  GET /api/analytics/users          — Every user with stats (manager)
  GET /api/analytics/users/export   — CSV / Excel of filtered user stats (manager)
  GET /api/analytics/personal       — Caller's own stats
  GET /api/users                    — Users with stats, for reviewer assignment (manager)

Users and filters accept: user_id, status (all | pass | fail).
"""

from flask import Blueprint, Response, g, jsonify, request, send_file

from coverage_tracker.middleware.permission_required import login_required
from coverage_tracker.repositories import request_repositories
from coverage_tracker.services import analytics_service, export_service
from coverage_tracker.services.story_filters import StoryFilter, filter_user_stats
from coverage_tracker.utils.errors import E, api_error

analytics_bp = Blueprint("analytics_bp", __name__, url_prefix="/api")

XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@analytics_bp.route("/analytics/team", methods=["GET"])
@login_required
def team_stats():
    stats = analytics_service.get_team_stats(request_repositories(), g.current_user)
    return jsonify(stats.to_dict()), 200


@analytics_bp.route("/analytics/users", methods=["GET"])
@login_required
def users_with_stats():
    story_filter = StoryFilter.from_args(request.args)
    stats = analytics_service.get_all_users_with_stats(request_repositories(), g.current_user)
    return jsonify([s.to_dict() for s in filter_user_stats(stats, story_filter)]), 200


@analytics_bp.route("/analytics/users/export", methods=["GET"])
@login_required
def export_users():
    """``?format=csv`` (default) or ``excel``."""
    fmt = (request.args.get("format") or "csv").lower()
    if fmt not in ("csv", "excel"):
        return api_error(E.VALIDATION_INVALID, "format must be 'csv' or 'excel'")

    story_filter = StoryFilter.from_args(request.args)
    stats = analytics_service.get_all_users_with_stats(request_repositories(), g.current_user)
    rows = export_service.format_users_for_export(filter_user_stats(stats, story_filter))

    if fmt == "excel":
        buf = export_service.rows_to_xlsx(export_service.USER_HEADERS, rows, "Users")
        return send_file(
            buf,
            mimetype=XLSX_MIMETYPE,
            as_attachment=True,
            download_name=export_service.export_filename("users", "xlsx"),
        )

    content = export_service.rows_to_csv(export_service.USER_HEADERS, rows)
    filename = export_service.export_filename("users", "csv")
    return Response(
        content,
        mimetype="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@analytics_bp.route("/analytics/personal", methods=["GET"])
@login_required
def personal_stats():
    stats = analytics_service.get_user_stats(request_repositories(), g.current_user)
    return jsonify(stats.to_dict()), 200


@analytics_bp.route("/users", methods=["GET"])
@login_required
def list_users():
    stats = analytics_service.get_all_users_with_stats(request_repositories(), g.current_user)
    return jsonify([s.to_dict() for s in stats]), 200
