"""
Story Blueprint — story CRUD, reviewer assignment, coverage updates.

  POST  /api/stories                     — Create story (engineer / manager)
  GET   /api/stories                     — Role-scoped list (filters via query args)
  GET   /api/stories/my-reviews          — Stories assigned to the caller
  GET   /api/stories/export              — CSV (default) or Excel export
  GET   /api/stories/<id>                — Story with creator / reviewer
  GET   /api/stories/<id>/history        — Coverage audit trail
  PATCH /api/stories/<id>/reviewer       — Assign reviewer (manager)
  PATCH /api/stories/<id>/coverage       — Record coverage score

Query args for list / export: date_from, date_to, user_id, status.
"""

from flask import Blueprint, Response, g, jsonify, request, send_file

from coverage_tracker.middleware.permission_required import login_required
from coverage_tracker.repositories import request_repositories
from coverage_tracker.services import export_service, story_service
from coverage_tracker.services.story_filters import StoryFilter, filter_stories
from coverage_tracker.utils.errors import E, api_error
from coverage_tracker.utils.helpers import json_body

story_bp = Blueprint("story_bp", __name__, url_prefix="/api/stories")

XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _filtered_stories(repos):
    story_filter = StoryFilter.from_args(request.args)
    stories = story_service.list_stories_for(repos, g.current_user)
    return filter_stories(stories, story_filter)


# ═══════════════════════════════════════════════════════════════
# Create / list
# ═══════════════════════════════════════════════════════════════
@story_bp.route("", methods=["POST"])
@login_required
def create_story():
    """Body: { "ticket_id": "...", "title": "...", "comments": "..." }"""
    data = json_body()
    repos = request_repositories()
    story = story_service.create_story(
        repos,
        g.current_user,
        ticket_id=data.get("ticket_id"),
        title=data.get("title"),
        comments=data.get("comments"),
    )
    return jsonify(story_service.story_details(repos, [story])[0]), 201


@story_bp.route("", methods=["GET"])
@login_required
def list_stories():
    repos = request_repositories()
    return jsonify(story_service.story_details(repos, _filtered_stories(repos))), 200


@story_bp.route("/my-reviews", methods=["GET"])
@login_required
def my_reviews():
    repos = request_repositories()
    stories = story_service.list_review_queue(repos, g.current_user)
    return jsonify(story_service.story_details(repos, stories)), 200


@story_bp.route("/export", methods=["GET"])
@login_required
def export_stories():
    """Export the caller's filtered stories. ``?format=csv`` (default) or ``excel``."""
    fmt = (request.args.get("format") or "csv").lower()
    if fmt not in ("csv", "excel"):
        return api_error(E.VALIDATION_INVALID, "format must be 'csv' or 'excel'")

    repos = request_repositories()
    details = story_service.story_details(repos, _filtered_stories(repos))
    rows = export_service.format_stories_for_export(details)

    if fmt == "excel":
        buf = export_service.rows_to_xlsx(export_service.STORY_HEADERS, rows, "Stories")
        return send_file(
            buf,
            mimetype=XLSX_MIMETYPE,
            as_attachment=True,
            download_name=export_service.export_filename("stories", "xlsx"),
        )

    content = export_service.rows_to_csv(export_service.STORY_HEADERS, rows)
    filename = export_service.export_filename("stories", "csv")
    return Response(
        content,
        mimetype="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


# ═══════════════════════════════════════════════════════════════
# Single story
# ═══════════════════════════════════════════════════════════════
@story_bp.route("/<story_id>", methods=["GET"])
@login_required
def get_story(story_id):
    repos = request_repositories()
    story = story_service.get_story(repos, story_id, g.current_user)
    return jsonify(story_service.story_details(repos, [story])[0]), 200


@story_bp.route("/<story_id>/history", methods=["GET"])
@login_required
def get_history(story_id):
    repos = request_repositories()
    records = story_service.get_coverage_history(repos, story_id, g.current_user)
    return jsonify(story_service.history_details(repos, records)), 200


@story_bp.route("/<story_id>/reviewer", methods=["PATCH"])
@login_required
def assign_reviewer(story_id):
    """Body: { "reviewer_id": "..." }"""
    data = json_body()
    repos = request_repositories()
    story = story_service.assign_reviewer(
        repos, story_id, data.get("reviewer_id"), g.current_user,
    )
    return jsonify(story_service.story_details(repos, [story])[0]), 200


@story_bp.route("/<story_id>/coverage", methods=["PATCH"])
@login_required
def update_coverage(story_id):
    """Body: { "score": 0-100, "comments": "..." }

    Omitting ``comments`` keeps the story's existing comments.
    """
    data = json_body()
    repos = request_repositories()
    story = story_service.update_coverage(
        repos,
        story_id,
        data.get("score"),
        g.current_user,
        comments=data.get("comments"),
    )
    return jsonify(story_service.story_details(repos, [story])[0]), 200
