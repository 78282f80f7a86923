"""
Projects blueprint.

Blueprint: projects_bp
Prefix: /api/v1/projects

Endpoints:
    Projects:
      GET    /                      -- Cards: progress, stage breakdown, responsible names
      GET    /stats                 -- Dashboard counters
      GET    /stages                -- Stage table (order, labels, weights)
      POST   /                      -- Create project
      GET    /<project_id>          -- Single card
      PUT    /<project_id>          -- Update project (task list is replaced)
      DELETE /<project_id>          -- Delete project with its tasks and comments
      PUT    /<project_id>/status   -- Move to another status column

    Tasks:
      POST   /<project_id>/tasks                    -- Add task
      PUT    /<project_id>/tasks/<task_id>          -- Edit task
      POST   /<project_id>/tasks/<task_id>/toggle   -- Flip completion
      DELETE /<project_id>/tasks/<task_id>          -- Remove task

    Comments:
      POST   /<project_id>/comments -- Post to the team channel
"""

import logging

from flask import Blueprint, current_app, g, jsonify, request

from prosync.auth import require_session
from prosync.core.entities import TaskStage
from prosync.services import normalizer
from prosync.services.dashboard_service import dashboard_stats, project_card, project_cards
from prosync.utils.errors import E, api_error

logger = logging.getLogger(__name__)

projects_bp = Blueprint("projects", __name__, url_prefix="/api/v1/projects")

# camelCase request keys -> update_task change keys
_TASK_FIELDS = {
    "title": "title",
    "stage": "stage",
    "responsibleId": "responsible_id",
    "observations": "observations",
    "completed": "completed",
}


def _projects():
    return current_app.extensions["projects"]


def _stages():
    return current_app.extensions["stages"]


def _card(project) -> dict:
    users_by_id = {u.id: u for u in current_app.extensions["users"].list()}
    return project_card(project, users_by_id, _stages())


def _body() -> dict:
    return dict(request.get_json(silent=True) or {})


# ------------------------------------------------------------------
#  Projects
# ------------------------------------------------------------------

@projects_bp.route("", methods=["GET"])
@require_session
def list_projects():
    users = current_app.extensions["users"].list()
    return jsonify(project_cards(_projects().list(), users, _stages())), 200


@projects_bp.route("/stats", methods=["GET"])
@require_session
def stats():
    return jsonify(dashboard_stats(_projects().list(), _stages())), 200


@projects_bp.route("/stages", methods=["GET"])
@require_session
def stages():
    return jsonify([
        {"stage": s.identifier.value, "label": s.label, "weight": s.weight} for s in _stages()
    ]), 200


@projects_bp.route("", methods=["POST"])
@require_session
def create_project():
    data = _body()
    data.pop("id", None)
    data.pop("comments", None)
    project = normalizer.project_from_raw(data)
    if project.responsible_id is None:
        project.responsible_id = g.user_id
    saved = _projects().save(project)
    return jsonify(_card(saved)), 201


@projects_bp.route("/<project_id>", methods=["GET"])
@require_session
def get_project(project_id):
    return jsonify(_card(_projects().get(project_id))), 200


@projects_bp.route("/<project_id>", methods=["PUT"])
@require_session
def update_project(project_id):
    stored = _projects().get(project_id)
    data = _body()
    data.pop("id", None)
    data.pop("comments", None)
    merged = normalizer.dehydrate(stored)
    merged.update(data)
    project = normalizer.project_from_raw(merged)
    project.id = stored.id
    saved = _projects().save(project)
    return jsonify(_card(saved)), 200


@projects_bp.route("/<project_id>", methods=["DELETE"])
@require_session
def delete_project(project_id):
    _projects().delete(project_id)
    return jsonify({"deleted": project_id}), 200


@projects_bp.route("/<project_id>/status", methods=["PUT"])
@require_session
def set_status(project_id):
    status = _body().get("status")
    if not status:
        return api_error(E.VALIDATION_REQUIRED, "status is required")
    return jsonify(_card(_projects().set_status(project_id, status))), 200


# ------------------------------------------------------------------
#  Tasks
# ------------------------------------------------------------------

@projects_bp.route("/<project_id>/tasks", methods=["POST"])
@require_session
def add_task(project_id):
    data = _body()
    title = (data.get("title") or "").strip()
    if not title:
        return api_error(E.VALIDATION_REQUIRED, "title is required")
    saved = _projects().add_task(
        project_id,
        title,
        data.get("stage") or TaskStage.SURVEY,
        responsible_id=data.get("responsibleId"),
        observations=data.get("observations") or "",
    )
    return jsonify(_card(saved)), 201


@projects_bp.route("/<project_id>/tasks/<task_id>", methods=["PUT"])
@require_session
def update_task(project_id, task_id):
    data = _body()
    changes = {key: data[field] for field, key in _TASK_FIELDS.items() if field in data}
    return jsonify(_card(_projects().update_task(project_id, task_id, changes))), 200


@projects_bp.route("/<project_id>/tasks/<task_id>/toggle", methods=["POST"])
@require_session
def toggle_task(project_id, task_id):
    return jsonify(_card(_projects().toggle_task(project_id, task_id))), 200


@projects_bp.route("/<project_id>/tasks/<task_id>", methods=["DELETE"])
@require_session
def remove_task(project_id, task_id):
    return jsonify(_card(_projects().remove_task(project_id, task_id))), 200


# ------------------------------------------------------------------
#  Comments
# ------------------------------------------------------------------

@projects_bp.route("/<project_id>/comments", methods=["POST"])
@require_session
def add_comment(project_id):
    data = _body()
    author = g.current_user
    comment = _projects().add_comment(
        project_id,
        author_id=author.id,
        author_name=author.name,
        content=data.get("content") or "",
        target_user_id=data.get("targetUserId"),
    )
    return jsonify(normalizer.dehydrate(comment)), 201
