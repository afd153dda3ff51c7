"""
Baseline Blueprint — schedule baselines, variance analysis and earned value.

Endpoints:
    Baselines:
        GET    /api/v1/projects/<pid>/baselines                     — List (newest version first)
        POST   /api/v1/projects/<pid>/baselines                     — Create (snapshots tasks, becomes active)
        GET    /api/v1/projects/<pid>/baselines/active              — Active baseline or null
        GET    /api/v1/projects/<pid>/baselines/<bid>               — Get
        PUT    /api/v1/projects/<pid>/baselines/<bid>               — Update name / description / is_active
        DELETE /api/v1/projects/<pid>/baselines/<bid>               — Delete
        POST   /api/v1/projects/<pid>/baselines/<bid>/activate      — Make active
        GET    /api/v1/projects/<pid>/baselines/<bid>/tasks         — Baselined tasks

    Variances:
        POST   /api/v1/projects/<pid>/variances/calculate           — Recompute (baseline_id?, as_of?)
        GET    /api/v1/projects/<pid>/variances                     — List (?baseline_id=)

    Earned value:
        POST   /api/v1/projects/<pid>/snapshots                     — Record snapshot
        GET    /api/v1/projects/<pid>/snapshots                     — List (newest first)
        GET    /api/v1/projects/<pid>/performance                   — Latest SPI / CPI
"""

from flask import Blueprint, jsonify, request

from fitout.auth import current_user
from fitout.blueprints import json_body, load_project
from fitout.services import baseline_service
from fitout.utils.helpers import db_commit_or_error, parse_date_field, parse_int

baseline_bp = Blueprint("baseline_bp", __name__, url_prefix="/api/v1")


# ═══════════════════════════════════════════════════════════════════════════
#  BASELINES
# ═══════════════════════════════════════════════════════════════════════════

@baseline_bp.route("/projects/<int:project_id>/baselines", methods=["GET"])
def list_baselines(project_id):
    load_project(project_id)
    return jsonify([b.to_dict() for b in baseline_service.list_baselines(project_id)])


@baseline_bp.route("/projects/<int:project_id>/baselines", methods=["POST"])
def create_baseline(project_id):
    project = load_project(project_id, write=True)
    baseline = baseline_service.create_baseline(project, json_body(), current_user())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(baseline.to_dict()), 201


@baseline_bp.route("/projects/<int:project_id>/baselines/active", methods=["GET"])
def active_baseline(project_id):
    load_project(project_id)
    baseline = baseline_service.get_active_baseline(project_id)
    return jsonify(baseline.to_dict() if baseline else None)


@baseline_bp.route("/projects/<int:project_id>/baselines/<int:baseline_id>", methods=["GET"])
def get_baseline(project_id, baseline_id):
    load_project(project_id)
    return jsonify(baseline_service.get_baseline(project_id, baseline_id).to_dict())


@baseline_bp.route("/projects/<int:project_id>/baselines/<int:baseline_id>", methods=["PUT"])
def update_baseline(project_id, baseline_id):
    load_project(project_id, write=True)
    baseline = baseline_service.get_baseline(project_id, baseline_id)
    baseline_service.update_baseline(baseline, json_body())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(baseline.to_dict())


@baseline_bp.route("/projects/<int:project_id>/baselines/<int:baseline_id>", methods=["DELETE"])
def delete_baseline(project_id, baseline_id):
    load_project(project_id, write=True)
    baseline = baseline_service.get_baseline(project_id, baseline_id)
    baseline_service.delete_baseline(baseline, current_user())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"deleted": True, "id": baseline_id})


@baseline_bp.route("/projects/<int:project_id>/baselines/<int:baseline_id>/activate", methods=["POST"])
def activate_baseline(project_id, baseline_id):
    load_project(project_id, write=True)
    baseline = baseline_service.get_baseline(project_id, baseline_id)
    baseline_service.activate_baseline(baseline)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(baseline.to_dict())


@baseline_bp.route("/projects/<int:project_id>/baselines/<int:baseline_id>/tasks", methods=["GET"])
def list_baseline_tasks(project_id, baseline_id):
    load_project(project_id)
    baseline = baseline_service.get_baseline(project_id, baseline_id)
    return jsonify([t.to_dict() for t in baseline_service.list_baseline_tasks(baseline)])


# ═══════════════════════════════════════════════════════════════════════════
#  VARIANCES
# ═══════════════════════════════════════════════════════════════════════════

@baseline_bp.route("/projects/<int:project_id>/variances/calculate", methods=["POST"])
def calculate_variances(project_id):
    project = load_project(project_id, write=True)
    data = json_body()
    baseline_id = parse_int(data.get("baseline_id"), "baseline_id")
    baseline = baseline_service.get_baseline(project_id, baseline_id) if baseline_id else None

    variances = baseline_service.calculate_variances(
        project, baseline, as_of=parse_date_field(data, "as_of"),
    )
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"count": len(variances), "variances": [v.to_dict() for v in variances]})


@baseline_bp.route("/projects/<int:project_id>/variances", methods=["GET"])
def list_variances(project_id):
    load_project(project_id)
    variances = baseline_service.list_variances(
        project_id, baseline_id=request.args.get("baseline_id", type=int),
    )
    return jsonify([v.to_dict() for v in variances])


# ═══════════════════════════════════════════════════════════════════════════
#  EARNED VALUE
# ═══════════════════════════════════════════════════════════════════════════

@baseline_bp.route("/projects/<int:project_id>/snapshots", methods=["POST"])
def record_snapshot(project_id):
    project = load_project(project_id, write=True)
    snapshot = baseline_service.record_snapshot(project, json_body(), current_user())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(snapshot.to_dict()), 201


@baseline_bp.route("/projects/<int:project_id>/snapshots", methods=["GET"])
def list_snapshots(project_id):
    load_project(project_id)
    return jsonify([s.to_dict() for s in baseline_service.list_snapshots(project_id)])


@baseline_bp.route("/projects/<int:project_id>/performance", methods=["GET"])
def performance(project_id):
    load_project(project_id)
    return jsonify(baseline_service.performance(project_id))
