"""Baseline service layer — schedule baselines, variances and earned value.

Transaction policy: functions use flush(), never commit().

Baselines
    version = max(version) + 1 per project; the newest baseline becomes the
    only active one. Creating a baseline copies every current task's dates
    and progress into BaselineTask rows.

Variances (per baselined task, against the active or a given baseline)
    start_delay       = actual start − planned start          (days)
    end_delay         = actual end − planned end              (days)
    duration_change   = actual duration − planned duration    (days)
    progress_variance = actual progress − planned progress    (points)

    Positive day deltas mean late, negative mean early. Actual end is the
    completion date for completed tasks, else the current due date. Planned
    progress is the linear share of the planned window elapsed on the
    calculation date. Only non-zero deltas are stored; a recalculation
    replaces the baseline's earlier rows.

Earned value (per snapshot)
    PV  = planned budget × planned progress
    EV  = planned budget × actual progress
    AC  = approved + paid expenses
    SPI = EV / PV,  CPI = EV / AC   (1.0 when the divisor is zero)
"""
import logging
from datetime import date

from sqlalchemy import func

from fitout.core.exceptions import NotFoundError, ValidationError
from fitout.models import db
from fitout.models.activity import write_activity
from fitout.models.baseline import (
    DAY_IMPACT_THRESHOLDS,
    PROGRESS_IMPACT_THRESHOLDS,
    BaselineTask,
    ProgressSnapshot,
    ProjectBaseline,
    ScheduleVariance,
    classify_impact,
    planned_share,
)
from fitout.models.task import Task
from fitout.services.budget_service import approved_spend
from fitout.utils.helpers import parse_amount, parse_date_field, parse_int

logger = logging.getLogger(__name__)


def days_between(actual: date | None, planned: date | None):
    """Whole days from planned to actual (positive = late). None if either is missing."""
    if actual is None or planned is None:
        return None
    return (actual - planned).days


# ── Baselines ────────────────────────────────────────────────────────────


def list_baselines(project_id):
    return (ProjectBaseline.query.filter_by(project_id=project_id)
            .order_by(ProjectBaseline.version.desc()).all())


def get_active_baseline(project_id):
    return ProjectBaseline.query.filter_by(project_id=project_id, is_active=True).first()


def get_baseline(project_id, baseline_id):
    baseline = db.session.get(ProjectBaseline, baseline_id)
    if baseline is None or baseline.project_id != project_id:
        raise NotFoundError(resource="Baseline", resource_id=baseline_id)
    return baseline


def _next_version(project_id):
    current = (db.session.query(func.max(ProjectBaseline.version))
               .filter(ProjectBaseline.project_id == project_id).scalar())
    return (current or 0) + 1


def _deactivate_others(project_id, keep_id):
    (ProjectBaseline.query
     .filter(ProjectBaseline.project_id == project_id, ProjectBaseline.id != keep_id)
     .update({"is_active": False}, synchronize_session="fetch"))


def _snapshot_tasks(baseline, project_id):
    tasks = Task.query.filter_by(project_id=project_id).order_by(Task.id.asc()).all()
    for order, task in enumerate(tasks):
        duration = None
        if task.start_date and task.due_date:
            duration = (task.due_date - task.start_date).days
        db.session.add(BaselineTask(
            baseline_id=baseline.id,
            task_id=task.id,
            task_name=task.title,
            planned_start_date=task.start_date,
            planned_end_date=task.due_date,
            planned_duration=duration,
            planned_progress=task.progress or 0,
            dependencies=[task.parent_task_id] if task.parent_task_id else [],
            order=order,
        ))
    return len(tasks)


def create_baseline(project, data, user):
    """Freeze the current plan as a new active baseline version.

    Returns:
        ProjectBaseline instance (already flushed).
    """
    version = _next_version(project.id)
    name = (data.get("name") or "").strip() or f"Baseline v{version}"

    planned_start = parse_date_field(data, "planned_start_date") or project.start_date
    planned_end = parse_date_field(data, "planned_end_date") or project.end_date
    if planned_start and planned_end and planned_end < planned_start:
        raise ValidationError("planned_end_date must not be before planned_start_date",
                              details={"planned_start_date": planned_start.isoformat(),
                                       "planned_end_date": planned_end.isoformat()})
    planned_budget = parse_amount(data.get("planned_budget"), "planned_budget")
    if planned_budget is None:
        planned_budget = project.budget

    baseline = ProjectBaseline(
        project_id=project.id,
        name=name,
        description=data.get("description"),
        version=version,
        is_active=True,
        planned_start_date=planned_start,
        planned_end_date=planned_end,
        planned_budget=planned_budget,
        created_by_id=user.id,
    )
    db.session.add(baseline)
    db.session.flush()

    _deactivate_others(project.id, baseline.id)
    task_count = _snapshot_tasks(baseline, project.id)
    db.session.flush()

    write_activity(project_id=project.id, entity_type="baseline", entity_id=baseline.id,
                   action="created", user_id=user.id,
                   details={"version": version, "task_count": task_count})
    logger.info("Baseline v%s created for project %s (%d tasks)", version, project.id, task_count)
    return baseline


def activate_baseline(baseline):
    baseline.is_active = True
    _deactivate_others(baseline.project_id, baseline.id)
    db.session.flush()
    return baseline


def update_baseline(baseline, data):
    if "name" in data:
        name = (data.get("name") or "").strip()
        if not name:
            raise ValidationError("name cannot be empty", details={"name": "required"})
        baseline.name = name
    if "description" in data:
        baseline.description = data["description"]
    if "is_active" in data:
        if data["is_active"]:
            activate_baseline(baseline)
        else:
            baseline.is_active = False
    db.session.flush()
    return baseline


def delete_baseline(baseline, user):
    write_activity(project_id=baseline.project_id, entity_type="baseline", entity_id=baseline.id,
                   action="deleted", user_id=user.id, details={"version": baseline.version})
    db.session.delete(baseline)
    db.session.flush()


def list_baseline_tasks(baseline):
    return baseline.tasks.all()


# ── Variances ────────────────────────────────────────────────────────────


def _actual_end(task):
    if task.status == "completed" and task.completed_at:
        return task.completed_at.date()
    return task.due_date


def _task_variances(baseline, bt, task, as_of):
    """Yield ScheduleVariance rows for one baselined task (non-zero deltas only)."""
    common = {
        "project_id": baseline.project_id,
        "baseline_id": baseline.id,
        "task_id": task.id,
        "task_name": task.title,
    }

    start_days = days_between(task.start_date, bt.planned_start_date)
    if start_days:
        yield ScheduleVariance(
            variance_type="start_delay",
            planned_value=bt.planned_start_date.isoformat(),
            actual_value=task.start_date.isoformat(),
            variance_days=start_days,
            impact=classify_impact(start_days, DAY_IMPACT_THRESHOLDS),
            **common,
        )

    actual_end = _actual_end(task)
    end_days = days_between(actual_end, bt.planned_end_date)
    if end_days:
        yield ScheduleVariance(
            variance_type="end_delay",
            planned_value=bt.planned_end_date.isoformat(),
            actual_value=actual_end.isoformat(),
            variance_days=end_days,
            impact=classify_impact(end_days, DAY_IMPACT_THRESHOLDS),
            **common,
        )

    actual_duration = days_between(actual_end, task.start_date)
    if bt.planned_duration is not None and actual_duration is not None:
        delta = actual_duration - bt.planned_duration
        if delta:
            percent = round(delta / bt.planned_duration * 100, 1) if bt.planned_duration else None
            yield ScheduleVariance(
                variance_type="duration_change",
                planned_value=f"{bt.planned_duration} days",
                actual_value=f"{actual_duration} days",
                variance_days=delta,
                variance_percent=percent,
                impact=classify_impact(delta, DAY_IMPACT_THRESHOLDS),
                **common,
            )

    planned_progress = bt.planned_progress_on(as_of)
    actual_progress = task.progress or 0
    progress_delta = actual_progress - planned_progress
    if progress_delta:
        yield ScheduleVariance(
            variance_type="progress_variance",
            planned_value=f"{planned_progress}%",
            actual_value=f"{actual_progress}%",
            variance_percent=float(progress_delta),
            # Behind schedule is a negative delta; impact grows with the shortfall
            impact=classify_impact(-progress_delta, PROGRESS_IMPACT_THRESHOLDS),
            **common,
        )


def calculate_variances(project, baseline=None, as_of: date | None = None):
    """Recompute and persist variances for ``baseline`` (default: the active one).

    Returns:
        List of ScheduleVariance rows (already flushed).

    Raises:
        ValidationError: the project has no active baseline.
    """
    as_of = as_of or date.today()
    if baseline is None:
        baseline = get_active_baseline(project.id)
        if baseline is None:
            raise ValidationError("Project has no active baseline",
                                  details={"project_id": project.id})

    ScheduleVariance.query.filter_by(baseline_id=baseline.id).delete(synchronize_session="fetch")

    variances = []
    for bt in baseline.tasks:
        if bt.task_id is None:
            continue
        task = db.session.get(Task, bt.task_id)
        if task is None:
            continue
        for variance in _task_variances(baseline, bt, task, as_of):
            db.session.add(variance)
            variances.append(variance)
    db.session.flush()

    logger.info("Calculated %d variances for project %s baseline v%s",
                len(variances), project.id, baseline.version)
    return variances


def list_variances(project_id, baseline_id=None):
    q = ScheduleVariance.query.filter_by(project_id=project_id)
    if baseline_id:
        q = q.filter_by(baseline_id=baseline_id)
    return q.order_by(ScheduleVariance.recorded_at.desc(), ScheduleVariance.id.asc()).all()


# ── Snapshots & performance ──────────────────────────────────────────────


def _actual_progress(project):
    avg = (db.session.query(func.avg(Task.progress))
           .filter(Task.project_id == project.id, Task.status != "cancelled").scalar())
    if avg is None:
        return float(project.progress or 0)
    return round(float(avg), 1)


def _number(data, field, default):
    value = parse_amount(data.get(field), field, minimum=None)
    return default if value is None else value


def record_snapshot(project, data, user):
    """Record a PV/EV/AC snapshot; missing values are derived from live data.

    Returns:
        ProgressSnapshot instance (already flushed).
    """
    baseline_id = parse_int(data.get("baseline_id"), "baseline_id")
    if baseline_id is not None:
        baseline = get_baseline(project.id, baseline_id)
    else:
        baseline = get_active_baseline(project.id)

    snapshot_date = parse_date_field(data, "snapshot_date") or date.today()

    if baseline is not None:
        budget = baseline.planned_budget if baseline.planned_budget is not None else (project.budget or 0.0)
        default_planned = planned_share(baseline.planned_start_date, baseline.planned_end_date, snapshot_date)
    else:
        budget = project.budget or 0.0
        default_planned = planned_share(project.start_date, project.end_date, snapshot_date)

    planned_progress = _number(data, "planned_progress", float(default_planned or 0))
    actual_progress = _number(data, "actual_progress", _actual_progress(project))
    for field, value in (("planned_progress", planned_progress), ("actual_progress", actual_progress)):
        if not 0 <= value <= 100:
            raise ValidationError(f"{field} must be between 0 and 100", details={field: value})

    snapshot = ProgressSnapshot(
        project_id=project.id,
        baseline_id=baseline.id if baseline else None,
        snapshot_date=snapshot_date,
        planned_progress=planned_progress,
        actual_progress=actual_progress,
        planned_value=_number(data, "planned_value", round(budget * planned_progress / 100, 2)),
        earned_value=_number(data, "earned_value", round(budget * actual_progress / 100, 2)),
        actual_cost=_number(data, "actual_cost", approved_spend(project.id)),
        notes=data.get("notes"),
        created_by_id=user.id,
    )
    snapshot.compute_indices()
    db.session.add(snapshot)
    db.session.flush()

    write_activity(project_id=project.id, entity_type="snapshot", entity_id=snapshot.id,
                   action="created", user_id=user.id, details={"spi": snapshot.spi, "cpi": snapshot.cpi})
    return snapshot


def list_snapshots(project_id):
    return (ProgressSnapshot.query.filter_by(project_id=project_id)
            .order_by(ProgressSnapshot.snapshot_date.desc(), ProgressSnapshot.id.desc()).all())


def _schedule_label(spi):
    if spi > 1:
        return "ahead of schedule"
    if spi == 1:
        return "on schedule"
    return "behind schedule"


def _cost_label(cpi):
    if cpi > 1:
        return "under budget"
    if cpi == 1:
        return "on budget"
    return "over budget"


def performance(project_id):
    """Latest SPI/CPI with human-readable labels."""
    snapshots = list_snapshots(project_id)
    latest = snapshots[0] if snapshots else None
    spi = latest.spi if latest else 1.0
    cpi = latest.cpi if latest else 1.0
    return {
        "spi": spi,
        "cpi": cpi,
        "schedule_status": _schedule_label(spi),
        "cost_status": _cost_label(cpi),
        "latest_snapshot": latest.to_dict() if latest else None,
        "snapshot_count": len(snapshots),
    }
