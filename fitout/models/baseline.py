"""
Fit-Out Dashboard
Schedule baseline & earned-value models.

Models:
    - ProjectBaseline: frozen copy of the plan; versioned per project, one active
    - BaselineTask: planned dates/progress of one task at baseline time
    - ScheduleVariance: computed deviation of a task from its baseline
    - ProgressSnapshot: point-in-time PV / EV / AC with SPI and CPI
"""

from datetime import date, datetime, timezone

from fitout.models import db

VARIANCE_TYPES = {"start_delay", "end_delay", "duration_change", "progress_variance"}
IMPACT_LEVELS = ("low", "medium", "high", "critical")

# Upper bounds (inclusive) for each impact level; anything above is critical
DAY_IMPACT_THRESHOLDS = ((7, "low"), (14, "medium"), (30, "high"))
PROGRESS_IMPACT_THRESHOLDS = ((10, "low"), (25, "medium"), (50, "high"))


def classify_impact(magnitude: float, thresholds) -> str:
    """Map a behind-schedule magnitude to an impact level.

    Zero or negative magnitudes (on time / ahead) are always ``low``.
    """
    if magnitude <= 0:
        return "low"
    for limit, level in thresholds:
        if magnitude <= limit:
            return level
    return "critical"


def planned_share(start: date | None, end: date | None, as_of: date):
    """Linear share (0-100) of the window start..end elapsed by ``as_of``.

    Returns None when either bound is missing.
    """
    if not start or not end:
        return None
    if as_of <= start:
        return 0
    if as_of >= end:
        return 100
    return round((as_of - start).days / (end - start).days * 100)


def performance_index(earned_value: float, baseline_value: float) -> float:
    """EV / baseline (PV for SPI, AC for CPI); 1.0 when the divisor is zero."""
    if not baseline_value or baseline_value <= 0:
        return 1.0
    return round(earned_value / baseline_value, 3)


class ProjectBaseline(db.Model):
    __tablename__ = "project_baselines"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    version = db.Column(db.Integer, nullable=False, default=1)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    planned_start_date = db.Column(db.Date, nullable=True)
    planned_end_date = db.Column(db.Date, nullable=True)
    planned_budget = db.Column(db.Float, nullable=True)
    created_by_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
                           onupdate=lambda: datetime.now(timezone.utc))

    tasks = db.relationship("BaselineTask", backref="baseline", lazy="dynamic",
                            cascade="all, delete-orphan", order_by="BaselineTask.order")
    variances = db.relationship("ScheduleVariance", backref="baseline", lazy="dynamic",
                                cascade="all, delete-orphan")

    __table_args__ = (
        db.UniqueConstraint("project_id", "version", name="uq_project_baselines_project_version"),
    )

    def to_dict(self, include_counts=False):
        d = {
            "id": self.id,
            "project_id": self.project_id,
            "name": self.name,
            "description": self.description,
            "version": self.version,
            "is_active": self.is_active,
            "planned_start_date": self.planned_start_date.isoformat() if self.planned_start_date else None,
            "planned_end_date": self.planned_end_date.isoformat() if self.planned_end_date else None,
            "planned_budget": round(self.planned_budget, 2) if self.planned_budget is not None else None,
            "created_by_id": self.created_by_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
        if include_counts:
            d["task_count"] = self.tasks.count()
        return d


class BaselineTask(db.Model):
    __tablename__ = "baseline_tasks"

    id = db.Column(db.Integer, primary_key=True)
    baseline_id = db.Column(db.Integer, db.ForeignKey("project_baselines.id", ondelete="CASCADE"),
                            nullable=False, index=True)
    task_id = db.Column(db.Integer, db.ForeignKey("tasks.id", ondelete="SET NULL"), nullable=True, index=True)
    task_name = db.Column(db.String(255), nullable=False)
    planned_start_date = db.Column(db.Date, nullable=True)
    planned_end_date = db.Column(db.Date, nullable=True)
    planned_duration = db.Column(db.Integer, nullable=True, comment="days")
    planned_progress = db.Column(db.Integer, nullable=False, default=0)
    dependencies = db.Column(db.JSON, nullable=True)
    order = db.Column(db.Integer, nullable=False, default=0)

    def planned_progress_on(self, as_of: date) -> int:
        """Linear share of the planned window elapsed by ``as_of`` (0-100).

        Falls back to the stored planned progress when dates are missing.
        """
        share = planned_share(self.planned_start_date, self.planned_end_date, as_of)
        if share is None:
            return self.planned_progress or 0
        return share

    def to_dict(self):
        return {
            "id": self.id,
            "baseline_id": self.baseline_id,
            "task_id": self.task_id,
            "task_name": self.task_name,
            "planned_start_date": self.planned_start_date.isoformat() if self.planned_start_date else None,
            "planned_end_date": self.planned_end_date.isoformat() if self.planned_end_date else None,
            "planned_duration": self.planned_duration,
            "planned_progress": self.planned_progress,
            "dependencies": self.dependencies or [],
            "order": self.order,
        }


class ScheduleVariance(db.Model):
    __tablename__ = "schedule_variances"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    baseline_id = db.Column(db.Integer, db.ForeignKey("project_baselines.id", ondelete="CASCADE"),
                            nullable=False, index=True)
    task_id = db.Column(db.Integer, db.ForeignKey("tasks.id", ondelete="SET NULL"), nullable=True)
    task_name = db.Column(db.String(255), nullable=True)
    variance_type = db.Column(db.String(30), nullable=False)
    planned_value = db.Column(db.String(100), nullable=True)
    actual_value = db.Column(db.String(100), nullable=True)
    variance_days = db.Column(db.Integer, nullable=True)
    variance_percent = db.Column(db.Float, nullable=True)
    impact = db.Column(db.String(20), nullable=False, default="low")
    notes = db.Column(db.Text, nullable=True)
    recorded_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "baseline_id": self.baseline_id,
            "task_id": self.task_id,
            "task_name": self.task_name,
            "variance_type": self.variance_type,
            "planned_value": self.planned_value,
            "actual_value": self.actual_value,
            "variance_days": self.variance_days,
            "variance_percent": self.variance_percent,
            "impact": self.impact,
            "notes": self.notes,
            "recorded_at": self.recorded_at.isoformat() if self.recorded_at else None,
        }


class ProgressSnapshot(db.Model):
    __tablename__ = "progress_snapshots"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    baseline_id = db.Column(db.Integer, db.ForeignKey("project_baselines.id", ondelete="SET NULL"), nullable=True)
    snapshot_date = db.Column(db.Date, nullable=False, default=date.today)
    planned_progress = db.Column(db.Float, nullable=False, default=0.0)
    actual_progress = db.Column(db.Float, nullable=False, default=0.0)
    planned_value = db.Column(db.Float, nullable=False, default=0.0)
    earned_value = db.Column(db.Float, nullable=False, default=0.0)
    actual_cost = db.Column(db.Float, nullable=False, default=0.0)
    spi = db.Column(db.Float, nullable=False, default=1.0)
    cpi = db.Column(db.Float, nullable=False, default=1.0)
    notes = db.Column(db.Text, nullable=True)
    created_by_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    def compute_indices(self):
        self.spi = performance_index(self.earned_value, self.planned_value)
        self.cpi = performance_index(self.earned_value, self.actual_cost)

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "baseline_id": self.baseline_id,
            "snapshot_date": self.snapshot_date.isoformat() if self.snapshot_date else None,
            "planned_progress": self.planned_progress,
            "actual_progress": self.actual_progress,
            "planned_value": round(self.planned_value, 2),
            "earned_value": round(self.earned_value, 2),
            "actual_cost": round(self.actual_cost, 2),
            "spi": self.spi,
            "cpi": self.cpi,
            "notes": self.notes,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
