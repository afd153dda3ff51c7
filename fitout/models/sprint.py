"""
Fit-Out Dashboard
Sprint planning models.

Models:
    - Sprint: time box of project tasks
    - SprintTask: a task committed to a sprint, with story points
    - TeamVelocity: recorded delivery figures for a sprint
    - BurndownPoint: remaining / completed points of a sprint on one day
"""

from datetime import datetime, timezone

from fitout.models import db

SPRINT_STATUSES = {"planning", "active", "completed", "cancelled"}


class Sprint(db.Model):
    __tablename__ = "sprints"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(20), nullable=False, default="planning")
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)
    target_points = db.Column(db.Integer, nullable=True)
    completed_points = db.Column(db.Integer, nullable=False, default=0)
    created_by_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
                           onupdate=lambda: datetime.now(timezone.utc))

    sprint_tasks = db.relationship("SprintTask", backref="sprint", lazy="dynamic",
                                   cascade="all, delete-orphan", order_by="SprintTask.id")
    burndown = db.relationship("BurndownPoint", backref="sprint", lazy="dynamic",
                               cascade="all, delete-orphan", order_by="BurndownPoint.day")

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "name": self.name,
            "description": self.description,
            "status": self.status,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "target_points": self.target_points,
            "completed_points": self.completed_points,
            "created_by_id": self.created_by_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Sprint {self.id}: {self.name}>"


class SprintTask(db.Model):
    __tablename__ = "sprint_tasks"
    __table_args__ = (
        db.UniqueConstraint("sprint_id", "task_id", name="uq_sprint_tasks_sprint_task"),
    )

    id = db.Column(db.Integer, primary_key=True)
    sprint_id = db.Column(db.Integer, db.ForeignKey("sprints.id", ondelete="CASCADE"), nullable=False, index=True)
    task_id = db.Column(db.Integer, db.ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    story_points = db.Column(db.Integer, nullable=False, default=0)
    added_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    task = db.relationship("Task")

    def to_dict(self):
        return {
            "id": self.id,
            "sprint_id": self.sprint_id,
            "task_id": self.task_id,
            "story_points": self.story_points,
            "task_title": self.task.title if self.task else None,
            "task_status": self.task.status if self.task else None,
            "assignee_id": self.task.assignee_id if self.task else None,
            "added_at": self.added_at.isoformat() if self.added_at else None,
        }


class TeamVelocity(db.Model):
    __tablename__ = "team_velocity"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    sprint_id = db.Column(db.Integer, db.ForeignKey("sprints.id", ondelete="CASCADE"), nullable=False)
    planned_points = db.Column(db.Integer, nullable=False, default=0)
    completed_points = db.Column(db.Integer, nullable=False, default=0)
    total_tasks = db.Column(db.Integer, nullable=False, default=0)
    completed_tasks = db.Column(db.Integer, nullable=False, default=0)
    team_members_active = db.Column(db.Integer, nullable=False, default=0)
    velocity_score = db.Column(db.Float, nullable=False, default=0.0, comment="completed / planned × 100")
    recorded_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    sprint = db.relationship("Sprint")

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "sprint_id": self.sprint_id,
            "sprint_name": self.sprint.name if self.sprint else None,
            "planned_points": self.planned_points,
            "completed_points": self.completed_points,
            "total_tasks": self.total_tasks,
            "completed_tasks": self.completed_tasks,
            "team_members_active": self.team_members_active,
            "velocity_score": self.velocity_score,
            "recorded_at": self.recorded_at.isoformat() if self.recorded_at else None,
        }


class BurndownPoint(db.Model):
    __tablename__ = "burndown_points"
    __table_args__ = (
        db.UniqueConstraint("sprint_id", "day", name="uq_burndown_points_sprint_day"),
    )

    id = db.Column(db.Integer, primary_key=True)
    sprint_id = db.Column(db.Integer, db.ForeignKey("sprints.id", ondelete="CASCADE"), nullable=False, index=True)
    project_id = db.Column(db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)
    day = db.Column(db.Date, nullable=False)
    remaining_points = db.Column(db.Integer, nullable=False, default=0)
    completed_points = db.Column(db.Integer, nullable=False, default=0)
    recorded_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    def to_dict(self):
        return {
            "day": self.day.isoformat(),
            "remaining_points": self.remaining_points,
            "completed_points": self.completed_points,
        }
