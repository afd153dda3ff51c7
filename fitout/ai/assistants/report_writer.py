"""
Fit-Out Dashboard
Report Writer Assistant.

Generates two kinds of stored reports:
    - summary: executive summary from project totals
    - weekly_report: Markdown progress report over the last 7 days,
      with the figures it was built from kept as report metadata
"""

import logging
from datetime import date, datetime, timedelta, timezone

from fitout.models import db
from fitout.models.ai import AIReport
from fitout.models.budget import Expense
from fitout.models.milestone import Milestone
from fitout.models.project import ProjectMember
from fitout.models.task import Task

logger = logging.getLogger(__name__)

FALLBACK_SUMMARY = "Unable to generate summary"
FALLBACK_REPORT = "Unable to generate report"
REPORT_WINDOW_DAYS = 7


def _aware(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes for timezone-aware columns
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _bullets(lines, empty="- None") -> str:
    return "\n".join(f"- {line}" for line in lines) if lines else empty


class ReportWriter:
    """Builds project figures, asks the LLM for prose, stores an AIReport."""

    def __init__(self, gateway=None, prompt_registry=None):
        self.gateway = gateway
        self.prompt_registry = prompt_registry

    # ── Executive summary ─────────────────────────────────────────────────

    def summary(self, project, user, *, today: date | None = None) -> dict:
        """
        Returns:
            dict: summary, report (AIReport dict)

        Raises:
            AIProviderError: the gateway gave up after its retries.
        """
        today = today or date.today()
        tasks = Task.query.filter_by(project_id=project.id).all()
        milestones = Milestone.query.filter_by(project_id=project.id).all()
        spent = sum(e.amount or 0.0 for e in Expense.query.filter_by(project_id=project.id))

        messages = self.prompt_registry.render(
            "project_summary",
            project_name=project.name,
            status=project.status,
            budget=project.budget or 0,
            currency=project.currency,
            spent=round(spent, 2),
            progress=project.progress,
            start_date=project.start_date or "Not set",
            end_date=project.end_date or "Not set",
            task_total=len(tasks),
            task_completed=sum(1 for t in tasks if t.status == "completed"),
            task_overdue=sum(1 for t in tasks if t.is_overdue(today)),
            milestone_total=len(milestones),
            milestone_completed=sum(1 for m in milestones if m.status == "completed"),
        )
        response = self.gateway.chat(
            messages, purpose="project_summary", user=str(user.id), project_id=project.id,
        )
        content = response.get("content") or FALLBACK_SUMMARY

        report = self._store(project, user, "summary", content, None, response.get("model"))
        return {"summary": content, "report": report.to_dict()}

    # ── Weekly report ─────────────────────────────────────────────────────

    def collect_weekly_figures(self, project, *, today: date | None = None) -> dict:
        """Gather the task, milestone, team and money figures for the 7-day window."""
        today = today or date.today()
        week_ago = today - timedelta(days=REPORT_WINDOW_DAYS)
        next_week = today + timedelta(days=REPORT_WINDOW_DAYS)
        week_ago_dt = datetime.combine(week_ago, datetime.min.time(), tzinfo=timezone.utc)

        tasks = Task.query.filter_by(project_id=project.id).all()
        completed_this_week = [
            t for t in tasks
            if t.status == "completed" and (_aware(t.completed_at or t.updated_at) or week_ago_dt) >= week_ago_dt
        ]
        in_progress = [t for t in tasks if t.status == "in_progress"]
        overdue = [t for t in tasks if t.is_overdue(today)]
        due_next_week = [
            t for t in tasks
            if t.status not in ("completed", "cancelled") and t.due_date and today <= t.due_date <= next_week
        ]

        milestones = Milestone.query.filter_by(project_id=project.id).all()
        upcoming = sorted(
            (m for m in milestones if m.status != "completed" and today <= m.due_date <= next_week),
            key=lambda m: m.due_date,
        )

        members = ProjectMember.query.filter_by(project_id=project.id).all()
        expenses = Expense.query.filter_by(project_id=project.id).all()
        total_budget = project.budget or 0.0
        total_expenses = sum(e.amount or 0.0 for e in expenses)
        weekly_spending = sum(e.amount or 0.0 for e in expenses if e.expense_date and e.expense_date >= week_ago)
        utilization = round(total_expenses / total_budget * 100, 1) if total_budget > 0 else 0.0

        return {
            "today": today,
            "week_ago": week_ago,
            "task_total": len(tasks),
            "completed_this_week": completed_this_week,
            "in_progress": in_progress,
            "overdue": overdue,
            "due_next_week": due_next_week,
            "milestone_total": len(milestones),
            "milestone_completed": sum(1 for m in milestones if m.status == "completed"),
            "upcoming_milestones": upcoming,
            "member_count": len(members),
            "member_roles": sorted({m.role for m in members}),
            "total_budget": round(total_budget, 2),
            "total_expenses": round(total_expenses, 2),
            "remaining_budget": round(total_budget - total_expenses, 2),
            "budget_utilization": utilization,
            "weekly_spending": round(weekly_spending, 2),
        }

    def weekly_report(self, project, user, *, today: date | None = None) -> dict:
        """
        Returns:
            dict: report (Markdown), metadata, stored (AIReport dict)

        Raises:
            AIProviderError: the gateway gave up after its retries.
        """
        f = self.collect_weekly_figures(project, today=today)

        messages = self.prompt_registry.render(
            "weekly_report",
            report_date=f["today"].isoformat(),
            period_start=f["week_ago"].isoformat(),
            period_end=f["today"].isoformat(),
            project_name=project.name,
            client_name=project.client_name or "N/A",
            location=project.location or "N/A",
            status=project.status,
            progress=project.progress,
            start_date=project.start_date or "Not set",
            end_date=project.end_date or "Not set",
            member_count=f["member_count"],
            member_roles=", ".join(f["member_roles"]) or "N/A",
            task_total=f["task_total"],
            completed_this_week_count=len(f["completed_this_week"]),
            in_progress_count=len(f["in_progress"]),
            overdue_count=len(f["overdue"]),
            due_next_week_count=len(f["due_next_week"]),
            completed_this_week=_bullets([t.title for t in f["completed_this_week"]]),
            in_progress=_bullets([f"{t.title} ({t.progress}% complete)" for t in f["in_progress"][:5]]),
            overdue=_bullets([f"{t.title} (Due: {t.due_date})" for t in f["overdue"]]),
            milestone_total=f["milestone_total"],
            milestone_completed=f["milestone_completed"],
            upcoming_milestone_count=len(f["upcoming_milestones"]),
            upcoming_milestones=_bullets([f"{m.name} (Due: {m.due_date})" for m in f["upcoming_milestones"]]),
            currency=project.currency,
            total_budget=f["total_budget"],
            total_expenses=f["total_expenses"],
            remaining_budget=f["remaining_budget"],
            budget_utilization=f["budget_utilization"],
            weekly_spending=f["weekly_spending"],
        )
        response = self.gateway.chat(
            messages, purpose="weekly_report", user=str(user.id), project_id=project.id,
        )
        content = response.get("content") or FALLBACK_REPORT

        metadata = {
            "projectName": project.name,
            "reportDate": f["today"].isoformat(),
            "periodStart": f["week_ago"].isoformat(),
            "periodEnd": f["today"].isoformat(),
            "tasksCompleted": len(f["completed_this_week"]),
            "tasksInProgress": len(f["in_progress"]),
            "overdueTasks": len(f["overdue"]),
            "budgetUtilization": f["budget_utilization"],
            "weeklySpending": f["weekly_spending"],
        }
        report = self._store(project, user, "weekly_report", content, metadata, response.get("model"))
        return {"report": content, "metadata": metadata, "stored": report.to_dict()}

    # ── Storage ───────────────────────────────────────────────────────────

    @staticmethod
    def list_reports(project_id, report_type=None):
        q = AIReport.query.filter_by(project_id=project_id)
        if report_type:
            q = q.filter_by(report_type=report_type)
        return q.order_by(AIReport.created_at.desc(), AIReport.id.desc())

    @staticmethod
    def _store(project, user, report_type, content, metadata, model):
        report = AIReport(
            project_id=project.id,
            user_id=user.id,
            report_type=report_type,
            content=content,
            report_metadata=metadata,
            model=model,
        )
        db.session.add(report)
        db.session.flush()
        logger.info("Stored %s report %s for project %s", report_type, report.id, project.id)
        return report
