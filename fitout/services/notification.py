"""
Fit-Out Dashboard
Notification Service.

Central service for creating, fanning out and querying in-app notifications.
Domain services call the ``notify_*`` helpers on task, milestone, member and
budget events.

Transaction policy: methods flush, the route handler commits.
"""

from datetime import datetime, timezone

from fitout.models import db
from fitout.models.notification import Notification


class NotificationService:
    """Stateless service class for notification operations."""

    # ── Create ────────────────────────────────────────────────────────────

    @staticmethod
    def create(*, user_id, title, message="", type="general", project_id=None, link=None):
        """Create a single notification record for ``user_id`` (flushed)."""
        notif = Notification(
            user_id=user_id,
            project_id=project_id,
            type=type,
            title=title,
            message=message,
            link=link,
        )
        db.session.add(notif)
        db.session.flush()
        return notif

    @staticmethod
    def broadcast(*, user_ids, title, message="", type="general", project_id=None,
                  link=None, exclude_user_id=None):
        """
        Send the same notification to several users.

        Duplicate ids are collapsed; ``exclude_user_id`` (usually the actor)
        is skipped.

        Returns:
            List of created Notification instances.
        """
        notifications = []
        for uid in dict.fromkeys(user_ids):
            if uid is None or uid == exclude_user_id:
                continue
            notif = Notification(
                user_id=uid,
                project_id=project_id,
                type=type,
                title=title,
                message=message,
                link=link,
            )
            db.session.add(notif)
            notifications.append(notif)
        db.session.flush()
        return notifications

    # ── Query ─────────────────────────────────────────────────────────────

    @staticmethod
    def list_for_user(user_id, *, project_id=None, unread_only=False, limit=20, offset=0):
        """Retrieve notifications for a user, newest first."""
        q = Notification.query.filter_by(user_id=user_id)
        if project_id:
            q = q.filter_by(project_id=project_id)
        if unread_only:
            q = q.filter_by(is_read=False)
        total = q.count()
        items = (q.order_by(Notification.created_at.desc(), Notification.id.desc())
                 .offset(offset).limit(limit).all())
        return items, total

    @staticmethod
    def unread_count(user_id):
        return Notification.query.filter_by(user_id=user_id, is_read=False).count()

    # ── Actions ───────────────────────────────────────────────────────────

    @staticmethod
    def mark_read(notification_id, user_id):
        """Mark one of the user's notifications as read. Returns None if not theirs."""
        notif = db.session.get(Notification, notification_id)
        if notif is None or notif.user_id != user_id:
            return None
        notif.mark_read()
        db.session.flush()
        return notif

    @staticmethod
    def mark_all_read(user_id):
        """Mark all of the user's notifications as read. Returns the count updated."""
        now = datetime.now(timezone.utc)
        count = (Notification.query
                 .filter_by(user_id=user_id, is_read=False)
                 .update({"is_read": True, "read_at": now}, synchronize_session="fetch"))
        db.session.flush()
        return count

    @staticmethod
    def delete(notification_id, user_id):
        """Delete one of the user's notifications. Returns False if not theirs."""
        notif = db.session.get(Notification, notification_id)
        if notif is None or notif.user_id != user_id:
            return False
        db.session.delete(notif)
        db.session.flush()
        return True

    # ── Domain helpers ────────────────────────────────────────────────────

    @staticmethod
    def notify_task_assigned(task):
        return NotificationService.create(
            user_id=task.assignee_id,
            title="New Task Assigned",
            message=f"You have been assigned: {task.title}",
            type="task_assigned",
            project_id=task.project_id,
            link=f"/projects/{task.project_id}/tasks/{task.id}",
        )

    @staticmethod
    def notify_task_status(task, old_status):
        return NotificationService.create(
            user_id=task.assignee_id,
            title="Task Updated",
            message=f"{task.title}: status changed from {old_status} to {task.status}",
            type="task_updated",
            project_id=task.project_id,
            link=f"/projects/{task.project_id}/tasks/{task.id}",
        )

    @staticmethod
    def notify_comment_added(task, comment, author_name):
        return NotificationService.create(
            user_id=task.assignee_id,
            title="New Comment",
            message=f"{author_name or 'Someone'} commented on {task.title}: {comment.content[:200]}",
            type="comment_added",
            project_id=task.project_id,
            link=f"/projects/{task.project_id}/tasks/{task.id}",
        )

    @staticmethod
    def notify_member_added(project, user_id, role):
        return NotificationService.create(
            user_id=user_id,
            title="Added to Project",
            message=f"You have been added to {project.name} as {role.replace('_', ' ')}",
            type="project_updated",
            project_id=project.id,
            link=f"/projects/{project.id}",
        )

    @staticmethod
    def notify_milestone_reached(milestone, user_ids, actor_id=None):
        return NotificationService.broadcast(
            user_ids=user_ids,
            title="Milestone Reached",
            message=f"{milestone.name} has been completed",
            type="milestone_reached",
            project_id=milestone.project_id,
            link=f"/projects/{milestone.project_id}/milestones",
            exclude_user_id=actor_id,
        )

    @staticmethod
    def notify_budget_alert(project, user_ids, utilization):
        return NotificationService.broadcast(
            user_ids=user_ids,
            title="Budget Alert",
            message=(
                f"{project.name} has used {utilization:.1f}% of its budget "
                f"({project.currency} {project.spent_amount:,.2f} of {project.budget:,.2f})"
            ),
            type="budget_alert",
            project_id=project.id,
            link=f"/projects/{project.id}/budget",
        )
