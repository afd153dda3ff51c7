"""
Fit-Out Dashboard
Project Chat Assistant.

Chat pipeline:
    1. Load the user's recent history (optionally scoped to a project)
    2. Store the new user message
    3. Build the system prompt with project context
    4. Call LLM -> reply
    5. Store the assistant reply
"""

import logging

from fitout.models import db
from fitout.models.ai import AIChatMessage
from fitout.models.milestone import Milestone
from fitout.models.task import Task

logger = logging.getLogger(__name__)

FALLBACK_REPLY = "I apologize, but I was unable to generate a response."


class ProjectChatAssistant:
    """Conversational assistant for project managers, engineers and contractors."""

    def __init__(self, gateway=None, prompt_registry=None, history_limit: int = 10):
        self.gateway = gateway
        self.prompt_registry = prompt_registry
        self.history_limit = history_limit

    def chat(self, user, message: str, project=None) -> dict:
        """
        Send one user message and return the stored assistant reply.

        The user message is flushed before the LLM call so it survives a
        provider failure once the caller commits.

        Returns:
            dict: reply, message (assistant AIChatMessage dict), model, error

        Raises:
            AIProviderError: the gateway gave up after its retries.
        """
        result = {"reply": "", "message": None, "model": None, "error": None}

        message = (message or "").strip()
        if not message:
            result["error"] = "message is required"
            return result

        project_id = project.id if project else None
        history = self.get_history(user.id, project_id, limit=self.history_limit)

        db.session.add(AIChatMessage(user_id=user.id, project_id=project_id, role="user", content=message))
        db.session.flush()

        messages = self.prompt_registry.render(
            "project_chat", project_context=self._build_project_context(project),
        )
        messages.extend({"role": m.role, "content": m.content} for m in history)
        messages.append({"role": "user", "content": message})

        response = self.gateway.chat(
            messages, purpose="project_chat", user=str(user.id), project_id=project_id,
        )
        reply = response.get("content") or FALLBACK_REPLY

        assistant_msg = AIChatMessage(user_id=user.id, project_id=project_id, role="assistant", content=reply)
        db.session.add(assistant_msg)
        db.session.flush()

        result["reply"] = reply
        result["message"] = assistant_msg.to_dict()
        result["model"] = response.get("model")
        return result

    @staticmethod
    def get_history(user_id, project_id=None, limit: int = 50) -> list:
        """Most recent ``limit`` messages in chronological order."""
        q = AIChatMessage.query.filter_by(user_id=user_id)
        if project_id:
            q = q.filter_by(project_id=project_id)
        recent = q.order_by(AIChatMessage.created_at.desc(), AIChatMessage.id.desc()).limit(limit).all()
        return list(reversed(recent))

    @staticmethod
    def clear_history(user_id, project_id=None) -> int:
        q = AIChatMessage.query.filter_by(user_id=user_id)
        if project_id:
            q = q.filter_by(project_id=project_id)
        count = q.delete(synchronize_session="fetch")
        db.session.flush()
        return count

    @staticmethod
    def _build_project_context(project) -> str:
        if project is None:
            return ""
        tasks = Task.query.filter_by(project_id=project.id).all()
        completed = sum(1 for t in tasks if t.status == "completed")
        milestones = Milestone.query.filter_by(project_id=project.id).count()

        return (
            "\nCurrent Project Context:\n"
            f"- Project Name: {project.name}\n"
            f"- Status: {project.status}\n"
            f"- Budget: {project.budget or 0} {project.currency}\n"
            f"- Progress: {project.progress}%\n"
            f"- Start Date: {project.start_date or 'Not set'}\n"
            f"- End Date: {project.end_date or 'Not set'}\n"
            f"- Total Tasks: {len(tasks)}\n"
            f"- Completed Tasks: {completed}\n"
            f"- Milestones: {milestones}\n"
        )
