"""
AI assistant tests — chat history, generated reports, usage log and
provider failure handling.

All calls go through the local stub provider (no API keys in tests).
"""

import json
from datetime import date, timedelta
from types import SimpleNamespace

import pytest

from fitout.ai.assistants import ProjectChatAssistant, ReportWriter, TemplateAdvisor
from fitout.ai.assistants.template_advisor import parse_suggestions
from fitout.ai.gateway import LLMGateway, LLMProvider, LocalStubProvider
from fitout.ai.prompt_registry import PromptRegistry
from fitout.models import db
from fitout.models.ai import AIChatMessage, AIUsageLog
from fitout.models.project import Project


class FailingProvider(LLMProvider):
    def __init__(self):
        self.calls = 0

    def chat(self, messages, model, **kwargs):
        self.calls += 1
        raise ConnectionError("provider down")


@pytest.fixture()
def failing_provider(app, monkeypatch):
    """Swap the app's AI singletons for ones wired to a provider that always fails."""
    provider = FailingProvider()
    gateway = LLMGateway(providers={"local": provider})
    registry = PromptRegistry()
    monkeypatch.setattr(app, "_ai_gateway", gateway, raising=False)
    monkeypatch.setattr(app, "_ai_chat_assistant",
                        ProjectChatAssistant(gateway=gateway, prompt_registry=registry), raising=False)
    monkeypatch.setattr(app, "_ai_report_writer",
                        ReportWriter(gateway=gateway, prompt_registry=registry), raising=False)
    monkeypatch.setattr(app, "_ai_template_advisor",
                        TemplateAdvisor(gateway=gateway, prompt_registry=registry), raising=False)
    monkeypatch.setattr("fitout.ai.gateway.time.sleep", lambda _s: None)
    return provider


# ═════════════════════════════════════════════════════════════════════════════
# Gateway
# ═════════════════════════════════════════════════════════════════════════════


class TestGateway:
    def test_falls_back_to_local_stub(self):
        gw = LLMGateway()
        assert gw.available_providers == ["local"]
        result = gw.chat([{"role": "user", "content": "hello"}], model="gpt-4o", purpose="test")
        assert result["provider"] == "local"
        assert result["model"] == "local-stub"
        log = AIUsageLog.query.one()
        assert log.success is True
        assert log.total_tokens == result["prompt_tokens"] + result["completion_tokens"]

    def test_stub_routes_by_prompt(self):
        stub = LocalStubProvider()
        weekly = stub.chat([{"role": "user", "content": "Generate a Weekly Progress Report"}])
        assert weekly["content"].startswith("# Weekly Progress Report")
        summary = stub.chat([{"role": "user", "content": "Generate an executive summary"}])
        assert summary["content"].startswith("## Executive Summary")

    def test_retries_then_raises(self, monkeypatch):
        from fitout.core.exceptions import AIProviderError

        sleeps = []
        monkeypatch.setattr("fitout.ai.gateway.time.sleep", sleeps.append)
        provider = FailingProvider()
        gw = LLMGateway(providers={"local": provider})
        with pytest.raises(AIProviderError):
            gw.chat([{"role": "user", "content": "hi"}], purpose="test")
        assert provider.calls == 3
        assert sleeps == [1, 2]
        log = AIUsageLog.query.one()
        assert log.success is False
        assert "provider down" in log.error_message


# ═════════════════════════════════════════════════════════════════════════════
# Chat
# ═════════════════════════════════════════════════════════════════════════════


class TestChat:
    def test_chat_stores_both_messages(self, client, admin_user):
        res = client.post("/api/v1/ai/chat", json={"message": "How do I track long-lead items?"})
        assert res.status_code == 200
        data = res.get_json()
        assert data["reply"]
        assert data["error"] is None
        assert data["model"] == "local-stub"
        assert data["message"]["role"] == "assistant"

        history = client.get("/api/v1/ai/chat/history").get_json()
        assert [m["role"] for m in history] == ["user", "assistant"]
        assert history[0]["content"] == "How do I track long-lead items?"
        assert history[0]["user_id"] == admin_user.id

    def test_empty_message_400(self, client):
        res = client.post("/api/v1/ai/chat", json={"message": "   "})
        assert res.status_code == 400
        assert AIChatMessage.query.count() == 0

    def test_project_scoped_history(self, client, project):
        client.post("/api/v1/ai/chat", json={"message": "General question"})
        client.post("/api/v1/ai/chat", json={"message": "Project question", "project_id": project["id"]})

        scoped = client.get(f"/api/v1/ai/chat/history?project_id={project['id']}").get_json()
        assert [m["content"] for m in scoped if m["role"] == "user"] == ["Project question"]
        assert len(client.get("/api/v1/ai/chat/history").get_json()) == 4

    def test_chat_on_foreign_project_forbidden(self, client_as, project, other_user):
        res = client_as(other_user).post("/api/v1/ai/chat",
                                         json={"message": "hi", "project_id": project["id"]})
        assert res.status_code == 403

    def test_clear_history_is_per_user(self, client, client_as, regular_user):
        client.post("/api/v1/ai/chat", json={"message": "Mine"})
        client_as(regular_user).post("/api/v1/ai/chat", json={"message": "Theirs"})

        assert client.delete("/api/v1/ai/chat/history").get_json() == {"deleted": 2}
        assert client.get("/api/v1/ai/chat/history").get_json() == []
        assert len(client_as(regular_user).get("/api/v1/ai/chat/history").get_json()) == 2

    def test_provider_failure_503_keeps_user_message(self, client, failing_provider):
        res = client.post("/api/v1/ai/chat", json={"message": "Are we on budget?"})
        assert res.status_code == 503
        assert res.get_json()["code"] == "ERR_AI_UNAVAILABLE"
        assert failing_provider.calls == 3

        stored = AIChatMessage.query.all()
        assert [(m.role, m.content) for m in stored] == [("user", "Are we on budget?")]
        log = AIUsageLog.query.one()
        assert log.success is False
        assert log.purpose == "project_chat"


# ═════════════════════════════════════════════════════════════════════════════
# Reports
# ═════════════════════════════════════════════════════════════════════════════


class TestReports:
    def test_summary_is_stored(self, client, project):
        res = client.post(f"/api/v1/projects/{project['id']}/ai/summary")
        assert res.status_code == 200
        data = res.get_json()
        assert data["summary"].startswith("## Executive Summary")
        assert data["report"]["report_type"] == "summary"
        assert data["report"]["metadata"] == {}

    def test_weekly_report_metadata(self, client, project):
        pid = project["id"]
        client.post(f"/api/v1/projects/{pid}/tasks", json={"title": "Joinery install", "status": "in_progress"})
        res = client.post(f"/api/v1/projects/{pid}/ai/weekly-report")
        assert res.status_code == 200
        data = res.get_json()
        assert data["report"].startswith("# Weekly Progress Report")

        meta = data["metadata"]
        assert set(meta) == {
            "projectName", "reportDate", "periodStart", "periodEnd", "tasksCompleted",
            "tasksInProgress", "overdueTasks", "budgetUtilization", "weeklySpending",
        }
        assert meta["projectName"] == "Harbour View Office"
        assert meta["tasksInProgress"] == 1
        assert data["stored"]["metadata"] == meta

    def test_list_reports_by_type(self, client, project):
        pid = project["id"]
        client.post(f"/api/v1/projects/{pid}/ai/summary")
        client.post(f"/api/v1/projects/{pid}/ai/weekly-report")

        assert client.get(f"/api/v1/projects/{pid}/ai/reports").get_json()["total"] == 2
        weekly = client.get(f"/api/v1/projects/{pid}/ai/reports?type=weekly_report").get_json()
        assert weekly["total"] == 1
        assert weekly["items"][0]["report_type"] == "weekly_report"
        assert client.get(f"/api/v1/projects/{pid}/ai/reports?type=memo").status_code == 400

    def test_report_failure_503_stores_nothing(self, client, project, failing_provider):
        res = client.post(f"/api/v1/projects/{project['id']}/ai/weekly-report")
        assert res.status_code == 503
        assert client.get(f"/api/v1/projects/{project['id']}/ai/reports").get_json()["total"] == 0

    def test_collect_weekly_figures(self, client, project):
        pid = project["id"]
        today = date.today()
        client.post(f"/api/v1/projects/{pid}/tasks", json={"title": "Ceiling grid", "status": "completed"})
        client.post(f"/api/v1/projects/{pid}/tasks", json={
            "title": "Joinery", "status": "in_progress", "due_date": (today - timedelta(days=1)).isoformat(),
        })
        client.post(f"/api/v1/projects/{pid}/tasks", json={
            "title": "Snagging", "due_date": (today + timedelta(days=3)).isoformat(),
        })
        client.post(f"/api/v1/projects/{pid}/expenses", json={
            "description": "Ceiling tiles", "amount": 5000, "status": "approved",
            "expense_date": (today - timedelta(days=2)).isoformat(),
        })
        client.post(f"/api/v1/projects/{pid}/expenses", json={
            "description": "Site hoarding", "amount": 3000, "status": "approved",
            "expense_date": (today - timedelta(days=30)).isoformat(),
        })

        figures = ReportWriter().collect_weekly_figures(db.session.get(Project, pid), today=today)
        assert [t.title for t in figures["completed_this_week"]] == ["Ceiling grid"]
        assert [t.title for t in figures["overdue"]] == ["Joinery"]
        assert [t.title for t in figures["due_next_week"]] == ["Snagging"]
        assert figures["total_expenses"] == 8000
        assert figures["weekly_spending"] == 5000
        assert figures["budget_utilization"] == 8.0
        assert figures["remaining_budget"] == 92000
        assert figures["week_ago"] == today - timedelta(days=7)


# ═════════════════════════════════════════════════════════════════════════════
# Template suggestions
# ═════════════════════════════════════════════════════════════════════════════


def _templates(*names):
    return [SimpleNamespace(id=i, name=name) for i, name in enumerate(names, 1)]


class TestTemplateSuggestions:
    def test_ranked_and_low_confidence_dropped(self, client):
        for name in ("Retail A", "Retail B", "Retail C", "Retail D", "Retail E"):
            client.post("/api/v1/templates", json={"name": name, "category": "Retail"})
        res = client.post("/api/v1/ai/template-suggestions",
                          json={"description": "Boutique shop in a mall", "budget": 150000})
        assert res.status_code == 200
        data = res.get_json()
        assert data["candidates"] == 5
        scores = [s["confidence_score"] for s in data["suggestions"]]
        assert scores == [90, 75, 60, 45]
        # newest template is listed first
        assert data["suggestions"][0]["template_name"] == "Retail E"
        assert AIUsageLog.query.filter_by(purpose="template_suggestions").count() == 1

    def test_private_template_of_other_user_not_offered(self, client, client_as, regular_user):
        client.post("/api/v1/templates", json={"name": "Admin private"})
        client_as(regular_user).post("/api/v1/templates", json={"name": "My office"})
        res = client_as(regular_user).post("/api/v1/ai/template-suggestions",
                                           json={"description": "Small office"})
        data = res.get_json()
        assert data["candidates"] == 1
        assert [s["template_name"] for s in data["suggestions"]] == ["My office"]

    def test_no_templates_no_call(self, client):
        res = client.post("/api/v1/ai/template-suggestions", json={"description": "Clinic"})
        assert res.get_json() == {"suggestions": [], "candidates": 0}
        assert AIUsageLog.query.count() == 0

    def test_description_required(self, client):
        res = client.post("/api/v1/ai/template-suggestions", json={"project_type": "office"})
        assert res.status_code == 400

    def test_provider_failure_503(self, client, failing_provider):
        client.post("/api/v1/templates", json={"name": "Retail A"})
        res = client.post("/api/v1/ai/template-suggestions", json={"description": "Shop"})
        assert res.status_code == 503
        assert res.get_json()["code"] == "ERR_AI_UNAVAILABLE"

    def test_parse_strips_fences_and_ignores_unknown_names(self):
        reply = (
            "```json\n"
            '[{"template_name": "retail a", "confidence_score": 80, "matching_reasons": "retail"},'
            ' {"template_name": "Warehouse", "confidence_score": 99}]\n'
            "```"
        )
        result = parse_suggestions(reply, _templates("Retail A"))
        assert result == [{"template_id": 1, "template_name": "Retail A",
                           "confidence_score": 80.0, "matching_reasons": ["retail"]}]

    def test_parse_non_json_gives_nothing(self):
        assert parse_suggestions("I would pick the retail one.", _templates("Retail A")) == []

    def test_parse_caps_suggestions(self):
        templates = _templates(*[f"T{i}" for i in range(8)])
        reply = json.dumps([{"template_name": t.name, "confidence_score": 50 + i}
                            for i, t in enumerate(templates)])
        result = parse_suggestions(reply, templates)
        assert len(result) == 5
        assert result[0]["template_name"] == "T7"


# ═════════════════════════════════════════════════════════════════════════════
# Usage
# ═════════════════════════════════════════════════════════════════════════════


class TestUsage:
    def test_usage_admin_only(self, client, client_as, regular_user):
        client.post("/api/v1/ai/chat", json={"message": "hello"})
        assert client_as(regular_user).get("/api/v1/ai/usage").status_code == 403

        data = client.get("/api/v1/ai/usage").get_json()
        assert data["total"] == 1
        assert data["summary"]["calls"] == 1
        assert data["summary"]["failed_calls"] == 0
        assert data["summary"]["total_tokens"] == data["items"][0]["total_tokens"]
        assert "local" in data["summary"]["providers"]

    def test_usage_filter_by_purpose(self, client, project):
        client.post("/api/v1/ai/chat", json={"message": "hello"})
        client.post(f"/api/v1/projects/{project['id']}/ai/summary")
        data = client.get("/api/v1/ai/usage?purpose=project_summary").get_json()
        assert data["total"] == 1
        assert data["items"][0]["project_id"] == project["id"]
