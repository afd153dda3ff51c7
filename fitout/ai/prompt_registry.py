"""
Fit-Out Dashboard
Prompt Registry.

Prompt template management with:
    - Built-in default templates
    - Optional YAML overrides loaded from ``AI_PROMPTS_DIR``
    - {{variable}} rendering

Usage:
    from fitout.ai.prompt_registry import PromptRegistry
    registry = PromptRegistry()
    messages = registry.render("project_summary", project_name="Harbour View", ...)
"""

import logging
import os
import re
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

# Default prompts directory (repo-level prompts/, optional)
_PROMPTS_DIR = os.getenv(
    "AI_PROMPTS_DIR",
    os.path.join(os.path.dirname(os.path.dirname(os.path.dirname(__file__))), "prompts"),
)


class PromptTemplate:
    """A single prompt template with metadata."""

    def __init__(self, name: str, version: str, system: str, user: str,
                 description: str = "", metadata: dict | None = None):
        self.name = name
        self.version = version
        self.system = system
        self.user = user
        self.description = description
        self.metadata = metadata or {}

    def render(self, **variables) -> list[dict]:
        """
        Render template with variables, returning chat messages.

        Variables are replaced using {{variable_name}} syntax.

        Returns:
            List of message dicts: [{"role": "system", "content": "..."}, ...]
        """
        system_rendered = self._substitute(self.system, variables)
        user_rendered = self._substitute(self.user, variables)

        messages = []
        if system_rendered.strip():
            messages.append({"role": "system", "content": system_rendered})
        if user_rendered.strip():
            messages.append({"role": "user", "content": user_rendered})
        return messages

    @staticmethod
    def _substitute(template: str, variables: dict) -> str:
        """Replace {{var}} placeholders with values."""
        def replacer(match):
            key = match.group(1).strip()
            return str(variables.get(key, f"{{{{{key}}}}}"))
        return re.sub(r'\{\{(\s*\w+\s*)\}\}', replacer, template)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "version": self.version,
            "description": self.description,
            "system_preview": self.system[:200],
            "user_preview": self.user[:200],
        }


class PromptRegistry:
    """
    Registry for loading and managing prompt templates.

    YAML files in the prompts directory override built-in templates with
    the same name and version.
    """

    def __init__(self, prompts_dir: str | None = None):
        self._prompts_dir = prompts_dir or _PROMPTS_DIR
        self._templates: dict[str, dict[str, PromptTemplate]] = {}  # name → {version → template}
        self._load_defaults()
        self._load_from_dir()

    def _load_defaults(self):
        for tpl in _DEFAULT_TEMPLATES:
            self._register(tpl)

    def _load_from_dir(self):
        """Load prompt templates from YAML files."""
        prompts_path = Path(self._prompts_dir)
        if not prompts_path.exists():
            logger.debug("Prompts directory not found: %s. Using defaults only.", self._prompts_dir)
            return

        for yaml_file in sorted(prompts_path.glob("*.yaml")):
            try:
                with open(yaml_file, "r", encoding="utf-8") as f:
                    data = yaml.safe_load(f)
            except (OSError, yaml.YAMLError) as e:
                logger.error("Failed to load prompt %s: %s", yaml_file.name, e)
                continue
            if not data or not isinstance(data, dict):
                continue

            tpl = PromptTemplate(
                name=data.get("name", yaml_file.stem),
                version=str(data.get("version", "v1")),
                system=data.get("system", ""),
                user=data.get("user", ""),
                description=data.get("description", ""),
                metadata=data.get("metadata", {}),
            )
            self._register(tpl)
            logger.info("Loaded prompt template: %s (%s) from %s", tpl.name, tpl.version, yaml_file.name)

    def _register(self, template: PromptTemplate):
        self._templates.setdefault(template.name, {})[template.version] = template

    def get(self, name: str, version: str = "v1") -> PromptTemplate | None:
        return self._templates.get(name, {}).get(version)

    def render(self, name: str, version: str = "v1", **variables) -> list[dict]:
        """
        Render a prompt template with variables.

        Raises:
            KeyError: If template not found.
        """
        tpl = self.get(name, version)
        if not tpl:
            raise KeyError(f"Prompt template not found: {name} {version}")
        return tpl.render(**variables)

    def list_templates(self) -> list[dict]:
        return [tpl.to_dict() for versions in self._templates.values() for tpl in versions.values()]


# ── Built-in Default Templates ────────────────────────────────────────────────

_DEFAULT_TEMPLATES = [
    PromptTemplate(
        name="project_chat",
        version="v1",
        description="System prompt for the project assistant chat",
        system=(
            "You are an AI assistant for a construction project management platform called "
            "Fit-Out Dashboard.\n"
            "You help project managers, engineers, and contractors with:\n"
            "- Project planning and scheduling advice\n"
            "- Budget optimization and cost control suggestions\n"
            "- Task prioritization and resource allocation\n"
            "- Risk identification and mitigation strategies\n"
            "- Progress reporting and status updates\n"
            "- Best practices for construction project management\n\n"
            "Be concise, professional, and actionable in your responses.\n"
            "{{project_context}}"
        ),
        user="",
    ),
    PromptTemplate(
        name="project_summary",
        version="v1",
        description="Executive summary of a single project",
        system=(
            "You are a construction project analyst. Generate a concise executive summary "
            "based on the project data provided."
        ),
        user=(
            "Generate an executive summary for this project:\n\n"
            "Project: {{project_name}}\n"
            "Status: {{status}}\n"
            "Budget: {{budget}} {{currency}}\n"
            "Spent: {{spent}} {{currency}}\n"
            "Progress: {{progress}}%\n"
            "Timeline: {{start_date}} to {{end_date}}\n\n"
            "Tasks: {{task_total}} total, {{task_completed}} completed, {{task_overdue}} overdue\n"
            "Milestones: {{milestone_total}} total, {{milestone_completed}} completed\n\n"
            "Provide:\n"
            "1. Overall status assessment\n"
            "2. Budget health\n"
            "3. Schedule status\n"
            "4. Key risks or concerns\n"
            "5. Recommended next steps"
        ),
    ),
    PromptTemplate(
        name="weekly_report",
        version="v1",
        description="Weekly progress report in Markdown",
        system=(
            "You are a professional construction project manager creating a weekly progress report.\n"
            "Generate a comprehensive, well-structured weekly report in Markdown format.\n"
            "Be specific with numbers and data provided. Include actionable insights and recommendations.\n"
            "Use professional language suitable for stakeholders and clients."
        ),
        user=(
            "Generate a Weekly Progress Report for the following project:\n\n"
            "**REPORT DATE:** {{report_date}}\n"
            "**REPORTING PERIOD:** {{period_start}} - {{period_end}}\n\n"
            "**PROJECT INFORMATION:**\n"
            "- Project Name: {{project_name}}\n"
            "- Client: {{client_name}}\n"
            "- Location: {{location}}\n"
            "- Current Status: {{status}}\n"
            "- Overall Progress: {{progress}}%\n"
            "- Project Timeline: {{start_date}} to {{end_date}}\n\n"
            "**TEAM:**\n"
            "- Total Team Members: {{member_count}}\n"
            "- Team Roles: {{member_roles}}\n\n"
            "**TASK SUMMARY:**\n"
            "- Total Tasks: {{task_total}}\n"
            "- Completed This Week: {{completed_this_week_count}}\n"
            "- Currently In Progress: {{in_progress_count}}\n"
            "- Overdue Tasks: {{overdue_count}}\n"
            "- Tasks Due Next Week: {{due_next_week_count}}\n\n"
            "**Tasks Completed This Week:**\n{{completed_this_week}}\n\n"
            "**Tasks In Progress:**\n{{in_progress}}\n\n"
            "**Overdue Tasks (Attention Required):**\n{{overdue}}\n\n"
            "**MILESTONE STATUS:**\n"
            "- Total Milestones: {{milestone_total}}\n"
            "- Completed: {{milestone_completed}}\n"
            "- Upcoming This Week: {{upcoming_milestone_count}}\n\n"
            "**Upcoming Milestones:**\n{{upcoming_milestones}}\n\n"
            "**FINANCIAL SUMMARY:**\n"
            "- Total Budget: {{currency}} {{total_budget}}\n"
            "- Total Spent: {{currency}} {{total_expenses}}\n"
            "- Remaining Budget: {{currency}} {{remaining_budget}}\n"
            "- Budget Utilization: {{budget_utilization}}%\n"
            "- Spending This Week: {{currency}} {{weekly_spending}}\n\n"
            "Please generate a professional weekly report with the following sections:\n"
            "1. **Executive Summary** (2-3 sentences overview)\n"
            "2. **Progress Highlights** (key accomplishments this week)\n"
            "3. **Work in Progress** (current activities)\n"
            "4. **Issues & Risks** (any concerns or blockers)\n"
            "5. **Financial Status** (budget health assessment)\n"
            "6. **Next Week's Priorities** (planned activities)\n"
            "7. **Recommendations** (actionable suggestions)\n\n"
            "Format the report professionally with clear headings and bullet points where appropriate."
        ),
    ),
    PromptTemplate(
        name="template_suggestions",
        version="v1",
        description="Rank project templates for a described fit-out project",
        system=(
            "You are a fit-out project planning expert. Match project requirements to the "
            "available project templates. Answer with JSON only."
        ),
        user=(
            "Recommend project templates for this project.\n\n"
            "Description: {{description}}\n"
            "Project type: {{project_type}}\n"
            "Budget: {{budget}}\n"
            "Location: {{location}}\n\n"
            "Available templates:\n{{templates}}\n\n"
            "Return a JSON array, best match first, of objects with keys "
            "\"template_name\" (exactly as listed), \"confidence_score\" (0-100) and "
            "\"matching_reasons\" (list of short strings)."
        ),
    ),
]
