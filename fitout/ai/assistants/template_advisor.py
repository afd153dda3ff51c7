"""
Fit-Out Dashboard
Template Advisor.

Ranks the caller's visible project templates against a described project.
The LLM answers with a JSON array; anything else yields no suggestions.
"""

import json
import logging

logger = logging.getLogger(__name__)

MIN_CONFIDENCE = 40
MAX_SUGGESTIONS = 5


def _template_line(template) -> str:
    tags = ", ".join(template.tags or []) or "none"
    return f"- {template.name} | category: {template.category or 'none'} | tags: {tags}"


def parse_suggestions(content: str, templates) -> list[dict]:
    """Decode the LLM reply into ranked suggestions for known templates."""
    text = (content or "").strip()
    if text.startswith("```"):
        text = text.strip("`")
        text = text[text.find("["):] if "[" in text else text
    try:
        raw = json.loads(text)
    except ValueError:
        logger.warning("Template suggestions reply is not JSON; ignoring it")
        return []
    if not isinstance(raw, list):
        return []

    by_name = {t.name.lower(): t for t in templates}
    suggestions = []
    for entry in raw:
        if not isinstance(entry, dict):
            continue
        template = by_name.get(str(entry.get("template_name", "")).strip().lower())
        try:
            confidence = float(entry.get("confidence_score", 0))
        except (TypeError, ValueError):
            continue
        if template is None or confidence < MIN_CONFIDENCE:
            continue
        reasons = entry.get("matching_reasons") or []
        suggestions.append({
            "template_id": template.id,
            "template_name": template.name,
            "confidence_score": confidence,
            "matching_reasons": [str(r) for r in reasons] if isinstance(reasons, list) else [str(reasons)],
        })
    suggestions.sort(key=lambda s: s["confidence_score"], reverse=True)
    return suggestions[:MAX_SUGGESTIONS]


class TemplateAdvisor:
    """Asks the LLM which templates fit a project description."""

    def __init__(self, gateway=None, prompt_registry=None):
        self.gateway = gateway
        self.prompt_registry = prompt_registry

    def suggest(self, user, templates, *, description: str, project_type: str = "",
                budget=None, location: str = "") -> list[dict]:
        """
        Returns:
            list of {template_id, template_name, confidence_score, matching_reasons}

        Raises:
            AIProviderError: the gateway gave up after its retries.
        """
        if not templates:
            return []
        messages = self.prompt_registry.render(
            "template_suggestions",
            description=description,
            project_type=project_type or "Not specified",
            budget=budget if budget is not None else "Not specified",
            location=location or "Not specified",
            templates="\n".join(_template_line(t) for t in templates),
        )
        response = self.gateway.chat(messages, purpose="template_suggestions", user=str(user.id))
        return parse_suggestions(response.get("content"), templates)
