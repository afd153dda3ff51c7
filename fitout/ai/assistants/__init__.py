"""
Fit-Out Dashboard
AI assistants.

    - ProjectChatAssistant: conversational help with project context
    - ReportWriter: executive summaries and weekly progress reports
    - TemplateAdvisor: ranks project templates for a described project
"""

from fitout.ai.assistants.project_chat import ProjectChatAssistant
from fitout.ai.assistants.report_writer import ReportWriter
from fitout.ai.assistants.template_advisor import TemplateAdvisor

__all__ = ["ProjectChatAssistant", "ReportWriter", "TemplateAdvisor"]
