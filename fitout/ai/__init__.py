"""
Fit-Out Dashboard
AI module.

Submodules:
    - gateway: LLM Gateway (provider routing, retry, cost tracking)
    - prompt_registry: prompt templates with optional YAML overrides
    - assistants: project chat and report writer
"""
