"""
Triage Infrastructure Layer
============================

Builds the configured classifier from settings.
"""

from storedesk.infrastructure.llm import build_llm_client
from storedesk.triage.application import IClassifier, LLMClassificationService


def build_classifier(provider: str | None = None) -> IClassifier:
    """Build the LLM-backed classifier for the configured provider."""
    return LLMClassificationService(build_llm_client(provider))


__all__ = ["build_classifier"]
