"""
Triage Application Layer
=========================

Contains the classifier interface and its LLM-backed implementation.
"""

from storedesk.triage.application.services import (
    IClassifier,
    LLMClassificationService,
    ClassificationPayload,
    extract_json,
)

__all__ = [
    "IClassifier",
    "LLMClassificationService",
    "ClassificationPayload",
    "extract_json",
]
