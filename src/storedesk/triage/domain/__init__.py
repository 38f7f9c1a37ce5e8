"""
Triage Domain Layer
===================

Contains:
- Entities: ClassificationResult, IssueCategory
- Prompt building for the classifier

This layer is framework-agnostic and contains pure business logic.
"""

from storedesk.triage.domain.entities import (
    ClassificationResult,
    ClassificationPromptBuilder,
    IssueCategory,
    SUBCATEGORIES,
    fallback_classification,
)

__all__ = [
    "ClassificationResult",
    "ClassificationPromptBuilder",
    "IssueCategory",
    "SUBCATEGORIES",
    "fallback_classification",
]
