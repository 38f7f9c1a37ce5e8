"""
Triage Application Services
============================

Issue classification backed by an LLM.

The routing module only sees the IClassifier abstraction; it supplies its own
fallback when classification fails.
"""

import json
import time
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, Field, ValidationError, model_validator

from storedesk.config import TicketPriority, settings
from storedesk.core import ClassificationFailure, LLMException
from storedesk.infrastructure.llm import ILLMClient
from storedesk.shared.infrastructure.logging import get_logger
from storedesk.triage.domain import SUBCATEGORIES, ClassificationPromptBuilder, ClassificationResult, IssueCategory

logger = get_logger(__name__)


class IClassifier(ABC):
    """Interface for issue classification."""

    @abstractmethod
    async def classify(self, description: str) -> ClassificationResult:
        """
        Classify an issue description.

        Raises:
            ClassificationFailure: When no valid classification can be produced
        """


class ClassificationPayload(BaseModel):
    """Shape the model must answer with."""
    category: Literal["Facilities", "IT", "Equipment", "General"]
    subcategory: str = Field(..., min_length=1)
    priority: Literal["HIGH", "MEDIUM", "LOW"]
    confidence: float = Field(..., ge=0.0, le=1.0)
    reasoning: str = ""

    @model_validator(mode="after")
    def check_subcategory(self) -> "ClassificationPayload":
        """Subcategory must belong to the category; casing is normalized to the known name."""
        known = SUBCATEGORIES[IssueCategory(self.category)]
        for name in known:
            if name.lower() == self.subcategory.strip().lower():
                self.subcategory = name
                return self
        raise ValueError(f"Unknown subcategory '{self.subcategory}' for {self.category}")


def extract_json(content: str) -> str:
    """Strip markdown code fences around a JSON answer."""
    if "```json" in content:
        return content.split("```json")[1].split("```")[0].strip()
    if "```" in content:
        return content.split("```")[1].split("```")[0].strip()
    return content.strip()


class LLMClassificationService(IClassifier):
    """
    Service for issue classification using an LLM.

    Any transport, parsing or validation error surfaces as
    ClassificationFailure.
    """

    def __init__(self, llm_client: ILLMClient):
        self._llm = llm_client

    async def classify(self, description: str) -> ClassificationResult:
        start_time = time.perf_counter()

        messages = [
            {"role": "system", "content": ClassificationPromptBuilder.get_system_prompt()},
            {"role": "user", "content": ClassificationPromptBuilder.build_prompt(description)}
        ]

        try:
            response = await self._llm.chat_completion(
                messages=messages,
                temperature=settings.llm_temperature,
                max_tokens=settings.llm_max_tokens,
                operation="classification"
            )
        except LLMException as e:
            raise ClassificationFailure(f"Classification call failed: {e.message}")

        try:
            payload = ClassificationPayload(**json.loads(extract_json(response.content or "")))
        except json.JSONDecodeError as e:
            raise ClassificationFailure(f"Failed to parse classification response: {e}")
        except (ValidationError, TypeError) as e:
            raise ClassificationFailure(f"Invalid classification response: {e}")

        latency_ms = int((time.perf_counter() - start_time) * 1000)
        logger.info(
            "Issue classified",
            extra={
                "category": payload.category,
                "subcategory": payload.subcategory,
                "priority": payload.priority,
                "confidence": payload.confidence,
                "latency_ms": latency_ms
            }
        )

        return ClassificationResult(
            category=payload.category,
            subcategory=payload.subcategory,
            priority=TicketPriority(payload.priority),
            confidence=payload.confidence,
            reasoning=payload.reasoning,
            model_used=response.model,
            latency_ms=latency_ms,
            timestamp=datetime.now(timezone.utc)
        )
