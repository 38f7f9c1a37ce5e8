"""
Triage Domain Entities
======================

Domain entities for issue classification.

Contains pure Python business objects describing how a store issue was
classified and the prompt used to ask the model for it.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from storedesk.config import TicketPriority


class IssueCategory(str, Enum):
    """Top-level issue categories."""
    FACILITIES = "Facilities"
    IT = "IT"
    EQUIPMENT = "Equipment"
    GENERAL = "General"


SUBCATEGORIES = {
    IssueCategory.FACILITIES: ["Cold Storage", "Electrical", "Plumbing", "HVAC", "Structural"],
    IssueCategory.IT: ["POS Systems", "Network", "Computers", "Software"],
    IssueCategory.EQUIPMENT: ["Shopping Carts", "Shelving", "Security", "Cleaning"],
    IssueCategory.GENERAL: ["Maintenance", "Safety"],
}


@dataclass
class ClassificationResult:
    """
    Result of issue classification.

    Contains the category/subcategory/priority triple assigned by the model.
    """
    category: str
    subcategory: str
    priority: TicketPriority
    confidence: float  # 0.0 to 1.0
    reasoning: str
    model_used: str = "unknown"
    latency_ms: int = 0
    is_fallback: bool = False
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self):
        """Validate classification result."""
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError("Confidence must be between 0 and 1")


def fallback_classification(reason: str = "Fallback classification due to processing error") -> ClassificationResult:
    """Classification used whenever the classifier fails; never blocks ticket creation."""
    return ClassificationResult(
        category=IssueCategory.GENERAL.value,
        subcategory="Maintenance",
        priority=TicketPriority.MEDIUM,
        confidence=0.3,
        reasoning=reason,
        model_used="fallback",
        is_fallback=True,
    )


class ClassificationPromptBuilder:
    """Builds prompts for issue classification."""

    SYSTEM_PROMPT = """You are an expert maintenance issue classifier for retail stores.

Classify each issue description by category, subcategory and priority.

CATEGORIES & SUBCATEGORIES:
1. Facilities:
   - Cold Storage (freezers, refrigeration, cooling systems)
   - Electrical (lighting, power outlets, electrical systems)
   - Plumbing (leaks, water systems, drains)
   - HVAC (heating, air conditioning, ventilation)
   - Structural (doors, windows, flooring, walls)
2. IT:
   - POS Systems (point of sale terminals, checkout systems)
   - Network (wifi, internet, connectivity)
   - Computers (workstations, monitors, peripherals)
   - Software (applications, system errors)
3. Equipment:
   - Shopping Carts (cart issues, wheels, baskets)
   - Shelving (display racks, storage systems)
   - Security (cameras, alarms, access control)
   - Cleaning (floor cleaners, maintenance equipment)
4. General:
   - Maintenance (general repairs, miscellaneous)
   - Safety (hazards, emergency equipment)

PRIORITY RULES:
- HIGH: Safety hazards, product spoilage risk, complete system failures, customer-facing critical issues
- MEDIUM: Partial functionality loss, operational impact, non-critical system issues
- LOW: Cosmetic issues, minor inconveniences, scheduled maintenance

Respond ONLY in JSON format:
{
    "category": "Facilities",
    "subcategory": "Cold Storage",
    "priority": "HIGH",
    "confidence": 0.95,
    "reasoning": "brief explanation of the priority"
}"""

    @classmethod
    def build_prompt(cls, description: str) -> str:
        """Build classification prompt from the issue description."""
        return f"""Issue Description: "{description}"

Classify this issue (respond with JSON only):"""

    @classmethod
    def get_system_prompt(cls) -> str:
        """Get the system prompt for classification."""
        return cls.SYSTEM_PROMPT
