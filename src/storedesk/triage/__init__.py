"""
Triage Module
=============

Bounded Context for issue classification.

Responsibilities:
- Classify store issues into category/subcategory/priority using an LLM
- Provide the fallback classification used when the model is unavailable
"""

__version__ = "1.0.0"
