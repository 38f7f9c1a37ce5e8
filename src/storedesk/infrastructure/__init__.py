"""
Infrastructure Package
======================

Database session lifecycle and LLM client adapters.
"""
