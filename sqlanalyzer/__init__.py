"""Evaluation harness comparing LLM-generated SQL against reference queries."""

__version__ = "0.1.0"
