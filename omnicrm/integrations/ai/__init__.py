"""LLM agents used by the OmniMomentum inbox."""

from .inbox_processor import InboxAIProcessor, fallback_categorization, fallback_processing, processor_summary

__all__ = ["InboxAIProcessor", "fallback_categorization", "fallback_processing", "processor_summary"]
