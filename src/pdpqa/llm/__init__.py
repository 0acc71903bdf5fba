"""
LLM integration for page analysis.

Provides the OpenAI-compatible chat client and the page assistant used for
capability detection (structured extraction) and AI element discovery.
"""

from pdpqa.llm.assistant import (
    ObservedElement,
    PageAssistant,
    parse_extraction,
    parse_observation,
    strip_model_wrapping,
)
from pdpqa.llm.client import ChatCompletion, ChatMessage, LLMClient, LLMClientError
from pdpqa.llm.config import LLMEndpointConfig

__all__ = [
    "ChatCompletion",
    "ChatMessage",
    "LLMClient",
    "LLMClientError",
    "LLMEndpointConfig",
    "ObservedElement",
    "PageAssistant",
    "parse_extraction",
    "parse_observation",
    "strip_model_wrapping",
]
