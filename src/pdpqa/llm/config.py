"""LLM endpoint configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_MODEL = "gpt-4o"


@dataclass
class LLMEndpointConfig:
    """Connection settings for an OpenAI-compatible chat completions endpoint."""

    base_url: str = ""
    api_key: str = ""
    model: str = ""
    timeout_s: float = 60.0
    vision_detail: str = "low"
    max_tokens: int = 2048

    def __post_init__(self) -> None:
        if not self.base_url:
            self.base_url = os.environ.get("PDPQA_LLM_BASE_URL", DEFAULT_BASE_URL)
        if not self.api_key:
            self.api_key = os.environ.get("PDPQA_LLM_API_KEY") or os.environ.get("OPENAI_API_KEY", "")
        if not self.model:
            self.model = os.environ.get("PDPQA_LLM_MODEL", DEFAULT_MODEL)
        self.base_url = self.base_url.rstrip("/")
