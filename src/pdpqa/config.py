"""Run configuration and constants."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from pdpqa.llm.config import LLMEndpointConfig

DEFAULT_OUTPUT_DIR = "generated"
DEFAULT_TIMEOUT_MS = 10000
CART_UPDATE_WAIT_MS = 2000

# Share of executed tests that must pass for the run to count as a success.
SUCCESS_THRESHOLD = 0.7


@dataclass
class RunConfig:
    """Configuration for a single pipeline run."""

    product_url: str = ""
    catalog_path: str = ""
    output_dir: str = ""
    owl_browser_url: str = ""
    owl_browser_token: str = ""
    default_timeout_ms: int = DEFAULT_TIMEOUT_MS
    cart_update_wait_ms: int = CART_UPDATE_WAIT_MS
    llm: LLMEndpointConfig = field(default_factory=LLMEndpointConfig)

    def __post_init__(self) -> None:
        if not self.product_url:
            self.product_url = os.environ.get("TEST_PRODUCT_URL", "")
        if not self.catalog_path:
            self.catalog_path = os.environ.get("PDPQA_CATALOG", "")
        if not self.output_dir:
            self.output_dir = os.environ.get("PDPQA_OUTPUT_DIR", DEFAULT_OUTPUT_DIR)
        if not self.owl_browser_url:
            self.owl_browser_url = os.environ.get("OWL_BROWSER_URL", "")
        if not self.owl_browser_token:
            self.owl_browser_token = os.environ.get("OWL_BROWSER_TOKEN", "")

    @property
    def output_path(self) -> Path:
        return Path(self.output_dir)

    @property
    def uses_remote_browser(self) -> bool:
        return bool(self.owl_browser_url and self.owl_browser_token)
