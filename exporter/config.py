"""
Purpose: Centralized configuration for the exporter.
Description: Loads environment variables (and `.env`) into an explicit ExportSession
that is handed to the client and the exporter. Nothing here writes back to the
process environment.
Key Functions/Classes: `ExportSession`, `load_session`, `get_api_key`.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Optional

from dotenv import load_dotenv

from .constants import DEFAULT_API_BASE, DEFAULT_OUTPUT_DIR, DEFAULT_TIMEOUT_SECONDS
from .pagination import PaginationConfig


# AIDEV-NOTE: Load env from .env if present to ease local dev.
load_dotenv()


def get_api_key() -> Optional[str]:
    key = os.getenv("BRAINTRUST_API_KEY")
    # A shell that exported an unset variable leaves the literal "undefined".
    if not key or key == "undefined":
        return None
    return key


def get_api_base() -> str:
    return os.getenv("BRAINTRUST_API_URL", DEFAULT_API_BASE).rstrip("/")


def get_output_dir() -> str:
    return os.getenv("BRAINTRUST_EXPORT_DIR", DEFAULT_OUTPUT_DIR)


def get_timeout_seconds() -> float:
    raw = os.getenv("BRAINTRUST_REQUEST_TIMEOUT")
    return float(raw) if raw else DEFAULT_TIMEOUT_SECONDS


@dataclass
class ExportSession:
    api_key: Optional[str] = None
    api_base: str = DEFAULT_API_BASE
    output_dir: str = DEFAULT_OUTPUT_DIR
    # Project name or id selected for export.
    project: Optional[str] = None
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    pagination: PaginationConfig = field(default_factory=PaginationConfig)

    @property
    def has_credentials(self) -> bool:
        return bool(self.api_key)


def load_session(**overrides: Any) -> ExportSession:
    """Build a session from the environment; non-None overrides take precedence."""
    values = {
        "api_key": get_api_key(),
        "api_base": get_api_base(),
        "output_dir": get_output_dir(),
        "project": os.getenv("BRAINTRUST_PROJECT") or None,
        "timeout_seconds": get_timeout_seconds(),
    }
    values.update({k: v for k, v in overrides.items() if v is not None})
    return ExportSession(**values)
