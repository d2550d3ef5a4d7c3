"""Configuration objects and constants for the reverse image search."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

DEFAULT_UPLOAD_URL = "https://images.google.com/searchbyimage/upload"
DEFAULT_SERVICE_ORIGIN = "https://google.com"
DEFAULT_WEB_ORIGIN = "https://images.google.com/"
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/101.0.4951.54 Safari/537.36"
)
DEFAULT_LANGUAGE = "en"
DEFAULT_OUTPUT_DIR = "result"


@dataclass(frozen=True)
class SearchConfig:
    """HTTP settings shared read-only by every outbound request of a run."""

    upload_url: str = DEFAULT_UPLOAD_URL
    service_origin: str = DEFAULT_SERVICE_ORIGIN
    web_origin: str = DEFAULT_WEB_ORIGIN
    user_agent: str = DEFAULT_USER_AGENT
    language: str = DEFAULT_LANGUAGE
    timeout: Optional[float] = 30.0
    captcha_marker: str = "captcha"
    large_size_marker: str = ",isz:l"

    def headers(self) -> Dict[str, str]:
        """Browser-like headers expected by the search service."""
        return {
            "origin": self.web_origin,
            "referer": self.web_origin,
            "user-agent": self.user_agent,
        }


@dataclass
class RunConfig:
    """Top-level settings that control where and how results are written."""

    output_root: Path
    copy_fallback: bool = True
