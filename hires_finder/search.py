"""Reverse image search: upload a picture and scrape the result listings."""

from __future__ import annotations

import html
import json
import logging
import re
from typing import List, Optional
from urllib.parse import urlparse

import requests

from .config import SearchConfig
from .errors import NetworkError
from .models import Candidate, SearchOutcome

logger = logging.getLogger("hires_finder")

# Anchor into the "visually similar" listing; the size filter lives in the tbs fragment.
SIMILAR_LINK_PATTERN = re.compile(r'(/search\?[^"]*?simg:[^"]*?)">')
# Result payloads embed ["<url>",height,width] triples inside inline scripts.
IMAGE_TRIPLE_PATTERN = re.compile(
    r'\["(https://(?:[^"\\]|\\.)+)",\s*([^,\]\s]+)\s*,\s*([^,\]\s]+)\s*\]'
)
_HEX_ESCAPE_PATTERN = re.compile(r"\\x([0-9a-fA-F]{2})")


def find_large_image_url(
    markup: str,
    origin: str,
    size_marker: str = ",isz:l",
) -> Optional[str]:
    """Return the absolute URL of the large-image listing, if the markup links one."""
    for match in SIMILAR_LINK_PATTERN.finditer(markup):
        fragment = match.group(1)
        if size_marker in fragment:
            return origin.rstrip("/") + html.unescape(fragment)
    return None


def _unescape_js_string(raw: str) -> str:
    normalized = _HEX_ESCAPE_PATTERN.sub(r"\\u00\1", raw)
    return json.loads(f'"{normalized}"')


def _is_absolute_url(value: str) -> bool:
    try:
        parsed = urlparse(value)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def extract_candidates(text: str) -> List[Candidate]:
    """Collect ``[url, height, width]`` triples in discovery order.

    Matches with a broken escape, an invalid URL or a non-numeric dimension
    are dropped; the rest of the text is still scanned.
    """
    candidates: List[Candidate] = []
    for match in IMAGE_TRIPLE_PATTERN.finditer(text):
        raw_url, raw_height, raw_width = match.groups()
        try:
            url = _unescape_js_string(raw_url)
            height = int(raw_height)
            width = int(raw_width)
        except ValueError:
            logger.debug("Skipping malformed result entry: %s", match.group(0)[:200])
            continue
        if height < 0 or width < 0 or not _is_absolute_url(url):
            logger.debug("Skipping invalid result entry: %s", match.group(0)[:200])
            continue
        candidates.append(Candidate.from_hint(url, height, width))
    return candidates


class Uploader:
    """Submit local images to the reverse image search upload endpoint."""

    def __init__(
        self,
        config: SearchConfig,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.config = config
        self.session = session or requests.Session()

    def upload(self, image_bytes: bytes, filename: str) -> str:
        """POST the image as multipart form data and return the response markup.

        The body is returned whatever the status code: captcha pages come
        back with error statuses and are classified from their markup.
        """
        files = {
            "encoded_image": (filename, image_bytes),
            "image_url": (None, ""),
            "filename": (None, ""),
            "hl": (None, self.config.language),
        }
        try:
            resp = self.session.post(
                self.config.upload_url,
                files=files,
                headers=self.config.headers(),
                timeout=self.config.timeout,
            )
        except requests.RequestException as exc:
            raise NetworkError(f"Upload of {filename} failed: {exc}") from exc
        if not resp.ok:
            logger.warning(
                "Upload of %s answered with HTTP %s", filename, resp.status_code
            )
        return resp.text


class ResultScraper:
    """Turn an upload response into ranked candidates or a classified failure."""

    def __init__(
        self,
        config: SearchConfig,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.config = config
        self.session = session or requests.Session()

    def scrape(self, markup: str) -> SearchOutcome:
        listing_url = find_large_image_url(
            markup, self.config.service_origin, self.config.large_size_marker
        )
        if listing_url is None:
            if self.config.captcha_marker in markup:
                return SearchOutcome.blocked()
            return SearchOutcome.no_large_image()

        logger.debug("Large image listing: %s", listing_url)
        candidates = extract_candidates(self._fetch_listing(listing_url))
        if not candidates:
            logger.info("Large image listing contained no usable results")
            return SearchOutcome.no_large_image()
        logger.debug("Extracted %d candidate(s)", len(candidates))
        return SearchOutcome.found(candidates)

    def _fetch_listing(self, url: str) -> str:
        try:
            resp = self.session.get(
                url,
                headers=self.config.headers(),
                timeout=self.config.timeout,
            )
        except requests.RequestException as exc:
            raise NetworkError(f"Failed to load result listing {url}: {exc}") from exc
        if not resp.ok:
            logger.warning("Result listing answered with HTTP %s", resp.status_code)
        return resp.text
