"""Image probing, downloading and validation utilities."""

from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import Optional, Tuple

import requests
from filetype import guess
from PIL import Image

from .config import SearchConfig
from .errors import DecodeError, FetchError, ImageIOError
from .models import Candidate, SourceImage

logger = logging.getLogger("hires_finder")

MAX_IMAGE_BYTES = 50 * 1024 * 1024
MIN_IMAGE_BYTES = 64
ALLOWED_IMAGE_TYPES = {"png", "jpg", "gif", "webp", "bmp", "tiff"}


def detect_image_format(data: bytes) -> Optional[str]:
    """Detect image type using filetype; returns lowercase extension."""
    kind = guess(data)
    if kind and kind.mime.startswith("image/"):
        ext = kind.extension.lower()
        if ext in ("jpeg", "jpe"):
            return "jpg"
        if ext == "tif":
            return "tiff"
        return ext
    return None


def infer_image_extension(content_type: Optional[str], data: bytes) -> Optional[str]:
    """Guess an image file extension from HTTP metadata or file signature."""
    detected = detect_image_format(data)
    if detected:
        return detected
    if not content_type:
        return None
    parts = content_type.split(";")[0].split("/")
    if len(parts) == 2 and parts[0] == "image":
        ext = parts[1].strip().lower()
        if ext == "jpeg":
            ext = "jpg"
        return ext
    return None


def decode_image(data: bytes, content_type: Optional[str] = None) -> Tuple[str, int, int]:
    """Decode raster bytes and return ``(extension, width, height)``.

    The extension comes from the file signature (falling back to the
    Content-Type header); the dimensions come from Pillow, which reads the
    image header and verifies the stream.
    """
    extension = infer_image_extension(content_type, data)
    if not extension or extension not in ALLOWED_IMAGE_TYPES:
        raise DecodeError(f"Unsupported image type (Content-Type={content_type})")
    try:
        with Image.open(io.BytesIO(data)) as image:
            width, height = image.size
            image.verify()
    except (OSError, SyntaxError, ValueError, Image.DecompressionBombError) as exc:
        raise DecodeError(f"Cannot decode {extension} image: {exc}") from exc
    return extension, width, height


def probe_image(path: Path) -> SourceImage:
    """Inspect a local image and return its decoded dimensions and format."""
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise ImageIOError(f"Failed to read {path}: {exc}") from exc
    extension, width, height = decode_image(data)
    logger.debug("Probed %s: %s %dx%d", path, extension, width, height)
    return SourceImage(
        path=path,
        width=width,
        height=height,
        extension=path.suffix.lstrip(".").lower() or extension,
    )


class CandidateFetcher:
    """Download candidate images and replace their claimed size with the real one."""

    def __init__(
        self,
        config: SearchConfig,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.config = config
        self.session = session or requests.Session()

    def fetch(self, candidate: Candidate) -> Candidate:
        try:
            resp = self.session.get(
                candidate.url,
                headers={"user-agent": self.config.user_agent},
                timeout=self.config.timeout,
            )
            resp.raise_for_status()
        except requests.RequestException as exc:
            raise FetchError(f"Failed to fetch image {candidate.url}: {exc}") from exc

        data = resp.content
        if len(data) > MAX_IMAGE_BYTES:
            raise FetchError(
                f"Image {candidate.url} larger than {MAX_IMAGE_BYTES} bytes"
            )
        if len(data) < MIN_IMAGE_BYTES:
            raise DecodeError(f"Response from {candidate.url} too small")

        content_type = resp.headers.get("Content-Type", "")
        extension, width, height = decode_image(data, content_type)
        return candidate.with_payload(data, extension, width, height)
