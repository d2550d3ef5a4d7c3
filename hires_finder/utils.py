"""Utility helpers for input discovery and output path handling."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterator, Optional

logger = logging.getLogger("hires_finder")

SUPPORTED_SUFFIXES = {".jpg", ".jpeg", ".png"}


def is_supported_image(path: Path) -> bool:
    return path.suffix.lower() in SUPPORTED_SUFFIXES


def iter_source_images(path: Path) -> Iterator[Path]:
    """Yield supported image files under ``path`` in a stable order."""
    if not path.exists():
        raise FileNotFoundError(f"Input path does not exist: {path}")
    if path.is_file():
        if is_supported_image(path):
            yield path
        else:
            logger.info("[%s] Skip !", path)
        return
    for child in sorted(path.rglob("*")):
        if not child.is_file():
            continue
        if is_supported_image(child):
            yield child
        else:
            logger.debug("[%s] Skip !", child)


def build_output_path(
    output_root: Path, source: Path, extension: Optional[str] = None
) -> Path:
    """Place ``source`` under ``output_root``, swapping in ``extension`` when given."""
    if extension is None:
        return output_root / source.name
    return output_root / f"{source.stem}.{extension.lstrip('.')}"
