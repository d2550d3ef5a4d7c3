"""Exception types raised by the search and selection pipeline."""

from __future__ import annotations


class HiresFinderError(Exception):
    """Base class for every error raised by hires_finder."""


class NetworkError(HiresFinderError):
    """Transport failure (DNS, connection, timeout) talking to the search service."""


class DecodeError(HiresFinderError):
    """Bytes are not a supported raster image."""


class FetchError(HiresFinderError):
    """A single candidate could not be downloaded."""


class NoLargeImageFound(HiresFinderError):
    """The search succeeded but exposed no large-image result listing."""


class Blocked(HiresFinderError):
    """The search service answered with an anti-automation challenge."""


class ImageIOError(HiresFinderError, OSError):
    """Local read or write failure."""
