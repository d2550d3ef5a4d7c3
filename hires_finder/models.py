"""Data models used throughout the search pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Optional, Sequence, Tuple

from .errors import Blocked, ImageIOError, NoLargeImageFound
from .ranking import rank_candidates


@dataclass(frozen=True)
class Candidate:
    """A discovered or fallback image considered as a replacement."""

    url: str
    body: Optional[bytes] = field(default=None, repr=False)
    extension: Optional[str] = None
    width: int = 0
    height: int = 0

    def __post_init__(self) -> None:
        if self.width < 0 or self.height < 0:
            raise ValueError(
                f"Candidate dimensions must be non-negative: {self.width}x{self.height}"
            )

    @property
    def quality(self) -> int:
        return self.height * self.width

    @property
    def is_fetched(self) -> bool:
        return self.body is not None

    @classmethod
    def from_hint(cls, url: str, height: int, width: int) -> "Candidate":
        """Build an unfetched candidate from dimensions claimed by the listing."""
        return cls(url=url, width=width, height=height)

    def with_payload(
        self, body: bytes, extension: str, width: int, height: int
    ) -> "Candidate":
        """Return a copy carrying decoded bytes; quality follows the new size."""
        return replace(self, body=body, extension=extension, width=width, height=height)


class OutcomeKind(str, Enum):
    FOUND = "found"
    NO_LARGE_IMAGE = "no_large_image"
    BLOCKED = "blocked"


@dataclass(frozen=True)
class SearchOutcome:
    """Result of scraping one upload response."""

    kind: OutcomeKind
    candidates: Sequence[Candidate] = ()

    @classmethod
    def found(cls, candidates: Sequence[Candidate]) -> "SearchOutcome":
        if not candidates:
            raise ValueError("A successful outcome needs at least one candidate")
        return cls(OutcomeKind.FOUND, tuple(rank_candidates(candidates)))

    @classmethod
    def no_large_image(cls) -> "SearchOutcome":
        return cls(OutcomeKind.NO_LARGE_IMAGE)

    @classmethod
    def blocked(cls) -> "SearchOutcome":
        return cls(OutcomeKind.BLOCKED)

    @property
    def ok(self) -> bool:
        return self.kind is OutcomeKind.FOUND

    def raise_for_failure(self) -> None:
        """Raise the exception matching a classified failure, if any."""
        if self.kind is OutcomeKind.BLOCKED:
            raise Blocked("Search service served a captcha challenge")
        if self.kind is OutcomeKind.NO_LARGE_IMAGE:
            raise NoLargeImageFound("There is no large image")


@dataclass
class SourceImage:
    """The local file under consideration."""

    path: Path
    width: int
    height: int
    extension: str
    _body: Optional[bytes] = field(default=None, repr=False)

    def read_bytes(self) -> bytes:
        """Load the file contents on first use."""
        if self._body is None:
            try:
                self._body = self.path.read_bytes()
            except OSError as exc:
                raise ImageIOError(f"Failed to read {self.path}: {exc}") from exc
        return self._body

    def as_candidate(self) -> Candidate:
        """Wrap the original file as a fallback candidate."""
        return Candidate(
            url=str(self.path),
            body=self.read_bytes(),
            extension=self.extension,
            width=self.width,
            height=self.height,
        )


class Phase(str, Enum):
    """States of the per-file selection state machine."""

    START = "start"
    UPLOADED = "uploaded"
    SCRAPED = "scraped"
    COPYING = "copying"
    SELECTING = "selecting"
    DONE = "done"
    SAVED = "saved"
    SKIPPED = "skipped"
    FATAL = "fatal"


TERMINAL_PHASES = frozenset({Phase.SAVED, Phase.SKIPPED, Phase.FATAL})


@dataclass
class FileReport:
    """Final state of one source image, for summary reporting."""

    path: Path
    phase: Phase
    output_path: Optional[Path] = None
    error: Optional[Exception] = None
    copied: bool = False
    original_size: Optional[Tuple[int, int]] = None
    final_size: Optional[Tuple[int, int]] = None
