"""Candidate ordering."""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable, List

if TYPE_CHECKING:  # pragma: no cover
    from .models import Candidate


def rank_candidates(candidates: Iterable["Candidate"]) -> List["Candidate"]:
    """Order candidates by pixel area, largest first; ties keep discovery order."""
    return sorted(candidates, key=lambda candidate: candidate.quality, reverse=True)
