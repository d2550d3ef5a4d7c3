"""High-level orchestration: search, select and save one image at a time."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Callable, Dict, List, Optional, Set

import requests

from .config import RunConfig, SearchConfig
from .errors import Blocked, DecodeError, FetchError, ImageIOError, NetworkError
from .images import CandidateFetcher, probe_image
from .models import (
    TERMINAL_PHASES,
    Candidate,
    FileReport,
    OutcomeKind,
    Phase,
    SearchOutcome,
    SourceImage,
)
from .search import ResultScraper, Uploader
from .utils import build_output_path, iter_source_images

logger = logging.getLogger("hires_finder")


@dataclass(frozen=True)
class PipelineState:
    """Tagged value handed from one phase of the selection state machine to the next."""

    phase: Phase
    source: SourceImage
    markup: Optional[str] = None
    outcome: Optional[SearchOutcome] = None
    chosen: Optional[Candidate] = None
    copied: bool = False
    output_path: Optional[Path] = None
    error: Optional[Exception] = None
    run_fatal: bool = False

    @property
    def is_terminal(self) -> bool:
        return self.phase in TERMINAL_PHASES

    def to_report(self) -> FileReport:
        final_size = None
        if self.chosen is not None:
            final_size = (self.chosen.width, self.chosen.height)
        return FileReport(
            path=self.source.path,
            phase=self.phase,
            output_path=self.output_path,
            error=self.error,
            copied=self.copied,
            original_size=(self.source.width, self.source.height),
            final_size=final_size,
        )


class SelectionPolicy:
    """Drive one source image from upload to a saved (or skipped) result."""

    def __init__(
        self,
        config: RunConfig,
        uploader: Uploader,
        scraper: ResultScraper,
        fetcher: CandidateFetcher,
    ) -> None:
        self.config = config
        self.uploader = uploader
        self.scraper = scraper
        self.fetcher = fetcher
        self._handlers: Dict[Phase, Callable[[PipelineState], PipelineState]] = {
            Phase.START: self.upload,
            Phase.UPLOADED: self.scrape,
            Phase.SCRAPED: self.route,
            Phase.COPYING: self.copy_original,
            Phase.SELECTING: self.select,
            Phase.DONE: self.write,
        }

    def run(self, source: SourceImage) -> PipelineState:
        state = PipelineState(phase=Phase.START, source=source)
        while not state.is_terminal:
            state = self.advance(state)
        return state

    def advance(self, state: PipelineState) -> PipelineState:
        """Run the handler for the current phase and return the next state."""
        if state.is_terminal:
            return state
        return self._handlers[state.phase](state)

    def upload(self, state: PipelineState) -> PipelineState:
        path = state.source.path
        logger.info("[%s] Uploading to image search server...", path)
        try:
            markup = self.uploader.upload(state.source.read_bytes(), path.name)
        except (NetworkError, ImageIOError) as exc:
            logger.error("[%s] Upload failed: %s", path, exc)
            return replace(state, phase=Phase.FATAL, error=exc)
        return replace(state, phase=Phase.UPLOADED, markup=markup)

    def scrape(self, state: PipelineState) -> PipelineState:
        try:
            outcome = self.scraper.scrape(state.markup or "")
        except NetworkError as exc:
            logger.error("[%s] Search results unavailable: %s", state.source.path, exc)
            return replace(state, phase=Phase.FATAL, error=exc)
        return replace(state, phase=Phase.SCRAPED, outcome=outcome)

    def route(self, state: PipelineState) -> PipelineState:
        outcome = state.outcome
        if outcome is None or outcome.kind is OutcomeKind.NO_LARGE_IMAGE:
            return replace(state, phase=Phase.COPYING)
        if outcome.kind is OutcomeKind.BLOCKED:
            error = Blocked("Search service is refusing automated requests (captcha)")
            return replace(state, phase=Phase.FATAL, error=error, run_fatal=True)
        return replace(state, phase=Phase.SELECTING)

    def copy_original(self, state: PipelineState) -> PipelineState:
        path = state.source.path
        if not self.config.copy_fallback:
            logger.info("[%s] High resolution image not found, skipped", path)
            return replace(state, phase=Phase.SKIPPED)
        try:
            chosen = state.source.as_candidate()
        except ImageIOError as exc:
            logger.error("[%s] %s", path, exc)
            return replace(state, phase=Phase.FATAL, error=exc)
        logger.info("[%s] High resolution image not found, so just copied", path)
        return replace(state, phase=Phase.DONE, chosen=chosen, copied=True)

    def select(self, state: PipelineState) -> PipelineState:
        path = state.source.path
        candidates = state.outcome.candidates if state.outcome else ()
        attempted: Set[str] = set()
        for candidate in candidates:
            if candidate.url in attempted:
                continue
            attempted.add(candidate.url)
            logger.info("[%s] Image URL: %s", path, candidate.url)
            try:
                fetched = self.fetcher.fetch(candidate)
            except (FetchError, DecodeError) as exc:
                logger.warning(
                    "[%s] This URL is not available, trying the next one: %s", path, exc
                )
                continue
            return replace(state, phase=Phase.DONE, chosen=fetched)
        logger.warning(
            "[%s] None of %d candidate(s) could be downloaded", path, len(attempted)
        )
        return replace(state, phase=Phase.SKIPPED)

    def write(self, state: PipelineState) -> PipelineState:
        source = state.source
        chosen = state.chosen
        if chosen is None or not chosen.is_fetched:
            raise ValueError("Only a downloaded candidate can be written")

        extension = None if state.copied else chosen.extension
        destination = build_output_path(self.config.output_root, source.path, extension)
        if not state.copied:
            logger.info("[%s] Saving high resolution image...", source.path)
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            destination.write_bytes(chosen.body)
        except OSError as exc:
            error = ImageIOError(f"Failed to write {destination}: {exc}")
            logger.error("[%s] %s", source.path, error)
            return replace(state, phase=Phase.FATAL, error=error)

        logger.info(
            "[%s] Saved: %s (%dx%d -> %dx%d)",
            source.path,
            destination.name,
            source.width,
            source.height,
            chosen.width,
            chosen.height,
        )
        return replace(state, phase=Phase.SAVED, output_path=destination)


def build_policy(
    run_config: RunConfig,
    search_config: SearchConfig,
    session: Optional[requests.Session] = None,
) -> SelectionPolicy:
    """Wire the pipeline components around one shared HTTP session."""
    session = session or requests.Session()
    return SelectionPolicy(
        run_config,
        Uploader(search_config, session),
        ResultScraper(search_config, session),
        CandidateFetcher(search_config, session),
    )


def run_replacer(
    input_path: Path,
    run_config: RunConfig,
    search_config: SearchConfig,
    policy: Optional[SelectionPolicy] = None,
) -> List[FileReport]:
    """Process every supported image under ``input_path`` sequentially.

    Raises ``Blocked`` as soon as the search service serves a captcha; no
    further files are processed after that.
    """
    policy = policy or build_policy(run_config, search_config)
    reports: List[FileReport] = []
    for path in iter_source_images(input_path):
        logger.info("[%s] Getting original image info...", path)
        try:
            source = probe_image(path)
        except (DecodeError, ImageIOError) as exc:
            logger.warning("[%s] Cannot read original image: %s", path, exc)
            reports.append(FileReport(path=path, phase=Phase.FATAL, error=exc))
            continue

        state = policy.run(source)
        reports.append(state.to_report())
        if state.run_fatal:
            logger.error("[%s] Stopping run: %s", path, state.error)
            raise state.error
    return reports
