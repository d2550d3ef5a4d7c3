"""
Shared fixtures: in-memory images and a scripted stand-in for requests.Session.
"""

import io
from typing import Dict, List, Optional, Tuple, Union

import pytest
import requests
from PIL import Image

from hires_finder.config import RunConfig, SearchConfig
from hires_finder.images import CandidateFetcher
from hires_finder.pipeline import SelectionPolicy
from hires_finder.search import ResultScraper, Uploader


def make_image_bytes(width: int, height: int, fmt: str = "PNG", color=(200, 30, 30)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format=fmt)
    return buffer.getvalue()


class FakeResponse:
    def __init__(
        self,
        status_code: int = 200,
        content: bytes = b"",
        text: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        self.status_code = status_code
        self.content = content if text is None else text.encode("utf-8")
        self.text = text if text is not None else content.decode("latin-1")
        self.headers = headers or {}

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def raise_for_status(self) -> None:
        if not self.ok:
            raise requests.HTTPError(f"{self.status_code} Error", response=self)


Reply = Union[FakeResponse, Exception]


class FakeSession:
    """Answers requests from a URL -> response table and records every call."""

    def __init__(self, routes: Optional[Dict[str, Reply]] = None) -> None:
        self.routes: Dict[str, Reply] = dict(routes or {})
        self.calls: List[Tuple[str, str, dict]] = []

    def _reply(self, method: str, url: str, **kwargs) -> FakeResponse:
        self.calls.append((method, url, kwargs))
        if url not in self.routes:
            raise requests.ConnectionError(f"No route for {url}")
        reply = self.routes[url]
        if isinstance(reply, Exception):
            raise reply
        return reply

    def get(self, url: str, **kwargs) -> FakeResponse:
        return self._reply("GET", url, **kwargs)

    def post(self, url: str, **kwargs) -> FakeResponse:
        return self._reply("POST", url, **kwargs)

    def urls(self, method: str) -> List[str]:
        return [url for m, url, _ in self.calls if m == method]


LISTING_PATH = "/search?tbs=simg:CAESgQIJ&amp;tbm=isch&amp;tbs=simg:CAESgQIJ,isz:l"
LISTING_URL = "https://google.com/search?tbs=simg:CAESgQIJ&tbm=isch&tbs=simg:CAESgQIJ,isz:l"


def upload_markup(with_large_link: bool = True, extra: str = "") -> str:
    links = ['<a href="/search?q=related&amp;tbs=simg:CAESgQIJ">Similar</a>']
    if with_large_link:
        links.append(f'<a href="{LISTING_PATH}">Large</a>')
    return "<html><body>" + "".join(links) + extra + "</body></html>"


def listing_markup(*triples: Tuple[str, object, object]) -> str:
    entries = ",".join(f'["{url}",{height},{width}]' for url, height, width in triples)
    return f"<script>AF_initDataCallback({{data:[null,[{entries}]]}});</script>"


@pytest.fixture
def search_config() -> SearchConfig:
    return SearchConfig(timeout=5.0)


@pytest.fixture
def fake_session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def output_dir(tmp_path):
    return tmp_path / "result"


@pytest.fixture
def make_policy(search_config, fake_session, output_dir):
    def _make(copy_fallback: bool = True) -> SelectionPolicy:
        return SelectionPolicy(
            RunConfig(output_root=output_dir, copy_fallback=copy_fallback),
            Uploader(search_config, fake_session),
            ResultScraper(search_config, fake_session),
            CandidateFetcher(search_config, fake_session),
        )

    return _make
