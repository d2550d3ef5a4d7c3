import pytest
import requests

from conftest import (
    LISTING_URL,
    FakeResponse,
    FakeSession,
    listing_markup,
    upload_markup,
)
from hires_finder.errors import Blocked, NetworkError, NoLargeImageFound
from hires_finder.models import Candidate, OutcomeKind
from hires_finder.search import (
    ResultScraper,
    Uploader,
    extract_candidates,
    find_large_image_url,
)


def test_find_large_image_url_picks_first_large_link_and_unescapes():
    url = find_large_image_url(upload_markup(), "https://google.com")
    assert url == LISTING_URL


def test_find_large_image_url_ignores_links_without_size_filter():
    assert find_large_image_url(upload_markup(with_large_link=False), "https://google.com") is None


def test_extract_candidates_skips_malformed_triples():
    body = '["https://a/x.jpg",100,200] junk ["https://b/y",abc,50]'
    candidates = extract_candidates(body)
    assert candidates == [Candidate.from_hint("https://a/x.jpg", 100, 200)]
    assert candidates[0].quality == 20000
    assert candidates[0].body is None


def test_extract_candidates_keeps_valid_entries_after_bad_ones():
    body = (
        '["https://bad.example/\\uZZZZ.jpg",10,10]'
        '["https://ok.example/a.png",30,40]'
        '["https://",5,5]'
    )
    assert [c.url for c in extract_candidates(body)] == ["https://ok.example/a.png"]


def test_extract_candidates_unescapes_js_strings():
    body = '["https://img.example/p?a\\u003d1\\x26b\\u003d2",600,800]'
    (candidate,) = extract_candidates(body)
    assert candidate.url == "https://img.example/p?a=1&b=2"
    assert (candidate.width, candidate.height) == (800, 600)


def test_extract_candidates_is_idempotent():
    body = listing_markup(
        ("https://a.example/1.jpg", 720, 1280),
        ("https://b.example/2.jpg", 1080, 1920),
    )
    assert extract_candidates(body) == extract_candidates(body)


def test_scrape_classifies_captcha_as_blocked(search_config):
    scraper = ResultScraper(search_config, FakeSession())
    markup = '<html><form id="captcha-form">unusual traffic</form></html>'
    outcome = scraper.scrape(markup)
    assert outcome.kind is OutcomeKind.BLOCKED
    with pytest.raises(Blocked):
        outcome.raise_for_failure()


def test_scrape_without_large_link_is_no_large_image(search_config):
    session = FakeSession()
    outcome = ResultScraper(search_config, session).scrape(upload_markup(with_large_link=False))
    assert outcome.kind is OutcomeKind.NO_LARGE_IMAGE
    assert session.calls == []
    with pytest.raises(NoLargeImageFound):
        outcome.raise_for_failure()


def test_scrape_returns_candidates_ranked_by_area(search_config):
    listing = listing_markup(
        ("https://a.example/small.jpg", 720, 1280),
        ("https://b.example/big.jpg", 1080, 1920),
        ("https://c.example/same.jpg", 1280, 720),
    )
    session = FakeSession({LISTING_URL: FakeResponse(text=listing)})
    outcome = ResultScraper(search_config, session).scrape(upload_markup())

    assert outcome.ok
    assert [c.url for c in outcome.candidates] == [
        "https://b.example/big.jpg",
        "https://a.example/small.jpg",
        "https://c.example/same.jpg",
    ]
    _, _, kwargs = session.calls[0]
    assert kwargs["headers"]["user-agent"] == search_config.user_agent
    assert kwargs["headers"]["referer"] == search_config.web_origin


def test_scrape_empty_listing_falls_back_to_no_large_image(search_config):
    session = FakeSession({LISTING_URL: FakeResponse(text="<html>nothing</html>")})
    outcome = ResultScraper(search_config, session).scrape(upload_markup())
    assert outcome.kind is OutcomeKind.NO_LARGE_IMAGE


def test_scrape_listing_transport_error_raises_network_error(search_config):
    session = FakeSession({LISTING_URL: requests.Timeout("slow")})
    with pytest.raises(NetworkError):
        ResultScraper(search_config, session).scrape(upload_markup())


def test_upload_posts_multipart_form(search_config):
    session = FakeSession({search_config.upload_url: FakeResponse(text="<html>ok</html>")})
    body = Uploader(search_config, session).upload(b"\x89PNG...", "photo.png")

    assert body == "<html>ok</html>"
    method, url, kwargs = session.calls[0]
    assert method == "POST"
    assert url == search_config.upload_url
    files = kwargs["files"]
    assert files["encoded_image"] == ("photo.png", b"\x89PNG...")
    assert files["image_url"] == (None, "")
    assert files["filename"] == (None, "")
    assert files["hl"] == (None, search_config.language)
    assert kwargs["headers"]["origin"] == search_config.web_origin
    assert "Mozilla" in kwargs["headers"]["user-agent"]


def test_upload_returns_body_for_error_status(search_config):
    session = FakeSession(
        {search_config.upload_url: FakeResponse(status_code=429, text="captcha page")}
    )
    assert Uploader(search_config, session).upload(b"data", "a.jpg") == "captcha page"


def test_upload_transport_failure_raises_network_error(search_config):
    session = FakeSession({search_config.upload_url: requests.ConnectionError("dns")})
    with pytest.raises(NetworkError):
        Uploader(search_config, session).upload(b"data", "a.jpg")
