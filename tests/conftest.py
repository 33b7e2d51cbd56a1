import sys
import os

ROOT_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
sys.path.insert(0, ROOT_DIR)

import pytest
from httpx import ASGITransport, AsyncClient

from availability.checker import AvailabilityChecker
from availability.models import SourceConfig
from availability.rate_limiter import SourceRateLimiter
from availability.registry import SourceRegistry


class FakeFetcher:
    """
    In-memory stand-in for availability.fetcher.Fetcher.

    Serves canned pages keyed by source name. A value that is an exception
    instance is raised instead of returned, which lets tests simulate
    timeouts, HTTP errors and transport failures per source.
    """

    def __init__(self, pages=None):
        self.pages = dict(pages or {})
        self.calls = []
        self.closed = False

    async def fetch(self, source, isbn):
        """
        Return (url, html) for a source, or raise the configured exception.

        Records every call as (source_name, isbn) in self.calls so tests can
        assert whether network I/O was attempted.
        """
        self.calls.append((source.name, isbn))
        page = self.pages.get(source.name, "<html></html>")
        if isinstance(page, BaseException):
            raise page
        return f"{source.base_url}/search?isbn={isbn}", page

    async def close(self):
        self.closed = True


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def sample_sources():
    """
    Source configurations used across the test suite.

    Returns:
        list[SourceConfig]: Four sources with the following characteristics:
            - "Toronto Public Library": JSON-LD enabled, status keywords
            - "Hamilton Public Library": regex selectors and literal phrases
            - "Indigo/Chapters": keyword fallback only, POST search
            - "Amazon Canada": keyword fallback only

    Note:
        Registry order follows list order; matcher tests rely on it only
        where a single source can qualify.
    """
    return [
        SourceConfig(
            name="Toronto Public Library",
            base_url="https://www.torontopubliclibrary.ca",
            search_endpoint="/search.jsp?Ntt={isbn}",
            structured_data={"json_ld": True},
            status_keywords={
                "available": ["instock", "available"],
                "unavailable": ["outofstock", "checked out"],
            },
            fallback_keywords={
                "available": ["on shelf", "available"],
                "unavailable": ["all copies in use", "on hold"],
            },
        ),
        SourceConfig(
            name="Hamilton Public Library",
            base_url="https://hpl.bibliocommons.com",
            search_endpoint="/v2/search?query={isbn}&searchType=keyword",
            selectors={
                "available": r"status-available, On shelf",
                "unavailable": r"status-unavailable, All copies in use",
            },
            literal_phrases={
                "required": ["Available", "Book", "Visit"],
                "forbidden": ["All copies in use", "Checked Out"],
            },
            rate_limit=2,
        ),
        SourceConfig(
            name="Indigo/Chapters",
            base_url="https://www.indigo.ca",
            search_endpoint="/en-ca/search?keywords={isbn}",
            method="post",
            fallback_keywords={
                "available": ["add to bag", "in stock", "ships within"],
                "unavailable": ["out of stock", "unavailable"],
            },
        ),
        SourceConfig(
            name="Amazon Canada",
            base_url="https://www.amazon.ca",
            search_endpoint="/s?k={isbn}",
            fallback_keywords={
                "available": ["add to cart"],
                "unavailable": ["currently unavailable"],
            },
        ),
    ]


@pytest.fixture
def registry(sample_sources):
    return SourceRegistry(sample_sources)


@pytest.fixture
def fake_fetcher():
    return FakeFetcher()


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def checker(registry, fake_fetcher, fake_clock):
    """
    AvailabilityChecker wired to the fake fetcher and a controllable clock.

    The rate limiter reads time from fake_clock, so tests move past a
    cooldown window with fake_clock.advance() instead of sleeping.
    """
    return AvailabilityChecker(
        registry,
        fetcher=fake_fetcher,
        rate_limiter=SourceRateLimiter(registry, clock=fake_clock),
    )


@pytest.fixture
async def client(monkeypatch, checker):
    """
    Async test client for the FastAPI app backed by the fake-fetcher checker.

    Patches api.main.get_checker so no SOURCES_FILE is read and no network
    request is made.
    """
    monkeypatch.setattr("api.main.get_checker", lambda: checker)

    from api.main import app

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
