# availability/fetcher.py
import asyncio
import logging
import os

import httpx
from dotenv import load_dotenv
from httpx import AsyncClient

from .errors import FetchHTTPError, FetchTimeout, FetchTransportError
from .models import ISBN_PLACEHOLDER

load_dotenv()
FETCH_TIMEOUT = float(os.getenv("FETCH_TIMEOUT", "15"))
USER_AGENT = os.getenv(
    "USER_AGENT",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36",
)

BROWSER_HEADERS = {
    "User-Agent": USER_AGENT,
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
    "Accept-Encoding": "gzip, deflate",
    "Connection": "keep-alive",
    "Upgrade-Insecure-Requests": "1",
}

logger = logging.getLogger("availability.fetcher")


def build_search_url(source, isbn):
    """
    Build the search page URL for an ISBN.

    Concatenates the source base_url with its search_endpoint and substitutes
    the ISBN for the first {isbn} placeholder. Nothing else in the template
    is touched.

    Args:
        source (SourceConfig): Source whose template is used
        isbn (str): ISBN to search for

    Returns:
        str: Absolute search URL
    """
    return source.base_url + source.search_endpoint.replace(ISBN_PLACEHOLDER, isbn, 1)


class Fetcher:
    def __init__(self, client=None, timeout=FETCH_TIMEOUT):
        self.timeout = timeout
        self.client = client or AsyncClient(
            timeout=timeout, follow_redirects=True, headers=BROWSER_HEADERS
        )

    async def close(self):
        """Close the underlying HTTP client."""
        await self.client.aclose()

    async def fetch(self, source, isbn):
        """
        Fetch the raw search result page of a source for an ISBN.

        Issues exactly one request using the source's HTTP method and the
        browser-like header set, bounded by a hard timeout. There are no
        retries.

        Args:
            source (SourceConfig): Source to query
            isbn (str): ISBN to search for

        Returns:
            tuple[str, str]: (search_url, response body text)

        Raises:
            FetchTimeout: The request did not complete within self.timeout
            FetchHTTPError: The server answered with a non-2xx status
            FetchTransportError: Any other transport failure
        """
        url = build_search_url(source, isbn)
        logger.info(f"Fetching {source.name}: {url}")
        try:
            resp = await asyncio.wait_for(
                self.client.request(source.method, url, headers=BROWSER_HEADERS),
                timeout=self.timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException):
            logger.warning(f"Timeout fetching {url}")
            raise FetchTimeout(source.name, self.timeout)
        except httpx.HTTPError as e:
            logger.warning(f"Fetch error {url}: {e}")
            raise FetchTransportError(source.name, str(e) or type(e).__name__) from e

        if not resp.is_success:
            logger.warning(f"HTTP {resp.status_code} from {url}")
            raise FetchHTTPError(source.name, resp.status_code, resp.reason_phrase)

        html = resp.text
        logger.info(f"Response received from {source.name}: {len(html)} characters")
        return url, html
