# availability/checker.py
import asyncio
import logging

from pydantic import ValidationError

from .classifier import classify
from .errors import FetchError, NoSourceMatched, RateLimited
from .fetcher import Fetcher
from .matcher import SourceMatcher
from .models import (
    AvailabilityResult,
    AvailabilityStatus,
    BatchReport,
    LocationDescriptor,
)
from .rate_limiter import SourceRateLimiter
from .registry import SourceRegistry

logger = logging.getLogger("availability")
logger.setLevel(logging.INFO)
handler = logging.StreamHandler()
handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s"))
logger.addHandler(handler)


def failure_result(isbn, source, status, error):
    """Build a fully populated result for a check that never classified a page."""
    return AvailabilityResult(
        isbn=isbn,
        source=source,
        status=status,
        copies_available=0,
        confidence=0.0,
        error=error,
    )


class AvailabilityChecker:
    """
    Answer "is this book available at this location?" for many locations.

    Owns the source registry, the matcher, the per-source rate limiter and
    the fetcher. Every check is isolated: whatever goes wrong for one
    location ends up in that location's result record.
    """

    def __init__(
        self, sources=(), fetcher=None, rate_limiter=None, matcher=None
    ):
        if isinstance(sources, SourceRegistry):
            self.registry = sources
        else:
            self.registry = SourceRegistry(sources)
        self.fetcher = fetcher or Fetcher()
        self.rate_limiter = rate_limiter or SourceRateLimiter(self.registry)
        self.matcher = matcher or SourceMatcher(self.registry)

    async def close(self):
        await self.fetcher.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    def list_sources(self):
        return self.registry.names()

    def resolve_source(self, location):
        """Return the source to query, or raise NoSourceMatched / RateLimited."""
        source = self.matcher.match(location)
        if source is None:
            raise NoSourceMatched(location.name)
        if self.rate_limiter.is_rate_limited(source.name):
            raise RateLimited(source.name)
        return source

    async def check_availability(self, location, isbn):
        """
        Check a single location for an ISBN.

        Matcher -> rate limiter -> fetcher -> classifier. Network I/O is
        skipped when no source matches or the source is cooling down. The
        rate limiter is only updated after a successful fetch.

        Args:
            location (LocationDescriptor | dict): The point of interest
            isbn (str): ISBN to look for

        Returns:
            AvailabilityResult: Always fully populated; failures are
                reported through status and error, never raised
        """
        try:
            location = LocationDescriptor.model_validate(location)
        except ValidationError as e:
            logger.warning(f"Invalid location {_location_name(location)!r}: {e}")
            return failure_result(
                isbn, _location_name(location), AvailabilityStatus.ERROR, str(e)
            )
        logger.info(f"Checking {location.name} for ISBN {isbn}")

        try:
            source = self.resolve_source(location)
        except NoSourceMatched as e:
            return failure_result(isbn, location.name, AvailabilityStatus.UNKNOWN, str(e))
        except RateLimited as e:
            return failure_result(
                isbn, e.source_name, AvailabilityStatus.RATE_LIMITED, str(e)
            )

        try:
            url, html = await self.fetcher.fetch(source, isbn)
            self.rate_limiter.record_success(source.name)
            verdict = classify(source, html)
        except FetchError as e:
            logger.warning(f"Check failed for {location.name}: {e}")
            return failure_result(isbn, source.name, AvailabilityStatus.ERROR, str(e))
        except Exception as e:
            logger.exception(f"Check failed for {location.name}: {e}")
            return failure_result(isbn, source.name, AvailabilityStatus.ERROR, str(e))

        result = AvailabilityResult(
            isbn=isbn,
            source=source.name,
            status=verdict.status,
            copies_available=verdict.copies_available,
            price=verdict.price,
            url=url,
            confidence=verdict.confidence,
        )
        logger.info(
            f"{source.name}: {result.status.value} (confidence {result.confidence:.2f})"
        )
        return result

    async def check_availability_batch(self, locations, isbn):
        """
        Check every location concurrently and assemble a BatchReport.

        Waits for all checks to finish; there is no short-circuiting and no
        batch deadline. Results keep the input order. Anything that escapes a
        single check becomes an error record for that location only.
        """
        locations = list(locations)
        tasks = [self.check_availability(loc, isbn) for loc in locations]
        outcomes = await asyncio.gather(*tasks, return_exceptions=True)

        results = []
        for loc, outcome in zip(locations, outcomes):
            if isinstance(outcome, BaseException):
                logger.error(f"Unhandled failure for {_location_name(loc)}: {outcome}")
                outcome = failure_result(
                    isbn, _location_name(loc), AvailabilityStatus.ERROR, str(outcome)
                )
            results.append(outcome)

        report = BatchReport(
            isbn=isbn,
            results=results,
            total_checked=len(results),
            available_count=sum(
                1 for r in results if r.status == AvailabilityStatus.AVAILABLE
            ),
        )
        logger.info(
            f"Checked {report.total_checked} locations for ISBN {isbn}, "
            f"{report.available_count} available"
        )
        return report


def _location_name(location):
    if isinstance(location, dict):
        return str(location.get("name", ""))
    return getattr(location, "name", str(location))
