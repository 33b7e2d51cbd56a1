# availability/errors.py


class AvailabilityError(Exception):
    """Base class for every failure raised while checking one location."""


class NoSourceMatched(AvailabilityError):
    def __init__(self, location_name):
        self.location_name = location_name
        super().__init__("No source found for this location")


class RateLimited(AvailabilityError):
    def __init__(self, source_name):
        self.source_name = source_name
        super().__init__("Rate limited - please try again later")


class FetchError(AvailabilityError):
    """A terminal failure of the single search-page request."""

    def __init__(self, source_name, message):
        self.source_name = source_name
        super().__init__(f"Scraping failed: {message}")


class FetchTimeout(FetchError):
    def __init__(self, source_name, timeout):
        self.timeout = timeout
        super().__init__(source_name, f"Request timeout after {timeout:g} seconds")


class FetchHTTPError(FetchError):
    def __init__(self, source_name, status_code, reason=""):
        self.status_code = status_code
        self.reason = reason
        super().__init__(source_name, f"HTTP {status_code}: {reason}".rstrip(": "))


class FetchTransportError(FetchError):
    pass


class ClassificationDegraded(AvailabilityError):
    """Malformed structured data; the classifier falls through to the next stage."""
