# availability/utils.py
import re
from datetime import datetime, timezone
from urllib.parse import urlparse


def utc_now():
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def split_patterns(selector):
    """
    Split a comma-separated selector string into individual patterns.

    Args:
        selector (str | None): Raw selector value from a source configuration,
            e.g. "Available,On shelf"

    Returns:
        list[str]: Stripped, non-empty patterns in their original order.
            Empty when selector is None or blank.

    Note:
        Empty entries (from stray or trailing commas) are dropped because an
        empty regular expression matches every page.
    """
    if not selector:
        return []
    return [p.strip() for p in selector.split(",") if p.strip()]


def hostname_of(url):
    """
    Extract the lower-cased hostname of a URL.

    Returns None for anything that does not parse into a URL with a host,
    including values without a scheme such as "www.example.com".
    """
    if not url:
        return None
    try:
        host = urlparse(url.strip()).hostname
    except ValueError:
        return None
    return host or None


def money_to_float(value):
    """
    Normalise a price value to a float.

    Accepts numbers or strings such as "$12.99" or "CAD 24.50". Everything
    except digits and the decimal point is stripped before conversion.

    Returns:
        float or None: The parsed price, or None if nothing usable remains
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    m = re.sub(r"[^0-9\.]", "", str(value))
    try:
        return float(m)
    except ValueError:
        return None
