# availability/classifier.py
"""
Turn a raw search result page into an availability verdict.

The cascade has three stages, each with its own confidence:

    A. structured data (JSON-LD, schema.org microdata), only when the source
       declares it; accepted when its confidence exceeds 0.5
    B. regex selectors, then the source's literal phrases
    C. keyword scoring, only when B left the confidence below 0.5

Stage C only ever replaces status and confidence.
"""
import json
import logging
import re
from dataclasses import dataclass
from typing import Optional

from bs4 import BeautifulSoup

from .errors import ClassificationDegraded
from .models import AvailabilityStatus
from .utils import money_to_float, split_patterns

logger = logging.getLogger("availability.classifier")

PROMOTION_THRESHOLD = 0.5
STRUCTURED_CONFIDENCE = 0.8
STRUCTURED_UNMATCHED_CONFIDENCE = 0.3
SELECTOR_CONFIDENCE = 0.8
LITERAL_PHRASE_CONFIDENCE = 0.9
KEYWORD_POINT = 0.2
KEYWORD_CAP = 0.7

STRUCTURED_TYPES = ("Book", "Product")


@dataclass
class Classification:
    status: AvailabilityStatus = AvailabilityStatus.UNKNOWN
    confidence: float = 0.0
    copies_available: int = 0
    price: Optional[float] = None


def classify(source, html):
    """
    Run the full cascade for one page.

    Args:
        source (SourceConfig): Source the page was fetched from
        html (str): Raw response body

    Returns:
        Classification: Status, confidence, copies and price
    """
    if source.structured_data.enabled:
        structured = classify_structured_data(html, source)
        if structured.confidence > PROMOTION_THRESHOLD:
            logger.debug(f"{source.name}: structured data verdict {structured}")
            return structured

    result = classify_selectors(html, source)

    if result.confidence < PROMOTION_THRESHOLD:
        keyword = classify_keywords(html, source)
        if keyword.confidence > result.confidence:
            logger.debug(f"{source.name}: keyword verdict {keyword}")
            result.status = keyword.status
            result.confidence = keyword.confidence

    return result


def classify_availability(availability, source):
    """
    Classify a structured-data availability string such as
    "https://schema.org/InStock" against the source status keywords.
    Available keywords are checked first; the first hit wins.
    """
    text = str(availability).lower()
    for keyword in source.status_keywords.available:
        if keyword and keyword.lower() in text:
            return Classification(
                AvailabilityStatus.AVAILABLE, STRUCTURED_CONFIDENCE, 1
            )
    for keyword in source.status_keywords.unavailable:
        if keyword and keyword.lower() in text:
            return Classification(
                AvailabilityStatus.UNAVAILABLE, STRUCTURED_CONFIDENCE, 0
            )
    return Classification(
        AvailabilityStatus.UNKNOWN, STRUCTURED_UNMATCHED_CONFIDENCE, 0
    )


# Stage A


def classify_structured_data(html, source):
    """
    Stage A: read availability from JSON-LD and schema.org microdata.

    Args:
        html (str): Raw response body
        source (SourceConfig): Source whose structured_data flags and
            status_keywords drive the stage

    Returns:
        Classification: The first candidate classified with confidence
            above 0.5 (with its price), otherwise an empty verdict

    Note:
        Malformed JSON-LD blocks are skipped, never raised.
    """
    soup = BeautifulSoup(html, "lxml")
    candidates = []
    if source.structured_data.json_ld or source.structured_data.schema_org:
        candidates.extend(_json_ld_offers(soup))
    if source.structured_data.schema_org:
        candidates.extend(_microdata_offers(soup))

    for availability, price in candidates:
        result = classify_availability(availability, source)
        if result.confidence > PROMOTION_THRESHOLD:
            result.price = money_to_float(price)
            return result
    return Classification()


def _json_ld_offers(soup):
    """Yield (availability, price) for every Book or Product in the JSON-LD blocks."""
    for script in soup.find_all("script", type="application/ld+json"):
        try:
            data = _load_json_ld(script.string or script.get_text())
        except ClassificationDegraded as e:
            logger.debug(f"Skipping JSON-LD block: {e}")
            continue
        for item in _iter_items(data):
            if not _is_structured_type(item.get("@type")):
                continue
            offers = item.get("offers")
            if isinstance(offers, list):
                offers = next((o for o in offers if isinstance(o, dict)), None)
            if not isinstance(offers, dict):
                offers = {}
            availability = offers.get("availability") or item.get("availability")
            if availability:
                yield availability, offers.get("price") or item.get("price")


def _load_json_ld(text):
    text = (text or "").strip()
    if not text:
        raise ClassificationDegraded("empty JSON-LD block")
    try:
        return json.loads(text)
    except ValueError as e:
        raise ClassificationDegraded(f"malformed JSON-LD: {e}") from e


def _iter_items(data):
    if isinstance(data, list):
        for entry in data:
            yield from _iter_items(entry)
    elif isinstance(data, dict):
        yield data
        if "@graph" in data:
            yield from _iter_items(data["@graph"])


def _is_structured_type(value):
    types = value if isinstance(value, list) else [value]
    return any(t in STRUCTURED_TYPES for t in types if isinstance(t, str))


def _microdata_offers(soup):
    """Yield (availability, price) for every Book or Product microdata scope."""
    for scope in soup.find_all(attrs={"itemtype": True}):
        itemtype = scope.get("itemtype") or ""
        if not any(itemtype.rstrip("/").endswith(t) for t in STRUCTURED_TYPES):
            continue
        el = scope.find(attrs={"itemprop": "availability"})
        if el is None:
            continue
        availability = el.get("href") or el.get("content") or el.get_text(strip=True)
        price_el = scope.find(attrs={"itemprop": "price"})
        price = None
        if price_el is not None:
            price = price_el.get("content") or price_el.get_text(strip=True)
        if availability:
            yield availability, price


# Stage B


def classify_selectors(html, source):
    """
    Stage B: regex selectors, then literal phrases.

    Args:
        html (str): Raw response body
        source (SourceConfig): Source providing selectors and literal_phrases

    Returns:
        Classification: Available (0.8, one copy) on the first available
            pattern; unavailable (0.8) on any unavailable pattern, which
            overrides an available match; literal phrases then override
            both with 0.9

    Note:
        Regexes are case-insensitive, literal phrases are case-sensitive.
    """
    result = Classification()

    for pattern in split_patterns(source.selectors.available):
        if re.search(pattern, html, re.I):
            logger.debug(f"{source.name}: available pattern {pattern!r}")
            result.status = AvailabilityStatus.AVAILABLE
            result.confidence = SELECTOR_CONFIDENCE
            result.copies_available = 1
            break

    # runs regardless of the available check so that it always takes precedence
    for pattern in split_patterns(source.selectors.unavailable):
        if re.search(pattern, html, re.I):
            logger.debug(f"{source.name}: unavailable pattern {pattern!r}")
            result.status = AvailabilityStatus.UNAVAILABLE
            result.confidence = SELECTOR_CONFIDENCE
            result.copies_available = 0
            break

    phrases = source.literal_phrases
    if phrases.required and all(p in html for p in phrases.required):
        logger.debug(f"{source.name}: required phrases present")
        result.status = AvailabilityStatus.AVAILABLE
        result.confidence = LITERAL_PHRASE_CONFIDENCE
        result.copies_available = 1
    elif any(p in html for p in phrases.forbidden):
        logger.debug(f"{source.name}: forbidden phrase present")
        result.status = AvailabilityStatus.UNAVAILABLE
        result.confidence = LITERAL_PHRASE_CONFIDENCE
        result.copies_available = 0

    return result


# Stage C


def classify_keywords(html, source):
    """
    Stage C: keyword scoring on the lower-cased page.

    Each configured fallback keyword found on the page scores one point for
    its side. The side with strictly more points wins with confidence
    min(0.7, points * 0.2); a tie, including 0-0, is unknown with 0.

    Returns:
        Classification: Status and confidence only; copies stay 0
    """
    text = html.lower()
    available = _keyword_score(text, source.fallback_keywords.available)
    unavailable = _keyword_score(text, source.fallback_keywords.unavailable)
    logger.debug(
        f"{source.name}: keyword scores available={available} unavailable={unavailable}"
    )

    if available > unavailable:
        return Classification(
            AvailabilityStatus.AVAILABLE, min(KEYWORD_CAP, available * KEYWORD_POINT)
        )
    if unavailable > available:
        return Classification(
            AvailabilityStatus.UNAVAILABLE,
            min(KEYWORD_CAP, unavailable * KEYWORD_POINT),
        )
    return Classification()


def _keyword_score(text, keywords):
    return sum(1 for k in keywords if k and k.lower() in text)
