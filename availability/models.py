# availability/models.py
import re
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .utils import split_patterns, utc_now

ISBN_PLACEHOLDER = "{isbn}"


class AvailabilityStatus(str, Enum):
    """Verdict of a single availability check."""

    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"
    UNKNOWN = "unknown"
    RATE_LIMITED = "rate_limited"
    ERROR = "error"


class StructuredDataFlags(BaseModel):
    model_config = ConfigDict(frozen=True)

    json_ld: bool = False
    schema_org: bool = False

    @property
    def enabled(self) -> bool:
        return self.json_ld or self.schema_org


class SelectorRules(BaseModel):
    """Comma-separated regex lists used as evidence on the raw page."""

    model_config = ConfigDict(frozen=True)

    available: Optional[str] = None
    unavailable: Optional[str] = None

    @field_validator("available", "unavailable")
    @classmethod
    def validate_patterns(cls, v):
        for pattern in split_patterns(v):
            try:
                re.compile(pattern)
            except re.error as e:
                raise ValueError(f"invalid selector pattern {pattern!r}: {e}")
        return v


class KeywordLists(BaseModel):
    model_config = ConfigDict(frozen=True)

    available: List[str] = Field(default_factory=list)
    unavailable: List[str] = Field(default_factory=list)


class LiteralPhrases(BaseModel):
    """
    Source-specific verbatim phrases checked after the regex selectors.

    All of `required` present -> available; otherwise any of `forbidden`
    present -> unavailable.
    """

    model_config = ConfigDict(frozen=True)

    required: List[str] = Field(default_factory=list)
    forbidden: List[str] = Field(default_factory=list)


class SourceConfig(BaseModel):
    """Scraping configuration for one library or retailer."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Unique source name")
    base_url: str
    search_endpoint: str = Field(
        ..., description="Search path appended to base_url, contains {isbn}"
    )
    method: str = "GET"
    structured_data: StructuredDataFlags = Field(default_factory=StructuredDataFlags)
    selectors: SelectorRules = Field(default_factory=SelectorRules)
    fallback_keywords: KeywordLists = Field(default_factory=KeywordLists)
    status_keywords: KeywordLists = Field(default_factory=KeywordLists)
    literal_phrases: LiteralPhrases = Field(default_factory=LiteralPhrases)
    rate_limit: float = Field(1.0, ge=0, description="Cooldown in seconds")

    @field_validator("search_endpoint")
    @classmethod
    def validate_endpoint(cls, v):
        if ISBN_PLACEHOLDER not in v:
            raise ValueError(f"search_endpoint must contain {ISBN_PLACEHOLDER}")
        return v

    @field_validator("method")
    @classmethod
    def validate_method(cls, v):
        method = v.upper()
        if method not in ("GET", "POST"):
            raise ValueError("method must be GET or POST")
        return method


class LocationDescriptor(BaseModel):
    """A point of interest as handed over by the maps front end."""

    name: str
    vicinity: Optional[str] = None
    website: Optional[str] = None


class AvailabilityResult(BaseModel):
    isbn: str
    source: str
    status: AvailabilityStatus
    copies_available: int = Field(0, ge=0)
    price: Optional[float] = None
    branch: Optional[str] = None
    call_number: Optional[str] = None
    url: Optional[str] = None
    last_checked: datetime = Field(default_factory=utc_now)
    confidence: float = Field(0.0, ge=0.0, le=1.0)
    error: Optional[str] = None


class BatchReport(BaseModel):
    isbn: str
    results: List[AvailabilityResult]
    total_checked: int
    available_count: int
    timestamp: datetime = Field(default_factory=utc_now)
