# availability/matcher.py
import logging
import re

from .utils import hostname_of

logger = logging.getLogger("availability.matcher")

# (regex, source name) pairs tried in order against the location name and
# vicinity once every registry-driven rule has failed.
DEFAULT_PATTERN_TABLE = [
    (re.compile(r"public library", re.I), "Toronto Public Library"),
    (re.compile(r"hamilton.*library", re.I), "Hamilton Public Library"),
    (re.compile(r"university.*library", re.I), "University of Toronto Library"),
    (re.compile(r"york.*library", re.I), "York University Library"),
    (re.compile(r"indigo|chapters", re.I), "Indigo/Chapters"),
    (re.compile(r"amazon", re.I), "Amazon Canada"),
]

MIN_KEY_TERM_LENGTH = 4


class SourceMatcher:
    def __init__(self, registry, pattern_table=None):
        self.registry = registry
        self.pattern_table = (
            DEFAULT_PATTERN_TABLE if pattern_table is None else pattern_table
        )

    def match(self, location):
        """
        Pick the single best source configuration for a location.

        Rules are tried in strict priority order and the first one that fires
        wins; there is no scoring across rules.

        Args:
            location (LocationDescriptor): The point of interest to resolve

        Returns:
            SourceConfig or None: The matched source, None if nothing matched

        Rules:
            1. Direct name containment, either direction, case-insensitive
            2. Key term: a source-name token of 4+ characters found in the
               location name or vicinity
            3. Domain: hostname of the location website contained in the
               source base_url hostname or vice versa
            4. Pattern table fallback, restricted to registered sources

        Note:
            Rules 1-3 walk the registry in insertion order.
        """
        name = (location.name or "").lower()
        vicinity = (location.vicinity or "").lower()

        for rule in (self._by_name, self._by_key_term, self._by_domain):
            source = rule(name, vicinity, location)
            if source is not None:
                return source

        source = self._by_pattern(name, vicinity)
        if source is None:
            logger.info(f"No source found for {location.name!r}")
        return source

    def _by_name(self, name, vicinity, location):
        """Rule 1: source name inside the location name, or the other way round."""
        if not name:
            return None
        for source in self.registry:
            source_name = source.name.lower()
            if source_name in name or name in source_name:
                logger.info(f"Direct name match: {source.name}")
                return source
        return None

    def _by_key_term(self, name, vicinity, location):
        """Rule 2: any 4+ character source-name token in the name or vicinity."""
        for source in self.registry:
            terms = [
                t for t in source.name.lower().split() if len(t) >= MIN_KEY_TERM_LENGTH
            ]
            hits = [t for t in terms if t in name or t in vicinity]
            if hits:
                logger.info(f"Key term match: {source.name} ({len(hits)} terms)")
                return source
        return None

    def _by_domain(self, name, vicinity, location):
        """
        Rule 3: website hostname contained in a source base_url hostname, or
        the other way round. Missing or malformed websites never match.
        """
        domain = hostname_of(location.website)
        if domain is None:
            if location.website:
                logger.debug(f"Ignoring malformed website {location.website!r}")
            return None
        for source in self.registry:
            source_domain = hostname_of(source.base_url)
            if source_domain is None:
                continue
            if source_domain in domain or domain in source_domain:
                logger.info(f"Domain match: {source_domain}")
                return source
        return None

    def _by_pattern(self, name, vicinity):
        """
        Rule 4: first pattern of the table that matches the name or vicinity
        and names a registered source.
        """
        for pattern, source_name in self.pattern_table:
            if pattern.search(name) or pattern.search(vicinity):
                source = self.registry.get(source_name)
                if source is not None:
                    logger.info(f"Pattern match: {source_name}")
                    return source
        return None
