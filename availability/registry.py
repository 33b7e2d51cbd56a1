# availability/registry.py
from types import MappingProxyType


class SourceRegistry:
    """
    Immutable, insertion-ordered mapping from source name to SourceConfig.

    Enumeration order is the order the records were supplied in. The matcher
    walks sources in this order, so when two sources qualify under the same
    rule the one supplied first wins.
    """

    def __init__(self, sources=()):
        """
        Args:
            sources (Iterable[SourceConfig]): Already-validated records

        Raises:
            ValueError: If two records share a name
        """
        table = {}
        for source in sources:
            if source.name in table:
                raise ValueError(f"Duplicate source name: {source.name}")
            table[source.name] = source
        self._sources = MappingProxyType(table)

    def get(self, name):
        """Return the SourceConfig registered under name, or None."""
        return self._sources.get(name)

    def names(self):
        """Source names in registration order."""
        return list(self._sources)

    def __getitem__(self, name):
        return self._sources[name]

    def __contains__(self, name):
        return name in self._sources

    def __iter__(self):
        return iter(self._sources.values())

    def __len__(self):
        return len(self._sources)
