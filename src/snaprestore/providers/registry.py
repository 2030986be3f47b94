"""Registry of restore provider classes, keyed by family and target name."""

from __future__ import annotations

import logging
from dataclasses import dataclass

log = logging.getLogger(__name__)


@dataclass
class ProviderEntry:
    """Metadata about a registered provider."""

    family: str  # "restore"
    name: str  # "postgres", "elasticsearch", "qdrant"
    cls: type
    settings_attr: str  # attribute on Settings holding this provider's config


class ProviderRegistry:
    """Maps (family, name) to a provider class and the settings it consumes."""

    def __init__(self) -> None:
        self._providers: dict[str, dict[str, ProviderEntry]] = {}

    def register(
        self,
        family: str,
        name: str,
        cls: type,
        settings_attr: str,
    ) -> None:
        self._providers.setdefault(family, {})[name] = ProviderEntry(
            family=family, name=name, cls=cls, settings_attr=settings_attr,
        )
        log.debug("Registered provider: %s/%s", family, name)

    def get_entry(self, family: str, name: str) -> ProviderEntry:
        """Get a ProviderEntry without instantiating."""
        fam = self._providers.get(family)
        if fam is None:
            raise KeyError(f"Unknown provider family: {family!r}")
        entry = fam.get(name)
        if entry is None:
            raise KeyError(f"Unknown provider: {family}/{name!r}")
        return entry

    def create(self, family: str, name: str, settings: object) -> object:
        """Instantiate a provider, handing it its section of ``settings``."""
        entry = self.get_entry(family, name)
        return entry.cls(getattr(settings, entry.settings_attr))

    def list_family(self, family: str) -> list[ProviderEntry]:
        return list(self._providers.get(family, {}).values())


# Global singleton
registry = ProviderRegistry()
