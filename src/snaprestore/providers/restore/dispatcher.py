"""Map the selected RestoreTarget to a configured restore provider."""

from __future__ import annotations

from snaprestore.core.models import RestoreTarget
from snaprestore.core.settings import Settings
from snaprestore.providers.registry import registry
from snaprestore.providers.restore.base import RestoreProvider
from snaprestore.providers.restore.elasticsearch import ElasticsearchRestoreProvider
from snaprestore.providers.restore.postgres import PostgresRestoreProvider
from snaprestore.providers.restore.qdrant import QdrantRestoreProvider

FAMILY = "restore"

registry.register(FAMILY, RestoreTarget.POSTGRES.value, PostgresRestoreProvider, "postgres")
registry.register(
    FAMILY, RestoreTarget.ELASTICSEARCH.value, ElasticsearchRestoreProvider, "elasticsearch",
)
registry.register(FAMILY, RestoreTarget.QDRANT.value, QdrantRestoreProvider, "qdrant")


def get_provider(target: RestoreTarget, settings: Settings) -> RestoreProvider:
    """Build the provider for ``target`` from the current settings.

    A fresh provider is created on every call so edits made in the UI are
    always picked up.
    """
    return registry.create(FAMILY, target.value, settings)  # type: ignore[return-value]
