"""RestoreProvider Protocol and error types."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Protocol, runtime_checkable

ProgressCallback = Callable[[float], None]


class RestoreError(Exception):
    """Base error for restore targets. Message is shown to the user as-is."""

    def __init__(self, message: str, backend: str = "") -> None:
        self.backend = backend
        if backend and not message.startswith(backend):
            message = f"{backend}: {message}"
        super().__init__(message)


class RestoreConfigError(RestoreError):
    """A required setting is missing."""

    def __init__(self, backend: str, missing: list[str]) -> None:
        self.missing = missing
        super().__init__(
            f"not configured, missing required field(s): {', '.join(missing)}",
            backend,
        )


class RestoreConnectionError(RestoreError):
    """The target could not be reached or rejected the credentials."""


class RestoreProcessError(RestoreError):
    """An external restore/dump process exited with a non-zero status."""

    def __init__(self, backend: str, command: str, returncode: int, stderr: str) -> None:
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        detail = stderr.strip() or f"exit status {returncode}"
        super().__init__(f"{command} failed: {detail}", backend)


@runtime_checkable
class RestoreProvider(Protocol):
    """Contract for a data store that snapshots can be restored into."""

    @property
    def name(self) -> str:
        """Human-readable backend name: 'PostgreSQL', 'Elasticsearch', 'Qdrant'."""
        ...

    def is_configured(self) -> bool:
        """True when every mandatory field is set."""
        ...

    def required_fields(self) -> list[str]:
        """Names of the mandatory fields."""
        ...

    def unset_fields(self) -> list[str]:
        """Mandatory fields that are currently empty."""
        ...

    def test_connection(self) -> str:
        """Lightweight reachability check. Never modifies the target."""
        ...

    def restore_snapshot(
        self,
        snapshot_path: Path,
        progress_callback: ProgressCallback | None = None,
    ) -> str:
        """Restore the file into the target. Returns a success message."""
        ...


def missing_fields(values: dict[str, object]) -> list[str]:
    """Return the names whose value is None or blank."""
    missing = []
    for field_name, value in values.items():
        if value is None or (isinstance(value, str) and not value.strip()):
            missing.append(field_name)
    return missing
