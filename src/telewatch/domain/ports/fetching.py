"""Ports for fetching live telemetry snapshots."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence

    from telewatch.domain.model import StreamItem


@runtime_checkable
class SnapshotSource(Protocol):
    """Async callable returning the complete, authoritative current listing."""

    async def __call__(self) -> Sequence[StreamItem]: ...


__all__ = ["SnapshotSource"]
