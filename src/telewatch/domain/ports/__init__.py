"""Domain port definitions for adapters."""

from __future__ import annotations

from .actions import Navigator, RulePromoter
from .fetching import SnapshotSource

__all__ = ["Navigator", "RulePromoter", "SnapshotSource"]
