from __future__ import annotations

import os

import pytest


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep a developer's TELEWATCH_* settings out of the test run."""

    for name in list(os.environ):
        if name.startswith("TELEWATCH_"):
            monkeypatch.delenv(name, raising=False)
