from __future__ import annotations

import pytest

from telewatch.config import (
    ConfigurationError,
    MissingConfigurationError,
    env_float,
    env_int,
    optional_env_var,
    require_env_vars,
)


def test_require_env_vars_returns_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXAMPLE_VAR", "value")

    result = require_env_vars(["EXAMPLE_VAR"])

    assert result["EXAMPLE_VAR"] == "value"


def test_require_env_vars_lists_every_missing_name(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("MISSING_B", raising=False)
    monkeypatch.setenv("MISSING_A", "  ")

    with pytest.raises(MissingConfigurationError) as exc:
        require_env_vars(["MISSING_B", "MISSING_A"])

    assert "MISSING_A, MISSING_B" in str(exc.value)
    assert exc.value.names == ("MISSING_A", "MISSING_B")


def test_optional_env_var_strips_and_treats_blank_as_unset(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("PRESENT", "  http://host  ")
    monkeypatch.setenv("BLANK", "   ")

    assert optional_env_var("PRESENT") == "http://host"
    assert optional_env_var("BLANK") is None


def test_env_float_falls_back_to_default(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("POLL", raising=False)

    assert env_float("POLL", 2.0) == 2.0


@pytest.mark.parametrize("raw", ["soon", "0", "-1.5"])
def test_env_float_rejects_invalid_values(monkeypatch: pytest.MonkeyPatch, raw: str) -> None:
    monkeypatch.setenv("POLL", raw)

    with pytest.raises(ConfigurationError) as exc:
        env_float("POLL", 2.0)

    assert "POLL" in str(exc.value)
    assert exc.value.name == "POLL"


def test_env_int_parses_and_validates(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CAPACITY", "250")
    assert env_int("CAPACITY", 100) == 250

    monkeypatch.setenv("CAPACITY", "0")
    with pytest.raises(ConfigurationError):
        env_int("CAPACITY", 100)

    monkeypatch.setenv("CAPACITY", "many")
    with pytest.raises(ConfigurationError):
        env_int("CAPACITY", 100)
