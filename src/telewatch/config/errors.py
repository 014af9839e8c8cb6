"""Errors raised while reading telewatch settings from the environment."""

from __future__ import annotations


class ConfigurationError(RuntimeError):
    """A ``TELEWATCH_*`` value is present but unusable (wrong type or out of range).

    ``name`` is the offending variable when one is known.
    """

    def __init__(self, message: str, *, name: str | None = None) -> None:
        super().__init__(message)
        self.name = name


class MissingConfigurationError(ConfigurationError):
    """One or more required variables are unset or blank."""

    def __init__(self, names: list[str]) -> None:
        self.names = tuple(sorted(names))
        super().__init__(f"Missing configuration for: {', '.join(self.names)}")
