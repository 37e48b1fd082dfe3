"""Error hierarchy for the image wall relay.

Steady-state errors (source and connection failures) are contained by the
component that detects them. Only startup errors reach the process caller.
"""

from __future__ import annotations


class WallError(Exception):
    """Base error for all relay operations."""


class SourceError(WallError):
    """The upstream image API could not produce a usable result this cycle."""


class SourceUnavailable(SourceError):
    """Transport failure or non-success status from the upstream API."""


class SourceMalformed(SourceError):
    """The upstream API answered with a body that cannot be parsed."""


class ConnectionFailure(WallError):
    """A viewer connection failed to read, write, or keep up."""


class BindFailure(WallError):
    """The listen address could not be bound."""


class ConfigError(WallError):
    """Invalid or missing configuration."""
