"""Channel name parsing and semantic version checks.

A channel name looks like this::

    foo/bar@1.2.0

``foo/`` is an optional namespace prefix, ``bar`` the channel identifier and
``@1.2.0`` an optional semantic version. When connecting a subscriber the
version must be fully resolved; decorators and callers use ranges instead
(``1.x``, ``>=2.1.0``, ``^1.2``) in node-semver syntax.
"""

from __future__ import annotations

from typing import NamedTuple

import nodesemver

from pluginhost.core.errors import ValidationError

WILDCARD = "*"


class ChannelName(NamedTuple):
    """A channel name split into its base name and version segment."""

    base: str
    version: str | None

    def __str__(self) -> str:
        if self.version is None:
            return self.base
        return f"{self.base}@{self.version}"


def parse_channel_name(name: str) -> ChannelName:
    """Split ``name`` at the first ``@``.

    Raises:
        ValidationError: ``name`` is not a string or has an empty base name.
    """
    if not isinstance(name, str):
        raise ValidationError(
            "Channel name must be a string",
            field="channel",
            value=name,
        )

    base, sep, version = name.partition("@")
    base = base.strip()
    version = version.strip()

    if not base:
        raise ValidationError(
            f"Malformed channel name `{name}`",
            field="channel",
            value=name,
            constraint="non-empty base name",
        ).with_context(channel=name)

    # A second "@" is not part of the version segment
    version = version.split("@", 1)[0]

    return ChannelName(base, version if sep and version else None)


def base_name(name: str) -> str:
    """Channel name without its version segment."""
    return parse_channel_name(name).base


def is_valid_version(version: str) -> bool:
    """True when ``version`` is a fully resolved semantic version."""
    return isinstance(version, str) and nodesemver.valid(version, False) is not None


def require_version(version: str, *, channel: str | None = None) -> str:
    """Return ``version`` unchanged or raise when it is not a full semver."""
    if not is_valid_version(version):
        raise ValidationError(
            f"Not a semantic versioning scheme: {version}",
            field="version",
            value=version,
            constraint="fully resolved semantic version",
        ).with_context(channel=channel, version=version)
    return version


def satisfies(version: str, version_range: str) -> bool:
    """True when the fixed ``version`` falls inside ``version_range``.

    An unparseable range matches nothing.
    """
    return nodesemver.satisfies(version, version_range, False)


__all__ = [
    "WILDCARD",
    "ChannelName",
    "parse_channel_name",
    "base_name",
    "is_valid_version",
    "require_version",
    "satisfies",
]
