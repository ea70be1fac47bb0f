"""
Structural identity for function values.

The host deduplicates registrations per function: connecting the same
function to the same channel twice is a no-op, and ``disconnect`` must find
the registration again from nothing but the function value. The registry
below maps a function to a stable string id.

Ids have the form ``<content-hash>__<bucket-index>``. The content hash is
computed from the function's source text (its qualified name when no source
is available). Two unrelated functions with identical source land in the same
bucket and are told apart by their position in it, so they still get
distinct ids.

Buckets only grow; there is no removal. Bound methods are re-created on
every attribute access, so they match an existing bucket entry by equality
(same ``__self__`` and ``__func__``); every other callable matches by
identity.

Examples:
    >>> registry = FunctionIdentityRegistry()
    >>> def f(): pass
    >>> registry.identify(f) == registry.identify(f)
    True
"""

from __future__ import annotations

import hashlib
import inspect
from collections.abc import Callable
from typing import Any


def compute_hash(text: str, length: int = 32) -> str:
    """Deterministic SHA-256 based hash of ``text``, truncated to ``length``."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()[:length]


def function_text(fn: Callable[..., Any]) -> str:
    """Source text of ``fn``, or its qualified name when no source is available.

    Callable instances are described by their class.
    """
    target = fn if inspect.isroutine(fn) or inspect.isclass(fn) else type(fn)
    try:
        return inspect.getsource(target)
    except (OSError, TypeError):
        module = getattr(target, "__module__", None) or ""
        return f"{module}.{getattr(target, '__qualname__', type(target).__qualname__)}"


def _same_function(candidate: Callable[..., Any], fn: Callable[..., Any]) -> bool:
    if candidate is fn:
        return True
    return inspect.ismethod(fn) and inspect.ismethod(candidate) and candidate == fn


class FunctionIdentityRegistry:
    """Maps function values to stable structural ids."""

    def __init__(self) -> None:
        self._buckets: dict[str, list[Callable[..., Any]]] = {}

    def identify(self, fn: Callable[..., Any]) -> str:
        """Return the id of ``fn``, assigning one on first sight."""
        content_hash = compute_hash(function_text(fn))
        bucket = self._buckets.setdefault(content_hash, [])

        for index, candidate in enumerate(bucket):
            if _same_function(candidate, fn):
                return f"{content_hash}__{index}"

        bucket.append(fn)
        return f"{content_hash}__{len(bucket) - 1}"

    def __len__(self) -> int:
        return sum(len(bucket) for bucket in self._buckets.values())

    def clear(self) -> None:
        """Forget every function; only used when the owning host is destroyed."""
        self._buckets.clear()


__all__ = ["FunctionIdentityRegistry", "compute_hash", "function_text"]
