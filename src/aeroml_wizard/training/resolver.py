"""Session identifier resolution from free-form training output.

Upstream logs do not follow a single format, so the identifier is recovered with an
ordered cascade of patterns. This module is pure:
- No I/O, no logging, no global state.
- The first strategy that matches a line wins, with its first match on that line.
- `None` only means "not on this line", never a terminal failure.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

# 8-4-4-4-12 hexadecimal, the shape of every identifier the backend issues
TOKEN_PATTERN = r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}"

_TOKEN_RE = re.compile(rf"^{TOKEN_PATTERN}$", flags=re.IGNORECASE)


@dataclass(frozen=True, slots=True)
class ResolverStrategy:
    """One extraction heuristic; group 1 of `pattern` captures the identifier."""

    name: str
    pattern: re.Pattern[str]

    def search(self, line: str) -> str | None:
        match = self.pattern.search(line)
        return match.group(1) if match else None


DEFAULT_STRATEGIES: tuple[ResolverStrategy, ...] = (
    ResolverStrategy(
        name="labelled_phrase",
        pattern=re.compile(rf"session[ _-]?id\s*[:=]\s*({TOKEN_PATTERN})", flags=re.IGNORECASE),
    ),
    ResolverStrategy(
        name="key_value",
        pattern=re.compile(
            rf"""["']?(?:session_id|sessionId|session)["']?\s*[:=]\s*["']?({TOKEN_PATTERN})""",
            flags=re.IGNORECASE,
        ),
    ),
    ResolverStrategy(
        name="path_segment",
        pattern=re.compile(rf"/({TOKEN_PATTERN})(?=/|[?#\s\"']|$)", flags=re.IGNORECASE),
    ),
    ResolverStrategy(
        name="bare_token",
        pattern=re.compile(rf"(?<![0-9a-f-])({TOKEN_PATTERN})(?![0-9a-f-])", flags=re.IGNORECASE),
    ),
)


def looks_like_session_id(value: str) -> bool:
    """Check whether a whole string has the identifier shape."""
    return bool(_TOKEN_RE.match(value.strip()))


class PatternCascadeResolver:
    """Extracts a session identifier from a line using ordered strategies.

    New upstream formats are supported by passing additional strategies; the
    ingestor never needs to change.
    """

    def __init__(self, strategies: Sequence[ResolverStrategy] = DEFAULT_STRATEGIES):
        if not strategies:
            raise ValueError("At least one resolver strategy is required")
        self._strategies = tuple(strategies)

    @property
    def strategies(self) -> tuple[ResolverStrategy, ...]:
        return self._strategies

    def resolve(self, line: str) -> str | None:
        """Return the identifier found by the first matching strategy, if any."""
        if not line:
            return None
        for strategy in self._strategies:
            found = strategy.search(line)
            if found is not None:
                return found
        return None

    def resolve_with_strategy(self, line: str) -> tuple[str, str] | None:
        """Like `resolve`, but also report which strategy matched."""
        if not line:
            return None
        for strategy in self._strategies:
            found = strategy.search(line)
            if found is not None:
                return found, strategy.name
        return None

    def resolve_first(self, texts: Iterable[str | None]) -> str | None:
        """Scan texts in order and return the first identifier found."""
        for text in texts:
            if text:
                found = self.resolve(text)
                if found is not None:
                    return found
        return None


_default_resolver = PatternCascadeResolver()


def resolve(line: str) -> str | None:
    """Resolve a session identifier with the default strategy cascade."""
    return _default_resolver.resolve(line)
