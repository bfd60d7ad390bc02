"""Domain allowlist — decides whether a hostname may submit consent events.

Entries match exactly; an entry also registers its root (the entry without a
leading ``www.``) so that every subdomain of the root is allowed too:

    www.state-of-mind.co  ->  state-of-mind.co, shop.state-of-mind.co, ...

Built once at import time from settings and never mutated.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from consentlog.config import settings

_PORT_SUFFIX = re.compile(r":\d+$")


def normalize_host(hostname: str) -> str:
    """Lowercase and strip a trailing ``:port``."""
    return _PORT_SUFFIX.sub("", hostname.lower())


@dataclass(frozen=True)
class DomainAllowlist:
    """Immutable set of registered domains plus their derived roots."""

    entries: tuple[str, ...]
    roots: tuple[str, ...] = field(init=False)

    def __post_init__(self) -> None:
        entries = tuple(e.strip().lower() for e in self.entries if e and e.strip())
        object.__setattr__(self, "entries", entries)
        object.__setattr__(
            self,
            "roots",
            tuple(e[4:] if e.startswith("www.") else e for e in entries),
        )

    @classmethod
    def from_domains(cls, domains: Iterable[str]) -> DomainAllowlist:
        return cls(entries=tuple(domains))

    def is_host_allowed(self, hostname: Any) -> bool:
        """Return True if the host is an entry or (a subdomain of) a root."""
        if not hostname or not isinstance(hostname, str):
            return False
        host = normalize_host(hostname)

        if host in self.entries:
            return True
        return any(host == root or host.endswith("." + root) for root in self.roots)


# Module-level singleton
default_allowlist = DomainAllowlist.from_domains(settings.consent.domains)


def is_host_allowed(hostname: Any) -> bool:
    """Check a hostname against the process-wide allowlist."""
    return default_allowlist.is_host_allowed(hostname)
