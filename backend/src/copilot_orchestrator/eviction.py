"""Session eviction policies used by session stores."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping


class EvictionPolicy(ABC):
    """Decides which sessions a store should drop.

    ``last_access`` maps session id to the monotonic time it was last loaded
    or appended to. Sessions currently being processed are never passed in.
    """

    @abstractmethod
    def select(self, last_access: Mapping[str, float], now: float) -> list[str]:
        ...


class NoEviction(EvictionPolicy):
    """Keep every session for the process lifetime."""

    def select(self, last_access: Mapping[str, float], now: float) -> list[str]:
        return []


class LRUEviction(EvictionPolicy):
    """Keep at most ``max_sessions`` idle sessions, dropping the least recently used.

    Sessions in the middle of a turn are not counted and never dropped, so the
    store may briefly hold ``max_sessions`` plus the number of busy sessions.
    """

    def __init__(self, max_sessions: int) -> None:
        if max_sessions < 1:
            raise ValueError("max_sessions must be >= 1")
        self.max_sessions = max_sessions

    def select(self, last_access: Mapping[str, float], now: float) -> list[str]:
        excess = len(last_access) - self.max_sessions
        if excess <= 0:
            return []
        oldest = sorted(last_access, key=last_access.__getitem__)
        return oldest[:excess]


class TTLEviction(EvictionPolicy):
    """Drop sessions idle for longer than ``ttl_seconds``."""

    def __init__(self, ttl_seconds: float) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be > 0")
        self.ttl_seconds = ttl_seconds

    def select(self, last_access: Mapping[str, float], now: float) -> list[str]:
        return [sid for sid, seen in last_access.items() if now - seen > self.ttl_seconds]


class CombinedEviction(EvictionPolicy):
    """Union of several policies (e.g. a TTL plus a hard cap)."""

    def __init__(self, *policies: EvictionPolicy) -> None:
        self.policies = policies

    def select(self, last_access: Mapping[str, float], now: float) -> list[str]:
        selected: list[str] = []
        for policy in self.policies:
            for sid in policy.select(last_access, now):
                if sid not in selected:
                    selected.append(sid)
        return selected


def policy_from_settings(max_sessions: int | None, ttl_seconds: float | None) -> EvictionPolicy:
    policies: list[EvictionPolicy] = []
    if ttl_seconds:
        policies.append(TTLEviction(ttl_seconds))
    if max_sessions:
        policies.append(LRUEviction(max_sessions))
    if not policies:
        return NoEviction()
    if len(policies) == 1:
        return policies[0]
    return CombinedEviction(*policies)
