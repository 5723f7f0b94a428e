from dataclasses import dataclass
from typing import Sequence, Tuple
from urllib.parse import urlsplit

import config
from utils.playlist import get_total_duration


@dataclass(frozen=True)
class OriginRule:
    keyword: str
    exception_duration: float


@dataclass(frozen=True)
class DurationVerdict:
    total_duration: float
    threshold: float
    ads_detected: bool

    @property
    def within_threshold(self) -> bool:
        return self.total_duration <= self.threshold

    @property
    def suspicious(self) -> bool:
        # Long playlist and nothing matched: served as-is but reported.
        return not self.ads_detected and not self.within_threshold


def hostname_of(url: str) -> str:
    try:
        return (urlsplit(url).hostname or "").lower()
    except ValueError:
        return ""


@dataclass(frozen=True)
class OriginPolicy:
    """
    Per-origin behaviour, matched by substring against the manifest hostname.

    Rules are checked in declaration order and the first hit wins.
    """
    rules: Tuple[OriginRule, ...] = ()
    bypass_hosts: Tuple[str, ...] = ()
    immutable_hosts: Tuple[str, ...] = ()
    default_exception_duration: float = 900.0

    @classmethod
    def from_config(cls):
        return cls(
            rules=tuple(OriginRule(k, s) for k, s in config.EXCEPTION_DURATIONS),
            bypass_hosts=tuple(config.BYPASS_HOSTS),
            immutable_hosts=tuple(config.IMMUTABLE_HOSTS),
            default_exception_duration=config.DEFAULT_EXCEPTION_DURATION,
        )

    def exception_duration(self, url: str) -> float:
        host = hostname_of(url)
        for rule in self.rules:
            if rule.keyword in host:
                return rule.exception_duration
        return self.default_exception_duration

    def is_bypass_listed(self, url: str) -> bool:
        return _contains_any(hostname_of(url), self.bypass_hosts)

    def is_immutable(self, url: str) -> bool:
        return _contains_any(hostname_of(url), self.immutable_hosts)

    def check_duration(self, content: str, url: str, ads_detected: bool) -> DurationVerdict:
        return DurationVerdict(
            total_duration=get_total_duration(content),
            threshold=self.exception_duration(url),
            ads_detected=ads_detected,
        )


def _contains_any(host: str, keywords: Sequence[str]) -> bool:
    return bool(host) and any(keyword in host for keyword in keywords)
