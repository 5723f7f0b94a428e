import asyncio
from dataclasses import dataclass, field
from typing import List, Sequence
from urllib.parse import urljoin

import httpx

from utils.ad_filter import DEFAULT_AD_PATTERNS, AdPattern, matching_patterns, strip_ads
from utils.errors import ManifestError, ResolutionError
from utils.hls_proxy import fetch_manifest, force_https, rewrite_manifest_uris
from utils.logger import setup_logger
from utils.origin_policy import OriginPolicy, hostname_of
from utils.playlist import is_master_playlist, select_variant_uri

logger = setup_logger(__name__)


@dataclass
class ManifestResult:
    url: str
    resolved_url: str
    content: str
    content_type: str
    ads_detected: bool = False
    matched_patterns: List[str] = field(default_factory=list)
    removed_lines: int = 0
    total_duration: float = 0.0
    threshold: float = 0.0
    suspicious: bool = False
    bypass_listed: bool = False
    depth: int = 0


class ManifestCleaner:
    """
    Fetch a manifest, follow master -> variant indirection and strip ads.

    One instance is shared by every call site; it holds no per-request state
    apart from the counters in ``stats``.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        policy: OriginPolicy,
        patterns: Sequence[AdPattern] = DEFAULT_AD_PATTERNS,
        max_depth: int = 5,
        timeout=None,
    ):
        self.http_client = http_client
        self.policy = policy
        self.patterns = tuple(patterns)
        self.max_depth = max_depth
        self.timeout = timeout
        self.stats = {
            "processed": 0,
            "ads_stripped": 0,
            "suspicious_long_manifests": 0,
            "failures": 0,
        }

    async def resolve_and_clean(self, url: str) -> ManifestResult:
        bypass_listed = self.policy.is_bypass_listed(url)
        if bypass_listed:
            # Listed origins are still processed; the flag is only reported.
            logger.info(f"[POLICY] {hostname_of(url)} is on the bypass list")

        try:
            fetched, content, depth = await self._load(url, 0)
        except ManifestError as e:
            self.stats["failures"] += 1
            logger.error(f"[CLEAN] {url[:80]}: {e}")
            raise

        result = await asyncio.to_thread(self._filter_ads, url, content)
        result.resolved_url = fetched.url
        result.content_type = fetched.content_type
        result.bypass_listed = bypass_listed
        result.depth = depth

        self.stats["processed"] += 1
        if result.ads_detected:
            self.stats["ads_stripped"] += 1
        if result.suspicious:
            self.stats["suspicious_long_manifests"] += 1
        return result

    async def _load(self, url, depth):
        if depth > self.max_depth:
            raise ResolutionError(url, ResolutionError.TOO_DEEP)

        fetched = await fetch_manifest(self.http_client, url, timeout=self.timeout)
        content = await asyncio.to_thread(rewrite_manifest_uris, fetched.text, fetched.final_url)

        if not is_master_playlist(content):
            return fetched, content, depth

        variant_uri = select_variant_uri(content)
        if not variant_uri:
            raise ResolutionError(fetched.url, ResolutionError.NO_VARIANT)

        variant_url = force_https(urljoin(fetched.final_url, variant_uri))
        logger.info(f"[VARIANT] {fetched.url[:60]} -> {variant_url[:60]}")
        return await self._load(variant_url, depth + 1)

    def _filter_ads(self, url, content):
        matched = matching_patterns(content, self.patterns)
        if matched:
            cleaned = strip_ads(content, self.patterns)
            removed = content.count("\n") - cleaned.count("\n")
            logger.info(f"[ADS] {', '.join(matched)} matched, {removed} lines removed: {url[:60]}")
        else:
            cleaned, removed = content, 0

        verdict = self.policy.check_duration(cleaned, url, ads_detected=bool(matched))
        if verdict.suspicious:
            logger.warning(
                f"[ADS] No ad pattern matched but playlist runs {verdict.total_duration:.0f}s "
                f"(threshold {verdict.threshold:.0f}s): {url[:80]}"
            )

        return ManifestResult(
            url=url,
            resolved_url=url,
            content=cleaned,
            content_type="",
            ads_detected=bool(matched),
            matched_patterns=matched,
            removed_lines=removed,
            total_duration=verdict.total_duration,
            threshold=verdict.threshold,
            suspicious=verdict.suspicious,
        )
