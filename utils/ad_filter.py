"""
Ad-insertion fingerprints for HLS media playlists.

Ad blocks are spliced into a media playlist between two
``#EXT-X-DISCONTINUITY`` markers. Each ``AdPattern`` describes one known
splice shape; detection asks whether any of them occurs, stripping removes
every occurrence in list order.

Compiled ``re`` patterns keep no scan position between calls, so the same
pattern objects are shared by every request.
"""
import re
from dataclasses import dataclass
from enum import Enum
from typing import List, Sequence

from utils.logger import setup_logger

logger = setup_logger(__name__)

DISCONTINUITY = "#EXT-X-DISCONTINUITY"


class MatchMode(Enum):
    FIRST = "first"
    ALL = "all"


@dataclass(frozen=True)
class AdPattern:
    name: str
    regex: re.Pattern
    mode: MatchMode = MatchMode.ALL
    replacement: str = ""

    def search(self, content: str) -> bool:
        return self.regex.search(content) is not None

    def remove(self, content: str) -> str:
        count = 1 if self.mode is MatchMode.FIRST else 0
        return self.regex.sub(self.replacement, content, count=count)


def _durations(values):
    unique = list(dict.fromkeys(values))
    return "|".join(re.escape(v) for v in unique)


# The only discontinuity pair in the playlist, 18-24 lines apart. The
# marker-free prefix is captured and written back so only the block goes.
TRAILING_BLOCK = AdPattern(
    name="trailing_block",
    regex=re.compile(
        r"\A(?P<head>(?:(?!#EXT-X-DISCONTINUITY)[\s\S])*)"
        r"#EXT-X-DISCONTINUITY\n(?:.*?\n){18,24}#EXT-X-DISCONTINUITY\n"
        r"(?![\s\S]*#EXT-X-DISCONTINUITY)"
    ),
    mode=MatchMode.FIRST,
    replacement=r"\g<head>",
)

RELAXED_BLOCK = AdPattern(
    name="relaxed_block",
    regex=re.compile(
        r"#EXT-X-DISCONTINUITY\n(?:#EXT-X-KEY:METHOD=NONE\n(?:.*\n){18,24})?#EXT-X-DISCONTINUITY\n"
        r"|convertv7/"
    ),
)

_FIRST_RUN = _durations(["3.92", "0.76", "2.00", "2.50", "2.00", "2.42", "2.00", "0.78", "1.96"])
_SECOND_RUN = _durations(["2.00", "1.76", "3.20", "2.00", "1.36", "2.00", "2.00", "0.72"])

DURATION_FINGERPRINT = AdPattern(
    name="duration_fingerprint",
    regex=re.compile(
        r"#EXT-X-DISCONTINUITY\n"
        rf"(?:#EXTINF:(?:{_FIRST_RUN})0000,\n.*\n){{9}}"
        r"#EXT-X-DISCONTINUITY\n"
        rf"(?:#EXTINF:(?:{_SECOND_RUN})0000,\n.*\n){{8}}"
        r"(?=#EXT-X-DISCONTINUITY)"
    ),
)

DEFAULT_AD_PATTERNS = (TRAILING_BLOCK, RELAXED_BLOCK, DURATION_FINGERPRINT)

MAX_STRIP_PASSES = 8


def matching_patterns(content: str, patterns: Sequence[AdPattern] = DEFAULT_AD_PATTERNS) -> List[str]:
    return [pattern.name for pattern in patterns if pattern.search(content)]


def contains_ads(content: str, patterns: Sequence[AdPattern] = DEFAULT_AD_PATTERNS) -> bool:
    return any(pattern.search(content) for pattern in patterns)


def strip_ads(content: str, patterns: Sequence[AdPattern] = DEFAULT_AD_PATTERNS) -> str:
    """
    Apply every pattern in order, each one to the output of the previous.

    Removing one block can leave another as the playlist's only
    discontinuity pair, so the ordered pass repeats until nothing changes.
    """
    for _ in range(MAX_STRIP_PASSES):
        before = content
        for pattern in patterns:
            stripped = pattern.remove(content)
            if stripped != content:
                removed = content.count("\n") - stripped.count("\n")
                logger.debug(f"[ADS] {pattern.name} removed {removed} lines")
            content = stripped
        if content == before:
            break
    else:
        logger.warning(f"[ADS] Playlist still changing after {MAX_STRIP_PASSES} passes")
    return content
