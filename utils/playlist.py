import re
from dataclasses import dataclass
from typing import List, Optional

STREAM_INF = "#EXT-X-STREAM-INF"

_BANDWIDTH = re.compile(r"[:,]BANDWIDTH=(\d+)")
_RESOLUTION = re.compile(r"RESOLUTION=(\d+)x(\d+)")
_EXTINF = re.compile(r"#EXTINF:([\d.]+)")


@dataclass
class Variant:
    uri: str
    bandwidth: int = 0
    height: int = 0


def is_master_playlist(content: str) -> bool:
    return STREAM_INF in content


def parse_variants(content: str) -> List[Variant]:
    """Pair every stream-info tag with the URI line that follows it."""
    variants = []
    pending = None

    for line in content.split("\n"):
        line = line.strip()
        if not line:
            continue
        if line.startswith(STREAM_INF):
            pending = line
            continue
        if line.startswith("#"):
            continue
        if pending is not None:
            bw_match = _BANDWIDTH.search(pending)
            res_match = _RESOLUTION.search(pending)
            variants.append(Variant(
                uri=line,
                bandwidth=int(bw_match.group(1)) if bw_match else 0,
                height=int(res_match.group(2)) if res_match else 0,
            ))
            pending = None

    return variants


def select_variant_uri(content: str) -> Optional[str]:
    """
    Pick the sub-playlist a master manifest should be resolved to.

    The variant with the highest BANDWIDTH wins. Equal bandwidths go to the
    taller RESOLUTION, and full ties keep document order. A master whose
    tags cannot be paired with URIs falls back to its first URI line.
    """
    variants = parse_variants(content)
    if variants:
        best = variants[0]
        for variant in variants[1:]:
            if (variant.bandwidth, variant.height) > (best.bandwidth, best.height):
                best = variant
        return best.uri

    for line in content.split("\n"):
        line = line.strip()
        if line and not line.startswith("#"):
            return line
    return None


def get_total_duration(content: str) -> float:
    total = 0.0
    for value in _EXTINF.findall(content):
        try:
            total += float(value)
        except ValueError:
            # "1.2.3" and friends
            continue
    return total
