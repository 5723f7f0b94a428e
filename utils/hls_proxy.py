import re
from dataclasses import dataclass
from urllib.parse import urljoin, urlsplit

import httpx

from utils.errors import FetchError, ParseError
from utils.logger import setup_logger

logger = setup_logger(__name__)

DEFAULT_CONTENT_TYPE = "application/x-mpegURL"
USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"

_HTTP_SCHEME = re.compile(r"^http:", re.IGNORECASE)


@dataclass
class FetchedManifest:
    url: str
    final_url: str
    text: str
    content_type: str


def force_https(url):
    return _HTTP_SCHEME.sub("https:", url, count=1)


def _is_url(line):
    stripped = line.strip()
    return bool(stripped) and not stripped.startswith("#")


def _absolutize(line, base_url):
    candidate = line.strip()
    if not candidate:
        raise ParseError("empty URI line")
    try:
        absolute = urljoin(base_url, candidate)
        parts = urlsplit(absolute)
    except ValueError as e:
        raise ParseError(f"{candidate!r}: {e}") from e
    if parts.scheme.lower() not in ("http", "https") or not parts.netloc:
        raise ParseError(f"{candidate!r} does not resolve to an http(s) URL")
    return force_https(absolute)


def rewrite_manifest_uris(content, base_url):
    """
    Resolve every URI line of a manifest against ``base_url`` and force https.

    Directive lines, blank lines and lines that cannot be resolved are kept
    exactly as they were, so the line count never changes.
    """
    rewritten_lines = []
    rewrite_count = 0

    for line in content.split("\n"):
        if not _is_url(line):
            rewritten_lines.append(line)
            continue
        try:
            rewritten_lines.append(_absolutize(line, base_url))
            rewrite_count += 1
        except ParseError as e:
            logger.debug(f"[REWRITE] Keeping line unchanged: {e}")
            rewritten_lines.append(line)

    logger.debug(f"[REWRITE] {rewrite_count} URI lines resolved against {base_url[:60]}")
    return "\n".join(rewritten_lines)


async def fetch_manifest(client: httpx.AsyncClient, url: str, timeout=None) -> FetchedManifest:
    normalized_url = force_https(url)
    headers = {
        "User-Agent": USER_AGENT,
        "Referer": normalized_url,
        "Accept-Encoding": "gzip, deflate",
    }
    extra = {"timeout": timeout} if timeout is not None else {}

    logger.info(f"[FETCH] Downloading playlist: {normalized_url[:80]}...")
    try:
        response = await client.get(normalized_url, headers=headers, **extra)
    except httpx.HTTPError as e:
        logger.error(f"[FETCH] Request failed for {normalized_url[:80]}: {e!r}")
        raise FetchError(
            normalized_url,
            cause=e,
            timed_out=isinstance(e, httpx.TimeoutException),
        ) from e

    if not response.is_success:
        logger.warning(f"[FETCH] {response.status_code} from {normalized_url[:80]}")
        raise FetchError(normalized_url, status=response.status_code)

    text = response.text.replace("\r\n", "\n").replace("\r", "\n")
    return FetchedManifest(
        url=normalized_url,
        final_url=force_https(str(response.url)),
        text=text,
        content_type=response.headers.get("content-type", DEFAULT_CONTENT_TYPE),
    )
