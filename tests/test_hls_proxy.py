"""Tests for manifest fetching and URI rewriting."""
import httpx
import pytest
import respx

from utils.errors import FetchError
from utils.hls_proxy import fetch_manifest, force_https, rewrite_manifest_uris

BASE = "https://cdn.example/video/720p/index.m3u8"

_PLAYLIST = """\
#EXTM3U
#EXT-X-TARGETDURATION:10
#EXT-X-KEY:METHOD=AES-128,URI="key.bin"
#EXTINF:10.0,
seg-0.ts
#EXTINF:10.0,
../shared/seg-1.ts?t=abc

#EXTINF:10.0,
/root-seg-2.ts
#EXT-X-ENDLIST
"""


class TestForceHttps:
    def test_upgrades_http(self):
        assert force_https("http://cdn.example/a.m3u8") == "https://cdn.example/a.m3u8"

    def test_keeps_https(self):
        assert force_https("https://cdn.example/a.m3u8") == "https://cdn.example/a.m3u8"

    def test_upper_case_scheme(self):
        assert force_https("HTTP://cdn.example/a.m3u8") == "https://cdn.example/a.m3u8"


class TestRewriteManifestUris:
    def test_relative_lines_become_absolute(self):
        result = rewrite_manifest_uris(_PLAYLIST, BASE)
        assert "https://cdn.example/video/720p/seg-0.ts" in result
        assert "https://cdn.example/video/shared/seg-1.ts?t=abc" in result
        assert "https://cdn.example/root-seg-2.ts" in result

    def test_directives_are_byte_identical(self):
        before = [line for line in _PLAYLIST.split("\n") if line.startswith("#")]
        after = [line for line in rewrite_manifest_uris(_PLAYLIST, BASE).split("\n") if line.startswith("#")]
        assert before == after
        assert '#EXT-X-KEY:METHOD=AES-128,URI="key.bin"' in after

    def test_line_count_and_order_preserved(self):
        result = rewrite_manifest_uris(_PLAYLIST, BASE)
        assert len(result.split("\n")) == len(_PLAYLIST.split("\n"))
        assert result.endswith("#EXT-X-ENDLIST\n")

    def test_insecure_base_forced_to_https(self):
        result = rewrite_manifest_uris("#EXTM3U\nseg-0.ts\n", "http://cdn.example/v/index.m3u8")
        assert result == "#EXTM3U\nhttps://cdn.example/v/seg-0.ts\n"

    def test_absolute_http_segment_forced_to_https(self):
        result = rewrite_manifest_uris("#EXTM3U\nhttp://other.example/seg.ts\n", BASE)
        assert "https://other.example/seg.ts" in result

    def test_malformed_line_passes_through(self):
        content = "#EXTM3U\nhttp://[::1\nseg-0.ts\n"
        result = rewrite_manifest_uris(content, BASE)
        assert result.split("\n")[1] == "http://[::1"
        assert result.split("\n")[2] == "https://cdn.example/video/720p/seg-0.ts"

    def test_non_http_scheme_passes_through(self):
        content = "#EXTM3U\ndata:text/plain,hello\n"
        assert rewrite_manifest_uris(content, BASE) == content

    def test_blank_lines_untouched(self):
        content = "#EXTM3U\n\n   \nseg.ts"
        assert rewrite_manifest_uris(content, BASE).split("\n")[:3] == ["#EXTM3U", "", "   "]

    def test_empty_manifest(self):
        assert rewrite_manifest_uris("", BASE) == ""


class TestFetchManifest:
    @respx.mock
    @pytest.mark.asyncio()
    async def test_sends_referer_and_forces_https(self):
        route = respx.get("https://cdn.example/a.m3u8").respond(
            200,
            text="#EXTM3U\n",
            headers={"Content-Type": "application/vnd.apple.mpegurl"},
        )

        async with httpx.AsyncClient() as client:
            fetched = await fetch_manifest(client, "http://cdn.example/a.m3u8")

        assert route.called
        assert route.calls[0].request.headers["referer"] == "https://cdn.example/a.m3u8"
        assert fetched.url == "https://cdn.example/a.m3u8"
        assert fetched.content_type == "application/vnd.apple.mpegurl"
        assert fetched.text == "#EXTM3U\n"

    @respx.mock
    @pytest.mark.asyncio()
    async def test_line_endings_normalized(self):
        respx.get("https://cdn.example/a.m3u8").respond(200, text="#EXTM3U\r\nseg.ts\r\n")

        async with httpx.AsyncClient() as client:
            fetched = await fetch_manifest(client, "https://cdn.example/a.m3u8")

        assert fetched.text == "#EXTM3U\nseg.ts\n"

    @respx.mock
    @pytest.mark.asyncio()
    async def test_non_2xx_raises_fetch_error(self):
        respx.get("https://cdn.example/missing.m3u8").respond(404)

        async with httpx.AsyncClient() as client:
            with pytest.raises(FetchError) as exc_info:
                await fetch_manifest(client, "https://cdn.example/missing.m3u8")

        assert exc_info.value.status == 404
        assert not exc_info.value.timed_out

    @respx.mock
    @pytest.mark.asyncio()
    async def test_timeout_raises_fetch_error(self):
        respx.get("https://cdn.example/slow.m3u8").mock(side_effect=httpx.ConnectTimeout("slow"))

        async with httpx.AsyncClient() as client:
            with pytest.raises(FetchError) as exc_info:
                await fetch_manifest(client, "https://cdn.example/slow.m3u8", timeout=1.0)

        assert exc_info.value.status is None
        assert exc_info.value.timed_out
