import os

# Must be set before config is imported anywhere.
os.environ["ENABLE_CRON"] = "0"
os.environ["API_URL"] = "https://api.example"
os.environ["CATALOG_API_URL"] = "https://catalog.example"
os.environ.pop("REDIS_URL", None)

import pytest  # noqa: E402

FIRST_RUN = ["3.920000", "0.760000", "2.000000", "2.500000", "2.000000",
             "2.420000", "2.000000", "0.780000", "1.960000"]
SECOND_RUN = ["2.000000", "1.760000", "3.200000", "2.000000",
              "1.360000", "2.000000", "2.000000", "0.720000"]


def segments(prefix, count, duration="10.000000", host="https://cdn.example/video"):
    return "".join(f"#EXTINF:{duration},\n{host}/{prefix}{i}.ts\n" for i in range(count))


def media_playlist(body):
    return (
        "#EXTM3U\n#EXT-X-VERSION:3\n#EXT-X-TARGETDURATION:10\n#EXT-X-MEDIA-SEQUENCE:0\n"
        + body
        + "#EXT-X-ENDLIST\n"
    )


def fingerprint_block():
    first = "".join(f"#EXTINF:{d},\nhttps://ads.example/a{i}.ts\n" for i, d in enumerate(FIRST_RUN))
    second = "".join(f"#EXTINF:{d},\nhttps://ads.example/b{i}.ts\n" for i, d in enumerate(SECOND_RUN))
    return "#EXT-X-DISCONTINUITY\n" + first + "#EXT-X-DISCONTINUITY\n" + second


@pytest.fixture
def clean_playlist():
    return media_playlist(segments("main", 6))


@pytest.fixture
def fingerprint_playlist():
    head = segments("head", 3)
    tail = segments("tail", 3)
    return media_playlist(head + fingerprint_block() + "#EXT-X-DISCONTINUITY\n" + tail)


@pytest.fixture
def fingerprint_stripped():
    head = segments("head", 3)
    tail = segments("tail", 3)
    return media_playlist(head + "#EXT-X-DISCONTINUITY\n" + tail)


@pytest.fixture
def trailing_block_playlist():
    ad = "#EXT-X-DISCONTINUITY\n" + segments("ad", 10, host="https://ads.example") + "#EXT-X-DISCONTINUITY\n"
    return media_playlist(segments("head", 4) + ad + segments("tail", 4))
