import os
from dotenv import load_dotenv

# --- Configuration constants ---
load_dotenv()

VERSION = "1.0.0"
IS_DEV = os.getenv("NODE_ENV") == "development"
ROOT_PATH = os.environ.get("ROOT_PATH", "")
PORT = int(os.getenv("PORT", "8000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG" if IS_DEV else "INFO")


def _csv(name, default):
    raw = os.getenv(name)
    if raw is None:
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]


def _durations(name, default):
    # "ophim=600,nguonc=inf" -> [("ophim", 600.0), ("nguonc", inf)]
    raw = os.getenv(name)
    if raw is None:
        return list(default)
    rules = []
    for item in raw.split(","):
        if "=" not in item:
            continue
        keyword, seconds = item.split("=", 1)
        rules.append((keyword.strip(), float(seconds.strip())))
    return rules


# Upstream fetches
FETCH_TIMEOUT = float(os.getenv("FETCH_TIMEOUT", "8"))
MAX_RESOLVE_DEPTH = int(os.getenv("MAX_RESOLVE_DEPTH", "5"))

# Origin policy
BYPASS_HOSTS = _csv("BYPASS_HOSTS", ["kkphimplayer", "phim1280", "opstream"])
IMMUTABLE_HOSTS = _csv("IMMUTABLE_HOSTS", [])
EXCEPTION_DURATIONS = _durations("EXCEPTION_DURATIONS", [
    ("ophim", 600.0),
    ("opstream", 600.0),
    ("nguonc", float("inf")),
    ("streamc", float("inf")),
])
DEFAULT_EXCEPTION_DURATION = float(os.getenv("DEFAULT_EXCEPTION_DURATION", "900"))

# Cache tiers
EDGE_MAX_AGE = int(os.getenv("EDGE_MAX_AGE", "300"))
OBJECT_CACHE_SIZE = int(os.getenv("OBJECT_CACHE_SIZE", "2000"))
REQUEST_CACHE_NAME = os.getenv("REQUEST_CACHE_NAME", "m3u8-processed-v1")
REDIS_URL = os.getenv("REDIS_URL")

# Metadata
API_URL = os.getenv("API_URL", "https://phimapi.com")
CATALOG_API_URL = os.getenv("CATALOG_API_URL", "https://phimapi.com")
CATALOG_REVALIDATE = int(os.getenv("CATALOG_REVALIDATE", "3600"))
CATALOG_CACHE_SIZE = int(os.getenv("CATALOG_CACHE_SIZE", "500"))

ENABLE_CRON = os.getenv("ENABLE_CRON", "0" if IS_DEV else "1") == "1"
