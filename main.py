from urllib.parse import urlsplit

import httpx
from aiocron import crontab
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

import config
from cache.coalescer import RequestCoalescer
from cache.document_cache import DocumentCache
from cache.edge import EdgeCachePolicy
from cache.kv_store import KeyValueStore, build_store
from cache.manager import CacheTierManager
from cache.object_cache import ObjectCache
from cache.request_cache import RequestCache, request_identity
from metadata.phim_api import CatalogProxy, PhimApi
from utils.errors import FetchError, ManifestError
from utils.hls_proxy import DEFAULT_CONTENT_TYPE, USER_AGENT, force_https
from utils.logger import setup_logger
from utils.manifest_cleaner import ManifestCleaner
from utils.origin_policy import OriginPolicy

logger = setup_logger(__name__)

PROCESSING_FAILED = "Could not process the video playlist."


def build_http_client():
    limits = httpx.Limits(max_keepalive_connections=100, max_connections=500, keepalive_expiry=30)
    timeout = httpx.Timeout(config.FETCH_TIMEOUT, connect=5.0)
    return httpx.AsyncClient(
        timeout=timeout,
        limits=limits,
        follow_redirects=True,
        verify=False,
        headers={"User-Agent": USER_AGENT},
    )


def build_cache_manager(http_client, store: KeyValueStore, policy: OriginPolicy) -> CacheTierManager:
    coalescer = RequestCoalescer()
    cleaner = ManifestCleaner(
        http_client,
        policy,
        max_depth=config.MAX_RESOLVE_DEPTH,
        timeout=config.FETCH_TIMEOUT,
    )
    return CacheTierManager(
        cleaner=cleaner,
        edge=EdgeCachePolicy(policy, max_age=config.EDGE_MAX_AGE),
        request_cache=RequestCache(store, config.REQUEST_CACHE_NAME, coalescer),
        object_cache=ObjectCache(max_size=config.OBJECT_CACHE_SIZE),
        documents=DocumentCache(store, coalescer),
        coalescer=coalescer,
    )


def is_manifest_url(url):
    try:
        parts = urlsplit(url)
    except ValueError:
        return False
    return parts.scheme.lower() in ("http", "https") and bool(parts.netloc)


async def validate_cached_handles(http_client, object_cache: ObjectCache):
    logger.info("[VALIDATOR] Checking cached playlists...")
    dead_urls = []

    for url in object_cache.source_urls():
        try:
            resp = await http_client.head(force_https(url), timeout=5.0)
            if resp.is_success:
                continue
        except httpx.HTTPError as e:
            logger.debug(f"[VALIDATOR] HEAD failed for {url[:60]}: {e!r}")
        dead_urls.append(url)

    for url in dead_urls:
        object_cache.evict(url)

    if dead_urls:
        logger.info(f"[VALIDATOR] Evicted {len(dead_urls)} dead playlists.")
    else:
        logger.info("[VALIDATOR] All cached playlists are still reachable.")
    return dead_urls


def _error_status(error):
    if isinstance(error, FetchError) and error.timed_out:
        return 504
    return 500


def create_app(http_client=None, store=None, policy=None) -> FastAPI:
    http_client = http_client or build_http_client()
    store = store or build_store(config.REDIS_URL)
    policy = policy or OriginPolicy.from_config()

    cache = build_cache_manager(http_client, store, policy)
    movies = PhimApi(http_client, config.API_URL, cache, timeout=config.FETCH_TIMEOUT)
    catalog = CatalogProxy(
        http_client,
        config.CATALOG_API_URL,
        revalidate=config.CATALOG_REVALIDATE,
        max_entries=config.CATALOG_CACHE_SIZE,
    )

    root_path = config.ROOT_PATH
    app = FastAPI(root_path=f"/{root_path}" if root_path and not root_path.startswith("/") else root_path)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.http_client = http_client
    app.state.store = store
    app.state.cache = cache
    app.state.validator_job = None

    @app.on_event("startup")
    async def startup_event():
        await cache.request_cache.purge_other_versions()
        if config.ENABLE_CRON:
            app.state.validator_job = crontab(
                "0 3 * * *",
                func=validate_cached_handles,
                args=(http_client, cache.object_cache),
                start=True,
            )

    @app.on_event("shutdown")
    async def shutdown_event():
        if app.state.validator_job is not None:
            app.state.validator_job.stop()
        await http_client.aclose()
        await store.close()

    @app.get("/api/clean-m3u8")
    async def clean_m3u8_endpoint(url: str = None):
        if not url or not is_manifest_url(url):
            return PlainTextResponse("URL is required.", status_code=400)

        try:
            result = await cache.clean(url)
        except ManifestError as e:
            logger.error(f"[PROXY] Failed to process {url[:80]}: {e}")
            return PlainTextResponse(PROCESSING_FAILED, status_code=_error_status(e))
        except Exception as e:
            logger.error(f"[PROXY] Unexpected error for {url[:80]}: {e!r}")
            return PlainTextResponse(PROCESSING_FAILED, status_code=500)

        if result.suspicious:
            ad_filter = "suspicious-duration"
        else:
            ad_filter = "stripped" if result.ads_detected else "clean"

        return Response(
            content=result.content,
            media_type=result.content_type or DEFAULT_CONTENT_TYPE,
            headers={
                "Cache-Control": cache.cache_control(url),
                "X-Ad-Filter": ad_filter,
            },
        )

    @app.api_route("/proxy/manifest", methods=["GET", "HEAD"])
    async def proxy_manifest_endpoint(request: Request, url: str = None):
        if not url or not is_manifest_url(url):
            return Response(status_code=400)

        identity = request_identity("GET", str(request.url))
        try:
            cached = await cache.cached_response(identity, url)
        except ManifestError as e:
            logger.error(f"[INTERMEDIARY] Failed to process {url[:80]}: {e}")
            return PlainTextResponse(PROCESSING_FAILED, status_code=_error_status(e))
        except Exception as e:
            logger.error(f"[INTERMEDIARY] Unexpected error for {url[:80]}: {e!r}")
            return PlainTextResponse(PROCESSING_FAILED, status_code=500)

        return Response(
            content=cached.content,
            media_type=cached.content_type or DEFAULT_CONTENT_TYPE,
            headers={"Cache-Control": cache.cache_control(url)},
        )

    @app.get("/api/player/source")
    async def player_source_endpoint(request: Request, url: str = None):
        if not url or not is_manifest_url(url):
            return JSONResponse({"message": "URL is required."}, status_code=400)

        try:
            handle = await cache.playback_handle(url)
        except Exception as e:
            # The player can still play the untouched playlist.
            logger.error(f"[PLAYER] Serving original playlist for {url[:80]}: {e}")
            return {"src": url, "processed": False}

        prefix = request.scope.get("root_path", "")
        return {"src": f"{prefix}/api/player/handles/{handle.id}.m3u8", "processed": True}

    @app.get("/api/player/handles/{handle_id}.m3u8")
    async def playback_handle_endpoint(handle_id: str):
        handle = cache.object_cache.get_by_id(handle_id)
        if handle is None:
            return Response(status_code=404)
        return Response(content=handle.content, media_type=handle.content_type or DEFAULT_CONTENT_TYPE)

    @app.get("/api/movie")
    async def movie_endpoint(slug: str = None):
        if not slug:
            return JSONResponse({"message": "Missing slug parameter"}, status_code=400)

        try:
            return await movies.get_movie(slug)
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                return JSONResponse({"message": "Movie not found."}, status_code=404)
            return JSONResponse({"message": "Internal Server Error"}, status_code=500)
        except httpx.TimeoutException:
            return JSONResponse({"message": "API request timed out."}, status_code=504)
        except Exception as e:
            logger.error(f"Error fetching movie {slug}: {e!r}")
            return JSONResponse({"message": "Internal Server Error"}, status_code=500)

    @app.get("/api/movies/{path:path}")
    async def catalog_endpoint(path: str, request: Request):
        try:
            data = await catalog.get(path, dict(request.query_params))
        except Exception as e:
            logger.error(f"API error for {path}: {e!r}")
            return JSONResponse({"error": "Internal server error"}, status_code=500)
        return JSONResponse(data, headers={"Cache-Control": f"public, s-maxage={config.CATALOG_REVALIDATE}"})

    @app.get("/health")
    async def health():
        return {
            "status": "ok",
            "version": config.VERSION,
            "cleaner": dict(cache.cleaner.stats),
            "cache": cache.get_stats(),
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=config.PORT, reload=config.IS_DEV)
