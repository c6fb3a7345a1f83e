import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import Settings, get_settings
from .errors import DiscoveryError
from .lib.cache import CacheManager, MemoryCacheStore, RedisCacheStore
from .lib.elasticsearch import create_client
from .lib.stores import elasticsearch_sources, memory_sources
from .metrics import MetricsCollector
from .routers import behavior, health, metrics, recommendations, search
from .security import verify_api_key

logger = logging.getLogger(__name__)


def configure_state(app: FastAPI, settings: Settings) -> None:
    """Attach data sources, cache and metrics to ``app.state``.

    Without ``ES_URL`` the service runs on empty in-process stores, and
    without ``REDIS_URL`` the cache lives in process memory.
    """
    app.state.settings = settings
    app.state.metrics = MetricsCollector()

    if settings.es_url:
        app.state.es = create_client(settings)
        app.state.sources = elasticsearch_sources(app.state.es)
    else:
        logger.warning("ES_URL not set; serving from in-process stores")
        app.state.es = None
        app.state.sources = memory_sources()

    if settings.redis_url:
        store = RedisCacheStore.from_url(settings.redis_url)
    else:
        store = MemoryCacheStore()
    app.state.cache = CacheManager(store, app.state.metrics)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    configure_state(app, settings)
    logger.info("Starting discovery API")
    yield
    if app.state.es is not None:
        await app.state.es.close()
    if isinstance(app.state.cache.store, RedisCacheStore):
        await app.state.cache.store.client.aclose()
    logger.info("Shutting down discovery API")


app = FastAPI(
    title="Discovery API",
    description="Personalized recommendations and catalog search for events and venues",
    version="0.1.0",
    lifespan=lifespan,
)


# ---------------------------------------------------------------------------
# Error envelope
# ---------------------------------------------------------------------------

def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


@app.exception_handler(DiscoveryError)
async def discovery_error_handler(request: Request, exc: DiscoveryError):
    if exc.status_code >= 500:
        logger.error("%s on %s: %s", type(exc).__name__, request.url.path, exc.message)
    return _error(exc.status_code, exc.message)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return _error(exc.status_code, str(exc.detail))


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        where = ".".join(str(p) for p in first.get("loc", ()))
        message = f"{where}: {first.get('msg', 'invalid value')}"
    else:
        message = "Invalid request"
    return _error(422, message)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s", request.url.path)
    return _error(500, "Internal error")


app.include_router(health.router)
app.include_router(recommendations.router)
app.include_router(behavior.router)
app.include_router(search.router)
app.include_router(metrics.router)


@app.get("/", dependencies=[Depends(verify_api_key)])
async def root():
    return {"message": "Discovery API"}
