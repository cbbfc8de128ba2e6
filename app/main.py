from contextlib import asynccontextmanager

from fastapi import FastAPI
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from app.api.bundles import router as bundles_router
from app.api.console import router as console_router
from app.api.deps import close_backends
from app.api.health import router as health_router
from app.api.storage import router as storage_router
from app.errors import register_error_handlers
from app.logging import configure_logging
from app.observability import ObservabilityMiddleware


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    close_backends()


app = FastAPI(title="OTA Console API", lifespan=lifespan)

configure_logging()
app.add_middleware(ObservabilityMiddleware)
register_error_handlers(app)


def _include_api_router(router, dependencies=None):
    app.include_router(router, dependencies=dependencies)
    app.include_router(router, prefix="/api/v1", dependencies=dependencies)


_include_api_router(bundles_router)
_include_api_router(storage_router)
_include_api_router(console_router)
_include_api_router(health_router)


@app.get("/metrics")
def metrics():
    data = generate_latest()
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)
