from fastapi import Depends, FastAPI
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from doctrack.api.deps import require_user_auth
from doctrack.api.documents import router as documents_router
from doctrack.api.notifications import router as notifications_router
from doctrack.config import settings
from doctrack.errors import register_error_handlers
from doctrack.logging import configure_logging

app = FastAPI(title=f"{settings.brand_name} API")

configure_logging()
register_error_handlers(app)


def _include_api_router(router, dependencies=None):
    app.include_router(router, dependencies=dependencies)
    app.include_router(router, prefix="/api/v1", dependencies=dependencies)


_include_api_router(documents_router, dependencies=[Depends(require_user_auth)])
_include_api_router(notifications_router, dependencies=[Depends(require_user_auth)])


@app.get("/health")
def health_check():
    return {"status": "ok"}


@app.get("/metrics")
def metrics():
    data = generate_latest()
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)
