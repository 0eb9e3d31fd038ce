import logging
import os
from typing import Any, Dict

from fastapi import Depends, FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from . import telemetry_pipeline  # noqa: F401  registers the audit listener
from .catalog_routes import admin_router as catalog_admin_router
from .catalog_routes import router as catalog_router
from .config import Settings, get_settings
from .db.monitoring import get_pool_snapshot
from .db.session import get_engine
from .family_routes import router as family_router
from .logging_config import configure_logging
from .progress_routes import router as progress_router


configure_logging()
logger = logging.getLogger(__name__)
app = FastAPI(title="FitPath Family Engine", version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

settings_snapshot = get_settings()
logger.info("Backend starting; identity header: %s", settings_snapshot.identity_header)
logger.info("Database URL configured: %s", bool(settings_snapshot.database_url))

app.include_router(family_router)
app.include_router(progress_router)
app.include_router(catalog_router)
if settings_snapshot.catalog_admin:
    logger.warning("Catalog admin endpoints are enabled")
    app.include_router(catalog_admin_router)


@app.get("/healthz")
def health(settings: Settings = Depends(get_settings)) -> Dict[str, str]:
    return {"status": "ok", "activity_timezone": settings.activity_timezone}


@app.get("/healthz/database")
def database_health() -> Dict[str, Any]:
    try:
        engine = get_engine()
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
    except Exception as exc:  # noqa: BLE001
        logger.warning("Database health check failed: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(exc),
        ) from exc
    return {
        "status": "ok",
        "backend": engine.url.get_backend_name(),
        "pool": get_pool_snapshot(engine),
    }


def run() -> None:
    host = os.getenv("FITPATH_HOST", "0.0.0.0")
    port = int(os.getenv("FITPATH_PORT", "8000"))
    logger.info("Starting FitPath API on %s:%s", host, port)

    import uvicorn

    uvicorn.run(app, host=host, port=port, log_level="info")


if __name__ == "__main__":
    run()
