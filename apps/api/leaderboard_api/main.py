"""FastAPI entrypoint for the leaderboard query service."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional
import logging
import sys

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from packages.leaderboard_core.ranking import LeaderboardRegistry
from packages.leaderboard_core.storage import BackingStoreError

from .routers.leaderboards import router as leaderboards_router
from .services.boards import BoardRuntime, build_runtime
from .settings import ApiSettings

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger("leaderboard_api")


def create_app(
    settings: Optional[ApiSettings] = None,
    *,
    registry: Optional[LeaderboardRegistry] = None,
) -> FastAPI:
    """Build the app. A caller-supplied registry is used as-is and left open on shutdown."""
    settings = settings or ApiSettings.from_env()
    runtime: Optional[BoardRuntime] = None
    if registry is None:
        runtime = build_runtime(settings)
        registry = runtime.registry

    app = FastAPI(title="Leaderboard API", version="0.1.0")
    app.state.settings = settings
    app.state.registry = registry

    if settings.cors_enabled:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=list(settings.cors_origins),
            allow_credentials="*" not in settings.cors_origins,
            allow_methods=["GET"],
            allow_headers=["*"],
        )
    app.include_router(leaderboards_router, prefix=settings.base_path)

    @app.exception_handler(BackingStoreError)
    async def _backing_store_handler(request: Request, exc: BackingStoreError):
        logger.error(
            "[API] Backing store failure during %s (%s.%s): %s",
            request.url.path,
            exc.store,
            exc.operation,
            exc,
        )
        return JSONResponse(
            status_code=503,
            content={"detail": str(exc)},
            headers={"Retry-After": "2"},
        )

    @app.on_event("startup")
    def startup() -> None:
        logger.info(
            "[STARTUP] Leaderboard API starting at %s with boards: %s",
            datetime.now(timezone.utc).isoformat(),
            ", ".join(registry.names()) or "<none>",
        )

    @app.on_event("shutdown")
    def shutdown() -> None:
        if runtime is not None:
            runtime.close()

    @app.get("/healthz")
    def healthz() -> dict[str, object]:
        return {"status": "ok", "leaderboards": len(registry)}

    return app


app = create_app()
