"""FastAPI application factory for the pocketai model lifecycle service.

Endpoints: /health, /config, /metrics plus the model routes
(`pocketai.api.routes.models`). The orchestrator is created on startup
(or injected by tests) and bootstrapped once: catalog registered with the
engine, state reconciled.
"""
from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from core import metrics
from core.config import as_dict, get_config
from core.lifecycle import ModelOrchestrator, get_orchestrator
from core.logs import configure_from_config
from pocketai.api.routes.models import router as models_router

_log = logging.getLogger("pocketai.api")


def create_app(orchestrator: ModelOrchestrator | None = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_from_config(get_config())
        orch = orchestrator or get_orchestrator()
        app.state.orchestrator = orch
        await orch.bootstrap()
        _log.info("orchestrator ready: %s", orch.snapshot()["categories"])
        try:
            yield
        finally:
            await orch.aclose()

    app = FastAPI(
        title="pocketai API",
        version="0.1.0",
        docs_url=None,
        redoc_url=None,
        lifespan=lifespan,
    )

    # Dev CORS (UI on :3000)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    def health():  # noqa: D401
        return {"status": "ok"}

    @app.get("/config")
    def config():  # noqa: D401
        data = as_dict()
        return {
            "schema_version": data.get("schema_version"),
            "models": data.get("models"),
            "storage": data.get("storage"),
            "engine": data.get("engine"),
        }

    @app.get("/metrics")
    def metrics_snapshot():  # noqa: D401
        return metrics.snapshot()

    app.include_router(models_router)

    @app.middleware("http")
    async def _metrics_mw(request: Request, call_next):  # noqa: D401
        start = time.time()
        labels = {"route": request.url.path, "method": request.method}
        status = 500
        try:
            response = await call_next(request)
            status = response.status_code
            return response
        finally:
            duration_ms = (time.time() - start) * 1000.0
            metrics.inc("api_request_total", labels)
            metrics.observe("api_request_latency_ms", duration_ms, labels)
            if status >= 400:
                metrics.inc(
                    "api_request_errors_total", labels | {"status": status}
                )
    return app


app = create_app()


def main() -> None:  # pragma: no cover
    import uvicorn

    uvicorn.run(
        "pocketai.api.app:app", host="127.0.0.1", port=8000, reload=False
    )


if __name__ == "__main__":  # pragma: no cover
    main()
