"""FastAPI dashboard application polling a Prometheus endpoint.

Run with:
    PROMSCOPE_TARGET=http://localhost:9090/metrics \
        uvicorn examples.dashboard_app:app --reload

Endpoints (mounted under /explorer):
    POST /ingest                - parse pasted exposition text
    GET  /discover, /catalog    - discovered metrics
    GET  /histogram?name=...    - exclusive bucket breakdown
    GET  /rate?name=...         - per-second bucket rates
    GET  /summary?name=...      - quantile table
    GET  /counter?name=...      - counter/gauge breakdown
    GET  /widget?name=...       - chart-ready widget view
    GET  /status                - polling state and last error
    GET/PUT /layout             - persisted dashboard layout
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from promscope.adapters.fetch import HttpExpositionSource
from promscope.adapters.frameworks.asgi import create_asgi_app
from promscope.adapters.storage.layout import SQLiteLayoutStorage
from promscope.core.config import ExplorerConfig, ExplorerSettings
from promscope.runtime.session import ExplorerSession


def create_dashboard_app(
    target_url: str,
    layout_db_path: str = "promscope.db",
    config: ExplorerConfig | None = None,
    proxy_base: str | None = None,
) -> FastAPI:
    """Create and configure the dashboard FastAPI application.

    Args:
        target_url: Metrics endpoint to poll.
        layout_db_path: SQLite file holding the dashboard layout.
        config: Explorer settings; read from the environment when omitted.
        proxy_base: Origin of the CORS relay, if any.

    Returns:
        Configured FastAPI application instance
    """
    config = config or ExplorerConfig.from_env()
    session = ExplorerSession(config)
    layout_storage = SQLiteLayoutStorage(layout_db_path)
    source = HttpExpositionSource(
        target_url, config=config, proxy_base=proxy_base
    )

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncGenerator[None]:
        """Start polling on startup and release resources on shutdown."""
        session.start_polling(source)
        yield
        await session.stop_polling()
        await source.aclose()
        await layout_storage.close()

    app = FastAPI(title="Prometheus Explorer", lifespan=lifespan)
    app.mount("/explorer", create_asgi_app(session, layout_storage))

    @app.post("/api/restart")
    async def restart() -> dict[str, str]:
        """Resume polling after retries were exhausted."""
        session.start_polling(source)
        return {"state": session.polling_state.value}

    return app


logging.basicConfig(level=logging.INFO)
settings = ExplorerSettings()
app = create_dashboard_app(
    settings.target, config=settings.to_config(), proxy_base=settings.proxy
)
