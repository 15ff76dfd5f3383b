"""FastAPI application serving the processing-jobs monitor."""

from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from pipeline_monitor.api.routes import (
    generic_exception_handler,
    http_exception_handler,
    pipeline_monitor_exception_handler,
    router,
)
from pipeline_monitor.config import setup_logging
from pipeline_monitor.services.monitor import PipelineMonitor, create_pipeline_monitor
from pipeline_monitor.utils.errors import PipelineMonitorError


def create_app(monitor: Optional[PipelineMonitor] = None) -> FastAPI:
    """
    Build the API application.

    Args:
        monitor: Monitor to serve; defaults to one built from settings

    Returns:
        FastAPI app whose lifespan starts and stops polling
    """
    monitor = monitor or create_pipeline_monitor()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        monitor.start()
        try:
            yield
        finally:
            await monitor.aclose()

    app = FastAPI(title="Video Processing Pipeline Monitor", lifespan=lifespan)
    app.state.monitor = monitor
    app.include_router(router, prefix="/api")

    app.add_exception_handler(PipelineMonitorError, pipeline_monitor_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    return app


if __name__ == "__main__":
    setup_logging()
    uvicorn.run("pipeline_monitor.main:create_app", factory=True, host="0.0.0.0", port=3000)
