"""FastAPI dependencies for the pipeline monitor API."""

from fastapi import Request

from pipeline_monitor.services.monitor import PipelineMonitor


def get_monitor_dep(request: Request) -> PipelineMonitor:
    """Dependency for the application's monitor instance."""
    return request.app.state.monitor
