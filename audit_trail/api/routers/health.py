# audit_trail/api/routers/health.py

from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/health")
async def health(request: Request):
    """Health check with correlation ID, audit queue depth and pipeline metrics."""
    state = request.app.state
    return {
        "status": "ok",
        "correlation_id": getattr(request.state, "correlation_id", None),
        "environment": state.settings.environment,
        "version": state.settings.version,
        "audit": {
            "pending": state.write_queue.pending,
            "metrics": state.metrics.export_metrics() if state.metrics else None,
        },
    }
