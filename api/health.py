"""
Health endpoint for the resource control plane.

GET /health probes every registered vendor provider once, without retries, and aggregates the
results. The service is reported healthy (200) only if every provider is reachable; otherwise it
answers 503 so load balancers and orchestrators stop routing traffic here. The per-vendor outcome
is included in the body for operators, and a failing probe never raises out of the handler.
"""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

router = APIRouter()


@router.get("/health")
def health(request: Request) -> JSONResponse:
    """
    Return aggregated provider health.

    Returns:
        JSONResponse: {"status": "healthy"|"unhealthy", "providers": {vendor: "ok"|error},
        "timestamp": ISO-8601 UTC} with HTTP 200 or 503.
    """
    results = request.app.state.reconciler.check_health()
    healthy = all(outcome == "ok" for outcome in results.values())
    return JSONResponse(
        status_code=200 if healthy else 503,
        content={
            "status": "healthy" if healthy else "unhealthy",
            "providers": results,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    )
