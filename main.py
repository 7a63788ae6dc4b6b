""" main.py: FastAPI application entry point and runtime configuration.

This module builds the ASGI app, wires the lifecycle reconciler with its resource store and the
provider registry, mounts the API routers, configures CORS (Cross-Origin Resource Sharing), and
exposes a Prometheus metrics endpoint. It centralizes web-layer wiring so the rest of the codebase
can focus on lifecycle logic. `create_app` accepts an explicit store and provider mapping so tests
can build isolated applications without touching module state. When executed directly, it starts
a Uvicorn server using host/port values from configuration.
"""

from typing import Any, Dict, Mapping, Optional
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app

from config import CONFIG
from core.reconciler import LifecycleReconciler
from provider_api import VendorProvider, build_providers
from services.resource_store import ResourceStore
from version import __version__

# --- Router Imports ---
from api import health as health_router
from api import resources as resources_router

# Get a logger instance for this module
logger = logging.getLogger(__name__)


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed or non-JSON request bodies are caller errors: answer 400, not FastAPI's 422."""
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        messages.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    logger.info(f"[validation] Rejected {request.method} {request.url.path}: {messages}")
    return JSONResponse(status_code=400, content={"error": "invalid request: " + "; ".join(messages)})


def create_app(
    config: Optional[Dict[str, Any]] = None,
    store: Optional[ResourceStore] = None,
    providers: Optional[Mapping[str, VendorProvider]] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        config (Optional[Dict[str, Any]]): Configuration mapping; defaults to the global CONFIG.
        store (Optional[ResourceStore]): Resource store; a fresh in-memory store if omitted.
        providers (Optional[Mapping[str, VendorProvider]]): vendorType -> provider mapping; built
            from `config["vendors"]` if omitted.

    Returns:
        FastAPI: The configured application with `app.state.reconciler` set.
    """
    config = config if config is not None else CONFIG
    app = FastAPI(title="Resource Control Plane", version=__version__)

    reconciler = LifecycleReconciler(
        store=store if store is not None else ResourceStore(),
        providers=providers if providers is not None else build_providers(config),
        timeouts=config.get("timeouts"),
    )
    app.state.reconciler = reconciler

    app.add_exception_handler(RequestValidationError, _validation_error_handler)

    # Include routers
    app.include_router(resources_router.router, tags=["Resources"])
    app.include_router(health_router.router, tags=["Health"])

    # Add Prometheus metrics endpoint
    app.mount("/metrics", make_asgi_app())

    # Configure CORS
    allow_origins = config.get('cors', {}).get('allow_origins', ["*"])
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    logger.info("Resource control plane app created with providers: %s", ", ".join(sorted(reconciler.providers)))
    return app


app = create_app()

# The uvicorn server is used to run the FastAPI application.
if __name__ == '__main__':
    import uvicorn
    logger.info("[__main__] Starting Uvicorn server for main.py")
    uvicorn.run(
        app,
        host=CONFIG.get('server', {}).get('host', '0.0.0.0'),
        port=CONFIG.get('server', {}).get('port', 8080)
    )
