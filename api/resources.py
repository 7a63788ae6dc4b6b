"""
Resource API endpoints: create, read, update and delete vendor-managed resources.

This module exposes the caller-facing CRUD surface. Handlers are plain (synchronous) functions,
so FastAPI runs each request on its worker threadpool: one worker per in-flight request, with the
resource store as the only shared state. All lifecycle logic lives in
`core.reconciler.LifecycleReconciler`, reached through `request.app.state.reconciler`; this module
only translates between HTTP and the reconciler, including mapping the error taxonomy to status
codes. Error bodies have the shape {"error": "<message>"}.
"""

import logging

from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse

from core.reconciler import LifecycleReconciler
from shared.errors import CancelledError, NotFoundError, PreconditionError, ValidationError, VendorError
from shared.models import CreateResourceRequest, ResourceRecord, UpdateResourceRequest

# Get a logger instance for this module
logger = logging.getLogger(__name__)

router = APIRouter()


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def record_response(record: ResourceRecord, status_code: int = 200) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=record.model_dump(mode="json"))


def get_reconciler(request: Request) -> LifecycleReconciler:
    return request.app.state.reconciler


@router.post("/resources", status_code=201)
def create_resource(payload: CreateResourceRequest, request: Request):
    """
    Create a resource and provision it at the vendor selected by `spec.vendorType`.

    Returns 201 with the full normalized record even when the vendor call failed; in that case
    `status.phase` is "Failed" and `status.message` carries the vendor error. Returns 400 when a
    required field is missing or the vendor type is not registered.
    """
    try:
        record = get_reconciler(request).create_resource(payload)
    except ValidationError as e:
        logger.info(f"[create_resource] Rejected request: {e}")
        return error_response(400, str(e))
    return record_response(record, status_code=201)


@router.get("/resources/{resource_id}")
def get_resource(resource_id: str, request: Request):
    """
    Return a resource, refreshing its status from the vendor when possible.

    A vendor read failure still returns 200 with the last known record; the response then carries
    the header `X-Resource-Stale: true` so callers can tell the status was not refreshed.
    """
    try:
        result = get_reconciler(request).get_resource(resource_id)
    except NotFoundError as e:
        return error_response(404, str(e))
    response = record_response(result.record)
    if result.stale:
        response.headers["X-Resource-Stale"] = "true"
    return response


@router.put("/resources/{resource_id}")
def update_resource(resource_id: str, payload: UpdateResourceRequest, request: Request):
    """
    Replace the resource's `spec.config` and push it to the vendor.

    Returns 200 with the updated record, 404 for an unknown id, 400 when the request tries to
    change `spec.vendorType`, 500 when the resource was never created at the vendor, and 502 when
    the vendor call fails (the stored record is left unchanged).
    """
    try:
        record = get_reconciler(request).update_resource(resource_id, payload)
    except NotFoundError as e:
        return error_response(404, str(e))
    except ValidationError as e:
        return error_response(400, str(e))
    except PreconditionError as e:
        logger.error(f"[update_resource] Precondition failed for {resource_id}: {e}")
        return error_response(500, str(e))
    except (VendorError, CancelledError) as e:
        logger.error(f"[update_resource] Vendor update failed for {resource_id}: {e}")
        return error_response(502, f"failed to update at vendor: {e}")
    return record_response(record)


@router.delete("/resources/{resource_id}", status_code=204)
def delete_resource(resource_id: str, request: Request):
    """
    Delete the resource at the vendor, then locally.

    Returns 204 on success (a vendor "not found" counts as success), 404 for an unknown id, and
    500 when the vendor call fails, in which case the local record is preserved.
    """
    try:
        get_reconciler(request).delete_resource(resource_id)
    except NotFoundError as e:
        return error_response(404, str(e))
    except (VendorError, CancelledError, PreconditionError) as e:
        return error_response(500, f"failed to delete from vendor: {e}")
    return Response(status_code=204)
