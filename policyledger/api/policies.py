"""
Policy API routes.
"""

from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from policyledger.models.result import PolicyResult
from policyledger.services.policy import PolicyService


router = APIRouter()


def get_policy_service(request: Request) -> PolicyService:
    """Get the policy service created during application startup."""
    service = getattr(request.app.state, "policy_service", None)
    if service is None:
        raise RuntimeError("Policy service not initialized")
    return service


def _respond(result: PolicyResult) -> JSONResponse:
    """Render an envelope; failures use the envelope code as HTTP status."""
    status_code = 200 if result.success else (result.code or 500)
    return JSONResponse(status_code=status_code, content=jsonable_encoder(result.to_dict()))


@router.get("/health")
async def health():
    """Liveness check."""
    return {"status": "ok"}


@router.get("/v1alpha/projects/{projectId}/policies")
async def list_policies(
    projectId: str,
    datasetId: Optional[str] = Query(default=None),
    accountId: Optional[str] = Query(default=None),
    service: PolicyService = Depends(get_policy_service),
):
    """List current policies, optionally by dataset or account."""
    result = await service.list_policies(projectId, dataset_id=datasetId, account_id=accountId)
    return _respond(result)


@router.post("/v1alpha/projects/{projectId}/policies")
async def create_policy(
    projectId: str,
    data: dict[str, Any] = Body(...),
    service: PolicyService = Depends(get_policy_service),
):
    """Create a policy."""
    result = await service.create_policy(projectId, data)
    return _respond(result)


@router.get("/v1alpha/projects/{projectId}/policies/{policyId}")
async def get_policy(
    projectId: str,
    policyId: str,
    service: PolicyService = Depends(get_policy_service),
):
    """Get a policy."""
    result = await service.get_policy(projectId, policyId)
    return _respond(result)


@router.put("/v1alpha/projects/{projectId}/policies/{policyId}")
async def update_policy(
    projectId: str,
    policyId: str,
    data: dict[str, Any] = Body(...),
    service: PolicyService = Depends(get_policy_service),
):
    """Write a new version of a policy."""
    result = await service.update_policy(projectId, policyId, data)
    return _respond(result)


@router.delete("/v1alpha/projects/{projectId}/policies/{policyId}")
async def delete_policy(
    projectId: str,
    policyId: str,
    data: Optional[dict[str, Any]] = Body(default=None),
    service: PolicyService = Depends(get_policy_service),
):
    """Soft-delete a policy."""
    result = await service.delete_policy(projectId, policyId, data)
    return _respond(result)
