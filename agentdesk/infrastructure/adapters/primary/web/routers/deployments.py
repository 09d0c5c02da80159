"""Admin endpoints for team deployments."""

import logging
from dataclasses import asdict

from fastapi import APIRouter, Depends, status

from agentdesk.application.schemas.deployment import (
    BatchResponse,
    CustomizationsUpdate,
    DeploymentResponse,
    DeployTeamRequest,
    ToggleAgentRequest,
)
from agentdesk.application.services.deployment_service import DeploymentService
from agentdesk.domain.exceptions import NoActiveDeploymentError
from agentdesk.domain.model.auth.session_user import SessionUser
from agentdesk.infrastructure.adapters.primary.web.dependencies import (
    get_deployment_service,
    require_admin,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin/deployments", tags=["deployments"])


@router.post("", response_model=BatchResponse)
async def deploy_team(
    body: DeployTeamRequest,
    admin: SessionUser = Depends(require_admin),
    service: DeploymentService = Depends(get_deployment_service),
):
    """Deploy a team template to one or more workspaces."""
    result = await service.deploy_team_to_workspaces(body.team_id, body.workspace_ids, admin.id)
    return BatchResponse(success=result.success, succeeded=result.succeeded, failed=result.failed)


@router.post("/refresh", response_model=BatchResponse)
async def refresh_deployments(
    admin: SessionUser = Depends(require_admin),
    service: DeploymentService = Depends(get_deployment_service),
):
    """Rebuild every active deployment from its team template."""
    result = await service.refresh_all_deployments(admin.id)
    return BatchResponse(success=result.success, succeeded=result.succeeded, failed=result.failed)


@router.get("/{workspace_id}", response_model=DeploymentResponse)
async def get_active_deployment(
    workspace_id: str,
    _admin: SessionUser = Depends(require_admin),
    service: DeploymentService = Depends(get_deployment_service),
):
    deployment = await service.get_active_deployment(workspace_id)
    if deployment is None:
        raise NoActiveDeploymentError(workspace_id)
    return DeploymentResponse.from_domain(deployment)


@router.get("/{workspace_id}/history", response_model=list[DeploymentResponse])
async def list_deployments(
    workspace_id: str,
    _admin: SessionUser = Depends(require_admin),
    service: DeploymentService = Depends(get_deployment_service),
):
    return [DeploymentResponse.from_domain(d) for d in await service.list_deployments(workspace_id)]


@router.post("/{workspace_id}/rollback", response_model=DeploymentResponse)
async def rollback_deployment(
    workspace_id: str,
    admin: SessionUser = Depends(require_admin),
    service: DeploymentService = Depends(get_deployment_service),
):
    return DeploymentResponse.from_domain(await service.rollback_deployment(workspace_id, admin.id))


@router.get("/{workspace_id}/customizations")
async def get_customizations(
    workspace_id: str,
    _admin: SessionUser = Depends(require_admin),
    service: DeploymentService = Depends(get_deployment_service),
):
    deployment = await service.get_active_deployment(workspace_id)
    if deployment is None:
        raise NoActiveDeploymentError(workspace_id)
    return {"deployment_id": deployment.id, "customizations": deployment.customizations.to_dict()}


@router.patch("/{workspace_id}/customizations", response_model=DeploymentResponse)
async def update_customizations(
    workspace_id: str,
    body: CustomizationsUpdate,
    admin: SessionUser = Depends(require_admin),
    service: DeploymentService = Depends(get_deployment_service),
):
    deployment = await service.update_customizations(workspace_id, body.to_update(), admin.id)
    return DeploymentResponse.from_domain(deployment)


@router.delete("/{workspace_id}/customizations", response_model=DeploymentResponse)
async def reset_customizations(
    workspace_id: str,
    admin: SessionUser = Depends(require_admin),
    service: DeploymentService = Depends(get_deployment_service),
):
    return DeploymentResponse.from_domain(await service.reset_customizations(workspace_id, admin.id))


@router.post("/{workspace_id}/agents/{agent_slug}/toggle")
async def toggle_agent(
    workspace_id: str,
    agent_slug: str,
    body: ToggleAgentRequest,
    admin: SessionUser = Depends(require_admin),
    service: DeploymentService = Depends(get_deployment_service),
):
    summary = await service.toggle_agent_enabled(workspace_id, agent_slug, body.enabled, admin.id)
    return {
        "agent_slug": agent_slug,
        "enabled": body.enabled,
        "provisioning": summary.to_dict() if summary else None,
    }


@router.post("/{workspace_id}/upgrade")
async def upgrade_deployment(
    workspace_id: str,
    admin: SessionUser = Depends(require_admin),
    service: DeploymentService = Depends(get_deployment_service),
):
    outcome = await service.upgrade_deployment(workspace_id, admin.id)
    return outcome.to_dict()


@router.post("/{workspace_id}/undeploy", status_code=status.HTTP_204_NO_CONTENT)
async def undeploy(
    workspace_id: str,
    _admin: SessionUser = Depends(require_admin),
    service: DeploymentService = Depends(get_deployment_service),
) -> None:
    await service.undeploy(workspace_id)


@router.get("/{workspace_id}/resources")
async def get_agent_resources(
    workspace_id: str,
    _admin: SessionUser = Depends(require_admin),
    service: DeploymentService = Depends(get_deployment_service),
):
    resources = await service.get_workspace_agent_resources(workspace_id)
    return {"resources": [asdict(r) for r in resources]}


@router.delete("/{workspace_id}/resources")
async def cleanup_agent_resources(
    workspace_id: str,
    admin: SessionUser = Depends(require_admin),
    service: DeploymentService = Depends(get_deployment_service),
):
    removed = await service.cleanup_agent_resources(workspace_id)
    logger.info(f"Admin {admin.id} removed {removed} agent resources from {workspace_id}")
    return {"removed": removed}
