import logging

from sqlalchemy import select, update

from agentdesk.domain.model.team.customizations import Customizations
from agentdesk.domain.model.team.deployment import DeploymentStatus, WorkspaceDeployment
from agentdesk.domain.model.team.team_config import DeployedTeamConfig
from agentdesk.domain.ports.repositories import DeploymentRepository
from agentdesk.infrastructure.adapters.secondary.common.base_repository import (
    BaseRepository,
    handle_db_errors,
)
from agentdesk.infrastructure.adapters.secondary.persistence.models import (
    WorkspaceDeployedTeam as DBDeployment,
)

logger = logging.getLogger(__name__)


class SqlDeploymentRepository(BaseRepository[WorkspaceDeployment, DBDeployment], DeploymentRepository):
    _model_class = DBDeployment

    @handle_db_errors("WorkspaceDeployment")
    async def save(self, deployment: WorkspaceDeployment) -> WorkspaceDeployment:
        return await super().save(deployment)

    @handle_db_errors("WorkspaceDeployment")
    async def find_active(self, workspace_id: str) -> WorkspaceDeployment | None:
        query = (
            select(DBDeployment)
            .where(
                DBDeployment.workspace_id == workspace_id,
                DBDeployment.status == DeploymentStatus.ACTIVE.value,
            )
            .order_by(DBDeployment.deployed_at.desc())
            .limit(1)
        )
        result = await self._session.execute(query)
        return self._to_domain(result.scalar_one_or_none())

    @handle_db_errors("WorkspaceDeployment")
    async def list_active(self) -> list[WorkspaceDeployment]:
        query = select(DBDeployment).where(DBDeployment.status == DeploymentStatus.ACTIVE.value)
        result = await self._session.execute(query)
        return [self._to_domain(row) for row in result.scalars().all()]

    @handle_db_errors("WorkspaceDeployment")
    async def list_by_workspace(self, workspace_id: str) -> list[WorkspaceDeployment]:
        query = (
            select(DBDeployment)
            .where(DBDeployment.workspace_id == workspace_id)
            .order_by(DBDeployment.deployed_at.desc())
        )
        result = await self._session.execute(query)
        return [self._to_domain(row) for row in result.scalars().all()]

    @handle_db_errors("WorkspaceDeployment")
    async def update_status(
        self,
        deployment_id: str,
        status: DeploymentStatus,
        error_message: str | None = None,
    ) -> None:
        values: dict = {"status": status.value}
        if error_message is not None:
            values["error_message"] = error_message
        await self._session.execute(
            update(DBDeployment).where(DBDeployment.id == deployment_id).values(**values)
        )
        await self._session.flush()

    # === Conversion methods ===

    def _to_domain(self, db_model: DBDeployment | None) -> WorkspaceDeployment | None:
        if db_model is None:
            return None
        return WorkspaceDeployment(
            id=db_model.id,
            workspace_id=db_model.workspace_id,
            source_team_id=db_model.source_team_id,
            source_version=db_model.source_version,
            status=DeploymentStatus(db_model.status),
            base_config=DeployedTeamConfig.from_dict(db_model.base_config),
            customizations=Customizations.from_dict(db_model.customizations),
            active_config=DeployedTeamConfig.from_dict(db_model.active_config),
            previous_deployment_id=db_model.previous_deployment_id,
            deployed_by=db_model.deployed_by,
            deployed_at=db_model.deployed_at,
            last_customized_at=db_model.last_customized_at,
            last_customized_by=db_model.last_customized_by,
            error_message=db_model.error_message,
        )

    def _to_db(self, domain_entity: WorkspaceDeployment) -> DBDeployment:
        return DBDeployment(
            id=domain_entity.id,
            workspace_id=domain_entity.workspace_id,
            source_team_id=domain_entity.source_team_id,
            source_version=domain_entity.source_version,
            status=domain_entity.status.value,
            base_config=domain_entity.base_config.to_dict(),
            customizations=domain_entity.customizations.to_dict(),
            active_config=domain_entity.active_config.to_dict(),
            previous_deployment_id=domain_entity.previous_deployment_id,
            deployed_by=domain_entity.deployed_by,
            deployed_at=domain_entity.deployed_at,
            last_customized_at=domain_entity.last_customized_at,
            last_customized_by=domain_entity.last_customized_by,
            error_message=domain_entity.error_message,
        )
