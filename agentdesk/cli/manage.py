"""
AgentDesk management CLI.

Usage:
    agentdesk-manage init-db
    agentdesk-manage create-user admin@example.com --name "Admin" --admin
    agentdesk-manage create-api-key admin@example.com --name mobile --expires-days 90
    agentdesk-manage deploy-team <team-id> <workspace-id> [<workspace-id> ...]
    agentdesk-manage refresh-deployments
    agentdesk-manage serve --reload
"""

import argparse
import asyncio
import sys

from sqlalchemy import select

from agentdesk.application.services.auth_service import AuthService
from agentdesk.configuration.config import get_settings
from agentdesk.configuration.logging_config import configure_logging
from agentdesk.infrastructure.adapters.primary.web.dependencies.services import (
    build_deployment_service,
)
from agentdesk.infrastructure.adapters.secondary.persistence.database import (
    async_session_factory,
    dispose_database,
    initialize_database,
)
from agentdesk.infrastructure.adapters.secondary.persistence.models import User
from agentdesk.infrastructure.adapters.secondary.persistence.sql_api_key_repository import (
    SqlAPIKeyRepository,
    SqlUserRepository,
)


async def init_db(_args: argparse.Namespace) -> int:
    await initialize_database()
    print("Database schema initialized")
    return 0


async def create_user(args: argparse.Namespace) -> int:
    async with async_session_factory() as session:
        existing = await session.scalar(select(User).where(User.email == args.email))
        if existing is not None:
            print(f"Error: User already exists: {args.email}")
            return 1
        user = User(email=args.email, full_name=args.name, is_admin=args.admin)
        session.add(user)
        await session.commit()
        print(f"Created user {user.id} ({user.email})")
    return 0


async def create_api_key(args: argparse.Namespace) -> int:
    async with async_session_factory() as session:
        user = await session.scalar(select(User).where(User.email == args.email))
        if user is None:
            print(f"Error: User not found: {args.email}")
            return 1
        service = AuthService(SqlUserRepository(session), SqlAPIKeyRepository(session))
        expires = args.expires_days or get_settings().api_key_expire_days
        plain_key, api_key = await service.create_api_key(user.id, args.name, expires)
        await session.commit()

    print(f"API key {api_key.id} for {args.email}:")
    print(plain_key)
    print("Store it now; it cannot be shown again.")
    return 0


async def deploy_team(args: argparse.Namespace) -> int:
    async with async_session_factory() as session:
        service = build_deployment_service(session)
        result = await service.deploy_team_to_workspaces(
            args.team_id, args.workspace_ids, args.deployed_by
        )

    for workspace_id in result.succeeded:
        print(f"Deployed to {workspace_id}")
    for failure in result.failed:
        print(f"Failed {failure['workspace_id']}: {failure['error']}")
    return 0 if result.success else 1


async def refresh_deployments(_args: argparse.Namespace) -> int:
    async with async_session_factory() as session:
        result = await build_deployment_service(session).refresh_all_deployments(None)

    print(f"Refreshed {len(result.succeeded)} deployments")
    for failure in result.failed:
        print(f"Failed {failure['deployment_id']}: {failure['error']}")
    return 0 if result.success else 1


def serve(args: argparse.Namespace) -> int:
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "agentdesk.infrastructure.adapters.primary.web.main:app",
        host=args.host or settings.api_host,
        port=args.port or settings.api_port,
        reload=args.reload,
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="agentdesk-manage",
        description="AgentDesk management commands",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("init-db", help="Create database tables").set_defaults(handler=init_db)

    user_parser = commands.add_parser("create-user", help="Create a user")
    user_parser.add_argument("email")
    user_parser.add_argument("--name", default=None, help="Full name")
    user_parser.add_argument("--admin", action="store_true", help="Grant admin access")
    user_parser.set_defaults(handler=create_user)

    key_parser = commands.add_parser("create-api-key", help="Issue an API key for a user")
    key_parser.add_argument("email")
    key_parser.add_argument("--name", default="default", help="Key label")
    key_parser.add_argument("--expires-days", type=int, default=None)
    key_parser.set_defaults(handler=create_api_key)

    deploy_parser = commands.add_parser("deploy-team", help="Deploy a team to workspaces")
    deploy_parser.add_argument("team_id")
    deploy_parser.add_argument("workspace_ids", nargs="+")
    deploy_parser.add_argument("--deployed-by", default=None, help="User ID to attribute")
    deploy_parser.set_defaults(handler=deploy_team)

    commands.add_parser(
        "refresh-deployments", help="Rebuild active deployments from their teams"
    ).set_defaults(handler=refresh_deployments)

    serve_parser = commands.add_parser("serve", help="Run the API server")
    serve_parser.add_argument("--host", default=None)
    serve_parser.add_argument("--port", type=int, default=None)
    serve_parser.add_argument("--reload", action="store_true")
    serve_parser.set_defaults(handler=serve)

    return parser


async def _run_async(args: argparse.Namespace) -> int:
    try:
        return await args.handler(args)
    finally:
        await dispose_database()


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_format, stream=sys.stderr)

    if args.handler is serve:
        sys.exit(serve(args))
    sys.exit(asyncio.run(_run_async(args)))


if __name__ == "__main__":
    main()
