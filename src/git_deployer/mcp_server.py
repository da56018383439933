"""MCP server for git-deployer -- exposes environment status, deployment and commits as tools."""

import argparse
import json

from mcp.server.fastmcp import FastMCP

from .config import DeployerConfig, build_config, load_config_from_yaml
from .deployer import Deployer
from .settings import SettingsError

mcp_app = FastMCP("git-deployer")

_deployer: Deployer | None = None


def _build_config() -> DeployerConfig:
    """Build DeployerConfig from YAML defaults."""
    return build_config(load_config_from_yaml(), argparse.Namespace())


def _get_deployer() -> Deployer:
    # One Deployer (and so one command queue) for the server's lifetime
    global _deployer
    if _deployer is None:
        _deployer = Deployer(_build_config())
    return _deployer


def _handle_environments(deployer: Deployer) -> str:
    try:
        settings = deployer.settings()
    except SettingsError as e:
        return json.dumps({"success": False, "error": str(e)})
    return json.dumps(
        {
            "repository_url": settings.repository_url,
            "environments": [
                {"name": m.name, "branch": m.branch} for m in settings.mappings()
            ],
        }
    )


async def _handle_status(deployer: Deployer, environment: str = "") -> str:
    if environment:
        status = await deployer.check_status(environment)
        return json.dumps(status.to_dict())
    try:
        statuses = await deployer.check_all()
    except SettingsError as e:
        return json.dumps({"success": False, "error": str(e)})
    return json.dumps({"environments": [s.to_dict() for s in statuses]})


async def _handle_deploy(deployer: Deployer, environment: str) -> str:
    result = await deployer.deploy(environment)
    return json.dumps(result.to_dict())


async def _handle_deploy_all_outdated(deployer: Deployer) -> str:
    try:
        results = await deployer.deploy_all_outdated()
    except SettingsError as e:
        return json.dumps({"success": False, "error": str(e)})
    return json.dumps({"deployments": [r.to_dict() for r in results]})


async def _handle_commits(
    deployer: Deployer, environment: str, recent: bool = False, ahead: bool = False
) -> str:
    if recent:
        commits = await deployer.recent_deployed_commits(environment)
    else:
        commits = await deployer.commits_between(environment, ahead=ahead)
    return json.dumps([c.to_dict() for c in commits])


# === MCP Tool Definitions ===


@mcp_app.tool()
def deployer_environments() -> str:
    """List configured environments and the branches that feed them."""
    return _handle_environments(_get_deployer())


@mcp_app.tool()
async def deployer_status(environment: str = "") -> str:
    """Deployment status of one environment, or of all environments when none is given."""
    return await _handle_status(_get_deployer(), environment)


@mcp_app.tool()
async def deployer_deploy(environment: str) -> str:
    """Move the environment's tag to its branch tip and push it."""
    return await _handle_deploy(_get_deployer(), environment)


@mcp_app.tool()
async def deployer_deploy_all_outdated() -> str:
    """Deploy every environment whose tag is not at its branch tip."""
    return await _handle_deploy_all_outdated(_get_deployer())


@mcp_app.tool()
async def deployer_commits(environment: str, recent: bool = False, ahead: bool = False) -> str:
    """Commits not yet deployed to the environment.

    recent=true lists recently deployed commits instead; ahead=true lists
    deployed commits the branch no longer has.
    """
    return await _handle_commits(_get_deployer(), environment, recent=recent, ahead=ahead)


def run_server(deployer: Deployer | None = None) -> None:
    """Run the MCP server (stdio transport)."""
    global _deployer
    if deployer is not None:
        _deployer = deployer
    mcp_app.run(transport="stdio")
