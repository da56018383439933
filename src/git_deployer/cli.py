"""CLI commands and argument parsing for git-deployer."""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from uuid import uuid4

from .commits import pull_request_url
from .config import (
    CONFIG_FILE,
    DeployerConfig,
    RepositoryLock,
    build_config,
    load_config_from_yaml,
)
from .deployer import Deployer
from .logging import get_logger
from .models import DeployStatus, EnvironmentStatus
from .settings import SettingsError
from .validate import format_results, validate_config, validate_settings

logger = get_logger("cli")

STATUS_ICON: dict[DeployStatus, str] = {
    DeployStatus.UP_TO_DATE: "✅",
    DeployStatus.PENDING_COMMITS: "⏳",
    DeployStatus.AHEAD_OF_BRANCH: "⚠️ ",
    DeployStatus.ERROR: "❌",
}


def _short(commit: str | None) -> str:
    return commit[:8] if commit else "-"


def _mask(token: str) -> str:
    if not token:
        return "(not set)"
    return token[:4] + "***" if len(token) > 8 else "***"


def _print_status(status: EnvironmentStatus) -> None:
    icon = STATUS_ICON.get(status.status, "?")
    print(
        f"   {icon} {status.name:<12} {status.branch:<20} {status.status.value:<16} "
        f"deployed: {_short(status.last_deployed_commit):<8}  "
        f"head: {_short(status.current_head_commit)}"
    )
    if status.error:
        print(f"      Error: {status.error[:200]}")


def _acquire_lock(args: argparse.Namespace, config: DeployerConfig) -> RepositoryLock | None:
    """Take the checkout lock unless --force. Returns None if another process holds it."""
    lock = RepositoryLock(config.lock_file)
    if getattr(args, "force", False):
        return lock
    if not lock.acquire():
        print(f"❌ Another git-deployer process is using {config.base_dir}")
        print("   Use --force to skip the lock check")
        return None
    return lock


# === CLI Commands ===


def cmd_init(args: argparse.Namespace, config: DeployerConfig) -> int:
    """Clone or refresh the configured repository."""
    deployer = Deployer(config)
    lock = _acquire_lock(args, config)
    if lock is None:
        return 1
    with lock:
        result = asyncio.run(deployer.initialize_repository())
    if result.success:
        print(f"✅ Repository ready at {deployer.repo_path()}")
        return 0
    print(f"❌ Repository initialization failed: {result.error}")
    return 1


def cmd_status(args: argparse.Namespace, config: DeployerConfig) -> int:
    """Environment status"""
    deployer = Deployer(config)
    if args.environment:
        statuses = [asyncio.run(deployer.check_status(args.environment))]
    else:
        try:
            statuses = asyncio.run(deployer.check_all())
        except SettingsError as e:
            if args.json:
                print(json.dumps({"success": False, "error": str(e)}, indent=2))
            else:
                print(f"❌ {e}")
            return 1

    if args.json:
        print(json.dumps([s.to_dict() for s in statuses], indent=2))
    else:
        print("\n📊 Environment Status")
        print(f"{'=' * 50}")
        if not statuses:
            print("No environments configured")
        for status in statuses:
            _print_status(status)

    return 1 if any(not s.ok for s in statuses) else 0


def cmd_deploy(args: argparse.Namespace, config: DeployerConfig) -> int:
    """Deploy one environment or every outdated one."""
    if not args.environment and not args.all_outdated:
        print("❌ Give an environment name or --all-outdated")
        return 2

    deployer = Deployer(config)
    lock = _acquire_lock(args, config)
    if lock is None:
        return 1
    with lock:
        if args.all_outdated:
            try:
                results = asyncio.run(deployer.deploy_all_outdated())
            except SettingsError as e:
                print(f"❌ {e}")
                return 1
        else:
            results = [asyncio.run(deployer.deploy(args.environment))]

    failed = 0
    for result in results:
        if result.deployed:
            print(f"🚀 {result.name}: deployed {_short(result.commit)}")
        elif result.error:
            failed += 1
            print(f"❌ {result.name}: {result.error[:200]}")
        else:
            print(f"✅ {result.name}: {result.output}")
    return 1 if failed else 0


def cmd_commits(args: argparse.Namespace, config: DeployerConfig) -> int:
    """Commits waiting to be deployed, or recently deployed ones."""
    deployer = Deployer(config)
    if args.recent:
        commits = asyncio.run(deployer.recent_deployed_commits(args.environment, args.days))
    else:
        commits = asyncio.run(deployer.commits_between(args.environment, ahead=args.ahead))

    if args.json:
        print(json.dumps([c.to_dict() for c in commits], indent=2))
        return 0

    if not commits:
        print("No commits found")
        return 0

    try:
        repository_url = deployer.settings().repository_url
    except SettingsError:
        repository_url = ""
    if args.recent:
        title = "Recently deployed to"
    elif args.ahead:
        title = "Deployed but no longer on the branch for"
    else:
        title = "Pending for"
    print(f"\n📝 {title} {args.environment} ({len(commits)}):")
    for commit in commits:
        print(
            f"   {commit.short_hash:<8} {commit.timestamp[:19]:<19} "
            f"{commit.author[:20]:<20} {commit.message}"
        )
        url = pull_request_url(commit, repository_url)
        if url:
            print(f"            {url}")
    return 0


def cmd_settings(args: argparse.Namespace, config: DeployerConfig) -> int:
    """Show or edit settings."""
    deployer = Deployer(config)
    try:
        settings = deployer.settings()
    except SettingsError as e:
        print(f"❌ {e}")
        return 1

    action = args.settings_command or "show"
    if action == "show":
        print(f"Settings file:    {config.settings_file}")
        print(f"Repository URL:   {settings.repository_url or '(not set)'}")
        print(f"Access token:     {_mask(settings.access_token)}")
        print(f"Checkout:         {deployer.repo_path(settings)}")
        print(f"Recent days:      {settings.recent_commit_days}")
        print("Environments:")
        for mapping in settings.mappings():
            print(f"   {mapping.name:<12} -> {mapping.branch}")
        return 0

    if action == "set-env":
        deployer.store.update_environment_mapping(args.name, args.branch)
        print(f"✅ {args.name} -> {args.branch}")
        return 0

    if action == "remove-env":
        if deployer.store.remove_environment_mapping(args.name):
            print(f"✅ Removed {args.name}")
            return 0
        print(f"❌ Unknown environment: {args.name}")
        return 1

    if action == "set-token":
        settings.access_token = args.token
    elif action == "set-repo":
        settings.repository_url = args.url
        if args.token is not None:
            settings.access_token = args.token
    result = asyncio.run(deployer.apply_settings(settings))
    if result.success:
        print(f"✅ {result.output.strip() or 'Settings saved'}")
        return 0
    print(f"❌ {result.error}")
    return 1


def cmd_validate(args: argparse.Namespace, config: DeployerConfig) -> int:
    """Validate config file and settings."""
    result = validate_config(Path(args.config) if args.config else CONFIG_FILE)
    try:
        result.merge(validate_settings(Deployer(config).settings()))
    except SettingsError as e:
        result.errors.append(str(e))
    print(format_results(result))
    return 0 if result.ok else 1


def cmd_mcp(args: argparse.Namespace, config: DeployerConfig) -> int:
    """Launch MCP server (stdio transport)."""
    from .mcp_server import run_server

    run_server(Deployer(config))
    return 0


# === Main ===


def build_parser() -> argparse.ArgumentParser:
    # Shared options available to every subcommand
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config", type=str, default=None, help=f"Config file (default: {CONFIG_FILE})"
    )
    common.add_argument("--settings-file", type=str, default=None, help="Settings YAML file")
    common.add_argument("--base-dir", type=str, default=None, help="Directory holding checkouts")
    common.add_argument("--remote", type=str, default=None, help="Git remote (default: origin)")
    common.add_argument(
        "--timeout",
        type=int,
        default=None,
        help="Per-command timeout in seconds, 0 disables (default: 300)",
    )
    common.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["debug", "info", "warning", "error"],
        help="Log level (default: info)",
    )
    common.add_argument(
        "--log-json",
        action="store_true",
        help="Output logs as JSON lines",
    )

    parser = argparse.ArgumentParser(
        prog="git-deployer",
        description="git-deployer: track and promote environments with marker tags",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        parents=[common],
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # init
    init_parser = subparsers.add_parser(
        "init", parents=[common], help="Clone or refresh the repository"
    )
    init_parser.add_argument("--force", action="store_true", help="Skip lock check")

    # status
    status_parser = subparsers.add_parser(
        "status", parents=[common], help="Show environment status"
    )
    status_parser.add_argument("environment", nargs="?", help="Environment (default: all)")
    status_parser.add_argument("--json", action="store_true", help="Output as JSON")

    # deploy
    deploy_parser = subparsers.add_parser(
        "deploy", parents=[common], help="Move an environment's tag to its branch tip"
    )
    deploy_parser.add_argument("environment", nargs="?", help="Environment to deploy")
    deploy_parser.add_argument(
        "--all-outdated", action="store_true", help="Deploy every outdated environment"
    )
    deploy_parser.add_argument(
        "--force",
        action="store_true",
        help="Skip lock check (use when lock is stale)",
    )

    # commits
    commits_parser = subparsers.add_parser(
        "commits", parents=[common], help="List commits not yet deployed"
    )
    commits_parser.add_argument("environment", help="Environment name")
    commits_parser.add_argument(
        "--recent", action="store_true", help="List recently deployed commits instead"
    )
    commits_parser.add_argument(
        "--ahead",
        action="store_true",
        help="List commits on the tag that the branch no longer has",
    )
    commits_parser.add_argument(
        "--days", type=int, default=None, help="Look-back window for --recent"
    )
    commits_parser.add_argument("--json", action="store_true", help="Output as JSON")

    # settings
    settings_parser = subparsers.add_parser(
        "settings", parents=[common], help="Show or edit settings"
    )
    settings_sub = settings_parser.add_subparsers(dest="settings_command")
    settings_sub.add_parser("show", help="Show settings")
    repo_parser = settings_sub.add_parser("set-repo", help="Set repository URL (re-initializes)")
    repo_parser.add_argument("url", help="Repository URL")
    repo_parser.add_argument("--token", default=None, help="Access token")
    token_parser = settings_sub.add_parser("set-token", help="Set access token")
    token_parser.add_argument("token", help="Access token")
    env_parser = settings_sub.add_parser("set-env", help="Map an environment to a branch")
    env_parser.add_argument("name", help="Environment name")
    env_parser.add_argument("branch", help="Branch name")
    remove_parser = settings_sub.add_parser("remove-env", help="Remove an environment")
    remove_parser.add_argument("name", help="Environment name")

    # validate
    subparsers.add_parser("validate", parents=[common], help="Validate config and settings")

    # mcp
    subparsers.add_parser("mcp", parents=[common], help="Launch MCP server")

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return

    # Load config from YAML file, then override with CLI args
    if args.config:
        yaml_config = load_config_from_yaml(Path(args.config))
    else:
        yaml_config = load_config_from_yaml()
    config = build_config(yaml_config, args)

    from .logging import setup_logging

    setup_logging(level=config.log_level, json_output=getattr(args, "log_json", False))

    import structlog

    structlog.contextvars.bind_contextvars(run_id=uuid4().hex[:8])

    # Dispatch
    commands = {
        "init": cmd_init,
        "status": cmd_status,
        "deploy": cmd_deploy,
        "commits": cmd_commits,
        "settings": cmd_settings,
        "validate": cmd_validate,
        "mcp": cmd_mcp,
    }

    cmd_func = commands.get(args.command)
    if cmd_func:
        code = cmd_func(args, config)
        if code:
            sys.exit(code)


if __name__ == "__main__":
    main()
