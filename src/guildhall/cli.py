"""Guildhall CLI — command-line interface for the project registry.

Usage:
    python -m guildhall.cli status
    python -m guildhall.cli --as alice grant-admin --id bob
    python -m guildhall.cli --as alice create-project --name Docs --collateral 100 --threshold 1 --max 5
    python -m guildhall.cli --as carol register
    python -m guildhall.cli --as carol visible
    python -m guildhall.cli --as alice ban --id carol
    python -m guildhall.cli check-policy

Token access:
    With GUILDHALL_RPC_URL and GUILDHALL_TOKEN_ADDRESS set (environment or a
    .env file), holder checks and withdrawals go to the ERC-20 contract,
    signed with GUILDHALL_PRIVATE_KEY. Otherwise balances are read from
    balances.json in the data directory.
"""

from __future__ import annotations

import argparse
import json
import os
import sys
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from guildhall.collaborators.in_memory import InMemoryToken
from guildhall.directory.contributors import ContributorProfile
from guildhall.persistence.event_log import EventLog
from guildhall.persistence.state_store import StateStore
from guildhall.policy.resolver import PolicyResolver
from guildhall.service import (
    DEFAULT_SERVICE_IDENTITY,
    GuildService,
    ServiceResult,
    project_summary,
)

ROOT = Path(__file__).resolve().parents[2]
DEFAULT_CONFIG = ROOT / "config"
DEFAULT_DATA = ROOT / "data"


def _make_token(data_dir: Path) -> tuple[Any, str]:
    """Return (token, service identity) from the environment or local data."""
    load_dotenv(ROOT / ".env")
    rpc_url = os.getenv("GUILDHALL_RPC_URL")
    token_address = os.getenv("GUILDHALL_TOKEN_ADDRESS")
    if rpc_url and token_address:
        from guildhall.chain.token import ERC20TokenGateway

        gateway = ERC20TokenGateway.from_rpc(
            rpc_url, token_address, os.getenv("GUILDHALL_PRIVATE_KEY"),
        )
        identity = gateway.account_address or os.getenv(
            "GUILDHALL_IDENTITY", DEFAULT_SERVICE_IDENTITY,
        )
        return gateway, identity

    identity = os.getenv("GUILDHALL_IDENTITY", DEFAULT_SERVICE_IDENTITY)
    balances: dict[str, int] = {}
    balances_path = data_dir / "balances.json"
    if balances_path.exists():
        with balances_path.open("r", encoding="utf-8") as f:
            balances = {k: int(v) for k, v in json.load(f).items()}
    return InMemoryToken(identity, balances), identity


def _make_service(
    config_dir: Path,
    data_dir: Path,
    owner: str,
) -> GuildService:
    """Create a GuildService with durable persistence."""
    data_dir.mkdir(parents=True, exist_ok=True)
    resolver = PolicyResolver.from_config_dir(config_dir)
    token, identity = _make_token(data_dir)
    return GuildService(
        owner,
        token,
        resolver=resolver,
        service_identity=identity,
        event_log=EventLog(storage_path=data_dir / "events.jsonl"),
        state_store=StateStore(storage_path=data_dir / "state.json"),
    )


def _service(args: argparse.Namespace) -> GuildService:
    return _make_service(args.config, args.data, args.owner or args.caller)


def _report(result: ServiceResult, message: str) -> int:
    if result.success:
        print(message)
        return 0
    kind = result.error_kind.value if result.error_kind else "error"
    print(f"Failed ({kind}): {'; '.join(result.errors)}", file=sys.stderr)
    return 1


def cmd_status(args: argparse.Namespace) -> int:
    service = _service(args)
    print(json.dumps(service.status(), indent=2))
    return 0


def cmd_grant_admin(args: argparse.Namespace) -> int:
    result = _service(args).grant_admin(args.caller, args.id)
    return _report(result, f"Admin granted: {args.id}")


def cmd_revoke_admin(args: argparse.Namespace) -> int:
    result = _service(args).revoke_admin(args.caller, args.id)
    return _report(result, f"Admin revoked: {args.id}")


def cmd_pause(args: argparse.Namespace) -> int:
    result = _service(args).set_paused(args.caller, True)
    return _report(result, "Registry paused")


def cmd_unpause(args: argparse.Namespace) -> int:
    result = _service(args).set_paused(args.caller, False)
    return _report(result, "Registry unpaused")


def cmd_create_project(args: argparse.Namespace) -> int:
    result = _service(args).create_project(
        args.caller,
        args.name,
        args.collateral,
        args.threshold,
        args.max,
    )
    if not result.success:
        return _report(result, "")
    return _report(
        result,
        f"Created project {result.data['project_id']} "
        f"({result.data['project_identity']})",
    )


def cmd_register(args: argparse.Namespace) -> int:
    result = _service(args).register_self(args.caller)
    return _report(result, f"Registered contributor: {args.caller}")


def cmd_list(args: argparse.Namespace) -> int:
    service = _service(args)
    print(json.dumps([project_summary(r) for r in service.list_all()], indent=2))
    return 0


def cmd_list_deleted(args: argparse.Namespace) -> int:
    service = _service(args)
    print(json.dumps([project_summary(r) for r in service.list_deleted()], indent=2))
    return 0


def cmd_visible(args: argparse.Namespace) -> int:
    result = _service(args).get_visible_projects(args.caller)
    if not result.success:
        return _report(result, "")
    print(json.dumps(
        [project_summary(r) for r in result.data["projects"]], indent=2,
    ))
    return 0


def cmd_raise_reputation(args: argparse.Namespace) -> int:
    result = _service(args).increase_reputation(args.caller, args.id, args.levels)
    if not result.success:
        return _report(result, "")
    return _report(
        result, f"{args.id} is now level {result.data['reputation_level']}",
    )


def cmd_set_profile(args: argparse.Namespace) -> int:
    profile = ContributorProfile(
        reputation_level=args.level,
        reputation_points=args.points,
        is_banned=args.banned,
    )
    result = _service(args).set_profile(args.caller, args.id, profile)
    return _report(result, f"Profile set: {args.id}")


def cmd_ban(args: argparse.Namespace) -> int:
    result = _service(args).set_banned(args.caller, args.id, True)
    if not result.success:
        return _report(result, "")
    removed = result.data["removed_from"]
    return _report(result, f"Banned {args.id}; removed from projects {removed}")


def cmd_unban(args: argparse.Namespace) -> int:
    result = _service(args).set_banned(args.caller, args.id, False)
    return _report(result, f"Unbanned {args.id}")


def cmd_withdraw(args: argparse.Namespace) -> int:
    result = _service(args).withdraw_funds(args.caller)
    if not result.success:
        return _report(result, "")
    return _report(result, f"Withdrew {result.data['amount']} to {result.data['to']}")


def cmd_check_policy(args: argparse.Namespace) -> int:
    """Validate the policy file."""
    try:
        resolver = PolicyResolver.from_config_dir(args.config)
    except ValueError as e:
        print(f"Policy check failed: {e}", file=sys.stderr)
        return 1
    print(json.dumps(resolver.as_dict(), indent=2))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="guildhall",
        description="Guildhall — role-gated project registry CLI",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG,
        help="Path to config directory (default: config/)",
    )
    parser.add_argument(
        "--data",
        type=Path,
        default=DEFAULT_DATA,
        help="Path to data directory (default: data/)",
    )
    parser.add_argument(
        "--as",
        dest="caller",
        default=os.getenv("GUILDHALL_CALLER", "owner"),
        help="Caller identity (default: $GUILDHALL_CALLER or 'owner')",
    )
    parser.add_argument(
        "--owner",
        default=os.getenv("GUILDHALL_OWNER"),
        help="Owner for a fresh registry (default: the caller)",
    )
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("status", help="Show registry status")

    p_grant = sub.add_parser("grant-admin", help="Grant admin standing (owner only)")
    p_grant.add_argument("--id", required=True, help="Identity to grant")

    p_revoke = sub.add_parser("revoke-admin", help="Revoke admin standing (owner only)")
    p_revoke.add_argument("--id", required=True, help="Identity to revoke")

    sub.add_parser("pause", help="Pause mutating operations (admin only)")
    sub.add_parser("unpause", help="Resume mutating operations (admin only)")

    p_create = sub.add_parser("create-project", help="Create a project (admin only)")
    p_create.add_argument("--name", required=True, help="Project name")
    p_create.add_argument("--collateral", type=int, required=True, help="Collateral cost")
    p_create.add_argument("--threshold", type=int, required=True, help="Reputation threshold")
    p_create.add_argument("--max", type=int, required=True, help="Max contributors")

    sub.add_parser("register", help="Register the caller as a contributor")
    sub.add_parser("list", help="List live projects, newest first")
    sub.add_parser("list-deleted", help="List deleted projects, oldest first")
    sub.add_parser("visible", help="List projects visible to the caller")

    p_rep = sub.add_parser("raise-reputation", help="Raise a contributor's level (admin only)")
    p_rep.add_argument("--id", required=True, help="Contributor identity")
    p_rep.add_argument("--levels", type=int, default=1, help="Levels to add (default: 1)")

    p_prof = sub.add_parser("set-profile", help="Overwrite a contributor profile (admin only)")
    p_prof.add_argument("--id", required=True, help="Contributor identity")
    p_prof.add_argument("--level", type=int, required=True, help="Reputation level")
    p_prof.add_argument("--points", type=int, default=0, help="Reputation points")
    p_prof.add_argument("--banned", action="store_true", help="Mark as banned")

    p_ban = sub.add_parser("ban", help="Ban a contributor (admin only)")
    p_ban.add_argument("--id", required=True, help="Contributor identity")

    p_unban = sub.add_parser("unban", help="Lift a ban (admin only)")
    p_unban.add_argument("--id", required=True, help="Contributor identity")

    sub.add_parser("withdraw", help="Withdraw registry funds to the owner (owner only)")
    sub.add_parser("check-policy", help="Validate config/registry_policy.json")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    commands = {
        "status": cmd_status,
        "grant-admin": cmd_grant_admin,
        "revoke-admin": cmd_revoke_admin,
        "pause": cmd_pause,
        "unpause": cmd_unpause,
        "create-project": cmd_create_project,
        "register": cmd_register,
        "list": cmd_list,
        "list-deleted": cmd_list_deleted,
        "visible": cmd_visible,
        "raise-reputation": cmd_raise_reputation,
        "set-profile": cmd_set_profile,
        "ban": cmd_ban,
        "unban": cmd_unban,
        "withdraw": cmd_withdraw,
        "check-policy": cmd_check_policy,
    }

    handler = commands.get(args.command)
    if handler is None:
        print(f"Unknown command: {args.command}", file=sys.stderr)
        return 1

    return handler(args)


if __name__ == "__main__":
    raise SystemExit(main())
