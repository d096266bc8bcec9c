"""CLI entry point for Cortex Guard."""

from __future__ import annotations

import asyncio
import json
import shutil
import sys
from pathlib import Path
from typing import Optional, Tuple

import click

from cortex_guard import __version__

BANNER = """\
╔══════════════════════════════════════╗
║  CORTEX GUARD — Access & Audit Plane ║
║  System Initialization               ║
╚══════════════════════════════════════╝"""

VERSION = __version__


def _find_template() -> Path:
    """Locate config.cp.yaml, supporting both dev and PyInstaller."""
    if getattr(sys, "_MEIPASS", None):
        return Path(sys._MEIPASS) / "cortex_guard" / "config.cp.yaml"
    return Path(__file__).parent / "config.cp.yaml"


@click.group()
@click.option(
    "--config", "config_path", type=click.Path(dir_okay=False), default=None,
    help="Path to config.yaml (defaults to ./config.yaml, then ~/.cortex_guard/).",
)
def cli(config_path: Optional[str]) -> None:
    """Cortex Guard — access control, approval and audit plane"""
    from cortex_guard.config import load_config
    from cortex_guard.logging_config import setup_logging

    load_config(config_path)
    setup_logging()


@cli.command()
@click.option("--force", is_flag=True, help="Overwrite existing config file.")
def init(force: bool) -> None:
    """Initialize config to ~/.cortex_guard/."""
    from cortex_guard.config import _default_data_dir

    config_dir = _default_data_dir()
    config_dest = config_dir / "config.yaml"
    template = _find_template()

    click.echo(BANNER)
    click.echo()

    # Create base directory
    config_dir.mkdir(parents=True, exist_ok=True)
    click.echo(f"  [ok] Directory ready: {config_dir}")

    # Copy config template
    if config_dest.exists() and not force:
        click.echo(f"  [--] Config already exists: {config_dest}")
        click.echo("       Use --force to overwrite.")
    else:
        shutil.copy2(template, config_dest)
        click.echo(f"  [ok] Config created: {config_dest}")

    # Create subdirectories
    for subdir in ["logs", "audit"]:
        p = config_dir / subdir
        p.mkdir(parents=True, exist_ok=True)
        click.echo(f"  [ok] Subdirectory ready: {p}")

    click.echo()
    click.echo(f"  -> Edit {config_dest} to set the classification ceiling.")


@cli.command()
def version() -> None:
    """Show version information."""
    click.echo(f"cortex-guard v{VERSION}")


# ── Audit trail ──


@cli.group()
def audit() -> None:
    """Read the audit trail."""


@audit.command("search")
@click.argument("query")
@click.option("--limit", default=50, show_default=True, help="Maximum events to return.")
def audit_search(query: str, limit: int) -> None:
    """Print events containing QUERY, newest first, one JSON line each."""
    from cortex_guard.config import get_config
    from cortex_guard.kernel.audit_logger import AuditLogger

    logger = AuditLogger.from_config(get_config())
    events = asyncio.run(logger.search(query, limit=limit))
    if not events:
        click.echo("(no matching events)", err=True)
        return
    for ev in events:
        click.echo(ev.model_dump_json(exclude_none=True))


# ── Permissions ──


@cli.command()
@click.argument("permission")
@click.option("--role", "roles", multiple=True, help="Role asserted for the actor (repeatable).")
@click.option("--actor", "actor_id", default="cli", show_default=True, help="Actor id to report.")
def check(permission: str, roles: Tuple[str, ...], actor_id: str) -> None:
    """Check whether the given roles grant PERMISSION."""
    from cortex_guard.core.errors import PermissionDenied
    from cortex_guard.core.protocols import Actor
    from cortex_guard.kernel.rbac import assert_permission, permissions_for

    actor = Actor(id=actor_id, roles=list(roles))
    try:
        assert_permission(actor, permission)
    except PermissionDenied as exc:
        granted = sorted(p.value for p in permissions_for(actor))
        click.echo(f"  granted: {', '.join(granted) or '(none)'}", err=True)
        raise click.ClickException(str(exc))
    click.echo(f"allowed: {actor.label} holds {permission}")


# ── Classification ──


@cli.command()
@click.argument("text")
def mask(text: str) -> None:
    """Mask emails, card numbers and phone numbers in TEXT."""
    from cortex_guard.kernel.classification import mask_pii

    result = mask_pii(text)
    click.echo(result.text)
    if result.masked:
        kinds = sorted({m.kind for m in result.matches})
        click.echo(f"  masked: {', '.join(kinds)}", err=True)


@cli.command()
@click.argument("text")
@click.option(
    "--classification", "-c", required=True,
    type=click.Choice(["public", "internal", "confidential", "restricted"]),
    help="Classification of TEXT.",
)
@click.option(
    "--max", "ceiling", default=None,
    type=click.Choice(["public", "internal", "confidential", "restricted"]),
    help="Highest level allowed out (defaults to config).",
)
@click.option("--mask/--no-mask", "mask_pii_flag", default=None, help="Mask PII before release.")
def gate(text: str, classification: str, ceiling: Optional[str], mask_pii_flag: Optional[bool]) -> None:
    """Apply the external-provider gate to TEXT and print what may leave."""
    from cortex_guard.config import get_config
    from cortex_guard.core.errors import ClassificationBlocked
    from cortex_guard.kernel.classification import gate_external_llm

    policy = get_config().classification.to_policy()
    updates = {}
    if ceiling is not None:
        updates["max_external_classification"] = ceiling
    if mask_pii_flag is not None:
        updates["mask_pii_before_external"] = mask_pii_flag
    if updates:
        policy = policy.model_validate({**policy.model_dump(), **updates})

    try:
        result = gate_external_llm(classification, policy, text)
    except ClassificationBlocked as exc:
        raise click.ClickException(str(exc))
    click.echo(json.dumps({"text": result.text, "masked": result.masked}, ensure_ascii=False))
