"""Typer application exposing the skill hub operations."""

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from skill_hub.config import get_settings
from skill_hub.core.exceptions import SkillHubError
from skill_hub.core.logging.logger import configure_logging
from skill_hub.skills import manager
from skill_hub.skills.sync import sync_skill_to_tool, unsync_skill_from_tool
from skill_hub.sources.git_cache import clear_git_cache
from skill_hub.sources.formatting import (
    format_revision_short,
    format_source_display,
    format_timestamp_display,
)
from skill_hub.store import CENTRAL_REPO_PATH_KEY, SqliteSkillStore, open_default_store
from skill_hub.tools.adapters import require_adapter, resolve_default_path
from skill_hub.tools.scanner import build_onboarding_plan, get_tool_status, scan_tool_dir

if TYPE_CHECKING:
    from collections.abc import Iterator

    from skill_hub.config import Settings
    from skill_hub.skills.discovery import SkillCandidate

app = typer.Typer(help="Manage agent skills across coding tools.", no_args_is_help=True)
config_app = typer.Typer(help="Inspect and change configuration.", no_args_is_help=True)
app.add_typer(config_app, name="config")
cache_app = typer.Typer(help="Manage the git checkout cache.", no_args_is_help=True)
app.add_typer(cache_app, name="cache")

console = Console()
error_console = Console(stderr=True)


def _open_store() -> tuple[Settings, SqliteSkillStore]:
    settings = get_settings()
    configure_logging(settings.logger)
    return settings, open_default_store(settings.resolved_database_path())


@contextmanager
def _handle_errors() -> Iterator[None]:
    try:
        yield
    except (SkillHubError, OSError, ValueError) as exc:
        error_console.print(f"[red]Error:[/red] {escape(str(exc))}", soft_wrap=True, highlight=False)
        raise typer.Exit(1) from exc


def _is_local_directory(source: str) -> bool:
    return Path(source).expanduser().is_dir()


def _print_candidates(candidates: list[SkillCandidate]) -> None:
    table = Table(show_header=True, header_style="bold")
    table.add_column("Subpath")
    table.add_column("Name")
    table.add_column("Status")
    for candidate in candidates:
        status = "[green]valid[/green]" if candidate.valid else f"[red]{candidate.reason}[/red]"
        table.add_row(candidate.subpath, candidate.name, status)
    console.print(table)


@config_app.command("show")
def config_show() -> None:
    """Show the effective configuration."""
    settings, store = _open_store()
    with _handle_errors():
        central = manager.get_central_repo_path(store, settings)
    console.print(f"central repository: {central}", soft_wrap=True, highlight=False)
    console.print(f"database: {store.db_path}", soft_wrap=True, highlight=False)
    console.print(f"default sync mode: {settings.sync.default_mode}", highlight=False)
    console.print(f"git cache: {settings.resolved_git_cache_dir()}", soft_wrap=True, highlight=False)
    console.print(
        f"git cache ttl: {settings.git.cache_ttl_secs}s, cleanup after {settings.git.cache_cleanup_days} days",
        highlight=False,
    )


@config_app.command("set-repo")
def config_set_repo(path: Path = typer.Argument(..., help="Absolute path of the central repository")) -> None:
    """Set the central repository path."""
    _, store = _open_store()
    with _handle_errors():
        resolved = manager.set_central_repo_path(store, path)
    console.print(f"[green]Central repository set to[/green] {resolved}", soft_wrap=True)


@cache_app.command("clear")
def cache_clear() -> None:
    """Delete every cached git checkout."""
    settings = get_settings()
    configure_logging(settings.logger)
    cache_root = settings.resolved_git_cache_dir()
    with _handle_errors():
        removed = clear_git_cache(cache_root)
    console.print(f"[green]Removed[/green] {removed} cached checkout(s) from {cache_root}", soft_wrap=True)


@app.command("candidates")
def candidates_command(source: str = typer.Argument(..., help="Local directory or git source")) -> None:
    """List skill candidates found in a source without installing anything."""
    settings, _ = _open_store()
    with _handle_errors():
        if _is_local_directory(source):
            candidates = manager.list_local_skills(Path(source), settings=settings)
        else:
            candidates = manager.list_git_skills(source, settings=settings)
    if not candidates:
        console.print("[yellow]No skill candidates found.[/yellow]")
        return
    _print_candidates(candidates)


@app.command("install")
def install_command(
    source: str = typer.Argument(..., help="Local directory or git source"),
    subpath: str | None = typer.Option(None, "--subpath", "-s", help="Candidate subpath to install"),
    name: str | None = typer.Option(None, "--name", "-n", help="Override the skill name"),
) -> None:
    """Install a skill into the central repository."""
    settings, store = _open_store()
    with _handle_errors():
        if _is_local_directory(source):
            if subpath:
                result = manager.install_local_skill_from_selection(
                    store, Path(source), subpath, name, settings=settings
                )
            else:
                result = manager.install_local_skill(store, Path(source), name, settings=settings)
        elif subpath:
            result = manager.install_git_skill_from_selection(store, source, subpath, name, settings=settings)
        else:
            result = manager.install_git_skill(store, source, name, settings=settings)
    console.print(
        f"[green]Installed[/green] {result.name} ({result.skill_id}) -> {result.central_path}",
        soft_wrap=True,
    )


@app.command("import")
def import_command(
    path: Path = typer.Argument(..., help="Skill directory inside a tool"),
    name: str | None = typer.Option(None, "--name", "-n", help="Override the skill name"),
) -> None:
    """Adopt an existing tool skill into the central repository."""
    settings, store = _open_store()
    with _handle_errors():
        result = manager.import_existing_skill(store, path, name, settings=settings)
    console.print(f"[green]Imported[/green] {result.name} ({result.skill_id})", soft_wrap=True)


@app.command("update")
def update_command(skill_id: str = typer.Argument(..., help="Managed skill id")) -> None:
    """Refresh a managed skill from its recorded source."""
    settings, store = _open_store()
    with _handle_errors():
        result = manager.update_managed_skill_from_source(store, skill_id, settings=settings)
    console.print(f"[green]Updated[/green] {result.name}", highlight=False)
    if result.updated_targets:
        console.print(f"refreshed copies: {', '.join(result.updated_targets)}", highlight=False)


@app.command("list")
def list_command() -> None:
    """List managed skills and their targets."""
    _, store = _open_store()
    skills = manager.list_managed_skills(store)
    if not skills:
        console.print("[yellow]No managed skills.[/yellow]")
        return
    table = Table(show_header=True, header_style="bold")
    table.add_column("Id")
    table.add_column("Source")
    table.add_column("Revision")
    table.add_column("Updated")
    table.add_column("Targets")
    for skill in skills:
        targets = ", ".join(
            target.tool if target.status == "ok" else f"{target.tool}!"
            for target in store.list_skill_targets(skill.id)
        )
        table.add_row(
            skill.id,
            format_source_display(skill.source_type, skill.source_ref, skill.source_subpath, skill.source_branch),
            format_revision_short(skill.source_revision),
            format_timestamp_display(skill.updated_at),
            targets or "-",
        )
    console.print(table)


@app.command("sync")
def sync_command(
    skill_id: str = typer.Argument(..., help="Managed skill id"),
    tool: str = typer.Argument(..., help="Tool key, e.g. claude_code"),
    mode: str | None = typer.Option(None, "--mode", "-m", help="auto, copy or symlink"),
    overwrite: bool = typer.Option(False, "--overwrite", help="Replace unmanaged content at the target"),
) -> None:
    """Materialize a managed skill in a tool directory."""
    settings, store = _open_store()
    if mode is not None and mode not in {"auto", "copy", "symlink"}:
        error_console.print(f"[red]Error:[/red] unknown sync mode: {mode}", highlight=False)
        raise typer.Exit(1)
    with _handle_errors():
        result = sync_skill_to_tool(
            store,
            skill_id,
            tool,
            mode=mode,  # type: ignore[arg-type]
            overwrite=overwrite,
            settings=settings,
        )
    console.print(
        f"[green]Synced[/green] {result.skill_id} ({result.mode}) for {', '.join(result.shared_tools)}",
        soft_wrap=True,
    )


@app.command("unsync")
def unsync_command(
    skill_id: str = typer.Argument(..., help="Managed skill id"),
    tool: str = typer.Argument(..., help="Tool key"),
) -> None:
    """Remove a synced skill from a tool directory."""
    _, store = _open_store()
    with _handle_errors():
        removed = unsync_skill_from_tool(store, skill_id, tool)
    if not removed:
        console.print(f"[yellow]{skill_id} is not synced to {tool}.[/yellow]")
        return
    console.print(f"[green]Unsynced[/green] {skill_id} from {', '.join(removed)}", highlight=False)


@app.command("tools")
def tools_command() -> None:
    """Show known tools and whether they are installed."""
    settings = get_settings()
    table = Table(show_header=True, header_style="bold")
    table.add_column("Key")
    table.add_column("Tool")
    table.add_column("Installed")
    for status in get_tool_status(settings.resolved_home_dir()):
        table.add_row(status.key, status.label, "yes" if status.installed else "-")
    console.print(table)


@app.command("scan")
def scan_command(tool: str = typer.Argument(..., help="Tool key")) -> None:
    """List skill directories present in one tool."""
    settings = get_settings()
    with _handle_errors():
        adapter = require_adapter(tool)
    skills_dir = resolve_default_path(adapter, settings.resolved_home_dir())
    detected = scan_tool_dir(adapter, skills_dir)
    if not detected:
        console.print(f"[yellow]No skills found in {skills_dir}[/yellow]", soft_wrap=True)
        return
    for skill in detected:
        suffix = f" -> {skill.link_target}" if skill.is_link else ""
        console.print(f"{skill.name}{suffix}", soft_wrap=True, highlight=False)


@app.command("onboarding")
def onboarding_command() -> None:
    """Group skills already present in installed tools by name."""
    settings, store = _open_store()
    central_root = None
    if store.get_setting(CENTRAL_REPO_PATH_KEY) or settings.central_repo_path:
        with _handle_errors():
            central_root = manager.get_central_repo_path(store, settings)
    plan = build_onboarding_plan(settings.resolved_home_dir(), central_root=central_root)
    if not plan.groups:
        console.print("[yellow]No unmanaged skills found.[/yellow]")
        return
    for group in plan.groups:
        marker = " [red](conflict)[/red]" if group.has_conflict else ""
        console.print(f"[bold]{group.name}[/bold]{marker}")
        for variant in group.variants:
            console.print(f"  {variant.tool}: {variant.path}", soft_wrap=True, highlight=False)
