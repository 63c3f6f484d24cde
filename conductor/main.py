"""
conductor — CLI entrypoint.

Usage:
    python -m conductor.main --help
    python -m conductor.main pods
    python -m conductor.main --override production output
    python -m conductor.main --default-tags tags.txt export ./dist
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import click

from conductor import __version__
from conductor.core.errors import ConductorError
from conductor.core.observability.logging_config import (
    FILE_ENV,
    FILE_LEVEL_ENV,
    resolve_level,
    setup_logging,
)


@click.group()
@click.version_option(version=__version__, prog_name="conductor")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--project-name",
    "-p",
    default=None,
    help="Project name (default: name of the project directory).",
)
@click.option(
    "--override",
    "-o",
    "override_name",
    default="development",
    show_default=True,
    help="Override to apply to every pod.",
)
@click.option(
    "--default-tags",
    "default_tags_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="File of image:tag lines to use for untagged images.",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    project_name: str | None,
    override_name: str,
    default_tags_path: str | None,
) -> None:
    """conductor — build and export docker-compose pods per environment."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["project_name"] = project_name
    ctx.obj["override_name"] = override_name
    ctx.obj["default_tags_path"] = Path(default_tags_path) if default_tags_path else None

    # ── Logging setup (once, at process start) ──────────────────
    setup_logging(
        level=resolve_level(debug, verbose, quiet, os.environ),
        log_file=os.environ.get(FILE_ENV),
        log_file_level=os.environ.get(FILE_LEVEL_ENV),
    )


def _fail(message: str) -> None:
    click.secho(f"❌ {message}", fg="red")
    sys.exit(1)


def _load_project(ctx: click.Context):
    """Build the project for the current directory, applying global options."""
    from conductor.core.config.loader import load_default_tags
    from conductor.core.project import Project

    try:
        project = Project.from_current_dir()
        if ctx.obj.get("project_name"):
            project.set_name(ctx.obj["project_name"])
        if ctx.obj.get("default_tags_path"):
            project.set_default_tags(load_default_tags(ctx.obj["default_tags_path"]))
    except ConductorError as e:
        _fail(str(e))
    return project


def _selected_override(ctx: click.Context, project):
    name = ctx.obj["override_name"]
    ovr = project.ovr(name)
    if ovr is None:
        known = ", ".join(o.name for o in project.overrides()) or "(none)"
        _fail(f"Unknown override '{name}' (available: {known})")
    return ovr


# ── Inspection ──────────────────────────────────────────────────


@cli.command()
@click.pass_context
def pods(ctx: click.Context) -> None:
    """List the pods in this project."""
    project = _load_project(ctx)
    for pod in project.pods():
        click.echo(pod.name)


@cli.command()
@click.pass_context
def overrides(ctx: click.Context) -> None:
    """List the overrides in this project."""
    project = _load_project(ctx)
    for ovr in project.overrides():
        click.echo(ovr.name)


@cli.command()
@click.pass_context
def repos(ctx: click.Context) -> None:
    """List git repositories used as build contexts."""
    project = _load_project(ctx)
    for repo in project.repos:
        marker = " ✓" if repo.is_cloned(project.src_dir) else ""
        click.echo(f"{repo.alias}{marker}  → {repo.url}")


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def info(ctx: click.Context, as_json: bool) -> None:
    """Show a summary of the project."""
    project = _load_project(ctx)

    if as_json:
        click.echo(json.dumps(project.to_dict(), indent=2))
        return

    click.secho(f"\n📋 {project.name}", fg="cyan", bold=True)
    click.echo(f"   Root:      {project.root_dir}")
    click.echo(f"   Output:    {project.output_dir}")
    click.echo(f"   Pods:      {', '.join(p.name for p in project.pods()) or '(none)'}")
    click.echo(f"   Overrides: {', '.join(o.name for o in project.overrides()) or '(none)'}")
    click.echo(f"   Plugins:   {', '.join(project.plugins.list_plugins()) or '(none)'}")
    click.echo()


# ── Output ──────────────────────────────────────────────────────


@cli.command()
@click.pass_context
def output(ctx: click.Context) -> None:
    """Regenerate .conductor/pods for the selected override."""
    project = _load_project(ctx)
    ovr = _selected_override(ctx, project)

    try:
        project.output(ovr)
    except ConductorError as e:
        _fail(str(e))

    if not ctx.obj.get("quiet"):
        click.secho(f"✅ Wrote {project.output_pods_dir}", fg="green")


@cli.command()
@click.argument("export_dir", type=click.Path(file_okay=False))
@click.pass_context
def export(ctx: click.Context, export_dir: str) -> None:
    """Export standalone pod files to EXPORT_DIR (which must not exist)."""
    project = _load_project(ctx)
    ovr = _selected_override(ctx, project)

    try:
        project.export(ovr, Path(export_dir))
    except ConductorError as e:
        _fail(str(e))

    if not ctx.obj.get("quiet"):
        click.secho(f"✅ Exported to {export_dir}", fg="green")


if __name__ == "__main__":
    cli()
