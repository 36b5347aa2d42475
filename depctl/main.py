"""
depctl — CLI entrypoint.

Usage:
    python -m depctl.main --help
    depctl invoke ./project --force
    depctl invoke --test --quiet
    depctl list --tag dev
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import click

from depctl import __version__
from depctl.core.observability.logging_config import setup_logging

_PATH = click.Path(path_type=Path)


@click.group()
@click.version_option(version=__version__, prog_name="depctl")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, debug: bool) -> None:
    """depctl — declarative dependency installation."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["debug"] = debug

    # ── Logging setup (once, at process start) ──────────────────
    if debug:
        level = "DEBUG"
    elif verbose:
        level = "INFO"
    else:
        level = os.environ.get("DEPCTL_LOG_LEVEL", "WARNING")

    setup_logging(
        level=level,
        log_file=os.environ.get("DEPCTL_LOG_FILE"),
        log_file_level=os.environ.get("DEPCTL_LOG_FILE_LEVEL"),
        quiet_third_party=not debug,
    )


def _make_confirm(dry_run: bool):
    """Confirmation callback: 'What if' under dry-run, a prompt otherwise."""

    def confirm(message: str) -> bool:
        if dry_run:
            click.secho(f"What if: {message}", fg="cyan")
            return False
        return click.confirm(f"{message}?", default=True)

    return confirm


@cli.command()
@click.argument("paths", nargs=-1, type=_PATH)
@click.option("--recurse/--no-recurse", default=True, help="Search directories recursively.")
@click.option("--tag", "-t", "tags", multiple=True, help="Only dependencies with this tag (repeatable).")
@click.option("--type-map", type=_PATH, default=None, help="Type map file (default: bundled).")
@click.option("--force", "-f", is_flag=True, help="Don't ask for confirmation.")
@click.option("--dry-run", "--what-if", "dry_run", is_flag=True, help="Show what would run; change nothing.")
@click.option("--install/--no-install", default=None, help="Install dependencies (default).")
@click.option("--import", "import_", is_flag=True, help="Import dependencies after installing.")
@click.option("--test", is_flag=True, help="Test whether dependencies are satisfied.")
@click.option("--quiet", is_flag=True, help="With --test: print only True or False.")
@click.option("--mock", is_flag=True, help="Use mock handler (no real execution).")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def invoke(
    ctx: click.Context,
    paths: tuple[Path, ...],
    recurse: bool,
    tags: tuple[str, ...],
    type_map: Path | None,
    force: bool,
    dry_run: bool,
    install: bool | None,
    import_: bool,
    test: bool,
    quiet: bool,
    mock: bool,
    as_json: bool,
) -> None:
    """Install, import or test the dependencies defined under PATHS.

    Examples:

        depctl invoke

        depctl invoke ./services --tag prod --force

        depctl invoke --test --quiet
    """
    from depctl.core.models.action import format_actions
    from depctl.core.use_cases.invoke import run_invoke

    if test and (install is not None or import_):
        raise click.UsageError("--test cannot be combined with --install/--no-install/--import")
    if quiet and not test:
        raise click.UsageError("--quiet requires --test")
    if install is False and not import_ and not test:
        raise click.UsageError("--no-install requires --import")

    result = run_invoke(
        paths=list(paths) or None,
        recurse=recurse,
        tags=list(tags) or None,
        type_map=type_map,
        force=force,
        dry_run=dry_run,
        install=True if install is None else install,
        import_=import_,
        test=test,
        quiet=quiet,
        mock_mode=mock,
        confirm=_make_confirm(dry_run),
    )

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        if result.error or (result.report and not result.report.all_ok):
            sys.exit(1)
        if result.verdict is False:
            sys.exit(1)
        return

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    if quiet:
        click.echo(str(result.verdict))
        sys.exit(0 if result.verdict else 1)

    report = result.report
    assert report is not None  # guaranteed after error check above

    mode = format_actions(report.actions)
    mode_label = "[dry-run] " if dry_run else "[mock] " if mock else ""
    click.secho(f"\n⚡ {mode_label}{mode}", fg="cyan", bold=True)
    click.echo(
        f"   Files: {len(result.definition_files)} | "
        f"Dependencies: {len(result.dependencies)}"
    )
    click.echo()

    for outcome in report.outcomes:
        timing = f" ({outcome.duration_ms}ms)" if outcome.duration_ms else ""
        if outcome.skipped:
            click.secho(f"   ⊘ {outcome.dependency} ", fg="yellow", nl=False)
            click.echo(f"({outcome.reason})")
        elif outcome.failed:
            click.secho(f"   ✗ {outcome.dependency}", fg="red", nl=False)
            click.echo(f" [{outcome.reason}]{timing}")
            if outcome.error:
                for line in outcome.error.split("\n")[:5]:
                    click.echo(f"     │ {line}")
        elif test:
            label = "present" if outcome.exists else "missing"
            color = "green" if outcome.exists else "yellow"
            click.secho(f"   {'✓' if outcome.exists else '✗'} {outcome.dependency} ", fg=color, nl=False)
            click.echo(f"({label})")
        else:
            click.secho(f"   ✓ {outcome.dependency}", fg="green", nl=False)
            click.echo(timing)
            for err in outcome.post_script_errors:
                click.secho(f"     │ post-script: {err}", fg="red")

    if result.warnings:
        click.echo()
        click.secho("   ⚠️  Warnings:", fg="yellow")
        for warn in result.warnings:
            click.echo(f"     • {warn}")

    # Summary
    click.echo()
    status_color = {"ok": "green", "partial": "yellow", "failed": "red"}.get(
        report.status, "white"
    )
    click.secho(
        f"   Result: {report.succeeded}/{report.total} succeeded, "
        f"{report.skipped} skipped, {report.errors} error(s)",
        fg=status_color,
        bold=True,
    )
    click.echo()

    if report.errors > 0:
        sys.exit(1)


@cli.command("list")
@click.argument("paths", nargs=-1, type=_PATH)
@click.option("--recurse/--no-recurse", default=True, help="Search directories recursively.")
@click.option("--tag", "-t", "tags", multiple=True, help="Only dependencies with this tag (repeatable).")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def list_cmd(
    paths: tuple[Path, ...],
    recurse: bool,
    tags: tuple[str, ...],
    as_json: bool,
) -> None:
    """Show the dependencies defined under PATHS, in execution order."""
    from depctl.core.use_cases.listing import list_dependencies

    result = list_dependencies(
        paths=list(paths) or None,
        recurse=recurse,
        tags=list(tags) or None,
    )

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(1 if result.error else 0)

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    click.secho(f"\n📋 Dependencies: {len(result.dependencies)}", fg="cyan", bold=True)
    for dep in result.dependencies:
        version = "" if dep.is_latest else f" {dep.version}"
        tag_label = f"  [{', '.join(dep.tags)}]" if dep.tags else ""
        click.echo(f"   • {dep.key} ({dep.type}{version}){tag_label}")
        if dep.depends_on:
            click.echo(f"       after: {', '.join(dep.depends_on)}")

    if result.warnings:
        click.echo()
        click.secho("   ⚠️  Warnings:", fg="yellow")
        for warn in result.warnings:
            click.echo(f"     • {warn}")

    click.echo()


@cli.command()
@click.option("--type-map", type=_PATH, default=None, help="Type map file (default: bundled).")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def types(type_map: Path | None, as_json: bool) -> None:
    """Show registered dependency types and handler availability."""
    from depctl.core.use_cases.listing import list_types

    result = list_types(type_map=type_map)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(1 if result.error else 0)

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    click.secho(f"\n🔧 Dependency types: {len(result.types)}", fg="cyan", bold=True)
    for name, info in result.types.items():
        if not info["supported"]:
            click.secho(f"   ⊘ {name} ", fg="yellow", nl=False)
            click.echo(f"(unsupported here: {', '.join(info['supports'])})")
        elif info["available"]:
            click.secho(f"   ✓ {name} ", fg="green", nl=False)
            click.echo(f"— {info['description']}")
        else:
            click.secho(f"   ✗ {name} ", fg="red", nl=False)
            click.echo(f"— {info['description']} (tool not found)")
    click.echo()


if __name__ == "__main__":
    cli()
