"""CLI entrypoint for ledgersync."""

import logging
import sys
from pathlib import Path

import click

from . import __version__
from .paths import find_ledgersync_root, ledgersync_dir
from .schema import (
    ACTION_TYPES,
    PROMISE_SCOPES,
    PROMISE_STATUSES,
    PROMISE_TYPES,
    REPORTER_ROLES,
    VERDICT_ROLES,
    VERDICT_STATUSES,
)


def _require_root(ctx: click.Context) -> Path:
    root = ctx.obj["root"] or find_ledgersync_root(Path.cwd())
    if root is None or not ledgersync_dir(root).is_dir():
        raise click.ClickException("No .ledgersync/ folder found. Run `ledgersync init` first.")
    return root


@click.group()
@click.version_option(__version__, prog_name="ledgersync")
@click.option(
    "--root",
    "-r",
    type=click.Path(exists=False, file_okay=False, dir_okay=True, path_type=Path),
    default=None,
    help="Project root containing .ledgersync/ (defaults to auto-detected from cwd)",
)
@click.option("--verbose", "-V", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, root: Path | None, verbose: bool) -> None:
    """ledgersync - shared memory for agents working on the same codebase.

    Log what was done and why, make promises to other agents, and report
    progress on them. Everything lives in append-only files under .ledgersync/.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["root"] = root.resolve() if root is not None else None


@cli.command()
@click.option("--name", "project_name", type=str, default=None, help="Project name (defaults to the directory name)")
@click.pass_context
def init(ctx: click.Context, project_name: str | None) -> None:
    """Create .ledgersync/ with a default config and empty streams."""
    from .commands.init_cmd import run_init

    root = ctx.obj["root"] or Path.cwd()
    sys.exit(run_init(root, project_name=project_name))


# -----------------------------------------------------------------------------
# Entry commands
# -----------------------------------------------------------------------------


@cli.command()
@click.option("--summary", "-s", required=True, help="What you did")
@click.option("--intent", "-i", required=True, help="Why you did it")
@click.option(
    "--type",
    "-t",
    "action_type",
    type=click.Choice(sorted(ACTION_TYPES)),
    default="other",
    show_default=True,
    help="Action type",
)
@click.option("--agent", "-a", default="human", show_default=True, help="Agent name")
@click.option("--file", "-f", "files", multiple=True, help="File touched. Repeatable.")
@click.option("--tag", "tags", multiple=True, help="Tag. Repeatable.")
@click.option("--confidence", type=click.FloatRange(0.0, 1.0), default=None, help="Confidence (0.0-1.0)")
@click.option("--session", "session_id", default=None, help="Continue an existing session id")
@click.pass_context
def add(
    ctx: click.Context,
    summary: str,
    intent: str,
    action_type: str,
    agent: str,
    files: tuple[str, ...],
    tags: tuple[str, ...],
    confidence: float | None,
    session_id: str | None,
) -> None:
    """Manually log a decision to the ledger."""
    from .commands.entries_cmd import run_add

    exit_code = run_add(
        _require_root(ctx),
        summary=summary,
        intent=intent,
        action_type=action_type,
        agent=agent,
        files=files,
        tags=tags,
        confidence=confidence,
        session_id=session_id,
    )
    sys.exit(exit_code)


@cli.command()
@click.option("--last", "-n", type=int, default=None, help="Number of entries to show")
@click.option("--agent", "-a", default=None, help="Filter by agent name")
@click.option("--file", "-f", default=None, help="Filter by file touched (substring)")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
@click.pass_context
def log(ctx: click.Context, last: int | None, agent: str | None, file: str | None, output_json: bool) -> None:
    """See what your agents have been doing."""
    from .commands.entries_cmd import run_log

    sys.exit(run_log(_require_root(ctx), last=last, agent=agent, file=file, output_json=output_json))


@cli.command()
@click.option("--last", "-n", type=int, default=None, help="Number of entries to summarize")
@click.option("--reports", "include_reports", is_flag=True, help="Append the work report overview")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
@click.pass_context
def summary(ctx: click.Context, last: int | None, include_reports: bool, output_json: bool) -> None:
    """Get context to hand off to a new agent."""
    from .commands.entries_cmd import run_summary

    exit_code = run_summary(
        _require_root(ctx),
        last=last,
        include_reports=include_reports,
        output_json=output_json,
    )
    sys.exit(exit_code)


@cli.command()
@click.argument("file")
@click.option("--intent", "-i", required=True, help="What you are about to do to FILE")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
@click.pass_context
def check(ctx: click.Context, file: str, intent: str, output_json: bool) -> None:
    """Check recent work on FILE for a conflicting intent.

    Exits 1 when one of the last five entries touching FILE had a
    different intent.

    Examples:

        ledgersync check src/auth.py -i "add OAuth login"
    """
    from .commands.entries_cmd import run_check

    sys.exit(run_check(_require_root(ctx), file=file, intent=intent, output_json=output_json))


@cli.command()
@click.pass_context
def validate(ctx: click.Context) -> None:
    """Check that everything is set up correctly."""
    from .commands.validate_cmd import run_validate

    sys.exit(run_validate(_require_root(ctx), cwd=Path.cwd()))


# -----------------------------------------------------------------------------
# Grounding docs
# -----------------------------------------------------------------------------


@cli.group()
def ground() -> None:
    """Manage grounding docs agents read before starting work."""
    pass


@ground.command("add")
@click.argument("doc_path")
@click.pass_context
def ground_add(ctx: click.Context, doc_path: str) -> None:
    """Register DOC_PATH as required reading."""
    from .commands.ground_cmd import run_ground_add

    sys.exit(run_ground_add(_require_root(ctx), doc_path, cwd=Path.cwd()))


@ground.command("list")
@click.pass_context
def ground_list(ctx: click.Context) -> None:
    """List grounding docs and whether they exist."""
    from .commands.ground_cmd import run_ground_list

    sys.exit(run_ground_list(_require_root(ctx), cwd=Path.cwd()))


@ground.command("remove")
@click.argument("doc_path")
@click.pass_context
def ground_remove(ctx: click.Context, doc_path: str) -> None:
    """Unregister DOC_PATH."""
    from .commands.ground_cmd import run_ground_remove

    sys.exit(run_ground_remove(_require_root(ctx), doc_path, cwd=Path.cwd()))


# -----------------------------------------------------------------------------
# Promise commands
# -----------------------------------------------------------------------------


@cli.group()
def promise() -> None:
    """Manage promises (bilateral commitments between agents)."""
    pass


@promise.command("add")
@click.option("--type", "-t", "promise_type", type=click.Choice(sorted(PROMISE_TYPES)), required=True)
@click.option("--summary", "-s", required=True, help="What you are promising")
@click.option("--description", "-d", default=None, help="Longer description")
@click.option("--to", "to", default="*", show_default=True, help="Target agent (* for any)")
@click.option("--agent", "-a", default="human", show_default=True, help="Your agent name")
@click.option("--scope", type=click.Choice(sorted(PROMISE_SCOPES)), default="project", show_default=True)
@click.option("--condition", "conditions", multiple=True, help="Condition. Repeatable.")
@click.option("--file", "-f", "files", multiple=True, help="Related file. Repeatable.")
@click.option("--tag", "tags", multiple=True, help="Tag. Repeatable.")
@click.pass_context
def promise_add(
    ctx: click.Context,
    promise_type: str,
    summary: str,
    description: str | None,
    to: str,
    agent: str,
    scope: str,
    conditions: tuple[str, ...],
    files: tuple[str, ...],
    tags: tuple[str, ...],
) -> None:
    """Make a new promise."""
    from .commands.promise_cmd import run_promise_add

    exit_code = run_promise_add(
        _require_root(ctx),
        promise_type=promise_type,
        summary=summary,
        to=to,
        agent=agent,
        scope=scope,
        description=description,
        conditions=conditions,
        files=files,
        tags=tags,
    )
    sys.exit(exit_code)


@promise.command("list")
@click.option("--last", "-n", type=int, default=10, show_default=True, help="Number of promises to show")
@click.option("--agent", "-a", default=None, help="Filter by promiser agent")
@click.option("--status", "-s", type=click.Choice(sorted(PROMISE_STATUSES)), default=None)
@click.option("--active", is_flag=True, help="Show only active promises")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
@click.pass_context
def promise_list(
    ctx: click.Context,
    last: int,
    agent: str | None,
    status: str | None,
    active: bool,
    output_json: bool,
) -> None:
    """List promises with their current status."""
    from .commands.promise_cmd import run_promise_list

    exit_code = run_promise_list(
        _require_root(ctx),
        last=last,
        agent=agent,
        status=status,
        active=active,
        output_json=output_json,
    )
    sys.exit(exit_code)


@promise.command("resolve")
@click.argument("promise_id")
@click.option(
    "--status",
    "-s",
    type=click.Choice(["fulfilled", "broken", "withdrawn"]),
    required=True,
    help="New status",
)
@click.option("--by", "resolved_by", default=None, help="Id of the record that resolved it")
@click.option("--agent", "-a", "actor", default=None, help="Who is resolving it")
@click.pass_context
def promise_resolve(
    ctx: click.Context,
    promise_id: str,
    status: str,
    resolved_by: str | None,
    actor: str | None,
) -> None:
    """Resolve an active promise. PROMISE_ID may be a unique prefix."""
    from .commands.promise_cmd import run_promise_resolve

    sys.exit(run_promise_resolve(_require_root(ctx), promise_id, status=status, resolved_by=resolved_by, actor=actor))


@promise.command("withdraw")
@click.argument("promise_id")
@click.option("--agent", "-a", "actor", default=None, help="Who is withdrawing it")
@click.pass_context
def promise_withdraw(ctx: click.Context, promise_id: str, actor: str | None) -> None:
    """Withdraw an active promise."""
    from .commands.promise_cmd import run_promise_withdraw

    sys.exit(run_promise_withdraw(_require_root(ctx), promise_id, actor=actor))


@promise.command("supersede")
@click.argument("old_id")
@click.argument("new_id")
@click.option("--agent", "-a", "actor", default=None, help="Who is replacing it")
@click.pass_context
def promise_supersede(ctx: click.Context, old_id: str, new_id: str, actor: str | None) -> None:
    """Mark OLD_ID as replaced by NEW_ID."""
    from .commands.promise_cmd import run_promise_supersede

    sys.exit(run_promise_supersede(_require_root(ctx), old_id, new_id, actor=actor))


# -----------------------------------------------------------------------------
# Report commands
# -----------------------------------------------------------------------------


@cli.group()
def report() -> None:
    """Manage work reports on promises."""
    pass


@report.command("add")
@click.option("--promise", "-p", "promise_id", required=True, help="Promise id (or unique prefix)")
@click.option("--work", "-w", required=True, help="What work was completed")
@click.option("--confidence", "-c", type=click.FloatRange(0.0, 1.0), default=0.5, show_default=True)
@click.option("--remaining", "-r", multiple=True, help="Remaining work item. Repeatable.")
@click.option("--blocker", "-b", "blockers", multiple=True, help="Blocker. Repeatable.")
@click.option("--agent", "-a", default="human", show_default=True, help="Reporter agent name")
@click.option("--role", type=click.Choice(sorted(REPORTER_ROLES)), default="actor", show_default=True)
@click.option("--tag", "tags", multiple=True, help="Tag. Repeatable.")
@click.pass_context
def report_add(
    ctx: click.Context,
    promise_id: str,
    work: str,
    confidence: float,
    remaining: tuple[str, ...],
    blockers: tuple[str, ...],
    agent: str,
    role: str,
    tags: tuple[str, ...],
) -> None:
    """Add a progress report for a promise."""
    from .commands.report_cmd import run_report_add

    exit_code = run_report_add(
        _require_root(ctx),
        promise=promise_id,
        work=work,
        confidence=confidence,
        remaining=remaining,
        blockers=blockers,
        agent=agent,
        role=role,
        tags=tags,
    )
    sys.exit(exit_code)


@report.command("verdict")
@click.argument("promise_id")
@click.option("--status", "-s", type=click.Choice(sorted(VERDICT_STATUSES)), required=True)
@click.option("--reason", "-r", required=True, help="Reasoning for the verdict")
@click.option("--agent", "-a", default="human", show_default=True, help="Reporter name")
@click.option("--role", type=click.Choice(sorted(VERDICT_ROLES)), default="human", show_default=True)
@click.pass_context
def report_verdict(ctx: click.Context, promise_id: str, status: str, reason: str, agent: str, role: str) -> None:
    """Judge a promise (witnesses and humans only).

    fulfilled and broken verdicts close the promise; partial leaves it active.
    """
    from .commands.report_cmd import run_report_verdict

    sys.exit(run_report_verdict(_require_root(ctx), promise_id, status=status, reason=reason, agent=agent, role=role))


@report.command("list")
@click.option("--last", "-n", type=int, default=10, show_default=True, help="Number of reports to show")
@click.option("--promise", "-p", "promise_id", default=None, help="Filter by promise id")
@click.option("--agent", "-a", default=None, help="Filter by reporter agent")
@click.option("--verdicts", is_flag=True, help="Show only reports with verdicts")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
@click.pass_context
def report_list(
    ctx: click.Context,
    last: int,
    promise_id: str | None,
    agent: str | None,
    verdicts: bool,
    output_json: bool,
) -> None:
    """List work reports."""
    from .commands.report_cmd import run_report_list

    exit_code = run_report_list(
        _require_root(ctx),
        last=last,
        promise=promise_id,
        agent=agent,
        verdicts=verdicts,
        output_json=output_json,
    )
    sys.exit(exit_code)


@cli.command()
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
@click.pass_context
def status(ctx: click.Context, output_json: bool) -> None:
    """Overview of promises and reports."""
    from .commands.report_cmd import run_status

    sys.exit(run_status(_require_root(ctx), output_json=output_json))


@cli.command()
@click.pass_context
def reconcile(ctx: click.Context) -> None:
    """Apply recorded verdicts that never reached their promise.

    Safe to run any time; it only appends status changes that are missing.
    """
    from .commands.report_cmd import run_reconcile

    sys.exit(run_reconcile(_require_root(ctx)))


def main() -> None:
    """Main entrypoint."""
    cli()


if __name__ == "__main__":
    main()
