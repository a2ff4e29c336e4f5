"""CLI for ymmp-relink (scan a project, relink its missing media)."""

import json
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Annotated, Any

import typer
from loguru import logger

from ymmp_relink.cancellation import CancelToken
from ymmp_relink.config import resolve_log_file
from ymmp_relink.core.scanner import scan_document
from ymmp_relink.core.search.progress import ThrottledProgress
from ymmp_relink.errors import RelinkCancelled, RelinkError
from ymmp_relink.logging_config import configure_logging
from ymmp_relink.models.reference import (
    ExecutionResult,
    Reference,
    RelinkStatus,
    RelinkSummary,
    SearchProgress,
)
from ymmp_relink.session import RelinkSession
from ymmp_relink.writer import diff_preview

app = typer.Typer(help="Find and relink missing media files in YMM4 project files.")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
    log_file: Annotated[
        Path | None,
        typer.Option("--log-file", help="Append a detailed log to this file"),
    ] = None,
) -> None:
    configure_logging(verbose=verbose, log_file=resolve_log_file(log_file))


def _reference_to_dict(reference: Reference) -> dict[str, Any]:
    return {
        "index": reference.index,
        "status": reference.status.value,
        "type_hint": reference.type_hint,
        "original_path": reference.original_path,
        "file_name": reference.file_name,
        "candidates": list(reference.candidates),
        "selected_candidate": reference.selected_candidate,
        "message": reference.message,
    }


def _summary_to_dict(summary: RelinkSummary) -> dict[str, int]:
    return {
        "scanned": summary.scanned,
        "missing": summary.missing,
        "updated": summary.updated,
        "ambiguous": summary.ambiguous,
        "not_found": summary.not_found,
        "failed": summary.failed,
        "skipped": summary.skipped,
        "enumeration_failures": summary.enumeration_failures,
    }


def _echo_reference(reference: Reference) -> None:
    hint = f"  ({reference.type_hint})" if reference.type_hint else ""
    typer.echo(f"  #{reference.index} [{reference.status.value}] {reference.original_path}{hint}")
    if reference.selected_candidate:
        typer.echo(f"    -> {reference.selected_candidate}")
    elif reference.status is RelinkStatus.AMBIGUOUS:
        for n, candidate in enumerate(reference.candidates, start=1):
            typer.echo(f"    {n}. {candidate}")
    if reference.message and reference.status is RelinkStatus.FAILED:
        typer.echo(f"    error: {reference.message}")


def _echo_progress(progress: SearchProgress) -> None:
    total = str(progress.total) if progress.total else "-"
    typer.echo(f"Searching: {progress.current_file_name} ({progress.done}/{total})", err=True)


@app.command()
def scan(
    document: Path = typer.Argument(..., help="Project file (.ymmp)"),
    show_all: bool = typer.Option(False, "--all", "-a", help="Also list existing references"),
    output_json: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
) -> None:
    """List the media references of a project and whether they exist."""
    try:
        context, summary = scan_document(document)
    except RelinkError as e:
        logger.error("{}", e)
        raise typer.Exit(1) from e

    shown = [
        r for r in context.references if show_all or r.status is not RelinkStatus.EXISTING
    ]
    if output_json:
        data = {
            "document": str(context.source_path),
            "summary": _summary_to_dict(summary),
            "references": [_reference_to_dict(r) for r in shown],
        }
        typer.echo(json.dumps(data, indent=2, ensure_ascii=False))
        return

    typer.echo(
        f"{summary.scanned} references: {summary.skipped} existing, "
        f"{summary.missing} missing, {summary.failed} failed\n"
    )
    for reference in shown:
        _echo_reference(reference)


def _parse_pick(value: str) -> tuple[int, str]:
    index_text, sep, path = value.partition("=")
    if not sep or not index_text.strip().isdigit() or not path:
        msg = f"Expected INDEX=PATH, got {value!r}"
        raise typer.BadParameter(msg, param_hint="--pick")
    return int(index_text), path


def _wait_for_search(future: "Future[ExecutionResult]", cancel: CancelToken) -> ExecutionResult:
    try:
        return future.result()
    except KeyboardInterrupt:
        typer.echo("Cancelling search...", err=True)
        cancel.cancel()
        return future.result()


def _run_search(session: RelinkSession, roots: list[Path], *, retry_failed: bool) -> None:
    cancel = CancelToken()
    progress = ThrottledProgress(_echo_progress)
    with ThreadPoolExecutor(max_workers=1, thread_name_prefix="ymmp-relink-search") as executor:
        future = session.submit_search(
            executor, roots, cancel=cancel, on_progress=progress, retry_failed=retry_failed
        )
        try:
            result = _wait_for_search(future, cancel)
        except RelinkCancelled as e:
            if e.partial is not None:
                session.apply(e.partial.updates)
            typer.echo("Search cancelled.", err=True)
            raise typer.Exit(130) from e
    session.apply(result.updates)
    summary = result.summary
    typer.echo(
        f"Updated {summary.updated} / ambiguous {summary.ambiguous} / "
        f"not found {summary.not_found} / failed {summary.failed}",
        err=True,
    )


def _apply_pick(session: RelinkSession, index: int, path: str) -> None:
    if session.reference(index).status is RelinkStatus.NOT_FOUND:
        session.assign_path(index, path)
    else:
        session.select_candidate(index, path)


def _prompt_ambiguous(session: RelinkSession) -> None:
    for reference in session.references:
        if reference.status is not RelinkStatus.AMBIGUOUS:
            continue
        _echo_reference(reference)
        choice = typer.prompt("Choose a candidate (0 to skip)", type=int, default=0)
        if 1 <= choice <= len(reference.candidates):
            session.select_candidate(reference.index, reference.candidates[choice - 1])


@app.command()
def relink(
    document: Path = typer.Argument(..., help="Project file (.ymmp)"),
    roots: Annotated[
        list[Path] | None,
        typer.Option("--root", "-r", help="Folder to search (repeatable)"),
    ] = None,
    picks: Annotated[
        list[str] | None,
        typer.Option("--pick", "-p", help="INDEX=PATH choice for an ambiguous or unfound reference"),
    ] = None,
    interactive: bool = typer.Option(
        False, "--interactive", "-i", help="Ask which candidate to use for ambiguous references"
    ),
    retry_failed: bool = typer.Option(False, "--retry-failed", help="Search failed references too"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show the diff, do not write anything"),
    output_json: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
) -> None:
    """Search folders for missing media and rewrite the project to point at them."""
    parsed_picks = [_parse_pick(p) for p in picks or []]
    try:
        session = RelinkSession.from_document(document)
    except RelinkError as e:
        logger.error("{}", e)
        raise typer.Exit(1) from e

    with session:
        try:
            if roots:
                _run_search(session, roots, retry_failed=retry_failed)
            for index, path in parsed_picks:
                _apply_pick(session, index, path)
            if interactive:
                _prompt_ambiguous(session)

            references = session.references
            summary = session.summary()
            if dry_run:
                diff = diff_preview(session.snapshot())
                backup_path = None
                updated_count = summary.updated
            else:
                result = session.save()
                backup_path = result.backup_path
                updated_count = result.updated_count
        except RelinkError as e:
            logger.error("{}", e)
            raise typer.Exit(1) from e

    if output_json:
        data = {
            "document": str(document),
            "dry_run": dry_run,
            "updated_count": updated_count,
            "backup_path": str(backup_path) if backup_path else None,
            "summary": _summary_to_dict(summary),
            "references": [
                _reference_to_dict(r) for r in references if r.status is not RelinkStatus.EXISTING
            ],
        }
        typer.echo(json.dumps(data, indent=2, ensure_ascii=False))
        return

    for reference in references:
        if reference.status is not RelinkStatus.EXISTING:
            _echo_reference(reference)
    if dry_run:
        typer.echo(diff or "No changes.")
    elif backup_path is None:
        typer.echo("Nothing to update.")
    else:
        typer.echo(f"Updated {updated_count} references (backup: {backup_path})")
