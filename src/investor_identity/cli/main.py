"""CLI entry point for investor-identity.

Invoked as::

    investor-identity [OPTIONS] COMMAND [ARGS]...

or, during development::

    python -m investor_identity.cli.main

Commands
--------
create      Generate keys and build the investor's did:ion identifier
anchor      Submit, settle and confirm the latest identifier
run         Run the whole pipeline
status      Show the status of a settlement transaction
version     Show version information
"""
from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Callable

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

if TYPE_CHECKING:
    from investor_identity.config import Settings
    from investor_identity.pipeline import DIDLifecyclePipeline, PipelineContext

console = Console()


# ------------------------------------------------------------------
# Shared options
# ------------------------------------------------------------------


def _common_options(func: Callable[..., None]) -> Callable[..., None]:
    options = [
        click.option(
            "--env-file",
            type=click.Path(dir_okay=False),
            default=".env",
            show_default=True,
            help="Env file to read configuration from and write results into.",
        ),
        click.option(
            "--data-dir",
            type=click.Path(file_okay=False),
            default=None,
            help="Checkpoint directory (overrides DATA_DIR).",
        ),
        click.option(
            "--log-level",
            type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
            default="WARNING",
            show_default=True,
            help="Logging level for pipeline events.",
        ),
        click.option(
            "--update-env/--no-update-env",
            default=True,
            show_default=True,
            help="Write identifier and anchoring results back to the env file.",
        ),
        click.option(
            "--json",
            "as_json",
            is_flag=True,
            default=False,
            help="Print the run summary as JSON.",
        ),
    ]
    for option in reversed(options):
        func = option(func)
    return func


# ------------------------------------------------------------------
# Root group
# ------------------------------------------------------------------


@click.group()
@click.version_option(package_name="investor-identity")
def cli() -> None:
    """Investor did:ion creation, Bitcoin anchoring and settlement tracking"""


@cli.command(name="version")
def version_command() -> None:
    """Show detailed version information."""
    from investor_identity import __version__

    console.print(f"[bold]investor-identity[/bold] v{__version__}")


# ------------------------------------------------------------------
# Pipeline commands
# ------------------------------------------------------------------


@cli.command(name="create")
@_common_options
def create_command(
    env_file: str, data_dir: str | None, log_level: str, update_env: bool, as_json: bool
) -> None:
    """Generate keys and build the investor's identifier (stages 1-2)."""
    pipeline = _build_pipeline(env_file, data_dir, log_level, update_env)
    context = asyncio.run(pipeline.create())
    _report(pipeline, context, as_json)


@cli.command(name="anchor")
@_common_options
@click.option(
    "--resume/--fresh",
    default=True,
    show_default=True,
    help="Reuse submission and transaction checkpoints for the same identifier.",
)
def anchor_command(
    env_file: str,
    data_dir: str | None,
    log_level: str,
    update_env: bool,
    as_json: bool,
    resume: bool,
) -> None:
    """Anchor the latest identifier and track its settlement (stages 3-5)."""
    pipeline = _build_pipeline(env_file, data_dir, log_level, update_env)
    context = asyncio.run(pipeline.anchor(resume=resume))
    _report(pipeline, context, as_json)


@cli.command(name="run")
@_common_options
@click.option(
    "--resume/--fresh",
    default=True,
    show_default=True,
    help="Reuse checkpoints from an earlier run instead of starting over.",
)
def run_command(
    env_file: str,
    data_dir: str | None,
    log_level: str,
    update_env: bool,
    as_json: bool,
    resume: bool,
) -> None:
    """Run every stage from key generation to confirmation."""
    pipeline = _build_pipeline(env_file, data_dir, log_level, update_env)
    context = asyncio.run(pipeline.run(resume=resume))
    _report(pipeline, context, as_json)


# ------------------------------------------------------------------
# status
# ------------------------------------------------------------------


@cli.command(name="status")
@click.argument("transaction_id")
@click.option(
    "--env-file",
    type=click.Path(dir_okay=False),
    default=".env",
    show_default=True,
    help="Env file to read configuration from.",
)
def status_command(transaction_id: str, env_file: str) -> None:
    """Show the current status of settlement transaction TRANSACTION_ID."""
    from investor_identity.errors import IdentityPipelineError
    from investor_identity.settlement import FireblocksClient, SettlementTransactionManager

    settings = _load_settings(env_file, None)
    try:
        manager = SettlementTransactionManager(
            FireblocksClient.from_settings(settings),
            vault_account_id=str(settings.vault_account_id),
            asset_id=settings.settlement_asset_id,
            amount=settings.settlement_amount,
        )
        transaction = asyncio.run(manager.get_status(transaction_id))
    except IdentityPipelineError as exc:
        console.print(f"[red]Error:[/red] {escape(str(exc))}")
        sys.exit(1)

    table = Table(title=f"Transaction {transaction.id}", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Status", transaction.status.value)
    table.add_row("Reported", transaction.raw_status or "-")
    table.add_row("Amount", f"{transaction.amount} {transaction.asset_id}")
    table.add_row("TX hash", transaction.tx_hash or "-")
    table.add_row("Explorer", transaction.explorer_url(settings.explorer_tx_url) or "-")
    console.print(table)


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------


def _load_settings(env_file: str, data_dir: str | None) -> Settings:
    from pydantic import ValidationError as SettingsError

    from investor_identity.config import Settings

    try:
        settings = Settings(_env_file=env_file)  # type: ignore[call-arg]
    except SettingsError as exc:
        console.print(f"[red]Invalid configuration:[/red] {escape(str(exc))}")
        sys.exit(2)
    if data_dir:
        settings = settings.model_copy(update={"data_dir": Path(data_dir)})
    return settings


def _build_pipeline(
    env_file: str, data_dir: str | None, log_level: str, update_env: bool
) -> DIDLifecyclePipeline:
    from investor_identity.pipeline import DIDLifecyclePipeline, EventLog

    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    settings = _load_settings(env_file, data_dir)
    return DIDLifecyclePipeline(
        settings,
        events=EventLog(settings.data_dir / "events.jsonl"),
        env_file=Path(env_file) if update_env else None,
    )


def _report(pipeline: DIDLifecyclePipeline, context: PipelineContext, as_json: bool) -> None:
    summary = pipeline.summarize(context)
    if as_json:
        click.echo(json.dumps(summary.model_dump(), indent=2))
    else:
        table = Table(title=f"Investor {summary.investor_id or '-'}", show_header=False)
        table.add_column("Field", style="cyan")
        table.add_column("Value", overflow="fold")
        table.add_row("Short form", summary.short_form or "-")
        table.add_row("Submission", _join(summary.submission_tier, summary.submission_status))
        if summary.transaction:
            table.add_row(
                "Transaction",
                f"{summary.transaction['id']} ({summary.transaction['status']})",
            )
            table.add_row("TX hash", summary.transaction.get("txHash") or "pending")
        if summary.explorer_url:
            table.add_row("Explorer", summary.explorer_url)
        table.add_row("Confirmation", summary.confirmation or "-")
        console.print(table)

        for advisory in summary.advisories:
            console.print(f"  [yellow]NOTE[/yellow]  {escape(advisory)}")
        for error in summary.errors:
            line = escape(f"[{error['stage']}] {error['message']}")
            console.print(f"  [red]FAIL[/red]  {line}")

        if summary.success:
            console.print("\n[green]Pipeline completed successfully.[/green]")
        else:
            console.print(f"\n[red]Pipeline finished with {summary.error_count} error(s).[/red]")

    if not summary.success:
        sys.exit(1)


def _join(*parts: str | None) -> str:
    present = [p for p in parts if p]
    return " / ".join(present) if present else "-"


if __name__ == "__main__":
    cli()
