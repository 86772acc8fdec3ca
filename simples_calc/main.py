"""Command-line interface for the Simples Nacional simulator.

This module uses the ``click`` library to implement a multi-command
interface. The ledger lives in a JSON file between invocations; every
command loads it, applies at most one ledger action, recomputes every month
and writes it back. Results can be printed to the terminal or exported to
CSV/JSON files.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

import click

from .data_models import AddMonth, Annex, Ledger, LedgerAction, RemoveMonth, UpdateMonth
from .engine import LedgerValidationError, compute_ledger, reduce_ledger, summarize
from .export import default_export_filename, export_to_csv, export_to_json, summary_to_dict
from .formatter import print_brackets, print_ledger, print_summary
from .storage import LedgerFile

logger = logging.getLogger(__name__)

ANNEX_CHOICE = click.Choice([a.value for a in Annex], case_sensitive=False)


def resolve_entry_id(ledger: Ledger, token: str) -> str:
    """Return the id of the entry matching ``token`` exactly or by unique prefix."""
    matches = [e.id for e in ledger if e.id == token]
    if not matches:
        matches = [e.id for e in ledger if e.id.startswith(token)]
    if len(matches) != 1:
        reason = "No month" if not matches else "More than one month"
        raise click.BadParameter(f"{reason} matches id '{token}'", param_hint="ENTRY_ID")
    return matches[0]


def apply_action(store: LedgerFile, action: LedgerAction) -> Ledger:
    """Reduce the stored ledger with ``action``, then recompute and persist it."""
    ledger = store.load()
    logger.debug("Applying %s to %d stored months", type(action).__name__, len(ledger))
    try:
        ledger = reduce_ledger(ledger, action)
    except LedgerValidationError as exc:
        raise click.BadParameter(str(exc))
    computed = compute_ledger(ledger)
    store.save(computed)
    return computed


@click.group()
@click.option(
    "--ledger-file",
    "ledger_file",
    envvar="SIMPLES_LEDGER_FILE",
    default="simples_ledger.json",
    show_default=True,
    type=click.Path(dir_okay=False),
    help="JSON file holding the month ledger",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, ledger_file: str, verbose: bool) -> None:
    """A Simples Nacional simulator over a ledger of monthly revenue."""
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING)
    ctx.obj = LedgerFile(ledger_file)


@cli.command()
@click.argument("month_year")
@click.option("--without-st", "without_st", default="0", help="Revenue without tax substitution")
@click.option("--with-st", "with_st", default="0", help="Revenue with tax substitution")
@click.option("--annex", "annex", type=ANNEX_CHOICE, default="I", show_default=True, help="Annex I (commerce) or II (industry)")
@click.pass_obj
def add(store: LedgerFile, month_year: str, without_st: str, with_st: str, annex: str) -> None:
    """Append a month (MM/YYYY) to the ledger."""
    ledger = apply_action(
        store,
        AddMonth(month_year=month_year, revenue_without_st=without_st, revenue_with_st=with_st, annex=annex),
    )
    entry = ledger[-1]
    click.echo(f"Added {entry.month_year} ({entry.id[:8]}); ledger has {len(ledger)} months")


@cli.command()
@click.argument("entry_id")
@click.argument("month_year")
@click.option("--without-st", "without_st", default="0", help="Revenue without tax substitution")
@click.option("--with-st", "with_st", default="0", help="Revenue with tax substitution")
@click.option("--annex", "annex", type=ANNEX_CHOICE, default="I", show_default=True, help="Annex I (commerce) or II (industry)")
@click.pass_obj
def update(store: LedgerFile, entry_id: str, month_year: str, without_st: str, with_st: str, annex: str) -> None:
    """Replace the inputs of an existing month."""
    full_id = resolve_entry_id(store.load(), entry_id)
    apply_action(
        store,
        UpdateMonth(
            entry_id=full_id,
            month_year=month_year,
            revenue_without_st=without_st,
            revenue_with_st=with_st,
            annex=annex,
        ),
    )
    click.echo(f"Updated {full_id[:8]}")


@cli.command()
@click.argument("entry_id")
@click.pass_obj
def remove(store: LedgerFile, entry_id: str) -> None:
    """Remove a month by id (or unique id prefix)."""
    full_id = resolve_entry_id(store.load(), entry_id)
    ledger = apply_action(store, RemoveMonth(entry_id=full_id))
    click.echo(f"Removed {full_id[:8]}; ledger has {len(ledger)} months")


@cli.command()
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_obj
def clear(store: LedgerFile, yes: bool) -> None:
    """Remove every month from the ledger."""
    if not yes and not click.confirm("Remove all months from the ledger?"):
        click.echo("Aborted")
        return
    store.clear()
    click.echo("Ledger cleared")


@cli.command()
@click.pass_obj
def show(store: LedgerFile) -> None:
    """Print the summary and the full computed ledger."""
    ledger = compute_ledger(store.load())
    if not ledger:
        click.echo("No months added yet. Use 'add MM/YYYY --without-st AMOUNT' to start.")
        return
    print_summary(summarize(ledger))
    print_ledger(ledger)


@cli.command()
@click.option("--output", "output", type=str, help="Output file path (.json)")
@click.pass_obj
def summary(store: LedgerFile, output: Optional[str]) -> None:
    """Print only the summary metrics of the ledger."""
    summary_data = summarize(store.load())
    if output:
        path = Path(output)
        if path.suffix.lower() != ".json":
            raise click.BadParameter("Summary export must use .json extension")
        with path.open("w", encoding="utf-8") as f:
            json.dump({"summary": summary_to_dict(summary_data)}, f, indent=2)
        click.echo(f"Summary exported to {path}")
    else:
        print_summary(summary_data)


@cli.command()
@click.option("--output", "output", type=str, help="Output file path (.csv or .json); defaults to a dated CSV name")
@click.pass_obj
def export(store: LedgerFile, output: Optional[str]) -> None:
    """Export the computed ledger to CSV or JSON."""
    ledger = compute_ledger(store.load())
    if not ledger:
        raise click.ClickException("Nothing to export: the ledger is empty")
    path = Path(output or default_export_filename())
    if path.suffix.lower() == ".csv":
        export_to_csv(path, ledger)
    elif path.suffix.lower() == ".json":
        export_to_json(path, ledger, summarize(ledger))
    else:
        raise click.BadParameter("Unsupported output format; use .csv or .json")
    click.echo(f"Ledger exported to {path}")


@cli.command()
@click.option("--annex", "annex", type=ANNEX_CHOICE, help="Only show one annex")
def brackets(annex: Optional[str]) -> None:
    """Print the bracket tables."""
    print_brackets([Annex.parse(annex)] if annex else None)


if __name__ == "__main__":
    cli()
