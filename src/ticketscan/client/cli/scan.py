"""Scan command for the ticketscan CLI.

Commands:
- scan: Validate one or more scanned payloads
"""

from __future__ import annotations

import sys
from collections.abc import Iterable, Iterator

import click

from ticketscan.client.cli.runtime import open_service
from ticketscan.core.types import Feedback

FEEDBACK_COLORS = {
    Feedback.SUCCESS: "green",
    Feedback.WARNING: "yellow",
    Feedback.ERROR: "red",
}

FEEDBACK_SYMBOLS = {
    Feedback.SUCCESS: "✓",
    Feedback.WARNING: "!",
    Feedback.ERROR: "✗",
}


def _read_payloads(payloads: Iterable[str]) -> Iterator[str]:
    """Expand '-' into one payload per non-empty stdin line."""
    for payload in payloads:
        if payload == "-":
            for line in click.get_text_stream("stdin"):
                line = line.strip()
                if line:
                    yield line
        else:
            yield payload


@click.command()
@click.argument("payloads", nargs=-1, required=True)
@click.option("--offline", is_flag=True, help="Validate offline for this run.")
@click.option(
    "--debounce",
    type=float,
    default=2.0,
    show_default=True,
    help="Ignore the same payload repeated within this many seconds.",
)
def scan(payloads: tuple[str, ...], offline: bool, debounce: float) -> None:
    """Validate scanned ticket payloads.

    Pass '-' to read payloads from stdin, one per line (e.g. from a
    barcode reader). Each scan is routed online or offline depending on
    offline mode and connectivity at the time of the scan.
    """
    from ticketscan.client.api import NetworkError
    from ticketscan.client.engine import EngineError
    from ticketscan.client.scanner import ScanDebouncer

    debouncer = ScanDebouncer(window=debounce)
    failures = 0

    with open_service(force_offline=offline) as service:
        for payload in _read_payloads(payloads):
            if not debouncer.should_process(payload):
                continue

            try:
                outcome = service.scan(payload)
            except EngineError:
                click.echo(click.style("✗ Offline validation failed", fg="red"))
                failures += 1
                continue
            except NetworkError as e:
                click.echo(click.style(f"✗ Validation failed: {e}", fg="red"))
                failures += 1
                continue

            color = FEEDBACK_COLORS[outcome.feedback]
            line = f"{FEEDBACK_SYMBOLS[outcome.feedback]} {outcome.message}"
            if outcome.ticket_id:
                line += f"  [ticket {outcome.ticket_id}"
                if outcome.accepted and outcome.remaining_scans is not None:
                    line += f", {outcome.remaining_scans} left"
                line += "]"
            if outcome.customer:
                name = " ".join(
                    str(outcome.customer.get(k, "")) for k in ("firstName", "lastName")
                ).strip()
                if name:
                    line += f"  {name}"
            click.echo(click.style(line, fg=color))

    if failures:
        sys.exit(1)
