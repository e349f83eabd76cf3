"""nrepl-link developer CLI.

Talks to a running relay directly, for poking at the protocol without a
worksheet.

Usage:
    nrepl-link eval "(+ 1 2)"                   # Evaluate and print results
    nrepl-link eval "(println 1)" --format json # One JSON notification per line
    nrepl-link complete ma --ns clojure.core    # List completions
    nrepl-link --url ws://host:8990/repl eval "(ns-name *ns*)"
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys

import click

from .client import ReplClient, create_client
from .config import ClientConfig
from .notifications import (
    ConnectionLost,
    ConsoleOutput,
    EvaluationDone,
    EvaluationError,
    Notification,
    ValueReady,
)

# Output format options
FORMAT_TEXT = "text"
FORMAT_JSON = "json"

CLI_SEGMENT = "cli"


@click.group()
@click.option(
    "--url",
    envvar="NREPL_LINK_URL",
    default=None,
    help="Relay URL (default: ws://localhost:8990/repl)",
)
@click.option("--host", default="localhost", help="Relay host (ignored with --url)")
@click.option("--port", default=8990, help="Relay port (ignored with --url)")
@click.option("--timeout", default=10.0, help="Seconds to wait for the session")
@click.option("--verbose", "-v", is_flag=True, help="Log protocol traffic")
@click.pass_context
def main(
    ctx: click.Context,
    url: str | None,
    host: str,
    port: int,
    timeout: float,
    verbose: bool,
) -> None:
    """nrepl-link - send requests to an nREPL WebSocket relay."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    config = ClientConfig.from_url(url) if url else ClientConfig(host=host, port=port)
    ctx.obj = {"config": config, "timeout": timeout}


async def _open(config: ClientConfig, timeout: float) -> ReplClient:
    client = create_client(config=config)
    await client.connect()
    if not await client.wait_ready(timeout):
        await client.disconnect()
        raise click.ClickException(f"Could not establish a session with {config.url}")
    return client


def _format_text(notification: Notification) -> str | None:
    if isinstance(notification, ValueReady):
        return f"{notification.namespace}=> {notification.value}"
    if isinstance(notification, ConsoleOutput):
        return notification.text.rstrip("\n")
    if isinstance(notification, EvaluationError):
        return f"ERROR: {notification.error.rstrip()}"
    return None


@main.command("eval")
@click.argument("code")
@click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice([FORMAT_TEXT, FORMAT_JSON]),
    default=FORMAT_TEXT,
    help="Output format",
)
@click.pass_obj
def eval_command(obj: dict, code: str, output_format: str) -> None:
    """Evaluate CODE and print values, output and errors.

    Examples:

        nrepl-link eval "(+ 1 2)"

        nrepl-link eval "(map inc [1 2 3])" --format json
    """

    async def run() -> bool:
        client = await _open(obj["config"], obj["timeout"])
        done = asyncio.Event()
        failed = False

        def on_notification(notification: Notification) -> None:
            nonlocal failed
            if isinstance(notification, ConnectionLost):
                failed = True
                done.set()
                return
            if getattr(notification, "segment_id", None) != CLI_SEGMENT:
                return
            if isinstance(notification, EvaluationError):
                failed = True
            if isinstance(notification, EvaluationDone):
                done.set()
                return

            if output_format == FORMAT_JSON:
                click.echo(notification.model_dump_json())
            else:
                line = _format_text(notification)
                if line is not None:
                    click.echo(line, err=isinstance(notification, EvaluationError))

        unsubscribe = client.notifications.subscribe_all(on_notification)
        try:
            await client.evaluate(code, CLI_SEGMENT)
            await done.wait()
        finally:
            unsubscribe()
            await client.disconnect()
        return not failed

    if not asyncio.run(run()):
        sys.exit(1)


@main.command("complete")
@click.argument("symbol")
@click.option("--ns", default="user", help="Namespace to complete in")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
@click.pass_obj
def complete_command(obj: dict, symbol: str, ns: str, output_json: bool) -> None:
    """List completions for SYMBOL."""

    async def run() -> list:
        client = await _open(obj["config"], obj["timeout"])
        try:
            return await client.completions(symbol, ns, timeout=obj["timeout"]) or []
        except (ConnectionError, TimeoutError) as e:
            raise click.ClickException(f"No completions received: {e}") from e
        finally:
            await client.disconnect()

    candidates = asyncio.run(run())

    if output_json:
        click.echo(json.dumps(candidates, indent=2, ensure_ascii=False))
        return

    if not candidates:
        click.echo("No completions found.")
        return

    for candidate in candidates:
        click.echo(candidate if isinstance(candidate, str) else json.dumps(candidate))


if __name__ == "__main__":
    main()
