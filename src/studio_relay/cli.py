"""``studio`` command -- talk to a running relay server from the terminal."""

from __future__ import annotations

import asyncio
import logging

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from studio_relay import __version__
from studio_relay.client import DEFAULT_BASE_URL, RelayClient, RelayClientError

console = Console()
err_console = Console(stderr=True)


async def run_chat(
    client: RelayClient,
    model: str,
    message: str,
    project_id: str,
    timeout: float | None = None,
) -> str:
    """Stream one answer to stdout; Ctrl-C cancels it server-side.

    Returns the answer text received before the stream ended.
    """
    answer: list[str] = []
    message_id: str | None = None
    try:
        async for event in client.chat(model, message, project_id=project_id, timeout=timeout):
            kind = event.get("type")
            if kind == "ai_id":
                message_id = event["messageId"]
            elif kind == "chunk":
                answer.append(event["content"])
                console.print(event["content"], end="", markup=False, highlight=False)
            elif kind == "done":
                console.print()
                if event.get("reason") == "cancelled":
                    err_console.print("[yellow]Cancelled; the partial answer was kept.[/yellow]")
            elif kind == "error":
                console.print()
                err_console.print(f"[red]Error:[/red] {event.get('error')}")
    except asyncio.CancelledError:
        if message_id is not None:
            await client.cancel(message_id)
            err_console.print("\n[yellow]Cancelled; the partial answer was kept.[/yellow]")
        raise
    return "".join(answer)


async def run_history(client: RelayClient, project_id: str) -> None:
    messages = await client.list_messages(project_id)
    if not messages:
        console.print("[dim]No messages found.[/dim]")
        return

    table = Table(title=f"Messages ({project_id})")
    table.add_column("ID", style="cyan")
    table.add_column("Role")
    table.add_column("Content")

    for m in messages:
        table.add_row(m["id"], m["role"], m["content"] or "[dim](empty)[/dim]")

    console.print(table)


async def run_list_models(client: RelayClient) -> None:
    models = await client.list_models()
    if not models:
        console.print("[dim]No models found.[/dim]")
        return

    table = Table(title="Models")
    table.add_column("Name", style="cyan")
    table.add_column("Provider")
    table.add_column("Upstream model")
    table.add_column("Aliases")

    for m in models:
        table.add_row(m["name"], m["provider"], m["model"], ", ".join(m.get("aliases", [])))

    console.print(table)


def _run(coro_factory, base_url: str) -> None:  # type: ignore[no-untyped-def]
    # asyncio.run cancels the main task on Ctrl-C before raising
    # KeyboardInterrupt, so run_chat still gets to post the cancel.
    async def _main() -> None:
        async with RelayClient(base_url) as client:
            await coro_factory(client)

    try:
        asyncio.run(_main())
    except KeyboardInterrupt:
        raise SystemExit(130) from None
    except RelayClientError as e:
        raise click.ClickException(e.message) from e


@click.group()
@click.version_option(version=__version__, prog_name="studio")
@click.option("--url", default=DEFAULT_BASE_URL, show_default=True, envvar="STUDIO_URL",
              help="Relay server base URL.")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output.")
@click.pass_context
def cli(ctx: click.Context, url: str, verbose: bool) -> None:
    """Studio relay -- chat with the configured models."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=err_console, show_path=False)],
        )
    ctx.obj = {"url": url}


@cli.command()
@click.argument("message")
@click.option("--model", "-m", required=True, help="Model name or alias.")
@click.option("--project", "-p", "project_id", default="default", help="Project id.")
@click.option("--timeout", type=float, default=None, help="Stop the answer after N seconds.")
@click.pass_context
def chat(ctx: click.Context, message: str, model: str, project_id: str, timeout: float | None) -> None:
    """Send MESSAGE and stream the answer."""
    _run(lambda client: run_chat(client, model, message, project_id, timeout), ctx.obj["url"])


@cli.command()
@click.option("--project", "-p", "project_id", default="default", help="Project id.")
@click.pass_context
def history(ctx: click.Context, project_id: str) -> None:
    """Show the stored conversation of a project."""
    _run(lambda client: run_history(client, project_id), ctx.obj["url"])


@cli.command()
@click.pass_context
def models(ctx: click.Context) -> None:
    """List the models the server can relay to."""
    _run(run_list_models, ctx.obj["url"])


def main() -> None:
    """CLI entry point."""
    cli()


if __name__ == "__main__":
    main()
