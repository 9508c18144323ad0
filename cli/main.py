"""News reader CLI: the same pipeline the API serves, from a terminal.

Usage:
    newsreader --help

Commands:
    resolve   → wrapper link to publisher URL
    extract   → readable article for a URL
    serve     → run the HTTP API with uvicorn
"""

from __future__ import annotations

import json
from typing import Any

import typer

from newsreader.config import settings
from newsreader.logging_setup import configure_logging
from newsreader.services import ReaderServices, build_services

app = typer.Typer(
    name="newsreader",
    help="News reader CLI.",
    no_args_is_help=True,
)


def _services() -> ReaderServices:
    configure_logging(settings.log_level, settings.environment)
    return build_services(settings)


def _echo_json(payload: dict[str, Any]) -> None:
    typer.echo(json.dumps(payload, indent=2, ensure_ascii=False))


# ---------------------------------------------------------------------------
# Pipeline commands
# ---------------------------------------------------------------------------

@app.command("resolve")
def resolve(
    url: str = typer.Argument(..., help="Aggregator wrapper link (or any article URL)."),
    debug: bool = typer.Option(False, "--debug", help="Include strategy diagnostics."),
) -> None:
    """Resolve a wrapper link to the publisher's article URL."""
    result = _services().resolver.resolve(url)
    _echo_json(result.to_dict(debug=debug))
    if not result.success:
        raise typer.Exit(code=1)


@app.command("extract")
def extract(
    url: str = typer.Argument(..., help="Article URL or aggregator wrapper link."),
    debug: bool = typer.Option(False, "--debug", help="Include extraction diagnostics."),
    refresh: bool = typer.Option(False, "--refresh", help="Skip cached results."),
    text: bool = typer.Option(False, "--text", help="Print the title and plain text only."),
) -> None:
    """Extract the readable article behind URL."""
    result = _services().articles.extract(url, refresh=refresh)
    if text and result.success:
        typer.echo(result.title)
        typer.echo("")
        typer.echo(result.text_content)
    elif text:
        typer.echo(f"[extract] {result.status.value}: {result.error}", err=True)
    else:
        _echo_json(result.to_dict(debug=debug))
    if not result.success:
        raise typer.Exit(code=1)


# ---------------------------------------------------------------------------
# Server
# ---------------------------------------------------------------------------

@app.command("serve")
def serve(
    host: str = typer.Option("127.0.0.1", help="Interface to bind."),
    port: int = typer.Option(8000, help="Port to listen on."),
) -> None:
    """Run the HTTP API."""
    import uvicorn  # noqa: PLC0415

    configure_logging(settings.log_level, settings.environment)
    typer.echo(f"[serve] Listening on http://{host}:{port}")
    uvicorn.run("newsreader.api.app:app", host=host, port=port, log_config=None)


if __name__ == "__main__":
    app()
