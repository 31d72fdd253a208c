# === NAVMAP v1 ===
# {
#   "module": "HttpGet.cli",
#   "purpose": "Typer command line front-end for the request orchestrator",
#   "sections": [
#     {
#       "id": "main",
#       "name": "main",
#       "anchor": "function-main",
#       "kind": "function"
#     },
#     {
#       "id": "request-cmd",
#       "name": "request_cmd",
#       "anchor": "function-request-cmd",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Command line interface.

Example:
    $ http-get head example.org
    $ http-get get https://example.org/file.gz --output file
    $ http-get request POST https://example.org/api -H "content-type: application/json" -d '{}'
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape

from HttpGet.errors import ClassifiedError, InvalidInputError
from HttpGet.logging_config import setup_logging
from HttpGet.orchestrator import RequestOrchestrator, ResponseResult
from HttpGet.settings import ClientSettings, LoggingConfiguration
from HttpGet.version import __version__

_console = Console()
_err_console = Console(stderr=True)

app = typer.Typer(
    name="http-get",
    help="http-get - issue HTTP(S) requests with redirect following and decoding",
    no_args_is_help=True,
)


def _make_orchestrator(settings: ClientSettings) -> RequestOrchestrator:
    return RequestOrchestrator(settings)


def _parse_headers(values: List[str]) -> Dict[str, str]:
    headers: Dict[str, str] = {}
    for value in values:
        name, sep, content = value.partition(":")
        if not sep or not name.strip():
            raise typer.BadParameter(f"Header '{value}' must look like 'Name: value'")
        headers[name.strip()] = content.strip()
    return headers


async def _perform(settings: ClientSettings, method: str, options: Dict[str, Any]) -> ResponseResult:
    async with _make_orchestrator(settings) as orchestrator:
        return await orchestrator.request(method, options)


def _print_result(result: ResponseResult, *, include_headers: bool) -> None:
    _console.print(f"[bold]{result.code}[/bold] {result.url}", highlight=False)
    if include_headers or result.method == "HEAD":
        for name, value in result.headers.items():
            _console.print(f"[cyan]{name}[/cyan]: {value}", highlight=False)
    if result.file is not None:
        _console.print(f"saved to {result.file}", highlight=False)
    elif result.body:
        if include_headers:
            typer.echo("")
        typer.echo(result.text)


@app.callback(invoke_without_command=True)
def main(
    verbosity: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase verbosity (-v for INFO, -vv for DEBUG)",
    ),
    log_dir: Optional[Path] = typer.Option(
        None, "--log-dir", help="Directory for the JSON log file (with -v)"
    ),
    version: bool = typer.Option(False, "--version", "-V", help="Show version and exit"),
) -> None:
    """http-get - request orchestration from the command line."""
    if version:
        typer.echo(f"http-get {__version__}")
        raise typer.Exit(0)
    if verbosity:
        level = "DEBUG" if verbosity >= 2 else "INFO"
        setup_logging(LoggingConfiguration(level=level), log_dir)


@app.command("request")
def request_cmd(
    method: str = typer.Argument(..., help="HTTP method (HEAD, GET, POST, ...)"),
    url: str = typer.Argument(..., help="URL; http:// is assumed when no scheme is given"),
    header: List[str] = typer.Option([], "--header", "-H", help="Request header 'Name: value'"),
    ca: List[Path] = typer.Option([], "--ca", help="Trusted CA file (repeatable)"),
    insecure: bool = typer.Option(False, "--insecure", "-k", help="Skip TLS verification"),
    no_compress: bool = typer.Option(False, "--no-compress", help="Disable compression"),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="Per-hop timeout (seconds)"),
    max_redirects: Optional[int] = typer.Option(None, "--max-redirects", help="Hop ceiling"),
    data: Optional[str] = typer.Option(None, "--data", "-d", help="Request body"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Save body (GET only)"),
    include: bool = typer.Option(False, "--include", "-i", help="Print response headers"),
) -> None:
    """Issue one request and print the response."""
    options: Dict[str, Any] = {
        "url": url,
        "headers": _parse_headers(header),
        "noSslVerifier": insecure,
        "noCompress": no_compress,
    }
    if ca:
        options["ca"] = [str(path) for path in ca]
    if timeout is not None:
        options["timeout"] = timeout
    if max_redirects is not None:
        options["maxRedirects"] = max_redirects
    if data is not None:
        options["body"] = data
    if output is not None:
        options["file"] = str(output)

    try:
        settings = ClientSettings()
    except ValidationError as exc:
        _err_console.print(
            f"[red]Invalid HTTPGET_* configuration: {escape(str(exc))}[/red]", highlight=False
        )
        raise typer.Exit(2)

    try:
        result = asyncio.run(_perform(settings, method, options))
    except InvalidInputError as exc:
        _err_console.print(f"[red]Invalid input: {escape(exc.message)}[/red]", highlight=False)
        raise typer.Exit(2)
    except ClassifiedError as exc:
        _err_console.print(
            f"[red]{exc.kind.value} ({exc.code}) {exc.url}: {escape(exc.message)}[/red]",
            highlight=False,
        )
        raise typer.Exit(1)
    _print_result(result, include_headers=include)


@app.command("head")
def head_cmd(
    url: str = typer.Argument(..., help="URL to inspect"),
    insecure: bool = typer.Option(False, "--insecure", "-k", help="Skip TLS verification"),
) -> None:
    """Shortcut for ``request HEAD URL``."""
    request_cmd(
        "HEAD", url, header=[], ca=[], insecure=insecure, no_compress=False, timeout=None,
        max_redirects=None, data=None, output=None, include=True,
    )


@app.command("get")
def get_cmd(
    url: str = typer.Argument(..., help="URL to fetch"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Save body to file"),
    insecure: bool = typer.Option(False, "--insecure", "-k", help="Skip TLS verification"),
    include: bool = typer.Option(False, "--include", "-i", help="Print response headers"),
) -> None:
    """Shortcut for ``request GET URL``."""
    request_cmd(
        "GET", url, header=[], ca=[], insecure=insecure, no_compress=False, timeout=None,
        max_redirects=None, data=None, output=output, include=include,
    )


__all__ = ["app", "main"]
