"""CLI for the Tales content pipeline.

Commands:
    upload [TEXT]            - Upload a tale (text argument or --file)
    upload-media <path>      - Upload a media file
    retrieve <address>       - Fetch and decode a tale
    verify <address>         - Check that a tale is retrievable and well-formed
    gateways <address>       - List gateway URLs for an address
    check-env                - Validate storage/pinning credentials
    pinata-auth              - Test Pinata authentication
"""

from __future__ import annotations

import asyncio
import json
import logging
import mimetypes
import os
import time
import zlib
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Annotated, NoReturn, Optional

import httpx
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from tales_content.clients import PinataClient, gateway_url
from tales_content.config import settings
from tales_content.env_check import (
    EnvStatus,
    check_environment,
    find_duplicate_keys,
    read_env_file,
)
from tales_content.errors import TalesContentError
from tales_content.manager import ContentManager
from tales_content.models import strip_scheme

app = typer.Typer(
    name="tales-content",
    help="Upload, pin and retrieve off-chain tale content",
    no_args_is_help=True,
)
console = Console()


def run_async(coro):
    """Run an async coroutine in sync context."""
    return asyncio.run(coro)


@asynccontextmanager
async def open_manager() -> AsyncIterator[ContentManager]:
    """Content manager over a single HTTP client for the command's lifetime."""
    async with httpx.AsyncClient(timeout=settings.http_timeout_s) as http:
        yield ContentManager.from_settings(settings, http)


def fail(message: str) -> NoReturn:
    console.print(f"[red]Error:[/red] {message}")
    raise typer.Exit(1)


def parse_meta(pairs: list[str]) -> dict[str, str]:
    """Turn ``key=value`` strings into a dict."""
    meta: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            raise typer.BadParameter(f"expected key=value, got {pair!r}", param_hint="--meta")
        meta[key.strip()] = value
    return meta


@app.callback()
def main(
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Show debug logging")
    ] = False,
):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


@app.command()
def upload(
    text: Annotated[Optional[str], typer.Argument(help="Tale text")] = None,
    file: Annotated[
        Optional[Path], typer.Option("--file", "-f", help="Read tale text from a file")
    ] = None,
    tags: Annotated[
        Optional[list[str]], typer.Option("--tag", "-t", help="Tag (repeatable)")
    ] = None,
    meta: Annotated[
        Optional[list[str]], typer.Option("--meta", "-m", help="Metadata key=value (repeatable)")
    ] = None,
    timestamp: Annotated[
        Optional[int], typer.Option("--timestamp", help="Timestamp in ms (default: now)")
    ] = None,
):
    """Upload a tale and print its content URI."""
    if file is not None:
        if not file.is_file():
            fail(f"File does not exist: {file}")
        text = file.read_text(encoding="utf-8")
    if text is None:
        fail("Provide tale text or --file")

    record = {
        "text": text,
        "timestamp": timestamp if timestamp is not None else int(time.time() * 1000),
        "tags": tags or None,
        "metadata": parse_meta(meta or []) or None,
    }

    async def _upload():
        async with open_manager() as manager:
            return await manager.upload_content(record)

    try:
        uri = run_async(_upload())
    except (TalesContentError, httpx.HTTPError, ValueError) as e:
        fail(str(e))

    console.print(f"[green]Uploaded[/green] → {uri}")


@app.command("upload-media")
def upload_media(
    path: Annotated[Path, typer.Argument(help="Media file to upload")],
    media_type: Annotated[
        Optional[str], typer.Option("--type", help="MIME type (guessed from the extension)")
    ] = None,
):
    """Upload a media file and print its content URI."""
    if not path.is_file():
        fail(f"File does not exist: {path}")

    media_type = media_type or mimetypes.guess_type(path.name)[0] or "application/octet-stream"
    data = path.read_bytes()
    console.print(f"Uploading {path.name} ({len(data) / 1024:.1f} KB, {media_type})...")

    async def _upload():
        async with open_manager() as manager:
            return await manager.upload_media(data, media_type)

    try:
        uri = run_async(_upload())
    except (TalesContentError, httpx.HTTPError, ValueError) as e:
        fail(str(e))

    console.print(f"[green]Uploaded[/green] → {uri}")


@app.command()
def retrieve(
    address: Annotated[str, typer.Argument(help="ipfs://<cid> or bare CID")],
    as_json: Annotated[bool, typer.Option("--json", help="Print the raw document")] = False,
):
    """Retrieve a tale from the gateways and decode it."""

    async def _retrieve():
        async with open_manager() as manager:
            return await manager.retrieve_content(address)

    try:
        record = run_async(_retrieve())
    except (TalesContentError, httpx.HTTPError, ValueError, OSError, zlib.error) as e:
        fail(str(e))

    if as_json:
        console.print_json(json.dumps(record.to_document()))
        return

    lines = [
        f"[bold]Timestamp:[/bold] {record.timestamp}",
        f"[bold]Tags:[/bold] {', '.join(record.tags or []) or '-'}",
        f"[bold]Media:[/bold] {len(record.media or [])} item(s)",
    ]
    if record.metadata:
        lines.append("[bold]Metadata:[/bold]")
        for k, v in record.metadata.items():
            lines.append(f"  • {k}: {v}")
    lines.append("")
    lines.append(record.text)
    console.print(Panel("\n".join(lines), title=address))


@app.command()
def verify(
    address: Annotated[str, typer.Argument(help="ipfs://<cid> or bare CID")],
):
    """Check that a tale can be retrieved and is well-formed."""

    async def _verify():
        async with open_manager() as manager:
            return await manager.verify_content(address)

    try:
        valid = run_async(_verify())
    except ValueError as e:
        fail(str(e))

    if not valid:
        console.print(f"[red]INVALID[/red] {address}")
        raise typer.Exit(1)
    console.print(f"[green]OK[/green] {address}")


@app.command()
def gateways(
    address: Annotated[str, typer.Argument(help="ipfs://<cid> or bare CID")],
):
    """List gateway URLs for an address, in retrieval order."""
    try:
        cid = strip_scheme(address, settings.content_scheme)
    except TalesContentError as e:
        fail(str(e))

    for i, host in enumerate(settings.gateway_hosts, start=1):
        console.print(f"  {i}. {gateway_url(host, cid)}")


@app.command("check-env")
def check_env(
    env_file: Annotated[
        Path, typer.Option("--env-file", help="Dotenv file to read and check for duplicates")
    ] = Path(".env"),
):
    """Validate storage and pinning credentials."""
    env: dict[str, str] = {}
    if env_file.is_file():
        env.update(read_env_file(env_file))
    env.update(os.environ)

    results = check_environment(env)

    table = Table(title="Environment")
    table.add_column("Variable")
    table.add_column("Status")
    table.add_column("Value / hint")
    styles = {
        EnvStatus.OK: "[green]ok[/green]",
        EnvStatus.MISSING: "[red]missing[/red]",
        EnvStatus.INVALID: "[red]invalid[/red]",
        EnvStatus.OPTIONAL_MISSING: "[yellow]not set (optional)[/yellow]",
    }
    for result in results:
        table.add_row(result.name, styles[result.status], result.display or result.message)
    console.print(table)

    if env_file.is_file():
        for key, first, dup in find_duplicate_keys(env_file):
            console.print(
                f"[yellow]Warning:[/yellow] duplicate entry for {key} at line {dup} "
                f"(previous definition at line {first})"
            )

    if any(r.failed for r in results):
        console.print("\n[red]Environment configuration is incomplete or invalid[/red]")
        raise typer.Exit(1)
    console.print("\n[green]Environment configuration is valid[/green]")


@app.command("pinata-auth")
def pinata_auth():
    """Test Pinata authentication with the configured keys."""

    async def _auth():
        async with httpx.AsyncClient(timeout=settings.http_timeout_s) as http:
            return await PinataClient(http).test_authentication()

    try:
        result = run_async(_auth())
    except httpx.HTTPError as e:
        fail(f"Pinata authentication failed: {e}")

    console.print(f"[green]Authenticated[/green] {result.get('message', '')}")


if __name__ == "__main__":
    app()
