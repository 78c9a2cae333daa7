#!/usr/bin/env python3
"""
blobcast CLI

Command-line interface for the stop-and-wait file transfer peripheral.

Usage:
    blobcast serve FILE                      # Serve a file to one central
    blobcast fetch HOST PORT -o OUT          # Fetch the served file
    blobcast frames FILE --mtu 20            # Show the frame sequence
    blobcast simulate FILE --mtu 20          # In-process transfer check
    blobcast config                          # Print an example config file
"""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.table import Table
from rich.progress import Progress, SpinnerColumn, TextColumn, BarColumn
from rich.panel import Panel
from rich.logging import RichHandler

from .config import CHARACTERISTIC_UUID, EXAMPLE_CONFIG, SERVICE_UUID, load_config
from .file import BlobLoader, FrameChunker, InvalidConfiguration, LoadFailure
from .node import PeripheralNode
from .peripheral import PeripheralAdapter, fetch_blob, run_loopback
from .transfer import AcknowledgementGate, ProtocolError, TransferSource

console = Console()


def setup_logging(verbose: bool = False, level_name: str = 'INFO'):
    """Configure logging with rich output."""
    level = logging.DEBUG if verbose else getattr(logging, level_name.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_time=False, show_path=False)]
    )


@click.group()
@click.option('-v', '--verbose', is_flag=True, help='Enable verbose output')
@click.option('--config', 'config_path', type=click.Path(dir_okay=False),
              help='JSON config file')
@click.pass_context
def cli(ctx, verbose, config_path):
    """blobcast - stream a file to one peer, one acknowledged frame at a time."""
    config = load_config(Path(config_path) if config_path else None)
    setup_logging(verbose, config.log_level)
    ctx.ensure_object(dict)
    ctx.obj['config'] = config


@cli.command()
@click.argument('file_path', required=False, type=click.Path(dir_okay=False))
@click.option('--host', default=None, help='Listen address')
@click.option('--port', type=int, default=None, help='Listen port')
@click.pass_context
def serve(ctx, file_path, host, port):
    """Serve a file over the emulated peripheral transport."""
    config = ctx.obj['config']
    if file_path:
        config.file_path = Path(file_path)
    if host:
        config.host = host
    if port is not None:
        config.port = port

    async def run():
        node = PeripheralNode(config)

        try:
            await node.start()

            console.print(Panel.fit(
                f"[bold green]Peripheral Started[/bold green]\n\n"
                f"File: [cyan]{config.file_path}[/cyan]\n"
                f"Listening: [yellow]{config.host}:{node.port}[/yellow]\n"
                f"Service: [dim]{SERVICE_UUID}[/dim]\n"
                f"Characteristic: [dim]{CHARACTERISTIC_UUID}[/dim]",
                title="File Transfer Peripheral"
            ))
            console.print("\n[dim]Press Ctrl+C to stop[/dim]\n")
            while True:
                await asyncio.sleep(1)

        except KeyboardInterrupt:
            console.print("\n[yellow]Shutting down...[/yellow]")
        finally:
            await node.stop()
            console.print("[green]Peripheral stopped[/green]")

    asyncio.run(run())


@cli.command()
@click.argument('host')
@click.argument('port', type=int)
@click.option('--output', '-o', type=click.Path(dir_okay=False), required=True,
              help='Output path')
@click.option('--mtu', type=int, default=None, help='Maximum payload size to negotiate')
@click.pass_context
def fetch(ctx, host, port, output, mtu):
    """Fetch the served file from a peripheral."""
    config = ctx.obj['config']
    max_payload_size = mtu or config.max_payload_size

    async def run() -> bytes:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            console=console,
        ) as progress:
            task = progress.add_task("Subscribing...", total=100)

            def update_progress(assembler):
                progress.update(
                    task,
                    completed=assembler.progress * 100,
                    description=f"Receiving... ({assembler.frames_received} frames)"
                )

            data = await fetch_blob(host, port, max_payload_size,
                                    timeout=config.transfer_timeout,
                                    progress_callback=update_progress)
            progress.update(task, completed=100, description="Done!")
            return data

    try:
        data = asyncio.run(run())
    except asyncio.TimeoutError:
        console.print("[red]✗ Timed out waiting for the peripheral[/red]")
        sys.exit(1)
    except (ConnectionError, ProtocolError) as e:
        console.print(f"[red]✗ Transfer failed: {e}[/red]")
        sys.exit(1)

    Path(output).write_bytes(data)
    console.print(f"[green]✓ Received {format_size(len(data))} to: {output}[/green]")


@cli.command()
@click.argument('file_path', type=click.Path(exists=True, dir_okay=False))
@click.option('--mtu', type=int, default=None, help='Maximum payload size')
@click.option('--limit', default=20, help='Maximum rows to show')
@click.pass_context
def frames(ctx, file_path, mtu, limit):
    """Show the frame sequence a subscriber would receive."""
    config = ctx.obj['config']
    max_payload_size = mtu or config.max_payload_size

    try:
        chunker = FrameChunker(max_payload_size)
        blob = asyncio.run(BlobLoader(file_path).load())
        sequence = chunker.build_frames(blob)
    except (InvalidConfiguration, LoadFailure) as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)

    table = Table(title=f"Frames for {Path(file_path).name} (MTU {max_payload_size})")
    table.add_column("#", justify="right")
    table.add_column("Kind", style="cyan")
    table.add_column("Size", justify="right", style="yellow")
    table.add_column("Preview", style="green")

    for index, frame in enumerate(sequence[:limit]):
        if index == 0:
            table.add_row(str(index), "length", str(len(frame)), frame.decode('ascii'))
        else:
            table.add_row(str(index), "data", str(len(frame)), frame[:8].hex())

    console.print(table)
    if len(sequence) > limit:
        console.print(f"[dim]... and {len(sequence) - limit} more[/dim]")
    console.print(f"{len(sequence)} frames, {format_size(len(blob))}")


@cli.command()
@click.argument('file_path', type=click.Path(exists=True, dir_okay=False))
@click.option('--mtu', type=int, default=None, help='Maximum payload size')
@click.pass_context
def simulate(ctx, file_path, mtu):
    """Run a full transfer in-process and verify the result."""
    config = ctx.obj['config']
    max_payload_size = mtu or config.max_payload_size

    async def run():
        loader = BlobLoader(file_path)
        source = TransferSource(loader)
        adapter = PeripheralAdapter(source, AcknowledgementGate(source))
        assembler = await run_loopback(adapter, max_payload_size)
        return assembler, await loader.load(), source.get_stats()

    try:
        assembler, original, stats = asyncio.run(run())
    except ProtocolError as e:
        console.print(f"[red]✗ Simulation failed: {e}[/red]")
        sys.exit(1)

    received = assembler.result()
    matches = received == original
    console.print(Panel.fit(
        f"Frames: [yellow]{assembler.frames_received}[/yellow]\n"
        f"Bytes: [yellow]{len(received):,}[/yellow]\n"
        f"Session state: [cyan]{stats['state']}[/cyan]\n"
        f"Match: {'[green]Yes[/green]' if matches else '[red]No[/red]'}",
        title="Simulated Transfer"
    ))
    if not matches:
        sys.exit(1)


@cli.command('config')
def show_config():
    """Print an example configuration file."""
    console.print("Example configuration file (config.json):")
    console.print(EXAMPLE_CONFIG, markup=False, highlight=False)


def format_size(bytes_count: float) -> str:
    """Format bytes as human-readable size."""
    for unit in ['B', 'KB', 'MB', 'GB', 'TB']:
        if bytes_count < 1024:
            return f"{bytes_count:.1f} {unit}"
        bytes_count /= 1024
    return f"{bytes_count:.1f} PB"


def main(argv: Optional[list] = None):
    cli(args=argv, obj={})


if __name__ == '__main__':
    main()
