"""
Transfer CLI commands
"""
import typer
from pathlib import Path
from typing import Optional, Callable

from rich.progress import Progress, BarColumn, TextColumn, TransferSpeedColumn

from ...core.logging import get_logger, get_stdout_console
from ...core.exceptions import SftpError, ConnectionError
from ...domain.transfer import TransferResult
from .connection import SftpConnectionFactory
from .output import RichOutput

logger = get_logger(__name__)
stdout_console = get_stdout_console()
output = RichOutput()
connection_factory = SftpConnectionFactory()


def register_transfer_commands(app: typer.Typer) -> None:
    """Register get/put commands on the main app"""
    app.command(name="get")(get_command)
    app.command(name="put")(put_command)


def get_command(
    ctx: typer.Context,
    remote: str = typer.Argument(..., help="Remote file"),
    local: Path = typer.Argument(..., help="Local destination file"),
    chunk: Optional[str] = typer.Option(
        None, "--chunk", help="Chunk size (e.g., 32K, 1M)"
    ),
    quiet: bool = typer.Option(
        False, "-q", "--quiet", help="Quiet mode"
    ),
):
    """
    Download a remote file.

    Examples:
        sftpkit get ./example.txt ./download.txt
        sftpkit get --chunk 64K ./big.iso ./big.iso
    """
    _run_transfer(ctx, "download", remote, local, chunk, quiet)


def put_command(
    ctx: typer.Context,
    local: Path = typer.Argument(..., help="Local source file"),
    remote: str = typer.Argument(..., help="Remote destination file"),
    chunk: Optional[str] = typer.Option(
        None, "--chunk", help="Chunk size (e.g., 32K, 1M)"
    ),
    quiet: bool = typer.Option(
        False, "-q", "--quiet", help="Quiet mode"
    ),
):
    """
    Upload a local file.

    Examples:
        sftpkit put ./download.txt ./example.txt.copy
    """
    _run_transfer(ctx, "upload", remote, local, chunk, quiet)


def _run_transfer(
    ctx: typer.Context,
    direction: str,
    remote: str,
    local: Path,
    chunk: Optional[str],
    quiet: bool,
) -> None:
    extra = {}
    if chunk:
        parsed_chunk = _parse_size(chunk)
        if not parsed_chunk:
            output.error(f"Invalid chunk size: {chunk}")
            raise typer.Exit(1)
        extra["chunk_size"] = parsed_chunk

    show_progress = not quiet and stdout_console.is_terminal
    arrow = f"{remote} → {local}" if direction == "download" else f"{local} → {remote}"

    try:
        if not quiet:
            output.info(f"Transferring: {arrow}")

        with connection_factory.create(ctx.obj, **extra) as client:
            with Progress(
                TextColumn("[progress.description]{task.description}"),
                BarColumn(),
                TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
                TransferSpeedColumn(),
                console=stdout_console,
                disable=not show_progress,
                transient=True,
            ) as progress:
                callback = _progress_callback(progress, direction.capitalize())
                if direction == "download":
                    result = client.download(remote, local, progress_callback=callback)
                else:
                    result = client.upload(local, remote, progress_callback=callback)
    except ConnectionError as e:
        output.error(str(e), label="Connection error")
        raise typer.Exit(1)
    except SftpError as e:
        output.error(str(e))
        raise typer.Exit(1)
    except Exception as e:
        logger.exception("Transfer failed")
        output.error(str(e), label="Unexpected error")
        raise typer.Exit(1)

    _report(result, quiet)


def _progress_callback(progress: Progress, description: str) -> Callable[[int, Optional[int]], None]:
    task = None

    def callback(transferred: int, total: Optional[int]) -> None:
        nonlocal task
        if task is None:
            task = progress.add_task(f"{description}...", total=total or None, completed=transferred)
        else:
            progress.update(task, completed=transferred, total=total or None)

    return callback


def _report(result: TransferResult, quiet: bool) -> None:
    if result.success:
        if not quiet:
            output.success(f"Transferred {result.bytes_transferred} bytes")
        return

    output.error(
        f"{result.direction.value} {result.outcome.value} after "
        f"{result.bytes_transferred} bytes: {result.cause}"
    )
    raise typer.Exit(1)


def _parse_size(size_str: str) -> Optional[int]:
    """
    Parse size string (e.g., "4M", "100K", "1GB") to bytes.

    Args:
        size_str: Size string

    Returns:
        Size in bytes or None if invalid
    """
    size_str = size_str.strip().upper()

    if not size_str:
        return None

    unit_multipliers = {
        "B": 1,
        "K": 1024,
        "KB": 1024,
        "M": 1024 * 1024,
        "MB": 1024 * 1024,
    }

    unit = None
    for u in sorted(unit_multipliers.keys(), key=len, reverse=True):
        if size_str.endswith(u):
            unit = u
            break

    if unit:
        number_str = size_str[:-len(unit)]
    else:
        # No unit, assume bytes
        number_str = size_str
        unit = "B"

    try:
        return int(float(number_str) * unit_multipliers[unit])
    except ValueError:
        return None
