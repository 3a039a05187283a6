"""
Remote file CLI commands: ls, cat, write
"""
import typer

from ...core.exceptions import SftpError
from ...core.logging import get_logger
from .connection import SftpConnectionFactory
from .output import RichOutput

logger = get_logger(__name__)
output = RichOutput()
connection_factory = SftpConnectionFactory()


def register_file_commands(app: typer.Typer) -> None:
    """Register file commands on the main app"""
    app.command(name="ls")(list_command)
    app.command(name="cat")(cat_command)
    app.command(name="write")(write_command)


def list_command(
    ctx: typer.Context,
    path: str = typer.Argument(".", help="Remote directory"),
):
    """
    List a remote directory (ls -l style lines).
    """
    try:
        with connection_factory.create(ctx.obj) as client:
            for long_name in client.list_files(path):
                output.line(long_name)
    except SftpError as e:
        output.error(str(e))
        raise typer.Exit(1)
    except Exception as e:
        logger.exception("Listing failed")
        output.error(str(e), label="Unexpected error")
        raise typer.Exit(1)


def cat_command(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="Remote file"),
):
    """
    Print a remote file to stdout.
    """
    try:
        with connection_factory.create(ctx.obj) as client:
            with client.open(path, "r") as f:
                data = f.read()
    except SftpError as e:
        output.error(str(e))
        raise typer.Exit(1)
    except Exception as e:
        logger.exception("Read failed")
        output.error(str(e), label="Unexpected error")
        raise typer.Exit(1)

    typer.echo(data, nl=False)


def write_command(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="Remote file"),
    text: str = typer.Argument(..., help="Text to write (UTF-8)"),
    append: bool = typer.Option(False, "--append", "-a", help="Append instead of truncating"),
    newline: bool = typer.Option(True, "--newline/--no-newline", help="End the text with a newline"),
):
    """
    Write text to a remote file.

    Examples:
        sftpkit write ./example.txt "Hello from sftpkit"
        sftpkit write --append ./log.txt "one more line"
    """
    data = (text + "\n" if newline else text).encode("utf-8")
    try:
        with connection_factory.create(ctx.obj) as client:
            with client.open(path, "a" if append else "w") as f:
                f.write(data)
    except SftpError as e:
        output.error(str(e))
        raise typer.Exit(1)
    except Exception as e:
        logger.exception("Write failed")
        output.error(str(e), label="Unexpected error")
        raise typer.Exit(1)

    output.success(f"Wrote {len(data)} bytes to {path}")
