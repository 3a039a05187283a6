"""
Walk-through of the client against a live server
"""
import csv
import io
from pathlib import Path

import typer

from ...client import SftpClient
from ...core.exceptions import SftpError
from ...core.logging import get_logger
from .connection import SftpConnectionFactory
from .output import RichOutput

logger = get_logger(__name__)
output = RichOutput()
connection_factory = SftpConnectionFactory()

GREETING = "Hello from sftpkit 👋\n"
CSV_ROWS = [["a", "b", "c", "d"], ["1", "2", "3", "4"], ["5", "6", "7", "8"]]


def register_demo_command(app: typer.Typer) -> None:
    """Register demo command on the main app"""
    app.command(name="demo")(demo_command)


def demo_command(
    ctx: typer.Context,
    workdir: Path = typer.Option(
        Path("."), "--workdir", "-w", help="Local directory for the downloaded file"
    ),
):
    """
    Run the example session: list, write, download, upload and read a CSV.
    """
    try:
        with connection_factory.create(ctx.obj) as client:
            run_demo(client, workdir)
    except SftpError as e:
        output.error(str(e))
        raise typer.Exit(1)
    except Exception as e:
        logger.exception("Demo failed")
        output.error(str(e), label="Unexpected error")
        raise typer.Exit(1)


def run_demo(client: SftpClient, workdir: Path) -> None:
    remote_file = "./example.txt"
    local_file = workdir / "download.txt"

    output.info("Listing home directory ...")
    for long_name in client.list_files("."):
        output.line(long_name)
    output.success("Done")

    output.info(f"Writing some sample text to {remote_file} ...")
    with client.open(remote_file, "w") as f:
        f.write(GREETING.encode("utf-8"))
    output.success("Done")

    output.info(f"Downloading {remote_file} to {local_file} ...")
    _check(client.download(remote_file, local_file))
    output.success("Done")

    output.info(f"Uploading {local_file} to {remote_file}.copy ...")
    _check(client.upload(local_file, f"{remote_file}.copy"))
    output.success("Done")

    remote_csv = "./example.csv"
    output.info(f"Writing some CSV data to {remote_csv} ...")
    buf = io.StringIO()
    csv.writer(buf, lineterminator="\n").writerows(CSV_ROWS)
    with client.open(remote_csv, "w") as f:
        f.write(buf.getvalue().encode("utf-8"))
    output.success("Done")

    output.info(f"Processing {remote_csv} as CSV ...")
    sink = io.BytesIO()
    _check(client.download(remote_csv, sink))
    reader = csv.reader(io.StringIO(sink.getvalue().decode("utf-8").strip()))
    header = next(reader)
    output.table(header, list(reader), title=remote_csv)
    output.success("Done")


def _check(result) -> None:
    if not result.success:
        raise result.cause
