"""CLI entrypoint for distcrypt."""

import logging
from pathlib import Path

import rich_click as click

from distcrypt import __version__
from distcrypt.config import Settings
from distcrypt.controllers import (
    CommandResult,
    CryptoCliController,
    FallbackCommand,
    PathsCommand,
    RunJobCommand,
    StorageCommand,
)
from distcrypt.orchestrator.models import Mode

click.rich_click.USE_MARKDOWN = True
CONTROLLER = CryptoCliController()

_MODE_CHOICE = click.Choice([mode.value for mode in Mode], case_sensitive=False)


@click.group()
@click.version_option(version=__version__, prog_name="distcrypt")
@click.option(
    "--log-level",
    default=None,
    help="Logging level (DEBUG, INFO, WARNING, ...). Defaults to DISTCRYPT_LOG_LEVEL or INFO.",
)
def distcrypt(log_level: str | None) -> None:
    """Distributed file encryption coordinator."""

    try:
        settings = Settings.from_env()
        settings.validate()
    except ValueError as error:
        raise click.UsageError(str(error)) from error
    level = (log_level or settings.log_level).upper()
    if not isinstance(logging.getLevelName(level), int):
        raise click.BadParameter(f"Unknown level: {log_level!r}", param_hint="'--log-level'")
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@distcrypt.command("run")
@click.argument("input_path", type=click.Path(path_type=Path))
@click.option("--mode", type=_MODE_CHOICE, required=True, help="encrypt or decrypt.")
@click.option(
    "--output",
    "output_path",
    type=click.Path(path_type=Path),
    default=None,
    help="Output path. Derived from the input when omitted.",
)
@click.option(
    "--worker",
    "workers",
    multiple=True,
    required=True,
    help="Worker bind address, for example `localhost:50051`. Can be repeated.",
)
def run(input_path: Path, mode: str, output_path: Path | None, workers: tuple[str, ...]) -> None:
    """Start workers, run one encrypt/decrypt job through the master, stop workers."""

    result = CONTROLLER.run_job(
        RunJobCommand(
            input_path=input_path,
            mode=Mode(mode.lower()),
            worker_addresses=workers,
            output_path=output_path,
        ),
        emit=click.echo,
    )
    _finish(result)


@distcrypt.group()
def fallback() -> None:
    """Run the local fallback codec directly."""


@fallback.command("encrypt")
@click.argument("input_path", type=click.Path(path_type=Path))
@click.option("--output", "output_path", type=click.Path(path_type=Path), default=None)
def fallback_encrypt(input_path: Path, output_path: Path | None) -> None:
    """XOR-encrypt a file with the default key and write `<output>.key`."""

    _finish(CONTROLLER.fallback(FallbackCommand(input_path, Mode.ENCRYPT, output_path)))


@fallback.command("decrypt")
@click.argument("input_path", type=click.Path(path_type=Path))
@click.option("--output", "output_path", type=click.Path(path_type=Path), default=None)
def fallback_decrypt(input_path: Path, output_path: Path | None) -> None:
    """XOR-decrypt a file using the first discovered key file."""

    _finish(CONTROLLER.fallback(FallbackCommand(input_path, Mode.DECRYPT, output_path)))


@distcrypt.command("paths")
@click.argument("input_path", type=click.Path(path_type=Path))
@click.option("--mode", type=_MODE_CHOICE, required=True)
@click.option("--output", "output_path", type=click.Path(path_type=Path), default=None)
def paths(input_path: Path, mode: str, output_path: Path | None) -> None:
    """Show the resolved output path and, for decrypt, key file candidates."""

    _finish(CONTROLLER.paths(PathsCommand(input_path, Mode(mode.lower()), output_path)))


@distcrypt.group()
def storage() -> None:
    """Remote storage commands (delegated to the external storage CLI)."""


@storage.command("configure")
@click.argument("token")
@click.option("--folder", default=None, help="Remote folder. Defaults to DISTCRYPT_STORAGE_FOLDER.")
def storage_configure(token: str, folder: str | None) -> None:
    """Save remote storage credentials."""

    _finish(
        CONTROLLER.storage(
            StorageCommand(action="configure", args=(token,), folder=folder),
            emit=click.echo,
        ),
    )


@storage.command("upload")
@click.argument("local_path")
@click.argument("remote_path", required=False)
def storage_upload(local_path: str, remote_path: str | None) -> None:
    """Upload a local file."""

    args = (local_path, remote_path) if remote_path else (local_path,)
    _finish(CONTROLLER.storage(StorageCommand(action="upload", args=args), emit=click.echo))


@storage.command("download")
@click.argument("remote_path")
@click.argument("local_path")
def storage_download(remote_path: str, local_path: str) -> None:
    """Download a remote file."""

    _finish(
        CONTROLLER.storage(
            StorageCommand(action="download", args=(remote_path, local_path)),
            emit=click.echo,
        ),
    )


@distcrypt.command("serve")
def serve() -> None:
    """Serve JSON-lines requests on stdin and write replies/events to stdout."""

    CONTROLLER.serve(lambda line: click.echo(line))


def _finish(result: CommandResult) -> None:
    for line in result.lines:
        click.echo(line)
    if not result.success:
        raise SystemExit(result.exit_code)


if __name__ == "__main__":  # pragma: no cover
    distcrypt()
