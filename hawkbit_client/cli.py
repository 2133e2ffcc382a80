import asyncio
from pathlib import Path

import structlog
import typer
from rich.console import Console

from hawkbit_client.config import settings
from hawkbit_client.services.ddi import (
    ChecksumType,
    Client,
    Execution,
    Finished,
    Reply,
)
from hawkbit_client.services.ddi.checksum import enabled_checksums

_NAME_TO_LEVEL = {
    "debug": 10,
    "info": 20,
    "warning": 30,
    "warn": 30,
    "error": 40,
    "critical": 50,
}

console = Console()
cli_app = typer.Typer(name="hawkbit-client", help="hawkBit DDI target client")


def configure_logging(level: str) -> None:
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(_NAME_TO_LEVEL.get(level.lower(), 20)),
    )


logger = structlog.get_logger()


def _build_client(url: str, tenant: str, controller: str, key: str) -> Client:
    return Client(url, tenant, controller, key)


async def handle_reply(reply: Reply, download_dir: Path) -> None:
    """React to every action announced in ``reply``."""
    request = reply.config_data_request()
    if request is not None:
        console.print("Uploading config data")
        await request.upload(Execution.closed, Finished.success, None, {"HwRevision": "1.0"})

    pending = reply.update()
    if pending is not None:
        console.print("Pending update")
        update = await pending.fetch()
        await update.send_feedback(Execution.proceeding, Finished.none, ["Downloading"])

        artifacts = await update.download(download_dir)
        for artifact in artifacts:
            for algorithm in ChecksumType:
                if algorithm in enabled_checksums() and getattr(artifact.hashes, algorithm.value):
                    await artifact.check(algorithm)
            console.print(f"  [green]{artifact.file}[/green]")

        await update.send_feedback(Execution.closed, Finished.success)

    cancel_action = reply.cancel_action()
    if cancel_action is not None:
        console.print(f"Action to cancel: {await cancel_action.id()}")
        await cancel_action.send_feedback(Execution.proceeding, Finished.none, ["Cancelling"])
        await cancel_action.send_feedback(Execution.closed, Finished.success)
        console.print("Action cancelled")


async def run_poll_loop(client: Client, download_dir: Path, once: bool = False) -> None:
    async with client:
        while True:
            reply = await client.poll()
            logger.info("poll", reply=repr(reply))
            await handle_reply(reply, download_dir)
            if once:
                return
            await asyncio.sleep(reply.polling_sleep().total_seconds())


@cli_app.callback()
def _root():
    """hawkBit DDI target client."""


@cli_app.command("poll")
def poll(
    url: str = typer.Argument(settings.hawkbit_url, help="hawkBit server URL"),
    controller: str = typer.Argument(settings.hawkbit_controller_id, help="Controller id of this target"),
    key: str = typer.Argument(settings.hawkbit_key_token, help="Target security token"),
    tenant: str = typer.Option(settings.hawkbit_tenant, "--tenant", "-t", help="Server tenant"),
    download_dir: Path = typer.Option(Path(settings.hawkbit_download_dir), "--download-dir", help="Where artifacts are written"),
    once: bool = typer.Option(False, "--once", help="Handle a single poll reply and exit"),
):
    """Poll the server and handle pending actions until interrupted."""
    configure_logging(settings.hawkbit_log_level)
    client = _build_client(url, tenant, controller, key)
    asyncio.run(run_poll_loop(client, download_dir, once=once))


def main() -> None:
    cli_app()


if __name__ == "__main__":
    main()
