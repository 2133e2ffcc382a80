"""Deployments: update details, software chunks and artifact downloads."""

import asyncio
from collections.abc import AsyncIterator, Iterable, Iterator
from pathlib import Path
from typing import Any

import structlog

from hawkbit_client.core.exceptions import DownloadIOError, InvalidResponseError, MissingDownloadLinkError
from hawkbit_client.schemas.ddi import (
    ActionHistory,
    ArtifactInfo,
    ChunkInfo,
    DeploymentReply,
    Execution,
    Finished,
    HandlingType,
    Hashes,
    MaintenanceWindow,
)
from hawkbit_client.services.ddi.actions import ActionKind
from hawkbit_client.services.ddi.checksum import ChecksumStream, ChecksumType, DownloadHasher, hash_file
from hawkbit_client.services.ddi.feedback import send_feedback
from hawkbit_client.services.ddi.transport import Transport

logger = structlog.get_logger()


def _path_component(name: str, what: str) -> str:
    """Reject server-provided names that would escape the download directory."""
    if not name or name in (".", "..") or "/" in name or "\\" in name or "\x00" in name:
        logger.warning("download_path_traversal_blocked", name=name, kind=what)
        raise InvalidResponseError(
            f"Invalid {what} name from server: {name!r}",
            details={what: name},
        )
    return name


class UpdatePreFetch:
    """A pending update whose details have not been retrieved yet.

    Call :meth:`fetch` to retrieve the details from the server.
    """

    kind = ActionKind.deployment

    def __init__(self, transport: Transport, url: str):
        self._transport = transport
        self._url = url

    @property
    def url(self) -> str:
        return self._url

    async def fetch(self) -> "Update":
        """Retrieve details about the update."""
        reply = await self._transport.get_json(self._url, DeploymentReply)
        logger.info(
            "deployment_fetched",
            action_id=reply.id,
            download=reply.deployment.download.value,
            update=reply.deployment.update.value,
            chunks=len(reply.deployment.chunks),
        )
        return Update(self._transport, reply, self._url)

    def __repr__(self) -> str:
        return f"UpdatePreFetch(url={self._url!r})"


class Update:
    """A pending update to deploy."""

    def __init__(self, transport: Transport, info: DeploymentReply, url: str):
        self._transport = transport
        self._info = info
        self._url = url

    @property
    def id(self) -> str:
        """Id of the deployment action, used for feedback."""
        return self._info.id

    def download_type(self) -> HandlingType:
        """Handling for the download part of the provisioning process."""
        return self._info.deployment.download

    def update_type(self) -> HandlingType:
        """Handling for the update part of the provisioning process."""
        return self._info.deployment.update

    def maintenance_window(self) -> MaintenanceWindow | None:
        """If set, the update is part of a maintenance window."""
        return self._info.deployment.maintenance_window

    def action_history(self) -> ActionHistory | None:
        return self._info.action_history

    def chunks(self) -> Iterator["Chunk"]:
        """Iterate over the software chunks of the update, in server order."""
        return (Chunk(self._transport, c) for c in self._info.deployment.chunks)

    async def download(self, dir: Path) -> list["DownloadedArtifact"]:
        """Download all chunks to ``dir/<chunk name>/<filename>``.

        Stops at the first failing artifact; files already written are kept.
        """
        result = []
        for chunk in self.chunks():
            result.extend(await chunk.download(dir))
        logger.info("deployment_downloaded", action_id=self.id, artifacts=len(result))
        return result

    async def send_feedback_with_progress(
        self,
        execution: Execution,
        finished: Finished,
        progress: Any,
        details: Iterable[str] = (),
    ) -> None:
        """Send feedback about this update with custom progress information.

        The action stays open on the server until the target reports either
        ``Finished.success`` or ``Finished.failure``.
        """
        await send_feedback(
            self._transport,
            self._url,
            self.id,
            execution,
            finished,
            progress=progress,
            details=details,
        )

    async def send_feedback(
        self,
        execution: Execution,
        finished: Finished,
        details: Iterable[str] = (),
    ) -> None:
        """Same as :meth:`send_feedback_with_progress`, without progress."""
        await send_feedback(self._transport, self._url, self.id, execution, finished, details=details)

    def __repr__(self) -> str:
        return f"Update(id={self.id!r}, url={self._url!r})"


class Chunk:
    """Software chunk of an update."""

    def __init__(self, transport: Transport, chunk: ChunkInfo):
        self._transport = transport
        self._chunk = chunk

    @property
    def part(self) -> str:
        return self._chunk.part

    @property
    def name(self) -> str:
        return self._chunk.name

    @property
    def version(self) -> str:
        return self._chunk.version

    def metadata(self) -> Iterator[tuple[str, str]]:
        return ((m.key, m.value) for m in self._chunk.metadata)

    def artifacts(self) -> Iterator["Artifact"]:
        return (Artifact(self._transport, a) for a in self._chunk.artifacts)

    async def download(self, dir: Path) -> list["DownloadedArtifact"]:
        """Download all artifacts of the chunk to ``dir/<chunk name>/``."""
        chunk_dir = Path(dir) / _path_component(self.name, "chunk")
        return [await artifact.download(chunk_dir) for artifact in self.artifacts()]

    def __repr__(self) -> str:
        return f"Chunk(part={self.part!r}, name={self.name!r}, version={self.version!r})"


class Artifact:
    """A single file of a :class:`Chunk` to download."""

    def __init__(self, transport: Transport, artifact: ArtifactInfo):
        self._transport = transport
        self._artifact = artifact

    @property
    def filename(self) -> str:
        return self._artifact.filename

    @property
    def size(self) -> int:
        return self._artifact.size

    @property
    def hashes(self) -> Hashes:
        return self._artifact.hashes

    @property
    def download_url(self) -> str:
        """Content link, https preferred over http."""
        download = self._artifact.links.preferred
        if download is None:
            raise MissingDownloadLinkError(self.filename)
        return download.content.href

    @property
    def md5sum_url(self) -> str | None:
        download = self._artifact.links.preferred
        if download is None or download.md5sum is None:
            return None
        return download.md5sum.href

    async def download(self, dir: Path) -> "DownloadedArtifact":
        """Stream the artifact to ``dir/<filename>``, creating ``dir`` if needed."""
        dir = Path(dir)
        path = dir / _path_component(self.filename, "filename")
        url = self.download_url

        async with self._transport.stream(url) as response:
            try:
                dir.mkdir(parents=True, exist_ok=True)
                with open(path, "wb") as dest:
                    async for chunk in response.aiter_bytes():
                        dest.write(chunk)
            except OSError as e:
                raise DownloadIOError(f"Cannot write {path}: {e}", details={"path": str(path)})

        logger.info("artifact_downloaded", filename=self.filename, path=str(path), size=self.size)
        return DownloadedArtifact(path, self.hashes.model_copy())

    async def download_stream(self) -> AsyncIterator[bytes]:
        """Yield the artifact content as it arrives, without storing it.

        Useful to extract an archive while it is being downloaded. The stream
        can only be consumed once.
        """
        async with self._transport.stream(self.download_url) as response:
            async for chunk in response.aiter_bytes():
                yield chunk

    def download_stream_with_check(self, algorithm: ChecksumType) -> ChecksumStream:
        """Same bytes as :meth:`download_stream`, with the digest checked at the end.

        A ``ChecksumError`` is raised once the whole content was yielded if the
        digest does not match the one declared by the server.
        """
        hasher = DownloadHasher.for_hashes(algorithm, self.hashes)
        return ChecksumStream(self.download_stream(), hasher)

    def download_stream_with_md5_check(self) -> ChecksumStream:
        return self.download_stream_with_check(ChecksumType.md5)

    def download_stream_with_sha1_check(self) -> ChecksumStream:
        return self.download_stream_with_check(ChecksumType.sha1)

    def download_stream_with_sha256_check(self) -> ChecksumStream:
        return self.download_stream_with_check(ChecksumType.sha256)

    def __repr__(self) -> str:
        return f"Artifact(filename={self.filename!r}, size={self.size})"


class DownloadedArtifact:
    """An artifact file written to disk, with the hashes the server declared."""

    def __init__(self, file: Path, hashes: Hashes):
        self._file = file
        self._hashes = hashes

    @property
    def file(self) -> Path:
        return self._file

    @property
    def hashes(self) -> Hashes:
        return self._hashes

    async def check(self, algorithm: ChecksumType) -> None:
        """Re-read the file and compare its digest with the declared hash."""
        hasher = DownloadHasher.for_hashes(algorithm, self._hashes)
        await asyncio.to_thread(hash_file, self._file, hasher)
        logger.debug("artifact_checksum_verified", file=str(self._file), algorithm=algorithm.value)

    async def check_md5(self) -> None:
        await self.check(ChecksumType.md5)

    async def check_sha1(self) -> None:
        await self.check(ChecksumType.sha1)

    async def check_sha256(self) -> None:
        await self.check(ChecksumType.sha256)

    def __repr__(self) -> str:
        return f"DownloadedArtifact(file={str(self._file)!r})"
