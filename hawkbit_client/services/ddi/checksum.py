"""Artifact checksum verification, on downloaded files or in-line on the byte stream."""

import hashlib
from collections.abc import AsyncIterator
from enum import Enum
from pathlib import Path

import structlog

from hawkbit_client.config import settings
from hawkbit_client.core.exceptions import (
    ChecksumDisabledError,
    ChecksumError,
    DownloadIOError,
    InvalidResponseError,
)
from hawkbit_client.schemas.ddi import Hashes

logger = structlog.get_logger()

HASH_BUFFER_SIZE = 4096


class ChecksumType(str, Enum):
    md5 = "md5"
    sha1 = "sha1"
    sha256 = "sha256"


def enabled_checksums() -> frozenset[ChecksumType]:
    """Algorithms enabled through ``Settings.hawkbit_checksums``."""
    enabled = set()
    for name in settings.hawkbit_checksums.split(","):
        name = name.strip().lower()
        if name:
            enabled.add(ChecksumType(name))
    return frozenset(enabled)


class DownloadHasher:
    """Running digest of one algorithm, compared with the declared hash on finalize."""

    def __init__(self, algorithm: ChecksumType, expected: str):
        self.algorithm = algorithm
        self.expected = expected.lower()
        self._hasher = hashlib.new(algorithm.value, usedforsecurity=False)

    @classmethod
    def for_hashes(cls, algorithm: ChecksumType, hashes: Hashes) -> "DownloadHasher":
        """Hasher checking against the hash declared by the server for ``algorithm``."""
        if algorithm not in enabled_checksums():
            raise ChecksumDisabledError(algorithm)
        expected = getattr(hashes, algorithm.value)
        if expected is None:
            raise InvalidResponseError(
                f"Server did not declare a {algorithm.value} hash",
                details={"algorithm": algorithm.value},
            )
        return cls(algorithm, expected)

    def update(self, data: bytes) -> None:
        self._hasher.update(data)

    def finalize(self) -> None:
        actual = self._hasher.hexdigest()
        if actual != self.expected:
            raise ChecksumError(self.algorithm, expected=self.expected, actual=actual)


def hash_file(path: Path, hasher: DownloadHasher) -> None:
    """Feed ``path`` to ``hasher`` in fixed-size buffers, then finalize it."""
    try:
        with open(path, "rb") as f:
            for buffer in iter(lambda: f.read(HASH_BUFFER_SIZE), b""):
                hasher.update(buffer)
    except OSError as e:
        raise DownloadIOError(f"Cannot read {path}: {e}", details={"path": str(path)})
    hasher.finalize()


class StreamState(str, Enum):
    forwarding = "forwarding"
    finalizing = "finalizing"
    done = "done"
    failed = "failed"


class ChecksumStream:
    """Byte stream forwarding every chunk untouched while digesting it.

    When the wrapped stream ends the digest is compared with the declared hash;
    a mismatch is raised as a single ``ChecksumError`` after the last chunk was
    handed out. Errors of the wrapped stream propagate unchanged and skip the
    comparison, as does closing the stream before its end.
    """

    def __init__(self, stream: AsyncIterator[bytes], hasher: DownloadHasher):
        self._stream = stream
        self._hasher = hasher
        self.state = StreamState.forwarding

    @property
    def algorithm(self) -> ChecksumType:
        return self._hasher.algorithm

    def __aiter__(self) -> "ChecksumStream":
        return self

    async def __anext__(self) -> bytes:
        if self.state in (StreamState.done, StreamState.failed):
            raise StopAsyncIteration

        try:
            chunk = await self._stream.__anext__()
        except StopAsyncIteration:
            self._finalize()
            raise StopAsyncIteration
        except Exception:
            self.state = StreamState.failed
            raise

        self._hasher.update(chunk)
        return chunk

    def _finalize(self) -> None:
        self.state = StreamState.finalizing
        try:
            self._hasher.finalize()
        except ChecksumError as e:
            self.state = StreamState.failed
            logger.warning(
                "artifact_checksum_mismatch",
                algorithm=e.algorithm.value,
                expected=e.details["expected"],
                actual=e.details["actual"],
            )
            raise
        self.state = StreamState.done

    async def aclose(self) -> None:
        """Stop reading and release the underlying HTTP response."""
        aclose = getattr(self._stream, "aclose", None)
        if aclose is not None:
            await aclose()

    async def __aenter__(self) -> "ChecksumStream":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
