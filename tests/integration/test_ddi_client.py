"""End-to-end DDI flows against the in-process fake hawkBit server."""

import asyncio
from datetime import timedelta

import pytest
from pydantic import BaseModel

from hawkbit_client.core.exceptions import ChecksumError, DownloadIOError, InvalidResponseError, TransportError
from hawkbit_client.services.ddi import (
    ActionKind,
    ChecksumType,
    Client,
    Execution,
    Finished,
    HandlingType,
    MaintenanceWindow,
    Mode,
)
from tests.mocks.fake_hawkbit import BASE_URL, FakeArtifact, FakeChunk, FakeDeployment, FakeHawkbit

CONTENT = b"hello world"
MD5 = "5eb63bbbe01eeed093cb22bb8f5acdc3"
SHA1 = "2aae6c35c94fcfb415dbe95f408b9ce91ee846ed"
SHA256 = "b94d27b9934d3e08a52e52d7da7dabfac484efe37a5380ee9088f7ace2efcde9"


def get_deployment(artifact: FakeArtifact | None = None) -> FakeDeployment:
    artifact = artifact or FakeArtifact("test.txt", CONTENT, md5=MD5, sha1=SHA1, sha256=SHA256)
    return FakeDeployment(
        id="10",
        download="forced",
        update="attempt",
        maintenance_window="available",
        chunks=[FakeChunk(part="app", version="1.0", name="some-chunk", artifacts=[artifact], metadata={"k": "v"})],
    )


async def _fetch_update(ddi_client):
    reply = await ddi_client.poll()
    return await reply.update().fetch()


# ── Poll ─────────────────────────────────────────────────────────────────────


async def test_poll():
    server = FakeHawkbit(tenant="my-tenant")
    target = server.add_target("Target1")
    http_client = server.http_client()
    client = Client(BASE_URL, "my-tenant", target.name, target.key, http_client=http_client)

    assert target.poll_hits == 0

    # Try polling twice
    for i in range(2):
        reply = await client.poll()
        assert reply.polling_sleep() == timedelta(seconds=60)
        assert reply.config_data_request() is None
        assert reply.update() is None
        assert reply.cancel_action() is None
        assert target.poll_hits == i + 1

    await http_client.aclose()


async def test_poll_wrong_key(server, target, http_client):
    client = Client(BASE_URL, server.tenant, target.name, "WrongKey", http_client=http_client)
    with pytest.raises(TransportError) as exc_info:
        await client.poll()
    assert exc_info.value.status_code == 401


async def test_poll_unknown_target(server, http_client):
    client = Client(BASE_URL, server.tenant, "Ghost", "KeyGhost", http_client=http_client)
    with pytest.raises(TransportError) as exc_info:
        await client.poll()
    assert exc_info.value.status_code == 404


async def test_poll_all_actions(ddi_client, target):
    target.request_config()
    target.push_deployment(get_deployment())
    target.cancel_action("5", "10")

    reply = await ddi_client.poll()
    assert reply.config_data_request() is not None
    assert reply.update() is not None
    assert reply.cancel_action() is not None
    assert sorted(action.kind.value for action in reply.actions()) == sorted(k.value for k in ActionKind)


# ── Config data ──────────────────────────────────────────────────────────────


async def test_upload_config(ddi_client, target):
    expected_config_data = {
        "mode": "merge",
        "data": {"awesome": True},
        "status": {
            "result": {"finished": "success"},
            "execution": "closed",
            "details": ["Some stuffs"],
        },
    }
    target.request_config(expected_config_data)

    reply = await ddi_client.poll()
    config_data_req = reply.config_data_request()
    assert config_data_req is not None
    assert reply.update() is None

    await config_data_req.upload(
        Execution.closed,
        Finished.success,
        Mode.merge,
        {"awesome": True},
        ["Some stuffs"],
    )

    assert target.poll_hits == 1
    assert target.config_data_hits == 1
    assert target.config_uploads == [expected_config_data]


async def test_upload_config_model_without_mode(ddi_client, target):
    class Config(BaseModel):
        HwRevision: str

    target.request_config()
    reply = await ddi_client.poll()
    await reply.config_data_request().upload(Execution.closed, Finished.success, None, Config(HwRevision="1.0"))

    body = target.config_uploads[0]
    assert "mode" not in body
    assert body["data"] == {"HwRevision": "1.0"}
    assert body["status"]["details"] == []


async def test_upload_config_rejected(ddi_client, target):
    target.request_config({"data": {"expected": True}})
    reply = await ddi_client.poll()

    with pytest.raises(TransportError) as exc_info:
        await reply.config_data_request().upload(Execution.closed, Finished.success, Mode.replace, {"other": 1})
    assert exc_info.value.status_code == 400


# ── Deployment ───────────────────────────────────────────────────────────────


async def test_deployment(ddi_client, target, tmp_path):
    target.push_deployment(get_deployment())

    reply = await ddi_client.poll()
    assert reply.config_data_request() is None
    assert target.deployment_hits == 0

    update = await reply.update().fetch()
    assert target.deployment_hits == 1
    assert update.id == "10"
    assert update.download_type() is HandlingType.forced
    assert update.update_type() is HandlingType.attempt
    assert update.maintenance_window() is MaintenanceWindow.available
    assert update.action_history() is None

    # chunks() can be iterated again without another fetch
    assert len(list(update.chunks())) == 1
    assert len(list(update.chunks())) == 1
    assert target.deployment_hits == 1

    chunk = next(update.chunks())
    assert chunk.part == "app"
    assert chunk.version == "1.0"
    assert chunk.name == "some-chunk"
    assert list(chunk.metadata()) == [("k", "v")]
    assert len(list(chunk.artifacts())) == 1

    art = next(chunk.artifacts())
    assert art.filename == "test.txt"
    assert art.size == 11
    assert art.download_url == f"{BASE_URL}/download/Target1/test.txt"
    assert art.md5sum_url == f"{BASE_URL}/download/Target1/test.txt.MD5SUM"

    artifacts = await update.download(tmp_path)

    assert len(artifacts) == 1
    p = artifacts[0].file
    assert p == tmp_path / "some-chunk" / "test.txt"
    assert p.read_bytes() == CONTENT

    await artifacts[0].check_md5()
    await artifacts[0].check_sha1()
    await artifacts[0].check_sha256()


async def test_deployment_action_history(ddi_client, target):
    deployment = get_deployment()
    deployment.action_history = {"status": "SCHEDULED", "messages": ["Assignment initiated"]}
    deployment.maintenance_window = None
    target.push_deployment(deployment)

    update = await _fetch_update(ddi_client)
    assert update.maintenance_window() is None
    assert update.action_history().status == "SCHEDULED"
    assert update.action_history().messages == ["Assignment initiated"]


async def test_download_checksum_mismatch(ddi_client, target, tmp_path):
    target.push_deployment(get_deployment(FakeArtifact("test.txt", CONTENT, sha1="0" * 40)))
    update = await _fetch_update(ddi_client)

    artifacts = await update.download(tmp_path)
    await artifacts[0].check_md5()
    with pytest.raises(ChecksumError) as exc_info:
        await artifacts[0].check_sha1()
    assert exc_info.value.algorithm is ChecksumType.sha1

    # the file stays on disk for inspection
    assert artifacts[0].file.read_bytes() == CONTENT


async def test_download_multiple_chunks(ddi_client, target, tmp_path):
    deployment = FakeDeployment(
        id="11",
        chunks=[
            FakeChunk("os", "2.0", "rootfs", [FakeArtifact("rootfs.img", b"\x00" * 1000)]),
            FakeChunk("app", "1.1", "app", [FakeArtifact("a.bin", b"a"), FakeArtifact("empty.bin", b"")]),
        ],
    )
    target.push_deployment(deployment)
    update = await _fetch_update(ddi_client)

    artifacts = await update.download(tmp_path)
    assert [a.file for a in artifacts] == [
        tmp_path / "rootfs" / "rootfs.img",
        tmp_path / "app" / "a.bin",
        tmp_path / "app" / "empty.bin",
    ]
    assert artifacts[2].file.read_bytes() == b""
    for artifact in artifacts:
        await artifact.check_sha256()


async def test_download_fails_fast(ddi_client, target, tmp_path):
    target.push_deployment(get_deployment())
    update = await _fetch_update(ddi_client)

    target.deployment = None  # artifacts are no longer served
    with pytest.raises(TransportError) as exc_info:
        await update.download(tmp_path)
    assert exc_info.value.status_code == 404
    assert not (tmp_path / "some-chunk").exists()


async def test_download_dir_is_a_file(ddi_client, target, tmp_path):
    target.push_deployment(get_deployment())
    update = await _fetch_update(ddi_client)
    art = next(next(update.chunks()).artifacts())

    blocker = tmp_path / "not-a-dir"
    blocker.write_bytes(b"")
    with pytest.raises(DownloadIOError) as exc_info:
        await art.download(blocker)
    assert exc_info.value.details["path"] == str(blocker / "test.txt")
    assert blocker.read_bytes() == b""


async def test_download_target_is_a_dir(ddi_client, target, tmp_path):
    target.push_deployment(get_deployment())
    update = await _fetch_update(ddi_client)

    (tmp_path / "some-chunk" / "test.txt").mkdir(parents=True)
    with pytest.raises(DownloadIOError):
        await update.download(tmp_path)


async def test_download_http_link_only(ddi_client, target, tmp_path):
    target.push_deployment(get_deployment(FakeArtifact("test.txt", CONTENT, https=False)))
    update = await _fetch_update(ddi_client)

    art = next(next(update.chunks()).artifacts())
    assert art.download_url == f"{BASE_URL}/download/Target1/test.txt"
    downloaded = await art.download(tmp_path)
    assert downloaded.file.read_bytes() == CONTENT


async def test_artifact_without_links_rejected(ddi_client, target):
    target.push_deployment(get_deployment(FakeArtifact("test.txt", CONTENT, https=False, http=False)))
    reply = await ddi_client.poll()

    with pytest.raises(InvalidResponseError):
        await reply.update().fetch()


async def test_unsafe_filename_rejected(ddi_client, target, tmp_path):
    target.push_deployment(get_deployment(FakeArtifact("..", CONTENT)))
    update = await _fetch_update(ddi_client)

    with pytest.raises(InvalidResponseError):
        await update.download(tmp_path / "out")
    assert not (tmp_path / "out").exists()
    assert target.download_hits == 0


# ── Streaming downloads ──────────────────────────────────────────────────────


async def test_download_stream(ddi_client, target):
    target.push_deployment(get_deployment())
    update = await _fetch_update(ddi_client)
    art = next(next(update.chunks()).artifacts())

    plain = [chunk async for chunk in art.download_stream()]
    assert b"".join(plain) == CONTENT

    for check in (
        art.download_stream_with_md5_check,
        art.download_stream_with_sha1_check,
        art.download_stream_with_sha256_check,
    ):
        checked = [chunk async for chunk in check()]
        assert checked == plain


async def test_download_stream_checksum_mismatch(ddi_client, target):
    target.push_deployment(get_deployment(FakeArtifact("test.txt", CONTENT, sha256="f" * 64)))
    update = await _fetch_update(ddi_client)
    art = next(next(update.chunks()).artifacts())

    received = []
    with pytest.raises(ChecksumError) as exc_info:
        async for chunk in art.download_stream_with_sha256_check():
            received.append(chunk)

    assert exc_info.value.algorithm is ChecksumType.sha256
    assert b"".join(received) == CONTENT

    # the other declared hashes are right
    assert b"".join([c async for c in art.download_stream_with_md5_check()]) == CONTENT


async def test_download_stream_error_status(ddi_client, target):
    target.push_deployment(get_deployment())
    update = await _fetch_update(ddi_client)
    art = next(next(update.chunks()).artifacts())
    target.deployment = None

    with pytest.raises(TransportError):
        async for _ in art.download_stream_with_sha1_check():
            pass


# ── Feedback ─────────────────────────────────────────────────────────────────


async def test_send_feedback(ddi_client, target):
    target.push_deployment(get_deployment())
    update = await _fetch_update(ddi_client)

    # Send feedback without progress
    await update.send_feedback(Execution.proceeding, Finished.none, ["Downloading"])
    assert len(target.feedback) == 1
    assert target.feedback[0]["path"] == "/DEFAULT/controller/v1/Target1/deploymentBase/10/feedback"
    assert target.feedback[0]["query"] == ""
    assert target.feedback[0]["body"] == {
        "id": "10",
        "status": {
            "execution": "proceeding",
            "result": {"finished": "none"},
            "details": ["Downloading"],
        },
    }

    # Send feedback with progress
    class Progress(BaseModel):
        awesome: bool

    await update.send_feedback_with_progress(
        Execution.closed,
        Finished.success,
        Progress(awesome=True),
        ["Done"],
    )
    assert len(target.feedback) == 2
    assert target.feedback[1]["path"] == target.feedback[0]["path"]
    assert target.feedback[1]["body"] == {
        "id": "10",
        "status": {
            "execution": "closed",
            "result": {"finished": "success", "progress": {"awesome": True}},
            "details": ["Done"],
        },
    }


# ── Cancel action ────────────────────────────────────────────────────────────


async def test_cancel_action(ddi_client, target):
    target.cancel_action("5", "10")

    reply = await ddi_client.poll()
    assert reply.update() is None
    cancel_action = reply.cancel_action()
    assert cancel_action is not None

    assert await cancel_action.id() == "10"
    assert target.cancel_hits == 1

    await cancel_action.send_feedback(Execution.proceeding, Finished.none, ["Cancelling"])
    await cancel_action.send_feedback(Execution.closed, Finished.success)

    # each feedback resolves the id again
    assert target.cancel_hits == 3
    assert [f["path"] for f in target.feedback] == ["/DEFAULT/controller/v1/Target1/cancelAction/5/feedback"] * 2
    assert [f["body"]["id"] for f in target.feedback] == ["10", "10"]
    assert target.feedback[1]["body"]["status"] == {
        "execution": "closed",
        "result": {"finished": "success"},
        "details": [],
    }


# ── Concurrency ──────────────────────────────────────────────────────────────


async def test_independent_targets_concurrently(server, http_client, tmp_path):
    targets = [server.add_target(f"Target{i}") for i in range(3)]
    for i, target in enumerate(targets):
        content = f"payload of target {i}".encode() * 10
        target.push_deployment(FakeDeployment(
            id=str(100 + i),
            chunks=[FakeChunk("app", "1.0", "app", [FakeArtifact("data.bin", content)])],
        ))

    async def run(target):
        client = Client(BASE_URL, server.tenant, target.name, target.key, http_client=http_client)
        update = await (await client.poll()).update().fetch()
        artifacts = await update.download(tmp_path / target.name)
        await artifacts[0].check_sha256()
        await update.send_feedback(Execution.closed, Finished.success)
        return update.id, artifacts[0].file.read_bytes()

    results = await asyncio.gather(*(run(t) for t in targets))

    for i, (action_id, content) in enumerate(results):
        assert action_id == str(100 + i)
        assert content == f"payload of target {i}".encode() * 10
        assert targets[i].poll_hits == 1
        assert [f["body"]["id"] for f in targets[i].feedback] == [str(100 + i)]


async def test_parallel_downloads_from_one_update(ddi_client, target, tmp_path):
    deployment = FakeDeployment(
        id="12",
        chunks=[FakeChunk("app", "1.0", "app", [FakeArtifact(f"f{i}.bin", bytes([i]) * 64) for i in range(4)])],
    )
    target.push_deployment(deployment)
    update = await _fetch_update(ddi_client)

    chunk = next(update.chunks())
    downloaded = await asyncio.gather(*(a.download(tmp_path) for a in chunk.artifacts()))
    for i, artifact in enumerate(downloaded):
        assert artifact.file.read_bytes() == bytes([i]) * 64
        await artifact.check_md5()
