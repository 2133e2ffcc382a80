"""Pydantic v2 models for the hawkBit Direct Device Integration wire format."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, model_validator


# ── Shared enums ─────────────────────────────────────────────────────────────


class Execution(str, Enum):
    """Execution state of a pending action, as reported by the target."""

    closed = "closed"  # completed with finished=success or finished=failure
    proceeding = "proceeding"
    canceled = "canceled"  # confirms a cancellation requested by the server
    scheduled = "scheduled"
    rejected = "rejected"  # update or cancellation cannot be fulfilled right now
    resumed = "resumed"


class Finished(str, Enum):
    success = "success"
    failure = "failure"
    none = "none"  # still in progress


class Mode(str, Enum):
    """How the server applies uploaded config data to the existing attributes."""

    merge = "merge"
    replace = "replace"
    remove = "remove"


class HandlingType(str, Enum):
    """How the download or update part of a deployment should be processed."""

    skip = "skip"  # do not process yet
    attempt = "attempt"  # server asks to process
    forced = "forced"  # server requests immediate processing


class MaintenanceWindow(str, Enum):
    available = "available"
    unavailable = "unavailable"


class Link(BaseModel):
    href: str


# ── Poll ─────────────────────────────────────────────────────────────────────


class Polling(BaseModel):
    sleep: str


class PollingConfig(BaseModel):
    polling: Polling


class PollLinks(BaseModel):
    config_data: Link | None = Field(default=None, alias="configData")
    deployment_base: Link | None = Field(default=None, alias="deploymentBase")
    cancel_action: Link | None = Field(default=None, alias="cancelAction")

    model_config = {"populate_by_name": True}


class PollReply(BaseModel):
    """GET {base}"""

    config: PollingConfig
    links: PollLinks | None = Field(default=None, alias="_links")

    model_config = {"populate_by_name": True}


# ── Feedback / config data ───────────────────────────────────────────────────


class FeedbackResult(BaseModel):
    finished: Finished
    progress: Any = None


class FeedbackStatus(BaseModel):
    execution: Execution
    result: FeedbackResult
    details: list[str] = Field(default_factory=list)


class Feedback(BaseModel):
    """POST {action}/feedback"""

    id: str
    status: FeedbackStatus

    def to_wire(self) -> dict:
        body = self.model_dump(mode="json")
        # progress is left out entirely when absent, never sent as null
        if self.status.result.progress is None:
            body["status"]["result"].pop("progress")
        return body


class ConfigDataResult(BaseModel):
    finished: Finished


class ConfigDataStatus(BaseModel):
    execution: Execution
    result: ConfigDataResult
    details: list[str] = Field(default_factory=list)


class ConfigData(BaseModel):
    """PUT {configData}"""

    status: ConfigDataStatus
    mode: Mode | None = None
    data: Any = None

    def to_wire(self) -> dict:
        body = self.model_dump(mode="json")
        if self.mode is None:
            body.pop("mode")
        return body


# ── Cancel action ────────────────────────────────────────────────────────────


class CancelActionInfo(BaseModel):
    stop_id: str = Field(alias="stopId")

    model_config = {"populate_by_name": True}


class CancelReply(BaseModel):
    """GET {cancelAction}"""

    id: str
    cancel_action: CancelActionInfo = Field(alias="cancelAction")

    model_config = {"populate_by_name": True}


# ── Deployment base ──────────────────────────────────────────────────────────


class Hashes(BaseModel):
    md5: str | None = None
    sha1: str | None = None
    sha256: str | None = None

    @model_validator(mode="after")
    def _at_least_one(self) -> "Hashes":
        if self.md5 is None and self.sha1 is None and self.sha256 is None:
            raise ValueError("artifact declares no hash")
        return self


class Download(BaseModel):
    """Content link of an artifact, with its optional md5sum file link."""

    content: Link
    md5sum: Link | None = None


class ArtifactLinks(BaseModel):
    """Download links of an artifact; at least one of https or http is set."""

    https: Download | None = None
    http: Download | None = None

    @model_validator(mode="before")
    @classmethod
    def _from_hal_links(cls, data: Any) -> Any:
        if not isinstance(data, dict) or "https" in data or "http" in data:
            return data
        https = None
        http = None
        if "download" in data:
            https = {"content": data["download"], "md5sum": data.get("md5sum")}
        if "download-http" in data:
            http = {"content": data["download-http"], "md5sum": data.get("md5sum-http")}
        if https is None and http is None:
            raise ValueError("missing field 'download' or 'download-http'")
        return {"https": https, "http": http}

    @property
    def preferred(self) -> Download | None:
        return self.https or self.http


class ArtifactInfo(BaseModel):
    filename: str
    hashes: Hashes
    size: int
    links: ArtifactLinks = Field(alias="_links")

    model_config = {"populate_by_name": True}


class Metadata(BaseModel):
    key: str
    value: str


class ChunkInfo(BaseModel):
    part: str
    name: str
    version: str
    metadata: list[Metadata] = Field(default_factory=list)
    artifacts: list[ArtifactInfo] = Field(default_factory=list)


class DeploymentInfo(BaseModel):
    download: HandlingType
    update: HandlingType
    maintenance_window: MaintenanceWindow | None = Field(default=None, alias="maintenanceWindow")
    chunks: list[ChunkInfo] = Field(default_factory=list)

    model_config = {"populate_by_name": True}


class ActionHistory(BaseModel):
    status: str
    messages: list[str] = Field(default_factory=list)


class DeploymentReply(BaseModel):
    """GET {deploymentBase}"""

    id: str
    deployment: DeploymentInfo
    action_history: ActionHistory | None = Field(default=None, alias="actionHistory")

    model_config = {"populate_by_name": True}
