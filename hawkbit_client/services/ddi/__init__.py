"""hawkBit Direct Device Integration (DDI) client."""

from hawkbit_client.schemas.ddi import Execution, Finished, HandlingType, MaintenanceWindow, Mode
from hawkbit_client.services.ddi.actions import ActionKind
from hawkbit_client.services.ddi.cancel_action import CancelAction
from hawkbit_client.services.ddi.checksum import ChecksumStream, ChecksumType
from hawkbit_client.services.ddi.client import Client
from hawkbit_client.services.ddi.config_data import ConfigRequest
from hawkbit_client.services.ddi.deployment_base import (
    Artifact,
    Chunk,
    DownloadedArtifact,
    Update,
    UpdatePreFetch,
)
from hawkbit_client.services.ddi.poll import PendingAction, Reply

__all__ = [
    "ActionKind",
    "Artifact",
    "CancelAction",
    "ChecksumStream",
    "ChecksumType",
    "Chunk",
    "Client",
    "ConfigRequest",
    "DownloadedArtifact",
    "Execution",
    "Finished",
    "HandlingType",
    "MaintenanceWindow",
    "Mode",
    "PendingAction",
    "Reply",
    "Update",
    "UpdatePreFetch",
]
