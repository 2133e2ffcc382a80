from enum import Enum


class ActionKind(str, Enum):
    """Kinds of pending actions a poll reply can link to."""

    config_data = "configData"
    deployment = "deploymentBase"
    cancel_action = "cancelAction"
