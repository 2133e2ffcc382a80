"""Config data requests: the server asks the target to upload its attributes."""

from collections.abc import Iterable
from typing import Any

import structlog

from hawkbit_client.schemas.ddi import (
    ConfigData,
    ConfigDataResult,
    ConfigDataStatus,
    Execution,
    Finished,
    Mode,
)
from hawkbit_client.services.ddi.actions import ActionKind
from hawkbit_client.services.ddi.transport import Transport

logger = structlog.get_logger()


class ConfigRequest:
    """A pending request from the server to upload the target's config data."""

    kind = ActionKind.config_data

    def __init__(self, transport: Transport, url: str):
        self._transport = transport
        self._url = url

    @property
    def url(self) -> str:
        return self._url

    async def upload(
        self,
        execution: Execution,
        finished: Finished,
        mode: Mode | None,
        data: Any,
        details: Iterable[str] = (),
    ) -> None:
        """Upload ``data`` along with the execution status in a single PUT.

        ``data`` is any value pydantic can serialize to JSON (dict, model,
        dataclass...). ``mode`` is left out of the body when ``None`` and the
        server then applies its default (merge).
        """
        body = ConfigData(
            status=ConfigDataStatus(
                execution=execution,
                result=ConfigDataResult(finished=finished),
                details=list(details),
            ),
            mode=mode,
            data=data,
        )
        await self._transport.put_json(self._url, body.to_wire())
        logger.info("config_data_uploaded", mode=mode.value if mode else None)

    def __repr__(self) -> str:
        return f"ConfigRequest(url={self._url!r})"
