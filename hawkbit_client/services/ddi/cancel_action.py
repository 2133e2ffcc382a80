"""Cancel actions: the server asks the target to abort a previous deployment."""

from collections.abc import Iterable

import structlog

from hawkbit_client.schemas.ddi import CancelReply, Execution, Finished
from hawkbit_client.services.ddi.actions import ActionKind
from hawkbit_client.services.ddi.feedback import send_feedback
from hawkbit_client.services.ddi.transport import Transport

logger = structlog.get_logger()


class CancelAction:
    """A request from the server to cancel an update.

    Call :meth:`id` to retrieve the id of the action to cancel. The cancel
    action stays open on the server until feedback is sent with
    ``Finished.success`` or ``Finished.failure``.
    """

    kind = ActionKind.cancel_action

    def __init__(self, transport: Transport, url: str):
        self._transport = transport
        self._url = url

    @property
    def url(self) -> str:
        return self._url

    async def id(self) -> str:
        """Retrieve the id of the action to cancel (one GET per call)."""
        reply = await self._transport.get_json(self._url, CancelReply)
        return reply.cancel_action.stop_id

    async def send_feedback(
        self,
        execution: Execution,
        finished: Finished,
        details: Iterable[str] = (),
    ) -> None:
        """Report on this cancel action. The action id is resolved again first."""
        action_id = await self.id()
        logger.debug("cancel_action_resolved", action_id=action_id)
        await send_feedback(
            self._transport,
            self._url,
            action_id,
            execution,
            finished,
            details=details,
        )

    def __repr__(self) -> str:
        return f"CancelAction(url={self._url!r})"
