"""Poll reply: sleep interval and pending actions announced by the server."""

from datetime import timedelta

import httpx

from hawkbit_client.core.exceptions import InvalidResponseError, InvalidSleepError
from hawkbit_client.schemas.ddi import Link, PollReply
from hawkbit_client.services.ddi.cancel_action import CancelAction
from hawkbit_client.services.ddi.config_data import ConfigRequest
from hawkbit_client.services.ddi.deployment_base import UpdatePreFetch
from hawkbit_client.services.ddi.transport import Transport

PendingAction = ConfigRequest | UpdatePreFetch | CancelAction


def parse_sleep(sleep: str) -> timedelta:
    """Parse a ``HH:MM:SS`` polling sleep.

    Anything other than exactly three unsigned integer fields is an error.
    """
    fields = sleep.split(":")
    if len(fields) != 3 or not all(f.isascii() and f.isdigit() for f in fields):
        raise InvalidSleepError(sleep)
    hours, minutes, seconds = (int(f) for f in fields)
    return timedelta(seconds=hours * 60 * 60 + minutes * 60 + seconds)


def _resolve(base_url: str, link: Link | None) -> str | None:
    if link is None:
        return None
    try:
        url = httpx.URL(base_url).join(link.href)
    except httpx.InvalidURL as e:
        raise InvalidResponseError(f"Invalid link {link.href!r}: {e}", details={"href": link.href})
    if url.scheme not in ("http", "https") or not url.host:
        raise InvalidResponseError(f"Invalid link {link.href!r}", details={"href": link.href})
    return str(url)


class Reply:
    """Polling reply from the server.

    Links are resolved against the client base URL when the reply is built.
    """

    def __init__(self, reply: PollReply, transport: Transport, base_url: str):
        self._reply = reply
        self._transport = transport

        links = reply.links
        self._config_data_url = _resolve(base_url, links.config_data) if links else None
        self._deployment_url = _resolve(base_url, links.deployment_base) if links else None
        self._cancel_url = _resolve(base_url, links.cancel_action) if links else None

    def polling_sleep(self) -> timedelta:
        """Suggested sleeping time between two polling requests to the server."""
        return parse_sleep(self._reply.config.polling.sleep)

    def config_data_request(self) -> ConfigRequest | None:
        """Pending configuration data request from the server, if any."""
        if self._config_data_url is None:
            return None
        return ConfigRequest(self._transport, self._config_data_url)

    def update(self) -> UpdatePreFetch | None:
        """Pending update to deploy, if any."""
        if self._deployment_url is None:
            return None
        return UpdatePreFetch(self._transport, self._deployment_url)

    def cancel_action(self) -> CancelAction | None:
        """Pending cancel action, if any."""
        if self._cancel_url is None:
            return None
        return CancelAction(self._transport, self._cancel_url)

    def actions(self) -> list[PendingAction]:
        """All pending actions, at most one of each kind, in no particular order."""
        pending = [self.config_data_request(), self.update(), self.cancel_action()]
        return [action for action in pending if action is not None]

    def __repr__(self) -> str:
        return (
            f"Reply(sleep={self._reply.config.polling.sleep!r}, "
            f"config_data={self._config_data_url!r}, "
            f"deployment={self._deployment_url!r}, "
            f"cancel_action={self._cancel_url!r})"
        )
