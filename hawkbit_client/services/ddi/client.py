"""Direct Device Integration client for one target."""

import httpx
import structlog

from hawkbit_client.config import Settings, settings
from hawkbit_client.core.exceptions import UrlParseError
from hawkbit_client.schemas.ddi import PollReply
from hawkbit_client.services.ddi.poll import Reply
from hawkbit_client.services.ddi.transport import Transport, auth_headers

logger = structlog.get_logger()


def controller_base_url(url: str, tenant: str, controller_id: str) -> str:
    """``{url}/{tenant}/controller/v1/{controller_id}``, resolved like a relative link."""
    try:
        host = httpx.URL(url)
    except httpx.InvalidURL as e:
        raise UrlParseError(f"Could not parse url {url!r}: {e}")
    if host.scheme not in ("http", "https") or not host.host:
        raise UrlParseError(f"Not an http(s) server url: {url!r}")
    if not tenant or not controller_id:
        raise UrlParseError("Tenant and controller id must not be empty.")

    try:
        return str(host.join(f"{tenant}/controller/v1/{controller_id}"))
    except httpx.InvalidURL as e:
        raise UrlParseError(f"Could not build controller url: {e}")


class Client:
    """`Direct Device Integration <https://www.eclipse.org/hawkbit/apis/ddi_api/>`_ client.

    Args:
        url: the URL of the hawkBit server, such as ``http://my-server.com:8080``.
        tenant: the server tenant.
        controller_id: the id of the controller.
        key_token: the secret authentication token of the controller.
        http_client: optional pre-built ``httpx.AsyncClient``; it stays owned by
            the caller and is not closed by :meth:`aclose`.
    """

    def __init__(
        self,
        url: str,
        tenant: str,
        controller_id: str,
        key_token: str,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.base_url = controller_base_url(url, tenant, controller_id)
        self.controller_id = controller_id
        # raises on a bad token before an owned client is opened
        auth_headers(key_token)
        owns_client = http_client is None
        http_client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(
                connect=settings.hawkbit_http_connect_timeout,
                read=settings.hawkbit_http_read_timeout,
                write=5.0,
                pool=5.0,
            )
        )
        self._transport = Transport(http_client, key_token, owns_client=owns_client)

    @classmethod
    def from_settings(cls, config: Settings = settings, http_client: httpx.AsyncClient | None = None) -> "Client":
        return cls(
            config.hawkbit_url,
            config.hawkbit_tenant,
            config.hawkbit_controller_id,
            config.hawkbit_key_token,
            http_client=http_client,
        )

    async def poll(self) -> Reply:
        """Poll the server for pending actions."""
        reply = await self._transport.get_json(self.base_url, PollReply)
        logger.debug("poll_reply", controller_id=self.controller_id, sleep=reply.config.polling.sleep)
        return Reply(reply, self._transport, self.base_url)

    async def aclose(self) -> None:
        await self._transport.aclose()

    async def __aenter__(self) -> "Client":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    def __repr__(self) -> str:
        return f"Client(base_url={self.base_url!r})"
