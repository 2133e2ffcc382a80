"""Feedback channel: status reports of the target against an action id."""

from collections.abc import Iterable
from typing import Any

import httpx
import structlog

from hawkbit_client.core.exceptions import UrlParseError
from hawkbit_client.schemas.ddi import Execution, Feedback, FeedbackResult, FeedbackStatus, Finished
from hawkbit_client.services.ddi.transport import Transport

logger = structlog.get_logger()


def feedback_url(action_url: str) -> str:
    """Append the ``feedback`` path segment to an action URL, dropping its query."""
    try:
        url = httpx.URL(action_url)
    except httpx.InvalidURL as e:
        raise UrlParseError(f"Could not parse action url {action_url!r}: {e}")
    if not url.scheme or not url.host:
        raise UrlParseError(f"Action url {action_url!r} cannot be a base")

    # raw_path keeps percent-escapes such as %2F intact
    path = url.raw_path.split(b"?")[0].rstrip(b"/") + b"/feedback"
    return str(url.copy_with(raw_path=path, fragment=None))


def build_feedback(
    action_id: str,
    execution: Execution,
    finished: Finished,
    progress: Any = None,
    details: Iterable[str] = (),
) -> Feedback:
    return Feedback(
        id=action_id,
        status=FeedbackStatus(
            execution=execution,
            result=FeedbackResult(finished=finished, progress=progress),
            details=list(details),
        ),
    )


async def send_feedback(
    transport: Transport,
    action_url: str,
    action_id: str,
    execution: Execution,
    finished: Finished,
    progress: Any = None,
    details: Iterable[str] = (),
) -> None:
    """POST one feedback envelope for ``action_id``. No retry on failure."""
    url = feedback_url(action_url)
    feedback = build_feedback(action_id, execution, finished, progress, details)
    await transport.post_json(url, feedback.to_wire())
    logger.info(
        "feedback_sent",
        action_id=action_id,
        execution=execution.value,
        finished=finished.value,
    )
