"""
Message rendering and notifier channels.

Manifesto:
    The scheduler does not care how a message leaves the building. It
    renders the task's text, hands it to a ``Notifier`` and records the
    ``DeliveryResult``. Channels translate transport problems into
    ``DeliveryResult.fail`` with an honest ``retryable`` flag so the retry
    strategy can make the right call.

Architecture:
    ::

        render_message(task, plan, now)
            template?  ──► format_map(task_name, task_description,
            │                         execution_time, scheduled_date,
            │                         scheduled_time, timestamp)
            └── none   ──► "{name}\\n时间：{execution_time}"

        WebhookNotifier.send(destination, message)      (async, httpx)
            POST {"msgtype": "text", "text": {"content": message}}
            optional HMAC-SHA256 signing (timestamp + sign query params)
            non-2xx            → fail (retryable on 5xx / 429)
            errcode != 0       → fail (retryable for busy/system codes)

        LoggingNotifier.send(destination, message)      (sync)
            logs the message, succeeds

Tags:
    cadence, notifier, webhook, dingtalk, httpx, rendering

Doc-Types:
    api-reference
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import time as _time
from collections import deque
from datetime import datetime
from typing import Any

import httpx

from cadence.core.errors import TransientError
from cadence.core.logging import get_logger
from cadence.core.timestamps import format_civil
from cadence.rules.models import TaskTarget
from cadence.scheduling.models import DeliveryResult, ExecutionPlan

logger = get_logger(__name__)

DEFAULT_MESSAGE = "{name}\n时间：{execution_time}"

# DingTalk errcodes worth retrying: network, system busy, server error
RETRYABLE_ERRCODES = frozenset({-1, 310000, 300001})


class _KeepUnknown(dict):
    def __missing__(self, key: str) -> str:
        return "{" + key + "}"


def render_message(task: TaskTarget, plan: ExecutionPlan, now: datetime) -> str:
    """Render the notification text for one plan.

    Unknown placeholders in a custom template are left in place.
    """
    execution_time = plan.scheduled_at.strftime("%Y-%m-%d %H:%M")
    if not task.message_template:
        return DEFAULT_MESSAGE.format(name=task.name, execution_time=execution_time)

    variables = _KeepUnknown(
        task_name=task.name,
        task_description=task.description or "",
        execution_time=execution_time,
        scheduled_date=plan.scheduled_date.isoformat(),
        scheduled_time=plan.scheduled_time.strftime("%H:%M"),
        timestamp=format_civil(now).replace("T", " "),
    )
    try:
        return task.message_template.format_map(variables)
    except (ValueError, IndexError, AttributeError) as e:
        # malformed braces or positional fields: send the template verbatim
        logger.warning("message_template_invalid", task_id=task.task_id, error=str(e))
        return task.message_template


def sign_url(url: str, secret: str, timestamp_ms: int | None = None) -> httpx.URL:
    """Append DingTalk ``timestamp`` and ``sign`` query parameters."""
    timestamp = str(timestamp_ms if timestamp_ms is not None else int(_time.time() * 1000))
    digest = hmac.new(
        secret.encode("utf-8"),
        f"{timestamp}\n{secret}".encode("utf-8"),
        hashlib.sha256,
    ).digest()
    sign = base64.b64encode(digest).decode("ascii")
    return httpx.URL(url).copy_merge_params({"timestamp": timestamp, "sign": sign})


class WebhookNotifier:
    """POSTs a DingTalk-style text payload to the destination URL.

    Args:
        secret: Signing secret; falls back to a ``secret`` query parameter
            on the destination URL.
        timeout: HTTP timeout in seconds.
        headers: Extra request headers.
    """

    name = "webhook"

    def __init__(
        self,
        *,
        secret: str | None = None,
        timeout: float = 10.0,
        headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.secret = secret
        self.timeout = timeout
        self.headers = {"Content-Type": "application/json", **(headers or {})}
        self._transport = transport

    def _target(self, destination: str) -> httpx.URL:
        url = httpx.URL(destination)
        secret = self.secret or url.params.get("secret")
        # the secret only feeds the signature and never leaves this process
        url = url.copy_remove_param("secret")
        if secret:
            return sign_url(str(url), secret)
        return url

    async def send(self, destination: str, message: str) -> DeliveryResult:
        if not destination:
            return DeliveryResult.fail(self.name, "Webhook URL is empty", retryable=False)
        if not message or not message.strip():
            return DeliveryResult.fail(self.name, "Message is empty", retryable=False)

        payload = {"msgtype": "text", "text": {"content": message}}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    self._target(destination), json=payload, headers=self.headers
                )
        except httpx.HTTPError as e:
            return DeliveryResult.fail(self.name, TransientError(str(e) or type(e).__name__, cause=e))

        if not response.is_success:
            retryable = response.status_code >= 500 or response.status_code == 429
            return DeliveryResult.fail(
                self.name,
                f"HTTP {response.status_code}",
                retryable=retryable,
                response={"status": response.status_code},
            )

        body = _json_body(response)
        errcode = body.get("errcode", 0)
        if errcode != 0:
            return DeliveryResult.fail(
                self.name,
                f"errcode {errcode}: {body.get('errmsg', '')}".strip(),
                retryable=errcode in RETRYABLE_ERRCODES,
                response=body,
            )
        return DeliveryResult.ok(self.name, response={"status": response.status_code, **body})


def _json_body(response: httpx.Response) -> dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


class LoggingNotifier:
    """Logs every message and reports success; meant for development.

    The last ``keep`` messages stay in ``sent`` for inspection.
    """

    name = "logging"

    def __init__(self, keep: int = 100) -> None:
        self.sent: deque[tuple[str, str]] = deque(maxlen=keep)

    def send(self, destination: str, message: str) -> DeliveryResult:
        self.sent.append((destination, message))
        logger.info("notification_logged", destination=destination, message=message)
        return DeliveryResult.ok(self.name, message=message)


__all__ = [
    "DEFAULT_MESSAGE",
    "LoggingNotifier",
    "WebhookNotifier",
    "render_message",
    "sign_url",
]
