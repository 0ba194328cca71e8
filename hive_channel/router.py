"""
Outbound message routing.

Text leaving the host goes to one of three Hive flows depending on the
message context: a chat channel, a reply to a mailbox message, or a new
mailbox message. Multi-step flows (send, then mark read / acknowledge)
only report success when every step succeeds.
"""

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union
from urllib.parse import quote

from .errors import HiveError, ValidationError
from .http_client import HiveHttpClient


logger = logging.getLogger(__name__)


DEFAULT_MESSAGE_TITLE = "Message from agent"


@dataclass(frozen=True)
class ChatContext:
    channel_id: str


@dataclass(frozen=True)
class MailboxReplyContext:
    message_id: str


@dataclass(frozen=True)
class NewMailboxMessageContext:
    recipient: str


OutboundContext = Union[ChatContext, MailboxReplyContext, NewMailboxMessageContext]


@dataclass
class SendResult:
    """Outcome of an outbound send."""
    ok: bool
    error: Optional[str] = None
    response: Any = None

    def to_dict(self) -> dict:
        result = {"ok": self.ok}
        if self.error is not None:
            result["error"] = self.error
        if self.response is not None:
            result["response"] = self.response
        return result


def segment(value: str) -> str:
    """Quote a value for use as a single path segment."""
    return quote(value, safe="")


def require_field(value: Optional[str], field: str) -> str:
    """
    Return a stripped, non-empty routing field.

    Raises:
        ValidationError: If the field is missing or blank
    """
    if value is None or not str(value).strip():
        raise ValidationError(f"{field} is required", field=field)
    return str(value).strip()


def context_from_meta(to: Optional[str] = None, meta: Optional[Mapping[str, Any]] = None) -> OutboundContext:
    """
    Map the host's ``send_text`` arguments onto an outbound context.

    ``meta["messageType"] == "chat"`` routes to the chat channel in
    ``meta["channelId"]`` (or ``to``), ``"mailbox"`` replies to
    ``meta["messageId"]``; anything else starts a new message to ``to``.
    """
    meta = meta or {}
    message_type = meta.get("messageType")

    if message_type == "chat":
        return ChatContext(channel_id=meta.get("channelId") or to or "")
    if message_type == "mailbox":
        return MailboxReplyContext(message_id=meta.get("messageId") or "")
    return NewMailboxMessageContext(recipient=to or "")


class OutboundRouter:
    """Issue the right sequence of Hive API calls for an outbound message."""

    def __init__(self, client: HiveHttpClient, default_title: str = DEFAULT_MESSAGE_TITLE):
        self.client = client
        self.default_title = default_title

    async def send(self, text: str, context: OutboundContext) -> SendResult:
        """
        Deliver ``text`` according to ``context``.

        Args:
            text: Message body
            context: Chat, mailbox reply or new mailbox message context

        Returns:
            SendResult; failures carry a human-readable reason
        """
        try:
            if isinstance(context, ChatContext):
                response = await self._send_chat(text, context)
            elif isinstance(context, MailboxReplyContext):
                response = await self._send_reply(text, context)
            elif isinstance(context, NewMailboxMessageContext):
                response = await self._send_new_message(text, context)
            else:
                raise ValidationError(f"Unsupported outbound context: {context!r}")
        except HiveError as e:
            logger.warning(f"Outbound send failed: {e}")
            return SendResult(ok=False, error=str(e))

        return SendResult(ok=True, response=response)

    async def _send_chat(self, text: str, context: ChatContext) -> Any:
        channel_id = segment(require_field(context.channel_id, "channelId"))
        response = await self.client.post(
            f"/api/chat/channels/{channel_id}/messages", {"body": text}
        )
        await self.client.post(f"/api/chat/channels/{channel_id}/read")
        logger.info(f"Sent chat message to channel {context.channel_id}")
        return response

    async def _send_reply(self, text: str, context: MailboxReplyContext) -> Any:
        message_id = segment(require_field(context.message_id, "messageId"))
        response = await self.client.post(
            f"/api/mailboxes/me/messages/{message_id}/reply", {"body": text}
        )
        await self.client.post(f"/api/mailboxes/me/messages/{message_id}/ack")
        logger.info(f"Replied to mailbox message {context.message_id}")
        return response

    async def _send_new_message(self, text: str, context: NewMailboxMessageContext) -> Any:
        recipient = segment(require_field(context.recipient, "recipient"))
        response = await self.client.post(
            f"/api/mailboxes/{recipient}/messages",
            {"title": self.default_title, "body": text},
        )
        logger.info(f"Sent new mailbox message to {context.recipient}")
        return response
