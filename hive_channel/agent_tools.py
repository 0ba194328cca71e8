"""
Agent tools for Hive.

Each tool wraps one Hive operation. Handlers never raise: Hive errors are
returned as ``{"ok": False, "error": ...}`` so the agent sees a failure
result instead of the host crashing.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List

from .errors import HiveError, ValidationError
from .http_client import HiveHttpClient
from .router import (
    ChatContext,
    MailboxReplyContext,
    OutboundRouter,
    require_field,
    segment,
)


logger = logging.getLogger(__name__)


DEFAULT_INBOX_LIMIT = 20
MAX_INBOX_LIMIT = 100

ToolHandler = Callable[[Dict[str, Any]], Awaitable[Any]]


@dataclass
class HiveTool:
    """An agent tool exposed by the plugin."""
    name: str
    description: str
    handler: ToolHandler
    input_schema: Dict[str, Any] = field(default_factory=lambda: {
        "type": "object",
        "properties": {},
    })

    async def call(self, arguments: Dict[str, Any] = None) -> Any:
        """Run the tool, converting Hive errors into a failure result."""
        try:
            return await self.handler(arguments or {})
        except HiveError as e:
            logger.warning(f"Tool {self.name} failed: {e}")
            return {"ok": False, "error": str(e)}


def normalize_items(response: Any) -> List[Any]:
    """Accept either a bare list or ``{"items": [...]}``."""
    if isinstance(response, list):
        return response
    if isinstance(response, dict) and isinstance(response.get("items"), list):
        return response["items"]
    return []


def parse_limit(value: Any) -> int:
    if value is None:
        return DEFAULT_INBOX_LIMIT
    try:
        limit = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"limit must be an integer, got: {value!r}", field="limit")
    return max(1, min(limit, MAX_INBOX_LIMIT))


def build_tools(client: HiveHttpClient, router: OutboundRouter) -> List[HiveTool]:
    """
    Build the Hive agent tools.

    Args:
        client: Request helper for single-call tools
        router: Outbound router for send flows

    Returns:
        List of tools in registration order
    """

    async def inbox_list(arguments: Dict[str, Any]) -> Any:
        limit = parse_limit(arguments.get("limit"))
        return await client.get(
            "/api/mailboxes/me/messages",
            params={"status": "unread", "limit": limit},
        )

    async def inbox_reply(arguments: Dict[str, Any]) -> Any:
        result = await router.send(
            arguments.get("body") or "",
            MailboxReplyContext(message_id=arguments.get("messageId") or ""),
        )
        return result.to_dict()

    async def chat_send(arguments: Dict[str, Any]) -> Any:
        result = await router.send(
            arguments.get("body") or "",
            ChatContext(channel_id=arguments.get("channelId") or ""),
        )
        return result.to_dict()

    async def chat_read(arguments: Dict[str, Any]) -> Any:
        channel_id = segment(require_field(arguments.get("channelId"), "channelId"))
        await client.post(f"/api/chat/channels/{channel_id}/read")
        return {"ok": True}

    async def task_list(arguments: Dict[str, Any]) -> Any:
        return await client.get("/api/swarm/tasks", params={"assignee": "me"})

    async def wake(arguments: Dict[str, Any]) -> Any:
        return normalize_items(await client.get("/api/wake"))

    return [
        HiveTool(
            name="hive_inbox_list",
            description="List unread messages in your Hive mailbox.",
            handler=inbox_list,
            input_schema={
                "type": "object",
                "properties": {
                    "limit": {
                        "type": "integer",
                        "description": f"Maximum messages to return (default {DEFAULT_INBOX_LIMIT}).",
                    }
                },
            },
        ),
        HiveTool(
            name="hive_inbox_reply",
            description="Reply to a Hive mailbox message and acknowledge it.",
            handler=inbox_reply,
            input_schema={
                "type": "object",
                "required": ["messageId", "body"],
                "properties": {
                    "messageId": {"type": "string", "description": "Message to reply to."},
                    "body": {"type": "string", "description": "Reply text."},
                },
            },
        ),
        HiveTool(
            name="hive_chat_send",
            description="Send a message to a Hive chat channel and mark the channel read.",
            handler=chat_send,
            input_schema={
                "type": "object",
                "required": ["channelId", "body"],
                "properties": {
                    "channelId": {"type": "string", "description": "Target chat channel."},
                    "body": {"type": "string", "description": "Message text."},
                },
            },
        ),
        HiveTool(
            name="hive_chat_read",
            description="Mark a Hive chat channel as read.",
            handler=chat_read,
            input_schema={
                "type": "object",
                "required": ["channelId"],
                "properties": {
                    "channelId": {"type": "string", "description": "Chat channel to mark read."},
                },
            },
        ),
        HiveTool(
            name="hive_task_list",
            description="List swarm tasks assigned to you.",
            handler=task_list,
        ),
        HiveTool(
            name="hive_wake",
            description="Fetch pending wake items (what needs your attention).",
            handler=wake,
        ),
    ]
