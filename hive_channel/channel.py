"""
Hive channel adapter.

Describes Hive to the host as a messaging channel (metadata, capabilities,
account resolution) and delivers outbound text through the router.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional

from .config import HiveConfig, hive_section
from .router import OutboundRouter, SendResult, context_from_meta


logger = logging.getLogger(__name__)


CHANNEL_ID = "hive"
DEFAULT_ACCOUNT_ID = "default"


class HiveChannel:
    """Hive as a host messaging channel."""

    id = CHANNEL_ID
    delivery_mode = "direct"

    meta = {
        "id": CHANNEL_ID,
        "label": "Hive",
        "selectionLabel": "Hive (BigInformatics)",
        "docsPath": "/channels/hive",
        "blurb": "BigInformatics team mailbox, real-time chat, and swarm tasks.",
        "aliases": [CHANNEL_ID],
    }

    capabilities = {
        "chatTypes": ["direct", "group"],
    }

    def __init__(self, config: HiveConfig, router: OutboundRouter):
        self.config = config
        self.router = router

    def _token(self, host_config: Optional[Mapping[str, Any]]) -> str:
        return hive_section(host_config).get("token") or self.config.token

    def list_account_ids(self, host_config: Optional[Mapping[str, Any]] = None) -> List[str]:
        """Accounts usable on this host: the default one when a token is set."""
        if self._token(host_config):
            return [DEFAULT_ACCOUNT_ID]
        return []

    def resolve_account(
        self,
        host_config: Optional[Mapping[str, Any]] = None,
        account_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Resolve an account to its id and bearer token."""
        return {
            "accountId": account_id or DEFAULT_ACCOUNT_ID,
            "token": self._token(host_config) or None,
        }

    async def send_text(
        self,
        text: str,
        to: Optional[str] = None,
        meta: Optional[Mapping[str, Any]] = None,
    ) -> SendResult:
        """
        Deliver outbound text.

        Args:
            text: Message body
            to: Recipient mailbox for new messages (optional)
            meta: Message context from the host (``messageType``,
                ``channelId``, ``messageId``)

        Returns:
            SendResult from the router
        """
        context = context_from_meta(to, meta)
        logger.debug(f"Routing outbound text via {type(context).__name__}")
        return await self.router.send(text, context)
