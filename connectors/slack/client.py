"""Slack chat.postMessage client.

Posts plain-text messages with a bot token. Slack answers HTTP 200 with
``{"ok": false, "error": ...}`` for most failures, so the body decides
success, not the status code.
"""

import asyncio
import json
from typing import Any, Dict, Optional

import aiohttp

from connectors.base import ChatNotifier, ChatPostError, ChatReceipt
from core.observability import get_logger
from core.result import Err, Ok, Result

logger = get_logger(__name__)

SLACK_POST_MESSAGE_URL = "https://slack.com/api/chat.postMessage"


class SlackNotifier(ChatNotifier):
    """Chat sink backed by the Slack Web API.

    Usage:
        notifier = SlackNotifier(bot_token, default_channel="C0123")
        result = await notifier.post("hello")
    """

    def __init__(
        self,
        bot_token: Optional[str],
        default_channel: Optional[str] = None,
        timeout_seconds: int = 30,
        url: str = SLACK_POST_MESSAGE_URL,
    ):
        self.bot_token = bot_token
        self.default_channel = default_channel
        self.timeout_seconds = timeout_seconds
        self.url = url

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.bot_token}",
            "Content-Type": "application/json; charset=utf-8",
        }

    async def _send(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """POST the payload and return the decoded body.

        Raises:
            ChatPostError: Transport failure, non-2xx status or undecodable body
        """
        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(self.url, headers=self._get_headers(), json=payload) as response:
                    text = await response.text()
                    if response.status >= 400:
                        raise ChatPostError(
                            f"Slack API error {response.status}: {text}",
                            response.status,
                            text,
                        )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ChatPostError(f"Slack request failed: {e}") from e

        try:
            return json.loads(text) if text else {}
        except json.JSONDecodeError as e:
            raise ChatPostError(f"Slack returned non-JSON body: {text[:200]}") from e

    async def post(self, message: str, channel: Optional[str] = None) -> Result:
        if not self.bot_token:
            logger.error("SLACK_BOT_TOKEN is not configured")
            return Err("SLACK_BOT_TOKEN is not configured")

        target = channel or self.default_channel
        if not target:
            logger.error("No Slack channel configured")
            return Err("No Slack channel configured")

        logger.info(f"Posting message to Slack channel {target}")
        try:
            body = await self._send({"channel": target, "text": message})
        except ChatPostError as e:
            logger.error(str(e))
            return Err(str(e), e.detail)

        if not body.get("ok"):
            reason = f"Slack rejected message: {body.get('error', 'unknown error')}"
            logger.error(reason)
            logger.debug(f"Slack response: {body}")
            return Err(reason, body)

        logger.info("Slack message posted")
        return Ok(ChatReceipt(channel=body.get("channel", target), ts=str(body.get("ts", ""))))
