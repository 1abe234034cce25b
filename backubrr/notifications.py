"""
Discord webhook notifications.
"""

import logging
from typing import List, Optional

import requests


# Discord rejects messages with more content than this
DISCORD_MESSAGE_LIMIT = 2000


class NotificationError(Exception):
    """Raised when a notification cannot be delivered."""
    pass


class DiscordNotifier:
    """Posts plain text messages to a Discord webhook."""

    def __init__(self, webhook_url: str, timeout: int = 10, logger: Optional[logging.Logger] = None):
        """
        Initialize Discord notifier.

        Args:
            webhook_url: Discord webhook URL
            timeout: Request timeout in seconds
            logger: Logger to report delivery to
        """
        self.webhook_url = webhook_url
        self.timeout = timeout
        self.logger = logger or logging.getLogger(__name__)

    def send(self, messages: List[str]) -> int:
        """
        Deliver messages as a single text.

        Text longer than Discord's limit is posted in several parts, split on
        line boundaries.

        Args:
            messages: Message parts, joined with newlines

        Returns:
            Number of webhook posts made (0 for empty text)

        Raises:
            NotificationError: If a post fails
        """
        content = '\n'.join(messages).strip()
        if not content:
            self.logger.debug("Nothing to send to Discord")
            return 0

        chunks = split_message(content)
        for chunk in chunks:
            try:
                response = requests.post(
                    self.webhook_url,
                    json={'content': chunk},
                    timeout=self.timeout
                )
                response.raise_for_status()
            except requests.RequestException as e:
                raise NotificationError(f"Failed to post to Discord webhook: {e}")

        self.logger.info(f"Sent notification to Discord ({len(chunks)} message(s))")
        return len(chunks)


def split_message(content: str, limit: int = DISCORD_MESSAGE_LIMIT) -> List[str]:
    """Split text into parts no longer than limit, preferring line boundaries."""
    chunks = []
    current = ''

    for line in content.splitlines(keepends=True):
        while len(line) > limit:
            if current:
                chunks.append(current)
                current = ''
            chunks.append(line[:limit])
            line = line[limit:]

        if len(current) + len(line) > limit:
            chunks.append(current)
            current = ''
        current += line

    if current:
        chunks.append(current)

    return [chunk.strip('\n') for chunk in chunks if chunk.strip()]
