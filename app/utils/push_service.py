"""
Expo push notification sender
"""
from typing import Any, Dict, List, Optional

import requests

from app.core.config import settings
from app.core.logging_config import logger

# Expo accepts at most 100 messages per request
EXPO_BATCH_SIZE = 100


class PushService:
    """Sends push messages to the mobile app through the Expo push API"""

    def send(self, tokens: List[str], title: str, body: str, data: Optional[Dict[str, Any]] = None) -> int:
        """
        Send one message to every token

        Returns:
            Number of tickets Expo accepted
        """
        if not settings.PUSH_ENABLED:
            logger.debug(f"Push disabled, skipping '{title}' to {len(tokens)} device(s)")
            return 0
        if not tokens:
            return 0

        headers = {"Accept": "application/json", "Content-Type": "application/json"}
        if settings.EXPO_ACCESS_TOKEN:
            headers["Authorization"] = f"Bearer {settings.EXPO_ACCESS_TOKEN}"

        accepted = 0
        for start in range(0, len(tokens), EXPO_BATCH_SIZE):
            messages = [
                {"to": token, "title": title, "body": body, "data": data or {}, "sound": "default"}
                for token in tokens[start:start + EXPO_BATCH_SIZE]
            ]
            try:
                response = requests.post(settings.EXPO_PUSH_URL, json=messages, headers=headers, timeout=10)
                response.raise_for_status()
            except requests.RequestException as e:
                logger.error(f"Expo push request failed: {str(e)}")
                continue

            for ticket in response.json().get("data", []):
                if ticket.get("status") == "ok":
                    accepted += 1
                else:
                    logger.warning(f"Expo push ticket error: {ticket.get('message')}")

        logger.info(f"Push '{title}' accepted for {accepted}/{len(tokens)} device(s)")
        return accepted


# Global instance
push_service = PushService()
