# src/notification/services.py
import logging
from typing import Dict, List, Optional

import requests

from config import settings

logger = logging.getLogger(__name__)


def is_valid_push_token(token: Optional[str]) -> bool:
    """Only Expo-issued tokens can be delivered through the gateway."""
    return bool(token) and token.startswith(settings.PUSH_TOKEN_PREFIX)


def build_message(token: str, title: str, body: str, screen: str = "/subscription") -> Dict:
    return {
        "to": token,
        "title": title,
        "body": body,
        "data": {"screen": screen},
        "sound": "default",
        "channelId": "subscription",
    }


class PushService:
    """Best-effort delivery of push messages to the Expo gateway."""

    def __init__(self, push_url: Optional[str] = None, session: Optional[requests.Session] = None):
        self.push_url = push_url or settings.EXPO_PUSH_URL
        self.session = session or requests.Session()

    def send(self, messages: List[Dict]) -> int:
        """Send messages in gateway-sized batches and return how many were accepted."""
        if not messages:
            return 0
        accepted = 0
        batch_size = settings.PUSH_BATCH_SIZE
        for start in range(0, len(messages), batch_size):
            batch = messages[start:start + batch_size]
            try:
                response = self.session.post(
                    self.push_url,
                    json=batch,
                    headers={
                        "Accept": "application/json",
                        "Accept-Encoding": "gzip, deflate",
                        "Content-Type": "application/json",
                    },
                    timeout=settings.PUSH_TIMEOUT_SECONDS,
                )
            except requests.RequestException as e:
                logger.error(f"Push gateway request failed for {len(batch)} messages: {str(e)}")
                continue
            if not response.ok:
                logger.error(f"Failed to send push notifications: status={response.status_code}, text={response.text}")
                continue
            accepted += len(batch)
        return accepted
