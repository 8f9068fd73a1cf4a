import requests
from typing import Callable, Optional

from ..core.config import settings
from ..core.logging import logger


class NotificationService:
    def __init__(self):
        self.webhook_url = settings.notify_webhook_url
        self.timeout = settings.notify_timeout_seconds
        self._sender_override: Optional[Callable[[str, str], bool]] = None

    def set_sender_override(
        self, sender: Optional[Callable[[str, str], bool]]
    ) -> Optional[Callable[[str, str], bool]]:
        """Temporarily override the send implementation (useful for captures/tests)."""
        previous = self._sender_override
        self._sender_override = sender
        return previous

    def send_message(self, recipient: str, text: str) -> bool:
        """Deliver a message to a user; returns False instead of raising on failure."""
        if self._sender_override:
            try:
                return bool(self._sender_override(recipient, text))
            except Exception as exc:
                logger.error(f"Sender override failed for {recipient}: {exc}")
                return False

        if not self.webhook_url:
            logger.warning("Notification webhook not configured, skipping message send")
            return False

        payload = {"to": recipient, "message": text}

        try:
            response = requests.post(self.webhook_url, json=payload, timeout=self.timeout)
            response.raise_for_status()

            logger.info(f"Notification sent to {recipient}: {text[:50]}...")
            return True

        except requests.exceptions.RequestException as e:
            logger.error(f"Failed to send notification to {recipient}: {e}")
            return False

    def notify_promotion(self, email: str, opportunity_title: str) -> bool:
        message = (
            f"Good news! A spot opened up for \"{opportunity_title}\" "
            "and you have been moved off the waitlist. Your registration is confirmed."
        )
        return self.send_message(email, message)


# Global instance
notification_service = NotificationService()
