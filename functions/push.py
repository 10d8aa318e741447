"""
FCM multicast delivery.

One PushPayload is addressed to all of a user's registered device tokens.
Only the aggregate success/failure counts are reported back; per-token errors
are not inspected and stale tokens are left in place.
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from firebase_admin import messaging

# FCM rejects multicast messages with more tokens than this
MULTICAST_TOKEN_LIMIT = 500


@dataclass
class PushPayload:
    title: str
    body: str
    tokens: List[str]
    data: Dict[str, object] = field(default_factory=dict)
    icon: Optional[str] = None
    badge: Optional[str] = None
    android_channel: Optional[str] = None
    high_priority: bool = False
    apns_category: Optional[str] = None


@dataclass
class DeliveryResult:
    success_count: int = 0
    failure_count: int = 0

    def add(self, other: "DeliveryResult") -> "DeliveryResult":
        self.success_count += other.success_count
        self.failure_count += other.failure_count
        return self


def stringify_data(data: Dict[str, object]) -> Dict[str, str]:
    """FCM data values must be strings; None values are dropped."""
    return {str(k): str(v) for k, v in data.items() if v is not None}


def build_message(payload: PushPayload, tokens: List[str]) -> messaging.MulticastMessage:
    android = None
    if payload.android_channel:
        android = messaging.AndroidConfig(
            priority="high" if payload.high_priority else "normal",
            notification=messaging.AndroidNotification(
                channel_id=payload.android_channel,
                sound="default",
            ),
        )

    apns = None
    if payload.apns_category:
        apns = messaging.APNSConfig(
            payload=messaging.APNSPayload(
                aps=messaging.Aps(sound="default", badge=1, category=payload.apns_category),
            ),
        )

    webpush = None
    if payload.icon or payload.badge:
        webpush = messaging.WebpushConfig(
            notification=messaging.WebpushNotification(icon=payload.icon, badge=payload.badge),
        )

    return messaging.MulticastMessage(
        tokens=tokens,
        notification=messaging.Notification(title=payload.title, body=payload.body),
        data=stringify_data(payload.data),
        android=android,
        apns=apns,
        webpush=webpush,
    )


def _chunks(items: List[str], size: int):
    for start in range(0, len(items), size):
        yield items[start:start + size]


class PushGateway:
    """Sends PushPayloads through firebase_admin.messaging."""

    def __init__(self, app=None):
        self._app = app

    def send_multicast(self, payload: PushPayload) -> DeliveryResult:
        result = DeliveryResult()
        for tokens in _chunks(payload.tokens, MULTICAST_TOKEN_LIMIT):
            response = messaging.send_each_for_multicast(build_message(payload, tokens), app=self._app)
            result.add(DeliveryResult(response.success_count, response.failure_count))
        return result
