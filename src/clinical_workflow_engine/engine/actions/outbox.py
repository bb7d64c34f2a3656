"""Outbound-channel boundary for built-in effectors."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Protocol

logger = logging.getLogger(__name__)


def _utc_iso_now() -> str:
    return datetime.now(tz=UTC).isoformat()


@dataclass(frozen=True, slots=True)
class OutboundMessage:
    channel: str
    payload: dict[str, Any]
    message_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: str = field(default_factory=_utc_iso_now)


@dataclass(frozen=True, slots=True)
class DeliveryReceipt:
    message_id: str
    channel: str
    status: str
    accepted_at: str = field(default_factory=_utc_iso_now)

    def to_json(self) -> dict[str, object]:
        return {
            "message_id": self.message_id,
            "channel": self.channel,
            "status": self.status,
            "accepted_at": self.accepted_at,
        }


class Outbox(Protocol):
    """Accepts outbound messages for delivery.

    Implementations may raise to signal that delivery was refused; the
    dispatcher records that as a failed action.
    """

    def submit(self, message: OutboundMessage) -> DeliveryReceipt: ...


class LoggingOutbox:
    """Default outbox: records each message in the log and reports it queued."""

    def submit(self, message: OutboundMessage) -> DeliveryReceipt:
        logger.info(
            "Outbound message queued",
            extra={
                "message_id": message.message_id,
                "channel": message.channel,
                "execution_id": message.payload.get("execution_id"),
            },
        )
        return DeliveryReceipt(
            message_id=message.message_id, channel=message.channel, status="queued"
        )


class InMemoryOutbox:
    """Keeps submitted messages in memory; useful for dry runs."""

    def __init__(self) -> None:
        self.messages: list[OutboundMessage] = []

    def submit(self, message: OutboundMessage) -> DeliveryReceipt:
        self.messages.append(message)
        return DeliveryReceipt(
            message_id=message.message_id, channel=message.channel, status="accepted"
        )
