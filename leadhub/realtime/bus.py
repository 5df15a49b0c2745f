"""
Redis pub/sub event bus for lead workflow notifications.
Provides standardized event emission and message envelope format.
"""
import json
import uuid
from datetime import datetime
from typing import Any, Dict, Optional, List

import redis

from leadhub.config import settings
from leadhub.obs.logging import get_logger

logger = get_logger(__name__)

# Message size limit (32KB)
MAX_MESSAGE_SIZE = 32 * 1024

MARKETPLACE_CHANNEL = "leads:events"


class EventBus:
    """Redis-based event bus for real-time messaging."""

    def __init__(self, redis_url: Optional[str] = None):
        self.redis_url = redis_url or settings.REDIS_URL
        self._redis_client = None
        self._connected = False

    def _connect(self):
        """Connect to Redis with error handling."""
        self._connected = True
        try:
            if self.redis_url:
                self._redis_client = redis.from_url(self.redis_url, decode_responses=True)
                self._redis_client.ping()
                logger.info("Connected to Redis for event bus")
            else:
                logger.warning("No Redis URL configured - event bus disabled")
                self._redis_client = None
        except redis.RedisError as e:
            logger.error(f"Failed to connect to Redis event bus: {e}")
            self._redis_client = None

    @property
    def redis_client(self):
        """Get Redis client, connecting on first use."""
        if self._redis_client is None and not self._connected:
            self._connect()
        return self._redis_client

    def emit(
        self,
        event_name: str,
        payload: Dict[str, Any],
        *,
        lead_id: Optional[str] = None,
        partner_id: Optional[str] = None,
        actor: Optional[str] = None,
        trace_id: Optional[str] = None,
        severity: str = "info",
        version: str = "1"
    ) -> bool:
        """
        Emit an event to the marketplace channel plus any lead/partner channels.

        Args:
            event_name: Dotted event name (e.g., 'lead.assignment.accepted')
            payload: Event data payload
            lead_id: Optional lead id for the lead timeline channel
            partner_id: Optional partner id for the partner inbox channel
            actor: User that caused the event
            trace_id: Request trace id for correlation

        Returns:
            True if event was emitted successfully, False otherwise
        """
        if not self.redis_client:
            logger.debug("Event bus not available - skipping event emission")
            return False

        envelope = self._create_envelope(
            event_name=event_name,
            payload=payload,
            lead_id=lead_id,
            partner_id=partner_id,
            actor=actor,
            trace_id=trace_id,
            severity=severity,
            version=version,
        )

        message_json = json.dumps(envelope, default=str)
        if len(message_json.encode('utf-8')) > MAX_MESSAGE_SIZE:
            envelope = self._create_pointer_message(envelope, payload)
            message_json = json.dumps(envelope, default=str)
            logger.warning(f"Large payload truncated for event {event_name}", extra={"lead_id": lead_id})

        published_count = 0
        for channel in self._get_channels(lead_id, partner_id):
            try:
                self.redis_client.publish(channel, message_json)
                published_count += 1
            except redis.RedisError as e:
                logger.error(f"Failed to publish to channel {channel}: {e}")

        if published_count == 0:
            logger.error(f"Failed to publish event {event_name} to any channels")
            return False

        logger.info(
            f"Event {event_name} published to {published_count} channels",
            extra={"lead_id": lead_id, "partner_id": partner_id, "trace_id": envelope["trace_id"]},
        )
        return True

    def _create_envelope(
        self,
        event_name: str,
        payload: Dict[str, Any],
        lead_id: Optional[str],
        partner_id: Optional[str],
        actor: Optional[str],
        trace_id: Optional[str],
        severity: str,
        version: str
    ) -> Dict[str, Any]:
        """Create standardized message envelope."""
        envelope = {
            "version": version,
            "event": event_name,
            "ts": datetime.utcnow().isoformat() + "Z",
            "severity": severity,
            "trace_id": trace_id or str(uuid.uuid4()),
            "data": payload,
        }

        if lead_id:
            envelope["lead_id"] = lead_id
        if partner_id:
            envelope["partner_id"] = partner_id
        if actor:
            envelope["actor"] = actor

        return envelope

    def _create_pointer_message(
        self,
        original_envelope: Dict[str, Any],
        original_payload: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Create a pointer message for large payloads."""
        pointer_data = {}

        for field in ["lead_id", "partner_id", "assignment_id", "status"]:
            if field in original_payload:
                pointer_data[field] = original_payload[field]

        pointer_data["_truncated"] = True
        pointer_data["_message"] = "Payload too large - fetch details via REST API"

        envelope = original_envelope.copy()
        envelope["data"] = pointer_data
        return envelope

    def _get_channels(self, lead_id: Optional[str], partner_id: Optional[str]) -> List[str]:
        """Get list of channels to publish to based on event context."""
        channels = [MARKETPLACE_CHANNEL]

        if lead_id:
            channels.append(f"lead:{lead_id}:timeline")

        if partner_id:
            channels.append(f"partner:{partner_id}:leads")

        return channels


# Global event bus instance (connects lazily)
event_bus = EventBus()


def emit(
    event_name: str,
    payload: Dict[str, Any],
    *,
    lead_id: Optional[str] = None,
    partner_id: Optional[str] = None,
    actor: Optional[str] = None,
    trace_id: Optional[str] = None,
    severity: str = "info",
    version: str = "1"
) -> bool:
    """
    Convenience function to emit an event using the global event bus.

    See EventBus.emit() for parameter documentation.
    """
    return event_bus.emit(
        event_name=event_name,
        payload=payload,
        lead_id=lead_id,
        partner_id=partner_id,
        actor=actor,
        trace_id=trace_id,
        severity=severity,
        version=version,
    )
