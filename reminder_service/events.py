"""
Event topics and publishers for reminder state transitions
"""
import logging
import threading
from typing import Any, Mapping, Optional

from kombu import Connection, Exchange, Producer

from .errors import PublishError
from .ports import EventPublisher

logger = logging.getLogger(__name__)


# Topic names are part of the contract downstream consumers rely on
REMINDER_CREATED = "reminders.created"
REMINDER_UPDATED = "reminders.updated"
REMINDER_SNOOZED = "reminders.snoozed"
REMINDER_CANCELLED = "reminders.cancelled"
REMINDER_COMPLETED = "reminders.completed"
REMINDER_DELETED = "reminders.deleted"
REMINDERS_BULK_CANCELLED = "reminders.bulk_cancelled"
REMINDERS_BULK_DELETED = "reminders.bulk_deleted"
NOTIFICATION_SEND = "notifications.send"


class KombuEventPublisher(EventPublisher):
    """Publishes JSON events to a durable RabbitMQ topic exchange, routing key = topic."""

    def __init__(self, url: str, exchange_name: str, timeout: float = 5.0):
        self.url = url
        self.exchange = Exchange(exchange_name, type="topic", durable=True)
        self.timeout = timeout
        self._connection: Optional[Connection] = None
        self._producer: Optional[Producer] = None
        self._lock = threading.Lock()

    def _get_producer(self) -> Producer:
        if self._producer is None:
            self._connection = Connection(self.url, connect_timeout=self.timeout)
            self._producer = Producer(self._connection.default_channel, exchange=self.exchange)
        return self._producer

    def publish(self, topic: str, payload: Mapping[str, Any]) -> None:
        with self._lock:
            try:
                producer = self._get_producer()
                producer.publish(
                    dict(payload),
                    exchange=self.exchange,
                    routing_key=topic,
                    serializer="json",
                    declare=[self.exchange],
                    delivery_mode=2,
                    retry=True,
                    retry_policy={"max_retries": 3, "interval_start": 0, "interval_step": 0.5},
                    timeout=self.timeout,
                )
            except Exception as e:
                # Drop the connection so the next publish reconnects
                self._reset()
                raise PublishError(f"failed to publish {topic}: {e}") from e

    def _reset(self) -> None:
        if self._connection is not None:
            try:
                self._connection.release()
            except Exception as e:
                logger.debug(f"Ignoring error while releasing broker connection: {e!r}")
        self._connection = None
        self._producer = None

    def close(self) -> None:
        with self._lock:
            self._reset()


class LoggingEventPublisher(EventPublisher):
    """Used when events are disabled: writes each event to the log instead of a broker."""

    def publish(self, topic: str, payload: Mapping[str, Any]) -> None:
        logger.info(f"📣 [Events] {topic} {dict(payload)}")
