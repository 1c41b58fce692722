# bakery_bliss/events.py

"""
Status-change notifications.
The chat / live-update side listens for these; the order workflow only publishes them.
"""

import json
import threading
import time
from collections import deque
from datetime import datetime
from typing import Deque, Optional

import pika
from pydantic import BaseModel, Field

from bakery_bliss import config
from bakery_bliss.models import OrderStatus


STATUS_CHANGED = "order.status_changed"
JUNIOR_ASSIGNED = "order.junior_assigned"


class OrderEvent(BaseModel):
    """Something that happened to one order. Subclasses set the routing key and the payload."""
    order_id: str
    routing_key: str
    occurred_at: datetime = Field(default_factory=datetime.utcnow)

    def payload(self) -> dict:
        raise NotImplementedError


class StatusChangeEvent(OrderEvent):
    old_status: OrderStatus
    new_status: OrderStatus
    routing_key: str = STATUS_CHANGED

    def payload(self) -> dict:
        return {
            "orderId": self.order_id,
            "oldStatus": self.old_status.value,
            "newStatus": self.new_status.value,
            "occurredAt": self.occurred_at.isoformat(),
        }


class JuniorAssignedEvent(OrderEvent):
    junior_baker_id: int
    main_baker_id: int
    status: OrderStatus
    routing_key: str = JUNIOR_ASSIGNED

    def payload(self) -> dict:
        return {
            "orderId": self.order_id,
            "juniorBakerId": self.junior_baker_id,
            "mainBakerId": self.main_baker_id,
            "status": self.status.value,
            "occurredAt": self.occurred_at.isoformat(),
        }


class InMemoryPublisher:
    """
    Keeps the most recent events in memory. Default backend, and what the tests inspect.
    Older events fall off once `max_events` is reached.
    """

    def __init__(self, max_events: Optional[int] = None):
        self.events: Deque[OrderEvent] = deque(maxlen=max_events or config.EVENT_BUFFER_SIZE)

    def publish(self, event: OrderEvent):
        self.events.append(event)
        print(f"📣 [EVENT] {event.routing_key}: {event.payload()}")

    def close(self):
        pass


class RabbitMQPublisher:
    """
    Publishes events to a durable topic exchange.
    Retries the connection if RabbitMQ is not ready yet.

    One instance is shared by every request thread. pika connections are not
    thread-safe, so connecting, publishing and closing all hold `self._lock`.
    """

    def __init__(self, host: Optional[str] = None, exchange_name: Optional[str] = None,
                 exchange_type: str = "topic", retry_delay: float = 5, max_attempts: int = 5):
        self.host = host or config.RABBITMQ_HOST
        self.exchange_name = exchange_name or config.RABBITMQ_EXCHANGE
        self.exchange_type = exchange_type
        self.retry_delay = retry_delay
        self.max_attempts = max_attempts
        self.connection = None
        self.channel = None
        self._lock = threading.RLock()

    def connect(self):
        """Establishes a connection to RabbitMQ with retry logic."""
        with self._lock:
            attempt = 0
            while True:
                attempt += 1
                try:
                    parameters = pika.ConnectionParameters(
                        host=self.host, heartbeat=600, blocked_connection_timeout=300
                    )
                    self.connection = pika.BlockingConnection(parameters)
                    self.channel = self.connection.channel()
                    self.channel.exchange_declare(
                        exchange=self.exchange_name,
                        exchange_type=self.exchange_type,
                        durable=True,
                    )
                    print(f"🐇 [RABBITMQ] Connected to exchange: {self.exchange_name}")
                    return
                except pika.exceptions.AMQPConnectionError:
                    if attempt >= self.max_attempts:
                        raise
                    print(f"🐇 [RABBITMQ] Not ready yet, retrying in {self.retry_delay} seconds...")
                    time.sleep(self.retry_delay)

    def publish(self, event: OrderEvent):
        body = json.dumps(event.payload())
        with self._lock:
            # Reconnect if the connection was lost
            if not self.connection or self.connection.is_closed:
                self.connect()

            self.channel.basic_publish(
                exchange=self.exchange_name,
                routing_key=event.routing_key,
                body=body,
                properties=pika.BasicProperties(
                    delivery_mode=2,  # persistent
                    content_type="application/json",
                ),
            )
        print(f"📣 [EVENT] Sent '{event.routing_key}': {body}")

    def close(self):
        with self._lock:
            if self.connection and not self.connection.is_closed:
                self.connection.close()


def publish_safely(publisher, event: OrderEvent) -> bool:
    """
    Called after the database commit. Publish errors are reported, never raised.
    """
    try:
        publisher.publish(event)
        return True
    except Exception as e:
        print(f"❌ [EVENT] Failed to publish {event.routing_key} for {event.order_id}: {e}")
        return False


def build_publisher(backend: Optional[str] = None):
    backend = backend or config.NOTIFICATION_BACKEND
    if backend == "memory":
        return InMemoryPublisher()
    if backend == "rabbitmq":
        return RabbitMQPublisher()
    raise ValueError(f"Unknown NOTIFICATION_BACKEND: {backend}")
