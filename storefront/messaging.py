from __future__ import annotations

import json
import logging
import threading
from typing import Callable, Iterable, Optional

import pika

from .config import EVENTS_EXCHANGE, RABBITMQ_URL

logger = logging.getLogger(__name__)

STATE_CHANGED = "storefront.state_changed"


def _connect(url: str = RABBITMQ_URL) -> pika.BlockingConnection:
    params = pika.URLParameters(url)
    params.heartbeat = 30
    params.blocked_connection_timeout = 30
    return pika.BlockingConnection(params)


def publish_event(routing_key: str, payload: dict, *, url: str = RABBITMQ_URL, exchange: str = EVENTS_EXCHANGE) -> None:
    connection = _connect(url)
    try:
        ch = connection.channel()
        ch.exchange_declare(exchange=exchange, exchange_type="topic", durable=True)
        body = json.dumps(payload, ensure_ascii=False).encode("utf-8")
        ch.basic_publish(
            exchange=exchange,
            routing_key=routing_key,
            body=body,
            properties=pika.BasicProperties(content_type="application/json", delivery_mode=2),
        )
    finally:
        connection.close()


def publish_state_changed(origin: str, *, url: str = RABBITMQ_URL, exchange: str = EVENTS_EXCHANGE) -> None:
    # no delta: receivers re-read the store
    publish_event(STATE_CHANGED, {"event": STATE_CHANGED, "origin": origin}, url=url, exchange=exchange)


def start_consumer_in_thread(
    *,
    binding_keys: Iterable[str],
    handler: Callable[[dict], None],
    url: str = RABBITMQ_URL,
    exchange: str = EVENTS_EXCHANGE,
    stop_event: Optional[threading.Event] = None,
    daemon: bool = True,
) -> threading.Thread:
    """Consume from an exclusive, auto-deleted queue bound to ``binding_keys``.

    Every context gets its own queue so each one sees every signal. The loop
    reconnects after broker failures until ``stop_event`` is set.
    """
    stop_event = stop_event or threading.Event()
    keys = list(binding_keys)

    def _run() -> None:
        while not stop_event.is_set():
            connection = None
            try:
                connection = _connect(url)
                ch = connection.channel()
                ch.exchange_declare(exchange=exchange, exchange_type="topic", durable=True)
                result = ch.queue_declare(queue="", exclusive=True, auto_delete=True)
                queue_name = result.method.queue
                for key in keys:
                    ch.queue_bind(exchange=exchange, queue=queue_name, routing_key=key)

                for method, properties, body in ch.consume(queue_name, auto_ack=True, inactivity_timeout=1):
                    if stop_event.is_set():
                        break
                    if body is None:
                        continue
                    try:
                        handler(json.loads(body.decode("utf-8")))
                    except Exception:
                        logger.exception("broker handler failed exchange=%s", exchange)
            except Exception:
                logger.warning("broker connection failed; retrying in 3s", exc_info=True)
                stop_event.wait(3)
            finally:
                if connection is not None:
                    try:
                        connection.close()
                    except Exception:
                        pass

    t = threading.Thread(target=_run, name=f"consumer:{exchange}", daemon=daemon)
    t.start()
    return t


class BrokerRelay:
    """Bridges a ChangeNotifier across processes through RabbitMQ."""

    def __init__(self, notifier, context_id: str, *, url: str = RABBITMQ_URL, exchange: str = EVENTS_EXCHANGE):
        self.notifier = notifier
        self.context_id = context_id
        self.url = url
        self.exchange = exchange
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def publish(self) -> None:
        publish_state_changed(self.context_id, url=self.url, exchange=self.exchange)

    def handle(self, payload: dict) -> None:
        if payload.get("event") != STATE_CHANGED:
            return
        if payload.get("origin") == self.context_id:
            return
        self.notifier.notify_remote("broker")

    def start(self) -> None:
        self.notifier.relay = self.publish
        self._stop.clear()
        self._thread = start_consumer_in_thread(
            binding_keys=[STATE_CHANGED],
            handler=self.handle,
            url=self.url,
            exchange=self.exchange,
            stop_event=self._stop,
        )

    def stop(self) -> None:
        self._stop.set()
        if self.notifier.relay == self.publish:
            self.notifier.relay = None
        if self._thread is not None:
            self._thread.join(timeout=5)
            self._thread = None
