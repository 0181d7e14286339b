import pika
import time
import logging
from collections import defaultdict

rabbit_logger = logging.getLogger("RabbitMQ")

# Option names copied verbatim into pika.BasicProperties
BASIC_PROPERTIES = (
    "content_type", "content_encoding", "headers", "delivery_mode", "priority",
    "correlation_id", "reply_to", "expiration", "message_id", "timestamp",
    "type", "user_id", "app_id", "cluster_id",
)


def build_properties(options):
    """Split publish options into (pika.BasicProperties, mandatory flag)."""
    options = dict(options or {})
    mandatory = bool(options.pop("mandatory", False))
    persistent = options.pop("persistent", None)

    props = {}
    for name, value in options.items():
        if name in BASIC_PROPERTIES:
            props[name] = value
        else:
            rabbit_logger.debug(f"Ignoring unsupported publish option '{name}'")

    if persistent is not None and "delivery_mode" not in props:
        props["delivery_mode"] = 2 if persistent else 1
    if props.get("expiration") is not None:
        # AMQP expects the per-message TTL as a string of milliseconds
        props["expiration"] = str(props["expiration"])

    return pika.BasicProperties(**props), mandatory


class RabbitChannel:
    """Channel handle handed to ready listeners.

    Publishing while the broker holds the connection blocked (resource alarm)
    still goes to pika's outbound buffer but reports ``False``; a ``drain``
    event is emitted once the broker unblocks the connection.
    """
    def __init__(self, connection, channel):
        self._connection = connection
        self._channel = channel
        self._blocked = False
        self._listeners = defaultdict(list)

        connection.add_on_connection_blocked_callback(self._on_blocked)
        connection.add_on_connection_unblocked_callback(self._on_unblocked)

    @property
    def is_blocked(self):
        return self._blocked

    def on(self, event, callback):
        self._listeners[event].append(callback)

    def _emit(self, event):
        for callback in list(self._listeners[event]):
            callback()

    def _on_blocked(self, _connection, method_frame):
        reason = getattr(method_frame.method, "reason", "") if method_frame else ""
        rabbit_logger.warning(f"Connection blocked by broker: {reason}")
        self._blocked = True
        self._emit("blocked")

    def _on_unblocked(self, _connection, _method_frame):
        rabbit_logger.info("Connection unblocked by broker")
        self._blocked = False
        self._emit("drain")

    def publish(self, exchange_name, routing_key, content, options=None):
        """Publishes *content* to *exchange_name*. Returns False while blocked."""
        return self._basic_publish(exchange_name or "", routing_key or "", content, options)

    def send_to_queue(self, queue, content, options=None):
        """Publishes through the default exchange, which routes by queue name."""
        return self._basic_publish("", queue, content, options)

    def _basic_publish(self, exchange, routing_key, content, options):
        properties, mandatory = build_properties(options)
        try:
            self._channel.basic_publish(
                exchange=exchange,
                routing_key=routing_key,
                body=content,
                properties=properties,
                mandatory=mandatory,
            )
            rabbit_logger.debug(f"Published message to exchange '{exchange}' with key '{routing_key}'")
        except Exception as e:
            rabbit_logger.error(f"Failed to publish message to exchange '{exchange}': {e}", exc_info=True)
            raise
        return not self._blocked

    def close(self):
        if self._channel and self._channel.is_open:
            self._channel.close()


class RabbitClient:
    """Broker client that connects to RabbitMQ and tells listeners when a channel is usable."""
    def __init__(self, host, port=5672, exchange=None, exchange_type="direct",
                 heartbeat=None, max_retries=5, retry_delay=5):
        self.host = host
        self.port = port
        self.exchange = exchange
        self.exchange_type = exchange_type
        self.heartbeat = heartbeat
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._connection = None
        self._channel = None
        self._ready_listeners = []

    @property
    def channel(self):
        return self._channel

    @property
    def is_connected(self):
        return self._connection is not None and self._connection.is_open

    def add_ready_listener(self, callback):
        """Registers *callback* to receive the channel once connected.

        Listeners added after the client is connected are called right away.
        """
        self._ready_listeners.append(callback)
        if self._channel is not None:
            callback(self._channel)

    def connect(self):
        """Connects, declares the exchange and notifies every ready listener."""
        self._connect_with_retry()
        raw_channel = self._connection.channel()

        if self.exchange:
            try:
                raw_channel.exchange_declare(exchange=self.exchange, exchange_type=self.exchange_type, durable=True)
                rabbit_logger.info(f"Exchange '{self.exchange}' ({self.exchange_type}) declared for publisher.")
            except Exception as e:
                rabbit_logger.error(f"Error declaring exchange {self.exchange}: {e}", exc_info=True)
                self.stop()
                raise

        self._channel = RabbitChannel(self._connection, raw_channel)
        rabbit_logger.debug(f"Channel ready, notifying {len(self._ready_listeners)} listeners")
        for listener in list(self._ready_listeners):
            listener(self._channel)
        return self._channel

    def _connect_with_retry(self):
        """Establishes connection with RabbitMQ using retries."""
        retries = 0
        while True:
            try:
                params = pika.ConnectionParameters(host=self.host, port=self.port, heartbeat=self.heartbeat)
                self._connection = pika.BlockingConnection(params)
                rabbit_logger.info(f"Successfully connected to RabbitMQ at {self.host}:{self.port}")
                return
            except pika.exceptions.AMQPConnectionError as e:
                retries += 1
                if retries >= self.max_retries:
                    rabbit_logger.error("Max connection retries reached. Could not connect to RabbitMQ.")
                    raise
                rabbit_logger.warning(f"Connection attempt {retries}/{self.max_retries} failed: {e}. Retrying in {self.retry_delay}s...")
                time.sleep(self.retry_delay)

    def call_soon(self, callback):
        """Runs *callback* on a later turn of the connection's I/O loop."""
        if self._connection is None:
            raise RuntimeError("RabbitMQ client is not connected")
        self._connection.add_callback_threadsafe(callback)

    def process_data_events(self, time_limit=0):
        """Pumps the I/O loop so scheduled callbacks and broker notifications run."""
        if self._connection is None:
            raise RuntimeError("RabbitMQ client is not connected")
        self._connection.process_data_events(time_limit=time_limit)

    def stop(self):
        """Closes the channel and connection gracefully."""
        try:
            if self._channel is not None:
                self._channel.close()
                rabbit_logger.info("RabbitMQ channel closed.")
            if self._connection and self._connection.is_open:
                self._connection.close()
                rabbit_logger.info("RabbitMQ connection closed.")
        except Exception as e:
            # Log error but don't prevent releasing the resources
            rabbit_logger.error(f"Error closing RabbitMQ resources: {e}", exc_info=True)
        finally:
            self._channel = None
            self._connection = None
            self._ready_listeners = []
