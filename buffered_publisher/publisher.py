from __future__ import annotations

"""Publisher that buffers outbound messages until the broker channel is ready.

Calls made before the client reports readiness are kept in memory and
replayed, in call order, as soon as a channel is handed over. After that
every call goes straight to the channel. Send callbacks run on a later
scheduler turn when the channel accepted the write, or wait for the
channel's ``drain`` event when its write buffer is full.
"""

import asyncio
import logging
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Deque, Dict, Mapping, Optional, Union

from .contracts import BrokerClient, Channel
from .errors import InvalidClientError

publisher_logger = logging.getLogger("Publisher")

# Routing keys are resolved by the publisher and never forwarded as channel options
ROUTING_OPTIONS = ("exchange_name", "routing_key")
DRAIN_EVENT = "drain"

Callback = Callable[[], Any]
Scheduler = Callable[[Callback], Any]
ByteContent = Union[bytes, bytearray, memoryview]


@dataclass
class PendingMessage:
    """A call issued before the channel was ready."""
    content: Any
    options: Optional[Mapping[str, Any]] = None
    callback: Optional[Callback] = None
    queue: Optional[str] = None


def encode_content(content: Any, encoding: str = "utf-8") -> ByteContent:
    """Return *content* as a byte sequence.

    Byte sequences are returned untouched; text is encoded with *encoding*
    and anything else goes through ``str()`` first.
    """
    if isinstance(content, (bytes, bytearray, memoryview)):
        return content
    if not isinstance(content, str):
        content = str(content)
    return content.encode(encoding)


class Publisher:
    def __init__(self, client: BrokerClient, options: Optional[Mapping[str, Any]] = None,
                 scheduler: Optional[Scheduler] = None, encoding: str = "utf-8") -> None:
        if client is None or not callable(getattr(client, "add_ready_listener", None)):
            raise InvalidClientError()

        self._options: Dict[str, Any] = dict(options or {})
        self._encoding = encoding
        self._scheduler = scheduler or self._default_scheduler(client)
        if self._scheduler is None:
            raise InvalidClientError(
                "Broker client has no call_soon and no event loop is running; pass a scheduler"
            )

        self._pending: Deque[PendingMessage] = deque()
        self._write_callbacks: Deque[Callback] = deque()
        self._is_ready = False
        self._channel: Optional[Channel] = None

        client.add_ready_listener(self._on_ready)

    @staticmethod
    def _default_scheduler(client) -> Optional[Scheduler]:
        call_soon = getattr(client, "call_soon", None)
        if callable(call_soon):
            return call_soon
        try:
            return asyncio.get_running_loop().call_soon
        except RuntimeError:
            return None

    def publish(self, content, options=None, callback: Optional[Callback] = None) -> None:
        """Publish *content* to the configured exchange.

        ``exchange_name`` and ``routing_key`` given in *options* override the
        publisher defaults for this call only. A callable passed as *options*
        is taken as the callback.
        """
        if callable(options):
            options, callback = None, options

        if not self._is_ready:
            self._pending.append(PendingMessage(content, options, callback))
            publisher_logger.debug(f"Channel not ready, buffered publish ({len(self._pending)} pending)")
            return

        merged = self._merge_options(options)
        accepted = self._channel.publish(
            merged.get("exchange_name") or self._options.get("exchange_name"),
            merged.get("routing_key") or self._options.get("routing_key"),
            encode_content(content, self._encoding),
            self._channel_options(merged),
        )
        self._after_send(accepted, callback)

    def send_to_queue(self, queue: str, content, options=None,
                      callback: Optional[Callback] = None) -> None:
        """Send *content* directly to *queue*, bypassing exchange routing."""
        if callable(options):
            options, callback = None, options

        if not self._is_ready:
            self._pending.append(PendingMessage(content, options, callback, queue=queue))
            publisher_logger.debug(f"Channel not ready, buffered message for queue '{queue}' ({len(self._pending)} pending)")
            return

        merged = self._merge_options(options)
        accepted = self._channel.send_to_queue(
            queue,
            encode_content(content, self._encoding),
            self._channel_options(merged),
        )
        self._after_send(accepted, callback)

    def _merge_options(self, options: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
        merged = dict(self._options)
        if options:
            merged.update(options)
        return merged

    @staticmethod
    def _channel_options(merged: Dict[str, Any]) -> Dict[str, Any]:
        return {k: v for k, v in merged.items() if k not in ROUTING_OPTIONS}

    def _after_send(self, accepted: Optional[bool], callback: Optional[Callback]) -> None:
        if callback is None:
            return
        if accepted is False:
            # Write buffer is full: hold the callback until the channel drains
            self._write_callbacks.append(callback)
            publisher_logger.debug(f"Channel write buffer full, {len(self._write_callbacks)} callbacks waiting for drain")
        else:
            self._scheduler(callback)

    def _on_ready(self, channel: Channel) -> None:
        if self._is_ready:
            publisher_logger.warning("Ready listener fired again, keeping the original channel")
            return

        self._channel = channel
        self._is_ready = True
        channel.on(DRAIN_EVENT, self._on_drain)
        publisher_logger.debug(f"Channel ready, flushing {len(self._pending)} buffered messages")

        self._flush_queue()

    def _flush_queue(self) -> None:
        # A failing replay propagates; whatever is left stays buffered
        while self._pending:
            msg = self._pending.popleft()
            if msg.queue is not None:
                self.send_to_queue(msg.queue, msg.content, msg.options, msg.callback)
            else:
                self.publish(msg.content, msg.options, msg.callback)

    def _on_drain(self) -> None:
        # Callbacks queued while draining wait for the next drain
        count = len(self._write_callbacks)
        publisher_logger.debug(f"Channel drained, releasing {count} write callbacks")
        for _ in range(count):
            callback = self._write_callbacks.popleft()
            callback()


def make_publisher(client: BrokerClient, options: Optional[Mapping[str, Any]] = None,
                   scheduler: Optional[Scheduler] = None, encoding: str = "utf-8") -> Publisher:
    """Return a publisher bound to *client*, using *options* as per-call defaults.

    Raises ``InvalidClientError`` if *client* has no ``add_ready_listener``, or
    if no *scheduler* is given and neither ``client.call_soon`` nor a running
    asyncio loop can defer send callbacks.
    """
    return Publisher(client, options, scheduler=scheduler, encoding=encoding)
