from __future__ import annotations

"""Structural types for the collaborators a publisher talks to.

The publisher never imports a concrete broker library; anything that
matches these shapes can be plugged in (see ``rabbit_wrapper`` for the
RabbitMQ one).
"""

from typing import Any, Callable, Mapping, Optional, Protocol, runtime_checkable


@runtime_checkable
class Channel(Protocol):
    """Broker-side handle used to physically transmit messages.

    Both primitives return ``False`` when the write buffer went over its
    high-water mark, ``True`` (or ``None`` for channels that do not track
    it) otherwise.
    """

    def publish(self, exchange_name: Optional[str], routing_key: Optional[str],
                content: bytes, options: Mapping[str, Any]) -> Optional[bool]: ...

    def send_to_queue(self, queue: str, content: bytes,
                      options: Mapping[str, Any]) -> Optional[bool]: ...

    def on(self, event: str, callback: Callable[[], Any]) -> None: ...


@runtime_checkable
class BrokerClient(Protocol):
    def add_ready_listener(self, callback: Callable[[Channel], Any]) -> None: ...
