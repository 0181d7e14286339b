"""Buffering publisher for AMQP-style broker channels.

Messages published before the broker client reports readiness are held in
memory and flushed in order once a channel is available.
"""

from .errors import InvalidClientError
from .publisher import Publisher, encode_content, make_publisher

__all__ = ["InvalidClientError", "Publisher", "encode_content", "make_publisher"]
