"""Streaming transport for chat responses."""

from ctxslice.core.api.http_client import StreamHttpError, StreamingHttpClient, extract_delta
from ctxslice.core.api.sse import ServerSentEvent, SSEFormatError, parse_event_stream

__all__ = [
    "SSEFormatError",
    "ServerSentEvent",
    "StreamHttpError",
    "StreamingHttpClient",
    "extract_delta",
    "parse_event_stream",
]
