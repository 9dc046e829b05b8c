"""Server-sent event parsing for streamed chat responses."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator, Optional, Union

DONE_DATA = "[DONE]"


class SSEFormatError(ValueError):
    """Raised for a line that is not valid event-stream syntax."""

    def __init__(self, line: str):
        self.line = line
        super().__init__(f"Invalid sse format! '{line}'")


@dataclass(frozen=True)
class ServerSentEvent:
    data: str
    event: Optional[str] = None

    @property
    def is_done(self) -> bool:
        return self.data.strip().upper() == DONE_DATA

    def to_bytes(self) -> bytes:
        return f"data: {self.data}\n\n".encode("utf-8")


def parse_event_stream(
    lines: Iterable[Union[str, bytes]], *, emit_done: bool = False
) -> Iterator[ServerSentEvent]:
    """Split an event stream into events.

    ``data:`` lines are buffered until a blank line dispatches them. A
    ``[DONE]`` event ends the stream and is only yielded with ``emit_done``.
    An ``event:`` line discards buffered data; ``:`` comments (including
    ``: ping`` keep-alives) are skipped. Data not followed by a blank line is
    dropped.

    Raises:
        SSEFormatError: On any other non-blank line.
    """
    pending: Optional[ServerSentEvent] = None

    for raw in lines:
        line = raw.decode("utf-8") if isinstance(raw, bytes) else raw
        line = line.rstrip("\r\n")

        if line.startswith("data:"):
            pending = ServerSentEvent(data=line[5:].strip())
        elif line == "":
            if pending is None:
                continue
            if pending.is_done:
                if emit_done:
                    yield pending
                return
            yield pending
            pending = None
        elif line.startswith("event:"):
            pending = None
        elif line.startswith(":"):
            continue
        else:
            raise SSEFormatError(line)
