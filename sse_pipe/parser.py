"""Incremental Server-Sent Events frame parser.

Bytes arrive in chunks that need not line up with lines or events. The
parser buffers partial lines across ``feed`` calls and yields an ``Event``
each time a blank line closes one. Feeding a stream in one piece or split
at arbitrary offsets yields the same events in the same order.

Field rules:

* ``field: value`` and ``field:value`` are the same (one leading space is
  dropped); a line without a colon is a field with an empty value.
* ``data`` lines are joined with ``\\n`` in source order. Any other field
  that repeats keeps its last value.
* Lines starting with ``:`` are comments.
* Nothing carries over from one event to the next, ``id`` included.
"""
import logging
from typing import Dict, Iterable, Iterator, Optional

from .errors import EventTooLarge
from .options import MAX_EVENT_SIZE

log = logging.getLogger(__name__)

BOM = "\ufeff"


class Event:
    """One parsed event: ordered header fields plus the data payload."""

    __slots__ = ("headers", "data", "has_data")

    def __init__(self, headers: Optional[Dict[str, str]] = None, data: Optional[str] = None):
        self.headers = dict(headers or {})
        # None: the event had no data field at all
        self.has_data = data is not None
        self.data = data or ""

    @property
    def reply(self) -> Optional[str]:
        return self.headers.get("reply")

    def __eq__(self, other):
        if not isinstance(other, Event):
            return NotImplemented
        return ((list(self.headers.items()), self.data, self.has_data)
                == (list(other.headers.items()), other.data, other.has_data))

    def __repr__(self):
        return f"Event(headers={self.headers!r}, data={self.data!r})"


class FrameParser:
    def __init__(self, max_event_size: int = MAX_EVENT_SIZE):
        self.max_event_size = max_event_size
        self._buffer = bytearray()
        self._at_start = True
        self._reset()

    def _reset(self):
        self._headers = {}
        self._data = []
        self._has_data = False
        self._size = 0

    @property
    def pending(self) -> bool:
        """True while an unterminated event or partial line is buffered."""
        return bool(self._buffer) or self._size > 0

    def feed(self, chunk: bytes) -> Iterator[Event]:
        """Buffer ``chunk`` and return an iterator over completed events.

        Lines are consumed from the buffer only as the iterator advances,
        so abandoning it early leaves the remaining lines for the next call.
        """
        self._buffer += chunk
        return self._drain()

    def _drain(self) -> Iterator[Event]:
        while True:
            end = self._buffer.find(b"\n")
            if end < 0:
                break
            raw = bytes(self._buffer[:end])
            del self._buffer[:end + 1]
            event = self._line(raw)
            if event is not None:
                yield event
        self._check_size(len(self._buffer) - self._buffer.endswith(b"\r"))

    def _check_size(self, length: int):
        extra = length + 1 if length else 0
        if self._size + extra > self.max_event_size:
            raise EventTooLarge(f"event exceeds {self.max_event_size} bytes")

    def _line(self, raw: bytes) -> Optional[Event]:
        if raw.endswith(b"\r"):
            raw = raw[:-1]
        # comments are bounded too, or the limit would depend on chunking
        self._check_size(len(raw))

        line = raw.decode("utf-8", errors="replace")
        if self._at_start:
            self._at_start = False
            if line.startswith(BOM):
                line = line[1:]

        if not line:
            return self._emit()
        if line.startswith(":"):
            return None

        self._size += len(raw) + 1

        name, sep, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]

        if name == "data":
            self._data.append(value)
            self._has_data = True
        else:
            self._headers[name] = value
        return None

    def _emit(self) -> Optional[Event]:
        if not self._headers and not self._has_data:
            return None
        event = Event(self._headers, "\n".join(self._data) if self._has_data else None)
        self._reset()
        return event

    def finish(self) -> int:
        """Mark end of stream; drop whatever was left unterminated.

        Returns the number of bytes discarded.
        """
        dropped = self._size + len(self._buffer)
        if dropped:
            log.warning("stream ended inside an event, discarding %d byte", dropped)
        self._buffer.clear()
        self._reset()
        return dropped


def iter_events(chunks: Iterable[bytes], max_event_size: int = MAX_EVENT_SIZE) -> Iterator[Event]:
    """Pull events lazily out of an iterable of byte chunks."""
    parser = FrameParser(max_event_size)
    for chunk in chunks:
        yield from parser.feed(chunk)
    parser.finish()
