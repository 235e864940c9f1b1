"""
Server-Sent Events framing.

The parser is fed one decoded line at a time and hands back a frame
whenever a blank line closes one:

    event: endpoint
    data: /messages?session_id=abc
    <blank>

becomes SseFrame(event="endpoint", data="/messages?session_id=abc").

Multiple data: lines are joined with newlines. Comment lines and unknown
fields are skipped.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import AsyncIterable, AsyncIterator, Iterable, Iterator


@dataclass(frozen=True)
class SseFrame:
    """One dispatched SSE event."""
    event: str | None
    data: str


class FrameParser:
    """Incremental line-to-frame parser."""

    def __init__(self):
        self._buffer: list[str] = []
        self._event: str | None = None

    def feed(self, line: str) -> SseFrame | None:
        """Consume one line (without its terminator). Returns a frame or None."""
        line = line.rstrip("\r\n")

        if not line.strip():
            if not self._buffer:
                return None
            frame = SseFrame(event=self._event, data="".join(self._buffer).strip())
            self.reset()
            return frame

        if line.startswith("event:"):
            self._event = line[len("event:"):].strip()
        elif line.startswith("data:"):
            self._buffer.append(line[len("data:"):].strip() + "\n")

        return None

    def reset(self) -> None:
        self._buffer = []
        self._event = None


def iter_frames(lines: Iterable[str]) -> Iterator[SseFrame]:
    """Parse a finished sequence of lines. A trailing unterminated frame is dropped."""
    parser = FrameParser()
    for line in lines:
        frame = parser.feed(line)
        if frame is not None:
            yield frame


async def aiter_frames(lines: AsyncIterable[str]) -> AsyncIterator[SseFrame]:
    """Async counterpart of iter_frames, used on a live response body."""
    parser = FrameParser()
    async for line in lines:
        frame = parser.feed(line)
        if frame is not None:
            yield frame
