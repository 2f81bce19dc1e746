"""Incremental decoder for chat-completion Server-Sent-Events streams.

Folds ``data: {...}`` events into a single :class:`StreamReply`: text deltas
are concatenated, legacy ``function_call`` fragments are accumulated, and
indexed ``tool_calls`` fragments are tracked per index.  Malformed events are
dropped so a garbled frame never aborts the stream.
"""

from __future__ import annotations

import codecs
import logging
from typing import Any, AsyncIterable, Callable

from pydantic import BaseModel, Field, ValidationError

from search_assistant.types import FunctionCall, StreamReply

_logger = logging.getLogger(__name__)

_DATA_PREFIX = "data:"
_DONE = "[DONE]"


# ---------------------------------------------------------------------------
# Event schema
# ---------------------------------------------------------------------------

class FunctionDelta(BaseModel):
    name: str | None = None
    arguments: str | None = None


class ToolCallDelta(BaseModel):
    index: int | None = None
    function: FunctionDelta | None = None


class Delta(BaseModel):
    content: str | None = None
    function_call: FunctionDelta | None = None
    tool_calls: list[ToolCallDelta] | None = None


class Choice(BaseModel):
    delta: Delta | None = None


class StreamChunk(BaseModel):
    """One ``data:`` event of a streamed chat completion."""

    # Only the first choice is read, so the rest stay unvalidated
    choices: list[Any] = Field(default_factory=list)

    @property
    def delta(self) -> Delta | None:
        """Delta of the first choice; raises ValidationError if it is malformed."""
        if not self.choices:
            return None
        return Choice.model_validate(self.choices[0]).delta


# ---------------------------------------------------------------------------
# Decoder
# ---------------------------------------------------------------------------

class StreamDecoder:
    """Rebuild content and function calls from a chunked SSE body.

    Usage::

        reply = await StreamDecoder().decode(response.aiter_bytes())

    or incrementally with :meth:`feed` / :meth:`finish`.  ``on_content`` is
    called with every content delta as soon as its line is complete.
    """

    def __init__(self, on_content: Callable[[str], None] | None = None) -> None:
        self._on_content = on_content
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self._content: list[str] = []
        self._function_name = ""
        self._function_args = ""
        self._tool_names: dict[int, str] = {}
        self._tool_args: dict[int, str] = {}

    async def decode(self, stream: AsyncIterable[bytes | str]) -> StreamReply:
        """Consume *stream* to the end and return the assembled reply."""
        async for chunk in stream:
            self.feed(chunk)
        return self.finish()

    def feed(self, chunk: bytes | str) -> None:
        """Add a chunk; only complete lines are processed."""
        if isinstance(chunk, bytes):
            chunk = self._utf8.decode(chunk)
        self._buffer += chunk
        lines = self._buffer.split("\n")
        # The last piece may be a partial line; keep it for the next chunk.
        self._buffer = lines.pop()
        for line in lines:
            self._process_line(line)

    def finish(self) -> StreamReply:
        """Flush the trailing line and build the final reply."""
        self._buffer += self._utf8.decode(b"", final=True)
        if self._buffer:
            tail, self._buffer = self._buffer, ""
            self._process_line(tail)

        name = self._function_name
        arguments = self._function_args
        if not name and self._tool_names:
            first = min(self._tool_names)
            name = self._tool_names[first]
            arguments = self._tool_args.get(first, "")

        content = "".join(self._content)
        if not name:
            return StreamReply(content=content)
        return StreamReply(
            content=content,
            function_call=FunctionCall(name=name, arguments=arguments),
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _process_line(self, line: str) -> None:
        trimmed = line.strip()
        if not trimmed.startswith(_DATA_PREFIX):
            return
        payload = trimmed[len(_DATA_PREFIX):].lstrip()
        if not payload or payload == _DONE:
            return

        try:
            delta = StreamChunk.model_validate_json(payload).delta
        except ValidationError:
            _logger.debug("Dropping malformed stream event: %.200s", payload)
            return

        if delta is None:
            return

        if delta.content:
            self._content.append(delta.content)
            if self._on_content is not None:
                self._on_content(delta.content)

        if delta.function_call is not None:
            if delta.function_call.name:
                self._function_name = delta.function_call.name
            if delta.function_call.arguments:
                self._function_args += delta.function_call.arguments

        for call in delta.tool_calls or ():
            index = call.index if call.index is not None else 0
            func = call.function
            if func is None:
                continue
            if func.name:
                self._tool_names[index] = func.name
            if func.arguments:
                self._tool_args[index] = self._tool_args.get(index, "") + func.arguments
