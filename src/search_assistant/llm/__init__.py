"""Chat-completion stream handling."""

from search_assistant.llm.stream_decoder import StreamChunk, StreamDecoder

__all__ = ["StreamChunk", "StreamDecoder"]
