"""
Decoder for Ollama's newline-delimited JSON chat responses.

The backend body is fully buffered before it gets here. Each line should be
one ``{"message": {"role", "content"}, "done": bool}`` object; lines that
fail that shape are mined for a ``"content"`` string instead of aborting the
whole answer.
"""

import json
import re
from dataclasses import dataclass
from typing import Optional

from pydantic import BaseModel, ValidationError

from chat_service.utils.logger import get_logger

logger = get_logger(__name__)

FALLBACK_REPLY = "Sorry, I couldn't process that request."

# A quoted string following a "content" key; escaped quotes stay inside the match.
CONTENT_PATTERN = re.compile(r'"content"\s*:\s*"((?:[^"\\]|\\.)*)"')


class ChunkMessage(BaseModel):
    role: str
    content: str


class ChatChunk(BaseModel):
    """One line of an Ollama /api/chat response."""

    message: ChunkMessage
    done: bool


@dataclass
class DecodedReply:
    """Assembled answer plus how the lines were handled."""

    text: str
    completed: bool
    lines_parsed: int = 0
    lines_recovered: int = 0
    lines_skipped: int = 0

    @property
    def degraded(self) -> bool:
        return not self.completed or self.lines_recovered > 0 or self.lines_skipped > 0


def parse_chunk(line: str) -> Optional[ChatChunk]:
    """Parse one line against the chunk schema, or return None."""
    try:
        return ChatChunk.model_validate_json(line)
    except ValidationError:
        return None


def to_utf8_safe(text: str) -> str:
    """
    Replace lone surrogates (e.g. half of an emoji cut off mid-stream) with U+FFFD.

    Anything returned here can be stored, sent back to the backend and
    serialized in the HTTP response.
    """
    try:
        text.encode("utf-8")
    except UnicodeEncodeError:
        return text.encode("utf-8", "surrogatepass").decode("utf-8", "replace")
    return text


def extract_content(line: str) -> Optional[str]:
    """Pull a ``"content": "..."`` value out of a line that failed to parse."""
    match = CONTENT_PATTERN.search(line)
    if match is None:
        return None

    raw = match.group(1)
    try:
        return to_utf8_safe(json.loads(f'"{raw}"'))
    except json.JSONDecodeError:
        return to_utf8_safe(raw)


def _error_message(line: str) -> Optional[str]:
    try:
        data = json.loads(line)
    except json.JSONDecodeError:
        return None
    if isinstance(data, dict) and data.get("error"):
        return str(data["error"])
    return None


def decode(body: str) -> DecodedReply:
    """
    Assemble a response body into a single reply.

    Never raises: malformed lines are recovered through the content pattern
    or skipped. Stops at the first line with ``done: true``.

    Args:
        body: Complete raw response body

    Returns:
        DecodedReply with the concatenated content
    """
    parts = []
    completed = False
    parsed = recovered = skipped = 0

    for line in body.split("\n"):
        if not line.strip():
            continue

        chunk = parse_chunk(line)
        if chunk is not None:
            parsed += 1
            parts.append(to_utf8_safe(chunk.message.content))
            if chunk.done:
                completed = True
                break
            continue

        content = extract_content(line)
        if content is not None:
            recovered += 1
            parts.append(content)
            logger.warning(f"Recovered content from malformed line: {line[:100]}")
            continue

        skipped += 1
        error = _error_message(line)
        if error:
            logger.error(f"Ollama stream error: {error}")
        else:
            logger.warning(f"Skipping undecodable line: {line[:100]}")

    text = "".join(parts)
    if not text:
        return DecodedReply(
            text=FALLBACK_REPLY,
            completed=False,
            lines_parsed=parsed,
            lines_recovered=recovered,
            lines_skipped=skipped,
        )

    return DecodedReply(
        text=text,
        completed=completed,
        lines_parsed=parsed,
        lines_recovered=recovered,
        lines_skipped=skipped,
    )
