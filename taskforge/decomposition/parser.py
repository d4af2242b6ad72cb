"""Response extractor - pulls a JSON value out of free-form model text.

Models tend to wrap their JSON in prose or Markdown fences. The extractor
takes the span from the first opening delimiter to the last closing one
and parses it. It does not balance brackets: a reply containing several
JSON-like fragments, or braces inside surrounding prose, can mis-extract
and is reported as an ``ExtractionError``. Swap in a stricter scanner by
subclassing and overriding ``locate``.
"""

import json
from enum import Enum
from typing import Any

from loguru import logger

from taskforge.core.errors import ExtractionError


class JsonShape(str, Enum):
    """Top-level JSON value expected in a reply."""

    OBJECT = "object"
    ARRAY = "array"


DELIMITERS: dict[JsonShape, tuple[str, str]] = {
    JsonShape.OBJECT: ("{", "}"),
    JsonShape.ARRAY: ("[", "]"),
}


class ResponseExtractor:
    """
    Extract and parse the JSON payload of a model reply.

    Example:
        >>> extractor = ResponseExtractor()
        >>> extractor.extract('Sure! [{"title": "a"}] Hope this helps.', JsonShape.ARRAY)
        [{'title': 'a'}]
    """

    def locate(self, text: str, shape: JsonShape) -> tuple[int, int]:
        """Find the slice bounds of the JSON payload.

        Args:
            text: Raw reply text.
            shape: Expected top-level value.

        Returns:
            ``(start, end)`` indices, end exclusive.

        Raises:
            ExtractionError: If no opening/closing pair exists.
        """
        opening, closing = DELIMITERS[shape]
        start = text.find(opening)
        end = text.rfind(closing)

        if start == -1 or end == -1 or end < start:
            raise ExtractionError(
                f"Could not locate a JSON {shape.value} in the response "
                f"(looked for '{opening}' ... '{closing}')"
            )
        return start, end + 1

    def extract(self, text: str | None, shape: JsonShape | str) -> Any:
        """Locate, slice and parse the payload.

        Args:
            text: Raw reply text.
            shape: ``"object"`` or ``"array"``.

        Returns:
            The parsed dict or list.

        Raises:
            ExtractionError: If nothing parseable is found.
        """
        shape = JsonShape(shape)
        if not text or not text.strip():
            raise ExtractionError("Response text is empty")

        start, end = self.locate(text, shape)
        snippet = text[start:end]

        try:
            value = json.loads(snippet)
        except json.JSONDecodeError as e:
            raise ExtractionError(
                f"Response JSON {shape.value} is not parseable: {e.msg} "
                f"at line {e.lineno} column {e.colno}"
            ) from e

        logger.debug(
            f"Extracted JSON {shape.value} ({len(snippet)} of {len(text)} chars)"
        )
        return value


def extract_json(text: str | None, shape: JsonShape | str) -> Any:
    """Convenience wrapper around ``ResponseExtractor().extract``."""
    return ResponseExtractor().extract(text, shape)
