"""
Best-effort cleanup of generated text before JSON parsing.

The normalizer is a sanitisation layer, not a parser: its output is usually
valid JSON but that is not guaranteed. Validation happens in parsing.py.
"""

import json
import re
from typing import Iterator

_FENCE = re.compile(r"```[ \t]*(?:json|JSON)?[ \t]*")
_JSON_SPAN = re.compile(r"\{.*\}", re.DOTALL)
_STRING_LITERAL = re.compile(r'"(?:[^"\\]|\\.)*"', re.DOTALL)
_LINE_BREAKS = re.compile(r"[\n\r\t]")

_TRAILING_COMMA = re.compile(r",\s*([}\]])")
_SPACE_AFTER_PUNCT = re.compile(r"([{\[,:])\s+")
_SPACE_BEFORE_PUNCT = re.compile(r"\s+([}\],:])")


def _tidy_structure(segment: str) -> str:
    previous = None
    while previous != segment:
        previous = segment
        segment = _TRAILING_COMMA.sub(r"\1", segment)
    segment = _SPACE_AFTER_PUNCT.sub(r"\1", segment)
    return _SPACE_BEFORE_PUNCT.sub(r"\1", segment)


def _apply_outside_strings(text: str, fn) -> str:
    """Run fn over the parts of text that are not JSON string literals."""
    parts = []
    last = 0
    for match in _STRING_LITERAL.finditer(text):
        parts.append(fn(text[last:match.start()]))
        parts.append(match.group(0))
        last = match.end()
    parts.append(fn(text[last:]))
    return "".join(parts)


def _clean(text: str) -> str:
    text = _LINE_BREAKS.sub(" ", text).strip()
    return _apply_outside_strings(text, _tidy_structure)


def _balanced_spans(text: str) -> Iterator[str]:
    """Yield each balanced {...} span, in order of its opening brace."""
    for opening in re.finditer(r"\{", text):
        depth = 0
        in_string = False
        escaped = False
        for i in range(opening.start(), len(text)):
            ch = text[i]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
            elif ch == '"':
                in_string = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    yield text[opening.start():i + 1]
                    break


def strip_code_fences(text: str) -> str:
    """Remove markdown code-fence markers."""
    return _FENCE.sub("", text)


def extract_json_span(text: str) -> str:
    """
    Pick the JSON object out of surrounding prose.

    Returns the first balanced {...} span that decodes once cleaned, so
    braces in prose before or after the payload are skipped. If no span
    decodes, falls back to the first-{ to last-} span, then to the text.
    """
    for span in _balanced_spans(text):
        try:
            json.loads(_clean(span))
        except ValueError:
            continue
        return span
    match = _JSON_SPAN.search(text)
    return match.group(0) if match else text


def normalize_response(text: str) -> str:
    """
    Normalize raw generated text into best-effort JSON.

    Steps:
        1. Drop code-fence markers
        2. Keep only the JSON object span, if present
        3. Collapse newlines and tabs to spaces
        4. Strip trailing commas before } or ]
        5. Trim whitespace around structural punctuation

    Steps 4 and 5 leave string literals untouched, so normalizing
    already-normalized text returns it unchanged.

    Args:
        text: Raw generated text

    Returns:
        Cleaned text, ready for json.loads (validity not guaranteed)
    """
    if not text:
        return ""
    text = strip_code_fences(text)
    text = extract_json_span(text)
    return _clean(text)
