"""Multiple-choice option storage format.

Options are stored as one text column.  Current rows hold a compact JSON
array, but older rows were written in several other shapes: a JSON array
that was serialized twice (a JSON string containing an array), or a bare
comma-separated list with stray brackets and quotes.  ``parse_options``
recognizes each shape explicitly and reports which one it saw, so callers
and tests can tell a legacy row from a current one.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from enum import Enum

from enrollment.services.errors import ValidationError

MAX_OPTION_LENGTH = 500

_EDGE_BRACKETS = re.compile(r"^\[|\]$")
_EDGE_QUOTES = re.compile(r'^"|"$')


class OptionsFormat(str, Enum):
    EMPTY = "empty"
    JSON_ARRAY = "json_array"
    NESTED_JSON = "nested_json"
    LEGACY_CSV = "legacy_csv"


@dataclass(frozen=True, slots=True)
class ParsedOptions:
    format: OptionsFormat
    items: tuple[str, ...]


def _keep_strings(values: list) -> tuple[str, ...]:
    # JSON arrays keep their entries as written; only blanks are dropped.
    return tuple(v for v in values if isinstance(v, str) and v.strip())


def _split_legacy(raw: str, *, strip_quotes: bool) -> tuple[str, ...]:
    text = _EDGE_BRACKETS.sub("", raw.strip())
    if strip_quotes:
        text = _EDGE_QUOTES.sub("", text)
    text = text.replace('"', "")
    return tuple(part.strip() for part in text.split(",") if part.strip())


def parse_options(raw: str | None) -> ParsedOptions:
    """Decode a stored options value.  Never raises."""
    if raw is None or not raw.strip():
        return ParsedOptions(OptionsFormat.EMPTY, ())
    raw = raw.strip()

    try:
        decoded = json.loads(raw)
    except ValueError:
        return ParsedOptions(
            OptionsFormat.LEGACY_CSV, _split_legacy(raw, strip_quotes=True)
        )

    if isinstance(decoded, list):
        return ParsedOptions(OptionsFormat.JSON_ARRAY, _keep_strings(decoded))

    if isinstance(decoded, str):
        try:
            inner = json.loads(decoded)
        except ValueError:
            return ParsedOptions(
                OptionsFormat.LEGACY_CSV, _split_legacy(decoded, strip_quotes=False)
            )
        if isinstance(inner, list):
            return ParsedOptions(OptionsFormat.NESTED_JSON, _keep_strings(inner))
        return ParsedOptions(OptionsFormat.NESTED_JSON, ())

    # A number, object, boolean or null carries no options.
    return ParsedOptions(OptionsFormat.EMPTY, ())


def options_list(raw: str | None) -> list[str]:
    return list(parse_options(raw).items)


def stringify_options(options: list[str] | None) -> str | None:
    """Serialize to the current storage shape, or None when nothing remains."""
    if not options:
        return None
    cleaned = [o.strip() for o in options if isinstance(o, str) and o.strip()]
    if not cleaned:
        return None
    return json.dumps(cleaned, ensure_ascii=False, separators=(",", ":"))


def validate_options(options) -> list[str]:
    """Check author-supplied options before they are stored.

    Returns the options unchanged; raises ValidationError on the first
    problem found.
    """
    if not isinstance(options, list) or not options:
        raise ValidationError("Options must be a non-empty list")
    for i, option in enumerate(options):
        if not isinstance(option, str):
            raise ValidationError(f"Option {i + 1} must be a string")
        if not option.strip():
            raise ValidationError(f"Option {i + 1} must not be blank")
        if len(option) > MAX_OPTION_LENGTH:
            raise ValidationError(
                f"Option {i + 1} exceeds {MAX_OPTION_LENGTH} characters"
            )
    return options
