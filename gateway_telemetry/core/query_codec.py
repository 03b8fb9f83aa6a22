"""QueryStateCodec: filter state <-> flat string-keyed query map.

A key is written only when its value differs from the field default, and
parsing degrades every missing or invalid value to that default. Parsing
never raises.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Generic, Mapping, TypeVar
from urllib.parse import parse_qsl, urlencode

S = TypeVar("S")

Parser = Callable[[str], Any]
Coercer = Callable[[Any], Any]


# ---------------------------------------------------------------------------
# Parsers: persisted string -> value, or None when invalid
# ---------------------------------------------------------------------------

def _to_int(text: str) -> int | None:
    # Unsigned ASCII digits only.
    text = text.strip()
    if not (text.isascii() and text.isdigit()):
        return None
    return int(text)


def enum_parser(allowed: tuple[str, ...]) -> Parser:
    def parse(text: str) -> str | None:
        return text if text in allowed else None
    return parse


def option_parser(allowed: tuple[int, ...]) -> Parser:
    def parse(text: str) -> int | None:
        value = _to_int(text)
        return value if value in allowed else None
    return parse


def bounded_int_parser(low: int, high: int | None = None) -> Parser:
    def parse(text: str) -> int | None:
        value = _to_int(text)
        if value is None or value < low:
            return None
        if high is not None and value > high:
            return None
        return value
    return parse


def parse_non_negative_int(text: str) -> int | None:
    value = _to_int(text)
    return value if value is not None and value >= 0 else None


def parse_id(text: str) -> int | None:
    value = _to_int(text)
    return value if value is not None and value > 0 else None


def parse_bool(text: str) -> bool | None:
    return True if text == "true" else None


def parse_text(text: str) -> str | None:
    stripped = text.strip()
    return stripped or None


def parse_raw_text(text: str) -> str | None:
    return text or None


def parse_iso_date(text: str) -> str | None:
    try:
        return date.fromisoformat(text.strip()).isoformat()
    except ValueError:
        return None


# ---------------------------------------------------------------------------
# Coercers: mutator input -> normalized value (ValueError on caller bugs)
# ---------------------------------------------------------------------------

def enum_coercer(allowed: tuple[str, ...]) -> Coercer:
    def coerce(value: Any) -> str:
        if value not in allowed:
            raise ValueError(f"{value!r} is not one of {list(allowed)}")
        return value
    return coerce


def option_coercer(allowed: tuple[int, ...]) -> Coercer:
    def coerce(value: Any) -> int:
        number = int(value)
        if number not in allowed:
            raise ValueError(f"{value!r} is not one of {list(allowed)}")
        return number
    return coerce


def clamp_coercer(low: int, high: int | None = None, optional: bool = False) -> Coercer:
    """Clamp numeric input into ``[low, high]``; blank input is None when optional."""
    def coerce(value: Any) -> int | None:
        if optional and (value is None or (isinstance(value, str) and not value.strip())):
            return None
        number = int(value)
        if number < low:
            return low
        if high is not None and number > high:
            return high
        return number
    return coerce


def coerce_id(value: Any) -> int | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    number = int(value)
    if number <= 0:
        raise ValueError(f"ID must be a positive integer, got {value!r}")
    return number


def coerce_text(value: Any) -> str | None:
    if value is None:
        return None
    return str(value).strip() or None


def coerce_raw_text(value: Any) -> str:
    return "" if value is None else str(value)


def coerce_bool(value: Any) -> bool:
    return bool(value)


def coerce_iso_date(value: Any) -> str:
    if value is None or value == "":
        return ""
    if isinstance(value, date):
        return value.isoformat()
    return date.fromisoformat(str(value).strip()).isoformat()


# ---------------------------------------------------------------------------
# Query fields and codec
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class QueryField:
    """One persisted filter/view field.

    ``when`` names a governing ``(field, value)`` pair: the key is persisted
    only while the governing field holds that value.
    ``resets_offset`` marks filter dimensions; view dimensions leave
    pagination untouched.
    """
    name: str
    default: Any
    parse: Parser
    coerce: Coercer
    when: tuple[str, Any] | None = None
    resets_offset: bool = True

    def format(self, value: Any) -> str:
        if isinstance(value, bool):
            return "true" if value else "false"
        return str(value)

    def active(self, state: Any) -> bool:
        if self.when is None:
            return True
        governing, expected = self.when
        return getattr(state, governing) == expected


def _parse_or_default(query_field: QueryField, text: str) -> Any:
    value = query_field.parse(text)
    return query_field.default if value is None else value


class QueryStateCodec(Generic[S]):
    """Bidirectional mapping for one screen's filter state."""

    def __init__(self, state_cls: type[S], fields: tuple[QueryField, ...]) -> None:
        self.state_cls = state_cls
        self.fields = fields
        self._by_name = {f.name: f for f in fields}
        declared = {f.name for f in dataclasses.fields(state_cls)}
        missing = declared - set(self._by_name)
        if missing:
            raise ValueError(f"No query field declared for {sorted(missing)}")

    def field(self, name: str) -> QueryField:
        return self._by_name[name]

    def defaults(self) -> S:
        return self.state_cls(**{f.name: f.default for f in self.fields})

    def normalize(self, state: S) -> S:
        """Reset dependent fields whose governing condition does not hold."""
        changes = {
            f.name: f.default
            for f in self.fields
            if not f.active(state) and getattr(state, f.name) != f.default
        }
        return dataclasses.replace(state, **changes) if changes else state

    def serialize(self, state: S) -> dict[str, str]:
        persisted: dict[str, str] = {}
        for query_field in self.fields:
            value = getattr(state, query_field.name)
            if value == query_field.default or value is None or not query_field.active(state):
                continue
            persisted[query_field.name] = query_field.format(value)
        return persisted

    def parse(self, persisted: Mapping[str, Any]) -> S:
        values: dict[str, Any] = {}
        for query_field in self.fields:
            raw = persisted.get(query_field.name)
            if raw is None or isinstance(raw, (list, tuple, dict)):
                values[query_field.name] = query_field.default
                continue
            values[query_field.name] = _parse_or_default(query_field, str(raw))
        return self.normalize(self.state_cls(**values))

    def to_query_string(self, state: S) -> str:
        return urlencode(self.serialize(state))

    def from_query_string(self, query: str) -> S:
        # Last value wins for repeated keys.
        return self.parse(dict(parse_qsl(query.lstrip("?"), keep_blank_values=True)))
