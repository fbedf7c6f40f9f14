"""
Time-range template variables in pipe parameters.

Dashboards write parameter values such as ``${__from:date:seconds}`` or
``${__to:date:YYYY-MM-DD}``. Before the pipe is called, every value that
mentions ``__from`` or ``__to`` is replaced by the matching boundary of the
requested time range, rendered in the format the placeholder asks for.

Rules (first match wins):
    ============================  =======================================
    Placeholder                   Rendering
    ============================  =======================================
    ``${__from}``                 ``str(datetime)``
    ``${__from:date}``            RFC 3339, e.g. ``2024-01-15T10:30:00Z``
    ``${__from:date:iso}``        RFC 3339
    ``${__from:date:seconds}``    Unix epoch seconds
    ``${__from:date:YYYY-MM}``    Custom pattern (YYYY MM DD HH mm ss)
    ============================  =======================================

Examples:
    >>> from datetime import datetime, UTC
    >>> boundary = datetime(2024, 1, 15, 10, 30, tzinfo=UTC)
    >>> expand_time_variable("${__from:date:seconds}", boundary)
    '1705314600'
    >>> expand_time_variable("${__from:date:YYYY-MM-DD}", boundary)
    '2024-01-15'
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from datetime import UTC, datetime, timedelta

from pipespine.core.errors import ValidationError

FROM_MARKER = "__from"
TO_MARKER = "__to"

_FORMAT_TOKEN_RE = re.compile(r"date:(.*)\}")
_PATTERN_TOKENS = {
    "YYYY": "%Y",
    "MM": "%m",
    "DD": "%d",
    "HH": "%H",
    "mm": "%M",
    "ss": "%S",
}
_PATTERN_RE = re.compile("|".join(_PATTERN_TOKENS))


def format_rfc3339(value: datetime) -> str:
    """RFC 3339 at second precision, ``Z`` for UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    if value.utcoffset() == timedelta(0):
        return value.strftime("%Y-%m-%dT%H:%M:%SZ")
    return value.isoformat(timespec="seconds")


def translate_pattern(pattern: str) -> str:
    """Translate a ``YYYY-MM-DD HH:mm:ss`` style pattern to strftime syntax."""
    escaped = pattern.replace("%", "%%")
    return _PATTERN_RE.sub(lambda m: _PATTERN_TOKENS[m.group(0)], escaped)


def expand_time_variable(placeholder: str, boundary: datetime) -> str:
    """Render ``boundary`` the way ``placeholder`` asks for.

    Raises:
        ValidationError: The placeholder names a custom format but no
            ``date:<pattern>}`` token can be found in it.
    """
    if boundary.tzinfo is None:
        boundary = boundary.replace(tzinfo=UTC)

    if ":" not in placeholder:
        return str(boundary)
    if placeholder.endswith(":date}") or placeholder.endswith(":date:iso}"):
        return format_rfc3339(boundary)
    if placeholder.endswith(":date:seconds}"):
        return str(int(boundary.timestamp()))

    match = _FORMAT_TOKEN_RE.search(placeholder)
    if match is None:
        raise ValidationError(
            f"unsupported time variable format: {placeholder}",
            value=placeholder,
        )
    return boundary.strftime(translate_pattern(match.group(1)))


def expand_params(
    params: Mapping[str, str] | None,
    start: datetime,
    end: datetime,
) -> dict[str, str]:
    """Build the outgoing query parameters for a pipe call.

    Values are trimmed and empty ones dropped. A value mentioning ``__from``
    is replaced by the rendered start boundary, one mentioning ``__to`` by
    the end boundary; everything else passes through unchanged.
    """
    expanded: dict[str, str] = {}

    for key, raw in (params or {}).items():
        value = str(raw).strip()
        if not value:
            continue

        if FROM_MARKER in value:
            try:
                value = expand_time_variable(value, start)
            except ValidationError as exc:
                raise exc.with_context(param=key)
        elif TO_MARKER in value:
            try:
                value = expand_time_variable(value, end)
            except ValidationError as exc:
                raise exc.with_context(param=key)

        expanded[key] = value

    return expanded
