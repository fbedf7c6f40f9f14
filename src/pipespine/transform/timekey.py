"""Time-key resolution: which column is the time axis."""

from __future__ import annotations

from collections.abc import Sequence

from pipespine.transform.types import ColumnMeta, TypeKind


def resolve_time_key(explicit_key: str | None, meta: Sequence[ColumnMeta]) -> str | None:
    """Return the time key for a response.

    A non-empty ``explicit_key`` wins verbatim; the caller checks it against
    ``meta``. Otherwise the first temporal column in ``meta`` order is used,
    and ``None`` means the response has no temporal column at all.
    """
    if explicit_key:
        return explicit_key

    for column in meta:
        if column.kind is TypeKind.TEMPORAL:
            return column.name

    return None
