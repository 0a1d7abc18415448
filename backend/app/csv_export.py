"""Spreadsheet-safe CSV rendering for report exports."""

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

BOM = "\ufeff"

# Leading characters a spreadsheet would evaluate as a formula
_FORMULA_PREFIXES = ("=", "+", "-", "@", "\t", "\r")
_QUOTE_TRIGGERS = (",", '"', "\n", "\r", "'")


@dataclass(frozen=True)
class Column:
    """CSV column: ``key`` looks up the row, ``header`` labels it."""

    key: str
    header: str


def _stringify(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def escape_field(value: Any) -> str:
    """Render one header or cell.

    Formula-looking text gets a leading single quote. Text containing a
    delimiter, quote or line break is wrapped in double quotes with inner
    double quotes doubled. The quoting check looks at the text before the
    formula prefix is added.
    """
    text = _stringify(value)
    needs_quotes = any(ch in text for ch in _QUOTE_TRIGGERS)

    if text.startswith(_FORMULA_PREFIXES):
        text = "'" + text

    if needs_quotes:
        return '"' + text.replace('"', '""') + '"'
    return text


def to_csv(rows: Iterable[Mapping[str, Any]], columns: Sequence[Column]) -> str:
    """Render rows as a BOM-prefixed CSV string.

    Args:
        rows: Mappings keyed by column key; missing keys render empty
        columns: Output columns in order

    Returns:
        CSV text, lines joined by ``\\n`` with no trailing newline
    """
    lines = [",".join(escape_field(column.header) for column in columns)]
    for row in rows:
        lines.append(",".join(escape_field(row.get(column.key)) for column in columns))
    return BOM + "\n".join(lines)
