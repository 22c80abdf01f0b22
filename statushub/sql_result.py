"""Row-by-row access to query results and MySQL time conversions."""

from __future__ import annotations

import datetime as _dt
import re
import time
from collections.abc import Callable, Iterator, Sequence
from typing import Any

DEFAULT_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"

_INT_PREFIX = re.compile(r"\s*[+-]?\d+")
_FLOAT_PREFIX = re.compile(r"\s*[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?")


def mysql_time_to_timestamp(mt: _dt.datetime | _dt.date) -> int:
    """Interpret a MySQL date/time as local time; times before the epoch give 0."""
    if not isinstance(mt, _dt.datetime):
        mt = _dt.datetime(mt.year, mt.month, mt.day)
    fields = (mt.year, mt.month, mt.day, mt.hour, mt.minute, mt.second, 0, 0, -1)
    try:
        ts = int(time.mktime(fields))
    except (OverflowError, ValueError):
        return 0
    return max(ts, 0)


def timestamp_to_mysql_time(ts: float) -> _dt.datetime:
    """Return the local date and time of ``ts``, to the second."""
    return _dt.datetime.fromtimestamp(ts).replace(microsecond=0)


def time2str(ts: float, fmt: str = DEFAULT_TIME_FORMAT) -> str:
    """Format ``ts`` as local time."""
    return time.strftime(fmt, time.localtime(ts))


def str2time(text: str, fmt: str = DEFAULT_TIME_FORMAT) -> int:
    """Parse local time text into a timestamp; unparsable text gives 0."""
    try:
        parsed = time.strptime(text, fmt)
    except ValueError:
        return 0
    fields = tuple(parsed)[:8] + (-1,)
    return int(time.mktime(fields))


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", errors="replace")
    return str(value)


class QueryResult:
    """A stored result set read one row at a time through a cursor."""

    def __init__(self, rows: Sequence[Sequence[Any]] = (), errno: int = 0, errstr: str = "") -> None:
        self._rows = [tuple(row) for row in rows]
        self._pos = 0
        self._current: tuple | None = None
        self.errno = errno
        self.errstr = errstr

    def _advance(self) -> tuple | None:
        if self._pos < len(self._rows):
            self._current = self._rows[self._pos]
            self._pos += 1
        else:
            self._current = None
        return self._current

    def _value(self, idx: int) -> Any:
        if self._current is None:
            raise LookupError("no current row; call next() first")
        return self._current[idx]

    def _non_null(self, idx: int) -> Any:
        value = self._value(idx)
        if value is None:
            raise ValueError(f"column {idx} is NULL")
        return value

    def next(self) -> bool:
        """Move to the next row; False once the rows are exhausted."""
        return self._advance() is not None

    def data_count(self) -> int:
        """Return the number of rows."""
        return len(self._rows)

    def column_count(self) -> int:
        """Return the number of columns."""
        return len(self._rows[0]) if self._rows else 0

    def column_bytes(self, idx: int) -> int:
        """Return the length of a column's value in the current row."""
        value = self._value(idx)
        if value is None:
            return 0
        if isinstance(value, (bytes, bytearray)):
            return len(value)
        return len(_text(value).encode("utf-8"))

    def is_null(self, idx: int) -> bool:
        """Report whether a column of the current row is NULL."""
        return self._value(idx) is None

    def get_int(self, idx: int) -> int:
        """Return a column as an integer, reading any leading digits of text."""
        value = self._non_null(idx)
        if isinstance(value, bool):
            return int(value)
        if isinstance(value, int):
            return value
        if isinstance(value, float):
            return int(value)
        match = _INT_PREFIX.match(_text(value))
        return int(match.group()) if match else 0

    def get_float(self, idx: int) -> float:
        """Return a column as a float, reading any leading number of text."""
        value = self._non_null(idx)
        if isinstance(value, (int, float)):
            return float(value)
        match = _FLOAT_PREFIX.match(_text(value))
        return float(match.group()) if match else 0.0

    def get_string(self, idx: int) -> str:
        """Return a column as text; NULL reads as ''."""
        return _text(self._value(idx))

    def get_blob(self, idx: int) -> bytes:
        """Return a column as raw bytes; NULL reads as b''."""
        value = self._value(idx)
        if value is None:
            return b""
        if isinstance(value, (bytes, bytearray)):
            return bytes(value)
        return _text(value).encode("utf-8")

    def get_time(self, idx: int) -> int:
        """Return a date/time column as a timestamp; NULL reads as 0."""
        value = self._value(idx)
        if value is None:
            return 0
        if isinstance(value, (_dt.datetime, _dt.date)):
            return mysql_time_to_timestamp(value)
        return str2time(_text(value))

    def foreach(self, callback: Callable[[tuple, int, int], Any]) -> bool:
        """Call ``callback(row, field_count, row_no)`` for the remaining rows.

        Stops early when the callback returns a false value.
        """
        fields = self.column_count()
        for row_no, row in enumerate(self):
            if not callback(row, fields, row_no):
                break
        return True

    def __iter__(self) -> Iterator[tuple]:
        while (row := self._advance()) is not None:
            yield row