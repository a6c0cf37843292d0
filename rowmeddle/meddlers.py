"""Field meddlers and their registry.

Rowmeddle takes some of the tedium out of moving data back and forth between
SQL queries and Python objects. It is not a complete ORM; it adds some of the
convenience of one while leaving control with the programmer.

A meddler converts a single attribute: ``pre_write`` turns the attribute value
into the value handed to the database driver, and ``post_read`` turns what the
driver returned into the value stored on the object. Meddlers are looked up by
the name given in a field's column tag.
"""

import gzip
import json
import pickle
import re
import types
import typing
import zlib
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone

from .errors import MeddlerError

__all__ = [
    "ZERO_TIME",
    "Meddler",
    "IdentityMeddler",
    "TimeMeddler",
    "ZeroIsNullMeddler",
    "JSONMeddler",
    "PickleMeddler",
    "register",
    "lookup",
]

ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)
"""The zero moment: stored in place of NULL by the ``*z`` time meddlers."""

_GZIP_ERRORS = (OSError, EOFError, zlib.error)


def _unwrap_optional(field_type):
    """Split ``Optional[X]`` into ``(X, True)``; anything else into ``(type, False)``."""
    origin = typing.get_origin(field_type)
    if origin is typing.Union or origin is types.UnionType:
        args = typing.get_args(field_type)
        inner = [arg for arg in args if arg is not type(None)]
        optional = len(inner) < len(args)
        if len(inner) == 1:
            return inner[0], optional
        return field_type, optional
    return field_type, False


def _type_name(value):
    return type(value).__name__


class Meddler(ABC):
    """Converts one attribute between its Python value and its column value."""

    @abstractmethod
    def pre_write(self, value):
        """Return the value to hand to the database for ``value``."""

    @abstractmethod
    def post_read(self, raw, field_type=None):
        """Return the attribute value for ``raw``, as read from the database.

        ``field_type`` is the attribute's annotated type, or None if unknown.
        """


@dataclass(frozen=True)
class IdentityMeddler(Meddler):
    """Passes values through unchanged. The default meddler."""

    def pre_write(self, value):
        return value

    def post_read(self, raw, field_type=None):
        return raw


def _is_zero_time(moment):
    if moment.tzinfo is None or moment.utcoffset() is None:
        return moment == datetime(1, 1, 1)
    return moment == ZERO_TIME


def _as_utc(moment):
    if moment.tzinfo is None or moment.utcoffset() is None:
        return moment.replace(tzinfo=timezone.utc)
    try:
        return moment.astimezone(timezone.utc)
    except OverflowError as exc:
        raise MeddlerError(f"TimeMeddler: cannot convert {moment} to UTC") from exc


_EXTRA_FRACTION = re.compile(r"(\.\d{6})\d+")


def _parse_time(raw):
    if isinstance(raw, datetime):
        return _as_utc(raw)
    if isinstance(raw, (bytes, bytearray, memoryview)):
        raw = bytes(raw).decode("utf-8", errors="replace")
    if not isinstance(raw, str):
        raise MeddlerError(f"TimeMeddler.post_read: cannot read a time from {_type_name(raw)}")
    text = _EXTRA_FRACTION.sub(r"\1", raw.strip())
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        moment = datetime.fromisoformat(text)
    except ValueError as exc:
        raise MeddlerError(f"TimeMeddler.post_read: invalid time {raw!r}") from exc
    return _as_utc(moment)


@dataclass(frozen=True)
class TimeMeddler(Meddler):
    """Stores datetimes in UTC and reads them back in UTC or local time.

    With ``zero_is_null`` the zero moment (:data:`ZERO_TIME`) is written as
    NULL and NULL is read back as the zero moment. Naive datetimes are taken
    to be in UTC.
    """

    zero_is_null: bool = False
    local: bool = False

    def pre_write(self, value):
        if value is None:
            return None
        if not isinstance(value, datetime):
            raise MeddlerError(f"TimeMeddler.pre_write: unknown field type: {_type_name(value)}")
        if self.zero_is_null and _is_zero_time(value):
            return None
        return _as_utc(value)

    def post_read(self, raw, field_type=None):
        optional = False
        if field_type is not None:
            inner, optional = _unwrap_optional(field_type)
            if not (isinstance(inner, type) and issubclass(inner, datetime)):
                raise MeddlerError(f"TimeMeddler.post_read: unknown field type: {field_type!r}")
            if optional and self.zero_is_null:
                raise MeddlerError(
                    "TimeMeddler cannot be used on an optional datetime field, only datetime"
                )
        if raw is None:
            if self.zero_is_null:
                return ZERO_TIME
            if optional or field_type is None:
                return None
            raise MeddlerError("TimeMeddler.post_read: NULL cannot be stored in a datetime field")
        moment = _parse_time(raw)
        try:
            return moment.astimezone() if self.local else moment
        except OverflowError as exc:
            raise MeddlerError(f"TimeMeddler: cannot convert {moment} to local time") from exc


_ZERO_KINDS = (bool, int, float, complex, str)


@dataclass(frozen=True)
class ZeroIsNullMeddler(Meddler):
    """Writes zero numbers, empty strings and False as NULL, and reads NULL back as zero."""

    def pre_write(self, value):
        if isinstance(value, _ZERO_KINDS):
            return None if not value else value
        raise MeddlerError(f"ZeroIsNullMeddler.pre_write: unknown field type: {_type_name(value)}")

    def post_read(self, raw, field_type=None):
        inner, _ = _unwrap_optional(field_type)
        kind = None
        if isinstance(inner, type):
            kind = next((k for k in _ZERO_KINDS if issubclass(inner, k)), None)
        if kind is None:
            raise MeddlerError(f"ZeroIsNullMeddler.post_read: unknown field type: {field_type!r}")
        if raw is None:
            return kind()
        if isinstance(raw, inner):
            return raw
        if kind is str and isinstance(raw, (bytes, bytearray, memoryview)):
            return bytes(raw).decode("utf-8")
        try:
            return kind(raw)
        except (TypeError, ValueError) as exc:
            raise MeddlerError(
                f"ZeroIsNullMeddler.post_read: cannot convert {_type_name(raw)} to {kind.__name__}"
            ) from exc


def _raw_bytes(raw, owner):
    if raw is None:
        raise MeddlerError(f"{owner}.post_read: NULL value")
    if isinstance(raw, str):
        return raw.encode("utf-8")
    if isinstance(raw, (bytes, bytearray, memoryview)):
        return bytes(raw)
    raise MeddlerError(f"{owner}.post_read: cannot decode {_type_name(raw)}")


@dataclass(frozen=True)
class JSONMeddler(Meddler):
    """Stores a value as JSON text, optionally gzip-compressed."""

    compressed: bool = False

    def pre_write(self, value):
        try:
            text = json.dumps(value, separators=(",", ":"), sort_keys=True, allow_nan=False)
        except (TypeError, ValueError) as exc:
            raise MeddlerError(f"JSON encoding error: {exc}") from exc
        data = (text + "\n").encode("utf-8")
        return gzip.compress(data) if self.compressed else data

    def post_read(self, raw, field_type=None):
        data = _raw_bytes(raw, "JSONMeddler")
        if self.compressed:
            try:
                data = gzip.decompress(data)
            except _GZIP_ERRORS as exc:
                raise MeddlerError(f"JSON decoder/gzip error: {exc}") from exc
        try:
            value, _ = json.JSONDecoder().raw_decode(data.decode("utf-8").lstrip())
        except (UnicodeDecodeError, ValueError) as exc:
            raise MeddlerError(f"JSON decode error: {exc}") from exc
        return value


@dataclass(frozen=True)
class PickleMeddler(Meddler):
    """Stores a value pickled, optionally gzip-compressed.

    Reading unpickles the column, so use it only on trusted data.
    """

    compressed: bool = False

    def pre_write(self, value):
        try:
            data = pickle.dumps(value)
        except (pickle.PickleError, TypeError, AttributeError) as exc:
            raise MeddlerError(f"Pickle encoding error: {exc}") from exc
        return gzip.compress(data) if self.compressed else data

    def post_read(self, raw, field_type=None):
        data = _raw_bytes(raw, "PickleMeddler")
        if self.compressed:
            try:
                data = gzip.decompress(data)
            except _GZIP_ERRORS as exc:
                raise MeddlerError(f"Pickle decoder/gzip error: {exc}") from exc
        try:
            return pickle.loads(data)
        except Exception as exc:
            raise MeddlerError(f"Pickle decode error: {exc}") from exc


_registry = {}


def register(name, meddler):
    """Register ``meddler`` under ``name``. The registry is global."""
    if name == "pk":
        raise ValueError("pk cannot be used as a meddler name")
    if not isinstance(meddler, Meddler):
        raise TypeError(f"cannot register {_type_name(meddler)} as a meddler")
    _registry[name] = meddler


def lookup(name):
    """Return the meddler registered under ``name``; raise KeyError if there is none."""
    try:
        return _registry[name]
    except KeyError:
        raise KeyError(f"meddler {name!r} is not registered") from None


register("identity", IdentityMeddler())
register("localtime", TimeMeddler(zero_is_null=False, local=True))
register("localtimez", TimeMeddler(zero_is_null=True, local=True))
register("utctime", TimeMeddler(zero_is_null=False, local=False))
register("utctimez", TimeMeddler(zero_is_null=True, local=False))
register("zeroisnull", ZeroIsNullMeddler())
register("json", JSONMeddler(compressed=False))
register("jsongzip", JSONMeddler(compressed=True))
register("pickle", PickleMeddler(compressed=False))
register("picklegzip", PickleMeddler(compressed=True))