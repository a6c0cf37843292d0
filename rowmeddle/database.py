"""Database dialects and the row/object plumbing built on column metadata."""

import dataclasses
import logging
from dataclasses import dataclass

from .errors import MeddlerError, NoRowsError
from .fields import get_fields

__all__ = ["Database", "MYSQL", "POSTGRESQL", "SQLITE", "get_default", "set_default"]

logger = logging.getLogger(__name__)


def _info(obj):
    return get_fields(type(obj))


def _blank(cls):
    """Create an instance of dataclass ``cls`` holding only its defaults."""
    obj = object.__new__(cls)
    for field in dataclasses.fields(cls):
        if field.default is not dataclasses.MISSING:
            value = field.default
        elif field.default_factory is not dataclasses.MISSING:
            value = field.default_factory()
        else:
            value = None
        object.__setattr__(obj, field.name, value)
    return obj


@dataclass(frozen=True)
class Database:
    """Dialect options: identifier quote, placeholder style, key retrieval."""

    quote: str = "`"
    placeholder: str = "?"
    use_returning_to_get_id: bool = False

    def quoted(self, name):
        """Return ``name`` wrapped in the quote character."""
        return f"{self.quote}{name}{self.quote}"

    def quoted_table(self, table):
        """Quote a table name, quoting each part of ``schema.table`` separately."""
        return ".".join(self.quoted(part) for part in table.split("."))

    def placeholder_for(self, n):
        """Return the placeholder for the ``n``-th parameter (1-based)."""
        return self.placeholder.replace("1", str(n), 1)

    def columns(self, src, include_pk):
        """Return the column names of ``src``, optionally without the primary key."""
        info = _info(src)
        return [name for name in info.columns if include_pk or name != info.pk]

    def columns_quoted(self, src, include_pk):
        """Return the quoted column names of ``src`` joined by commas."""
        return ",".join(self.quoted(name) for name in self.columns(src, include_pk))

    def primary_key(self, src):
        """Return ``(column, value)`` of the primary key, or ``(None, 0)`` if none."""
        info = _info(src)
        if info.pk is None:
            return None, 0
        value = getattr(src, info.fields[info.pk].attribute)
        if not isinstance(value, int) or isinstance(value, bool):
            raise MeddlerError(
                f"found field {info.pk} which is marked as the primary key, "
                "but is not an integer"
            )
        return info.pk, int(value)

    def set_primary_key(self, src, pk):
        """Store ``pk`` in the primary key attribute of ``src``."""
        info = _info(src)
        if info.pk is None:
            raise MeddlerError("set_primary_key: no primary key field found")
        setattr(src, info.fields[info.pk].attribute, int(pk))

    def values(self, src, include_pk):
        """Return the written values of ``src`` in the order of :meth:`columns`."""
        return self.some_values(src, self.columns(src, include_pk))

    def some_values(self, src, columns):
        """Return the written values of ``src`` for the given ``columns``.

        A column with no matching attribute gets NULL.
        """
        info = _info(src)
        values = []
        for name in columns:
            field = info.fields.get(name)
            if field is None:
                logger.debug("some_values: column [%s] not found in object", name)
                values.append(None)
                continue
            try:
                values.append(field.meddler.pre_write(getattr(src, field.attribute)))
            except MeddlerError as exc:
                raise MeddlerError(
                    f"some_values: pre_write error on column [{name}]: {exc}"
                ) from exc
        return values

    def placeholders(self, src, include_pk):
        """Return one placeholder per column of ``src``."""
        count = len(self.columns(src, include_pk))
        return [self.placeholder_for(n) for n in range(1, count + 1)]

    def placeholders_string(self, src, include_pk):
        """Return the placeholders of ``src`` joined by commas."""
        return ",".join(self.placeholders(src, include_pk))

    def write_row(self, dst, columns, row):
        """Read ``row`` (values matching ``columns``) into ``dst`` and return it.

        Columns with no matching attribute are ignored.
        """
        row = tuple(row)
        if len(columns) != len(row):
            raise MeddlerError(
                f"write_row: mismatch in number of columns ({len(columns)}) "
                f"and values ({len(row)})"
            )
        info = _info(dst)
        for name, raw in zip(columns, row):
            field = info.fields.get(name)
            if field is None:
                logger.debug("write_row: column [%s] not found in object", name)
                continue
            try:
                value = field.meddler.post_read(raw, field.type)
            except MeddlerError as exc:
                raise MeddlerError(
                    f"write_row: post_read error on column [{name}]: {exc}"
                ) from exc
            setattr(dst, field.attribute, value)
        return dst

    @staticmethod
    def _cursor_columns(cursor):
        if cursor.description is None:
            raise MeddlerError("the cursor has no result columns")
        return [entry[0] for entry in cursor.description]

    def scan(self, cursor, dst):
        """Read the next row of ``cursor`` into ``dst`` and return it.

        The cursor is left open for further rows. Raises NoRowsError when
        there is no row left.
        """
        _info(dst)
        columns = self._cursor_columns(cursor)
        row = cursor.fetchone()
        if row is None:
            raise NoRowsError()
        return self.write_row(dst, columns, row)

    def scan_row(self, cursor, dst):
        """Read exactly one row into ``dst`` and close the cursor."""
        try:
            return self.scan(cursor, dst)
        finally:
            cursor.close()

    def scan_all(self, cursor, cls):
        """Read every remaining row into new ``cls`` instances; close the cursor."""
        try:
            get_fields(cls)
            columns = self._cursor_columns(cursor)
            return [self.write_row(_blank(cls), columns, row) for row in cursor]
        finally:
            cursor.close()


MYSQL = Database(quote="`", placeholder="?", use_returning_to_get_id=False)
POSTGRESQL = Database(quote='"', placeholder="$1", use_returning_to_get_id=True)
SQLITE = Database(quote='"', placeholder="?", use_returning_to_get_id=False)

_default = MYSQL


def get_default():
    """Return the dialect used when none is given. Initially MySQL."""
    return _default


def set_default(database):
    """Use ``database`` as the dialect when none is given."""
    global _default
    if not isinstance(database, Database):
        raise TypeError("default must be a Database")
    _default = database