"""Loading, inserting, updating and querying dataclass records.

Every function takes a DB-API connection (anything with a ``cursor()``
method) and an optional :class:`~rowmeddle.database.Database` dialect. When
no dialect is given, the current default is used.
"""

from .database import get_default
from .errors import DriverError, MeddlerError, NoRowsError

__all__ = ["load", "insert", "update", "save", "query_row", "query_all"]


def _resolve(database):
    return database if database is not None else get_default()


def _execute(conn, query, params, message=None):
    """Run ``query`` on a fresh cursor and return the cursor.

    Driver errors are wrapped in :class:`DriverError` carrying ``message``;
    with no message they propagate unchanged.
    """
    cursor = conn.cursor()
    try:
        cursor.execute(query, list(params))
    except Exception as exc:
        cursor.close()
        if message is None:
            raise
        raise DriverError(message, exc) from exc
    return cursor


def load(conn, table, dst, pk, database=None):
    """Load the row of ``table`` whose primary key is ``pk`` into ``dst``.

    Returns ``dst``. Raises NoRowsError if there is no such row.
    """
    db = _resolve(database)
    columns = db.columns_quoted(dst, True)
    pk_name, _ = db.primary_key(dst)
    if pk_name is None:
        raise MeddlerError("load: no primary key field found")

    query = (
        f"SELECT {columns} FROM {db.quoted_table(table)} "
        f"WHERE {db.quoted(pk_name)} = {db.placeholder_for(1)}"
    )
    cursor = _execute(conn, query, [pk], "load: DB error in query")
    return db.scan_row(cursor, dst)


def _fetch_returned_pk(conn, query, values):
    cursor = _execute(conn, query, values, "insert: DB error in query")
    try:
        row = cursor.fetchone()
    except Exception as exc:
        raise DriverError("insert: DB error in query", exc) from exc
    finally:
        cursor.close()
    if row is None:
        raise DriverError("insert: DB error in query", NoRowsError())
    return row[0]


def _fetch_last_row_id(conn, query, values):
    cursor = _execute(conn, query, values, "insert: DB error in execute")
    try:
        new_pk = cursor.lastrowid
    finally:
        cursor.close()
    if new_pk is None:
        raise DriverError(
            "insert: DB error getting new primary key value",
            MeddlerError("the driver reported no row id"),
        )
    return new_pk


def insert(conn, table, src, database=None):
    """INSERT ``src`` into ``table`` and return it.

    A primary key attribute must be zero; it is set to the key the database
    allocated for the new row.
    """
    db = _resolve(database)
    pk_name, pk_value = db.primary_key(src)
    if pk_name is not None and pk_value != 0:
        raise MeddlerError("insert: primary key must be zero")

    names = db.columns_quoted(src, False)
    placeholders = db.placeholders_string(src, False)
    values = db.values(src, False)
    query = f"INSERT INTO {db.quoted_table(table)} ({names}) VALUES ({placeholders})"

    if pk_name is None:
        _execute(conn, query, values, "insert: DB error in execute").close()
        return src

    if db.use_returning_to_get_id:
        new_pk = _fetch_returned_pk(conn, f"{query} RETURNING {db.quoted(pk_name)}", values)
    else:
        new_pk = _fetch_last_row_id(conn, query, values)

    try:
        db.set_primary_key(src, new_pk)
    except (MeddlerError, TypeError, ValueError) as exc:
        raise MeddlerError(f"insert: error saving updated pk: {exc}") from exc
    return src


def update(conn, table, src, database=None):
    """UPDATE the row of ``table`` selected by the primary key of ``src``.

    The primary key must be an integer greater than zero. Returns ``src``.
    """
    db = _resolve(database)
    names = db.columns(src, False)
    placeholders = db.placeholders(src, False)
    values = db.values(src, False)
    pairs = ",".join(f"{db.quoted(name)}={ph}" for name, ph in zip(names, placeholders))

    pk_name, pk_value = db.primary_key(src)
    if pk_name is None:
        raise MeddlerError("update: no primary key field")
    if pk_value < 1:
        raise MeddlerError("update: primary key must be an integer > 0")

    where = db.placeholder_for(len(placeholders) + 1)
    query = (
        f"UPDATE {db.quoted_table(table)} SET {pairs} "
        f"WHERE {db.quoted(pk_name)}={where}"
    )
    _execute(conn, query, [*values, pk_value], "update: DB error in execute").close()
    return src


def save(conn, table, src, database=None):
    """UPDATE ``src`` if it has a non-zero primary key, otherwise INSERT it."""
    db = _resolve(database)
    pk_name, pk_value = db.primary_key(src)
    if pk_name is not None and pk_value != 0:
        return update(conn, table, src, db)
    return insert(conn, table, src, db)


def query_row(conn, dst, query, args=(), database=None):
    """Run ``query`` and read its single result row into ``dst``.

    Returns ``dst``. Raises NoRowsError if there was no result row.
    """
    db = _resolve(database)
    cursor = _execute(conn, query, args)
    return db.scan_row(cursor, dst)


def query_all(conn, cls, query, args=(), database=None):
    """Run ``query`` and return every result row as a new ``cls`` instance."""
    db = _resolve(database)
    cursor = _execute(conn, query, args)
    return db.scan_all(cursor, cls)