# rowmeddle

A small toolkit that takes the tedium out of moving data between SQL
queries and Python dataclasses. It is not an ORM: you write the SQL and
manage connections and transactions yourself. rowmeddle builds the
repetitive `INSERT`, `UPDATE` and `SELECT ... WHERE pk = ?` statements and
copies column values into and out of your objects.

It works with any DB-API 2.0 connection (anything with a `cursor()`
method), such as one from `sqlite3`. It has no dependencies outside the
standard library.

## Installing

```
pip install rowmeddle
```

## Describing a record

Records are dataclasses. Each field can carry a tag, given with
`rowmeddle.fields.column(tag, **kwargs)`, written as `"name,option,option"`;
other keyword arguments go to `dataclasses.field` unchanged.

- The first part is the column name. Leave it empty to derive the name
  from the field name through the current mapper.
- `pk` marks the primary key. It must be annotated as a plain `int`
  (not optional), and there may be only one.
- Any other option names a registered meddler, which converts the value
  on its way to and from the database.
- A tag of `"-"` leaves the field out entirely.

Fields without a tag are mapped by name, and fields whose names start
with an underscore are never mapped. Two fields mapping to the same
column, or an unknown meddler name, raise `MeddlerError`.

```python
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from rowmeddle.fields import column


@dataclass
class Person:
    id: int = column("id,pk", default=0)
    name: str = column("name", default="")
    email: str = column("", default="")
    age: int = column(",zeroisnull", default=0)
    opened: Optional[datetime] = column("opened,utctime", default=None)
    scratch: int = column("-", default=0)
```

Meddlers read the field's annotation, so annotate with real types rather
than strings (avoid `from __future__ import annotations` on record
classes).

`rowmeddle.fields.get_fields(cls)` returns the gathered `StructInfo`
(columns in declaration order, a `FieldInfo` per column, and the primary
key column). Results are cached per class; call `clear_cache()` after
changing the mapper.

## Meddlers

Registered by default:

| name | meddler | behaviour |
| --- | --- | --- |
| `identity` | `IdentityMeddler()` | passes values through; the default |
| `utctime` | `TimeMeddler()` | writes datetimes in UTC, reads them in UTC |
| `utctimez` | `TimeMeddler(zero_is_null=True)` | as above, and `ZERO_TIME` is stored as NULL |
| `localtime` | `TimeMeddler(local=True)` | writes in UTC, reads in local time |
| `localtimez` | `TimeMeddler(zero_is_null=True, local=True)` | as above, with `ZERO_TIME` as NULL |
| `zeroisnull` | `ZeroIsNullMeddler()` | `0`, `0.0`, `0j`, `""` and `False` stored as NULL and read back as zero |
| `json` | `JSONMeddler()` | stores the value as JSON |
| `jsongzip` | `JSONMeddler(compressed=True)` | JSON, gzip-compressed |
| `pickle` | `PickleMeddler()` | stores the value pickled |
| `picklegzip` | `PickleMeddler(compressed=True)` | pickled, gzip-compressed |

Naive datetimes are taken to be in UTC. The `*z` time meddlers may only
be used on non-optional `datetime` fields. The pickle meddlers unpickle
what they read, so use them only on trusted data.

Your own meddlers subclass `rowmeddle.meddlers.Meddler`, implement
`pre_write(value)` and `post_read(raw, field_type=None)`, and are made
available to tags with `rowmeddle.meddlers.register(name, meddler)`.
The name `pk` is reserved. `lookup(name)` returns a registered meddler.

## Loading and saving

```python
import sqlite3

from rowmeddle.database import SQLITE
from rowmeddle.loadsave import load, query_all, save

conn = sqlite3.connect(":memory:")
conn.execute(
    "create table person (id integer primary key, name text, "
    "email text, age integer, opened datetime)"
)

alice = Person(name="Alice", email="alice@example.com", age=32)
save(conn, "person", alice, database=SQLITE)   # INSERT; alice.id is filled in
alice.age = 33
save(conn, "person", alice, database=SQLITE)   # UPDATE, since id is non-zero

again = load(conn, "person", Person(), alice.id, database=SQLITE)

people = query_all(conn, Person, "select * from person", (), database=SQLITE)
```

All functions live in `rowmeddle.loadsave`:

- `load(conn, table, dst, pk, database=None)` fills `dst` from the row
  with that primary key and returns it.
- `insert(conn, table, src, database=None)` requires a zero primary key
  and sets it to the key the database allocated (read via `lastrowid`, or
  via `RETURNING` when the dialect asks for it).
- `update(conn, table, src, database=None)` requires a primary key
  greater than zero.
- `save(conn, table, src, database=None)` updates when the primary key is
  non-zero and inserts otherwise.
- `query_row(conn, dst, query, args=(), database=None)` reads the single
  result row of any query into `dst`.
- `query_all(conn, cls, query, args=(), database=None)` returns every
  result row as a new `cls` instance.

Table names may carry a schema (`schema.table`); each part is quoted.
Result columns that have no matching field are ignored, and logged at
debug level on the `rowmeddle.database` logger.

## Database dialects

A `rowmeddle.database.Database` holds the quote character for names, the
placeholder style, and whether new keys are read back with `RETURNING`.
Three are provided: `MYSQL` (`` ` `` and `?`), `POSTGRESQL` (`"`, `$1`,
`$2`, ... and `RETURNING`) and `SQLITE` (`"` and `?`). The process-wide
default, initially `MYSQL`, is read with `get_default()` and replaced with
`set_default(database)`.

Its methods are the building blocks the load and save helpers use, for
when you write your own statements: `quoted`, `quoted_table`,
`placeholder_for`, `columns`, `columns_quoted`, `placeholders`,
`placeholders_string`, `values`, `some_values`, `primary_key`,
`set_primary_key`, `write_row`, `scan` (next row, cursor left open),
`scan_row` (one row, cursor closed) and `scan_all` (all rows, cursor
closed).

## Column names

By default a field with no explicit column name maps to a column of the
same name. Change this with `rowmeddle.mapper.set_mapper`, for example to
`rowmeddle.mapper.snake_case` (`UserID` becomes `user_id`) or
`rowmeddle.mapper.lower_case`. `get_mapper()` returns the current one.

## Errors

Failures raise `rowmeddle.errors.MeddlerError`. When the database itself
reported the problem during `load`, `insert` or `update`, a `DriverError`
is raised, and `rowmeddle.errors.driver_err(err)` returns
`(original_exception, True)` for it and `(err, False)` for anything else.
Errors from `query_row` and `query_all` queries propagate unchanged. A
query that returns no row where one was required raises `NoRowsError`,
which is also a `LookupError`.

## What it does not do

rowmeddle does not open or pool connections, create or migrate tables,
manage transactions, or build queries beyond the single-row statements
above. Relations between records are left to your own SQL.

## Running the tests

```
pip install -e ".[test]"
pytest
```