import sqlite3
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

import pytest

from rowmeddle.database import POSTGRESQL, SQLITE
from rowmeddle.errors import DriverError, MeddlerError, NoRowsError, driver_err
from rowmeddle.fields import column
from rowmeddle.loadsave import insert, load, query_all, query_row, save, update
from rowmeddle.meddlers import ZERO_TIME

WHEN = datetime(2013, 6, 23, 15, 30, 12, tzinfo=timezone.utc)

SCHEMAS = [
    """create table person (
        id integer primary key,
        name text not null,
        email text not null,
        age integer,
        opened datetime not null,
        closed datetime,
        updated datetime,
        height integer
    )""",
    """create table item (
        id integer primary key,
        stuff text not null,
        stuffz blob not null
    )""",
    """create table null_item (
        id integer primary key,
        nullint integer null,
        nullstring text null,
        nullcomplex real null,
        nullfloat real null,
        nullbool integer null
    )""",
]


@dataclass
class Person:
    id: int = column("id,pk", default=0)
    name: str = column("name", default="")
    _private: int = 0
    email: str = ""
    ephemeral: int = column("-", default=0)
    age: int = column(",zeroisnull", default=0)
    opened: datetime = column("opened,utctime", default=ZERO_TIME)
    closed: datetime = column("closed,utctimez", default=ZERO_TIME)
    updated: Optional[datetime] = column("updated,localtime", default=None)
    height: Optional[int] = column("height", default=None)


@dataclass
class HalfPerson:
    id: int = column("id,pk", default=0)
    _private: int = 0
    ephemeral: int = column("-", default=0)
    age: int = column(",zeroisnull", default=0)
    closed: datetime = column("closed,utctimez", default=ZERO_TIME)
    updated: Optional[datetime] = column("updated,localtime", default=None)


@dataclass
class PersonWithoutPK:
    name: str = ""


@dataclass
class ItemJson:
    id: int = column("id,pk", default=0)
    stuff: dict = column("stuff,json", default_factory=dict)
    stuffz: dict = column("stuffz,jsongzip", default_factory=dict)


@dataclass
class ItemPickle:
    id: int = column("id,pk", default=0)
    stuff: dict = column("stuff,pickle", default_factory=dict)
    stuffz: dict = column("stuffz,picklegzip", default_factory=dict)


@dataclass
class ItemZeroes:
    id: int = column("id,pk", default=0)
    int_value: int = column("nullint,zeroisnull", default=0)
    float_value: float = column("nullfloat,zeroisnull", default=0.0)
    complex_value: complex = column("nullcomplex,zeroisnull", default=0j)
    string_value: str = column("nullstring,zeroisnull", default="")
    bool_value: bool = column("nullbool,zeroisnull", default=False)


@dataclass
class Note:
    id: int = column("id,pk", default=0)
    title: str = column("title", default="")
    body: str = column("body", default="")


@pytest.fixture
def conn():
    sqlite3.register_adapter(datetime, lambda moment: moment.isoformat(" "))
    connection = sqlite3.connect(":memory:")
    for schema in SCHEMAS:
        connection.execute(schema)
    yield connection
    connection.close()


def make_alice():
    return Person(
        name="Alice",
        email="alice@example.com",
        ephemeral=12,
        age=32,
        opened=WHEN.astimezone(),
        closed=WHEN,
        updated=WHEN,
        height=65,
    )


def make_bob():
    return Person(name="Bob", email="bob@example.com", opened=WHEN)


def insert_alice_bob(connection):
    alice = insert(connection, "person", make_alice())
    bob = insert(connection, "person", make_bob())
    return alice, bob


def assert_person(actual, expected):
    assert actual.id == expected.id
    assert actual.name == expected.name
    assert actual._private == expected._private
    assert actual.email == expected.email
    assert actual.ephemeral == expected.ephemeral
    assert actual.age == expected.age
    assert actual.opened == expected.opened
    assert actual.closed == expected.closed
    assert (actual.updated is None) == (expected.updated is None)
    if actual.updated is not None:
        assert actual.updated == expected.updated
        assert actual.updated.utcoffset() == WHEN.astimezone().utcoffset()
    assert actual.height == expected.height


class _FakeCursor:
    def __init__(self, connection):
        self.connection = connection
        self.description = connection.description
        self.lastrowid = connection.lastrowid
        self.closed = False

    def execute(self, query, params):
        self.connection.calls.append((query, list(params)))

    def fetchone(self):
        return self.connection.rows.pop(0) if self.connection.rows else None

    def close(self):
        self.closed = True


class _FakeConnection:
    def __init__(self, rows=(), description=None, lastrowid=None):
        self.rows = list(rows)
        self.description = description
        self.lastrowid = lastrowid
        self.calls = []

    def cursor(self):
        return _FakeCursor(self)


def test_insert_assigns_sequential_ids(conn):
    alice, bob = insert_alice_bob(conn)
    assert alice.id == 1
    assert bob.id == 2


def test_load(conn):
    insert_alice_bob(conn)
    person = Person(age=50, closed=datetime.now(timezone.utc))
    result = load(conn, "person", person, 2)
    assert result is person
    assert_person(person, Person(id=2, name="Bob", email="bob@example.com", opened=WHEN))


def test_load_alice_reads_local_time(conn):
    insert_alice_bob(conn)
    person = load(conn, "person", Person(), 1)
    assert_person(
        person,
        Person(
            id=1,
            name="Alice",
            email="alice@example.com",
            age=32,
            opened=WHEN,
            closed=WHEN,
            updated=WHEN,
            height=65,
        ),
    )


def test_load_invalid_table(conn):
    with pytest.raises(DriverError) as info:
        load(conn, "invalid_table_name", Person(), 2)
    original, ok = driver_err(info.value)
    assert ok
    assert isinstance(original, sqlite3.Error)


def test_load_missing_row(conn):
    with pytest.raises(NoRowsError):
        load(conn, "person", Person(), 99)


def test_load_schema_qualified_table(conn):
    insert_alice_bob(conn)
    person = load(conn, "main.person", Person(), 1, SQLITE)
    assert person.name == "Alice"


def test_no_primary_key(conn):
    with pytest.raises(MeddlerError):
        load(conn, "person", PersonWithoutPK(), 2)
    with pytest.raises(MeddlerError, match="no primary key"):
        update(conn, "person", PersonWithoutPK())
    with pytest.raises(DriverError):
        save(conn, "person", PersonWithoutPK())


def test_query_all(conn):
    insert_alice_bob(conn)
    people = query_all(conn, Person, "SELECT * FROM person ORDER BY id")
    assert [person.name for person in people] == ["Alice", "Bob"]
    assert [person.id for person in people] == [1, 2]


def test_query_all_with_args(conn):
    insert_alice_bob(conn)
    people = query_all(conn, Person, "SELECT * FROM person WHERE name = ?", ["Bob"])
    assert len(people) == 1
    assert people[0].email == "bob@example.com"


def test_query_all_invalid_table(conn):
    with pytest.raises(sqlite3.OperationalError):
        query_all(conn, Person, "SELECT * FROM invalid_table_name")


def test_query_row_throws_away_unknown_columns(conn):
    insert_alice_bob(conn)
    half = query_row(conn, HalfPerson(), "select * from person where id = 1")
    assert half.id == 1
    assert half.age == 32
    assert half.closed == WHEN
    assert half.updated == WHEN


def test_query_row_no_result(conn):
    with pytest.raises(NoRowsError):
        query_row(conn, Person(), "select * from person where id = ?", [5])


def test_save(conn):
    insert_alice_bob(conn)
    chris = Person(
        name="Chris",
        email="chris@example.com",
        ephemeral=19,
        age=23,
        opened=WHEN.astimezone(),
        closed=WHEN,
        updated=None,
        height=73,
    )

    with pytest.raises(DriverError):
        save(conn, "invalid_table_name", chris)

    save(conn, "person", chris)
    assert chris.id == 3

    chris.email = "chris2@example.com"
    chris.age = 27
    save(conn, "person", chris)
    assert chris.id == 3
    conn.commit()

    cursor = conn.execute("select * from person where id = ?", (3,))
    from rowmeddle.database import get_default

    stored = get_default().scan_row(cursor, Person())
    assert_person(
        stored,
        Person(
            id=3,
            name="Chris",
            email="chris2@example.com",
            age=27,
            opened=WHEN,
            closed=WHEN,
            updated=None,
            height=73,
        ),
    )
    count = conn.execute("select count(*) from person").fetchone()[0]
    assert count == 3


def test_driver_err_on_invalid_table(conn):
    with pytest.raises(DriverError) as info:
        insert(conn, "invalid", make_alice())
    original, ok = driver_err(info.value)
    assert ok
    assert isinstance(original, sqlite3.Error)


def test_insert_with_primary_key_set(conn):
    alice = make_alice()
    alice.id = 1
    with pytest.raises(MeddlerError, match="must be zero"):
        insert(conn, "person", alice)


def test_update_with_zero_primary_key(conn):
    with pytest.raises(MeddlerError, match="> 0"):
        update(conn, "person", make_alice())


def test_zero_is_null_meddler(conn):
    before = save(conn, "null_item", ItemZeroes())
    assert before.id == 1
    raw = conn.execute("select nullint, nullstring, nullbool from null_item").fetchone()
    assert raw == (None, None, None)

    after = load(conn, "null_item", ItemZeroes(), before.id)
    assert after.string_value == ""
    assert after.int_value == 0
    assert after.float_value == 0.0
    assert after.bool_value is False
    assert after.complex_value == 0j


def test_json_meddler(conn):
    elt = ItemJson(
        stuff={"hello": True, "world": True},
        stuffz={"goodbye": True, "cruel": True, "world": True},
    )
    save(conn, "item", elt)
    loaded = load(conn, "item", ItemJson(), elt.id)
    assert loaded.id == elt.id
    assert loaded.stuff == {"hello": True, "world": True}
    assert loaded.stuffz == {"goodbye": True, "cruel": True, "world": True}


def test_pickle_meddler(conn):
    elt = ItemPickle(
        stuff={"hello": True, "world": True},
        stuffz={"goodbye": True, "cruel": True, "world": True},
    )
    save(conn, "item", elt)
    loaded = load(conn, "item", ItemPickle(), elt.id)
    assert loaded.id == elt.id
    assert loaded.stuff == {"hello": True, "world": True}
    assert loaded.stuffz == {"goodbye": True, "cruel": True, "world": True}


def test_insert_with_returning():
    fake = _FakeConnection(rows=[(42,)])
    note = insert(fake, "notes", Note(title="a", body="b"), POSTGRESQL)
    assert note.id == 42
    assert fake.calls == [
        ('INSERT INTO "notes" ("title","body") VALUES ($1,$2) RETURNING "id"', ["a", "b"])
    ]


def test_insert_with_returning_no_row():
    fake = _FakeConnection(rows=[])
    with pytest.raises(DriverError):
        insert(fake, "notes", Note(title="a"), POSTGRESQL)


def test_insert_without_row_id():
    fake = _FakeConnection(lastrowid=None)
    with pytest.raises(DriverError, match="new primary key"):
        insert(fake, "notes", Note(title="a"), SQLITE)


def test_update_query_text():
    fake = _FakeConnection()
    update(fake, "app.notes", Note(id=7, title="t", body="b"), POSTGRESQL)
    assert fake.calls == [
        ('UPDATE "app"."notes" SET "title"=$1,"body"=$2 WHERE "id"=$3', ["t", "b", 7])
    ]


def test_save_with_pk_updates():
    fake = _FakeConnection()
    save(fake, "notes", Note(id=3, title="x", body="y"), SQLITE)
    assert fake.calls == [('UPDATE "notes" SET "title"=?,"body"=? WHERE "id"=?', ["x", "y", 3])]


def test_load_query_text():
    fake = _FakeConnection(
        rows=[(5, "hello", "world")],
        description=[("id",), ("title",), ("body",)],
    )
    note = load(fake, "notes", Note(), 5, POSTGRESQL)
    assert note == Note(id=5, title="hello", body="world")
    assert fake.calls == [
        ('SELECT "id","title","body" FROM "notes" WHERE "id" = $1', [5])
    ]


def test_query_all_empty_result(conn):
    assert query_all(conn, Note, "SELECT 1 AS id WHERE 0") == []


def test_empty_json_items_round_trip_separately(conn):
    first = save(conn, "item", ItemJson())
    second = save(conn, "item", ItemJson(stuff={"a": True}))
    assert (first.id, second.id) == (1, 2)
    loaded_first = load(conn, "item", ItemJson(), first.id)
    loaded_second = load(conn, "item", ItemJson(), second.id)
    assert loaded_first.stuff == {}
    assert loaded_first.stuffz == {}
    assert loaded_second.stuff == {"a": True}