"""
Dataclass records through the generic encode and decode bridges.
"""
import dataclasses
import datetime
from dataclasses import dataclass
from datetime import timezone
from enum import Enum

import numpy as np
import rowcodec as db
import pytest
from rowcodec.adapters import RowDecoder, StatementEncoder

pytestmark = pytest.mark.sqlite

INSERT_FOO = 'INSERT INTO foo (b, c, d, e) VALUES (:b, :c, :d, :e)'
SELECT_FOO = 'SELECT a, b, c, d, e FROM foo WHERE a = :a'


@dataclass
class Foo:
    b: str
    c: float
    d: int
    e: bytes
    a: int | None = None


@dataclass
class Maybe:
    b: str | None
    d: int | None


@dataclass
class Strict:
    b: str


@dataclass
class WithDefault:
    b: str
    d: int = 99


@dataclass
class Big:
    d: np.uint64


@dataclass
class Meta:
    c: float
    d: int


@dataclass
class Record:
    b: str
    meta: Meta
    e: bytes | None = None


@dataclass
class OptionalMeta:
    b: str
    meta: Meta | None = None


@dataclass
class BadMeta:
    d: np.uint64


@dataclass
class Outer:
    b: str
    meta: BadMeta


class Color(Enum):
    RED = 'red'
    BLUE = 'blue'


@dataclass
class Paint:
    b: Color
    d: int


@dataclass
class Series:
    b: str
    e: list[list[int]]


@dataclass
class Widths:
    d: np.int16
    c: np.float32


@dataclass
class Event:
    b: str
    d: datetime.datetime


@dataclass
class Holiday:
    b: str
    e: datetime.date


@dataclass
class Sparse:
    b: str
    e: list[list[int | None]]


def insert(cn, obj, sql=INSERT_FOO):
    with cn.prepare(sql) as st:
        st.encode(obj)
        st.perform()
    return cn.last_inserted_id


def fetch_one(cn, cls, sql='SELECT a, b, c, d, e FROM foo'):
    with cn.prepare(sql) as st:
        return st.step().row.decode(cls)


class TestRoundTrip:
    def test_foo(self, foo_conn):
        """Encode, insert, select and decode yields the original record"""
        original = Foo(b='foo', c=42.1, d=42, e=b'ABC')
        with foo_conn.prepare(INSERT_FOO) as st:
            db.encode(original, st)
            st.perform()
        rowid = foo_conn.last_inserted_id

        with foo_conn.prepare(SELECT_FOO) as st:
            st.bind('a', rowid)
            decoded = db.decode(Foo, st.step().row)

        assert decoded == dataclasses.replace(original, a=rowid)
        assert decoded.a == rowid

    def test_unicode(self, foo_conn, unicode_text):
        insert(foo_conn, Foo(b=unicode_text, c=0.0, d=0, e=b''))
        decoded = fetch_one(foo_conn, Foo)
        assert decoded.b == unicode_text
        assert decoded.e == b''

    def test_module_helpers(self, foo_conn):
        rowid = db.insert_record(foo_conn, INSERT_FOO, Foo(b='x', c=1.0, d=1, e=b'1'))
        db.insert_record(foo_conn, INSERT_FOO, Foo(b='y', c=2.0, d=2, e=b'2'))
        records = db.select_records(foo_conn, Foo, 'SELECT a, b, c, d, e FROM foo ORDER BY a')
        assert [r.b for r in records] == ['x', 'y']
        assert records[0].a == rowid
        by_name = db.select_records(foo_conn, Foo, SELECT_FOO, {'a': rowid})
        assert by_name == [records[0]]

    def test_missing_optional_column(self, foo_conn):
        """An optional field without a column decodes to None"""
        insert(foo_conn, Foo(b='x', c=1.0, d=1, e=b''))
        assert fetch_one(foo_conn, Foo, 'SELECT b, c, d, e FROM foo').a is None

    def test_missing_column_keeps_default(self, foo_conn):
        insert(foo_conn, Foo(b='x', c=1.0, d=1, e=b''))
        assert fetch_one(foo_conn, WithDefault, 'SELECT b FROM foo') == WithDefault('x', 99)

    def test_missing_required_column(self, foo_conn):
        insert(foo_conn, Foo(b='x', c=1.0, d=1, e=b''))
        with pytest.raises(db.UnknownKeyError):
            fetch_one(foo_conn, Strict, 'SELECT d FROM foo')

    def test_extra_fields_not_in_statement(self, foo_conn):
        """Fields without a matching parameter are skipped"""
        insert(foo_conn, Foo(b='only b', c=9.5, d=9, e=b'9'), 'INSERT INTO foo (b) VALUES (:b)')
        row = db.select_row(foo_conn, 'SELECT b, c, d, e FROM foo')
        assert row.b == 'only b'
        assert row.c is None


class TestNulls:
    def test_optional_fields(self, foo_conn):
        insert(foo_conn, Maybe(b=None, d=7), 'INSERT INTO foo (b, d) VALUES (:b, :d)')
        with foo_conn.prepare('SELECT b, d FROM foo') as st:
            row = st.step().row
            assert row.is_null('b')
            assert row.decode(Maybe) == Maybe(b=None, d=7)

    def test_none_binds_null(self, foo_conn):
        """A None field overwrites an earlier binding with NULL"""
        with foo_conn.prepare('INSERT INTO foo (b, d) VALUES (:b, :d)') as st:
            st.bind('b', 'stale')
            st.encode(Maybe(b=None, d=1))
            st.perform()
        assert db.select_scalar(foo_conn, 'SELECT b FROM foo') is None

    def test_null_into_required_field(self, foo_conn):
        insert(foo_conn, Maybe(b=None, d=7), 'INSERT INTO foo (b, d) VALUES (:b, :d)')
        with pytest.raises(db.DecodingError) as exc_info:
            fetch_one(foo_conn, Strict, 'SELECT b FROM foo')
        assert exc_info.value.path == ['b']
        assert isinstance(exc_info.value.__cause__, db.NullValueError)


class TestUnsupported:
    def test_encode_uint64(self, foo_conn):
        with foo_conn.prepare('INSERT INTO foo (d) VALUES (:d)') as st:
            with pytest.raises(db.EncodingError) as exc_info:
                st.encode(Big(d=np.uint64(1)))
        assert exc_info.value.message == 'Encoding UInt64 is not supported'
        assert exc_info.value.path == ['d']

    def test_decode_uint64(self, foo_conn):
        insert(foo_conn, Foo(b='x', c=1.0, d=1, e=b''))
        with pytest.raises(db.DecodingError) as exc_info:
            fetch_one(foo_conn, Big, 'SELECT d FROM foo')
        assert exc_info.value.message == 'Decoding UInt64 is not supported'
        assert exc_info.value.path == ['d']

    def test_nested_path(self, foo_conn):
        """Errors name the full field path"""
        with foo_conn.prepare('INSERT INTO foo (b, d) VALUES (:b, :d)') as st:
            with pytest.raises(db.EncodingError) as exc_info:
                st.encode(Outer(b='x', meta=BadMeta(d=np.uint64(1))))
        assert exc_info.value.path == ['meta', 'd']
        assert 'meta.d' in str(exc_info.value)

    def test_encode_requires_dataclass(self, foo_conn):
        with foo_conn.prepare(INSERT_FOO) as st:
            with pytest.raises(db.EncodingError):
                st.encode({'b': 'x'})

    def test_value_out_of_range(self, foo_conn):
        with foo_conn.prepare('INSERT INTO foo (d, c) VALUES (:d, :c)') as st:
            with pytest.raises(db.EncodingError) as exc_info:
                st.encode(Widths(d=40000, c=np.float32(1.0)))
        assert exc_info.value.path == ['d']
        assert isinstance(exc_info.value.__cause__, db.TypeConversionError)

    def test_type_mismatch_on_decode(self, foo_conn):
        insert(foo_conn, Maybe(b='not a number', d=1), 'INSERT INTO foo (b, d) VALUES (:b, :d)')
        with pytest.raises(db.DecodingError) as exc_info:
            fetch_one(foo_conn, Widths, 'SELECT b AS d, 1.5 AS c FROM foo')
        assert exc_info.value.path == ['d']


class TestEmptyContext:
    """Leaf coding needs a field key on the context stack"""

    def test_decoder(self, sqlite_conn):
        with sqlite_conn.prepare('SELECT 1 AS x') as st:
            decoder = RowDecoder(st.step().row)
            with pytest.raises(db.DecodingError, match='context stack is empty'):
                decoder.decode_value(int)
            assert decoder.coding_path == []

    def test_encoder(self, sqlite_conn):
        with sqlite_conn.prepare('SELECT :x') as st:
            with pytest.raises(db.EncodingError, match='context stack is empty'):
                StatementEncoder(st).encode_value(1)


class TestNested:
    def test_flattened_columns(self, foo_conn):
        """Nested record fields map to columns by their own names"""
        insert(foo_conn, Record(b='x', meta=Meta(c=1.5, d=3)))
        decoded = fetch_one(foo_conn, Record, 'SELECT b, c, d, e FROM foo')
        assert decoded == Record(b='x', meta=Meta(c=1.5, d=3), e=None)

    def test_absent_optional_nested(self, foo_conn):
        """A None nested record binds NULL and decodes back to None"""
        insert(foo_conn, OptionalMeta(b='x'))
        assert db.select_row(foo_conn, 'SELECT c, d FROM foo') == {'c': None, 'd': None}
        assert fetch_one(foo_conn, OptionalMeta, 'SELECT b, c, d FROM foo') == OptionalMeta(b='x')

    def test_present_optional_nested(self, foo_conn):
        insert(foo_conn, OptionalMeta(b='x', meta=Meta(c=2.5, d=4)))
        decoded = fetch_one(foo_conn, OptionalMeta, 'SELECT b, c, d FROM foo')
        assert decoded.meta == Meta(c=2.5, d=4)


class TestLeafTypes:
    def test_enum_wrapper(self, foo_conn):
        insert(foo_conn, Paint(b=Color.BLUE, d=1), 'INSERT INTO foo (b, d) VALUES (:b, :d)')
        assert db.select_scalar(foo_conn, 'SELECT b FROM foo') == 'blue'
        assert fetch_one(foo_conn, Paint, 'SELECT b, d FROM foo') == Paint(Color.BLUE, 1)

    def test_invalid_enum_value(self, foo_conn):
        insert(foo_conn, Maybe(b='green', d=1), 'INSERT INTO foo (b, d) VALUES (:b, :d)')
        with pytest.raises(db.DecodingError) as exc_info:
            fetch_one(foo_conn, Paint, 'SELECT b, d FROM foo')
        assert exc_info.value.path == ['b']

    @pytest.mark.parametrize('strategy', ['bplist', 'json'])
    def test_array_field(self, foo_conn, strategy):
        value = Series(b='grid', e=[[1, 2, 3], [4, 5, 6]])
        with foo_conn.prepare('INSERT INTO foo (b, e) VALUES (:b, :e)') as st:
            st.array_strategy = strategy
            st.encode(value)
            st.perform()
        with foo_conn.prepare('SELECT b, e FROM foo') as st:
            st.array_strategy = strategy
            assert st.step().row.decode(Series) == value

    def test_array_element_path(self, foo_conn):
        with foo_conn.prepare('INSERT INTO foo (b, e) VALUES (:b, :e)') as st:
            with pytest.raises(db.EncodingError) as exc_info:
                st.encode(Series(b='grid', e=[[1, 2], [3, 'x']]))
        assert exc_info.value.path == ['e', '1', '1']

    def test_numpy_fields(self, foo_conn):
        insert(foo_conn, Widths(d=np.int16(-300), c=np.float32(0.5)),
               'INSERT INTO foo (d, c) VALUES (:d, :c)')
        decoded = fetch_one(foo_conn, Widths, 'SELECT d, c FROM foo')
        assert isinstance(decoded.d, np.int16)
        assert isinstance(decoded.c, np.float32)
        assert decoded == Widths(d=np.int16(-300), c=np.float32(0.5))

    def test_datetime_field(self, foo_conn):
        event = Event(b='launch', d=datetime.datetime(2020, 1, 1, tzinfo=timezone.utc))
        insert(foo_conn, event, 'INSERT INTO foo (b, d) VALUES (:b, :d)')
        assert db.select_scalar(foo_conn, 'SELECT d FROM foo') == 1577836800
        assert fetch_one(foo_conn, Event, 'SELECT b, d FROM foo') == event

    @pytest.mark.parametrize('strategy', ['integer', 'real', 'text'])
    def test_date_field(self, foo_conn, strategy):
        """A field declared as a date decodes to a date, not a datetime"""
        holiday = Holiday(b='new year', e=datetime.date(2020, 1, 1))
        with foo_conn.prepare('INSERT INTO foo (b, e) VALUES (:b, :e)') as st:
            st.date_strategy = strategy
            st.encode(holiday)
            st.perform()
        with foo_conn.prepare('SELECT b, e FROM foo') as st:
            st.date_strategy = strategy
            decoded = st.step().row.decode(Holiday)
        assert type(decoded.e) is datetime.date
        assert decoded == holiday

    @pytest.mark.parametrize('strategy', ['bplist', 'json'])
    def test_null_array_elements(self, foo_conn, strategy):
        value = Sparse(b='holes', e=[[1, None, 3], [None], []])
        with foo_conn.prepare('INSERT INTO foo (b, e) VALUES (:b, :e)') as st:
            st.array_strategy = strategy
            st.encode(value)
            st.perform()
        with foo_conn.prepare('SELECT b, e FROM foo') as st:
            st.array_strategy = strategy
            assert st.step().row.decode(Sparse) == value
