"""
Tests for placeholder tokenizing, parameter numbering and script splitting.
"""
import pytest
from rowcodec.sql import TokenType, leading_keyword, parse_parameters
from rowcodec.sql import split_statements, tokenize, zero_row_query


class TestTokenize:
    """Single-pass tokenizer"""

    def test_round_trip(self):
        """Joining token texts reproduces the input"""
        sql = "select 'a:b', \"c@d\" /* $e */ from t where x = :x -- ?\n and y = ?2"
        assert ''.join(t.text for t in tokenize(sql)) == sql

    def test_placeholder_types(self):
        """Each placeholder form gets its own token type"""
        tokens = [t for t in tokenize('select ?, ?3, :a, @b, $c') if t.type != TokenType.SQL_TEXT]
        assert [t.type for t in tokens] == [
            TokenType.POSITIONAL_PH,
            TokenType.NUMBERED_PH,
            TokenType.NAMED_PH,
            TokenType.NAMED_PH,
            TokenType.NAMED_PH,
        ]
        assert [t.text for t in tokens] == ['?', '?3', ':a', '@b', '$c']

    def test_literals_hide_placeholders(self):
        """Placeholders inside strings, identifiers and comments are not tokens"""
        sql = "select ':a', \"@b\", [$c], `?` -- :d\n/* ? */"
        kinds = {t.type for t in tokenize(sql)}
        assert TokenType.NAMED_PH not in kinds
        assert TokenType.POSITIONAL_PH not in kinds

    def test_escaped_quote_in_string(self):
        """Doubled quotes stay inside the string literal"""
        tokens = tokenize("select 'it''s :not' , :yes")
        named = [t.text for t in tokens if t.type == TokenType.NAMED_PH]
        assert named == [':yes']


class TestParseParameters:
    """Slot numbering follows SQLite's rules"""

    def test_named_prefixes(self):
        """All three prefixes produce named slots in order"""
        parsed = parse_parameters('insert into t values (:ONE, $TWO, @THREE)')
        assert parsed.sql == 'insert into t values (?1, ?2, ?3)'
        assert parsed.names == [':ONE', '$TWO', '@THREE']

    def test_repeated_name_shares_slot(self):
        """A repeated name reuses its first slot"""
        parsed = parse_parameters('select :a, :b, :a')
        assert parsed.sql == 'select ?1, ?2, ?1'
        assert parsed.parameter_count == 2

    def test_different_prefix_is_different_name(self):
        """`:a` and `$a` are distinct parameters"""
        parsed = parse_parameters('select :a, $a')
        assert parsed.names == [':a', '$a']

    def test_anonymous_and_numbered(self):
        """`?` takes the next index and `?NNN` leaves gaps"""
        parsed = parse_parameters('select :a, ?, :a, ?5')
        assert parsed.sql == 'select ?1, ?2, ?1, ?5'
        assert parsed.names == [':a', None, None, None, None]

    def test_anonymous_after_numbered(self):
        """`?` continues after the largest index so far"""
        parsed = parse_parameters('select ?3, ?')
        assert parsed.sql == 'select ?3, ?4'
        assert parsed.parameter_count == 4

    def test_no_parameters(self):
        parsed = parse_parameters("select ':a' as x")
        assert parsed.sql == "select ':a' as x"
        assert parsed.names == []

    def test_placeholders_in_literals_untouched(self):
        sql = "select ':a', \"@b\" -- :c\n, ?"
        parsed = parse_parameters(sql)
        assert parsed.sql == "select ':a', \"@b\" -- :c\n, ?1"
        assert parsed.names == [None]


class TestSplitStatements:
    """Script splitting for multi-statement execute"""

    def test_simple_script(self):
        script = 'create table t (x); insert into t values (1);'
        assert split_statements(script) == ['create table t (x);', 'insert into t values (1);']

    def test_trailing_statement_without_semicolon(self):
        assert split_statements('select 1; select 2') == ['select 1;', 'select 2']

    def test_semicolon_inside_string(self):
        """Semicolons in literals do not split"""
        script = "insert into t values ('a;b'); select 1"
        assert split_statements(script) == ["insert into t values ('a;b');", 'select 1']

    def test_trigger_body_stays_whole(self):
        """Statements inside BEGIN ... END belong to the trigger"""
        script = ('CREATE TRIGGER tr AFTER INSERT ON t BEGIN UPDATE t SET x = 1; END;'
                  ' SELECT 1')
        statements = split_statements(script)
        assert len(statements) == 2
        assert statements[0].endswith('END;')
        assert statements[1] == 'SELECT 1'

    def test_empty_and_comment_only_parts_dropped(self):
        assert split_statements('select 1;; ; -- done') == ['select 1;']
        assert split_statements('  ') == []


class TestZeroRowQuery:
    @pytest.mark.parametrize(('sql', 'expected'), [
        ('SELECT a FROM t', 'SELECT a FROM t\nLIMIT 0'),
        ('select 1;  ', 'select 1\nLIMIT 0'),
        ('SELECT 1 -- note', 'SELECT 1\nLIMIT 0'),
        ('VALUES (1), (2)', 'VALUES (1), (2)\nLIMIT 0'),
        ('SELECT replace(b, 1, 2) FROM t', 'SELECT replace(b, 1, 2) FROM t\nLIMIT 0'),
        ('WITH c AS (SELECT 1 LIMIT 1) SELECT * FROM c',
         'WITH c AS (SELECT 1 LIMIT 1) SELECT * FROM c\nLIMIT 0'),
    ])
    def test_appends_zero_limit(self, sql, expected):
        assert zero_row_query(sql) == expected

    @pytest.mark.parametrize('sql', [
        'SELECT a FROM t LIMIT 10',
        'select a from t limit ?1 offset ?2',
        'WITH c AS (SELECT 1) INSERT INTO t SELECT * FROM c',
        'WITH c AS (SELECT 1) DELETE FROM t',
        'INSERT INTO t VALUES (1)',
        'PRAGMA user_version',
        'EXPLAIN SELECT 1',
    ])
    def test_leaves_other_statements(self, sql):
        """Statements that are not plain queries, or already limited, are not rewritten"""
        assert zero_row_query(sql) is None

    def test_limit_text_in_literals_ignored(self):
        assert zero_row_query("SELECT 'limit', \"limit\" FROM t") == (
            "SELECT 'limit', \"limit\" FROM t\nLIMIT 0")


@pytest.mark.parametrize(('sql', 'expected'), [
    ('select 1', 'SELECT'),
    ('  -- c\n /* x */ WITH x AS (select 1) select * from x', 'WITH'),
    ('(select 1)', 'SELECT'),
    ('insert into t values (1)', 'INSERT'),
    ('PRAGMA user_version', 'PRAGMA'),
    ('', ''),
    ('-- only a comment', ''),
])
def test_leading_keyword(sql, expected):
    assert leading_keyword(sql) == expected
