import pytest
from sqlglot.errors import ParseError

from conftest import column_named, table_named

from ermate.dialects import SQLDialect
from ermate.errors import SQLParseError, UnknownDialectError
from ermate.models import ColumnConstraint, ColumnType, RelationshipType, Schema
from ermate.sql_ast import parse_statements
from ermate.sql_parser import _first_success, from_sql, map_column_type, normalize_identifier
from ermate.validation import validate

PK = ColumnConstraint.PRIMARY_KEY
FK = ColumnConstraint.FOREIGN_KEY
NN = ColumnConstraint.NOT_NULL
UQ = ColumnConstraint.UNIQUE

USERS_POSTS = """
CREATE TABLE users (id INTEGER PRIMARY KEY, name VARCHAR(255));
CREATE TABLE posts (id INTEGER PRIMARY KEY, user_id INTEGER {user_id});
ALTER TABLE posts ADD CONSTRAINT fk_posts_user FOREIGN KEY (user_id) REFERENCES users (id);
"""

SUPABASE_DUMP = """
CREATE TABLE public.api_keys(
    id uuid NOT NULL,
    user_id uuid NOT NULL,
    CONSTRAINT api_keys_pkey PRIMARY KEY(id),
    CONSTRAINT fk FOREIGN KEY(user_id) REFERENCES auth.users(id)
);
CREATE TABLE public.users(id uuid NOT NULL, CONSTRAINT users_pkey PRIMARY KEY(id));
"""

MYSQL_DUMP = """
CREATE TABLE `users` (
  `id` int NOT NULL AUTO_INCREMENT,
  `name` varchar(255) DEFAULT NULL,
  PRIMARY KEY (`id`)
) ENGINE=InnoDB;
CREATE TABLE `posts` (
  `id` int NOT NULL AUTO_INCREMENT,
  `user_id` int NOT NULL,
  PRIMARY KEY (`id`),
  CONSTRAINT `fk_posts_user` FOREIGN KEY (`user_id`) REFERENCES `users` (`id`)
) ENGINE=InnoDB;
"""


def parse(sql, ids, dialect=None):
    return from_sql(sql, dialect, ids=ids)


class TestScenarios:
    def test_alter_table_foreign_key(self, ids):
        schema = parse(USERS_POSTS.format(user_id="NOT NULL"), ids)
        assert [t.name for t in schema.tables] == ["users", "posts"]
        assert len(schema.relationships) == 1

        users = table_named(schema, "users")
        posts = table_named(schema, "posts")
        user_id = column_named(posts, "user_id")
        (rel,) = schema.relationships
        assert rel.type == RelationshipType.ONE_TO_MANY
        assert (rel.source.table_id, rel.source.column_id) == (posts.id, user_id.id)
        assert (rel.target.table_id, rel.target.column_id) == (users.id, column_named(users, "id").id)
        assert user_id.constraints == (NN, FK)
        assert validate(schema) == []

    def test_unique_source_is_one_to_one(self, ids):
        schema = parse(USERS_POSTS.format(user_id="UNIQUE NOT NULL"), ids)
        (rel,) = schema.relationships
        assert rel.type == RelationshipType.ONE_TO_ONE
        user_id = column_named(table_named(schema, "posts"), "user_id")
        assert user_id.constraints == (UQ, NN, FK)

    def test_cross_schema_reference_is_dropped(self, ids):
        schema = parse(SUPABASE_DUMP, ids)
        assert [t.name for t in schema.tables] == ["api_keys", "users"]
        assert schema.relationships == ()
        api_keys = table_named(schema, "api_keys")
        assert column_named(api_keys, "id").is_primary_key
        # No relationship was created, so the column is not flagged
        assert FK not in column_named(api_keys, "user_id").constraints

    def test_tables_are_laid_out(self, ids):
        schema = parse(USERS_POSTS.format(user_id="NOT NULL"), ids)
        users = table_named(schema, "users")
        posts = table_named(schema, "posts")
        assert posts.position.y < users.position.y
        for table in schema.tables:
            assert table.position.x % 16 == 0 and table.position.y % 16 == 0


class TestTypes:
    @pytest.mark.parametrize("sql_type,expected", [
        ("INTEGER", ColumnType.INTEGER),
        ("int", ColumnType.INTEGER),
        ("BIGINT", ColumnType.INTEGER),
        ("SMALLINT", ColumnType.INTEGER),
        ("SERIAL", ColumnType.INTEGER),
        ("BOOL", ColumnType.BOOLEAN),
        ("BOOLEAN", ColumnType.BOOLEAN),
        ("TEXT", ColumnType.TEXT),
        ("CLOB", ColumnType.TEXT),
        ("TIMESTAMP", ColumnType.TIMESTAMP),
        ("TIMESTAMPTZ", ColumnType.TIMESTAMP),
        ("DATETIME", ColumnType.TIMESTAMP),
        ("DATE", ColumnType.TIMESTAMP),
        ("TIME", ColumnType.TIMESTAMP),
        ("VARCHAR", ColumnType.VARCHAR),
        ("UUID", ColumnType.VARCHAR),
        ("DECIMAL", ColumnType.VARCHAR),
        ("", ColumnType.VARCHAR),
    ])
    def test_map_column_type(self, sql_type, expected):
        assert map_column_type(sql_type) == expected

    def test_types_from_ddl(self, ids):
        schema = parse("""
            CREATE TABLE events (
                id SERIAL PRIMARY KEY,
                title VARCHAR(120) NOT NULL,
                body TEXT,
                is_public BOOLEAN,
                starts_at TIMESTAMP,
                held_on DATE,
                price NUMERIC(10, 2)
            );
        """, ids)
        types = {c.name: c.type for c in schema.tables[0].columns}
        assert types == {
            "id": ColumnType.INTEGER,
            "title": ColumnType.VARCHAR,
            "body": ColumnType.TEXT,
            "is_public": ColumnType.BOOLEAN,
            "starts_at": ColumnType.TIMESTAMP,
            "held_on": ColumnType.TIMESTAMP,
            "price": ColumnType.VARCHAR,
        }


class TestStatements:
    @pytest.mark.parametrize("text", ["", "   ", "\n\t\n"])
    def test_blank_input_is_empty_schema(self, text, ids):
        assert parse(text, ids) == Schema.empty()

    def test_invalid_sql_raises(self, ids):
        with pytest.raises(SQLParseError) as excinfo:
            parse("CREATE TABLE users (id INTEGER", ids)
        # every dialect was tried; the last one is reported
        assert excinfo.value.dialect == SQLDialect.SQLITE.value
        assert "SQLite" in str(excinfo.value)
        assert isinstance(excinfo.value.__cause__, ParseError)

    def test_invalid_sql_with_explicit_dialect(self, ids):
        with pytest.raises(SQLParseError) as excinfo:
            parse("CREATE TABLE users (id INTEGER", ids, dialect="MySQL")
        assert excinfo.value.dialect == "MySQL"

    def test_unknown_dialect(self, ids):
        with pytest.raises(UnknownDialectError):
            parse("CREATE TABLE t (id INTEGER);", ids, dialect="oracle")

    def test_other_statements_are_ignored(self, ids):
        schema = parse("""
            CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT);
            CREATE INDEX users_name ON users (name);
            INSERT INTO users (id, name) VALUES (1, 'ada');
            UPDATE users SET name = 'grace' WHERE id = 1;
            DELETE FROM users WHERE id = 2;
        """, ids)
        assert [t.name for t in schema.tables] == ["users"]

    def test_if_not_exists(self, ids):
        schema = parse("CREATE TABLE IF NOT EXISTS users (id INTEGER PRIMARY KEY);", ids)
        assert schema.tables[0].name == "users"

    def test_quoted_identifiers(self, ids):
        schema = parse('CREATE TABLE "User Accounts" ("Full Name" TEXT NOT NULL);', ids)
        table = schema.tables[0]
        assert table.name == "User Accounts"
        assert table.columns[0].name == "Full Name"
        assert table.columns[0].constraints == (NN,)

    def test_mysql_backticks(self, ids):
        schema = parse("""
            CREATE TABLE `users` (
                `id` INT AUTO_INCREMENT PRIMARY KEY,
                `email` VARCHAR(255) NOT NULL UNIQUE
            ) ENGINE=InnoDB;
        """, ids, dialect="MySQL")
        table = schema.tables[0]
        assert table.name == "users"
        assert [c.name for c in table.columns] == ["id", "email"]
        assert table.columns[0].type == ColumnType.INTEGER
        assert table.columns[0].is_primary_key
        assert set(table.columns[1].constraints) == {NN, UQ}

    def test_mysql_dump_without_dialect(self, ids):
        schema = parse(MYSQL_DUMP, ids)
        assert [t.name for t in schema.tables] == ["users", "posts"]
        (rel,) = schema.relationships
        assert rel.type == RelationshipType.ONE_TO_MANY
        user_id = column_named(table_named(schema, "posts"), "user_id")
        assert rel.source.column_id == user_id.id
        assert FK in user_id.constraints

    def test_misspelled_create_raises(self, ids):
        with pytest.raises(SQLParseError) as excinfo:
            parse("CREATE TABL users (id INT);", ids)
        assert excinfo.value.dialect == SQLDialect.SQLITE.value
        assert isinstance(excinfo.value.__cause__, ParseError)

    def test_unparsed_table_ddl_fails_the_dialect(self):
        with pytest.raises(ParseError, match="Unsupported syntax for postgres"):
            parse_statements("CREATE TABL users (id INT);", "postgres")

    def test_non_table_create_is_ignored(self, ids):
        schema = parse("""
            CREATE EXTENSION IF NOT EXISTS "uuid-ossp";
            CREATE TABLE users (id INTEGER PRIMARY KEY);
        """, ids)
        assert [t.name for t in schema.tables] == ["users"]

    def test_sqlite_dialect(self, ids):
        schema = parse("CREATE TABLE notes (id INTEGER PRIMARY KEY, body TEXT);", ids, dialect="sqlite")
        assert [c.type for c in schema.tables[0].columns] == [ColumnType.INTEGER, ColumnType.TEXT]


class TestReferences:
    def test_inline_reference(self, ids):
        schema = parse("""
            CREATE TABLE posts (id INTEGER PRIMARY KEY, author_id INTEGER REFERENCES users(id));
            CREATE TABLE users (id INTEGER PRIMARY KEY);
        """, ids)
        (rel,) = schema.relationships
        posts = table_named(schema, "posts")
        assert rel.source.table_id == posts.id
        assert rel.target.table_id == table_named(schema, "users").id
        assert FK in column_named(posts, "author_id").constraints

    def test_reference_without_columns_targets_primary_key(self, ids):
        schema = parse("""
            CREATE TABLE teams (code VARCHAR(8) PRIMARY KEY, name TEXT);
            CREATE TABLE players (id INTEGER PRIMARY KEY, team_code VARCHAR(8) REFERENCES teams);
        """, ids)
        (rel,) = schema.relationships
        teams = table_named(schema, "teams")
        assert rel.target.column_id == column_named(teams, "code").id

    def test_table_level_foreign_key(self, ids):
        schema = parse("""
            CREATE TABLE users (id INTEGER PRIMARY KEY);
            CREATE TABLE profiles (
                id INTEGER PRIMARY KEY,
                user_id INTEGER NOT NULL,
                UNIQUE (user_id),
                FOREIGN KEY (user_id) REFERENCES users (id)
            );
        """, ids)
        (rel,) = schema.relationships
        assert rel.type == RelationshipType.ONE_TO_ONE

    def test_duplicates_collapse(self, ids):
        schema = parse("""
            CREATE TABLE users (id INTEGER PRIMARY KEY);
            CREATE TABLE posts (id INTEGER PRIMARY KEY, user_id INTEGER REFERENCES users(id));
            ALTER TABLE posts ADD CONSTRAINT fk_posts_user FOREIGN KEY (user_id) REFERENCES users (id);
        """, ids)
        assert len(schema.relationships) == 1
        user_id = column_named(table_named(schema, "posts"), "user_id")
        assert user_id.constraints.count(FK) == 1

    def test_schema_qualified_names_resolve(self, ids):
        schema = parse("""
            CREATE TABLE public.users (id INTEGER PRIMARY KEY);
            CREATE TABLE public.orders (id INTEGER PRIMARY KEY, user_id INTEGER);
            ALTER TABLE ONLY public.orders
                ADD CONSTRAINT orders_user_fk FOREIGN KEY (user_id) REFERENCES public.users(id);
        """, ids)
        assert len(schema.relationships) == 1

    def test_case_insensitive_table_names(self, ids):
        schema = parse("""
            CREATE TABLE Users (id INTEGER PRIMARY KEY);
            CREATE TABLE posts (id INTEGER PRIMARY KEY, user_id INTEGER REFERENCES USERS(id));
        """, ids)
        assert len(schema.relationships) == 1

    def test_self_reference(self, ids):
        schema = parse("""
            CREATE TABLE employees (
                id INTEGER PRIMARY KEY,
                manager_id INTEGER REFERENCES employees(id)
            );
        """, ids)
        (rel,) = schema.relationships
        assert rel.source.table_id == rel.target.table_id

    def test_never_many_to_many(self, ids):
        schema = parse("""
            CREATE TABLE users (id INTEGER PRIMARY KEY);
            CREATE TABLE tags (id INTEGER PRIMARY KEY);
            CREATE TABLE user_tags (
                user_id INTEGER REFERENCES users(id),
                tag_id INTEGER REFERENCES tags(id),
                PRIMARY KEY (user_id, tag_id)
            );
        """, ids)
        assert len(schema.relationships) == 2
        assert all(r.type == RelationshipType.ONE_TO_MANY for r in schema.relationships)

    def test_composite_primary_key_keeps_first_column(self, ids):
        schema = parse("""
            CREATE TABLE memberships (
                user_id INTEGER NOT NULL,
                group_id INTEGER NOT NULL,
                PRIMARY KEY (user_id, group_id)
            );
        """, ids)
        columns = schema.tables[0].columns
        assert [c.is_primary_key for c in columns] == [True, False]


class TestDialectFallback:
    def test_first_success_wins(self):
        calls = []

        def failing():
            calls.append("postgres")
            raise ParseError("nope")

        def working():
            calls.append("mysql")
            return []

        def unused():
            calls.append("sqlite")
            return []

        result = _first_success([
            (SQLDialect.POSTGRESQL, failing),
            (SQLDialect.MYSQL, working),
            (SQLDialect.SQLITE, unused),
        ])
        assert result == []
        assert calls == ["postgres", "mysql"]

    def test_last_error_is_reported(self):
        def fail(message):
            def attempt():
                raise ParseError(message)
            return attempt

        with pytest.raises(SQLParseError) as excinfo:
            _first_success([
                (SQLDialect.POSTGRESQL, fail("first")),
                (SQLDialect.MYSQL, fail("second")),
            ])
        assert excinfo.value.message == "second"
        assert excinfo.value.dialect == "MySQL"
        assert str(excinfo.value) == "second (dialect: MySQL)"


@pytest.mark.parametrize("raw,expected", [
    ("users", "users"),
    ('"Users"', "users"),
    ("`Users`", "users"),
    ("  auth.users ", "auth.users"),
])
def test_normalize_identifier(raw, expected):
    assert normalize_identifier(raw) == expected
