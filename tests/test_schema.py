"""Tests for lazuli.data.schema SQL builders."""

import pytest

from lazuli.data import Database
from lazuli.data.schema import (
    add_column,
    create_index,
    create_table,
    drop_column,
    drop_index,
    drop_table,
    index_name,
    quote_identifier,
    rename_column,
    rename_table,
    sql_literal,
    types,
)


class TestColumnTypes:
    def test_defaults(self) -> None:
        assert str(types.integer) == "integer NOT NULL DEFAULT 0"
        assert str(types.boolean) == "boolean NOT NULL DEFAULT FALSE"
        assert str(types.text) == "text NOT NULL"
        assert str(types.varchar) == "character varying(255) NOT NULL"
        assert str(types.time) == "timestamp without time zone NOT NULL"
        assert str(types.double) == "double precision NOT NULL DEFAULT 0"

    def test_options(self) -> None:
        assert types.integer(null=True, default=1) == "integer DEFAULT 1"
        assert types.varchar(length=40, unique=True) == "character varying(40) NOT NULL UNIQUE"
        assert types.time(timezone=True) == "timestamp with time zone NOT NULL"
        assert types.integer(primary_key=True) == "integer NOT NULL DEFAULT 0 PRIMARY KEY"
        assert types.text(null=True, default=None) == "text DEFAULT NULL"

    def test_literals(self) -> None:
        assert sql_literal(None) == "NULL"
        assert sql_literal(True) == "TRUE"
        assert sql_literal(2.5) == "2.5"
        assert sql_literal("it's") == "'it''s'"

    def test_quote_identifier(self) -> None:
        assert quote_identifier("users") == '"users"'
        assert quote_identifier('we"ird') == '"we""ird"'


class TestTables:
    def test_create_table(self) -> None:
        sql = create_table(
            "users",
            [
                ("id", types.integer(primary_key=True)),
                ("name", types.text),
                "UNIQUE (name)",
            ],
        )
        assert sql == (
            'CREATE TABLE IF NOT EXISTS "users" (\n'
            '  "id" integer NOT NULL DEFAULT 0 PRIMARY KEY,\n'
            '  "name" text NOT NULL,\n'
            "  UNIQUE (name)\n"
            ")"
        )

    def test_create_table_strict(self) -> None:
        assert create_table("t", [("x", types.text)], if_not_exists=False).startswith(
            'CREATE TABLE "t" ('
        )

    def test_drop_table(self) -> None:
        assert drop_table("users") == 'DROP TABLE IF EXISTS "users"'

    def test_columns(self) -> None:
        assert add_column("users", "age", types.integer) == (
            'ALTER TABLE "users" ADD COLUMN "age" integer NOT NULL DEFAULT 0'
        )
        assert drop_column("users", "age") == 'ALTER TABLE "users" DROP COLUMN "age"'
        assert rename_column("users", "name", "login") == (
            'ALTER TABLE "users" RENAME COLUMN "name" TO "login"'
        )
        assert rename_table("users", "members") == 'ALTER TABLE "users" RENAME TO "members"'


class TestIndexes:
    def test_index_name(self) -> None:
        assert index_name("users", "created_at") == "users_created_at_idx"
        assert index_name("users", "lower(email)") == "users_lower_email_idx"

    def test_create_index(self) -> None:
        assert create_index("users", "username", unique=True) == (
            'CREATE UNIQUE INDEX IF NOT EXISTS "users_username_idx" ON "users" (username)'
        )

    def test_create_index_where_and_name(self) -> None:
        sql = create_index("users", "a", "b", where="active", name="custom")
        assert sql == 'CREATE INDEX IF NOT EXISTS "custom" ON "users" (a, b) WHERE active'

    def test_create_index_needs_columns(self) -> None:
        with pytest.raises(ValueError):
            create_index("users")

    def test_drop_index(self) -> None:
        assert drop_index("users", "username") == 'DROP INDEX IF EXISTS "users_username_idx"'


class TestAgainstSqlite:
    async def test_statements_run(self) -> None:
        async with Database("sqlite:///:memory:") as db:
            await db.execute(
                create_table(
                    "posts",
                    [
                        ("id", types.integer(primary_key=True)),
                        ("title", types.varchar),
                        ("published", types.boolean),
                    ],
                )
            )
            await db.execute(create_index("posts", "title"))
            await db.execute(add_column("posts", "views", types.integer))
            await db.execute("INSERT INTO posts (id, title) VALUES (1, 'hello')")

            row = await db.fetch_one(dict, "SELECT * FROM posts")
            assert row["published"] == 0
            assert row["views"] == 0

            await db.execute(drop_index("posts", "title"))
            await db.execute(drop_table("posts"))
