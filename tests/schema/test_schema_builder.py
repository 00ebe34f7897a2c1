import datetime
import logging
from dataclasses import dataclass, field
from typing import List, Optional

import pytest

from sqlweave.core import column
from sqlweave.dialects import MySQLDialect, PostgresDialect, SQLiteDialect
from sqlweave.schema import SchemaBuilder


@dataclass
class Article:
    id: int = 0
    title: str = ""
    body: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    meta: dict = field(default_factory=dict)
    createdAt: Optional[datetime.datetime] = None
    views: int = 0


@dataclass
class Token:
    id: str = ""
    owner: str = column(name="owner_ref", default="")


def test_create_table_sql_sqlite():
    sql = SchemaBuilder(SQLiteDialect()).create_table_sql(
        Article, "articles", defaults={"created_at": "now()", "views": "0"}
    )
    assert sql == (
        'CREATE TABLE IF NOT EXISTS "articles" ('
        '"id" INTEGER NOT NULL PRIMARY KEY AUTOINCREMENT, '
        '"title" TEXT NOT NULL, '
        '"body" TEXT, '
        '"tags" TEXT NOT NULL, '
        '"meta" TEXT NOT NULL, '
        "\"created_at\" TEXT DEFAULT (datetime('now')), "
        '"views" INTEGER NOT NULL DEFAULT 0)'
    )


def test_create_table_sql_postgres_types():
    sql = SchemaBuilder(PostgresDialect()).create_table_sql(Article, "public.articles")
    assert sql.startswith('CREATE TABLE IF NOT EXISTS "public"."articles" ("id" SERIAL NOT NULL PRIMARY KEY, ')
    assert '"tags" TEXT[] NOT NULL' in sql
    assert '"meta" JSONB NOT NULL' in sql
    assert '"created_at" TIMESTAMP,' in sql


def test_create_table_sql_mysql_auto_increment():
    sql = SchemaBuilder(MySQLDialect()).create_table_sql(Article, "articles")
    assert "`id` INT NOT NULL PRIMARY KEY AUTO_INCREMENT" in sql
    assert "`tags` JSON NOT NULL" in sql
    assert "`title` VARCHAR(191) NOT NULL" in sql


def test_textual_primary_key_and_overrides():
    sql = SchemaBuilder(PostgresDialect()).create_table_sql(
        Token, "tokens", types={"owner_ref": "VARCHAR(64)"}, defaults={"id": "uuid()"}
    )
    assert sql == (
        'CREATE TABLE IF NOT EXISTS "tokens" ('
        '"id" TEXT NOT NULL PRIMARY KEY DEFAULT gen_random_uuid(), '
        '"owner_ref" VARCHAR(64) NOT NULL)'
    )


def test_full_text_index_sql():
    assert SchemaBuilder(MySQLDialect()).full_text_index_sql("posts", "body") == (
        "CREATE FULLTEXT INDEX `idx_posts_body_fts` ON `posts` (`body`)"
    )
    assert SchemaBuilder(PostgresDialect()).full_text_index_sql("posts", "body") == (
        'CREATE INDEX IF NOT EXISTS "idx_posts_body_fts" ON "posts" '
        "USING GIN (to_tsvector('english', \"body\"))"
    )
    with pytest.raises(ValueError):
        SchemaBuilder(SQLiteDialect()).full_text_index_sql("posts", "body")


def test_drop_table_sql_warns(caplog):
    caplog.set_level(logging.WARNING, logger="sqlweave.schema.builder")
    sql = SchemaBuilder(SQLiteDialect()).drop_table_sql("articles")
    assert sql == 'DROP TABLE IF EXISTS "articles"'
    assert "destructive change" in caplog.text
