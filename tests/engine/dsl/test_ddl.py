# tests/engine/dsl/test_ddl.py

import pytest
from tenanta.engine.dsl import compile_to_ddl, quote_identifier, qualified_name
from tenanta.engine.dsl.ddl import render_default, resolve_column_type
from tenanta.engine.dsl.types import ParsedColumn

USERS_POSTS_DSL = """
Table users {
  id uuid [pk]
}

Table posts {
  id uuid [pk]
  author_id uuid
}

Ref: posts.author_id > users.id
"""


def test_users_posts_scenario():
    """两张表 + 一条 Ref: 两条建表语句, 一条外键语句。"""
    plan = compile_to_ddl(USERS_POSTS_DSL, "public")

    assert plan.create_statements == [
        "CREATE TABLE IF NOT EXISTS public.users (\n    id UUID PRIMARY KEY DEFAULT uuid_generate_v4()\n)",
        "CREATE TABLE IF NOT EXISTS public.posts (\n"
        "    id UUID PRIMARY KEY DEFAULT uuid_generate_v4(),\n"
        "    author_id UUID\n"
        ")",
    ]
    assert plan.constraint_statements == [
        "ALTER TABLE public.posts ADD CONSTRAINT fk_posts_author_id_0 "
        "FOREIGN KEY (author_id) REFERENCES public.users (id) ON DELETE CASCADE ON UPDATE CASCADE"
    ]


def test_columns_on_one_line_compile_like_multiline():
    """同一行内逗号分隔的列定义, 与逐行写法生成相同的 DDL。"""
    compact = (
        "Table users {id uuid [pk]}\n"
        "Table posts {id uuid [pk], author_id uuid}\n"
        "Ref: posts.author_id > users.id"
    )

    plan = compile_to_ddl(compact, "public")

    assert len(plan.create_statements) == 2
    assert plan == compile_to_ddl(USERS_POSTS_DSL, "public")


def test_single_foreign_key_with_cascade():
    plan = compile_to_ddl("Ref: orders.user_id > users.id")

    assert plan.create_statements == []
    assert len(plan.constraint_statements) == 1
    statement = plan.constraint_statements[0]
    assert statement.startswith("ALTER TABLE public.orders ADD CONSTRAINT")
    assert "REFERENCES public.users (id)" in statement
    assert statement.endswith("ON DELETE CASCADE ON UPDATE CASCADE")


@pytest.mark.parametrize("ref", [
    "Ref: sessions.user_id > users.id",
    "Ref: audit.info_id > system_info.id",
])
def test_reserved_tables_produce_no_foreign_key(ref):
    plan = compile_to_ddl(ref)
    assert plan.constraint_statements == []


def test_explicit_default_wins_over_automatic_uuid():
    plan = compile_to_ddl("Table t {\n  id uuid [pk, default: 'literal']\n}")

    assert plan.create_statements[0] == "CREATE TABLE IF NOT EXISTS public.t (\n    id UUID PRIMARY KEY DEFAULT 'literal'\n)"
    assert "uuid_generate_v4" not in plan.create_statements[0]


def test_timestamp_columns_and_updated_at_trigger():
    dsl = """
    Table notes {
      id int [pk, increment]
      body text [not null]
      created_at timestamp
      updated_at timestamp
    }
    """
    plan = compile_to_ddl(dsl, "public")

    assert plan.create_statements == [
        "CREATE TABLE IF NOT EXISTS public.notes (\n"
        "    id SERIAL PRIMARY KEY,\n"
        "    body TEXT NOT NULL,\n"
        "    created_at TIMESTAMP WITH TIME ZONE DEFAULT NOW(),\n"
        "    updated_at TIMESTAMP WITH TIME ZONE DEFAULT NOW()\n"
        ")"
    ]
    # DROP 在前, 同一轮重建内可重复执行
    assert plan.constraint_statements == [
        "DROP TRIGGER IF EXISTS update_notes_updated_at ON public.notes",
        "CREATE TRIGGER update_notes_updated_at BEFORE UPDATE ON public.notes "
        "FOR EACH ROW EXECUTE FUNCTION update_updated_at_column()",
    ]


def test_tables_without_columns_are_skipped():
    plan = compile_to_ddl("Table empty {\n}\nTable t {\n  id int\n}")

    assert len(plan.create_statements) == 1
    assert "public.t" in plan.create_statements[0]


def test_composite_primary_key():
    dsl = "Table memberships {\n  team_id int [pk]\n  user_id int [pk]\n}"
    plan = compile_to_ddl(dsl)

    assert plan.create_statements[0] == (
        "CREATE TABLE IF NOT EXISTS public.memberships (\n"
        "    team_id INTEGER NOT NULL,\n"
        "    user_id INTEGER NOT NULL,\n"
        "    PRIMARY KEY (team_id, user_id)\n"
        ")"
    )


def test_namespace_and_reserved_identifiers_are_quoted():
    plan = compile_to_ddl('Table "order" {\n  user int [unique]\n}', "tenant_app")

    assert plan.create_statements[0] == 'CREATE TABLE IF NOT EXISTS tenant_app."order" (\n    "user" INTEGER UNIQUE\n)'


@pytest.mark.parametrize("column, expected", [
    (ParsedColumn(name="c", type="varchar"), "VARCHAR(255)"),
    (ParsedColumn(name="c", type="varchar", length="100"), "VARCHAR(100)"),
    (ParsedColumn(name="c", type="decimal", length="10,2"), "DECIMAL(10,2)"),
    (ParsedColumn(name="c", type="int", is_increment=True), "SERIAL"),
    (ParsedColumn(name="c", type="bigint", is_increment=True), "BIGSERIAL"),
    (ParsedColumn(name="c", type="json"), "JSONB"),
    (ParsedColumn(name="c", type="point"), "POINT"),
    (ParsedColumn(name="c", type="bit", length="8"), "BIT(8)"),
])
def test_resolve_column_type(column, expected):
    assert resolve_column_type(column) == expected


@pytest.mark.parametrize("raw, expected", [
    ("`now()`", "NOW()"),
    ("CURRENT_TIMESTAMP", "NOW()"),
    ("`gen_random_uuid()`", "gen_random_uuid()"),
    ("'draft'", "'draft'"),
    ("42", "42"),
    ("-1.5", "-1.5"),
    ("true", "TRUE"),
    ("active", "'active'"),
    ('"it\'s"', "'it''s'"),
])
def test_render_default(raw, expected):
    assert render_default(raw) == expected


def test_quote_identifier_only_when_needed():
    assert quote_identifier("users") == "users"
    assert quote_identifier("user") == '"user"'
    assert quote_identifier("Order Items") == '"Order Items"'
    assert qualified_name("public", "posts") == "public.posts"
