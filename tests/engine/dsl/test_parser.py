# tests/engine/dsl/test_parser.py

from tenanta.engine.dsl import parse_to_model, ParsedRelationship
from tenanta.engine.dsl.parser import parse_column, split_attributes

BLOG_DSL = """
// blog schema
Table users as U {
  id uuid [pk]
  email varchar(120) [not null, unique]
  note text
  created_at timestamp [default: `now()`]
  indexes {
    (email, created_at) [unique]
  }
  Note: 'people who write posts'
}

Table posts {
  id int [pk, increment]
  author_id uuid [ref: > users.id]
  title varchar [not null]
  price decimal(10, 2) [default: 0]
}

Ref: comments.post_id > posts.id
"""


def test_parse_tables_and_columns():
    """表块按文档顺序解析, 嵌套块与 Note 行被跳过。"""
    model = parse_to_model(BLOG_DSL)

    assert [t.name for t in model.tables] == ["users", "posts"]
    users = model.tables[0]
    assert [c.name for c in users.columns] == ["id", "email", "note", "created_at"]

    id_col, email_col = users.columns[0], users.columns[1]
    assert id_col.is_primary_key is True
    assert id_col.nullable is False
    assert email_col.type == "varchar"
    assert email_col.length == "120"
    assert email_col.nullable is False
    assert email_col.is_unique is True
    assert users.columns[3].default == "`now()`"


def test_parse_increment_and_numeric_length():
    model = parse_to_model(BLOG_DSL)
    posts = model.tables[1]

    assert posts.columns[0].is_increment is True
    assert posts.columns[3].length == "10,2"
    assert posts.columns[3].default == "0"


def test_relationships_outside_and_inline():
    """Ref 语句可以引用文档中不存在的表; 行内 ref 追加在其后。"""
    model = parse_to_model(BLOG_DSL)

    assert model.relationships == [
        ParsedRelationship(from_table="comments", from_column="post_id", to_table="posts", to_column="id"),
        ParsedRelationship(from_table="posts", from_column="author_id", to_table="users", to_column="id"),
    ]


def test_less_than_reverses_direction():
    model = parse_to_model("Ref: users.id < posts.author_id")

    assert model.tables == []
    assert model.relationships == [
        ParsedRelationship(from_table="posts", from_column="author_id", to_table="users", to_column="id")
    ]


def test_malformed_fragments_are_skipped():
    dsl = """
    Table events {
      id int [pk]
      ??? not a column
      payload jsonb
      id text
    }
    Table broken {
      name text
    """
    model = parse_to_model(dsl)

    # 未闭合的表块被丢弃, 重复列只保留第一次出现
    assert [t.name for t in model.tables] == ["events"]
    assert [c.name for c in model.tables[0].columns] == ["id", "payload"]
    assert model.tables[0].columns[0].type == "int"


def test_empty_input_yields_empty_model():
    for text in (None, "", "   \n  "):
        model = parse_to_model(text)
        assert model.tables == []
        assert model.relationships == []


def test_table_without_columns_is_kept_in_model():
    model = parse_to_model("Table placeholder {\n}\n")

    assert len(model.tables) == 1
    assert model.tables[0].columns == []


def test_duplicate_table_definition_is_ignored():
    dsl = "Table a {\n x int\n}\nTable a {\n y int\n}\n"
    model = parse_to_model(dsl)

    assert len(model.tables) == 1
    assert model.tables[0].columns[0].name == "x"


def test_schema_qualified_and_quoted_names():
    dsl = 'Table public."Order Items" {\n  "line no" int [pk]\n}\n'
    model = parse_to_model(dsl)

    assert model.tables[0].name == "Order Items"
    assert model.tables[0].columns[0].name == "line no"


def test_split_attributes_respects_quotes_and_parentheses():
    raw = "default: 'a, b', note: 'x', check: (a > 1, b < 2), not null"
    assert split_attributes(raw) == ["default: 'a, b'", "note: 'x'", "check: (a > 1, b < 2)", "not null"]


def test_comma_separated_columns_on_one_line():
    model = parse_to_model("Table posts {id uuid [pk, note: 'a, b'], price decimal(10, 2), author_id uuid}")

    posts = model.tables[0]
    assert [c.name for c in posts.columns] == ["id", "price", "author_id"]
    assert posts.columns[0].is_primary_key is True
    assert posts.columns[1].length == "10,2"


def test_parse_column_unrecognized_line():
    column, refs = parse_column("}{", "t")
    assert column is None
    assert refs == []


def test_camel_case_serialization():
    model = parse_to_model("Table t {\n id int [pk]\n}\nRef: t.id > u.id")
    dumped = model.model_dump(by_alias=True)

    assert dumped["tables"][0]["columns"][0]["isPrimaryKey"] is True
    assert dumped["relationships"][0]["fromTable"] == "t"
