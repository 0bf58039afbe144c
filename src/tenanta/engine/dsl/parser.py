# src/tenanta/engine/dsl/parser.py

"""
DBML 风格 DSL 的容错解析器。

解析结果仅用于可视化和 DDL 渲染, 因此解析是"尽力而为"的:
无法识别的片段会被跳过 (记录 debug 日志), 永远不会抛出异常。

支持的语法子集::

    Table users as U {
      id uuid [pk]
      email varchar(120) [not null, unique]
      org_id int [ref: > orgs.id]
      created_at timestamp [default: `now()`]
      indexes { email }
      Note: 'free text'
    }

    Ref: posts.author_id > users.id
    Ref fk_name: users.id < posts.author_id
    Ref { comments.post_id > posts.id }
"""

import re
import logging
from typing import List, Optional, Tuple, Iterator
from .types import ParsedColumn, ParsedTable, ParsedRelationship, SchemaModel

logger = logging.getLogger(__name__)

_IDENT = r'(?:"[^"]+"|`[^`]+`|[A-Za-z_][\w]*)'

TABLE_HEADER_RE = re.compile(
    rf'\btable\s+((?:{_IDENT}\.)?{_IDENT})(?:\s+as\s+{_IDENT})?\s*(?:\[[^\]]*\])?\s*\{{',
    re.IGNORECASE
)

COLUMN_RE = re.compile(
    rf'^({_IDENT})\s+([A-Za-z_][\w.]*(?:\[\])?)\s*(?:\(\s*([\d\s,]+?)\s*\))?\s*(?:\[(.*)\])?\s*,?\s*$'
)

_ENDPOINT = rf'((?:{_IDENT}\.)?{_IDENT})\.({_IDENT})'

REF_RE = re.compile(
    rf'\bref\b[^:{{\n]*[:{{]\s*{_ENDPOINT}\s*([<>-]|<>)\s*{_ENDPOINT}',
    re.IGNORECASE
)

INLINE_REF_RE = re.compile(rf'^ref\s*:\s*([<>-]|<>)\s*{_ENDPOINT}$', re.IGNORECASE)

# 表体内的 Note: '...' 行 (嵌套块由大括号计数处理)
_SKIP_LINE_RE = re.compile(r'^note\s*:', re.IGNORECASE)


def _unquote(identifier: str) -> str:
    identifier = identifier.strip()
    if len(identifier) >= 2 and identifier[0] == identifier[-1] and identifier[0] in '"`':
        return identifier[1:-1]
    return identifier


def _last_segment(dotted: str) -> str:
    """'public.users' -> 'users'."""
    parts = re.findall(_IDENT, dotted)
    return _unquote(parts[-1]) if parts else _unquote(dotted)


def _strip_line_comment(line: str) -> str:
    in_quote: Optional[str] = None
    for i, ch in enumerate(line):
        if in_quote:
            if ch == in_quote:
                in_quote = None
        elif ch in ("'", '"', '`'):
            in_quote = ch
        elif ch == '/' and line[i + 1:i + 2] == '/':
            return line[:i]
    return line


def split_attributes(raw: str) -> List[str]:
    """Split on top-level commas, i.e. outside quotes and bracket pairs."""
    parts: List[str] = []
    buf: List[str] = []
    in_quote: Optional[str] = None
    depth = 0
    for ch in raw:
        if in_quote:
            buf.append(ch)
            if ch == in_quote:
                in_quote = None
            continue
        if ch in ("'", '"', '`'):
            in_quote = ch
        elif ch in ('(', '['):
            depth += 1
        elif ch in (')', ']'):
            depth = max(depth - 1, 0)
        elif ch == ',' and depth == 0:
            parts.append(''.join(buf).strip())
            buf = []
            continue
        buf.append(ch)
    tail = ''.join(buf).strip()
    if tail:
        parts.append(tail)
    return [p for p in parts if p]


def _find_block_end(text: str, open_index: int) -> int:
    """Index of the brace closing the block opened at ``open_index``, or -1."""
    depth = 0
    in_quote: Optional[str] = None
    i = open_index
    while i < len(text):
        ch = text[i]
        if in_quote:
            if ch == in_quote:
                in_quote = None
        elif ch in ("'", '"', '`'):
            in_quote = ch
        elif ch == '/' and text[i + 1:i + 2] == '/':
            newline = text.find('\n', i)
            if newline == -1:
                return -1
            i = newline
        elif ch == '{':
            depth += 1
        elif ch == '}':
            depth -= 1
            if depth == 0:
                return i
        i += 1
    return -1


def _iter_table_blocks(dsl_text: str) -> Iterator[Tuple[str, str, int, int]]:
    """Yields (table name, body, block start, block end) for every well-formed table block."""
    pos = 0
    while True:
        match = TABLE_HEADER_RE.search(dsl_text, pos)
        if not match:
            return
        open_index = match.end() - 1
        close_index = _find_block_end(dsl_text, open_index)
        if close_index == -1:
            logger.debug("Unterminated table block skipped", extra={"table": match.group(1)})
            return
        yield _last_segment(match.group(1)), dsl_text[open_index + 1:close_index], match.start(), close_index + 1
        pos = close_index + 1


def _count_braces(line: str) -> Tuple[int, int]:
    opens = closes = 0
    in_quote: Optional[str] = None
    for ch in line:
        if in_quote:
            if ch == in_quote:
                in_quote = None
        elif ch in ("'", '"', '`'):
            in_quote = ch
        elif ch == '{':
            opens += 1
        elif ch == '}':
            closes += 1
    return opens, closes


def _top_level_lines(body: str) -> Iterator[str]:
    """
    Column definitions of a table body; nested blocks (indexes, Note) are skipped entirely.
    Several definitions may share one line, separated by top-level commas.
    """
    depth = 0
    for raw_line in body.splitlines():
        line = _strip_line_comment(raw_line).strip()
        if not line:
            continue
        opens, closes = _count_braces(line)
        if depth > 0 or opens:
            depth = max(depth + opens - closes, 0)
            continue
        if _SKIP_LINE_RE.match(line):
            continue
        yield from split_attributes(line)


def parse_column(line: str, table_name: str) -> Tuple[Optional[ParsedColumn], List[ParsedRelationship]]:
    match = COLUMN_RE.match(line)
    if not match:
        logger.debug("Unrecognized column line skipped", extra={"table": table_name, "line": line})
        return None, []

    name, type_token, length, attributes = match.groups()
    column = ParsedColumn(
        name=_unquote(name),
        type=type_token,
        length=re.sub(r'\s+', '', length) if length else None,
    )
    relationships: List[ParsedRelationship] = []

    for attr in split_attributes(attributes or ''):
        lowered = re.sub(r'\s+', ' ', attr.lower())
        if lowered in ('pk', 'primary key'):
            column.is_primary_key = True
            column.nullable = False
        elif lowered == 'not null':
            column.nullable = False
        elif lowered == 'null':
            column.nullable = True
        elif lowered == 'unique':
            column.is_unique = True
        elif lowered in ('increment', 'auto_increment'):
            column.is_increment = True
        elif lowered.startswith('default'):
            _, _, value = attr.partition(':')
            if value.strip():
                column.default = value.strip()
        elif lowered.startswith('ref'):
            ref_match = INLINE_REF_RE.match(attr.strip())
            if not ref_match:
                logger.debug("Unrecognized inline ref skipped", extra={"table": table_name, "attribute": attr})
                continue
            op, target_table, target_column = ref_match.groups()
            target = (_last_segment(target_table), _unquote(target_column))
            local = (table_name, column.name)
            # '<' 表示对方是"多"的一侧
            source, dest = (target, local) if op == '<' else (local, target)
            relationships.append(ParsedRelationship(
                from_table=source[0], from_column=source[1],
                to_table=dest[0], to_column=dest[1]
            ))
        # note / check / 其他属性: 不影响结构, 忽略

    return column, relationships


def parse_to_model(dsl_text: Optional[str]) -> SchemaModel:
    """
    Parse DSL text into tables and relationships.

    Total function: malformed fragments are dropped and the rest of the
    document is still returned.
    """
    model = SchemaModel()
    if not dsl_text or not dsl_text.strip():
        return model

    seen_tables = set()
    inline_relationships: List[ParsedRelationship] = []
    outside_parts: List[str] = []
    cursor = 0

    for table_name, body, start, end in _iter_table_blocks(dsl_text):
        outside_parts.append(dsl_text[cursor:start])
        cursor = end

        if table_name in seen_tables:
            logger.debug("Duplicate table definition skipped", extra={"table": table_name})
            continue
        seen_tables.add(table_name)

        table = ParsedTable(name=table_name)
        for line in _top_level_lines(body):
            column, refs = parse_column(line, table_name)
            if column is None:
                continue
            if table.has_column(column.name):
                logger.debug("Duplicate column skipped", extra={"table": table_name, "column": column.name})
                continue
            table.columns.append(column)
            inline_relationships.extend(refs)
        model.tables.append(table)

    outside_parts.append(dsl_text[cursor:])

    # Ref 语句只在表块之外收集, 可以引用文档中不存在的表
    for part in outside_parts:
        for ref in REF_RE.finditer(part):
            left_table, left_column, op, right_table, right_column = ref.groups()
            left = (_last_segment(left_table), _unquote(left_column))
            right = (_last_segment(right_table), _unquote(right_column))
            source, dest = (right, left) if op == '<' else (left, right)
            model.relationships.append(ParsedRelationship(
                from_table=source[0], from_column=source[1],
                to_table=dest[0], to_column=dest[1]
            ))

    model.relationships.extend(inline_relationships)
    return model
