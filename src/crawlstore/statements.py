"""
Builders for the multi-row statements used by the batch writers.

Placeholders are numbered as they are generated, so the SQL text never needs a
second rewriting pass.
"""

from typing import Any, List, Sequence, Tuple

from .database import Dialect

Row = Tuple[Any, ...]


def dedupe_rows(rows: Sequence[Row], key_width: int) -> List[Row]:
    """Drop rows whose leading ``key_width`` values repeat an earlier row."""
    seen = set()
    unique = []
    for row in rows:
        key = tuple(row[:key_width])
        if key in seen:
            continue
        seen.add(key)
        unique.append(tuple(row))
    return unique


def rows_per_statement(dialect: Dialect, width: int) -> int:
    if width < 1:
        raise ValueError("a row needs at least one column")
    return max(1, dialect.max_parameters // width)


def build_insert(dialect: Dialect, table: str, columns: Sequence[str], rows: Sequence[Row],
                 skip_conflicts: bool = False) -> Tuple[str, List[Any]]:
    """Build one ``INSERT ... VALUES (...), (...)`` statement and its parameters.

    With ``skip_conflicts`` the statement ends in the dialect's conflict-skip
    clause, so rows hitting an existing key are dropped instead of failing the
    statement.
    """
    if not rows:
        raise ValueError("cannot build an INSERT without rows")
    width = len(columns)
    groups = []
    params: List[Any] = []
    for row in rows:
        if len(row) != width:
            raise ValueError(f"row has {len(row)} values, expected {width}")
        groups.append(f"({dialect.placeholders(len(params) + 1, width)})")
        params.extend(row)
    sql = f"INSERT INTO {table} ({', '.join(columns)}) VALUES {', '.join(groups)}"
    if skip_conflicts:
        sql += " " + dialect.conflict_skip_clause()
    return sql, params


def build_insert_statements(dialect: Dialect, table: str, columns: Sequence[str], rows: Sequence[Row],
                            skip_conflicts: bool = False) -> List[Tuple[str, List[Any]]]:
    """Like build_insert, split only where a batch exceeds the parameter limit."""
    step = rows_per_statement(dialect, len(columns))
    return [
        build_insert(dialect, table, columns, rows[i:i + step], skip_conflicts)
        for i in range(0, len(rows), step)
    ]


def build_existing_keys_query(dialect: Dialect, table: str, key_columns: Sequence[str],
                              keys: Sequence[Row]) -> Tuple[str, List[Any]]:
    """SELECT the key columns of rows in ``table`` matching any of ``keys``."""
    if not keys:
        raise ValueError("cannot build a lookup without keys")
    width = len(key_columns)
    params: List[Any] = []
    if width == 1:
        condition = f"{key_columns[0]} IN ({dialect.placeholders(1, len(keys))})"
        params.extend(key[0] for key in keys)
    else:
        terms = []
        for key in keys:
            start = len(params) + 1
            terms.append("(" + " AND ".join(
                f"{column} = {dialect.placeholder(start + offset)}"
                for offset, column in enumerate(key_columns)
            ) + ")")
            params.extend(key)
        condition = " OR ".join(terms)
    return f"SELECT {', '.join(key_columns)} FROM {table} WHERE {condition}", params
