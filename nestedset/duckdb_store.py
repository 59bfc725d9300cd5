"""
DuckDB Store: Persistent Backend for Nested Set Trees
=====================================================

DuckDB-backed storage for one table of tree nodes.

Architecture:
┌─────────────────────────────────────────────────────────────────────────────┐
│                          DuckDBNodeStore                                    │
│                                                                             │
│  ┌───────────────────────────────────────────────────────────────────────┐  │
│  │                         nodes table                                   │  │
│  │  id → {parent_id, lft, rght, <scope columns>, <payload columns>}      │  │
│  └───────────────────────────────────────────────────────────────────────┘  │
│                                                                             │
│  Every shift is ONE statement:                                              │
│      UPDATE nodes SET rght = rght + ? WHERE rght >= ? AND image_id = ?      │
└─────────────────────────────────────────────────────────────────────────────┘

Usage:
    store = DuckDBNodeStore("tree.duckdb", columns={"image_id": "INTEGER"})

    node = store.save(store.create(image_id=1, lft=1, rght=2))
    roots = store.find_many({"image_id": 1}, [("parent_id", "=", None)],
                            order_by=[("lft", "asc")])
"""

from __future__ import annotations
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple
import logging
import re

try:
    import duckdb
except ImportError:
    raise ImportError("DuckDB is required. Install with: pip install duckdb")

from .constants import (
    DEFAULT_KEY_FIELD,
    DEFAULT_LEFT_FIELD,
    DEFAULT_PARENT_FIELD,
    DEFAULT_RIGHT_FIELD,
)
from .store import Condition, Node, NodeStore, Order, check_order, scope_conditions


logger = logging.getLogger(__name__)

_IDENT_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_TYPE_RE = re.compile(r"^[A-Za-z][A-Za-z0-9_ (),]*$")

DEFAULT_COLUMNS = {
    DEFAULT_PARENT_FIELD: 'INTEGER',
    DEFAULT_LEFT_FIELD: 'INTEGER',
    DEFAULT_RIGHT_FIELD: 'INTEGER',
}


def _quote(name: str) -> str:
    """Validate and quote an SQL identifier."""
    if not _IDENT_RE.match(name):
        raise ValueError(f"Invalid identifier: {name!r}")
    return f'"{name}"'


# =============================================================================
# DuckDB Store
# =============================================================================

class DuckDBNodeStore(NodeStore):
    """
    DuckDB-backed node store.

    Features:
    - Single-statement arithmetic shifts (atomic per call)
    - Scope filters translated to plain equality predicates
    - Transactions via BEGIN / COMMIT / ROLLBACK
    - Columns of a node's data that the table lacks are not persisted
    """

    def __init__(
        self,
        db_path: str = ":memory:",
        table: str = "nodes",
        columns: Optional[Dict[str, str]] = None,
        key_field: str = DEFAULT_KEY_FIELD,
    ):
        """
        Initialize DuckDB store.

        Args:
            db_path: Path to database file, or ":memory:" for in-memory
            table: Table holding the nodes
            columns: Extra column name → SQL type (scope and payload columns);
                     parent_id / lft / rght INTEGER columns are always added
            key_field: Integer primary key column
        """
        self.db_path = db_path
        self.key_field = key_field
        self._table = _quote(table)
        self.table = table

        declared = dict(DEFAULT_COLUMNS)
        declared.update(columns or {})
        declared.pop(key_field, None)
        for name, sql_type in declared.items():
            _quote(name)
            if not _TYPE_RE.match(sql_type):
                raise ValueError(f"Invalid column type for {name}: {sql_type!r}")

        self.conn = duckdb.connect(db_path)
        self._init_schema(declared)

    def _init_schema(self, declared: Dict[str, str]):
        """Create the node table if it doesn't exist."""
        column_sql = ",\n                ".join(
            f"{_quote(name)} {sql_type}" for name, sql_type in declared.items()
        )
        self.conn.execute(f"""
            CREATE TABLE IF NOT EXISTS {self._table} (
                {_quote(self.key_field)} INTEGER PRIMARY KEY,
                {column_sql}
            )
        """)
        # An existing table may carry more columns than declared
        cursor = self.conn.execute(f"SELECT * FROM {self._table} LIMIT 0")
        self.columns: Tuple[str, ...] = tuple(d[0] for d in cursor.description)

    # -------------------------------------------------------------------------
    # SQL helpers
    # -------------------------------------------------------------------------

    def _execute(self, sql: str, params: Sequence[Any] = ()):
        logger.debug("duckdb: %s %s", " ".join(sql.split()), list(params))
        return self.conn.execute(sql, list(params))

    def _where(self, scope, where) -> Tuple[str, List[Any]]:
        """Render scope + conditions as a WHERE clause."""
        clauses = []
        params: List[Any] = []
        for name, op, value in scope_conditions(scope, where):
            column = _quote(name)
            if value is None:
                if op == '=':
                    clauses.append(f"{column} IS NULL")
                elif op == '!=':
                    clauses.append(f"{column} IS NOT NULL")
                else:
                    clauses.append("FALSE")
            else:
                clauses.append(f"{column} {op} ?")
                params.append(value)
        if not clauses:
            return "", params
        return " WHERE " + " AND ".join(clauses), params

    def _order(self, order_by: Optional[Order]) -> str:
        terms = [
            f"{_quote(name)} {direction.upper()} NULLS LAST"
            for name, direction in check_order(order_by)
        ]
        terms.append(f"{_quote(self.key_field)} ASC")
        return " ORDER BY " + ", ".join(terms)

    def _to_nodes(self, cursor) -> List[Node]:
        names = [d[0] for d in cursor.description]
        return [
            Node(data=dict(zip(names, row)), key_field=self.key_field)
            for row in cursor.fetchall()
        ]

    @staticmethod
    def _affected(cursor) -> int:
        result = cursor.fetchone()
        return result[0] if result else 0

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get(self, key: Any) -> Optional[Node]:
        """Fetch node by key."""
        if key is None:
            return None
        cursor = self._execute(
            f"SELECT * FROM {self._table} WHERE {_quote(self.key_field)} = ?", [key]
        )
        nodes = self._to_nodes(cursor)
        return nodes[0] if nodes else None

    def find_many(self, scope=None, where=None, order_by=None) -> List[Node]:
        clause, params = self._where(scope, where)
        sql = f"SELECT * FROM {self._table}{clause}{self._order(order_by)}"
        return self._to_nodes(self._execute(sql, params))

    def find_one(self, scope=None, where=None, order_by=None) -> Optional[Node]:
        clause, params = self._where(scope, where)
        sql = f"SELECT * FROM {self._table}{clause}{self._order(order_by)} LIMIT 1"
        nodes = self._to_nodes(self._execute(sql, params))
        return nodes[0] if nodes else None

    def count(self, scope=None, where=None) -> int:
        clause, params = self._where(scope, where)
        result = self._execute(f"SELECT COUNT(*) FROM {self._table}{clause}", params).fetchone()
        return result[0] if result else 0

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def update(self, scope, where, field, delta, assign=None) -> int:
        column = _quote(field)
        sets = [f"{column} = {column} + ?"]
        set_params: List[Any] = [delta]
        for name, value in (assign or {}).items():
            sets.append(f"{_quote(name)} = ?")
            set_params.append(value)
        clause, params = self._where(scope, where)
        cursor = self._execute(
            f"UPDATE {self._table} SET {', '.join(sets)}{clause}", set_params + params
        )
        return self._affected(cursor)

    def delete_many(self, scope, where) -> int:
        clause, params = self._where(scope, where)
        cursor = self._execute(f"DELETE FROM {self._table}{clause}", params)
        return self._affected(cursor)

    def save(self, node: Node) -> Node:
        """
        Insert or update a node.

        New keys are allocated as MAX(key) + 1 (single writer per table).
        """
        key_column = _quote(self.key_field)
        key = node.key
        exists = False
        if key is None:
            result = self._execute(
                f"SELECT COALESCE(MAX({key_column}), 0) + 1 FROM {self._table}"
            ).fetchone()
            key = result[0]
            node[self.key_field] = key
        else:
            exists = self._execute(
                f"SELECT 1 FROM {self._table} WHERE {key_column} = ?", [key]
            ).fetchone() is not None

        values = {
            name: value for name, value in node.data.items()
            if name in self.columns and name != self.key_field
        }
        if exists:
            if values:
                sets = ", ".join(f"{_quote(name)} = ?" for name in values)
                self._execute(
                    f"UPDATE {self._table} SET {sets} WHERE {key_column} = ?",
                    list(values.values()) + [key],
                )
        else:
            names = [self.key_field] + list(values)
            placeholders = ", ".join("?" for _ in names)
            self._execute(
                f"INSERT INTO {self._table} ({', '.join(_quote(n) for n in names)}) "
                f"VALUES ({placeholders})",
                [key] + list(values.values()),
            )
        return node

    @contextmanager
    def transaction(self) -> Iterator['DuckDBNodeStore']:
        """Wrap a block in BEGIN / COMMIT, rolling back on error."""
        self.conn.begin()
        try:
            yield self
        except Exception:
            self.conn.rollback()
            raise
        self.conn.commit()

    # -------------------------------------------------------------------------
    # Statistics & Maintenance
    # -------------------------------------------------------------------------

    def stats(self) -> Dict[str, Any]:
        """Get store statistics."""
        nodes = self._execute(f"SELECT COUNT(*) FROM {self._table}").fetchone()[0]
        return {
            'nodes': nodes,
            'columns': list(self.columns),
            'db_path': self.db_path,
        }

    def close(self):
        """Close the database connection."""
        self.conn.close()


# =============================================================================
# Factory Functions
# =============================================================================

def create_duckdb_store(
    db_path: str = ":memory:",
    table: str = "nodes",
    columns: Optional[Dict[str, str]] = None,
) -> DuckDBNodeStore:
    """Create a DuckDB node store instance."""
    return DuckDBNodeStore(db_path, table=table, columns=columns)


__all__ = [
    'DuckDBNodeStore',
    'create_duckdb_store',
]
