"""In-memory stand-in for the Supabase table query builder used by the repository."""

import threading
import uuid
from datetime import datetime, timezone

from postgrest.exceptions import APIError

UNIQUE_COLUMNS = {
    "users": ("email",),
    "refresh_tokens": ("token_hash",),
    "one_time_tokens": ("token_hash",),
}


def _comparable(value):
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            return value
    return value


class FakeResult:
    def __init__(self, data, count=None):
        self.data = data
        self.count = count


class FakeQuery:
    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table_name = table
        self.op = "select"
        self.columns = "*"
        self.values = None
        self.filters = []
        self.max_rows = None

    # --- operations ---

    def select(self, columns: str = "*", count=None):
        self.op, self.columns = "select", columns
        return self

    def insert(self, values):
        self.op, self.values = "insert", values
        return self

    def update(self, values):
        self.op, self.values = "update", values
        return self

    def delete(self):
        self.op = "delete"
        return self

    # --- filters ---

    def eq(self, column, value):
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def neq(self, column, value):
        self.filters.append(lambda row: row.get(column) != value)
        return self

    def gt(self, column, value):
        self.filters.append(lambda row: row.get(column) is not None and _comparable(row[column]) > _comparable(value))
        return self

    def lt(self, column, value):
        self.filters.append(lambda row: row.get(column) is not None and _comparable(row[column]) < _comparable(value))
        return self

    def is_(self, column, value):
        expected = None if value in ("null", None) else value
        self.filters.append(lambda row: row.get(column) is expected)
        return self

    def limit(self, n):
        self.max_rows = n
        return self

    def order(self, column, desc=False):
        return self

    # --- execution ---

    def _project(self, row):
        if self.columns.strip() == "*":
            return dict(row)
        return {c.strip(): row.get(c.strip()) for c in self.columns.split(",")}

    def execute(self):
        with self.db.lock:
            failure = self.db.failures.pop(self.table_name, None)
            if failure is not None:
                raise failure

            rows = self.db.tables.setdefault(self.table_name, [])
            if self.op == "insert":
                return FakeResult([self._insert(rows, v) for v in self._as_list(self.values)])

            matched = [row for row in rows if all(f(row) for f in self.filters)]
            if self.max_rows is not None:
                matched = matched[: self.max_rows]

            if self.op == "select":
                return FakeResult([self._project(r) for r in matched], count=len(matched))
            if self.op == "update":
                for row in matched:
                    row.update(self.values)
                return FakeResult([dict(r) for r in matched])
            if self.op == "delete":
                for row in matched:
                    rows.remove(row)
                return FakeResult([dict(r) for r in matched])
        raise AssertionError(f"unsupported operation {self.op}")

    @staticmethod
    def _as_list(values):
        return values if isinstance(values, list) else [values]

    def _insert(self, rows, values):
        row = {"id": str(uuid.uuid4()), "created_at": datetime.now(timezone.utc).isoformat(), **values}
        if self.table_name == "refresh_tokens":
            row.setdefault("revoked", False)
        if self.table_name == "one_time_tokens":
            row.setdefault("consumed_at", None)
        for column in UNIQUE_COLUMNS.get(self.table_name, ()):
            if any(existing.get(column) == row.get(column) for existing in rows):
                raise APIError({"code": "23505", "message": f"duplicate key value violates unique constraint on {column}", "details": "", "hint": ""})
        rows.append(row)
        return dict(row)


class FakeSupabase:
    def __init__(self):
        self.tables: dict[str, list[dict]] = {}
        self.failures: dict[str, Exception] = {}
        self.lock = threading.Lock()

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def fail_next(self, table: str, error: Exception) -> None:
        self.failures[table] = error

    def rows(self, table: str) -> list[dict]:
        return self.tables.setdefault(table, [])
