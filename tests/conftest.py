"""Shared fixtures: an in-memory stand-in for the Supabase client and an API test client.

The fake implements just the PostgREST query-builder calls the app makes
(table/select/insert/update/eq/in_/or_/order/limit/range/execute), the
unique indexes declared in supabase/migrations/001_skill_swap.sql and the
``submit_swap_rating`` database function, which runs as one transaction.
"""

import itertools
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP

import pytest
from fastapi.testclient import TestClient
from postgrest.exceptions import APIError

from skillswap.core.security import create_access_token
from skillswap.core.supabase import get_supabase_client
from skillswap.main import app

UNIQUE_INDEXES = {
    "swap_requests": [(("requester_id", "responder_id"), lambda row: row.get("status") == "pending")],
    "user_ratings": [(("swap_id", "rater_user_id"), None)],
    "revoked_tokens": [(("jti",), None)],
}


class FakeResponse:
    def __init__(self, data):
        self.data = data


class FakeQuery:
    def __init__(self, db, table):
        self.db = db
        self.table = table
        self.op = None
        self.payload = None
        self.columns = "*"
        self.predicates = []
        self.ordering = []
        self.first_row = 0
        self.max_rows = None

    def select(self, columns="*"):
        self.op = "select"
        self.columns = columns
        return self

    def insert(self, data):
        self.op = "insert"
        self.payload = data
        return self

    def update(self, data):
        self.op = "update"
        self.payload = data
        return self

    def eq(self, column, value):
        self.predicates.append(lambda row: row.get(column) == value)
        return self

    def in_(self, column, values):
        values = list(values)
        self.predicates.append(lambda row: row.get(column) in values)
        return self

    def or_(self, filters):
        parts = []
        for part in filters.split(","):
            column, operator, value = part.split(".", 2)
            assert operator == "eq"
            parts.append((column, value))
        self.predicates.append(lambda row: any(str(row.get(c)) == v for c, v in parts))
        return self

    def order(self, column, desc=False):
        self.ordering.append((column, desc))
        return self

    def limit(self, size):
        self.max_rows = size
        return self

    def range(self, start, end):
        self.db.windows.append((self.table, start, end))
        self.first_row = start
        self.max_rows = end - start + 1
        return self

    def _matches(self, row):
        return all(predicate(row) for predicate in self.predicates)

    def _project(self, row):
        if self.columns.strip() == "*":
            return dict(row)
        return {c.strip(): row.get(c.strip()) for c in self.columns.split(",")}

    def execute(self):
        self.db.calls.append((self.table, self.op))
        self.db.fail_if_unavailable(self.table)

        rows = self.db.tables.setdefault(self.table, [])

        if self.op == "select":
            matched = [row for row in rows if self._matches(row)]
            for column, desc in reversed(self.ordering):
                matched.sort(key=lambda r: (r.get(column), r.get("id", 0)), reverse=desc)
            matched = matched[self.first_row:]
            if self.max_rows is not None:
                matched = matched[:self.max_rows]
            return FakeResponse([self._project(row) for row in matched])

        if self.op == "insert":
            row = dict(self.payload)
            if "id" not in row and self.table != "revoked_tokens":
                row["id"] = next(self.db.sequence(self.table))
            self.db.check_unique(self.table, row, rows)
            rows.append(row)
            return FakeResponse([dict(row)])

        if self.op == "update":
            updated = []
            for row in rows:
                if not self._matches(row):
                    continue
                candidate = {**row, **self.payload}
                self.db.check_unique(self.table, candidate, [r for r in rows if r is not row])
                row.update(self.payload)
                updated.append(dict(row))
            return FakeResponse(updated)

        raise AssertionError(f"unsupported operation {self.op}")


class FakeRpc:
    def __init__(self, db, function, params):
        self.db = db
        self.function = function
        self.params = params

    def execute(self):
        self.db.calls.append((self.function, "rpc"))
        handler = getattr(self.db, f"fn_{self.function}")

        # Roll back every write the function made if any statement fails
        snapshot = {name: [dict(row) for row in rows] for name, rows in self.db.tables.items()}
        try:
            return FakeResponse(handler(**self.params))
        except APIError:
            self.db.tables = snapshot
            raise


class FakeSupabaseClient:
    def __init__(self):
        self.tables = {}
        self.calls = []
        self.windows = []
        self.failing_tables = set()
        self._sequences = {}

    def table(self, name):
        return FakeQuery(self, name)

    def rpc(self, function, params=None):
        return FakeRpc(self, function, params or {})

    def fail_if_unavailable(self, table):
        if table in self.failing_tables:
            raise APIError({"message": "connection lost", "code": "08006", "hint": None, "details": None})

    def fn_submit_swap_rating(self, p_swap_id, p_rater_user_id, p_rating, p_feedback=None):
        self.fail_if_unavailable("swap_requests")
        swap = next((
            s for s in self.tables["swap_requests"]
            if s["id"] == p_swap_id and s["status"] == "accepted"
            and p_rater_user_id in (s["requester_id"], s["responder_id"])
        ), None)
        if swap is None:
            raise APIError({"message": "not an accepted swap", "code": "P0002", "hint": None, "details": None})

        if swap["requester_id"] == p_rater_user_id:
            rated_user_id = swap["responder_id"]
        else:
            rated_user_id = swap["requester_id"]

        self.fail_if_unavailable("user_ratings")
        ratings = self.tables["user_ratings"]
        row = {
            "id": next(self.sequence("user_ratings")),
            "swap_id": p_swap_id,
            "rater_user_id": p_rater_user_id,
            "rated_user_id": rated_user_id,
            "rating": p_rating,
            "feedback": p_feedback,
            "created_at": datetime.now(timezone.utc).isoformat(),
        }
        self.check_unique("user_ratings", row, ratings)
        ratings.append(row)

        # AVG(rating)::NUMERIC(2, 1)
        self.fail_if_unavailable("users")
        values = [r["rating"] for r in ratings if r["rated_user_id"] == rated_user_id]
        mean = Decimal(sum(values)) / Decimal(len(values))
        user_rating = float(mean.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))
        for user in self.tables["users"]:
            if user["id"] == rated_user_id:
                user["rating"] = user_rating

        return {"rating": dict(row), "user_rating": user_rating}

    def sequence(self, table):
        if table not in self._sequences:
            start = max((row.get("id", 0) for row in self.tables.get(table, [])), default=0) + 1
            self._sequences[table] = itertools.count(start)
        return self._sequences[table]

    def check_unique(self, table, row, others):
        for columns, applies in UNIQUE_INDEXES.get(table, []):
            if applies is not None and not applies(row):
                continue
            key = tuple(row.get(c) for c in columns)
            for other in others:
                if applies is not None and not applies(other):
                    continue
                if tuple(other.get(c) for c in columns) == key:
                    raise APIError({
                        "message": f"duplicate key value violates unique constraint on {table}",
                        "code": "23505",
                        "hint": None,
                        "details": f"Key {columns}={key} already exists.",
                    })


def seed(db):
    now = datetime(2024, 1, 1, tzinfo=timezone.utc).isoformat()
    db.tables["users"] = [
        {"id": 1, "name": "Alice", "email": "alice@example.com", "is_banned": False, "rating": None},
        {"id": 2, "name": "Bob", "email": "bob@example.com", "is_banned": False, "rating": None},
        {"id": 3, "name": "Carol", "email": "carol@example.com", "is_banned": False, "rating": None},
        {"id": 4, "name": "Dave", "email": "dave@example.com", "is_banned": True, "rating": None},
    ]
    db.tables["skills"] = [
        {"id": 1, "name": "Guitar"},
        {"id": 2, "name": "Python"},
        {"id": 3, "name": "Spanish"},
    ]
    db.tables["user_skills"] = [
        {"id": 10, "user_id": 1, "skill_id": 1, "direction": "offered"},
        {"id": 11, "user_id": 1, "skill_id": 3, "direction": "offered"},
        {"id": 20, "user_id": 2, "skill_id": 2, "direction": "offered"},
        {"id": 21, "user_id": 2, "skill_id": 3, "direction": "wanted"},
        {"id": 30, "user_id": 3, "skill_id": 3, "direction": "offered"},
        {"id": 40, "user_id": 4, "skill_id": 1, "direction": "offered"},
    ]
    db.tables["swap_requests"] = []
    db.tables["user_ratings"] = []
    db.tables["revoked_tokens"] = []
    for table in ("users", "skills", "user_skills"):
        for row in db.tables[table]:
            row.setdefault("created_at", now)
    return db


@pytest.fixture
def db():
    return seed(FakeSupabaseClient())


@pytest.fixture
def client(db):
    app.dependency_overrides[get_supabase_client] = lambda: db
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    def _headers(user_id):
        return {"Authorization": f"Bearer {create_access_token(user_id)}"}
    return _headers
