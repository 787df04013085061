import os
import re
import tempfile
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

# `main` builds a module-level app on import; keep its upload dir out of the repo.
os.environ.setdefault("UPLOAD_DIR", os.path.join(tempfile.gettempdir(), "users-app-test-uploads"))

from core import errors  # noqa: E402
from core.config import Settings  # noqa: E402
from core.db import get_db  # noqa: E402
from main import create_app  # noqa: E402


class FakeDatabase:
    """
    In-memory stand-in for core.db.Database.

    Understands exactly the statements users/repository.py issues and
    records every (sql, args) pair it receives.
    """

    def __init__(self):
        self.rows = {}
        self.next_id = 1
        self.statements = []
        self.unavailable = False

    def _record(self, sql, args):
        statement = " ".join(sql.split())
        self.statements.append((statement, args))
        if self.unavailable:
            raise errors.TransientInfrastructureError()
        return statement

    def _check_email_unique(self, email, user_id):
        if email is None:
            return
        for row in self.rows.values():
            if row["email"] == email and row["id"] != user_id:
                raise errors.ConstraintViolation("Value already exists. (constraint: users_email_key)")

    async def fetch_one(self, sql, *args):
        statement = self._record(sql, args)
        now = datetime.now(timezone.utc)

        if statement.startswith("INSERT INTO users"):
            name, email = args
            self._check_email_unique(email, None)
            row = {"id": self.next_id, "name": name, "email": email, "created_at": now, "updated_at": now}
            self.rows[row["id"]] = row
            self.next_id += 1
            return dict(row)

        if statement.startswith("SELECT") and "WHERE id = $1" in statement:
            row = self.rows.get(args[0])
            return dict(row) if row else None

        if statement.startswith("UPDATE users"):
            set_part, where_part = statement.split(" WHERE ", 1)
            id_index = int(re.search(r"id = \$(\d+)", where_part).group(1))
            row = self.rows.get(args[id_index - 1])
            if row is None:
                return None
            changes = {column: args[int(index) - 1] for column, index in re.findall(r"(\w+) = \$(\d+)", set_part)}
            if "email" in changes:
                self._check_email_unique(changes["email"], row["id"])
            row.update(changes)
            row["updated_at"] = now
            return dict(row)

        if statement.startswith("DELETE FROM users"):
            row = self.rows.pop(args[0], None)
            return {"id": row["id"]} if row else None

        raise AssertionError(f"unexpected statement: {statement}")

    async def fetch_all(self, sql, *args):
        statement = self._record(sql, args)
        assert statement.startswith("SELECT") and "ORDER BY id" in statement
        return [dict(self.rows[key]) for key in sorted(self.rows)]

    async def execute(self, sql, *args):
        self._record(sql, args)
        return "CREATE TABLE"


@pytest.fixture()
def upload_dir(tmp_path):
    path = tmp_path / "uploads"
    path.mkdir()
    return path


@pytest.fixture()
def settings(upload_dir):
    return Settings(
        host="127.0.0.1",
        port=3000,
        database_url="postgresql://test@localhost:5432/test",
        db_pool_min_size=1,
        db_pool_max_size=2,
        db_command_timeout=5.0,
        db_create_schema=False,
        upload_dir=str(upload_dir),
        max_upload_bytes=2 * 1024 * 1024,
        max_upload_files=5,
        log_level="WARNING",
    )


@pytest.fixture()
def fake_db():
    return FakeDatabase()


@pytest.fixture()
def app(settings, fake_db):
    app = create_app(settings)
    app.dependency_overrides[get_db] = lambda: fake_db
    return app


@pytest.fixture()
def client(app):
    # Not entered as a context manager: the lifespan (real pool) never runs.
    return TestClient(app)
