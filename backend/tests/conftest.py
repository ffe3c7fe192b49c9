import os

# Settings are read at import time; point the app at a throwaway database.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENV"] = "dev"
os.environ.setdefault("JWT_SECRET", "test-secret-long-enough-for-hs256-signing")

import jwt
import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session

from dashboard import models
from dashboard.cache import ListingCache
from dashboard.config import settings
from dashboard.database import create_db_and_tables, get_session, make_engine
from dashboard.directory import UserDirectory
from dashboard.errors import NotFoundError
from dashboard.main import app, get_cache, get_directory


class FakeDirectory(UserDirectory):
    """In-memory stand-in for the identity provider."""

    def __init__(self, users=None):
        self.users = list(users or [])
        self.calls = []

    def get_count(self):
        self.calls.append(("get_count",))
        return len(self.users)

    def get_user_list(self, *, limit, offset):
        self.calls.append(("get_user_list", limit, offset))
        return [dict(u) for u in self.users[offset:offset + limit]]

    def _find(self, user_id):
        for u in self.users:
            if u["id"] == user_id:
                return u
        raise NotFoundError("User not found")

    def update_public_metadata(self, user_id, metadata):
        user = self._find(user_id)
        user.setdefault("public_metadata", {}).update(metadata)
        return user

    def delete_user(self, user_id):
        self.users.remove(self._find(user_id))


def make_user(n, **overrides):
    user = {
        "id": f"user_{n}",
        "first_name": f"First{n}",
        "last_name": f"Last{n}",
        "image_url": f"https://img.example.com/{n}.png",
        "last_sign_in_at": 1700000000000 + n,
        "primary_email_address_id": f"idn_{n}_b",
        "email_addresses": [
            {"id": f"idn_{n}_a", "email_address": f"old{n}@example.com", "verification": {"status": "verified"}},
            {"id": f"idn_{n}_b", "email_address": f"user{n}@example.com", "verification": {"status": "verified"}},
        ],
        "external_accounts": [{"provider": "oauth_google", "email_address": f"user{n}@gmail.com"}],
        "public_metadata": {"level": n % 3 + 1},
        "private_metadata": {"role": "student"},
    }
    user.update(overrides)
    return user


def make_token(role="admin", sub="user_admin"):
    return jwt.encode({"sub": sub, "role": role}, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


@pytest.fixture
def engine():
    eng = make_engine("sqlite://")
    create_db_and_tables(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as s:
        yield s


@pytest.fixture
def cache():
    return ListingCache(max_age=60)


@pytest.fixture
def directory():
    return FakeDirectory([make_user(n) for n in range(1, 26)])


@pytest.fixture
def add_courses(session):
    def _add(*names, **fields):
        created = []
        for name in names:
            c = models.Course(name=name, **fields)
            session.add(c)
            created.append(c)
        session.commit()
        for c in created:
            session.refresh(c)
        return created
    return _add


@pytest.fixture
def client(engine, cache, directory):
    def _session():
        with Session(engine) as s:
            yield s

    app.dependency_overrides[get_session] = _session
    app.dependency_overrides[get_cache] = lambda: cache
    app.dependency_overrides[get_directory] = lambda: directory
    with TestClient(app, headers={"Authorization": f"Bearer {make_token()}"}) as c:
        yield c
    app.dependency_overrides.clear()
