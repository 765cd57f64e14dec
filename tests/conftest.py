"""
Shared fixtures.

Storage is an in-memory stand-in for the Motor database the services use:
collections keep plain dicts keyed by ``_id``, sessions snapshot the whole
store when a transaction starts and restore it on abort. Individual
operations can be made to fail (``collection.fail_on``) to simulate a
storage fault in the middle of a multi-write operation.
"""

import copy
import os
import tempfile
from types import SimpleNamespace

# Keep test runs away from real services before any app import
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="placeshare_test_"))
os.environ["GOOGLE_API_KEY"] = "test-key-not-real"
os.environ["LOG_LEVEL"] = "WARNING"

import pytest
import pytest_asyncio
from bson import ObjectId
from httpx import ASGITransport, AsyncClient
from pymongo.errors import DuplicateKeyError, OperationFailure, PyMongoError

from placeshare.security.auth import create_access_token
from placeshare.services.image_storage import LocalImageStorage
from placeshare.services.place_service import PlaceService

EMPIRE_STATE = {"lat": 40.7484405, "lng": -73.9878584}


# ── in-memory database ────────────────────────────────────────────────────

def _matches(doc: dict, query: dict) -> bool:
    for key, cond in query.items():
        present = key in doc
        value = doc.get(key)
        if isinstance(cond, dict) and cond and all(k.startswith("$") for k in cond):
            for op, arg in cond.items():
                if op == "$exists":
                    if present != bool(arg):
                        return False
                elif op == "$in":
                    if not present or value not in arg:
                        return False
                elif op == "$lt":
                    if not present or not value < arg:
                        return False
                else:
                    raise NotImplementedError(op)
        elif not present or value != cond:
            return False
    return True


def _apply_update(doc: dict, update: dict):
    for op, fields in update.items():
        for key, arg in fields.items():
            if op == "$set":
                doc[key] = arg
            elif op == "$unset":
                doc.pop(key, None)
            elif op == "$addToSet":
                items = arg["$each"] if isinstance(arg, dict) and "$each" in arg else [arg]
                target = doc.setdefault(key, [])
                for item in items:
                    if item not in target:
                        target.append(item)
            elif op == "$pull":
                if isinstance(arg, dict) and "$in" in arg:
                    doc[key] = [v for v in doc.get(key, []) if v not in arg["$in"]]
                else:
                    doc[key] = [v for v in doc.get(key, []) if v != arg]
            else:
                raise NotImplementedError(op)


class FakeCursor:
    def __init__(self, docs):
        self._docs = docs

    def __aiter__(self):
        self._iter = iter(self._docs)
        return self

    async def __anext__(self):
        try:
            return next(self._iter)
        except StopIteration:
            raise StopAsyncIteration

    async def to_list(self, length=None):
        return list(self._docs) if length is None else self._docs[:length]


class FakeCollection:
    def __init__(self, database, name, unique=()):
        self.database = database
        self.name = name
        self.unique = unique
        self.fail_on = set()
        self.calls = []
        database.store.setdefault(name, {})

    @property
    def docs(self) -> dict:
        return self.database.store.setdefault(self.name, {})

    def _record(self, op, session):
        self.calls.append((op, session is not None))
        if op in self.fail_on:
            raise OperationFailure(f"injected failure on {self.name}.{op}")

    def _first(self, query):
        for doc in self.docs.values():
            if _matches(doc, query):
                return doc
        return None

    async def find_one(self, query, projection=None, session=None):
        self._record("find_one", session)
        doc = self._first(query)
        return copy.deepcopy(doc) if doc is not None else None

    def find(self, query=None, projection=None, session=None):
        self._record("find", session)
        return FakeCursor([copy.deepcopy(d) for d in self.docs.values() if _matches(d, query or {})])

    async def insert_one(self, doc, session=None):
        self._record("insert_one", session)
        doc.setdefault("_id", ObjectId())
        for field in self.unique:
            if self._first({field: doc.get(field)}) is not None:
                raise DuplicateKeyError(f"duplicate {field}")
        self.docs[doc["_id"]] = copy.deepcopy(doc)
        return SimpleNamespace(inserted_id=doc["_id"])

    async def update_one(self, query, update, session=None):
        self._record("update_one", session)
        doc = self._first(query)
        if doc is None:
            return SimpleNamespace(matched_count=0, modified_count=0)
        before = copy.deepcopy(doc)
        _apply_update(doc, update)
        return SimpleNamespace(matched_count=1, modified_count=int(doc != before))

    async def find_one_and_update(self, query, update, return_document=False, session=None):
        self._record("find_one_and_update", session)
        doc = self._first(query)
        if doc is None:
            return None
        before = copy.deepcopy(doc)
        _apply_update(doc, update)
        return copy.deepcopy(doc if return_document else before)

    async def delete_one(self, query, session=None):
        self._record("delete_one", session)
        doc = self._first(query)
        if doc is None:
            return SimpleNamespace(deleted_count=0)
        del self.docs[doc["_id"]]
        return SimpleNamespace(deleted_count=1)


class FakeSession:
    """Runs ``with_transaction`` callbacks against a snapshot of the store."""

    max_attempts = 5

    def __init__(self, client):
        self.client = client

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    async def with_transaction(self, callback):
        store = self.client.database.store
        for attempt in range(1, self.max_attempts + 1):
            snapshot = copy.deepcopy(store)
            self.client.started += 1
            try:
                result = await callback(self)
                self.client.commit()
            except Exception as exc:
                store.clear()
                store.update(snapshot)
                self.client.aborted += 1
                transient = isinstance(exc, PyMongoError) and exc.has_error_label("TransientTransactionError")
                if transient and attempt < self.max_attempts:
                    continue
                raise
            self.client.committed += 1
            return result


class FakeClient:
    def __init__(self, database):
        self.database = database
        # fail_commit fails every commit; commit_errors are raised once each, in order
        self.fail_commit = False
        self.commit_errors = []
        self.started = 0
        self.committed = 0
        self.aborted = 0

    def commit(self):
        if self.commit_errors:
            raise self.commit_errors.pop(0)
        if self.fail_commit:
            raise OperationFailure("injected commit failure")

    async def start_session(self):
        return FakeSession(self)


class FakeDatabase:
    def __init__(self):
        self.store = {}
        self.client = FakeClient(self)
        self.users = FakeCollection(self, "users", unique=("email",))
        self.places = FakeCollection(self, "places")

    async def command(self, name):
        return {"ok": 1}


class FakeLocationService:
    def __init__(self):
        self.coordinates = dict(EMPIRE_STATE)
        self.error = None
        self.addresses = []

    async def get_coords_for_address(self, address):
        self.addresses.append(address)
        if self.error is not None:
            raise self.error
        return dict(self.coordinates)


# ── fixtures ──────────────────────────────────────────────────────────────

@pytest.fixture
def fake_db():
    return FakeDatabase()


@pytest.fixture
def location_service():
    return FakeLocationService()


@pytest.fixture
def image_storage(tmp_path):
    return LocalImageStorage(upload_dir=str(tmp_path / "images"))


@pytest.fixture
def place_service(fake_db, location_service):
    return PlaceService(fake_db, location_service, use_transactions=True)


@pytest.fixture
def make_user(fake_db):
    """Insert a user document directly and return its id as a string."""

    def _make_user(name="Ada", email=None, places=None):
        oid = ObjectId()
        fake_db.store.setdefault("users", {})[oid] = {
            "_id": oid,
            "name": name,
            "email": email or f"{name.lower()}@example.com",
            "password": "not-a-real-hash",
            "image": f"uploads/images/{name.lower()}.png",
            "places": list(places or []),
        }
        return str(oid)

    return _make_user


@pytest.fixture
def auth_headers():
    def _auth_headers(user_id, email="someone@example.com"):
        return {"Authorization": f"Bearer {create_access_token(user_id, email)}"}

    return _auth_headers


@pytest_asyncio.fixture
async def test_client(fake_db, location_service, image_storage):
    """HTTP client bound to the app with storage and geocoding swapped for fakes."""
    from placeshare.deps import get_db
    from placeshare.main import app
    from placeshare.services.image_storage import get_image_storage
    from placeshare.services.location_service import get_location_service

    app.dependency_overrides[get_db] = lambda: fake_db
    app.dependency_overrides[get_location_service] = lambda: location_service
    app.dependency_overrides[get_image_storage] = lambda: image_storage
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
