"""Shared test fixtures for the bulk-edit test suite."""

from collections.abc import Callable, Generator
from datetime import datetime
from typing import Any

import jwt
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from bulk_edit import errors
from bulk_edit.dependencies import get_store
from bulk_edit.inmemory import InMemoryEntityStore
from bulk_edit.relations import RelationResolver, sessions
from bulk_edit.router import router

TEST_JWT_SECRET = "test-secret-for-bulk-edit-tokens-0123456789"


def seed_tables() -> dict[str, list[dict[str, Any]]]:
    return {
        "competitions": [
            {
                "id": "c1",
                "name": "Ultra Pirineu",
                "slug": "ultra-pirineu",
                "status": "PUBLISHED",
                "featured": True,
                "baseDistance": 100.0,
                "baseElevation": 6000,
                "itraPoints": 6,
                "utmbIndex": "INDEX_100K",
                "raceType": "ULTRA",
                "language": "ES",
                "terrainTypeId": "t1",
                "eventId": "e1",
                "createdAt": datetime(2024, 1, 10),
            },
            {
                "id": "c2",
                "name": "Marato Pirineu",
                "slug": "marato-pirineu",
                "status": "DRAFT",
                "featured": False,
                "baseDistance": 42.0,
                "baseElevation": 2800,
                "itraPoints": 4,
                "utmbIndex": "INDEX_50K",
                "raceType": "TRAIL",
                "language": "ES",
                "terrainTypeId": "t2",
                "eventId": "e1",
                "createdAt": datetime(2024, 2, 1),
            },
            {
                "id": "c3",
                "name": "Vertical Berga",
                "slug": "vertical-berga",
                "status": "DRAFT",
                "featured": False,
                "baseDistance": 5.0,
                "baseElevation": 1000,
                "itraPoints": 1,
                "utmbIndex": None,
                "raceType": "VERTICAL",
                "language": "CA",
                "terrainTypeId": None,
                "eventId": "e2",
                "createdAt": datetime(2024, 3, 5),
            },
            {
                "id": "c4",
                "name": "Skyrace Comapedrosa",
                "slug": "skyrace-comapedrosa",
                "status": "DRAFT",
                "featured": False,
                "baseDistance": 21.0,
                "baseElevation": 1500,
                "itraPoints": 3,
                "utmbIndex": "INDEX_20K",
                "raceType": "SKYRUNNING",
                "language": "EN",
                "terrainTypeId": "t1",
                "eventId": "e2",
                "createdAt": datetime(2023, 12, 1),
            },
            {
                "id": "c5",
                "name": "Canicross Vic",
                "slug": "canicross-vic",
                "status": "CANCELLED",
                "featured": False,
                "baseDistance": None,
                "baseElevation": None,
                "itraPoints": None,
                "utmbIndex": None,
                "raceType": "CANICROSS",
                "language": "ES",
                "terrainTypeId": None,
                "eventId": "e3",
                "createdAt": datetime(2024, 5, 1),
            },
        ],
        "events": [
            {"id": "e1", "name": "Pirineu Festival", "slug": "pirineu-festival", "status": "PUBLISHED",
             "featured": True, "country": "ES", "city": "Puigcerda", "language": "ES",
             "typicalMonth": 7, "organizerId": "o1", "createdAt": datetime(2023, 1, 1)},
            {"id": "e2", "name": "Bergueda Trails", "slug": "bergueda-trails", "status": "DRAFT",
             "featured": False, "country": "ES", "city": "Berga", "language": "CA",
             "typicalMonth": 9, "organizerId": "o2", "createdAt": datetime(2023, 2, 1)},
            {"id": "e3", "name": "Vic Runs", "slug": "vic-runs", "status": "PUBLISHED",
             "featured": False, "country": "ES", "city": "Vic", "language": "ES",
             "typicalMonth": None, "organizerId": None, "createdAt": datetime(2023, 3, 1)},
        ],
        "organizers": [
            {"id": "o1", "name": "Trail Org", "slug": "trail-org", "status": "PUBLISHED",
             "country": "ES", "website": "https://trail.example"},
            {"id": "o2", "name": "Draft Org", "slug": "draft-org", "status": "DRAFT",
             "country": "FR", "website": None},
        ],
        "terrain_types": [
            {"id": "t1", "name": "Montana", "isActive": True, "sortOrder": 2},
            {"id": "t2", "name": "Pista", "isActive": True, "sortOrder": 1},
            {"id": "t3", "name": "Nieve", "isActive": False, "sortOrder": 3},
        ],
        "editions": [
            {"id": "ed1", "slug": "ultra-pirineu-2023", "year": 2023, "status": "FINISHED",
             "distance": 100.0, "elevation": 6000, "maxParticipants": 800,
             "registrationStatus": "CLOSED", "startDate": datetime(2023, 9, 30), "competitionId": "c1"},
            {"id": "ed2", "slug": "ultra-pirineu-2024", "year": 2024, "status": "UPCOMING",
             "distance": 100.0, "elevation": 6000, "maxParticipants": 900,
             "registrationStatus": "OPEN", "startDate": datetime(2024, 9, 28), "competitionId": "c1"},
        ],
        "service_categories": [
            {"id": "sc1", "name": "Alojamiento"},
        ],
    }


@pytest.fixture
def store() -> InMemoryEntityStore:
    """In-memory store seeded with a small trail-running catalogue."""
    return InMemoryEntityStore(seed_tables())


@pytest.fixture
def resolver(store: InMemoryEntityStore) -> RelationResolver:
    return RelationResolver(store)


@pytest.fixture(autouse=True)
def clear_sessions() -> Generator[None, None, None]:
    """Relation-cache sessions are process-global; isolate each test."""
    sessions.clear()
    yield
    sessions.clear()


@pytest.fixture(autouse=True)
def bulk_edit_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "BULK_EDIT_DEFAULT_LIMIT",
        "BULK_EDIT_MAX_LIMIT",
        "BULK_EDIT_ROLES",
        "BULK_EDIT_SESSION_TTL_S",
        "APP_ENV",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("JWT_SECRET", TEST_JWT_SECRET)
    monkeypatch.setenv("JWT_ALG", "HS256")


@pytest.fixture
def make_token() -> Callable[..., str]:
    """Factory for signed access tokens.

    Usage:
        headers = {"Authorization": f"Bearer {make_token(role='ADMIN')}"}
    """

    def _make(*, user_id: str = "u1", role: str = "ADMIN", **claims: Any) -> str:
        payload = {"id": user_id, "email": f"{user_id}@example.com", "role": role, **claims}
        return jwt.encode(payload, TEST_JWT_SECRET, algorithm="HS256")

    return _make


@pytest.fixture
def app(store: InMemoryEntityStore) -> FastAPI:
    """Bulk-edit routes wired to the in-memory store."""
    app = FastAPI()
    errors.add_exception_handlers(app)
    app.include_router(router)
    app.dependency_overrides[get_store] = lambda: store
    return app


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app)


@pytest.fixture
def admin_headers(make_token: Callable[..., str]) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token()}"}
