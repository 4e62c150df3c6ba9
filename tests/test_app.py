import asyncio
import logging
import sqlite3
import time

import httpx
import pytest
from fastapi.testclient import TestClient
from unittest.mock import patch
import os
import sys

# Add the project root to sys.path to resolve module imports correctly
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import config
import db_manager
from obfuscation import Seed, encode
from primes import StaticPrimeSupplier

PRIME = 1580030173
MASK = 653429061
MAX_ID = 2**31
ADMIN_TOKEN = "s3cret-admin-token"


@pytest.fixture
def db_file(tmp_path):
    return str(tmp_path / "seeds.db")


@pytest.fixture
def make_client(db_file):
    """
    Provides a factory for test clients with an isolated seed database.
    Keyword arguments override config values for the lifetime of the test.
    """
    from app import app
    from router import limiter

    patches = []

    def factory(candidates=(), **overrides):
        settings = {
            "OBFUSCATION_PRIME": PRIME,
            "OBFUSCATION_MASK": MASK,
            "ADMIN_TOKEN": ADMIN_TOKEN,
            "SEED_NAME": "default",
        }
        settings.update(overrides)
        for name, value in settings.items():
            p = patch.object(config, name, value)
            p.start()
            patches.append(p)
        p = patch('db_manager.DB_FILE', db_file)
        p.start()
        patches.append(p)

        limiter.reset()
        app.state.prime_supplier = StaticPrimeSupplier(candidates)
        return TestClient(app)

    yield factory

    for p in reversed(patches):
        p.stop()


@pytest.fixture
def client(make_client):
    with make_client(candidates=[999999937]) as test_client:
        yield test_client


# ===================================
# 1. Startup
# ===================================

def test_startup_builds_seed_from_environment(client: TestClient, db_file: str):
    """Tests that the configured prime and mask are used and persisted."""
    with patch('db_manager.DB_FILE', db_file):
        stored = db_manager.load_seed("default")
    assert stored == Seed.from_prime(PRIME, MASK)


def test_startup_generates_seed_from_supplier(make_client):
    """Tests that a seed is generated when no prime is configured."""
    with make_client(candidates=[1000, 7919], OBFUSCATION_PRIME=None, OBFUSCATION_MASK=None) as client:
        response = client.get("/api/v1/seed")
    assert response.status_code == 200
    assert response.json()["prime"] == 7919


def test_startup_prefers_stored_seed(make_client, db_file: str):
    """Tests that a stored seed wins over the environment."""
    with patch('db_manager.DB_FILE', db_file):
        db_manager.init_db()
        db_manager.save_seed("default", Seed.from_prime(65537, 99))

    with make_client() as client:
        response = client.get("/api/v1/seed")
    assert response.json()["prime"] == 65537


def test_startup_warns_when_stored_bits_differ(make_client, db_file: str, caplog):
    """Tests that a stored seed keeps its own domain and the configured width is reported as ignored."""
    with patch('db_manager.DB_FILE', db_file):
        db_manager.init_db()
        db_manager.save_seed("default", Seed.from_prime(999999937, 42, bits=30))

    with caplog.at_level(logging.WARNING):
        with make_client(OBFUSCATION_BITS=31) as client:
            data = client.get("/api/v1/seed").json()
            out_of_range = client.get(f"/api/v1/encode/{2**30}")

    assert data["bits"] == 30
    assert data["max_id"] == 2**30
    assert out_of_range.status_code == 422
    assert "OBFUSCATION_BITS=31 ignored" in caplog.text


# ===================================
# 2. API Endpoint Tests
# ===================================

def test_health_check(client: TestClient):
    """Tests the /health endpoint."""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "seed_loaded": True, "database": "ok"}


def test_health_check_without_seed(make_client):
    """Tests that /health reports 503 when no seed has been loaded."""
    from app import app

    client = make_client()
    app.state.obfuscator = None
    response = client.get("/health")
    assert response.status_code == 503
    assert response.json() == {"status": "error", "seed_loaded": False, "database": "ok"}


def test_health_check_database_error(client: TestClient):
    """Tests that /health reports 503 when the seed database cannot be reached."""
    with patch('db_manager.get_db_connection', side_effect=sqlite3.OperationalError("unable to open database file")):
        response = client.get("/health")
    assert response.status_code == 503
    assert response.json() == {"status": "error", "seed_loaded": True, "database": "error"}


def test_encode_decode_round_trip(client: TestClient):
    """Tests that an ID encoded by the API decodes back to itself."""
    seed = Seed.from_prime(PRIME, MASK)

    response = client.get("/api/v1/encode/12345")
    assert response.status_code == 200
    encoded = response.json()["encoded"]
    assert encoded == encode(seed, 12345)
    assert encoded != 12345

    response = client.get(f"/api/v1/decode/{encoded}")
    assert response.status_code == 200
    assert response.json() == {"value": encoded, "decoded": 12345}


def test_encode_boundaries(client: TestClient):
    for value in [0, MAX_ID - 1]:
        encoded = client.get(f"/api/v1/encode/{value}").json()["encoded"]
        assert client.get(f"/api/v1/decode/{encoded}").json()["decoded"] == value


def test_out_of_domain_values(client: TestClient):
    """Tests that values outside the domain are rejected with 422."""
    response = client.get(f"/api/v1/encode/{MAX_ID}")
    assert response.status_code == 422
    assert "outside the obfuscation domain" in response.json()["detail"]

    assert client.get("/api/v1/encode/-1").status_code == 422
    assert client.get(f"/api/v1/decode/{MAX_ID}").status_code == 422
    assert client.get("/api/v1/encode/not-a-number").status_code == 422


def test_seed_info_hides_secrets(client: TestClient):
    response = client.get("/api/v1/seed")
    assert response.status_code == 200
    data = response.json()
    assert data == {"name": "default", "bits": 31, "max_id": MAX_ID, "prime": PRIME}
    assert "mask" not in data
    assert "mod_inverse" not in data


# ===================================
# 3. Seed rotation
# ===================================

def test_rotate_seed(client: TestClient, db_file: str):
    """Tests that rotation persists and publishes the new seed."""
    before = client.get("/api/v1/encode/42").json()["encoded"]

    response = client.post("/api/v1/seed/rotate", json={"admin_token": ADMIN_TOKEN})
    assert response.status_code == 200
    assert response.json()["prime"] == 999999937

    with patch('db_manager.DB_FILE', db_file):
        stored = db_manager.load_seed("default")
    assert stored.prime == 999999937

    after = client.get("/api/v1/encode/42").json()["encoded"]
    assert after == encode(stored, 42)
    assert after != before
    assert client.get(f"/api/v1/decode/{after}").json()["decoded"] == 42


def test_rotate_seed_bad_token(client: TestClient):
    response = client.post("/api/v1/seed/rotate", json={"admin_token": "wrong"})
    assert response.status_code == 403
    assert client.get("/api/v1/seed").json()["prime"] == PRIME


def test_rotate_seed_missing_token(client: TestClient):
    response = client.post("/api/v1/seed/rotate", json={})
    assert response.status_code == 422


def test_rotate_seed_disabled_without_admin_token(client: TestClient):
    with patch.object(config, "ADMIN_TOKEN", None):
        response = client.post("/api/v1/seed/rotate", json={"admin_token": ADMIN_TOKEN})
    assert response.status_code == 503


def test_rotate_seed_without_candidates(make_client):
    """Tests that an exhausted supplier leaves the current seed in place."""
    with make_client(candidates=[]) as client:
        response = client.post("/api/v1/seed/rotate", json={"admin_token": ADMIN_TOKEN})
        assert response.status_code == 502
        assert client.get("/api/v1/seed").json()["prime"] == PRIME


def test_concurrent_rotations_keep_stored_and_live_seed_together(make_client, db_file: str):
    """
    Tests that two overlapping rotations run one after the other, so the seed
    left in the database is the one serving requests.
    """
    from app import app

    make_client(candidates=[7919, 999999937])
    events = []
    save_seed = db_manager.save_seed

    def slow_save(name, seed):
        events.append(("start", seed.prime))
        time.sleep(0.2)
        save_seed(name, seed)
        events.append(("end", seed.prime))

    async def rotate_twice():
        async with app.router.lifespan_context(app):
            transport = httpx.ASGITransport(app=app)
            async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
                with patch('db_manager.save_seed', slow_save):
                    responses = await asyncio.gather(*[
                        client.post("/api/v1/seed/rotate", json={"admin_token": ADMIN_TOKEN})
                        for _ in range(2)
                    ])
            return responses, app.state.obfuscator.seed

    responses, live = asyncio.run(rotate_twice())

    assert [r.status_code for r in responses] == [200, 200]
    assert [kind for kind, _ in events] == ["start", "end", "start", "end"]
    assert events[0][1] == events[1][1]
    assert events[2][1] == events[3][1]

    with patch('db_manager.DB_FILE', db_file):
        stored = db_manager.load_seed("default")
    assert stored == live
    assert live.prime == events[-1][1]
