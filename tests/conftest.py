import os, tempfile, pathlib

# must be set before vmc_api.db builds its engine
DB_PATH = pathlib.Path(tempfile.mkdtemp()) / "test_vmc.db"
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{DB_PATH.as_posix()}"
os.environ.setdefault("JWT_SECRET", "test-secret")

import pytest
from fastapi.testclient import TestClient

from vmc_api.main import app, get_register_reader
from vmc_api.modbus_client import ModbusReadError

# about 21 °C / 45 %RH / mid airflow
SAMPLE_REGISTERS = [
    4000, 6000, 6200, 5800, 6100,
    13370, 7500, 13400, 7600, 13300, 7400, 13450, 7700,
    13370, 13400,
]

class FakeReader:
    def __init__(self, values=None, error=None):
        self.values = SAMPLE_REGISTERS if values is None else values
        self.error = error
        self.calls = 0

    async def __call__(self, count, address=0):
        self.calls += 1
        if self.error:
            raise ModbusReadError(self.error)
        return list(self.values)

@pytest.fixture
def reader():
    fake = FakeReader()
    app.dependency_overrides[get_register_reader] = lambda: fake
    yield fake
    app.dependency_overrides.pop(get_register_reader, None)

@pytest.fixture
def client(reader):
    with TestClient(app) as c:
        yield c
    if DB_PATH.exists():
        DB_PATH.unlink()

def register(client, login="alice", password="secret1", role=None):
    body = {"login": login, "password": password}
    if role:
        body["role"] = role
    return client.post("/api/register", json=body)

def login(client, login="alice", password="secret1"):
    r = client.post("/api/login", json={"login": login, "password": password})
    assert r.status_code == 200, r.text
    return r.json()["data"]["token"]

def bearer(token):
    return {"Authorization": f"Bearer {token}"}

@pytest.fixture
def token(client):
    assert register(client).status_code == 201
    tok = login(client)
    # exercise the header path unless a test opts into cookies
    client.cookies.clear()
    return tok
