"""
Pytest fixtures shared by the test suite.

Every test gets its own in-memory SQLite database; the Proxmox control plane
is replaced by FakeProxmox, which records calls and can be told to fail.
"""

import os
from datetime import datetime

# settings are read at import time; point the app at sqlite before importing it
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("STALE_CHECK_IN_PROCESS", "false")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from vmwatch import models, schemas
from vmwatch.db import Base
from vmwatch.proxmox_client import ControlPlaneResult

T0 = datetime(2026, 10, 1, 12, 0, 0)


class FakeProxmox:
    def __init__(self):
        self.calls = []
        self.fail_with = None

    def reset_vm(self, node, vmid):
        self.calls.append(("reset", node, vmid))
        if self.fail_with is not None:
            raise self.fail_with
        return ControlPlaneResult.from_body({"data": f"UPID:{node}:0001:reset:{vmid}:root@pam:"})

    def shutdown_vm(self, node, vmid):
        self.calls.append(("shutdown", node, vmid))
        return ControlPlaneResult.from_body({"data": None})


def make_report(**overrides) -> schemas.HealthReport:
    data = {
        "hostname": "web-01",
        "vmid": "101",
        "node": "pve1",
        "status": "running",
        "cpu_usage": 10.0,
        "ram_usage": 512.0,
        "ram_total": 2048.0,
        "uptime": 3600,
    }
    data.update(overrides)
    return schemas.HealthReport(**data)


@pytest.fixture(scope="function")
def engine():
    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def proxmox():
    return FakeProxmox()


@pytest.fixture
def machine(db) -> models.Machine:
    vm = models.Machine(hostname="web-01", vmid="101", node="pve1", status="running",
                        cpu_usage=10.0, ram_usage=512.0, ram_total=2048.0, uptime=60,
                        last_heartbeat=T0)
    db.add(vm)
    db.commit()
    db.refresh(vm)
    return vm
