from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError

from vmwatch import crud, models
from vmwatch.errors import StoreError
from vmwatch.services import ingestion
from vmwatch.services.staleness import sweep

from conftest import T0, make_report


def _get(db, hostname):
    db.expire_all()
    return db.query(models.Machine).filter_by(hostname=hostname).one()


def test_sweep_demotes_only_overdue_machines(db):
    ingestion.ingest(db, make_report(hostname="old"), now=T0 - timedelta(seconds=301))
    ingestion.ingest(db, make_report(hostname="edge"), now=T0 - timedelta(seconds=300))
    ingestion.ingest(db, make_report(hostname="fresh"), now=T0 - timedelta(seconds=5))

    assert sweep(db, now=T0) == 1

    old = _get(db, "old")
    assert old.is_down is True
    assert old.status == "unknown"
    # strictly older than the threshold: exactly at the boundary stays up
    assert _get(db, "edge").is_down is False
    assert _get(db, "fresh").is_down is False
    assert _get(db, "fresh").status == "running"


def test_sweep_keeps_warning_flag(db):
    ingestion.ingest(db, make_report(), now=T0 - timedelta(seconds=400))
    ingestion.ingest(db, make_report(cpu_usage=95.0), now=T0 - timedelta(seconds=400))
    assert _get(db, "web-01").is_warning is True

    sweep(db, now=T0)
    vm = _get(db, "web-01")
    assert vm.is_down is True
    assert vm.is_warning is True


def test_sweep_is_idempotent(db):
    ingestion.ingest(db, make_report(), now=T0 - timedelta(hours=1))
    assert sweep(db, now=T0) == 1
    assert sweep(db, now=T0 + timedelta(minutes=1)) == 0


def test_sweep_uses_configured_timeout(db):
    crud.update_fleet_config(db, {"stale_timeout_ms": 60000})
    ingestion.ingest(db, make_report(), now=T0 - timedelta(seconds=61))
    assert sweep(db, now=T0) == 1


def test_sweep_store_failure_raises(db, monkeypatch):
    def boom(*args, **kwargs):
        raise OperationalError("UPDATE", {}, Exception("connection lost"))

    monkeypatch.setattr(crud, "mark_stale_machines", boom)
    with pytest.raises(StoreError):
        sweep(db, now=T0)
