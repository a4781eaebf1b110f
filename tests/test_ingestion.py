from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError

from vmwatch import crud, models
from vmwatch.errors import NotFound, StoreError
from vmwatch.services import ingestion

from conftest import T0, make_report


def _count(db, model):
    return db.query(model).count()


def test_first_report_creates_machine_and_one_sample(db):
    vm = ingestion.ingest(db, make_report(cpu_usage=99.0), now=T0)

    assert _count(db, models.Machine) == 1
    assert _count(db, models.MetricSample) == 1
    assert vm.hostname == "web-01"
    assert vm.is_down is False
    # thresholds are not evaluated on the first observation
    assert vm.is_warning is False
    assert vm.reset_attempts == 0
    assert vm.last_heartbeat == T0


def test_second_report_evaluates_thresholds(db):
    ingestion.ingest(db, make_report(), now=T0)
    vm = ingestion.ingest(db, make_report(cpu_usage=95.0, ram_usage=1024.0, ram_total=2048.0),
                          now=T0 + timedelta(seconds=30))

    assert vm.is_warning is True
    assert vm.cpu_usage == 95.0
    assert vm.last_heartbeat == T0 + timedelta(seconds=30)
    assert _count(db, models.Machine) == 1
    assert _count(db, models.MetricSample) == 2


def test_warning_is_overwritten_not_accumulated(db):
    ingestion.ingest(db, make_report(), now=T0)
    ingestion.ingest(db, make_report(cpu_usage=95.0), now=T0 + timedelta(seconds=30))
    vm = ingestion.ingest(db, make_report(cpu_usage=20.0), now=T0 + timedelta(seconds=60))
    assert vm.is_warning is False


def test_ram_threshold_uses_configured_value(db):
    crud.update_fleet_config(db, {"ram_threshold": 40.0})
    ingestion.ingest(db, make_report(), now=T0)
    vm = ingestion.ingest(db, make_report(ram_usage=1024.0, ram_total=2048.0), now=T0)
    assert vm.is_warning is True


def test_report_clears_down_flag(db, machine):
    machine.is_down = True
    machine.status = "unknown"
    db.commit()

    vm = ingestion.ingest(db, make_report(status="running"), now=T0 + timedelta(minutes=10))
    assert vm.is_down is False
    assert vm.status == "running"


def test_store_failure_rolls_back_and_raises(db, monkeypatch):
    def boom(*args, **kwargs):
        raise OperationalError("INSERT", {}, Exception("disk full"))

    monkeypatch.setattr(crud, "add_metric_sample", boom)
    with pytest.raises(StoreError):
        ingestion.ingest(db, make_report(), now=T0)
    assert _count(db, models.Machine) == 0


def test_status_view_derives_health_and_ram_percent(db, machine):
    machine.is_down = True
    machine.is_warning = True
    db.commit()

    out = ingestion.get_vm_status(db, machine.id)
    assert out.health == "down"
    assert out.ram_percent == 25.0


def test_list_is_ordered_by_hostname(db):
    for name in ("db-02", "app-01", "web-01"):
        ingestion.ingest(db, make_report(hostname=name), now=T0)
    assert [v.hostname for v in ingestion.list_vm_status(db)] == ["app-01", "db-02", "web-01"]


def test_unknown_machine_is_not_found(db):
    with pytest.raises(NotFound):
        ingestion.get_vm_status(db, "missing")
    with pytest.raises(NotFound):
        ingestion.get_vm_metrics(db, "missing")


def test_metrics_window(db):
    ingestion.ingest(db, make_report(cpu_usage=1.0), now=T0 - timedelta(hours=30))
    ingestion.ingest(db, make_report(cpu_usage=2.0), now=T0 - timedelta(hours=2))
    vm = ingestion.ingest(db, make_report(cpu_usage=3.0), now=T0)

    samples = ingestion.get_vm_metrics(db, vm.id, hours=24, now=T0)
    assert [s.cpu_usage for s in samples] == [2.0, 3.0]

    samples = ingestion.get_vm_metrics(db, vm.id, hours=48, now=T0)
    assert [s.cpu_usage for s in samples] == [1.0, 2.0, 3.0]


def test_concurrent_first_report_falls_back_to_update(db, machine, monkeypatch):
    real_lookup = crud.get_machine_by_hostname
    calls = []

    def racing_lookup(session, hostname):
        calls.append(hostname)
        # the first lookup misses the row another request just created
        return None if len(calls) == 1 else real_lookup(session, hostname)

    monkeypatch.setattr(crud, "get_machine_by_hostname", racing_lookup)
    vm = ingestion.ingest(db, make_report(cpu_usage=95.0), now=T0 + timedelta(seconds=5))

    assert vm.id == machine.id
    assert vm.is_warning is True
    assert _count(db, models.Machine) == 1
    assert _count(db, models.MetricSample) == 1


def test_fractional_uptime_is_truncated(db):
    vm = ingestion.ingest(db, make_report(uptime=86400.9), now=T0)
    assert vm.uptime == 86400
    assert db.query(models.MetricSample).one().uptime == 86400
