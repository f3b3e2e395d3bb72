"""Tests for the security record store."""

from __future__ import annotations

import base64
import json
import os
import threading

import pytest

from secledger import store as store_mod
from secledger.config import Backend, settings
from secledger.errors import Internal, NotFound
from secledger.models import Device
from secledger.store import JsonFileStore, PostgresStore, decode_record, encode_record


def test_missing_file_is_empty(store):
    assert store.snapshot() == {}
    assert not store.path.exists()


def test_get_or_create_persists(store):
    with store.transaction() as ledger:
        record = ledger.get_or_create("alice")
        record.devices.append(Device(id="d1", name="Phone"))

    data = json.loads(store.path.read_text())
    assert list(data["security"]) == ["alice"]
    assert data["security"]["alice"]["devices"][0]["id"] == "d1"
    assert data["security"]["alice"]["twoFactorEnabled"] is False


def test_reload_round_trip(store):
    with store.transaction() as ledger:
        r = ledger.get_or_create("alice")
        r.buddy = "bob"
        r.face_id = "template"
        r.two_factor_secret = "JBSWY3DPEHPK3PXP"
        r.two_factor_enabled = True
        r.devices.append(Device(id="d1", name="Phone"))
    first = store.snapshot()

    reopened = JsonFileStore(store.path)
    assert reopened.snapshot() == first


def test_exception_discards_changes(store):
    with store.transaction() as ledger:
        ledger.get_or_create("alice")

    with pytest.raises(NotFound):
        with store.transaction() as ledger:
            ledger.get_or_create("alice").buddy = "mallory"
            ledger.get_or_create("ghost")
            raise NotFound("nope")

    records = store.snapshot()
    assert set(records) == {"alice"}
    assert records["alice"].buddy is None


def test_read_only_transaction_does_not_write(store):
    with store.transaction() as ledger:
        assert ledger.get("nobody") is None
    assert not store.path.exists()


def test_corrupt_file_raises_internal(store):
    store.path.write_text("{not json")
    with pytest.raises(Internal):
        store.snapshot()


def test_write_failure_surfaces(store, monkeypatch):
    def boom(*args, **kwargs):
        raise OSError("disk full")

    monkeypatch.setattr(store_mod.os, "replace", boom)
    with pytest.raises(Internal, match="disk full"):
        with store.transaction() as ledger:
            ledger.get_or_create("alice")
    assert not store.path.exists()
    assert [p for p in store.path.parent.iterdir()] == []


def test_secrets_sealed_at_rest(store, monkeypatch):
    monkeypatch.setattr(settings, "master_key", base64.b64encode(os.urandom(32)).decode())
    with store.transaction() as ledger:
        r = ledger.get_or_create("alice")
        r.two_factor_secret = "JBSWY3DPEHPK3PXP"
        r.face_id = "template"

    raw = store.path.read_text()
    assert "JBSWY3DPEHPK3PXP" not in raw
    assert "template" not in raw
    record = store.snapshot()["alice"]
    assert record.two_factor_secret == "JBSWY3DPEHPK3PXP"
    assert record.face_id == "template"
    assert json.loads(raw)["security"]["alice"]["sealed"] == ["twoFactorSecret", "faceId"]


def _seal_alice(store, monkeypatch):
    monkeypatch.setattr(settings, "master_key", base64.b64encode(os.urandom(32)).decode())
    with store.transaction() as ledger:
        ledger.get_or_create("alice").two_factor_secret = "JBSWY3DPEHPK3PXP"


def test_sealed_store_without_key_raises_internal(store, monkeypatch):
    _seal_alice(store, monkeypatch)
    monkeypatch.setattr(settings, "master_key", "")
    with pytest.raises(Internal, match="MASTER_KEY not set"):
        store.snapshot()


def test_sealed_store_with_wrong_key_raises_internal(store, monkeypatch):
    _seal_alice(store, monkeypatch)
    monkeypatch.setattr(settings, "master_key", base64.b64encode(os.urandom(32)).decode())
    with pytest.raises(Internal):
        with store.transaction() as ledger:
            ledger.get_or_create("bob")


def test_tampered_sealed_value_raises_internal(store, monkeypatch):
    _seal_alice(store, monkeypatch)
    data = json.loads(store.path.read_text())
    data["security"]["alice"]["twoFactorSecret"] = "garbage"
    store.path.write_text(json.dumps(data))
    with pytest.raises(Internal):
        store.snapshot()


def test_malformed_key_on_write_raises_internal(store, monkeypatch):
    monkeypatch.setattr(settings, "master_key", "not base64!")
    with pytest.raises(Internal):
        with store.transaction() as ledger:
            ledger.get_or_create("alice").face_id = "template"
    assert not store.path.exists()


def test_encode_decode_record():
    r = decode_record({"devices": [], "twoFactorEnabled": False})
    assert r.two_factor_secret is None
    assert encode_record(r)["twoFactorSecret"] is None


def test_concurrent_writers_do_not_lose_updates(store):
    barrier = threading.Barrier(8)
    errors: list[BaseException] = []

    def worker(i: int) -> None:
        try:
            barrier.wait()
            # Separate instances on the same path share one lock
            s = JsonFileStore(store.path)
            with s.transaction() as ledger:
                ledger.get_or_create(f"user{i}").devices.append(Device(id="d", name="Phone"))
        except BaseException as e:  # noqa: BLE001
            errors.append(e)

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    records = store.snapshot()
    assert set(records) == {f"user{i}" for i in range(8)}


def test_build_store_selects_backend(monkeypatch, tmp_path):
    monkeypatch.setattr(settings, "backend", Backend.JSON)
    monkeypatch.setattr(settings, "store_path", tmp_path / "s.json")
    assert isinstance(store_mod.build_store(), JsonFileStore)

    monkeypatch.setattr(settings, "backend", Backend.POSTGRES)
    monkeypatch.setattr(settings, "database_url", "postgresql://u:p@localhost/db")
    pg = store_mod.build_store()
    assert isinstance(pg, PostgresStore)
    assert pg.database_url == "postgresql://u:p@localhost/db"


def test_get_store_is_cached(monkeypatch, tmp_path):
    monkeypatch.setattr(settings, "backend", Backend.JSON)
    monkeypatch.setattr(settings, "store_path", tmp_path / "s.json")
    store_mod.set_store(None)
    assert store_mod.get_store() is store_mod.get_store()


@pytest.mark.skipif(not os.environ.get("SECLEDGER_TEST_DATABASE_URL"), reason="no test database")
def test_postgres_round_trip():
    from secledger.db import init_schema, sync_execute

    url = os.environ["SECLEDGER_TEST_DATABASE_URL"]
    init_schema(url)
    sync_execute("DELETE FROM security_records WHERE username LIKE 'pytest-%%'", database_url=url)
    pg = PostgresStore(url)
    with pg.transaction() as ledger:
        ledger.get_or_create("pytest-alice").buddy = "pytest-bob"
    with pytest.raises(NotFound):
        with pg.transaction() as ledger:
            ledger.get_or_create("pytest-ghost")
            raise NotFound("nope")
    records = pg.snapshot()
    assert records["pytest-alice"].buddy == "pytest-bob"
    assert "pytest-ghost" not in records


def test_unchanged_records_are_not_rewritten(store):
    with store.transaction() as ledger:
        ledger.get_or_create("alice")
    mtime = store.path.stat().st_mtime_ns

    with store.transaction() as ledger:
        ledger.get_or_create("alice")
        assert ledger.changed == {}
    assert store.path.stat().st_mtime_ns == mtime
