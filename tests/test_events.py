"""Tests for the in-memory event log."""

from __future__ import annotations

import logging

from secledger import events


def test_emit_and_filter(caplog):
    with caplog.at_level(logging.INFO, logger="secledger.events"):
        first = events.emit("buddy", "info", "requested", "alice -> bob", username="bob")
        second = events.emit("2fa", "warning", "login_rejected", "bad code", username="alice")

    assert second > first
    assert "[event] buddy/requested: alice -> bob" in caplog.text
    assert [e["id"] for e in events.get_events()] == [second, first]
    assert [e["id"] for e in events.get_events(severity="warning")] == [second]
    assert [e["id"] for e in events.get_events(username="bob")] == [first]
    assert events.get_events(category="device") == []
    assert events.get_events(after_id=second) == []


def test_limit():
    for i in range(5):
        events.emit("device", "info", "registered", f"#{i}")
    assert [e["message"] for e in events.get_events(limit=2)] == ["#4", "#3"]
