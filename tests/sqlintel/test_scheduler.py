"""Tests for the per-URI diagnostic scheduler."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

import pytest

from bqls.sqlintel import (
    Diagnostic,
    DiagnosticScheduler,
    DiagnosticSeverity,
    DocumentNotFoundError,
    Position,
    Range,
)

URI = "file:///a.sql"


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


def _diagnostic(message: str) -> Diagnostic:
    return Diagnostic(message=message, severity=DiagnosticSeverity.ERROR, range=Range(Position(0, 0), Position(0, 1)))


async def _settle() -> None:
    for _ in range(10):
        await asyncio.sleep(0)


@pytest.mark.anyio
async def test_publishes_every_returned_file_including_empty() -> None:
    published: list[tuple[str, list[Diagnostic]]] = []

    async def diagnose(uri: str) -> dict[str, list[Diagnostic]]:
        return {uri: [_diagnostic("boom")], "file:///other.sql": []}

    def publish(uri: str, diagnostics: Sequence[Diagnostic]) -> None:
        published.append((uri, list(diagnostics)))

    scheduler = DiagnosticScheduler(diagnose, publish)
    scheduler.notify(URI)
    await _settle()

    assert published == [(URI, [_diagnostic("boom")]), ("file:///other.sql", [])]
    scheduler.close()
    await scheduler.wait_closed()


@pytest.mark.anyio
async def test_new_request_cancels_previous_run_for_same_uri() -> None:
    started: list[str] = []
    release = asyncio.Event()
    published: list[str] = []
    calls = 0

    async def diagnose(uri: str) -> dict[str, list[Diagnostic]]:
        nonlocal calls
        calls += 1
        run = f"run-{calls}"
        started.append(run)
        if calls == 1:
            await release.wait()
        return {uri: [_diagnostic(run)]}

    async def publish(uri: str, diagnostics: Sequence[Diagnostic]) -> None:
        published.extend(item.message for item in diagnostics)

    scheduler = DiagnosticScheduler(diagnose, publish)
    scheduler.notify(URI)
    await _settle()
    scheduler.notify(URI)
    await _settle()
    release.set()
    await _settle()

    assert started == ["run-1", "run-2"]
    assert published == ["run-2"]
    scheduler.close()
    await scheduler.wait_closed()


@pytest.mark.anyio
async def test_runs_for_different_uris_are_independent() -> None:
    gate = asyncio.Event()
    published: list[str] = []

    async def diagnose(uri: str) -> dict[str, list[Diagnostic]]:
        if uri == URI:
            await gate.wait()
        return {uri: []}

    def publish(uri: str, diagnostics: Sequence[Diagnostic]) -> None:
        published.append(uri)

    scheduler = DiagnosticScheduler(diagnose, publish)
    scheduler.notify(URI)
    scheduler.notify("file:///b.sql")
    await _settle()
    assert published == ["file:///b.sql"]

    gate.set()
    await _settle()
    assert published == ["file:///b.sql", URI]
    scheduler.close()
    await scheduler.wait_closed()


@pytest.mark.anyio
async def test_failed_run_publishes_nothing(caplog: pytest.LogCaptureFixture) -> None:
    published: list[str] = []

    async def diagnose(uri: str) -> dict[str, list[Diagnostic]]:
        raise RuntimeError("analysis crashed")

    def publish(uri: str, diagnostics: Sequence[Diagnostic]) -> None:
        published.append(uri)

    scheduler = DiagnosticScheduler(diagnose, publish)
    scheduler.notify(URI)
    await _settle()

    assert published == []
    assert "Diagnostic run failed" in caplog.text
    scheduler.close()
    await scheduler.wait_closed()


@pytest.mark.anyio
async def test_delay_coalesces_rapid_requests() -> None:
    calls: list[str] = []

    async def diagnose(uri: str) -> dict[str, list[Diagnostic]]:
        calls.append(uri)
        return {uri: []}

    scheduler = DiagnosticScheduler(diagnose, lambda uri, diagnostics: None, delay=0.05)
    for _ in range(5):
        scheduler.notify(URI)
    await asyncio.sleep(0.2)

    assert calls == [URI]
    scheduler.close()
    await scheduler.wait_closed()


@pytest.mark.anyio
async def test_close_stops_coordinator_and_ignores_later_requests() -> None:
    calls: list[str] = []

    async def diagnose(uri: str) -> dict[str, list[Diagnostic]]:
        calls.append(uri)
        return {uri: []}

    scheduler = DiagnosticScheduler(diagnose, lambda uri, diagnostics: None)
    scheduler.notify(URI)
    scheduler.close()
    await scheduler.wait_closed()
    scheduler.notify("file:///late.sql")
    await _settle()

    assert "file:///late.sql" not in calls


@pytest.mark.anyio
async def test_finished_runs_are_discarded(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.DEBUG, logger="bqls.sqlintel.scheduler")

    async def diagnose(uri: str) -> dict[str, list[Diagnostic]]:
        return {uri: []}

    scheduler = DiagnosticScheduler(diagnose, lambda uri, diagnostics: None)
    scheduler.notify(URI)
    await _settle()

    discarded = [record for record in caplog.records if record.getMessage() == "Discarded finished diagnostic run"]
    assert [record.uri for record in discarded] == [URI]
    scheduler.close()
    await scheduler.wait_closed()


@pytest.mark.anyio
async def test_closed_document_ends_run_quietly(caplog: pytest.LogCaptureFixture) -> None:
    published: list[str] = []

    async def diagnose(uri: str) -> dict[str, list[Diagnostic]]:
        raise DocumentNotFoundError(uri)

    def publish(uri: str, diagnostics: Sequence[Diagnostic]) -> None:
        published.append(uri)

    scheduler = DiagnosticScheduler(diagnose, publish)
    scheduler.notify(URI)
    await _settle()

    assert published == []
    assert "Diagnostic run failed" not in caplog.text
    scheduler.close()
    await scheduler.wait_closed()
