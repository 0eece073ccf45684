from __future__ import annotations

import logging
import threading

import pytest

from bulkota.domain.installer_status import InstallerStatus, Outcome, Phase, StatusCell


def test_happy_path_reaches_completed_success() -> None:
    cell = StatusCell("App")

    assert cell.set(InstallerStatus.ready())
    assert cell.set(InstallerStatus.sending_manifest())
    assert cell.set(InstallerStatus.sending_payload())
    assert cell.set(InstallerStatus.completed(Outcome.SUCCESS))

    assert cell.value.phase is Phase.COMPLETED
    assert cell.value.succeeded
    assert cell.value.is_terminal


@pytest.mark.parametrize(
    "terminal",
    [
        InstallerStatus.completed(Outcome.SUCCESS),
        InstallerStatus.completed(Outcome.FAILURE, "disconnect"),
        InstallerStatus.broken("packaging failed"),
    ],
)
def test_terminal_states_reject_every_transition(terminal: InstallerStatus) -> None:
    cell = StatusCell("App")
    if terminal.phase is Phase.COMPLETED:
        cell.set(InstallerStatus.sending_payload())
    cell.set(terminal)

    for target in (
        InstallerStatus.idle(),
        InstallerStatus.ready(),
        InstallerStatus.sending_manifest(),
        InstallerStatus.sending_payload(),
        InstallerStatus.completed(Outcome.SUCCESS),
        InstallerStatus.broken("later"),
    ):
        assert not cell.set(target)
    assert cell.value == terminal


def test_manifest_refetch_during_payload_keeps_status_and_logs(caplog) -> None:
    cell = StatusCell("App")
    cell.set(InstallerStatus.sending_payload())

    with caplog.at_level(logging.WARNING, logger="bulkota.domain.installer_status"):
        changed = cell.set(InstallerStatus.sending_manifest())

    assert not changed
    assert cell.value.phase is Phase.SENDING_PAYLOAD
    assert "sendingPayload -> sendingManifest" in caplog.text


def test_broken_only_reachable_before_http_exchange() -> None:
    from_idle = StatusCell()
    assert from_idle.set(InstallerStatus.broken("sign failed"))

    from_ready = StatusCell()
    from_ready.set(InstallerStatus.ready())
    assert from_ready.set(InstallerStatus.broken("open failed"))

    streaming = StatusCell()
    streaming.set(InstallerStatus.sending_payload())
    assert not streaming.set(InstallerStatus.broken("late"))


def test_completed_requires_payload_phase() -> None:
    cell = StatusCell()
    cell.set(InstallerStatus.sending_manifest())

    assert not cell.set(InstallerStatus.completed(Outcome.SUCCESS))
    assert cell.value.phase is Phase.SENDING_MANIFEST


def test_labels_and_dict() -> None:
    failed = InstallerStatus.completed(Outcome.FAILURE, "Transfer interrupted")

    assert InstallerStatus.idle().label == "Waiting"
    assert InstallerStatus.completed(Outcome.SUCCESS).label == "Completed"
    assert failed.label == "Failed: Transfer interrupted"
    assert InstallerStatus.broken("bad ipa").label == "Broken: bad ipa"
    assert failed.to_dict() == {
        "phase": "completed",
        "outcome": "failure",
        "error": "Transfer interrupted",
    }


def test_concurrent_readers_only_see_whole_values() -> None:
    cell = StatusCell("App")
    valid = {
        InstallerStatus.idle(),
        InstallerStatus.ready(),
        InstallerStatus.sending_manifest(),
        InstallerStatus.sending_payload(),
        InstallerStatus.completed(Outcome.SUCCESS),
    }
    seen = []
    stop = threading.Event()

    def reader() -> None:
        while True:
            seen.append(cell.value)
            if stop.is_set():
                break

    thread = threading.Thread(target=reader)
    thread.start()
    for status in (
        InstallerStatus.ready(),
        InstallerStatus.sending_manifest(),
        InstallerStatus.sending_payload(),
        InstallerStatus.completed(Outcome.SUCCESS),
    ):
        cell.set(status)
    stop.set()
    thread.join()

    assert seen
    assert all(value in valid for value in seen)
