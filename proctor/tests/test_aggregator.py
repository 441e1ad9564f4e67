import pytest

from proctor.aggregator import CLEAR_STATUSES, aggregate
from proctor.snapshot import ERROR_STATUS, Signal, SignalSnapshot

VIOLATING = {
    Signal.PRESENCE: "no_person",
    Signal.IDENTITY: "mismatch",
    Signal.FACE_COUNT: "multiple_faces",
    Signal.ATTENTION: "looking_away",
    Signal.DEVICE: "mobile_detected",
}


def clear_snapshots():
    return [SignalSnapshot(signal, CLEAR_STATUSES[signal], 1.0) for signal in Signal]


def test_all_clear_when_every_signal_is_clear():
    report = aggregate(clear_snapshots(), 1.0)
    assert report.all_clear
    assert set(report.signals) == set(Signal)


@pytest.mark.parametrize("signal", list(Signal))
def test_one_violating_signal_breaks_all_clear(signal):
    snapshots = [s for s in clear_snapshots() if s.signal != signal]
    snapshots.append(SignalSnapshot(signal, VIOLATING[signal], 1.0))
    report = aggregate(snapshots, 1.0)
    assert not report.all_clear
    assert report.status(signal) == VIOLATING[signal]


def test_missing_or_inconclusive_signal_is_not_clear():
    snapshots = clear_snapshots()[:-1]
    assert not aggregate(snapshots, 1.0).all_clear
    snapshots.append(SignalSnapshot.inconclusive(Signal.DEVICE, 1.0, "provider error"))
    assert not aggregate(snapshots, 1.0).all_clear
    assert aggregate(snapshots, 1.0).status(Signal.DEVICE) == ERROR_STATUS


def test_to_dict_uses_plain_status_strings():
    payload = aggregate(clear_snapshots(), 2.0).to_dict()
    assert payload["all_clear"] is True
    assert payload["signals"]["presence"]["status"] == "person_present"
    assert payload["signals"]["device"]["status"] == "no_mobile"


def test_unverified_identity_is_not_clear():
    snapshots = [s for s in clear_snapshots() if s.signal != Signal.IDENTITY]
    snapshots.append(SignalSnapshot(Signal.IDENTITY, "no_reference", 1.0))
    report = aggregate(snapshots, 1.0)
    assert not report.all_clear
    assert report.status(Signal.IDENTITY) == "no_reference"
