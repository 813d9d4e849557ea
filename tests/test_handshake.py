from pathlib import Path

import pytest

from lockyard.errors import RegistryError
from lockyard.registry import read_port_report, wait_for_port, write_port_report


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def test_port_report_roundtrip(tmp_path: Path) -> None:
    path = write_port_report(tmp_path / "run" / "port", 43123)

    assert path.read_text(encoding="utf-8") == "43123\n"
    assert read_port_report(path) == 43123
    assert read_port_report(tmp_path / "missing") is None


def test_port_report_rejects_garbage(tmp_path: Path) -> None:
    path = tmp_path / "port"
    path.write_text("listening\n", encoding="utf-8")

    with pytest.raises(RegistryError):
        read_port_report(path)


def test_wait_for_port_returns_reported_port(tmp_path: Path) -> None:
    path = tmp_path / "port"
    clock = FakeClock()

    def sleep(seconds: float) -> None:
        clock.sleep(seconds)
        if len(clock.sleeps) == 3:
            write_port_report(path, 8080)

    assert wait_for_port(path, sleep=sleep, clock=clock) == 8080
    assert clock.sleeps == [0.05, 0.1, 0.2]


def test_wait_for_port_times_out(tmp_path: Path) -> None:
    clock = FakeClock()

    with pytest.raises(RegistryError) as exc:
        wait_for_port(tmp_path / "port", timeout=2.0, sleep=clock.sleep, clock=clock)

    assert clock.now == pytest.approx(2.0)
    assert max(clock.sleeps) <= 1.0
    assert exc.value.context["timeout"] == "2s"


def test_wait_for_port_stops_when_process_exits(tmp_path: Path) -> None:
    clock = FakeClock()

    with pytest.raises(RegistryError) as exc:
        wait_for_port(tmp_path / "port", alive=lambda: False, sleep=clock.sleep, clock=clock)

    assert "exited" in str(exc.value)
    assert clock.sleeps == []
