import json
import logging

from monkeeper.observers.dispatcher import EventBus
from monkeeper.observers.events import MonRemoved, RemediationFailed, new_ctx
from monkeeper.observers.jsonfile import JsonFileObserver
from monkeeper.observers.logger import LoggerObserver


class Boom:
    def notify(self, ev): raise RuntimeError("observer down")


class Capture:
    def __init__(self): self.events = []
    def notify(self, ev): self.events.append(ev)


def test_bus_isolates_failing_observers():
    cap = Capture()
    bus = EventBus(observers=[Boom(), cap])
    ev = MonRemoved(name="c", **new_ctx(cluster="ceph"))

    bus.emit(ev)

    assert cap.events == [ev]


def test_json_file_observer_writes_lines(tmp_path):
    path = tmp_path / "events" / "run.jsonl"
    ob = JsonFileObserver(path)
    ctx = new_ctx(cluster="ceph", run_id="r1")

    ob.notify(MonRemoved(name="c", **ctx))
    ob.notify(RemediationFailed(action="failover", name="d", error="boom", **ctx))

    lines = [json.loads(l) for l in path.read_text().splitlines()]
    assert [l["type"] for l in lines] == ["MonRemoved", "RemediationFailed"]
    assert lines[0]["run_id"] == "r1"
    assert lines[1]["error"] == "boom"


def test_logger_observer_uses_event_level(caplog):
    logger = logging.getLogger("monkeeper.test")
    ob = LoggerObserver(logger)
    ctx = new_ctx(cluster="ceph")

    with caplog.at_level(logging.DEBUG, logger="monkeeper.test"):
        ob.notify(MonRemoved(name="c", **ctx))
        ob.notify(RemediationFailed(action="remove", name="c", error="x", **ctx))

    levels = [r.levelno for r in caplog.records]
    assert levels == [logging.INFO, logging.ERROR]
    assert "MonRemoved" in caplog.records[0].getMessage()
