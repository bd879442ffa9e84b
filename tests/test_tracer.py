import json
from eqv.tracer import Tracer, save_trace


def test_tracer_collects_in_order():
    t = Tracer()
    t.add("parsed", {"formula": "F = m*a"})
    t.add("case", {"case": "balance"})
    assert t.kinds() == ["parsed", "case"]
    assert t.steps()[1] == {"kind": "case", "detail": {"case": "balance"}}


def test_save_trace_writes_json(tmp_path):
    path = save_trace({"version": "test"}, {"problem_id": "P1"}, {"correct": True}, trace_dir=str(tmp_path))
    assert path.endswith(".json")
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    assert data == {"meta": {"version": "test"}, "input": {"problem_id": "P1"}, "result": {"correct": True}}


def test_save_trace_uses_env_dir(tmp_path, monkeypatch):
    monkeypatch.setenv("TRACE_DIR", str(tmp_path / "traces"))
    path = save_trace({}, {}, {})
    assert path.startswith(str(tmp_path / "traces"))
