import csv
import json

import pytest

from seqnet.core.types import BatchEvent, EpochEvent, TrainingHistory
from seqnet.reporting import (
    CsvSink,
    JsonlSink,
    PlotAdapter,
    build_summary,
    summarize_history,
    write_manifest,
    write_summary,
)
from seqnet.reporting.summary import curve_area


def _events():
    batches = [
        BatchEvent(1, i, loss_value=1.0 / (i + 1), metric_value=0.5, metric_values={"accuracy": 0.5})
        for i in range(3)
    ]
    epoch = EpochEvent(1, loss_value=0.6, metric_value=0.5, val_loss_value=0.7, val_metric_value=0.4)
    return batches, epoch


def test_jsonl_sink_records_batches_and_epochs(tmp_path):
    sink = JsonlSink(tmp_path / "metrics.jsonl", seed=3, sha="abc")
    batches, epoch = _events()
    for event in batches:
        sink.on_batch_end(event)
    sink.on_epoch_end(epoch)
    records = [json.loads(line) for line in sink.path.read_text().splitlines()]
    assert [r["split"] for r in records] == ["train", "train", "train", "epoch"]
    assert records[0] == {
        "split": "train",
        "seed": 3,
        "sha": "abc",
        "epoch": 1,
        "batch": 0,
        "loss": 1.0,
        "accuracy": 0.5,
    }
    assert records[-1]["val_loss"] == 0.7


def test_csv_sink_has_stable_schema(tmp_path):
    sink = CsvSink(tmp_path / "metrics.csv")
    _, epoch = _events()
    sink.on_epoch_end(epoch)
    sink.on_epoch_end(EpochEvent(2, loss_value=0.5, metric_value=0.6))
    with sink.path.open() as handle:
        rows = list(csv.DictReader(handle))
    assert len(rows) == 2
    assert set(rows[0]) == {"epoch", "loss", "metric", "val_loss", "val_metric"}
    assert rows[1]["val_loss"] == ""


def test_summary_from_jsonl(tmp_path):
    sink = JsonlSink(tmp_path / "metrics.jsonl", sha="abc")
    batches, epoch = _events()
    for event in batches:
        sink.on_batch_end(event)
    sink.on_epoch_end(epoch)
    path = write_summary(sink.path, tmp_path / "summary.json", tail=2)
    summary = json.loads(open(path).read())
    assert summary["records"] == 3
    assert summary["tail_window"] == 2
    assert summary["metrics"]["loss"]["last"] == pytest.approx(1.0 / 3)
    assert summary["metrics"]["loss"]["first"] == pytest.approx(1.0)
    assert "batch" not in summary["metrics"]
    assert summary["epochs"] == 1
    assert summary["best_epoch"] == 1
    assert summary["final_epoch"]["val_loss"] == pytest.approx(0.7)
    assert "sha" not in summary["final_epoch"]


def test_summarize_history_matches_batches():
    history = TrainingHistory()
    batches, _ = _events()
    for event in batches:
        history.append_batch(event)
    summary = summarize_history(history)
    assert summary["records"] == 3
    assert summary["metrics"]["loss"]["max"] == 1.0
    assert summary["epochs"] == 0
    assert summary["best_epoch"] is None
    assert curve_area([]) == 0.0
    assert curve_area([5.0]) == 0.0
    assert curve_area([1.0, 1.0, 1.0]) == pytest.approx(2.0)


def test_best_epoch_prefers_validation_loss():
    batches = [{"epoch": 1, "batch": 0, "loss": 1.0}]
    epochs = [
        {"epoch": 1, "loss": 0.9, "val_loss": 0.4},
        {"epoch": 2, "loss": 0.5, "val_loss": 0.6},
    ]
    assert build_summary(batches, epochs)["best_epoch"] == 1
    without_validation = [{"epoch": e["epoch"], "loss": e["loss"]} for e in epochs]
    assert build_summary(batches, without_validation)["best_epoch"] == 2


def test_manifest_contents(tmp_path):
    path = write_manifest(
        tmp_path / "out" / "manifest.json",
        config={"train": {"seed": 1}},
        dataset_provenance={"mode": "offline"},
        model={"num_parameters": 10},
        artifacts={"metrics": "metrics.jsonl", "plot": None},
    )
    manifest = json.loads(open(path).read())
    assert manifest["config"]["train"]["seed"] == 1
    assert manifest["dataset"]["mode"] == "offline"
    assert manifest["model"]["num_parameters"] == 10
    assert manifest["artifacts"] == {"metrics": "metrics.jsonl"}
    assert manifest["revision"]
    assert set(manifest["versions"]) == {"python", "numpy"}


def test_plot_adapter_disabled_is_noop(tmp_path):
    adapter = PlotAdapter(tmp_path / "plots", enable_plots=False)
    batches, _ = _events()
    adapter.on_batch_end(batches[0])
    assert adapter.close() is None
    assert not (tmp_path / "plots").exists()


def test_plot_adapter_writes_png(tmp_path):
    pytest.importorskip("matplotlib")
    adapter = PlotAdapter(tmp_path, enable_plots=True)
    batches, epoch = _events()
    for event in batches:
        adapter.on_batch_end(event)
    adapter.on_epoch_end(epoch)
    adapter.on_train_end(TrainingHistory())
    assert (tmp_path / "loss.png").exists()
