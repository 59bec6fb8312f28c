import json
from pathlib import Path

import pytest

from cli.main import main


def test_cli_runs_preset(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    override = tmp_path / "override.json"
    override.write_text(json.dumps({"data": {"options": {"train_size": 80, "test_size": 20}}}))
    main(["--preset", "mnist-dense", "--config", str(override), "--epochs", "1", "--log-level", "WARNING"])
    run_dir = Path("runs/mnist-dense")
    assert (run_dir / "metrics.jsonl").exists()
    assert (run_dir / "manifest.json").exists()
    assert (run_dir / "model" / "model.json").exists()
    payload = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
    assert payload["steps"] == 72 // 32
    assert "accuracy" in payload["evaluation"]


def test_cli_dump_config_and_overrides(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    dump = tmp_path / "resolved.json"
    main(
        [
            "--preset",
            "mnist-lenet",
            "--config",
            str(_write_override(tmp_path)),
            "--batch-size",
            "16",
            "--seed",
            "9",
            "--run-dir",
            str(tmp_path / "out"),
            "--dump-config",
            str(dump),
        ]
    )
    resolved = json.loads(dump.read_text())
    assert resolved["train"]["batch_size"] == 16
    assert resolved["train"]["seed"] == 9
    assert resolved["data"]["options"]["seed"] == 9
    assert resolved["offline"] is True
    assert (tmp_path / "out" / "summary.json").exists()


def _write_override(tmp_path):
    path = tmp_path / "small.json"
    path.write_text(json.dumps({"data": {"options": {"train_size": 32, "test_size": 8}}}))
    return path


def test_cli_list_presets(capsys):
    with pytest.raises(SystemExit) as excinfo:
        main(["--list-presets"])
    assert excinfo.value.code == 0
    assert "mnist-dense" in capsys.readouterr().out.split()


def test_cli_yaml_override(tmp_path, monkeypatch):
    yaml = pytest.importorskip("yaml")
    monkeypatch.chdir(tmp_path)
    path = tmp_path / "override.yaml"
    path.write_text(yaml.safe_dump({"data": {"options": {"train_size": 40, "test_size": 8}}}))
    main(["--preset", "mnist-dense", "--config", str(path), "--epochs", "1"])
    assert Path("runs/mnist-dense/metrics.csv").exists()
