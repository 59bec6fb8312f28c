from pathlib import Path

from seqnet.training import pipelines


def test_summary_outputs_are_deterministic(tmp_path):
    config = {
        "data": {"name": "mnist", "options": {"train_size": 64, "test_size": 16, "seed": 123}},
        "model": {
            "layers": [
                {"class_name": "Input", "config": {"dims": [784]}},
                {"class_name": "Dense", "config": {"output_size": 8, "activation": "tanh"}},
                {"class_name": "Dense", "config": {"output_size": 10, "activation": "linear"}},
            ]
        },
        "train": {
            "optimizer": {"name": "momentum", "learning_rate": 0.01, "momentum": 0.9},
            "loss": "ce",
            "metrics": ["accuracy"],
            "epochs": 2,
            "batch_size": 8,
            "seed": 55,
            "run_dir": str(tmp_path / "run_a"),
            "save_model": False,
        },
        "offline": True,
    }

    first = pipelines.run_pipeline(config)
    summary_a = Path(first.summary_path).read_text()
    csv_a = Path(first.csv_path).read_text()

    config["train"]["run_dir"] = str(tmp_path / "run_b")
    second = pipelines.run_pipeline(config)

    assert first.model_path is None
    assert csv_a == Path(second.csv_path).read_text()
    assert summary_a == Path(second.summary_path).read_text()
