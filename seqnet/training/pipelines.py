"""Config-driven training runs: build a model from layer configs, fit, evaluate, report."""

from __future__ import annotations

import json
import logging
import time
from copy import deepcopy
from pathlib import Path
from typing import Any, Dict, List, Mapping

from ..core.types import RunResult
from ..data import registry
from ..data.utils import seed_everything
from ..layers import deserialize
from ..model.sequential import Sequential
from ..reporting.artifacts import write_manifest
from ..reporting.metrics import CsvSink, JsonlSink
from ..reporting.plots import PLOT_FILE, PlotAdapter
from ..reporting.summary import write_summary

logger = logging.getLogger(__name__)


def _dense(units: int, activation: str = "relu") -> Dict[str, Any]:
    return {"class_name": "Dense", "config": {"output_size": units, "activation": activation}}


_MNIST_INPUT = {"class_name": "Input", "config": {"dims": [28, 28, 1]}}
_FLATTEN = {"class_name": "Flatten", "config": {}}

_PRESETS: Dict[str, Mapping[str, object]] = {
    "mnist-dense": {
        "data": {
            "name": "mnist",
            "options": {"train_size": 1024, "test_size": 256, "seed": 0},
        },
        "model": {"layers": [_MNIST_INPUT, _FLATTEN, _dense(64), _dense(10, "linear")]},
        "train": {
            "optimizer": {"name": "adam", "learning_rate": 0.001},
            "loss": "softmax_cross_entropy_with_logits",
            "metrics": ["accuracy"],
            "epochs": 2,
            "batch_size": 32,
            "validation_split": 0.9,
            "eval_batch_size": 256,
            "seed": 0,
            "run_dir": "runs/mnist-dense",
            "enable_plots": False,
            "save_model": True,
        },
    },
    "mnist-lenet": {
        "data": {
            "name": "mnist",
            "options": {"train_size": 512, "test_size": 128, "seed": 0},
        },
        "model": {
            "layers": [
                _MNIST_INPUT,
                {
                    "class_name": "Conv2D",
                    "config": {"filters": 8, "kernel_size": [3, 3], "padding": "same"},
                },
                {"class_name": "MaxPool2D", "config": {"pool_size": [1, 2, 2, 1]}},
                {
                    "class_name": "Conv2D",
                    "config": {"filters": 16, "kernel_size": [3, 3], "padding": "same"},
                },
                {"class_name": "MaxPool2D", "config": {"pool_size": [1, 2, 2, 1]}},
                _FLATTEN,
                _dense(64),
                _dense(10, "linear"),
            ]
        },
        "train": {
            "optimizer": {"name": "adam", "learning_rate": 0.001},
            "loss": "softmax_cross_entropy_with_logits",
            "metrics": ["accuracy"],
            "epochs": 1,
            "batch_size": 32,
            "validation_split": None,
            "eval_batch_size": 128,
            "seed": 0,
            "run_dir": "runs/mnist-lenet",
            "enable_plots": False,
            "save_model": True,
        },
    },
}

_PRESET_DIR = Path(__file__).resolve().parents[2] / "configs" / "presets"
_FILE_PRESETS_CACHE: Dict[str, Mapping[str, object]] | None = None
_REQUIRED_SECTIONS = {"data", "model", "train"}


def _read_preset_file(path: Path) -> Mapping[str, object]:
    text = path.read_text()
    suffix = path.suffix.lower()
    if suffix in {".yaml", ".yml"}:
        try:
            import yaml  # type: ignore
        except ImportError as exc:  # pragma: no cover - optional dependency
            raise RuntimeError("PyYAML is required to load preset files in YAML format") from exc
        data = yaml.safe_load(text) or {}
    elif suffix == ".json":
        data = json.loads(text or "{}")
    else:
        raise ValueError(f"Unsupported preset file type: {path.suffix}")

    if not isinstance(data, Mapping):
        raise TypeError(f"Preset {path.name} must decode to a mapping")
    return data


def _file_presets() -> Dict[str, Mapping[str, object]]:
    global _FILE_PRESETS_CACHE
    if _FILE_PRESETS_CACHE is None:
        found: Dict[str, Mapping[str, object]] = {}
        if _PRESET_DIR.exists():
            for file in sorted(_PRESET_DIR.iterdir()):
                if file.suffix.lower() not in {".yaml", ".yml", ".json"}:
                    continue
                data = _read_preset_file(file)
                missing = _REQUIRED_SECTIONS - set(data)
                if missing:
                    missing_str = ", ".join(sorted(missing))
                    raise KeyError(f"Preset {file.name} is missing required sections: {missing_str}")
                found[file.stem] = json.loads(json.dumps(data))
        _FILE_PRESETS_CACHE = found
    return {name: deepcopy(cfg) for name, cfg in _FILE_PRESETS_CACHE.items()}


def presets() -> Mapping[str, Mapping[str, object]]:
    combined: Dict[str, Mapping[str, object]] = {}
    combined.update({name: deepcopy(cfg) for name, cfg in _PRESETS.items()})
    combined.update(_file_presets())
    return combined


def load_preset(name: str) -> Mapping[str, object]:
    file_overrides = _file_presets()
    if name in file_overrides:
        return file_overrides[name]
    try:
        return deepcopy(_PRESETS[name])
    except KeyError as exc:
        raise KeyError(f"Unknown preset: {name}") from exc


def build_model(model_cfg: Mapping[str, object]) -> Sequential:
    """Instantiate a :class:`Sequential` from ``{"layers": [layer configs]}``."""

    layer_configs = model_cfg.get("layers")
    if not layer_configs:
        raise KeyError("Model config requires a non-empty `layers` list")
    return Sequential(*(deserialize(config) for config in layer_configs))  # type: ignore[union-attr]


def run_pipeline(config: Mapping[str, object]) -> RunResult:
    """Train and evaluate one model described by ``config`` and write its artifacts."""

    missing = _REQUIRED_SECTIONS - set(config)
    if missing:
        raise KeyError(f"Config is missing required sections: {', '.join(sorted(missing))}")
    data_cfg = dict(config["data"])  # type: ignore[arg-type]
    model_cfg = dict(config["model"])  # type: ignore[arg-type]
    train_cfg = dict(config["train"])  # type: ignore[arg-type]

    seed = int(train_cfg.get("seed", 0))
    seed_everything(seed)
    dataset = registry.get_dataset(
        str(data_cfg["name"]),
        offline=bool(config.get("offline", True)),
        data_dir=data_cfg.get("data_dir"),
        **dict(data_cfg.get("options", {})),
    )

    train_set, val_set = dataset.train, None
    validation_split = train_cfg.get("validation_split")
    if validation_split:
        train_set, val_set = dataset.train.split(float(validation_split))

    run_dir = _resolve_run_dir(train_cfg, dataset.name)
    run_dir.mkdir(parents=True, exist_ok=True)

    batch_size = int(train_cfg.get("batch_size", 32))
    eval_batch_size = int(train_cfg.get("eval_batch_size", batch_size))
    metric_names: List[str] = list(train_cfg.get("metrics", ["accuracy"]))  # type: ignore[arg-type]

    jsonl = JsonlSink(run_dir / "metrics.jsonl", seed=seed)
    csv_sink = CsvSink(run_dir / "metrics.csv")
    plots = PlotAdapter(run_dir, enable_plots=bool(train_cfg.get("enable_plots", False)))

    with build_model(model_cfg) as model:
        model.compile(
            optimizer=train_cfg.get("optimizer", "adam"),  # type: ignore[arg-type]
            loss=str(train_cfg.get("loss", "softmax_cross_entropy_with_logits")),
            metric=metric_names,
        )
        rows = model.summary()
        _log_startup_summary(
            dataset_name=dataset.name,
            splits={
                "train": train_set.x_size(),
                "val": val_set.x_size() if val_set else 0,
                "test": dataset.test.x_size(),
            },
            layers=[f"{row['name']}:{row['output_shape']}" for row in rows],
            loss=model.loss.name if model.loss else "",
            metrics=metric_names,
            param_count=model.num_parameters(),
        )
        history = model.fit(
            training_dataset=train_set,
            validation_dataset=val_set,
            epochs=int(train_cfg.get("epochs", 1)),
            train_batch_size=batch_size,
            validation_batch_size=eval_batch_size,
            verbose=bool(train_cfg.get("verbose", False)),
            callbacks=[jsonl, csv_sink, plots],
        )
        evaluation = model.evaluate(dataset.test, batch_size=eval_batch_size)
        model_path = None
        if train_cfg.get("save_model", True):
            model_path = str(
                model.save(
                    run_dir / "model",
                    save_optimizer_state=bool(train_cfg.get("save_optimizer_state", False)),
                )
            )
        model_info = {"layers": rows, "num_parameters": model.num_parameters()}

    (run_dir / "metrics_test.json").write_text(json.dumps(dict(evaluation.metrics), indent=2))
    summary_path = write_summary(
        jsonl.path, run_dir / "summary.json", tail=int(train_cfg.get("summary_tail", 32))
    )
    (run_dir / "config.json").write_text(json.dumps(config, indent=2))
    plot_file = run_dir / PLOT_FILE
    plot_path = plot_file if plot_file.exists() else None
    manifest = write_manifest(
        run_dir / "manifest.json",
        config=json.loads(json.dumps(config)),
        dataset_provenance=dataset.provenance,
        model=model_info,
        artifacts={
            "metrics": jsonl.path.name,
            "epochs": csv_sink.path.name,
            "evaluation": "metrics_test.json",
            "summary": Path(summary_path).name,
            "config": "config.json",
            "model": Path(model_path).name if model_path else None,
            "plot": plot_path.name if plot_path else None,
        },
    )

    return RunResult(
        history=history,
        evaluation=evaluation,
        run_dir=str(run_dir),
        metrics_path=str(jsonl.path),
        csv_path=str(csv_sink.path),
        manifest_path=manifest,
        summary_path=summary_path,
        model_path=model_path,
        plot_path=str(plot_path) if plot_path else None,
    )


def _resolve_run_dir(train_cfg: Mapping[str, object], dataset: str) -> Path:
    if train_cfg.get("run_dir"):
        return Path(str(train_cfg["run_dir"]))
    timestamp = time.strftime("%Y%m%d-%H%M%S")
    return Path("runs") / timestamp / dataset


def _log_startup_summary(
    *,
    dataset_name: str,
    splits: Mapping[str, int],
    layers: List[str],
    loss: str,
    metrics: List[str],
    param_count: int,
) -> None:
    logger.info("=== seqnet run ===")
    logger.info("Dataset       : %s %s", dataset_name, dict(splits))
    logger.info("Layers        : %s", " -> ".join(layers))
    logger.info("Loss          : %s", loss)
    logger.info("Metrics       : %s", ", ".join(metrics))
    logger.info("Parameters    : %d", param_count)


__all__ = ["build_model", "load_preset", "presets", "run_pipeline"]
