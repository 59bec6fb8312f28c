"""Run manifest: what was trained, on which data, with which code."""

from __future__ import annotations

import json
import platform
import subprocess
import time
from pathlib import Path
from typing import Mapping

import numpy as np


def git_revision(cwd: str | Path | None = None) -> str | None:
    """Short hash of ``HEAD``, or ``None`` outside a git checkout."""

    try:
        proc = subprocess.run(
            ["git", "rev-parse", "--short", "HEAD"],
            cwd=cwd,
            capture_output=True,
            text=True,
            check=False,
        )
    except OSError:
        return None
    if proc.returncode != 0:
        return None
    return proc.stdout.strip() or None


def write_manifest(
    path: str | Path,
    *,
    config: Mapping[str, object],
    dataset_provenance: Mapping[str, object],
    model: Mapping[str, object] | None = None,
    artifacts: Mapping[str, str | None] | None = None,
) -> str:
    """Write ``manifest.json`` next to the other run outputs.

    ``artifacts`` maps an output kind (``metrics``, ``model`` ...) to its file
    name inside the run directory; entries that were not produced are dropped.
    """

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    manifest = {
        "revision": git_revision(path.parent) or "unknown",
        "created": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
        "config": config,
        "dataset": dict(dataset_provenance),
        "model": dict(model or {}),
        "artifacts": {kind: name for kind, name in (artifacts or {}).items() if name},
        "versions": {"python": platform.python_version(), "numpy": np.__version__},
    }
    path.write_text(json.dumps(manifest, indent=2, sort_keys=True, default=str))
    return str(path)


__all__ = ["git_revision", "write_manifest"]
