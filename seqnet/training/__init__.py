"""Optimizers, losses, metrics and fit callbacks.

Run pipelines live in :mod:`seqnet.training.pipelines` and are imported on
demand because they depend on :mod:`seqnet.model`.
"""

from . import callbacks, losses, metrics, optimizers

__all__ = ["callbacks", "losses", "metrics", "optimizers"]
