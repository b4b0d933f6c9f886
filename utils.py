"""
utils
==============

Helpers for the mlmath benchmark script.

This module is intentionally lightweight and focused on:
- a small BenchmarkState container for timing curves
- plotting GPU vs CPU matrix-multiply timings

Logging and device selection live in ``mlmath.utils``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Union

import numpy as np
import matplotlib.pyplot as plt


PathLike = Union[str, Path]


@dataclass
class BenchmarkState:
    """
    Hold timing history for the matrix-multiply benchmark.

    Attributes
    ----------
    sizes:
        Matrix side length n of each measured n x n product.
    device_seconds:
        Wall-clock seconds of the product on the benchmark device.
    cpu_seconds:
        Wall-clock seconds of the same product on the CPU (empty if skipped).
    device_name:
        Label of the benchmark device, used for plot annotation.
    """
    sizes: List[int] = field(default_factory=list)
    device_seconds: List[float] = field(default_factory=list)
    cpu_seconds: List[float] = field(default_factory=list)
    device_name: str = "cpu"


def plot_timings(
    state: BenchmarkState,
    *,
    out_path: PathLike = "images/matmul_timings.png",
    title: str = "Dense float64 matrix multiply",
) -> None:
    """
    Plot multiply timings against matrix size.

    Parameters
    ----------
    state:
        Benchmark state containing recorded timings.
    out_path:
        Where to save the figure. The raw timings are saved next to it as text.

    Notes
    -----
    This function saves directly to disk and closes the figure.
    """
    out_path = Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)

    plt.figure(figsize=(12, 6))
    plt.plot(state.sizes, state.device_seconds, label=state.device_name, linewidth=3, color="#007AFF")
    if state.cpu_seconds:
        plt.plot(state.sizes, state.cpu_seconds, label="cpu", linewidth=3, color="#AF52DE")

    plt.xlabel("Matrix size n (n x n)")
    plt.ylabel("Seconds")
    plt.title(title + "\n(the lower, the better)")

    ax = plt.gca()
    ax.spines["top"].set_visible(False)
    ax.spines["right"].set_visible(False)

    plt.legend(loc="upper left")
    plt.tight_layout()
    plt.savefig(out_path)
    plt.close()

    columns = [state.sizes, state.device_seconds]
    if state.cpu_seconds:
        columns.append(state.cpu_seconds)
    np.savetxt(out_path.with_suffix(".txt"), np.column_stack(columns))
