"""
mlmath benchmark: dense matrix multiply
=======================================

Multiplies random n x n float64 matrices for growing n with
``mlmath.multiply`` and logs the sum of every product, as a smoke test that
the cuBLAS path returns sane values.

With ``--compare-cpu`` each product is also computed on the CPU; the script
checks that both results agree and plots the timings of both devices.

Run
---
    python matmul_benchmark.py --max-size 1024 --step 64 --compare-cpu

Dependencies
------------
    pip install -e .[scripts]
"""

from __future__ import annotations

import argparse
import logging
import time
from pathlib import Path

import torch
from tqdm import tqdm

from mlmath import default_device, device_info, multiply
from mlmath.utils import setup_logging
from utils import BenchmarkState, plot_timings

# ============================================================
# Constants & configuration
# ============================================================

MIN_SIZE = 2
MAX_SIZE = 2000
STEP = 1
SEED = 0
RTOL = 1e-9


def _timed_multiply(a: torch.Tensor, b: torch.Tensor, device: torch.device):
    start = time.perf_counter()
    product = multiply(a, b, device=device)
    return product, time.perf_counter() - start


def main() -> None:
    parser = argparse.ArgumentParser(description="mlmath dense matrix multiply benchmark")
    parser.add_argument("--min-size", type=int, default=MIN_SIZE, help="Smallest matrix side")
    parser.add_argument("--max-size", type=int, default=MAX_SIZE, help="Largest matrix side (exclusive)")
    parser.add_argument("--step", type=int, default=STEP, help="Size increment")
    parser.add_argument("--seed", type=int, default=SEED, help="Random seed")
    parser.add_argument("--compare-cpu", action="store_true", help="Also time and check the CPU product")
    parser.add_argument("--out", type=str, default="benchmark_output", help="Output directory")
    args = parser.parse_args()

    setup_logging()
    device = default_device()
    info = device_info()
    logging.info("Benchmark device: %s", info.name if info else device)

    torch.manual_seed(args.seed)
    state = BenchmarkState(device_name=info.name if info else str(device))
    cpu = torch.device("cpu")

    for n in tqdm(range(args.min_size, args.max_size, args.step), desc="Multiply"):
        a = torch.rand(n, n, dtype=torch.float64)
        b = torch.rand(n, n, dtype=torch.float64)

        product, seconds = _timed_multiply(a, b, device)
        state.sizes.append(n)
        state.device_seconds.append(seconds)
        logging.debug("%d %f", n, product.sum().item())

        if args.compare_cpu:
            expected, cpu_seconds = _timed_multiply(a, b, cpu)
            state.cpu_seconds.append(cpu_seconds)
            if not torch.allclose(product, expected, rtol=RTOL):
                logging.error("Product mismatch between %s and cpu at n=%d", device, n)
                return

    if not state.sizes:
        logging.error("No sizes to benchmark in [%d, %d)", args.min_size, args.max_size)
        return

    out_path = Path(args.out) / "matmul_timings.png"
    plot_timings(state, out_path=out_path)
    logging.info("Saved timings to: %s", out_path)
    logging.info("Benchmark finished successfully.")


if __name__ == "__main__":
    main()
