"""
Benchmark suite for the randomized factor search.

Benchmarks:
1. Prime Generation: wheel trial division vs NumPy sieve, memoization
2. Wheel Tables: residue table construction per wheel level
3. Sampling: vectorized batch draws vs one-at-a-time draws, wide ranges
4. Candidate Tests: batched modulus and GCD kernels
5. Period Estimation: Monte-Carlo attempts per second
6. End-to-end Search: semiprimes of growing size, worker scaling
"""

import time
import sys
import statistics
from typing import List, Callable
import numpy as np

from batch_operations import build_wheel_residues, gcd_hits, semiprime_hits, sieve_primes
from prime_generator import trial_division
from random_factorization import (
    CandidateSampler, SearchConfig, SearchCoordinator, clear_caches,
    estimate_period_and_factor, partition, qubit_count, wheel_state,
)


# ============================================================================
# BENCHMARK UTILITIES
# ============================================================================

class BenchmarkResult:
    """Timing statistics for one benchmarked call."""

    def __init__(self, name: str, times: List[float], operations: int = 1):
        self.name = name
        self.times = sorted(times)
        self.operations = operations

        self.min = self.times[0]
        self.max = self.times[-1]
        self.mean = statistics.mean(times)
        self.median = statistics.median(times)
        self.stdev = statistics.stdev(times) if len(times) > 1 else 0

    @property
    def rate(self) -> float:
        """Operations per second at the median time."""
        return self.operations / self.median if self.median > 0 else float('inf')

    def __str__(self):
        text = (f"{self.name:40} | "
                f"Mean: {self.mean*1000:8.3f}ms | "
                f"Median: {self.median*1000:8.3f}ms | "
                f"StdDev: {self.stdev*1000:8.3f}ms | "
                f"Min: {self.min*1000:8.3f}ms")
        if self.operations > 1:
            text += f" | {self.rate:12,.0f}/s"
        return text


def benchmark(func: Callable, *args, iterations: int = 5, operations: int = 1, **kwargs) -> BenchmarkResult:
    """
    Time repeated calls of func(*args, **kwargs) after one warm-up call.

    Args:
        func: Function to benchmark
        iterations: Number of timed calls
        operations: Work items per call, used for the throughput column

    Returns:
        BenchmarkResult with timing statistics
    """
    func(*args, **kwargs)

    times = []
    for _ in range(iterations):
        start = time.perf_counter()
        func(*args, **kwargs)
        times.append(time.perf_counter() - start)

    return BenchmarkResult(func.__name__, times, operations)


def _header(title: str):
    print("\n" + "="*100)
    print(title)
    print("="*100)


# ============================================================================
# 1. PRIME GENERATION BENCHMARKS
# ============================================================================

def benchmark_prime_generation():
    """Wheel trial division against the NumPy sieve."""
    _header("PRIME GENERATION BENCHMARKS")

    for limit in [1000, 10000, 100000]:
        clear_caches()
        start = time.perf_counter()
        trial_division(limit)
        cold = time.perf_counter() - start
        print(BenchmarkResult(f"Trial division <= {limit} (no cache)", [cold]))

        result = benchmark(trial_division, limit, iterations=100)
        result.name = f"Trial division <= {limit} (cached)"
        print(result)

        result = benchmark(sieve_primes, limit, iterations=10)
        result.name = f"NumPy sieve <= {limit}"
        print(result)
        print()


# ============================================================================
# 2. WHEEL TABLE BENCHMARKS
# ============================================================================

def benchmark_wheel_tables():
    """Residue table construction cost per wheel level."""
    _header("WHEEL TABLE BENCHMARKS")

    for level in [7, 11, 13, 17, 19]:
        primes = list(trial_division(level))
        result = benchmark(build_wheel_residues, primes, iterations=3)
        result.name = f"Residues for wheel {level} (phi={len(build_wheel_residues(primes))})"
        print(result)


# ============================================================================
# 3. SAMPLING BENCHMARKS
# ============================================================================

def _sample_one_by_one(sampler: CandidateSampler, size: int):
    for _ in range(size):
        sampler.sample()


def benchmark_sampling():
    """Vectorized batches against scalar draws, narrow and wide ranges."""
    _header("CANDIDATE SAMPLING BENCHMARKS")

    wheel = wheel_state(17)
    cases = [
        (1000003 * 1000033, "40-bit target"),
        (10000019 * 10000079 * 10000103, "80-bit target"),
        ((2**89 - 1) * (2**107 - 1), "196-bit target (Python ints)"),
    ]

    for n, description in cases:
        search_range = partition(n, 59, 1, 0, 1, wheel=wheel)[0]
        sampler = CandidateSampler(search_range, wheel, np.random.default_rng(0))

        for size in [1 << 10, 1 << 16]:
            result = benchmark(sampler.sample_batch, size, iterations=5, operations=size)
            result.name = f"{description}, batch {size}"
            print(result)

        result = benchmark(_sample_one_by_one, sampler, 1 << 10, iterations=3, operations=1 << 10)
        result.name = f"{description}, one at a time"
        print(result)
        print()


# ============================================================================
# 4. CANDIDATE TEST BENCHMARKS
# ============================================================================

def benchmark_candidate_tests():
    """Batched modulus and GCD kernels, int64 arrays vs Python lists."""
    _header("CANDIDATE TEST BENCHMARKS")

    n = 1000003 * 1000033
    rng = np.random.default_rng(1)
    for size in [1 << 10, 1 << 16]:
        batch = rng.integers(1 << 18, 1 << 21, size=size, dtype=np.int64)
        as_list = batch.tolist()

        for kernel in [semiprime_hits, gcd_hits]:
            result = benchmark(kernel, n, batch, iterations=5, operations=size)
            result.name = f"{kernel.__name__} NumPy ({size})"
            print(result)

            result = benchmark(kernel, n, as_list, iterations=3, operations=size)
            result.name = f"{kernel.__name__} Python ({size})"
            print(result)
        print()


# ============================================================================
# 5. PERIOD ESTIMATION BENCHMARKS
# ============================================================================

def _period_attempts(n: int, attempts: int, rng: np.random.Generator) -> int:
    qubits = qubit_count(n)
    hits = 0
    for base in rng.integers(2, min(n, 1 << 62), size=attempts).tolist():
        if estimate_period_and_factor(base, n, qubits, rng) is not None:
            hits += 1
    return hits


def benchmark_period_estimation():
    """Monte-Carlo period estimation rounds per second and hit rate."""
    _header("PERIOD ESTIMATION BENCHMARKS")

    attempts = 2000
    for n, description in [(15, "15 = 3 * 5"), (3233, "3233 = 53 * 61"), (1000003 * 1000033, "40-bit semiprime")]:
        rng = np.random.default_rng(2)
        result = benchmark(_period_attempts, n, attempts, rng, iterations=3, operations=attempts)
        result.name = description
        print(result)
        hits = _period_attempts(n, attempts, np.random.default_rng(3))
        print(f"  → Hit rate: {hits / attempts:.4%}")


# ============================================================================
# 6. END-TO-END SEARCH BENCHMARKS
# ============================================================================

def _search(n: int, config: SearchConfig):
    return SearchCoordinator(n, config).run()


def benchmark_search():
    """Complete searches with growing targets and worker counts."""
    _header("END-TO-END SEARCH BENCHMARKS")

    test_cases = [
        (3233, "12-bit semiprime (53 * 61)"),
        (1000003 * 1000033, "40-bit semiprime"),
        (10000019 * 10000079, "47-bit semiprime"),
    ]

    for n, description in test_cases:
        clear_caches()
        result = benchmark(_search, n, SearchConfig(cpu_count=1, seed=4), iterations=3)
        result.name = description
        print(result)

    print("\n[Worker Scaling]")
    n = 10000019 * 10000079
    for workers in [1, 2, 4, 8]:
        result = benchmark(_search, n, SearchConfig(cpu_count=workers, seed=5), iterations=3)
        result.name = f"47-bit semiprime, {workers} workers"
        print(result)


# ============================================================================
# MAIN BENCHMARK SUITE
# ============================================================================

def run_all_benchmarks():
    """Run all benchmarks."""
    print("\n")
    print("╔" + "="*98 + "╗")
    print("║" + " "*25 + "RANDOMIZED FACTOR SEARCH BENCHMARK SUITE" + " "*33 + "║")
    print("║" + f" NumPy {np.__version__:<91}" + "║")
    print("╚" + "="*98 + "╝")

    try:
        benchmark_prime_generation()
        benchmark_wheel_tables()
        benchmark_sampling()
        benchmark_candidate_tests()
        benchmark_period_estimation()
        benchmark_search()

        print("\n" + "="*100)
        print("BENCHMARK COMPLETE")
        print("="*100 + "\n")

    except KeyboardInterrupt:
        print("\nBenchmark interrupted by user")
        sys.exit(1)


if __name__ == "__main__":
    run_all_benchmarks()
