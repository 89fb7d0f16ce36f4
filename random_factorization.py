"""
Randomized concurrent factor search.

Instead of walking a deterministic algorithm to completion, many workers draw
random candidate bases from disjoint slices of a search space and race to the
first nontrivial factor. Any single draw succeeds with low probability, but
draws are independent, so throughput scales with the number of workers and
nodes without any communication besides one termination flag.

PIPELINE:
1. Trial division pre-filter with every prime up to a bit-length calibrated
   level (prime_generator.trial_division)
2. Partitioning: the candidate interval is corrected for wheel density and
   split across nodes, then across worker threads
3. Sampling: uniform draws mapped onto the wheel, so every candidate is
   coprime to the small wheel primes without rejection
4. Testing, by mode:
   - semiprime: N % candidate == 0
   - general:   gcd(N, candidate) != 1
   - period:    gcd test, then a Monte-Carlo period estimate that replaces
                the measurement of quantum period finding with a random guess
5. Termination: the first worker to succeed sets a shared threading.Event;
   every other worker notices it at its next batch boundary

Numbers of any size are plain Python ints. Batches whose values fit in 63
bits are tested with NumPy (see batch_operations).

CONCURRENCY:
- One worker thread per logical CPU assigned to this node
- The only shared mutable state is the termination Event
- The prime list and wheel tables are read-only after construction
"""
import argparse
import dataclasses
import logging
import math
import sys
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from multiprocessing import cpu_count
from typing import Optional

import numpy as np

from batch_operations import (
    Batch,
    build_wheel_residues,
    compose_uniform,
    draw_uniform_batch,
    fits_int64,
    gcd_hits,
    semiprime_hits,
    wheel_values,
)
from prime_generator import clear_caches as clear_prime_caches
from prime_generator import is_prime, isqrt, next_prime, trial_division

logger = logging.getLogger(__name__)

# Exponential model of the trial division level beyond the step table
_TD_INTERCEPT = 1.69
_TD_SLOPE = 0.0971
_TD_STEPS = ((58, 59), (60, 191), (62, 193), (64, 199), (66, 211), (68, 229), (70, 233))
# Trial division never goes past the 1000th prime
_MAX_TRIAL_DIVISION_LEVEL = 7919

# Known (min, max) candidate bounds for factors of a given bit width
_SEMIPRIME_BOUNDS = {
    16: (16411, 131071),
    28: (67108879, 536870909),
    32: (1073741827, 8589934583),
}

_DEFAULT_WHEEL_LEVEL = 17
_MAX_WHEEL_LEVEL = 19

# Candidates tested between two polls of the termination signal
_SEMIPRIME_BATCH = 1 << 16
_PERIOD_BATCH = 1 << 9


class SearchMode(Enum):
    SEMIPRIME = "semiprime"
    GENERAL = "general"
    PERIOD = "period"


class SearchState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    FOUND = "found"
    EXHAUSTED = "exhausted"


# ============================================================================
# NUMBER THEORY HELPERS
# ============================================================================

def qubit_count(n: int) -> int:
    """Bits needed to represent every value below n (ceil(log2 n))."""
    bits = (n >> 1).bit_length()
    if n & (n - 1):
        bits += 1
    return bits


def pick_trial_division_level(qubits: int, override: int = 0) -> int:
    """
    Largest prime used for trial division and wheel exclusion.

    Larger inputs get a higher cutoff: trial division is cheap relative to
    the random search, and every excluded residue class raises the yield of
    each random draw.
    """
    if override > 0:
        return override
    for max_bits, level in _TD_STEPS:
        if qubits <= max_bits:
            return level
    return int(math.exp(_TD_INTERCEPT + _TD_SLOPE * qubits) + 0.5)


def gcd(a: int, b: int) -> int:
    """Euclid's algorithm; gcd(a, 0) == a."""
    while b:
        a, b = b, a % b
    return a


def int_log(base: int, n: int) -> int:
    """floor(log_base(n)) by repeated division."""
    result = 0
    while n >= base:
        n //= base
        result += 1
    return result


def exclude_multiples(base: int, p: int) -> int:
    """Map base (from 0) onto the base-th positive integer not divisible by p."""
    return base + base // (p - 1) + 1


# ============================================================================
# DATA MODEL
# ============================================================================

@dataclass(frozen=True)
class FactorResult:
    f1: int
    f2: int
    method: str
    elapsed_ms: float = 0.0

    @classmethod
    def from_factor(cls, n: int, factor: int, method: str) -> Optional["FactorResult"]:
        """Build an ordered result, or None when factor is trivial."""
        if factor <= 1 or factor >= n or n % factor:
            return None
        f1, f2 = factor, n // factor
        if f1 > f2:
            f1, f2 = f2, f1
        return cls(f1, f2, method)


class WheelState:
    """
    Residue classes left after removing multiples of the wheel primes.

    Values coprime to M (the product of the wheel primes) are enumerated in
    order by an index k: value(k) = (k // phi) * M + residues[k % phi].
    """

    def __init__(self, primes: tuple[int, ...]):
        if not primes or primes[0] != 2:
            raise ValueError("wheel must start at 2")
        self.primes = tuple(primes)
        self.modulus = math.prod(self.primes)
        self.residues = build_wheel_residues(list(self.primes))
        self.totient = len(self.residues)

    def count_below(self, x: int) -> int:
        """Number of wheel values in [0, x)."""
        block, rem = divmod(x, self.modulus)
        return block * self.totient + int(np.searchsorted(self.residues, rem))

    def value_at(self, k: int) -> int:
        block, slot = divmod(k, self.totient)
        return block * self.modulus + int(self.residues[slot])

    def __repr__(self):
        return f"WheelState(primes={self.primes}, modulus={self.modulus}, totient={self.totient})"


@lru_cache(maxsize=8)
def wheel_state(level: int) -> WheelState:
    """Wheel over every prime <= level (memoized, shared read-only)."""
    return WheelState(trial_division(level))


@dataclass(frozen=True)
class SearchRange:
    """Half-open interval [min_base, max_base) owned by one worker."""
    min_base: int
    max_base: int
    node_id: int
    cpu_id: int
    aligned_min: int
    index_offset: int
    width: int


@dataclass
class SearchConfig:
    mode: SearchMode = SearchMode.SEMIPRIME
    node_count: int = 1
    node_id: int = 0
    cpu_count: Optional[int] = None
    trial_division_level: int = 0
    wheel_level: int = _DEFAULT_WHEEL_LEVEL
    batch_size: Optional[int] = None
    max_batches: Optional[int] = None
    seed: Optional[int] = None

    def __post_init__(self):
        self.mode = SearchMode(self.mode)
        if self.node_count < 1:
            raise ValueError("node_count must be >= 1")
        if not 0 <= self.node_id < self.node_count:
            raise ValueError(f"node_id must be in [0, {self.node_count})")
        if self.cpu_count is not None and self.cpu_count < 1:
            raise ValueError("cpu_count must be >= 1")
        if not 2 <= self.wheel_level <= _MAX_WHEEL_LEVEL:
            raise ValueError(f"wheel_level must be in [2, {_MAX_WHEEL_LEVEL}]")
        if self.batch_size is not None and self.batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        if self.max_batches is not None and self.max_batches < 1:
            raise ValueError("max_batches must be >= 1")

    @property
    def workers(self) -> int:
        return self.cpu_count or cpu_count()

    @property
    def batch(self) -> int:
        if self.batch_size is not None:
            return self.batch_size
        return _PERIOD_BATCH if self.mode is SearchMode.PERIOD else _SEMIPRIME_BATCH


@dataclass
class WorkerReport:
    node_id: int
    cpu_id: int
    candidates_tested: int = 0
    batches: int = 0
    result: Optional[FactorResult] = None


# ============================================================================
# RANGE PARTITIONING
# ============================================================================

def full_base_range(n: int, trial_division_level: int,
                    mode: SearchMode = SearchMode.SEMIPRIME) -> tuple[int, int]:
    """Inclusive [min, max] interval of candidate bases for the whole search."""
    if mode is SearchMode.SEMIPRIME:
        prime_bits = (qubit_count(n) + 1) >> 1
        if prime_bits in _SEMIPRIME_BOUNDS:
            return _SEMIPRIME_BOUNDS[prime_bits]
        return (1 << max(prime_bits - 2, 0)) | 1, (1 << (prime_bits + 1)) - 1

    # Potential factors start right after the last trial division prime
    first = next_prime(trial_division_level)
    if mode is SearchMode.PERIOD:
        return first, n - 2
    return first, n // first


def _make_range(first: int, last: int, node_id: int, cpu_id: int, wheel: WheelState) -> SearchRange:
    # Lower bound aligned down to a multiple of every wheel prime
    block = first // wheel.totient
    min_base = wheel.value_at(first)
    max_base = wheel.value_at(last - 1) + 1 if last > first else min_base
    return SearchRange(
        min_base=min_base,
        max_base=max_base,
        node_id=node_id,
        cpu_id=cpu_id,
        aligned_min=block * wheel.modulus,
        index_offset=first - block * wheel.totient,
        width=last - first,
    )


def partition(n: int, trial_division_level: int, node_count: int, node_id: int, cpu_count: int,
              mode: SearchMode = SearchMode.SEMIPRIME,
              wheel: Optional[WheelState] = None) -> list[SearchRange]:
    """
    Split the candidate space into one SearchRange per CPU of this node.

    The full interval is measured in wheel values (its width is corrected by
    the (p - 1) / p density of every wheel prime), divided evenly across
    nodes and then across CPUs. Widths of all (node, cpu) ranges add up to
    the corrected width exactly; trailing ranges may be empty.

    Args:
        n: Integer to factor
        trial_division_level: Largest trial division prime
        node_count: Number of independent nodes sharing the work
        node_id: This node, in [0, node_count)
        cpu_count: Worker threads on this node
        mode: Search mode, which selects the candidate interval
        wheel: Wheel to correct for (defaults to the primes <= level, within [2, 17])

    Returns:
        cpu_count SearchRanges in ascending order
    """
    if node_count < 1 or cpu_count < 1:
        raise ValueError("node_count and cpu_count must be >= 1")
    if not 0 <= node_id < node_count:
        raise ValueError(f"node_id must be in [0, {node_count})")
    if wheel is None:
        wheel = wheel_state(max(min(trial_division_level, _DEFAULT_WHEEL_LEVEL), 2))

    full_min, full_max = full_base_range(n, trial_division_level, mode)
    first = wheel.count_below(full_min)
    last = max(wheel.count_below(full_max + 1), first)

    node_width = -(-(last - first) // node_count)
    node_first = min(first + node_width * node_id, last)
    node_last = min(node_first + node_width, last)

    thread_width = -(-(node_last - node_first) // cpu_count)
    ranges = []
    for cpu in range(cpu_count):
        thread_first = min(node_first + thread_width * cpu, node_last)
        thread_last = min(thread_first + thread_width, node_last)
        ranges.append(_make_range(thread_first, thread_last, node_id, cpu, wheel))
    return ranges


# ============================================================================
# CANDIDATE SAMPLING
# ============================================================================

class CandidateSampler:
    """Uniform candidate bases inside one SearchRange, all coprime to the wheel."""

    def __init__(self, search_range: SearchRange, wheel: WheelState, rng: np.random.Generator):
        if search_range.width < 1:
            raise ValueError("cannot sample from an empty range")
        self.search_range = search_range
        self.wheel = wheel
        self.rng = rng
        self._limit = search_range.width - 1
        self._vectorized = (fits_int64(search_range.max_base)
                            and fits_int64(search_range.index_offset + search_range.width))

    def sample(self) -> int:
        k = self.search_range.index_offset + compose_uniform(self.rng, self._limit)
        return self.search_range.aligned_min + self.wheel.value_at(k)

    def sample_batch(self, size: int) -> Batch:
        """`size` candidates: an int64 array when they fit, else a list of ints."""
        raw = draw_uniform_batch(self.rng, self._limit, size)
        offset = self.search_range.index_offset
        if self._vectorized:
            indices = raw + np.int64(offset)
        else:
            indices = [offset + int(v) for v in raw]
        return wheel_values(indices, self.search_range.aligned_min, self.wheel.modulus, self.wheel.residues)


# ============================================================================
# CANDIDATE TESTS
# ============================================================================

def check_candidate(candidate: int, n: int, semiprime: bool = True) -> Optional[FactorResult]:
    """Direct modulus test (semiprime) or GCD test (general) of one base."""
    if semiprime:
        if candidate > 1 and n % candidate == 0:
            return FactorResult.from_factor(n, candidate, "base divides target")
        return None
    g = gcd(n, candidate)
    if g != 1:
        return FactorResult.from_factor(n, g, "base has common factor")
    return None


def continued_fraction(numerator: int, denominator: int, limit: int) -> Optional[tuple[int, int]]:
    """
    Best rational approximation of denominator / numerator with a
    denominator below limit.

    Expands numerator / denominator = [a0; a1, a2, ...] and keeps the
    convergents h_i / k_i incrementally (h_i = a_i * h_{i-1} + h_{i-2}).
    The last convergent with h_i < limit is returned flipped, as (k_i, h_i).

    Returns:
        (approx_numerator, approx_denominator), or None if the first
        convergent already reaches limit
    """
    h_prev, h = 0, 1
    k_prev, k = 1, 0
    estimate = None
    while denominator:
        int_part = numerator // denominator
        numerator, denominator = denominator, numerator - int_part * denominator
        h_prev, h = h, int_part * h + h_prev
        k_prev, k = k, int_part * k + k_prev
        if h >= limit:
            break
        estimate = (k, h)
    return estimate


def estimate_period_and_factor(base: int, n: int, qubits: int,
                               rng: np.random.Generator) -> Optional[FactorResult]:
    """
    One Monte-Carlo round of Shor-style classical post-processing.

    Quantum period finding would measure y close to c * 2^q / r for the
    period r of base^x mod n. Here y comes from random guesses of c and r,
    and the continued fraction expansion recovers a period candidate from it.
    Most rounds miss; a miss returns None.
    """
    if base < 2 or base >= n:
        return None

    qubit_power = 1 << qubits
    # The period of base^x mod n is at least log_base(n)
    min_r = int_log(base, n)
    span = qubit_power - min_r
    if span < 1:
        return None

    r_guess = min_r + compose_uniform(rng, span - 1)
    c = 1 + compose_uniform(rng, span - 1)
    y = (c * qubit_power) // r_guess
    if y == 0:
        return None

    estimate = continued_fraction(qubit_power, y, n)
    r = y if estimate is None else estimate[1]
    if r & 1:
        r <<= 1
    if r == 0:
        return None

    apowrhalf = pow(base, r >> 1, n)
    f1 = gcd(apowrhalf + 1, n)
    f2 = gcd((apowrhalf - 1) % n, n)
    product = f1 * f2
    while product != n and product > 1 and n % product == 0:
        f1, f2 = product, n // product
        product = f1 * f2

    if product == n and f1 > 1 and f2 > 1:
        return FactorResult.from_factor(n, f1, "period estimation")
    return None


# ============================================================================
# SEARCH COORDINATION
# ============================================================================

class SearchCoordinator:
    """
    Owns one search: pre-filter, partition, worker threads and the shared
    termination signal.
    """

    def __init__(self, n: int, config: Optional[SearchConfig] = None):
        if isinstance(n, bool) or not isinstance(n, int):
            raise ValueError(f"target must be an int, got {type(n).__name__}")
        if n < 2:
            raise ValueError("target must be >= 2")

        self.n = n
        self.config = config or SearchConfig()
        self.state = SearchState.IDLE
        self.result: Optional[FactorResult] = None
        self.reports: list[WorkerReport] = []
        self.signal = threading.Event()

        self.qubits = qubit_count(n)
        level = pick_trial_division_level(self.qubits, self.config.trial_division_level)
        # Trial division beyond sqrt(n) would already be complete
        self.trial_division_level = max(min(level, _MAX_TRIAL_DIVISION_LEVEL, isqrt(n)), 2)
        self.primes = trial_division(self.trial_division_level)
        self.wheel = wheel_state(min(self.trial_division_level, self.config.wheel_level))

    def run(self) -> Optional[FactorResult]:
        """Run the search to completion and return the first factor pair found."""
        if self.state is not SearchState.IDLE:
            raise RuntimeError("a search can only run once")
        start = time.perf_counter()
        self.state = SearchState.RUNNING
        logger.info("Factoring %d (%d bits), trial division level %d, %r",
                    self.n, self.qubits, self.trial_division_level, self.wheel)

        result = None
        if is_prime(self.n):
            logger.info("%d is prime, nothing to search", self.n)
        else:
            result = self._trial_divide()
            if result is None:
                result = self._race()

        if result is None:
            self.state = SearchState.EXHAUSTED
            return None

        self.result = dataclasses.replace(result, elapsed_ms=(time.perf_counter() - start) * 1000.0)
        self.state = SearchState.FOUND
        logger.info("Found %d * %d = %d by %s", self.result.f1, self.result.f2, self.n, self.result.method)
        return self.result

    def _trial_divide(self) -> Optional[FactorResult]:
        for p in self.primes:
            if self.n % p == 0:
                return FactorResult.from_factor(self.n, p, "trial division")
        return None

    def _race(self) -> Optional[FactorResult]:
        config = self.config
        ranges = partition(self.n, self.trial_division_level, config.node_count, config.node_id,
                           config.workers, config.mode, self.wheel)
        ranges = [r for r in ranges if r.width > 0]
        if not ranges:
            logger.info("Node %d has no candidates to test", config.node_id)
            return None

        seeds = np.random.SeedSequence(config.seed).spawn(len(ranges))
        result = None
        with ThreadPoolExecutor(max_workers=len(ranges), thread_name_prefix="factor-worker") as executor:
            futures = [executor.submit(self._work, r, np.random.default_rng(s))
                       for r, s in zip(ranges, seeds)]
            try:
                for future in as_completed(futures):
                    report = future.result()
                    self.reports.append(report)
                    if result is None and report.result is not None:
                        result = report.result
            except BaseException:
                # Let the remaining workers drain before the executor joins them
                self.signal.set()
                raise
        return result

    def _batch_budget(self, search_range: SearchRange) -> Optional[int]:
        if self.config.max_batches is not None:
            return self.config.max_batches
        if self.config.mode is SearchMode.SEMIPRIME:
            return None
        # Bounded modes draw as many candidates as the range holds
        return -(-search_range.width // self.config.batch)

    def _work(self, search_range: SearchRange, rng: np.random.Generator) -> WorkerReport:
        report = WorkerReport(search_range.node_id, search_range.cpu_id)
        sampler = CandidateSampler(search_range, self.wheel, rng)
        budget = self._batch_budget(search_range)
        logger.debug("Worker %d.%d: [%d, %d), %d candidates, budget %s",
                     search_range.node_id, search_range.cpu_id, search_range.min_base,
                     search_range.max_base, search_range.width, budget)

        while not self.signal.is_set():
            if budget is not None and report.batches >= budget:
                logger.debug("Worker %d.%d exhausted its range", search_range.node_id, search_range.cpu_id)
                break
            report.batches += 1
            result = self._test_batch(sampler.sample_batch(self.config.batch), rng, report)
            if result is not None:
                self.signal.set()
                report.result = result
                break
        return report

    def _test_batch(self, candidates: Batch, rng: np.random.Generator,
                    report: WorkerReport) -> Optional[FactorResult]:
        mode = self.config.mode
        if mode is SearchMode.PERIOD:
            for candidate in candidates:
                report.candidates_tested += 1
                candidate = int(candidate)
                result = (check_candidate(candidate, self.n, semiprime=False)
                          or estimate_period_and_factor(candidate, self.n, self.qubits, rng))
                if result is not None:
                    return result
            return None

        semiprime = mode is SearchMode.SEMIPRIME
        hits = semiprime_hits(self.n, candidates) if semiprime else gcd_hits(self.n, candidates)
        for i in hits:
            result = check_candidate(int(candidates[i]), self.n, semiprime)
            if result is not None:
                report.candidates_tested += i + 1
                return result
        report.candidates_tested += len(candidates)
        return None


def factor_search(n: int, config: Optional[SearchConfig] = None, **overrides) -> Optional[FactorResult]:
    """
    Search for one nontrivial factor pair of n.

    Args:
        n: Integer to factor (>= 2)
        config: Full configuration; keyword overrides build one otherwise

    Returns:
        FactorResult with f1 * f2 == n, or None when n is prime or a
        bounded search ran out of candidates
    """
    if config is None:
        config = SearchConfig(**overrides)
    elif overrides:
        config = dataclasses.replace(config, **overrides)
    return SearchCoordinator(n, config).run()


def clear_caches():
    """Clear memoized wheels and prime tables."""
    wheel_state.cache_clear()
    clear_prime_caches()


# ============================================================================
# COMMAND LINE
# ============================================================================

def _prompt_int(prompt: str, error: str, minimum: int, maximum: Optional[int] = None) -> int:
    while True:
        raw = input(prompt)
        try:
            value = int(raw.strip())
        except ValueError:
            print(error)
            continue
        if value < minimum or (maximum is not None and value > maximum):
            print(error)
            continue
        return value


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Randomized concurrent integer factor search.")
    p.add_argument("n", nargs="?", type=int, help="Integer to factor (prompted if omitted).")
    p.add_argument("--nodes", type=int, help="Number of independent nodes sharing the search.")
    p.add_argument("--node-id", type=int, help="This node's id, in [0, nodes).")
    p.add_argument("--mode", choices=[m.value for m in SearchMode], default=SearchMode.SEMIPRIME.value,
                   help="semiprime: modulus test; general: GCD test; period: GCD test plus period estimation.")
    p.add_argument("--trial-division-level", type=int, default=0,
                   help="Override the automatic trial division level (0 = automatic).")
    p.add_argument("--wheel-level", type=int, default=_DEFAULT_WHEEL_LEVEL,
                   help=f"Largest wheel prime (default {_DEFAULT_WHEEL_LEVEL}).")
    p.add_argument("--cpus", type=int, help="Worker threads on this node (default: all CPUs).")
    p.add_argument("--batch-size", type=int, help="Candidates tested between termination checks.")
    p.add_argument("--seed", type=int, help="Seed for reproducible runs.")
    p.add_argument("--verbose", action="store_true", help="Log search progress.")
    return p


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        format="%(asctime)s - %(threadName)s - %(levelname)s - %(message)s",
        level=logging.DEBUG if args.verbose else logging.WARNING,
    )

    n = args.n
    if n is None or n < 2:
        n = _prompt_int("Number to factor: ", "Invalid number to factor!", 2)
    print(f"Bits to factor: {qubit_count(n)}")

    node_count = args.nodes
    if node_count is None or node_count < 1:
        print("You can split this work across nodes, without networking!")
        node_count = _prompt_int("Number of nodes (>=1): ", "Invalid node count choice!", 1)
    node_id = args.node_id
    if node_count == 1 and node_id is None:
        node_id = 0
    elif node_id is None or not 0 <= node_id < node_count:
        node_id = _prompt_int(f"Which node is this? (0-{node_count - 1}):", "Invalid node ID choice!",
                              0, node_count - 1)

    try:
        config = SearchConfig(
            mode=SearchMode(args.mode),
            node_count=node_count,
            node_id=node_id,
            cpu_count=args.cpus,
            trial_division_level=args.trial_division_level,
            wheel_level=args.wheel_level,
            batch_size=args.batch_size,
            seed=args.seed,
        )
    except ValueError as e:
        parser.error(str(e))
    result = SearchCoordinator(n, config).run()
    if result is None:
        print("No factor found.")
    else:
        print(f"Found {result.f1} * {result.f2} = {n}")
        print(f"(Time elapsed: {result.elapsed_ms:.3f}ms)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
