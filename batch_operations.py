"""
Vectorized batch kernels for the randomized factor search.

This module contains the NumPy operations that keep the per-candidate hot
path out of the Python interpreter whenever a batch fits in machine words.

OPTIMIZATION TARGETS:
1. Wheel residue table: NumPy slicing sieve over one wheel period
2. Uniform draws: one vectorized int64 draw per batch, 32-bit chunk
   composition only for ranges wider than 63 bits
3. Wheel mapping: index -> candidate for a whole batch at once
4. Semiprime modulus test and GCD filter over int64 batches

Every kernel has a Python-int path for values that do not fit in 63 bits.
"""

import math

import numpy as np
from typing import List, Union

_CHUNK_BITS: int = 32
_CHUNK_SPAN: int = 1 << _CHUNK_BITS
_INT64_MAX: int = (1 << 63) - 1

Batch = Union[np.ndarray, List[int]]


def fits_int64(value: int) -> bool:
    """True when value can be held by a signed 64-bit NumPy integer."""
    return -_INT64_MAX <= value <= _INT64_MAX


# ============================================================================
# PART 1: SIEVES AND WHEEL TABLES
# ============================================================================

def sieve_primes(limit: int) -> np.ndarray:
    """
    Vectorized sieve of Eratosthenes.

    Args:
        limit: Inclusive upper bound

    Returns:
        int64 array of every prime <= limit
    """
    if limit < 2:
        return np.zeros(0, dtype=np.int64)

    sieve = np.ones(limit + 1, dtype=np.uint8)
    sieve[0] = sieve[1] = 0
    sieve[4::2] = 0
    for i in range(3, int(np.sqrt(limit)) + 1, 2):
        if sieve[i]:
            sieve[i * i::2 * i] = 0
    return np.nonzero(sieve)[0].astype(np.int64)


def build_wheel_residues(primes: List[int]) -> np.ndarray:
    """
    Residues in [0, M) coprime to every wheel prime, M = product of primes.

    The table is the wheel: the k-th integer coprime to M is
    (k // len(table)) * M + table[k % len(table)].
    """
    modulus = 1
    for p in primes:
        modulus *= p

    mask = np.ones(modulus, dtype=bool)
    for p in primes:
        mask[::p] = False
    return np.nonzero(mask)[0].astype(np.int64)


# ============================================================================
# PART 2: UNIFORM DRAWS
# ============================================================================

def _chunk_layout(limit: int) -> tuple[int, int]:
    chunks = max(1, (limit.bit_length() + _CHUNK_BITS - 1) // _CHUNK_BITS)
    return chunks, limit >> (_CHUNK_BITS * (chunks - 1))


def compose_uniform(rng: np.random.Generator, limit: int) -> int:
    """
    Uniform integer in [0, limit] built from 32-bit draws.

    The most significant chunk is drawn first and bounded by the top word of
    limit; lower chunks span a full word. Values above limit are redrawn,
    which happens with probability below one half.
    """
    if limit < 0:
        raise ValueError("limit must be non-negative")
    chunks, top = _chunk_layout(limit)
    while True:
        value = int(rng.integers(0, top, endpoint=True, dtype=np.uint64))
        for _ in range(chunks - 1):
            value = (value << _CHUNK_BITS) | int(rng.integers(0, _CHUNK_SPAN, dtype=np.uint64))
        if value <= limit:
            return value


def draw_uniform_batch(rng: np.random.Generator, limit: int, size: int) -> Batch:
    """
    Draw `size` independent uniform integers in [0, limit].

    Returns an int64 array when limit fits in 63 bits, otherwise a list of
    Python ints composed chunk by chunk.
    """
    if limit < 0:
        raise ValueError("limit must be non-negative")
    if fits_int64(limit):
        return rng.integers(0, limit, endpoint=True, size=size, dtype=np.int64)

    chunks, top = _chunk_layout(limit)
    top_words = rng.integers(0, top, endpoint=True, size=size, dtype=np.uint64)
    low_words = rng.integers(0, _CHUNK_SPAN, size=(size, chunks - 1), dtype=np.uint64)

    values: List[int] = []
    for top_word, words in zip(top_words.tolist(), low_words.tolist()):
        value = top_word
        for word in words:
            value = (value << _CHUNK_BITS) | word
        if value > limit:
            value = compose_uniform(rng, limit)
        values.append(value)
    return values


# ============================================================================
# PART 3: WHEEL MAPPING
# ============================================================================

def wheel_values(indices: Batch, aligned_min: int, modulus: int, residues: np.ndarray) -> Batch:
    """
    Map wheel indices to candidate bases.

    candidate = aligned_min + (k // phi) * modulus + residues[k % phi]
    """
    phi = len(residues)
    if isinstance(indices, np.ndarray):
        blocks, slots = np.divmod(indices, phi)
        return np.int64(aligned_min) + blocks * np.int64(modulus) + residues[slots]

    values: List[int] = []
    for k in indices:
        block, slot = divmod(k, phi)
        values.append(aligned_min + block * modulus + int(residues[slot]))
    return values


# ============================================================================
# PART 4: BATCHED CANDIDATE TESTS
# ============================================================================

def semiprime_hits(n: int, candidates: Batch) -> List[int]:
    """Positions of candidates that divide n."""
    if isinstance(candidates, np.ndarray) and fits_int64(n):
        return np.flatnonzero(np.int64(n) % candidates == 0).tolist()
    return [i for i, c in enumerate(candidates) if n % int(c) == 0]


def gcd_hits(n: int, candidates: Batch) -> List[int]:
    """Positions of candidates sharing a factor with n."""
    if isinstance(candidates, np.ndarray) and fits_int64(n):
        return np.flatnonzero(np.gcd(candidates, np.int64(n)) != 1).tolist()
    return [i for i, c in enumerate(candidates) if math.gcd(n, int(c)) != 1]


__all__: List[str] = [
    'fits_int64',
    'sieve_primes',
    'build_wheel_residues',
    'compose_uniform',
    'draw_uniform_batch',
    'wheel_values',
    'semiprime_hits',
    'gcd_hits',
]
