"""
Tests for the vectorized batch kernels.

Tests verify:
1. Correctness: vectorized results match the Python-int paths
2. Uniformity bounds: draws never leave [0, limit]
3. Edge cases: single-value ranges, ranges wider than 63 bits
"""

import math

import numpy as np
import pytest

from batch_operations import (
    build_wheel_residues,
    compose_uniform,
    draw_uniform_batch,
    fits_int64,
    gcd_hits,
    semiprime_hits,
    sieve_primes,
    wheel_values,
)


# ============================================================================
# PART 1: SIEVE AND WHEEL TABLE TESTS
# ============================================================================

class TestSieve:
    """Test the NumPy sieve of Eratosthenes."""

    def test_small_bounds(self):
        assert sieve_primes(1).tolist() == []
        assert sieve_primes(2).tolist() == [2]
        assert sieve_primes(30).tolist() == [2, 3, 5, 7, 11, 13, 17, 19, 23, 29]

    def test_count(self):
        # pi(10^5) = 9592
        assert len(sieve_primes(100000)) == 9592


class TestWheelResidues:
    """Test the residue table built for a wheel."""

    @pytest.mark.parametrize("primes", [[2], [2, 3], [2, 3, 5], [2, 3, 5, 7], [2, 3, 5, 7, 11, 13]])
    def test_matches_brute_force(self, primes):
        modulus = math.prod(primes)
        expected = [r for r in range(modulus) if all(r % p for p in primes)]
        assert build_wheel_residues(primes).tolist() == expected

    def test_totient(self):
        residues = build_wheel_residues([2, 3, 5, 7, 11, 13, 17])
        assert len(residues) == 1 * 2 * 4 * 6 * 10 * 12 * 16
        assert residues[0] == 1
        assert residues[-1] == 510509


# ============================================================================
# PART 2: UNIFORM DRAW TESTS
# ============================================================================

class TestUniformDraws:
    """Test single-word and multi-chunk uniform draws."""

    def test_compose_within_limit(self):
        rng = np.random.default_rng(1)
        for limit in [0, 1, 7, 2**32 - 1, 2**32, 2**64 + 12345, 3**90]:
            for _ in range(200):
                value = compose_uniform(rng, limit)
                assert 0 <= value <= limit

    def test_compose_covers_small_range(self):
        rng = np.random.default_rng(2)
        seen = {compose_uniform(rng, 5) for _ in range(500)}
        assert seen == {0, 1, 2, 3, 4, 5}

    def test_compose_uses_high_chunks(self):
        """Wide draws reach the upper half of the range."""
        rng = np.random.default_rng(3)
        limit = 2**100
        values = [compose_uniform(rng, limit) for _ in range(200)]
        assert any(v > limit // 2 for v in values)
        assert any(v < limit // 2 for v in values)

    def test_compose_negative_limit(self):
        with pytest.raises(ValueError):
            compose_uniform(np.random.default_rng(), -1)

    def test_batch_small_is_array(self):
        rng = np.random.default_rng(4)
        batch = draw_uniform_batch(rng, 1000, 4096)
        assert isinstance(batch, np.ndarray)
        assert batch.dtype == np.int64
        assert batch.min() >= 0 and batch.max() <= 1000

    def test_batch_wide_is_list(self):
        rng = np.random.default_rng(5)
        limit = 2**80 + 17
        batch = draw_uniform_batch(rng, limit, 1000)
        assert isinstance(batch, list)
        assert len(batch) == 1000
        assert all(0 <= v <= limit for v in batch)
        assert max(batch) > 2**79

    def test_batch_reproducible(self):
        a = draw_uniform_batch(np.random.default_rng(6), 2**70, 50)
        b = draw_uniform_batch(np.random.default_rng(6), 2**70, 50)
        assert a == b


# ============================================================================
# PART 3: WHEEL MAPPING TESTS
# ============================================================================

class TestWheelValues:
    """Vectorized and Python-int wheel mapping agree."""

    def test_array_matches_list(self):
        residues = build_wheel_residues([2, 3, 5, 7])
        indices = np.arange(0, 1000, dtype=np.int64)
        vectorized = wheel_values(indices, 210 * 5, 210, residues).tolist()
        scalar = wheel_values(indices.tolist(), 210 * 5, 210, residues)
        assert vectorized == scalar

    def test_enumerates_coprimes_in_order(self):
        residues = build_wheel_residues([2, 3, 5])
        values = wheel_values(list(range(16)), 0, 30, residues)
        assert values == [1, 7, 11, 13, 17, 19, 23, 29, 31, 37, 41, 43, 47, 49, 53, 59]

    def test_wide_values(self):
        residues = build_wheel_residues([2, 3])
        base = 6 * 2**80
        assert wheel_values([0, 1, 2], base, 6, residues) == [base + 1, base + 5, base + 7]


# ============================================================================
# PART 4: BATCHED TEST KERNELS
# ============================================================================

class TestBatchedTests:
    """Modulus and GCD kernels agree across both paths."""

    def test_semiprime_hits(self):
        n = 53 * 61
        candidates = np.array([17, 53, 59, 61, 67], dtype=np.int64)
        assert semiprime_hits(n, candidates) == [1, 3]
        assert semiprime_hits(n, candidates.tolist()) == [1, 3]

    def test_semiprime_hits_wide_target(self):
        p, q = 2**61 - 1, 2**89 - 1
        candidates = [3, 2**61 - 1, 5]
        assert not fits_int64(p * q)
        assert semiprime_hits(p * q, candidates) == [1]
        assert semiprime_hits(p * q, np.array(candidates, dtype=np.int64)) == [1]

    def test_gcd_hits(self):
        n = 3 * 53 * 61
        candidates = np.array([7, 106, 11, 183, 13], dtype=np.int64)
        assert gcd_hits(n, candidates) == [1, 3]
        assert gcd_hits(n, candidates.tolist()) == [1, 3]

    def test_no_hits(self):
        assert semiprime_hits(101 * 103, np.arange(3, 100, 2, dtype=np.int64)) == []
        assert gcd_hits(101 * 103, list(range(3, 100, 2))) == []
