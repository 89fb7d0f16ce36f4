"""
Prime generation by wheel-optimized trial division.

Trial division is the exact inverse of the sieve of Eratosthenes: instead of
crossing off multiples in a boolean array of size n, every candidate is
divided by the primes already known, up to its square root. This keeps the
working memory at O(log n) beyond the output list, which is what makes it
usable as a pre-filter for very large search bounds.

Multiples of 2, 3 and 5 are never generated: an index space compressed by
removing multiples of 2 and 3 is walked in strides of 10, skipping the two
offsets of every stride that land on multiples of 5.

CACHING:
- trial_division() and is_prime() are memoized with lru_cache
- clear_caches() resets both between independent runs
"""
import sys
from functools import lru_cache

_SEED_PRIMES = (2, 3, 5)

# Offsets inside one stride of 10 compressed indices (30 integers).
# Offsets 0 and 7 map onto 30k + 5 and 30k + 25.
_STRIDE_OFFSETS = (1, 2, 3, 4, 5, 6, 8, 9)
_STRIDE = 10


def isqrt(n: int) -> int:
    """
    Integer square root by binary search.

    Returns the largest r with r * r <= n.
    """
    if n < 0:
        raise ValueError("isqrt() argument must be non-negative")
    if n < 2:
        return n

    start, end, ans = 1, n >> 1, 0
    while start <= end:
        mid = (start + end) >> 1
        sqr = mid * mid
        if sqr == n:
            return mid
        if sqr < n:
            # floor: remember the last mid below n
            start = mid + 1
            ans = mid
        else:
            end = mid - 1
    return ans


def _forward(i: int) -> int:
    """Map a compressed index to the i-th integer coprime to 6."""
    i += i >> 1
    return (i << 1) - 1


def _is_known_multiple(p: int, known_primes: list[int]) -> bool:
    root = isqrt(p)
    # 2, 3 and 5 are excluded by the wheel already
    for i in range(3, len(known_primes)):
        q = known_primes[i]
        if q > root:
            return False
        if p % q == 0:
            return True
    return False


@lru_cache(maxsize=32)
def trial_division(n: int) -> tuple[int, ...]:
    """
    Generate every prime <= n in ascending order.

    Args:
        n: Inclusive upper bound

    Returns:
        Tuple of primes (memoized, so callers must not rely on mutation)
    """
    if n < 2:
        return ()
    if n < 3:
        return _SEED_PRIMES[:1]
    if n < 5:
        return _SEED_PRIMES[:2]
    if n < 7:
        return _SEED_PRIMES

    known_primes: list[int] = list(_SEED_PRIMES)
    o = 2
    while True:
        for offset in _STRIDE_OFFSETS:
            p = _forward(o + offset)
            if p > n:
                return tuple(known_primes)
            if not _is_known_multiple(p, known_primes):
                known_primes.append(p)
        o += _STRIDE


# Miller–Rabin primality test (memoized)
@lru_cache(maxsize=128)
def is_prime(n: int, bases: tuple[int, ...] = (2, 325, 9375, 28178, 450775, 9780504, 1795265022)) -> bool:
    """Deterministic below 2^64, strong probable-prime test above."""
    if n < 2:
        return False
    for p in (2, 3, 5, 7, 11, 13, 17, 19, 23):
        if n == p:
            return True
        if n % p == 0:
            return False

    # write n-1 as d * 2^s
    d: int = n - 1
    s: int = 0
    while (d & 1) == 0:
        d >>= 1
        s += 1

    def check(a):
        x: int = pow(a, d, n)
        if x == 1 or x == n - 1:
            return True
        for _ in range(s - 1):
            x = pow(x, 2, n)
            if x == n - 1:
                return True
        return False

    for a in bases:
        if a % n == 0:
            continue
        if not check(a):
            return False
    return True


def next_prime(n: int) -> int:
    """Smallest prime strictly greater than n."""
    if n < 2:
        return 2
    candidate = n + 1 if n % 2 == 0 else n + 2
    while not is_prime(candidate):
        candidate += 2
    return candidate


def clear_caches():
    """Clear all memoization caches. Useful between independent runs."""
    trial_division.cache_clear()
    is_prime.cache_clear()


def _prompt_bound() -> int:
    while True:
        raw = input("Primes up to number: ")
        try:
            return int(raw.strip())
        except ValueError:
            print("Invalid number!")


def main(argv: list[str] | None = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    n = None
    if argv:
        try:
            n = int(argv[0])
        except ValueError:
            print("Invalid number!")
    if n is None:
        n = _prompt_bound()

    print(f"Following are the prime numbers smaller than or equal to {n}:")
    print(" ".join(str(p) for p in trial_division(n)))
    return 0


if __name__ == "__main__":
    sys.exit(main())
