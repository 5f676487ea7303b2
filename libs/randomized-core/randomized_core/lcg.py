import os
import random

# ---------------------------------------------------------------------------- #
#                          Linear Congruential Constants                       #
# ---------------------------------------------------------------------------- #

LCG_MULTIPLIER = 0x5DEECE66D
LCG_ADDEND = 0xB
LCG_STATE_BITS = 48
LCG_MASK = (1 << LCG_STATE_BITS) - 1

# bumped whenever the draw sequence of a fixed seed changes
LCG_ALGORITHM_VERSION = 1

DOUBLE_UNIT = 1.0 / (1 << 53)


# ---------------------------------------------------------------------------- #


def to_signed32(value: int) -> int:
    value &= 0xFFFFFFFF
    if value & 0x80000000:
        value -= 0x100000000
    return value


def to_signed64(value: int) -> int:
    value &= 0xFFFFFFFFFFFFFFFF
    if value & 0x8000000000000000:
        value -= 0x10000000000000000
    return value


# ---------------------------------------------------------------------------- #
#                               Random Stream                                  #
# ---------------------------------------------------------------------------- #


class LcgRandom(random.Random):
    """A `random.Random` driven by a 48-bit linear congruential generator.

    For a fixed seed the sequence of draws is identical on every platform and
    every interpreter, unlike the Mersenne Twister behind `random.Random`
    whose seeding of non-integer values changed between versions. The
    `next_*` methods follow the classic 48-bit LCG draw rules (top bits of
    the state, rejection sampling for bounded ints, 53-bit doubles), and all
    the usual `random.Random` helpers (`randint`, `choice`, `shuffle`, ...)
    are driven through `random()` and `getrandbits()`.
    """

    _state: int

    def __init__(self, seed: int | None = None):
        self._state = 0
        super().__init__(seed)

    def seed(self, a=None, version=2):
        if a is None:
            a = int.from_bytes(os.urandom(8), "big", signed=True)
        if not isinstance(a, int) or isinstance(a, bool):
            raise TypeError(f"LcgRandom seed must be an int, got {type(a).__name__}")
        self._state = (a ^ LCG_MULTIPLIER) & LCG_MASK
        self.gauss_next = None

    def getstate(self):
        return (LCG_ALGORITHM_VERSION, self._state, self.gauss_next)

    def setstate(self, state):
        version, lcg_state, gauss_next = state
        if version != LCG_ALGORITHM_VERSION:
            raise ValueError(
                f"state from LCG algorithm version {version} passed to version "
                f"{LCG_ALGORITHM_VERSION}"
            )
        self._state = lcg_state & LCG_MASK
        self.gauss_next = gauss_next

    # ------------------------------ raw draws ------------------------------ #

    def next_bits(self, bits: int) -> int:
        """Advance the state and return its top `bits` bits (1 <= bits <= 32)."""
        if not 1 <= bits <= 32:
            raise ValueError(f"bits must be within [1, 32], got {bits}")
        self._state = (self._state * LCG_MULTIPLIER + LCG_ADDEND) & LCG_MASK
        return self._state >> (LCG_STATE_BITS - bits)

    def next_int(self, bound: int | None = None) -> int:
        """Signed 32-bit draw, or a uniform draw within [0, bound) if bound is given."""
        if bound is None:
            return to_signed32(self.next_bits(32))
        if bound <= 0 or bound > 0x7FFFFFFF:
            raise ValueError(f"bound must be within [1, 2^31 - 1], got {bound}")

        r = self.next_bits(31)
        m = bound - 1
        if bound & m == 0:  # power of two
            return (bound * r) >> 31

        u = r
        r = u % bound
        # reject draws from the incomplete last bucket (int32 overflow in u - r + m)
        while u - r + m >= 1 << 31:
            u = self.next_bits(31)
            r = u % bound
        return r

    def next_long(self) -> int:
        high = to_signed32(self.next_bits(32))
        low = to_signed32(self.next_bits(32))
        return to_signed64((high << 32) + low)

    def next_boolean(self) -> bool:
        return self.next_bits(1) != 0

    def next_double(self) -> float:
        return ((self.next_bits(26) << 27) + self.next_bits(27)) * DOUBLE_UNIT

    # ------------------------ random.Random plumbing ----------------------- #

    def random(self) -> float:
        return self.next_double()

    def getrandbits(self, k: int) -> int:
        if k < 0:
            raise ValueError("number of bits must be non-negative")
        result = 0
        shift = 0
        while k > 0:
            chunk = min(k, 32)
            result |= self.next_bits(chunk) << shift
            shift += chunk
            k -= chunk
        return result

    def random_int_between(self, low: int, high: int) -> int:
        """Inclusive range draw, `low <= n <= high`."""
        if low > high:
            raise ValueError(f"empty range [{low}, {high}]")
        return self.randint(low, high)
