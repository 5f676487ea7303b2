import hashlib
import logging
import os
import re

from randomized_core.errors import ConfigurationError
from randomized_core.lcg import LcgRandom, to_signed64

logger = logging.getLogger("randomized")

SeedValue = int | str

MASK64 = 0xFFFFFFFFFFFFFFFF

# decimal or 0x-prefixed hexadecimal, optional sign, optional `_` digit groups
SEED_PATTERN = re.compile(r"^(?P<sign>[+-]?)(?:0[xX](?P<hex>[0-9a-fA-F_]+)|(?P<dec>[0-9_]+))$")


# ---------------------------------------------------------------------------- #
#                                Seed Parsing                                  #
# ---------------------------------------------------------------------------- #


def parse_seed(value: SeedValue) -> int:
    """Decode a seed given as an int or as a decimal / `0x` hexadecimal string."""
    if isinstance(value, bool):
        raise ConfigurationError(f"malformed seed value {value!r}")
    if isinstance(value, int):
        return value
    if not isinstance(value, str):
        raise ConfigurationError(f"malformed seed value {value!r}")

    matched = SEED_PATTERN.match(value.strip())
    if matched is None:
        raise ConfigurationError(f"malformed seed value {value!r}")
    try:
        if matched.group("hex") is not None:
            seed = int(matched.group("hex"), 16)
        else:
            seed = int(matched.group("dec"), 10)
    except ValueError as err:
        # misplaced `_` separators
        raise ConfigurationError(f"malformed seed value {value!r}") from err
    return -seed if matched.group("sign") == "-" else seed


def format_seed(seed: int) -> str:
    return str(seed)


# ---------------------------------------------------------------------------- #
#                              Seed Controller                                 #
# ---------------------------------------------------------------------------- #


def fresh_seed() -> int:
    """A new signed 64-bit seed from the operating system entropy source."""
    return int.from_bytes(os.urandom(8), "big", signed=True)


def resolve_seed(explicit: SeedValue | None = None) -> int:
    """Return `explicit` unchanged (decoded if it is a string) or a fresh seed.

    A fresh seed has to be reported by the caller, re-supplying it as
    `explicit` reproduces the exact same draws.
    """
    if explicit is not None:
        return parse_seed(explicit)
    seed = fresh_seed()
    logger.debug(f"no explicit seed given, randomized seed is {format_seed(seed)}")
    return seed


def new_stream(seed: SeedValue) -> LcgRandom:
    return LcgRandom(parse_seed(seed))


# ---------------------------------------------------------------------------- #
#                              Seed Derivation                                 #
# ---------------------------------------------------------------------------- #


def mix64(value: int) -> int:
    """MurmurHash3 64-bit finalizer."""
    value &= MASK64
    value ^= value >> 33
    value = (value * 0xFF51AFD7ED558CCD) & MASK64
    value ^= value >> 33
    value = (value * 0xC4CEB9FE1A85EC53) & MASK64
    value ^= value >> 33
    return value


def stable_hash(component: object) -> int:
    digest = hashlib.blake2b(str(component).encode("utf-8"), digest_size=8).digest()
    return int.from_bytes(digest, "big")


def derive_seed(master: SeedValue, *components: object) -> int:
    """Derive a child seed from `master` and the identity of what it seeds.

    The same master and components always give the same child seed, so
    re-supplying a suite seed reproduces every test seed below it.
    """
    value = mix64(parse_seed(master))
    for component in components:
        value = mix64(value ^ stable_hash(component))
    return to_signed64(value)
