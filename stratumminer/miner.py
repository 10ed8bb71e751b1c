"""Block header construction and the nonce search."""

from __future__ import annotations

import hashlib
import logging
import string
import time
from collections.abc import Iterable

from .job import Job

log = logging.getLogger(__name__)

DEFAULT_NONCE_LIMIT = 0xFFFFFF

# Padding appended to every header before hashing.
HEADER_PADDING = bytes((0, 0, 0, 128)) + bytes(40) + bytes((128, 2, 0, 0))

_HEX_DIGITS = frozenset(string.hexdigits)


def zero_extranonce2(length: int) -> bytes:
    """Return an extranonce2 of ``length // 2`` zero bytes."""
    return bytes(length // 2)


def double_sha256(data: bytes) -> bytes:
    """Return SHA-256 applied twice to ``data``."""
    return hashlib.sha256(hashlib.sha256(data).digest()).digest()


def le_u32(value: int) -> bytes:
    """Encode an unsigned 32-bit integer as four little-endian bytes."""
    return value.to_bytes(4, "little")


def build_coinbase(coinb1: bytes, coinb2: bytes, extranonce1: bytes, extranonce2: bytes) -> bytes:
    """Hash the coinbase pieces together into the coinbase hash."""
    return double_sha256(bytes(coinb1) + bytes(coinb2) + bytes(extranonce1) + bytes(extranonce2))


def build_root(branches: Iterable[bytes], coinbase: bytes) -> bytes:
    """Fold the non-empty merkle branches into the coinbase hash; return it reversed."""
    root = bytes(coinbase)
    for branch in branches:
        if branch:
            root = double_sha256(root + bytes(branch))
    return root[::-1]


def build_header(
    version: bytes,
    prevhash: bytes,
    merkle_root: bytes,
    ntime: bytes,
    nbits: bytes,
    nonce: int,
) -> bytes:
    """Assemble the padded header that is hashed for a nonce.

    ``version`` is accepted for the full header signature but is not part of
    the hashed bytes.
    """
    return (
        bytes(prevhash)
        + bytes(merkle_root)
        + bytes(ntime)
        + bytes(nbits)
        + le_u32(nonce)
        + HEADER_PADDING
    )


def calc_target(nbits: int) -> bytes:
    """Expand compact ``nbits`` into the target as minimal little-endian bytes."""
    exponent = nbits >> 24
    if exponent < 3:
        raise ValueError(f"nbits exponent {exponent} is below 3")
    target = (nbits & 0x00FFFFFF) << (8 * (exponent - 3))
    return target.to_bytes(max(1, (target.bit_length() + 7) // 8), "little")


def compare_headers(header: bytes, target: bytes) -> bool:
    """Check a hashed header against a target.

    Raises ``ValueError`` when the target is longer than the header and
    ``IndexError`` when the comparison runs past the end of the target.
    """
    diff = len(header) - len(target)
    if diff < 0:
        raise ValueError("target is longer than header")
    if any(header[:diff]):
        return False
    size = len(target)
    if size == 0:
        return True
    for header_byte, target_byte in zip(reversed(header[1:size]), target[1:]):
        if header_byte < target_byte:
            return False
    raise IndexError("comparison ran past the end of the target")


def _check_hex(text: str) -> str:
    digits = text[1:] if text.startswith("+") else text
    if not digits or not set(digits) <= _HEX_DIGITS:
        raise ValueError(f"invalid hex string: {text!r}")
    return digits


def extract_bytes(text: str) -> bytes:
    """Decode pairs of hex digits; a trailing odd digit is ignored."""
    pairs = [text[i:i + 2] for i in range(0, len(text) - 1, 2)]
    return bytes(int(_check_hex(pair), 16) for pair in pairs)


def extract_u32(text: str) -> int:
    """Parse a hex string into an unsigned 32-bit integer."""
    value = int(_check_hex(text), 16)
    if value > 0xFFFFFFFF:
        raise ValueError(f"hex value out of range for u32: {text!r}")
    return value


def mine(
    extranonce1: bytes,
    extranonce2_length: int,
    prevhash: bytes,
    coinb1: bytes,
    coinb2: bytes,
    merkle_branches: Iterable[bytes],
    version: bytes,
    nbits: int,
    ntime: bytes,
    nonce_limit: int = DEFAULT_NONCE_LIMIT,
) -> tuple[int, bytes] | None:
    """Search nonces below ``nonce_limit``; return ``(nonce, extranonce2)`` or None."""
    nbits_bytes = le_u32(nbits)
    extranonce2 = zero_extranonce2(extranonce2_length)
    coinbase = build_coinbase(coinb1, coinb2, extranonce1, extranonce2)
    merkle_root = build_root(merkle_branches, coinbase)
    target = calc_target(nbits)
    begin = time.perf_counter()
    for nonce in range(nonce_limit):
        header = double_sha256(
            build_header(version, prevhash, merkle_root, ntime, nbits_bytes, nonce)
        )
        if compare_headers(header, target):
            log.info("Found valid share, nonce: %d", nonce)
            return nonce, extranonce2
    duration = time.perf_counter() - begin
    if duration > 0:
        log.info("Hashrate was: %sGH/s", nonce_limit / duration / 1e9)
    return None


def start_miner(job: Job, nonce_limit: int = DEFAULT_NONCE_LIMIT) -> tuple[int, bytes] | None:
    """Mine a pool job."""
    return mine(
        job.extranonce1,
        job.extranonce2,
        job.prev_block_hash[::-1],
        job.coinb1,
        job.coinb2,
        job.merkle_branch,
        job.version,
        job.nbits,
        job.ntime,
        nonce_limit,
    )