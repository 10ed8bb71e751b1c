"""A mining job as announced by a pool through ``mining.notify``."""

from __future__ import annotations

from dataclasses import dataclass, field

MERKLE_BRANCH_SLOTS = 12


@dataclass(frozen=True, repr=False)
class Job:
    """Everything the miner needs to work on one pool job.

    ``extranonce2`` is the extranonce2 size announced by the pool, not the
    value itself.  ``merkle_branch`` always has twelve slots; unused slots
    hold empty bytes.
    """

    job_id: str
    extranonce1: bytes
    extranonce2: int
    prev_block_hash: bytes
    coinb1: bytes
    coinb2: bytes
    merkle_branch: tuple[bytes, ...] = field(
        default_factory=lambda: (b"",) * MERKLE_BRANCH_SLOTS
    )
    version: bytes = b""
    nbits: int = 0
    ntime: bytes = b""

    def __post_init__(self) -> None:
        branch = tuple(bytes(item) for item in self.merkle_branch)
        if len(branch) != MERKLE_BRANCH_SLOTS:
            raise ValueError(
                f"merkle branch must have {MERKLE_BRANCH_SLOTS} slots, got {len(branch)}"
            )
        object.__setattr__(self, "merkle_branch", branch)
        for name in ("extranonce1", "prev_block_hash", "coinb1", "coinb2", "version", "ntime"):
            object.__setattr__(self, name, bytes(getattr(self, name)))

    def __repr__(self) -> str:
        return f"Job {self.job_id}: with prev_block_hash {self.prev_block_hash.hex()} ..."