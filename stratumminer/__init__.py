"""Stratum v1 pool client, block-header hashing helpers and CPU share miner."""

__version__ = "1.1.5"