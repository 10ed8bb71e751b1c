# stratumminer

A small Stratum v1 mining client. It connects to a mining pool over TCP,
subscribes and authorizes a worker, takes the jobs the pool announces with
`mining.notify`, searches a range of nonces on the CPU with double SHA-256,
and submits any share it finds with `mining.submit`.

It is meant for learning how the Stratum protocol and the block-header
search fit together. A CPU will not earn anything on a real pool.

It needs nothing beyond the Python standard library (Python 3.10 or later).

## Installation

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Command line

```
stratumminer pool.example.com:3333
```

The pool address is required, given as `host:port`. Options:

- `-u`, `--username` – pool account name (default `ITA_Miner`)
- `-w`, `--workername` – worker name (default `worker1`)
- `--nonce-limit` – number of nonces tried per job (default `16777215`)

The worker is announced to the pool as `username.workername`. Each step of
the protocol is logged to standard error. The command exits with status 0
when the pool closes the connection, 1 when it cannot connect, the pool
rejects the worker or sending fails, and 130 when stopped with Ctrl-C.

The same entry point can be run as `python -m stratumminer.cli`.

## Library use

`stratumminer.miner` holds the hashing steps:

- `double_sha256(data)` hashes bytes twice with SHA-256.
- `le_u32(value)` encodes an unsigned 32-bit integer as four little-endian
  bytes; `zero_extranonce2(length)` returns `length // 2` zero bytes.
- `build_coinbase(coinb1, coinb2, extranonce1, extranonce2)` hashes the
  coinbase pieces, and `build_root(branches, coinbase)` folds the non-empty
  merkle branches into it and returns the result byte-reversed.
- `build_header(version, prevhash, merkle_root, ntime, nbits, nonce)`
  assembles the padded bytes that are hashed for each nonce. `version` is
  accepted but not included in those bytes.
- `calc_target(nbits)` expands the compact difficulty into a target as
  little-endian bytes; it raises `ValueError` when the exponent is below 3.
- `compare_headers(header, target)` checks a hash against a target. It
  returns `False` when the bytes by which the header is longer than the
  target are not all zero, or when its byte-wise check finds a smaller
  header byte; it raises `ValueError` when the target is longer than the
  header and `IndexError` when the check runs past the end of the target.
- `extract_bytes(text)` and `extract_u32(text)` read hex strings and raise
  `ValueError` on invalid input.
- `mine(...)` and `start_miner(job, nonce_limit)` search nonces from 0 up to
  `nonce_limit` and return `(nonce, extranonce2)` for a solution, or `None`.

`stratumminer.job.Job` is a frozen dataclass holding one job as the pool
sent it. Its `extranonce2` field is the extranonce2 size announced by the
pool, and `merkle_branch` always has twelve slots, unused ones empty.

`stratumminer.stratum.PoolConnection` speaks the protocol:

```python
from stratumminer.stratum import PoolConnection

conn = PoolConnection.connect("my_user", "pool.example.com:3333", "worker1")
conn.handle_datastream()
```

`PoolConnection(username, address, workername, stream)` accepts any binary
file-like object with `readline`, `write` and `flush`, and
`handle_message(message)` processes a single decoded pool message, so the
client can be driven from any source of messages. The `nonce_limit`
attribute sets how many nonces are tried per job. `justhex_symbols(text)`
strips backslashes and double quotes from a string.

## What it does not do

- It mines on a single thread and only with an all-zero extranonce2.
- It ignores pool messages other than the subscribe and authorize replies
  and `mining.notify`; difficulty changes and share acknowledgements are
  not acted on.
- It does not reconnect when the connection is lost; `handle_datastream`
  returns when the stream ends.