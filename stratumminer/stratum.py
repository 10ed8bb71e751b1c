"""Client side of the Stratum mining protocol.

The client subscribes and authorizes a worker, then waits for
``mining.notify`` messages, mines each announced job and submits any share
it finds::

    client  -- mining.subscribe -->  pool
    client  -- mining.authorize -->  pool
    client  <-- mining.notify ----   pool
    client  -- mining.submit ---->   pool
"""

from __future__ import annotations

import binascii
import json
import logging
import socket
from typing import Any, BinaryIO

from .job import MERKLE_BRANCH_SLOTS, Job
from .miner import DEFAULT_NONCE_LIMIT, extract_u32, start_miner

log = logging.getLogger(__name__)

SUBSCRIBE_ID = 1
AUTHORIZE_ID = 2
SUBMIT_ID = 4

# Only the first eleven merkle branch entries of a notification are read.
_BRANCHES_READ = MERKLE_BRANCH_SLOTS - 1


def justhex_symbols(text: str) -> str:
    """Strip backslashes and double quotes from ``text``."""
    return text.replace("\\", "").replace('"', "")


def _item(container: Any, index: int) -> Any:
    if isinstance(container, list) and 0 <= index < len(container):
        return container[index]
    return None


def _member(container: Any, key: str) -> Any:
    return container.get(key) if isinstance(container, dict) else None


def _text(value: Any) -> str:
    return justhex_symbols(json.dumps(value, ensure_ascii=False))


def _hex(value: Any) -> bytes:
    return binascii.unhexlify(_text(value))


def _has_id(message: Any, expected: int) -> bool:
    value = _member(message, "id")
    return isinstance(value, int) and not isinstance(value, bool) and value == expected


class PoolConnection:
    """A worker's connection to a Stratum mining pool.

    ``stream`` is a binary file-like object offering ``readline``, ``write``
    and ``flush``; :meth:`connect` supplies one backed by a TCP socket.
    """

    nonce_limit: int = DEFAULT_NONCE_LIMIT

    def __init__(self, username: str, address: str, workername: str, stream: BinaryIO) -> None:
        self.username = username
        self.address = address
        self.workername = workername
        self.stream = stream
        self.active_job_queue: list[Job] = []
        self.extranonce1 = b""
        self.extranonce2_size = 0

    @classmethod
    def connect(cls, username: str, address: str, workername: str) -> PoolConnection:
        """Open a TCP connection to ``address`` given as ``host:port``."""
        host, sep, port_text = address.rpartition(":")
        host = host.strip("[]")
        if not sep or not host:
            raise ValueError(f"address must be host:port, got {address!r}")
        try:
            port = int(port_text)
        except ValueError:
            raise ValueError(f"invalid port in address {address!r}") from None
        try:
            sock = socket.create_connection((host, port))
        except OSError as exc:
            raise ConnectionError(f"Failed to connect: {exc}") from exc
        return cls(username, address, workername, sock.makefile("rwb"))

    @property
    def _worker(self) -> str:
        return f"{self.username}.{self.workername}"

    def _send(self, message: str) -> None:
        try:
            self.stream.write(message.encode("utf-8"))
            self.stream.flush()
        except OSError as exc:
            raise ConnectionError(f"Failed to send: {exc}") from exc

    def submit_share(self, job_id: str, extranonce2: bytes, ntime: bytes, nonce: int) -> None:
        """Send a ``mining.submit`` message for a found share."""
        message = (
            f'{{"id": {SUBMIT_ID}, "method": "mining.submit","params":["'
            + self._worker
            + '","'
            + job_id
            + '","'
            + bytes(extranonce2).hex()
            + '","'
            + bytes(ntime).hex()
            + '","'
            + format(nonce, "x")
            + '"]}\n'
        )
        self._send(message)

    def subscribe(self) -> None:
        """Send the ``mining.subscribe`` request."""
        self._send(f'{{"id": {SUBSCRIBE_ID}, "method": "mining.subscribe", "params":[]}}\n')
        log.info("Trying to subscribe to %s", self.address)

    def authorize(self) -> None:
        """Send the ``mining.authorize`` request for this worker."""
        message = (
            f'{{"id": {AUTHORIZE_ID}, "method": "mining.authorize", "params":["'
            + self._worker
            + '",""]}\n'
        )
        log.info("Trying to authorize worker %s", self.workername)
        self._send(message)

    def create_job(self, message: Any) -> Job:
        """Build a :class:`Job` from a parsed ``mining.notify`` message."""
        params = _member(message, "params")
        branches_field = _item(params, 4)
        branches = [b""] * MERKLE_BRANCH_SLOTS
        for slot in range(_BRANCHES_READ):
            entry = _item(branches_field, slot)
            if entry is not None:
                branches[slot] = _hex(entry)
        return Job(
            job_id=_text(_item(params, 0)),
            extranonce1=self.extranonce1,
            extranonce2=self.extranonce2_size,
            prev_block_hash=_hex(_item(params, 1)),
            coinb1=_hex(_item(params, 2)),
            coinb2=_hex(_item(params, 3)),
            merkle_branch=tuple(branches),
            version=_hex(_item(params, 5)),
            nbits=extract_u32(_text(_item(params, 6))),
            ntime=_hex(_item(params, 7)),
        )

    def _on_subscribed(self, message: Any) -> None:
        result = _member(message, "result")
        self.extranonce2_size = extract_u32(json.dumps(_item(result, 2)))
        self.extranonce1 = _hex(_item(result, 1))
        log.info("Successfully subscribed to %s", self.address)

    def _on_authorized(self, message: Any) -> None:
        if _member(message, "result") is True:
            log.info("%s successfully authorized on pool", self._worker)
        else:
            raise PermissionError("Pool is not accepting connection for worker, check username")

    def _on_notify(self, message: Any) -> tuple[int, bytes] | None:
        if _item(_member(message, "params"), 8) is True:
            log.info("Reset active job stack")
            self.active_job_queue = []
        else:
            job = self.create_job(message)
            log.info("New mining job: %r", job)
            self.active_job_queue.append(job)

        if not self.active_job_queue:
            return None
        job = self.active_job_queue[-1]
        log.info("Start working on puzzle for job %s", job.job_id)
        result = start_miner(job, self.nonce_limit)
        log.info("Finished puzzle")
        if result is not None:
            nonce, extranonce2 = result
            log.info("Found solution nonce: %d, submitting", nonce)
            self.submit_share(job.job_id, extranonce2, job.ntime, nonce)
        else:
            log.info("No solution found for job")
        self.active_job_queue.remove(job)
        return result

    def handle_message(self, message: Any) -> tuple[int, bytes] | None:
        """React to one parsed message from the pool.

        Returns ``(nonce, extranonce2)`` when a notification led to a found
        share, otherwise None.  Raises ``PermissionError`` when the pool
        rejects the worker.
        """
        result = None
        if _has_id(message, SUBSCRIBE_ID):
            self._on_subscribed(message)
        if _has_id(message, AUTHORIZE_ID):
            self._on_authorized(message)
        if _member(message, "method") == "mining.notify":
            result = self._on_notify(message)
        log.debug("%r", self)
        return result

    def handle_datastream(self) -> None:
        """Subscribe, authorize and process pool messages until the stream ends."""
        self.subscribe()
        self.authorize()
        while True:
            try:
                line = self.stream.readline()
            except OSError as exc:
                log.warning("Failed to read data: %s", exc)
                continue
            if not line:
                log.info("Connection to %s closed", self.address)
                return
            text = line.decode("utf-8")
            try:
                message = json.loads(text)
            except json.JSONDecodeError:
                continue
            self.handle_message(message)

    def __repr__(self) -> str:
        return (
            f"PoolConnection: {self.username} connected to {self.address} "
            f"with {len(self.active_job_queue)} active job(s) in queue "
        )