import json
import socket

import pytest

from stratumminer.job import Job
from stratumminer.miner import extract_bytes, extract_u32
from stratumminer.stratum import PoolConnection, justhex_symbols

SUBSCRIBE_LINE = b'{"id": 1, "method": "mining.subscribe", "params":[]}\n'

PREV_HASH = "46dc83b487c8b6bbdd456f3a5be6dbfb9f05e6c0000524c80000000000000000"
COINB1 = (
    "01000000010000000000000000000000000000000000000000000000000000000000000000ffffffff4b03bb6d0a"
    "fabe6d6dace18894c4f05903ad5014ded3e8e7f6cc8aaefdecb72b93e5a4ce8e41633cb00100000000000000"
)
COINB2 = (
    "0fd78721022f736c7573682f00000000035077ec28000000001976a9147c154ed1dc59609e3d26abb2df2ea3d5"
    "87cd8c4188ac00000000000000002c6a4c2952534b424c4f434b3ab94a2dea82d9a758eed5cbc128792ebc878a"
    "10fc86b316e87219fe22003313710000000000000000266a24aa21a9ed9edd94a5707777af0eb2c7857035ddb3"
    "9e95ed9a1d5338b26c77e704e7e7f79f00000000"
)
BRANCHES = [
    "9842754b2d45f1f6565acdc09166a141b930398a8e9869bcad8a8051137ee10d",
    "93d119c3f778a310cbdb58de328699b9c07bf49462b3e0a642695a3aafb7fcdd",
    "7f5f6f4221e34f945d97a28d3aa5c0038bc0dc6001d617d61854beb8a8587be9",
    "b109fad673bdc695a92420a55727446fd085091feab8de9ed34b4b877e726120",
    "1680077f50cc95ba34930cd13abebeb800b6aee727b6f43d3b8896423a69cd35",
    "4a7ecec6112e7daaa28916754977b600a67ae115fb62a32c866116d0fd1a9d1e",
    "9205d7fc38b856bc580e942d23a1f9d085582609c25608356f148ff2ad0eaedf",
    "9bca39ed258050d81ec4d8f08f33e33484c644b80dbeb97ad1781a3b79227c4a",
    "78db32d49b5d8a8f1ba91d4889038c0a9328de0371f02d3acb5a33e5b0012056",
    "3a517d1fc8dfa1bb84682525437783a9833fd632a8a80301da4fe2da3eafd233",
    "cd96abb880c4ef6c595d237c6ac27babb918143a8a3039d7897be1dd1496729d",
]


class FakeStream:
    def __init__(self, lines=()):
        self.lines = list(lines)
        self.written = bytearray()

    def readline(self):
        return self.lines.pop(0) if self.lines else b""

    def write(self, data):
        self.written += data
        return len(data)

    def flush(self):
        pass


def make_conn(lines=()):
    return PoolConnection("alice", "pool.example.com:3333", "rig", FakeStream(lines))


def notify(job_id="22187d70f", branches=BRANCHES, nbits="170b3ce9", clean=False):
    return {
        "id": None,
        "method": "mining.notify",
        "params": [job_id, PREV_HASH, COINB1, COINB2, branches, "20000004", nbits, "609d3434", clean],
    }


def sample_job(job_id="old"):
    return Job(job_id, b"\x01", 8, b"\x02" * 32, b"\x03", b"\x04")


def test_justhex_symbols_strips_quotes_and_backslashes():
    assert justhex_symbols('"ab\\"cd"') == "abcd"
    assert justhex_symbols("plain") == "plain"


def test_subscribe_wire_bytes():
    conn = make_conn()
    conn.subscribe()
    assert bytes(conn.stream.written) == SUBSCRIBE_LINE


def test_authorize_wire_bytes():
    conn = make_conn()
    conn.authorize()
    assert bytes(conn.stream.written) == (
        b'{"id": 2, "method": "mining.authorize", "params":["alice.rig",""]}\n'
    )


def test_submit_share_wire_format():
    conn = make_conn()
    conn.submit_share("abc", b"\x00\x00", bytes.fromhex("609d3434"), 255)
    line = bytes(conn.stream.written)
    assert line == (
        b'{"id": 4, "method": "mining.submit","params":'
        b'["alice.rig","abc","0000","609d3434","ff"]}\n'
    )
    decoded = json.loads(line)
    assert decoded["method"] == "mining.submit"
    assert decoded["params"][0] == "alice.rig"


def test_subscription_response_sets_extranonce():
    conn = make_conn()
    conn.handle_message({"id": 1, "result": [[], "2f650800b66d40", 8], "error": None})
    assert conn.extranonce1 == bytes.fromhex("2f650800b66d40")
    assert conn.extranonce2_size == 8


def test_extranonce2_size_is_read_as_hex():
    conn = make_conn()
    conn.handle_message({"id": 1, "result": [[], "00", 10]})
    assert conn.extranonce2_size == int("10", 16)


def test_subscription_response_with_bad_size_raises():
    conn = make_conn()
    with pytest.raises(ValueError):
        conn.handle_message({"id": 1, "result": [[], "00"]})


def test_boolean_id_is_not_a_subscription():
    conn = make_conn()
    conn.handle_message({"id": True, "result": [[], "aa", 4]})
    assert conn.extranonce1 == b""
    assert conn.extranonce2_size == 0


def test_authorization_accepted():
    conn = make_conn()
    assert conn.handle_message({"id": 2, "result": True}) is None
    assert conn.active_job_queue == []


def test_authorization_rejected_raises():
    conn = make_conn()
    with pytest.raises(PermissionError):
        conn.handle_message({"id": 2, "result": False})


def test_create_job_from_notification():
    conn = make_conn()
    conn.extranonce1 = extract_bytes("2f650800b66d40")
    conn.extranonce2_size = 8
    job = conn.create_job(notify())
    assert job.job_id == "22187d70f"
    assert job.prev_block_hash == extract_bytes(PREV_HASH)
    assert job.coinb1 == extract_bytes(COINB1)
    assert job.coinb2 == extract_bytes(COINB2)
    assert list(job.merkle_branch[:11]) == [extract_bytes(b) for b in BRANCHES]
    assert job.merkle_branch[11] == b""
    assert job.version == extract_bytes("20000004")
    assert job.nbits == extract_u32("170b3ce9")
    assert job.ntime == extract_bytes("609d3434")
    assert job.extranonce1 == conn.extranonce1
    assert job.extranonce2 == 8


def test_create_job_reads_only_eleven_branches_and_skips_nulls():
    conn = make_conn()
    branches = [BRANCHES[0], None] + BRANCHES[1:] + ["aa"]
    job = conn.create_job(notify(branches=branches))
    assert job.merkle_branch[0] == extract_bytes(BRANCHES[0])
    assert job.merkle_branch[1] == b""
    assert job.merkle_branch[10] == extract_bytes(BRANCHES[9])
    assert job.merkle_branch[11] == b""


def test_create_job_rejects_odd_hex():
    conn = make_conn()
    message = notify()
    message["params"][1] = "abc"
    with pytest.raises(ValueError):
        conn.create_job(message)


def test_create_job_with_missing_params_raises():
    conn = make_conn()
    with pytest.raises(ValueError):
        conn.create_job({"method": "mining.notify", "params": ["id"]})


def test_clean_notification_resets_queue():
    conn = make_conn()
    conn.active_job_queue = [sample_job()]
    assert conn.handle_message(notify(clean=True)) is None
    assert conn.active_job_queue == []
    assert bytes(conn.stream.written) == b""


def test_notification_mines_newest_job_and_removes_it():
    conn = make_conn()
    conn.nonce_limit = 4
    old = sample_job()
    conn.active_job_queue = [old]
    result = conn.handle_message(notify(nbits="20ffffff"))
    assert result is None
    assert conn.active_job_queue == [old]
    assert bytes(conn.stream.written) == b""


def test_handle_datastream_processes_until_end_of_stream():
    conn = make_conn(
        [
            b"not json\n",
            b'{"id": 1, "result": [[], "2f650800b66d40", 8], "error": null}\n',
            b'{"id": 2, "result": true, "error": null}\n',
        ]
    )
    conn.handle_datastream()
    written = bytes(conn.stream.written)
    assert written.startswith(SUBSCRIBE_LINE)
    assert written.endswith(b'"params":["alice.rig",""]}\n')
    assert conn.extranonce1 == bytes.fromhex("2f650800b66d40")
    assert conn.extranonce2_size == 8


def test_handle_datastream_stops_on_rejection():
    conn = make_conn([b'{"id": 2, "result": false}\n'])
    with pytest.raises(PermissionError):
        conn.handle_datastream()


def test_repr():
    conn = make_conn()
    conn.active_job_queue = [sample_job()]
    assert repr(conn) == (
        "PoolConnection: alice connected to pool.example.com:3333 with 1 active job(s) in queue "
    )


def test_connect_opens_a_tcp_stream():
    listener = socket.create_server(("127.0.0.1", 0))
    listener.settimeout(5)
    port = listener.getsockname()[1]
    try:
        conn = PoolConnection.connect("alice", f"127.0.0.1:{port}", "rig")
        peer, _ = listener.accept()
        with peer, peer.makefile("rb") as reader:
            conn.subscribe()
            assert reader.readline() == SUBSCRIBE_LINE
        assert conn.address == f"127.0.0.1:{port}"
        conn.stream.close()
    finally:
        listener.close()


@pytest.mark.parametrize("address", ["localhost", ":3333", "localhost:port"])
def test_connect_rejects_bad_address(address):
    with pytest.raises(ValueError):
        PoolConnection.connect("alice", address, "rig")


def test_connect_refused_raises_connection_error():
    probe = socket.create_server(("127.0.0.1", 0))
    port = probe.getsockname()[1]
    probe.close()
    with pytest.raises(ConnectionError):
        PoolConnection.connect("alice", f"127.0.0.1:{port}", "rig")