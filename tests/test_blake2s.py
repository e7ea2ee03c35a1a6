"""
Pytest tests for the BLAKE2s primitive in blake2s.py.
The pure-Python Blake2s is checked against hashlib.blake2s wherever hashlib
accepts the parameters.
"""
import hashlib
import os
import pytest

from blake2s import Blake2s, Config, Tree, new


def _hashlib(msg: bytes, c: Config) -> bytes:
    t = c.tree or Tree()
    return hashlib.blake2s(
        msg, digest_size=c.size, key=c.key, salt=c.salt, person=c.person,
        fanout=t.fanout, depth=t.max_depth, leaf_size=t.leaf_size,
        node_offset=t.node_offset, node_depth=t.node_depth,
        inner_size=t.inner_hash_size, last_node=t.is_last_node,
    ).digest()


CONFIGS = [
    Config(),
    Config(size=1),
    Config(size=17),
    Config(key=b"k"),
    Config(key=bytes(range(32))),
    Config(salt=b"salt", person=b"pers0nal"),
    Config(size=20, key=b"key", salt=b"12345678", person=b"p"),
    Config(tree=Tree(fanout=2, max_depth=3, leaf_size=4096, node_offset=7,
                     node_depth=1, inner_hash_size=32)),
    Config(tree=Tree(node_offset=64 << 32)),
    Config(tree=Tree(fanout=0, max_depth=255, is_last_node=True)),
]


@pytest.mark.parametrize("config", CONFIGS)
@pytest.mark.parametrize("msglen", [0, 1, 3, 63, 64, 65, 128, 129, 300])
def test_pure_python_matches_hashlib(config: Config, msglen: int):
    msg = bytes(i & 0xFF for i in range(msglen))
    h = Blake2s(config)
    h.update(msg)
    assert h.digest() == _hashlib(msg, config)


def test_known_digest_abc():
    h = Blake2s()
    h.update(b"abc")
    assert h.hexdigest() == "508c5e8c327c14e2e1a72ba34eeb452f37458b209ed63a294d999b4c86675982"


def test_keyed_known_digest_empty_message():
    h = Blake2s(Config(key=bytes(range(32))))
    assert h.hexdigest() == "48a8997da407876b3d79c0d92325ad3b89cbb754d86ab71aee047ad345fd2c49"


@pytest.mark.parametrize("chunks", [
    [b"abc"],
    [b"a", b"b", b"c"],
    [b"x" * 64, b"y" * 64],
    [os.urandom(1), os.urandom(63), os.urandom(65), b""],
])
def test_streaming_equals_oneshot(chunks):
    config = Config(key=b"key", salt=b"s")
    h = Blake2s(config)
    for c in chunks:
        h.update(c)
    assert h.digest() == _hashlib(b"".join(chunks), config)


def test_digest_does_not_finalize():
    h = Blake2s()
    h.update(b"hello ")
    first = h.digest()
    assert h.digest() == first
    h.update(b"world")
    assert h.digest() == hashlib.blake2s(b"hello world").digest()


def test_copy_is_independent():
    h = Blake2s(Config(size=16))
    h.update(b"a" * 70)
    c = h.copy()
    c.update(b"b")
    assert h.digest() == hashlib.blake2s(b"a" * 70, digest_size=16).digest()
    assert c.digest() == hashlib.blake2s(b"a" * 70 + b"b", digest_size=16).digest()


def test_depth_zero_is_accepted():
    tree = Tree(fanout=0, max_depth=0, leaf_size=32, inner_hash_size=32)
    h = Blake2s(Config(tree=tree))
    h.update(b"abc")
    assert len(h.digest()) == 32
    with pytest.raises(ValueError):
        hashlib.blake2s(depth=0)


def test_new_uses_hashlib_when_possible():
    assert isinstance(new(), type(hashlib.blake2s()))
    assert isinstance(new(Config(tree=Tree(max_depth=0))), Blake2s)


@pytest.mark.parametrize("config", [
    Config(size=0),
    Config(size=33),
    Config(key=b"k" * 33),
    Config(salt=b"s" * 9),
    Config(person=b"p" * 9),
    Config(tree=Tree(fanout=256, max_depth=0)),
    Config(tree=Tree(max_depth=256)),
    Config(tree=Tree(max_depth=0, node_offset=1 << 48)),
    Config(tree=Tree(max_depth=0, inner_hash_size=33)),
    Config(tree=Tree(node_offset=1 << 48)),
    Config(tree=Tree(leaf_size=1 << 32)),
    Config(tree=Tree(node_depth=-1)),
])
def test_invalid_parameters_raise(config: Config):
    with pytest.raises(ValueError):
        new(config)
