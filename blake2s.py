"""
BLAKE2s hash primitive with the full parameter block.

This module is the fixed-output hash used by the BLAKE2Xs construction in
blake2xs.py. Most parameter sets are handed straight to hashlib.blake2s,
which is implemented in optimized C. hashlib refuses a maximal depth of 0
though, and BLAKE2Xs output hashes are defined with exactly that value, so
a small pure-Python BLAKE2s (RFC 7693) covers the rest.

Usage:
  h = new(Config(size=16, salt=b"salt", tree=Tree(node_offset=3)))
  h.update(b"hello")
  out = h.digest()
"""
import hashlib
import struct
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple, Union


DIGEST_SIZE: int = 32
BLOCK_SIZE: int = 64
KEY_SIZE: int = 32
SALT_SIZE: int = 8
PERSON_SIZE: int = 8
MAX_NODE_OFFSET: int = (1 << 48) - 1

# 32-bit mask (all ones)
_MASK: int = 0xFFFFFFFF

# Initialization vector, shared with SHA-256
_IV: Tuple[int, ...] = (0x6A09E667, 0xBB67AE85, 0x3C6EF372, 0xA54FF53A,
                        0x510E527F, 0x9B05688C, 0x1F83D9AB, 0x5BE0CD19)

# Message word schedule, one row per round (BLAKE2s runs 10 rounds)
_SIGMA: Tuple[Tuple[int, ...], ...] = (
    (0, 1, 2, 3, 4, 5, 6, 7, 8, 9, 10, 11, 12, 13, 14, 15),
    (14, 10, 4, 8, 9, 15, 13, 6, 1, 12, 0, 2, 11, 7, 5, 3),
    (11, 8, 12, 0, 5, 2, 15, 13, 10, 14, 3, 6, 7, 1, 9, 4),
    (7, 9, 3, 1, 13, 12, 11, 14, 2, 6, 5, 10, 4, 0, 15, 8),
    (9, 0, 5, 7, 2, 4, 10, 15, 14, 1, 11, 12, 6, 8, 3, 13),
    (2, 12, 6, 10, 0, 11, 8, 3, 4, 13, 7, 5, 15, 14, 1, 9),
    (12, 5, 1, 15, 14, 13, 4, 10, 0, 7, 6, 3, 9, 2, 8, 11),
    (13, 11, 7, 14, 12, 1, 3, 9, 5, 0, 15, 4, 8, 6, 2, 10),
    (6, 15, 14, 9, 11, 3, 0, 8, 12, 2, 13, 7, 1, 4, 10, 5),
    (10, 2, 8, 4, 7, 6, 1, 5, 15, 11, 9, 14, 3, 12, 13, 0),
)

# Parameter block layout: digest length, key length, fanout, depth,
# leaf length, node offset (low 32 bits, high 16 bits), node depth,
# inner length, salt, personalization. 32 bytes in total.
_PARAM_BLOCK = struct.Struct("<BBBBIIHBB8s8s")


@dataclass(frozen=True)
class Tree:
    """Tree hashing parameters of the BLAKE2s parameter block.

    The defaults describe plain sequential hashing, the same values hashlib
    uses when no tree parameter is given.
    """
    fanout: int = 1
    max_depth: int = 1
    leaf_size: int = 0
    node_offset: int = 0
    node_depth: int = 0
    inner_hash_size: int = 0
    is_last_node: bool = False


@dataclass(frozen=True)
class Config:
    """Digest size, keying and tree parameters for one BLAKE2s instance."""
    size: int = DIGEST_SIZE
    key: bytes = b""
    salt: bytes = b""
    person: bytes = b""
    tree: Optional[Tree] = None


# Rotate right on a 32-bit word
def _rotr(x: int, n: int) -> int:
    return ((x >> n) | (x << (32 - n))) & _MASK


def _g(v: List[int], a: int, b: int, c: int, d: int, x: int, y: int) -> None:
    v[a] = (v[a] + v[b] + x) & _MASK
    v[d] = _rotr(v[d] ^ v[a], 16)
    v[c] = (v[c] + v[d]) & _MASK
    v[b] = _rotr(v[b] ^ v[c], 12)
    v[a] = (v[a] + v[b] + y) & _MASK
    v[d] = _rotr(v[d] ^ v[a], 8)
    v[c] = (v[c] + v[d]) & _MASK
    v[b] = _rotr(v[b] ^ v[c], 7)


def _compress(h: Sequence[int], block: bytes, t: int, f0: int, f1: int) -> List[int]:
    """Mix one 64-byte block into the chaining value h and return the new one.

    t is the total number of bytes hashed so far, including this block.
    f0 and f1 are the last-block and last-node flags (0 or all ones).
    """
    m = struct.unpack("<16I", block)
    v = list(h) + list(_IV)
    v[12] ^= t & _MASK
    v[13] ^= (t >> 32) & _MASK
    v[14] ^= f0
    v[15] ^= f1
    for s in _SIGMA:
        # Columns
        _g(v, 0, 4, 8, 12, m[s[0]], m[s[1]])
        _g(v, 1, 5, 9, 13, m[s[2]], m[s[3]])
        _g(v, 2, 6, 10, 14, m[s[4]], m[s[5]])
        _g(v, 3, 7, 11, 15, m[s[6]], m[s[7]])
        # Diagonals
        _g(v, 0, 5, 10, 15, m[s[8]], m[s[9]])
        _g(v, 1, 6, 11, 12, m[s[10]], m[s[11]])
        _g(v, 2, 7, 8, 13, m[s[12]], m[s[13]])
        _g(v, 3, 4, 9, 14, m[s[14]], m[s[15]])
    return [h[i] ^ v[i] ^ v[i + 8] for i in range(8)]


def _check_range(name: str, value: int, low: int, high: int) -> None:
    if not low <= value <= high:
        raise ValueError("%s must be between %d and %d" % (name, low, high))


def _validate(c: Config, tree: Tree) -> None:
    """Raise ValueError unless c and tree fit the parameter block.

    Same limits as hashlib.blake2s, except that a maximal depth of 0 is
    allowed. hashlib reports some of these as OverflowError, so both
    backends are checked here first.
    """
    _check_range("digest_size", c.size, 1, DIGEST_SIZE)
    if len(c.key) > KEY_SIZE:
        raise ValueError("maximum key length is %d bytes" % KEY_SIZE)
    if len(c.salt) > SALT_SIZE:
        raise ValueError("maximum salt length is %d bytes" % SALT_SIZE)
    if len(c.person) > PERSON_SIZE:
        raise ValueError("maximum person length is %d bytes" % PERSON_SIZE)
    _check_range("fanout", tree.fanout, 0, 255)
    _check_range("depth", tree.max_depth, 0, 255)
    _check_range("leaf_size", tree.leaf_size, 0, _MASK)
    _check_range("node_offset", tree.node_offset, 0, MAX_NODE_OFFSET)
    _check_range("node_depth", tree.node_depth, 0, 255)
    _check_range("inner_size", tree.inner_hash_size, 0, DIGEST_SIZE)


class Blake2s:
    """Streaming BLAKE2s accepting every value of the parameter block.

    The object behaves like a hashlib hash object: update() absorbs data,
    digest() returns the hash without disturbing the state, so more data
    can still be absorbed afterwards.

    Parameters are validated the way hashlib.blake2s validates them, except
    that a maximal depth of 0 is allowed.
    """

    name: str = "blake2s"
    block_size: int = BLOCK_SIZE

    def __init__(self, config: Optional[Config] = None) -> None:
        c = config if config is not None else Config()
        tree = c.tree if c.tree is not None else Tree()
        _validate(c, tree)

        self.digest_size: int = c.size
        # Salt and personalization shorter than 8 bytes are zero padded by the packing
        param = _PARAM_BLOCK.pack(
            c.size, len(c.key), tree.fanout, tree.max_depth, tree.leaf_size,
            tree.node_offset & _MASK, tree.node_offset >> 32,
            tree.node_depth, tree.inner_hash_size, c.salt, c.person)
        # Chaining value: IV xor parameter block
        self._h: List[int] = [iv ^ p for iv, p in zip(_IV, struct.unpack("<8I", param))]
        # Number of bytes compressed so far
        self._t: int = 0
        # Set on the final compression only
        self._last_node: bool = tree.is_last_node
        # Unprocessed input. The last block stays here until digest() since
        # it has to be compressed with the finalization flag.
        self._buf: bytearray = bytearray()
        if c.key:
            self._buf += c.key.ljust(BLOCK_SIZE, b"\x00")

    def update(self, data: Union[bytes, bytearray, memoryview]) -> None:
        """Absorb more input bytes.

        Full blocks are compressed as soon as more data follows them.
        """
        self._buf += data
        r = BLOCK_SIZE
        i = 0
        while len(self._buf) - i > r:
            self._t += r
            self._h = _compress(self._h, bytes(self._buf[i:i + r]), self._t, 0, 0)
            i += r
        if i:
            del self._buf[:i]

    def digest(self) -> bytes:
        """Return the digest of everything absorbed so far."""
        t = self._t + len(self._buf)
        block = bytes(self._buf).ljust(BLOCK_SIZE, b"\x00")
        f1 = _MASK if self._last_node else 0
        h = _compress(self._h, block, t, _MASK, f1)
        return struct.pack("<8I", *h)[:self.digest_size]

    def hexdigest(self) -> str:
        return self.digest().hex()

    def copy(self) -> "Blake2s":
        other = Blake2s.__new__(Blake2s)
        other.digest_size = self.digest_size
        other._h = list(self._h)
        other._t = self._t
        other._last_node = self._last_node
        other._buf = bytearray(self._buf)
        return other


def new(config: Optional[Config] = None) -> "Union[Blake2s, hashlib._Hash]":
    """Create a BLAKE2s hash object for config.

    hashlib.blake2s is used whenever it can express the parameters. Depth 0
    (BLAKE2Xs output hashes) falls back to the pure-Python Blake2s. Invalid
    parameters raise ValueError.
    """
    c = config if config is not None else Config()
    tree = c.tree if c.tree is not None else Tree()
    _validate(c, tree)
    if tree.max_depth == 0:
        return Blake2s(c)
    return hashlib.blake2s(
        digest_size=c.size,
        key=c.key,
        salt=c.salt,
        person=c.person,
        fanout=tree.fanout,
        depth=tree.max_depth,
        leaf_size=tree.leaf_size,
        node_offset=tree.node_offset,
        node_depth=tree.node_depth,
        inner_size=tree.inner_hash_size,
        last_node=tree.is_last_node,
    )
