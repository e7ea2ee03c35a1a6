"""
BLAKE2Xs extendable-output function (XOF) built on BLAKE2s.

How it works, in plain terms:
- A root BLAKE2s hash absorbs the message. Its tree parameters carry the
  requested output length in the upper bits of the node offset, so the
  root digest depends on how much output was asked for.
- Output is produced 32 bytes at a time. Block i is the BLAKE2s digest of
  the root digest, computed with node offset (length << 32) + i and the
  other tree parameters fixed by BLAKE2X. The last block is a shorter
  digest when the output length is not a multiple of 32.
- With the size left at 0 ("unknown", UNKNOWN_SIZE) every output is a
  prefix of any longer one. Two different finite sizes give unrelated
  outputs.

Simple usage:
  x = Blake2xs(Config(size=64, key=b"secret"))
  x.update(b"hello").update(b" world")
  out = x.read(64)

Notes:
- update()/write() may be called many times; the first read finalizes the
  root hash and further writes raise InvalidStateError.
- read() may be called again to continue the stream. A short read means
  the declared output length is used up.
- Instances are not thread safe; serialize access to a single instance.
"""
import enum
from dataclasses import dataclass, replace
from typing import Optional, Tuple, Union

import blake2s
from blake2s import Tree


# Size meaning "output length not known in advance"
UNKNOWN_SIZE: int = (1 << 16) - 1

_BLOCK: int = blake2s.DIGEST_SIZE


class InvalidStateError(ValueError):
    """Raised when data is written after output has been read."""


class Phase(enum.Enum):
    WRITING = "writing"
    FINALIZED = "finalized"
    EXHAUSTED = "exhausted"


@dataclass(frozen=True)
class Config:
    """Parameters of a BLAKE2Xs instance. All are optional.

    size   -- output length in bytes, 0 for unknown (up to UNKNOWN_SIZE)
    key    -- key for prefix-MAC use, at most 32 bytes
    salt   -- at most 8 bytes, zero padded
    person -- personalization, at most 8 bytes, zero padded
    tree   -- tree parameters of the root hash (sequential hashing if None)
    """
    size: int = 0
    key: bytes = b""
    salt: bytes = b""
    person: bytes = b""
    tree: Optional[Tree] = None

    def __post_init__(self) -> None:
        if not 0 <= self.size <= UNKNOWN_SIZE:
            raise ValueError("size must be between 0 and %d" % UNKNOWN_SIZE)


@dataclass(frozen=True)
class _Cursor:
    """Position in the output stream: next block's node offset and size."""
    node_offset: int
    size: int = _BLOCK


def _root_config(c: Config, length: int) -> blake2s.Config:
    tree = c.tree if c.tree is not None else Tree(fanout=1, max_depth=1)
    tree = replace(tree, node_offset=tree.node_offset + (length << 32))
    return blake2s.Config(size=_BLOCK, key=c.key, salt=c.salt, person=c.person, tree=tree)


def _output_config(c: Config, length: int) -> blake2s.Config:
    return blake2s.Config(
        size=_BLOCK,
        salt=c.salt,
        person=c.person,
        tree=Tree(
            fanout=0,
            max_depth=0,
            leaf_size=_BLOCK,
            node_offset=length << 32,
            node_depth=0,
            inner_hash_size=_BLOCK,
            is_last_node=False,
        ),
    )


def _block_config(template: blake2s.Config, cursor: _Cursor) -> blake2s.Config:
    return replace(template, size=cursor.size,
                   tree=replace(template.tree, node_offset=cursor.node_offset))


def _next_block(h0: bytes, template: blake2s.Config, cursor: _Cursor,
                remaining: int) -> Tuple[bytes, _Cursor]:
    """Generate the output block at cursor and return it with the next cursor.

    When fewer than 32 bytes remain this is the last block, and it is a
    BLAKE2s digest of that smaller size rather than a cut-off full digest.
    """
    if remaining < _BLOCK:
        cursor = replace(cursor, size=remaining)
    h = blake2s.new(_block_config(template, cursor))
    h.update(h0)
    return h.digest(), replace(cursor, node_offset=cursor.node_offset + 1)


class Blake2xs:
    """Streaming BLAKE2Xs XOF with a write phase followed by a read phase."""

    def __init__(self, config: Optional[Config] = None) -> None:
        c = config if config is not None else Config()
        # Declared output length, UNKNOWN_SIZE when not given
        self._size: int = c.size or UNKNOWN_SIZE
        # Template for output hashes; only size and node offset change per block
        self._template: blake2s.Config = _output_config(c, self._size)
        # Raises ValueError for keys, salts or tree parameters BLAKE2s rejects
        self._root = blake2s.new(_root_config(c, self._size))
        # Root digest, set by the first read
        self._h0: bytes = b""
        self._cursor: _Cursor = _Cursor(node_offset=self._template.tree.node_offset)
        # Most recent output block and the read offset into it.
        # An offset equal to the block length means the block is used up.
        self._block: bytes = b""
        self._pos: int = 0
        self._remaining: int = self._size
        self._phase: Phase = Phase.WRITING

    @property
    def size(self) -> int:
        return self._size

    @property
    def remaining(self) -> int:
        """Number of output bytes that can still be read."""
        return self._remaining

    @property
    def phase(self) -> Phase:
        return self._phase

    def write(self, data: Union[bytes, bytearray, memoryview]) -> int:
        """Absorb message bytes into the root hash and return their count."""
        if self._phase is not Phase.WRITING:
            raise InvalidStateError("cannot write after reading")
        self._root.update(data)
        return memoryview(data).nbytes

    def update(self, data: Union[bytes, bytearray, memoryview]) -> "Blake2xs":
        """Same as write(), but returns self so calls can be chained."""
        self.write(data)
        return self

    def _finalize(self) -> None:
        self._h0 = self._root.digest()
        self._root = None
        self._phase = Phase.FINALIZED if self._remaining else Phase.EXHAUSTED

    def readinto(self, buf: Union[bytearray, memoryview]) -> int:
        """Fill buf with output bytes and return how many were written.

        Returns less than len(buf) only when the declared output length
        runs out; from then on every call returns 0.
        """
        if self._phase is Phase.WRITING:
            self._finalize()
        out = memoryview(buf).cast("B")
        n = 0
        while n < len(out) and self._remaining:
            if self._pos >= len(self._block):
                self._block, self._cursor = _next_block(
                    self._h0, self._template, self._cursor, self._remaining)
                self._pos = 0
            take = min(len(out) - n, len(self._block) - self._pos)
            out[n:n + take] = self._block[self._pos:self._pos + take]
            self._pos += take
            self._remaining -= take
            n += take
        if not self._remaining:
            self._phase = Phase.EXHAUSTED
        return n

    def read(self, n: Optional[int] = -1) -> bytes:
        """Return the next n output bytes, or all remaining ones if n < 0.

        Fewer than n bytes (b"" at the end) means the stream is exhausted.
        """
        if n is None or n < 0:
            n = self._remaining
        buf = bytearray(min(n, self._remaining))
        got = self.readinto(buf)
        return bytes(buf[:got])

    # hashlib-compatible API
    def digest(self, length: Optional[int] = None) -> bytes:
        """Return the next length output bytes (default: all remaining).

        Like read(), this advances the stream, so successive calls continue
        where the previous one stopped.
        """
        return self.read(-1 if length is None else length)

    def hexdigest(self, length: Optional[int] = None) -> str:
        return self.digest(length).hex()


def new_xof(config: Optional[Config] = None) -> Blake2xs:
    """Create a BLAKE2Xs instance; same as Blake2xs(config)."""
    return Blake2xs(config)


def blake2xs(data: bytes, size: int = 0, *, key: bytes = b"", salt: bytes = b"",
             person: bytes = b"", tree: Optional[Tree] = None) -> bytes:
    """One-shot BLAKE2Xs: absorb data and return all size output bytes.

    A size of 0 means unknown and returns UNKNOWN_SIZE bytes.
    """
    x = Blake2xs(Config(size=size, key=key, salt=salt, person=person, tree=tree))
    return x.update(data).read()
