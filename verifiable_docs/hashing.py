"""
Statement Hasher
================

Turns canonical statements into independently salted, independently
revealable hashes:

    digest     = H(statement)
    saltedHash = H(nonce + digest)

A verifier that knows (digest, nonce) can reproduce saltedHash without
ever seeing the raw statement.
"""

import hashlib
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

from .canonical import encode_object_as_str


Hasher = Callable[..., str]
NonceGenerator = Callable[[str], str]

HEX_PREFIX = "0x"


@dataclass(frozen=True)
class HashedStatement:
    """One statement with its digest, nonce and salted hash"""
    statement: str
    digest: str
    nonce: str
    salted_hash: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "statement": self.statement,
            "digest": self.digest,
            "nonce": self.nonce,
            "saltedHash": self.salted_hash
        }


# ==================== HEX HELPERS ====================

def to_hex(data: bytes) -> str:
    """Encode bytes as 0x-prefixed lowercase hex"""
    return HEX_PREFIX + bytes(data).hex()


def from_hex(value: str) -> bytes:
    """Decode 0x-prefixed (or bare) hex"""
    if value.startswith(HEX_PREFIX):
        value = value[len(HEX_PREFIX):]
    return bytes.fromhex(value)


# ==================== HASH PRIMITIVES ====================

_ALGORITHMS: Dict[str, Callable[[bytes], bytes]] = {
    "blake2b-256": lambda data: hashlib.blake2b(data, digest_size=32).digest(),
    "sha256": lambda data: hashlib.sha256(data).digest(),
    "sha3-256": lambda data: hashlib.sha3_256(data).digest(),
}

DEFAULT_HASH_ALGORITHM = "blake2b-256"


def hash_bytes(data: Union[str, bytes], algorithm: str = DEFAULT_HASH_ALGORITHM) -> bytes:
    """Hash UTF-8 text or raw bytes with a named 256-bit algorithm"""
    try:
        digest = _ALGORITHMS[algorithm]
    except KeyError:
        raise ValueError(f"Unsupported hash algorithm: {algorithm}") from None

    if isinstance(data, str):
        data = data.encode("utf-8")
    return digest(data)


def hash_str(data: Union[str, bytes], algorithm: str = DEFAULT_HASH_ALGORITHM) -> str:
    """Hash and return 0x-prefixed hex"""
    return to_hex(hash_bytes(data, algorithm))


def salted_blake2b256(value: str, nonce: str = "") -> str:
    """Default hasher: 256-bit blake2b over nonce + value"""
    return hash_str(nonce + value, "blake2b-256")


def get_hasher(algorithm: str = DEFAULT_HASH_ALGORITHM) -> Hasher:
    """
    Build a salted hasher for a named algorithm

    Args:
        algorithm: One of blake2b-256, sha256, sha3-256

    Returns:
        Callable (value, nonce="") -> 0x-hex
    """
    if algorithm == DEFAULT_HASH_ALGORITHM:
        return salted_blake2b256
    if algorithm not in _ALGORITHMS:
        raise ValueError(f"Unsupported hash algorithm: {algorithm}")

    def hasher(value: str, nonce: str = "") -> str:
        return hash_str(nonce + value, algorithm)

    return hasher


def hash_object_as_hex_str(
    value: Any,
    nonce: Optional[str] = None,
    algorithm: str = DEFAULT_HASH_ALGORITHM
) -> str:
    """Canonically encode a value, optionally prefix a nonce, and hash it"""
    encoded = encode_object_as_str(value)
    if nonce:
        encoded = nonce + encoded
    return hash_str(encoded, algorithm)


def generate_nonce(_digest: str = "") -> str:
    """Fresh random nonce (UUID4)"""
    return str(uuid.uuid4())


# ==================== STATEMENT HASHING ====================

def hash_statements(
    statements: Sequence[str],
    nonces: Optional[Mapping[str, str]] = None,
    nonce_generator: Optional[NonceGenerator] = None,
    hasher: Optional[Hasher] = None,
    max_workers: Optional[int] = None
) -> List[HashedStatement]:
    """
    Compute salted hashes over a list of statements

    A statement whose digest is in ``nonces`` (digest -> nonce) reuses that
    nonce, which reproduces the hashes of an existing document; any other
    statement gets a fresh one.

    Args:
        statements: Canonical statement strings
        nonces: Optional nonce map keyed by unsalted digest
        nonce_generator: Called with the digest when no supplied nonce matches
        hasher: Callable (value, nonce="") -> hex, defaults to blake2b-256
        max_workers: Hash statements on a thread pool when > 1

    Returns:
        One HashedStatement per input, in input order
    """
    hasher = hasher or salted_blake2b256
    nonce_generator = nonce_generator or generate_nonce

    def hash_one(statement: str) -> HashedStatement:
        digest = hasher(statement)
        nonce = nonces.get(digest) if nonces else None
        if nonce is None:
            nonce = nonce_generator(digest)
        salted_hash = hasher(digest, nonce)
        return HashedStatement(
            statement=statement,
            digest=digest,
            nonce=nonce,
            salted_hash=salted_hash
        )

    if max_workers and max_workers > 1 and len(statements) > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            return list(pool.map(hash_one, statements))

    return [hash_one(statement) for statement in statements]
