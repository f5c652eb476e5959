"""
Key Resolution Adapter
======================

Boundary contracts the core relies on but does not own:

- KeyResolver.resolve_key(key_uri) -> ResolvedKey
- Signer.sign(data, key_uri) -> signature bytes

DIDManager and KeyManager are the in-process reference implementations;
ledger- or HSM-backed adapters only need to satisfy the same protocols.
"""

from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from typing import Callable, Optional, Protocol, Tuple, TypeVar

from .exceptions import KeyNotFoundError

T = TypeVar("T")

# DID key relationships (W3C DID Core verification relationships)
AUTHENTICATION = "authentication"
ASSERTION_METHOD = "assertionMethod"
CAPABILITY_DELEGATION = "capabilityDelegation"
KEY_AGREEMENT = "keyAgreement"

KEY_RELATIONSHIPS = (AUTHENTICATION, ASSERTION_METHOD, CAPABILITY_DELEGATION, KEY_AGREEMENT)


@dataclass(frozen=True)
class ResolvedKey:
    """Public key material for a DID key URI"""
    key_uri: str
    controller: str  # DID controlling the key
    key_type: str    # Ed25519VerificationKey2020, EcdsaSecp256k1VerificationKey2019
    public_key: str  # 0x-hex (Ed25519) or Ethereum address (secp256k1)
    purposes: Tuple[str, ...] = ()

    def allows(self, purpose: str) -> bool:
        return purpose in self.purposes


class KeyResolver(Protocol):
    def resolve_key(self, key_uri: str) -> ResolvedKey:
        """Raises KeyNotFoundError or KeyRevokedOrDeactivatedError"""
        ...


class Signer(Protocol):
    def sign(self, data: bytes, key_uri: str) -> bytes:
        """Raises SigningUnavailableError"""
        ...


def parse_key_uri(key_uri: str) -> Tuple[str, str]:
    """
    Split a DID key URI into (did, fragment)

    Raises:
        KeyNotFoundError: if the URI is not ``did:<method>:<id>#<fragment>``
    """
    did, sep, fragment = key_uri.partition("#")
    parts = did.split(":")
    if not sep or not fragment or len(parts) < 3 or parts[0] != "did" or not all(parts):
        raise KeyNotFoundError(f"Key URI is not a valid DID resource: {key_uri}")
    return did, fragment


def call_with_timeout(func: Callable[..., T], *args, timeout: Optional[float] = None) -> T:
    """
    Run a blocking adapter call with a deadline

    The call runs on a worker thread; on timeout the caller stops waiting
    and ``concurrent.futures.TimeoutError`` is raised. Exceptions raised by
    ``func`` propagate unchanged.
    """
    if timeout is None:
        return func(*args)

    pool = ThreadPoolExecutor(max_workers=1)
    try:
        future = pool.submit(func, *args)
        return future.result(timeout=timeout)
    finally:
        pool.shutdown(wait=False)


__all__ = [
    "AUTHENTICATION",
    "ASSERTION_METHOD",
    "CAPABILITY_DELEGATION",
    "KEY_AGREEMENT",
    "KEY_RELATIONSHIPS",
    "FutureTimeoutError",
    "KeyResolver",
    "ResolvedKey",
    "Signer",
    "call_with_timeout",
    "parse_key_uri",
]
