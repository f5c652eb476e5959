"""
DID Manager - In-memory DID registry and key resolver

DID Format: did:vdoc:<unique-identifier>

Holds W3C-style DID Documents and resolves key URIs to public key
material plus the verification relationships (purposes) the key serves.
This is the reference KeyResolver; a ledger-backed resolver replaces it
in deployment.

Reference: https://www.w3.org/TR/did-core/
"""

import json
import logging
import secrets
from typing import Optional, List, Dict, Any, Set, Tuple, Union
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from .adapters import (
    ASSERTION_METHOD,
    AUTHENTICATION,
    CAPABILITY_DELEGATION,
    KEY_AGREEMENT,
    ResolvedKey,
    parse_key_uri,
)
from .exceptions import KeyNotFoundError, KeyRevokedOrDeactivatedError, MalformedDocumentError
from .key_manager import KeyManager, KeyPair

log = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class DIDMethod(Enum):
    """Supported DID methods"""
    VDOC = "vdoc"  # Our method
    KEY = "key"    # did:key method
    ETH = "ethr"   # Ethereum DID


@dataclass
class DIDDocument:
    """
    W3C DID Document

    Reference: https://www.w3.org/TR/did-core/#core-properties
    """
    id: str  # The DID
    controller: Optional[str] = None
    verification_method: List[Dict] = field(default_factory=list)
    authentication: List[str] = field(default_factory=list)
    assertion_method: List[str] = field(default_factory=list)
    key_agreement: List[str] = field(default_factory=list)
    capability_delegation: List[str] = field(default_factory=list)
    created: str = ""
    updated: str = ""
    deactivated: bool = False

    def __post_init__(self):
        if not self.controller:
            self.controller = self.id
        if not self.created:
            self.created = _now()
        if not self.updated:
            self.updated = self.created

    def relationships(self) -> Dict[str, List[str]]:
        return {
            AUTHENTICATION: self.authentication,
            ASSERTION_METHOD: self.assertion_method,
            CAPABILITY_DELEGATION: self.capability_delegation,
            KEY_AGREEMENT: self.key_agreement,
        }

    def purposes_of(self, key_id: str) -> Tuple[str, ...]:
        """Verification relationships a key appears in"""
        return tuple(
            name for name, key_ids in self.relationships().items()
            if key_id in key_ids
        )

    def find_verification_method(self, key_id: str) -> Optional[Dict]:
        for vm in self.verification_method:
            if vm.get("id") == key_id:
                return vm
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to W3C DID Document JSON format"""
        doc = {
            "@context": [
                "https://www.w3.org/ns/did/v1",
                "https://w3id.org/security/suites/ed25519-2020/v1",
                "https://w3id.org/security/suites/secp256k1-2019/v1"
            ],
            "id": self.id,
            "controller": self.controller,
            "verificationMethod": self.verification_method,
            "authentication": self.authentication,
            "assertionMethod": self.assertion_method,
        }

        if self.key_agreement:
            doc["keyAgreement"] = self.key_agreement
        if self.capability_delegation:
            doc["capabilityDelegation"] = self.capability_delegation

        doc["created"] = self.created
        doc["updated"] = self.updated

        if self.deactivated:
            doc["deactivated"] = self.deactivated

        return doc

    def to_json(self, indent: int = 2) -> str:
        """Convert to JSON string"""
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DIDDocument":
        """Create DIDDocument from dictionary"""
        return cls(
            id=data["id"],
            controller=data.get("controller"),
            verification_method=data.get("verificationMethod", []),
            authentication=data.get("authentication", []),
            assertion_method=data.get("assertionMethod", []),
            key_agreement=data.get("keyAgreement", []),
            capability_delegation=data.get("capabilityDelegation", []),
            created=data.get("created", ""),
            updated=data.get("updated", ""),
            deactivated=data.get("deactivated", False)
        )


class DIDManager:
    """
    Manages DID creation, resolution, and updates

    Features:
    - Create new DIDs with cryptographic keys
    - Resolve DIDs to DID Documents
    - Resolve key URIs to public keys and purposes (KeyResolver)
    - Revoke keys and deactivate DIDs
    """

    def __init__(self, key_manager: Optional[KeyManager] = None, default_method: str = DIDMethod.VDOC.value):
        self.key_manager = key_manager or KeyManager()
        self.default_method = default_method
        self._documents: Dict[str, DIDDocument] = {}
        self._revoked_keys: Set[str] = set()

    # ==================== DID CREATION ====================

    def create_did(
        self,
        method: Optional[Union[str, DIDMethod]] = None,
        include_eth_key: bool = True
    ) -> Tuple[str, DIDDocument, Dict[str, KeyPair]]:
        """
        Create a new DID with associated keys

        The Ed25519 key serves authentication and assertionMethod; the
        optional secp256k1 key serves authentication only.

        Args:
            method: DID method name, defaults to the manager's method
            include_eth_key: Whether to include a secp256k1 key

        Returns:
            Tuple of (did, did_document, keys)
        """
        if isinstance(method, DIDMethod):
            method = method.value
        did = f"did:{method or self.default_method}:{secrets.token_hex(16)}"

        keys = {}
        verification_methods = []
        authentication = []
        assertion_method = []

        ed_key = self.key_manager.generate_ed25519_keypair(did)
        keys[ed_key.key_id] = ed_key
        verification_methods.append(ed_key.to_verification_method())
        authentication.append(ed_key.key_id)
        assertion_method.append(ed_key.key_id)

        if include_eth_key:
            eth_key = self.key_manager.generate_secp256k1_keypair(did)
            keys[eth_key.key_id] = eth_key
            verification_methods.append(eth_key.to_verification_method())
            authentication.append(eth_key.key_id)

        did_doc = DIDDocument(
            id=did,
            verification_method=verification_methods,
            authentication=authentication,
            assertion_method=assertion_method
        )

        self._documents[did] = did_doc
        log.info(f"Created DID {did} with {len(keys)} key(s)")
        return did, did_doc, keys

    def create_did_from_ethereum(self, private_key: str) -> Tuple[str, DIDDocument, Dict[str, KeyPair]]:
        """
        Create a DID whose assertion key is an existing Ethereum key

        Args:
            private_key: Ethereum private key (hex with 0x prefix)

        Returns:
            Tuple of (did, did_document, keys)
        """
        did = f"did:{DIDMethod.ETH.value}:{secrets.token_hex(16)}"

        eth_key = self.key_manager.generate_from_ethereum_key(did, private_key)
        did_doc = DIDDocument(
            id=did,
            verification_method=[eth_key.to_verification_method()],
            authentication=[eth_key.key_id],
            assertion_method=[eth_key.key_id]
        )

        self._documents[did] = did_doc
        return did, did_doc, {eth_key.key_id: eth_key}

    # ==================== DID RESOLUTION ====================

    def resolve(self, did: str) -> Optional[DIDDocument]:
        """
        Resolve DID to DID Document

        Args:
            did: The DID to resolve

        Returns:
            DIDDocument if found and not deactivated, None otherwise
        """
        doc = self._documents.get(did)
        if doc and doc.deactivated:
            return None
        return doc

    def resolve_key(self, key_uri: str) -> ResolvedKey:
        """
        Resolve a DID key URI to its public key material

        Args:
            key_uri: did:<method>:<id>#<fragment>

        Returns:
            ResolvedKey with controller and purposes

        Raises:
            KeyNotFoundError: unknown DID or key
            KeyRevokedOrDeactivatedError: DID deactivated or key revoked
        """
        did, _ = parse_key_uri(key_uri)

        doc = self._documents.get(did)
        if not doc:
            raise KeyNotFoundError(f"DID not found: {did}")
        if doc.deactivated:
            raise KeyRevokedOrDeactivatedError(f"DID has been deactivated: {did}")
        if key_uri in self._revoked_keys:
            raise KeyRevokedOrDeactivatedError(f"Key has been revoked: {key_uri}")

        vm = doc.find_verification_method(key_uri)
        if not vm:
            raise KeyNotFoundError(f"Verification method not found: {key_uri}")

        public_key = vm.get("publicKeyHex") or vm.get("ethereumAddress")
        if not public_key:
            raise KeyNotFoundError(f"Verification method has no public key: {key_uri}")

        return ResolvedKey(
            key_uri=key_uri,
            controller=vm.get("controller") or doc.controller,
            key_type=vm.get("type", ""),
            public_key=public_key,
            purposes=doc.purposes_of(key_uri)
        )

    # ==================== DID UPDATES ====================

    def update_did(
        self,
        did: str,
        add_verification_methods: Optional[List[Dict]] = None,
        remove_verification_method_ids: Optional[List[str]] = None
    ) -> bool:
        """
        Update a DID Document

        Removed verification methods are also dropped from every
        verification relationship.

        Returns:
            True if successful
        """
        doc = self._documents.get(did)
        if not doc:
            return False

        if add_verification_methods:
            for vm in add_verification_methods:
                doc.verification_method.append(vm)

        if remove_verification_method_ids:
            removed = set(remove_verification_method_ids)
            doc.verification_method = [
                vm for vm in doc.verification_method
                if vm.get("id") not in removed
            ]
            for key_ids in doc.relationships().values():
                key_ids[:] = [key_id for key_id in key_ids if key_id not in removed]

        doc.updated = _now()
        return True

    def add_verification_method(self, did: str, key: KeyPair, purposes: Optional[List[str]] = None) -> bool:
        """Add new verification method to DID Document under the given relationships"""
        doc = self._documents.get(did)
        if not doc:
            return False

        doc.verification_method.append(key.to_verification_method())
        relationships = doc.relationships()
        for purpose in purposes or []:
            if purpose not in relationships:
                raise ValueError(f"Unknown verification relationship: {purpose}")
            relationships[purpose].append(key.key_id)

        doc.updated = _now()
        return True

    def revoke_key(self, key_uri: str) -> bool:
        """Revoke a single key; resolution of it fails from now on"""
        did, _ = parse_key_uri(key_uri)
        doc = self._documents.get(did)
        if not doc or not doc.find_verification_method(key_uri):
            return False

        self._revoked_keys.add(key_uri)
        doc.updated = _now()
        log.info(f"Revoked key {key_uri}")
        return True

    def deactivate(self, did: str) -> bool:
        """Deactivate a DID"""
        doc = self._documents.get(did)
        if not doc:
            return False

        doc.deactivated = True
        doc.updated = _now()
        log.info(f"Deactivated DID {did}")
        return True

    # ==================== UTILITIES ====================

    def export_document(self, did: str) -> Optional[str]:
        """Export DID Document as JSON"""
        doc = self._documents.get(did)
        if doc:
            return doc.to_json()
        return None

    def import_document(self, json_str: str) -> DIDDocument:
        """
        Import DID Document from JSON

        Raises:
            MalformedDocumentError: if the JSON is not a DID Document
        """
        try:
            data = json.loads(json_str)
            doc = DIDDocument.from_dict(data)
        except (json.JSONDecodeError, KeyError, TypeError) as e:
            raise MalformedDocumentError(f"Failed to import DID Document: {e}") from e

        self._documents[doc.id] = doc
        return doc

    def list_dids(self) -> List[str]:
        """List all managed DIDs"""
        return list(self._documents.keys())

    def get_statistics(self) -> Dict[str, int]:
        """Get statistics about managed DIDs"""
        active = sum(1 for doc in self._documents.values() if not doc.deactivated)
        return {
            "total": len(self._documents),
            "active": active,
            "deactivated": len(self._documents) - active,
            "revoked_keys": len(self._revoked_keys)
        }
