"""
Verifiable Document data model
==============================

Document      - issuer-signed commitment over every statement of a content
Presentation  - holder-built partial disclosure bound to a challenge

Both are frozen and exchanged as JSON with camelCase field names; hashes
and signatures are 0x-prefixed hex.
"""

import copy
import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from .content import DocumentContent
from .exceptions import MalformedDocumentError
from .hashing import DEFAULT_HASH_ALGORITHM, HEX_PREFIX, hash_object_as_hex_str

DOCUMENT_PREFIX = "doc:vdoc:"


def _text(data: Dict[str, Any], key: str, optional: bool = False) -> Optional[str]:
    value = data.get(key) if optional else data[key]
    if value is None and optional:
        return None
    if not isinstance(value, str):
        raise MalformedDocumentError(f"{key} must be a string, got {type(value).__name__}")
    return value


def _text_list(data: Dict[str, Any], key: str, optional: bool = False) -> List[str]:
    value = (data.get(key) or []) if optional else data[key]
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise MalformedDocumentError(f"{key} must be a list of strings")
    return list(value)


def _text_map(data: Dict[str, Any], key: str) -> Dict[str, str]:
    value = data[key]
    if not isinstance(value, dict) or not all(isinstance(item, str) for item in value.values()):
        raise MalformedDocumentError(f"{key} must map strings to strings")
    return dict(value)


@dataclass(frozen=True)
class DidSignature:
    """Signature plus the DID key URI that produced it"""
    signature: str  # 0x-hex
    key_uri: str    # did:<method>:<id>#<fragment>

    def to_dict(self) -> Dict[str, Any]:
        return {
            "signature": self.signature,
            "keyUri": self.key_uri
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DidSignature":
        try:
            # older records name the key reference keyId
            return cls(
                signature=_text(data, "signature"),
                key_uri=_text(data, "keyUri") if data.get("keyUri") else _text(data, "keyId")
            )
        except (AttributeError, KeyError, TypeError) as e:
            raise MalformedDocumentError(f"Invalid DID signature: {e}") from e


@dataclass(frozen=True)
class HolderSignature(DidSignature):
    """Holder self-signature, bound to a verifier challenge"""
    challenge: str = ""

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result["challenge"] = self.challenge
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HolderSignature":
        base = DidSignature.from_dict(data)
        return cls(
            signature=base.signature,
            key_uri=base.key_uri,
            challenge=_text(data, "challenge", optional=True) or ""
        )


def commitment_payload(
    content_hashes: Sequence[str],
    content: DocumentContent,
    registry: Optional[str],
    authorization: Optional[str],
    evidence_ids: Sequence[str],
    created_at: str,
    valid_until: Optional[str]
) -> Dict[str, Any]:
    """Everything the document hash commits to; the hash set is sorted"""
    return {
        "contentHashes": sorted(content_hashes),
        "registry": registry,
        "authorization": authorization,
        "evidenceIds": list(evidence_ids),
        "createdAt": created_at,
        "validUntil": valid_until,
        "holder": content.holder,
        "issuer": content.issuer,
        "schemaId": content.schema_id
    }


def compute_document_hash(
    content_hashes: Sequence[str],
    content: DocumentContent,
    registry: Optional[str],
    authorization: Optional[str],
    evidence_ids: Sequence[str],
    created_at: str,
    valid_until: Optional[str],
    algorithm: str = DEFAULT_HASH_ALGORITHM
) -> str:
    """Digest over the sorted content hash set and document metadata"""
    payload = commitment_payload(
        content_hashes, content, registry, authorization,
        evidence_ids, created_at, valid_until
    )
    return hash_object_as_hex_str(payload, algorithm=algorithm)


def identifier_from_hash(document_hash: str) -> str:
    """Document identifier derived from its hash"""
    if document_hash.startswith(HEX_PREFIX):
        document_hash = document_hash[len(HEX_PREFIX):]
    return DOCUMENT_PREFIX + document_hash


@dataclass(frozen=True)
class Document:
    """
    Issuer-signed document

    Immutable once built; revocation state is tracked outside the record.
    """
    identifier: str
    content: DocumentContent
    content_hashes: List[str]
    content_nonce_map: Dict[str, str]  # digest -> nonce
    document_hash: str
    issuer_signature: DidSignature
    created_at: str
    valid_until: Optional[str] = None
    evidence_ids: List[str] = field(default_factory=list)
    authorization: Optional[str] = None
    registry: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "identifier": self.identifier,
            "content": self.content.to_dict(),
            "contentHashes": list(self.content_hashes),
            "contentNonceMap": dict(self.content_nonce_map),
            "evidenceIds": list(self.evidence_ids),
            "authorization": self.authorization,
            "registry": self.registry,
            "createdAt": self.created_at,
            "validUntil": self.valid_until,
            "documentHash": self.document_hash,
            "issuerSignature": self.issuer_signature.to_dict(),
            "metadata": copy.deepcopy(self.metadata)
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Document":
        try:
            return cls(
                identifier=_text(data, "identifier"),
                content=DocumentContent.from_dict(data["content"]),
                content_hashes=_text_list(data, "contentHashes"),
                content_nonce_map=_text_map(data, "contentNonceMap"),
                document_hash=_text(data, "documentHash"),
                issuer_signature=DidSignature.from_dict(data["issuerSignature"]),
                created_at=_text(data, "createdAt"),
                valid_until=_text(data, "validUntil", optional=True),
                evidence_ids=_text_list(data, "evidenceIds", optional=True),
                authorization=_text(data, "authorization", optional=True),
                registry=_text(data, "registry", optional=True),
                metadata=dict(data.get("metadata") or {})
            )
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise MalformedDocumentError(f"Invalid document: {e}") from e

    @classmethod
    def from_json(cls, json_str: str) -> "Document":
        try:
            data = json.loads(json_str)
        except json.JSONDecodeError as e:
            raise MalformedDocumentError(f"Invalid JSON: {e}") from e
        return cls.from_dict(data)


@dataclass(frozen=True)
class Presentation:
    """
    Selective disclosure of a Document

    Carries the full committed hash set, but contents and nonces only for
    the disclosed statements, plus the holder's challenge-bound signature
    over ``disclosed_hashes``.
    """
    identifier: str
    content: DocumentContent
    content_hashes: List[str]
    content_nonce_map: Dict[str, str]
    disclosed_hashes: List[str]
    document_hash: str
    issuer_signature: DidSignature
    holder_signature: HolderSignature
    created_at: str
    valid_until: Optional[str] = None
    evidence_ids: List[str] = field(default_factory=list)
    authorization: Optional[str] = None
    registry: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def challenge(self) -> str:
        return self.holder_signature.challenge

    def to_dict(self) -> Dict[str, Any]:
        return {
            "identifier": self.identifier,
            "content": self.content.to_dict(),
            "contentHashes": list(self.content_hashes),
            "contentNonceMap": dict(self.content_nonce_map),
            "disclosedHashes": list(self.disclosed_hashes),
            "evidenceIds": list(self.evidence_ids),
            "authorization": self.authorization,
            "registry": self.registry,
            "createdAt": self.created_at,
            "validUntil": self.valid_until,
            "documentHash": self.document_hash,
            "issuerSignature": self.issuer_signature.to_dict(),
            "holderSignature": self.holder_signature.to_dict(),
            "metadata": copy.deepcopy(self.metadata)
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Presentation":
        try:
            return cls(
                identifier=_text(data, "identifier"),
                content=DocumentContent.from_dict(data["content"]),
                content_hashes=_text_list(data, "contentHashes"),
                content_nonce_map=_text_map(data, "contentNonceMap"),
                disclosed_hashes=_text_list(data, "disclosedHashes"),
                document_hash=_text(data, "documentHash"),
                issuer_signature=DidSignature.from_dict(data["issuerSignature"]),
                holder_signature=HolderSignature.from_dict(data["holderSignature"]),
                created_at=_text(data, "createdAt"),
                valid_until=_text(data, "validUntil", optional=True),
                evidence_ids=_text_list(data, "evidenceIds", optional=True),
                authorization=_text(data, "authorization", optional=True),
                registry=_text(data, "registry", optional=True),
                metadata=dict(data.get("metadata") or {})
            )
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise MalformedDocumentError(f"Invalid presentation: {e}") from e

    @classmethod
    def from_json(cls, json_str: str) -> "Presentation":
        try:
            data = json.loads(json_str)
        except json.JSONDecodeError as e:
            raise MalformedDocumentError(f"Invalid JSON: {e}") from e
        return cls.from_dict(data)
