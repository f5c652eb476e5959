"""
Verifiable Document Issuer
==========================

Commits to content statement by statement and signs the result:

1. Decompose content into one statement per top-level attribute
2. Salt and hash every statement -> content hash set + nonce map
3. documentHash = H(sorted hash set + registry, authorization,
   evidence, validity window, holder, issuer, schema)
4. Issuer signs documentHash with its assertionMethod key
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any, List, Mapping, Sequence, Set, Union

from .adapters import FutureTimeoutError, Signer, call_with_timeout
from .config import ProtocolSettings, get_settings
from .content import DocumentContent, make_statements
from .exceptions import InvalidContentError, SigningFailedError, SigningUnavailableError
from .hashing import from_hex, get_hasher, hash_statements, to_hex
from .models import DidSignature, Document, compute_document_hash, identifier_from_hash

log = logging.getLogger(__name__)


def _isoformat(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def sign_with_timeout(signer: Signer, data: bytes, key_uri: str, timeout: float) -> DidSignature:
    """
    Ask the signer adapter for a signature within ``timeout`` seconds

    Raises:
        SigningFailedError: signer rejected the request or timed out
    """
    try:
        signature = call_with_timeout(signer.sign, data, key_uri, timeout=timeout)
    except FutureTimeoutError as e:
        raise SigningFailedError(f"Signer timed out after {timeout}s for {key_uri}") from e
    except SigningUnavailableError as e:
        raise SigningFailedError(f"Signer rejected request for {key_uri}: {e}") from e

    return DidSignature(signature=to_hex(signature), key_uri=key_uri)


class DocumentIssuer:
    """
    Issues selectively-disclosable Verifiable Documents

    Features:
    - Issue documents over arbitrary JSON-like contents
    - Reference earlier documents as evidence
    - Revoke documents
    - Issuer-side bookkeeping and statistics
    """

    def __init__(
        self,
        issuer_did: str,
        signer: Signer,
        did_manager: Any,
        settings: Optional[ProtocolSettings] = None
    ):
        """
        Args:
            issuer_did: DID of the issuing party
            signer: Signer adapter holding the issuer's private key
            did_manager: Resolves the issuer DID to pick its assertion key
            settings: Protocol settings (hash algorithm, signing timeout)
        """
        self.issuer_did = issuer_did
        self.signer = signer
        self.did_manager = did_manager
        self.settings = settings or get_settings()
        self._issued_documents: Dict[str, Document] = {}
        self._revoked_documents: Set[str] = set()

    # ==================== DOCUMENT ISSUANCE ====================

    def issue_document(
        self,
        holder_did: str,
        contents: Dict[str, Any],
        schema_id: Optional[str] = None,
        registry: Optional[str] = None,
        authorization: Optional[str] = None,
        evidence: Optional[Sequence[Union[Document, str]]] = None,
        validity_days: Optional[int] = None,
        valid_until: Optional[datetime] = None,
        metadata: Optional[Dict[str, Any]] = None,
        nonces: Optional[Mapping[str, str]] = None,
        key_uri: Optional[str] = None
    ) -> Document:
        """
        Issue a signed Document

        Args:
            holder_did: DID of the party the document is about
            contents: Attribute name -> JSON-like value
            schema_id: Optional schema identifier (prefixes statement keys)
            registry: Registry the document is anchored in
            authorization: Authorization under which the issuer acts
            evidence: Earlier documents (or their identifiers) this one relies on
            validity_days: Validity period, defaults to settings
            valid_until: Explicit expiry, overrides validity_days
            metadata: Uncommitted display metadata (templates, labels)
            nonces: Reuse existing nonces (digest -> nonce); unmatched statements get fresh ones
            key_uri: Issuer key to sign with, defaults to first assertionMethod key

        Returns:
            Signed Document

        Raises:
            InvalidContentError: content yields no statements or colliding hashes
            EncodingError: content holds an unsupported value
            SigningFailedError: the signer rejected the request or timed out
        """
        content = DocumentContent(
            holder=holder_did,
            issuer=self.issuer_did,
            contents=dict(contents),
            schema_id=schema_id
        )

        # Steps 1 + 2: statements -> salted hashes
        statements = make_statements(content)
        hasher = get_hasher(self.settings.HASH_ALGORITHM)
        hashed = hash_statements(list(statements.values()), nonces=nonces, hasher=hasher)

        content_hashes = [item.salted_hash for item in hashed]
        if len(set(content_hashes)) != len(content_hashes):
            raise InvalidContentError("Statements produced duplicate salted hashes")
        nonce_map = {item.digest: item.nonce for item in hashed}

        # Step 3: document hash over the sorted hash set and metadata
        created = datetime.now(timezone.utc)
        if valid_until is None:
            days = self.settings.DEFAULT_VALIDITY_DAYS if validity_days is None else validity_days
            valid_until = created + timedelta(days=days)

        created_at = _isoformat(created)
        valid_until_str = _isoformat(valid_until)
        evidence_ids = [
            item.identifier if isinstance(item, Document) else str(item)
            for item in (evidence or [])
        ]

        document_hash = compute_document_hash(
            content_hashes,
            content,
            registry,
            authorization,
            evidence_ids,
            created_at,
            valid_until_str,
            algorithm=self.settings.HASH_ALGORITHM
        )

        # Step 4: issuer signature
        signature = sign_with_timeout(
            self.signer,
            from_hex(document_hash),
            key_uri or self._assertion_key(),
            self.settings.SIGNING_TIMEOUT_SECONDS
        )

        document = Document(
            identifier=identifier_from_hash(document_hash),
            content=content,
            content_hashes=content_hashes,
            content_nonce_map=nonce_map,
            document_hash=document_hash,
            issuer_signature=signature,
            created_at=created_at,
            valid_until=valid_until_str,
            evidence_ids=evidence_ids,
            authorization=authorization,
            registry=registry,
            metadata=dict(metadata or {})
        )

        self._issued_documents[document.identifier] = document
        log.info(
            f"Issued document {document.identifier} for {holder_did} "
            f"({len(content_hashes)} statements)",
            extra={"document_id": document.identifier}
        )
        return document

    def _assertion_key(self) -> str:
        """First assertionMethod key of the issuer DID"""
        issuer_doc = self.did_manager.resolve(self.issuer_did)
        if not issuer_doc:
            raise SigningFailedError(f"Issuer DID not found: {self.issuer_did}")
        if not issuer_doc.assertion_method:
            raise SigningFailedError("Issuer has no assertion method keys")
        return issuer_doc.assertion_method[0]

    # ==================== REVOCATION ====================

    def revoke_document(self, identifier: str, reason: str = "") -> bool:
        """
        Revoke a document

        Args:
            identifier: The document identifier to revoke
            reason: Reason for revocation

        Returns:
            True if revoked successfully
        """
        if identifier not in self._issued_documents:
            return False

        self._revoked_documents.add(identifier)
        log.info(
            f"Revoked document {identifier}: {reason or 'no reason given'}",
            extra={"document_id": identifier}
        )
        return True

    def is_revoked(self, identifier: str) -> bool:
        """Check if document is revoked"""
        return identifier in self._revoked_documents

    def revoked_documents(self) -> List[str]:
        return sorted(self._revoked_documents)

    # ==================== UTILITIES ====================

    def get_document(self, identifier: str) -> Optional[Document]:
        """Get document by identifier"""
        return self._issued_documents.get(identifier)

    def list_documents(self, holder_did: Optional[str] = None) -> List[Document]:
        """List issued documents, optionally filtered by holder"""
        documents = list(self._issued_documents.values())

        if holder_did:
            documents = [doc for doc in documents if doc.content.holder == holder_did]

        return documents

    def get_statistics(self) -> Dict[str, int]:
        """Get issuer statistics"""
        return {
            "total_issued": len(self._issued_documents),
            "total_revoked": len(self._revoked_documents),
            "active": len(self._issued_documents) - len(self._revoked_documents)
        }
