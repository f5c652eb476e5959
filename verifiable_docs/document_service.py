"""
Verifiable Document Service
===========================

Wires key custody, the DID registry, issuance, presentation and
verification into one facade:
- Identity (DID) creation
- Document issuance and revocation
- Selective-disclosure presentations
- Verification with challenge management
"""

import uuid
from typing import Optional, Dict, Any, Iterable, Tuple

from .config import ProtocolSettings, get_settings
from .did_manager import DIDDocument, DIDManager
from .document_issuer import DocumentIssuer
from .document_verifier import DocumentVerifier, VerificationReport
from .exceptions import KeyNotFoundError
from .key_manager import KeyManager
from .models import Document, Presentation
from .presenter import Presenter


class DocumentService:
    """
    Main service class for verifiable document operations

    Provides a unified interface for:
    - DID management
    - Document issuance
    - Selective disclosure
    - Verification
    """

    def __init__(
        self,
        issuer_private_key: Optional[str] = None,
        settings: Optional[ProtocolSettings] = None
    ):
        """
        Initialize the service with its own issuer identity

        Args:
            issuer_private_key: Ethereum private key to use as the issuer key;
                a fresh Ed25519-based DID is created when omitted
            settings: Protocol settings shared by every component
        """
        self.settings = settings or get_settings()
        self.key_manager = KeyManager()
        self.did_manager = DIDManager(self.key_manager, default_method=self.settings.DID_METHOD)

        if issuer_private_key:
            self.issuer_did, self.issuer_doc, self.issuer_keys = \
                self.did_manager.create_did_from_ethereum(issuer_private_key)
        else:
            self.issuer_did, self.issuer_doc, self.issuer_keys = \
                self.did_manager.create_did()

        self.document_issuer = DocumentIssuer(
            issuer_did=self.issuer_did,
            signer=self.key_manager,
            did_manager=self.did_manager,
            settings=self.settings
        )
        self.presenter = Presenter(signer=self.key_manager, settings=self.settings)
        self.document_verifier = DocumentVerifier(
            key_resolver=self.did_manager,
            settings=self.settings,
            revocation_checker=self.document_issuer.is_revoked
        )
        self._issued_challenges: Dict[str, bool] = {}

    # ==================== IDENTITIES ====================

    def create_identity(self, include_eth_key: bool = False) -> Tuple[str, DIDDocument]:
        """
        Create a DID for a holder (or another issuer)

        Returns:
            Tuple of (did, did_document)
        """
        did, doc, _ = self.did_manager.create_did(include_eth_key=include_eth_key)
        return did, doc

    def resolve_did(self, did: str) -> Optional[DIDDocument]:
        """Resolve DID to DID Document"""
        return self.did_manager.resolve(did)

    # ==================== ISSUANCE ====================

    def issue_document(self, holder_did: str, contents: Dict[str, Any], **kwargs) -> Document:
        """
        Issue a document about ``holder_did`` signed by the service issuer

        Keyword arguments are passed to DocumentIssuer.issue_document.
        """
        return self.document_issuer.issue_document(holder_did, contents, **kwargs)

    def revoke_document(self, identifier: str, reason: str = "") -> bool:
        return self.document_issuer.revoke_document(identifier, reason)

    # ==================== PRESENTATION ====================

    def generate_challenge(self) -> str:
        """Issue a one-time verifier challenge"""
        challenge = str(uuid.uuid4())
        self._issued_challenges[challenge] = False
        return challenge

    def create_presentation(
        self,
        document: Document,
        attribute_names: Iterable[str],
        challenge: str,
        holder_key_uri: Optional[str] = None
    ) -> Presentation:
        """
        Build a presentation on behalf of the document's holder

        Args:
            document: Document to disclose from
            attribute_names: Attributes to reveal
            challenge: Verifier challenge
            holder_key_uri: Holder key, defaults to the first authentication key
        """
        if not holder_key_uri:
            holder_doc = self.did_manager.resolve(document.content.holder)
            if not holder_doc or not holder_doc.authentication:
                raise KeyNotFoundError(f"No authentication key for holder {document.content.holder}")
            holder_key_uri = holder_doc.authentication[0]

        return self.presenter.present(document, attribute_names, holder_key_uri, challenge)

    # ==================== VERIFICATION ====================

    def verify_presentation(
        self,
        presentation: Presentation,
        challenge: str,
        expected_signer: Optional[str] = None
    ) -> VerificationReport:
        """
        Verify a presentation against a challenge issued by this service

        A challenge is consumed by its first verification; later attempts
        with the same challenge are checked against an unknown challenge and
        fail the self-signature proof.
        """
        if self._issued_challenges.get(challenge) is False:
            self._issued_challenges[challenge] = True
            expected_challenge = challenge
        else:
            expected_challenge = ""

        return self.document_verifier.verify(
            presentation,
            expected_challenge,
            expected_signer=expected_signer or self.issuer_did
        )

    def verify_document(self, document: Document) -> VerificationReport:
        return self.document_verifier.verify_document(document, expected_signer=self.issuer_did)

    # ==================== LEDGER ANCHORING ====================

    def prepare_document_for_chain(self, document: Document) -> Dict[str, Any]:
        """
        Compact anchor record for an external ledger

        Only the commitment is exported; contents and nonces stay off-chain.
        """
        return {
            "identifier": document.identifier,
            "documentHash": document.document_hash,
            "issuer": document.content.issuer,
            "holder": document.content.holder,
            "registry": document.registry,
            "authorization": document.authorization,
            "validUntil": document.valid_until or ""
        }

    # ==================== STATISTICS ====================

    def get_statistics(self) -> Dict[str, Any]:
        """Get overall system statistics"""
        return {
            "issuer": {
                "did": self.issuer_did,
                "keys": list(self.issuer_keys.keys())
            },
            "dids": self.did_manager.get_statistics(),
            "documents": self.document_issuer.get_statistics(),
            "challenges": {
                "issued": len(self._issued_challenges),
                "consumed": sum(1 for used in self._issued_challenges.values() if used)
            }
        }
