"""
Verifiable Document Verifier
============================

Runs the proof pipeline against a Presentation (or a full Document):

1. Statement-Proof       disclosed statements + nonces reproduce the disclosed salted hashes
2. Digest-Proof          disclosed hashes belong to the committed hash set, and the
                         document hash commits to that set
3. Signature-Proof       issuer signature over the document hash, assertionMethod key
4. Self-Signature-Proof  holder signature over {disclosed hashes, challenge}

plus structure, validity-window and revocation checks. Every check is
evaluated and reported; the result is valid only if all of them pass.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Set, Union

from .adapters import ASSERTION_METHOD, AUTHENTICATION, KeyResolver, ResolvedKey
from .config import ProtocolSettings, get_settings
from .content import DocumentContent, make_statement
from .exceptions import (
    ChallengeMismatchError,
    DigestNotCommittedError,
    DocumentExpiredError,
    DocumentRevokedError,
    EmptyDisclosureError,
    HolderSignatureInvalidError,
    IssuerSignatureInvalidError,
    KeyNotAuthorizedError,
    MalformedDocumentError,
    StatementTamperedError,
    VerifiableDocumentError,
)
from .hashing import Hasher, from_hex, get_hasher
from .key_manager import KeyManager
from .models import (
    DidSignature,
    Document,
    Presentation,
    compute_document_hash,
    identifier_from_hash,
)
from .presenter import disclosure_message

log = logging.getLogger(__name__)

SignatureCheck = Callable[[ResolvedKey, bytes, bytes], bool]


def _now() -> datetime:
    return datetime.now(timezone.utc)


class VerificationCheck(Enum):
    """Checks run by the verifier, in order"""
    STRUCTURE = "structure"
    STATEMENT = "statement"
    DIGEST = "digest"
    SIGNATURE = "signature"
    SELF_SIGNATURE = "self_signature"
    VALIDITY = "validity"
    REVOCATION = "revocation"


PROOF_CHECKS = (
    VerificationCheck.STATEMENT,
    VerificationCheck.DIGEST,
    VerificationCheck.SIGNATURE,
    VerificationCheck.SELF_SIGNATURE,
)


@dataclass
class ProofResult:
    """Outcome of one check"""
    check: VerificationCheck
    verified: bool
    error: Optional[VerifiableDocumentError] = None

    @property
    def error_code(self) -> Optional[str]:
        return self.error.code if self.error else None

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "check": self.check.value,
            "verified": self.verified
        }
        if self.error:
            result["error"] = self.error.code
            result["message"] = str(self.error)
        return result


@dataclass
class VerificationReport:
    """Structured result of verifying a presentation or document"""
    identifier: str
    issuer: str
    holder: str
    results: List[ProofResult] = field(default_factory=list)
    verified_at: str = ""

    def __post_init__(self):
        if not self.verified_at:
            self.verified_at = _now().isoformat().replace("+00:00", "Z")

    @property
    def is_valid(self) -> bool:
        return bool(self.results) and all(result.verified for result in self.results)

    @property
    def checks(self) -> Dict[str, bool]:
        return {result.check.value: result.verified for result in self.results}

    @property
    def failed_checks(self) -> List[VerificationCheck]:
        return [result.check for result in self.results if not result.verified]

    @property
    def errors(self) -> List[str]:
        return [
            f"{result.check.value}: {result.error}"
            for result in self.results
            if result.error
        ]

    def result_for(self, check: VerificationCheck) -> Optional[ProofResult]:
        for result in self.results:
            if result.check == check:
                return result
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "identifier": self.identifier,
            "issuer": self.issuer,
            "holder": self.holder,
            "isValid": self.is_valid,
            "checks": self.checks,
            "proofs": [result.to_dict() for result in self.results],
            "errors": self.errors,
            "verifiedAt": self.verified_at
        }


class DocumentVerifier:
    """
    Verifies Presentations and Documents

    Features:
    - Four-proof verification pipeline
    - Expected-signer and trusted-issuer constraints
    - Validity window and revocation checks
    - Full per-check report, never a bare boolean
    """

    def __init__(
        self,
        key_resolver: KeyResolver,
        settings: Optional[ProtocolSettings] = None,
        trusted_issuers: Optional[Iterable[str]] = None,
        signature_check: Optional[SignatureCheck] = None,
        revocation_checker: Optional[Callable[[str], bool]] = None
    ):
        """
        Args:
            key_resolver: Resolves key URIs (DIDManager or a ledger adapter)
            settings: Protocol settings, must match the issuer's hash algorithm
            trusted_issuers: If given, only these issuer DIDs are accepted
            signature_check: (key, message, signature) -> bool, defaults to KeyManager
            revocation_checker: External status lookup by document identifier
        """
        self.key_resolver = key_resolver
        self.settings = settings or get_settings()
        self.trusted_issuers: Set[str] = set(trusted_issuers or [])
        self.signature_check = signature_check or KeyManager.verify_signature
        self.revocation_checker = revocation_checker
        self._revocation_lists: Dict[str, Set[str]] = {}

    @property
    def hasher(self) -> Hasher:
        return get_hasher(self.settings.HASH_ALGORITHM)

    # ==================== VERIFICATION ====================

    def verify(
        self,
        presentation: Presentation,
        challenge: str,
        expected_signer: Optional[str] = None,
        check_validity: bool = True,
        check_revocation: bool = True
    ) -> VerificationReport:
        """
        Verify a Presentation against the challenge the verifier issued

        Args:
            presentation: The holder's presentation
            challenge: Challenge issued to the holder for this session
            expected_signer: Issuer DID the document must be signed by
            check_validity: Whether to enforce validUntil
            check_revocation: Whether to consult revocation lists

        Returns:
            VerificationReport listing every check
        """
        report = self._new_report(presentation)
        content = presentation.content

        self._run(report, VerificationCheck.STRUCTURE,
                  lambda: self._check_structure(presentation))
        self._run(report, VerificationCheck.STATEMENT,
                  lambda: self._statement_proof(
                      content, presentation.content_nonce_map, presentation.disclosed_hashes))
        self._run(report, VerificationCheck.DIGEST,
                  lambda: self._digest_proof(presentation, presentation.disclosed_hashes))
        self._run(report, VerificationCheck.SIGNATURE,
                  lambda: self._signature_proof(presentation, expected_signer))
        self._run(report, VerificationCheck.SELF_SIGNATURE,
                  lambda: self._self_signature_proof(presentation, challenge))
        self._run_status_checks(report, presentation, check_validity, check_revocation)

        self._log_report(report)
        return report

    def verify_document(
        self,
        document: Document,
        expected_signer: Optional[str] = None,
        check_validity: bool = True,
        check_revocation: bool = True
    ) -> VerificationReport:
        """
        Verify a full Document (every statement disclosed, no holder proof)

        Returns:
            VerificationReport without a self-signature entry
        """
        report = self._new_report(document)

        self._run(report, VerificationCheck.STRUCTURE,
                  lambda: self._check_structure(document))
        self._run(report, VerificationCheck.STATEMENT,
                  lambda: self._statement_proof(
                      document.content, document.content_nonce_map, document.content_hashes))
        self._run(report, VerificationCheck.DIGEST,
                  lambda: self._digest_proof(document, document.content_hashes))
        self._run(report, VerificationCheck.SIGNATURE,
                  lambda: self._signature_proof(document, expected_signer))
        self._run_status_checks(report, document, check_validity, check_revocation)

        self._log_report(report)
        return report

    def verify_json(self, presentation_json: str, challenge: str, **kwargs) -> VerificationReport:
        """Verify a presentation from its JSON form"""
        try:
            presentation = Presentation.from_json(presentation_json)
        except MalformedDocumentError as e:
            report = VerificationReport(identifier="", issuer="", holder="")
            report.results.append(ProofResult(VerificationCheck.STRUCTURE, False, e))
            return report
        return self.verify(presentation, challenge, **kwargs)

    # ==================== PROOFS ====================

    def _statement_proof(
        self,
        content: DocumentContent,
        nonce_map: Dict[str, str],
        expected_hashes: Sequence[str]
    ) -> None:
        if len(content.contents) < self.settings.MIN_DISCLOSED_STATEMENTS:
            raise EmptyDisclosureError("Presentation discloses too few statements")

        hasher = self.hasher
        recomputed = []
        for name in sorted(content.contents):
            digest = hasher(make_statement(content, name))
            nonce = nonce_map.get(digest)
            if nonce is None:
                raise StatementTamperedError(f"No nonce matches the statement for attribute {name}")
            recomputed.append(hasher(digest, nonce))

        if len(nonce_map) != len(content.contents):
            raise StatementTamperedError("Nonce map does not correspond to the disclosed attributes")
        if sorted(recomputed) != sorted(expected_hashes):
            raise StatementTamperedError("Recomputed salted hashes differ from the disclosed hashes")

    def _digest_proof(self, record: Union[Document, Presentation], disclosed_hashes: Sequence[str]) -> None:
        committed = set(record.content_hashes)
        if len(committed) != len(record.content_hashes):
            raise DigestNotCommittedError("Committed hash set contains duplicates")

        missing = [value for value in disclosed_hashes if value not in committed]
        if missing:
            raise DigestNotCommittedError(
                f"{len(missing)} disclosed hash(es) not in the committed set: {missing[0]}"
            )

        expected = compute_document_hash(
            record.content_hashes,
            record.content,
            record.registry,
            record.authorization,
            record.evidence_ids,
            record.created_at,
            record.valid_until,
            algorithm=self.settings.HASH_ALGORITHM
        )
        if expected != record.document_hash:
            raise DigestNotCommittedError("Document hash does not commit to the content hash set")

    def _signature_proof(self, record: Union[Document, Presentation], expected_signer: Optional[str]) -> None:
        signature = record.issuer_signature
        key = self.key_resolver.resolve_key(signature.key_uri)
        issuer = record.content.issuer

        if not key.allows(ASSERTION_METHOD):
            raise KeyNotAuthorizedError(f"Key {key.key_uri} is not an assertionMethod key")
        if key.controller != issuer:
            raise KeyNotAuthorizedError(f"Key {key.key_uri} is not controlled by issuer {issuer}")
        if expected_signer and key.controller != expected_signer:
            raise KeyNotAuthorizedError(f"Document signed by {key.controller}, expected {expected_signer}")
        if self.trusted_issuers and key.controller not in self.trusted_issuers:
            raise KeyNotAuthorizedError(f"Issuer {key.controller} is not trusted")

        try:
            message = from_hex(record.document_hash)
        except ValueError as e:
            raise IssuerSignatureInvalidError(f"Document hash is not hex: {record.document_hash}") from e

        if not self._signature_valid(key, message, signature):
            raise IssuerSignatureInvalidError("Issuer signature over document hash is invalid")

    def _self_signature_proof(self, presentation: Presentation, challenge: str) -> None:
        if presentation.challenge != challenge:
            raise ChallengeMismatchError("Presentation is bound to a different challenge")

        signature = presentation.holder_signature
        key = self.key_resolver.resolve_key(signature.key_uri)
        holder = presentation.content.holder

        if not key.allows(AUTHENTICATION):
            raise KeyNotAuthorizedError(f"Key {key.key_uri} is not an authentication key")
        if key.controller != holder:
            raise KeyNotAuthorizedError(f"Key {key.key_uri} is not controlled by holder {holder}")

        message = disclosure_message(presentation.disclosed_hashes, challenge)
        if not self._signature_valid(key, message, signature):
            raise HolderSignatureInvalidError("Holder signature over challenge is invalid")

    def _signature_valid(self, key: ResolvedKey, message: bytes, signature: DidSignature) -> bool:
        try:
            signature_bytes = from_hex(signature.signature)
        except ValueError:
            return False
        return self.signature_check(key, message, signature_bytes)

    # ==================== STRUCTURE & STATUS ====================

    def _check_structure(self, record: Union[Document, Presentation]) -> None:
        errors = []

        if not record.content.issuer:
            errors.append("missing issuer")
        if not record.content.holder:
            errors.append("missing holder")
        if not record.content_hashes:
            errors.append("empty content hash set")
        if not record.issuer_signature.signature:
            errors.append("missing issuer signature")
        if record.identifier != identifier_from_hash(record.document_hash):
            errors.append("identifier does not match document hash")
        if isinstance(record, Presentation) and not record.holder_signature.signature:
            errors.append("missing holder signature")

        if errors:
            raise MalformedDocumentError("; ".join(errors))

    def _run_status_checks(
        self,
        report: VerificationReport,
        record: Union[Document, Presentation],
        check_validity: bool,
        check_revocation: bool
    ) -> None:
        if check_validity:
            self._run(report, VerificationCheck.VALIDITY, lambda: self._check_validity(record))
        if check_revocation:
            self._run(report, VerificationCheck.REVOCATION, lambda: self._check_revocation(record))

    def _check_validity(self, record: Union[Document, Presentation]) -> None:
        if not record.valid_until:
            return
        try:
            valid_until = datetime.fromisoformat(record.valid_until.replace("Z", "+00:00"))
        except ValueError as e:
            raise MalformedDocumentError(f"Invalid validUntil: {e}") from e
        if valid_until.tzinfo is None:
            valid_until = valid_until.replace(tzinfo=timezone.utc)

        if _now() > valid_until:
            raise DocumentExpiredError(f"Document expired at {record.valid_until}")

    def _check_revocation(self, record: Union[Document, Presentation]) -> None:
        revoked = record.identifier in self._revocation_lists.get(record.content.issuer, set())
        if not revoked and self.revocation_checker:
            revoked = bool(self.revocation_checker(record.identifier))
        if revoked:
            raise DocumentRevokedError(f"Document {record.identifier} has been revoked")

    # ==================== HELPERS ====================

    @staticmethod
    def _new_report(record: Union[Document, Presentation]) -> VerificationReport:
        return VerificationReport(
            identifier=record.identifier,
            issuer=record.content.issuer,
            holder=record.content.holder
        )

    @staticmethod
    def _run(report: VerificationReport, check: VerificationCheck, proof: Callable[[], None]) -> None:
        """
        Record one check

        Typed failures become a failed ProofResult tagged with the stage.
        Any other error (an unreachable resolver, say) propagates unchanged,
        tagged with the same stage.
        """
        try:
            proof()
        except VerifiableDocumentError as e:
            e.stage = check.value
            report.results.append(ProofResult(check, False, e))
            return
        except Exception as e:
            e.stage = check.value
            log.error(
                f"{check.value} check aborted for {report.identifier}: {e!r}",
                extra={"document_id": report.identifier, "check": check.value}
            )
            raise
        report.results.append(ProofResult(check, True))

    @staticmethod
    def _log_report(report: VerificationReport) -> None:
        if report.is_valid:
            log.info(
                f"Verified {report.identifier}: all {len(report.results)} checks passed",
                extra={"document_id": report.identifier}
            )
        else:
            log.warning(
                f"Verification failed for {report.identifier}: {report.errors}",
                extra={
                    "document_id": report.identifier,
                    "check": ",".join(check.value for check in report.failed_checks)
                }
            )

    # ==================== TRUST MANAGEMENT ====================

    def add_trusted_issuer(self, issuer_did: str):
        """Add issuer to trusted list"""
        self.trusted_issuers.add(issuer_did)

    def remove_trusted_issuer(self, issuer_did: str):
        """Remove issuer from trusted list"""
        self.trusted_issuers.discard(issuer_did)

    # ==================== REVOCATION MANAGEMENT ====================

    def add_revocation(self, issuer_did: str, identifier: str):
        """Add document to revocation list"""
        if issuer_did not in self._revocation_lists:
            self._revocation_lists[issuer_did] = set()
        self._revocation_lists[issuer_did].add(identifier)

    def sync_revocation_list(self, issuer_did: str, revoked_ids: List[str]):
        """Sync revocation list from issuer"""
        self._revocation_lists[issuer_did] = set(revoked_ids)
