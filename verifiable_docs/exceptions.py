"""
Verifiable Documents - Error Taxonomy
=====================================

Every failure surfaced by the package is a subclass of
VerifiableDocumentError and carries a stable ``code`` string that
verification reports expose to callers.

Families:
- EncodingError: content that cannot be canonicalized
- CommitmentError: empty decomposition, signing failures
- DisclosureError: unknown attribute, empty disclosure
- ProofError: a check in the verification pipeline failed
- KeyResolutionError: the key resolver could not supply a usable key
"""

from typing import Optional


class VerifiableDocumentError(Exception):
    """Base exception for verifiable document errors."""
    code = "error"


class MalformedDocumentError(VerifiableDocumentError):
    """Document or presentation record is missing fields or badly typed."""
    code = "malformed"


# ==================== ENCODING ====================

class EncodingError(VerifiableDocumentError):
    """Content contains a value the canonical encoder does not support."""
    code = "encoding_error"


# ==================== COMMITMENT ====================

class CommitmentError(VerifiableDocumentError):
    """Base exception for document issuance errors."""
    code = "commitment_error"


class InvalidContentError(CommitmentError):
    """Content decomposes into no statements (or into colliding ones)."""
    code = "invalid_content"


class SigningFailedError(CommitmentError):
    """The external signer rejected the request or timed out."""
    code = "signing_failed"


# ==================== DISCLOSURE ====================

class DisclosureError(VerifiableDocumentError):
    """Base exception for presentation construction errors."""
    code = "disclosure_error"


class UnknownAttributeError(DisclosureError):
    """A requested attribute has no statement in the document."""
    code = "unknown_attribute"

    def __init__(self, attribute: str):
        super().__init__(f"Attribute not present in document: {attribute}")
        self.attribute = attribute


class EmptyDisclosureError(DisclosureError):
    """Too few statements were selected for disclosure."""
    code = "empty_disclosure"


# ==================== KEY RESOLUTION ====================

class KeyResolutionError(VerifiableDocumentError):
    """Base exception for key resolver failures."""
    code = "key_resolution_error"


class KeyNotFoundError(KeyResolutionError):
    """Key reference could not be resolved."""
    code = "key_not_found"


class KeyRevokedOrDeactivatedError(KeyResolutionError):
    """Key was revoked or its controlling DID has been deactivated."""
    code = "key_revoked_or_deactivated"


class SigningUnavailableError(VerifiableDocumentError):
    """Signer is unreachable or the key may not be used for signing."""
    code = "signing_unavailable"


# ==================== PROOFS ====================

class ProofError(VerifiableDocumentError):
    """
    A verification check failed.

    ``stage`` names the check (see document_verifier.VerificationCheck)
    and is filled in by the verifier when the error is recorded.
    """
    code = "proof_error"

    def __init__(self, message: str = "", stage: Optional[str] = None):
        super().__init__(message)
        self.stage = stage


class StatementTamperedError(ProofError):
    """Disclosed statements do not reproduce the disclosed salted hashes."""
    code = "statement_tampered"


class DigestNotCommittedError(ProofError):
    """A disclosed hash is not part of the issuer-committed hash set."""
    code = "digest_not_committed"


class IssuerSignatureInvalidError(ProofError):
    """Issuer signature over the document hash does not verify."""
    code = "issuer_signature_invalid"


class HolderSignatureInvalidError(ProofError):
    """Holder signature over the challenge does not verify."""
    code = "holder_signature_invalid"


class ChallengeMismatchError(ProofError):
    """Presentation is bound to a different challenge than expected."""
    code = "challenge_mismatch"


class KeyNotAuthorizedError(ProofError):
    """Key lacks the required purpose or belongs to the wrong controller."""
    code = "key_not_authorized"


class DocumentExpiredError(ProofError):
    """Document validity window has passed."""
    code = "expired"


class DocumentRevokedError(ProofError):
    """Document appears on the verifier's revocation list."""
    code = "revoked"
