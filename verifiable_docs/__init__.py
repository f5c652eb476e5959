"""
Verifiable Documents
====================

Selectively-disclosable, issuer-signed documents on top of W3C-style DIDs.

Components:
- canonical / hashing: deterministic encoding, salted statement hashes
- DocumentIssuer: commits to content and signs the document hash
- Presenter: challenge-bound selective disclosure
- DocumentVerifier: statement, digest, signature and self-signature proofs
- KeyManager / DIDManager: reference signer and key resolver
- DocumentService: service tying the above together
"""

from .canonical import encode_object_as_str
from .config import ProtocolSettings, get_settings
from .content import DocumentContent, make_statements
from .hashing import HashedStatement, hash_statements, get_hasher
from .models import DidSignature, HolderSignature, Document, Presentation
from .adapters import KeyResolver, ResolvedKey, Signer
from .key_manager import KeyManager, KeyPair
from .did_manager import DIDManager, DIDDocument, DIDMethod
from .document_issuer import DocumentIssuer
from .presenter import Presenter
from .document_verifier import DocumentVerifier, ProofResult, VerificationCheck, VerificationReport
from .document_service import DocumentService
from . import exceptions

__version__ = "1.0.0"
__all__ = [
    # Encoding & hashing
    "encode_object_as_str",
    "hash_statements",
    "get_hasher",
    "HashedStatement",

    # Data model
    "DocumentContent",
    "make_statements",
    "DidSignature",
    "HolderSignature",
    "Document",
    "Presentation",

    # Keys & DIDs
    "KeyResolver",
    "ResolvedKey",
    "Signer",
    "KeyManager",
    "KeyPair",
    "DIDManager",
    "DIDDocument",
    "DIDMethod",

    # Documents
    "DocumentIssuer",
    "Presenter",
    "DocumentVerifier",
    "ProofResult",
    "VerificationCheck",
    "VerificationReport",

    # Service
    "DocumentService",

    # Config & errors
    "ProtocolSettings",
    "get_settings",
    "exceptions",
]
