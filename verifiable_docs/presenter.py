"""
Selective-Disclosure Presenter
==============================

Builds a Presentation from a Document: the committed hash set and issuer
signature travel unchanged, while contents and nonces are restricted to
the attributes the holder chooses to reveal. The holder signs the
disclosed salted hashes together with the verifier's challenge.
"""

import logging
from typing import Iterable, List, Optional

from .adapters import Signer
from .canonical import encode_object_as_str
from .config import ProtocolSettings, get_settings
from .content import make_statement
from .document_issuer import sign_with_timeout
from .exceptions import EmptyDisclosureError, StatementTamperedError, UnknownAttributeError
from .hashing import get_hasher
from .models import Document, HolderSignature, Presentation

log = logging.getLogger(__name__)


def disclosure_message(disclosed_hashes: Iterable[str], challenge: str) -> bytes:
    """Bytes the holder signs: canonical {challenge, sorted disclosed hashes}"""
    return encode_object_as_str({
        "challenge": challenge,
        "disclosedHashes": sorted(disclosed_hashes)
    }).encode("utf-8")


class Presenter:
    """Builds challenge-bound selective disclosures of Documents"""

    def __init__(self, signer: Signer, settings: Optional[ProtocolSettings] = None):
        self.signer = signer
        self.settings = settings or get_settings()

    def present(
        self,
        document: Document,
        attribute_names: Iterable[str],
        holder_key_uri: str,
        challenge: str
    ) -> Presentation:
        """
        Disclose selected attributes of a document

        Args:
            document: The full issued document (not modified)
            attribute_names: Attributes to reveal
            holder_key_uri: Holder's authentication key URI used to sign
            challenge: Verifier-issued one-time challenge

        Returns:
            Presentation bound to ``challenge``

        Raises:
            UnknownAttributeError: an attribute is not in the document
            EmptyDisclosureError: fewer attributes than the policy minimum
            StatementTamperedError: the document's nonce map lacks a statement
            SigningFailedError: the holder's signer failed or timed out
        """
        names: List[str] = []
        for name in attribute_names:
            if name not in document.content.contents:
                raise UnknownAttributeError(name)
            if name not in names:
                names.append(name)

        if len(names) < self.settings.MIN_DISCLOSED_STATEMENTS:
            raise EmptyDisclosureError(
                f"At least {self.settings.MIN_DISCLOSED_STATEMENTS} attribute(s) must be disclosed"
            )

        hasher = get_hasher(self.settings.HASH_ALGORITHM)
        nonce_map = {}
        disclosed_hashes = []
        for name in sorted(names):
            digest = hasher(make_statement(document.content, name))
            nonce = document.content_nonce_map.get(digest)
            if nonce is None:
                raise StatementTamperedError(f"Document has no nonce for attribute {name}")
            nonce_map[digest] = nonce
            disclosed_hashes.append(hasher(digest, nonce))

        signature = sign_with_timeout(
            self.signer,
            disclosure_message(disclosed_hashes, challenge),
            holder_key_uri,
            self.settings.SIGNING_TIMEOUT_SECONDS
        )

        log.info(
            f"Presenting {len(names)}/{len(document.content.contents)} attribute(s) "
            f"of {document.identifier}",
            extra={"document_id": document.identifier}
        )

        return Presentation(
            identifier=document.identifier,
            content=document.content.restrict(names),
            content_hashes=list(document.content_hashes),
            content_nonce_map=nonce_map,
            disclosed_hashes=disclosed_hashes,
            document_hash=document.document_hash,
            issuer_signature=document.issuer_signature,
            holder_signature=HolderSignature(
                signature=signature.signature,
                key_uri=signature.key_uri,
                challenge=challenge
            ),
            created_at=document.created_at,
            valid_until=document.valid_until,
            evidence_ids=list(document.evidence_ids),
            authorization=document.authorization,
            registry=document.registry,
            metadata=dict(document.metadata)
        )
