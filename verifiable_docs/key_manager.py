"""
Key Manager - Cryptographic key custody and signing for DID keys

Supports:
- Ed25519: default for document and presentation signatures
- secp256k1: Ethereum-style keys (EIP-191 personal_sign)

Implements the Signer side of the key resolution adapter.
"""

import json
import logging
from typing import Optional, Dict, Any, List
from dataclasses import dataclass, asdict
from datetime import datetime, timezone

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ed25519

from eth_account import Account
from eth_account.messages import encode_defunct

from .adapters import ResolvedKey
from .exceptions import SigningUnavailableError
from .hashing import from_hex, to_hex

log = logging.getLogger(__name__)

ED25519_KEY_TYPE = "Ed25519VerificationKey2020"
SECP256K1_KEY_TYPE = "EcdsaSecp256k1VerificationKey2019"


@dataclass
class KeyPair:
    """Represents a cryptographic key pair"""
    key_id: str  # DID key URI, did:<method>:<id>#<fragment>
    key_type: str  # Ed25519VerificationKey2020, EcdsaSecp256k1VerificationKey2019
    public_key: str  # 0x-hex for Ed25519, Ethereum address for secp256k1
    private_key: Optional[str] = None  # Only stored locally, never shared
    created_at: str = ""
    controller: str = ""

    def __post_init__(self):
        if not self.created_at:
            self.created_at = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")

    def to_verification_method(self) -> Dict[str, Any]:
        """Convert to W3C Verification Method format"""
        method = {
            "id": self.key_id,
            "type": self.key_type,
            "controller": self.controller
        }
        if self.key_type == SECP256K1_KEY_TYPE:
            method["ethereumAddress"] = self.public_key
        else:
            method["publicKeyHex"] = self.public_key
        return method


class KeyManager:
    """
    Manages cryptographic keys for DID operations

    Features:
    - Generate Ed25519 and secp256k1 key pairs
    - Sign bytes for a key URI (Signer adapter)
    - Verify signatures against resolved public keys
    - Export/Import keys
    """

    def __init__(self, storage_path: Optional[str] = None):
        self.storage_path = storage_path
        self._keys: Dict[str, KeyPair] = {}

    # ==================== KEY GENERATION ====================

    def generate_ed25519_keypair(self, did: str, fragment: str = "key-1") -> KeyPair:
        """
        Generate Ed25519 key pair

        Args:
            did: The DID that will control this key
            fragment: Key URI fragment

        Returns:
            KeyPair with Ed25519 keys
        """
        private_key = ed25519.Ed25519PrivateKey.generate()

        private_bytes = private_key.private_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PrivateFormat.Raw,
            encryption_algorithm=serialization.NoEncryption()
        )
        public_bytes = private_key.public_key().public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw
        )

        keypair = KeyPair(
            key_id=f"{did}#{fragment}",
            key_type=ED25519_KEY_TYPE,
            public_key=to_hex(public_bytes),
            private_key=to_hex(private_bytes),
            controller=did
        )

        self._keys[keypair.key_id] = keypair
        return keypair

    def generate_secp256k1_keypair(self, did: str, fragment: str = "key-eth-1") -> KeyPair:
        """
        Generate secp256k1 key pair (Ethereum compatible)

        Args:
            did: The DID that will control this key
            fragment: Key URI fragment

        Returns:
            KeyPair whose public key is the Ethereum address
        """
        account = Account.create()

        keypair = KeyPair(
            key_id=f"{did}#{fragment}",
            key_type=SECP256K1_KEY_TYPE,
            public_key=account.address,
            private_key=to_hex(bytes(account.key)),
            controller=did
        )

        self._keys[keypair.key_id] = keypair
        return keypair

    def generate_from_ethereum_key(self, did: str, private_key: str, fragment: str = "key-eth-1") -> KeyPair:
        """
        Create KeyPair from existing Ethereum private key

        Args:
            did: The DID that will control this key
            private_key: Ethereum private key (hex string with 0x prefix)

        Returns:
            KeyPair
        """
        account = Account.from_key(private_key)

        keypair = KeyPair(
            key_id=f"{did}#{fragment}",
            key_type=SECP256K1_KEY_TYPE,
            public_key=account.address,
            private_key=to_hex(bytes(account.key)),
            controller=did
        )

        self._keys[keypair.key_id] = keypair
        return keypair

    # ==================== SIGNING ====================

    def sign(self, data: bytes, key_uri: str) -> bytes:
        """
        Sign bytes with the private key behind a key URI

        Raises:
            SigningUnavailableError: unknown key or no private key held
        """
        keypair = self._keys.get(key_uri)
        if not keypair:
            raise SigningUnavailableError(f"Signing key not found: {key_uri}")
        if not keypair.private_key:
            raise SigningUnavailableError(f"Private key not available for signing: {key_uri}")

        if keypair.key_type == ED25519_KEY_TYPE:
            private_key = ed25519.Ed25519PrivateKey.from_private_bytes(from_hex(keypair.private_key))
            return private_key.sign(data)

        if keypair.key_type == SECP256K1_KEY_TYPE:
            signed = Account.sign_message(encode_defunct(primitive=data), private_key=keypair.private_key)
            return bytes(signed.signature)

        raise SigningUnavailableError(f"Unsupported key type for signing: {keypair.key_type}")

    def sign_ed25519(self, key_id: str, message: bytes) -> str:
        """Sign with an Ed25519 key, returning 0x-hex"""
        keypair = self._keys.get(key_id)
        if not keypair or keypair.key_type != ED25519_KEY_TYPE:
            raise SigningUnavailableError(f"Ed25519 key not found: {key_id}")
        return to_hex(self.sign(message, key_id))

    def sign_secp256k1(self, key_id: str, message: bytes) -> str:
        """Sign with a secp256k1 key (EIP-191), returning 0x-hex"""
        keypair = self._keys.get(key_id)
        if not keypair or keypair.key_type != SECP256K1_KEY_TYPE:
            raise SigningUnavailableError(f"secp256k1 key not found: {key_id}")
        return to_hex(self.sign(message, key_id))

    # ==================== VERIFICATION ====================

    @staticmethod
    def verify_ed25519(public_key: str, message: bytes, signature: bytes) -> bool:
        """
        Verify Ed25519 signature

        Args:
            public_key: 0x-hex encoded raw public key
            message: Original message bytes
            signature: Raw signature bytes

        Returns:
            True if signature is valid
        """
        try:
            pub_key = ed25519.Ed25519PublicKey.from_public_bytes(from_hex(public_key))
            pub_key.verify(signature, message)
            return True
        except (InvalidSignature, ValueError):
            return False

    @staticmethod
    def verify_secp256k1(message: bytes, signature: bytes, expected_address: str) -> bool:
        """
        Verify secp256k1 signature (Ethereum style)

        Args:
            message: Original message bytes
            signature: 65-byte recoverable signature
            expected_address: Expected Ethereum address

        Returns:
            True if signature is valid and matches address
        """
        try:
            recovered_address = Account.recover_message(encode_defunct(primitive=message), signature=signature)
        except Exception as e:
            log.debug(f"secp256k1 recovery failed: {e}")
            return False
        return recovered_address.lower() == expected_address.lower()

    @classmethod
    def verify_signature(cls, key: ResolvedKey, message: bytes, signature: bytes) -> bool:
        """Verify a signature against a resolved key of either supported type"""
        if key.key_type == ED25519_KEY_TYPE:
            return cls.verify_ed25519(key.public_key, message, signature)
        if key.key_type == SECP256K1_KEY_TYPE:
            return cls.verify_secp256k1(message, signature, key.public_key)
        log.warning(f"Unsupported key type: {key.key_type}")
        return False

    # ==================== KEY MANAGEMENT ====================

    def get_key(self, key_id: str) -> Optional[KeyPair]:
        """Get key by ID"""
        return self._keys.get(key_id)

    def list_keys(self) -> List[str]:
        """List all key IDs"""
        return list(self._keys.keys())

    def export_public_keys(self) -> Dict[str, Dict]:
        """Export all public keys (no private keys)"""
        result = {}
        for key_id, keypair in self._keys.items():
            result[key_id] = {
                "key_id": keypair.key_id,
                "key_type": keypair.key_type,
                "public_key": keypair.public_key,
                "controller": keypair.controller,
                "created_at": keypair.created_at
            }
        return result

    def save_keys(self, filepath: Optional[str] = None):
        """
        Save keys to a JSON file

        WARNING: private keys are written in clear; use an HSM/KMS-backed
        Signer in production.
        """
        filepath = filepath or self.storage_path
        if not filepath:
            raise ValueError("No key storage path configured")

        data = {
            key_id: asdict(keypair)
            for key_id, keypair in self._keys.items()
        }

        with open(filepath, 'w') as f:
            json.dump(data, f, indent=2)

    def load_keys(self, filepath: Optional[str] = None):
        """Load keys from a JSON file written by save_keys"""
        filepath = filepath or self.storage_path
        if not filepath:
            raise ValueError("No key storage path configured")

        with open(filepath, 'r') as f:
            data = json.load(f)

        for key_id, key_data in data.items():
            self._keys[key_id] = KeyPair(**key_data)
