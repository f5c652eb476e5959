"""
DID System Tests
=================

Key custody, DID documents and key resolution
"""

import json

import pytest

from verifiable_docs.adapters import ASSERTION_METHOD, AUTHENTICATION, parse_key_uri
from verifiable_docs.did_manager import DIDDocument, DIDManager, DIDMethod
from verifiable_docs.exceptions import (
    KeyNotFoundError,
    KeyRevokedOrDeactivatedError,
    MalformedDocumentError,
    SigningUnavailableError,
)
from verifiable_docs.hashing import from_hex
from verifiable_docs.key_manager import ED25519_KEY_TYPE, SECP256K1_KEY_TYPE, KeyManager

# Well-known local development key (Hardhat account #0)
TEST_ETH_PRIVATE_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
TEST_ETH_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"


class TestKeyManager:
    """Test KeyManager functionality"""

    def setup_method(self):
        self.key_manager = KeyManager()

    def test_generate_ed25519(self):
        """Test Ed25519 key generation"""
        key = self.key_manager.generate_ed25519_keypair("did:vdoc:alice")

        assert key.key_id == "did:vdoc:alice#key-1"
        assert key.key_type == ED25519_KEY_TYPE
        assert key.controller == "did:vdoc:alice"
        assert len(from_hex(key.public_key)) == 32
        assert key.to_verification_method()["publicKeyHex"] == key.public_key
        print(f"✅ Ed25519 key generated: {key.key_id}")

    def test_generate_secp256k1(self):
        """Test secp256k1 key generation"""
        key = self.key_manager.generate_secp256k1_keypair("did:vdoc:alice")

        assert key.key_type == SECP256K1_KEY_TYPE
        assert key.public_key.startswith("0x")
        assert key.to_verification_method()["ethereumAddress"] == key.public_key

    def test_sign_and_verify_ed25519(self):
        """Test Ed25519 signing and verification"""
        key = self.key_manager.generate_ed25519_keypair("did:vdoc:alice")
        message = b"Test message for signing"

        signature = self.key_manager.sign_ed25519(key.key_id, message)

        assert KeyManager.verify_ed25519(key.public_key, message, from_hex(signature))
        assert not KeyManager.verify_ed25519(key.public_key, b"other message", from_hex(signature))
        assert not KeyManager.verify_ed25519(key.public_key, message, b"\x00" * 64)
        print("✅ Ed25519 sign/verify: Valid")

    def test_sign_and_verify_secp256k1(self):
        """Test secp256k1 signing and verification"""
        key = self.key_manager.generate_secp256k1_keypair("did:vdoc:alice")
        message = b"Test message for secp256k1"

        signature = self.key_manager.sign_secp256k1(key.key_id, message)

        assert KeyManager.verify_secp256k1(message, from_hex(signature), key.public_key)
        assert not KeyManager.verify_secp256k1(b"tampered", from_hex(signature), key.public_key)
        assert not KeyManager.verify_secp256k1(message, b"garbage", key.public_key)

    def test_from_ethereum_key(self):
        key = self.key_manager.generate_from_ethereum_key("did:ethr:abc", TEST_ETH_PRIVATE_KEY)
        assert key.public_key.lower() == TEST_ETH_ADDRESS.lower()

    def test_sign_unknown_key(self):
        with pytest.raises(SigningUnavailableError):
            self.key_manager.sign(b"data", "did:vdoc:nobody#key-1")

    def test_sign_without_private_key(self):
        key = self.key_manager.generate_ed25519_keypair("did:vdoc:alice")
        key.private_key = ""
        with pytest.raises(SigningUnavailableError):
            self.key_manager.sign(b"data", key.key_id)

    def test_export_public_keys(self):
        self.key_manager.generate_ed25519_keypair("did:vdoc:alice")
        exported = self.key_manager.export_public_keys()

        for data in exported.values():
            assert "private_key" not in data

    def test_save_and_load_keys(self, tmp_path):
        key = self.key_manager.generate_ed25519_keypair("did:vdoc:alice")
        path = str(tmp_path / "keys.json")
        self.key_manager.save_keys(path)

        restored = KeyManager(storage_path=path)
        restored.load_keys()

        signature = restored.sign(b"hello", key.key_id)
        assert KeyManager.verify_ed25519(key.public_key, b"hello", signature)

    def test_save_without_path(self):
        with pytest.raises(ValueError):
            self.key_manager.save_keys()


class TestDIDManager:
    """Test DIDManager functionality"""

    def setup_method(self):
        self.key_manager = KeyManager()
        self.did_manager = DIDManager(self.key_manager)

    def test_create_did(self):
        """Test DID creation"""
        did, doc, keys = self.did_manager.create_did()

        assert did.startswith("did:vdoc:")
        assert doc.id == did
        assert len(keys) == 2
        assert doc.assertion_method == [f"{did}#key-1"]
        assert doc.authentication == [f"{did}#key-1", f"{did}#key-eth-1"]
        print(f"✅ DID created: {did}")

    def test_create_did_with_method(self):
        did, _, keys = self.did_manager.create_did(method=DIDMethod.KEY, include_eth_key=False)

        assert did.startswith("did:key:")
        assert len(keys) == 1

    def test_create_did_from_ethereum(self):
        did, doc, keys = self.did_manager.create_did_from_ethereum(TEST_ETH_PRIVATE_KEY)
        key_uri = f"{did}#key-eth-1"

        assert did.startswith("did:ethr:")
        assert doc.assertion_method == [key_uri]
        resolved = self.did_manager.resolve_key(key_uri)
        assert resolved.public_key.lower() == TEST_ETH_ADDRESS.lower()
        assert resolved.allows(ASSERTION_METHOD)

    def test_resolve_key(self):
        did, _, keys = self.did_manager.create_did()

        ed_key = self.did_manager.resolve_key(f"{did}#key-1")
        eth_key = self.did_manager.resolve_key(f"{did}#key-eth-1")

        assert ed_key.controller == did
        assert ed_key.key_type == ED25519_KEY_TYPE
        assert ed_key.public_key == keys[f"{did}#key-1"].public_key
        assert ed_key.allows(AUTHENTICATION) and ed_key.allows(ASSERTION_METHOD)
        assert eth_key.allows(AUTHENTICATION)
        assert not eth_key.allows(ASSERTION_METHOD)

    def test_resolve_unknown(self):
        did, _, _ = self.did_manager.create_did()

        with pytest.raises(KeyNotFoundError):
            self.did_manager.resolve_key("did:vdoc:unknown#key-1")
        with pytest.raises(KeyNotFoundError):
            self.did_manager.resolve_key(f"{did}#key-99")

    @pytest.mark.parametrize("key_uri", ["", "not-a-did", "did:vdoc:abc", "did:vdoc:abc#", "did::abc#key-1"])
    def test_malformed_key_uri(self, key_uri):
        with pytest.raises(KeyNotFoundError):
            parse_key_uri(key_uri)
        with pytest.raises(KeyNotFoundError):
            self.did_manager.resolve_key(key_uri)

    def test_deactivate(self):
        """Test DID deactivation"""
        did, _, _ = self.did_manager.create_did()

        assert self.did_manager.deactivate(did)
        assert self.did_manager.resolve(did) is None
        with pytest.raises(KeyRevokedOrDeactivatedError):
            self.did_manager.resolve_key(f"{did}#key-1")
        assert not self.did_manager.deactivate("did:vdoc:unknown")

    def test_revoke_key(self):
        did, _, _ = self.did_manager.create_did()

        assert self.did_manager.revoke_key(f"{did}#key-eth-1")
        with pytest.raises(KeyRevokedOrDeactivatedError):
            self.did_manager.resolve_key(f"{did}#key-eth-1")
        assert self.did_manager.resolve_key(f"{did}#key-1").controller == did
        assert not self.did_manager.revoke_key(f"{did}#key-99")

    def test_update_did_removes_relationships(self):
        did, _, _ = self.did_manager.create_did()
        key_uri = f"{did}#key-eth-1"

        assert self.did_manager.update_did(did, remove_verification_method_ids=[key_uri])

        doc = self.did_manager.resolve(did)
        assert key_uri not in doc.authentication
        with pytest.raises(KeyNotFoundError):
            self.did_manager.resolve_key(key_uri)

    def test_add_verification_method(self):
        did, _, _ = self.did_manager.create_did(include_eth_key=False)
        new_key = self.key_manager.generate_ed25519_keypair(did, fragment="key-2")

        assert self.did_manager.add_verification_method(did, new_key, purposes=[ASSERTION_METHOD])
        assert self.did_manager.resolve_key(new_key.key_id).purposes == (ASSERTION_METHOD,)

        with pytest.raises(ValueError):
            self.did_manager.add_verification_method(did, new_key, purposes=["signing"])

    def test_export_import(self):
        did, _, _ = self.did_manager.create_did()
        exported = self.did_manager.export_document(did)

        other = DIDManager()
        imported = other.import_document(exported)

        assert imported.id == did
        assert json.loads(imported.to_json()) == json.loads(exported)
        assert other.resolve_key(f"{did}#key-1").controller == did

    def test_import_malformed(self):
        with pytest.raises(MalformedDocumentError):
            self.did_manager.import_document("{not json")
        with pytest.raises(MalformedDocumentError):
            self.did_manager.import_document("{}")

    def test_document_round_trip(self):
        _, doc, _ = self.did_manager.create_did()
        restored = DIDDocument.from_dict(doc.to_dict())
        assert restored.to_dict() == doc.to_dict()

    def test_statistics(self):
        did, _, _ = self.did_manager.create_did()
        self.did_manager.create_did()
        self.did_manager.deactivate(did)

        stats = self.did_manager.get_statistics()
        assert stats == {"total": 2, "active": 1, "deactivated": 1, "revoked_keys": 0}
