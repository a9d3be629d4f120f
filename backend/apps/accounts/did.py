"""
DID bootstrap for newly registered accounts.

Generates a ``did:key`` identifier from a fresh Ed25519 key pair:

    did:key:z<base58btc(0xed 0x01 || public key)>

Keys are held client-side in the wallet, so the private key is discarded
once the identifier and document exist.
"""

from dataclasses import dataclass
from typing import Any, Protocol

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

BASE58_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
ED25519_MULTICODEC_PREFIX = b"\xed\x01"
MULTIBASE_BASE58BTC = "z"

DID_CONTEXT = [
    "https://www.w3.org/ns/did/v1",
    "https://w3id.org/security/suites/ed25519-2020/v1",
]


def base58btc_encode(data: bytes) -> str:
    """Encode bytes with the Bitcoin base58 alphabet."""
    num = int.from_bytes(data, "big")
    encoded = ""
    while num > 0:
        num, remainder = divmod(num, 58)
        encoded = BASE58_ALPHABET[remainder] + encoded

    leading_zeros = len(data) - len(data.lstrip(b"\x00"))
    return BASE58_ALPHABET[0] * leading_zeros + encoded


@dataclass
class GeneratedDID:
    did: str
    document: dict[str, Any]


class DIDGenerator(Protocol):
    def generate(self) -> GeneratedDID: ...


class KeyDIDGenerator:
    """``did:key`` generator backed by Ed25519 keys."""

    def generate(self) -> GeneratedDID:
        private_key = Ed25519PrivateKey.generate()
        public_key = private_key.public_key().public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw,
        )
        multibase = MULTIBASE_BASE58BTC + base58btc_encode(ED25519_MULTICODEC_PREFIX + public_key)
        did = f"did:key:{multibase}"
        return GeneratedDID(did=did, document=build_did_document(did, multibase))


def build_did_document(did: str, public_key_multibase: str) -> dict[str, Any]:
    verification_method_id = f"{did}#{public_key_multibase}"
    return {
        "@context": DID_CONTEXT,
        "id": did,
        "verificationMethod": [
            {
                "id": verification_method_id,
                "type": "Ed25519VerificationKey2020",
                "controller": did,
                "publicKeyMultibase": public_key_multibase,
            }
        ],
        "authentication": [verification_method_id],
        "assertionMethod": [verification_method_id],
    }
