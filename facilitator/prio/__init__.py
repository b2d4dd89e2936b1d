"""
Prio v1 secret-share engine: field arithmetic, share encryption, and the
client and share-processor halves of the validity proof.
"""

from facilitator.prio.client import Client
from facilitator.prio.encrypt import PrivateKey, PublicKey, encrypt_share, decrypt_share
from facilitator.prio.finite_field import MODULUS
from facilitator.prio.server import Server, VerificationMessage, is_valid_share

__all__ = [
    "Client",
    "Server",
    "VerificationMessage",
    "is_valid_share",
    "PrivateKey",
    "PublicKey",
    "encrypt_share",
    "decrypt_share",
    "MODULUS",
]
