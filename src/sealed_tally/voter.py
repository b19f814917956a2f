"""Voter-side sealing of ballots.

This runs on the voter's machine, outside the tally core. A voter derives an
X25519 key pair, agrees a shared key with the pool's public key and seals a
single boolean ballot under the resulting shared context.
"""

from __future__ import annotations

import hashlib
import hmac
from dataclasses import dataclass, field
from typing import Optional

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import x25519

from . import contexts
from .contexts import Ciphertext, SharedContext
from .errors import ContextError
from .payloads import Ballot

ENCRYPTION_KEY_MESSAGE = "sealed-tally-encryption-key-v1"


@dataclass(frozen=True)
class VoterKeys:
    private_key: x25519.X25519PrivateKey = field(repr=False)
    public_key: bytes

    @classmethod
    def generate(cls) -> "VoterKeys":
        return cls.from_private_key(x25519.X25519PrivateKey.generate())

    @classmethod
    def from_private_key(cls, private_key: x25519.X25519PrivateKey) -> "VoterKeys":
        public = private_key.public_key().public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw,
        )
        return cls(private_key=private_key, public_key=public)


def derive_voter_keypair(secret: bytes, message: str = ENCRYPTION_KEY_MESSAGE) -> VoterKeys:
    """Derive a deterministic encryption key pair from a voter's long-term secret.

    The private key is SHA-256(HMAC-SHA256(secret, message)), so a voter can
    recover their ballot key from the secret alone.
    """
    if not isinstance(secret, (bytes, bytearray)):
        raise TypeError("secret must be bytes")
    tag = hmac.new(bytes(secret), message.encode("utf-8"), hashlib.sha256).digest()
    seed = hashlib.sha256(tag).digest()
    return VoterKeys.from_private_key(x25519.X25519PrivateKey.from_private_bytes(seed))


def shared_context(poll_id: str, pool_public_key: bytes, keys: VoterKeys) -> SharedContext:
    if len(pool_public_key) != 32:
        raise ContextError("pool public key must be 32 raw bytes")
    return SharedContext(
        poll_id=poll_id,
        pool_public_key=bytes(pool_public_key),
        voter_public_key=keys.public_key,
    )


def seal_ballot(choice: bool, context: SharedContext, keys: VoterKeys) -> Ciphertext:
    """Seal a yes/no choice under the voter's shared context.

    ``keys`` must be the pair whose public half the context carries.
    """
    if not isinstance(choice, bool):
        raise TypeError("choice must be a bool")
    if not isinstance(context, SharedContext):
        raise ContextError("ballots are sealed under a shared context")
    if keys.public_key != context.voter_public_key:
        raise ContextError("voter keys do not match the shared context")

    try:
        pool_pub = x25519.X25519PublicKey.from_public_bytes(context.pool_public_key)
        shared = keys.private_key.exchange(pool_pub)
    except ValueError as err:
        raise ContextError("shared context carries an invalid pool key") from err
    key = contexts.derive_key(shared, "shared", context.poll_id)
    payload = Ballot(choice=choice)
    aad = contexts.associated_data(context, payload.type_name)
    nonce, body = contexts.seal_bytes(key, aad, payload.encode())
    return Ciphertext(payload_type=payload.type_name, context=context, nonce=nonce, body=body)


def new_ballot(choice: bool, poll_id: str, pool_public_key: bytes, keys: Optional[VoterKeys] = None) -> Ciphertext:
    """Convenience for one-shot voters: mint a context and seal in one step."""
    keys = keys or VoterKeys.generate()
    return seal_ballot(choice, shared_context(poll_id, pool_public_key, keys), keys)
