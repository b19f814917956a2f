"""Encryption contexts and the ciphertexts bound to them.

A ciphertext always carries the context it was sealed under. Two domains
exist:

- pool: owned by the computation cluster, one per poll
- shared: pairwise between one voter key and the pool, minted per ballot

The authenticated data of every ciphertext binds its domain tag, poll id,
pool key and payload type, so a ciphertext relabelled to another domain or
type fails to unseal.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import json
import secrets
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Tuple, Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from .errors import DomainMismatchError, MalformedCiphertextError

if TYPE_CHECKING:
    from .substrate import LocalCluster

POOL_DOMAIN = "pool"
SHARED_DOMAIN_PREFIX = "shared:"
NONCE_SIZE = 12


@dataclass(frozen=True)
class PoolContext:
    """Capability to seal and unseal under a poll's pool domain.

    Only ``LocalCluster.pool_context`` mints valid instances; the token is an
    HMAC over the poll id under the cluster's master secret.
    """

    poll_id: str
    pool_public_key: bytes
    token: bytes = field(repr=False)
    cluster: "LocalCluster" = field(repr=False, compare=False)

    @property
    def domain_tag(self) -> str:
        return POOL_DOMAIN


@dataclass(frozen=True)
class SharedContext:
    """Pairwise domain between one voter key and the pool of a poll."""

    poll_id: str
    pool_public_key: bytes
    voter_public_key: bytes

    @property
    def domain_tag(self) -> str:
        return SHARED_DOMAIN_PREFIX + self.voter_public_key.hex()


Context = Union[PoolContext, SharedContext]


def same_pool(a: Context, b: Context) -> bool:
    """True when both contexts belong to the same poll under the same pool key."""
    return a.poll_id == b.poll_id and a.pool_public_key == b.pool_public_key


## --- sealing primitives ---------------------------------------------------


def canonical_json_bytes(payload: Any) -> bytes:
    return json.dumps(payload, sort_keys=True, separators=(",", ":")).encode("utf-8")


def associated_data(context: Context, type_name: str) -> bytes:
    return canonical_json_bytes(
        {
            "domain": context.domain_tag,
            "poll_id": context.poll_id,
            "pool": context.pool_public_key.hex(),
            "type": type_name,
        }
    )


def derive_key(secret: bytes, label: str, poll_id: str) -> bytes:
    """HKDF-SHA256 a 32-byte AES key from a secret, bound to a label and poll."""
    return HKDF(
        algorithm=hashes.SHA256(),
        length=32,
        salt=None,
        info=f"sealed-tally:{label}:{poll_id}".encode("utf-8"),
    ).derive(secret)


def seal_bytes(key: bytes, aad: bytes, plaintext: bytes) -> Tuple[bytes, bytes]:
    nonce = secrets.token_bytes(NONCE_SIZE)
    return nonce, AESGCM(key).encrypt(nonce, plaintext, aad)


def unseal_bytes(key: bytes, aad: bytes, nonce: bytes, body: bytes) -> bytes:
    try:
        return AESGCM(key).decrypt(nonce, body, aad)
    except InvalidTag as err:
        raise MalformedCiphertextError(
            "ciphertext failed authentication under its claimed domain and type"
        ) from err


## --- ciphertexts ----------------------------------------------------------


@dataclass(frozen=True)
class Ciphertext:
    """An opaque sealed payload of a logical type bound to a context.

    There is no accessor for the plaintext; only an ``Evaluation`` of the
    owning cluster can open it.
    """

    payload_type: str
    context: Context = field(repr=False)
    nonce: bytes = field(repr=False)
    body: bytes = field(repr=False)

    @property
    def domain_tag(self) -> str:
        return self.context.domain_tag

    @property
    def poll_id(self) -> str:
        return self.context.poll_id

    def to_dict(self) -> Dict[str, Any]:
        out = {
            "type": self.payload_type,
            "domain": self.context.domain_tag,
            "poll_id": self.context.poll_id,
            "pool": self.context.pool_public_key.hex(),
            "nonce": base64.b64encode(self.nonce).decode("ascii"),
            "body": base64.b64encode(self.body).decode("ascii"),
        }
        if isinstance(self.context, SharedContext):
            out["voter"] = self.context.voter_public_key.hex()
        return out

    def digest(self) -> str:
        """SHA-256 over the canonical serialized form; stable across copies."""
        return hashlib.sha256(canonical_json_bytes(self.to_dict())).hexdigest()

    @classmethod
    def from_dict(cls, data: Dict[str, Any], context: Context) -> "Ciphertext":
        """Rebind serialized ciphertext to the context it claims.

        The claimed domain, poll and pool key must equal those of ``context``;
        a mismatch raises ``DomainMismatchError`` rather than relabelling.
        """
        if not isinstance(data, dict):
            raise MalformedCiphertextError("ciphertext must be a JSON object")
        claimed = (data.get("domain"), data.get("poll_id"), data.get("pool"))
        expected = (
            context.domain_tag,
            context.poll_id,
            context.pool_public_key.hex(),
        )
        if claimed != expected:
            raise DomainMismatchError(
                f"ciphertext claims domain {claimed[0]!r} of poll {claimed[1]!r}, "
                f"context is {expected[0]!r} of poll {expected[1]!r}"
            )
        payload_type = data.get("type")
        if not isinstance(payload_type, str):
            raise MalformedCiphertextError("ciphertext is missing its payload type")
        return cls(
            payload_type=payload_type,
            context=context,
            nonce=_b64_field(data, "nonce"),
            body=_b64_field(data, "body"),
        )

    @classmethod
    def ballot_from_dict(cls, data: Dict[str, Any]) -> "Ciphertext":
        """Rebuild a voter-sealed ciphertext, deriving its shared context.

        The shared context is fully described by the serialized fields; a
        forged voter key or poll simply fails authentication on unseal.
        """
        if not isinstance(data, dict):
            raise MalformedCiphertextError("ciphertext must be a JSON object")
        try:
            context = SharedContext(
                poll_id=str(data["poll_id"]),
                pool_public_key=bytes.fromhex(data["pool"]),
                voter_public_key=bytes.fromhex(data["voter"]),
            )
        except (KeyError, TypeError, ValueError) as err:
            raise MalformedCiphertextError("ballot ciphertext has no valid shared context") from err
        return cls.from_dict(data, context)


def _b64_field(data: Dict[str, Any], name: str) -> bytes:
    value = data.get(name)
    if not isinstance(value, str):
        raise MalformedCiphertextError(f"ciphertext field {name!r} is missing")
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as err:
        raise MalformedCiphertextError(f"ciphertext field {name!r} is not base64") from err
