"""Reference in-process MPC substrate.

``LocalCluster`` stands in for the external computation cluster that holds
the pool key. It offers exactly three capabilities to the protocol:

- sealing a payload under a pool or shared context
- unsealing, only inside a protected evaluation (``LocalCluster.evaluate``)
- declassifying a protected boolean

Plaintext opened inside an evaluation is wrapped in ``Protected`` handles.
Handles have no public accessor: their values are only reachable through
``Evaluation.apply``, ``seal`` and ``declassify``, and they are revoked when
the evaluation exits.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
from contextlib import contextmanager
from typing import Any, Callable, Iterator, List, Optional, Type

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import x25519

from . import contexts
from .contexts import Ciphertext, Context, PoolContext, SharedContext
from .errors import ContextError, MalformedCiphertextError

logger = logging.getLogger(__name__)


class Protected:
    """Plaintext handle scoped to one protected evaluation."""

    __slots__ = ("_value", "_evaluation")

    def __init__(self, value: Any, evaluation: "Evaluation"):
        self._value = value
        self._evaluation = evaluation

    def _get(self) -> Any:
        if not self._evaluation.open:
            raise RuntimeError("plaintext handle used outside its protected evaluation")
        return self._value

    def _revoke(self) -> None:
        self._value = None

    def __bool__(self):
        raise TypeError("protected values cannot be branched on; declassify them first")

    def __repr__(self) -> str:
        return "<Protected>"


class Evaluation:
    """A single protected evaluation step on a cluster.

    Obtained via ``LocalCluster.evaluate``; never constructed by callers.
    """

    def __init__(self, cluster: "LocalCluster"):
        self._cluster = cluster
        self._handles: List[Protected] = []
        self.open = True

    def _wrap(self, value: Any) -> Protected:
        handle = Protected(value, self)
        self._handles.append(handle)
        return handle

    def _own(self, handle: Protected) -> Any:
        if not isinstance(handle, Protected) or handle._evaluation is not self:
            raise RuntimeError("handle does not belong to this evaluation")
        return handle._get()

    def unseal(self, ciphertext: Ciphertext, payload_type: Type) -> Protected:
        if not isinstance(ciphertext, Ciphertext):
            raise MalformedCiphertextError(
                f"expected a Ciphertext, got {type(ciphertext).__name__}"
            )
        if ciphertext.payload_type != payload_type.type_name:
            raise MalformedCiphertextError(
                f"ciphertext holds {ciphertext.payload_type!r}, "
                f"expected {payload_type.type_name!r}"
            )
        raw = self._cluster._open(ciphertext)
        return self._wrap(payload_type.decode(raw))

    def apply(self, fn: Callable[..., Any], *handles: Protected) -> Protected:
        """Compute ``fn`` over the handles' values; the result stays protected."""
        values = [self._own(h) for h in handles]
        return self._wrap(fn(*values))

    def seal(self, context: Context, handle: Protected) -> Ciphertext:
        return self._cluster.seal(context, self._own(handle))

    def declassify(self, handle: Protected) -> bool:
        """Release a single protected boolean to the caller."""
        value = self._own(handle)
        if not isinstance(value, bool):
            raise TypeError("only a protected boolean can be declassified")
        return value

    def close(self) -> None:
        self.open = False
        for handle in self._handles:
            handle._revoke()
        self._handles = []


class LocalCluster:
    """In-process cluster holding the pool key of one or more polls."""

    def __init__(
        self,
        private_key: Optional[x25519.X25519PrivateKey] = None,
        master_secret: Optional[bytes] = None,
    ):
        self._private_key = private_key or x25519.X25519PrivateKey.generate()
        self._master_secret = master_secret or secrets.token_bytes(32)
        self.public_key = self._private_key.public_key().public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw,
        )

    @property
    def fingerprint(self) -> str:
        return hashlib.sha256(self.public_key).hexdigest()[:8]

    ## --- capabilities ----------------------------------------------------

    def _capability_token(self, poll_id: str) -> bytes:
        msg = f"pool|{poll_id}".encode("utf-8")
        return hmac.new(self._master_secret, msg, hashlib.sha256).digest()

    def pool_context(self, poll_id: str) -> PoolContext:
        """Mint the pool-domain capability for a poll."""
        if not isinstance(poll_id, str) or not poll_id:
            raise ContextError("poll_id must be a non-empty string")
        return PoolContext(
            poll_id=poll_id,
            pool_public_key=self.public_key,
            token=self._capability_token(poll_id),
            cluster=self,
        )

    def verify_capability(self, context: PoolContext) -> None:
        if context.pool_public_key != self.public_key:
            raise ContextError(f"pool context of poll {context.poll_id} is for another cluster")
        expected = self._capability_token(context.poll_id)
        if not hmac.compare_digest(expected, context.token):
            logger.warning("rejected forged pool token for poll %s", context.poll_id)
            raise ContextError(f"pool context of poll {context.poll_id} has an invalid token")

    ## --- keys ------------------------------------------------------------

    def _key_for(self, context: Context) -> bytes:
        if isinstance(context, PoolContext):
            self.verify_capability(context)
            return contexts.derive_key(self._master_secret, "pool", context.poll_id)
        if isinstance(context, SharedContext):
            if context.pool_public_key != self.public_key:
                raise ContextError(
                    f"shared context of poll {context.poll_id} is for another cluster"
                )
            # low-order points fail in exchange(), short keys in from_public_bytes()
            try:
                voter_pub = x25519.X25519PublicKey.from_public_bytes(context.voter_public_key)
                shared = self._private_key.exchange(voter_pub)
            except ValueError as err:
                raise MalformedCiphertextError(
                    "shared context carries an invalid voter key"
                ) from err
            return contexts.derive_key(shared, "shared", context.poll_id)
        raise ContextError(f"unsupported context type {type(context).__name__}")

    ## --- substrate primitives ---------------------------------------------

    def seal(self, context: Context, payload: Any) -> Ciphertext:
        key = self._key_for(context)
        aad = contexts.associated_data(context, payload.type_name)
        nonce, body = contexts.seal_bytes(key, aad, payload.encode())
        logger.debug(
            "sealed %s under %s for poll %s",
            payload.type_name,
            context.domain_tag,
            context.poll_id,
        )
        return Ciphertext(
            payload_type=payload.type_name, context=context, nonce=nonce, body=body
        )

    def _open(self, ciphertext: Ciphertext) -> bytes:
        key = self._key_for(ciphertext.context)
        aad = contexts.associated_data(ciphertext.context, ciphertext.payload_type)
        return contexts.unseal_bytes(key, aad, ciphertext.nonce, ciphertext.body)

    @contextmanager
    def evaluate(self) -> Iterator[Evaluation]:
        """Open a protected evaluation; all its handles die on exit."""
        evaluation = Evaluation(self)
        try:
            yield evaluation
        finally:
            evaluation.close()
