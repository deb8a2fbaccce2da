"""
State token codec.

The OAuth ``state`` parameter is the only CSRF and replay defense of the
flow. Tokens are self-contained: the payload (provider, post-login redirect,
issuance time, nonce and the PKCE verifier) is JSON-encoded and protected
with Fernet authenticated encryption, so no server-side store is needed.

Known limitation: nonces are not remembered, so a token can be replayed
against the same provider until it expires. Expiry and provider binding are
the only checks.
"""

import base64
import hashlib
import json
import logging
import secrets
import time
from datetime import timedelta
from typing import Callable, Optional, Sequence, Tuple, Union

from cryptography.fernet import Fernet, InvalidToken, MultiFernet

from socialauth.models import StatePayload

logger = logging.getLogger(__name__)


DEFAULT_STATE_MAX_AGE = timedelta(minutes=30)


def derive_fernet_key(secret: str) -> bytes:
    """
    Turn an arbitrary secret string into a Fernet key.

    Fernet wants 32 url-safe base64-encoded bytes; operators configure
    free-form secrets, so the key is the SHA-256 of the secret.
    """
    digest = hashlib.sha256(secret.encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest)


class StateTokenCodec:
    """
    Issues and validates opaque state tokens.

    Args:
        secrets_: One or more secrets. The first encrypts new tokens; all
                  of them are tried on decryption, which allows rotation.
        max_age: Maximum token age (inclusive)
        clock: Returns the current time in epoch seconds
    """

    def __init__(
        self,
        secrets_: Union[str, Sequence[str]],
        max_age: timedelta = DEFAULT_STATE_MAX_AGE,
        clock: Callable[[], float] = time.time,
    ):
        if isinstance(secrets_, str):
            secrets_ = [secrets_]
        secrets_ = [s for s in secrets_ if s]
        if not secrets_:
            raise ValueError("StateTokenCodec requires at least one secret")

        self._fernet = MultiFernet([Fernet(derive_fernet_key(s)) for s in secrets_])
        self._max_age = max_age.total_seconds()
        self._clock = clock

    @classmethod
    def ephemeral(cls, **kwargs) -> "StateTokenCodec":
        """Codec with a random key; tokens die with the process."""
        return cls(secrets.token_urlsafe(32), **kwargs)

    # =========================================================================
    # Issue
    # =========================================================================

    def issue(
        self,
        provider: str,
        redirect_uri: Optional[str] = None,
        code_verifier: Optional[str] = None,
        callback_uri: Optional[str] = None,
    ) -> str:
        """
        Create a state token bound to a provider.

        Args:
            provider: Provider key the callback must come back for
            redirect_uri: Optional post-login destination
            code_verifier: Optional PKCE verifier to redeem at exchange time
            callback_uri: Redirect URI sent to the provider when it differs from
                          the default callback URL; replayed at exchange time

        Returns:
            URL-safe opaque token string
        """
        payload = StatePayload(
            provider=provider.lower(),
            redirect_uri=redirect_uri,
            issued_at=self._clock(),
            nonce=secrets.token_hex(16),
            code_verifier=code_verifier,
            callback_uri=callback_uri,
        )
        data = json.dumps(payload.model_dump(), separators=(",", ":")).encode("utf-8")
        return self._fernet.encrypt(data).decode("ascii")

    # =========================================================================
    # Validate
    # =========================================================================

    def decode(self, provider: str, token: Optional[str]) -> Optional[StatePayload]:
        """
        Decrypt and check a state token.

        Never raises. Returns None when the token is empty, malformed,
        tampered with, bound to another provider, or expired.
        """
        if not token or not provider:
            logger.debug("State rejected: empty token or provider")
            return None

        try:
            data = self._fernet.decrypt(token.encode("utf-8"))
            payload = StatePayload.model_validate(json.loads(data))
        except InvalidToken:
            logger.debug("State rejected: decryption failed", extra={"provider": provider})
            return None
        except Exception as e:
            # Garbage input must never escape as a fault
            logger.debug(f"State rejected: unreadable payload ({type(e).__name__})", extra={"provider": provider})
            return None

        if payload.provider != provider.lower():
            logger.debug(
                "State rejected: provider mismatch",
                extra={"provider": provider, "state_provider": payload.provider},
            )
            return None

        age = self._clock() - payload.issued_at
        if age > self._max_age:
            logger.debug("State rejected: expired", extra={"provider": provider, "age_seconds": int(age)})
            return None

        return payload

    def validate(self, provider: str, token: Optional[str]) -> Tuple[bool, Optional[str]]:
        """
        Check a state token.

        Returns:
            ``(True, redirect_uri)`` for a valid token, ``(False, None)``
            otherwise. The reason for a rejection is only logged.
        """
        payload = self.decode(provider, token)
        if payload is None:
            return False, None
        return True, payload.redirect_uri
