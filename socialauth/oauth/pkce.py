"""
PKCE (RFC 7636) helpers.

A challenge is generated per authorization attempt. The verifier never
appears in the authorization URL; it rides inside the encrypted state token
and is redeemed at token exchange.
"""

import base64
import hashlib
import secrets
from typing import NamedTuple


CODE_CHALLENGE_METHOD = "S256"


class PkceChallenge(NamedTuple):
    code_verifier: str
    code_challenge: str
    method: str = CODE_CHALLENGE_METHOD


def generate_code_verifier() -> str:
    """
    Generate a cryptographically random code verifier for PKCE.

    Returns:
        Base64-URL-encoded random string (43 characters)
    """
    verifier_bytes = secrets.token_bytes(32)
    return base64.urlsafe_b64encode(verifier_bytes).decode('utf-8').rstrip('=')


def generate_code_challenge(verifier: str) -> str:
    """
    Generate code challenge from verifier using S256 method.

    Args:
        verifier: Code verifier string

    Returns:
        Base64-URL-encoded SHA256 hash of verifier, without padding
    """
    digest = hashlib.sha256(verifier.encode('utf-8')).digest()
    return base64.urlsafe_b64encode(digest).decode('utf-8').rstrip('=')


def create_pkce_challenge() -> PkceChallenge:
    verifier = generate_code_verifier()
    return PkceChallenge(code_verifier=verifier, code_challenge=generate_code_challenge(verifier))
