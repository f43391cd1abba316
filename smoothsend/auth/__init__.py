"""
SmoothSend Authorization - the signed-message contract with off-chain signers
"""

from smoothsend.auth.verifier import (
    DOMAIN_TAG,
    TYPE_DESCRIPTOR,
    TYPE_TAG,
    AuthorizationVerifier,
    encode_authorization,
    sign_authorization,
    signing_digest,
    signing_message,
)

__all__ = [
    "AuthorizationVerifier",
    "encode_authorization",
    "sign_authorization",
    "signing_digest",
    "signing_message",
    "DOMAIN_TAG",
    "TYPE_DESCRIPTOR",
    "TYPE_TAG",
]
