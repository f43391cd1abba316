"""
tests/conftest.py

Shared fixtures: a deployment with one registered token type, a funded
sender, a deterministic clock, and a helper that signs transfers.
"""

import pytest

from smoothsend import (
    DeploymentSettings,
    Ed25519KeyManager,
    ManualClock,
    SmoothSend,
    TransferAuthorization,
    sign_authorization,
)


ADMIN     = "0xad"
TREASURY  = "0x7e"
RELAYER   = "0x5e"
SENDER    = "0xa1"
RECIPIENT = "0xb2"
TOKEN     = "0x1::usdc::USDC"

START_TIME = 1_700_000_000


@pytest.fixture
def clock():
    return ManualClock(START_TIME)


@pytest.fixture
def sender_key():
    return Ed25519KeyManager.from_private_bytes(bytes(range(32)))


@pytest.fixture
def other_key():
    return Ed25519KeyManager.generate()


@pytest.fixture
def settings():
    return DeploymentSettings(
        admin=       ADMIN,
        treasury=    TREASURY,
        fee_margin=  110,
        token_types= [TOKEN],
    )


@pytest.fixture
def protocol(settings, clock):
    """A deployment where SENDER holds 1000 custodial units of TOKEN."""
    deployment = SmoothSend(settings, clock=clock)
    deployment.coins.mint(SENDER, TOKEN, 5_000)
    deployment.deposit(SENDER, TOKEN, 1_000)
    return deployment


def make_auth(**overrides) -> TransferAuthorization:
    fields = dict(
        sender=            SENDER,
        recipient=         RECIPIENT,
        amount=            500,
        max_fee=           150,
        token_type=        TOKEN,
        nonce=             0,
        deadline=          START_TIME + 3600,
        declared_gas_cost= 100,
    )
    fields.update(overrides)
    return TransferAuthorization(**fields)


@pytest.fixture
def submit(protocol, sender_key):
    """
    Sign (as sender_key unless key= is given) and execute a transfer.

    Keyword overrides apply to the authorization fields; relayer=,
    signature= and public_key= override the submission itself.
    """
    def _submit(key=None, relayer=RELAYER, signature=None, public_key=None, **overrides):
        key  = key or sender_key
        auth = make_auth(**overrides)
        sig  = signature if signature is not None else sign_authorization(auth, key)
        pub  = public_key if public_key is not None else key.public_key_bytes
        return protocol.execute_authorization(relayer, auth, sig, pub)
    return _submit
