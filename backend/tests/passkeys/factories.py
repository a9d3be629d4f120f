"""
Factory for WebAuthn credential records.
"""

import factory

from apps.passkeys.constants import DeviceType
from apps.passkeys.models import WebAuthnCredential
from tests.conftest import FROZEN_NOW


class WebAuthnCredentialFactory(factory.Factory):
    """Factory for creating WebAuthnCredential instances (not stored)."""

    class Meta:
        model = WebAuthnCredential

    account_id = factory.Sequence(lambda n: f"acct_{n}")
    credential_id = factory.Sequence(lambda n: f"credential_{n}".encode())
    public_key = factory.Sequence(lambda n: f"public_key_{n}".encode())
    sign_count = 0
    created_at = FROZEN_NOW
    name = factory.Sequence(lambda n: f"Test Passkey {n}")
    transports = factory.LazyFunction(lambda: ["internal"])
    device_type = DeviceType.MULTI_DEVICE
    backed_up = True
