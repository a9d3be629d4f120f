"""
Constants for the passkeys app.
"""

from enum import StrEnum

SESSION_ID_BYTES = 32


class CeremonyType(StrEnum):
    REGISTRATION = "registration"
    AUTHENTICATION = "authentication"


class DeviceType(StrEnum):
    """Whether the credential is bound to one device or synced across several."""

    SINGLE_DEVICE = "single_device"
    MULTI_DEVICE = "multi_device"
