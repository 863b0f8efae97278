"""Manage GitHub Actions repository secrets from the terminal."""

from .credentials import CredentialAcquisition
from .device_flow import DeviceFlowClient
from .sealed import SealedSecretEncryptor
from .session import SecretsSession

__all__ = [
    "CredentialAcquisition",
    "DeviceFlowClient",
    "SealedSecretEncryptor",
    "SecretsSession",
]
