"""Application configuration for the Arc Software Assurance enabler."""

from __future__ import annotations

import os
from dataclasses import dataclass

# Azure Resource Manager endpoint
ARM_ENDPOINT: str = "https://management.azure.com"

# OAuth scope for ARM bearer tokens
ARM_TOKEN_SCOPE: str = "https://management.azure.com/.default"

# Resource type of an Arc-enabled server
ARC_MACHINE_RESOURCE_TYPE: str = "Microsoft.HybridCompute/machines"

# Name of the license profile sub-resource under a machine
LICENSE_PROFILE_NAME: str = "default"

# Pinned preview version for licenseProfiles; override once the API is promoted
LICENSE_PROFILE_API_VERSION: str = "2023-06-20-preview"

# API version for reading Microsoft.HybridCompute/machines
HYBRID_COMPUTE_API_VERSION: str = "2022-12-27"

# API version for the generic subscription / resource group resource listing
RESOURCE_LIST_API_VERSION: str = "2021-04-01"

# Per-request timeout against ARM
ARM_REQUEST_TIMEOUT_SECONDS: int = 30

# Exact text a user must type to approve a multi-machine run
CONFIRMATION_PHRASE: str = "YES"

READ_ERROR_POLICIES: tuple[str, ...] = ("absent", "surface")

_TRUTHY = {"1", "true", "yes", "on"}


def _env_flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in _TRUTHY


@dataclass
class AppConfig:
    """Runtime configuration, resolved from environment variables and defaults."""

    subscription_id: str = ""
    license_profile_api_version: str = LICENSE_PROFILE_API_VERSION
    machine_api_version: str = HYBRID_COMPUTE_API_VERSION
    request_timeout: int = ARM_REQUEST_TIMEOUT_SECONDS
    verify_after_write: bool = False
    read_error_policy: str = "absent"

    def __post_init__(self) -> None:
        self.subscription_id = self.subscription_id.strip()
        self.read_error_policy = self.read_error_policy.strip().lower()
        if self.read_error_policy not in READ_ERROR_POLICIES:
            raise ValueError(
                f"READ_ERROR_POLICY must be one of {', '.join(READ_ERROR_POLICIES)}; "
                f"got '{self.read_error_policy}'"
            )

    @classmethod
    def from_env(cls) -> AppConfig:
        """Build configuration from environment variables."""
        return cls(
            subscription_id=os.environ.get("AZURE_SUBSCRIPTION_ID", ""),
            license_profile_api_version=os.environ.get(
                "LICENSE_PROFILE_API_VERSION", LICENSE_PROFILE_API_VERSION
            ),
            machine_api_version=os.environ.get(
                "HYBRID_COMPUTE_API_VERSION", HYBRID_COMPUTE_API_VERSION
            ),
            request_timeout=int(
                os.environ.get("ARM_REQUEST_TIMEOUT", str(ARM_REQUEST_TIMEOUT_SECONDS))
            ),
            verify_after_write=_env_flag("VERIFY_AFTER_WRITE", False),
            read_error_policy=os.environ.get("READ_ERROR_POLICY", "absent"),
        )
