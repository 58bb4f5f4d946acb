"""License profile state and the result of reading it."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, Optional


@dataclass(frozen=True)
class LicenseProfileState:
    """The Software Assurance flag of a machine's license profile.

    ``software_assurance_customer`` is tri-state: True, False, or None when the
    profile or the property does not exist yet.
    """

    software_assurance_customer: Optional[bool] = None

    ABSENT: ClassVar[LicenseProfileState]

    @property
    def is_enabled(self) -> bool:
        return self.software_assurance_customer is True

    @property
    def is_absent(self) -> bool:
        return self.software_assurance_customer is None

    @property
    def label(self) -> str:
        if self.software_assurance_customer is None:
            return "absent"
        return "true" if self.software_assurance_customer else "false"

    @classmethod
    def from_resource(cls, raw: dict[str, Any]) -> LicenseProfileState:
        """Parse a licenseProfiles/default payload."""
        properties = raw.get("properties") or {}
        assurance = properties.get("softwareAssurance") or {}
        value = assurance.get("softwareAssuranceCustomer")
        if value is None:
            return cls.ABSENT
        return cls(software_assurance_customer=bool(value))

    @staticmethod
    def enabled_properties() -> dict[str, Any]:
        """Properties written to turn the flag on. Never used to turn it off."""
        return {"softwareAssurance": {"softwareAssuranceCustomer": True}}


LicenseProfileState.ABSENT = LicenseProfileState(None)


@dataclass(frozen=True)
class ProfileRead:
    """Outcome of reading a license profile.

    A missing profile is a successful read of an absent state. ``error`` is set
    only for unexpected failures (authorization, throttling, network).
    """

    state: LicenseProfileState = LicenseProfileState.ABSENT
    error: Optional[str] = None
    status_code: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, state: LicenseProfileState) -> ProfileRead:
        return cls(state=state)

    @classmethod
    def failure(cls, error: str, status_code: Optional[int] = None) -> ProfileRead:
        return cls(error=error, status_code=status_code)
