"""Data models for the Arc Software Assurance enabler."""

from models.license_profile import LicenseProfileState, ProfileRead
from models.machine import MachineRef
from models.result import OutcomeAction, OutcomeRecord, RunSummary

__all__ = [
    "LicenseProfileState",
    "MachineRef",
    "OutcomeAction",
    "OutcomeRecord",
    "ProfileRead",
    "RunSummary",
]
