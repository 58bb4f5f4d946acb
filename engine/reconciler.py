"""Software Assurance reconciler.

Brings one machine's license profile to ``softwareAssuranceCustomer: true``:

    ReadState -> Decide -> Write -> (Verify)

A machine that is already enabled is left alone. Every failure is turned into
a ``Failed`` OutcomeRecord so a batch never aborts on one machine.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Optional, Protocol

from app.config import LICENSE_PROFILE_API_VERSION
from azure_client.resource_client import ResourceClientError, ResourceNotFoundError
from models.license_profile import LicenseProfileState, ProfileRead
from models.machine import MachineRef
from models.result import OutcomeAction, OutcomeRecord

logger = logging.getLogger(__name__)

ALREADY_ENABLED = "Already enabled"
ENABLED = "Software Assurance enabled"


class ProfileClient(Protocol):
    def get_resource(self, resource_id: str, api_version: str) -> dict[str, Any]: ...

    def upsert_resource(
        self,
        resource_id: str,
        properties: dict[str, Any],
        location: str,
        api_version: str,
    ) -> dict[str, Any]: ...


class ReadErrorPolicy(str, Enum):
    """How an unexpected failure reading the license profile is handled."""

    TREAT_AS_ABSENT = "absent"
    SURFACE = "surface"

    def __str__(self) -> str:
        return self.value


class BenefitReconciler:
    """Enables the Software Assurance flag on one machine at a time."""

    def __init__(
        self,
        client: ProfileClient,
        api_version: str = LICENSE_PROFILE_API_VERSION,
        verify_after_write: bool = False,
        read_error_policy: ReadErrorPolicy = ReadErrorPolicy.TREAT_AS_ABSENT,
    ) -> None:
        """Initialize the reconciler.

        Args:
            client: Resource client used to read and upsert license profiles.
            api_version: API version for the licenseProfiles sub-resource.
            verify_after_write: Re-read the profile after a successful write.
            read_error_policy: What a non-404 read failure means.
        """
        self._client = client
        self._api_version = api_version
        self._verify = verify_after_write
        self._read_error_policy = ReadErrorPolicy(read_error_policy)

    def read_state(self, machine: MachineRef) -> ProfileRead:
        """Read the machine's license profile.

        A 404 is an absent profile, not an error.
        """
        try:
            raw = self._client.get_resource(machine.license_profile_id, self._api_version)
        except ResourceNotFoundError:
            return ProfileRead.success(LicenseProfileState.ABSENT)
        except ResourceClientError as exc:
            return ProfileRead.failure(str(exc), exc.status_code)
        except Exception as exc:
            return ProfileRead.failure(str(exc))
        return ProfileRead.success(LicenseProfileState.from_resource(raw))

    def reconcile(self, machine: MachineRef) -> OutcomeRecord:
        """Reconcile a single machine and return its outcome.

        Args:
            machine: The machine to bring to the enabled state.

        Returns:
            One OutcomeRecord; exceptions never escape.
        """
        read = self.read_state(machine)
        state = read.state

        if not read.ok:
            if self._read_error_policy == ReadErrorPolicy.SURFACE:
                logger.warning(
                    "%s: could not read license profile: %s", machine.name, read.error
                )
                return self._record(
                    machine,
                    OutcomeAction.FAILED,
                    f"Could not read license profile: {read.error}",
                )
            logger.info(
                "%s: license profile read failed (%s); treating as not configured",
                machine.name,
                read.error,
            )
            state = LicenseProfileState.ABSENT

        if state.is_enabled:
            logger.info("%s: Software Assurance already enabled", machine.name)
            return self._record(machine, OutcomeAction.NO_CHANGE, ALREADY_ENABLED)

        logger.info(
            "%s: Software Assurance is %s; enabling", machine.name, state.label
        )
        try:
            self._client.upsert_resource(
                machine.license_profile_id,
                LicenseProfileState.enabled_properties(),
                machine.location,
                self._api_version,
            )
        except Exception as exc:
            logger.error("%s: failed to enable Software Assurance: %s", machine.name, exc)
            return self._record(machine, OutcomeAction.FAILED, str(exc))

        if not self._verify:
            return self._record(machine, OutcomeAction.ENABLED, ENABLED)
        return self._verify_write(machine)

    def _verify_write(self, machine: MachineRef) -> OutcomeRecord:
        """Re-read after a write; a mismatch is a caveat, not a failure."""
        check = self.read_state(machine)
        if check.ok and check.state.is_enabled:
            logger.info("%s: verified Software Assurance is enabled", machine.name)
            return self._record(machine, OutcomeAction.ENABLED, ENABLED, verified=True)

        if check.ok:
            reason = f"license profile reports '{check.state.label}'"
        else:
            reason = f"re-read failed: {check.error}"
        logger.warning("%s: write accepted but verification failed: %s", machine.name, reason)
        return self._record(
            machine,
            OutcomeAction.ENABLED,
            f"{ENABLED} (warning: verification did not confirm, {reason})",
            verified=False,
        )

    @staticmethod
    def _record(
        machine: MachineRef,
        action: OutcomeAction,
        detail: str,
        verified: Optional[bool] = None,
    ) -> OutcomeRecord:
        return OutcomeRecord(
            machine=machine.name,
            resource_group=machine.resource_group,
            action=action,
            detail=detail,
            verified=verified,
            resource_id=machine.resource_id,
        )
