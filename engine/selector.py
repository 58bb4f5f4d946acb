"""Machine selector.

Resolves a scope (one named machine, a resource group, or the whole
subscription) into the ordered list of Arc-enabled Windows machines to
reconcile.

Scopes:
    SINGLE          - exactly one machine by resource group + name.
    RESOURCE_GROUP  - every Windows Arc machine in one resource group.
    SUBSCRIPTION    - every Windows Arc machine in the subscription.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Optional, Protocol

from app.config import ARC_MACHINE_RESOURCE_TYPE, HYBRID_COMPUTE_API_VERSION
from azure_client.resource_client import ResourceClientError, ResourceNotFoundError
from models.machine import MachineRef

logger = logging.getLogger(__name__)


class SelectionError(Exception):
    """Base class for selection failures that end a run."""


class MachineNotFoundError(SelectionError):
    """Raised when a named machine does not exist."""


class EmptySelectionError(SelectionError):
    """Raised when filtering and exclusions leave no machines to process."""


class ResourceReader(Protocol):
    def get_resource(self, resource_id: str, api_version: str) -> dict[str, Any]: ...

    def list_resources(
        self, resource_type: str, resource_group: Optional[str] = None
    ) -> list[dict[str, Any]]: ...

    @property
    def subscription_id(self) -> str: ...


class ScopeKind(str, Enum):
    """Selection breadth of a run."""

    SINGLE = "machine"
    RESOURCE_GROUP = "resource-group"
    SUBSCRIPTION = "subscription"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Scope:
    """Which machines a run targets."""

    kind: ScopeKind
    resource_group: str = ""
    machine_name: str = ""

    @classmethod
    def single(cls, resource_group: str, machine_name: str) -> Scope:
        return cls(ScopeKind.SINGLE, resource_group=resource_group, machine_name=machine_name)

    @classmethod
    def for_resource_group(cls, resource_group: str) -> Scope:
        return cls(ScopeKind.RESOURCE_GROUP, resource_group=resource_group)

    @classmethod
    def subscription(cls) -> Scope:
        return cls(ScopeKind.SUBSCRIPTION)

    @property
    def is_all(self) -> bool:
        return self.kind == ScopeKind.SUBSCRIPTION

    def describe(self) -> str:
        if self.kind == ScopeKind.SINGLE:
            return f"machine '{self.machine_name}' in resource group '{self.resource_group}'"
        if self.kind == ScopeKind.RESOURCE_GROUP:
            return f"resource group '{self.resource_group}'"
        return "subscription"


class MachineSelector:
    """Turns a Scope into the MachineRefs to reconcile."""

    def __init__(
        self,
        client: ResourceReader,
        machine_api_version: str = HYBRID_COMPUTE_API_VERSION,
        exclude_case_sensitive: bool = True,
    ) -> None:
        """Initialize the selector.

        Args:
            client: Resource client bound to the target subscription.
            machine_api_version: API version for reading HybridCompute machines.
            exclude_case_sensitive: Match exclusion names exactly (default) or
                                    ignoring case.
        """
        self._client = client
        self._api_version = machine_api_version
        self._exclude_case_sensitive = exclude_case_sensitive

    def select(
        self,
        scope: Scope,
        exclude_names: Optional[Iterable[str]] = None,
    ) -> list[MachineRef]:
        """Resolve a scope into machines, in enumeration order.

        Raises:
            MachineNotFoundError: A SINGLE scope names a machine that does not exist.
            EmptySelectionError: No machines remain after filtering and exclusions.
            ResourceClientError: Enumeration itself failed.
        """
        if scope.kind == ScopeKind.SINGLE:
            return [self._select_single(scope)]

        candidates = self._client.list_resources(
            ARC_MACHINE_RESOURCE_TYPE,
            resource_group=scope.resource_group or None,
        )

        windows: list[MachineRef] = []
        for raw in candidates:
            machine = self._fetch_detail(raw)
            if machine is None:
                continue
            if machine.is_windows:
                windows.append(machine)
            else:
                logger.debug(
                    "Skipping %s: OS '%s' is not Windows", machine.name, machine.os_name
                )

        selected = self._apply_exclusions(windows, exclude_names or ())
        logger.info(
            "Selected %d of %d Arc machines in %s (%d Windows)",
            len(selected),
            len(candidates),
            scope.describe(),
            len(windows),
        )
        if not selected:
            raise EmptySelectionError(
                f"No Windows Arc-enabled machines to process in {scope.describe()}."
            )
        return selected

    def _select_single(self, scope: Scope) -> MachineRef:
        resource_id = (
            f"/subscriptions/{self._client.subscription_id}"
            f"/resourceGroups/{scope.resource_group}"
            f"/providers/{ARC_MACHINE_RESOURCE_TYPE}/{scope.machine_name}"
        )
        try:
            raw = self._client.get_resource(resource_id, self._api_version)
        except ResourceNotFoundError as exc:
            raise MachineNotFoundError(
                f"Arc machine '{scope.machine_name}' was not found in resource group "
                f"'{scope.resource_group}'."
            ) from exc

        machine = MachineRef.from_resource(raw)
        if not machine.is_windows:
            logger.warning(
                "Machine %s reports OS '%s'; Software Assurance applies to Windows Server",
                machine.name,
                machine.os_name,
            )
        return machine

    def _fetch_detail(self, raw: dict[str, Any]) -> Optional[MachineRef]:
        """Read a listed machine's full resource so its OS is known."""
        resource_id = raw.get("id", "")
        try:
            detail = self._client.get_resource(resource_id, self._api_version)
        except ResourceClientError as exc:
            logger.warning("Skipping %s: could not read machine details: %s", raw.get("name", resource_id), exc)
            return None
        return MachineRef.from_resource(detail)

    def _apply_exclusions(
        self, machines: list[MachineRef], exclude_names: Iterable[str]
    ) -> list[MachineRef]:
        if self._exclude_case_sensitive:
            excluded = set(exclude_names)
        else:
            excluded = {n.lower() for n in exclude_names}

        kept: list[MachineRef] = []
        for machine in machines:
            name = machine.name if self._exclude_case_sensitive else machine.name.lower()
            if name in excluded:
                logger.info("Excluding %s by request", machine.name)
                continue
            kept.append(machine)
        return kept
