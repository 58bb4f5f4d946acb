"""MachineRef model representing one Arc-enabled server as read from ARM."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

from app.config import LICENSE_PROFILE_NAME

# Pulls the resource group segment out of an ARM resource id
_RESOURCE_GROUP_RE = re.compile(r"/resourceGroups/([^/]+)", re.IGNORECASE)


def _resource_group_from_id(resource_id: str) -> str:
    """Derive the resource group name from an ARM resource id.

    Examples:
        /subscriptions/s/resourceGroups/rg-arc/providers/Microsoft.HybridCompute/machines/vm1
            → rg-arc
    """
    match = _RESOURCE_GROUP_RE.search(resource_id)
    if match:
        return match.group(1)
    return ""


@dataclass(frozen=True)
class MachineRef:
    """Read-only snapshot of an Arc machine taken at selection time.

    Attributes:
        name: Machine name, unique within its resource group.
        resource_group: Resource group holding the machine.
        resource_id: Full ARM resource id.
        location: Azure region the machine is registered in.
        os_name: Reported OS name, used only for the Windows filter.
    """

    name: str
    resource_group: str
    resource_id: str
    location: str
    os_name: str = ""

    @property
    def is_windows(self) -> bool:
        """True when the OS name mentions Windows anywhere, in any case."""
        return "windows" in self.os_name.lower()

    @property
    def license_profile_id(self) -> str:
        return f"{self.resource_id}/licenseProfiles/{LICENSE_PROFILE_NAME}"

    @classmethod
    def from_resource(cls, raw: dict[str, Any]) -> MachineRef:
        """Build a MachineRef from an ARM resource payload."""
        resource_id = raw.get("id", "")
        properties = raw.get("properties") or {}
        return cls(
            name=raw.get("name", ""),
            resource_group=raw.get("resourceGroup") or _resource_group_from_id(resource_id),
            resource_id=resource_id,
            location=raw.get("location", ""),
            os_name=properties.get("osName") or "",
        )
