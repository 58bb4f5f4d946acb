from __future__ import annotations

from typing import Any, Optional

import pytest

from azure_client.resource_client import ResourceNotFoundError
from models.machine import MachineRef

SUBSCRIPTION_ID = "00000000-0000-0000-0000-000000000001"


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "AZURE_SUBSCRIPTION_ID",
        "LICENSE_PROFILE_API_VERSION",
        "HYBRID_COMPUTE_API_VERSION",
        "ARM_REQUEST_TIMEOUT",
        "VERIFY_AFTER_WRITE",
        "READ_ERROR_POLICY",
    ):
        monkeypatch.delenv(name, raising=False)


def machine_id(name: str, resource_group: str = "rg-arc") -> str:
    return (
        f"/subscriptions/{SUBSCRIPTION_ID}/resourceGroups/{resource_group}"
        f"/providers/Microsoft.HybridCompute/machines/{name}"
    )


def make_machine(
    name: str,
    resource_group: str = "rg-arc",
    os_name: str = "windows",
    location: str = "westeurope",
) -> MachineRef:
    return MachineRef(
        name=name,
        resource_group=resource_group,
        resource_id=machine_id(name, resource_group),
        location=location,
        os_name=os_name,
    )


class FakeResourceClient:
    """In-memory stand-in for ResourceClient."""

    subscription_id = SUBSCRIPTION_ID

    def __init__(self, persist_writes: bool = True) -> None:
        self.resources: dict[str, dict[str, Any]] = {}
        self.listing: list[dict[str, Any]] = []
        self.get_errors: dict[str, Exception] = {}
        self.put_errors: dict[str, Exception] = {}
        self.gets: list[str] = []
        self.puts: list[dict[str, Any]] = []
        self.persist_writes = persist_writes

    def add_machine(
        self,
        name: str,
        resource_group: str = "rg-arc",
        os_name: str = "windows",
        location: str = "westeurope",
        software_assurance: Optional[bool] = None,
    ) -> MachineRef:
        resource_id = machine_id(name, resource_group)
        self.resources[resource_id] = {
            "id": resource_id,
            "name": name,
            "location": location,
            "type": "Microsoft.HybridCompute/machines",
            "properties": {"osName": os_name, "status": "Connected"},
        }
        self.listing.append({
            "id": resource_id,
            "name": name,
            "type": "Microsoft.HybridCompute/machines",
            "location": location,
        })
        if software_assurance is not None:
            self.resources[f"{resource_id}/licenseProfiles/default"] = {
                "properties": {
                    "softwareAssurance": {"softwareAssuranceCustomer": software_assurance}
                }
            }
        return MachineRef.from_resource(self.resources[resource_id])

    def get_resource(self, resource_id: str, api_version: str) -> dict[str, Any]:
        self.gets.append(resource_id)
        if resource_id in self.get_errors:
            raise self.get_errors[resource_id]
        if resource_id not in self.resources:
            raise ResourceNotFoundError(f"Resource not found: {resource_id}", status_code=404)
        return self.resources[resource_id]

    def list_resources(
        self, resource_type: str, resource_group: Optional[str] = None
    ) -> list[dict[str, Any]]:
        if resource_group is None:
            return list(self.listing)
        marker = f"/resourceGroups/{resource_group}/"
        return [r for r in self.listing if marker in r["id"]]

    def upsert_resource(
        self,
        resource_id: str,
        properties: dict[str, Any],
        location: str,
        api_version: str,
    ) -> dict[str, Any]:
        self.puts.append({
            "resource_id": resource_id,
            "properties": properties,
            "location": location,
            "api_version": api_version,
        })
        if resource_id in self.put_errors:
            raise self.put_errors[resource_id]
        body = {"location": location, "properties": properties}
        if self.persist_writes:
            self.resources[resource_id] = body
        return body


@pytest.fixture
def fake_client() -> FakeResourceClient:
    return FakeResourceClient()
