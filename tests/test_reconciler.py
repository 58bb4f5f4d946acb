from __future__ import annotations

from azure_client.resource_client import ResourceClientError
from engine.reconciler import BenefitReconciler, ReadErrorPolicy
from models.result import OutcomeAction

from conftest import FakeResourceClient


def test_absent_profile_is_enabled(fake_client):
    vm1 = fake_client.add_machine("vm1", location="northeurope")

    record = BenefitReconciler(fake_client, api_version="2023-06-20-preview").reconcile(vm1)

    assert record.action == OutcomeAction.ENABLED
    assert record.machine == "vm1"
    assert record.resource_group == "rg-arc"
    assert record.verified is None
    assert fake_client.puts == [{
        "resource_id": f"{vm1.resource_id}/licenseProfiles/default",
        "properties": {"softwareAssurance": {"softwareAssuranceCustomer": True}},
        "location": "northeurope",
        "api_version": "2023-06-20-preview",
    }]


def test_already_enabled_makes_no_write(fake_client):
    vm2 = fake_client.add_machine("vm2", software_assurance=True)

    record = BenefitReconciler(fake_client).reconcile(vm2)

    assert record.action == OutcomeAction.NO_CHANGE
    assert record.detail == "Already enabled"
    assert fake_client.puts == []


def test_false_flag_is_enabled(fake_client):
    vm = fake_client.add_machine("vm", software_assurance=False)

    record = BenefitReconciler(fake_client).reconcile(vm)

    assert record.action == OutcomeAction.ENABLED
    assert len(fake_client.puts) == 1


def test_second_run_is_a_no_op(fake_client):
    vm = fake_client.add_machine("vm")
    reconciler = BenefitReconciler(fake_client)

    first = reconciler.reconcile(vm)
    second = reconciler.reconcile(vm)

    assert first.action == OutcomeAction.ENABLED
    assert second.action == OutcomeAction.NO_CHANGE
    assert len(fake_client.puts) == 1


def test_write_failure_becomes_failed_record(fake_client):
    vm3 = fake_client.add_machine("vm3")
    fake_client.put_errors[vm3.license_profile_id] = ResourceClientError(
        "Azure API returned HTTP 403: AuthorizationFailed: no write permission",
        status_code=403,
    )

    record = BenefitReconciler(fake_client).reconcile(vm3)

    assert record.action == OutcomeAction.FAILED
    assert "AuthorizationFailed" in record.detail


def test_unexpected_exception_on_write_is_contained(fake_client):
    vm = fake_client.add_machine("vm")
    fake_client.put_errors[vm.license_profile_id] = RuntimeError("socket closed")

    record = BenefitReconciler(fake_client).reconcile(vm)

    assert record.action == OutcomeAction.FAILED
    assert record.detail == "socket closed"


def test_read_error_treated_as_absent_by_default(fake_client):
    vm = fake_client.add_machine("vm", software_assurance=True)
    fake_client.get_errors[vm.license_profile_id] = ResourceClientError("forbidden", status_code=403)

    record = BenefitReconciler(fake_client).reconcile(vm)

    assert record.action == OutcomeAction.ENABLED
    assert len(fake_client.puts) == 1


def test_read_error_can_be_surfaced(fake_client):
    vm = fake_client.add_machine("vm")
    fake_client.get_errors[vm.license_profile_id] = ResourceClientError("forbidden", status_code=403)

    record = BenefitReconciler(
        fake_client, read_error_policy=ReadErrorPolicy.SURFACE
    ).reconcile(vm)

    assert record.action == OutcomeAction.FAILED
    assert "forbidden" in record.detail
    assert fake_client.puts == []


def test_missing_profile_is_not_a_read_error_even_when_surfacing(fake_client):
    vm = fake_client.add_machine("vm")

    record = BenefitReconciler(
        fake_client, read_error_policy=ReadErrorPolicy.SURFACE
    ).reconcile(vm)

    assert record.action == OutcomeAction.ENABLED


def test_verify_after_write_confirms(fake_client):
    vm = fake_client.add_machine("vm")

    record = BenefitReconciler(fake_client, verify_after_write=True).reconcile(vm)

    assert record.action == OutcomeAction.ENABLED
    assert record.verified is True
    assert fake_client.gets.count(vm.license_profile_id) == 2


def test_verify_mismatch_is_a_caveat_not_a_failure():
    client = FakeResourceClient(persist_writes=False)
    vm = client.add_machine("vm")

    record = BenefitReconciler(client, verify_after_write=True).reconcile(vm)

    assert record.action == OutcomeAction.ENABLED
    assert record.verified is False
    assert "warning" in record.detail
    assert "absent" in record.detail


def test_policy_accepts_plain_string(fake_client):
    reconciler = BenefitReconciler(fake_client, read_error_policy="surface")
    vm = fake_client.add_machine("vm")
    fake_client.get_errors[vm.license_profile_id] = ResourceClientError("boom", status_code=500)

    assert reconciler.reconcile(vm).action == OutcomeAction.FAILED
