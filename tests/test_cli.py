from __future__ import annotations

import pandas as pd
import pytest

from app import cli
from azure_client.auth import SessionPreconditionError
from azure_client.resource_client import ResourceClientError

from conftest import FakeResourceClient


@pytest.fixture
def wired(monkeypatch):
    """Route the CLI to an in-memory client and a stub session."""
    client = FakeResourceClient()
    opened = []

    def fake_open_session(subscription_id, **kwargs):
        if not subscription_id:
            raise SessionPreconditionError("Azure subscription ID is required.")
        opened.append(subscription_id)
        return object()

    monkeypatch.setattr(cli, "open_session", fake_open_session)
    monkeypatch.setattr(cli, "ResourceClient", lambda session, timeout: client)
    client.opened = opened
    return client


def _never_called(prompt: str) -> str:
    raise AssertionError("confirmation prompt should not be shown")


def test_missing_subscription_is_a_precondition_failure(wired, capsys):
    code = cli.main(["subscription"], input_func=_never_called)

    assert code == 1
    assert "subscription ID is required" in capsys.readouterr().err
    assert wired.opened == []


def test_single_machine_enabled_and_verified(wired, capsys):
    wired.add_machine("vm1")

    code = cli.main(["machine", "rg-arc", "vm1", "--subscription-id", "sub-1"],
                    input_func=_never_called)

    assert code == 0
    assert len(wired.puts) == 1
    out = capsys.readouterr().out
    assert "Enabled" in out
    assert "Verified" in out
    assert "Newly enabled: 1" in out


def test_single_machine_not_found(wired, capsys):
    code = cli.main(["machine", "rg-arc", "ghost", "--subscription-id", "sub-1"])

    assert code == 1
    assert "ghost" in capsys.readouterr().err


def test_single_machine_write_failure_exits_nonzero(wired):
    vm = wired.add_machine("vm1")
    wired.put_errors[vm.license_profile_id] = ResourceClientError("denied")

    code = cli.main(["machine", "rg-arc", "vm1", "--subscription-id", "sub-1"])

    assert code == 1


def test_batch_write_failure_still_exits_zero(wired, capsys):
    wired.add_machine("vm1")
    vm3 = wired.add_machine("vm3")
    wired.put_errors[vm3.license_profile_id] = ResourceClientError("denied")

    code = cli.main(
        ["resource-group", "rg-arc", "--subscription-id", "sub-1", "--yes"],
        input_func=_never_called,
    )

    assert code == 0
    out = capsys.readouterr().out
    assert "Failed: 1" in out
    assert "denied" in out


def test_resource_group_cancelled_at_prompt(wired, capsys):
    wired.add_machine("vm1")
    wired.add_machine("vm2")

    code = cli.main(
        ["resource-group", "rg-arc", "--subscription-id", "sub-1"],
        input_func=lambda prompt: "no",
    )

    assert code == 0
    assert wired.puts == []
    assert "cancelled" in capsys.readouterr().out


def test_resource_group_confirmed_with_exclusion(wired):
    wired.add_machine("vm1")
    wired.add_machine("vm2")
    wired.add_machine("vm3")
    prompts = []

    def answer(prompt: str) -> str:
        prompts.append(prompt)
        return "YES"

    code = cli.main(
        ["resource-group", "rg-arc", "--subscription-id", "sub-1", "--exclude", "vm2"],
        input_func=answer,
    )

    assert code == 0
    assert len(prompts) == 1
    assert [p["resource_id"].split("/")[-3] for p in wired.puts] == ["vm1", "vm3"]


def test_exclude_before_positional_and_repeated(wired):
    for name in ("vm1", "vm2", "vm3", "vm4"):
        wired.add_machine(name)

    code = cli.main(
        ["resource-group", "--exclude", "vm1", "rg-arc", "--exclude", "vm3",
         "--subscription-id", "sub-1", "--yes"],
        input_func=_never_called,
    )

    assert code == 0
    assert [p["resource_id"].split("/")[-3] for p in wired.puts] == ["vm2", "vm4"]


def test_subscription_with_one_machine_still_confirms(wired):
    wired.add_machine("vm1")
    prompts = []

    code = cli.main(
        ["subscription", "--subscription-id", "sub-1"],
        input_func=lambda prompt: prompts.append(prompt) or "nope",
    )

    assert code == 0
    assert len(prompts) == 1
    assert wired.puts == []


def test_subscription_without_windows_machines_never_prompts(wired, capsys):
    wired.add_machine("lnx1", os_name="linux")

    code = cli.main(["subscription", "--subscription-id", "sub-1"], input_func=_never_called)

    assert code == 1
    assert "No Windows" in capsys.readouterr().err


def test_enumeration_failure_exits_nonzero(wired, monkeypatch):
    def broken(*args, **kwargs):
        raise ResourceClientError("Azure API returned HTTP 403")

    monkeypatch.setattr(wired, "list_resources", broken)

    assert cli.main(["subscription", "--subscription-id", "sub-1", "--yes"]) == 1


def test_subscription_from_environment(wired, monkeypatch):
    monkeypatch.setenv("AZURE_SUBSCRIPTION_ID", "sub-env")
    wired.add_machine("vm1", software_assurance=True)

    code = cli.main(["machine", "rg-arc", "vm1"])

    assert code == 0
    assert wired.opened == ["sub-env"]
    assert wired.puts == []


def test_output_csv(wired, tmp_path):
    wired.add_machine("vm1")
    wired.add_machine("vm2", software_assurance=True)
    target = tmp_path / "results.csv"

    code = cli.main([
        "resource-group", "rg-arc", "--subscription-id", "sub-1", "--yes",
        "--output", str(target),
    ])

    assert code == 0
    df = pd.read_csv(target)
    assert list(df["Machine"]) == ["vm1", "vm2"]
    assert list(df["Action"]) == ["Enabled", "NoChange"]
