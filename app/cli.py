"""Command-line entry point for enabling Software Assurance on Arc machines.

Usage:
    arc-sa machine RESOURCE_GROUP MACHINE_NAME
    arc-sa resource-group RESOURCE_GROUP [--exclude NAME]...
    arc-sa subscription [--exclude NAME]...

Exit status is 0 when the run completes or is cancelled at the prompt, and 1
when there is no session, the target cannot be found, or nothing matches. For
the single-machine command a failed write also exits 1.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import Callable, Optional, Sequence

from app.config import AppConfig
from app.report import export_csv, format_summary, format_table
from azure_client.auth import AuthMethod, SessionPreconditionError, open_session
from azure_client.resource_client import ResourceClient, ResourceClientError
from engine.reconciler import BenefitReconciler, ReadErrorPolicy
from engine.runner import BatchRunner, RunCancelled, prompt_confirmation
from engine.selector import MachineSelector, Scope, ScopeKind, SelectionError
from models.machine import MachineRef

logger = logging.getLogger(__name__)

_AUTH_CHOICES = {
    "default": AuthMethod.DEFAULT,
    "service-principal": AuthMethod.SERVICE_PRINCIPAL,
    "device-code": AuthMethod.DEVICE_CODE,
    "interactive-browser": AuthMethod.INTERACTIVE_BROWSER,
}

EXIT_OK = 0
EXIT_ERROR = 1


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--subscription-id",
        default=None,
        help="Subscription to act on (default: AZURE_SUBSCRIPTION_ID)",
    )
    common.add_argument(
        "--auth",
        choices=sorted(_AUTH_CHOICES),
        default="default",
        help="Azure authentication method. Service principal reads "
             "AZURE_TENANT_ID, AZURE_CLIENT_ID and AZURE_CLIENT_SECRET.",
    )
    common.add_argument(
        "--verify",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Re-read each license profile after enabling it "
             "(default: on for a single machine, off for batches)",
    )
    common.add_argument(
        "--surface-read-errors",
        action="store_true",
        help="Record a machine as Failed when its license profile cannot be read, "
             "instead of treating it as not configured",
    )
    common.add_argument(
        "--output",
        default=None,
        help="Also write the results table to this CSV file",
    )
    common.add_argument(
        "--log-level",
        default=os.environ.get("LOG_LEVEL", "INFO"),
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )

    batch = argparse.ArgumentParser(add_help=False)
    batch.add_argument(
        "--exclude",
        action="append",
        default=None,
        metavar="NAME",
        help="Machine name to leave untouched (exact match); repeat for more",
    )
    batch.add_argument(
        "--yes",
        action="store_true",
        help="Skip the interactive confirmation prompt",
    )

    parser = argparse.ArgumentParser(
        prog="arc-sa",
        description="Enable Software Assurance benefits on Azure Arc-enabled Windows servers",
    )
    sub = parser.add_subparsers(dest="scope", required=True)

    single = sub.add_parser(
        str(ScopeKind.SINGLE), parents=[common], help="Enable a single named machine"
    )
    single.add_argument("resource_group", help="Resource group of the machine")
    single.add_argument("machine_name", help="Arc machine name")

    group = sub.add_parser(
        str(ScopeKind.RESOURCE_GROUP),
        parents=[common, batch],
        help="Enable every Windows Arc machine in a resource group",
    )
    group.add_argument("resource_group", help="Resource group to process")

    sub.add_parser(
        str(ScopeKind.SUBSCRIPTION),
        parents=[common, batch],
        help="Enable every Windows Arc machine in the subscription",
    )
    return parser


def _scope_from_args(args: argparse.Namespace) -> Scope:
    kind = ScopeKind(args.scope)
    if kind == ScopeKind.SINGLE:
        return Scope.single(args.resource_group, args.machine_name)
    if kind == ScopeKind.RESOURCE_GROUP:
        return Scope.for_resource_group(args.resource_group)
    return Scope.subscription()


def _console_confirm(input_func: Callable[[str], str]) -> Callable[[Sequence[MachineRef]], bool]:
    def _confirm(machines: Sequence[MachineRef]) -> bool:
        print("The following machines will be updated:")
        for m in machines:
            print(f"  - {m.name} ({m.resource_group}, {m.os_name or 'unknown OS'})")
        return prompt_confirmation(machines, input_func)

    return _confirm


def _assume_yes(machines: Sequence[MachineRef]) -> bool:
    return True


def main(
    argv: Optional[Sequence[str]] = None,
    input_func: Callable[[str], str] = input,
) -> int:
    """Run the tool and return the process exit status."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    try:
        config = AppConfig.from_env()
    except ValueError as exc:
        logger.error("Invalid configuration: %s", exc)
        return EXIT_ERROR

    scope = _scope_from_args(args)
    subscription_id = args.subscription_id or config.subscription_id
    verify = args.verify
    if verify is None:
        verify = scope.kind == ScopeKind.SINGLE or config.verify_after_write
    read_policy = (
        ReadErrorPolicy.SURFACE if args.surface_read_errors
        else ReadErrorPolicy(config.read_error_policy)
    )

    try:
        session = open_session(
            subscription_id,
            method=_AUTH_CHOICES[args.auth],
            tenant_id=os.environ.get("AZURE_TENANT_ID", ""),
            client_id=os.environ.get("AZURE_CLIENT_ID", ""),
            client_secret=os.environ.get("AZURE_CLIENT_SECRET", ""),
        )
    except SessionPreconditionError as exc:
        logger.error("No usable Azure session: %s", exc)
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_ERROR

    client = ResourceClient(session, timeout=config.request_timeout)
    selector = MachineSelector(client, machine_api_version=config.machine_api_version)

    try:
        machines = selector.select(scope, getattr(args, "exclude", None) or [])
    except SelectionError as exc:
        logger.error("%s", exc)
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_ERROR
    except (ResourceClientError, SessionPreconditionError) as exc:
        logger.error("Failed to enumerate Arc machines: %s", exc)
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_ERROR

    reconciler = BenefitReconciler(
        client,
        api_version=config.license_profile_api_version,
        verify_after_write=verify,
        read_error_policy=read_policy,
    )
    if getattr(args, "yes", False):
        confirm = _assume_yes
    else:
        confirm = _console_confirm(input_func)
    runner = BatchRunner(reconciler, confirm=confirm)

    try:
        summary = runner.run(
            machines,
            require_confirmation=scope.kind != ScopeKind.SINGLE,
            always_confirm=scope.is_all,
        )
    except RunCancelled as exc:
        print(str(exc))
        return EXIT_OK

    print()
    print(format_table(summary.records))
    print()
    print(format_summary(summary))

    if args.output:
        path = export_csv(summary.records, args.output)
        print(f"Results written to {path}")

    if scope.kind == ScopeKind.SINGLE and summary.has_failures:
        return EXIT_ERROR
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
