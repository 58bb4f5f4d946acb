"""Arc Software Assurance Enabler: Streamlit GUI.

Provides a web interface for selecting Azure Arc-enabled Windows servers,
enabling the Software Assurance benefit on them, and exporting the results.

Run with:
    streamlit run app/app.py
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import plotly.graph_objects as go
import streamlit as st

# Add project root to path so modules can be imported cleanly
_project_root = str(Path(__file__).resolve().parent.parent)
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from app.config import AppConfig, CONFIRMATION_PHRASE
from app.report import records_to_dataframe, summary_to_dataframe
from azure_client.auth import (
    AuthMethod,
    SessionPreconditionError,
    open_session,
    reset_credential,
)
from azure_client.resource_client import ResourceClient, ResourceClientError
from engine.reconciler import BenefitReconciler, ReadErrorPolicy
from engine.runner import BatchRunner, RunCancelled
from engine.selector import MachineSelector, Scope, ScopeKind, SelectionError
from models.result import OutcomeAction, RunSummary

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Page configuration
# ---------------------------------------------------------------------------
st.set_page_config(
    page_title="Arc Software Assurance",
    page_icon="☁️",
    layout="wide",
)

_ACTION_COLORS = {
    OutcomeAction.NO_CHANGE.value: "#3b82f6",
    OutcomeAction.ENABLED.value: "#22c55e",
    OutcomeAction.FAILED.value: "#ef4444",
}


def _highlight_action(row) -> list[str]:
    color = _ACTION_COLORS.get(row["Action"], "")
    return [f"color: {color}" if col == "Action" else "" for col in row.index]


def _render_summary(summary: RunSummary) -> None:
    """Render summary metrics next to a donut chart of outcomes."""
    chart_col, metrics_col = st.columns([1, 2])

    with chart_col:
        chart_df = summary_to_dataframe(summary)
        colors = [
            _ACTION_COLORS[OutcomeAction.NO_CHANGE.value],
            _ACTION_COLORS[OutcomeAction.ENABLED.value],
            _ACTION_COLORS[OutcomeAction.FAILED.value],
        ]
        fig = go.Figure(data=[go.Pie(
            labels=chart_df["Outcome"],
            values=chart_df["Machines"],
            hole=0.6,
            marker=dict(colors=colors),
            textinfo="value+percent",
            hovertemplate="<b>%{label}</b><br>%{value} machines<br>%{percent}<extra></extra>",
        )])
        fig.update_layout(
            showlegend=True,
            legend=dict(orientation="h", yanchor="bottom", y=-0.15, xanchor="center", x=0.5),
            margin=dict(t=10, b=10, l=10, r=10),
            height=260,
        )
        st.plotly_chart(fig, use_container_width=True)

    with metrics_col:
        c1, c2, c3, c4 = st.columns(4)
        c1.metric("Total", summary.total)
        c2.metric("Already enabled", summary.already_enabled)
        c3.metric("Newly enabled", summary.newly_enabled)
        c4.metric("Failed", summary.failed)
        if summary.has_failures:
            st.warning(
                f"{summary.failed} machine(s) could not be updated. "
                "See the Detail column for the error returned by Azure."
            )


def _open_client(subscription_id: str, auth_method: AuthMethod, tenant_id: str,
                 client_id: str, client_secret: str, timeout: int) -> ResourceClient:
    session = open_session(
        subscription_id,
        method=auth_method,
        tenant_id=tenant_id,
        client_id=client_id,
        client_secret=client_secret,
    )
    return ResourceClient(session, timeout=timeout)


def main() -> None:
    """Entry point for the Streamlit application."""
    st.title("Arc Software Assurance Enabler")
    st.caption(
        "Enable the Software Assurance benefit on Azure Arc-enabled Windows servers "
        "for a single machine, a resource group, or a whole subscription."
    )

    config = AppConfig.from_env()

    # --- Sidebar: Azure Login ---
    with st.sidebar:
        st.header("Azure Login")
        auth_options = [m.value for m in AuthMethod]
        auth_method = AuthMethod(st.selectbox("Authentication method", options=auth_options))
        subscription_id = st.text_input(
            "Subscription ID",
            value=config.subscription_id,
            type="password",
            help="Can also be set via AZURE_SUBSCRIPTION_ID env var.",
        )

        tenant_id = ""
        client_id = ""
        client_secret = ""
        if auth_method == AuthMethod.SERVICE_PRINCIPAL:
            tenant_id = st.text_input("Tenant ID", type="password")
            client_id = st.text_input("Client ID", type="password")
            client_secret = st.text_input("Client Secret", type="password")
        elif auth_method in (AuthMethod.DEVICE_CODE, AuthMethod.INTERACTIVE_BROWSER):
            tenant_id = st.text_input("Tenant ID (optional)")

        col_test, col_clear = st.columns(2)
        with col_test:
            if st.button("Test Connection"):
                try:
                    with st.spinner("Authenticating..."):
                        open_session(
                            subscription_id,
                            method=auth_method,
                            tenant_id=tenant_id,
                            client_id=client_id,
                            client_secret=client_secret,
                        )
                    st.session_state["auth_verified"] = True
                    st.success("Connected!")
                except SessionPreconditionError as exc:
                    st.session_state["auth_verified"] = False
                    st.error(str(exc))
        with col_clear:
            if st.button("Reset Auth"):
                reset_credential()
                st.session_state.pop("auth_verified", None)
                st.info("Credentials cleared.")

        st.divider()
        st.header("Options")
        verify = st.checkbox(
            "Verify after enabling",
            value=config.verify_after_write,
            help="Re-read each license profile after the write.",
        )
        surface_read_errors = st.checkbox(
            "Treat read errors as failures",
            value=config.read_error_policy == ReadErrorPolicy.SURFACE.value,
            help="By default an unreadable license profile is treated as not configured.",
        )

    # --- Step 1: Scope ---
    st.subheader("1. Choose scope")
    kind = ScopeKind(st.radio(
        "Scope",
        options=[k.value for k in ScopeKind],
        format_func=lambda v: {
            ScopeKind.SINGLE.value: "Single machine",
            ScopeKind.RESOURCE_GROUP.value: "Resource group",
            ScopeKind.SUBSCRIPTION.value: "Entire subscription",
        }[v],
        horizontal=True,
    ))

    resource_group = ""
    machine_name = ""
    exclude: list[str] = []
    if kind in (ScopeKind.SINGLE, ScopeKind.RESOURCE_GROUP):
        resource_group = st.text_input("Resource group")
    if kind == ScopeKind.SINGLE:
        machine_name = st.text_input("Machine name")
    else:
        exclude_raw = st.text_area("Exclude machines (one name per line)")
        exclude = [line.strip() for line in exclude_raw.splitlines() if line.strip()]

    if kind == ScopeKind.SINGLE:
        scope = Scope.single(resource_group, machine_name)
    elif kind == ScopeKind.RESOURCE_GROUP:
        scope = Scope.for_resource_group(resource_group)
    else:
        scope = Scope.subscription()

    if st.button("Find machines"):
        st.session_state.pop("summary", None)
        try:
            client = _open_client(subscription_id, auth_method, tenant_id,
                                  client_id, client_secret, config.request_timeout)
            selector = MachineSelector(client, machine_api_version=config.machine_api_version)
            with st.spinner(f"Enumerating Arc machines in {scope.describe()}..."):
                st.session_state["machines"] = selector.select(scope, exclude)
            st.session_state["scope"] = scope
        except (SessionPreconditionError, SelectionError, ResourceClientError) as exc:
            st.session_state.pop("machines", None)
            st.error(str(exc))

    machines = st.session_state.get("machines")
    if not machines or st.session_state.get("scope") != scope:
        return

    # --- Step 2: Review & confirm ---
    st.subheader("2. Review selection")
    st.dataframe(
        [{"Machine": m.name, "Resource Group": m.resource_group,
          "Location": m.location, "OS": m.os_name} for m in machines],
        use_container_width=True,
        hide_index=True,
    )

    needs_confirmation = BatchRunner.needs_confirmation(
        machines,
        require_confirmation=kind != ScopeKind.SINGLE,
        always_confirm=scope.is_all,
    )
    typed = ""
    if needs_confirmation:
        typed = st.text_input(
            f"Type {CONFIRMATION_PHRASE} to enable Software Assurance on "
            f"{len(machines)} machine(s)"
        )

    if st.button("Enable Software Assurance", type="primary"):
        try:
            client = _open_client(subscription_id, auth_method, tenant_id,
                                  client_id, client_secret, config.request_timeout)
        except SessionPreconditionError as exc:
            st.error(str(exc))
            return
        reconciler = BenefitReconciler(
            client,
            api_version=config.license_profile_api_version,
            verify_after_write=verify or kind == ScopeKind.SINGLE,
            read_error_policy=(
                ReadErrorPolicy.SURFACE if surface_read_errors
                else ReadErrorPolicy.TREAT_AS_ABSENT
            ),
        )
        progress = st.progress(0.0)

        def _update_progress(done: int, total: int) -> None:
            progress.progress(done / total, text=f"{done}/{total} machines")

        runner = BatchRunner(
            reconciler,
            confirm=lambda _machines: typed == CONFIRMATION_PHRASE,
            progress_callback=_update_progress,
        )
        try:
            st.session_state["summary"] = runner.run(
                machines,
                require_confirmation=kind != ScopeKind.SINGLE,
                always_confirm=scope.is_all,
            )
        except RunCancelled:
            progress.empty()
            st.info("Operation cancelled. Nothing was changed.")
            return

    summary: Optional[RunSummary] = st.session_state.get("summary")
    if summary is None:
        return

    # --- Step 3: Results ---
    st.subheader("3. Results")
    _render_summary(summary)
    df = records_to_dataframe(summary.records)
    st.dataframe(df.style.apply(_highlight_action, axis=1), use_container_width=True, hide_index=True)

    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    st.download_button(
        "Download CSV",
        data=df.to_csv(index=False).encode("utf-8"),
        file_name=f"arc_software_assurance_{timestamp}.csv",
        mime="text/csv",
    )


if __name__ == "__main__":
    main()
