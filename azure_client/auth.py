"""Azure authentication and the subscription-bound ARM session.

Credentials come from azure-identity:
- Azure CLI login (az login), managed identity or env vars (DefaultAzureCredential)
- Service principal (client ID + tenant ID + client secret)
- Device code flow (browser-based login with a one-time code)
- Interactive browser

Every run starts by opening an ``AzureSession``. A session that cannot mint an
ARM token, or has no subscription to act on, is a precondition failure.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, Union

from azure.identity import (
    ClientSecretCredential,
    DefaultAzureCredential,
    DeviceCodeCredential,
    InteractiveBrowserCredential,
)

from app.config import ARM_TOKEN_SCOPE

logger = logging.getLogger(__name__)


class AuthMethod(str, Enum):
    """Supported Azure authentication methods."""

    DEFAULT = "Default (CLI / Managed Identity / Env Vars)"
    SERVICE_PRINCIPAL = "Service Principal"
    DEVICE_CODE = "Device Code (Browser Login)"
    INTERACTIVE_BROWSER = "Interactive Browser"

    def __str__(self) -> str:
        return self.value


class SessionPreconditionError(Exception):
    """Raised when no usable authenticated session bound to a subscription exists."""


CredentialType = Union[
    DefaultAzureCredential,
    ClientSecretCredential,
    DeviceCodeCredential,
    InteractiveBrowserCredential,
]
DeviceCodePromptCallback = Callable[[str, str, int], None]

_credential: Optional[CredentialType] = None
_current_method: Optional[AuthMethod] = None


def reset_credential() -> None:
    """Clear the cached credential so a new one can be created."""
    global _credential, _current_method
    _credential = None
    _current_method = None
    logger.info("Azure credential cache cleared")


def get_credential(
    method: AuthMethod = AuthMethod.DEFAULT,
    tenant_id: str = "",
    client_id: str = "",
    client_secret: str = "",
    device_code_callback: Optional[DeviceCodePromptCallback] = None,
) -> CredentialType:
    """Create or return a cached credential for the given auth method.

    Raises:
        SessionPreconditionError: If the credential cannot be created.
    """
    global _credential, _current_method

    if _credential is not None and _current_method == method:
        return _credential

    try:
        if method == AuthMethod.SERVICE_PRINCIPAL:
            if not all([tenant_id, client_id, client_secret]):
                raise SessionPreconditionError(
                    "Service Principal requires Tenant ID, Client ID, and Client Secret."
                )
            _credential = ClientSecretCredential(
                tenant_id=tenant_id,
                client_id=client_id,
                client_secret=client_secret,
            )
            logger.info("Using Service Principal credential (client_id=%s)", client_id)

        elif method == AuthMethod.DEVICE_CODE:
            kwargs: dict = {}
            if tenant_id:
                kwargs["tenant_id"] = tenant_id
            if device_code_callback:
                kwargs["prompt_callback"] = device_code_callback
            _credential = DeviceCodeCredential(**kwargs)
            logger.info("Using Device Code credential")

        elif method == AuthMethod.INTERACTIVE_BROWSER:
            kwargs = {}
            if tenant_id:
                kwargs["tenant_id"] = tenant_id
            _credential = InteractiveBrowserCredential(**kwargs)
            logger.info("Using Interactive Browser credential")

        else:
            _credential = DefaultAzureCredential()
            logger.info("Using DefaultAzureCredential")

        _current_method = method
        return _credential

    except SessionPreconditionError:
        raise
    except Exception as exc:
        raise SessionPreconditionError(
            f"Failed to initialize Azure credentials: {exc}"
        ) from exc


@dataclass
class AzureSession:
    """An authenticated credential bound to one subscription."""

    subscription_id: str
    credential: Any
    scope: str = ARM_TOKEN_SCOPE

    def get_token(self) -> str:
        """Return a bearer token for ARM.

        Raises:
            SessionPreconditionError: If the credential cannot produce a token.
        """
        try:
            token = self.credential.get_token(self.scope)
        except Exception as exc:
            raise SessionPreconditionError(
                f"Failed to obtain access token: {exc}"
            ) from exc
        logger.debug("Obtained access token, expires at %s", token.expires_on)
        return token.token

    @property
    def subscription_path(self) -> str:
        return f"/subscriptions/{self.subscription_id}"


def open_session(
    subscription_id: str,
    method: AuthMethod = AuthMethod.DEFAULT,
    tenant_id: str = "",
    client_id: str = "",
    client_secret: str = "",
    device_code_callback: Optional[DeviceCodePromptCallback] = None,
    credential: Optional[Any] = None,
) -> AzureSession:
    """Open a session and prove it works by requesting a token.

    Args:
        subscription_id: The subscription every operation is scoped to.
        method: Auth method used when no ``credential`` is given.
        tenant_id: For Service Principal / Device Code.
        client_id: For Service Principal.
        client_secret: For Service Principal.
        device_code_callback: Optional callback for device code flow prompts.
        credential: An already-built credential; skips the factory.

    Returns:
        A ready-to-use AzureSession.

    Raises:
        SessionPreconditionError: If there is no subscription or no token.
    """
    subscription_id = (subscription_id or "").strip()
    if not subscription_id:
        raise SessionPreconditionError(
            "Azure subscription ID is required. "
            "Pass --subscription-id or set the AZURE_SUBSCRIPTION_ID environment variable."
        )

    if credential is None:
        credential = get_credential(
            method=method,
            tenant_id=tenant_id,
            client_id=client_id,
            client_secret=client_secret,
            device_code_callback=device_code_callback,
        )

    session = AzureSession(subscription_id=subscription_id, credential=credential)
    session.get_token()
    logger.info("Session established for subscription %s", subscription_id)
    return session
