# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Authentication collaborators attaching credentials to service clients."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Dict, Optional

from azure.core.credentials import TokenCredential

if TYPE_CHECKING:
    from ._provider import _ServiceClient
    from .registry import ServiceReference


class Authenticator(ABC):
    """Attaches credentials to a service client before each operation."""

    @abstractmethod
    def authenticate_client(self, service_ref: "ServiceReference", client: "_ServiceClient") -> "_ServiceClient":
        """Return ``client`` ready to issue authenticated requests for ``service_ref``."""


class NoAuthenticator(Authenticator):
    """Pass-through authenticator for anonymous or pre-signed endpoints."""

    def authenticate_client(self, service_ref, client):
        return client


class TokenCredentialAuthenticator(Authenticator):
    """
    Azure Identity-based bearer authentication.

    :param credential: Credential used to acquire tokens.
    :type credential: ~azure.core.credentials.TokenCredential
    :param scope: Scope used when no per-reference scope is configured.
        Defaults to ``"<base url>/.default"``.
    :type scope: str or None
    :param scopes: Per service reference scopes.
    :type scopes: dict[ServiceReference, str] or None
    :raises TypeError: If ``credential`` does not implement ``TokenCredential``.
    """

    def __init__(
        self,
        credential: TokenCredential,
        scope: Optional[str] = None,
        scopes: Optional[Dict["ServiceReference", str]] = None,
    ) -> None:
        if not isinstance(credential, TokenCredential):
            raise TypeError("credential must implement azure.core.credentials.TokenCredential.")
        self.credential: TokenCredential = credential
        self._scope = scope
        self._scopes: Dict["ServiceReference", str] = dict(scopes or {})

    def _scope_for(self, service_ref: "ServiceReference", client: "_ServiceClient") -> str:
        return self._scopes.get(service_ref) or self._scope or f"{client.base_url}/.default"

    def authenticate_client(self, service_ref, client):
        token = self.credential.get_token(self._scope_for(service_ref, client))
        client.headers["Authorization"] = f"Bearer {token.token}"
        return client


__all__ = ["Authenticator", "NoAuthenticator", "TokenCredentialAuthenticator"]
