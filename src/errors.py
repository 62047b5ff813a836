from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from entities.keycloak import KeycloakToken


class KeycloakSyncError(Exception):
    ...


class SyncConfigurationError(KeycloakSyncError):
    """Raised when sync configuration is invalid."""


class AuthenticationError(KeycloakSyncError):
    """Raised when a realm session cannot be established.

    Carries whatever token was obtained before the failure so the caller can
    still end the session it partially opened.
    """

    def __init__(self, message: str, token: Optional[KeycloakToken] = None) -> None:  # noqa: ANN101
        super().__init__(message)
        self.token = token


class GroupFetchError(KeycloakSyncError):
    ...


class MembershipFetchError(KeycloakSyncError):
    ...


class BaselineDecodeError(KeycloakSyncError):
    ...
