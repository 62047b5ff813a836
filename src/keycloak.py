"""Keycloak REST client used to read a realm's groups and their members."""

from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING, Iterator, Optional

import httpx
from pydantic import TypeAdapter, ValidationError

from config import get_logger, get_settings
from entities.keycloak import KeycloakGroup, KeycloakToken, KeycloakUser, TokenIntrospection
from errors import AuthenticationError, GroupFetchError, MembershipFetchError

if TYPE_CHECKING:
    from sync_config import RealmConfig

logger = get_logger(service="keycloak")

ADMIN_CLI_CLIENT_ID = "admin-cli"

_groups_adapter = TypeAdapter(list[KeycloakGroup])
_users_adapter = TypeAdapter(list[KeycloakUser])


class KeycloakClient:
    """Thin synchronous wrapper over the Keycloak token and admin endpoints."""

    def __init__(  # noqa: PLR0913
        self,  # noqa: ANN101
        url: str,
        verify: bool = True,
        debug: bool = False,
        timeout: float = 30.0,
        page_size: int = 100,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        event_hooks = {"request": [_log_request], "response": [_log_response]} if debug else {}
        self.page_size = page_size
        self._http = httpx.Client(
            base_url=url.rstrip("/"),
            verify=verify,
            timeout=timeout,
            event_hooks=event_hooks,
            transport=transport,
        )

    def __enter__(self) -> KeycloakClient:  # noqa: ANN101
        return self

    def __exit__(self, *exc_info: object) -> None:  # noqa: ANN101
        self.close()

    def close(self) -> None:  # noqa: ANN101
        self._http.close()

    def _token_url(self, realm: str) -> str:  # noqa: ANN101
        return f"/realms/{realm}/protocol/openid-connect/token"

    def _request_token(self, realm: str, form: dict[str, str]) -> KeycloakToken:  # noqa: ANN101
        try:
            response = self._http.post(self._token_url(realm), data=form)
            response.raise_for_status()
            return KeycloakToken.model_validate(response.json())
        except (httpx.HTTPError, ValueError) as e:
            raise AuthenticationError(f"could not log in to realm {realm}: {e}") from e

    def login_client(self, client_id: str, client_secret: str, realm: str) -> KeycloakToken:  # noqa: ANN101
        """Client credentials login, confirmed by introspecting the new token."""
        token = self._request_token(
            realm,
            {"grant_type": "client_credentials", "client_id": client_id, "client_secret": client_secret},
        )
        try:
            response = self._http.post(
                f"{self._token_url(realm)}/introspect",
                data={"token": token.access_token, "client_id": client_id, "client_secret": client_secret},
            )
            response.raise_for_status()
            introspection = TokenIntrospection.model_validate(response.json())
        except (httpx.HTTPError, ValueError) as e:
            raise AuthenticationError(f"could not introspect token for realm {realm}: {e}", token=token) from e

        if not introspection.active:
            raise AuthenticationError("inactive token", token=token)
        return token

    def login_admin(self, username: str, password: str, realm: str) -> KeycloakToken:  # noqa: ANN101
        return self._request_token(
            realm,
            {"grant_type": "password", "client_id": ADMIN_CLI_CLIENT_ID, "username": username, "password": password},
        )

    def logout(  # noqa: ANN101
        self,
        token: KeycloakToken,
        realm: str,
        client_id: str = ADMIN_CLI_CLIENT_ID,
        client_secret: Optional[str] = None,
    ) -> None:
        form = {"client_id": client_id, "refresh_token": token.refresh_token}
        if client_secret:
            form["client_secret"] = client_secret
        response = self._http.post(f"/realms/{realm}/protocol/openid-connect/logout", data=form)
        response.raise_for_status()

    def get_groups(self, token: KeycloakToken, realm: str, search: Optional[str] = None) -> list[KeycloakGroup]:  # noqa: ANN101
        """Get the realm's group tree.

        With ``search`` Keycloak returns the root groups that contain a match at
        any depth, with the path down to the match filled in.
        """
        params = {"briefRepresentation": "false"}
        if search:
            params["search"] = search
        try:
            response = self._http.get(f"/admin/realms/{realm}/groups", params=params, headers=_auth(token))
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise GroupFetchError(f"could not get groups for realm {realm}: {e}") from e

        if payload is None:
            raise GroupFetchError(f"a null response was not expected for groups from realm {realm}")
        try:
            return _groups_adapter.validate_python(payload)
        except ValidationError as e:
            raise GroupFetchError(f"unexpected group representation from realm {realm}: {e}") from e

    def iter_group_members(self, token: KeycloakToken, realm: str, group_id: str) -> Iterator[list[KeycloakUser]]:  # noqa: ANN101
        """Yield the members of a group one page at a time."""
        first = 0
        while True:
            params = {"first": first, "max": self.page_size, "briefRepresentation": "false"}
            try:
                response = self._http.get(
                    f"/admin/realms/{realm}/groups/{group_id}/members",
                    params=params,
                    headers=_auth(token),
                )
                response.raise_for_status()
                page = _users_adapter.validate_python(response.json() or [])
            except (httpx.HTTPError, ValueError) as e:
                raise MembershipFetchError(f"could not get members of group {group_id} in realm {realm}: {e}") from e

            if page:
                yield page
            if len(page) < self.page_size:
                return
            first += len(page)


def _auth(token: KeycloakToken) -> dict[str, str]:
    return {"Authorization": f"Bearer {token.access_token}"}


def _log_request(request: httpx.Request) -> None:
    logger.debug(f"--> {request.method} {request.url}")


def _log_response(response: httpx.Response) -> None:
    logger.debug(f"<-- {response.status_code} {response.request.method} {response.request.url}")


def create_client(realm: RealmConfig, debug: Optional[bool] = None) -> KeycloakClient:
    settings = get_settings()
    return KeycloakClient(
        realm.url,
        verify=realm.ssl_verify,
        debug=settings.keycloak_debug if debug is None else debug,
        timeout=settings.keycloak_timeout,
        page_size=settings.keycloak_page_size,
    )


def login(client: KeycloakClient, realm: RealmConfig) -> KeycloakToken:
    if realm.client is not None:
        return client.login_client(realm.client.client_id, realm.client.client_secret, realm.name)
    if realm.user is not None:
        return client.login_admin(realm.user.username, realm.user.password, realm.user.login_realm or realm.name)
    raise AuthenticationError("no client or user configuration provided")


def logout(client: KeycloakClient, realm: RealmConfig, token: KeycloakToken) -> None:
    if realm.client is not None:
        client.logout(token, realm.name, realm.client.client_id, realm.client.client_secret)
    elif realm.user is not None:
        client.logout(token, realm.user.login_realm or realm.name)
    else:
        raise AuthenticationError("no client or user configuration provided")


def _end_session(client: KeycloakClient, realm: RealmConfig, token: KeycloakToken) -> None:
    try:
        logout(client, realm, token)
    except (httpx.HTTPError, AuthenticationError) as e:
        logger.warning(f"realm {realm.name} | could not log out: {e}", extra={"realm": realm.name})


@contextlib.contextmanager
def keycloak_session(client: KeycloakClient, realm: RealmConfig) -> Iterator[KeycloakToken]:
    """Log in to the realm for the duration of the block.

    The session is always ended on exit. When the login itself fails the
    session is only ended if a token with a refresh token was handed out
    before the failure.
    """
    try:
        token = login(client, realm)
    except AuthenticationError as e:
        if e.token is not None and e.token.refresh_token:
            _end_session(client, realm, e.token)
        raise

    try:
        yield token
    finally:
        _end_session(client, realm, token)
