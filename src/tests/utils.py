from __future__ import annotations

from typing import Iterator, Optional

from entities.keycloak import KeycloakGroup, KeycloakToken, KeycloakUser
from errors import AuthenticationError, GroupFetchError, MembershipFetchError
from group import Group, User
from sync_config import RealmConfig


def realm_config(name: str = "sso", **overrides) -> RealmConfig:  # noqa: ANN003
    values = {
        "name": name,
        "url": "https://sso.example.com",
        "client": {"client-id": "keycloak-sync", "client-secret": "secret"},
    }
    values.update(overrides)
    return RealmConfig.model_validate(values)


def kc_group(name: Optional[str], *children: KeycloakGroup, id: Optional[str] = None, path: Optional[str] = None) -> KeycloakGroup:  # noqa: A002
    return KeycloakGroup(
        id=id or f"id-{name}",
        name=name,
        path=path or f"/{name}",
        subGroups=children,
    )


def kc_user(username: str, **kwargs) -> KeycloakUser:  # noqa: ANN003
    return KeycloakUser(id=f"uid-{username}", username=username, **kwargs)


def baseline_group(name: str, *usernames: str, prune: bool = True) -> Group:
    group = Group(id="openshift", name=name, source="openshift")
    for username in usernames:
        group.add_user(User(id="openshift", name=username, prune=prune))
    return group


def realm_group(name: str, *usernames: str, realm: str = "sso") -> Group:
    group = Group(id=f"id-{name}", name=name, source=f"realm:{realm}", realms=[realm], changed=True)
    for username in usernames:
        group.add_user(User(id=f"uid-{username}", name=username))
    return group


class FakeKeycloakClient:
    """Stands in for KeycloakClient, serving a fixed tree and membership."""

    def __init__(  # noqa: PLR0913
        self,  # noqa: ANN101
        tree: list[KeycloakGroup],
        members: Optional[dict[str, list[KeycloakUser]]] = None,
        login_error: Optional[AuthenticationError] = None,
        groups_error: Optional[GroupFetchError] = None,
        failing_members: tuple[str, ...] = (),
        page_size: int = 2,
    ) -> None:
        self.tree = tree
        self.members = members or {}
        self.login_error = login_error
        self.groups_error = groups_error
        self.failing_members = failing_members
        self.page_size = page_size
        self.searches: list[Optional[str]] = []
        self.logouts: list[KeycloakToken] = []
        self.closed = False

    def __enter__(self) -> FakeKeycloakClient:  # noqa: ANN101
        return self

    def __exit__(self, *exc_info: object) -> None:  # noqa: ANN101
        self.closed = True

    def _login(self) -> KeycloakToken:  # noqa: ANN101
        if self.login_error is not None:
            raise self.login_error
        return KeycloakToken(access_token="access", refresh_token="refresh")

    def login_client(self, client_id: str, client_secret: str, realm: str) -> KeycloakToken:  # noqa: ANN101, ARG002
        return self._login()

    def login_admin(self, username: str, password: str, realm: str) -> KeycloakToken:  # noqa: ANN101, ARG002
        return self._login()

    def logout(self, token: KeycloakToken, realm: str, client_id: str = "admin-cli", client_secret: Optional[str] = None) -> None:  # noqa: ANN101, ARG002
        self.logouts.append(token)

    def get_groups(self, token: KeycloakToken, realm: str, search: Optional[str] = None) -> list[KeycloakGroup]:  # noqa: ANN101, ARG002
        self.searches.append(search)
        if self.groups_error is not None:
            raise self.groups_error
        if search is None:
            return list(self.tree)
        return [root for root in self.tree if _contains(root, search)]

    def iter_group_members(self, token: KeycloakToken, realm: str, group_id: str) -> Iterator[list[KeycloakUser]]:  # noqa: ANN101, ARG002
        members = self.members.get(group_id, [])
        for start in range(0, len(members), self.page_size):
            yield members[start : start + self.page_size]
            if group_id in self.failing_members:
                raise MembershipFetchError(f"members of {group_id} unavailable")


def _contains(root: KeycloakGroup, name: str) -> bool:
    pending = [root]
    while pending:
        group = pending.pop()
        if group.name == name:
            return True
        pending.extend(group.sub_groups)
    return False
