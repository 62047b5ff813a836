from typing import Optional, Sequence

from pydantic import Field

from .model import BaseModel


class KeycloakGroup(BaseModel):
    id: str
    name: Optional[str] = None
    path: str = ""
    sub_groups: tuple["KeycloakGroup", ...] = Field(default=(), alias="subGroups")


class KeycloakUser(BaseModel):
    id: str
    username: Optional[str] = None
    email: Optional[str] = None
    attributes: dict[str, list[str]] = Field(default_factory=dict)

    def preferred_name(self, preferred: Sequence[str] = ()) -> Optional[str]:  # noqa: ANN101
        """Pick the first non-empty preferred attribute, falling back to the username.

        Standard fields (``username``, ``email``) are checked before custom
        user attributes of the same name.
        """
        for attribute in preferred:
            if attribute in ("username", "email"):
                value = getattr(self, attribute)
                if value:
                    return value
                continue
            values = self.attributes.get(attribute) or []
            for value in values:
                if value:
                    return value
        return self.username


class KeycloakToken(BaseModel):
    access_token: str
    refresh_token: str = ""
    session_state: str = ""
    expires_in: int = 0
    token_type: str = "Bearer"


class TokenIntrospection(BaseModel):
    active: bool = False
    client_id: Optional[str] = None
    username: Optional[str] = None
