from typing import Optional

from pydantic import Field

from .model import BaseModel

USER_API_VERSION = "user.openshift.io/v1"


class ObjectMeta(BaseModel):
    name: str
    annotations: dict[str, str] = Field(default_factory=dict)


class OpenShiftGroup(BaseModel):
    api_version: str = Field(default=USER_API_VERSION, alias="apiVersion")
    kind: str = "Group"
    metadata: ObjectMeta
    # the API server reports a group without members as `users: null`
    users: Optional[tuple[str, ...]] = None


class OpenShiftGroupList(BaseModel):
    api_version: str = Field(default=USER_API_VERSION, alias="apiVersion")
    kind: str = "GroupList"
    items: tuple[OpenShiftGroup, ...] = ()
