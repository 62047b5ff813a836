import dataclasses
import enum

from pydantic import BaseModel as PydanticBaseModel
from pydantic import ConfigDict


class BaseModel(PydanticBaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    def dict(self, *args, **kwargs) -> dict:  # noqa: ANN101, ANN003, ANN002, ARG002
        """Wire representation, keyed by the external (aliased) field names."""
        return self.model_dump(mode="json", by_alias=True)


def json_default(o: object) -> str | dict | list:
    if isinstance(o, PydanticBaseModel):
        return o.model_dump(mode="json", by_alias=True)
    if isinstance(o, (set, frozenset)):
        return sorted(str(item) for item in o)
    if dataclasses.is_dataclass(o) and not isinstance(o, type):
        # groups hold parent back-references, so only the shallow fields are logged
        return {f.name: getattr(o, f.name) for f in dataclasses.fields(o) if f.compare}
    if isinstance(o, enum.Enum):
        return o.value
    return str(o)
