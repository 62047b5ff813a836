"""Reading the OpenShift group baseline and writing OpenShift group objects.

The baseline is what the cluster currently has: either a single ``Group`` or a
``GroupList``, as YAML or JSON. Its members become prune candidates when
pruning is enabled so that members no realm reaffirms can be dropped on output.
"""

from __future__ import annotations

import enum
import json
from typing import Iterable

import yaml
from pydantic import ValidationError

from config import get_logger
from entities.openshift import ObjectMeta, OpenShiftGroup, OpenShiftGroupList
from errors import BaselineDecodeError
from group import BASELINE_ID, BASELINE_SOURCE, Group, GroupList, User
from projection import OutputGroup

logger = get_logger(service="openshift")


class OutputFormat(str, enum.Enum):
    JSON = "json"
    YAML = "yaml"

    @property
    def content_type(self) -> str:  # noqa: ANN101
        return "application/json" if self is OutputFormat.JSON else "application/yaml"


def _load_document(data: bytes | str) -> object:
    text = data.decode("utf-8") if isinstance(data, bytes) else data
    if not text.strip():
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise BaselineDecodeError(f"OpenShift groups are neither JSON nor YAML: {e}") from e


def _parse_items(document: object) -> list[OpenShiftGroup]:
    if isinstance(document, list):
        return [OpenShiftGroup.model_validate(item) for item in document]
    if not isinstance(document, dict):
        raise BaselineDecodeError(f"Expected a Group or a GroupList, got {type(document).__name__}")
    if document.get("kind") == "Group" or "items" not in document:
        return [OpenShiftGroup.model_validate(document)]
    if document.get("items") is None:
        return []
    return list(OpenShiftGroupList.model_validate(document).items)


def decode_baseline(data: bytes | str, prune: bool) -> GroupList:
    """Decode OpenShift groups into a GroupList.

    Args:
        data: A ``Group``, a ``GroupList``/``List`` or a sequence of groups,
            serialized as JSON or YAML.
        prune: Mark every member as a prune candidate.

    Returns:
        Groups keyed by name, all unchanged.

    Raises:
        BaselineDecodeError: If the data cannot be decoded.
    """
    try:
        document = _load_document(data)
    except UnicodeDecodeError as e:
        raise BaselineDecodeError(f"OpenShift groups are not valid UTF-8: {e}") from e

    if document is None:
        logger.info("Baseline contains no groups")
        return GroupList()

    try:
        items = _parse_items(document)
    except ValidationError as e:
        raise BaselineDecodeError(f"Invalid OpenShift group: {e}") from e

    output = GroupList()
    for item in items:
        group = Group(id=BASELINE_ID, name=item.metadata.name, source=BASELINE_SOURCE)
        for username in item.users or ():
            group.add_user(User(id=BASELINE_ID, name=username, prune=prune))
        output.add(group)

    logger.info(f"Decoded {len(output)} groups from baseline", extra={"groups": len(output), "prune": prune})
    return output


def to_openshift_groups(records: Iterable[OutputGroup]) -> OpenShiftGroupList:
    return OpenShiftGroupList(
        items=tuple(
            OpenShiftGroup(
                metadata=ObjectMeta(name=record.name, annotations=record.annotations),
                users=record.users,
            )
            for record in records
        )
    )


def emit(records: Iterable[OutputGroup], output_format: OutputFormat = OutputFormat.JSON) -> str:
    """Serialize output records as an OpenShift GroupList."""
    document = to_openshift_groups(records).dict()
    if OutputFormat(output_format) is OutputFormat.YAML:
        return yaml.safe_dump(document, sort_keys=False, default_flow_style=False)
    return json.dumps(document, indent=2) + "\n"
