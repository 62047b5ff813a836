"""Tests for projecting reconciled groups into output records."""

from hypothesis import given

from group import Group, GroupList
from projection import CREATED_BY_ANNOTATION, CREATOR, REALMS_ANNOTATION, SOURCE_ANNOTATION, annotations_for, project

from . import strategies
from .utils import baseline_group, realm_group


def test_records_are_sorted():
    groups = GroupList.from_groups([realm_group("ops", "zed", "amy"), realm_group("devs", "bob")])

    records = project(groups, prune_enabled=False, only_changed=False)

    assert [record.name for record in records] == ["devs", "ops"]
    assert records[1].users == ("amy", "zed")


def test_skipped_groups_are_never_emitted():
    skipped = realm_group("blocked", "alice")
    skipped.skipped = True
    groups = GroupList.from_groups([skipped, realm_group("devs")])

    records = project(groups, prune_enabled=False, only_changed=False)

    assert [record.name for record in records] == ["devs"]


def test_prune_removes_candidates_and_marks_changed():
    groups = GroupList.from_groups([baseline_group("devs", "alice", prune=True)])

    records = project(groups, prune_enabled=True, only_changed=True)

    assert [(record.name, record.users) for record in records] == [("devs", ())]


def test_prune_disabled_keeps_candidates():
    groups = GroupList.from_groups([baseline_group("devs", "alice", prune=True)])

    records = project(groups, prune_enabled=False, only_changed=False)

    assert records[0].users == ("alice",)


def test_only_changed_drops_unchanged_baseline_groups():
    groups = GroupList.from_groups([baseline_group("devs", "alice", prune=False), realm_group("ops", "bob")])

    records = project(groups, prune_enabled=True, only_changed=True)

    assert [record.name for record in records] == ["ops"]


def test_projection_does_not_modify_groups():
    groups = GroupList.from_groups([baseline_group("devs", "alice", prune=True)])

    project(groups, prune_enabled=True, only_changed=False)

    assert list(groups["devs"].users) == ["alice"]
    assert groups["devs"].changed is False


def test_annotations():
    group = realm_group("devs", realm="corp")
    group.realms.append("sso")

    assert annotations_for(group) == {
        CREATED_BY_ANNOTATION: CREATOR,
        SOURCE_ANNOTATION: "realm:corp",
        REALMS_ANNOTATION: "corp,sso",
    }


def test_annotations_without_realms():
    group = Group(id="openshift", name="devs", source="openshift")

    assert REALMS_ANNOTATION not in annotations_for(group)


@given(strategies.realm_group_list())
def test_only_changed_without_baseline_emits_every_group(groups):
    records = project(groups, prune_enabled=True, only_changed=True)

    assert [record.name for record in records] == sorted(groups)
