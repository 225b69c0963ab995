"""Unit tests for joining users with casts into work items"""

import pytest

from src.models.user import CastRow, UserRow
from src.services.profile_builder import ProfileBuilder, create_user_profile


@pytest.fixture
def builder():
    return ProfileBuilder(key_field="fid")


def user_row(fid, **overrides):
    row = {
        "fid": fid,
        "user_name": f"user{fid}",
        "description": "builds things",
        "follower_count": 10,
        "following_count": 5,
        "channels_following": [{"name": "base", "description": "Base chain", "id": "b"}],
        "channels_member": [{"name": "dao", "description": None}],
    }
    row.update(overrides)
    return row


def cast_row(fid, texts=("gm",)):
    return {"fid": fid, "casts": {"data": [{"text": t} for t in texts]}}


def test_keys_in_page_order(builder):
    rows = [{"fid": 3}, {"fid": 1}, {"fid": None}, {"fid": "2"}]
    assert builder.keys(rows) == ["3", "1", "2"]


def test_build_eligible_item(builder):
    items = builder.build([user_row(1)], [cast_row(1, texts=("gm", "shipping"))])

    assert len(items) == 1
    item = items[0]
    assert item.key == "1"
    assert item.eligible is True
    assert item.payload["bio"] == "builds things"
    assert item.payload["user_name"] == "user1"
    assert item.payload["name"] == "user1"
    assert [c["name"] for c in item.payload["channels"]] == ["base", "dao"]
    assert item.payload["channels"][0] == {"name": "base", "description": "Base chain"}
    assert [c["text"] for c in item.payload["casts"]] == ["gm", "shipping"]


def test_missing_casts_row_is_ineligible(builder):
    items = builder.build([user_row(1), user_row(2)], [cast_row(2)])

    assert [(i.key, i.eligible) for i in items] == [("1", False), ("2", True)]


def test_casts_without_data_list_is_ineligible(builder):
    related = [{"fid": 1, "casts": {"data": None}}, {"fid": 2, "casts": None}]
    items = builder.build([user_row(1), user_row(2)], related)

    assert all(not i.eligible for i in items)


def test_order_follows_page_not_related(builder):
    rows = [user_row(5), user_row(3), user_row(9)]
    related = [cast_row(9), cast_row(3), cast_row(5)]

    assert [i.key for i in builder.build(rows, related)] == ["5", "3", "9"]


def test_invalid_user_row_is_ineligible(builder):
    items = builder.build([{"fid": 4, "follower_count": "lots"}], [cast_row(4)])

    assert items[0].key == "4"
    assert items[0].eligible is False


def test_invalid_related_row_ignored(builder):
    items = builder.build([user_row(1)], [{"casts": {"data": []}}, cast_row(1)])
    assert items[0].eligible is True


def test_null_counts_and_channels_default(builder):
    row = user_row(
        1, follower_count=None, following_count=None,
        channels_following=None, channels_member=None,
    )
    items = builder.build([row], [cast_row(1)])

    payload = items[0].payload
    assert payload["follower_count"] == 0
    assert payload["following_count"] == 0
    assert payload["channels"] == []


def test_create_user_profile_none_without_casts():
    user = UserRow.model_validate(user_row(1))
    assert create_user_profile(user, None) is None
    assert create_user_profile(user, CastRow(fid="1", casts={})) is None


def test_already_enriched_row_is_ineligible(builder):
    done = user_row(1, embeddings=[0.1, 0.2], summary="already-done")
    items = builder.build([done, user_row(2)], [cast_row(1), cast_row(2)])

    assert [(i.key, i.eligible) for i in items] == [("1", False), ("2", True)]
    assert items[0].skip_reason == "already_enriched"
    assert items[1].skip_reason is None


@pytest.mark.parametrize(
    "fields",
    [
        {"embeddings": [0.1], "summary": None},
        {"embeddings": None, "summary": "only a summary"},
    ],
)
def test_partially_enriched_row_stays_eligible(builder, fields):
    items = builder.build([user_row(1, **fields)], [cast_row(1)])

    assert items[0].eligible is True


def test_skip_reasons(builder):
    rows = [{"fid": 4, "follower_count": "lots"}, user_row(5)]
    items = builder.build(rows, [])

    assert [i.skip_reason for i in items] == ["invalid_row", "missing_related"]
