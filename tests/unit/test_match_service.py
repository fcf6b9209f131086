# tests/unit/test_match_service.py

import pytest
from uuid import uuid4

from app.core.exceptions import ConflictError, ForbiddenError, NotFoundError
from app.modules.groups.schemas import GroupCreate, GroupKind, GroupSettingsUpdate, RelationshipCreate
from app.modules.matches.schemas import GroupWatchlistAdd, MediaDetails, MediaKind
from app.modules.matches.service import MatchService
from app.modules.media.client import MediaUnavailableError


async def _couple(group_service, membership_service, carol, pat):
    couple = await group_service.create_relationship(carol.user_id, RelationshipCreate(partner_email="p@x.com"))
    await membership_service.accept(pat.user_id, couple.group_id)
    return couple


class FakeEnrichment:
    def __init__(self, titles, failing=()):
        self.titles = titles
        self.failing = set(failing)

    async def describe(self, content_id, media_kind):
        if content_id in self.failing:
            raise MediaUnavailableError(f"no metadata for {content_id}")
        return MediaDetails(title=self.titles[content_id], poster=f"/p/{content_id}.jpg")


# ---------------------------------------------------------
# find_matches
# ---------------------------------------------------------
@pytest.mark.asyncio
async def test_shared_item_matches_and_single_member_items_do_not(
    group_service, membership_service, match_service, watchlists, carol, pat
):
    couple = await _couple(group_service, membership_service, carol, pat)
    watchlists.add(carol.user_id, 42, "movie", "to_watch")
    watchlists.add(pat.user_id, 42, "movie", "watching")
    watchlists.add(carol.user_id, 7, "tv")

    matches = await match_service.find_matches(carol.user_id, couple.group_id)

    assert len(matches) == 1
    assert (matches[0].content_id, matches[0].media_kind) == (42, MediaKind.MOVIE)
    statuses = {m.user_id: m.status for m in matches[0].members}
    assert statuses == {carol.user_id: "to_watch", pat.user_id: "watching"}


@pytest.mark.asyncio
async def test_same_id_different_kind_is_not_a_match(
    group_service, membership_service, match_service, watchlists, carol, pat
):
    couple = await _couple(group_service, membership_service, carol, pat)
    watchlists.add(carol.user_id, 42, "movie")
    watchlists.add(pat.user_id, 42, "tv")

    assert await match_service.find_matches(carol.user_id, couple.group_id) == []


@pytest.mark.asyncio
async def test_matches_are_the_same_for_every_member(
    group_service, membership_service, match_service, watchlists, carol, pat
):
    couple = await _couple(group_service, membership_service, carol, pat)
    watchlists.add(carol.user_id, 42, "movie")
    watchlists.add(pat.user_id, 42, "movie")

    seen_by_carol = await match_service.find_matches(carol.user_id, couple.group_id)
    seen_by_pat = await match_service.find_matches(pat.user_id, couple.group_id)

    assert seen_by_carol == seen_by_pat


@pytest.mark.asyncio
async def test_no_matches_with_fewer_than_two_active_members(
    group_service, match_service, watchlists, carol, pat
):
    couple = await group_service.create_relationship(carol.user_id, RelationshipCreate(partner_email="p@x.com"))
    watchlists.add(carol.user_id, 42, "movie")
    watchlists.add(pat.user_id, 42, "movie")

    # pat is still pending
    assert await match_service.find_matches(carol.user_id, couple.group_id) == []


@pytest.mark.asyncio
async def test_pending_members_do_not_contribute(
    group_service, membership_service, match_service, store, watchlists, carol, pat, quinn
):
    group = await group_service.create_group(
        carol.user_id,
        GroupCreate(name="Crew", kind=GroupKind.FRIENDS, settings=GroupSettingsUpdate(require_approval=False)),
    )
    await membership_service.invite(carol.user_id, group.group_id, [pat.user_id])
    # quinn's invite stays pending
    await store.update_group(
        (await store.get_group(group.group_id)).model_copy(
            update={"settings": group.settings.model_copy(update={"require_approval": True})}
        )
    )
    await membership_service.invite(carol.user_id, group.group_id, [quinn.user_id])

    watchlists.add(carol.user_id, 1, "movie")
    watchlists.add(quinn.user_id, 1, "movie")
    watchlists.add(carol.user_id, 2, "tv")
    watchlists.add(pat.user_id, 2, "tv")

    matches = await match_service.find_matches(carol.user_id, group.group_id)

    assert [(m.content_id, m.media_kind) for m in matches] == [(2, MediaKind.TV)]


@pytest.mark.asyncio
async def test_matches_are_sorted_by_content_then_kind(
    group_service, membership_service, match_service, watchlists, carol, pat
):
    couple = await _couple(group_service, membership_service, carol, pat)
    for user in (carol, pat):
        watchlists.add(user.user_id, 99, "movie")
        watchlists.add(user.user_id, 5, "tv")
        watchlists.add(user.user_id, 5, "movie")

    matches = await match_service.find_matches(carol.user_id, couple.group_id)

    assert [(m.content_id, m.media_kind.value) for m in matches] == [
        (5, "movie"),
        (5, "tv"),
        (99, "movie"),
    ]


@pytest.mark.asyncio
async def test_duplicate_entries_count_once(
    group_service, membership_service, match_service, watchlists, carol, pat
):
    couple = await _couple(group_service, membership_service, carol, pat)
    watchlists.add(carol.user_id, 42, "movie", "to_watch")
    watchlists.add(carol.user_id, 42, "movie", "watched")

    assert await match_service.find_matches(carol.user_id, couple.group_id) == []

    watchlists.add(pat.user_id, 42, "movie")
    matches = await match_service.find_matches(carol.user_id, couple.group_id)
    assert len(matches[0].members) == 2
    statuses = {m.user_id: m.status for m in matches[0].members}
    assert statuses[carol.user_id] == "to_watch"


@pytest.mark.asyncio
async def test_find_matches_requires_active_membership(
    group_service, membership_service, match_service, carol, pat, quinn
):
    couple = await _couple(group_service, membership_service, carol, pat)

    with pytest.raises(ForbiddenError):
        await match_service.find_matches(quinn.user_id, couple.group_id)


@pytest.mark.asyncio
async def test_find_matches_unknown_group(match_service, carol):
    with pytest.raises(NotFoundError):
        await match_service.find_matches(carol.user_id, uuid4())


# ---------------------------------------------------------
# enrichment
# ---------------------------------------------------------
@pytest.mark.asyncio
async def test_enrichment_decorates_matches(
    group_service, membership_service, store, watchlists, events, carol, pat
):
    couple = await _couple(group_service, membership_service, carol, pat)
    watchlists.add(carol.user_id, 42, "movie")
    watchlists.add(pat.user_id, 42, "movie")
    service = MatchService(store, watchlists, events, enrichment=FakeEnrichment({42: "Arrival"}))

    matches = await service.find_matches(carol.user_id, couple.group_id)

    assert matches[0].title == "Arrival"
    assert matches[0].poster == "/p/42.jpg"


@pytest.mark.asyncio
async def test_enrichment_failure_drops_only_that_match(
    group_service, membership_service, store, watchlists, events, carol, pat
):
    couple = await _couple(group_service, membership_service, carol, pat)
    for user in (carol, pat):
        watchlists.add(user.user_id, 1, "movie")
        watchlists.add(user.user_id, 2, "movie")
    enrichment = FakeEnrichment({1: "Heat", 2: "Ronin"}, failing={1})
    service = MatchService(store, watchlists, events, enrichment=enrichment)

    matches = await service.find_matches(carol.user_id, couple.group_id)

    assert [(m.content_id, m.title) for m in matches] == [(2, "Ronin")]


# ---------------------------------------------------------
# group watchlist
# ---------------------------------------------------------
@pytest.mark.asyncio
async def test_suggest_for_group(
    group_service, membership_service, match_service, sink, carol, pat
):
    couple = await _couple(group_service, membership_service, carol, pat)
    payload = GroupWatchlistAdd(content_id=42, media_kind=MediaKind.MOVIE, notes="Friday?")

    item = await match_service.suggest_for_group(pat.user_id, couple.group_id, payload)

    assert item.suggested_by == pat.user_id
    assert item.status == "suggested"
    assert sink.types()[-1] == "GroupWatchlistAdded"

    with pytest.raises(ConflictError):
        await match_service.suggest_for_group(carol.user_id, couple.group_id, payload)


@pytest.mark.asyncio
async def test_suggest_for_group_requires_membership(
    group_service, membership_service, match_service, carol, pat, quinn
):
    couple = await _couple(group_service, membership_service, carol, pat)

    with pytest.raises(ForbiddenError):
        await match_service.suggest_for_group(
            quinn.user_id, couple.group_id, GroupWatchlistAdd(content_id=1, media_kind=MediaKind.TV)
        )
