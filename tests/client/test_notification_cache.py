"""Tests for the ordered client-side notification cache."""

from __future__ import annotations

from uuid import UUID

from app.client import NotificationCache


def test_items_are_kept_newest_first(make_notification_read) -> None:
    old = make_notification_read(0)
    middle = make_notification_read(5)
    new = make_notification_read(10)

    cache = NotificationCache([middle, old])
    assert cache.insert(new) is True

    assert cache.items == [new, middle, old]


def test_equal_timestamps_are_ordered_by_id_descending(make_notification_read) -> None:
    low = make_notification_read(0, notification_id=UUID(int=1))
    high = make_notification_read(0, notification_id=UUID(int=2))

    cache = NotificationCache([low])
    cache.insert(high)

    assert [item.id for item in cache] == [high.id, low.id]


def test_duplicate_ids_are_kept_once(make_notification_read) -> None:
    first = make_notification_read(1)
    cache = NotificationCache([first, first])

    assert len(cache) == 1
    assert cache.insert(first.model_copy(update={"title": "changed"})) is False
    assert cache.get(first.id).title == first.title


def test_unread_count_follows_items(make_notification_read) -> None:
    unread = make_notification_read(1)
    read = make_notification_read(2, is_read=True)
    cache = NotificationCache([unread, read])

    assert cache.unread_count == 1
    assert cache.mark_read(unread.id) is True
    assert cache.mark_read(unread.id) is False
    assert cache.unread_count == 0

    third = make_notification_read(3)
    fourth = make_notification_read(4)
    cache.insert(third)
    cache.insert(fourth)
    assert cache.unread_count == 2
    assert cache.mark_many_read([third.id, fourth.id, UUID(int=99)]) == 2
    assert cache.mark_many_read([third.id, fourth.id]) == 0
    assert all(item.is_read for item in cache)


def test_remove_and_copy_are_independent(make_notification_read) -> None:
    first = make_notification_read(1)
    second = make_notification_read(2)
    cache = NotificationCache([first, second])
    clone = cache.copy()

    assert cache.remove(first.id) == first
    assert cache.remove(first.id) is None
    clone.mark_read(second.id)

    assert first.id not in cache
    assert first.id in clone
    assert cache.get(second.id).is_read is False
    assert clone.items[0].is_read is True


def test_mark_read_of_unknown_id_changes_nothing(make_notification_read) -> None:
    cache = NotificationCache([make_notification_read(1)])

    assert cache.mark_read(UUID(int=99)) is False
    assert cache.unread_count == 1
