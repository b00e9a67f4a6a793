from __future__ import annotations

import pytest

from core.models import Live
from storage import Storage

SUB = "https://list.example/playlist.m3u"


@pytest.fixture
def db(tmp_path):
    return Storage(tmp_path / "data" / "test.db")


def _lives(*pairs, sub=SUB):
    return [Live(url=u, title=t, subscription_url=sub) for t, u in pairs]


def test_subscriptions_are_unique_by_url(db):
    first = db.add_subscription(SUB, "Ma liste")
    again = db.add_subscription(SUB)
    assert first == again
    assert db.get_subscription(SUB).title == "Ma liste"

    db.add_subscription(SUB, "Renommée")
    assert [s.title for s in db.list_subscriptions()] == ["Renommée"]
    assert db.get_subscription("http://other") is None


def test_replace_lives_keeps_order_and_assigns_ids(db):
    n = db.replace_lives(SUB, _lives(("B", "http://a/b"), ("A", "http://a/a"), ("C", "http://a/c")))
    assert n == 3
    lives = db.get_lives(SUB)
    assert [l.title for l in lives] == ["B", "A", "C"]
    assert all(l.id for l in lives)
    assert {l.subscription_url for l in lives} == {SUB}
    assert db.get_live(lives[1].id) == lives[1]


def test_replace_lives_creates_missing_subscription(db):
    db.replace_lives(SUB, _lives(("A", "http://a/a")))
    assert db.get_subscription(SUB) is not None


def test_replace_lives_dedups_by_url(db):
    n = db.replace_lives(SUB, _lives(("A", "http://a/1"), ("A bis", "http://a/1"), ("B", "http://a/2")))
    assert n == 2
    assert [l.title for l in db.get_lives(SUB)] == ["A", "B"]


def test_ids_are_durable_across_refresh(db):
    db.replace_lives(SUB, _lives(("A", "http://a/1"), ("B", "http://a/2")))
    before = {l.url: l.id for l in db.get_lives(SUB)}

    db.replace_lives(SUB, _lives(("C", "http://a/3"), ("B renamed", "http://a/2")))
    after = db.get_lives(SUB)

    assert [l.title for l in after] == ["C", "B renamed"]
    assert {l.url: l.id for l in after}["http://a/2"] == before["http://a/2"]
    assert db.count_lives(SUB) == 2


def test_replace_is_scoped_to_subscription(db):
    other = "https://other.example/list.m3u"
    db.replace_lives(SUB, _lives(("A", "http://a/1")))
    db.replace_lives(other, _lives(("A", "http://a/1"), sub=other))
    db.replace_lives(SUB, [])
    assert db.count_lives(SUB) == 0
    assert db.count_lives(other) == 1


def test_delete_subscription_cascades(db):
    db.add_subscription(SUB, "x")
    db.replace_lives(SUB, _lives(("A", "http://a/1")))
    db.delete_subscription(SUB)
    assert db.list_subscriptions() == []
    assert db.get_lives(SUB) == []
