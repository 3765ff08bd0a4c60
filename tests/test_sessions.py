"""Tests for the in-memory session store."""

from __future__ import annotations

import pytest

from photopoet.core.errors import SessionNotFound
from photopoet.services.sessions import SessionStore
from tests.conftest import PHOTO


def test_create_and_get():
    store = SessionStore()
    sid, controller = store.create()
    assert store.get(sid) is controller
    assert sid in store
    assert len(store) == 1


def test_sessions_are_isolated():
    store = SessionStore()
    a_id, a = store.create()
    b_id, b = store.create()
    a.set_photo(PHOTO)
    assert store.get(b_id).snapshot().photo is None
    assert a_id != b_id


def test_least_recently_used_is_evicted():
    store = SessionStore(max_sessions=2)
    first, _ = store.create()
    second, _ = store.create()
    store.get(first)            # touch; second is now oldest
    third, _ = store.create()
    assert first in store and third in store
    assert second not in store


def test_delete_and_unknown():
    store = SessionStore()
    sid, _ = store.create()
    store.delete(sid)
    with pytest.raises(SessionNotFound):
        store.get(sid)
    with pytest.raises(SessionNotFound):
        store.delete(sid)
