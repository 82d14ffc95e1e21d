import unittest

from satosa.state import State

from satosa_yubikey.exceptions import InvalidStateError
from satosa_yubikey.stores import (
    SessionStore,
    StateSessionStore,
    StateSuspensionStore,
    get_logout_handler,
    logout_handler,
)


@logout_handler("test:forget")
def _forget(store: SessionStore, session: State, auth_source_id: str) -> None:
    store.delete(session, "test", auth_source_id)


class SessionStoreTests(unittest.TestCase):
    def setUp(self) -> None:
        self.store = StateSessionStore()
        self.session = State()

    def test_get_set_delete(self) -> None:
        assert self.store.get(self.session, "test", "idp1") is None
        self.store.set(self.session, "test", "idp1", "aa")
        self.store.set(self.session, "test", "idp2", "bb")
        assert self.store.get(self.session, "test", "idp1") == "aa"
        assert self.store.get(self.session, "other", "idp1") is None
        self.store.delete(self.session, "test", "idp1")
        assert self.store.get(self.session, "test", "idp1") is None
        assert self.store.get(self.session, "test", "idp2") == "bb"
        # deleting something not there is fine
        self.store.delete(self.session, "test", "idp1")

    def test_registry(self) -> None:
        assert get_logout_handler("test:forget") is _forget
        assert get_logout_handler("test:unknown") is None

    def test_logout_hooks(self) -> None:
        self.store.set(self.session, "test", "idp1", "aa")
        self.store.set(self.session, "test", "idp2", "bb")
        self.store.register_logout_hook(self.session, "idp1", "test:forget")
        self.store.register_logout_hook(self.session, "idp1", "test:forget")
        self.store.register_logout_hook(self.session, "idp2", "test:forget")

        assert self.store.run_logout_hooks(self.session, "idp1") == ["idp1"]
        assert self.store.get(self.session, "test", "idp1") is None
        assert self.store.get(self.session, "test", "idp2") == "bb"

        assert self.store.run_logout_hooks(self.session) == ["idp2"]
        assert self.store.get(self.session, "test", "idp2") is None
        assert self.store.run_logout_hooks(self.session) == []

    def test_unknown_logout_hook(self) -> None:
        self.store.register_logout_hook(self.session, "idp1", "test:unknown")
        assert self.store.run_logout_hooks(self.session) == ["idp1"]
        assert self.store.run_logout_hooks(self.session) == []


class SuspensionStoreTests(unittest.TestCase):
    def setUp(self) -> None:
        self.store = StateSuspensionStore(namespace="yubikey")
        self.session = State()

    def test_save_load(self) -> None:
        handle = self.store.save(self.session, {"foo": ["bar"]}, "test:stage")
        assert self.store.load(self.session, handle, "test:stage") == {"foo": ["bar"]}

    def test_save_replaces_previous(self) -> None:
        handle = self.store.save(self.session, {"foo": ["bar"]}, "test:stage")
        other = self.store.save(self.session, {"foo": ["baz"]}, "test:stage")
        assert handle != other
        assert self.store.load(self.session, other, "test:stage") == {"foo": ["baz"]}
        with self.assertRaises(InvalidStateError):
            self.store.load(self.session, handle, "test:stage")
        assert list(self.session["yubikey"].keys()) == [other]

    def test_load_wrong_stage(self) -> None:
        handle = self.store.save(self.session, {"foo": ["bar"]}, "test:stage")
        with self.assertRaises(InvalidStateError):
            self.store.load(self.session, handle, "test:other")

    def test_load_unknown(self) -> None:
        for handle in [None, "", "unknown"]:
            with self.assertRaises(InvalidStateError):
                self.store.load(self.session, handle, "test:stage")

    def test_load_other_session(self) -> None:
        handle = self.store.save(self.session, {"foo": ["bar"]}, "test:stage")
        with self.assertRaises(InvalidStateError):
            self.store.load(State(), handle, "test:stage")

    def test_discard(self) -> None:
        handle = self.store.save(self.session, {"foo": ["bar"]}, "test:stage")
        self.store.discard(self.session, handle)
        with self.assertRaises(InvalidStateError):
            self.store.load(self.session, handle, "test:stage")
