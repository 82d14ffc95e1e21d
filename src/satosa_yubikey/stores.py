"""
Storage of per-session data for the YubiKey micro service.

SATOSA keeps all per-browser data in its State (context.state), so both the record of
previously verified YubiKeys and the suspended authentications live there. The stores
are injected into the micro service to keep that decision replaceable.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any

import satosa.util as util
from satosa.state import State

from satosa_yubikey.exceptions import InvalidStateError

logger = logging.getLogger(__name__)

LOGOUT_NAMESPACE = "yubikey:logout"

LogoutHandler = Callable[["SessionStore", State, str], None]

_logout_handlers: dict[str, LogoutHandler] = {}


def logout_handler(name: str) -> Callable[[LogoutHandler], LogoutHandler]:
    """Register a function to be run, by name, when a session logs out from an auth source."""

    def decorator(func: LogoutHandler) -> LogoutHandler:
        _logout_handlers[name] = func
        return func

    return decorator


def get_logout_handler(name: str) -> LogoutHandler | None:
    return _logout_handlers.get(name)


class SessionStore(ABC):
    @abstractmethod
    def get(self, session: State, namespace: str, key: str) -> Any | None:
        pass

    @abstractmethod
    def set(self, session: State, namespace: str, key: str, value: Any) -> None:
        pass

    @abstractmethod
    def delete(self, session: State, namespace: str, key: str) -> None:
        pass

    @abstractmethod
    def list_namespace(self, session: State, namespace: str) -> dict[str, Any]:
        pass

    def register_logout_hook(self, session: State, auth_source_id: str, handler_name: str) -> None:
        hooks: list[str] = self.get(session, LOGOUT_NAMESPACE, auth_source_id) or []
        if handler_name not in hooks:
            self.set(session, LOGOUT_NAMESPACE, auth_source_id, [*hooks, handler_name])

    def run_logout_hooks(self, session: State, auth_source_id: str | None = None) -> list[str]:
        """
        Run the logout handlers registered in this session.

        :param auth_source_id: Only run the handlers for this auth source
        :return: The auth sources logged out from
        """
        registered: dict[str, list[str]] = self.list_namespace(session, LOGOUT_NAMESPACE)
        if auth_source_id is not None:
            registered = {k: v for k, v in registered.items() if k == auth_source_id}
        for _auth_source, hooks in registered.items():
            for name in hooks:
                func = get_logout_handler(name)
                if func is None:
                    logger.error(f"Unknown logout handler {name} registered for {_auth_source}")
                    continue
                logger.debug(f"Running logout handler {name} for {_auth_source}")
                func(self, session, _auth_source)
            self.delete(session, LOGOUT_NAMESPACE, _auth_source)
        return list(registered.keys())


class StateSessionStore(SessionStore):
    """Keep data in the SATOSA state. Everything stored must be JSON serialisable."""

    def get(self, session: State, namespace: str, key: str) -> Any | None:
        return session.get(namespace, {}).get(key)

    def set(self, session: State, namespace: str, key: str, value: Any) -> None:
        session[namespace] = {
            **session.get(namespace, {}),
            key: value,
        }

    def delete(self, session: State, namespace: str, key: str) -> None:
        _data = dict(session.get(namespace, {}))
        _data.pop(key, None)
        session[namespace] = _data

    def list_namespace(self, session: State, namespace: str) -> dict[str, Any]:
        return dict(session.get(namespace, {}))


class SuspensionStore(ABC):
    @abstractmethod
    def save(self, session: State, state: dict[str, Any], stage: str) -> str:
        """Save a suspended authentication and return a handle to resume it with."""

    @abstractmethod
    def load(self, session: State, handle: str | None, expected_stage: str) -> dict[str, Any]:
        """Load a suspended authentication, raising InvalidStateError if it can't be found in this stage."""

    @abstractmethod
    def discard(self, session: State, handle: str) -> None:
        pass


class StateSuspensionStore(SuspensionStore):
    STAGE_KEY = "stage"
    DATA_KEY = "state"

    def __init__(self, namespace: str) -> None:
        self.namespace = namespace

    def save(self, session: State, state: dict[str, Any], stage: str) -> str:
        handle = util.rndstr(32)
        # only one suspended authentication per session, a restarted login replaces the old one
        session[self.namespace] = {handle: {self.STAGE_KEY: stage, self.DATA_KEY: state}}
        logger.debug(f"Saved state with handle {handle} in stage {stage}")
        return handle

    def load(self, session: State, handle: str | None, expected_stage: str) -> dict[str, Any]:
        if not handle:
            raise InvalidStateError("Missing StateId parameter")
        _saved = session.get(self.namespace, {}).get(handle)
        if not _saved:
            logger.info(f"No saved state found with handle {handle}")
            raise InvalidStateError("There was an unexpected error while trying to verify your YubiKey")
        if _saved.get(self.STAGE_KEY) != expected_stage:
            logger.warning(f"Saved state {handle} is in stage {_saved.get(self.STAGE_KEY)}, expected {expected_stage}")
            raise InvalidStateError("There was an unexpected error while trying to verify your YubiKey")
        return _saved[self.DATA_KEY]

    def discard(self, session: State, handle: str) -> None:
        _saved = dict(session.get(self.namespace, {}))
        _saved.pop(handle, None)
        session[self.namespace] = _saved
