import asyncio

import pytest

from rentscout.browser.session import BrowserSession, BrowserSessionManager
from rentscout.config import Settings
from rentscout.errors import BrowserSessionError


class _FakeClosable:
    def __init__(self, fail=False):
        self.closed = 0
        self.fail = fail

    async def close(self):
        self.closed += 1
        if self.fail:
            raise RuntimeError("already gone")

    async def stop(self):
        self.closed += 1


class _FakeLauncher:
    def __init__(self, error=None, context_fails=False):
        self.error = error
        self.context_fails = context_fails
        self.sessions = []

    async def __call__(self, name):
        if self.error:
            raise self.error
        session = BrowserSession(
            name=name,
            playwright=_FakeClosable(),
            browser=_FakeClosable(),
            context=_FakeClosable(fail=self.context_fails),
            page=object(),
        )
        self.sessions.append(session)
        return session


def _closes(session):
    return session.context.closed, session.browser.closed, session.playwright.closed


def test_scoped_session_is_released_once():
    launcher = _FakeLauncher()
    manager = BrowserSessionManager(Settings(), launcher=launcher)

    async def run():
        async with manager.session("redfin") as session:
            assert manager.open_sessions == 1
        await manager.release(session)

    asyncio.run(run())

    assert manager.open_sessions == 0
    assert _closes(launcher.sessions[0]) == (1, 1, 1)


def test_session_released_when_body_raises():
    launcher = _FakeLauncher()
    manager = BrowserSessionManager(Settings(), launcher=launcher)

    async def run():
        async with manager.session("airdna"):
            raise ValueError("boom")

    with pytest.raises(ValueError):
        asyncio.run(run())

    assert manager.open_sessions == 0
    assert launcher.sessions[0].closed is True


def test_sessions_are_labelled_and_independent():
    launcher = _FakeLauncher()
    manager = BrowserSessionManager(Settings(), launcher=launcher)

    async def run():
        first = await manager.acquire("redfin")
        second = await manager.acquire("redfin")
        assert manager.open_sessions == 2
        await manager.close_all()
        return first, second

    first, second = asyncio.run(run())

    assert (first.name, second.name) == ("redfin-1", "redfin-2")
    assert first.page is not second.page
    assert manager.open_sessions == 0


def test_launch_failure_is_a_session_error():
    manager = BrowserSessionManager(Settings(), launcher=_FakeLauncher(error=RuntimeError("no chromium")))

    with pytest.raises(BrowserSessionError, match="no chromium"):
        asyncio.run(manager.acquire("redfin"))
    assert manager.open_sessions == 0


def test_teardown_errors_do_not_escape():
    launcher = _FakeLauncher(context_fails=True)
    manager = BrowserSessionManager(Settings(), launcher=launcher)

    async def run():
        async with manager.session("redfin"):
            pass

    asyncio.run(run())

    assert _closes(launcher.sessions[0]) == (1, 1, 1)
    assert manager.open_sessions == 0
