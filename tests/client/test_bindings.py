"""Tests for the provider and hook bindings."""

from __future__ import annotations

import pytest

from unreadsync.client.bindings import (
    UnreadCountProvider,
    UnreadCountState,
    get_unread_count_context,
    use_unread_count,
)
from unreadsync.client.engine import UnreadSnapshot
from unreadsync.client.session import Session, SessionStore
from unreadsync.core.types import SyncPhase


class TestOutsideProvider:
    """Tests for access without an active provider."""

    def test_hook_raises(self) -> None:
        with pytest.raises(RuntimeError, match="within an UnreadCountProvider"):
            use_unread_count()

    def test_context_raises(self) -> None:
        with pytest.raises(RuntimeError):
            get_unread_count_context()


class TestUnreadCountProvider:
    """Tests for UnreadCountProvider."""

    def test_exposes_engine_values(self, engine, fetcher) -> None:
        """The provider should reflect the engine count."""
        store = SessionStore(Session("u1", "t"))
        fetcher.results = [4]

        with UnreadCountProvider(engine, store) as provider:
            assert provider.unread_count == 4
            assert provider.is_loading is False
            assert get_unread_count_context() is provider

    def test_hook_reads_same_engine(self, engine, fetcher) -> None:
        """use_unread_count() should return the provider's values."""
        store = SessionStore(Session("u1", "t"))
        fetcher.results = [4]

        with UnreadCountProvider(engine, store) as provider:
            state = use_unread_count()

        assert isinstance(state, UnreadCountState)
        assert state.unread_count == 4
        assert state.is_loading is False
        assert state.refresh_unread_count == provider.refresh_unread_count

    def test_refresh_goes_through_engine(self, engine, fetcher, clock) -> None:
        """Manual refresh should obey the engine throttle."""
        store = SessionStore(Session("u1", "t"))
        fetcher.results = [4, 6]

        with UnreadCountProvider(engine, store):
            refresh = use_unread_count().refresh_unread_count
            assert refresh() is False  # within the throttle window
            clock.advance(2)
            assert refresh() is True
            assert use_unread_count().unread_count == 6

    def test_follows_session_changes(self, engine, fetcher) -> None:
        """Login and logout inside the provider should drive the engine."""
        store = SessionStore()
        fetcher.results = [5]
        seen: list[UnreadSnapshot] = []

        with UnreadCountProvider(engine, store) as provider:
            provider.subscribe(seen.append)
            assert provider.unread_count == 0

            store.login(Session("u1", "t"))
            assert provider.unread_count == 5

            store.logout()
            assert provider.unread_count == 0

        assert seen[-1] == UnreadSnapshot(0, False)

    def test_exit_tears_down(self, engine, fetcher, push_channel, scheduler) -> None:
        """Leaving the provider should stop the engine and uninstall it."""
        store = SessionStore(Session("u1", "t"))
        fetcher.results = [4]

        with UnreadCountProvider(engine, store):
            pass

        assert engine.phase == SyncPhase.IDLE
        assert push_channel.open_handles == []
        assert not scheduler.running
        with pytest.raises(RuntimeError):
            use_unread_count()

        # No longer following the store
        store.logout()
        store.login(Session("u2", "t2"))
        assert engine.phase == SyncPhase.IDLE

    def test_nested_providers(self, engine, fetcher, push_channel, scheduler, clock) -> None:
        """The innermost provider should win and the outer one come back."""
        from unreadsync.client.engine import SyncEngine

        other_fetcher_results = [9]

        class OtherFetcher:
            def fetch_count(self) -> int:
                return other_fetcher_results.pop(0)

            def close(self) -> None:
                pass

        other = SyncEngine(
            fetcher_factory=lambda s: OtherFetcher(),
            push_channel=push_channel,
            push_endpoint="ws://other",
            scheduler=type(scheduler)(),
            clock=clock,
        )
        fetcher.results = [1]

        with UnreadCountProvider(engine, SessionStore(Session("a", "t"))) as outer:
            with UnreadCountProvider(other, SessionStore(Session("b", "t"))) as inner:
                assert get_unread_count_context() is inner
                assert use_unread_count().unread_count == 9
            assert get_unread_count_context() is outer
            assert use_unread_count().unread_count == 1

    def test_failed_enter_leaves_no_provider(self, engine, fetcher) -> None:
        """A provider whose binding fails should not stay installed."""

        class FlakyStore(SessionStore):
            failures = 1

            def subscribe(self, listener):  # type: ignore[no-untyped-def]
                if self.failures:
                    self.failures -= 1
                    raise RuntimeError("observer unavailable")
                return super().subscribe(listener)

        fetcher.results = [3]
        provider = UnreadCountProvider(engine, FlakyStore(Session("u1", "t")))

        with pytest.raises(RuntimeError, match="observer unavailable"):
            provider.__enter__()

        with pytest.raises(RuntimeError, match="within an UnreadCountProvider"):
            use_unread_count()

        # The same provider can be entered once the observer recovers
        with provider:
            assert use_unread_count().unread_count == 3

    def test_failed_session_start_unbinds(self, engine, push_channel) -> None:
        """If starting the session fails, the engine stops following the store."""
        from unreadsync.client.engine import SyncEngine

        def broken_factory(session):  # type: ignore[no-untyped-def]
            raise RuntimeError("no fetcher")

        broken = SyncEngine(
            fetcher_factory=broken_factory,
            push_channel=push_channel,
            push_endpoint="ws://push.test",
            scheduler=type(engine._scheduler)(),
        )
        store = SessionStore(Session("u1", "t"))

        with pytest.raises(RuntimeError, match="no fetcher"):
            UnreadCountProvider(broken, store).__enter__()

        with pytest.raises(RuntimeError, match="within an UnreadCountProvider"):
            use_unread_count()
        assert len(store._listeners) == 0
        assert broken.phase == SyncPhase.IDLE

    def test_cannot_enter_twice(self, engine, fetcher) -> None:
        """A provider is a single-use scope while active."""
        fetcher.results = [1]
        provider = UnreadCountProvider(engine, SessionStore(Session("u1", "t")))
        with provider, pytest.raises(RuntimeError):
            provider.__enter__()
