"""
Tests for session.py — panel registry, session lifecycle and the layout
tick loop wiring.
"""
import asyncio

from conftest import FakeOpener, FakeProvider, FakeSurface, make_payload, make_session, run
from dbc_explorer.controller import UNIVERSE_VIEW, ViewKind
from dbc_explorer.session import PanelRegistry, VisualizationSession, session_factory
from dbc_explorer.settings import Settings
from dbc_explorer.sources.primary import CommandMetricsProvider


# ── Registry ───────────────────────────────────────────────────────────────────

class TestPanelRegistry:
    def test_second_open_reveals_existing(self):
        made = []
        registry = PanelRegistry(lambda: made.append(make_session()) or made[-1])
        first, created_first = registry.open()
        second, created_second = registry.open()
        assert first is second
        assert (created_first, created_second) == (True, False)
        assert first.reveal_count == 1
        assert len(made) == 1

    def test_open_after_dispose_creates_fresh_session(self):
        registry = PanelRegistry(make_session)
        first, _ = registry.open()
        registry.dispose()
        assert first.disposed
        assert registry.current() is None
        second, created = registry.open()
        assert created
        assert second is not first

    def test_disposed_session_is_not_current(self):
        registry = PanelRegistry(make_session)
        session, _ = registry.open()
        session.dispose()
        assert registry.current() is None

    def test_factory_builds_provider_from_settings(self):
        make = session_factory(Settings(primary_command="metrics --json"), environ={})
        session = make()
        assert isinstance(session.provider, CommandMetricsProvider)
        assert session.chain.strategies[0].name == "primary"


# ── Lifecycle ──────────────────────────────────────────────────────────────────

class TestSessionLifecycle:
    def test_dispose_discards_cache(self, surface):
        s = make_session(provider=FakeProvider(make_payload()))
        s.attach(surface)
        run(s.controller.request_data())
        assert not s.cache.empty
        s.dispose()
        assert s.cache.empty
        assert s.controller.state is None
        assert s.sender is None

    def test_dispose_is_idempotent(self):
        s = make_session()
        s.dispose()
        s.dispose()
        assert s.disposed

    def test_startup_warning_without_provider(self):
        notices = make_session().startup_notices()
        assert len(notices) == 1
        assert notices[0]["level"] == "warning"
        assert "DBC_PRIMARY_COMMAND" in notices[0]["text"]

    def test_no_startup_notice_with_provider(self):
        assert make_session(provider=FakeProvider(make_payload())).startup_notices() == []

    def test_detached_session_still_updates_state(self):
        s = make_session(provider=FakeProvider(make_payload()))
        run(s.controller.request_data())
        assert s.controller.state == UNIVERSE_VIEW


class TestCapture:
    def test_collects_only_inside_block(self):
        s = make_session(provider=FakeProvider(make_payload()))

        async def scenario():
            with s.capture() as out:
                await s.controller.request_data()
            await s.controller.show_universe()
            return out

        out = run(scenario())
        assert [m["command"] for m in out] == ["updateData", "scene"]

    def test_capture_and_sender_both_receive(self, surface):
        s = make_session(provider=FakeProvider(make_payload()))
        s.attach(surface)

        async def scenario():
            with s.capture() as out:
                await s.controller.request_data()
            return out

        assert run(scenario()) == surface.messages


class TestReplay:
    def test_replays_library_view_without_requery(self):
        s = make_session(provider=FakeProvider(make_payload()))

        async def scenario():
            await s.controller.request_data()
            await s.controller.drill_down("simple_json")
            fresh = FakeSurface()
            s.attach(fresh)
            await s.replay()
            return fresh

        fresh = run(scenario())
        assert fresh.commands() == ["showLibrary", "scene"]
        assert s.controller.state.kind is ViewKind.LIBRARY
        assert s.provider.calls == 1

    def test_replays_universe(self):
        s = make_session(provider=FakeProvider(make_payload()))

        async def scenario():
            await s.controller.request_data()
            fresh = FakeSurface()
            s.attach(fresh)
            await s.replay()
            return fresh

        assert run(scenario()).commands() == ["updateData", "scene"]
        assert s.provider.calls == 1

    def test_nothing_to_replay_before_first_request(self, surface):
        s = make_session()
        s.attach(surface)
        run(s.replay())
        assert surface.messages == []
        assert s.chain.calls == 0


# ── Tick loop wiring ───────────────────────────────────────────────────────────

class TestTickLoop:
    def make_live_session(self, surface, tick_interval=0.0001):
        s = VisualizationSession(
            Settings(tick_interval=tick_interval, frame_every=50),
            provider=FakeProvider(make_payload()),
            file_opener=FakeOpener(),
            environ={},
        )
        s.attach(surface)
        return s

    def test_render_starts_layout_frames(self, surface):
        s = self.make_live_session(surface)

        async def scenario():
            await s.controller.request_data()
            await s._tick_task

        run(scenario())
        assert "layoutFrame" in surface.commands()
        assert s.renderer.simulation.settled

    def test_drill_down_before_universe_settles_lays_out_library(self, surface):
        s = self.make_live_session(surface, tick_interval=0.001)

        async def scenario():
            await s.controller.request_data()
            await asyncio.sleep(0.01)
            universe_task = s._tick_task
            still_running = not universe_task.done()
            await s.controller.drill_down("simple_json")
            await s._tick_task
            return still_running

        assert run(scenario())
        assert s.renderer.view == "library"
        assert s.renderer.simulation.ticks > 0
        assert s.renderer.simulation.settled
        library_frames = [m for m in surface.messages
                          if m["command"] == "layoutFrame" and m["view"] == "library"]
        assert library_frames
        assert "class:SIMPLE_JSON" in library_frames[-1]["positions"]

    def test_one_loop_at_a_time(self, surface):
        s = self.make_live_session(surface)

        async def scenario():
            await s.controller.request_data()
            task = s._tick_task
            s.ensure_ticking()
            same = s._tick_task is task
            s.dispose()
            await asyncio.gather(task, return_exceptions=True)
            return same, task

        same, task = run(scenario())
        assert same
        assert task.cancelled()
