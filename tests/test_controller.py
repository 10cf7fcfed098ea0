"""
State-machine tests for controller.py.

Each test builds a session with fake collaborators (no layout loop), attaches
a FakeSurface and drives the controller through asyncio.run.
"""
import pytest

from conftest import FakeOpener, FakeProvider, failing_provider, make_payload, make_session, run
from dbc_explorer.controller import UNIVERSE_VIEW, ViewKind, ViewState
from dbc_explorer.errors import ProtocolError


def simple_json_payload():
    return make_payload(libraries=[
        {"name": "simple_json", "path": "/src/simple_json", "score": 91,
         "classes": [{"name": "SIMPLE_JSON", "path": "/src/simple_json/simple_json.e", "score": 91}]},
        {"name": "simple_http", "path": "/src/simple_http", "score": 60},
    ])


@pytest.fixture
def session(surface):
    s = make_session(provider=FakeProvider(simple_json_payload()))
    s.attach(surface)
    return s


# ── requestData ────────────────────────────────────────────────────────────────

class TestRequestData:
    def test_populates_cache_and_renders_universe(self, session, surface):
        run(session.controller.request_data())
        assert session.controller.state == UNIVERSE_VIEW
        assert session.cache.get().find_library("simple_json") is not None
        assert surface.commands() == ["updateData", "scene"]
        assert surface.last("updateData")["data"]["score"] == 42
        assert surface.last("scene")["data"]["view"] == "universe"

    def test_initial_state_before_first_render(self, session):
        assert session.controller.state is None

    def test_each_request_resolves_again(self, session):
        run(session.controller.request_data())
        run(session.controller.request_data())
        assert session.chain.calls == 2
        assert session.provider.calls == 2

    def test_falls_back_to_sample_when_sources_fail(self, surface):
        s = make_session(provider=failing_provider())
        s.attach(surface)
        snap = run(s.controller.request_data())
        assert s.chain.last_source == "sample"
        assert not snap.is_empty


# ── drillDown ──────────────────────────────────────────────────────────────────

class TestDrillDown:
    def test_cache_hit_exact_and_case_insensitive(self, session):
        async def scenario():
            await session.controller.request_data()
            a = await session.controller.drill_down("simple_json")
            b = await session.controller.drill_down("SIMPLE_JSON")
            return a, b

        a, b = run(scenario())
        assert a is b
        assert session.chain.calls == 1

    def test_hit_transitions_to_library(self, session, surface):
        async def scenario():
            await session.controller.request_data()
            await session.controller.drill_down("SIMPLE_JSON")

        run(scenario())
        assert session.controller.state == ViewState(ViewKind.LIBRARY, "simple_json")
        detail = surface.last("showLibrary")["data"]
        assert detail["name"] == "simple_json"
        assert detail["classes"][0]["name"] == "SIMPLE_JSON"
        assert surface.last("scene")["data"]["breadcrumb"] == ["All Libraries", "simple_json"]

    def test_miss_keeps_view_and_reports_null(self, session, surface):
        async def scenario():
            await session.controller.request_data()
            return await session.controller.drill_down("does_not_exist")

        assert run(scenario()) is None
        assert session.controller.state == UNIVERSE_VIEW
        assert surface.last("showLibrary") == {"command": "showLibrary", "data": None}
        assert surface.commands().count("scene") == 1

    def test_empty_cache_uses_environment(self, surface, library_root):
        s = make_session(environ={"SIMPLE_JSON": str(library_root)})
        s.attach(surface)
        lib = run(s.controller.drill_down("simple-json"))
        assert lib is not None
        assert len(lib.classes) == 4
        assert s.chain.calls == 0
        assert s.controller.state.kind is ViewKind.LIBRARY


# ── showUniverse ───────────────────────────────────────────────────────────────

class TestShowUniverse:
    def test_back_to_universe_without_second_resolution(self, session):
        async def scenario():
            await session.controller.request_data()
            await session.controller.drill_down("simple_json")
            await session.controller.show_universe()

        run(scenario())
        assert session.controller.state == UNIVERSE_VIEW
        assert session.chain.calls == 1

    def test_idempotent(self, session, surface):
        async def scenario():
            await session.controller.request_data()
            await session.controller.show_universe()
            first = surface.last("updateData")
            await session.controller.show_universe()
            return first, surface.last("updateData")

        first, second = run(scenario())
        assert first == second
        assert session.chain.calls == 1

    def test_empty_cache_behaves_like_request_data(self, session, surface):
        run(session.controller.show_universe())
        assert session.chain.calls == 1
        assert session.controller.state == UNIVERSE_VIEW
        assert "updateData" in surface.commands()


# ── openFile ───────────────────────────────────────────────────────────────────

class TestOpenFile:
    def test_delegates_without_state_change(self, surface):
        opener = FakeOpener()
        s = make_session(provider=FakeProvider(simple_json_payload()), opener=opener)
        s.attach(surface)

        async def scenario():
            await s.controller.request_data()
            await s.controller.drill_down("simple_json")
            return await s.controller.open_file("/src/simple_json/simple_json.e", 12)

        assert run(scenario()) is True
        assert opener.opened == [("/src/simple_json/simple_json.e", 12)]
        assert s.controller.state.kind is ViewKind.LIBRARY

    def test_failure_becomes_notice(self, surface):
        s = make_session(opener=FakeOpener(fail=True))
        s.attach(surface)
        assert run(s.controller.open_file("/nowhere.e", 3)) is False
        msg = surface.last("notice")
        assert msg["level"] == "error"
        assert "/nowhere.e:3" in msg["text"]
        assert s.controller.state is None


# ── Raw message dispatch ───────────────────────────────────────────────────────

class TestHandle:
    def test_full_sequence_over_messages(self, session, surface):
        async def scenario():
            await session.controller.handle({"command": "requestData"})
            await session.controller.handle({"command": "drillDown", "libraryName": "simple_json"})
            await session.controller.handle({"command": "showUniverse"})

        run(scenario())
        assert session.controller.state == UNIVERSE_VIEW
        assert session.chain.calls == 1
        assert surface.commands() == [
            "updateData", "scene", "showLibrary", "scene", "updateData", "scene",
        ]

    def test_click_on_library_node_drills_down(self, session):
        async def scenario():
            await session.controller.handle({"command": "requestData"})
            await session.controller.handle({"command": "clickNode", "nodeId": "lib:simple_http"})

        run(scenario())
        assert session.controller.state == ViewState(ViewKind.LIBRARY, "simple_http")

    def test_click_on_class_node_opens_file(self, surface):
        opener = FakeOpener()
        s = make_session(provider=FakeProvider(simple_json_payload()), opener=opener)
        s.attach(surface)

        async def scenario():
            await s.controller.handle({"command": "requestData"})
            await s.controller.handle({"command": "drillDown", "libraryName": "simple_json"})
            await s.controller.handle({"command": "clickNode", "nodeId": "class:SIMPLE_JSON"})

        run(scenario())
        assert opener.opened == [("/src/simple_json/simple_json.e", 1)]

    def test_click_on_class_without_path_reports_notice(self, surface):
        opener = FakeOpener()
        payload = make_payload(libraries=[
            {"name": "simple_json", "path": "/src/simple_json", "score": 80,
             "classes": [{"name": "SIMPLE_JSON", "score": 80}]},
        ])
        s = make_session(provider=FakeProvider(payload), opener=opener)
        s.attach(surface)

        async def scenario():
            await s.controller.handle({"command": "requestData"})
            await s.controller.handle({"command": "drillDown", "libraryName": "simple_json"})
            await s.controller.handle({"command": "clickNode", "nodeId": "class:SIMPLE_JSON"})

        run(scenario())
        assert opener.opened == []
        msg = surface.last("notice")
        assert msg["level"] == "error"
        assert "SIMPLE_JSON" in msg["text"]
        assert s.controller.state == ViewState(ViewKind.LIBRARY, "simple_json")

    def test_unknown_command_rejected(self, session):
        with pytest.raises(ProtocolError):
            run(session.controller.handle({"command": "formatDisk"}))

    def test_disposed_controller_ignores_messages(self, session, surface):
        session.controller.dispose()
        run(session.controller.handle({"command": "requestData"}))
        assert surface.messages == []
        assert session.chain.calls == 0
