"""
Tests for the command channel and its HTTP front end.
"""

import json

import pytest
from fastapi.testclient import TestClient

from fieldscript.engine import Mesh
from fieldscript.engine.world import build_world
from fieldscript.script import compile_script, CompileError, InjectionCompileError
from fieldscript.script.runtime import (
    CommandChannel, InteractiveExecutor, Mode, create_context,
)
from fieldscript.server.app import create_app, parse_address
from fieldscript.server.models import CommandRequest, CommandKind

TIMEOUT = 10


@pytest.fixture(scope="module")
def world():
    return build_world()


@pytest.fixture
def running(world):
    """A started executor that stays open for injections."""
    ctx = create_context(mesh=Mesh(4, 4, 1))
    executor = InteractiveExecutor(compile_script('print "ready"', world), ctx, keep_open=True)
    executor.start()
    assert executor.wait_idle(TIMEOUT)
    yield executor, CommandChannel(executor, world)
    executor.request_stop()
    executor.join(TIMEOUT)


class TestChannel:
    """Requests mapped onto executor calls."""

    def test_run_statement(self, running):
        executor, channel = running
        response = channel.run_statement('print "hello"')
        assert response.ok
        assert response.message == 'queued: print "hello"'
        assert executor.wait_idle(TIMEOUT)
        assert executor.ctx.output == ["ready", "hello"]

    def test_injected_origin(self, running):
        executor, channel = running
        statement = channel.inject_text("print 1", origin="console")
        assert statement.origin == "console"

    def test_compile_failure_reported_to_requester_only(self, running):
        executor, channel = running
        before = executor.snapshot()
        response = channel.run_statement("vortex 1")
        assert not response.ok
        assert response.diagnostics[0]["code"] == "E500"
        assert "vortex" in response.message
        after = executor.snapshot()
        assert after.mode == Mode.RUNNING
        assert after.length == before.length

    def test_inject_text_raises(self, running):
        _, channel = running
        with pytest.raises(InjectionCompileError) as exc_info:
            channel.inject_text("bogus", origin="http")
        assert exc_info.value.origin == "http"
        assert isinstance(exc_info.value.__cause__, CompileError)

    def test_pause_and_resume(self, running):
        executor, channel = running
        assert channel.pause().ok
        assert executor.wait_for(Mode.PAUSED, timeout=TIMEOUT)
        channel.run_statement('print "queued"')
        assert channel.query_state().state.mode == "paused"
        assert executor.ctx.output == ["ready"]
        channel.resume()
        assert executor.wait_for(Mode.RUNNING, timeout=TIMEOUT)
        assert executor.wait_idle(TIMEOUT)
        assert executor.ctx.output == ["ready", "queued"]

    def test_stop(self, running):
        executor, channel = running
        channel.stop()
        assert executor.wait_for(Mode.FINISHED, timeout=TIMEOUT)
        response = channel.query_state()
        assert response.state.stopped
        assert response.state.mode == "finished"

    def test_run_statement_after_finish(self, running):
        executor, channel = running
        channel.keep_open(False)
        assert executor.wait_for(Mode.FINISHED, timeout=TIMEOUT)
        response = channel.run_statement("print 1")
        assert not response.ok
        assert "finished" in response.message

    def test_state(self, running):
        _, channel = running
        state = channel.state()
        assert state.mode == "running"
        assert state.idle
        assert state.keep_open


class TestDispatch:
    """Decoding serialized requests."""

    def test_dispatch(self, running):
        executor, channel = running
        response = channel.dispatch(CommandRequest(kind=CommandKind.PAUSE))
        assert response.ok
        assert executor.wait_for(Mode.PAUSED, timeout=TIMEOUT)

    def test_handle_json(self, running):
        executor, channel = running
        response = channel.handle_json(json.dumps({"kind": "run_statement", "text": "print 7"}))
        assert response.ok
        assert executor.wait_idle(TIMEOUT)
        assert executor.ctx.output[-1] == "7"

    def test_handle_dict(self, running):
        _, channel = running
        response = channel.handle_json({"kind": "keep_open", "flag": True})
        assert response.ok
        assert response.state.keep_open

    @pytest.mark.parametrize("payload", [
        "not json",
        '{"kind": "explode"}',
        '{"kind": "run_statement"}',
        '{"kind": "run_statement", "text": "   "}',
        '{"kind": "keep_open"}',
    ])
    def test_malformed(self, running, payload):
        executor, channel = running
        response = channel.handle_json(payload)
        assert not response.ok
        assert response.message.startswith("malformed command")
        assert executor.mode == Mode.RUNNING


class TestHTTP:
    """The FastAPI app in front of the channel."""

    @pytest.fixture
    def client(self, running, world):
        _, channel = running
        return TestClient(create_app(channel, world))

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "ok"}

    def test_post_command(self, client, running):
        executor, _ = running
        response = client.post("/api/command", json={"kind": "run_statement", "text": "print 42"})
        assert response.status_code == 200
        assert response.json()["ok"] is True
        assert executor.wait_idle(TIMEOUT)
        assert executor.ctx.output[-1] == "42"

    def test_post_failing_command(self, client):
        response = client.post("/api/command", json={"kind": "run_statement", "text": "m = 1"})
        body = response.json()
        assert response.status_code == 200
        assert body["ok"] is False
        assert body["diagnostics"][0]["code"] == "E500"

    def test_post_invalid_request(self, client):
        response = client.post("/api/command", json={"kind": "explode"})
        assert response.status_code == 422

    def test_get_state(self, client):
        body = client.get("/api/state").json()
        assert body["mode"] == "running"
        assert body["length"] == 1

    def test_registry(self, client, world):
        body = client.get("/api/registry").json()
        assert body["total"] == len(world)
        names = [e["name"] for e in body["entries"]]
        assert "vortex" in names
        assert "translate" in [m["name"] for m in body["methods"]]

    def test_registry_entry_any_case(self, client):
        body = client.get("/api/registry/VORTEX").json()
        assert body["name"] == "vortex"
        assert body["signature"] == "vortex(circ: int, pol: int) -> config"
        assert [p["type"] for p in body["params"]] == ["int", "int"]

    def test_registry_unknown(self, client):
        assert client.get("/api/registry/bogus").status_code == 404


class TestAddress:
    @pytest.mark.parametrize("address, expected", [
        (":35367", ("127.0.0.1", 35367)),
        ("0.0.0.0:8080", ("0.0.0.0", 8080)),
        ("localhost:1", ("localhost", 1)),
    ])
    def test_parse(self, address, expected):
        assert parse_address(address) == expected

    @pytest.mark.parametrize("address", ["35367", "host:", "host:port"])
    def test_invalid(self, address):
        with pytest.raises(ValueError):
            parse_address(address)
