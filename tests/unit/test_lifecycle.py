# tests/unit/test_lifecycle.py
"""
Tests for the NodeController lifecycle state machine.

Tests cover:
    - init: fresh repo, adopted repo, option merging, failure
    - start: construction, adoption of a running instance, idempotency
    - stop/cleanup: no-ops, disposable cleanup, failed stop
    - version, pid and peer reads
"""

import asyncio
import json
import logging
from pathlib import Path

import httpx
import pytest

from nodectl.api.rpc import ClientFactory, KuboRpcClient
from nodectl.config.schema import ControllerConfig, InitOptions
from nodectl.controller.lifecycle import (
    NodeController,
    RepoState,
    RunState,
    resolve_repo_path,
)
from nodectl.errors import (
    ConfigurationError,
    MissingClientStrategyError,
    NotStartedError,
)
from nodectl.node.local import LocalNode


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

class FakeProbe:
    def __init__(self, existing=(), running=None):
        self.existing = set(existing)
        self.running = dict(running or {})
        self.removed: list[str] = []

    async def exists(self, path):
        return path in self.existing

    async def remove(self, path):
        self.removed.append(path)
        self.existing.discard(path)

    async def find_running_address(self, path):
        return self.running.get(path)


class FakeNode:
    def __init__(self, peer_id="12D3KooWfake", fail_stop=False):
        self.events: list[str] = []
        self.peer_id = peer_id
        self.fail_stop = fail_stop

    async def start(self):
        self.events.append("start")

    async def stop(self):
        self.events.append("stop")
        if self.fail_stop:
            raise ConnectionError("stop failed")

    async def id(self):
        self.events.append("id")
        return {"id": self.peer_id, "addresses": ["/ip4/127.0.0.1/tcp/4001"]}

    async def version(self):
        return {"version": "0.3.0"}


class FakeNodeModule:
    """Records create() calls and marks the repo as existing, like a real node."""

    def __init__(self, probe=None, node=None, error=None):
        self.calls: list[dict] = []
        self.node = node or FakeNode()
        self.probe = probe
        self.error = error

    async def create(self, options):
        self.calls.append(dict(options))
        if self.error:
            raise self.error
        if self.probe is not None:
            self.probe.existing.add(options["repo"])
        return self.node


class FakeClientModule:
    def __init__(self, name="rpc"):
        self.addrs: list[str] = []
        self.handle = FakeNode(peer_id=f"{name}-peer")

    def create(self, addr):
        self.addrs.append(addr)
        return self.handle


def _make(path="/tmp/r1", probe=None, node_module=None, **config):
    probe = probe if probe is not None else FakeProbe()
    node_module = node_module if node_module is not None else FakeNodeModule(probe)
    ctl = NodeController(
        ControllerConfig(repo=path, **config),
        node_module=node_module,
        probe=probe,
    )
    return ctl, probe, node_module


# ---------------------------------------------------------------------------
# Initial state and init()
# ---------------------------------------------------------------------------

class TestInit:
    def test_initial_state(self):
        ctl, _, _ = _make()
        assert ctl.initialized is False
        assert ctl.clean is True
        assert ctl.started is False
        assert ctl.api is None
        assert ctl.api_addr is None
        assert ctl.repo_state is RepoState.PRISTINE
        assert ctl.run_state is RunState.IDLE

    @pytest.mark.asyncio
    async def test_init_fresh_repo(self):
        """Fresh path: repo is constructed, initialized and no longer clean."""
        ctl, _, module = _make(test=False)

        result = await ctl.init()

        assert result is ctl
        assert ctl.initialized is True
        assert ctl.clean is False
        assert len(module.calls) == 1
        call = module.calls[0]
        assert call["repo"] == "/tmp/r1"
        assert call["silent"] is True
        assert call["init"] == InitOptions(empty_repo=False, profiles=[])

    @pytest.mark.asyncio
    async def test_init_test_mode_applies_test_profile(self):
        ctl, _, module = _make(test=True)

        await ctl.init()

        assert module.calls[0]["init"].profiles == ["test"]
        assert ctl.init_options.profiles == ["test"]

    @pytest.mark.asyncio
    async def test_init_option_precedence(self):
        """Caller options beat configured options, which beat defaults."""
        ctl, _, module = _make(
            test=True, init={"empty_repo": True, "profiles": ["server"]}
        )

        await ctl.init({"profiles": ["lowpower"]})

        merged = module.calls[0]["init"]
        assert merged.profiles == ["lowpower"]
        assert merged.empty_repo is True

    @pytest.mark.asyncio
    async def test_init_existing_repo_is_adopted_untouched(self):
        probe = FakeProbe(existing={"/tmp/r1"})
        ctl, _, module = _make(probe=probe)

        await ctl.init({"profiles": ["ignored"]})

        assert module.calls == []
        assert ctl.initialized is True
        assert ctl.clean is False
        assert ctl.api is None

    @pytest.mark.asyncio
    async def test_init_twice_takes_adopt_path(self):
        ctl, _, module = _make()

        await ctl.init()
        await ctl.init()

        assert len(module.calls) == 1
        assert ctl.initialized is True

    @pytest.mark.asyncio
    async def test_failed_init_leaves_state_unchanged(self):
        probe = FakeProbe()
        module = FakeNodeModule(probe, error=PermissionError("read-only filesystem"))
        ctl, _, _ = _make(probe=probe, node_module=module)

        with pytest.raises(PermissionError):
            await ctl.init()

        assert ctl.initialized is False
        assert ctl.clean is True
        assert ctl.api is None


# ---------------------------------------------------------------------------
# cleanup() and stop()
# ---------------------------------------------------------------------------

class TestCleanupAndStop:
    @pytest.mark.asyncio
    async def test_cleanup_twice_removes_once(self):
        ctl, probe, _ = _make()
        await ctl.init()

        await ctl.cleanup()
        await ctl.cleanup()

        assert probe.removed == ["/tmp/r1"]
        assert ctl.clean is True

    @pytest.mark.asyncio
    async def test_cleanup_when_clean_is_noop(self):
        ctl, probe, _ = _make()

        await ctl.cleanup()

        assert probe.removed == []

    @pytest.mark.asyncio
    async def test_cleanup_preserves_initialized(self):
        ctl, _, _ = _make()
        await ctl.init()

        await ctl.cleanup()

        assert ctl.initialized is True
        assert ctl.repo_state is RepoState.REMOVED

    @pytest.mark.asyncio
    async def test_stop_when_not_started_is_noop(self):
        ctl, probe, module = _make()

        result = await ctl.stop()

        assert result is ctl
        assert ctl.started is False
        assert probe.removed == []
        assert module.node.events == []

    @pytest.mark.asyncio
    async def test_failed_stop_leaves_controller_started(self):
        probe = FakeProbe()
        node = FakeNode(fail_stop=True)
        ctl, _, _ = _make(probe=probe, node_module=FakeNodeModule(probe, node=node))
        await ctl.start()

        with pytest.raises(ConnectionError):
            await ctl.stop()

        assert ctl.started is True
        assert probe.removed == []

        node.fail_stop = False
        await ctl.stop()
        assert ctl.started is False
        assert probe.removed == ["/tmp/r1"]

    @pytest.mark.asyncio
    async def test_non_disposable_stop_keeps_repo(self):
        ctl, probe, _ = _make(disposable=False)
        await ctl.init()
        await ctl.start()

        await ctl.stop()

        assert ctl.started is False
        assert ctl.clean is False
        assert probe.removed == []


# ---------------------------------------------------------------------------
# start()
# ---------------------------------------------------------------------------

class TestStart:
    @pytest.mark.asyncio
    async def test_peer_before_start_raises(self):
        ctl, _, _ = _make()

        with pytest.raises(NotStartedError, match="Not started"):
            _ = ctl.peer

    @pytest.mark.asyncio
    async def test_peer_is_stable_after_start(self):
        ctl, _, _ = _make()
        await ctl.start()

        first = ctl.peer
        second = ctl.peer

        assert first.id == "12D3KooWfake"
        assert first is second
        assert first.addresses == ["/ip4/127.0.0.1/tcp/4001"]

    @pytest.mark.asyncio
    async def test_start_without_init_constructs_and_starts(self):
        ctl, _, module = _make(test=True)

        await ctl.start()

        assert ctl.started is True
        assert module.node.events == ["start", "id"]
        assert module.calls[0]["init"].profiles == ["test"]
        assert ctl.clean is False

    @pytest.mark.asyncio
    async def test_start_twice_binds_once_and_logs_identity_once(self, caplog):
        caplog.set_level(logging.INFO, logger="nodectl.controller.lifecycle")
        ctl, _, module = _make()

        await ctl.start()
        handle = ctl.api
        await ctl.start()

        assert ctl.api is handle
        assert len(module.calls) == 1
        assert module.node.events == ["start", "id"]
        started = [r for r in caplog.records if "Node started" in r.getMessage()]
        assert len(started) == 1
        assert "12D3KooWfake" in started[0].getMessage()

    @pytest.mark.asyncio
    async def test_concurrent_start_binds_once(self):
        ctl, _, module = _make()

        await asyncio.gather(ctl.start(), ctl.start())

        assert ctl.started is True
        assert len(module.calls) == 1
        assert module.node.events.count("start") == 1
        assert module.node.events.count("id") == 1

    @pytest.mark.asyncio
    async def test_start_adopts_running_instance(self):
        """A running instance advertised in the repo is bound, not constructed."""
        probe = FakeProbe(
            existing={"/tmp/r2"}, running={"/tmp/r2": "/ip4/127.0.0.1/tcp/5001"}
        )
        rpc = FakeClientModule("rpc")
        module = FakeNodeModule(probe)
        ctl = NodeController(
            ControllerConfig(repo="/tmp/r2"),
            node_module=module,
            rpc_module=rpc,
            probe=probe,
        )

        await ctl.start()

        assert module.calls == []
        assert rpc.addrs == ["/ip4/127.0.0.1/tcp/5001"]
        assert ctl.api is rpc.handle
        assert ctl.api.api_host == "127.0.0.1"
        assert ctl.api.api_port == 5001
        assert ctl.api_addr.port == 5001
        # adopted instance is already running
        assert rpc.handle.events == ["id"]
        assert ctl.peer.id == "rpc-peer"
        assert ctl.clean is False

    @pytest.mark.asyncio
    async def test_running_instance_without_client_strategy_fails(self):
        probe = FakeProbe(running={"/tmp/r2": "/ip4/127.0.0.1/tcp/5001"})
        ctl, _, _ = _make(path="/tmp/r2", probe=probe)

        with pytest.raises(MissingClientStrategyError):
            await ctl.start()

        assert ctl.started is False
        assert ctl.run_state is RunState.IDLE
        with pytest.raises(NotStartedError):
            _ = ctl.peer

    @pytest.mark.asyncio
    async def test_remote_mode_without_strategy_fails(self):
        ctl, _, _ = _make(type="remote", api_addr="/ip4/10.0.0.5/tcp/5001")

        with pytest.raises(MissingClientStrategyError):
            await ctl.start()

        assert ctl.started is False

    @pytest.mark.asyncio
    async def test_remote_mode_without_address_fails(self):
        ctl, _, _ = _make(type="remote")

        with pytest.raises(ConfigurationError, match="api_addr"):
            await ctl.start()

        assert ctl.started is False

    @pytest.mark.asyncio
    async def test_remote_mode_binds_configured_address(self):
        probe = FakeProbe()
        http = FakeClientModule("http")
        ctl = NodeController(
            ControllerConfig(repo="/tmp/r3", type="remote", api_addr="/dns4/node.local/tcp/5001"),
            http_module=http,
            probe=probe,
        )

        await ctl.start()

        assert http.addrs == ["/dns4/node.local/tcp/5001"]
        assert http.handle.events == ["start", "id"]
        assert ctl.api_addr.host == "node.local"
        assert ctl.peer.id == "http-peer"

    @pytest.mark.asyncio
    async def test_failed_start_can_be_retried(self):
        probe = FakeProbe(running={"/tmp/r2": "/ip4/127.0.0.1/tcp/5001"})
        ctl, _, _ = _make(path="/tmp/r2", probe=probe)
        with pytest.raises(MissingClientStrategyError):
            await ctl.start()

        del probe.running["/tmp/r2"]
        await ctl.start()

        assert ctl.started is True


# ---------------------------------------------------------------------------
# version(), pid(), context manager
# ---------------------------------------------------------------------------

class TestQueries:
    @pytest.mark.asyncio
    async def test_version_constructs_on_demand_without_starting(self):
        ctl, _, module = _make()

        assert await ctl.version() == "0.3.0"

        assert ctl.started is False
        assert len(module.calls) == 1
        assert module.node.events == []

    @pytest.mark.asyncio
    async def test_version_then_start_reuses_instance(self):
        ctl, _, module = _make()

        await ctl.version()
        await ctl.start()

        assert len(module.calls) == 1

    @pytest.mark.asyncio
    async def test_pid_not_implemented_in_every_state(self):
        ctl, _, _ = _make(disposable=False)

        with pytest.raises(NotImplementedError, match="not implemented"):
            await ctl.pid()

        await ctl.start()
        with pytest.raises(NotImplementedError, match="not implemented"):
            await ctl.pid()

        await ctl.stop()
        with pytest.raises(NotImplementedError, match="not implemented"):
            await ctl.pid()

    @pytest.mark.asyncio
    async def test_context_manager_starts_and_stops(self):
        ctl, probe, module = _make()

        async with ctl as running:
            assert running.started is True

        assert ctl.started is False
        assert module.node.events == ["start", "id", "stop"]
        assert probe.removed == ["/tmp/r1"]


# ---------------------------------------------------------------------------
# Repository path resolution
# ---------------------------------------------------------------------------

class TestRepoPath:
    def test_explicit_repo_wins(self):
        assert resolve_repo_path(ControllerConfig(repo="/data/node")) == "/data/node"

    def test_disposable_gets_fresh_temp_path(self):
        config = ControllerConfig(disposable=True)
        first = resolve_repo_path(config)
        second = resolve_repo_path(config)
        assert first != second
        assert Path(first).name.startswith("nodectl_")

    def test_non_disposable_uses_user_data_dir(self):
        path = resolve_repo_path(ControllerConfig(disposable=False))
        assert Path(path).name == "repo"
        assert "nodectl" in path


# ---------------------------------------------------------------------------
# End-to-end scenarios on a real filesystem
# ---------------------------------------------------------------------------

class TestScenarios:
    @pytest.mark.asyncio
    async def test_disposable_in_process_lifecycle(self, tmp_path: Path):
        """Fresh disposable test-mode repo: init, start, stop removes it."""
        repo = tmp_path / "r1"
        ctl = NodeController(
            ControllerConfig(repo=str(repo), disposable=True, test=True),
            node_module=LocalNode,
        )

        await ctl.init()
        config = json.loads((repo / "config").read_text())
        assert config["Profiles"] == ["test"]

        await ctl.start()
        assert ctl.started is True
        assert ctl.peer.id.startswith("12D3")

        await ctl.stop()
        assert ctl.started is False
        assert ctl.clean is True
        assert not repo.exists()

    @pytest.mark.asyncio
    async def test_adopts_running_daemon_via_rpc_client(self, tmp_path: Path):
        repo = tmp_path / "r2"
        repo.mkdir()
        (repo / "config").write_text("{}")
        (repo / "api").write_text("/ip4/127.0.0.1/tcp/5001\n")
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            if request.url.path == "/api/v0/id":
                return httpx.Response(200, json={"ID": "12D3KooWremote", "Addresses": []})
            return httpx.Response(200)

        module = FakeNodeModule()
        ctl = NodeController(
            ControllerConfig(repo=str(repo), disposable=False),
            node_module=module,
            rpc_module=ClientFactory(KuboRpcClient, transport=httpx.MockTransport(handler)),
        )

        await ctl.start()

        assert module.calls == []
        assert ctl.api.api_host == "127.0.0.1"
        assert ctl.api.api_port == 5001
        assert ctl.peer.id == "12D3KooWremote"
        assert requests[0].url.host == "127.0.0.1"
        assert requests[0].url.port == 5001

        await ctl.stop()
        assert [r.url.path for r in requests] == ["/api/v0/id", "/api/v0/shutdown"]
        assert repo.exists()

    @pytest.mark.asyncio
    async def test_remote_controller_restarts_after_stop(self):
        clients: list[str] = []
        ctl = NodeController(
            ControllerConfig(
                repo="/tmp/r4", type="remote", disposable=False,
                api_addr="/ip4/10.0.0.5/tcp/5001",
            ),
            rpc_module=_RecordingFactory(clients),
            probe=FakeProbe(),
        )

        await ctl.start()
        await ctl.stop()
        assert ctl.api is None
        assert ctl.api_addr is None

        await ctl.start()

        assert ctl.started is True
        assert ctl.peer.id == "12D3KooWremote"
        assert len(clients) == 2

    @pytest.mark.asyncio
    async def test_remote_controller_version_after_stop(self):
        clients: list[str] = []
        ctl = NodeController(
            ControllerConfig(
                repo="/tmp/r5", type="remote", disposable=False,
                api_addr="/ip4/10.0.0.5/tcp/5001",
            ),
            rpc_module=_RecordingFactory(clients),
            probe=FakeProbe(),
        )

        await ctl.start()
        await ctl.stop()

        assert await ctl.version() == "0.30.0"
        assert ctl.started is False

    @pytest.mark.asyncio
    async def test_start_after_adopted_daemon_exits_builds_in_process(self, tmp_path: Path):
        repo = tmp_path / "r6"
        repo.mkdir()
        (repo / "config").write_text("{}")
        (repo / "api").write_text("/ip4/127.0.0.1/tcp/5001")
        module = FakeNodeModule()
        ctl = NodeController(
            ControllerConfig(repo=str(repo), disposable=False),
            node_module=module,
            rpc_module=_RecordingFactory([]),
        )

        await ctl.start()
        await ctl.stop()
        (repo / "api").unlink()
        await ctl.start()

        assert len(module.calls) == 1
        assert ctl.api is module.node
        assert ctl.api_addr is None
        assert ctl.peer.id == "12D3KooWfake"


def _daemon(request: httpx.Request) -> httpx.Response:
    if request.url.path == "/api/v0/id":
        return httpx.Response(200, json={"ID": "12D3KooWremote", "Addresses": []})
    if request.url.path == "/api/v0/version":
        return httpx.Response(200, json={"Version": "0.30.0", "Repo": "16"})
    return httpx.Response(200)


class _RecordingFactory:
    """Builds real KuboRpcClients over a mock transport and records each bind."""

    def __init__(self, clients: list[str]):
        self.clients = clients
        self.factory = ClientFactory(KuboRpcClient, transport=httpx.MockTransport(_daemon))

    def create(self, addr):
        self.clients.append(addr)
        return self.factory.create(addr)
