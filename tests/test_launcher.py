import socket

import pytest

from src.errors import ConfigurationError, NetworkError, PortInUseError
from src.pipeline.persistence import save_configuration
from src.serving import launcher as launcher_module
from src.serving.launcher import (
    LaunchOptions,
    ServerLauncher,
    ensure_port_available,
    load_processor_class,
    random_port,
)
from src.serving.serve import InferenceDeployment


class FakeServe:
    """Records Ray Serve calls instead of starting a cluster."""

    def __init__(self):
        self.calls = []

    def start(self, http_options):
        self.calls.append(("start", http_options))

    def run(self, app, **kwargs):
        self.calls.append(("run", kwargs))

    def shutdown(self):
        self.calls.append(("shutdown", None))


class FakeDeployment:
    def __init__(self):
        self.options_kwargs = None
        self.bind_kwargs = None

    def options(self, **kwargs):
        self.options_kwargs = kwargs
        return self

    def bind(self, **kwargs):
        self.bind_kwargs = kwargs
        return self


@pytest.fixture
def config_path(model_config, tmp_path):
    return save_configuration(model_config, tmp_path / "config.json")


@pytest.fixture
def fake_serve(monkeypatch):
    fake = FakeServe()
    monkeypatch.setattr(launcher_module, "serve", fake)
    return fake


@pytest.fixture
def fake_deployment(monkeypatch):
    deployment = FakeDeployment()
    monkeypatch.setattr(launcher_module, "load_processor_class", lambda path: deployment)
    return deployment


@pytest.fixture
def free_port():
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def make_launcher(config_path, **kwargs):
    return ServerLauncher(LaunchOptions(config_path=str(config_path), **kwargs))


class TestPorts:
    def test_random_port_range(self):
        for _ in range(100):
            assert 1000 <= random_port() <= 65535

    def test_bound_port_is_rejected(self):
        with socket.socket() as sock:
            sock.bind(("127.0.0.1", 0))
            sock.listen()
            port = sock.getsockname()[1]
            with pytest.raises(PortInUseError) as excinfo:
                ensure_port_available("127.0.0.1", port)
        assert excinfo.value.port == port
        assert isinstance(excinfo.value, NetworkError)

    def test_free_port_is_accepted(self, free_port):
        ensure_port_available("127.0.0.1", free_port)


class TestLaunchOptions:
    def test_port_comes_from_serving_config(self, config_path):
        assert make_launcher(config_path).port == 40001

    def test_matching_config_port(self, config_path):
        assert make_launcher(config_path, config_port=40001).port == 40001

    def test_conflicting_config_port(self, config_path):
        with pytest.raises(ConfigurationError, match="differs"):
            make_launcher(config_path, config_port=40002)

    def test_only_file_store(self, config_path):
        with pytest.raises(ConfigurationError, match="store type"):
            make_launcher(config_path, config_store_type="etcd")

    def test_replicas(self, config_path):
        assert make_launcher(config_path).num_replicas == 2
        assert make_launcher(config_path, ha=True).num_replicas == 2

    def test_ha_forces_two_replicas(self, transform_config, tmp_path):
        path = save_configuration(transform_config, tmp_path / "config.json")
        assert make_launcher(path).num_replicas == 1
        assert make_launcher(path, ha=True).num_replicas == 2

    def test_threading_mode(self, config_path):
        assert make_launcher(config_path).max_ongoing_requests == 1
        assert make_launcher(config_path, multi_threaded=True).max_ongoing_requests > 1

    def test_processor_class(self):
        assert load_processor_class("src.serving.serve:InferenceDeployment") is InferenceDeployment

    @pytest.mark.parametrize("path", ["InferenceDeployment", "src.serving.serve:Missing", "nope.mod:X"])
    def test_bad_processor_class(self, path):
        with pytest.raises(ConfigurationError):
            load_processor_class(path)


class TestLaunch:
    @pytest.fixture
    def launcher(self, transform_config, tmp_path, free_port, monkeypatch):
        config = transform_config.model_copy(
            update={
                "serving_config": transform_config.serving_config.model_copy(
                    update={"http_port": free_port}
                )
            }
        )
        path = save_configuration(config, tmp_path / "config.json")
        launcher = make_launcher(path)
        monkeypatch.setattr(launcher, "wait_until_ready", lambda: launcher._ready.set())
        return launcher

    def test_callback_exit_code(self, launcher, fake_serve, fake_deployment):
        assert launcher.launch(on_success=lambda: 0) == 0

        assert [name for name, _ in fake_serve.calls] == ["start", "run", "shutdown"]
        assert fake_serve.calls[0][1] == {"host": "127.0.0.1", "port": launcher.port}
        assert fake_deployment.bind_kwargs == {
            "config_path": launcher.config_path,
            "model_dir": launcher.model_dir,
        }
        assert fake_deployment.options_kwargs == {
            "num_replicas": 1,
            "max_ongoing_requests": 1,
        }

    def test_callback_runs_on_another_thread(self, launcher, fake_serve, fake_deployment):
        import threading

        seen = {}

        def on_success():
            seen["thread"] = threading.current_thread().name
            seen["ready"] = launcher.is_ready
            return 0

        launcher.launch(on_success)
        assert seen == {"thread": "on-success", "ready": True}

    def test_failing_callback_exits_non_zero(self, launcher, fake_serve, fake_deployment):
        def on_success():
            raise RuntimeError("boom")

        assert launcher.launch(on_success) == 1
        assert fake_serve.calls[-1][0] == "shutdown"

    def test_port_in_use_fails_before_start(self, launcher, fake_serve, fake_deployment):
        with socket.socket() as sock:
            sock.bind(("127.0.0.1", launcher.port))
            sock.listen()
            with pytest.raises(PortInUseError):
                launcher.launch(lambda: 0)
        assert fake_serve.calls == []

    def test_port_checked_once_per_launch(self, launcher, fake_serve, fake_deployment, monkeypatch):
        checks = []
        check_port = launcher_module.ensure_port_available

        def counting(host, port):
            checks.append((host, port))
            check_port(host, port)

        monkeypatch.setattr(launcher_module, "ensure_port_available", counting)
        launcher.launch(lambda: 0)
        assert checks == [("127.0.0.1", launcher.port)]

    def test_not_ready_raises(self, config_path, monkeypatch):
        class Refused:
            status_code = 503

        monkeypatch.setattr(launcher_module.requests, "get", lambda *a, **k: Refused())
        monkeypatch.setattr(launcher_module.BASE_CNFG, "ready_poll_interval_seconds", 0.01)
        launcher = make_launcher(config_path)
        with pytest.raises(NetworkError, match="not ready"):
            launcher.wait_until_ready(timeout=0.05)
        assert not launcher.is_ready
