import json

import pytest

from src import harness as harness_module
from src.errors import HarnessStateError
from src.harness import HarnessState, ServingHarness
from src.serving.launcher import LaunchOptions


class FakeLauncher:
    """Stands in for ServerLauncher: calls on_success synchronously."""

    instances = []

    def __init__(self, options):
        self.options = options
        self.host = "127.0.0.1"
        self.port = 40000
        FakeLauncher.instances.append(self)

    def launch(self, on_success=None):
        return on_success() if on_success else 0


@pytest.fixture
def fake_launcher(monkeypatch):
    FakeLauncher.instances = []
    monkeypatch.setattr(harness_module, "ServerLauncher", FakeLauncher)
    return FakeLauncher


class TestServingHarness:
    def test_full_sequence(self, transform_config, tmp_path, fake_launcher):
        path = tmp_path / "config.json"
        harness = ServingHarness(config_path=path)
        states = []

        def validate(client):
            states.append(harness.state)
            assert client.base_url == "http://127.0.0.1:40000"
            return 0

        assert harness.run(transform_config, validate=validate) == 0
        assert states == [HarnessState.REQUEST_SENT]
        assert harness.state == HarnessState.DONE
        assert json.loads(path.read_text())["servingConfig"]["httpPort"] == 40000

    def test_launch_options_point_at_persisted_file(self, transform_config, tmp_path, fake_launcher):
        options = LaunchOptions(config_path="elsewhere.json", config_port=40000)
        harness = ServingHarness(config_path=tmp_path / "config.json", launch_options=options)
        harness.run(transform_config, validate=lambda client: 0)

        used = fake_launcher.instances[0].options
        assert used.config_path == str(tmp_path / "config.json")
        assert used.config_port == 40000

    def test_validation_exit_code_is_returned(self, transform_config, tmp_path, fake_launcher):
        harness = ServingHarness(config_path=tmp_path / "config.json")
        assert harness.run(transform_config, validate=lambda client: 1) == 1
        assert harness.exit_code == 1

    def test_persist_before_configure(self, tmp_path):
        harness = ServingHarness(config_path=tmp_path / "config.json")
        with pytest.raises(HarnessStateError, match="expected configured"):
            harness.persist()

    def test_launch_before_persist(self, transform_config, tmp_path):
        harness = ServingHarness(config_path=tmp_path / "config.json")
        harness.configure(transform_config)
        with pytest.raises(HarnessStateError):
            harness.launch()
        assert not (tmp_path / "config.json").exists()

    def test_configure_twice(self, transform_config, tmp_path):
        harness = ServingHarness(config_path=tmp_path / "config.json")
        harness.configure(transform_config)
        with pytest.raises(HarnessStateError):
            harness.configure(transform_config)
