import os
from unittest.mock import patch

import pytest

from search_bridge import app as app_module


@pytest.mark.unit
class TestSocketActivation:
    def test_no_listen_pid(self, monkeypatch):
        monkeypatch.delenv("LISTEN_PID", raising=False)

        assert app_module.socket_activation_fd() is None

    def test_listen_pid_for_another_process(self, monkeypatch):
        monkeypatch.setenv("LISTEN_PID", str(os.getpid() + 1))
        monkeypatch.setenv("LISTEN_FDS", "1")

        assert app_module.socket_activation_fd() is None

    def test_first_passed_descriptor(self, monkeypatch):
        monkeypatch.setenv("LISTEN_PID", str(os.getpid()))
        monkeypatch.setenv("LISTEN_FDS", "2")

        assert app_module.socket_activation_fd() == 3

    def test_bad_fd_count(self, monkeypatch):
        monkeypatch.setenv("LISTEN_PID", str(os.getpid()))
        monkeypatch.setenv("LISTEN_FDS", "many")

        assert app_module.socket_activation_fd() is None


@pytest.mark.unit
class TestMain:
    def test_main_runs_uvicorn_on_host_and_port(self, monkeypatch, tmp_path):
        monkeypatch.delenv("LISTEN_PID", raising=False)
        monkeypatch.setenv("XB_CACHE_DIR", str(tmp_path))
        monkeypatch.setenv("XB_PORT", "4100")

        with (
            patch("uvicorn.run") as run,
            patch.object(app_module, "configure_logging") as configure_logging,
            patch.object(app_module, "init_tracing"),
        ):
            app_module.main()

        configure_logging.assert_called_once()
        kwargs = run.call_args.kwargs
        assert kwargs["port"] == 4100
        assert kwargs["log_config"] is None

    def test_main_uses_socket_activation(self, monkeypatch, tmp_path):
        monkeypatch.setenv("LISTEN_PID", str(os.getpid()))
        monkeypatch.setenv("LISTEN_FDS", "1")
        monkeypatch.setenv("XB_CACHE_DIR", str(tmp_path))

        with (
            patch("uvicorn.run") as run,
            patch.object(app_module, "configure_logging"),
            patch.object(app_module, "init_tracing"),
        ):
            app_module.main()

        assert run.call_args.kwargs["fd"] == 3

    def test_invalid_configuration_exits(self, monkeypatch):
        monkeypatch.setenv("XB_PORT", "not-a-port")

        with pytest.raises(SystemExit):
            app_module.main()
