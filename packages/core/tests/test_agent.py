"""Tests for launching the coding agent."""

import json
from unittest.mock import MagicMock

import pytest

from ghagent_core.agent import build_agent_env, build_command, cli_name, resolve_executable, run_agent, tail_lines
from ghagent_core.config import UserConfig
from ghagent_core.errors import AgentNotFoundError, AgentProcessError


class TestResolveExecutable:
    def test_bare_name_found_on_path(self, mocker):
        mocker.patch("ghagent_core.agent.shutil.which", return_value="/usr/bin/codex")
        assert resolve_executable("codex") == "/usr/bin/codex"

    def test_explicit_executable_path(self, tmp_path):
        binary = tmp_path / "opencode"
        binary.write_text("#!/bin/sh\n")
        binary.chmod(0o755)
        assert resolve_executable(str(binary)) == str(binary)

    def test_bad_path_falls_back_to_basename(self, mocker):
        which = mocker.patch("ghagent_core.agent.shutil.which", return_value="/usr/bin/codex")
        assert resolve_executable("/opt/missing/codex") == "/usr/bin/codex"
        which.assert_called_once_with("codex")

    def test_not_found(self, mocker):
        mocker.patch("ghagent_core.agent.shutil.which", return_value=None)
        with pytest.raises(AgentNotFoundError, match="CLI binary not found: nope"):
            resolve_executable("nope")


def test_cli_name():
    assert cli_name("/usr/local/bin/Codex.exe") == "codex"
    assert cli_name("opencode") == "opencode"


def test_build_command_codex():
    cmd = build_command("/usr/bin/codex", "PROMPT", UserConfig(model_name="o3"))
    assert cmd == ["/usr/bin/codex", "exec", "--full-auto", "--sandbox", "workspace-write", "--model", "o3", "PROMPT"]


def test_build_command_opencode():
    assert build_command("opencode", "PROMPT", UserConfig()) == ["opencode", "run", "PROMPT"]


class TestBuildAgentEnv:
    def test_opencode_config_content(self):
        config = UserConfig(model_name="o3", max_tokens=100, fallback_models=("a", "b"))
        env = build_agent_env(config, {}, base_env={})
        payload = json.loads(env["OPENCODE_CONFIG_CONTENT"])
        assert payload["agents"]["coder"] == {"model": "o3", "maxTokens": 100, "fallbackModels": ["a", "b"]}

    def test_provider_credentials(self):
        creds = {
            "openai_api_key": "sk-1",
            "openai_api_base": "https://proxy",
            "anthropic_api_key": "ant",
            "gemini_api_key": "gem",
        }
        env = build_agent_env(UserConfig(), creds, base_env={"PATH": "/bin"})
        assert env["PATH"] == "/bin"
        assert env["OPENAI_API_KEY"] == "sk-1"
        assert env["CODEX_API_KEY"] == "sk-1"
        assert env["OPENAI_BASE_URL"] == "https://proxy"
        assert env["ANTHROPIC_API_KEY"] == "ant"
        assert env["GEMINI_API_KEY"] == "gem"
        assert "ANTHROPIC_BASE_URL" not in env

    def test_existing_codex_key_kept(self):
        env = build_agent_env(UserConfig(), {"openai_api_key": "sk-1"}, base_env={"CODEX_API_KEY": "codex"})
        assert env["CODEX_API_KEY"] == "codex"


def test_tail_lines(tmp_path):
    log = tmp_path / "log"
    log.write_text("\n".join(str(i) for i in range(10)))
    assert tail_lines(log, 3) == ["7", "8", "9"]
    assert tail_lines(tmp_path / "missing", 3) == []


class TestRunAgent:
    def test_success_returns_log_path(self, tmp_path, mocker):
        mocker.patch("ghagent_core.agent.shutil.which", return_value="/usr/bin/codex")
        run = mocker.patch("ghagent_core.agent.subprocess.run", return_value=MagicMock(returncode=0))
        log_path = run_agent("PROMPT", UserConfig(), {}, workdir=tmp_path)
        assert log_path.parent == tmp_path / ".github-agent-data" / "logs"
        cmd = run.call_args[0][0]
        assert cmd[0] == "/usr/bin/codex"
        assert cmd[-1] == "PROMPT"
        assert run.call_args.kwargs["cwd"] == str(tmp_path)

    def test_non_zero_exit_raises_with_tail(self, tmp_path, mocker):
        mocker.patch("ghagent_core.agent.shutil.which", return_value="/usr/bin/codex")

        def fake_run(cmd, stdout, **kwargs):
            stdout.write("line one\nboom: quota exceeded\n")
            return MagicMock(returncode=2)

        mocker.patch("ghagent_core.agent.subprocess.run", side_effect=fake_run)
        warn = mocker.patch("ghagent_core.agent.warning")
        with pytest.raises(AgentProcessError) as exc_info:
            run_agent("PROMPT", UserConfig(), {}, workdir=tmp_path)
        assert exc_info.value.returncode == 2
        assert "boom: quota exceeded" in warn.call_args[0][0]
