"""Launch the external coding agent (codex or opencode) for one round.

One call is one process execution. Resuming is done by the caller with a
fresh prompt that carries the corrective context; the CLIs do not reliably
support continuing a previous session across providers.
"""

from __future__ import annotations

import json
import logging
import os
import shutil
import subprocess
from collections import deque
from datetime import datetime, timezone
from pathlib import Path

from rich.console import Console

from ghagent_core.actions import warning
from ghagent_core.config import UserConfig
from ghagent_core.errors import AgentNotFoundError, AgentProcessError

console = Console()
logger = logging.getLogger(__name__)


def _is_executable(path: str) -> bool:
    return os.path.isfile(path) and os.access(path, os.X_OK)


def cli_name(binary: str) -> str:
    """``/usr/local/bin/Codex.exe`` -> ``codex``."""
    name = os.path.basename(binary).lower()
    return name[:-4] if name.endswith(".exe") else name


def resolve_executable(binary: str) -> str:
    """Resolve ``binary`` to an executable path.

    Tries the value as an explicit path, then a PATH lookup of the value, then
    a PATH lookup of its basename. Installing a missing agent is left to the
    CI environment.
    """
    if os.sep in binary or "/" in binary:
        if _is_executable(binary):
            return binary
    else:
        found = shutil.which(binary)
        if found:
            return found

    found = shutil.which(cli_name(binary))
    if found:
        return found

    raise AgentNotFoundError(
        f"CLI binary not found: {binary}. Set agent_bin to 'codex' or 'opencode', "
        "install it on the runner, or provide a valid path."
    )


def build_agent_env(config: UserConfig, credentials: dict, base_env: dict | None = None) -> dict:
    """Process environment for the agent: the current env plus model routing for each provider."""
    env = dict(os.environ if base_env is None else base_env)
    env["OPENCODE_CONFIG_CONTENT"] = json.dumps(
        {
            "permission": "allow",
            "agents": {
                "coder": {
                    "model": config.model_name,
                    "maxTokens": config.max_tokens,
                    "fallbackModels": list(config.fallback_models),
                },
            },
        }
    )

    openai_key = credentials.get("openai_api_key")
    if openai_key:
        env["OPENAI_API_KEY"] = openai_key
    codex_key = env.get("CODEX_API_KEY") or openai_key
    if codex_key:
        env["CODEX_API_KEY"] = codex_key
    openai_base = credentials.get("openai_api_base")
    if openai_base:
        env["OPENAI_API_BASE"] = openai_base
        env["OPENAI_BASE_URL"] = openai_base

    anthropic_key = credentials.get("anthropic_api_key")
    if anthropic_key:
        env["ANTHROPIC_API_KEY"] = anthropic_key
    anthropic_base = credentials.get("anthropic_api_base")
    if anthropic_base:
        env["ANTHROPIC_API_BASE"] = anthropic_base
        env["ANTHROPIC_BASE_URL"] = anthropic_base

    gemini_key = credentials.get("gemini_api_key")
    if gemini_key:
        env["GEMINI_API_KEY"] = gemini_key
    gemini_base = credentials.get("gemini_api_base")
    if gemini_base:
        env["GEMINI_API_BASE"] = gemini_base

    return env


def build_command(executable: str, prompt: str, config: UserConfig) -> list[str]:
    if cli_name(executable) == "codex":
        args = [executable, "exec", "--full-auto", "--sandbox", "workspace-write"]
        if config.model_name:
            args += ["--model", config.model_name]
        return args + [prompt]
    # opencode reads the model from OPENCODE_CONFIG_CONTENT.
    return [executable, "run", prompt]


def tail_lines(path: Path, count: int) -> list[str]:
    try:
        with open(path, encoding="utf-8", errors="replace") as f:
            return [line.rstrip("\n") for line in deque(f, maxlen=count)]
    except OSError:
        return []


def new_log_path(context_dir: str, workdir: str | Path = ".") -> Path:
    log_dir = Path(workdir) / context_dir / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
    return log_dir / f"agent-{stamp}.log"


def run_agent(
    prompt: str,
    config: UserConfig,
    credentials: dict,
    continue_mode: bool = False,
    workdir: str | Path = ".",
) -> Path:
    """Run the agent once with ``prompt`` and return the path of its captured log.

    Raises AgentNotFoundError if the binary cannot be resolved and
    AgentProcessError on a non-zero exit (after logging the tail of the log).
    """
    executable = resolve_executable(config.agent_bin)
    if continue_mode:
        logger.info("Resuming with a fresh %s session and corrective prompt.", cli_name(executable))

    log_path = new_log_path(config.context_dir, workdir)
    cmd = build_command(executable, prompt, config)
    console.print(f"[cyan]Running {cli_name(executable)} (log: {log_path})[/cyan]")

    with open(log_path, "w", encoding="utf-8") as log:
        result = subprocess.run(
            cmd,
            cwd=str(workdir),
            env=build_agent_env(config, credentials),
            stdout=log,
            stderr=subprocess.STDOUT,
            stdin=subprocess.DEVNULL,
        )

    if result.returncode != 0:
        tail = tail_lines(log_path, config.log_tail_lines)
        warning(
            f"{cli_name(executable)} exited with status {result.returncode}. "
            f"Last {len(tail)} line(s) of {log_path}:\n" + "\n".join(tail)
        )
        raise AgentProcessError(result.returncode, str(log_path))

    logger.info("Agent finished (log: %s)", log_path)
    return log_path
