"""GitHub Actions workflow-command helpers.

Outside Actions these degrade to plain logging, so the pipeline behaves the same
when run locally.
"""

from __future__ import annotations

import logging
import os
import uuid

logger = logging.getLogger(__name__)


def in_actions() -> bool:
    return os.environ.get("GITHUB_ACTIONS") == "true"


def warning(message: str) -> None:
    """Log a warning and, under Actions, raise a ``::warning::`` annotation too."""
    logger.warning(message)
    if in_actions():
        print(f"::warning::{message}", flush=True)


def set_output(name: str, value) -> None:
    """Write a step output to $GITHUB_OUTPUT; a no-op when it is not set."""
    if isinstance(value, bool):
        value = "true" if value else "false"
    value = "" if value is None else str(value)
    output_path = os.environ.get("GITHUB_OUTPUT")
    if not output_path:
        logger.debug("output %s=%s", name, value)
        return
    with open(output_path, "a", encoding="utf-8") as f:
        if "\n" in value:
            delimiter = f"ghadelim_{uuid.uuid4().hex}"
            f.write(f"{name}<<{delimiter}\n{value}\n{delimiter}\n")
        else:
            f.write(f"{name}={value}\n")
