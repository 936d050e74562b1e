"""Check that the agent wrote its required output files, re-prompting it when not."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

from ghagent_core.actions import warning
from ghagent_core.errors import AgentProcessError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExpectedArtifactSet:
    """Files a mode must produce, relative to the working directory.

    Every path in ``required`` must exist. Each entry of ``alternatives`` is a
    group of options (each option a list of paths); a group is satisfied when
    any one option is complete. The first option is the preferred one and is
    what gets requested when nothing in the group is complete.
    """

    required: tuple[str, ...] = ()
    alternatives: tuple[tuple[tuple[str, ...], ...], ...] = field(default=())

    @property
    def all_paths(self) -> list[str]:
        paths = list(self.required)
        for group in self.alternatives:
            for option in group:
                paths.extend(p for p in option if p not in paths)
        return paths


def file_ready(path: Path) -> bool:
    """True if ``path`` exists and is non-empty."""
    try:
        return path.stat().st_size > 0
    except OSError:
        return False


def missing_outputs(expected: ExpectedArtifactSet, workdir: str | Path = ".") -> list[str]:
    """Return the expected paths that are missing or empty, in declaration order."""
    root = Path(workdir)
    missing = [p for p in expected.required if not file_ready(root / p)]
    for group in expected.alternatives:
        option_missing = [[p for p in option if not file_ready(root / p)] for option in group]
        if any(not m for m in option_missing):
            continue
        missing.extend(option_missing[0])
    return missing


def clear_outputs(expected: ExpectedArtifactSet, workdir: str | Path = ".") -> None:
    """Remove stale copies of the expected files left behind by an earlier run."""
    root = Path(workdir)
    for p in expected.all_paths:
        target = root / p
        if target.exists():
            logger.debug("Removing stale output %s", target)
            target.unlink()


def required_outputs_prompt(base_prompt: str, missing: list[str]) -> str:
    lines = "\n".join(f"- {p}" for p in missing)
    return (
        f"{base_prompt}\n\n# REQUIRED OUTPUTS\n"
        "Your previous run did not produce the following files. "
        "Write each of them (non-empty) before finishing:\n"
        f"{lines}\n"
    )


def verify_and_resume(
    expected: ExpectedArtifactSet,
    base_prompt: str,
    invoke: Callable[[str], object],
    max_retries: int = 5,
    workdir: str | Path = ".",
) -> list[str]:
    """Re-invoke the agent until every expected file exists or attempts run out.

    ``invoke`` runs the agent once in continuation mode with the given prompt.
    Returns the paths still missing; an empty list means success. Running out of
    attempts is reported as a warning, never raised, so partial output still
    gets published.
    """
    for attempt in range(1, max_retries + 1):
        missing = missing_outputs(expected, workdir)
        if not missing:
            logger.info("All required output files present")
            return []

        logger.warning("Missing files (attempt %d/%d): %s", attempt, max_retries, ", ".join(missing))

        if attempt < max_retries:
            try:
                invoke(required_outputs_prompt(base_prompt, missing))
            except AgentProcessError as e:
                logger.warning("Resume attempt %d failed: %s", attempt, e)

    still_missing = missing_outputs(expected, workdir)
    if still_missing:
        warning(f"Files still missing after {max_retries} attempts: {', '.join(still_missing)}")
    return still_missing
