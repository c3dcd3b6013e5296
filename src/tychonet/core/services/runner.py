from __future__ import annotations

import logging
import os
import subprocess
from typing import Dict, List, Optional

from tychonet.domain.models import ProcessResult
from tychonet.domain.ports import ProcessRunner

logger = logging.getLogger(__name__)


class SubprocessRunner(ProcessRunner):
    """
    Runs playbooks as child processes and captures their output.

    Launch failures and timeouts are reported as non-zero results rather
    than raised, so the workflow reports them like any failed stage.
    """

    def __init__(self, timeout: Optional[float] = None) -> None:
        self._timeout = timeout

    def run(self, argv: List[str], env: Optional[Dict[str, str]] = None) -> ProcessResult:
        full_env = dict(os.environ)
        full_env.update(env or {})

        logger.info(f"Executing: {' '.join(argv)}")
        try:
            completed = subprocess.run(
                argv,
                capture_output=True,
                text=True,
                env=full_env,
                timeout=self._timeout,
                check=False,
            )
        except FileNotFoundError:
            return ProcessResult(returncode=127, stderr=f"command not found: {argv[0]}")
        except subprocess.TimeoutExpired as e:
            partial = e.stdout if isinstance(e.stdout, str) else ""
            return ProcessResult(
                returncode=124,
                stdout=partial,
                stderr=f"timed out after {self._timeout}s",
            )
        except OSError as e:
            return ProcessResult(returncode=1, stderr=f"failed to execute {argv[0]}: {e}")

        logger.debug(f"{argv[0]} exited with code {completed.returncode}")
        return ProcessResult(
            returncode=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
        )
