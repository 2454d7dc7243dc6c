"""
Centralized Git command runner with dubious ownership handling.

Every git invocation made while reading history goes through this module so
that repositories owned by a different user (containers, CI checkouts, sudo)
can still be read, and so that failing commands are recorded by the
ExceptionLogger when one is active.
"""

import os
import subprocess
from pathlib import Path
from typing import List, Dict, Optional


def get_git_environment(project_dir: Path) -> Dict[str, str]:
    """
    Get environment variables for git commands to handle dubious ownership.

    Args:
        project_dir: Path to the repository directory

    Returns:
        Dictionary of environment variables for git commands
    """
    env = os.environ.copy()

    # safe.directory goes in slot 0, caller supplied GIT_CONFIG_* entries shift up
    env["GIT_CONFIG_COUNT"] = "1"
    env["GIT_CONFIG_KEY_0"] = "safe.directory"
    env["GIT_CONFIG_VALUE_0"] = str(project_dir.resolve())

    config_count = 1
    for key in os.environ:
        if key.startswith("GIT_CONFIG_KEY_"):
            idx = key.replace("GIT_CONFIG_KEY_", "")
            if idx.isdigit():
                new_idx = int(idx) + 1
                env[f"GIT_CONFIG_KEY_{new_idx}"] = os.environ[key]
                if f"GIT_CONFIG_VALUE_{idx}" in os.environ:
                    env[f"GIT_CONFIG_VALUE_{new_idx}"] = os.environ[
                        f"GIT_CONFIG_VALUE_{idx}"
                    ]
                config_count = max(config_count, new_idx + 1)

    env["GIT_CONFIG_COUNT"] = str(config_count)

    return env


def run_git_command(
    cmd: List[str],
    cwd: Path,
    check: bool = True,
    capture_output: bool = True,
    text: bool = True,
    timeout: Optional[float] = None,
    **kwargs,
) -> subprocess.CompletedProcess:
    """
    Run a git command with proper environment handling for dubious ownership.

    Args:
        cmd: Git command as a list (e.g., ["git", "cat-file", "commit", oid])
        cwd: Working directory for the command
        check: Whether to raise CalledProcessError on non-zero exit
        capture_output: Whether to capture stdout and stderr
        text: Whether to decode output as text
        timeout: Optional timeout in seconds
        **kwargs: Additional arguments to pass to subprocess.run

    Returns:
        CompletedProcess instance with the command result

    Raises:
        subprocess.CalledProcessError: If check=True and command fails
        FileNotFoundError: If the git executable is not installed
    """
    if not cmd or cmd[0] != "git":
        raise ValueError("Command must start with 'git'")

    env = get_git_environment(cwd)

    if "env" in kwargs:
        env.update(kwargs.pop("env"))

    try:
        return subprocess.run(
            cmd,
            cwd=cwd,
            check=check,
            capture_output=capture_output,
            text=text,
            timeout=timeout,
            env=env,
            **kwargs,
        )
    except subprocess.CalledProcessError as e:
        _log_git_failure(exception=e, cmd=cmd, cwd=cwd)
        raise


def _log_git_failure(
    exception: subprocess.CalledProcessError,
    cmd: List[str],
    cwd: Path,
) -> None:
    """Log a git command failure with full context.

    Args:
        exception: The CalledProcessError that occurred
        cmd: Git command that failed
        cwd: Working directory
    """
    from .exception_logger import ExceptionLogger

    logger = ExceptionLogger.get_instance()
    if logger:
        stderr = getattr(exception, "stderr", "") or ""
        if isinstance(stderr, bytes):
            stderr = stderr.decode("utf-8", errors="replace")
        context = {
            "git_command": " ".join(cmd),
            "cwd": str(cwd),
            "returncode": exception.returncode,
            "stderr": stderr,
        }

        logged_exception = Exception(f"Git command failed: {' '.join(cmd)}")
        logger.log_exception(logged_exception, context=context)
