# git.py
# Small, focused wrapper around the Git CLI.
# This module centralizes all Git interactions so the rest of the codebase
# never needs to call subprocess("git ...") directly.

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Optional


def _git(args: list[str], cwd: Optional[str] = None) -> str:
    """
    Execute a git command and return its stdout as a clean string.

    This is the single low-level entry point for all Git operations in this file.

    Args:
        args: List of git arguments (e.g. ["status", "--porcelain"])
        cwd: Optional working directory in which to run the git command.

    Returns:
        Stdout from the git command with surrounding whitespace removed.

    Raises:
        subprocess.CalledProcessError if git exits non-zero.
    """
    out = subprocess.check_output(
        ["git", *args],
        cwd=cwd,
        text=True,   # return output as str instead of bytes
        stderr=subprocess.PIPE,
    )
    return out.strip()


def repo_root(cwd: Optional[str] = None) -> Path:
    """Return the absolute path to the root of the current Git repository."""
    # `git rev-parse --show-toplevel` prints the repo root directory
    # regardless of where the command is run from inside the repo.
    return Path(_git(["rev-parse", "--show-toplevel"], cwd=cwd))


def is_work_tree(cwd: Optional[str] = None) -> bool:
    """True if `cwd` is inside a git work tree."""
    try:
        return _git(["rev-parse", "--is-inside-work-tree"], cwd=cwd) == "true"
    except (subprocess.CalledProcessError, FileNotFoundError):
        return False


def head_sha(cwd: Optional[str] = None) -> str:
    """Return the full SHA hash of the current HEAD commit."""
    return _git(["rev-parse", "HEAD"], cwd=cwd)


def current_branch(cwd: Optional[str] = None) -> str:
    """
    Return the checked out branch name, or "" on a detached HEAD.

    `git symbolic-ref` fails when HEAD does not point at a branch, which is
    exactly the detached case we want to report as empty.
    """
    try:
        return _git(["symbolic-ref", "--short", "-q", "HEAD"], cwd=cwd)
    except subprocess.CalledProcessError:
        return ""


def exact_tag(cwd: Optional[str] = None) -> str:
    """Return the tag pointing exactly at HEAD, or "" if there is none."""
    try:
        return _git(["describe", "--tags", "--exact-match", "HEAD"], cwd=cwd)
    except subprocess.CalledProcessError:
        return ""


def checkout(ref: str, cwd: Optional[str] = None) -> None:
    """Check out `ref` (branch, tag, or commit SHA)."""
    _git(["checkout", "--quiet", ref], cwd=cwd)
