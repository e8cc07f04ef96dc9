"""Filesystem path utilities."""

from __future__ import annotations

import os


def resolve_media_path(work_dir: str, relative_path: str) -> str:
    root = work_dir or os.getcwd()
    return os.path.join(root, relative_path)


def sidecar_path(media_path: str, suffix: str = ".txt") -> str:
    return f"{media_path}{suffix}"


def output_dir_for(media_path: str) -> str:
    return os.path.dirname(os.path.abspath(media_path))
