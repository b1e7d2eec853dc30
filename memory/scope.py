"""Scope utilities for scratchpad entries."""

from __future__ import annotations

GLOBAL_SCOPE = "global"
PROJECT_PREFIX = "project:"


def normalize_scope(scope: str) -> str:
    """Normalize a scope to ``global`` or ``project:<id>``."""
    scope_norm = scope.strip()
    if scope_norm.lower() == GLOBAL_SCOPE:
        return GLOBAL_SCOPE
    if scope_norm.startswith(PROJECT_PREFIX) and scope_norm[len(PROJECT_PREFIX):].strip():
        return PROJECT_PREFIX + scope_norm[len(PROJECT_PREFIX):].strip()
    raise ValueError(f"Scope must be 'global' or 'project:<id>', got {scope!r}")


def project_scope(project_id: str) -> str:
    return normalize_scope(PROJECT_PREFIX + project_id)
