"""Pure helpers that derive a new config object from an existing one.

Nothing here touches disk or mutates its arguments: each function returns a
fresh dict, so callers can compose them and write the final result once.
"""

from __future__ import annotations

import copy
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pocketauth.config import get_config_dir

DEFAULT_AGENT_ID = "main"


def _is_object(value: Any) -> bool:
    return isinstance(value, Mapping)


def merge_patch(base: Any, patch: Any) -> Any:
    """Recursively merge *patch* into *base*.

    Mappings merge key by key. Anything else (lists, scalars, None) in the
    patch replaces the base value wholesale. If either side is not a mapping
    the patch wins at that level.
    """
    if not _is_object(base) or not _is_object(patch):
        return copy.deepcopy(patch)

    merged: dict[str, Any] = {k: copy.deepcopy(v) for k, v in base.items()}
    for key, value in patch.items():
        existing = merged.get(key)
        if _is_object(existing) and _is_object(value):
            merged[key] = merge_patch(existing, value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def _section(cfg: Mapping[str, Any], *path: str) -> dict[str, Any]:
    node: Any = cfg
    for key in path:
        node = node.get(key) if _is_object(node) else None
    return dict(node) if _is_object(node) else {}


def apply_default_model(cfg: Mapping[str, Any], model: str) -> dict[str, Any]:
    """Register *model* and promote it to primary if nothing is selected yet.

    An existing primary (and its fallback chain) is never replaced.
    """
    defaults = _section(cfg, "agents", "defaults")
    models = dict(defaults["models"]) if _is_object(defaults.get("models")) else {}
    if not _is_object(models.get(model)):
        models[model] = {}

    current = defaults.get("model")
    if isinstance(current, str) and current.strip():
        selection: Any = current
    elif _is_object(current) and str(current.get("primary") or "").strip():
        selection = dict(current)
    else:
        selection = {"primary": model}
        if _is_object(current) and "fallbacks" in current:
            selection["fallbacks"] = current["fallbacks"]

    next_cfg = merge_patch(cfg, {"agents": {"defaults": {"models": models}}})
    # assigned, not merged: a legacy string selection must stay a string
    next_cfg["agents"]["defaults"]["model"] = copy.deepcopy(selection)
    return next_cfg


def apply_auth_profile_config(
    cfg: Mapping[str, Any],
    *,
    profile_id: str,
    provider: str,
    mode: str,
    email: str | None = None,
) -> dict[str, Any]:
    """Record *profile_id* as an auth method for *provider*.

    If an explicit auth order exists for the provider, the profile moves to
    the front of it (no duplicates).
    """
    entry: dict[str, Any] = {"provider": provider, "mode": mode}
    if email:
        entry["email"] = email

    next_cfg = merge_patch(cfg, {"auth": {}})
    auth = next_cfg["auth"]

    profiles = dict(auth["profiles"]) if _is_object(auth.get("profiles")) else {}
    # overwrite, don't merge: a stale entry must not keep old keys
    profiles[profile_id] = entry
    auth["profiles"] = profiles

    order = auth.get("order")
    if _is_object(order) and isinstance(order.get(provider), list):
        rest = [p for p in order[provider] if p != profile_id]
        auth["order"] = {**order, provider: [profile_id, *rest]}
    return next_cfg


def _agent_entries(cfg: Mapping[str, Any]) -> list[dict[str, Any]]:
    agents = cfg.get("agents") if _is_object(cfg) else None
    raw = agents.get("list") if _is_object(agents) else None
    if not isinstance(raw, list):
        return []
    return [e for e in raw if _is_object(e) and str(e.get("id") or "").strip()]


def resolve_default_agent_id(cfg: Mapping[str, Any]) -> str:
    entries = _agent_entries(cfg)
    if not entries:
        return DEFAULT_AGENT_ID
    for entry in entries:
        if entry.get("default") is True:
            return str(entry["id"]).strip()
    return str(entries[0]["id"]).strip()


def resolve_agent_dir(cfg: Mapping[str, Any], agent_id: str | None = None) -> Path:
    """Directory holding an agent's auth profiles.

    The default agent uses ``<state_dir>/agent``; named agents use their
    configured ``agentDir`` or ``<state_dir>/agents/<id>/agent``.
    """
    default_id = resolve_default_agent_id(cfg)
    agent_id = (agent_id or default_id).strip()
    if agent_id == default_id:
        return get_config_dir() / "agent"
    for entry in _agent_entries(cfg):
        if str(entry["id"]).strip() == agent_id and entry.get("agentDir"):
            return Path(str(entry["agentDir"])).expanduser()
    return get_config_dir() / "agents" / agent_id / "agent"
