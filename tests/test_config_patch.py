# Tests for config_patch.py: merge_patch, default model, auth profile config.
# Created: 2026-02-21

import copy

import pytest

from pocketauth.config_patch import (
    apply_auth_profile_config,
    apply_default_model,
    merge_patch,
    resolve_agent_dir,
    resolve_default_agent_id,
)

# ---------------------------------------------------------------------------
# merge_patch
# ---------------------------------------------------------------------------


class TestMergePatch:
    def test_preserves_sibling_keys(self):
        base = {"agents": {"defaults": {"models": {"a/x": {}}, "timeout": 30}}, "ui": {"theme": "dark"}}
        patch = {"agents": {"defaults": {"models": {"b/y": {"alias": "y"}}}}}
        merged = merge_patch(base, patch)
        assert merged == {
            "agents": {"defaults": {"models": {"a/x": {}, "b/y": {"alias": "y"}}, "timeout": 30}},
            "ui": {"theme": "dark"},
        }

    def test_arrays_replaced_wholesale(self):
        merged = merge_patch({"fallbacks": ["a", "b"]}, {"fallbacks": ["c"]})
        assert merged == {"fallbacks": ["c"]}

    def test_scalar_replaces_object_and_object_replaces_scalar(self):
        assert merge_patch({"k": {"x": 1}}, {"k": 5}) == {"k": 5}
        assert merge_patch({"k": 5}, {"k": {"x": 1}}) == {"k": {"x": 1}}

    def test_none_in_patch_replaces(self):
        assert merge_patch({"k": {"x": 1}}, {"k": None}) == {"k": None}

    @pytest.mark.parametrize(
        "base, patch",
        [
            ([1, 2], {"a": 1}),
            ({"a": 1}, [1, 2]),
            ("text", {"a": 1}),
            ({"a": 1}, None),
        ],
    )
    def test_non_object_at_top_level_patch_wins(self, base, patch):
        assert merge_patch(base, patch) == patch

    def test_inputs_not_mutated(self):
        base = {"a": {"b": {"c": 1}}, "list": [1]}
        patch = {"a": {"b": {"d": 2}}, "list": [2]}
        base_before = copy.deepcopy(base)
        patch_before = copy.deepcopy(patch)

        merged = merge_patch(base, patch)
        merged["a"]["b"]["c"] = 99
        merged["list"].append(3)

        assert base == base_before
        assert patch == patch_before

    def test_every_base_key_kept_and_every_patch_key_present(self):
        base = {"x": 1, "y": {"z": 2}, "w": [1]}
        patch = {"y": {"q": 3}, "n": "new"}
        merged = merge_patch(base, patch)
        for key in base:
            assert key in merged
        for key in patch:
            assert key in merged
        assert merged["x"] == 1
        assert merged["y"] == {"z": 2, "q": 3}
        assert merged["n"] == "new"


# ---------------------------------------------------------------------------
# apply_default_model
# ---------------------------------------------------------------------------


class TestApplyDefaultModel:
    def test_promotes_when_no_primary(self):
        cfg = apply_default_model({}, "google-gemini-cli/gemini-3-pro-preview")
        defaults = cfg["agents"]["defaults"]
        assert defaults["models"] == {"google-gemini-cli/gemini-3-pro-preview": {}}
        assert defaults["model"] == {"primary": "google-gemini-cli/gemini-3-pro-preview"}

    def test_keeps_existing_fallbacks_when_promoting(self):
        cfg = {"agents": {"defaults": {"model": {"fallbacks": ["a/b"]}}}}
        out = apply_default_model(cfg, "p/m")
        assert out["agents"]["defaults"]["model"] == {"primary": "p/m", "fallbacks": ["a/b"]}

    def test_non_list_fallbacks_kept_as_is(self):
        cfg = {"agents": {"defaults": {"model": {"fallbacks": "gpt-4"}}}}
        out = apply_default_model(cfg, "p/m")
        assert out["agents"]["defaults"]["model"] == {"primary": "p/m", "fallbacks": "gpt-4"}

    def test_fallbacks_list_is_copied(self):
        fallbacks = ["a/b"]
        cfg = {"agents": {"defaults": {"model": {"fallbacks": fallbacks}}}}
        out = apply_default_model(cfg, "p/m")
        out["agents"]["defaults"]["model"]["fallbacks"].append("c/d")
        assert fallbacks == ["a/b"]

    def test_existing_primary_untouched(self):
        cfg = {
            "agents": {
                "defaults": {
                    "model": {"primary": "anthropic/claude", "fallbacks": ["openai/gpt"]},
                    "models": {"anthropic/claude": {"alias": "c"}},
                }
            }
        }
        out = apply_default_model(cfg, "p/m")
        assert out["agents"]["defaults"]["model"] == {
            "primary": "anthropic/claude",
            "fallbacks": ["openai/gpt"],
        }
        assert out["agents"]["defaults"]["models"] == {"anthropic/claude": {"alias": "c"}, "p/m": {}}

    def test_legacy_string_primary_kept(self):
        cfg = {"agents": {"defaults": {"model": "anthropic/claude"}}}
        out = apply_default_model(cfg, "p/m")
        assert out["agents"]["defaults"]["model"] == "anthropic/claude"

    def test_existing_model_entry_preserved(self):
        cfg = {"agents": {"defaults": {"models": {"p/m": {"alias": "pm"}}}}}
        out = apply_default_model(cfg, "p/m")
        assert out["agents"]["defaults"]["models"]["p/m"] == {"alias": "pm"}

    def test_does_not_mutate_input(self):
        cfg = {"agents": {"defaults": {"model": {"fallbacks": ["x"]}}}}
        before = copy.deepcopy(cfg)
        apply_default_model(cfg, "p/m")
        assert cfg == before


# ---------------------------------------------------------------------------
# apply_auth_profile_config
# ---------------------------------------------------------------------------


class TestApplyAuthProfileConfig:
    def test_adds_profile(self):
        cfg = apply_auth_profile_config(
            {}, profile_id="google-gemini-cli:me@x.com", provider="google-gemini-cli", mode="oauth",
            email="me@x.com",
        )
        assert cfg["auth"]["profiles"]["google-gemini-cli:me@x.com"] == {
            "provider": "google-gemini-cli",
            "mode": "oauth",
            "email": "me@x.com",
        }

    def test_reauth_overwrites_in_place(self):
        cfg = {"auth": {"profiles": {"p:a": {"provider": "p", "mode": "token", "stale": True}}}}
        out = apply_auth_profile_config(cfg, profile_id="p:a", provider="p", mode="oauth")
        assert out["auth"]["profiles"] == {"p:a": {"provider": "p", "mode": "oauth"}}

    def test_moves_profile_to_front_of_order(self):
        cfg = {"auth": {"order": {"p": ["p:b", "p:a"], "q": ["q:x"]}}}
        out = apply_auth_profile_config(cfg, profile_id="p:a", provider="p", mode="oauth")
        assert out["auth"]["order"] == {"p": ["p:a", "p:b"], "q": ["q:x"]}

    def test_no_order_created_when_absent(self):
        out = apply_auth_profile_config({}, profile_id="p:a", provider="p", mode="oauth")
        assert "order" not in out["auth"]


# ---------------------------------------------------------------------------
# Agent directory resolution
# ---------------------------------------------------------------------------


class TestAgentDir:
    def test_default_agent_id_fallback(self):
        assert resolve_default_agent_id({}) == "main"

    def test_default_flag_wins(self):
        cfg = {"agents": {"list": [{"id": "work"}, {"id": "home", "default": True}]}}
        assert resolve_default_agent_id(cfg) == "home"

    def test_first_entry_when_no_flag(self):
        cfg = {"agents": {"list": [{"id": "work"}, {"id": "home"}]}}
        assert resolve_default_agent_id(cfg) == "work"

    def test_default_agent_dir(self, state_dir):
        assert resolve_agent_dir({}) == state_dir / "agent"

    def test_named_agent_dir(self, state_dir):
        cfg = {"agents": {"list": [{"id": "main", "default": True}, {"id": "work"}]}}
        assert resolve_agent_dir(cfg, "work") == state_dir / "agents" / "work" / "agent"

    def test_named_agent_explicit_dir(self, tmp_path):
        cfg = {"agents": {"list": [{"id": "main"}, {"id": "work", "agentDir": str(tmp_path / "w")}]}}
        assert resolve_agent_dir(cfg, "work") == tmp_path / "w"
