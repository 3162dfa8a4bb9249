"""Tests for node identity validation, persistence and resolution."""

import json

import pytest

from warden.local.errors import IdentityValidationError
from warden.local.identity import IdentityResolver, IdentityStore, validate_node_id


def _no_prompt():
    raise AssertionError("prompt must not be called")


def _no_confirm(question, timeout):
    raise AssertionError("confirmation must not be asked")


class TestValidation:

    @pytest.mark.parametrize("token", ["abc-123", "A", "node-ID-42", "---", "0123456789"])
    def test_accepts_alphanumeric_and_hyphen(self, token):
        assert validate_node_id(token) == token

    @pytest.mark.parametrize("token", ["", None, "abc 123", "abc;rm -rf", "abc_123", "a'b", "näme", "abc\n", "$(id)"])
    def test_rejects_everything_else(self, token):
        with pytest.raises(IdentityValidationError):
            validate_node_id(token)


class TestIdentityStore:

    def test_round_trip_writes_single_key(self, tmp_path):
        store = IdentityStore(tmp_path / "config.json")
        store.set("node-1")
        assert json.loads((tmp_path / "config.json").read_text()) == {"node_id": "node-1"}
        assert store.get() == "node-1"

    def test_missing_file_returns_none(self, tmp_path):
        assert IdentityStore(tmp_path / "missing.json").get() is None

    def test_malformed_file_returns_none(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("NOT VALID JSON {{{")
        assert IdentityStore(path).get() is None

    def test_null_node_id_returns_none(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text('{"node_id": null}')
        assert IdentityStore(path).get() is None

    def test_overwrite_leaves_no_tmp_file(self, tmp_path):
        store = IdentityStore(tmp_path / "config.json")
        store.set("first")
        store.set("second")
        assert store.get() == "second"
        assert not (tmp_path / "config.tmp").exists()


class TestIdentityResolver:

    def test_environment_override_skips_all_prompts(self, tmp_path):
        store = IdentityStore(tmp_path / "config.json")
        store.set("old-id")
        resolver = IdentityResolver(
            store,
            env_vars=("NODE_IDENTITY_OVERRIDE",),
            environ={"NODE_IDENTITY_OVERRIDE": "abc-123"},
            confirm=_no_confirm,
            prompt=_no_prompt,
        )

        assert resolver.resolve() == "abc-123"
        assert json.loads((tmp_path / "config.json").read_text()) == {"node_id": "abc-123"}

    def test_first_set_environment_variable_wins(self, tmp_path):
        resolver = IdentityResolver(
            IdentityStore(tmp_path / "config.json"),
            env_vars=("NEXUS_NODE_ID", "NODE_IDENTITY_OVERRIDE"),
            environ={"NEXUS_NODE_ID": "primary", "NODE_IDENTITY_OVERRIDE": "secondary"},
            confirm=_no_confirm,
            prompt=_no_prompt,
        )
        assert resolver.resolve() == "primary"

    def test_invalid_environment_override_is_fatal(self, tmp_path):
        store = IdentityStore(tmp_path / "config.json")
        resolver = IdentityResolver(
            store, env_vars=("NEXUS_NODE_ID",), environ={"NEXUS_NODE_ID": "bad id"},
            confirm=_no_confirm, prompt=_no_prompt,
        )
        with pytest.raises(IdentityValidationError):
            resolver.resolve()
        assert store.get() is None

    def test_existing_id_reused_when_confirmed(self, tmp_path):
        store = IdentityStore(tmp_path / "config.json")
        store.set("stored-id")
        asked = []
        resolver = IdentityResolver(
            store, env_vars=(), environ={},
            confirm=lambda question, timeout: asked.append(timeout) or True,
            prompt=_no_prompt, confirm_timeout=5,
        )

        assert resolver.resolve() == "stored-id"
        assert asked == [5]

    def test_existing_id_replaced_when_declined(self, tmp_path):
        store = IdentityStore(tmp_path / "config.json")
        store.set("stored-id")
        resolver = IdentityResolver(
            store, env_vars=(), environ={},
            confirm=lambda question, timeout: False,
            prompt=lambda: "fresh-id",
        )

        assert resolver.resolve() == "fresh-id"
        assert store.get() == "fresh-id"

    def test_prompts_when_nothing_stored(self, tmp_path):
        store = IdentityStore(tmp_path / "config.json")
        resolver = IdentityResolver(
            store, env_vars=(), environ={}, confirm=_no_confirm, prompt=lambda: "typed-id",
        )
        assert resolver.resolve() == "typed-id"
        assert store.get() == "typed-id"

    def test_invalid_prompt_answer_is_fatal_and_not_persisted(self, tmp_path):
        store = IdentityStore(tmp_path / "config.json")
        resolver = IdentityResolver(
            store, env_vars=(), environ={}, confirm=_no_confirm, prompt=lambda: "nope!",
        )
        with pytest.raises(IdentityValidationError):
            resolver.resolve()
        assert store.get() is None
