"""
Unit tests for schema models and shorthand parsing.

Tests cover:
- Check shorthand (bool, name, pair, single-key mapping)
- Group and condition parsing (OR of ANDs)
- Hook shorthand
- Metadata as an ordered multimap
- Rule defaults and immutability
- AuthorizationResult constructors
- PolicyDocument YAML loading
"""

import pytest
from pydantic import ValidationError

from warden.errors import InvalidHookArgsError
from warden.policy import CheckRegistry
from warden.schema import (
    ArgCheck,
    AuthorizationResult,
    Decision,
    LiteralCheck,
    ModuleArgsHook,
    ModuleHook,
    NamedCheck,
    NamedHook,
    PolicyConfig,
    Rule,
    load_policy_document_from_string,
    parse_check,
    parse_conditions,
    parse_hook,
    parse_hooks,
    parse_metadata,
)


# =============================================================================
# Check Parsing
# =============================================================================


class TestParseCheck:
    """Tests for check shorthand."""

    def test_bool(self) -> None:
        """Booleans become literal checks."""
        assert parse_check(True) == LiteralCheck(value=True)
        assert parse_check(False) == LiteralCheck(value=False)

    def test_name(self) -> None:
        """Strings become named checks."""
        assert parse_check("own_resource") == NamedCheck(name="own_resource")

    def test_pair(self) -> None:
        """(name, arg) tuples become argument checks."""
        assert parse_check(("role", "editor")) == ArgCheck(name="role", arg="editor")

    def test_single_key_mapping(self) -> None:
        """{name: arg} is the YAML spelling of an argument check."""
        assert parse_check({"role": "editor"}) == ArgCheck(name="role", arg="editor")

    def test_model_passthrough(self) -> None:
        """Check models are returned unchanged."""
        check = ArgCheck(name="min_likeability", arg=3)
        assert parse_check(check) is check

    def test_invalid(self) -> None:
        """Unrecognized values are rejected."""
        with pytest.raises(ValueError, match="Invalid check"):
            parse_check(42)

    def test_str(self) -> None:
        """Checks have a readable string form."""
        assert str(LiteralCheck(value=True)) == "true"
        assert str(NamedCheck(name="own_resource")) == "own_resource"
        assert str(ArgCheck(name="role", arg="editor")) == "role(editor)"


class TestParseConditions:
    """Tests for allow/deny shorthand."""

    def test_none_is_empty(self) -> None:
        """None means no groups."""
        assert parse_conditions(None) == ()

    def test_single_name(self) -> None:
        """A single name is one group with one check."""
        assert parse_conditions("own_resource") == ((NamedCheck(name="own_resource"),),)

    def test_single_pair(self) -> None:
        """A single pair is one group, not two checks."""
        assert parse_conditions(("role", "admin")) == ((ArgCheck(name="role", arg="admin"),),)

    def test_list_of_groups(self) -> None:
        """List entries are OR-ed groups; nested lists are AND-ed checks."""
        groups = parse_conditions(["own_resource", [("role", "writer"), "same_group"]])
        assert groups == (
            (NamedCheck(name="own_resource"),),
            (ArgCheck(name="role", arg="writer"), NamedCheck(name="same_group")),
        )

    def test_multi_key_mapping_is_group(self) -> None:
        """A mapping with several keys is a group of argument checks."""
        groups = parse_conditions([{"role": "writer", "min_likeability": 3}])
        assert groups == (
            (ArgCheck(name="role", arg="writer"), ArgCheck(name="min_likeability", arg=3)),
        )

    def test_empty_list(self) -> None:
        """An empty list means no groups."""
        assert parse_conditions([]) == ()

    def test_empty_group_kept(self) -> None:
        """An empty inner group is kept as an empty group."""
        assert parse_conditions([[]]) == ((),)


# =============================================================================
# Hook Parsing
# =============================================================================


class TestParseHook:
    """Tests for pre-hook shorthand."""

    def test_name(self) -> None:
        """Strings become named hooks."""
        assert parse_hook("preload_group") == NamedHook(name="preload_group")

    def test_module_pair(self) -> None:
        """(module, name) becomes a module hook."""
        registry = CheckRegistry("hooks")
        hook = parse_hook((registry, "preload"))
        assert isinstance(hook, ModuleHook)
        assert hook.module is registry
        assert hook.name == "preload"

    def test_module_args(self) -> None:
        """(module, name, args) becomes a hook with static arguments."""
        hook = parse_hook(("myapp.hooks", "preload", {"depth": 2}))
        assert hook == ModuleArgsHook(module="myapp.hooks", name="preload", args={"depth": 2})

    def test_args_must_be_mapping(self) -> None:
        """Static arguments that are not a mapping are a definition error."""
        with pytest.raises(InvalidHookArgsError):
            parse_hook(("myapp.hooks", "preload", [1, 2]))

    def test_mapping_form(self) -> None:
        """The YAML mapping form is accepted."""
        assert parse_hook({"function": "preload"}) == NamedHook(name="preload")
        assert parse_hook({"module": "myapp.hooks", "function": "preload"}) == ModuleHook(
            module="myapp.hooks", name="preload"
        )
        hook = parse_hook({"function": "promote", "args": {"role": "admin"}})
        assert hook == ModuleArgsHook(module=None, name="promote", args={"role": "admin"})

    def test_mapping_unknown_key(self) -> None:
        """Unknown keys in the mapping form are rejected."""
        with pytest.raises(ValueError, match="Invalid pre-hook"):
            parse_hook({"function": "preload", "when": "always"})

    def test_parse_hooks_single_and_list(self) -> None:
        """A single hook or a list of hooks becomes a tuple."""
        assert parse_hooks(None) == ()
        assert parse_hooks("a") == (NamedHook(name="a"),)
        assert parse_hooks(["a", "b"]) == (NamedHook(name="a"), NamedHook(name="b"))
        assert parse_hooks(()) == ()


# =============================================================================
# Metadata
# =============================================================================


class TestParseMetadata:
    """Tests for metadata parsing."""

    def test_repeated_keys_kept(self) -> None:
        """Metadata is an ordered list of pairs and keys may repeat."""
        pairs = parse_metadata([("tag", "a"), ("tag", "b")])
        assert pairs == (("tag", "a"), ("tag", "b"))

    def test_mapping_and_yaml_forms(self) -> None:
        """Mappings and single-key mappings are accepted."""
        assert parse_metadata({"gql_exclude": True}) == (("gql_exclude", True),)
        assert parse_metadata([{"gql_exclude": True}, ["audit", "x"]]) == (
            ("gql_exclude", True),
            ("audit", "x"),
        )

    def test_invalid_entry(self) -> None:
        """Entries that are not pairs are rejected."""
        with pytest.raises(ValueError, match="Invalid metadata entry"):
            parse_metadata(["lonely"])


# =============================================================================
# Rule Model
# =============================================================================


class TestRule:
    """Tests for the Rule model."""

    def test_default_name(self) -> None:
        """The name defaults to {object}_{action}."""
        rule = Rule(object="article", action="update")
        assert rule.name == "article_update"
        assert rule.allow == ()
        assert rule.deny == ()
        assert rule.pre_hooks == ()
        assert rule.metadata == ()

    def test_explicit_name(self) -> None:
        """An explicit name is kept."""
        rule = Rule(object="article", action="update", name="edit_article")
        assert rule.name == "edit_article"

    def test_shorthand_equals_models(self) -> None:
        """Shorthand and explicit models produce equal rules."""
        short = Rule(object="user", action="delete", allow=("role", "admin"), deny="same_user")
        explicit = Rule(
            object="user",
            action="delete",
            allow=((ArgCheck(name="role", arg="admin"),),),
            deny=((NamedCheck(name="same_user"),),),
        )
        assert short == explicit

    def test_frozen(self) -> None:
        """Rules are immutable."""
        rule = Rule(object="article", action="view")
        with pytest.raises(ValidationError):
            rule.action = "edit"

    def test_extra_fields_rejected(self) -> None:
        """Unknown fields are rejected."""
        with pytest.raises(ValidationError):
            Rule(object="article", action="view", colour="red")

    def test_empty_object_rejected(self) -> None:
        """Object and action must not be empty."""
        with pytest.raises(ValidationError):
            Rule(object="", action="view")


# =============================================================================
# Runtime Models
# =============================================================================


class TestAuthorizationResult:
    """Tests for AuthorizationResult."""

    def test_ok(self) -> None:
        """ok() builds an allowed result without reason."""
        result = AuthorizationResult.ok("article_view")
        assert result.allowed is True
        assert result.reason is None
        assert result.decision == Decision.ALLOWED

    def test_error(self) -> None:
        """error() carries the reason and the decision."""
        result = AuthorizationResult.error("forbidden", "x_y", Decision.RULE_NOT_FOUND)
        assert result.allowed is False
        assert result.reason == "forbidden"
        assert result.decision == Decision.RULE_NOT_FOUND

    def test_config_defaults(self) -> None:
        """PolicyConfig defaults to the unauthorized reason and message."""
        config = PolicyConfig()
        assert config.name == "policy"
        assert config.error_reason == "unauthorized"
        assert config.error_message == "unauthorized"
        assert config.check_module is None


# =============================================================================
# Policy Document
# =============================================================================


class TestPolicyDocument:
    """Tests for YAML policy documents."""

    def test_load_from_string(self) -> None:
        """A document loads and converts to rules in order."""
        document = load_policy_document_from_string(
            """
name: blog
error_reason: forbidden
objects:
  article:
    schema: myapp.Article
    actions:
      update:
        description: Edit an article
        allow:
          - own_resource
          - {role: editor}
        metadata:
          - [gql_exclude, true]
      view:
        allow: true
  user:
    actions:
      delete:
        allow: [{role: admin}]
        deny: same_user
"""
        )
        assert document.name == "blog"
        assert document.error_reason == "forbidden"
        assert document.objects["article"].schema_path == "myapp.Article"

        rules = document.to_rules()
        assert [rule.name for rule in rules] == ["article_update", "article_view", "user_delete"]
        assert rules[0].description == "Edit an article"
        assert rules[0].allow == (
            (NamedCheck(name="own_resource"),),
            (ArgCheck(name="role", arg="editor"),),
        )
        assert rules[0].metadata == (("gql_exclude", True),)
        assert rules[1].allow == ((LiteralCheck(value=True),),)
        assert rules[2].deny == ((NamedCheck(name="same_user"),),)

    def test_empty_document(self) -> None:
        """An empty document has defaults and no rules."""
        document = load_policy_document_from_string("")
        assert document.name == "policy"
        assert document.to_rules() == []

    def test_unknown_key_rejected(self) -> None:
        """Unknown top-level keys are rejected."""
        with pytest.raises(ValidationError):
            load_policy_document_from_string("name: blog\nroles: [a]\n")
