"""
Unit tests for PolicyBuilder.

Tests cover:
- Defining actions inside object blocks
- Several actions sharing checks
- Schema registration
- Freezing after build()
"""

import pytest

from warden.errors import DuplicateRuleError, PolicyFrozenError, UnknownHookError
from warden.policy import CheckRegistry, Policy, PolicyBuilder
from warden.schema import ArgCheck, NamedHook, Rule


class Article:
    pass


class TestPolicyBuilder:
    """Tests for collecting rules."""

    def test_action_creates_rule(self, checks: CheckRegistry) -> None:
        """action() creates a named rule for the object."""
        builder = PolicyBuilder("blog", check_module=checks)
        with builder.object("article") as article:
            rules = article.action(
                "update",
                allow=("role", "editor"),
                pre_hooks="preload_group",
                metadata={"gql_exclude": True},
                description="Edit an article",
            )

        assert len(rules) == 1
        rule = rules[0]
        assert rule.name == "article_update"
        assert rule.allow == ((ArgCheck(name="role", arg="editor"),),)
        assert rule.pre_hooks == (NamedHook(name="preload_group"),)
        assert rule.metadata == (("gql_exclude", True),)
        assert rule.description == "Edit an article"
        assert builder.rules == [rule]

    def test_several_actions(self, checks: CheckRegistry) -> None:
        """A list of action names creates one rule per name."""
        builder = PolicyBuilder(check_module=checks)
        with builder.object("article") as article:
            rules = article.action(["view", "list"], allow=True)
        assert [rule.name for rule in rules] == ["article_view", "article_list"]
        assert rules[0].allow == rules[1].allow

    def test_add_rule(self, checks: CheckRegistry) -> None:
        """Finished rules can be added directly."""
        builder = PolicyBuilder(check_module=checks)
        builder.add_rule(Rule(object="user", action="view", allow=True))
        assert builder.build().rule_names == ["user_view"]

    def test_build_returns_policy(self, blog_builder: PolicyBuilder) -> None:
        """build() returns a Policy with every rule in definition order."""
        policy = blog_builder.build()
        assert isinstance(policy, Policy)
        assert policy.name == "blog"
        assert policy.rule_names == [
            "article_create",
            "article_update",
            "article_view",
            "article_list",
            "article_publish",
            "user_delete",
            "user_view",
        ]

    def test_config(self, checks: CheckRegistry) -> None:
        """Builder arguments end up in the policy config."""
        builder = PolicyBuilder(
            "blog",
            check_module=checks,
            error_reason="forbidden",
            error_message="You shall not pass",
        )
        policy = builder.build()
        assert policy.config.error_reason == "forbidden"
        assert policy.config.error_message == "You shall not pass"
        assert policy.config.check_module is checks


class TestSchemas:
    """Tests for object schema registration."""

    def test_schema_registered(self, checks: CheckRegistry) -> None:
        """The class given to object() is registered for the object name."""
        builder = PolicyBuilder(check_module=checks)
        with builder.object("article", Article) as article:
            article.action("view", allow=True)
        policy = builder.build()
        assert policy.get_schema("article") is Article
        assert policy.get_object_name(Article) == "article"
        assert policy.get_object_name(Article()) == "article"
        assert policy.get_schema("user") is None
        assert policy.get_object_name(dict) is None

    def test_first_schema_wins(self, checks: CheckRegistry) -> None:
        """Reopening an object with another class keeps the first one."""
        builder = PolicyBuilder(check_module=checks)
        with builder.object("article", Article):
            pass
        with builder.object("article", dict):
            pass
        assert builder.build().get_schema("article") is Article


class TestFreezing:
    """Tests for the definition phase ending at build()."""

    def test_no_changes_after_build(self, blog_builder: PolicyBuilder) -> None:
        """The builder refuses changes once built."""
        blog_builder.build()
        with pytest.raises(PolicyFrozenError):
            blog_builder.add_rule(Rule(object="comment", action="view"))
        with pytest.raises(PolicyFrozenError):
            with blog_builder.object("comment"):
                pass
        with pytest.raises(PolicyFrozenError):
            blog_builder.build()

    def test_failed_build_stays_open(self, checks: CheckRegistry) -> None:
        """A build that fails validation can be fixed and retried."""
        builder = PolicyBuilder(check_module=checks)
        with builder.object("article") as article:
            article.action("view", allow=True)
            article.action("view", allow=False)
        with pytest.raises(DuplicateRuleError):
            builder.build()
        builder.add_rule(Rule(object="user", action="view"))

    def test_unknown_hook_fails_build(self, checks: CheckRegistry) -> None:
        """Unresolvable hooks are reported by build()."""
        builder = PolicyBuilder(check_module=checks)
        with builder.object("article") as article:
            article.action("view", pre_hooks="preload_nothing", allow=True)
        with pytest.raises(UnknownHookError):
            builder.build()
