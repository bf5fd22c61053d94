"""
Pytest configuration and fixtures for Warden tests.

This module provides shared fixtures used across unit and integration
tests. Subjects and objects are plain dicts unless a test needs a class.
"""

import sys
from typing import Any

import pytest

from warden.policy import CheckRegistry, Policy, PolicyBuilder


class CallLog:
    """Records the names of check and hook functions as they are called."""

    def __init__(self) -> None:
        self.calls: list[str] = []

    def record(self, name: str) -> None:
        self.calls.append(name)

    def count(self, name: str) -> int:
        return self.calls.count(name)


@pytest.fixture
def call_log() -> CallLog:
    """Create an empty call log."""
    return CallLog()


@pytest.fixture
def checks(call_log: CallLog) -> CheckRegistry:
    """Create a registry with the check and hook functions used in tests."""
    registry = CheckRegistry("test_checks")

    @registry.register
    def own_resource(user: dict, obj: dict) -> bool:
        call_log.record("own_resource")
        return obj is not None and user.get("id") == obj.get("user_id")

    @registry.register
    def role(user: dict, _obj: Any, role: str) -> bool:
        call_log.record("role")
        return user.get("role") == role

    @registry.register
    def same_user(user: dict, obj: dict) -> bool:
        call_log.record("same_user")
        return obj is not None and user.get("id") == obj.get("id")

    @registry.register
    def same_group(user: dict, obj: dict) -> bool:
        call_log.record("same_group")
        return user.get("group_id") is not None and user.get("group_id") == obj.get("group_id")

    @registry.register
    def min_likeability(user: dict, _obj: Any, value: int) -> bool:
        call_log.record("min_likeability")
        return user.get("likeability", 0) >= value

    @registry.register
    def always_fails(_user: Any, _obj: Any) -> bool:
        call_log.record("always_fails")
        return False

    @registry.register
    def preload_group(user: dict, obj: Any) -> tuple[dict, Any]:
        call_log.record("preload_group")
        return {**user, "group_id": user.get("group_id", 10)}, obj

    @registry.register
    def promote(user: dict, obj: Any, args: dict) -> tuple[dict, Any]:
        call_log.record("promote")
        return {**user, "role": args.get("role", "admin")}, obj

    return registry


@pytest.fixture
def blog_builder(checks: CheckRegistry) -> PolicyBuilder:
    """Create a builder with the rules of a small blog."""
    builder = PolicyBuilder("blog", check_module=checks)

    with builder.object("article") as article:
        article.action("create", allow=[("role", "admin"), ("role", "writer")])
        article.action("update", allow=[["own_resource"], [("role", "editor")]])
        article.action(["view", "list"], allow=True, metadata=[("gql_exclude", True)])
        article.action(
            "publish",
            pre_hooks="preload_group",
            allow=[["own_resource", "same_group"]],
            metadata=[("gql_exclude", False), ("audit", "publish")],
        )

    with builder.object("user") as user:
        user.action("delete", allow=[("role", "admin")], deny="same_user")
        user.action("view", allow=True, deny=[("role", "banned")])

    return builder


@pytest.fixture
def blog_policy(blog_builder: PolicyBuilder) -> Policy:
    """Build the blog policy."""
    return blog_builder.build()


# =============================================================================
# Policy Documents
# =============================================================================

BLOG_CHECKS_PY = '''
def _get(obj, key):
    return obj.get(key) if isinstance(obj, dict) else getattr(obj, key, None)


def own_resource(user, article):
    return user.get("id") == _get(article, "user_id")


def role(user, _obj, role):
    return user.get("role") == role


def same_user(user, other):
    return user.get("id") == _get(other, "id")


def same_tenant(user, obj):
    return user.get("tenant") is not None and user.get("tenant") == _get(obj, "tenant")


def load_tenant(user, obj, args=None):
    return {**user, "tenant": (args or {}).get("tenant")}, obj


class Article:
    def __init__(self, user_id=None, tenant=None):
        self.user_id = user_id
        self.tenant = tenant
'''

BLOG_POLICY_YAML = """
name: blog
check_module: blog_checks
error_reason: forbidden
objects:
  article:
    schema: blog_checks.Article
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
      share:
        pre_hooks:
          - function: load_tenant
        allow: same_tenant
  user:
    actions:
      delete:
        allow: {role: admin}
        deny: same_user
"""


@pytest.fixture
def policy_dir(tmp_path, monkeypatch: pytest.MonkeyPatch):
    """Write a check module and a policy document to a temp directory."""
    (tmp_path / "blog_checks.py").write_text(BLOG_CHECKS_PY)
    (tmp_path / "blog.yaml").write_text(BLOG_POLICY_YAML)
    monkeypatch.delitem(sys.modules, "blog_checks", raising=False)
    monkeypatch.syspath_prepend(str(tmp_path))
    return tmp_path
