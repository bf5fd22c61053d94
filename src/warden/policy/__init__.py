"""
Policy module for Warden.

This module implements rule evaluation: named rules with allow/deny groups
of checks and pre-hooks that hydrate the subject and object.

Key concepts:
    - Rule: allow/deny groups of checks for one object/action pair
    - RuleRegistry: Rules compiled and frozen once, read-only afterwards
    - Policy: Decides requests and answers introspection queries
    - PolicyBuilder: Collects rules during the definition phase

Decision semantics:
    - Deny wins: a passing deny group denies, whatever allow says
    - No allow groups means nothing is ever allowed
    - Evaluation is lazy and strictly in declaration order
"""

from warden.policy.builder import ObjectBuilder, PolicyBuilder
from warden.policy.checks import CheckRegistry
from warden.policy.engine import Policy
from warden.policy.filters import filter_allowed, filter_rules
from warden.policy.registry import CompiledRule, RuleRegistry

__all__ = [
    "CheckRegistry",
    "CompiledRule",
    "ObjectBuilder",
    "Policy",
    "PolicyBuilder",
    "RuleRegistry",
    "filter_allowed",
    "filter_rules",
]
