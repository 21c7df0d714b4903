"""
Permission Policy Builder

Produces read-only S3 permission statements for the Beacon execution role.
Every statement is checked against a PermissionScope: action verbs must be
list/get operations and resources must sit under the approved bucket prefix.
"""

import re
from collections import abc
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Tuple

from .errors import FailureCode, InvalidPermissionScope, Violation
from .hashing import statement_hash


class Effect(str, Enum):
    """Statement effect. Only Allow statements are produced."""
    ALLOW = "Allow"


S3_ARN_PREFIX = "arn:aws:s3:::"
DEFAULT_APPROVED_BUCKET_PREFIX = "umccr-10"

# Read-only verb families for S3, wildcards included ("s3:Get*")
READ_ONLY_VERB_PREFIXES: Tuple[str, ...] = ("List", "Get")
ACTION_PATTERN = re.compile(r'^(?P<service>[a-z0-9-]+):(?P<verb>[A-Za-z][A-Za-z0-9]*\*?)$')


@dataclass(frozen=True)
class PermissionScope:
    """
    The allow-list a statement has to fit in.

    - service: IAM service prefix the actions belong to
    - verb_prefixes: allowed verb families
    - approved_bucket_prefix: bucket names must start with this
    """
    service: str = "s3"
    verb_prefixes: Tuple[str, ...] = READ_ONLY_VERB_PREFIXES
    approved_bucket_prefix: str = DEFAULT_APPROVED_BUCKET_PREFIX

    def __post_init__(self):
        if not self.approved_bucket_prefix:
            raise ValueError("approved_bucket_prefix must not be empty")
        if "*" in self.approved_bucket_prefix:
            raise ValueError("approved_bucket_prefix must not contain wildcards")

    @property
    def resource_prefix(self) -> str:
        return S3_ARN_PREFIX + self.approved_bucket_prefix

    def allows_action(self, action: str) -> bool:
        match = ACTION_PATTERN.match(action)
        if not match or match.group("service") != self.service:
            return False
        return match.group("verb").startswith(self.verb_prefixes)

    def allows_resource(self, resource: str) -> bool:
        # The literal prefix has to be spelled out; "umccr-*" does not qualify
        return resource.startswith(self.resource_prefix)

    def describe_actions(self) -> str:
        return " or ".join(f"{self.service}:{p}*" for p in self.verb_prefixes)


DEFAULT_SCOPE = PermissionScope()


@dataclass(frozen=True)
class PermissionStatement:
    """
    An Allow statement over a set of actions and resource patterns.

    Actions and resources are held as sorted, de-duplicated tuples so that
    two statements built from the same sets compare and serialize equal.
    """
    actions: Tuple[str, ...]
    resources: Tuple[str, ...]
    effect: Effect = Effect.ALLOW

    def to_dict(self) -> Dict[str, Any]:
        return {
            "Effect": self.effect.value,
            "Action": list(self.actions),
            "Resource": list(self.resources),
        }

    def get_hash(self) -> str:
        return statement_hash(self.to_dict())

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PermissionStatement':
        """Rebuild a statement from its serialized form without scope checks."""
        return cls(
            actions=_normalize(as_list(data.get("Action", []))),
            resources=_normalize(as_list(data.get("Resource", []))),
            effect=Effect(data.get("Effect", Effect.ALLOW.value)),
        )


def as_list(value: Any) -> List[Any]:
    """IAM allows a single string where a list is expected."""
    if value is None:
        return []
    if isinstance(value, str) or not isinstance(value, abc.Iterable):
        return [value]
    return list(value)


def _normalize(values: Iterable[str]) -> Tuple[str, ...]:
    return tuple(sorted(set(values)))


def check_statement(
    statement: PermissionStatement,
    scope: PermissionScope = DEFAULT_SCOPE,
    subject: str = "statement",
) -> List[Violation]:
    """
    Check a statement against a scope.

    Returns every violation found; an empty list means the statement fits.
    """
    violations: List[Violation] = []

    if not statement.actions:
        violations.append(Violation(
            subject, FailureCode.INVALID_PERMISSION_SCOPE,
            "at least one action", "none",
        ))
    if not statement.resources:
        violations.append(Violation(
            subject, FailureCode.INVALID_PERMISSION_SCOPE,
            "at least one resource pattern", "none",
        ))

    for action in statement.actions:
        if not scope.allows_action(action):
            violations.append(Violation(
                f"{subject}.action", FailureCode.INVALID_PERMISSION_SCOPE,
                scope.describe_actions(), action,
            ))

    for resource in statement.resources:
        if not scope.allows_resource(resource):
            violations.append(Violation(
                f"{subject}.resource", FailureCode.INVALID_PERMISSION_SCOPE,
                f"{scope.resource_prefix}*", resource,
            ))

    return violations


def build_permission_statement(
    actions: Iterable[str],
    resources: Iterable[str],
    scope: PermissionScope = DEFAULT_SCOPE,
    subject: str = "statement",
) -> PermissionStatement:
    """
    Build a read-only permission statement.

    Args:
        actions: IAM action verbs, e.g. {"s3:List*", "s3:Get*"}
        resources: resource ARN patterns, e.g. {"arn:aws:s3:::umccr-10*"}
        scope: allow-list the statement has to fit in
        subject: label used in violation records

    Raises:
        InvalidPermissionScope: listing every action or resource outside scope
    """
    actions, resources = as_list(actions), as_list(resources)

    malformed = [
        Violation(f"{subject}.{kind}", FailureCode.INVALID_PERMISSION_SCOPE, "string", repr(value))
        for kind, values in (("action", actions), ("resource", resources))
        for value in values
        if not isinstance(value, str)
    ]
    if malformed:
        raise InvalidPermissionScope(
            f"Permission statement '{subject}' has non-string entries",
            malformed,
        )

    statement = PermissionStatement(
        actions=_normalize(actions),
        resources=_normalize(resources),
    )

    violations = check_statement(statement, scope, subject)
    if violations:
        raise InvalidPermissionScope(
            f"Permission statement '{subject}' is outside the approved scope",
            violations,
        )

    return statement
