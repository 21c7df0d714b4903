"""
Execution Identity Factory

An execution identity is the IAM role the Lambda runtime assumes. It always
trusts the Lambda service principal and always carries the basic execution
policy so the function can write its logs.
"""

import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .errors import FailureCode, InvalidBindingParameter, Violation
from .policy import DEFAULT_SCOPE, PermissionScope, PermissionStatement, check_statement


LAMBDA_SERVICE_PRINCIPAL = "lambda.amazonaws.com"
BASIC_EXECUTION_POLICY = "service-role/AWSLambdaBasicExecutionRole"
AWS_MANAGED_POLICY_ARN_PREFIX = "arn:aws:iam::aws:policy/"

# Managed policies that grant CloudWatch Logs write access
LOGGING_BASELINE_POLICIES = (
    BASIC_EXECUTION_POLICY,
    "service-role/AWSLambdaVPCAccessExecutionRole",
)

LOGICAL_ID_PATTERN = re.compile(r'^[A-Za-z][A-Za-z0-9]{0,254}$')


@dataclass(frozen=True)
class ManagedPolicyRef:
    """Reference to an AWS managed policy by name, e.g. "service-role/AWSLambdaBasicExecutionRole"."""
    name: str

    @property
    def arn(self) -> str:
        return AWS_MANAGED_POLICY_ARN_PREFIX + self.name

    def grants_logging(self) -> bool:
        return self.name in LOGGING_BASELINE_POLICIES


@dataclass(frozen=True)
class ExecutionIdentity:
    """
    IAM role assumed by one compute binding.

    - logical_id: resource id within the stack
    - trusted_principal: always the Lambda service principal
    - managed_policies: ordered, baseline logging policy first
    - inline_statements: read permissions for the function's data
    """
    logical_id: str
    trusted_principal: str
    managed_policies: Tuple[ManagedPolicyRef, ...]
    inline_statements: Tuple[PermissionStatement, ...]
    description: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "logical_id": self.logical_id,
            "trusted_principal": self.trusted_principal,
            "managed_policies": [p.arn for p in self.managed_policies],
            "inline_statements": [s.to_dict() for s in self.inline_statements],
            "description": self.description,
        }

    def validate(self, scope: PermissionScope = DEFAULT_SCOPE) -> List[Violation]:
        """Return every violated identity invariant, statements included."""
        subject = f"identity[{self.logical_id}]"
        violations: List[Violation] = []

        if not isinstance(self.logical_id, str) or not LOGICAL_ID_PATTERN.match(self.logical_id):
            violations.append(Violation(
                subject, FailureCode.INVALID_PARAMETER,
                "alphanumeric logical id", str(self.logical_id),
            ))

        if self.trusted_principal != LAMBDA_SERVICE_PRINCIPAL:
            violations.append(Violation(
                f"{subject}.trusted_principal", FailureCode.INVALID_PARAMETER,
                LAMBDA_SERVICE_PRINCIPAL, self.trusted_principal,
            ))

        if not any(p.grants_logging() for p in self.managed_policies):
            violations.append(Violation(
                f"{subject}.managed_policies", FailureCode.INVALID_PARAMETER,
                BASIC_EXECUTION_POLICY,
                ", ".join(p.name for p in self.managed_policies) or "none",
            ))

        for i, statement in enumerate(self.inline_statements):
            violations.extend(check_statement(statement, scope, f"{subject}.statement[{i}]"))

        return violations


def create_execution_identity(
    logical_id: str,
    statements: Iterable[PermissionStatement] = (),
    managed_policies: Optional[Iterable[str]] = None,
    description: str = "",
) -> ExecutionIdentity:
    """
    Create an execution identity trusting the Lambda service.

    The basic execution policy is always attached first; additional managed
    policy names are appended in the order given, duplicates dropped.

    Raises:
        InvalidBindingParameter: if logical_id is not a valid resource id, or a
            managed policy name is not a non-empty string
    """
    if not isinstance(logical_id, str) or not LOGICAL_ID_PATTERN.match(logical_id):
        raise InvalidBindingParameter(
            f"Invalid identity logical id '{logical_id}'",
            [Violation("identity", FailureCode.INVALID_PARAMETER,
                       "alphanumeric logical id", str(logical_id))],
        )

    managed_policies = list(managed_policies or [])
    malformed = [n for n in managed_policies if not isinstance(n, str) or not n]
    if malformed:
        raise InvalidBindingParameter(
            f"Invalid managed policy names for identity '{logical_id}'",
            [Violation(f"identity[{logical_id}].managed_policies", FailureCode.INVALID_PARAMETER,
                       "managed policy name", repr(n)) for n in malformed],
        )

    names: List[str] = [BASIC_EXECUTION_POLICY]
    for name in managed_policies:
        if name not in names:
            names.append(name)

    return ExecutionIdentity(
        logical_id=logical_id,
        trusted_principal=LAMBDA_SERVICE_PRINCIPAL,
        managed_policies=tuple(ManagedPolicyRef(n) for n in names),
        inline_statements=tuple(statements),
        description=description,
    )
