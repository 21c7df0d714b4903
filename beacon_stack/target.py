"""
Deployment Target

The account and region a stack is assembled for. One target per stack.
"""

import re
from dataclasses import dataclass
from typing import Any, Dict

from .errors import FailureCode, InvalidBindingParameter, Violation


ACCOUNT_PATTERN = re.compile(r'^[0-9]{12}$')
REGION_PATTERN = re.compile(r'^[a-z]{2}(-gov|-iso[a-z]?)?-[a-z]+-[0-9]$')


@dataclass(frozen=True)
class DeploymentTarget:
    """An AWS account and region pair."""
    account: str
    region: str

    def __post_init__(self):
        violations = []
        if not isinstance(self.account, str) or not ACCOUNT_PATTERN.match(self.account):
            violations.append(Violation(
                "target.account", FailureCode.INVALID_PARAMETER,
                "12 digit account id", str(self.account),
            ))
        if not isinstance(self.region, str) or not REGION_PATTERN.match(self.region):
            violations.append(Violation(
                "target.region", FailureCode.INVALID_PARAMETER,
                "region name such as ap-southeast-2", str(self.region),
            ))
        if violations:
            raise InvalidBindingParameter(
                f"Invalid deployment target {self.account}/{self.region}",
                violations,
            )

    @property
    def key(self) -> str:
        return f"{self.account}/{self.region}"

    def to_dict(self) -> Dict[str, Any]:
        return {"account": self.account, "region": self.region}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DeploymentTarget':
        missing = [f for f in ("account", "region") if f not in data]
        if missing:
            raise ValueError(f"Missing required fields: {missing}")
        return cls(account=str(data["account"]), region=data["region"])
