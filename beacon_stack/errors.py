"""
Beacon Stack Error Taxonomy

Every failure is a local validation failure detected at assembly time. None of
them is recoverable by retry: the descriptor input has to be corrected and
assembled again.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Type


class FailureCode(str, Enum):
    """Failure codes attached to every violation."""
    INVALID_PERMISSION_SCOPE = "INVALID_PERMISSION_SCOPE"
    DUPLICATE_BINDING_NAME = "DUPLICATE_BINDING_NAME"
    TIMEOUT_OUT_OF_RANGE = "TIMEOUT_OUT_OF_RANGE"
    INVALID_PARAMETER = "INVALID_PARAMETER"
    INCONSISTENT_ASSEMBLY = "INCONSISTENT_ASSEMBLY"


@dataclass(frozen=True)
class Violation:
    """A single violated constraint."""
    subject: str
    code: FailureCode
    required: Optional[str] = None
    observed: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        d = {"subject": self.subject, "code": self.code.value}
        if self.required:
            d["required"] = self.required
        if self.observed:
            d["observed"] = self.observed
        return d

    def __str__(self) -> str:
        text = f"{self.subject}: {self.code.value}"
        if self.required:
            text += f" (required {self.required}"
            if self.observed:
                text += f", observed {self.observed}"
            text += ")"
        return text


class BeaconStackError(ValueError):
    """Base class for descriptor validation failures."""

    code: FailureCode = FailureCode.INVALID_PARAMETER

    def __init__(self, message: str, violations: Optional[Iterable[Violation]] = None):
        super().__init__(message)
        self.violations: List[Violation] = list(violations or [])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": type(self).__name__,
            "code": self.code.value,
            "message": str(self),
            "violations": [v.to_dict() for v in self.violations],
        }


class InvalidPermissionScope(BeaconStackError):
    """An action verb or resource pattern falls outside the approved scope."""
    code = FailureCode.INVALID_PERMISSION_SCOPE


class DuplicateBindingName(BeaconStackError):
    """A compute binding name is already taken within the deployment target."""
    code = FailureCode.DUPLICATE_BINDING_NAME


class TimeoutOutOfRange(BeaconStackError):
    """A binding timeout is not positive or exceeds the platform maximum."""
    code = FailureCode.TIMEOUT_OUT_OF_RANGE


class InvalidBindingParameter(BeaconStackError):
    """A binding, identity or target field is malformed."""
    code = FailureCode.INVALID_PARAMETER


class InconsistentAssembly(BeaconStackError):
    """
    Aggregate of every failure found while assembling a stack.

    Assembly never stops at the first failure; `errors` holds each underlying
    exception in the order it was found and `violations` the flattened records.
    """
    code = FailureCode.INCONSISTENT_ASSEMBLY

    def __init__(self, stack_id: str, errors: Iterable[BeaconStackError]):
        self.stack_id = stack_id
        self.errors: List[BeaconStackError] = list(errors)
        violations = [v for e in self.errors for v in e.violations]
        super().__init__(
            f"Stack '{stack_id}' failed assembly with {len(self.errors)} error(s)",
            violations,
        )

    def has(self, error_type: Type[BeaconStackError]) -> bool:
        """True if any underlying error is an instance of error_type."""
        return any(isinstance(e, error_type) for e in self.errors)

    def codes(self) -> List[FailureCode]:
        return [e.code for e in self.errors]

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d["stack_id"] = self.stack_id
        d["errors"] = [e.to_dict() for e in self.errors]
        return d


class InvalidBeaconQuery(ValueError):
    """A Beacon request payload does not match the handler's contract."""


class BeaconInvocationError(RuntimeError):
    """The deployed Beacon function reported an error."""

    def __init__(self, function_name: str, function_error: str, payload: Any = None):
        super().__init__(f"{function_name} failed with {function_error}")
        self.function_name = function_name
        self.function_error = function_error
        self.payload = payload
