"""
Compute Binding Factory

A compute binding is one containerized Lambda function: a unique name, an
image reference, a timeout, a CPU architecture and exactly one execution
identity. Names are tracked per deployment target by a BindingRegistry.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from .errors import (
    DuplicateBindingName,
    FailureCode,
    InvalidBindingParameter,
    TimeoutOutOfRange,
    Violation,
)
from .identity import ExecutionIdentity, LOGICAL_ID_PATTERN
from .target import DeploymentTarget


# Lambda hard limit on execution time
PLATFORM_MAX_TIMEOUT_SECONDS = 900

FUNCTION_NAME_PATTERN = re.compile(r'^[A-Za-z0-9_-]{1,64}$')
REGISTRY_IMAGE_PATTERN = re.compile(
    r'^(?P<account>[0-9]{12})\.dkr\.ecr\.(?P<region>[a-z0-9-]+)\.amazonaws\.com/'
    r'(?P<repository>[a-z0-9][a-z0-9._/-]*)'
    r'(?::(?P<tag>[A-Za-z0-9_][A-Za-z0-9_.-]{0,127})|@(?P<digest>sha256:[a-f0-9]{64}))?$'
)


class Architecture(str, Enum):
    """Supported Lambda CPU architectures."""
    ARM64 = "arm64"
    X86_64 = "x86_64"

    @classmethod
    def parse(cls, value: Any) -> 'Architecture':
        if isinstance(value, cls):
            return value
        text = str(value).strip().lower().replace("_", "").replace("-", "")
        for member in cls:
            if member.value.replace("_", "") == text:
                return member
        raise InvalidBindingParameter(
            f"Unsupported architecture '{value}'",
            [Violation("binding.architecture", FailureCode.INVALID_PARAMETER,
                       "arm64 or x86_64", str(value))],
        )


class ImageSource(str, Enum):
    """Where an image comes from."""
    ASSET = "asset"        # local build context, built and published externally
    REGISTRY = "registry"  # ECR repository coordinate


@dataclass(frozen=True)
class ImageArtifactLocator:
    """Reference to the container image a binding runs."""
    source: ImageSource
    location: str

    def __post_init__(self):
        if not isinstance(self.location, str) or not self.location.strip():
            raise InvalidBindingParameter(
                "Image location must be a non-empty string",
                [Violation("binding.image", FailureCode.INVALID_PARAMETER,
                           "image location", repr(self.location))],
            )
        if self.source == ImageSource.REGISTRY and not REGISTRY_IMAGE_PATTERN.match(self.location):
            raise InvalidBindingParameter(
                f"Invalid registry image '{self.location}'",
                [Violation("binding.image", FailureCode.INVALID_PARAMETER,
                           "<account>.dkr.ecr.<region>.amazonaws.com/<repo>[:tag|@digest]",
                           self.location)],
            )

    @classmethod
    def asset(cls, path: str) -> 'ImageArtifactLocator':
        return cls(ImageSource.ASSET, path)

    @classmethod
    def registry(cls, uri: str) -> 'ImageArtifactLocator':
        return cls(ImageSource.REGISTRY, uri)

    @classmethod
    def parse(cls, value: Any) -> 'ImageArtifactLocator':
        """Accept a locator, a {"source", "location"} dict, or a bare string."""
        if isinstance(value, cls):
            return value
        if isinstance(value, dict):
            source = value.get("source", ImageSource.ASSET.value)
            if source not in [s.value for s in ImageSource]:
                raise InvalidBindingParameter(
                    f"Unknown image source '{source}'",
                    [Violation("binding.image.source", FailureCode.INVALID_PARAMETER,
                               "asset or registry", str(source))],
                )
            return cls(ImageSource(source), value.get("location", ""))
        text = str(value)
        if REGISTRY_IMAGE_PATTERN.match(text):
            return cls.registry(text)
        return cls.asset(text)

    def to_dict(self) -> Dict[str, Any]:
        return {"source": self.source.value, "location": self.location}


@dataclass(frozen=True)
class ComputeBinding:
    """
    A named, architecture-pinned, time-bounded Lambda function.

    Created at assembly time and never mutated; a changed binding means a new
    descriptor and a redeploy.
    """
    name: str
    logical_id: str
    image: ImageArtifactLocator
    timeout_seconds: int
    architecture: Architecture
    identity: ExecutionIdentity

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "logical_id": self.logical_id,
            "image": self.image.to_dict(),
            "timeout_seconds": self.timeout_seconds,
            "architecture": self.architecture.value,
            "identity": self.identity.to_dict(),
        }


class BindingRegistry:
    """
    Names claimed by compute bindings, per deployment target.

    A function name is unique within an account and region; the same name
    may be reused in a different target. A name stays claimed even when the
    binding that claimed it fails its later checks.
    """

    def __init__(self):
        self._names: Dict[str, Dict[str, Optional[ComputeBinding]]] = {}  # target key -> name -> binding

    def claim(self, target: DeploymentTarget, name: str) -> None:
        names = self._names.setdefault(target.key, {})
        if name in names:
            raise DuplicateBindingName(
                f"Function name '{name}' already bound in {target.key}",
                [Violation(f"binding[{name}].name", FailureCode.DUPLICATE_BINDING_NAME,
                           "name unique within target", name)],
            )
        names[name] = None

    def bind(self, target: DeploymentTarget, binding: ComputeBinding) -> None:
        """Attach a finished binding to the name it claimed."""
        self._names.setdefault(target.key, {})[binding.name] = binding

    def get(self, target: DeploymentTarget, name: str) -> Optional[ComputeBinding]:
        return self._names.get(target.key, {}).get(name)

    def list_names(self, target: DeploymentTarget) -> List[str]:
        return list(self._names.get(target.key, {}).keys())


def claim_name(registry: BindingRegistry, target: DeploymentTarget, name: Any) -> str:
    """
    Validate a function name and claim it in the target.

    Raises:
        InvalidBindingParameter: not a valid Lambda function name
        DuplicateBindingName: name already claimed in the target
    """
    if not isinstance(name, str) or not FUNCTION_NAME_PATTERN.match(name):
        raise InvalidBindingParameter(
            f"Invalid function name '{name}'",
            [Violation("binding.name", FailureCode.INVALID_PARAMETER,
                       "1-64 letters, digits, '-' or '_'", str(name))],
        )
    registry.claim(target, name)
    return name


def check_timeout(
    timeout_seconds: Any,
    subject: str = "binding",
    max_timeout_seconds: int = PLATFORM_MAX_TIMEOUT_SECONDS,
) -> int:
    """
    Validate a timeout in whole seconds.

    max_timeout_seconds may tighten the platform limit but never raise it.

    Raises:
        TimeoutOutOfRange: if not an integer in 1..max_timeout_seconds
    """
    limit = min(max_timeout_seconds, PLATFORM_MAX_TIMEOUT_SECONDS)
    required = f"1..{limit} seconds"
    if isinstance(timeout_seconds, bool) or not isinstance(timeout_seconds, int):
        raise TimeoutOutOfRange(
            f"Timeout for '{subject}' must be whole seconds",
            [Violation(f"{subject}.timeout", FailureCode.TIMEOUT_OUT_OF_RANGE,
                       required, repr(timeout_seconds))],
        )
    if timeout_seconds <= 0 or timeout_seconds > limit:
        raise TimeoutOutOfRange(
            f"Timeout {timeout_seconds}s for '{subject}' is outside {required}",
            [Violation(f"{subject}.timeout", FailureCode.TIMEOUT_OUT_OF_RANGE,
                       required, f"{timeout_seconds} seconds")],
        )
    return timeout_seconds


def default_logical_id(name: str) -> str:
    """Derive a resource id from a function name: "elsa-data-beacon" -> "ElsaDataBeacon"."""
    parts = re.split(r'[^A-Za-z0-9]+', name)
    logical_id = "".join(p[:1].upper() + p[1:] for p in parts if p)
    if not logical_id or not logical_id[0].isalpha():
        logical_id = "Fn" + logical_id
    return logical_id


def create_compute_binding(
    registry: BindingRegistry,
    target: DeploymentTarget,
    name: str,
    image: Any,
    timeout_seconds: int,
    architecture: Any,
    identity: ExecutionIdentity,
    logical_id: Optional[str] = None,
    max_timeout_seconds: int = PLATFORM_MAX_TIMEOUT_SECONDS,
) -> ComputeBinding:
    """
    Create a compute binding.

    The name is claimed in the target before any other check, so a failed
    binding still reserves it.

    Args:
        registry: names already bound, per target
        target: deployment target the binding belongs to
        name: Lambda function name, unique within the target
        image: ImageArtifactLocator or anything ImageArtifactLocator.parse accepts
        timeout_seconds: execution time limit, 1..900
        architecture: Architecture or "arm64" / "x86_64"
        identity: the binding's own execution identity

    Raises:
        InvalidBindingParameter: malformed name, image, architecture or identity
        TimeoutOutOfRange: timeout not in range
        DuplicateBindingName: name already bound in the target
    """
    name = claim_name(registry, target, name)
    subject = f"binding[{name}]"

    if not isinstance(identity, ExecutionIdentity):
        raise InvalidBindingParameter(
            f"Binding '{name}' requires exactly one execution identity",
            [Violation(f"{subject}.identity", FailureCode.INVALID_PARAMETER,
                       "ExecutionIdentity", type(identity).__name__)],
        )

    logical_id = logical_id or default_logical_id(name)
    if not isinstance(logical_id, str) or not LOGICAL_ID_PATTERN.match(logical_id):
        raise InvalidBindingParameter(
            f"Invalid logical id '{logical_id}' for binding '{name}'",
            [Violation(f"{subject}.logical_id", FailureCode.INVALID_PARAMETER,
                       "alphanumeric logical id", str(logical_id))],
        )

    binding = ComputeBinding(
        name=name,
        logical_id=logical_id,
        image=ImageArtifactLocator.parse(image),
        timeout_seconds=check_timeout(timeout_seconds, subject, max_timeout_seconds),
        architecture=Architecture.parse(architecture),
        identity=identity,
    )

    registry.bind(target, binding)
    return binding
