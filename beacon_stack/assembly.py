"""
Stack Assembly

Composes permission statements, execution identities and compute bindings
into one deployment descriptor for one deployment target.

Assembly either returns a fully consistent descriptor or raises
InconsistentAssembly listing every failure found. It never stops at the first
failure and never returns a partial descriptor.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .binding import (
    PLATFORM_MAX_TIMEOUT_SECONDS,
    Architecture,
    BindingRegistry,
    ComputeBinding,
    claim_name,
    create_compute_binding,
    default_logical_id,
)
from .errors import (
    BeaconStackError,
    FailureCode,
    InconsistentAssembly,
    InvalidBindingParameter,
    Violation,
)
from .hashing import descriptor_hash
from .identity import BASIC_EXECUTION_POLICY, create_execution_identity
from .logging_config import event_log
from .policy import (
    DEFAULT_SCOPE,
    PermissionScope,
    PermissionStatement,
    as_list,
    build_permission_statement,
)
from .target import DeploymentTarget

logger = logging.getLogger(__name__)

DESCRIPTOR_VERSION = "1"


@dataclass(frozen=True)
class StatementSpec:
    """Requested actions and resources for one inline statement."""
    actions: Tuple[str, ...]
    resources: Tuple[str, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {"actions": list(self.actions), "resources": list(self.resources)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'StatementSpec':
        return cls(
            actions=tuple(as_list(data.get("actions"))),
            resources=tuple(as_list(data.get("resources"))),
        )


@dataclass(frozen=True)
class FunctionSpec:
    """
    Requested configuration of one compute binding.

    Values are taken as given; all checking happens during assembly.
    """
    name: str
    image: Any
    timeout_seconds: Any
    architecture: Any = Architecture.ARM64.value
    statements: Tuple[StatementSpec, ...] = ()
    managed_policies: Tuple[str, ...] = (BASIC_EXECUTION_POLICY,)
    logical_id: Optional[str] = None
    role_logical_id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'FunctionSpec':
        missing = [f for f in ("name", "image", "timeout_seconds") if f not in data]
        if missing:
            raise ValueError(f"Missing required fields: {missing}")

        return cls(
            name=data["name"],
            image=data["image"],
            timeout_seconds=data["timeout_seconds"],
            architecture=data.get("architecture", Architecture.ARM64.value),
            statements=tuple(StatementSpec.from_dict(s) for s in data.get("statements", [])),
            managed_policies=tuple(as_list(data.get("managed_policies", [BASIC_EXECUTION_POLICY]))),
            logical_id=data.get("logical_id"),
            role_logical_id=data.get("role_logical_id"),
        )


@dataclass(frozen=True)
class StackSpec:
    """Everything needed to assemble one stack for one target."""
    stack_id: str
    target: DeploymentTarget
    functions: Tuple[FunctionSpec, ...]

    @classmethod
    def from_dict(cls, data: Dict[str, Any], target: Optional[DeploymentTarget] = None) -> 'StackSpec':
        """
        Create a StackSpec from a stack definition document.

        An explicit target overrides the document's "target" block.
        """
        if "stack_id" not in data:
            raise ValueError("Missing required fields: ['stack_id']")
        if target is None:
            if "target" not in data:
                raise ValueError("Stack definition has no target and none was given")
            target = DeploymentTarget.from_dict(data["target"])

        return cls(
            stack_id=data["stack_id"],
            target=target,
            functions=tuple(FunctionSpec.from_dict(f) for f in data.get("functions", [])),
        )


@dataclass(frozen=True)
class DeploymentDescriptor:
    """
    A fully assembled, internally consistent stack.

    Consumed by the template renderer and the CDK stack.
    """
    stack_id: str
    target: DeploymentTarget
    bindings: Tuple[ComputeBinding, ...]
    _hash: Optional[str] = field(default=None, repr=False, compare=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "descriptor_version": DESCRIPTOR_VERSION,
            "stack_id": self.stack_id,
            "target": self.target.to_dict(),
            "bindings": [b.to_dict() for b in self.bindings],
        }

    def get_hash(self) -> str:
        """Compute and cache the descriptor hash."""
        if self._hash is None:
            object.__setattr__(self, "_hash", descriptor_hash(self.to_dict()))
        return self._hash

    def get_binding(self, name: str) -> Optional[ComputeBinding]:
        for binding in self.bindings:
            if binding.name == name:
                return binding
        return None


class StackAssembler:
    """
    Assembles StackSpecs into DeploymentDescriptors.

    The assembler holds only configuration; each assemble() call uses its
    own BindingRegistry, so repeated calls are independent and identical
    inputs give identical descriptors.
    """

    def __init__(
        self,
        scope: PermissionScope = DEFAULT_SCOPE,
        max_timeout_seconds: int = PLATFORM_MAX_TIMEOUT_SECONDS,
    ):
        self.scope = scope
        self.max_timeout_seconds = max_timeout_seconds

    def assemble(self, spec: StackSpec) -> DeploymentDescriptor:
        """
        Assemble a stack.

        Raises:
            InconsistentAssembly: with every error from every function
        """
        event_log.assembly_request(
            spec.stack_id, spec.target.key, [f.name for f in spec.functions]
        )

        errors: List[BeaconStackError] = []
        bindings: List[ComputeBinding] = []
        registry = BindingRegistry()

        if not spec.functions:
            errors.append(InvalidBindingParameter(
                f"Stack '{spec.stack_id}' declares no functions",
                [Violation(f"stack[{spec.stack_id}]", FailureCode.INVALID_PARAMETER,
                           "at least one function", "none")],
            ))

        for function in spec.functions:
            binding = self._assemble_function(spec, function, registry, errors)
            if binding is not None:
                bindings.append(binding)

        # Cross-binding checks cover the bindings that were built, even when others failed
        errors.extend(self._check_consistency(bindings))

        if errors:
            failure = InconsistentAssembly(spec.stack_id, errors)
            event_log.assembly_failed(spec.stack_id, [v.to_dict() for v in failure.violations])
            raise failure

        descriptor = DeploymentDescriptor(
            stack_id=spec.stack_id,
            target=spec.target,
            bindings=tuple(bindings),
        )
        event_log.assembly_succeeded(spec.stack_id, descriptor.get_hash(), len(bindings))
        return descriptor

    def _assemble_function(
        self,
        spec: StackSpec,
        function: FunctionSpec,
        registry: BindingRegistry,
        errors: List[BeaconStackError],
    ) -> Optional[ComputeBinding]:
        subject = f"binding[{function.name}]"
        failed = False

        statements: List[PermissionStatement] = []
        for i, requested in enumerate(function.statements):
            try:
                statements.append(build_permission_statement(
                    requested.actions, requested.resources, self.scope,
                    subject=f"{subject}.statement[{i}]",
                ))
            except BeaconStackError as e:
                errors.append(e)
                failed = True

        logical_id = function.logical_id or default_logical_id(str(function.name))
        try:
            identity = create_execution_identity(
                function.role_logical_id or f"{logical_id}Role",
                statements,
                managed_policies=function.managed_policies,
                description=f"Lambda execution role for {spec.stack_id}",
            )
        except BeaconStackError as e:
            errors.append(e)
            # The name is still taken; a later function reusing it is a duplicate
            try:
                claim_name(registry, spec.target, function.name)
            except BeaconStackError as claim_error:
                errors.append(claim_error)
            return None

        # Binding checks still run after a statement failure so every error is reported
        try:
            binding = create_compute_binding(
                registry,
                spec.target,
                name=function.name,
                image=function.image,
                timeout_seconds=function.timeout_seconds,
                architecture=function.architecture,
                identity=identity,
                logical_id=function.logical_id,
                max_timeout_seconds=self.max_timeout_seconds,
            )
        except BeaconStackError as e:
            errors.append(e)
            return None

        logger.debug("Bound %s as %s in %s", binding.name, binding.logical_id, spec.target.key)
        return None if failed else binding

    def _check_consistency(self, bindings: List[ComputeBinding]) -> List[BeaconStackError]:
        """Cross-binding checks: identity validity, exclusive ownership, unique ids."""
        errors: List[BeaconStackError] = []

        for binding in bindings:
            violations = binding.identity.validate(self.scope)
            if violations:
                errors.append(InvalidBindingParameter(
                    f"Binding '{binding.name}' has an invalid execution identity",
                    violations,
                ))

        seen: Dict[str, str] = {}
        for binding in bindings:
            for logical_id in (binding.logical_id, binding.identity.logical_id):
                owner = seen.get(logical_id)
                if owner is not None:
                    errors.append(InvalidBindingParameter(
                        f"Logical id '{logical_id}' is used by '{owner}' and '{binding.name}'",
                        [Violation(f"binding[{binding.name}]", FailureCode.INVALID_PARAMETER,
                                   "logical id owned by one binding", logical_id)],
                    ))
                else:
                    seen[logical_id] = binding.name

        return errors


def assemble_stack(
    spec: StackSpec,
    scope: PermissionScope = DEFAULT_SCOPE,
    max_timeout_seconds: int = PLATFORM_MAX_TIMEOUT_SECONDS,
) -> DeploymentDescriptor:
    """Assemble a stack with a one-off StackAssembler."""
    return StackAssembler(scope, max_timeout_seconds).assemble(spec)
