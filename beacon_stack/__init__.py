"""
beacon-stack

Deployment descriptors for the Elsa Data Beacon Lambda.

A Beacon answers one question: is this allele present at this coordinate in
this dataset? The query engine ships as a container image; this package
declares what it runs with:

    - an execution role trusting Lambda, carrying the basic execution policy
      and read-only S3 access under an approved bucket prefix
    - a Docker image function with a fixed name, timeout and architecture
    - one deployment target (account + region)

Assembly validates the whole stack and either returns one consistent
descriptor or raises InconsistentAssembly listing every violation.

Usage:
    from beacon_stack import (
        StackAssembler,
        create_elsa_data_beacon_stack,
        render_template,
    )

    descriptor = StackAssembler().assemble(create_elsa_data_beacon_stack())
    template = render_template(descriptor)
"""

__version__ = "0.1.0"

# Encoding and hashing
from .canonicalization import canonicalize, canonicalize_str
from .hashing import sha256_hash, statement_hash, descriptor_hash, template_hash, verify_hash

# Errors
from .errors import (
    FailureCode,
    Violation,
    BeaconStackError,
    InvalidPermissionScope,
    DuplicateBindingName,
    TimeoutOutOfRange,
    InvalidBindingParameter,
    InconsistentAssembly,
    InvalidBeaconQuery,
    BeaconInvocationError,
)

# Permission policy
from .policy import (
    Effect,
    PermissionScope,
    PermissionStatement,
    DEFAULT_SCOPE,
    build_permission_statement,
    check_statement,
)

# Execution identity
from .identity import (
    ExecutionIdentity,
    ManagedPolicyRef,
    LAMBDA_SERVICE_PRINCIPAL,
    BASIC_EXECUTION_POLICY,
    create_execution_identity,
)

# Compute binding
from .target import DeploymentTarget
from .binding import (
    Architecture,
    ImageSource,
    ImageArtifactLocator,
    ComputeBinding,
    BindingRegistry,
    PLATFORM_MAX_TIMEOUT_SECONDS,
    claim_name,
    create_compute_binding,
)

# Assembly
from .assembly import (
    StatementSpec,
    FunctionSpec,
    StackSpec,
    DeploymentDescriptor,
    StackAssembler,
    assemble_stack,
)
from .profiles import (
    ELSA_DATA_BEACON_TARGET,
    create_elsa_data_beacon_function,
    create_elsa_data_beacon_stack,
)
from .template import render_template

# Invocation
from .invocation import BeaconQuery, BeaconResponse, BeaconInvoker


__all__ = [
    "__version__",

    "canonicalize",
    "canonicalize_str",
    "sha256_hash",
    "statement_hash",
    "descriptor_hash",
    "template_hash",
    "verify_hash",

    "FailureCode",
    "Violation",
    "BeaconStackError",
    "InvalidPermissionScope",
    "DuplicateBindingName",
    "TimeoutOutOfRange",
    "InvalidBindingParameter",
    "InconsistentAssembly",
    "InvalidBeaconQuery",
    "BeaconInvocationError",

    "Effect",
    "PermissionScope",
    "PermissionStatement",
    "DEFAULT_SCOPE",
    "build_permission_statement",
    "check_statement",

    "ExecutionIdentity",
    "ManagedPolicyRef",
    "LAMBDA_SERVICE_PRINCIPAL",
    "BASIC_EXECUTION_POLICY",
    "create_execution_identity",

    "DeploymentTarget",
    "Architecture",
    "ImageSource",
    "ImageArtifactLocator",
    "ComputeBinding",
    "BindingRegistry",
    "PLATFORM_MAX_TIMEOUT_SECONDS",
    "claim_name",
    "create_compute_binding",

    "StatementSpec",
    "FunctionSpec",
    "StackSpec",
    "DeploymentDescriptor",
    "StackAssembler",
    "assemble_stack",
    "ELSA_DATA_BEACON_TARGET",
    "create_elsa_data_beacon_function",
    "create_elsa_data_beacon_stack",
    "render_template",

    "BeaconQuery",
    "BeaconResponse",
    "BeaconInvoker",
]
