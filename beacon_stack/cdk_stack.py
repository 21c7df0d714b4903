"""
CDK stack for a deployment descriptor.

Builds the role and Docker image function of every compute binding with
aws-cdk-lib. Install with the "cdk" extra; synthesis needs Node.js.

    cdk synth --app "python -m beacon_stack.cdk_stack"
"""

from aws_cdk import App, Duration, Environment, Stack
from aws_cdk import aws_ecr as ecr
from aws_cdk import aws_iam as iam
from aws_cdk import aws_lambda as lambda_
from constructs import Construct

from .assembly import DeploymentDescriptor, assemble_stack
from .binding import REGISTRY_IMAGE_PATTERN, Architecture, ComputeBinding, ImageSource
from .identity import ExecutionIdentity
from .profiles import create_elsa_data_beacon_stack

ARCHITECTURES = {
    Architecture.ARM64: lambda_.Architecture.ARM_64,
    Architecture.X86_64: lambda_.Architecture.X86_64,
}


class BeaconLambdaStack(Stack):
    """One Role and one DockerImageFunction per compute binding."""

    def __init__(self, scope: Construct, construct_id: str, *, descriptor: DeploymentDescriptor, **kwargs) -> None:
        kwargs.setdefault("env", Environment(
            account=descriptor.target.account,
            region=descriptor.target.region,
        ))
        super().__init__(scope, construct_id, **kwargs)

        self.descriptor = descriptor
        self.functions = {}

        for binding in descriptor.bindings:
            role = self._build_role(binding.identity)
            self.functions[binding.name] = lambda_.DockerImageFunction(
                self, binding.logical_id,
                code=self._image_code(binding),
                timeout=Duration.seconds(binding.timeout_seconds),
                function_name=binding.name,
                architecture=ARCHITECTURES[binding.architecture],
                role=role,
            )

    def _build_role(self, identity: ExecutionIdentity) -> iam.Role:
        role = iam.Role(
            self, identity.logical_id,
            assumed_by=iam.ServicePrincipal(identity.trusted_principal),
            description=identity.description or None,
        )
        for policy in identity.managed_policies:
            role.add_managed_policy(
                iam.ManagedPolicy.from_aws_managed_policy_name(policy.name)
            )
        for statement in identity.inline_statements:
            role.add_to_policy(iam.PolicyStatement(
                actions=list(statement.actions),
                resources=list(statement.resources),
            ))
        return role

    def _image_code(self, binding: ComputeBinding) -> lambda_.DockerImageCode:
        if binding.image.source == ImageSource.ASSET:
            return lambda_.DockerImageCode.from_image_asset(binding.image.location)

        match = REGISTRY_IMAGE_PATTERN.match(binding.image.location)
        repository = ecr.Repository.from_repository_attributes(
            self, f"{binding.logical_id}Repository",
            repository_arn=(
                f"arn:aws:ecr:{match.group('region')}:{match.group('account')}"
                f":repository/{match.group('repository')}"
            ),
            repository_name=match.group("repository"),
        )
        if match.group("digest"):
            return lambda_.DockerImageCode.from_ecr(repository, tag_or_digest=match.group("digest"))
        return lambda_.DockerImageCode.from_ecr(repository, tag_or_digest=match.group("tag") or "latest")


def build_app(descriptor: DeploymentDescriptor = None) -> App:
    """CDK app holding one stack for the descriptor (default: elsa-data-beacon)."""
    if descriptor is None:
        descriptor = assemble_stack(create_elsa_data_beacon_stack())
    app = App()
    BeaconLambdaStack(app, descriptor.stack_id, descriptor=descriptor)
    return app


if __name__ == "__main__":
    build_app().synth()
