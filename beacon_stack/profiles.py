"""
Stock stack definitions.

The elsa-data-beacon stack: one ARM64 container function with read access to
the UMCCR 10G data buckets, deployed only to the UMCCR dev account.
"""

from typing import Optional

from .assembly import FunctionSpec, StackSpec, StatementSpec
from .binding import Architecture
from .identity import BASIC_EXECUTION_POLICY
from .target import DeploymentTarget


# Stack name as deployed; the missing "s" is part of the live CloudFormation stack
ELSA_DATA_BEACON_STACK_ID = "ElaDataBeaconLambdaStack"
ELSA_DATA_BEACON_FUNCTION_NAME = "elsa-data-beacon"
ELSA_DATA_BEACON_IMAGE_ASSET = "application/lambda/beacon"

# UMCCR dev only
ELSA_DATA_BEACON_TARGET = DeploymentTarget(account="843407916570", region="ap-southeast-2")


def create_elsa_data_beacon_function(
    image: str = ELSA_DATA_BEACON_IMAGE_ASSET,
    timeout_seconds: int = 60,
    bucket_pattern: str = "arn:aws:s3:::umccr-10*",
) -> FunctionSpec:
    """The Beacon handler function with S3 list/get on the data buckets."""
    return FunctionSpec(
        name=ELSA_DATA_BEACON_FUNCTION_NAME,
        image=image,
        timeout_seconds=timeout_seconds,
        architecture=Architecture.ARM64.value,
        statements=(
            StatementSpec(
                actions=("s3:List*", "s3:Get*"),
                resources=(bucket_pattern,),
            ),
        ),
        managed_policies=(BASIC_EXECUTION_POLICY,),
        logical_id="BeaconHandler",
        role_logical_id="Role",
    )


def create_elsa_data_beacon_stack(
    target: Optional[DeploymentTarget] = None,
    timeout_seconds: int = 60,
    image: str = ELSA_DATA_BEACON_IMAGE_ASSET,
) -> StackSpec:
    """
    Create the elsa-data-beacon stack definition.

    Args:
        target: deployment target (default: UMCCR dev)
        timeout_seconds: handler timeout
        image: image asset directory or ECR image URI
    """
    return StackSpec(
        stack_id=ELSA_DATA_BEACON_STACK_ID,
        target=target or ELSA_DATA_BEACON_TARGET,
        functions=(create_elsa_data_beacon_function(image, timeout_seconds),),
    )
