"""
CloudFormation template rendering.

Turns a DeploymentDescriptor into a CloudFormation template document with one
IAM role and one Lambda function per compute binding. Local image assets are
exposed as template parameters; their URIs only exist once the external image
build has published them.
"""

from typing import Any, Dict

from .assembly import DeploymentDescriptor
from .binding import ComputeBinding, ImageSource
from .identity import ExecutionIdentity

TEMPLATE_FORMAT_VERSION = "2010-09-09"


def _image_parameter(binding: ComputeBinding) -> str:
    return f"{binding.logical_id}ImageUri"


def render_role(identity: ExecutionIdentity) -> Dict[str, Any]:
    """AWS::IAM::Role resource for an execution identity."""
    properties: Dict[str, Any] = {
        "AssumeRolePolicyDocument": {
            "Version": "2012-10-17",
            "Statement": [{
                "Effect": "Allow",
                "Principal": {"Service": identity.trusted_principal},
                "Action": "sts:AssumeRole",
            }],
        },
        "ManagedPolicyArns": [p.arn for p in identity.managed_policies],
    }
    if identity.description:
        properties["Description"] = identity.description
    if identity.inline_statements:
        properties["Policies"] = [{
            "PolicyName": f"{identity.logical_id}DefaultPolicy",
            "PolicyDocument": {
                "Version": "2012-10-17",
                "Statement": [s.to_dict() for s in identity.inline_statements],
            },
        }]
    return {"Type": "AWS::IAM::Role", "Properties": properties}


def render_function(binding: ComputeBinding) -> Dict[str, Any]:
    """AWS::Lambda::Function resource for a compute binding."""
    if binding.image.source == ImageSource.REGISTRY:
        image_uri: Any = binding.image.location
    else:
        image_uri = {"Ref": _image_parameter(binding)}

    return {
        "Type": "AWS::Lambda::Function",
        "Properties": {
            "FunctionName": binding.name,
            "PackageType": "Image",
            "Code": {"ImageUri": image_uri},
            "Timeout": binding.timeout_seconds,
            "Architectures": [binding.architecture.value],
            "Role": {"Fn::GetAtt": [binding.identity.logical_id, "Arn"]},
        },
    }


def render_template(descriptor: DeploymentDescriptor) -> Dict[str, Any]:
    """
    Render a descriptor as a CloudFormation template.

    The output is a plain dict; serialize it with json.dumps or
    canonicalize() for a stable byte form.
    """
    parameters: Dict[str, Any] = {}
    resources: Dict[str, Any] = {}
    outputs: Dict[str, Any] = {}

    for binding in descriptor.bindings:
        resources[binding.identity.logical_id] = render_role(binding.identity)
        resources[binding.logical_id] = render_function(binding)

        if binding.image.source == ImageSource.ASSET:
            parameters[_image_parameter(binding)] = {
                "Type": "String",
                "Description": f"Published image URI for asset {binding.image.location}",
            }

        outputs[f"{binding.logical_id}FunctionName"] = {
            "Value": {"Ref": binding.logical_id},
        }

    template: Dict[str, Any] = {
        "AWSTemplateFormatVersion": TEMPLATE_FORMAT_VERSION,
        "Description": f"{descriptor.stack_id} ({descriptor.target.key})",
        "Metadata": {
            "StackId": descriptor.stack_id,
            "Account": descriptor.target.account,
            "Region": descriptor.target.region,
            "DescriptorHash": descriptor.get_hash(),
        },
        "Resources": resources,
        "Outputs": outputs,
    }
    if parameters:
        template["Parameters"] = parameters
    return template
