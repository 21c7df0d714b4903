#!/usr/bin/env python3
"""
beacon-stack Command Line Interface

Usage:
    beacon-stack assemble [--definition <file>] [--account <id> --region <region>] [--output <file>]
    beacon-stack template [--definition <file>] [--account <id> --region <region>] [--output <file>]
    beacon-stack hash --file <file>
    beacon-stack invoke --payload <file> [--function-name <name>] [--region <region>]
    beacon-stack demo
"""

import argparse
import json
import sys
from typing import List, Optional

from . import config
from .assembly import DeploymentDescriptor, StackAssembler, StackSpec
from .errors import BeaconInvocationError, InconsistentAssembly, InvalidBeaconQuery
from .logging_config import configure_logging
from .target import DeploymentTarget


def _target_override(args) -> Optional[DeploymentTarget]:
    if args.account or args.region:
        if not (args.account and args.region):
            raise ValueError("--account and --region must be given together")
        return DeploymentTarget(account=args.account, region=args.region)
    return None


def _load_spec(args) -> StackSpec:
    """Stack definition from --definition, or the stock elsa-data-beacon stack."""
    from .profiles import create_elsa_data_beacon_stack

    override = _target_override(args)
    if args.definition:
        data = config.load_json(args.definition)
        if override is None and "target" not in data:
            override = config.default_target()
        return StackSpec.from_dict(data, target=override)

    return create_elsa_data_beacon_stack(target=override or config.default_target())


def _assemble(args) -> DeploymentDescriptor:
    assembler = StackAssembler(
        scope=config.permission_scope(),
        max_timeout_seconds=config.max_timeout_seconds(),
    )
    return assembler.assemble(_load_spec(args))


def _emit(data: dict, output: Optional[str]) -> None:
    if output:
        config.save_json(data, output)
        print(f"Saved to: {output}", file=sys.stderr)
    else:
        print(json.dumps(data, indent=2, sort_keys=True))


def _report_failure(failure: InconsistentAssembly) -> int:
    print(f"\n✗ {failure}", file=sys.stderr)
    for violation in failure.violations:
        print(f"  - {violation}", file=sys.stderr)
    return 1


def cmd_assemble(args) -> int:
    """Assemble a stack and print its descriptor."""
    try:
        descriptor = _assemble(args)
    except InconsistentAssembly as failure:
        return _report_failure(failure)

    _emit(descriptor.to_dict(), args.output)
    print(f"\n✓ {descriptor.stack_id} assembled: {descriptor.get_hash()}", file=sys.stderr)
    return 0


def cmd_template(args) -> int:
    """Assemble a stack and print its CloudFormation template."""
    from .template import render_template

    try:
        descriptor = _assemble(args)
    except InconsistentAssembly as failure:
        return _report_failure(failure)

    _emit(render_template(descriptor), args.output)
    return 0


def cmd_hash(args) -> int:
    """Hash a descriptor, template or stack definition file."""
    from .hashing import descriptor_hash, sha256_hash, template_hash
    from .canonicalization import canonicalize

    data = config.load_json(args.file)

    if "descriptor_version" in data and "bindings" in data:
        print(f"descriptor_hash: {descriptor_hash(data)}")
    elif "AWSTemplateFormatVersion" in data or "Resources" in data:
        print(f"template_hash: {template_hash(data)}")
    elif "stack_id" in data and "functions" in data:
        args.definition = args.file
        try:
            descriptor = _assemble(args)
        except InconsistentAssembly as failure:
            return _report_failure(failure)
        print(f"descriptor_hash: {descriptor.get_hash()}")
    else:
        print(f"sha256: {sha256_hash(canonicalize(data))}")
    return 0


def cmd_invoke(args) -> int:
    """Invoke a deployed Beacon function."""
    from .invocation import BeaconInvoker, BeaconQuery

    try:
        query = BeaconQuery.from_dict(config.load_json(args.payload))
    except InvalidBeaconQuery as e:
        print(f"✗ {e}", file=sys.stderr)
        return 2

    invoker = BeaconInvoker(args.function_name, region=args.region)
    try:
        response = invoker.invoke(query)
    except BeaconInvocationError as e:
        print(f"✗ {e}", file=sys.stderr)
        if e.payload is not None:
            print(json.dumps(e.payload, indent=2), file=sys.stderr)
        return 1

    print(json.dumps(response.to_dict(), indent=2))
    return 0


def cmd_demo(args) -> int:
    """Run a demonstration of stack assembly."""
    from .assembly import assemble_stack
    from .profiles import create_elsa_data_beacon_stack

    print("=" * 60)
    print("beacon-stack Demonstration")
    print("=" * 60)

    print("\n" + "-" * 60)
    print("Scenario 1: elsa-data-beacon with a 60 second timeout")
    print("-" * 60)

    descriptor = assemble_stack(create_elsa_data_beacon_stack())
    binding = descriptor.bindings[0]
    print(f"Stack: {descriptor.stack_id} ({descriptor.target.key})")
    print(f"Function: {binding.name} {binding.architecture.value} {binding.timeout_seconds}s")
    print(f"Role: {binding.identity.logical_id}")
    for policy in binding.identity.managed_policies:
        print(f"  Managed: {policy.arn}")
    for statement in binding.identity.inline_statements:
        print(f"  Inline: {', '.join(statement.actions)} on {', '.join(statement.resources)}")
    print(f"Descriptor hash: {descriptor.get_hash()}")

    print("\n" + "-" * 60)
    print("Scenario 2: the same stack with a 1000 second timeout")
    print("-" * 60)

    try:
        assemble_stack(create_elsa_data_beacon_stack(timeout_seconds=1000))
    except InconsistentAssembly as failure:
        print(f"Rejected: {failure}")
        for violation in failure.violations:
            print(f"  - {violation}")

    print("\n" + "=" * 60)
    print("Demonstration complete.")
    print("=" * 60)
    return 0


def _add_stack_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("-d", "--definition", help="Stack definition JSON file (default: elsa-data-beacon)")
    parser.add_argument("--account", help="Target account id")
    parser.add_argument("--region", help="Target region")
    parser.add_argument("-o", "--output", help="Output file")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="beacon-stack",
        description="Beacon Lambda deployment descriptor tool",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  beacon-stack demo                              Run demonstration
  beacon-stack assemble                          Assemble the elsa-data-beacon stack
  beacon-stack template -d stack.json -o template.json
  beacon-stack hash -f descriptor.json
  beacon-stack invoke -p query.json
        """
    )
    parser.add_argument("--log-level", default=config.LOG_LEVEL, help="Log level")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    assemble_parser = subparsers.add_parser("assemble", help="Assemble and print the deployment descriptor")
    _add_stack_arguments(assemble_parser)

    template_parser = subparsers.add_parser("template", help="Render a CloudFormation template")
    _add_stack_arguments(template_parser)

    hash_parser = subparsers.add_parser("hash", help="Compute a descriptor or template hash")
    hash_parser.add_argument("-f", "--file", required=True, help="JSON file to hash")
    hash_parser.add_argument("--account", help="Target account id")
    hash_parser.add_argument("--region", help="Target region")

    invoke_parser = subparsers.add_parser("invoke", help="Invoke the deployed Beacon function")
    invoke_parser.add_argument("-p", "--payload", required=True, help="Beacon query JSON file")
    invoke_parser.add_argument("-n", "--function-name", default="elsa-data-beacon", help="Function name")
    invoke_parser.add_argument("--region", help="AWS region")

    subparsers.add_parser("demo", help="Run demonstration")

    return parser


COMMANDS = {
    "assemble": cmd_assemble,
    "template": cmd_template,
    "hash": cmd_hash,
    "invoke": cmd_invoke,
    "demo": cmd_demo,
}


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(args.log_level, json_format=config.log_json())

    command = COMMANDS.get(args.command)
    if command is None:
        parser.print_help()
        return 0

    try:
        return command(args)
    except (OSError, ValueError) as e:
        if config.is_debug():
            raise
        print(f"✗ {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
