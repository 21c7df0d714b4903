"""
Stack assembly tests.

Assembly returns one consistent descriptor or raises InconsistentAssembly
with every failure from every function; identical input gives identical
output.
"""

import json
import os
import unittest

from beacon_stack import (
    Architecture,
    BASIC_EXECUTION_POLICY,
    DeploymentTarget,
    DuplicateBindingName,
    ELSA_DATA_BEACON_TARGET,
    FailureCode,
    FunctionSpec,
    InconsistentAssembly,
    InvalidBindingParameter,
    InvalidPermissionScope,
    PermissionScope,
    StackAssembler,
    StackSpec,
    StatementSpec,
    TimeoutOutOfRange,
    assemble_stack,
    create_elsa_data_beacon_stack,
    verify_hash,
)


TARGET = DeploymentTarget(account="843407916570", region="ap-southeast-2")
EXAMPLES = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "examples")


def beacon_function(**overrides) -> FunctionSpec:
    values = dict(
        name="elsa-data-beacon",
        image="application/lambda/beacon",
        timeout_seconds=60,
        architecture="arm64",
        statements=(StatementSpec(("s3:List*", "s3:Get*"), ("arn:aws:s3:::umccr-10*",)),),
    )
    values.update(overrides)
    return FunctionSpec(**values)


def beacon_stack(*functions, target=TARGET) -> StackSpec:
    return StackSpec(
        stack_id="ElsaDataBeaconLambdaStack",
        target=target,
        functions=functions or (beacon_function(),),
    )


class TestAssemblySucceeds(unittest.TestCase):
    """Scenario: the elsa-data-beacon stack as deployed."""

    def test_beacon_stack(self):
        descriptor = StackAssembler().assemble(beacon_stack())

        self.assertEqual(descriptor.target, TARGET)
        self.assertEqual(len(descriptor.bindings), 1)

        binding = descriptor.bindings[0]
        self.assertEqual(binding.name, "elsa-data-beacon")
        self.assertEqual(binding.timeout_seconds, 60)
        self.assertEqual(binding.architecture, Architecture.ARM64)

        identity = binding.identity
        self.assertEqual(len(identity.inline_statements), 1)
        self.assertEqual(identity.inline_statements[0].actions, ("s3:Get*", "s3:List*"))
        self.assertEqual(identity.inline_statements[0].resources, ("arn:aws:s3:::umccr-10*",))
        self.assertEqual([p.name for p in identity.managed_policies], [BASIC_EXECUTION_POLICY])
        self.assertEqual(identity.description, "Lambda execution role for ElsaDataBeaconLambdaStack")

    def test_stock_profile(self):
        descriptor = assemble_stack(create_elsa_data_beacon_stack())

        self.assertEqual(descriptor.stack_id, "ElaDataBeaconLambdaStack")
        self.assertEqual(descriptor.target, ELSA_DATA_BEACON_TARGET)
        binding = descriptor.get_binding("elsa-data-beacon")
        self.assertIsNotNone(binding)
        self.assertEqual(binding.logical_id, "BeaconHandler")
        self.assertEqual(binding.identity.logical_id, "Role")
        self.assertIsNone(descriptor.get_binding("missing"))

    def test_idempotent(self):
        first = StackAssembler().assemble(beacon_stack())
        second = StackAssembler().assemble(beacon_stack())

        self.assertEqual(first, second)
        self.assertEqual(first.to_dict(), second.to_dict())
        self.assertEqual(first.get_hash(), second.get_hash())
        self.assertTrue(verify_hash(first.get_hash(), second.to_dict()))

    def test_same_assembler_reused(self):
        assembler = StackAssembler()
        first = assembler.assemble(beacon_stack())
        # A fresh registry per call: the name is free again
        second = assembler.assemble(beacon_stack())
        self.assertEqual(first.get_hash(), second.get_hash())

    def test_targets_are_independent(self):
        other = DeploymentTarget(account="843407916570", region="us-east-1")
        a = assemble_stack(beacon_stack(target=TARGET))
        b = assemble_stack(beacon_stack(target=other))
        self.assertNotEqual(a.get_hash(), b.get_hash())
        self.assertEqual(a.bindings[0].name, b.bindings[0].name)

    def test_two_functions(self):
        descriptor = assemble_stack(beacon_stack(
            beacon_function(),
            beacon_function(name="elsa-data-beacon-x86", architecture="x86_64"),
        ))
        self.assertEqual([b.name for b in descriptor.bindings],
                         ["elsa-data-beacon", "elsa-data-beacon-x86"])
        self.assertIsNot(descriptor.bindings[0].identity, descriptor.bindings[1].identity)

    def test_from_dict(self):
        document = json.loads(json.dumps({
            "stack_id": "ElsaDataBeaconLambdaStack",
            "target": {"account": "843407916570", "region": "ap-southeast-2"},
            "functions": [{
                "name": "elsa-data-beacon",
                "image": "application/lambda/beacon",
                "timeout_seconds": 60,
                "architecture": "arm64",
                "statements": [{
                    "actions": ["s3:List*", "s3:Get*"],
                    "resources": ["arn:aws:s3:::umccr-10*"],
                }],
            }],
        }))
        from_document = assemble_stack(StackSpec.from_dict(document))
        from_code = assemble_stack(beacon_stack())
        self.assertEqual(from_document.get_hash(), from_code.get_hash())

    def test_example_definition_matches_stock_profile(self):
        with open(os.path.join(EXAMPLES, "elsa_data_beacon_stack.json"), encoding="utf-8") as f:
            spec = StackSpec.from_dict(json.load(f))
        self.assertEqual(
            assemble_stack(spec).get_hash(),
            assemble_stack(create_elsa_data_beacon_stack()).get_hash(),
        )

    def test_from_dict_requires_target(self):
        with self.assertRaises(ValueError):
            StackSpec.from_dict({"stack_id": "S", "functions": []})
        spec = StackSpec.from_dict({"stack_id": "S", "functions": []}, target=TARGET)
        self.assertEqual(spec.target, TARGET)


class TestAssemblyFails(unittest.TestCase):
    """Every failure surfaces, and no descriptor is returned."""

    def test_timeout_exceeds_platform_maximum(self):
        with self.assertRaises(InconsistentAssembly) as ctx:
            StackAssembler().assemble(beacon_stack(beacon_function(timeout_seconds=1000)))

        failure = ctx.exception
        self.assertTrue(failure.has(TimeoutOutOfRange))
        self.assertEqual(failure.codes(), [FailureCode.TIMEOUT_OUT_OF_RANGE])
        self.assertEqual(failure.stack_id, "ElsaDataBeaconLambdaStack")
        self.assertEqual(failure.violations[0].observed, "1000 seconds")

    def test_failures_are_aggregated(self):
        bad = beacon_function(
            timeout_seconds=0,
            statements=(StatementSpec(("s3:PutObject",), ("arn:aws:s3:::*",)),),
        )
        with self.assertRaises(InconsistentAssembly) as ctx:
            assemble_stack(beacon_stack(bad))

        failure = ctx.exception
        self.assertTrue(failure.has(InvalidPermissionScope))
        self.assertTrue(failure.has(TimeoutOutOfRange))
        self.assertEqual(len(failure.errors), 2)
        self.assertEqual(len(failure.violations), 3)

    def test_failures_across_functions(self):
        with self.assertRaises(InconsistentAssembly) as ctx:
            assemble_stack(beacon_stack(
                beacon_function(name="a", timeout_seconds=1000),
                beacon_function(name="b", architecture="mips"),
                beacon_function(name="c", statements=(StatementSpec(("s3:*",), ("*",)),)),
            ))
        self.assertEqual(ctx.exception.codes(), [
            FailureCode.TIMEOUT_OUT_OF_RANGE,
            FailureCode.INVALID_PARAMETER,
            FailureCode.INVALID_PERMISSION_SCOPE,
        ])

    def test_duplicate_names(self):
        with self.assertRaises(InconsistentAssembly) as ctx:
            assemble_stack(beacon_stack(beacon_function(), beacon_function()))
        self.assertTrue(ctx.exception.has(DuplicateBindingName))

    def test_shared_logical_ids(self):
        with self.assertRaises(InconsistentAssembly) as ctx:
            assemble_stack(beacon_stack(
                beacon_function(name="a", logical_id="Handler"),
                beacon_function(name="b", logical_id="Handler"),
            ))
        self.assertTrue(ctx.exception.has(InvalidBindingParameter))
        observed = {v.observed for v in ctx.exception.violations}
        self.assertEqual(observed, {"Handler", "HandlerRole"})

    def test_collisions_reported_alongside_other_failures(self):
        with self.assertRaises(InconsistentAssembly) as ctx:
            assemble_stack(beacon_stack(
                beacon_function(name="a", timeout_seconds=1000),
                beacon_function(name="b", logical_id="Handler"),
                beacon_function(name="c", logical_id="Handler"),
            ))
        failure = ctx.exception
        self.assertEqual(failure.codes(), [
            FailureCode.TIMEOUT_OUT_OF_RANGE,
            FailureCode.INVALID_PARAMETER,
            FailureCode.INVALID_PARAMETER,
        ])
        self.assertEqual(
            {v.observed for v in failure.violations if v.code == FailureCode.INVALID_PARAMETER},
            {"Handler", "HandlerRole"},
        )

    def test_duplicate_of_failed_function(self):
        with self.assertRaises(InconsistentAssembly) as ctx:
            assemble_stack(beacon_stack(
                beacon_function(timeout_seconds=1000),
                beacon_function(timeout_seconds=60),
            ))
        self.assertEqual(ctx.exception.codes(), [
            FailureCode.TIMEOUT_OUT_OF_RANGE,
            FailureCode.DUPLICATE_BINDING_NAME,
        ])

    def test_duplicate_of_function_with_bad_role(self):
        with self.assertRaises(InconsistentAssembly) as ctx:
            assemble_stack(beacon_stack(
                beacon_function(role_logical_id="beacon-role"),
                beacon_function(),
            ))
        self.assertTrue(ctx.exception.has(InvalidBindingParameter))
        self.assertTrue(ctx.exception.has(DuplicateBindingName))

    def test_non_string_values_are_collected(self):
        definition = {
            "stack_id": "ElsaDataBeaconLambdaStack",
            "target": {"account": "843407916570", "region": "ap-southeast-2"},
            "functions": [
                {"name": 123, "image": "application/lambda/beacon", "timeout_seconds": 60},
                {"name": "b", "image": "application/lambda/beacon", "timeout_seconds": 60,
                 "role_logical_id": 7},
                {"name": "c", "image": "application/lambda/beacon", "timeout_seconds": 60,
                 "logical_id": 9, "role_logical_id": "CRole"},
                {"name": "d", "image": {"source": "asset", "location": 5}, "timeout_seconds": 60},
                {"name": "e", "image": "application/lambda/beacon", "timeout_seconds": 60,
                 "managed_policies": [None]},
            ],
        }
        with self.assertRaises(InconsistentAssembly) as ctx:
            assemble_stack(StackSpec.from_dict(definition))
        self.assertEqual(ctx.exception.codes(), [FailureCode.INVALID_PARAMETER] * 5)

    def test_single_string_statement(self):
        spec = StackSpec.from_dict({
            "stack_id": "ElsaDataBeaconLambdaStack",
            "target": {"account": "843407916570", "region": "ap-southeast-2"},
            "functions": [{
                "name": "elsa-data-beacon",
                "image": "application/lambda/beacon",
                "timeout_seconds": 60,
                "statements": [{"actions": "s3:GetObject", "resources": "arn:aws:s3:::umccr-10g/*"}],
                "managed_policies": BASIC_EXECUTION_POLICY,
            }],
        })
        self.assertEqual(spec.functions[0].statements[0].actions, ("s3:GetObject",))
        self.assertEqual(spec.functions[0].managed_policies, (BASIC_EXECUTION_POLICY,))

        statement = assemble_stack(spec).bindings[0].identity.inline_statements[0]
        self.assertEqual(statement.actions, ("s3:GetObject",))
        self.assertEqual(statement.resources, ("arn:aws:s3:::umccr-10g/*",))

    def test_no_functions(self):
        with self.assertRaises(InconsistentAssembly) as ctx:
            assemble_stack(StackSpec(stack_id="Empty", target=TARGET, functions=()))
        self.assertEqual(ctx.exception.codes(), [FailureCode.INVALID_PARAMETER])

    def test_custom_scope_and_limit(self):
        assembler = StackAssembler(
            scope=PermissionScope(approved_bucket_prefix="umccr-10g-data-dev"),
            max_timeout_seconds=30,
        )
        with self.assertRaises(InconsistentAssembly) as ctx:
            assembler.assemble(beacon_stack())
        self.assertTrue(ctx.exception.has(InvalidPermissionScope))
        self.assertTrue(ctx.exception.has(TimeoutOutOfRange))

    def test_failure_is_logged(self):
        with self.assertLogs("beacon_stack.events", level="WARNING") as logs:
            with self.assertRaises(InconsistentAssembly):
                assemble_stack(beacon_stack(beacon_function(timeout_seconds=1000)))
        self.assertIn("ASSEMBLY_FAILED", logs.output[0])

    def test_to_dict(self):
        with self.assertRaises(InconsistentAssembly) as ctx:
            assemble_stack(beacon_stack(beacon_function(timeout_seconds=1000)))
        d = ctx.exception.to_dict()
        self.assertEqual(d["code"], "INCONSISTENT_ASSEMBLY")
        self.assertEqual(d["errors"][0]["error"], "TimeoutOutOfRange")
        self.assertEqual(d["violations"][0]["code"], "TIMEOUT_OUT_OF_RANGE")


if __name__ == "__main__":
    unittest.main()
