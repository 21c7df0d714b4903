"""
Execution identity and compute binding tests.
"""

import unittest

from beacon_stack import (
    Architecture,
    BASIC_EXECUTION_POLICY,
    BindingRegistry,
    DeploymentTarget,
    DuplicateBindingName,
    ExecutionIdentity,
    ImageArtifactLocator,
    ImageSource,
    InvalidBindingParameter,
    LAMBDA_SERVICE_PRINCIPAL,
    ManagedPolicyRef,
    TimeoutOutOfRange,
    build_permission_statement,
    create_compute_binding,
    create_execution_identity,
)
from beacon_stack.binding import check_timeout, default_logical_id


DEV = DeploymentTarget(account="843407916570", region="ap-southeast-2")
ECR_IMAGE = "843407916570.dkr.ecr.ap-southeast-2.amazonaws.com/elsa-data-beacon:latest"


def beacon_identity(logical_id: str = "Role") -> ExecutionIdentity:
    statement = build_permission_statement({"s3:List*", "s3:Get*"}, {"arn:aws:s3:::umccr-10*"})
    return create_execution_identity(logical_id, [statement])


class TestExecutionIdentity(unittest.TestCase):

    def test_trusts_lambda_with_baseline_policy(self):
        identity = beacon_identity()

        self.assertEqual(identity.trusted_principal, LAMBDA_SERVICE_PRINCIPAL)
        self.assertEqual([p.name for p in identity.managed_policies], [BASIC_EXECUTION_POLICY])
        self.assertEqual(
            identity.managed_policies[0].arn,
            "arn:aws:iam::aws:policy/service-role/AWSLambdaBasicExecutionRole",
        )
        self.assertEqual(len(identity.inline_statements), 1)
        self.assertEqual(identity.validate(), [])

    def test_baseline_policy_always_first(self):
        identity = create_execution_identity(
            "Role", managed_policies=["AmazonS3ReadOnlyAccess", BASIC_EXECUTION_POLICY]
        )
        self.assertEqual(
            [p.name for p in identity.managed_policies],
            [BASIC_EXECUTION_POLICY, "AmazonS3ReadOnlyAccess"],
        )

    def test_no_statements_is_allowed(self):
        identity = create_execution_identity("Role")
        self.assertEqual(identity.inline_statements, ())
        self.assertEqual(identity.validate(), [])

    def test_invalid_logical_id(self):
        for logical_id in ["", "my-role", "1Role", None, 42]:
            with self.subTest(logical_id=logical_id):
                with self.assertRaises(InvalidBindingParameter):
                    create_execution_identity(logical_id)

    def test_invalid_managed_policy_names(self):
        with self.assertRaises(InvalidBindingParameter) as ctx:
            create_execution_identity("Role", managed_policies=[BASIC_EXECUTION_POLICY, 7, ""])
        self.assertEqual([v.observed for v in ctx.exception.violations], ["7", "''"])

    def test_validate_reports_every_broken_invariant(self):
        identity = ExecutionIdentity(
            logical_id="Role",
            trusted_principal="ec2.amazonaws.com",
            managed_policies=(ManagedPolicyRef("AmazonS3ReadOnlyAccess"),),
            inline_statements=(),
        )
        subjects = [v.subject for v in identity.validate()]
        self.assertEqual(subjects, [
            "identity[Role].trusted_principal",
            "identity[Role].managed_policies",
        ])


class TestDeploymentTarget(unittest.TestCase):

    def test_valid(self):
        self.assertEqual(DEV.key, "843407916570/ap-southeast-2")
        self.assertEqual(DeploymentTarget.from_dict(DEV.to_dict()), DEV)

    def test_invalid(self):
        with self.assertRaises(InvalidBindingParameter) as ctx:
            DeploymentTarget(account="8434", region="Sydney")
        self.assertEqual(len(ctx.exception.violations), 2)

    def test_non_string_values(self):
        with self.assertRaises(InvalidBindingParameter) as ctx:
            DeploymentTarget(account=843407916570, region=2)
        self.assertEqual(len(ctx.exception.violations), 2)
        with self.assertRaises(InvalidBindingParameter):
            DeploymentTarget.from_dict({"account": "843407916570", "region": None})

    def test_missing_fields(self):
        with self.assertRaises(ValueError):
            DeploymentTarget.from_dict({"account": "843407916570"})


class TestComputeBinding(unittest.TestCase):

    def setUp(self):
        self.registry = BindingRegistry()

    def _create(self, name="elsa-data-beacon", timeout=60, architecture="arm64",
                image="application/lambda/beacon", target=DEV, **kwargs):
        return create_compute_binding(
            self.registry, target, name, image, timeout, architecture,
            kwargs.pop("identity", beacon_identity()), **kwargs
        )

    def test_create(self):
        binding = self._create()

        self.assertEqual(binding.name, "elsa-data-beacon")
        self.assertEqual(binding.logical_id, "ElsaDataBeacon")
        self.assertEqual(binding.timeout_seconds, 60)
        self.assertEqual(binding.architecture, Architecture.ARM64)
        self.assertEqual(binding.image, ImageArtifactLocator.asset("application/lambda/beacon"))
        self.assertEqual(self.registry.list_names(DEV), ["elsa-data-beacon"])
        self.assertIs(self.registry.get(DEV, "elsa-data-beacon"), binding)

    def test_timeout_bounds(self):
        for timeout in [1, 60, 900]:
            with self.subTest(timeout=timeout):
                self.assertEqual(check_timeout(timeout), timeout)

        for timeout in [0, -1, 901, 1000, 60.5, "60", True, None]:
            with self.subTest(timeout=timeout):
                with self.assertRaises(TimeoutOutOfRange):
                    check_timeout(timeout)

    def test_timeout_limit_can_be_tightened_not_raised(self):
        with self.assertRaises(TimeoutOutOfRange):
            check_timeout(600, max_timeout_seconds=300)
        with self.assertRaises(TimeoutOutOfRange):
            check_timeout(1000, max_timeout_seconds=3600)

    def test_failed_binding_keeps_its_name(self):
        with self.assertRaises(TimeoutOutOfRange):
            self._create(timeout=1000)
        self.assertEqual(self.registry.list_names(DEV), ["elsa-data-beacon"])
        self.assertIsNone(self.registry.get(DEV, "elsa-data-beacon"))
        with self.assertRaises(DuplicateBindingName):
            self._create(timeout=60)

    def test_duplicate_name_in_same_target(self):
        self._create()
        with self.assertRaises(DuplicateBindingName) as ctx:
            self._create(identity=beacon_identity("OtherRole"))
        self.assertEqual(ctx.exception.violations[0].observed, "elsa-data-beacon")

    def test_same_name_in_other_target(self):
        other = DeploymentTarget(account="843407916570", region="us-east-1")
        self._create()
        binding = self._create(target=other)
        self.assertEqual(self.registry.list_names(other), [binding.name])

    def test_architectures(self):
        self.assertEqual(Architecture.parse("ARM_64"), Architecture.ARM64)
        self.assertEqual(Architecture.parse("arm64"), Architecture.ARM64)
        self.assertEqual(Architecture.parse("x86_64"), Architecture.X86_64)
        self.assertEqual(Architecture.parse("X86-64"), Architecture.X86_64)
        with self.assertRaises(InvalidBindingParameter):
            Architecture.parse("mips")
        with self.assertRaises(InvalidBindingParameter):
            self._create(architecture="riscv64")

    def test_invalid_names(self):
        for name in ["", "elsa data beacon", "x" * 65, None, 123]:
            with self.subTest(name=name):
                with self.assertRaises(InvalidBindingParameter):
                    self._create(name=name)
        self.assertEqual(self.registry.list_names(DEV), [])

    def test_invalid_logical_id(self):
        for i, logical_id in enumerate(["beacon-handler", 42]):
            with self.subTest(logical_id=logical_id):
                with self.assertRaises(InvalidBindingParameter):
                    self._create(name=f"beacon-{i}", logical_id=logical_id)

    def test_identity_required(self):
        with self.assertRaises(InvalidBindingParameter):
            self._create(identity=None)

    def test_images(self):
        self.assertEqual(ImageArtifactLocator.parse(ECR_IMAGE).source, ImageSource.REGISTRY)
        self.assertEqual(ImageArtifactLocator.parse("application/lambda/beacon").source, ImageSource.ASSET)

        digest = ECR_IMAGE.split(":latest")[0] + "@sha256:" + "a" * 64
        self.assertEqual(ImageArtifactLocator.registry(digest).location, digest)

        with self.assertRaises(InvalidBindingParameter):
            ImageArtifactLocator.asset("  ")
        with self.assertRaises(InvalidBindingParameter):
            ImageArtifactLocator.parse({"source": "registry", "location": "docker.io/beacon"})
        with self.assertRaises(InvalidBindingParameter):
            ImageArtifactLocator.parse({"source": "s3", "location": "bucket/key"})
        with self.assertRaises(InvalidBindingParameter):
            ImageArtifactLocator.parse({"source": "asset", "location": 5})

    def test_default_logical_id(self):
        self.assertEqual(default_logical_id("elsa-data-beacon"), "ElsaDataBeacon")
        self.assertEqual(default_logical_id("beacon_v2"), "BeaconV2")
        self.assertEqual(default_logical_id("10g-beacon"), "Fn10gBeacon")


if __name__ == "__main__":
    unittest.main()
