"""
Beacon invocation.

The deployed handler answers one sequence query: is this allele present at
this 1-based coordinate in this VCF? The query engine lives in the container
image; this module builds and checks the request payload and calls the
function by name through the Lambda API.

Request fields follow http://docs.genomebeacons.org/variant-queries/
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import boto3

from .errors import BeaconInvocationError, InvalidBeaconQuery
from .logging_config import event_log

logger = logging.getLogger(__name__)

VCF_SUFFIX = ".vcf.gz"
VCF_INDEX_SUFFIX = ".vcf.gz.tbi"

# The handler reads start as an unsigned 32-bit integer
MAX_START_POSITION = 2 ** 32 - 1

REFERENCE_BASES_PATTERN = re.compile(r'^[ACGTN]+$', re.IGNORECASE)
ALLELE_PATTERN = re.compile(r'^([ACGTN*]+|<[^<>,]+>)$', re.IGNORECASE)

REQUIRED_FIELDS = [
    "vcf_bucket",
    "vcf_key",
    "vcf_index_bucket",
    "vcf_index_key",
    "reference_name",
    "start",
    "reference_bases",
    "alternate_bases",
]


@dataclass(frozen=True)
class BeaconQuery:
    """
    A Beacon sequence query.

    The VCF is bgzip compressed ("*.vcf.gz") with a tabix index beside it
    ("*.vcf.gz.tbi"); start is the 1-based position of reference_bases.
    """
    vcf_bucket: str
    vcf_key: str
    vcf_index_bucket: str
    vcf_index_key: str
    reference_name: str
    start: int
    reference_bases: str
    alternate_bases: str

    def __post_init__(self):
        problems = self.validate()
        if problems:
            raise InvalidBeaconQuery("; ".join(problems))

    def validate(self) -> List[str]:
        problems: List[str] = []

        for name in ("vcf_bucket", "vcf_key", "vcf_index_bucket", "vcf_index_key", "reference_name"):
            value = getattr(self, name)
            if not isinstance(value, str) or not value:
                problems.append(f"{name} must be a non-empty string")

        if isinstance(self.vcf_key, str) and self.vcf_key and not self.vcf_key.endswith(VCF_SUFFIX):
            problems.append(f"Invalid key: {self.vcf_key} (expected {VCF_SUFFIX})")
        if (isinstance(self.vcf_index_key, str) and self.vcf_index_key
                and not self.vcf_index_key.endswith(VCF_INDEX_SUFFIX)):
            problems.append(f"Invalid key: {self.vcf_index_key} (expected {VCF_INDEX_SUFFIX})")

        if (isinstance(self.start, bool) or not isinstance(self.start, int)
                or not 1 <= self.start <= MAX_START_POSITION):
            problems.append(
                f"start must be a 1-based integer position up to {MAX_START_POSITION}, "
                f"got {self.start!r}"
            )

        if not isinstance(self.reference_bases, str) or not REFERENCE_BASES_PATTERN.match(self.reference_bases):
            problems.append(f"Invalid reference_bases: {self.reference_bases!r}")

        alternates = self.alternate_bases.split(",") if isinstance(self.alternate_bases, str) else []
        if not alternates or not all(ALLELE_PATTERN.match(a) for a in alternates):
            problems.append(f"Invalid alternate_bases: {self.alternate_bases!r}")

        return problems

    @property
    def vcf_id(self) -> str:
        """VCF key without its suffix, the id the handler searches by."""
        return self.vcf_key[:-len(VCF_SUFFIX)]

    def to_dict(self) -> Dict[str, Any]:
        return {name: getattr(self, name) for name in REQUIRED_FIELDS}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BeaconQuery':
        missing = [f for f in REQUIRED_FIELDS if f not in data]
        if missing:
            raise InvalidBeaconQuery(f"Missing required fields: {missing}")
        return cls(**{f: data[f] for f in REQUIRED_FIELDS})


@dataclass(frozen=True)
class BeaconResponse:
    """Whether the queried allele was found."""
    found: bool

    def to_dict(self) -> Dict[str, Any]:
        return {"found": self.found}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BeaconResponse':
        if not isinstance(data, dict) or not isinstance(data.get("found"), bool):
            raise ValueError(f"Unexpected Beacon response: {data!r}")
        return cls(found=data["found"])


class BeaconInvoker:
    """
    Synchronous invoker for a deployed Beacon function.

    The function name must be the compute binding's name.
    """

    def __init__(self, function_name: str, region: Optional[str] = None, client: Any = None):
        self.function_name = function_name
        self._region = region
        self._client = client

    def _get_client(self):
        """Lazy-load boto3 client."""
        if self._client is None:
            self._client = boto3.client("lambda", region_name=self._region)
        return self._client

    def invoke(self, query: BeaconQuery) -> BeaconResponse:
        """
        Invoke the function with a query and decode the response.

        Raises:
            BeaconInvocationError: if Lambda reports a function error
        """
        client = self._get_client()
        logger.debug("Invoking %s with %s", self.function_name, query.to_dict())

        resp = client.invoke(
            FunctionName=self.function_name,
            InvocationType="RequestResponse",
            Payload=json.dumps(query.to_dict()).encode("utf-8"),
        )

        raw = resp["Payload"].read()
        payload = json.loads(raw) if raw else None

        function_error = resp.get("FunctionError")
        if function_error:
            event_log.beacon_invoke(
                self.function_name, query.reference_name, query.start,
                function_error=function_error,
            )
            raise BeaconInvocationError(self.function_name, function_error, payload)

        response = BeaconResponse.from_dict(payload)
        event_log.beacon_invoke(
            self.function_name, query.reference_name, query.start, found=response.found
        )
        return response
