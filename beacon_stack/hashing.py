"""
Descriptor hashing.

All hashes use SHA-256 over canonical JSON with lowercase hexadecimal output.
"""

import hashlib
from typing import Any, Dict, Union

from .canonicalization import canonicalize


def sha256_hash(data: Union[bytes, str]) -> str:
    """
    Compute SHA-256 hash.
    
    Returns:
        Hash string in format "sha256:abcdef..."
    """
    if isinstance(data, str):
        data = data.encode('utf-8')
    
    digest = hashlib.sha256(data).hexdigest().lower()
    return f"sha256:{digest}"


def statement_hash(statement: Dict[str, Any]) -> str:
    """Hash of a serialized permission statement."""
    return sha256_hash(canonicalize(statement))


def descriptor_hash(descriptor: Dict[str, Any]) -> str:
    """
    Hash of a serialized deployment descriptor.
    
    Identical assembly inputs always produce identical descriptor hashes.
    """
    return sha256_hash(canonicalize(descriptor))


def template_hash(template: Dict[str, Any]) -> str:
    """Hash of a rendered CloudFormation template."""
    return sha256_hash(canonicalize(template))


def verify_hash(declared_hash: str, obj: Any) -> bool:
    """Recompute the hash of obj and compare with declared_hash."""
    if not declared_hash.startswith("sha256:"):
        return False
    return sha256_hash(canonicalize(obj)) == declared_hash
