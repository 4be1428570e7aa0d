"""Bucket access policy: the desired document and canonical comparison."""

from __future__ import annotations

import enum
import json
from dataclasses import dataclass
from functools import lru_cache
from typing import Any

POLICY_VERSION = "2012-10-17"


class PolicyStatus(str, enum.Enum):
    PRESENT = "present"
    ABSENT = "absent"
    UNREADABLE = "unreadable"


@dataclass(frozen=True)
class PolicyRead:
    """Outcome of reading a bucket policy.

    ``ABSENT`` means the store reported that no policy is attached.
    ``UNREADABLE`` means the read itself failed; ``error`` carries the reason.
    """

    status: PolicyStatus
    document: str | None = None
    error: str | None = None

    @classmethod
    def present(cls, document: str) -> PolicyRead:
        return cls(PolicyStatus.PRESENT, document=document)

    @classmethod
    def absent(cls) -> PolicyRead:
        return cls(PolicyStatus.ABSENT)

    @classmethod
    def unreadable(cls, error: str) -> PolicyRead:
        return cls(PolicyStatus.UNREADABLE, error=error)


@lru_cache(maxsize=None)
def desired_policy(bucket: str) -> str:
    """Return the public-read policy for ``bucket`` as a JSON string.

    Anonymous clients may read objects and the bucket location; uploads stay
    authenticated.
    """

    document = {
        "Version": POLICY_VERSION,
        "Statement": [
            {
                "Sid": "AllowPublicReadGetObject",
                "Effect": "Allow",
                "Principal": {"AWS": ["*"]},
                "Action": ["s3:GetObject"],
                "Resource": [f"arn:aws:s3:::{bucket}/*"],
            },
            {
                "Sid": "AllowPublicGetBucketLocation",
                "Effect": "Allow",
                "Principal": {"AWS": ["*"]},
                "Action": ["s3:GetBucketLocation"],
                "Resource": [f"arn:aws:s3:::{bucket}"],
            },
        ],
    }
    return json.dumps(document)


def canonical_dumps(value: Any) -> str:
    """Serialize with sorted object keys; array order is preserved."""

    return json.dumps(value, sort_keys=True, separators=(",", ":"))


def policy_equals(current: str, desired: str) -> bool:
    """Compare two policy documents structurally, ignoring key order and whitespace."""

    try:
        return canonical_dumps(json.loads(current)) == canonical_dumps(json.loads(desired))
    except (TypeError, ValueError):
        return current.strip() == desired.strip()


__all__ = [
    "PolicyRead",
    "PolicyStatus",
    "canonical_dumps",
    "desired_policy",
    "policy_equals",
]
