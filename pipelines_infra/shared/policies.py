"""
IAM policy statements used by the self-mutation CodeBuild project.

Statements are plain immutable values; rendering to the JSON document that
``RolePolicy`` expects happens in :func:`policy_document`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Sequence, Tuple

POLICY_VERSION = "2012-10-17"

BOOTSTRAP_ROLE_PATTERNS: Tuple[str, ...] = (
    "arn:*:iam::*:role/*-deploy-role-*",
    "arn:*:iam::*:role/*-publishing-role-*",
)


@dataclass(frozen=True)
class PolicyStatement:
    """A single IAM statement: actions allowed (or denied) on resources."""

    actions: Tuple[str, ...]
    resources: Tuple[str, ...]
    effect: str = "Allow"

    def __post_init__(self) -> None:
        if not self.actions:
            raise ValueError("PolicyStatement requires at least one action")
        if not self.resources:
            raise ValueError("PolicyStatement requires at least one resource")
        if self.effect not in ("Allow", "Deny"):
            raise ValueError(f"Invalid effect '{self.effect}'")
        # Accept lists from callers but keep the stored value hashable
        object.__setattr__(self, "actions", tuple(self.actions))
        object.__setattr__(self, "resources", tuple(self.resources))

    def to_json(self) -> Dict[str, Any]:
        return {
            "Effect": self.effect,
            "Action": list(self.actions),
            "Resource": list(self.resources),
        }


def self_mutation_policy_statements() -> Tuple[PolicyStatement, ...]:
    """The statements the self-mutation job needs to run ``cdk deploy``."""
    return (
        # Assume the bootstrap deploy/publishing roles
        PolicyStatement(
            actions=("sts:AssumeRole",),
            resources=BOOTSTRAP_ROLE_PATTERNS,
        ),
        # `cdk deploy` checks the bootstrap stack status
        PolicyStatement(
            actions=("cloudformation:DescribeStacks",),
            resources=("*",),
        ),
        # S3 checks for the presence of ListBucket
        PolicyStatement(
            actions=("s3:ListBucket",),
            resources=("*",),
        ),
    )


def log_statements(log_group_arn: str) -> List[PolicyStatement]:
    """Statements letting a CodeBuild role write to its own log group."""
    return [
        PolicyStatement(
            actions=(
                "logs:CreateLogGroup",
                "logs:CreateLogStream",
                "logs:PutLogEvents",
            ),
            resources=(log_group_arn, f"{log_group_arn}:*"),
        )
    ]


def artifact_bucket_statements(bucket_arn: str) -> List[PolicyStatement]:
    """Read/write access to a pipeline artifact bucket."""
    return [
        PolicyStatement(
            actions=("s3:GetObject", "s3:GetObjectVersion", "s3:PutObject"),
            resources=(f"{bucket_arn}/*",),
        ),
        PolicyStatement(
            actions=("s3:GetBucketAcl", "s3:GetBucketLocation"),
            resources=(bucket_arn,),
        ),
    ]


def policy_document(statements: Iterable[PolicyStatement]) -> Dict[str, Any]:
    return {
        "Version": POLICY_VERSION,
        "Statement": [statement.to_json() for statement in statements],
    }


def service_trust_policy(services: Sequence[str]) -> Dict[str, Any]:
    """Assume-role policy allowing the given AWS service principals."""
    return {
        "Version": POLICY_VERSION,
        "Statement": [
            {
                "Effect": "Allow",
                "Principal": {"Service": service},
                "Action": "sts:AssumeRole",
            }
            for service in services
        ],
    }
