#!/usr/bin/env python3
"""
Shared Pulumi utilities for the self-mutating pipeline components.

Goals:
- Provide helpers for artifact buckets and log groups.
- Resolve config flags in one place with a consistent precedence.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional, Tuple

import pulumi
from pulumi import ResourceOptions
from pulumi_aws.cloudwatch import LogGroup
from pulumi_aws.s3 import (
    Bucket,
    BucketServerSideEncryptionConfigurationArgs,
    BucketServerSideEncryptionConfigurationRuleApplyServerSideEncryptionByDefaultArgs,
    BucketServerSideEncryptionConfigurationRuleArgs,
    BucketVersioning,
    BucketVersioningVersioningConfigurationArgs,
)

DEFAULT_CONFIG_NAMESPACE = "self-mutation"
DEFAULT_LOG_RETENTION_DAYS = 14


def make_artifact_bucket(
    name: str,
    *,
    parent: Optional[pulumi.Resource] = None,
    force_destroy: bool = True,
    enable_versioning: bool = True,
    tags: Optional[Mapping[str, str]] = None,
) -> Tuple[Bucket, Optional[BucketVersioning]]:
    """
    Create an S3 bucket for pipeline artifacts with sensible defaults:
    - Force destroy by default to keep dev stacks clean.
    - AES256 encryption.
    - Optional versioning, which CodePipeline S3 sources require.
    """
    bucket = Bucket(
        f"{name}-artifacts",
        force_destroy=force_destroy,
        server_side_encryption_configuration=BucketServerSideEncryptionConfigurationArgs(
            rule=BucketServerSideEncryptionConfigurationRuleArgs(
                apply_server_side_encryption_by_default=BucketServerSideEncryptionConfigurationRuleApplyServerSideEncryptionByDefaultArgs(
                    sse_algorithm="AES256"
                )
            )
        ),
        tags=tags,
        opts=ResourceOptions(parent=parent),
    )

    versioning = None
    if enable_versioning:
        versioning = BucketVersioning(
            f"{name}-artifacts-versioning",
            bucket=bucket.id,
            versioning_configuration=BucketVersioningVersioningConfigurationArgs(
                status="Enabled"
            ),
            opts=ResourceOptions(parent=parent),
        )

    return bucket, versioning


def make_log_group(
    name: str,
    *,
    retention_days: int = DEFAULT_LOG_RETENTION_DAYS,
    parent: Optional[pulumi.Resource] = None,
) -> LogGroup:
    """Create a CloudWatch log group with retention to control costs."""
    if retention_days <= 0:
        raise ValueError(
            f"retention_days must be positive, got {retention_days}"
        )
    return LogGroup(
        name,
        retention_in_days=retention_days,
        opts=ResourceOptions(parent=parent),
    )


def resolve_self_mutation_config(
    namespace: str = DEFAULT_CONFIG_NAMESPACE,
    *,
    cli_version: Optional[str] = None,
    project_name: Optional[str] = None,
    log_retention_days: Optional[int] = None,
) -> Tuple[Optional[str], Optional[str], int]:
    """
    Resolve (cli_version, project_name, log_retention_days).

    Order of precedence for each value:
    1) Explicit argument
    2) Pulumi config key (`cli-version`, `project-name`, `log-retention-days`)
    3) Default (latest CLI, auto-generated name, 14 days)

    A config value shadowed by an explicit argument is logged as a warning.
    Non-positive retention raises ValueError.
    """
    cfg = pulumi.Config(namespace)

    cli_version = _prefer_argument(
        namespace, "cli-version", cli_version, cfg.get("cli-version") or None
    )
    project_name = _prefer_argument(
        namespace, "project-name", project_name, cfg.get("project-name") or None
    )
    log_retention_days = _prefer_argument(
        namespace,
        "log-retention-days",
        log_retention_days,
        cfg.get_int("log-retention-days"),
    )
    if log_retention_days is None:
        log_retention_days = DEFAULT_LOG_RETENTION_DAYS
    if log_retention_days <= 0:
        raise ValueError(
            f"log-retention-days must be positive, got {log_retention_days}"
        )

    return cli_version, project_name, log_retention_days


def _prefer_argument(namespace: str, key: str, argument: Any, configured: Any):
    if argument is None:
        return configured
    if configured is not None and configured != argument:
        pulumi.log.warn(
            f"Ignoring config {namespace}:{key}={configured!r}; "
            f"using explicit value {argument!r}"
        )
    return argument


def default_pipeline_stack_name() -> str:
    """Name the pipeline stack after the Pulumi project and stack."""
    return f"{pulumi.get_project()}-{pulumi.get_stack()}"
