#!/usr/bin/env python3
"""
Buildspec generator for the pipeline self-mutation CodeBuild job.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

CDK_CLI_PACKAGE = "aws-cdk"


def embedded_assembly_path(stage_path: Optional[str]) -> str:
    """
    Directory of a stage's cloud assembly relative to the app assembly root.

    The top-level app synthesizes into the root itself (``"."``); nested
    stages land in ``assembly-<path-with-dashes>``.

    Only one level of nesting is expressible. CDK places a stage nested in
    another stage at ``assembly-A/assembly-A-B``, while ``"A/B"`` here
    yields ``assembly-A-B`` and misses the parent directory.
    """
    if not stage_path:
        return "."
    artifact_id = stage_path.replace("/", "-").strip("-")
    if not artifact_id:
        return "."
    return f"assembly-{artifact_id}"


def install_command(cli_version: Optional[str]) -> str:
    suffix = f"@{cli_version}" if cli_version else ""
    return f"npm install -g {CDK_CLI_PACKAGE}{suffix}"


def deploy_command(pipeline_stack_name: str, assembly_path: str) -> str:
    # The cloud assembly is unpacked into the current directory by CodePipeline
    return (
        f"cdk -a {assembly_path} deploy {pipeline_stack_name} "
        "--require-approval=never --verbose"
    )


def self_mutation_buildspec(
    *,
    pipeline_stack_name: str,
    cli_version: Optional[str],
    assembly_path: str = ".",
) -> Dict[str, Any]:
    """Buildspec that reinstalls the CDK CLI and redeploys the pipeline stack."""
    return {
        "version": "0.2",
        "phases": {
            "install": {
                "commands": [install_command(cli_version)],
            },
            "build": {
                "commands": [
                    deploy_command(pipeline_stack_name, assembly_path),
                ]
            },
        },
    }
