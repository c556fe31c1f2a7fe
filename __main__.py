"""Main Pulumi program for the self-mutating pipeline."""

import pulumi

from pipelines_infra.components.self_mutating_pipeline import (
    SelfMutatingPipeline,
)
from pipelines_infra.shared.build_utils import (
    default_pipeline_stack_name,
    resolve_self_mutation_config,
)

config = pulumi.Config("self-mutation")

cli_version, project_name, log_retention_days = resolve_self_mutation_config()
pipeline_stack_name = (
    config.get("pipeline-stack-name") or default_pipeline_stack_name()
)

pipeline = SelfMutatingPipeline(
    "pipelines",
    pipeline_stack_name=pipeline_stack_name,
    cli_version=cli_version,
    project_name=project_name,
    log_retention_days=log_retention_days,
    notification_target_arn=config.get("notification-target-arn"),
)

pulumi.export("pipeline_name", pipeline.pipeline.name)
pulumi.export("artifact_bucket", pipeline.artifact_bucket.bucket)
pulumi.export(
    "self_mutation_project", pipeline.update_action.project.project_name
)
