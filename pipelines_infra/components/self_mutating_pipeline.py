"""
self_mutating_pipeline.py

CodePipeline that updates itself before doing anything else.

Simple architecture: S3 (cloud assembly zip) → CodePipeline → CodeBuild
(`cdk deploy` of the pipeline stack).
"""

# pylint: disable=import-error

import json
from typing import Optional

import pulumi
from pulumi import ComponentResource, ResourceOptions
from pulumi_aws.codepipeline import (
    Pipeline,
    PipelineArtifactStoreArgs,
    PipelineStageActionArgs,
    PipelineStageArgs,
)
from pulumi_aws.iam import Role as ROLE
from pulumi_aws.iam import RolePolicy

from pipelines_infra.components.pipeline_actions import (
    ActionBindOptions,
    Artifact,
    StageInfo,
    pipeline_stage,
)
from pipelines_infra.components.update_pipeline_action import (
    SelfMutationConfig,
    UpdatePipelineAction,
)
from pipelines_infra.shared.build_utils import (
    DEFAULT_LOG_RETENTION_DAYS,
    make_artifact_bucket,
)
from pipelines_infra.shared.policies import (
    PolicyStatement,
    policy_document,
    service_trust_policy,
)

CLOUD_ASSEMBLY_ARTIFACT = "CloudAssembly"


class SelfMutatingPipeline(ComponentResource):
    """Pipeline whose first stage after Source redeploys the pipeline itself.

    The cloud assembly is expected as a zip uploaded to
    ``s3://<artifact bucket>/<source_object_key>`` by the synth step.
    """

    def __init__(
        self,
        name: str,
        *,
        pipeline_stack_name: str,
        source_object_key: str = "cloud-assembly.zip",
        cli_version: Optional[str] = None,
        project_name: Optional[str] = None,
        log_retention_days: int = DEFAULT_LOG_RETENTION_DAYS,
        notification_target_arn: Optional[pulumi.Input[str]] = None,
        opts: Optional[ResourceOptions] = None,
    ) -> None:
        super().__init__("pipelines:index:SelfMutatingPipeline", name, {}, opts)

        self.pipeline_name = f"{name}-{pulumi.get_stack()}"

        self.artifact_bucket, versioning = make_artifact_bucket(
            name, parent=self
        )

        self.role = ROLE(
            f"{name}-pl-role",
            assume_role_policy=json.dumps(
                service_trust_policy(["codepipeline.amazonaws.com"])
            ),
            opts=ResourceOptions(parent=self),
        )

        RolePolicy(
            f"{name}-pl-s3",
            role=self.role.id,
            policy=self.artifact_bucket.arn.apply(
                lambda arn: json.dumps(
                    policy_document(
                        [
                            PolicyStatement(
                                actions=(
                                    "s3:GetObject",
                                    "s3:GetObjectVersion",
                                    "s3:PutObject",
                                    "s3:GetBucketVersioning",
                                    "s3:ListBucket",
                                ),
                                resources=(arn, f"{arn}/*"),
                            )
                        ]
                    )
                )
            ),
            opts=ResourceOptions(parent=self),
        )

        cloud_assembly = Artifact(CLOUD_ASSEMBLY_ARTIFACT)
        self.update_action = UpdatePipelineAction(
            f"{name}-update",
            SelfMutationConfig(
                cloud_assembly_input=cloud_assembly,
                pipeline_stack_name=pipeline_stack_name,
                cli_version=cli_version,
                project_name=project_name,
                log_retention_days=log_retention_days,
            ),
        )
        self.update_action.finalize(ResourceOptions(parent=self))

        bind_options = ActionBindOptions(
            role=self.role, bucket=self.artifact_bucket
        )
        update_stage = StageInfo(
            pipeline_name=self.pipeline_name, stage_name="UpdatePipeline"
        )

        self.pipeline = Pipeline(
            f"{name}-pipeline",
            name=self.pipeline_name,
            role_arn=self.role.arn,
            artifact_stores=[
                PipelineArtifactStoreArgs(
                    type="S3",
                    location=self.artifact_bucket.bucket,
                )
            ],
            stages=[
                PipelineStageArgs(
                    name="Source",
                    actions=[
                        PipelineStageActionArgs(
                            name="Source",
                            category="Source",
                            owner="AWS",
                            provider="S3",
                            version="1",
                            output_artifacts=[cloud_assembly.name],
                            configuration={
                                "S3Bucket": self.artifact_bucket.bucket,
                                "S3ObjectKey": source_object_key,
                                "PollForSourceChanges": "false",
                            },
                            run_order=1,
                        )
                    ],
                ),
                pipeline_stage(
                    self, update_stage, [self.update_action], bind_options
                ),
            ],
            opts=ResourceOptions(
                parent=self,
                depends_on=[versioning] if versioning else None,
            ),
        )

        self.state_change_rule = None
        if notification_target_arn is not None:
            self.state_change_rule = self.update_action.on_state_change(
                f"{name}-self-mutate-state",
                notification_target_arn,
            )

        self.register_outputs(
            {
                "pipeline_name": self.pipeline.name,
                "artifact_bucket": self.artifact_bucket.bucket,
            }
        )
