"""
pipeline_project.py

CodeBuild project meant to run as a CodePipeline action.

Declares:
- A service role trusted by CodeBuild
- A CloudWatch log group with retention
- The CodeBuild project with CODEPIPELINE source/artifacts
- One role policy for the statements added through add_to_role_policy()
"""

# pylint: disable=import-error

import json
from typing import Any, Dict, List, Optional, Tuple

import pulumi
from pulumi import ComponentResource, Output, ResourceOptions
from pulumi_aws.codebuild import (
    Project,
    ProjectArtifactsArgs,
    ProjectEnvironmentArgs,
    ProjectLogsConfigArgs,
    ProjectLogsConfigCloudwatchLogsArgs,
    ProjectSourceArgs,
)
from pulumi_aws.iam import Role as ROLE
from pulumi_aws.iam import RolePolicy

from pipelines_infra.shared.build_utils import (
    DEFAULT_LOG_RETENTION_DAYS,
    make_log_group,
)
from pipelines_infra.shared.policies import (
    PolicyStatement,
    artifact_bucket_statements,
    log_statements,
    policy_document,
    service_trust_policy,
)


class PipelineProject(ComponentResource):
    """CodeBuild project whose source and artifacts come from CodePipeline.

    Statements passed to ``add_to_role_policy`` are collected and written as
    a single role policy when ``seal`` is called.
    """

    def __init__(
        self,
        name: str,
        *,
        buildspec: Dict[str, Any],
        project_name: Optional[str] = None,
        log_retention_days: int = DEFAULT_LOG_RETENTION_DAYS,
        image: str = "aws/codebuild/standard:7.0",
        compute_type: str = "BUILD_GENERAL1_SMALL",
        build_timeout: int = 60,
        opts: Optional[ResourceOptions] = None,
    ) -> None:
        super().__init__("pipelines:codebuild:PipelineProject", name, {}, opts)

        self.buildspec = buildspec
        self._statements: List[PolicyStatement] = []
        self._policy: Optional[RolePolicy] = None
        self._sealed = False

        self.role = ROLE(
            f"{name}-cb-role",
            assume_role_policy=json.dumps(
                service_trust_policy(["codebuild.amazonaws.com"])
            ),
            opts=ResourceOptions(parent=self),
        )

        self.log_group = make_log_group(
            f"{name}-logs",
            retention_days=log_retention_days,
            parent=self,
        )

        RolePolicy(
            f"{name}-cb-logs",
            role=self.role.id,
            policy=self.log_group.arn.apply(
                lambda arn: json.dumps(policy_document(log_statements(arn)))
            ),
            opts=ResourceOptions(parent=self),
        )

        self.project = Project(
            f"{name}-project",
            name=project_name,
            service_role=self.role.arn,
            source=ProjectSourceArgs(
                type="CODEPIPELINE",
                buildspec=json.dumps(buildspec),
            ),
            artifacts=ProjectArtifactsArgs(type="CODEPIPELINE"),
            environment=ProjectEnvironmentArgs(
                type="LINUX_CONTAINER",
                compute_type=compute_type,
                image=image,
            ),
            build_timeout=build_timeout,
            logs_config=ProjectLogsConfigArgs(
                cloudwatch_logs=ProjectLogsConfigCloudwatchLogsArgs(
                    status="ENABLED",
                    group_name=self.log_group.name,
                ),
            ),
            opts=ResourceOptions(parent=self, depends_on=[self.log_group]),
        )

        self.logical_name = name
        self.project_name = self.project.name
        self.arn = self.project.arn

        pulumi.log.info(f"Declared CodeBuild project '{name}'")

        self.register_outputs(
            {
                "project_name": self.project.name,
                "project_arn": self.project.arn,
                "role_arn": self.role.arn,
            }
        )

    @property
    def policy_statements(self) -> Tuple[PolicyStatement, ...]:
        return tuple(self._statements)

    @property
    def sealed(self) -> bool:
        return self._sealed

    def add_to_role_policy(self, statement: PolicyStatement) -> None:
        if self.sealed:
            raise RuntimeError(
                f"Role policy for project '{self.logical_name}' is already sealed"
            )
        self._statements.append(statement)

    def seal(self) -> Optional[RolePolicy]:
        """Write the collected statements as one role policy."""
        if self.sealed:
            raise RuntimeError(
                f"Role policy for project '{self.logical_name}' is already sealed"
            )
        self._sealed = True
        if not self._statements:
            return None

        document = json.dumps(policy_document(self._statements))
        self._policy = RolePolicy(
            f"{self.logical_name}-cb-policy",
            role=self.role.id,
            policy=document,
            opts=ResourceOptions(parent=self),
        )
        pulumi.log.debug(
            f"Attached {len(self._statements)} statements to '{self.logical_name}'"
        )
        return self._policy

    def grant_artifact_access(
        self,
        bucket_arn: pulumi.Input[str],
        *,
        parent: pulumi.Resource,
        stage_name: str,
    ) -> RolePolicy:
        """
        Let the project read and write the pipeline artifact bucket.

        One policy per stage, so a project bound into several stages gets
        distinct resource names.
        """
        return RolePolicy(
            f"{self.logical_name}-{stage_name.lower()}-cb-artifacts",
            role=self.role.id,
            policy=Output.from_input(bucket_arn).apply(
                lambda arn: json.dumps(
                    policy_document(artifact_bucket_statements(arn))
                )
            ),
            opts=ResourceOptions(parent=parent),
        )
