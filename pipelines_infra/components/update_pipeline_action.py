"""
update_pipeline_action.py

Self-mutation action for a CDK pipeline.

Declares a CodeBuild project that installs the CDK CLI and redeploys the
pipeline stack from the cloud assembly produced by the synth step, and
exposes it as a CodePipeline Build action.

Lifecycle:
- UpdatePipelineAction(name, config) only stores the config
- finalize() declares the project and the inner CodeBuildAction, once
- bind() / on_state_change() forward to the inner action
"""

# pylint: disable=import-error

from dataclasses import dataclass
from typing import Any, Mapping, Optional

import pulumi
from pulumi import ResourceOptions
from pulumi_aws.cloudwatch import EventRule

from pipelines_infra.components.pipeline_actions import (
    ActionBindOptions,
    ActionConfig,
    ActionProperties,
    Artifact,
    CodeBuildAction,
    StageInfo,
)
from pipelines_infra.components.pipeline_project import PipelineProject
from pipelines_infra.shared.build_utils import DEFAULT_LOG_RETENTION_DAYS
from pipelines_infra.shared.buildspecs import (
    embedded_assembly_path,
    self_mutation_buildspec,
)
from pipelines_infra.shared.policies import self_mutation_policy_statements

SELF_MUTATE_ACTION_NAME = "SelfMutate"


@dataclass(frozen=True)
class SelfMutationConfig:
    """Inputs for the self-mutation action."""

    cloud_assembly_input: Artifact  # artifact holding the cloud assembly
    pipeline_stack_name: str
    cli_version: Optional[str] = None  # None installs the latest CDK CLI
    project_name: Optional[str] = None  # None lets Pulumi generate a name
    stage_path: Optional[str] = None  # path of the enclosing stage, if nested
    log_retention_days: int = DEFAULT_LOG_RETENTION_DAYS

    def __post_init__(self) -> None:
        if not isinstance(self.cloud_assembly_input, Artifact):
            raise ValueError("cloud_assembly_input must be an Artifact")
        if not self.pipeline_stack_name or not self.pipeline_stack_name.strip():
            raise ValueError("pipeline_stack_name must be a non-empty string")
        if self.log_retention_days <= 0:
            raise ValueError(
                "log_retention_days must be positive, "
                f"got {self.log_retention_days}"
            )


class UpdatePipelineAction:
    """Action that redeploys the pipeline stack from its own cloud assembly.

    The pipeline adds this action automatically; there is normally no need
    to create one by hand.
    """

    def __init__(self, name: str, config: SelfMutationConfig) -> None:
        self.name = name
        self.config = config
        self._action: Optional[CodeBuildAction] = None
        self._project: Optional[PipelineProject] = None

        pulumi.log.debug(
            f"Self-mutation action '{name}' targets stack "
            f"'{config.pipeline_stack_name}'"
        )

    @property
    def action_properties(self) -> ActionProperties:
        if self._action is not None:
            return self._action.action_properties
        # Derived from the config so it is valid before finalize()
        return ActionProperties(
            action_name=SELF_MUTATE_ACTION_NAME,
            category="Build",
            provider="CodeBuild",
            inputs=(self.config.cloud_assembly_input,),
        )

    @property
    def finalized(self) -> bool:
        return self._action is not None

    @property
    def project(self) -> Optional[PipelineProject]:
        return self._project

    def finalize(
        self, opts: Optional[ResourceOptions] = None
    ) -> CodeBuildAction:
        """Declare the self-mutation project and the inner CodeBuild action."""
        if self._action is not None:
            raise RuntimeError(
                f"Self-mutation action '{self.name}' is already finalized"
            )

        buildspec = self_mutation_buildspec(
            pipeline_stack_name=self.config.pipeline_stack_name,
            cli_version=self.config.cli_version,
            assembly_path=embedded_assembly_path(self.config.stage_path),
        )
        pulumi.log.debug(
            f"Self-mutation commands: {buildspec['phases']['install']['commands']}"
            f" {buildspec['phases']['build']['commands']}"
        )

        project = PipelineProject(
            f"{self.name}-self-mutation",
            buildspec=buildspec,
            project_name=self.config.project_name,
            log_retention_days=self.config.log_retention_days,
            opts=opts,
        )
        for statement in self_mutation_policy_statements():
            project.add_to_role_policy(statement)
        project.seal()

        self._project = project
        self._action = CodeBuildAction(
            action_name=SELF_MUTATE_ACTION_NAME,
            input=self.config.cloud_assembly_input,
            project=project,
        )

        version = self.config.cli_version or "latest"
        pulumi.log.info(
            f"🔄 Self-mutation '{self.name}' will deploy "
            f"'{self.config.pipeline_stack_name}' with CDK CLI {version}"
        )
        return self._action

    def bind(
        self,
        scope: pulumi.Resource,
        stage: StageInfo,
        options: ActionBindOptions,
    ) -> ActionConfig:
        if self._action is None:
            self.finalize(ResourceOptions(parent=scope))
        return self._action.bind(scope, stage, options)

    def on_state_change(
        self,
        name: str,
        target: Optional[pulumi.Input[str]] = None,
        options: Optional[Mapping[str, Any]] = None,
    ) -> EventRule:
        if self._action is None:
            raise RuntimeError(
                f"Self-mutation action '{self.name}' must be finalized before "
                "registering state change rules"
            )
        return self._action.on_state_change(name, target, options)
