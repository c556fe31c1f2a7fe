"""
pipeline_actions.py

Action contract for CodePipeline stages declared with pulumi_aws.

An action exposes its static properties, binds to a stage (declaring any
permissions it needs on the pipeline role) and can register CloudWatch
Events rules for its own state changes.
"""

# pylint: disable=import-error

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Protocol, Sequence, Tuple

import pulumi
from pulumi import Output, ResourceOptions
from pulumi_aws.cloudwatch import EventRule, EventTarget
from pulumi_aws.codepipeline import PipelineStageActionArgs, PipelineStageArgs
from pulumi_aws.iam import Role, RolePolicy
from pulumi_aws.s3 import Bucket

from pipelines_infra.components.pipeline_project import PipelineProject
from pipelines_infra.shared.policies import PolicyStatement, policy_document

# Keyword arguments on_state_change sets itself
_RESERVED_RULE_OPTIONS = frozenset({"event_pattern", "opts"})


@dataclass(frozen=True)
class Artifact:
    """Named handle to an artifact passed between pipeline actions."""

    name: str

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise ValueError("Artifact name must be a non-empty string")


@dataclass(frozen=True)
class ActionProperties:
    action_name: str
    category: str
    provider: str
    owner: str = "AWS"
    version: str = "1"
    inputs: Tuple[Artifact, ...] = ()
    outputs: Tuple[Artifact, ...] = ()
    run_order: Optional[int] = None

    def __post_init__(self) -> None:
        if not self.action_name or not self.action_name.strip():
            raise ValueError("action_name must be a non-empty string")


@dataclass(frozen=True)
class StageInfo:
    """The pipeline and stage an action is being bound into."""

    pipeline_name: pulumi.Input[str]
    stage_name: str


@dataclass(frozen=True)
class ActionBindOptions:
    role: Role  # pipeline role
    bucket: Bucket  # pipeline artifact store


@dataclass(frozen=True)
class ActionConfig:
    configuration: Dict[str, Any] = field(default_factory=dict)

    def to_stage_action_args(
        self, properties: ActionProperties
    ) -> PipelineStageActionArgs:
        return PipelineStageActionArgs(
            name=properties.action_name,
            category=properties.category,
            owner=properties.owner,
            provider=properties.provider,
            version=properties.version,
            input_artifacts=[a.name for a in properties.inputs] or None,
            output_artifacts=[a.name for a in properties.outputs] or None,
            configuration=self.configuration,
            run_order=properties.run_order,
        )


class PipelineAction(Protocol):
    @property
    def action_properties(self) -> ActionProperties: ...

    def bind(
        self,
        scope: pulumi.Resource,
        stage: StageInfo,
        options: ActionBindOptions,
    ) -> ActionConfig: ...

    def on_state_change(
        self,
        name: str,
        target: Optional[pulumi.Input[str]] = None,
        options: Optional[Mapping[str, Any]] = None,
    ) -> EventRule: ...


class CodeBuildAction:
    """Runs a PipelineProject as a Build action."""

    def __init__(
        self,
        *,
        action_name: str,
        project: PipelineProject,
        input: Artifact,  # pylint: disable=redefined-builtin
        outputs: Sequence[Artifact] = (),
        run_order: Optional[int] = None,
    ) -> None:
        self._project = project
        self._properties = ActionProperties(
            action_name=action_name,
            category="Build",
            provider="CodeBuild",
            inputs=(input,),
            outputs=tuple(outputs),
            run_order=run_order,
        )
        self._scope: Optional[pulumi.Resource] = None
        self._stage: Optional[StageInfo] = None

    @property
    def action_properties(self) -> ActionProperties:
        return self._properties

    @property
    def project(self) -> PipelineProject:
        return self._project

    def bind(
        self,
        scope: pulumi.Resource,
        stage: StageInfo,
        options: ActionBindOptions,
    ) -> ActionConfig:
        RolePolicy(
            f"{self._project.logical_name}-{stage.stage_name.lower()}-pl-cb",
            role=options.role.id,
            policy=self._project.arn.apply(
                lambda arn: json.dumps(
                    policy_document(
                        [
                            PolicyStatement(
                                actions=(
                                    "codebuild:BatchGetBuilds",
                                    "codebuild:StartBuild",
                                    "codebuild:StopBuild",
                                ),
                                resources=(arn,),
                            )
                        ]
                    )
                )
            ),
            opts=ResourceOptions(parent=scope),
        )
        self._project.grant_artifact_access(
            options.bucket.arn, parent=scope, stage_name=stage.stage_name
        )

        self._scope = scope
        self._stage = stage
        pulumi.log.info(
            f"Bound action '{self._properties.action_name}' "
            f"to stage '{stage.stage_name}'"
        )
        return ActionConfig(
            configuration={"ProjectName": self._project.project_name}
        )

    def on_state_change(
        self,
        name: str,
        target: Optional[pulumi.Input[str]] = None,
        options: Optional[Mapping[str, Any]] = None,
    ) -> EventRule:
        """Declare an EventRule firing when this action changes state."""
        if self._stage is None:
            raise RuntimeError(
                f"Action '{self._properties.action_name}' must be bound to a "
                "stage before registering state change rules"
            )
        reserved = sorted(set(options or {}) & _RESERVED_RULE_OPTIONS)
        if reserved:
            raise ValueError(
                f"State change rule options may not set {', '.join(reserved)}"
            )
        stage_name = self._stage.stage_name
        action_name = self._properties.action_name

        rule = EventRule(
            name,
            event_pattern=Output.from_input(self._stage.pipeline_name).apply(
                lambda pipeline: json.dumps(
                    {
                        "source": ["aws.codepipeline"],
                        "detail-type": [
                            "CodePipeline Action Execution State Change"
                        ],
                        "detail": {
                            "pipeline": [pipeline],
                            "stage": [stage_name],
                            "action": [action_name],
                        },
                    }
                )
            ),
            **dict(options or {}),
            opts=ResourceOptions(parent=self._scope),
        )
        if target is not None:
            EventTarget(
                f"{name}-target",
                rule=rule.name,
                arn=target,
                opts=ResourceOptions(parent=self._scope),
            )
        return rule


def pipeline_stage(
    scope: pulumi.Resource,
    stage: StageInfo,
    actions: Sequence[PipelineAction],
    options: ActionBindOptions,
) -> PipelineStageArgs:
    """Bind each action into ``stage`` and build the stage arguments."""
    action_args = []
    for action in actions:
        properties = action.action_properties
        config = action.bind(scope, stage, options)
        action_args.append(config.to_stage_action_args(properties))
    return PipelineStageArgs(name=stage.stage_name, actions=action_args)
