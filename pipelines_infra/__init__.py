"""Pulumi components for a CDK pipeline that updates itself."""

from pipelines_infra.components.pipeline_actions import (
    ActionBindOptions,
    ActionConfig,
    ActionProperties,
    Artifact,
    CodeBuildAction,
    PipelineAction,
    StageInfo,
    pipeline_stage,
)
from pipelines_infra.components.pipeline_project import PipelineProject
from pipelines_infra.components.self_mutating_pipeline import (
    SelfMutatingPipeline,
)
from pipelines_infra.components.update_pipeline_action import (
    SelfMutationConfig,
    UpdatePipelineAction,
)
from pipelines_infra.shared.policies import PolicyStatement

__all__ = [
    "ActionBindOptions",
    "ActionConfig",
    "ActionProperties",
    "Artifact",
    "CodeBuildAction",
    "PipelineAction",
    "PipelineProject",
    "PolicyStatement",
    "SelfMutatingPipeline",
    "SelfMutationConfig",
    "StageInfo",
    "UpdatePipelineAction",
    "pipeline_stage",
]
