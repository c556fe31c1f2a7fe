"""Unit tests for the CodePipeline action contract."""

# pylint: disable=redefined-outer-name

import json

import pulumi
import pytest
from pulumi import Output
from pulumi_aws.iam import Role
from pulumi_aws.s3 import Bucket

from pipelines_infra.components.pipeline_actions import (
    ActionBindOptions,
    ActionConfig,
    ActionProperties,
    Artifact,
    CodeBuildAction,
    StageInfo,
    pipeline_stage,
)
from pipelines_infra.components.pipeline_project import PipelineProject
from pipelines_infra.shared.buildspecs import self_mutation_buildspec


def _project(name: str) -> PipelineProject:
    return PipelineProject(
        name,
        buildspec=self_mutation_buildspec(
            pipeline_stack_name="Prod", cli_version=None
        ),
    )


def _bind_options(prefix: str) -> ActionBindOptions:
    return ActionBindOptions(
        role=Role(f"{prefix}-pl-role", assume_role_policy="{}"),
        bucket=Bucket(f"{prefix}-bucket"),
    )


@pytest.mark.unit
class TestValueTypes:
    """Artifact, ActionProperties and ActionConfig."""

    @pytest.mark.parametrize("name", ["", "   "])
    def test_artifact_requires_name(self, name):
        with pytest.raises(ValueError, match="Artifact name"):
            Artifact(name)

    def test_action_properties_require_name(self):
        with pytest.raises(ValueError, match="action_name"):
            ActionProperties(action_name="", category="Build", provider="X")

    def test_to_stage_action_args(self):
        properties = ActionProperties(
            action_name="Build",
            category="Build",
            provider="CodeBuild",
            inputs=(Artifact("Source"),),
            outputs=(Artifact("Built"),),
            run_order=2,
        )
        args = ActionConfig({"ProjectName": "proj"}).to_stage_action_args(
            properties
        )

        assert args.name == "Build"
        assert args.category == "Build"
        assert args.owner == "AWS"
        assert args.provider == "CodeBuild"
        assert args.version == "1"
        assert args.input_artifacts == ["Source"]
        assert args.output_artifacts == ["Built"]
        assert args.configuration == {"ProjectName": "proj"}
        assert args.run_order == 2

    def test_to_stage_action_args_without_artifacts(self):
        properties = ActionProperties(
            action_name="Approve", category="Approval", provider="Manual"
        )
        args = ActionConfig().to_stage_action_args(properties)

        assert args.input_artifacts is None
        assert args.output_artifacts is None
        assert args.configuration == {}


@pytest.mark.unit
class TestCodeBuildAction:
    """Binding and state change rules."""

    def test_action_properties(self):
        action = CodeBuildAction(
            action_name="Build",
            project=_project("props"),
            input=Artifact("Source"),
        )

        assert action.action_properties == ActionProperties(
            action_name="Build",
            category="Build",
            provider="CodeBuild",
            inputs=(Artifact("Source"),),
        )

    def test_on_state_change_requires_bind(self):
        action = CodeBuildAction(
            action_name="Build",
            project=_project("unbound"),
            input=Artifact("Source"),
        )

        with pytest.raises(RuntimeError, match="must be bound"):
            action.on_state_change("rule")

    @pulumi.runtime.test
    def test_bind_returns_project_configuration(self):
        project = _project("bound")
        action = CodeBuildAction(
            action_name="Build", project=project, input=Artifact("Source")
        )
        config = action.bind(
            project, StageInfo("my-pipeline", "Build"), _bind_options("bound")
        )

        def check(args):
            configured_name, project_name = args
            assert configured_name == project_name == "bound-project"

        return Output.all(
            config.configuration["ProjectName"], project.project_name
        ).apply(check)

    @pulumi.runtime.test
    def test_on_state_change_matches_action(self):
        project = _project("events")
        action = CodeBuildAction(
            action_name="Build", project=project, input=Artifact("Source")
        )
        action.bind(
            project, StageInfo("my-pipeline", "Deploy"), _bind_options("events")
        )
        rule = action.on_state_change(
            "build-state", options={"description": "Build state changes"}
        )

        def check(args):
            pattern, description = args
            pattern = json.loads(pattern)
            assert pattern["source"] == ["aws.codepipeline"]
            assert pattern["detail"] == {
                "pipeline": ["my-pipeline"],
                "stage": ["Deploy"],
                "action": ["Build"],
            }
            assert description == "Build state changes"

        return Output.all(rule.event_pattern, rule.description).apply(check)

    @pytest.fixture
    def mocked_bind(self, mocker):
        """Bind against a mocked project without declaring resources."""
        mocker.patch("pipelines_infra.components.pipeline_actions.RolePolicy")
        project = mocker.Mock()
        action = CodeBuildAction(
            action_name="Build", project=project, input=Artifact("Source")
        )
        return action, project

    def test_bind_grants_artifacts_per_stage(self, mocked_bind, mocker):
        action, project = mocked_bind
        scope, options = mocker.Mock(), mocker.Mock()

        action.bind(scope, StageInfo("my-pipeline", "Build"), options)
        action.bind(scope, StageInfo("my-pipeline", "Test"), options)

        assert [
            c.kwargs["stage_name"]
            for c in project.grant_artifact_access.call_args_list
        ] == ["Build", "Test"]

    @pytest.mark.parametrize("reserved", ["event_pattern", "opts"])
    def test_on_state_change_rejects_reserved_options(
        self, mocked_bind, mocker, reserved
    ):
        action, _ = mocked_bind
        event_rule = mocker.patch(
            "pipelines_infra.components.pipeline_actions.EventRule"
        )
        action.bind(
            mocker.Mock(), StageInfo("my-pipeline", "Build"), mocker.Mock()
        )

        with pytest.raises(ValueError, match=reserved):
            action.on_state_change("rule", options={reserved: None})
        event_rule.assert_not_called()


@pytest.mark.unit
class TestPipelineStage:
    """Stage assembly."""

    @pulumi.runtime.test
    def test_binds_every_action(self):
        first = _project("stage-first")
        second = _project("stage-second")
        actions = [
            CodeBuildAction(
                action_name="First", project=first, input=Artifact("Source")
            ),
            CodeBuildAction(
                action_name="Second",
                project=second,
                input=Artifact("Source"),
                run_order=2,
            ),
        ]
        stage = pipeline_stage(
            first,
            StageInfo("my-pipeline", "Build"),
            actions,
            _bind_options("stage"),
        )

        assert stage.name == "Build"
        assert [a.name for a in stage.actions] == ["First", "Second"]
        assert [a.run_order for a in stage.actions] == [None, 2]

        def check(name):
            assert name == "stage-second-project"

        return Output.from_input(
            stage.actions[1].configuration["ProjectName"]
        ).apply(check)


@pytest.mark.unit
class TestArtifactAccess:
    """Artifact bucket grants on the project role."""

    def test_one_policy_per_stage(self, mocker):
        project = _project("two-stage")
        role_policy = mocker.patch(
            "pipelines_infra.components.pipeline_project.RolePolicy"
        )

        for stage_name in ("Build", "Test"):
            project.grant_artifact_access(
                "arn:aws:s3:::artifacts", parent=project, stage_name=stage_name
            )

        assert [c.args[0] for c in role_policy.call_args_list] == [
            "two-stage-build-cb-artifacts",
            "two-stage-test-cb-artifacts",
        ]
