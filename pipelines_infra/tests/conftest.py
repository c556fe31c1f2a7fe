"""pytest configuration and Pulumi mocks for component testing."""

from typing import Any, Dict, List, Tuple

import pulumi
import pytest

MOCK_ACCOUNT_ID = "123456789012"
MOCK_REGION = "us-east-1"


class PipelineMocks(pulumi.runtime.Mocks):
    """Echo inputs back as outputs and fill in names and ARNs."""

    def __init__(self) -> None:
        self.resources: List[pulumi.runtime.MockResourceArgs] = []

    def new_resource(
        self, args: pulumi.runtime.MockResourceArgs
    ) -> Tuple[str, Dict[str, Any]]:
        self.resources.append(args)
        outputs = dict(args.inputs)
        outputs.setdefault("name", args.name)
        outputs.setdefault(
            "arn",
            f"arn:aws:mock:{MOCK_REGION}:{MOCK_ACCOUNT_ID}:{args.name}",
        )
        outputs.setdefault("bucket", args.name)
        return f"{args.name}_id", outputs

    def call(self, args: pulumi.runtime.MockCallArgs) -> Dict[str, Any]:
        return {}


MOCKS = PipelineMocks()
pulumi.runtime.set_mocks(MOCKS, project="project", stack="stack", preview=False)


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests without AWS access")


@pytest.fixture
def pulumi_mocks() -> PipelineMocks:
    return MOCKS
