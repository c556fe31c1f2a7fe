from setuptools import find_packages, setup

setup(
    name="pipelines-infra",
    version="0.1.0",
    packages=find_packages(include=["pipelines_infra", "pipelines_infra.*"]),
    install_requires=[
        "pulumi>=3.0.0,<4.0.0",
        "pulumi-aws>=6.0.0",
    ],
    extras_require={
        "test": [
            "pytest",
            "pytest-mock",
            "pytest-cov",
        ]
    },
    python_requires=">=3.9",
    description="Pulumi components for a self-mutating CDK pipeline",
)
