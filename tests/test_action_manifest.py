"""Test that action.yml stays in sync with the input and output model."""

import tomllib
from pathlib import Path

import pytest
import yaml

from build_action.inputs import ActionInputs, input_env_names
from build_action.runner import ActionResult

MANIFEST_PATH = Path(__file__).parent.parent / "action.yml"
PYPROJECT_PATH = Path(__file__).parent.parent / "pyproject.toml"


@pytest.fixture(scope="module")
def manifest():
    with open(MANIFEST_PATH) as f:
        return yaml.safe_load(f)


def model_input_names():
    return {info.alias or name for name, info in ActionInputs.model_fields.items()}


def test_inputs_match_model(manifest):
    """Every action input maps to an ActionInputs field and vice versa."""
    assert set(manifest["inputs"]) == model_input_names()


def test_inputs_passed_to_cli(manifest):
    """Every input is exported to the build step as INPUT_*."""
    build_step = next(step for step in manifest["runs"]["steps"] if step.get("id") == "build")

    for name in manifest["inputs"]:
        env_name = input_env_names(name)[-1]
        assert env_name in build_step["env"], f"{name} is not passed as {env_name}"
        assert build_step["env"][env_name] == f"${{{{ inputs.{name} }}}}"


def test_outputs_match_result(manifest):
    """Declared outputs match what the action publishes."""
    assert set(manifest["outputs"]) == set(ActionResult(request=None, targets=[], labels=[]).outputs())


def test_boolean_defaults_match_model(manifest):
    """Boolean defaults in action.yml agree with the model defaults."""
    defaults = ActionInputs()
    for name, info in ActionInputs.model_fields.items():
        if info.annotation is bool:
            declared = manifest["inputs"][info.alias or name].get("default")
            assert declared == str(getattr(defaults, name)).lower(), name


def step_named(manifest, name):
    return next(step for step in manifest["runs"]["steps"] if step.get("name") == name)


def test_python_satisfies_requires_python(manifest):
    """The action provisions a Python that the package can be installed on."""
    with open(PYPROJECT_PATH, "rb") as f:
        requires_python = tomllib.load(f)["project"]["requires-python"]
    minimum = tuple(int(part) for part in requires_python.removeprefix(">=").split("."))

    setup = step_named(manifest, "Set up Python")
    version = tuple(int(part) for part in setup["with"]["python-version"].split("."))

    assert setup["uses"].startswith("actions/setup-python@")
    assert version >= minimum
    assert setup["with"]["update-environment"] is False


def test_install_and_build_use_private_venv(manifest):
    """Install and build run in a venv, never the runner's system Python."""
    steps = [step.get("name") for step in manifest["runs"]["steps"]]
    install = step_named(manifest, "Install build-action")
    build = step_named(manifest, "Build")

    assert steps.index("Set up Python") < steps.index("Install build-action") < steps.index("Build")
    assert "${{ steps.python.outputs.python-path }}\" -m venv" in install["run"]
    assert "build-action-venv/bin/python\" -m pip install" in install["run"]
    assert "build-action-venv/bin/python\" -m build_action build" in build["run"]
    assert "python3 -m" not in install["run"] + build["run"]
