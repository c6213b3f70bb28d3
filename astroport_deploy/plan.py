import typing
from pathlib import Path
from typing import Any, Dict, List

import yaml

from astroport_deploy.artifacts import ArtifactRecord
from astroport_deploy.config import ConfigurationError, validate_network_identity
from astroport_deploy.constants import PLANS_DIR
from astroport_deploy.params import Parameter, VariableContext
from astroport_deploy.steps import DeployContract, ExecuteContract, Query, Step, UploadCode

UPLOAD_KEY = "upload"
DEPLOY_KEY = "deploy"
EXECUTE_KEY = "execute"
STEP_KINDS = (UPLOAD_KEY, DEPLOY_KEY, EXECUTE_KEY)


def _load_yaml(filepath: Path) -> dict:
    """Loads a YAML file."""
    try:
        with open(filepath, "r") as file:
            return yaml.safe_load(file)
    except FileNotFoundError:
        raise ConfigurationError(f"Deployment plan not found at {filepath}.")
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Malformed deployment plan YAML at {filepath}: {e}")


def plan_filepath(network: str, plan_name: str) -> Path:
    """Returns the plan file of a deployment for a network."""
    p = PLANS_DIR / network / f"{plan_name}.yml"
    if not p.exists():
        raise ConfigurationError(f"No '{plan_name}' deployment plan for network '{network}'.")
    return p


def _require(data: Dict, key: str, step_name: str) -> Any:
    try:
        return data[key]
    except KeyError:
        raise ConfigurationError(f"Step '{step_name}' is missing '{key}'.")


def _parse_queries(raw_queries: List, context: VariableContext) -> List[Query]:
    queries = list()
    for raw_query in raw_queries or []:
        if not isinstance(raw_query, dict) or "msg" not in raw_query:
            raise ConfigurationError(f"Malformed query in step '{context.step_name}'.")
        contract = raw_query.get("contract")
        queries.append(
            Query(
                msg=Parameter.from_raw(raw_query["msg"], context),
                contract=Parameter.from_raw(contract, context) if contract else None,
                expect=(
                    Parameter.from_raw(raw_query["expect"], context)
                    if "expect" in raw_query
                    else None
                ),
            )
        )
    return queries


def _parse_step(step_info: Dict, constants: Dict, wasm_dir: Path) -> Step:
    if not isinstance(step_info, dict) or "name" not in step_info:
        raise ConfigurationError("Malformed deployment plan YAML: every step needs a name.")
    name = step_info["name"]
    kinds = [kind for kind in STEP_KINDS if kind in step_info]
    if len(kinds) != 1:
        raise ConfigurationError(
            f"Step '{name}' must declare exactly one of {', '.join(STEP_KINDS)}."
        )
    kind = kinds[0]
    data = step_info[kind] or dict()
    context = VariableContext(step_name=name, constants=constants)

    def parameter(key: str, required: bool = True):
        if key not in data and not required:
            return None
        return Parameter.from_raw(_require(data, key, name), context)

    common = {
        "redeploy": bool(step_info.get("redeploy", False)),
        "queries": _parse_queries(step_info.get("queries"), context),
    }

    if kind == UPLOAD_KEY:
        return UploadCode(
            name=name,
            wasm_path=wasm_dir / _require(data, "wasm", name),
            output=_require(data, "output", name),
            **common,
        )

    if kind == DEPLOY_KEY:
        wasm = data.get("wasm")
        return DeployContract(
            name=name,
            output=_require(data, "output", name),
            label=_require(data, "label", name),
            init_msg=parameter("init_msg"),
            wasm_path=wasm_dir / wasm if wasm else None,
            code_id=parameter("code_id", required=False),
            admin=parameter("admin", required=False),
            code_id_output=data.get("code_id_output"),
            **common,
        )

    return ExecuteContract(
        name=name,
        output=_require(data, "output", name),
        contract=parameter("contract"),
        msg=parameter("msg"),
        funds=data.get("funds"),
        **common,
    )


def _validate_steps(steps: List[Step]) -> None:
    names, outputs = set(), set()
    for step in steps:
        if step.name in names:
            raise ConfigurationError(f"Duplicate step name '{step.name}'.")
        names.add(step.name)
        for output in step.outputs:
            if output in outputs:
                raise ConfigurationError(
                    f"Artifact '{output}' is recorded by more than one step."
                )
            outputs.add(output)


class DeploymentPlan:
    """The fixed, dependency ordered list of steps of one deployment."""

    def __init__(self, network: str, steps: List[Step], name: str = "deployment"):
        _validate_steps(steps)
        self.network = network
        self.steps = steps
        self.name = name

    def __iter__(self):
        return iter(self.steps)

    def __len__(self):
        return len(self.steps)

    def pending(self, record: ArtifactRecord) -> List[str]:
        """Names of the steps that still have to run against a record."""
        return [step.name for step in self.steps if step.precondition(record)]

    @classmethod
    def from_config(cls, config: typing.Dict, wasm_dir: Path, name: str = "deployment"):
        """Builds a plan from a parsed YAML plan."""
        if not isinstance(config, dict):
            raise ConfigurationError("Malformed deployment plan YAML.")

        deployment = config.get("deployment")
        if not deployment:
            raise ConfigurationError("deployment is not set in plan file.")
        chain_id = deployment.get("chain_id")
        if not chain_id:
            raise ConfigurationError("chain_id is not set in plan file.")

        raw_steps = config.get("steps")
        if not raw_steps:
            raise ConfigurationError("Plan file missing 'steps' field.")

        constants = config.get("constants") or dict()
        steps = [_parse_step(step_info, constants, Path(wasm_dir)) for step_info in raw_steps]
        name = deployment.get("name", name)
        return cls(network=validate_network_identity(str(chain_id)), steps=steps, name=name)

    @classmethod
    def from_yaml(cls, filepath: Path, wasm_dir: Path) -> "DeploymentPlan":
        config = _load_yaml(filepath)
        return cls.from_config(config=config, wasm_dir=wasm_dir, name=Path(filepath).stem)
