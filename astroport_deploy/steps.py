from abc import ABC, abstractmethod
from collections import OrderedDict
from pathlib import Path
from typing import Any, Dict, NamedTuple, Optional, Sequence, Set

import click

from astroport_deploy.artifacts import ArtifactRecord
from astroport_deploy.config import ConfigurationError
from astroport_deploy.gateway import ChainGateway
from astroport_deploy.params import Parameter, ResolutionContext, VariableContext


def _as_parameter(value: Any, step_name: str) -> Parameter:
    if isinstance(value, Parameter):
        return value
    return Parameter.from_raw(value, VariableContext(step_name=step_name))


class UnexpectedQueryResult(ValueError):
    """Raised when a query of a completed step does not return what the plan expects."""


class Query(NamedTuple):
    """
    A smart query run once a step is recorded, echoed to the operator.
    If `expect` is set, every key it names must be present in the result
    with the same value.
    """

    msg: Parameter
    contract: Optional[Parameter] = None
    expect: Optional[Parameter] = None


def _matches(expected: Any, result: Any) -> bool:
    if isinstance(expected, dict):
        if not isinstance(result, dict):
            return False
        return all(k in result and _matches(v, result[k]) for k, v in expected.items())
    return expected == result


class Step(ABC):
    """
    A checkpointed unit of deployment work. A step is pending while any of its
    output artifacts is missing from the record; its action returns exactly
    those outputs.
    """

    def __init__(
        self,
        name: str,
        outputs: Sequence[str],
        redeploy: bool = False,
        queries: Optional[Sequence[Query]] = None,
    ):
        if not outputs or not all(outputs):
            raise ConfigurationError(f"Step '{name}' does not record any artifact.")
        self.name = name
        self.outputs = list(outputs)
        self.redeploy = redeploy
        self.queries = list(queries or [])

    def __repr__(self):
        return f"{self.__class__.__name__}({self.name})"

    @abstractmethod
    def parameters(self) -> Dict[str, Parameter]:
        """The unresolved parameters of this step, by name."""
        raise NotImplementedError

    @abstractmethod
    def _execute(self, context: ResolutionContext, gateway: ChainGateway) -> ArtifactRecord:
        raise NotImplementedError

    def _default_query_contract(self, context: ResolutionContext):
        return None

    @property
    def requires(self) -> Set[str]:
        """Artifact keys that must be recorded before this step can run."""
        required = set()
        for parameter in self.parameters().values():
            required |= parameter.references()
        for query in self.queries:
            required |= query.msg.references()
            for parameter in (query.contract, query.expect):
                if parameter is not None:
                    required |= parameter.references()
        return required - set(self.outputs)

    def precondition(self, record: ArtifactRecord) -> bool:
        """Returns True if this step still has to run."""
        if self.redeploy:
            return True
        return any(output not in record for output in self.outputs)

    def validate(self) -> None:
        """Static checks run before the deployment starts."""

    def resolve(self, record: ArtifactRecord, deployer: str) -> OrderedDict:
        """Resolves the parameters of this step against a record."""
        context = ResolutionContext(record=record, deployer=deployer)
        resolved = OrderedDict()
        for name, parameter in self.parameters().items():
            resolved[name] = parameter.resolve(context)
        return resolved

    def action(self, record: ArtifactRecord, gateway: ChainGateway) -> ArtifactRecord:
        """Runs the step against the chain and returns the artifacts to record."""
        context = ResolutionContext(record=record, deployer=gateway.sender)
        return self._execute(context, gateway)

    def report(self, record: ArtifactRecord, gateway: ChainGateway) -> None:
        """
        Runs the queries of this step against a record that already holds its
        outputs. Raises UnexpectedQueryResult when a result differs from the
        expectation of its query.
        """
        context = ResolutionContext(record=record, deployer=gateway.sender)
        for query in self.queries:
            if query.contract is not None:
                contract = query.contract.resolve(context)
            else:
                contract = self._default_query_contract(context)
            if contract is None:
                raise ConfigurationError(f"Query of step '{self.name}' has no contract.")
            msg = query.msg.resolve(context)
            result = gateway.query(contract, msg)
            click.echo(f"(i) Query {msg} on {contract}:\n\t{result}")
            if query.expect is None:
                continue
            expected = query.expect.resolve(context)
            if not _matches(expected, result):
                raise UnexpectedQueryResult(
                    f"Query {msg} of step '{self.name}' on {contract} returned {result}, "
                    f"expected {expected}."
                )


class UploadCode(Step):
    """Uploads a contract binary and records its code id."""

    def __init__(self, name: str, wasm_path: Path, output: str, **kwargs):
        super().__init__(name=name, outputs=[output], **kwargs)
        self.wasm_path = Path(wasm_path)
        self.output = output

    def parameters(self) -> Dict[str, Parameter]:
        return dict()

    def validate(self) -> None:
        if not self.wasm_path.is_file():
            raise ConfigurationError(f"Contract binary not found at {self.wasm_path}.")

    def _execute(self, context: ResolutionContext, gateway: ChainGateway) -> ArtifactRecord:
        click.echo(f"Uploading {self.wasm_path.name}...")
        result = gateway.upload_code(self.wasm_path)
        click.echo(f"(i) Code ID of {self.wasm_path.name}: {result.code_id}")
        return {self.output: result.code_id}


class DeployContract(Step):
    """
    Uploads (unless a code id is given) and instantiates a contract, recording
    its address and optionally its code id. The upload is not checkpointed on
    its own: if instantiation fails the whole step runs again.
    """

    def __init__(
        self,
        name: str,
        output: str,
        init_msg: Any,
        label: str,
        wasm_path: Optional[Path] = None,
        code_id: Any = None,
        admin: Any = None,
        code_id_output: Optional[str] = None,
        **kwargs,
    ):
        if (wasm_path is None) == (code_id is None):
            raise ConfigurationError(
                f"Step '{name}' needs exactly one of a contract binary or a code id."
            )
        if code_id_output and wasm_path is None:
            raise ConfigurationError(
                f"Step '{name}' can only record a code id for code it uploads."
            )
        outputs = [output] + ([code_id_output] if code_id_output else [])
        super().__init__(name=name, outputs=outputs, **kwargs)
        self.output = output
        self.code_id_output = code_id_output
        self.label = label
        self.wasm_path = Path(wasm_path) if wasm_path is not None else None
        self.init_msg = _as_parameter(init_msg, name)
        self.code_id = _as_parameter(code_id, name) if code_id is not None else None
        self.admin = _as_parameter(admin, name) if admin is not None else None

    def parameters(self) -> Dict[str, Parameter]:
        parameters = OrderedDict()
        if self.code_id is not None:
            parameters["code_id"] = self.code_id
        if self.admin is not None:
            parameters["admin"] = self.admin
        parameters["init_msg"] = self.init_msg
        return parameters

    def validate(self) -> None:
        if self.wasm_path is not None and not self.wasm_path.is_file():
            raise ConfigurationError(f"Contract binary not found at {self.wasm_path}.")

    def _default_query_contract(self, context: ResolutionContext):
        return context.record[self.output]

    def _execute(self, context: ResolutionContext, gateway: ChainGateway) -> ArtifactRecord:
        delta = dict()
        if self.wasm_path is not None:
            click.echo(f"Uploading {self.wasm_path.name}...")
            code_id = gateway.upload_code(self.wasm_path).code_id
            click.echo(f"(i) Code ID of {self.wasm_path.name}: {code_id}")
            if self.code_id_output:
                delta[self.code_id_output] = code_id
        else:
            code_id = int(self.code_id.resolve(context))

        admin = self.admin.resolve(context) if self.admin is not None else None
        init_msg = self.init_msg.resolve(context)
        click.echo(f"Instantiating {self.label} from code {code_id}...")
        result = gateway.instantiate(code_id, init_msg, self.label, admin)
        click.echo(f"(i) Address of {self.label}: {result.contract_address}")
        delta[self.output] = result.contract_address
        return delta


class ExecuteContract(Step):
    """
    Executes a message on a contract. The transaction hash is recorded as the
    completion marker of the step.
    """

    def __init__(
        self, name: str, output: str, contract: Any, msg: Any, funds: Optional[str] = None, **kwargs
    ):
        super().__init__(name=name, outputs=[output], **kwargs)
        self.output = output
        self.contract = _as_parameter(contract, name)
        self.msg = _as_parameter(msg, name)
        self.funds = funds

    def parameters(self) -> Dict[str, Parameter]:
        return OrderedDict([("contract", self.contract), ("msg", self.msg)])

    def _default_query_contract(self, context: ResolutionContext):
        return self.contract.resolve(context)

    def _execute(self, context: ResolutionContext, gateway: ChainGateway) -> ArtifactRecord:
        contract = self.contract.resolve(context)
        msg = self.msg.resolve(context)
        click.echo(f"Executing {self.name} on {contract}...")
        result = gateway.execute(contract, msg, funds=self.funds)
        click.echo(f"(i) {self.name} included in transaction {result.tx_hash}")
        return {self.output: result.tx_hash}

