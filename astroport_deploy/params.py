import typing
from abc import ABC, abstractmethod
from typing import Any, Set

from astroport_deploy.artifacts import ArtifactRecord
from astroport_deploy.config import ConfigurationError
from astroport_deploy.gateway import to_encoded_binary


class ResolutionContext:
    """What a variable can be resolved against while a step runs."""

    def __init__(self, record: ArtifactRecord, deployer: str):
        self.record = record
        self.deployer = deployer


class VariableContext:
    """What a variable can be checked against while a plan is parsed."""

    def __init__(self, step_name: str, constants: typing.Dict[str, Any] = None):
        self.step_name = step_name
        self.constants = constants or dict()


# Variables


class Variable(ABC):
    VARIABLE_PREFIX = "$"

    @abstractmethod
    def resolve(self, context: ResolutionContext) -> Any:
        raise NotImplementedError

    def references(self) -> Set[str]:
        """Artifact keys this variable needs in order to resolve."""
        return set()

    @classmethod
    def is_variable(cls, param: Any) -> bool:
        """Returns True if the param is a variable."""
        result = isinstance(param, str) and param.startswith(cls.VARIABLE_PREFIX)
        return result and not cls.is_escaped(param)

    @classmethod
    def is_escaped(cls, param: Any) -> bool:
        """Returns True if the param is a literal string written with a leading '$$'."""
        return isinstance(param, str) and param.startswith(cls.VARIABLE_PREFIX * 2)


class DeployerAccount(Variable):
    DEPLOYER_INDICATOR = "deployer"

    @classmethod
    def is_deployer(cls, value: str) -> bool:
        """Returns True if the variable is a special deployer variable."""
        return value == cls.DEPLOYER_INDICATOR

    def resolve(self, context: ResolutionContext) -> Any:
        return context.deployer

    def __repr__(self):
        return "$deployer"


class Constant(Variable):
    def __init__(self, constant_name: str, context: VariableContext):
        try:
            self.constant_value = context.constants[constant_name]
        except KeyError:
            raise ConfigurationError(
                f"Constant '{constant_name}' used by step '{context.step_name}' "
                "not found in deployment plan."
            )

    @classmethod
    def is_constant(cls, value: str) -> bool:
        """Returns True if the variable is a plan constant."""
        return value.isupper()

    def resolve(self, context: ResolutionContext) -> Any:
        return self.constant_value


class Artifact(Variable):
    """A value recorded by an earlier step (or by hand) in the artifact record."""

    def __init__(self, key: str):
        self.key = key

    def references(self) -> Set[str]:
        return {self.key}

    def resolve(self, context: ResolutionContext) -> Any:
        try:
            return context.record[self.key]
        except KeyError:
            raise ConfigurationError(f"Artifact '{self.key}' has not been recorded.")

    def __repr__(self):
        return f"${self.key}"


class Encode(Variable):
    """Base64 encoded JSON of a (resolved) message, e.g. a cw20 `send` hook."""

    ENCODE_KEY = "$encode"

    def __init__(self, msg: Any, context: VariableContext):
        self.msg = _process_raw_value(msg, context)

    @classmethod
    def is_encode(cls, value: Any) -> bool:
        """Returns True if the value is a mapping that needs encoding to binary."""
        return isinstance(value, dict) and len(value) == 1 and cls.ENCODE_KEY in value

    def references(self) -> Set[str]:
        return references(self.msg)

    def resolve(self, context: ResolutionContext) -> Any:
        return to_encoded_binary(_resolve_param(self.msg, context))


def _variable_from_value(variable: str, context: VariableContext) -> Variable:
    variable = variable[len(Variable.VARIABLE_PREFIX) :]
    if not variable:
        raise ConfigurationError(f"Empty variable in step '{context.step_name}'.")
    if DeployerAccount.is_deployer(variable):
        return DeployerAccount()
    elif Constant.is_constant(variable):
        return Constant(variable, context)
    else:
        return Artifact(variable)


def _process_raw_value(value: Any, context: VariableContext) -> Any:
    """Replaces variable declarations in a raw (YAML) value with Variables."""
    if isinstance(value, list):
        return [_process_raw_value(v, context) for v in value]

    if Encode.is_encode(value):
        return Encode(value[Encode.ENCODE_KEY], context)

    if isinstance(value, dict):
        return {k: _process_raw_value(v, context) for k, v in value.items()}

    if Variable.is_escaped(value):
        return value[len(Variable.VARIABLE_PREFIX) :]

    if Variable.is_variable(value):
        return _variable_from_value(value, context)

    return value


def _resolve_param(value: Any, context: ResolutionContext) -> Any:
    """Resolves a single parameter value, recursing into lists and mappings."""
    if isinstance(value, list):
        return [_resolve_param(v, context) for v in value]

    if isinstance(value, dict):
        return {k: _resolve_param(v, context) for k, v in value.items()}

    if isinstance(value, Variable):
        return value.resolve(context)

    return value  # literally a value


def references(value: Any) -> Set[str]:
    """Returns every artifact key a processed value depends on."""
    if isinstance(value, list):
        return set().union(*(references(v) for v in value)) if value else set()
    if isinstance(value, dict):
        return set().union(*(references(v) for v in value.values())) if value else set()
    if isinstance(value, Variable):
        return value.references()
    return set()


class Parameter:
    """A processed (but unresolved) parameter of a deployment step."""

    def __init__(self, value: Any):
        self.value = value

    @classmethod
    def from_raw(cls, raw_value: Any, context: VariableContext) -> "Parameter":
        return cls(_process_raw_value(raw_value, context))

    def references(self) -> Set[str]:
        return references(self.value)

    def resolve(self, context: ResolutionContext) -> Any:
        return _resolve_param(self.value, context)

    def __repr__(self):
        return f"Parameter({self.value!r})"

