import typing
from abc import ABC, abstractmethod
from collections import OrderedDict
from enum import Enum
from typing import Any, List, Optional

from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address

from marketplace_deployment.constants import ZERO_ADDRESS


class StepOrderingViolation(RuntimeError):
    """Raised when an entity address is looked up before the entity was confirmed."""


class EntityState(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    REFERENCED = "referenced"


class AddressBook:
    """
    Maps the symbolic entity names of a plan to their confirmed addresses.

    Entries are only ever appended during a single run; a lookup against an
    entity that is not confirmed yet means the plan was ordered incorrectly.
    """

    def __init__(self, names: typing.Iterable[str] = ()):
        self._states: typing.Dict[str, EntityState] = OrderedDict()
        self._addresses: typing.Dict[str, ChecksumAddress] = OrderedDict()
        for name in names:
            self.declare(name)

    def declare(self, name: str) -> None:
        if name in self._states:
            raise ValueError(f"Entity '{name}' is already declared")
        self._states[name] = EntityState.PENDING

    def confirm(self, name: str, address: str) -> ChecksumAddress:
        state = self._states.get(name)
        if state is None:
            raise StepOrderingViolation(f"Entity '{name}' was never declared")
        if state is not EntityState.PENDING:
            raise StepOrderingViolation(f"Entity '{name}' is already confirmed")
        checksum_address = to_checksum_address(address)
        self._addresses[name] = checksum_address
        self._states[name] = EntityState.CONFIRMED
        return checksum_address

    def lookup(self, name: str) -> ChecksumAddress:
        """Returns the confirmed address of an entity and marks it as referenced."""
        try:
            address = self._addresses[name]
        except KeyError:
            state = self._states.get(name)
            if state is None:
                raise StepOrderingViolation(f"Entity '{name}' is not part of this plan")
            raise StepOrderingViolation(
                f"Entity '{name}' is referenced before its deployment was confirmed"
            )
        self._states[name] = EntityState.REFERENCED
        return address

    def state(self, name: str) -> EntityState:
        return self._states[name]

    def is_confirmed(self, name: str) -> bool:
        return name in self._addresses

    def addresses(self) -> typing.Dict[str, ChecksumAddress]:
        return OrderedDict(self._addresses)

    def __contains__(self, name: str) -> bool:
        return name in self._states

    def __len__(self) -> int:
        return len(self._addresses)


class VariableContext:
    def __init__(
        self,
        entity_names: List[str],
        step_name: str,
        constants: typing.Dict[str, Any] = None,
    ):
        self.entity_names = entity_names or list()
        self.step_name = step_name
        self.constants = constants or dict()


class ResolutionContext:
    """Everything a variable may need at resolution time."""

    def __init__(self, address_book: AddressBook, deployer: Optional[str] = None):
        self.address_book = address_book
        self.deployer = deployer


# Variables


class Variable(ABC):
    VARIABLE_PREFIX = "$"

    @abstractmethod
    def resolve(self, context: ResolutionContext) -> Any:
        raise NotImplementedError

    @classmethod
    def is_variable(cls, param: Any) -> bool:
        """Returns True if the param is a variable."""
        result = isinstance(param, str) and param.startswith(cls.VARIABLE_PREFIX)
        return result


class DeployerAccount(Variable):
    DEPLOYER_INDICATOR = "deployer"

    @classmethod
    def is_deployer(cls, value: str) -> bool:
        """Returns True if the variable is a special deployer variable."""
        return value == cls.DEPLOYER_INDICATOR

    def resolve(self, context: ResolutionContext) -> Any:
        if context.deployer is None:
            return ZERO_ADDRESS
        return to_checksum_address(context.deployer)

    def __repr__(self):
        return f"${self.DEPLOYER_INDICATOR}"


class Constant(Variable):
    """A plan constant; a null constant stands for an unset optional address."""

    def __init__(self, constant_name: str, context: VariableContext):
        try:
            self.constant_value = context.constants[constant_name]
        except KeyError:
            raise ValueError(f"Constant '{constant_name}' not found in deployment plan.")
        self.constant_name = constant_name

    @classmethod
    def is_constant(cls, value: str) -> bool:
        """Returns True if the variable is a deployment constant."""
        return value.isupper()

    @property
    def is_unset(self) -> bool:
        return self.constant_value is None

    def resolve(self, context: ResolutionContext) -> Any:
        if self.is_unset:
            return ZERO_ADDRESS
        return self.constant_value

    def __repr__(self):
        return f"${self.constant_name}"


class EntityReference(Variable):
    """The address of an entity deployed by an earlier step."""

    def __init__(self, entity_name: str, context: VariableContext):
        if entity_name not in context.entity_names:
            raise ValueError(
                f"Step '{context.step_name}' references '{entity_name}', "
                f"which is not deployed by any step"
            )
        self.entity_name = entity_name

    def resolve(self, context: ResolutionContext) -> Any:
        return context.address_book.lookup(self.entity_name)

    def __repr__(self):
        return f"${self.entity_name}"


def _variable_from_value(variable: str, context: VariableContext) -> Variable:
    variable = variable[len(Variable.VARIABLE_PREFIX) :]
    if DeployerAccount.is_deployer(variable):
        return DeployerAccount()
    elif Constant.is_constant(variable):
        return Constant(variable, context)
    else:
        return EntityReference(variable, context)


def process_raw_value(value: Any, variable_context: VariableContext) -> Any:
    if isinstance(value, list):
        return [process_raw_value(v, variable_context) for v in value]

    if Variable.is_variable(value):
        value = _variable_from_value(value, variable_context)

    return value


def process_raw_values(values: List[Any], variable_context: VariableContext) -> List[Any]:
    return [process_raw_value(value, variable_context) for value in values]


def resolve_param(value: Any, context: ResolutionContext) -> Any:
    """Resolves a single parameter value or a list of parameter values."""
    if isinstance(value, list):
        return [resolve_param(v, context) for v in value]

    if isinstance(value, Variable):
        return value.resolve(context)

    return value  # literally a value


def resolve_params(values: List[Any], context: ResolutionContext) -> List[Any]:
    return [resolve_param(value, context) for value in values]


def references_in(value: Any) -> List[str]:
    """Returns the entity names referenced by a (possibly nested) parameter value."""
    if isinstance(value, list):
        names = list()
        for item in value:
            names.extend(references_in(item))
        return names
    if isinstance(value, EntityReference):
        return [value.entity_name]
    return []
