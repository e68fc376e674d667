import typing
from collections import OrderedDict
from typing import Any, List

from marketplace_deployment.params import (
    Constant,
    DeployerAccount,
    VariableContext,
    process_raw_values,
    references_in,
)

DEPLOY_STEP_KEY = "deploy"
CONFIGURE_STEP_KEY = "configure"
CONTRACT_KEY = "contract"
METHOD_KEY = "method"
ARGS_KEY = "args"


class DeployStep(typing.NamedTuple):
    """Deploys an upgradeable instance of `contract_type` and names it `name`."""

    name: str
    contract_type: str
    args: List[Any]

    @property
    def dependencies(self) -> List[str]:
        return references_in(self.args)

    def describe(self) -> str:
        return f"deploy {self.name} ({self.contract_type})"


class ConfigureStep(typing.NamedTuple):
    """Calls `method` on the already deployed entity `target`."""

    target: str
    method: str
    args: List[Any]

    @property
    def name(self) -> str:
        return f"{self.target}.{self.method}"

    @property
    def dependencies(self) -> List[str]:
        return [self.target, *references_in(self.args)]

    def describe(self) -> str:
        return f"configure {self.target}.{self.method}"


Step = typing.Union[DeployStep, ConfigureStep]


def _get_entity_names(config: typing.Dict) -> List[str]:
    entity_names = list()
    for step_info in config["steps"]:
        if not isinstance(step_info, dict):
            raise DeploymentPlan.Invalid("Malformed deployment plan YAML.")
        if DEPLOY_STEP_KEY in step_info:
            name = step_info[DEPLOY_STEP_KEY]
            _check_entity_name(name)
            entity_names.append(name)
    return entity_names


def _check_entity_name(name: Any) -> None:
    # $deployer and $UPPERCASE are never read as entity references
    if not isinstance(name, str) or not name:
        raise DeploymentPlan.Invalid(f"Entity name must be a non-empty string; got {name!r}")
    if DeployerAccount.is_deployer(name) or Constant.is_constant(name):
        raise DeploymentPlan.Invalid(
            f"Entity name '{name}' is reserved for deployer and constant variables."
        )


def _constants_in(value: Any) -> List[Constant]:
    if isinstance(value, list):
        constants = list()
        for item in value:
            constants.extend(_constants_in(item))
        return constants
    if isinstance(value, Constant):
        return [value]
    return []


class DeploymentPlan:
    """
    An ordered set of deploy and configure steps.

    Steps reference the addresses of entities deployed by other steps through
    their symbolic names, which makes the plan a small dependency graph.
    """

    class Invalid(ValueError):
        """Raised when the plan cannot be executed as written"""

    def __init__(self, steps: List[Step], constants: typing.Dict[str, Any] = None):
        self.steps = list(steps)
        self.constants = constants or dict()
        self.validate()

    @classmethod
    def from_config(cls, config: typing.Dict) -> "DeploymentPlan":
        """Builds a plan from a loaded YAML config."""
        print("Processing deployment plan...")
        steps_config = config.get("steps")
        if not steps_config:
            raise cls.Invalid("Deployment plan is missing the 'steps' field.")

        constants = config.get("constants") or dict()
        entity_names = _get_entity_names(config)

        steps = list()
        for position, step_info in enumerate(steps_config):
            try:
                steps.append(cls._process_step(step_info, entity_names, constants))
            except cls.Invalid:
                raise
            except (KeyError, TypeError, ValueError) as e:
                raise cls.Invalid(f"Step #{position} is malformed: {e}") from e

        return cls(steps=steps, constants=constants)

    @classmethod
    def _process_step(cls, step_info: typing.Dict, entity_names, constants) -> Step:
        is_deploy, is_configure = DEPLOY_STEP_KEY in step_info, CONFIGURE_STEP_KEY in step_info
        if is_deploy == is_configure:
            raise cls.Invalid(
                f"Each step must declare exactly one of '{DEPLOY_STEP_KEY}' "
                f"or '{CONFIGURE_STEP_KEY}'; got {step_info}"
            )

        raw_args = step_info.get(ARGS_KEY) or list()
        if not isinstance(raw_args, list):
            raise cls.Invalid(f"'{ARGS_KEY}' must be a list; got {raw_args!r}")

        if is_deploy:
            name = step_info[DEPLOY_STEP_KEY]
            context = VariableContext(
                entity_names=entity_names, step_name=name, constants=constants
            )
            return DeployStep(
                name=name,
                contract_type=step_info[CONTRACT_KEY],
                args=process_raw_values(raw_args, context),
            )

        target = step_info[CONFIGURE_STEP_KEY]
        context = VariableContext(
            entity_names=entity_names, step_name=target, constants=constants
        )
        return ConfigureStep(
            target=target,
            method=step_info[METHOD_KEY],
            args=process_raw_values(raw_args, context),
        )

    @property
    def entity_names(self) -> List[str]:
        return [step.name for step in self.steps if isinstance(step, DeployStep)]

    def contract_types(self, names: typing.Iterable[str] = ()) -> typing.Dict[str, str]:
        """Maps entity names (all of them by default) to their contract types."""
        contract_types = OrderedDict((step.name, step.contract_type) for step in self.deploy_steps)
        names = list(names) or list(contract_types)
        unknown = [name for name in names if name not in contract_types]
        if unknown:
            raise self.Invalid(f"Entities not deployed by this plan: {', '.join(unknown)}")
        return OrderedDict((name, contract_types[name]) for name in names)

    @property
    def deploy_steps(self) -> List[DeployStep]:
        return [step for step in self.steps if isinstance(step, DeployStep)]

    @property
    def configure_steps(self) -> List[ConfigureStep]:
        return [step for step in self.steps if isinstance(step, ConfigureStep)]

    def validate(self) -> None:
        """Checks that every step can be executed; raises `DeploymentPlan.Invalid` otherwise."""
        if not self.steps:
            raise self.Invalid("Deployment plan has no steps.")

        produced = set()
        for step in self.deploy_steps:
            _check_entity_name(step.name)
            if step.name in produced:
                raise self.Invalid(f"Entity '{step.name}' is deployed by more than one step.")
            produced.add(step.name)

        for step in self.steps:
            if isinstance(step, DeployStep) and step.name in step.dependencies:
                raise self.Invalid(f"Step '{step.describe()}' references its own address.")
            for dependency in step.dependencies:
                if dependency not in produced:
                    raise self.Invalid(
                        f"Step '{step.describe()}' references '{dependency}', "
                        f"which is not deployed by any step."
                    )
            for constant in _constants_in(step.args):
                if constant.constant_name not in self.constants:
                    raise self.Invalid(
                        f"Step '{step.describe()}' uses undefined constant "
                        f"'{constant.constant_name}'."
                    )

        # raises on cycles
        self.ordered_steps()

    def ordered_steps(self) -> List[Step]:
        """
        Returns the steps in a topological order of their dependencies.

        The order is stable: among the steps whose dependencies are satisfied,
        the one declared first goes first, so a plan that is already
        correctly ordered is returned unchanged.
        """
        pending = OrderedDict((position, step) for position, step in enumerate(self.steps))
        deployed = set()
        ordered = list()
        while pending:
            for position, step in pending.items():
                if all(dependency in deployed for dependency in step.dependencies):
                    break
            else:
                blocked = ", ".join(step.describe() for step in pending.values())
                raise self.Invalid(f"Deployment plan has a dependency cycle between: {blocked}")

            del pending[position]
            ordered.append(step)
            if isinstance(step, DeployStep):
                deployed.add(step.name)

        return ordered

    def __len__(self) -> int:
        return len(self.steps)

    def __iter__(self):
        return iter(self.steps)
