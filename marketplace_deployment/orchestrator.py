import typing
from collections import OrderedDict
from enum import Enum
from typing import Any, List, Optional

from eth_typing import ChecksumAddress

from marketplace_deployment.backend import DeploymentBackend, Receipt
from marketplace_deployment.params import (
    AddressBook,
    ResolutionContext,
    StepOrderingViolation,
    resolve_params,
)
from marketplace_deployment.plan import ConfigureStep, DeploymentPlan, DeployStep, Step


class RunStatus(Enum):
    NOT_STARTED = "not started"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class DeployedEntity(typing.NamedTuple):
    name: str
    contract_type: str
    address: ChecksumAddress
    receipt: Receipt
    abi: List[typing.Dict]


class StepFailure(typing.NamedTuple):
    position: int
    step: Step
    error: BaseException

    @property
    def number(self) -> int:
        """1-based, as in the progress lines."""
        return self.position + 1


class BackendUnavailable(Exception):
    """Raised when the backend cannot provide a signer; no step was executed."""


class DeploymentFailed(Exception):
    """Raised when a step fails; the run is halted and nothing is rolled back."""

    def __init__(self, run: "DeploymentRun"):
        self.run = run
        failure = run.failure
        self.step = failure.step
        self.position = failure.position
        super().__init__(
            f"Step #{failure.number} of {len(run.plan)} ({failure.step.describe()}) failed: "
            f"{failure.error}"
        )


class DeploymentRun:
    """The outcome of a single execution of a plan."""

    def __init__(self, plan: DeploymentPlan):
        self.plan = plan
        self.status = RunStatus.NOT_STARTED
        self.deployer: Optional[ChecksumAddress] = None
        self.address_book = AddressBook(plan.entity_names)
        self.entities: typing.Dict[str, DeployedEntity] = OrderedDict()
        self.handles: typing.Dict[str, Any] = dict()
        self.configured: List[ConfigureStep] = list()
        self.failure: Optional[StepFailure] = None

    @property
    def addresses(self) -> typing.Dict[str, ChecksumAddress]:
        return self.address_book.addresses()

    @property
    def succeeded(self) -> bool:
        return self.status is RunStatus.SUCCEEDED

    def start(self, deployer: Optional[str]) -> None:
        if self.status is not RunStatus.NOT_STARTED:
            raise RuntimeError(f"Run cannot be started; it is {self.status.value}")
        self.deployer = deployer
        self.status = RunStatus.RUNNING

    def record(self, entity: DeployedEntity, handle: Any) -> None:
        self.address_book.confirm(entity.name, entity.address)
        self.entities[entity.name] = entity
        self.handles[entity.name] = handle

    def fail(self, position: int, step: Step, error: BaseException) -> None:
        self.failure = StepFailure(position=position, step=step, error=error)
        self.status = RunStatus.FAILED

    def succeed(self) -> None:
        self.status = RunStatus.SUCCEEDED


def _signer_address(signer: Any) -> Optional[str]:
    return getattr(signer, "address", signer)


class Orchestrator:
    """
    Drives a deployment plan to completion against a backend.

    Steps are executed one at a time in dependency order; each waits for its
    confirmation before the next is issued. The first failure halts the run.
    """

    def __init__(self, backend: DeploymentBackend):
        self.backend = backend

    def run(self, plan: DeploymentPlan) -> DeploymentRun:
        plan.validate()
        ordered_steps = plan.ordered_steps()
        run = DeploymentRun(plan)

        try:
            signer = self.backend.get_signer()
        except Exception as e:
            raise BackendUnavailable(f"Could not obtain a deployment signer: {e}") from e
        if signer is None:
            raise BackendUnavailable("Deployment backend has no signer.")

        run.start(deployer=_signer_address(signer))
        print(f"Executing {len(ordered_steps)} deployment steps as {run.deployer}")

        for position, step in enumerate(ordered_steps):
            print(f"\n[{position + 1}/{len(ordered_steps)}] {step.describe()}")
            try:
                if isinstance(step, DeployStep):
                    self._deploy(step, run)
                else:
                    self._configure(step, run)
            except StepOrderingViolation as e:
                # plan bug, not a runtime contingency
                run.fail(position, step, e)
                raise
            except Exception as e:
                run.fail(position, step, e)
                raise DeploymentFailed(run) from e

        run.succeed()
        return run

    def _resolve(self, step: Step, run: DeploymentRun) -> List[Any]:
        context = ResolutionContext(address_book=run.address_book, deployer=run.deployer)
        return resolve_params(step.args, context)

    def _deploy(self, step: DeployStep, run: DeploymentRun) -> DeployedEntity:
        resolved_args = self._resolve(step, run)
        handle = self.backend.deploy_upgradeable(step.contract_type, resolved_args)
        receipt = self.backend.await_confirmation(handle)
        address = self.backend.get_address(handle)
        entity = DeployedEntity(
            name=step.name,
            contract_type=step.contract_type,
            address=address,
            receipt=receipt,
            abi=self.backend.get_abi(handle),
        )
        run.record(entity, handle)
        print(f"{step.name} ({step.contract_type}) confirmed at {entity.address}")
        return entity

    def _configure(self, step: ConfigureStep, run: DeploymentRun) -> Receipt:
        target = run.handles.get(step.target)
        if target is None:
            raise StepOrderingViolation(
                f"'{step.describe()}' targets '{step.target}' before it was confirmed"
            )
        resolved_args = self._resolve(step, run)
        tx = self.backend.invoke(target, step.method, resolved_args)
        receipt = self.backend.await_confirmation(tx)
        run.configured.append(step)
        print(f"{step.describe()} confirmed in block {receipt.block_number}")
        return receipt


def print_run_summary(run: DeploymentRun) -> None:
    """Prints the confirmed addresses of a run and, if it failed, the failing step."""
    if run.failure is not None:
        failure = run.failure
        print(
            f"\n(!) Deployment halted at step #{failure.number} of {len(run.plan)} "
            f"({failure.step.describe()}): {failure.error}"
        )
        if run.entities:
            print("Entities confirmed before the failure remain deployed:")

    for name, entity in run.entities.items():
        print(f"{name} ({entity.contract_type}) address: {entity.address}")
