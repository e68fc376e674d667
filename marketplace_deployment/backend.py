import typing
from abc import ABC, abstractmethod
from typing import Any, List, Sequence

from eth_typing import ChecksumAddress

AccountHandle = typing.Any
DeploymentHandle = typing.Any
TransactionHandle = typing.Any


class Receipt(typing.NamedTuple):
    """What the backend reports once a transaction is finalized."""

    chain_id: int
    tx_hash: str
    block_number: int
    sender: ChecksumAddress


class DeploymentBackend(ABC):
    """
    The collaborator that performs deployments and transactions on chain.

    Deploy and invoke calls return as soon as the backend accepted them;
    callers must `await_confirmation` before relying on their effects.
    """

    class Error(Exception):
        """Raised when a backend operation fails"""

    @abstractmethod
    def get_signer(self) -> AccountHandle:
        """Returns the account authorizing and paying for deployments."""
        raise NotImplementedError

    @abstractmethod
    def deploy_upgradeable(self, contract_type: str, args: Sequence[Any]) -> DeploymentHandle:
        """Issues the deployment of an upgradeable proxy initialized with `args`."""
        raise NotImplementedError

    @abstractmethod
    def await_confirmation(
        self, handle: typing.Union[DeploymentHandle, TransactionHandle]
    ) -> Receipt:
        """Blocks until the deployment or transaction is finalized."""
        raise NotImplementedError

    @abstractmethod
    def get_address(self, handle: DeploymentHandle) -> ChecksumAddress:
        raise NotImplementedError

    @abstractmethod
    def invoke(
        self, handle: DeploymentHandle, method: str, args: Sequence[Any]
    ) -> TransactionHandle:
        raise NotImplementedError

    def get_abi(self, handle: DeploymentHandle) -> List[typing.Dict]:
        """Returns the ABI of a deployed entity, when the backend knows it."""
        return list()
