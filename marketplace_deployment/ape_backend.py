import typing
from collections import OrderedDict
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from ape import networks, project
from ape.api import AccountAPI, ReceiptAPI
from ape.cli.choices import select_account
from ape.contracts.base import ContractContainer, ContractInstance
from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address
from ethpm_types import MethodABI
from web3.auto import w3

from marketplace_deployment.backend import DeploymentBackend, Receipt
from marketplace_deployment.confirm import _confirm_resolution, _continue
from marketplace_deployment.constants import (
    INITIALIZER_METHOD,
    OZ_DEPENDENCY_NAME,
    OZ_DEPENDENCY_VERSION,
    PROXY_CONTRACT_NAME,
)
from marketplace_deployment.networks import is_local_network
from marketplace_deployment.registry import ChainId, read_registry
from marketplace_deployment.utils import check_etherscan_plugin, check_infura_plugin


class ProxiedInstance(typing.NamedTuple):
    """A logic contract reachable through its proxy."""

    instance: ContractInstance
    proxy: ContractInstance
    implementation: ContractInstance


def _get_dependency_contract_container(contract: str) -> ContractContainer:
    for dependency_name, dependency_versions in project.dependencies.items():
        if len(dependency_versions) > 1:
            raise ValueError(f"Ambiguous {dependency_name} dependency for {contract}")
        try:
            dependency_api = list(dependency_versions.values())[0]
            return getattr(dependency_api, contract)
        except AttributeError:
            continue
    raise ValueError(f"No contract found with name '{contract}'.")


def get_contract_container(contract: str) -> ContractContainer:
    try:
        contract_container = getattr(project, contract)
    except AttributeError:
        # not in root project; check dependencies
        contract_container = _get_dependency_contract_container(contract)

    return contract_container


def get_proxy_container() -> ContractContainer:
    oz_dependency = project.dependencies[OZ_DEPENDENCY_NAME][OZ_DEPENDENCY_VERSION]
    return getattr(oz_dependency, PROXY_CONTRACT_NAME)


def _validate_method_args(
    method_abis: List[MethodABI], args: typing.Sequence[Any]
) -> Dict[str, Any]:
    """Validates the transaction arguments against the function ABI."""
    if len(method_abis) == 0:
        raise ValueError("No method abis provided for validation of args")

    abis_matching_args_length = [abi for abi in method_abis if len(abi.inputs) == len(args)]
    for abi in abis_matching_args_length:
        named_args = OrderedDict()
        for arg, abi_input in zip(args, abi.inputs):
            if not w3.is_encodable(abi_input.type, arg):
                break
            named_args[abi_input.name] = arg
        else:
            return named_args
    raise ValueError(
        f"Could not find ABI for '{method_abis[0].name}' with {len(args)} arg(s) and given type(s)"
    )


def implementation_of(instance: ContractInstance) -> ContractInstance:
    """Returns the logic contract behind a proxy, or the instance itself."""
    proxy_info = networks.provider.network.ecosystem.get_proxy_info(instance.address)
    if not proxy_info:
        return instance
    print(f"(i) {instance.address} proxies {instance.contract_type.name} at {proxy_info.target}")
    contract_container = get_contract_container(instance.contract_type.name)
    return contract_container.at(proxy_info.target)


def check_plugins() -> None:
    print("Checking plugins...")
    if is_local_network():
        return  # unnecessary for local deployment
    check_etherscan_plugin(networks.provider.network.ecosystem.name)
    check_infura_plugin(networks.provider.name)


def verify_contracts(contracts: List[ContractInstance]) -> None:
    explorer = networks.provider.network.explorer
    for instance in contracts:
        print(f"(i) Verifying {instance.contract_type.name}...")
        explorer.publish_contract(instance.address)


def contracts_from_registry(filepath: Path, chain_id: ChainId) -> Dict[str, ContractInstance]:
    """Returns a dictionary of contract instances from a registry file."""
    deployments = dict()
    for registry_entry in read_registry(filepath=filepath):
        if registry_entry.chain_id != chain_id:
            continue
        contract_container = get_contract_container(registry_entry.name)
        deployments[registry_entry.name] = contract_container.at(registry_entry.address)
    return deployments


class ApeBackend(DeploymentBackend):
    """
    Deploys upgradeable proxies with an ape account.

    Each logic contract is deployed first and then wrapped by an OpenZeppelin
    TransparentUpgradeableProxy whose constructor calls `initialize`.
    """

    def __init__(
        self,
        account: Optional[AccountAPI] = None,
        autosign: bool = False,
        verify: bool = False,
    ):
        self._account = account
        if autosign:
            print("WARNING: Autosign is enabled. Transactions will be signed automatically.")
        self._autosign = autosign
        self.verify = verify

    def get_signer(self) -> AccountAPI:
        if self._account is None:
            self._account = select_account()
            self._account.set_autosign(self._autosign)
        return self._account

    def _deploy_contract(self, container: ContractContainer, *args) -> ContractInstance:
        # publishing happens in finalize, once the whole plan went through
        return self.get_signer().deploy(container, *args, publish=False)

    def deploy_upgradeable(self, contract_type: str, args: Sequence[Any]) -> ProxiedInstance:
        container = get_contract_container(contract_type)
        initializer_abis = [
            abi for abi in container.contract_type.methods if abi.name == INITIALIZER_METHOD
        ]
        named_args = _validate_method_args(method_abis=initializer_abis, args=list(args))
        if not self._autosign:
            _confirm_resolution(named_args, contract_type)

        implementation = self._deploy_contract(container)
        initializer = getattr(implementation, INITIALIZER_METHOD)
        data = initializer.encode_input(*args)

        proxy_container = get_proxy_container()
        print(f"\nDeploying {PROXY_CONTRACT_NAME} contract to proxy {contract_type}.")
        proxy = self._deploy_contract(
            proxy_container, implementation.address, self.get_signer().address, data
        )
        print(f"\nWrapping {contract_type} into {PROXY_CONTRACT_NAME} at {proxy.address}.")
        return ProxiedInstance(
            instance=container.at(proxy.address),
            proxy=proxy,
            implementation=implementation,
        )

    def await_confirmation(self, handle) -> Receipt:
        if isinstance(handle, ProxiedInstance):
            receipt = handle.proxy.receipt
        else:
            receipt = handle
        receipt = receipt.await_confirmations()
        if receipt.failed:
            raise self.Error(f"Transaction {receipt.txn_hash} failed")
        return Receipt(
            chain_id=networks.provider.chain_id,
            tx_hash=str(receipt.txn_hash),
            block_number=int(receipt.block_number),
            sender=to_checksum_address(receipt.transaction.sender),
        )

    def get_address(self, handle: ProxiedInstance) -> ChecksumAddress:
        return to_checksum_address(handle.instance.address)

    def get_abi(self, handle: ProxiedInstance) -> List[Dict]:
        return [entry.model_dump(mode="json") for entry in handle.instance.contract_type.abi]

    def invoke(self, handle: ProxiedInstance, method: str, args: Sequence[Any]) -> ReceiptAPI:
        return self.transact(getattr(handle.instance, method), *args)

    def transact(self, method, *args) -> ReceiptAPI:
        named_args = _validate_method_args(method_abis=method.abis, args=args)
        base_message = (
            f"\nTransacting {method.contract.contract_type.name}"
            f"[{method.contract.address[:10]}].{method}"
        )
        if named_args:
            pretty_args = "\n\t".join(f"{k}={v}" for k, v in named_args.items())
            message = f"{base_message} with arguments:\n\t{pretty_args}"
        else:
            message = f"{base_message} with no arguments"
        print(message)
        if not self._autosign:
            _continue()

        return method(*args, sender=self.get_signer())

    def finalize(self, deployments: List[ProxiedInstance]) -> None:
        """Optionally publishes the logic contracts to the block explorer."""
        if self.verify:
            verify_contracts(contracts=[d.implementation for d in deployments])
