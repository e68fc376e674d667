import typing

import pytest
from eth_utils import keccak, to_checksum_address, to_hex

from marketplace_deployment.backend import DeploymentBackend, Receipt
from marketplace_deployment.marketplace import MarketplaceConfig, marketplace_plan
from marketplace_deployment.orchestrator import Orchestrator

CHAIN_ID = 1337

DEPLOYER = to_checksum_address("0x" + "de" * 20)
FEE_RECEIVER = to_checksum_address("0x0d3c3d95df3c9e71d39fd00eb842026713ad64fe")
WETH = to_checksum_address("0xa99cf32e9aaa700f9e881ba9bf2c57a211ae94df")


class Call(typing.NamedTuple):
    position: int
    kind: str  # "deploy" or "invoke"
    target: str  # contract type for deployments, target address for invocations
    method: typing.Optional[str]
    args: typing.List[typing.Any]


class FakeHandle(typing.NamedTuple):
    call: Call
    address: typing.Optional[str]
    tx_hash: str


class InMemoryBackend(DeploymentBackend):
    """
    Confirms everything it is asked to do, except the call at position `fail_on`
    (confirmation fails) or `fail_on_issue` (the call itself fails).
    """

    def __init__(self, signer=DEPLOYER, fail_on=None, fail_on_issue=None, signer_error=None):
        self.signer = signer
        self.fail_on = fail_on
        self.fail_on_issue = fail_on_issue
        self.signer_error = signer_error
        self.signer_requests = 0
        self.calls: typing.List[Call] = list()
        self.issued = set()
        self.confirmed = set()
        # addresses of issued-but-unconfirmed deployments passed as arguments
        self.unconfirmed_references = list()
        self._nonce = 0
        self._block_number = 0

    def get_signer(self):
        self.signer_requests += 1
        if self.signer_error is not None:
            raise self.signer_error
        return self.signer

    def _next(self) -> bytes:
        digest = keccak(bytes.fromhex(self.signer[2:]) + self._nonce.to_bytes(8, "big"))
        self._nonce += 1
        return digest

    def _issue(self, kind, target, method, args) -> Call:
        call = Call(position=len(self.calls), kind=kind, target=target, method=method, args=args)
        self.calls.append(call)
        for arg in args:
            if isinstance(arg, str) and arg in self.issued and arg not in self.confirmed:
                self.unconfirmed_references.append((call.position, arg))
        if call.position == self.fail_on_issue:
            raise self.Error(f"could not submit call #{call.position}")
        return call

    def deploy_upgradeable(self, contract_type, args):
        call = self._issue("deploy", contract_type, None, list(args))
        digest = self._next()
        address = to_checksum_address(digest[-20:])
        self.issued.add(address)
        return FakeHandle(call=call, address=address, tx_hash=to_hex(keccak(digest)))

    def invoke(self, handle, method, args):
        call = self._issue("invoke", handle.address, method, list(args))
        return FakeHandle(call=call, address=None, tx_hash=to_hex(self._next()))

    def await_confirmation(self, handle):
        if handle.call.position == self.fail_on:
            raise self.Error("execution reverted")
        self._block_number += 1
        if handle.address is not None:
            self.confirmed.add(handle.address)
        return Receipt(
            chain_id=CHAIN_ID,
            tx_hash=handle.tx_hash,
            block_number=self._block_number,
            sender=self.signer,
        )

    def get_address(self, handle):
        if handle.address not in self.confirmed:
            raise self.Error(f"{handle.address} is not confirmed")
        return handle.address

    def get_abi(self, handle):
        return [{"type": "function", "name": "initialize", "inputs": [], "outputs": []}]

    @property
    def deployments(self) -> typing.Dict[str, Call]:
        return {call.target: call for call in self.calls if call.kind == "deploy"}

    @property
    def invocations(self) -> typing.List[Call]:
        return [call for call in self.calls if call.kind == "invoke"]


@pytest.fixture
def marketplace_config():
    return MarketplaceConfig(fee_receiver=FEE_RECEIVER, weth=WETH)


@pytest.fixture
def plan(marketplace_config):
    return marketplace_plan(marketplace_config)


@pytest.fixture
def backend():
    return InMemoryBackend()


@pytest.fixture
def orchestrator(backend):
    return Orchestrator(backend)


@pytest.fixture
def make_backend():
    return InMemoryBackend


@pytest.fixture
def fee_receiver():
    return FEE_RECEIVER


@pytest.fixture
def weth():
    return WETH
