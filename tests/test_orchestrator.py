import pytest

from marketplace_deployment.backend import DeploymentBackend
from marketplace_deployment.constants import (
    FEE_DISTRIBUTOR,
    MARKETPLACE_ENTITIES,
    PRIMARY_MARKETPLACE,
    ROYALTIES_REGISTRY,
    SECONDARY_MARKETPLACE,
    SET_FEE_DISTRIBUTOR,
    ZERO_ADDRESS,
)
from marketplace_deployment.marketplace import MarketplaceConfig, marketplace_plan
from marketplace_deployment.orchestrator import (
    BackendUnavailable,
    DeploymentFailed,
    Orchestrator,
    RunStatus,
    print_run_summary,
)
from marketplace_deployment.params import EntityState
from marketplace_deployment.plan import DeploymentPlan


def test_marketplace_deployment(orchestrator, backend, plan):
    run = orchestrator.run(plan)

    assert run.status is RunStatus.SUCCEEDED
    assert run.succeeded
    assert list(run.addresses) == MARKETPLACE_ENTITIES
    assert len(set(run.addresses.values())) == 4
    assert run.deployer == backend.signer

    # two configuration calls, each carrying the fee distributor address
    fee_distributor = run.addresses[FEE_DISTRIBUTOR]
    assert len(backend.invocations) == 2
    targets = [call.target for call in backend.invocations]
    assert targets == [run.addresses[PRIMARY_MARKETPLACE], run.addresses[SECONDARY_MARKETPLACE]]
    for call in backend.invocations:
        assert call.method == SET_FEE_DISTRIBUTOR
        assert call.args == [fee_distributor]


def test_references_are_only_resolved_after_confirmation(orchestrator, backend, plan):
    orchestrator.run(plan)
    assert len(backend.calls) == 6
    assert backend.unconfirmed_references == []


def test_fee_distributor_initializer_argument_order(orchestrator, backend, plan, fee_receiver):
    run = orchestrator.run(plan)

    fee_distributor_call = backend.deployments["FeeDistributor"]
    assert fee_distributor_call.args == [
        run.addresses[PRIMARY_MARKETPLACE],
        run.addresses[SECONDARY_MARKETPLACE],
        run.addresses[ROYALTIES_REGISTRY],
        fee_receiver,
        250,
        5000,
    ]


def test_marketplaces_initialized_without_upgrade_authority(orchestrator, backend, plan, weth):
    orchestrator.run(plan)
    assert backend.deployments["ERC721NFTMarketplaceV2"].args == [ZERO_ADDRESS, weth]
    assert backend.deployments["ERC1155NFTMarketplace"].args == [ZERO_ADDRESS, weth]
    assert backend.deployments["RoyaltiesRegistry"].args == []


def test_marketplaces_initialized_with_upgrade_authority(backend, fee_receiver, weth):
    authority = "0x" + "ab" * 20
    config = MarketplaceConfig(fee_receiver=fee_receiver, weth=weth, upgrade_authority=authority)
    Orchestrator(backend).run(marketplace_plan(config))

    primary_args = backend.deployments["ERC721NFTMarketplaceV2"].args
    assert primary_args[0].lower() == authority
    assert primary_args[0] != ZERO_ADDRESS


def test_entity_states_after_run(orchestrator, plan):
    run = orchestrator.run(plan)
    book = run.address_book
    # referenced by the fee distributor or by a configuration call
    for name in MARKETPLACE_ENTITIES:
        assert book.state(name) is EntityState.REFERENCED


@pytest.mark.parametrize("failing_position", range(6))
def test_failed_confirmation_halts_run(make_backend, plan, failing_position):
    backend = make_backend(fail_on=failing_position)

    with pytest.raises(DeploymentFailed) as exc_info:
        Orchestrator(backend).run(plan)

    error = exc_info.value
    assert error.position == failing_position
    assert error.step is plan.ordered_steps()[failing_position]
    assert isinstance(error.__cause__, DeploymentBackend.Error)
    assert f"Step #{failing_position + 1} of 6" in str(error)

    # nothing issued after the failing step
    assert len(backend.calls) == failing_position + 1

    run = error.run
    assert run.status is RunStatus.FAILED
    assert run.failure.position == failing_position
    assert len(run.addresses) == min(failing_position, 4)


def test_failed_submission_halts_run(make_backend, plan):
    backend = make_backend(fail_on_issue=3)

    with pytest.raises(DeploymentFailed) as exc_info:
        Orchestrator(backend).run(plan)

    assert exc_info.value.step.name == FEE_DISTRIBUTOR
    assert "fee_distributor" in str(exc_info.value)
    assert len(backend.calls) == 4
    assert FEE_DISTRIBUTOR not in exc_info.value.run.addresses
    assert backend.invocations == []


def test_unavailable_signer_aborts_before_any_step(make_backend, plan):
    backend = make_backend(signer_error=ConnectionError("node unreachable"))

    with pytest.raises(BackendUnavailable, match="node unreachable"):
        Orchestrator(backend).run(plan)

    assert backend.calls == []


def test_missing_signer_aborts_before_any_step(make_backend, plan):
    backend = make_backend(signer=None)
    with pytest.raises(BackendUnavailable):
        Orchestrator(backend).run(plan)
    assert backend.calls == []


def test_invalid_plan_fails_before_backend_is_used(orchestrator, backend, plan):
    # a configure step slipped in after the plan was built
    ghost_step = plan.configure_steps[0]._replace(target="ghost_marketplace")
    plan.steps.append(ghost_step)

    with pytest.raises(DeploymentPlan.Invalid, match="ghost_marketplace"):
        orchestrator.run(plan)

    assert backend.signer_requests == 0
    assert backend.calls == []


def test_runs_do_not_share_state(orchestrator, backend, plan):
    first = orchestrator.run(plan)
    second = orchestrator.run(plan)

    assert len(first.addresses) == len(second.addresses) == 4
    assert not set(first.addresses.values()) & set(second.addresses.values())

    # the second fee distributor is wired to the second set of contracts
    second_fee_distributor_call = backend.calls[9]
    assert second_fee_distributor_call.target == "FeeDistributor"
    assert second_fee_distributor_call.args[:3] == [
        second.addresses[PRIMARY_MARKETPLACE],
        second.addresses[SECONDARY_MARKETPLACE],
        second.addresses[ROYALTIES_REGISTRY],
    ]
    assert backend.invocations[2].args == [second.addresses[FEE_DISTRIBUTOR]]


def test_fresh_backends_produce_independent_runs(make_backend, plan):
    first = Orchestrator(make_backend()).run(plan)
    second = Orchestrator(make_backend(signer="0x" + "be" * 20)).run(plan)

    assert first is not second
    assert list(first.addresses) == list(second.addresses)
    assert first.addresses != second.addresses


def test_out_of_order_plan_is_executed_in_dependency_order(backend, fee_receiver, weth):
    config = MarketplaceConfig(fee_receiver=fee_receiver, weth=weth)
    shipped = marketplace_plan(config)
    steps = shipped.steps
    # fee distributor and the configuration calls declared first
    reordered = DeploymentPlan(
        steps=[steps[4], steps[3], *steps[:3], steps[5]], constants=shipped.constants
    )

    run = Orchestrator(backend).run(reordered)

    assert run.succeeded
    assert [call.target for call in backend.calls[:4]] == [
        "ERC721NFTMarketplaceV2",
        "ERC1155NFTMarketplace",
        "RoyaltiesRegistry",
        "FeeDistributor",
    ]
    assert backend.unconfirmed_references == []


def test_print_run_summary_success(orchestrator, plan, capsys):
    run = orchestrator.run(plan)
    capsys.readouterr()

    print_run_summary(run)

    output = capsys.readouterr().out
    for name, address in run.addresses.items():
        assert f"{name}" in output
        assert address in output
    assert "halted" not in output


def test_print_run_summary_failure(make_backend, plan, capsys):
    backend = make_backend(fail_on=2)
    with pytest.raises(DeploymentFailed) as exc_info:
        Orchestrator(backend).run(plan)
    # the failing step carries the same number as its progress line
    assert "[3/6] deploy royalties_registry" in capsys.readouterr().out

    print_run_summary(exc_info.value.run)

    output = capsys.readouterr().out
    assert "halted at step #3 of 6" in output
    assert "deploy royalties_registry" in output
    assert "primary_marketplace (ERC721NFTMarketplaceV2) address" in output
    assert "fee_distributor (FeeDistributor) address" not in output
    assert "royalties_registry (RoyaltiesRegistry) address" not in output
