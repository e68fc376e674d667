#!/usr/bin/python3

import click
from ape import networks
from ape.cli import ConnectedProviderCommand, network_option

from marketplace_deployment.ape_backend import ApeBackend, check_plugins
from marketplace_deployment.marketplace import MarketplaceConfig, apply_constant_overrides
from marketplace_deployment.networks import current_chain_id, is_local_network
from marketplace_deployment.options import (
    autosign_option,
    domain_option,
    fee_receiver_option,
    plan_filepath_option,
    platform_fee_option,
    royalty_share_option,
    upgrade_authority_option,
    verify_option,
    weth_option,
)
from marketplace_deployment.orchestrator import DeploymentFailed, Orchestrator, print_run_summary
from marketplace_deployment.plan import DeploymentPlan
from marketplace_deployment.registry import registry_from_run
from marketplace_deployment.utils import _load_yaml, plan_filepath_from_domain, validate_config


@click.command(cls=ConnectedProviderCommand)
@network_option(required=True)
@domain_option
@plan_filepath_option
@autosign_option
@verify_option
@fee_receiver_option
@weth_option
@upgrade_authority_option
@platform_fee_option
@royalty_share_option
def cli(network, domain, plan_filepath, autosign, verify, **overrides):
    """
    Deploys the NFT marketplace pair, the royalties registry and the fee
    distributor as upgradeable proxies, then binds the fee distributor
    into both marketplaces.

    ape run deploy_marketplace --network ethereum:sepolia:infura --domain testnet
    """
    if not (bool(plan_filepath) ^ bool(domain)):
        raise click.BadOptionUsage(
            option_name="--domain",
            message=(
                f"Provide either 'domain' or 'plan_filepath'; got {domain}, {plan_filepath}"
            ),
        )

    plan_filepath = plan_filepath or plan_filepath_from_domain(domain=domain)
    config = apply_constant_overrides(_load_yaml(plan_filepath), **overrides)
    marketplace_config = MarketplaceConfig.from_constants(config.get("constants") or dict())
    config["constants"].update(marketplace_config.constants())

    registry_filepath = validate_config(
        config=config, chain_id=current_chain_id(), live=not is_local_network()
    )
    plan = DeploymentPlan.from_config(config)
    check_plugins()

    backend = ApeBackend(autosign=autosign, verify=verify)
    print(
        f"Account: {backend.get_signer().address}",
        f"Plan: {plan_filepath}",
        f"Registry: {registry_filepath}",
        f"Verify: {verify}",
        f"Ecosystem: {networks.provider.network.ecosystem.name}",
        f"Network: {networks.provider.network.name}",
        f"Chain ID: {networks.provider.network.chain_id}",
        sep="\n",
    )

    try:
        run = Orchestrator(backend).run(plan)
    except DeploymentFailed as e:
        print_run_summary(e.run)
        raise

    print_run_summary(run)
    registry_from_run(run, output_filepath=registry_filepath)
    backend.finalize(deployments=list(run.handles.values()))


if __name__ == "__main__":
    cli()
