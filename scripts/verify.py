import click
from ape import networks
from ape.cli import ConnectedProviderCommand, network_option

from marketplace_deployment.ape_backend import (
    contracts_from_registry,
    implementation_of,
    verify_contracts,
)
from marketplace_deployment.options import domain_option, plan_filepath_option
from marketplace_deployment.plan import DeploymentPlan
from marketplace_deployment.utils import (
    _load_yaml,
    get_artifact_filepath,
    plan_filepath_from_domain,
)


@click.command(cls=ConnectedProviderCommand)
@network_option(required=True)
@domain_option
@plan_filepath_option
@click.option(
    "--entity",
    "-e",
    "entity_names",
    help="Entity of the plan to verify; all of them if omitted",
    type=click.STRING,
    multiple=True,
)
def cli(network, domain, plan_filepath, entity_names):
    """
    Publishes the logic contracts of a recorded marketplace deployment.

    ape run verify --network ethereum:sepolia:infura --domain testnet -e fee_distributor
    """
    if not (bool(plan_filepath) ^ bool(domain)):
        raise click.BadOptionUsage(
            option_name="--domain",
            message=(
                f"Provide either 'domain' or 'plan_filepath'; got {domain}, {plan_filepath}"
            ),
        )

    config = _load_yaml(plan_filepath or plan_filepath_from_domain(domain=domain))
    plan = DeploymentPlan.from_config(config)
    contract_types = plan.contract_types(entity_names)

    registry_filepath = get_artifact_filepath(config=config)
    chain_id = networks.active_provider.chain_id
    contracts = contracts_from_registry(registry_filepath, chain_id=chain_id)

    implementations = []
    for entity_name, contract_type in contract_types.items():
        try:
            proxy = contracts[contract_type]
        except KeyError:
            raise ValueError(
                f"'{entity_name}' ({contract_type}) not found in registry, "
                f"'{registry_filepath}', for chain {chain_id}"
            )
        implementations.append(implementation_of(proxy))

    verify_contracts(implementations)


if __name__ == "__main__":
    cli()
