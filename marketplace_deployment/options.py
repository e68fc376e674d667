from pathlib import Path

import click

from marketplace_deployment.constants import SUPPORTED_DOMAINS
from marketplace_deployment.types import BasisPoints, ChecksumAddress

domain_option = click.option(
    "--domain",
    "-d",
    help="Deployment domain; selects the bundled deployment plan",
    type=click.Choice(SUPPORTED_DOMAINS),
    required=False,
)

plan_filepath_option = click.option(
    "--plan-filepath",
    "-f",
    help="Deployment plan YAML, if not deploying one of the bundled domains",
    type=click.Path(dir_okay=False, exists=True, path_type=Path),
    required=False,
)

autosign_option = click.option(
    "--autosign",
    help="Sign transactions without asking for confirmation",
    is_flag=True,
    default=False,
)

verify_option = click.option(
    "--verify/--no-verify",
    help="Publish the deployed contracts to the block explorer",
    default=False,
)

fee_receiver_option = click.option(
    "--fee-receiver",
    help="Overrides the FEE_RECEIVER constant of the plan",
    type=ChecksumAddress(),
    required=False,
)

weth_option = click.option(
    "--weth",
    help="Overrides the WETH constant of the plan",
    type=ChecksumAddress(),
    required=False,
)

upgrade_authority_option = click.option(
    "--upgrade-authority",
    help="Overrides the UPGRADE_AUTHORITY constant of the plan",
    type=ChecksumAddress(),
    required=False,
)

platform_fee_option = click.option(
    "--platform-fee-bps",
    help="Overrides the PLATFORM_FEE_BPS constant of the plan",
    type=BasisPoints(),
    required=False,
)

royalty_share_option = click.option(
    "--royalty-share-bps",
    help="Overrides the ROYALTY_SHARE_BPS constant of the plan",
    type=BasisPoints(),
    required=False,
)
