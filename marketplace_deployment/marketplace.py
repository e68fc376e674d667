import typing
from typing import Optional

from eth_typing import ChecksumAddress
from eth_utils import is_hex_address, to_checksum_address

from marketplace_deployment.constants import (
    DEFAULT_PLATFORM_FEE_BPS,
    DEFAULT_ROYALTY_SHARE_BPS,
    FEE_DISTRIBUTOR,
    MARKETPLACE_CONTRACTS,
    MAX_BASIS_POINTS,
    PRIMARY_MARKETPLACE,
    ROYALTIES_REGISTRY,
    SECONDARY_MARKETPLACE,
    SET_FEE_DISTRIBUTOR,
)
from marketplace_deployment.plan import DeploymentPlan


class MarketplaceConfig(typing.NamedTuple):
    """Literal inputs of the marketplace deployment."""

    fee_receiver: ChecksumAddress
    weth: ChecksumAddress
    upgrade_authority: Optional[ChecksumAddress] = None
    platform_fee_bps: int = DEFAULT_PLATFORM_FEE_BPS
    royalty_share_bps: int = DEFAULT_ROYALTY_SHARE_BPS

    def validate(self) -> None:
        for field in ("fee_receiver", "weth"):
            value = getattr(self, field)
            if not is_hex_address(value):
                raise ValueError(f"'{field}' is not a valid address: {value!r}")
        if self.upgrade_authority is not None and not is_hex_address(self.upgrade_authority):
            raise ValueError(
                f"'upgrade_authority' is not a valid address: {self.upgrade_authority!r}"
            )
        for field in ("platform_fee_bps", "royalty_share_bps"):
            value = getattr(self, field)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"'{field}' must be an integer; got {value!r}")
            if not 0 <= value <= MAX_BASIS_POINTS:
                raise ValueError(
                    f"'{field}' must be between 0 and {MAX_BASIS_POINTS} basis points; got {value}"
                )

    def constants(self) -> typing.Dict[str, typing.Any]:
        upgrade_authority = self.upgrade_authority
        if upgrade_authority is not None:
            upgrade_authority = to_checksum_address(upgrade_authority)
        return {
            "UPGRADE_AUTHORITY": upgrade_authority,
            "WETH": to_checksum_address(self.weth),
            "FEE_RECEIVER": to_checksum_address(self.fee_receiver),
            "PLATFORM_FEE_BPS": self.platform_fee_bps,
            "ROYALTY_SHARE_BPS": self.royalty_share_bps,
        }

    @classmethod
    def from_constants(cls, constants: typing.Dict[str, typing.Any]) -> "MarketplaceConfig":
        for required in ("FEE_RECEIVER", "WETH"):
            if required not in constants:
                raise ValueError(f"Deployment plan constants are missing '{required}'.")
        config = cls(
            fee_receiver=constants["FEE_RECEIVER"],
            weth=constants["WETH"],
            upgrade_authority=constants.get("UPGRADE_AUTHORITY"),
            platform_fee_bps=constants.get("PLATFORM_FEE_BPS", DEFAULT_PLATFORM_FEE_BPS),
            royalty_share_bps=constants.get("ROYALTY_SHARE_BPS", DEFAULT_ROYALTY_SHARE_BPS),
        )
        config.validate()
        return config


def marketplace_steps() -> typing.List[typing.Dict[str, typing.Any]]:
    """The raw steps deploying the marketplace pair, royalties registry and fee distributor."""
    return [
        {
            "deploy": PRIMARY_MARKETPLACE,
            "contract": MARKETPLACE_CONTRACTS[PRIMARY_MARKETPLACE],
            "args": ["$UPGRADE_AUTHORITY", "$WETH"],
        },
        {
            "deploy": SECONDARY_MARKETPLACE,
            "contract": MARKETPLACE_CONTRACTS[SECONDARY_MARKETPLACE],
            "args": ["$UPGRADE_AUTHORITY", "$WETH"],
        },
        {
            "deploy": ROYALTIES_REGISTRY,
            "contract": MARKETPLACE_CONTRACTS[ROYALTIES_REGISTRY],
        },
        {
            "deploy": FEE_DISTRIBUTOR,
            "contract": MARKETPLACE_CONTRACTS[FEE_DISTRIBUTOR],
            "args": [
                f"${PRIMARY_MARKETPLACE}",
                f"${SECONDARY_MARKETPLACE}",
                f"${ROYALTIES_REGISTRY}",
                "$FEE_RECEIVER",
                "$PLATFORM_FEE_BPS",
                "$ROYALTY_SHARE_BPS",
            ],
        },
        {
            "configure": PRIMARY_MARKETPLACE,
            "method": SET_FEE_DISTRIBUTOR,
            "args": [f"${FEE_DISTRIBUTOR}"],
        },
        {
            "configure": SECONDARY_MARKETPLACE,
            "method": SET_FEE_DISTRIBUTOR,
            "args": [f"${FEE_DISTRIBUTOR}"],
        },
    ]


def marketplace_plan(config: MarketplaceConfig) -> DeploymentPlan:
    """Returns the deployment plan of the marketplace for the given literal inputs."""
    config.validate()
    return DeploymentPlan.from_config(
        {"constants": config.constants(), "steps": marketplace_steps()}
    )


# command line option -> plan constant
CONSTANT_OVERRIDES = {
    "fee_receiver": "FEE_RECEIVER",
    "weth": "WETH",
    "upgrade_authority": "UPGRADE_AUTHORITY",
    "platform_fee_bps": "PLATFORM_FEE_BPS",
    "royalty_share_bps": "ROYALTY_SHARE_BPS",
}


def apply_constant_overrides(
    config: typing.Dict[str, typing.Any], **overrides
) -> typing.Dict[str, typing.Any]:
    """Returns a copy of a plan config with the given (non-None) constants replaced."""
    constants = dict(config.get("constants") or {})
    for option, value in overrides.items():
        if value is None:
            continue
        try:
            constants[CONSTANT_OVERRIDES[option]] = value
        except KeyError:
            raise ValueError(f"'{option}' does not override any plan constant")
    return {**config, "constants": constants}
