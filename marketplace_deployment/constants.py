from pathlib import Path

import marketplace_deployment

#
# Filesystem
#

DEPLOYMENT_DIR = Path(marketplace_deployment.__file__).parent
PLANS_DIR = DEPLOYMENT_DIR / "plans"
ARTIFACTS_DIR = DEPLOYMENT_DIR / "artifacts"

MARKETPLACE_PLAN_FILENAME = "marketplace.yml"

#
# Domains
#

TESTNET = "testnet"

SUPPORTED_DOMAINS = [TESTNET]

#
# Plan entities
#

PRIMARY_MARKETPLACE = "primary_marketplace"
SECONDARY_MARKETPLACE = "secondary_marketplace"
ROYALTIES_REGISTRY = "royalties_registry"
FEE_DISTRIBUTOR = "fee_distributor"

MARKETPLACE_ENTITIES = [
    PRIMARY_MARKETPLACE,
    SECONDARY_MARKETPLACE,
    ROYALTIES_REGISTRY,
    FEE_DISTRIBUTOR,
]

# symbolic name -> contract type
MARKETPLACE_CONTRACTS = {
    PRIMARY_MARKETPLACE: "ERC721NFTMarketplaceV2",
    SECONDARY_MARKETPLACE: "ERC1155NFTMarketplace",
    ROYALTIES_REGISTRY: "RoyaltiesRegistry",
    FEE_DISTRIBUTOR: "FeeDistributor",
}

SET_FEE_DISTRIBUTOR = "setFeeDistributor"

#
# Fees (basis points)
#

MAX_BASIS_POINTS = 10_000
DEFAULT_PLATFORM_FEE_BPS = 250
DEFAULT_ROYALTY_SHARE_BPS = 5000

#
# Proxies
#

OZ_DEPENDENCY_NAME = "openzeppelin"
OZ_DEPENDENCY_VERSION = "5.0.0"
PROXY_CONTRACT_NAME = "TransparentUpgradeableProxy"
INITIALIZER_METHOD = "initialize"

ZERO_ADDRESS = "0x" + "0" * 40
