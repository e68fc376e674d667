from ape import networks

LOCAL_NETWORKS = ("local", "ape-test")


def is_local_network() -> bool:
    """Returns True when connected to a local development chain."""
    return networks.provider.network.name in LOCAL_NETWORKS


def current_chain_id() -> int:
    return networks.provider.network.chain_id
