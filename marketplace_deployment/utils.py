import json
import os
from pathlib import Path
from typing import Dict

import yaml

from marketplace_deployment.constants import (
    ARTIFACTS_DIR,
    MARKETPLACE_PLAN_FILENAME,
    PLANS_DIR,
)


def _load_yaml(filepath: Path) -> dict:
    """Loads a YAML file."""
    with open(filepath, "r") as file:
        return yaml.safe_load(file)


def _load_json(filepath: Path) -> dict:
    """Loads a JSON file."""
    with open(filepath, "r") as file:
        return json.load(file)


def plan_filepath_from_domain(domain: str) -> Path:
    p = PLANS_DIR / domain / MARKETPLACE_PLAN_FILENAME
    if not p.exists():
        raise ValueError(f"No deployment plan found for domain '{domain}'")
    return p


def get_artifact_filepath(config: Dict) -> Path:
    """Returns the filepath of the artifact file."""
    artifact_config = config.get("artifacts") or {}
    artifact_dir = Path(artifact_config.get("dir", ARTIFACTS_DIR))
    filename = artifact_config.get("filename")
    if not filename:
        raise ValueError("artifact filename is not set in plan file.")
    return artifact_dir / filename


def validate_config(config: Dict, chain_id: int, live: bool = True) -> Path:
    """
    Checks that the plan targets the connected chain and that the deployment
    has not already been published for its chain_id.
    """
    print("Validating deployment plan YAML...")

    deployment = config.get("deployment")
    if not deployment:
        raise ValueError("deployment is not set in plan file.")

    config_chain_id = deployment.get("chain_id")
    if not config_chain_id:
        raise ValueError("chain_id is not set in plan file.")

    steps = config.get("steps")
    if not steps:
        raise ValueError("Deployment plan file missing 'steps' field.")

    config_chain_id = int(config_chain_id)
    if config_chain_id != chain_id and live:
        raise ValueError(
            f"chain_id in plan file ({config_chain_id}) does not match "
            f"chain_id of current network ({chain_id})."
        )

    registry_filepath = get_artifact_filepath(config=config)
    if not registry_filepath.exists():
        return registry_filepath

    registry_chain_ids = map(int, _load_json(registry_filepath).keys())
    if config_chain_id in registry_chain_ids and live:
        raise ValueError(f"Deployment is already published for chain_id {config_chain_id}.")

    return registry_filepath


def check_etherscan_plugin(ecosystem_name: str) -> None:
    """
    Checks that the ape-etherscan plugin is installed and that
    the appropriate API key environment variable is set.
    """
    try:
        from ape_etherscan.utils import API_KEY_ENV_KEY_MAP
    except ImportError:
        raise ImportError("Please install the ape-etherscan plugin to use this script.")
    explorer_envvar = API_KEY_ENV_KEY_MAP.get(ecosystem_name)
    api_key = os.environ.get(explorer_envvar) if explorer_envvar else None
    if not api_key:
        raise ValueError(f"{explorer_envvar or 'Explorer API key'} is not set.")


def check_infura_plugin(provider_name: str) -> None:
    """Checks that the ape-infura plugin is installed when infura is the provider."""
    if provider_name != "infura":
        return  # unnecessary when using a provider different than infura
    try:
        from ape_infura.provider import _ENVIRONMENT_VARIABLE_NAMES
    except ImportError:
        raise ImportError("Please install the ape-infura plugin to use this script.")
    for envvar in _ENVIRONMENT_VARIABLE_NAMES:
        api_key = os.environ.get(envvar)
        if api_key:
            break
    else:
        raise ValueError(
            f"No Infura API key found in "
            f"environment variables: {', '.join(_ENVIRONMENT_VARIABLE_NAMES)}"
        )
