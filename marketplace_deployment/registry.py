import json
from collections import defaultdict
from pathlib import Path
from typing import Dict, List, NamedTuple, Optional

from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address

from marketplace_deployment.utils import _load_json

ChainId = int
ContractName = str

STANDARD_REGISTRY_JSON_FORMAT = {"indent": 4, "separators": (",", ": ")}


class RegistryEntry(NamedTuple):
    """A single deployed contract as recorded in the registry file."""

    chain_id: ChainId
    name: ContractName
    address: ChecksumAddress
    abi: List[Dict]
    tx_hash: str
    block_number: int
    deployer: str


def _entries_from_run(run, registry_names: Dict[str, ContractName]) -> List[RegistryEntry]:
    entries = list()
    recorded = dict()
    for symbolic_name, entity in run.entities.items():
        # remapped by symbolic name first, then by contract type
        name = registry_names.get(
            symbolic_name, registry_names.get(entity.contract_type, entity.contract_type)
        )
        if name in recorded:
            raise ValueError(
                f"'{symbolic_name}' and '{recorded[name]}' would both be recorded as '{name}'; "
                f"map one of them to another registry name"
            )
        recorded[name] = symbolic_name
        entries.append(
            RegistryEntry(
                chain_id=entity.receipt.chain_id,
                name=name,
                address=to_checksum_address(entity.address),
                abi=list(entity.abi),
                tx_hash=entity.receipt.tx_hash,
                block_number=entity.receipt.block_number,
                deployer=entity.receipt.sender,
            )
        )
    return entries


def read_registry(filepath: Path) -> List[RegistryEntry]:
    data = _load_json(filepath)
    registry_entries = list()
    for chain_id, entries in data.items():
        for contract_name, artifacts in entries.items():
            registry_entries.append(
                RegistryEntry(
                    chain_id=int(chain_id),
                    name=contract_name,
                    address=artifacts["address"],
                    abi=artifacts["abi"],
                    tx_hash=artifacts["tx_hash"],
                    block_number=artifacts["block_number"],
                    deployer=artifacts["deployer"],
                )
            )
    return registry_entries


def write_registry(entries: List[RegistryEntry], filepath: Path) -> Path:
    """
    Writes the registry file.

    An existing file is merged when it holds no entries for the chains being
    written; otherwise the output goes to a sibling `.unmerged.json` file so
    that nothing already recorded is overwritten.
    """
    if not entries:
        print("No entries provided.")
        return filepath

    entries = sorted(entries, key=lambda entry: (str(entry.chain_id), entry.name))

    data = defaultdict(dict)
    for entry in entries:
        entry_abi = sorted(entry.abi, key=lambda d: (d["type"], d.get("name", "")))
        data[str(entry.chain_id)][entry.name] = {
            "address": entry.address,
            "abi": entry_abi,
            "tx_hash": entry.tx_hash,
            "block_number": int(entry.block_number),
            "deployer": entry.deployer,
        }

    filepath.parent.mkdir(parents=True, exist_ok=True)

    if filepath.exists():
        print(f"Updating existing registry at {filepath}.")
        existing_data = _load_json(filepath)
        if any(chain_id in existing_data for chain_id in data):
            filepath = filepath.with_suffix(".unmerged.json")
            print(
                "Cannot merge registries with overlapping chain IDs.\n"
                f"Writing to {filepath} to avoid overwriting existing data."
            )
        else:
            existing_data.update(data)
            data = existing_data
    else:
        print(f"Creating new registry at {filepath}.")

    with open(filepath, "w") as file:
        json.dump(data, file, **STANDARD_REGISTRY_JSON_FORMAT)

    return filepath


def registry_from_run(
    run,
    output_filepath: Path,
    registry_names: Optional[Dict[str, ContractName]] = None,
) -> Path:
    """Records the confirmed entities of a deployment run in a registry file."""
    entries = _entries_from_run(run, registry_names=registry_names or dict())
    output_filepath = write_registry(entries=entries, filepath=output_filepath)
    print(f"(i) Registry written to {output_filepath}!")
    return output_filepath
