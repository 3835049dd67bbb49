"""
Marketplace contract ABI loading.

Accepts either a plain ABI list or a hardhat artifact ({"abi": [...]}).
"""

import json
from pathlib import Path
from typing import Optional

BUNDLED_ABI_PATH = Path(__file__).with_name("marketplace_abi.json")

# Events the sync flows verify
MARKET_ITEM_CREATED = "MarketItemCreated"
MARKET_ITEM_SOLD = "MarketItemSold"


def load_abi(path: Optional[str] = None) -> list[dict]:
    abi_path = Path(path) if path else BUNDLED_ABI_PATH
    data = json.loads(abi_path.read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = data["abi"]
    return data


def event_names(abi: list[dict]) -> list[str]:
    return [entry["name"] for entry in abi if entry.get("type") == "event"]


def output_field_names(abi: list[dict], function_name: str) -> list[str]:
    """Component names of a function's single tuple output, in ABI order."""
    for entry in abi:
        if entry.get("type") == "function" and entry.get("name") == function_name:
            return [c["name"] for c in entry["outputs"][0].get("components", [])]
    raise KeyError(f"{function_name} not found in ABI")
