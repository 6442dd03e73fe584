from __future__ import annotations

from typing import Iterator, Mapping

from ingestion.contracts.quote import Asset
from oracle_relay.exceptions.core import ConfigError
from oracle_relay.utils.config import RelayConfig


class AssetRegistry:
    """
    The fixed set of tracked assets and their destination contracts.

    Built once from a validated RelayConfig and never mutated afterwards.
    Iteration order follows the config file (deterministic logs and tests);
    membership is by the full Asset tuple.
    """

    def __init__(self, assets: list[Asset], contract_map: Mapping[str, str]):
        ordered: list[Asset] = []
        seen: set[Asset] = set()
        for a in assets:
            if a in seen:
                continue
            if a.ethereum_contract not in contract_map:
                raise ConfigError(f"contract_map is missing entry for {a.ethereum_contract}")
            seen.add(a)
            ordered.append(a)
        if not ordered:
            raise ConfigError("asset registry is empty")
        self._assets: tuple[Asset, ...] = tuple(ordered)
        self._members = frozenset(ordered)
        self._contract_map = {a.ethereum_contract: contract_map[a.ethereum_contract] for a in ordered}

    @classmethod
    def from_config(cls, cfg: RelayConfig) -> "AssetRegistry":
        assets = [
            Asset(
                ethereum_contract=a.ethereum_contract,
                decimals=a.decimals,
                base=a.base,
                quote=a.quote,
            )
            for a in cfg.assets
        ]
        return cls(assets, cfg.contract_map)

    def __iter__(self) -> Iterator[Asset]:
        return iter(self._assets)

    def __len__(self) -> int:
        return len(self._assets)

    def __contains__(self, asset: object) -> bool:
        return asset in self._members

    @property
    def assets(self) -> tuple[Asset, ...]:
        return self._assets

    @property
    def contract_map(self) -> dict[str, str]:
        return dict(self._contract_map)

    def destination_for(self, asset: Asset) -> str:
        """Destination contract for an asset; KeyError for untracked assets."""
        return self._contract_map[asset.ethereum_contract]
