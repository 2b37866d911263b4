"""
Species catalog service.

Loads the species definitions (id ranges per rarity, image paths, name parts)
for butterflies, flowers, caterpillars and fish from config/catalog.yaml.
"""

import logging
import random
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from domain.entities.field_models import Species
from domain.exceptions import ConfigurationError
from domain.services.rarity import RandomSource
from domain.value_objects.enums import RarityTier

logger = logging.getLogger("CatalogService")

SPECIES_KINDS = ("butterfly", "flower", "caterpillar", "fish")


class CatalogService:
    """Resolves species ids, names and images for each rarity tier."""

    def __init__(self, catalog_path: Path):
        self.catalog_path = Path(catalog_path)
        self._catalog: Optional[Dict[str, Dict[str, Any]]] = None

    @classmethod
    def from_settings(cls, settings) -> "CatalogService":
        return cls(settings.catalog_path)

    def _load(self) -> Dict[str, Dict[str, Any]]:
        """Load and validate the catalog file once."""
        if self._catalog is not None:
            return self._catalog

        if not self.catalog_path.exists():
            raise ConfigurationError(f"Catalog file not found: {self.catalog_path}")

        with open(self.catalog_path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}

        catalog = {}
        for kind in SPECIES_KINDS:
            if kind not in raw:
                raise ConfigurationError(f"Catalog is missing species kind '{kind}'")
            catalog[kind] = self._parse_kind(kind, raw[kind])

        logger.info(f"Loaded species catalog from {self.catalog_path}")
        self._catalog = catalog
        return catalog

    @staticmethod
    def _parse_kind(kind: str, entry: Dict[str, Any]) -> Dict[str, Any]:
        ranges: Dict[RarityTier, Tuple[int, int]] = {}
        for tier_name, bounds in (entry.get("ranges") or {}).items():
            try:
                tier = RarityTier.from_value(tier_name)
                start, end = int(bounds[0]), int(bounds[1])
            except (ValueError, TypeError, IndexError) as e:
                raise ConfigurationError(f"Invalid range for {kind}/{tier_name}: {e}")
            if end < start:
                raise ConfigurationError(f"Empty range for {kind}/{tier_name}")
            ranges[tier] = (start, end)

        missing = [str(t) for t in RarityTier if t not in ranges]
        if missing:
            raise ConfigurationError(f"{kind} has no ids for: {', '.join(missing)}")

        genera: List[str] = list(entry.get("genera") or [])
        epithets: List[str] = list(entry.get("epithets") or [])
        if not genera or not epithets:
            raise ConfigurationError(f"{kind} needs at least one genus and one epithet")

        return {
            "image": entry.get("image", f"/{kind}/{{id}}.jpg"),
            "ranges": ranges,
            "genera": genera,
            "epithets": epithets,
        }

    def _kind(self, kind: str) -> Dict[str, Any]:
        catalog = self._load()
        if kind not in catalog:
            raise ValueError(f"Unknown species kind: {kind!r}")
        return catalog[kind]

    def rarity_of(self, kind: str, species_id: int) -> RarityTier:
        """
        Rarity tier a species id belongs to.

        Raises:
            ValueError: If the id is outside every range of the kind
        """
        for tier, (start, end) in self._kind(kind)["ranges"].items():
            if start <= species_id <= end:
                return tier
        raise ValueError(f"Unknown {kind} id: {species_id}")

    def name_for(self, kind: str, species_id: int) -> str:
        """Stable two-part name for a species id."""
        entry = self._kind(kind)
        genus = entry["genera"][(species_id * 7) % len(entry["genera"])]
        epithet = entry["epithets"][(species_id * 13) % len(entry["epithets"])]
        return f"{genus} {epithet}"

    def image_for(self, kind: str, species_id: int) -> str:
        return self._kind(kind)["image"].format(id=species_id)

    def describe(self, kind: str, species_id: int) -> Species:
        return Species(
            kind=kind,
            id=species_id,
            name=self.name_for(kind, species_id),
            rarity=self.rarity_of(kind, species_id),
            image_url=self.image_for(kind, species_id),
        )

    def pick_species(self, kind: str, rarity: RarityTier, rng: Optional[RandomSource] = None) -> Species:
        """Random species of `kind` within the id range of `rarity`."""
        rng = rng or random
        tier = RarityTier.from_value(rarity)
        start, end = self._kind(kind)["ranges"][tier]
        species_id = rng.randint(start, end)
        return Species(
            kind=kind,
            id=species_id,
            name=self.name_for(kind, species_id),
            rarity=tier,
            image_url=self.image_for(kind, species_id),
        )
