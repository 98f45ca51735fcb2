"""Item catalog and reward crate manifests."""
import logging
from typing import Any, Dict, Iterable, List, Tuple

logger = logging.getLogger(__name__)

# (item_kind, quantity) in crate order
Manifest = List[Tuple[str, int]]


class ItemCatalog:
    """Known item kinds the host can put in a crate."""

    def __init__(self, item_kinds: Iterable[str] = ()):
        self.item_kinds = set(item_kinds)

    @classmethod
    def from_config(cls, items_config: Dict[str, Any]) -> 'ItemCatalog':
        """Build from the parsed ``items.json`` contents."""
        kinds = []
        for item_data in items_config.get('items', []):
            if isinstance(item_data, str):
                kinds.append(item_data)
            elif isinstance(item_data, dict) and 'id' in item_data:
                kinds.append(item_data['id'])
            else:
                logger.warning("Skipping malformed item entry: %r", item_data)
        return cls(kinds)

    def is_known(self, item_kind: str) -> bool:
        """An empty catalog accepts every kind."""
        return not self.item_kinds or item_kind in self.item_kinds

    def build_manifest(self, crate_items: Dict[str, int]) -> Manifest:
        """Filter configured crate items down to a valid manifest.

        Unknown kinds and non-positive quantities are dropped with a warning.
        """
        manifest: Manifest = []
        for item_kind, quantity in crate_items.items():
            if not self.is_known(item_kind):
                logger.warning("Unknown item kind '%s' in CrateItems, skipping", item_kind)
                continue
            if quantity <= 0:
                logger.warning("Non-positive quantity %s for '%s', skipping", quantity, item_kind)
                continue
            manifest.append((item_kind, quantity))
        return manifest

    def __len__(self) -> int:
        return len(self.item_kinds)


def manifest_to_list(manifest: Manifest) -> List[Dict[str, Any]]:
    """Wire form of a manifest."""
    return [{"item": kind, "amount": quantity} for kind, quantity in manifest]
