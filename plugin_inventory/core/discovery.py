"""Sources of recommended plugin versions for a CLI context."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import List, Tuple, Union

import yaml

from .inventory import PluginInventory, PluginInventoryFilter, normalize_target

logger = logging.getLogger(__name__)

CLI_PLUGIN_KIND = "CLIPlugin"


class DiscoveryError(Exception):
    """Raised when a recommendation source cannot be read."""

    pass


@dataclass
class DiscoveryContext:
    """The CLI context plugins are being discovered for."""

    name: str
    target: str = ""


class RecommendationSource(ABC):
    """Produces (plugin name, recommended version) pairs for a context."""

    @abstractmethod
    def list_recommended(self, context: DiscoveryContext) -> List[Tuple[str, str]]:
        """List the plugins recommended for a context."""


class InventoryRecommendationSource(RecommendationSource):
    """
    Recommendations read from a plugin inventory.

    Hidden versions are left out, and only plugins of the context's target
    are returned when the context has one.
    """

    def __init__(self, inventory: PluginInventory):
        self.inventory = inventory

    def list_recommended(self, context: DiscoveryContext) -> List[Tuple[str, str]]:
        entries = self.inventory.get_plugins(PluginInventoryFilter(
            target=context.target or None,
            include_hidden=False,
        ))
        logger.debug(f"Inventory recommends {len(entries)} plugin(s) for context '{context.name}'")
        return [(entry.name, entry.recommended_version) for entry in entries]


class ResourceRecommendationSource(RecommendationSource):
    """
    Recommendations read from exported CLIPlugin resources.

    The file holds one or more YAML documents; documents of any other kind
    are ignored.
    """

    def __init__(self, resources_file: Union[str, Path]):
        self.resources_file = Path(resources_file)

    def list_recommended(self, context: DiscoveryContext) -> List[Tuple[str, str]]:
        try:
            with open(self.resources_file, "r") as f:
                documents = list(yaml.safe_load_all(f))
        except FileNotFoundError:
            raise DiscoveryError(f"Resource file not found: {self.resources_file}")
        except yaml.YAMLError as e:
            raise DiscoveryError(f"Invalid YAML in {self.resources_file}: {e}")

        recommended = []
        for doc in documents:
            if not isinstance(doc, dict) or doc.get("kind") != CLI_PLUGIN_KIND:
                continue

            name = (doc.get("metadata") or {}).get("name")
            spec = doc.get("spec") or {}
            if not name:
                raise DiscoveryError(f"{CLI_PLUGIN_KIND} resource without a name in {self.resources_file}")

            target = normalize_target(spec.get("target", ""))
            if context.target and target and target != normalize_target(context.target):
                continue

            recommended.append((name, spec.get("recommendedVersion", "")))

        return recommended
