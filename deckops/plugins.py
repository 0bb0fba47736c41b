"""Adding plugin configurations to entities of a declarative configuration.

Targets are selected with JSONPath selectors; by default plugins are added
to the top-level ``plugins`` array. Plugins that reference other entities
(service, route, consumer, consumer_group) can only be added to that
top-level array, where they are matched by name and by those references.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Optional

from .jsonpath import JsonPath, JsonPathError, compile_path
from .nodes import (
    Kind,
    Node,
    append,
    copy_node,
    from_value,
    get_field_value,
    new_array,
    new_object,
    search,
    set_field_value,
    to_value,
)

log = logging.getLogger(__name__)

DEFAULT_SELECTORS = ("$",)
FOREIGN_KEYS = ("service", "route", "consumer", "consumer_group")
_FOREIGN_KEY_SEPARATOR = ":"


class PluginError(ValueError):
    """A plugin definition is invalid or could not be added."""


def foreign_key(plugin: Node) -> str:
    """Return a key combining all foreign-key values of ``plugin``."""
    parts = []
    for key in FOREIGN_KEYS:
        node = get_field_value(plugin, key)
        parts.append(node.value if node is not None and node.kind == Kind.SCALAR else "")
        parts.append(_FOREIGN_KEY_SEPARATOR)
    return "".join(parts)


_NO_FOREIGN_KEYS = foreign_key(new_object())


def has_foreign_keys(plugin: Node) -> bool:
    """True if ``plugin`` references a service, route, consumer or consumer group."""
    return foreign_key(plugin) != _NO_FOREIGN_KEYS


def _plugin_name(plugin: Node) -> Optional[str]:
    if plugin.kind != Kind.MAPPING:
        return None
    name_node = get_field_value(plugin, "name")
    if name_node is None or name_node.kind != Kind.SCALAR:
        return None
    return name_node.value


class Plugger:
    """Adds plugins to the entities that a set of selectors picks out."""

    def __init__(self) -> None:
        self._selectors: Optional[list[JsonPath]] = None
        self._owners: Optional[list[Node]] = None
        self._main: Optional[Node] = None
        self._data: Optional[Node] = None

    def set_data(self, data: Mapping[str, Any]) -> None:
        """Set the document to operate on from plain values."""
        if data is None:
            raise ValueError("data cannot be None")
        self.set_yaml_data(from_value(data))

    def set_yaml_data(self, data: Node) -> None:
        """Set the document node tree to operate on."""
        if data is None:
            raise ValueError("data cannot be None")
        self._data = data
        self._owners = None
        self._main = None

    @property
    def yaml_data(self) -> Optional[Node]:
        """The (modified) document node tree."""
        return self._data

    def get_data(self) -> dict[str, Any]:
        """Return the (modified) document as plain values."""
        if self._data is None:
            raise ValueError("data hasn't been set, see set_data()")
        return to_value(self._data)

    def set_selectors(self, selectors: Optional[Iterable[str]]) -> None:
        """Compile the selectors to use; empty or None selects the defaults."""
        sources = list(selectors or [])
        if not sources:
            log.debug("no selectors provided, using defaults %s", list(DEFAULT_SELECTORS))
            sources = list(DEFAULT_SELECTORS)
        compiled = []
        for source in sources:
            try:
                compiled.append(compile_path(source))
            except JsonPathError as err:
                raise PluginError(
                    f"selector '{source}' is not a valid JSONpath expression; {err}"
                ) from err
        self._selectors = compiled
        self._owners = None
        self._main = None

    def _search(self) -> list[Node]:
        if self._owners is not None:
            return self._owners
        if self._data is None:
            raise ValueError("data hasn't been set, see set_data()")
        if self._selectors is None:
            self.set_selectors(None)

        owners: list[Node] = []
        seen: set[int] = set()
        for idx, selector in enumerate(self._selectors or []):
            nodes = selector.find(self._data)
            count = 0
            for node in nodes:
                if node.kind == Kind.MAPPING and id(node) not in seen:
                    seen.add(id(node))
                    owners.append(node)
                    count += 1
            log.debug("selector %d: %d results, %d objects", idx, len(nodes), count)
        self._owners = owners

        main = get_field_value(self._data, "plugins")
        self._main = main if main is not None and main.kind == Kind.SEQUENCE else None
        return owners

    def add_plugin(self, plugin: Mapping[str, Any], overwrite: bool) -> None:
        """Add one plugin to every selected entity; see :meth:`add_plugins`."""
        if plugin is None:
            raise ValueError("plugin cannot be None")
        self.add_plugins([plugin], overwrite)

    def add_plugins(self, plugins: Iterable[Mapping[str, Any]], overwrite: bool) -> None:
        """Add plugins to every selected entity.

        An entity that already has a plugin of the same name keeps it unless
        ``overwrite`` is true. Plugins with foreign keys are only accepted when
        the single selected entity is the document itself.
        """
        owners = self._search()
        foreign_keys_supported = len(owners) == 1 and owners[0] is self._data

        plugin_nodes = []
        for idx, plugin in enumerate(plugins):
            if plugin is None:
                raise PluginError(f"plugin {idx} is None")
            if not isinstance(plugin, Mapping):
                raise PluginError(f"plugin {idx} is not an object")
            node = from_value(plugin)
            if not foreign_keys_supported and has_foreign_keys(node):
                raise PluginError(
                    f"plugin {idx} has foreign keys, but they are only supported "
                    "in the main plugin array"
                )
            plugin_nodes.append(node)

        for node in plugin_nodes:
            self._add_to_owners(node, overwrite)

    def _add_to_owners(self, new_plugin: Node, overwrite: bool) -> None:
        plugin_name = _plugin_name(new_plugin)
        if plugin_name is None:
            log.info("plugin has no name: %r", new_plugin)
            plugin_name = ""
        else:
            log.info("adding plugin %r", plugin_name)
        plugin_key = foreign_key(new_plugin)

        def by_name(node: Node) -> bool:
            return _plugin_name(node) == plugin_name

        def by_name_and_scope(node: Node) -> bool:
            return by_name(node) and foreign_key(node) == plugin_key

        for owner in self._owners or []:
            owner_plugins = get_field_value(owner, "plugins")
            if owner_plugins is None or owner_plugins.kind != Kind.SEQUENCE:
                owner_plugins = new_array()
                set_field_value(owner, "plugins", owner_plugins)
                if owner is self._data:
                    self._main = owner_plugins

            matcher = by_name_and_scope if owner_plugins is self._main else by_name
            found = next(search(owner_plugins, matcher), None)
            if found is None:
                append(owner_plugins, copy_node(new_plugin))
            elif overwrite:
                idx, _ = found
                owner_plugins.content[idx] = copy_node(new_plugin)


def _string_list(data: Mapping[str, Any], key: str) -> list[str]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, (list, tuple)):
        raise PluginError(f"field '{key}' is not an array")
    return [entry for entry in value if isinstance(entry, str)]


def _object_list(data: Mapping[str, Any], key: str) -> list[dict[str, Any]]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, (list, tuple)):
        raise PluginError(f"field '{key}' is not an array")
    return [dict(entry) for entry in value if isinstance(entry, Mapping)]


@dataclass
class AddPluginPatch:
    """A patch adding a list of plugins to the entities its selectors pick."""

    selectors: list[str] = field(default_factory=list)
    plugins: list[dict[str, Any]] = field(default_factory=list)
    overwrite: bool = False

    @classmethod
    def parse(cls, patch_data: Mapping[str, Any], source: str) -> AddPluginPatch:
        """Build a patch from its JSON object form; ``source`` prefixes errors."""
        try:
            selectors = _string_list(patch_data, "selectors")
        except PluginError as err:
            raise PluginError(f"{source}.selectors: is not an array; {err}") from err
        try:
            Plugger().set_selectors(selectors)
        except PluginError as err:
            raise PluginError(f"{source}.selectors: {err}") from err

        try:
            plugins = _object_list(patch_data, "plugins")
        except PluginError as err:
            raise PluginError(f"{source}.plugins is not an array; {err}") from err

        overwrite = patch_data.get("overwrite")
        if overwrite is None:
            overwrite = False
        elif not isinstance(overwrite, bool):
            raise PluginError(
                f"{source}.overwrite: field 'overwrite' is not a boolean"
            )
        return cls(selectors=selectors, plugins=plugins, overwrite=overwrite)

    def apply(self, yaml_data: Node) -> None:
        """Add the plugins to ``yaml_data``."""
        plugger = Plugger()
        plugger.set_selectors(self.selectors)
        plugger.set_yaml_data(yaml_data)
        plugger.add_plugins(self.plugins, self.overwrite)


@dataclass
class DeckPluginFile:
    """A versioned list of add-plugin patches."""

    version_major: int = 0
    version_minor: int = 0
    plugins: list[AddPluginPatch] = field(default_factory=list)

    def apply(self, yaml_data: Node) -> None:
        """Apply all patches in order."""
        for idx, patch in enumerate(self.plugins):
            try:
                patch.apply(yaml_data)
            except PluginError as err:
                raise PluginError(f"failed to apply add-plugin patch {idx}; {err}") from err