"""Edit declarative gateway configuration node trees: JSONpath selectors, patches, plugins and tags."""

__version__ = "0.1.0"

__all__ = ["nodes", "nodeset", "jsonpath", "selectors", "patch", "plugins", "tags"]