# deckops

A small library for editing declarative gateway configuration documents
held as node trees. Targets inside a document are chosen with JSONpath
selectors, and the library can:

- apply patches that set, remove or append values (`deckops.patch`);
- add plugin configurations to selected entities, respecting plugin
  scopes in the top-level `plugins` array (`deckops.plugins`);
- add, remove and list tags on selected entities (`deckops.tags`).

It has no runtime dependencies beyond the standard library.

## Installation

```
pip install .
```

For running the test suite:

```
pip install ".[test]"
pytest
```

## Working with nodes

Documents are trees of `deckops.nodes.Node` objects. A mapping node keeps
its keys and values interleaved in `content`, a sequence node keeps its
entries in `content`, and a scalar node carries its text in `value` with a
tag such as `!!str` or `!!int`. Convert between plain Python data and nodes
with `from_value` / `to_value`:

```python
from deckops.nodes import from_value, to_value

doc = from_value({"services": [{"name": "svc1"}]})
data = to_value(doc)
```

`from_object` and `to_object` do the same for objects only (`from_object`
sorts the keys), and `to_array` for arrays; they raise
`deckops.nodes.NodeTypeError` on a node of the wrong kind.

Other helpers operate on nodes directly:

- `new_object`, `new_array`, `new_string`, `copy_node`;
- `get_field_value`, `set_field_value` (a value of `None` removes the key),
  `remove_field`, `find_field_key_index`, `find_field_value_index`,
  `remove_field_by_idx`;
- `append` and `append_slice`, which append nothing if any entry is `None`;
- `search(array, match)`, a generator of `(index, node)` pairs for the
  entries `match` accepts, which tolerates the array changing while it runs;
- `check_type` / `check_types`, which raise `NodeTypeError` unless a node is
  of a given `NodeKind` (`OBJECT`, `ARRAY`, `STRING`, `NUMBER`, `BOOL`,
  `NULL`, ...).

`NodeSet` (in `deckops.nodeset`) is a list of nodes with identity-based
`union`, `intersection`, `is_intersection` and `subtract`.

## Selectors

`deckops.jsonpath.compile_path` compiles a JSONpath expression into a
`JsonPath` whose `find(node)` returns the matching nodes. It supports `$`,
`.name` and `['name']`, wildcards, recursive descent `..`, indices, unions
and slices, and filters such as `[?(@.name == 'x' && @.port > 80)]`.

`SelectorSet` runs several expressions together and returns the matches
without duplicates:

```python
from deckops.selectors import SelectorSet

selectors = SelectorSet(["$..services[*]", "$..routes[*]"])
matches = selectors.find(doc)
```

An invalid expression raises `deckops.jsonpath.JsonPathError`.

## Patching

```python
from deckops.nodes import from_value, to_value
from deckops.patch import DeckPatch, validate_values_flags

values, remove, append_values = validate_values_flags(['name:"new name"', "retries:"])
patch = DeckPatch.parse(
    {"selectors": ["$..routes[*]"], "values": values, "remove": remove},
    "cli",
)
doc = from_value({"routes": [{"name": "old", "retries": 5}]})
patch.apply_to_nodes(doc)
print(to_value(doc))  # {'routes': [{'name': 'new name'}]}
```

Values given to `validate_values_flags` must be JSON: strings are quoted,
`key:` removes a key, and a `[ ... ]` entry appends its entries to selected
arrays. `DeckPatch.parse` takes the patch in object form: `selectors`
(default `["$"]`), `values` (an object of fields to set, or an array of
entries to append) and `remove`. A patch with array values only touches
selected arrays; otherwise it only touches selected objects.

`DeckPatchFile(patches=[...])` applies several patches in order with
`apply`, or with `must_apply(doc, source)`, which names the source in the
error. Errors are raised as `deckops.patch.PatchError`.

## Adding plugins

```python
from deckops.plugins import Plugger

plugger = Plugger()
plugger.set_data({"services": [{"name": "svc1"}]})
plugger.set_selectors(["$..services[*]"])
plugger.add_plugin({"name": "rate-limiting"}, overwrite=False)
print(plugger.get_data())
```

An entity that already has a plugin of the same name keeps it unless
`overwrite` is true. Plugins that reference a service, route, consumer or
consumer group may only be added when the only selected entity is the
document itself (selector `"$"`, the default); there they are matched by
name and by those references. Anything else raises
`deckops.plugins.PluginError`. `set_yaml_data` and the `yaml_data` property
work on a node tree directly; `foreign_key` and `has_foreign_keys` inspect a
plugin node.

`AddPluginPatch.parse(data, source)` builds the same operation from object
form (`selectors`, `plugins`, `overwrite`), and `DeckPluginFile(plugins=[...])`
applies several of them in order.

## Tags

```python
from deckops.tags import Tagger

tagger = Tagger()
tagger.set_data({"services": [{"name": "svc1", "tags": ["a", "b"]}]})
tagger.add_tags(["c"])
tagger.remove_tags(["a"], True)
print(tagger.list_tags())  # ['b', 'c']
```

Without explicit selectors the tagger targets every entity type that can
carry tags (services, routes, consumers, consumer groups, plugins,
upstreams, targets, certificates, CA certificates, SNIs and vaults).
`remove_unknown_tags(known, remove_empty_tag_arrays)` removes every tag not
in `known`.

## What it does not do

- It does not read or write YAML or JSON text. Load a document with your
  own parser (for example `json.load`), turn it into nodes with
  `from_value`, and serialise the result of `to_value`.
- It does not read patch or plugin files from disk. `DeckPatchFile` and
  `DeckPluginFile` are filled from already-parsed data, for instance with
  `DeckPatch.parse` and `AddPluginPatch.parse`; their version fields are
  plain attributes.
- It has no command-line program; it is used as a library.