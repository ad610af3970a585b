"""Optional-chaining accessors over FHIR JSON resources."""

from typing import Any, Iterable, List, Optional, Sequence, Union

from fhir_conformance.context import ABSENT

Path = Union[str, Sequence[Union[str, int]]]


def _split(path: Path) -> List[Union[str, int]]:
    if isinstance(path, str):
        parts: List[Union[str, int]] = []
        for raw in path.split("."):
            parts.append(int(raw) if raw.isdigit() else raw)
        return parts
    return list(path)


def get_path(resource: Any, path: Path) -> Any:
    """Follow ``path`` through nested dicts/lists and return the value or ABSENT.

    ``path`` is dotted (``"name.0.family.0"``) or a sequence of keys and
    indices. ``None`` and empty lists count as absent at every step, and a
    step that does not fit the node type (an index into a dict, a key into a
    list) is absent rather than an error.
    """
    node = resource
    for step in _split(path):
        if node is None or node is ABSENT:
            return ABSENT
        if isinstance(step, int):
            if not isinstance(node, list) or step >= len(node) or step < -len(node):
                return ABSENT
            node = node[step]
        else:
            if not isinstance(node, dict) or step not in node:
                return ABSENT
            node = node[step]
    if node is None or node == [] or node == "":
        return ABSENT
    return node


def first_present(resource: Any, *paths: Path) -> Any:
    """Return the value at the first path that resolves, else ABSENT."""
    for path in paths:
        value = get_path(resource, path)
        if value is not ABSENT:
            return value
    return ABSENT


def bundle_resources(bundle: Any, kind: Optional[str] = None) -> List[dict]:
    """List the resources carried in a Bundle's entries, optionally by type."""
    entries = get_path(bundle, "entry")
    if entries is ABSENT or not isinstance(entries, list):
        return []
    found = []
    for entry in entries:
        res = get_path(entry, "resource")
        if not isinstance(res, dict):
            continue
        if kind is None or res.get("resourceType") == kind:
            found.append(res)
    return found


def first_entry_resource(bundle: Any, kind: Optional[str] = None) -> Any:
    resources = bundle_resources(bundle, kind)
    return resources[0] if resources else ABSENT


def resource_ids(resources: Iterable[dict]) -> List[str]:
    return [r["id"] for r in resources if r.get("id")]
