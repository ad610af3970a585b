"""Capability statement parsing and the conformance gate."""

from typing import Any, Dict, Iterable, Mapping, Set

from fhir_conformance.exceptions import CapabilityFetchError
from fhir_conformance.logging_config import get_logger

logger = get_logger("capability")

# Short interaction names used by test cases -> codes declared by servers
INTERACTION_ALIASES = {
    "search": "search-type",
    "history": "history-instance",
}


def normalize_interaction(name: str) -> str:
    name = str(name).strip()
    return INTERACTION_ALIASES.get(name, name)


class CapabilityStatement:
    """Which resource types and interactions the target server declares."""

    def __init__(self, interactions: Mapping[str, Iterable[str]] = None) -> None:
        self._interactions: Dict[str, Set[str]] = {
            kind: {normalize_interaction(code) for code in codes}
            for kind, codes in (interactions or {}).items()
        }

    @classmethod
    def from_json(cls, doc: Mapping[str, Any]) -> "CapabilityStatement":
        """Parse a DSTU2 Conformance or STU3+ CapabilityStatement document."""
        interactions: Dict[str, Set[str]] = {}
        for rest in doc.get("rest") or []:
            if rest.get("mode", "server") != "server":
                continue
            for resource in rest.get("resource") or []:
                kind = resource.get("type")
                if not kind:
                    continue
                codes = interactions.setdefault(kind, set())
                for interaction in resource.get("interaction") or []:
                    code = interaction.get("code")
                    if code:
                        codes.add(code)
        return cls(interactions)

    def supports(self, resource_kind: str, interaction_kinds: Iterable[str]) -> bool:
        declared = self._interactions.get(str(resource_kind))
        if declared is None:
            return False
        return all(normalize_interaction(i) in declared for i in interaction_kinds)

    def resource_kinds(self):
        return sorted(self._interactions)

    def interactions_for(self, resource_kind: str) -> Set[str]:
        return set(self._interactions.get(resource_kind, ()))


def fetch_capabilities(client) -> CapabilityStatement:
    """Read ``[base]/metadata`` once and build the gate from it."""
    reply = client.conformance()
    if reply.status_code != 200 or reply.resource is None:
        raise CapabilityFetchError(
            f"Could not read capability statement from {client.base_url}: "
            f"HTTP {reply.status_code}"
        )
    statement = CapabilityStatement.from_json(reply.resource)
    logger.info(
        f"Server declares {len(statement.resource_kinds())} resource types",
        extra={"resource_kinds": statement.resource_kinds()},
    )
    return statement
