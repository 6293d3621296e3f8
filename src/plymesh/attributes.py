# Standard Library
from dataclasses import dataclass
from typing import Dict, Iterable, Mapping, Optional, Sequence, Tuple

# Local Modules
from plymesh import settings
from plymesh.errors import MissingPositionAttribute

AliasTable = Mapping[str, Sequence[Sequence[str]]]


def find_first(candidates: Iterable[str], names: Iterable[str]) -> Optional[str]:
    """Return the first candidate present in ``names``, or None."""
    available = set(names)
    for candidate in candidates:
        if candidate in available:
            return candidate
    return None


@dataclass(frozen=True)
class AttributeMap:
    """Property names resolved for each semantic role of one element.

    A role maps to a tuple with one property name per component, or to
    None when any component is missing.
    """

    roles: Dict[str, Optional[Tuple[str, ...]]]

    def get(self, role: str) -> Optional[Tuple[str, ...]]:
        return self.roles.get(role)

    def has(self, role: str) -> bool:
        return self.roles.get(role) is not None


class AttributeMapper:
    """Resolves property names to roles (position, normal, uv, color).

    Resolution is a priority table lookup: for each component the first
    alias the element declares wins.
    """

    def __init__(
        self,
        aliases: Optional[AliasTable] = None,
        face_index_aliases: Optional[Sequence[str]] = None,
    ) -> None:
        self.aliases = dict(settings.ATTRIBUTE_ALIASES if aliases is None else aliases)
        self.face_index_aliases = tuple(
            settings.FACE_INDEX_ALIASES
            if face_index_aliases is None
            else face_index_aliases
        )

    def resolve(self, names: Iterable[str]) -> AttributeMap:
        names = list(names)
        roles: Dict[str, Optional[Tuple[str, ...]]] = {}
        for role, components in self.aliases.items():
            found = tuple(find_first(candidates, names) for candidates in components)
            roles[role] = None if None in found else found
        return AttributeMap(roles)

    def resolve_vertex(self, element_name: str, names: Iterable[str]) -> AttributeMap:
        """Resolve a vertex element, which must provide all of x, y and z.

        Raises:
            MissingPositionAttribute: If a position component is not declared.
        """
        names = list(names)
        attributes = self.resolve(names)
        if not attributes.has("position"):
            missing = [
                candidates[0]
                for candidates in self.aliases["position"]
                if find_first(candidates, names) is None
            ]
            raise MissingPositionAttribute(
                f"Element {element_name!r} has no {'/'.join(missing)} "
                f"position property (declared: {', '.join(names) or 'none'})"
            )
        return attributes

    def resolve_face_indices(self, names: Iterable[str]) -> Optional[str]:
        return find_first(self.face_index_aliases, names)
