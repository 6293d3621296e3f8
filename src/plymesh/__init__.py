"""plymesh: decoder for the Polygon File Format (PLY).

This package turns PLY bytes (ASCII, binary little-endian or binary
big-endian bodies) into a triangle Mesh of numpy arrays.
"""

from types import ModuleType
from typing import List

from .logging import logger

from .errors import *
from .primitives import TypeReaderRegistry, PrimitiveReader, PrimitiveType
from .header import (
    ElementSpec,
    HeaderExtraction,
    ListProperty,
    ScalarProperty,
    Schema,
    extract_header,
    parse_header,
)
from .decoder import DecodedElement, decode_elements
from .attributes import AttributeMap, AttributeMapper
from .mesh import Mesh, MeshBuilder, normalize_color, triangulate_face
from .loader import PlyLoader, parse
from .writer import save_mesh

from . import settings


# submodules and typing helpers stay reachable but are not re-exported
__all__: List[str] = ["settings"] + [
    name
    for name in dir()
    if not name.startswith("_")
    and not isinstance(globals()[name], ModuleType)
    and name not in ("List", "ModuleType")
]
