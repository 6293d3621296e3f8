# Standard Library
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, Tuple, Union

# Third-Party Libraries
import numpy as np

# Local Modules
from plymesh import settings
from plymesh.attributes import AttributeMapper
from plymesh.decoder import DecodedElement
from plymesh.errors import FaceIndexOutOfRange, UnsupportedFaceArity

logger = logging.getLogger(__name__)

Triangle = Tuple[int, int, int]
ColorValue = Union[float, np.ndarray]


@dataclass(eq=False)
class Mesh:
    """Decoded triangle mesh.

    Attributes:
        positions: (N, 3) float32 vertex positions, in vertex record order.
        indices: (M, 3) uint32 triangles indexing into positions.
        normals: Optional (N, 3) float32 vertex normals.
        uvs: Optional (N, 2) float32 texture coordinates.
        colors: Optional (N, 3) float32 colors with components in [0, 1].
        custom: Channel name -> (N, k) float32 values copied verbatim from
            the vertex properties named in the custom property mapping.
    """

    positions: np.ndarray
    indices: np.ndarray = field(
        default_factory=lambda: np.zeros((0, 3), dtype=np.uint32)
    )
    normals: Optional[np.ndarray] = None
    uvs: Optional[np.ndarray] = None
    colors: Optional[np.ndarray] = None
    custom: Dict[str, np.ndarray] = field(default_factory=dict)

    def __post_init__(self) -> None:
        n = len(self.positions)
        for name in ("normals", "uvs", "colors"):
            channel = getattr(self, name)
            if channel is not None and len(channel) != n:
                raise ValueError(
                    f"Mesh {name} has {len(channel)} entries for {n} positions."
                )
        for name, channel in self.custom.items():
            if len(channel) != n:
                raise ValueError(
                    f"Custom channel {name!r} has {len(channel)} entries "
                    f"for {n} positions."
                )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Mesh):
            return NotImplemented
        if self.custom.keys() != other.custom.keys():
            return False
        pairs = [
            (self.positions, other.positions),
            (self.indices, other.indices),
            (self.normals, other.normals),
            (self.uvs, other.uvs),
            (self.colors, other.colors),
        ] + [(self.custom[k], other.custom[k]) for k in self.custom]
        for mine, theirs in pairs:
            if (mine is None) != (theirs is None):
                return False
            if mine is not None and not np.array_equal(mine, theirs):
                return False
        return True

    @property
    def vertex_count(self) -> int:
        return len(self.positions)

    @property
    def triangle_count(self) -> int:
        return len(self.indices)

    def to_o3d(self):
        """Convert to an Open3D TriangleMesh (requires the ``open3d`` extra).

        Returns:
            ``open3d.geometry.TriangleMesh`` with vertices, triangles and,
            when present, vertex normals and colors.
        """
        import open3d as o3d

        o3d_mesh = o3d.geometry.TriangleMesh()
        o3d_mesh.vertices = o3d.utility.Vector3dVector(
            self.positions.astype(np.float64)
        )
        o3d_mesh.triangles = o3d.utility.Vector3iVector(self.indices.astype(np.int32))
        if self.normals is not None:
            o3d_mesh.vertex_normals = o3d.utility.Vector3dVector(
                self.normals.astype(np.float64)
            )
        if self.colors is not None:
            o3d_mesh.vertex_colors = o3d.utility.Vector3dVector(
                self.colors.astype(np.float64)
            )
        return o3d_mesh


def _normalize_component(value: ColorValue) -> ColorValue:
    value = np.asarray(value, dtype=np.float64)
    normalized = np.where(
        value > settings.COLOR_NORMALIZED_MAX, value / settings.COLOR_BYTE_SCALE, value
    )
    return normalized.item() if normalized.ndim == 0 else normalized


def normalize_color(
    red: ColorValue, green: ColorValue, blue: ColorValue
) -> Tuple[ColorValue, ColorValue, ColorValue]:
    """Bring color components into [0, 1].

    Each component is handled on its own: anything above 1.0 is taken to be
    a 0-255 value and divided by 255, anything else is kept as is. The
    declared property type is not consulted. Works on scalars and arrays.
    """
    return (
        _normalize_component(red),
        _normalize_component(green),
        _normalize_component(blue),
    )


def triangulate_face(indices: Sequence[int]) -> Optional[List[Triangle]]:
    """Split a face into triangles.

    Triangles are kept as listed. A quad ``[a, b, c, d]`` becomes
    ``(a, b, c)`` and ``(c, d, a)``. Any other vertex count returns None.
    """
    if len(indices) == 3:
        a, b, c = (int(i) for i in indices)
        return [(a, b, c)]
    if len(indices) == 4:
        a, b, c, d = (int(i) for i in indices)
        return [(a, b, c), (c, d, a)]
    return None


def _stack(element: DecodedElement, names: Sequence[str]) -> np.ndarray:
    columns = [element.column(name).astype(np.float64) for name in names]
    return np.column_stack(columns).reshape(len(element), len(names))


class MeshBuilder:
    """Accumulates decoded elements into a Mesh.

    ``vertex`` elements feed positions and the optional vertex channels,
    ``face`` elements feed triangle indices. Anything else is ignored.
    """

    def __init__(
        self,
        mapper: Optional[AttributeMapper] = None,
        custom_property_mapping: Optional[Mapping[str, Sequence[str]]] = None,
        face_policy: str = settings.DEFAULT_FACE_POLICY,
    ) -> None:
        if face_policy not in settings.FACE_POLICIES:
            raise ValueError(
                f"Unknown face policy {face_policy!r}, "
                f"expected one of {settings.FACE_POLICIES}"
            )
        self.mapper = mapper or AttributeMapper()
        self.custom_property_mapping = dict(custom_property_mapping or {})
        self.face_policy = face_policy

        self._vertex_elements = 0
        self._positions: List[np.ndarray] = []
        self._channels: Dict[str, List[np.ndarray]] = {
            "normal": [],
            "uv": [],
            "color": [],
        }
        self._custom: Dict[str, List[np.ndarray]] = {
            name: [] for name in self.custom_property_mapping
        }
        self._triangles: List[Triangle] = []
        self._dropped_faces = 0

    def add(self, element: DecodedElement) -> None:
        if element.name == settings.VERTEX_ELEMENT:
            self._add_vertices(element)
        elif element.name == settings.FACE_ELEMENT:
            self._add_faces(element)
        else:
            logger.debug(f"Skipping element {element.name!r} ({len(element)} records)")

    def _add_vertices(self, element: DecodedElement) -> None:
        names = [prop.name for prop in element.spec.scalar_properties]
        attributes = self.mapper.resolve_vertex(element.name, names)
        self._vertex_elements += 1

        self._positions.append(_stack(element, attributes.get("position")))
        for role in ("normal", "uv"):
            if attributes.has(role):
                self._channels[role].append(_stack(element, attributes.get(role)))
        if attributes.has("color"):
            red, green, blue = (
                element.column(name) for name in attributes.get("color")
            )
            self._channels["color"].append(
                np.column_stack(normalize_color(red, green, blue)).reshape(
                    len(element), 3
                )
            )

        for channel, props in self.custom_property_mapping.items():
            props = [props] if isinstance(props, str) else list(props)
            missing = [name for name in props if name not in names]
            if missing:
                logger.warning(
                    f"Custom channel {channel!r} skipped for element {element.name!r}: "
                    f"no property {', '.join(missing)}"
                )
                continue
            self._custom[channel].append(_stack(element, props))

    def _add_faces(self, element: DecodedElement) -> None:
        list_names = [prop.name for prop in element.spec.list_properties]
        index_name = self.mapper.resolve_face_indices(list_names)
        if index_name is None:
            logger.warning(
                f"Element {element.name!r} has no vertex index list, skipping "
                f"{len(element)} faces"
            )
            return

        for record, face in enumerate(element.column(index_name)):
            triangles = triangulate_face(face)
            if triangles is not None:
                self._triangles.extend(triangles)
            elif self.face_policy == settings.FACE_POLICY_ERROR:
                raise UnsupportedFaceArity(
                    f"Face {record} of element {element.name!r} has "
                    f"{len(face)} vertices, only 3 or 4 are supported"
                )
            else:
                self._dropped_faces += 1

    def _merge(self, name: str, chunks: List[np.ndarray]) -> Optional[np.ndarray]:
        # a channel is only emitted if every vertex element provided it
        if not chunks:
            return None
        if len(chunks) != self._vertex_elements:
            logger.warning(
                f"Dropping {name} channel: only {len(chunks)} of "
                f"{self._vertex_elements} vertex elements provide it"
            )
            return None
        return np.concatenate(chunks).astype(np.float32)

    def build(self) -> Mesh:
        """Assemble the Mesh from everything added so far.

        Raises:
            FaceIndexOutOfRange: If a triangle references a missing vertex.
        """
        if self._positions:
            positions = np.concatenate(self._positions).astype(np.float32)
        else:
            positions = np.zeros((0, 3), dtype=np.float32)

        indices = np.array(self._triangles, dtype=np.int64).reshape(-1, 3)
        if indices.size:
            low, high = int(indices.min()), int(indices.max())
            if low < 0 or high >= len(positions):
                bad = low if low < 0 else high
                raise FaceIndexOutOfRange(
                    f"Face index {bad} outside vertex range [0, {len(positions)})"
                )
        if self._dropped_faces:
            logger.debug(
                f"Dropped {self._dropped_faces} faces with other than 3 or 4 vertices"
            )

        custom = {}
        for channel, chunks in self._custom.items():
            merged = self._merge(f"custom {channel!r}", chunks)
            if merged is not None:
                custom[channel] = merged

        return Mesh(
            positions=positions,
            indices=indices.astype(np.uint32),
            normals=self._merge("normal", self._channels["normal"]),
            uvs=self._merge("uv", self._channels["uv"]),
            colors=self._merge("color", self._channels["color"]),
            custom=custom,
        )
