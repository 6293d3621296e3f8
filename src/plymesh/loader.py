# Standard Library
from typing import Mapping, Optional, Sequence, Union

# Local Modules
from plymesh import settings
from plymesh.attributes import AttributeMapper
from plymesh.decoder import decode_elements
from plymesh.errors import ListPropertyOnDisallowedElement, MalformedHeader
from plymesh.header import Schema, extract_header, parse_header
from plymesh.logging import logger
from plymesh.mesh import Mesh, MeshBuilder
from plymesh.primitives import registry

CustomMapping = Mapping[str, Union[str, Sequence[str]]]


class PlyLoader:
    """Decodes PLY bytes (or ASCII PLY text) into a Mesh.

    Configuration is set once, before parsing. A configured loader holds no
    per-parse state, so one instance may serve concurrent ``parse`` calls as
    long as it is not reconfigured meanwhile.

    Attributes:
        property_name_mapping: Header level rename table for property names.
        custom_property_mapping: Output channel -> vertex property name(s)
            copied verbatim into ``Mesh.custom``.
        face_policy: ``"drop"`` ignores faces with other than 3 or 4
            vertices, ``"error"`` raises UnsupportedFaceArity.
        allow_vertex_lists: Whether vertex elements may declare list
            properties.
        show_progress: Show progress bars while decoding records.
    """

    def __init__(
        self,
        property_name_mapping: Optional[Mapping[str, str]] = None,
        custom_property_mapping: Optional[CustomMapping] = None,
        face_policy: str = settings.DEFAULT_FACE_POLICY,
        allow_vertex_lists: bool = settings.DEFAULT_ALLOW_VERTEX_LISTS,
        show_progress: bool = settings.DEFAULT_SHOW_PROGRESS,
    ) -> None:
        if face_policy not in settings.FACE_POLICIES:
            raise ValueError(
                f"Unknown face policy {face_policy!r}, "
                f"expected one of {settings.FACE_POLICIES}"
            )
        self.property_name_mapping = dict(property_name_mapping or {})
        self.custom_property_mapping = dict(custom_property_mapping or {})
        self.face_policy = face_policy
        self.allow_vertex_lists = allow_vertex_lists
        self.show_progress = show_progress
        self.mapper = AttributeMapper()

    def set_property_name_mapping(self, mapping: Mapping[str, str]) -> None:
        """Rename properties while parsing the header, e.g. ``{"diffuse_r": "red"}``."""
        self.property_name_mapping = dict(mapping)

    def set_custom_property_name_mapping(self, mapping: CustomMapping) -> None:
        """Copy extra vertex properties into ``Mesh.custom``.

        Args:
            mapping: Channel name -> property name, or sequence of names for
                a multi-component channel, e.g. ``{"quality": "confidence"}``.
        """
        self.custom_property_mapping = dict(mapping)

    def read_schema(self, data: Union[bytes, str]) -> Schema:
        """Parse only the header of ``data``."""
        header = extract_header(_as_bytes(data))
        return parse_header(header.header_text, self.property_name_mapping)

    def parse(self, data: Union[bytes, bytearray, memoryview, str]) -> Mesh:
        """Decode a complete PLY file.

        Args:
            data: Whole file contents. ``str`` input is the ASCII
                convenience path and must declare ``format ascii``.

        Returns:
            The decoded Mesh.

        Raises:
            PlyError: Any subclass; no partial result is returned.
        """
        is_text = isinstance(data, str)
        data = _as_bytes(data)
        header = extract_header(data)
        schema = parse_header(header.header_text, self.property_name_mapping)
        if is_text and not schema.is_ascii:
            raise MalformedHeader(
                f"Text input must use the ascii format, not {schema.format!r}"
            )
        self._check_schema(schema)

        builder = MeshBuilder(
            mapper=self.mapper,
            custom_property_mapping=self.custom_property_mapping,
            face_policy=self.face_policy,
        )
        for element in decode_elements(
            schema,
            data,
            header.payload_offset,
            readers=registry,
            show_progress=self.show_progress,
        ):
            builder.add(element)
        mesh = builder.build()

        logger.info(
            "Decoded {} PLY: {} vertices, {} triangles".format(
                schema.format, mesh.vertex_count, mesh.triangle_count
            )
        )
        return mesh

    def _check_schema(self, schema: Schema) -> None:
        if self.allow_vertex_lists:
            return
        for element in schema.elements:
            if element.name == settings.VERTEX_ELEMENT and element.has_lists:
                names = ", ".join(prop.name for prop in element.list_properties)
                raise ListPropertyOnDisallowedElement(
                    f"List properties on vertices are unsupported ({names})."
                )


def _as_bytes(data: Union[bytes, bytearray, memoryview, str]) -> bytes:
    if isinstance(data, str):
        return data.encode("utf-8")
    return bytes(data)


def parse(data: Union[bytes, bytearray, memoryview, str], **kwargs) -> Mesh:
    """Decode PLY ``data`` with a one-off PlyLoader built from ``kwargs``."""
    return PlyLoader(**kwargs).parse(data)
