import numpy as np
import pytest

from plymesh.attributes import AttributeMapper
from plymesh.decoder import DecodedElement
from plymesh.errors import (
    FaceIndexOutOfRange,
    MissingPositionAttribute,
    UnsupportedFaceArity,
)
from plymesh.header import ElementSpec, ListProperty, ScalarProperty
from plymesh.mesh import Mesh, MeshBuilder, normalize_color, triangulate_face

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _vertex_element(columns: dict, types: dict = None, name: str = "vertex"):
    types = types or {}
    props = tuple(ScalarProperty(key, types.get(key, "float")) for key in columns)
    count = len(next(iter(columns.values())))
    spec = ElementSpec(name, count, props)
    scalars = np.zeros(count, dtype=spec.scalar_dtype())
    for key, values in columns.items():
        scalars[key] = values
    return DecodedElement(spec=spec, scalars=scalars)


def _face_element(faces, name: str = "vertex_indices"):
    spec = ElementSpec("face", len(faces), (ListProperty(name, "uchar", "int"),))
    return DecodedElement(
        spec=spec,
        scalars=np.zeros(len(faces), dtype=spec.scalar_dtype()),
        lists={name: [np.array(face, dtype=np.int32) for face in faces]},
    )


TRIANGLE = {"x": [0.0, 1.0, 0.0], "y": [0.0, 0.0, 1.0], "z": [0.0, 0.0, 0.0]}


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestAttributeMapper:
    def test_first_alias_wins(self) -> None:
        attributes = AttributeMapper().resolve(["px", "x", "y", "posy", "pz"])
        assert attributes.get("position") == ("x", "y", "pz")

    def test_partial_role_is_unresolved(self) -> None:
        attributes = AttributeMapper().resolve(["x", "y", "z", "nx", "ny"])
        assert not attributes.has("normal")
        assert attributes.get("normal") is None

    def test_all_roles(self) -> None:
        names = ["posx", "posy", "posz", "normalx", "normaly", "normalz"]
        names += ["tex_u", "tex_v", "diffuse_red", "g", "blue"]
        attributes = AttributeMapper().resolve(names)
        assert attributes.get("normal") == ("normalx", "normaly", "normalz")
        assert attributes.get("uv") == ("tex_u", "tex_v")
        assert attributes.get("color") == ("diffuse_red", "g", "blue")

    def test_vertex_requires_position(self) -> None:
        with pytest.raises(MissingPositionAttribute, match="z"):
            AttributeMapper().resolve_vertex("vertex", ["x", "y", "red"])

    def test_custom_alias_table(self) -> None:
        mapper = AttributeMapper(aliases={"position": (("a",), ("b",), ("c",))})
        assert mapper.resolve(["c", "b", "a"]).get("position") == ("a", "b", "c")

    def test_face_index_aliases(self) -> None:
        mapper = AttributeMapper()
        assert mapper.resolve_face_indices(["vertex_index"]) == "vertex_index"
        assert mapper.resolve_face_indices(["corners"]) is None


class TestNormalizeColor:
    def test_byte_value(self) -> None:
        assert normalize_color(255, 0, 51) == pytest.approx((1.0, 0.0, 0.2))

    def test_normalized_values_kept(self) -> None:
        assert normalize_color(1.0, 0.5, 0.0) == (1.0, 0.5, 0.0)

    def test_components_are_independent(self) -> None:
        red, green, blue = normalize_color(0.5, 128, 1.0)
        assert red == 0.5
        assert green == pytest.approx(128 / 255.0)
        assert blue == 1.0

    def test_arrays(self) -> None:
        red, green, blue = normalize_color(
            np.array([255, 1, 0]), np.array([0.5, 2.0, 1.0]), np.zeros(3)
        )
        np.testing.assert_allclose(red, [1.0, 1.0, 0.0])
        np.testing.assert_allclose(green, [0.5, 2.0 / 255.0, 1.0])
        np.testing.assert_allclose(blue, [0.0, 0.0, 0.0])


class TestTriangulateFace:
    def test_triangle_kept_in_order(self) -> None:
        assert triangulate_face([5, 3, 9]) == [(5, 3, 9)]

    def test_quad_split(self) -> None:
        assert triangulate_face([0, 1, 2, 3]) == [(0, 1, 2), (2, 3, 0)]

    @pytest.mark.parametrize("face", [[], [0, 1], [0, 1, 2, 3, 4]])
    def test_other_arities(self, face) -> None:
        assert triangulate_face(face) is None


class TestMeshBuilder:
    def test_positions_and_colors(self) -> None:
        builder = MeshBuilder()
        columns = dict(TRIANGLE, red=[255, 0, 0], green=[0, 255, 0], blue=[0, 0, 255])
        types = {"red": "uchar", "green": "uchar", "blue": "uchar"}
        builder.add(_vertex_element(columns, types))
        builder.add(_face_element([[0, 1, 2]]))
        mesh = builder.build()

        np.testing.assert_array_equal(mesh.positions, [[0, 0, 0], [1, 0, 0], [0, 1, 0]])
        np.testing.assert_array_equal(mesh.colors, np.eye(3))
        np.testing.assert_array_equal(mesh.indices, [[0, 1, 2]])
        assert mesh.positions.dtype == np.float32
        assert mesh.colors.dtype == np.float32
        assert mesh.indices.dtype == np.uint32
        assert mesh.normals is None and mesh.uvs is None

    def test_normals_and_uvs(self) -> None:
        columns = dict(TRIANGLE, nx=[0, 0, 0], ny=[0, 0, 0], nz=[1, 1, 1])
        columns.update(u=[0.0, 1.0, 0.0], v=[0.0, 0.0, 1.0])
        builder = MeshBuilder()
        builder.add(_vertex_element(columns))
        mesh = builder.build()
        np.testing.assert_array_equal(mesh.normals[:, 2], [1, 1, 1])
        np.testing.assert_array_equal(mesh.uvs, [[0, 0], [1, 0], [0, 1]])

    def test_quad_faces(self) -> None:
        columns = {"x": [0, 1, 1, 0], "y": [0, 0, 1, 1], "z": [0, 0, 0, 0]}
        builder = MeshBuilder()
        builder.add(_vertex_element(columns))
        builder.add(_face_element([[0, 1, 2, 3]]))
        np.testing.assert_array_equal(builder.build().indices, [[0, 1, 2], [2, 3, 0]])

    def test_other_faces_dropped_by_default(self) -> None:
        builder = MeshBuilder()
        builder.add(_vertex_element(TRIANGLE))
        builder.add(_face_element([[0, 1], [0, 1, 2], [0, 1, 2, 0, 1]]))
        np.testing.assert_array_equal(builder.build().indices, [[0, 1, 2]])

    def test_other_faces_fail_under_error_policy(self) -> None:
        builder = MeshBuilder(face_policy="error")
        builder.add(_vertex_element(TRIANGLE))
        with pytest.raises(UnsupportedFaceArity, match="5 vertices"):
            builder.add(_face_element([[0, 1, 2, 0, 1]]))

    def test_unknown_face_policy(self) -> None:
        with pytest.raises(ValueError, match="face policy"):
            MeshBuilder(face_policy="fan")

    def test_vertex_index_alias(self) -> None:
        builder = MeshBuilder()
        builder.add(_vertex_element(TRIANGLE))
        builder.add(_face_element([[2, 1, 0]], name="vertex_index"))
        np.testing.assert_array_equal(builder.build().indices, [[2, 1, 0]])

    def test_face_index_out_of_range(self) -> None:
        builder = MeshBuilder()
        builder.add(_vertex_element(TRIANGLE))
        builder.add(_face_element([[0, 1, 3]]))
        with pytest.raises(FaceIndexOutOfRange):
            builder.build()

    def test_negative_face_index(self) -> None:
        builder = MeshBuilder()
        builder.add(_vertex_element(TRIANGLE))
        builder.add(_face_element([[0, -1, 2]]))
        with pytest.raises(FaceIndexOutOfRange, match="-1"):
            builder.build()

    def test_missing_position(self) -> None:
        builder = MeshBuilder()
        with pytest.raises(MissingPositionAttribute):
            builder.add(_vertex_element({"x": [0.0], "y": [0.0]}))

    def test_other_elements_ignored(self) -> None:
        builder = MeshBuilder()
        builder.add(_vertex_element({"a": [1.0]}, name="camera"))
        mesh = builder.build()
        assert mesh.vertex_count == 0 and mesh.triangle_count == 0

    def test_custom_channels(self) -> None:
        columns = dict(TRIANGLE, confidence=[0.1, 0.2, 0.3], a=[1, 2, 3], b=[4, 5, 6])
        builder = MeshBuilder(
            custom_property_mapping={"quality": "confidence", "pair": ["a", "b"]}
        )
        builder.add(_vertex_element(columns))
        mesh = builder.build()
        np.testing.assert_allclose(mesh.custom["quality"][:, 0], [0.1, 0.2, 0.3])
        np.testing.assert_array_equal(mesh.custom["pair"], [[1, 4], [2, 5], [3, 6]])

    def test_custom_channel_missing_property(self) -> None:
        builder = MeshBuilder(custom_property_mapping={"quality": "confidence"})
        builder.add(_vertex_element(TRIANGLE))
        assert builder.build().custom == {}

    def test_multiple_vertex_elements(self) -> None:
        builder = MeshBuilder()
        with_normals = dict(TRIANGLE, nx=[0, 0, 0], ny=[0, 0, 0], nz=[1, 1, 1])
        builder.add(_vertex_element(with_normals))
        builder.add(_vertex_element({"x": [5.0], "y": [5.0], "z": [5.0]}))
        mesh = builder.build()
        assert mesh.vertex_count == 4
        assert mesh.normals is None


class TestMesh:
    def test_equality(self) -> None:
        positions = np.zeros((3, 3), dtype=np.float32)
        indices = np.array([[0, 1, 2]], dtype=np.uint32)
        assert Mesh(positions, indices) == Mesh(positions.copy(), indices.copy())
        assert Mesh(positions, indices) != Mesh(positions, indices, colors=positions)
        assert Mesh(positions, indices) != Mesh(positions + 1, indices)

    def test_channel_length_must_match(self) -> None:
        with pytest.raises(ValueError, match="colors"):
            Mesh(np.zeros((3, 3)), colors=np.zeros((2, 3)))

    def test_to_o3d(self) -> None:
        pytest.importorskip("open3d")
        mesh = Mesh(
            np.eye(3, dtype=np.float32),
            np.array([[0, 1, 2]], dtype=np.uint32),
            colors=np.eye(3, dtype=np.float32),
        )
        o3d_mesh = mesh.to_o3d()
        np.testing.assert_allclose(np.asarray(o3d_mesh.vertices), np.eye(3))
        np.testing.assert_array_equal(np.asarray(o3d_mesh.triangles), [[0, 1, 2]])
        assert o3d_mesh.has_vertex_colors()
