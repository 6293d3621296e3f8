# Standard Library
import io
from typing import List

# Third-Party Libraries
import numpy as np

# Local Modules
from plymesh import settings
from plymesh.mesh import Mesh


def _make_output_header(fmt: str, mesh: Mesh, comments: List[str]) -> bytes:
    lines = []
    lines.append(b"ply\n")
    lines.append(f"format {fmt} {settings.DEFAULT_WRITE_VERSION}\n".encode("ascii"))
    for comment in comments:
        lines.append(f"comment {comment}\n".encode("ascii"))
    lines.append(f"element vertex {mesh.vertex_count}\n".encode("ascii"))
    for t, name in _vertex_props(mesh):
        lines.append(f"property {t} {name}\n".encode("ascii"))
    lines.append(f"element face {mesh.triangle_count}\n".encode("ascii"))
    lines.append(b"property list uchar uint vertex_indices\n")
    lines.append(b"end_header\n")
    return b"".join(lines)


def _vertex_props(mesh: Mesh):
    props = [("float", "x"), ("float", "y"), ("float", "z")]
    if mesh.normals is not None:
        props += [("float", "nx"), ("float", "ny"), ("float", "nz")]
    if mesh.uvs is not None:
        props += [("float", "s"), ("float", "t")]
    if mesh.colors is not None:
        props += [("uchar", "red"), ("uchar", "green"), ("uchar", "blue")]
    return props


def _vertex_records(mesh: Mesh, endian: str) -> np.ndarray:
    props = _vertex_props(mesh)
    code = {"float": "f4", "uchar": "u1"}
    dtype = np.dtype([(name, endian + code[t]) for t, name in props])
    records = np.empty(mesh.vertex_count, dtype=dtype)

    for axis, name in enumerate("xyz"):
        records[name] = mesh.positions[:, axis]
    if mesh.normals is not None:
        for axis, name in enumerate(("nx", "ny", "nz")):
            records[name] = mesh.normals[:, axis]
    if mesh.uvs is not None:
        records["s"] = mesh.uvs[:, 0]
        records["t"] = mesh.uvs[:, 1]
    if mesh.colors is not None:
        scaled = np.rint(np.clip(mesh.colors, 0.0, 1.0) * settings.COLOR_BYTE_SCALE)
        for axis, name in enumerate(("red", "green", "blue")):
            records[name] = scaled[:, axis].astype(np.uint8)
    return records


def save_mesh(mesh: Mesh, fmt: str = settings.DEFAULT_WRITE_FORMAT) -> bytes:
    """Encode a Mesh as PLY bytes.

    Positions, normals and uvs are written as float, colors as uchar
    (0-255), triangles as ``list uchar uint vertex_indices``. Custom
    channels are not written.

    Args:
        mesh: Mesh to encode.
        fmt: ``ascii``, ``binary_little_endian`` or ``binary_big_endian``.

    Returns:
        Complete PLY file contents.
    """
    if fmt not in settings.PLY_FORMATS:
        raise ValueError(
            f"Unsupported PLY format: {fmt!r} "
            f"(expected one of {sorted(settings.PLY_FORMATS)})"
        )
    endian = settings.PLY_FORMATS[fmt]

    buf = io.BytesIO()
    buf.write(_make_output_header(fmt, mesh, ["written by plymesh"]))
    records = _vertex_records(mesh, endian or "<")
    indices = np.asarray(mesh.indices, dtype=np.uint32).reshape(-1, 3)

    if endian is None:
        for record in records:
            line = " ".join(repr(value) for value in record.item())
            buf.write((line + "\n").encode("ascii"))
        for a, b, c in indices:
            buf.write(f"3 {a} {b} {c}\n".encode("ascii"))
        return buf.getvalue()

    buf.write(records.tobytes())
    face_dtype = np.dtype(
        [
            ("n", "u1"),
            ("i0", endian + "u4"),
            ("i1", endian + "u4"),
            ("i2", endian + "u4"),
        ]
    )
    face_data = np.empty(len(indices), dtype=face_dtype)
    face_data["n"] = 3
    face_data["i0"] = indices[:, 0]
    face_data["i1"] = indices[:, 1]
    face_data["i2"] = indices[:, 2]
    buf.write(face_data.tobytes())
    return buf.getvalue()
