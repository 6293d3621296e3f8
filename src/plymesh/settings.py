HEADER_MAGIC = "ply"
HEADER_TERMINATOR = b"end_header"

# format name -> struct/numpy byte order prefix (None for text bodies)
PLY_FORMATS = {
    "ascii": None,
    "binary_little_endian": "<",
    "binary_big_endian": ">",
}
DEFAULT_WRITE_FORMAT = "binary_little_endian"
DEFAULT_WRITE_VERSION = "1.0"

VERTEX_ELEMENT = "vertex"
FACE_ELEMENT = "face"

# role -> one ordered alias list per component, first match wins
ATTRIBUTE_ALIASES = {
    "position": (
        ("x", "px", "posx"),
        ("y", "py", "posy"),
        ("z", "pz", "posz"),
    ),
    "normal": (
        ("nx", "normalx"),
        ("ny", "normaly"),
        ("nz", "normalz"),
    ),
    "uv": (
        ("s", "u", "tex_u"),
        ("t", "v", "tex_v"),
    ),
    "color": (
        ("red", "diffuse_red", "r"),
        ("green", "diffuse_green", "g"),
        ("blue", "diffuse_blue", "b"),
    ),
}
FACE_INDEX_ALIASES = ("vertex_indices", "vertex_index")

# values above this are treated as 0..255 channels
COLOR_NORMALIZED_MAX = 1.0
COLOR_BYTE_SCALE = 255.0

FACE_POLICY_DROP = "drop"
FACE_POLICY_ERROR = "error"
FACE_POLICIES = (FACE_POLICY_DROP, FACE_POLICY_ERROR)
DEFAULT_FACE_POLICY = FACE_POLICY_DROP

DEFAULT_ALLOW_VERTEX_LISTS = True
DEFAULT_SHOW_PROGRESS = False
