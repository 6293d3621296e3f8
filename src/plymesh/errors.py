"""Errors raised while decoding PLY data.

Every error is fatal to the parse call that raised it. All of them derive
from ``ValueError`` so callers that only know about ``ValueError`` still
catch malformed input.
"""

from typing import Optional

__all__ = [
    "PlyError",
    "HeaderNotFound",
    "MalformedHeader",
    "UnknownPrimitiveType",
    "MissingPositionAttribute",
    "TruncatedPayload",
    "MalformedPayload",
    "ListPropertyOnDisallowedElement",
    "UnsupportedFaceArity",
    "FaceIndexOutOfRange",
]

class PlyError(ValueError):
    """Base class for PLY decoding errors.

    Attributes:
        offset: Byte offset (binary bodies) or token index (ASCII bodies)
            where the problem was detected, if known.
        line: 1-based header line number, if the problem is in the header.
    """

    def __init__(
        self,
        message: str,
        offset: Optional[int] = None,
        line: Optional[int] = None,
    ) -> None:
        self.message = message
        self.offset = offset
        self.line = line
        super().__init__(self._describe())

    def _describe(self) -> str:
        where = []
        if self.line is not None:
            where.append(f"header line {self.line}")
        if self.offset is not None:
            where.append(f"offset {self.offset}")
        if where:
            return f"{self.message} ({', '.join(where)})"
        return self.message


class HeaderNotFound(PlyError):
    """The ``end_header`` terminator does not occur in the input."""


class MalformedHeader(PlyError):
    """The header text does not follow the PLY header grammar."""


class UnknownPrimitiveType(PlyError):
    """A property references a type spelling outside the 8 PLY families."""


class MissingPositionAttribute(PlyError):
    """A vertex element lacks one of the x/y/z position components."""


class TruncatedPayload(PlyError):
    """The body ends before every declared record has been decoded."""


class MalformedPayload(PlyError):
    """The body holds a value that cannot be decoded as its declared type."""


class ListPropertyOnDisallowedElement(PlyError):
    """A vertex element declares a list property while lists are disallowed."""


class UnsupportedFaceArity(PlyError):
    """A face lists a vertex count other than 3 or 4 under the strict policy."""


class FaceIndexOutOfRange(PlyError):
    """A face references a vertex that was never decoded."""
