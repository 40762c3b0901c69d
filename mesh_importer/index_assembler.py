"""
Triangle index assembly.

Copies glTF index buffers into one flat uint32 triangle list.  While
copying, each triangle (a, b, c) is written as (c, b, a): the axis inverter
mirrors the geometry, which flips facing, and reversing the winding flips it
back.  Every index is shifted by the vertex offset of the primitive it
belongs to, and each primitive becomes one Submesh covering the indices it
contributed.
"""

import logging

import numpy as np

from .arrays import GrowableArray
from .errors import UnsupportedIndexFormatError

log = logging.getLogger(__name__)

# Index component widths in bytes -> dtype
INDEX_DTYPES = {
    1: np.dtype(np.uint8),
    2: np.dtype(np.uint16),
    4: np.dtype(np.uint32),
}


class Submesh(object):
    """A contiguous range of the index array drawn with one material."""

    def __init__(self, index_start, index_count, material=None):
        self.index_start = index_start
        self.index_count = index_count
        self.material = material

    @property
    def index_end(self):
        return self.index_start + self.index_count

    def __eq__(self, other):
        if not isinstance(other, Submesh):
            return NotImplemented
        return ((self.index_start, self.index_count, self.material) ==
                (other.index_start, other.index_count, other.material))

    def __repr__(self):
        return "Submesh(index_start={}, index_count={}, material={})".format(
            self.index_start, self.index_count, self.material)


def flip_triangles(indices):
    """
    Reverse the winding of a flat triangle list.

    Args:
        indices: 1-D array-like whose length is a multiple of 3.

    Returns:
        numpy.ndarray: int64 copy with every (a, b, c) as (c, b, a).
    """
    tris = np.asarray(indices, dtype=np.int64).reshape(-1, 3)
    return tris[:, ::-1].reshape(-1)


def _index_dtype(indices):
    dtype = np.asarray(indices).dtype
    if dtype.kind != 'u' or dtype.itemsize not in INDEX_DTYPES:
        raise UnsupportedIndexFormatError(dtype)
    return dtype


class IndexAssembler(object):
    """
    Accumulates wound, offset triangle indices and their submesh ranges.

    Args:
        capacity: Number of indices to reserve.
    """

    def __init__(self, capacity=0):
        self._indices = GrowableArray(np.uint32, None, capacity)
        self.submeshes = []

    def __len__(self):
        return len(self._indices)

    @property
    def indices(self):
        return self._indices.data

    def push_indices(self, src, offset, material=None):
        """
        Append a decoded glTF index buffer as one submesh.

        Args:
            src: 1-D numpy array of uint8, uint16 or uint32 indices.
            offset: Vertex offset added to every index.
            material: Material index recorded on the submesh.

        Returns:
            Submesh

        Raises:
            UnsupportedIndexFormatError: for any other component type.
        """
        dtype = _index_dtype(src)
        src = np.asarray(src).reshape(-1)
        usable = len(src) - len(src) % 3
        if usable != len(src):
            log.warning("Index buffer length %d is not a multiple of 3, "
                        "dropping %d trailing indices", len(src),
                        len(src) - usable)
        log.debug("Pushing %d indices (%d-bit) at vertex offset %d",
                  usable, dtype.itemsize * 8, offset)
        return self._push(flip_triangles(src[:usable]) + offset, material)

    def push_sequential(self, vertex_count, offset, material=None):
        """
        Append an implicit triangle list 0..vertex_count-1 as one submesh.

        Used for primitives without an index accessor.
        """
        usable = vertex_count - vertex_count % 3
        if usable != vertex_count:
            log.warning("Non-indexed primitive has %d vertices, dropping %d "
                        "trailing vertices from the triangle list",
                        vertex_count, vertex_count - usable)
        seq = np.arange(usable, dtype=np.int64)
        return self._push(flip_triangles(seq) + offset, material)

    def _push(self, indices, material):
        start = len(self._indices)
        self._indices.extend(indices)
        submesh = Submesh(start, len(indices), material)
        self.submeshes.append(submesh)
        return submesh

    def max_index(self):
        """Largest index value, or -1 when there are no indices."""
        if len(self._indices) == 0:
            return -1
        return int(self._indices.data.max())
