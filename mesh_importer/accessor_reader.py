"""
Accessor reader: glTF accessor index -> typed numpy array.

This is the decoder's AttributeReader.  Anything exposing the same two
methods can stand in for it (tests use an in-memory fake):

    read(accessor_index)  -> numpy array, shape (count,) for SCALAR and
                             (count, components) otherwise, dtype matching
                             the accessor component type.  Normalized
                             integer accessors come back as float32 in
                             0..1 (or -1..1 for signed types).
    count(accessor_index) -> element count, without decoding.

GltfAttributeReader reads from a pygltflib.GLTF2 document, handling
interleaved buffer views, embedded GLB blobs, data URIs, external .bin
files and sparse accessors.
"""

import os
import logging

import numpy as np

log = logging.getLogger(__name__)

try:
    import pygltflib
    _HAS_GLTFLIB = True
except ImportError:
    _HAS_GLTFLIB = False

# glTF componentType -> numpy dtype (little-endian)
COMPONENT_DTYPES = {
    5120: np.dtype('<i1'),   # BYTE
    5121: np.dtype('<u1'),   # UNSIGNED_BYTE
    5122: np.dtype('<i2'),   # SHORT
    5123: np.dtype('<u2'),   # UNSIGNED_SHORT
    5125: np.dtype('<u4'),   # UNSIGNED_INT
    5126: np.dtype('<f4'),   # FLOAT
}

TYPE_COMPONENTS = {
    'SCALAR': 1,
    'VEC2': 2,
    'VEC3': 3,
    'VEC4': 4,
    'MAT2': 4,
    'MAT3': 9,
    'MAT4': 16,
}

# Divisors for normalized integer accessors
_NORMALIZE_DIVISORS = {
    5120: 127.0,
    5121: 255.0,
    5122: 32767.0,
    5123: 65535.0,
}


def _denormalize(values, component_type):
    divisor = _NORMALIZE_DIVISORS.get(component_type)
    if divisor is None:
        return values
    out = values.astype(np.float32) / np.float32(divisor)
    if component_type in (5120, 5122):
        out = np.maximum(out, np.float32(-1.0))
    return out


class GltfAttributeReader(object):
    """
    Decodes accessors of a loaded pygltflib.GLTF2 document.

    Buffer bytes are fetched once per buffer and cached for the lifetime of
    the reader.
    """

    def __init__(self, gltf, base_dir=None):
        """
        Args:
            gltf: pygltflib.GLTF2 document.
            base_dir: Directory external buffer URIs are relative to.
                Defaults to the directory the document was loaded from.
        """
        if not _HAS_GLTFLIB:
            raise ImportError("pygltflib is required for glTF accessor reading")
        self.gltf = gltf
        if base_dir is None:
            base_dir = getattr(gltf, '_path', None)
        self.base_dir = str(base_dir) if base_dir else ''
        self._buffers = {}

    # -- public ------------------------------------------------------------

    def count(self, accessor_index):
        return self.gltf.accessors[accessor_index].count

    def component_type(self, accessor_index):
        return self.gltf.accessors[accessor_index].componentType

    def read(self, accessor_index):
        """
        Decode one accessor.

        Args:
            accessor_index: Index into gltf.accessors.

        Returns:
            numpy.ndarray
        """
        acc = self.gltf.accessors[accessor_index]
        if acc.componentType not in COMPONENT_DTYPES:
            raise ValueError("Accessor {} has unknown componentType {}".format(
                accessor_index, acc.componentType))
        if acc.type not in TYPE_COMPONENTS:
            raise ValueError("Accessor {} has unknown type {!r}".format(
                accessor_index, acc.type))

        dtype = COMPONENT_DTYPES[acc.componentType]
        components = TYPE_COMPONENTS[acc.type]

        if acc.bufferView is None:
            values = np.zeros((acc.count, components), dtype=dtype)
        else:
            values = self._read_view(acc.bufferView, acc.byteOffset or 0,
                                     acc.count, dtype, components)

        if acc.sparse is not None and acc.sparse.count:
            values = self._apply_sparse(acc, values, dtype, components)

        if acc.normalized:
            values = _denormalize(values, acc.componentType)

        if components == 1:
            return values.reshape(acc.count)
        return values

    # -- internals ---------------------------------------------------------

    def _buffer_bytes(self, buffer_index):
        data = self._buffers.get(buffer_index)
        if data is not None:
            return data

        buf = self.gltf.buffers[buffer_index]
        if not buf.uri:
            data = self.gltf.binary_blob()
        elif buf.uri.startswith('data:'):
            data = self.gltf.get_data_from_buffer_uri(buf.uri)
        else:
            path = os.path.join(self.base_dir, buf.uri)
            with open(path, 'rb') as f:
                data = f.read()
        if data is None:
            raise ValueError("Buffer {} has no data".format(buffer_index))

        data = bytes(data)
        self._buffers[buffer_index] = data
        return data

    def _read_view(self, view_index, byte_offset, count, dtype, components):
        """Read `count` elements from a (possibly interleaved) buffer view."""
        view = self.gltf.bufferViews[view_index]
        blob = self._buffer_bytes(view.buffer)
        offset = (view.byteOffset or 0) + byte_offset
        element_size = dtype.itemsize * components
        stride = view.byteStride or element_size

        if count == 0:
            return np.zeros((0, components), dtype=dtype)

        end = offset + stride * (count - 1) + element_size
        if end > len(blob):
            raise ValueError(
                "Buffer view {} too short: need {} bytes, have {}".format(
                    view_index, end, len(blob)))

        values = np.ndarray(
            shape=(count, components),
            dtype=dtype,
            buffer=blob,
            offset=offset,
            strides=(stride, dtype.itemsize),
        )
        return values.copy()

    def _apply_sparse(self, acc, values, dtype, components):
        sparse = acc.sparse
        idx_dtype = COMPONENT_DTYPES[sparse.indices.componentType]
        indices = self._read_view(sparse.indices.bufferView,
                                  sparse.indices.byteOffset or 0,
                                  sparse.count, idx_dtype, 1).reshape(-1)
        substitutes = self._read_view(sparse.values.bufferView,
                                      sparse.values.byteOffset or 0,
                                      sparse.count, dtype, components)
        values = values.copy()
        values[indices.astype(np.int64)] = substitutes
        log.debug("Applied %d sparse substitutions", sparse.count)
        return values
