"""
Vertex accumulation for glTF primitives.

Builds the consolidated per-vertex arrays of a mesh (position, normal, two UV
sets, color and optionally joints/weights) from one or more primitives.
Storage is structure-of-arrays: one reserved numpy buffer per attribute,
all sharing a single row count.

Conversions applied while copying:
    position, normal   - axis inverter (handedness)
    TEXCOORD_0         - the asset's UVConvention
    TEXCOORD_1         - always UVConvention.REVERSE_UV
    WEIGHTS_0          - normalized to sum 1, unless the sum is exactly 0

Missing attributes default to zero normals, zero UVs and opaque white.
"""

import logging

import numpy as np

from .arrays import GrowableArray
from .axis import UVConvention
from .errors import AttributeLengthError

log = logging.getLogger(__name__)

WHITE = (1.0, 1.0, 1.0, 1.0)


def normalize_bone_weights(weights):
    """
    Scale each row of four weights to sum 1.

    Rows summing to exactly zero are returned unchanged (no skin influence).

    Args:
        weights: (N, 4) array-like.

    Returns:
        numpy.ndarray: float32 (N, 4).
    """
    w = np.asarray(weights, dtype=np.float64).reshape(-1, 4)
    sums = w.sum(axis=1)
    nonzero = sums != 0.0
    out = w.copy()
    out[nonzero] = w[nonzero] * (1.0 / sums[nonzero])[:, None]
    return out.astype(np.float32)


def _fit_components(values, components, fill):
    """Pad or cut the columns of a (N, k) array to `components`."""
    values = np.asarray(values)
    if values.ndim == 1:
        values = values.reshape(-1, 1)
    n, k = values.shape
    if k == components:
        return values
    if k > components:
        return values[:, :components]
    out = np.empty((n, components), dtype=np.float32)
    out[:, :k] = values
    out[:, k:] = fill[k:components]
    return out


class VertexBuffer(object):
    """Per-vertex attribute arrays with one shared length."""

    def __init__(self, capacity=0):
        self.positions = GrowableArray(np.float32, 3, capacity)
        self.normals = GrowableArray(np.float32, 3, capacity)
        self.uv0 = GrowableArray(np.float32, 2, capacity)
        self.uv1 = GrowableArray(np.float32, 2, capacity)
        self.colors = GrowableArray(np.float32, 4, capacity)

    def __len__(self):
        return len(self.positions)

    def _arrays(self):
        return (self.positions, self.normals, self.uv0, self.uv1, self.colors)

    def truncate(self, count):
        removed = False
        for arr in self._arrays():
            removed = arr.truncate(count) or removed
        return removed


class SkinBuffer(object):
    """Joint indices and weights, parallel-indexed with a VertexBuffer."""

    def __init__(self, capacity=0):
        self.joints = GrowableArray(np.uint32, 4, capacity)
        self.weights = GrowableArray(np.float32, 4, capacity)

    def __len__(self):
        return len(self.joints)

    def truncate(self, count):
        a = self.joints.truncate(count)
        b = self.weights.truncate(count)
        return a or b


class VertexAccumulator(object):
    """
    Appends primitive vertex data into a VertexBuffer (and SkinBuffer).

    Args:
        reader: AttributeReader (read / count).
        inverter: AxisInverter for positions and normals.
        uv_convention: UVConvention for TEXCOORD_0.
        capacity: Number of vertex rows to reserve.
        with_skin: Allocate a SkinBuffer.  Decided up front from all
            primitives, so primitives without JOINTS_0 get zero rows and the
            two buffers stay aligned.
    """

    def __init__(self, reader, inverter, uv_convention=UVConvention.REVERSE_UV,
                 capacity=0, with_skin=False):
        self.reader = reader
        self.inverter = inverter
        self.uv_convention = uv_convention
        self.vertices = VertexBuffer(capacity)
        self.skin = SkinBuffer(capacity) if with_skin else None
        self.has_normal = True

    def __len__(self):
        return len(self.vertices)

    def _read_attribute(self, primitive, name, expected):
        accessor = primitive.attribute(name)
        if accessor is None:
            return None
        values = self.reader.read(accessor)
        if len(values) != expected:
            raise AttributeLengthError(name, len(values), expected)
        return values

    def push_primitive(self, primitive):
        """
        Decode one primitive's vertex attributes and append them.

        Args:
            primitive: PrimitiveSource.

        Returns:
            tuple: (vertex_offset, vertex_count) of the appended range.
        """
        offset = len(self.vertices)

        positions = self.reader.read(primitive.attribute('POSITION'))
        count = len(positions)
        self.vertices.positions.extend(self.inverter.invert_vector3(positions))

        normals = self._read_attribute(primitive, 'NORMAL', count)
        if normals is None:
            if self.has_normal:
                log.warning("Primitive has no NORMAL attribute, normals will "
                            "be recalculated")
            self.has_normal = False
            self.vertices.normals.extend_fill(count, 0.0)
        else:
            self.vertices.normals.extend(
                self.inverter.invert_vector3(_fit_components(normals, 3, (0.0, 0.0, 0.0))))

        uv0 = self._read_attribute(primitive, 'TEXCOORD_0', count)
        if uv0 is None:
            log.debug("Primitive has no TEXCOORD_0, using zero UVs")
            self.vertices.uv0.extend_fill(count, 0.0)
        else:
            self.vertices.uv0.extend(self.uv_convention.apply(uv0))

        uv1 = self._read_attribute(primitive, 'TEXCOORD_1', count)
        if uv1 is None:
            self.vertices.uv1.extend_fill(count, 0.0)
        else:
            self.vertices.uv1.extend(UVConvention.REVERSE_UV.apply(uv1))

        colors = self._read_attribute(primitive, 'COLOR_0', count)
        if colors is None:
            self.vertices.colors.extend_fill(count, WHITE)
        else:
            self.vertices.colors.extend(
                _fit_components(colors.astype(np.float32), 4, WHITE))

        if self.skin is not None:
            self._push_skin(primitive, count)

        log.debug("Appended %d vertices at offset %d", count, offset)
        return offset, count

    def _push_skin(self, primitive, count):
        joints = self._read_attribute(primitive, 'JOINTS_0', count)
        if joints is None:
            self.skin.joints.extend_fill(count, 0)
        else:
            self.skin.joints.extend(
                _fit_components(joints, 4, (0, 0, 0, 0)).astype(np.uint32))

        weights = self._read_attribute(primitive, 'WEIGHTS_0', count)
        if weights is None:
            self.skin.weights.extend_fill(count, 0.0)
        else:
            self.skin.weights.extend(normalize_bone_weights(
                _fit_components(weights.astype(np.float32), 4, (0.0, 0.0, 0.0, 0.0))))
