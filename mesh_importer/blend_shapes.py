"""
Morph target (blend shape) accumulation.

Targets are matched across primitives by their position in each primitive's
target list: target i of every primitive feeds channel i.  Each channel keeps
position, normal and tangent deltas; a delta array is either empty (the
channel does not carry that attribute) or one row per vertex.

Length mismatches between a target accessor and its primitive's vertex
count are handled differently per decode mode:

    independent buffers - BlendShapeLengthError, the mesh decode aborts
    shared buffer       - warning, the delta array is left empty

The asymmetry is inherited from existing importers and kept for
compatibility with assets that rely on it.
"""

import logging

import numpy as np

from .arrays import GrowableArray
from .errors import BlendShapeLengthError

log = logging.getLogger(__name__)

DELTA_ATTRIBUTES = ('POSITION', 'NORMAL', 'TANGENT')


class BlendShape(object):
    """One named blend shape channel with per-vertex deltas."""

    def __init__(self, name, capacity=0):
        self.name = name
        self.positions = GrowableArray(np.float32, 3, capacity)
        self.normals = GrowableArray(np.float32, 3, capacity)
        self.tangents = GrowableArray(np.float32, 3, capacity)

    def deltas(self, attribute):
        return {
            'POSITION': self.positions,
            'NORMAL': self.normals,
            'TANGENT': self.tangents,
        }[attribute]

    def truncate(self, count):
        removed = False
        for arr in (self.positions, self.normals, self.tangents):
            removed = arr.truncate(count) or removed
        return removed

    def __repr__(self):
        return "BlendShape({!r}, positions={}, normals={}, tangents={})".format(
            self.name, len(self.positions), len(self.normals),
            len(self.tangents))


class BlendShapeBuilder(object):
    """
    Builds blend shape channels from primitive morph targets.

    Args:
        reader: AttributeReader (read / count).
        inverter: AxisInverter applied to every delta vector.
        capacity: Rows reserved per delta array (total vertex capacity).
    """

    def __init__(self, reader, inverter, capacity=0):
        self.reader = reader
        self.inverter = inverter
        self.capacity = capacity
        self.blend_shapes = []

    def __len__(self):
        return len(self.blend_shapes)

    def get_or_create(self, index):
        while len(self.blend_shapes) <= index:
            self.blend_shapes.append(
                BlendShape(str(len(self.blend_shapes)), self.capacity))
        return self.blend_shapes[index]

    def push_independent(self, primitive, vertex_count):
        """
        Append a primitive's targets in independent-buffer mode.

        Raises:
            BlendShapeLengthError: if a delta accessor's count differs from
                `vertex_count`.
        """
        for i, target in enumerate(primitive.targets):
            blend_shape = self.get_or_create(i)
            for attribute in DELTA_ATTRIBUTES:
                accessor = getattr(target, attribute)
                if accessor is None:
                    continue
                values = self.reader.read(accessor)
                if len(values) != vertex_count:
                    raise BlendShapeLengthError(
                        i, attribute, len(values), vertex_count)
                blend_shape.deltas(attribute).extend(
                    self.inverter.invert_vector3(values[:, :3]))

    def push_shared(self, primitive, vertex_count):
        """
        Build channels from the first primitive in shared-buffer mode.

        Mismatched delta arrays are skipped with a warning and the channel
        keeps an empty array for that attribute.
        """
        for i, target in enumerate(primitive.targets):
            blend_shape = self.get_or_create(i)
            for attribute in DELTA_ATTRIBUTES:
                accessor = getattr(target, attribute)
                if accessor is None:
                    continue
                length = self.reader.count(accessor)
                if length != vertex_count:
                    log.warning("Morph target %d %s has %d elements but the "
                                "shared vertex buffer has %d, leaving it empty",
                                i, attribute, length, vertex_count)
                    continue
                values = self.reader.read(accessor)
                blend_shape.deltas(attribute).extend(
                    self.inverter.invert_vector3(values[:, :3]))

    def rename(self, target_names):
        """
        Apply mesh-level target names by channel position.

        Channels past the end of `target_names` keep their numeric names.
        """
        if target_names is None:
            return
        for i, blend_shape in enumerate(self.blend_shapes):
            if i >= len(target_names):
                log.warning("targetNames has %d entries for %d blend shapes, "
                            "keeping numeric names for the rest",
                            len(target_names), len(self.blend_shapes))
                break
            blend_shape.name = target_names[i]
