"""
Immutable description of one glTF mesh, as consumed by the decoder.

A MeshSource is the decoder's only view of the asset: primitives with their
attribute accessor indices, index accessor, material and morph targets, plus
the mesh-level target names.  It can be built by hand (tests, other
container formats) or from a loaded pygltflib.GLTF2 via
mesh_source_from_gltf().
"""

import logging

log = logging.getLogger(__name__)

# Vertex attribute slots compared for shared-buffer detection, in order
ATTRIBUTE_NAMES = (
    'POSITION',
    'NORMAL',
    'TEXCOORD_0',
    'TEXCOORD_1',
    'COLOR_0',
    'JOINTS_0',
    'WEIGHTS_0',
)

MORPH_ATTRIBUTE_NAMES = ('POSITION', 'NORMAL', 'TANGENT')


def _slot(obj, name):
    """Read an accessor slot from a dict or a pygltflib Attributes object."""
    if obj is None:
        return None
    if isinstance(obj, dict):
        value = obj.get(name)
    else:
        value = getattr(obj, name, None)
    if value is None or value < 0:
        return None
    return int(value)


class MorphTargetSource(object):
    """Accessor indices of one morph target; None marks an absent channel."""

    def __init__(self, POSITION=None, NORMAL=None, TANGENT=None):
        self.POSITION = POSITION
        self.NORMAL = NORMAL
        self.TANGENT = TANGENT

    @classmethod
    def from_attributes(cls, attributes):
        return cls(**dict((n, _slot(attributes, n))
                          for n in MORPH_ATTRIBUTE_NAMES))

    def __repr__(self):
        return "MorphTargetSource(POSITION={}, NORMAL={}, TANGENT={})".format(
            self.POSITION, self.NORMAL, self.TANGENT)


class PrimitiveSource(object):
    """
    One drawable part of a mesh.

    Args:
        attributes: Mapping of attribute name (POSITION, NORMAL, ...) to
            accessor index.  POSITION is required.
        indices: Index accessor, or None to draw the vertices in order.
        material: Material index, or None when the primitive declares none.
        targets: Optional list of MorphTargetSource (or attribute dicts).
    """

    def __init__(self, attributes, indices=None, material=None, targets=None):
        self.attributes = dict((n, _slot(attributes, n))
                               for n in ATTRIBUTE_NAMES)
        if self.attributes['POSITION'] is None:
            raise ValueError("Primitive has no POSITION attribute")
        self.indices = indices if indices is not None and indices >= 0 else None
        self.material = material if material is not None and material >= 0 else None
        self.targets = [
            t if isinstance(t, MorphTargetSource)
            else MorphTargetSource.from_attributes(t)
            for t in (targets or [])
        ]

    def attribute(self, name):
        return self.attributes.get(name)

    def attribute_key(self):
        """Tuple of every attribute slot; equal keys mean a shared vertex buffer."""
        return tuple(self.attributes[n] for n in ATTRIBUTE_NAMES)

    def has_normal(self):
        return self.attributes['NORMAL'] is not None

    def has_skin(self):
        return (self.attributes['JOINTS_0'] is not None
                or self.attributes['WEIGHTS_0'] is not None)


class MeshSource(object):
    """
    Args:
        primitives: Non-empty ordered list of PrimitiveSource.
        name: Mesh name (may be None).
        target_names: Optional ordered list of morph target names.
        index: Mesh index in the asset, used for the fallback name.
    """

    def __init__(self, primitives, name=None, target_names=None, index=0):
        if not primitives:
            raise ValueError("Mesh {} has no primitives".format(index))
        self.primitives = list(primitives)
        self.name = name
        self.target_names = list(target_names) if target_names is not None else None
        self.index = index

    def display_name(self):
        if self.name:
            return self.name
        return "mesh import#{}".format(self.index)


# ---------------------------------------------------------------------------
# pygltflib adapter
# ---------------------------------------------------------------------------

def _target_names(mesh):
    extras = mesh.extras if isinstance(mesh.extras, dict) else {}
    names = extras.get('targetNames')
    if names is None and mesh.primitives:
        # Some exporters store the names on the first primitive instead
        prim_extras = mesh.primitives[0].extras
        if isinstance(prim_extras, dict):
            names = prim_extras.get('targetNames')
    if names is None:
        return None
    return [str(n) for n in names]


def mesh_source_from_gltf(gltf, mesh_index):
    """
    Build a MeshSource from mesh `mesh_index` of a loaded pygltflib.GLTF2.

    Args:
        gltf: pygltflib.GLTF2 document.
        mesh_index: Index into gltf.meshes.

    Returns:
        MeshSource
    """
    if mesh_index < 0 or mesh_index >= len(gltf.meshes):
        raise ValueError("Mesh index {} out of range ({} meshes)".format(
            mesh_index, len(gltf.meshes)))

    mesh = gltf.meshes[mesh_index]
    primitives = []
    for prim_idx, prim in enumerate(mesh.primitives):
        mode = prim.mode if prim.mode is not None else 4
        if mode != 4:
            log.warning("Mesh %d primitive %d uses mode %d, decoding as "
                        "a triangle list", mesh_index, prim_idx, mode)
        primitives.append(PrimitiveSource(
            attributes=prim.attributes,
            indices=prim.indices,
            material=prim.material,
            targets=prim.targets,
        ))

    return MeshSource(
        primitives,
        name=mesh.name,
        target_names=_target_names(mesh),
        index=mesh_index,
    )
