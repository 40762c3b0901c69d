"""
Mesh decode and build pipeline.

decode_mesh() turns a MeshSource into a MeshContext:

    1. Pick the buffer mode.  If every primitive references the same
       attribute accessors the vertex buffer is decoded once and shared
       (typical for multi-material meshes); otherwise each primitive's
       vertices are appended with a running offset.
    2. Accumulate vertices, indices and blend shapes.
    3. Apply target names and drop unreferenced trailing vertices.

MeshBuilder then packages a MeshContext into a RendererMesh.  The packaging
stages run as a generator that yields a checkpoint name between stages and
after every blend shape frame, so a caller can spread one large mesh over
several frames of its own loop.  The RendererMesh is only returned once
every stage has run; a build abandoned at a checkpoint never exposes it.

Usage:
    from mesh_importer.mesh_builder import decode_mesh, MeshBuilder

    context = decode_mesh(source, reader, ReverseZ())
    result = MeshBuilder(context).build(material_from_index=materials.get)
"""

import enum
import logging

import numpy as np

from .axis import ReverseZ, UVConvention
from .blend_shapes import BlendShapeBuilder
from .errors import MeshImportError
from .index_assembler import IndexAssembler
from .renderer_mesh import FRAME_WEIGHT, MeshWithMaterials, RendererMesh
from .vertex_accumulator import VertexAccumulator
from .vertex_trimmer import drop_unused_vertices

log = logging.getLogger(__name__)

# Material index used for primitives that declare none
DEFAULT_MATERIAL_INDEX = 0


class BufferMode(enum.Enum):
    SHARED = "shared"
    INDEPENDENT = "independent"


def has_shared_vertex_buffer(source):
    """True if every primitive declares identical attribute accessors."""
    first = source.primitives[0].attribute_key()
    return all(p.attribute_key() == first for p in source.primitives[1:])


def select_buffer_mode(source):
    if has_shared_vertex_buffer(source):
        return BufferMode.SHARED
    return BufferMode.INDEPENDENT


def get_capacity(source, reader, mode):
    """
    Vertex and index rows to reserve before decoding.

    Returns:
        tuple: (vertex_capacity, index_capacity)
    """
    vertex_count = 0
    index_count = 0
    for i, prim in enumerate(source.primitives):
        positions = reader.count(prim.attribute('POSITION'))
        if mode is BufferMode.INDEPENDENT or i == 0:
            vertex_count += positions
        if prim.indices is None:
            index_count += positions
        else:
            index_count += reader.count(prim.indices)
    return vertex_count, index_count


class MeshContext(object):
    """
    Decoded, trimmed mesh data waiting to be packaged.

    Attributes:
        name: Mesh name.
        mode: BufferMode used for decoding.
        vertices: VertexBuffer.
        skin: SkinBuffer or None.
        submeshes: list of Submesh.
        material_indices: One entry per submesh (None = undeclared).
        blend_shapes: list of BlendShape.
        has_normal: False if any decoded primitive lacked normals.
    """

    def __init__(self, name, mode, accumulator, assembler, blend_shapes,
                 material_indices):
        self.name = name
        self.mode = mode
        self.vertices = accumulator.vertices
        self.skin = accumulator.skin
        self.has_normal = accumulator.has_normal
        self._assembler = assembler
        self.submeshes = assembler.submeshes
        self.blend_shapes = blend_shapes
        self.material_indices = material_indices
        self.handed_off = False

    @property
    def indices(self):
        return self._assembler.indices

    def max_index(self):
        return self._assembler.max_index()

    def ensure_materials(self):
        """Fill undeclared material slots and guarantee at least one entry."""
        self.material_indices = [
            DEFAULT_MATERIAL_INDEX if m is None else m
            for m in self.material_indices
        ]
        if not self.material_indices:
            self.material_indices.append(DEFAULT_MATERIAL_INDEX)
        for submesh, material in zip(self.submeshes, self.material_indices):
            submesh.material = material
        return self.material_indices


def _push_primitive_indices(assembler, reader, primitive, vertex_count, offset):
    if primitive.indices is None:
        return assembler.push_sequential(vertex_count, offset,
                                         primitive.material)
    return assembler.push_indices(reader.read(primitive.indices), offset,
                                  primitive.material)


def decode_mesh(source, reader, inverter=None,
                uv_convention=UVConvention.REVERSE_UV):
    """
    Decode a MeshSource into a trimmed MeshContext.

    Args:
        source: MeshSource.
        reader: AttributeReader (read / count).
        inverter: AxisInverter; defaults to ReverseZ.
        uv_convention: UVConvention for TEXCOORD_0 of this asset.

    Returns:
        MeshContext

    Raises:
        UnsupportedIndexFormatError, BlendShapeLengthError,
        AttributeLengthError: the mesh cannot be decoded.
    """
    if inverter is None:
        inverter = ReverseZ()

    mode = select_buffer_mode(source)
    vertex_capacity, index_capacity = get_capacity(source, reader, mode)
    with_skin = any(p.has_skin() for p in source.primitives)

    accumulator = VertexAccumulator(reader, inverter, uv_convention,
                                    vertex_capacity, with_skin)
    assembler = IndexAssembler(index_capacity)
    blend = BlendShapeBuilder(reader, inverter, vertex_capacity)
    material_indices = []

    if mode is BufferMode.SHARED:
        first = source.primitives[0]
        _, vertex_count = accumulator.push_primitive(first)
        blend.push_shared(first, vertex_count)
        for prim in source.primitives:
            _push_primitive_indices(assembler, reader, prim, vertex_count, 0)
            material_indices.append(prim.material)
    else:
        for prim in source.primitives:
            offset, vertex_count = accumulator.push_primitive(prim)
            blend.push_independent(prim, vertex_count)
            _push_primitive_indices(assembler, reader, prim, vertex_count,
                                    offset)
            material_indices.append(prim.material)

    blend.rename(source.target_names)

    context = MeshContext(source.display_name(), mode, accumulator, assembler,
                          blend.blend_shapes, material_indices)
    drop_unused_vertices(context)
    if context.max_index() >= len(context.vertices):
        raise MeshImportError(
            "Mesh {} references vertex {} but has only {} vertices".format(
                context.name, context.max_index(), len(context.vertices)))

    log.info("Decoded %s (%s buffer): %d vertices, %d indices, %d submeshes, "
             "%d blend shapes", context.name, mode.value, len(context.vertices),
             len(context.indices), len(context.submeshes),
             len(context.blend_shapes))
    return context


# ---------------------------------------------------------------------------
# Packaging
# ---------------------------------------------------------------------------

def _identity(index):
    return index


class MeshBuilder(object):
    """
    Packages one MeshContext into a RendererMesh, exactly once.

    Checkpoints yielded by build_steps(), in order:
        'vertices', 'indices', 'bounds', 'normals' (only when normals were
        missing), 'tangents', 'materials', then 'blend_shape' once per
        channel.
    """

    def __init__(self, context):
        self.context = context

    def build_steps(self, material_from_index=None):
        """
        Generator running the packaging stages.

        Yields:
            str: checkpoint name after each stage.

        Returns:
            MeshWithMaterials (as the StopIteration value).
        """
        context = self.context
        if context.handed_off:
            raise RuntimeError("Mesh {} was already built".format(context.name))
        context.handed_off = True
        if material_from_index is None:
            material_from_index = _identity

        material_indices = context.ensure_materials()
        mesh = RendererMesh(context.name)

        mesh.set_vertex_buffer(context.vertices, context.skin)
        yield 'vertices'

        mesh.set_index_buffer(context.indices, context.submeshes)
        yield 'indices'

        mesh.recalculate_bounds()
        yield 'bounds'

        if not context.has_normal:
            mesh.recalculate_normals()
            yield 'normals'

        mesh.recalculate_tangents()
        yield 'tangents'

        materials = [material_from_index(i) for i in material_indices]
        yield 'materials'

        if context.blend_shapes:
            empty = np.zeros((mesh.vertex_count, 3), dtype=np.float32)
            empty.flags.writeable = False
            for blend_shape in context.blend_shapes:
                self._add_blend_shape(mesh, blend_shape, empty)
                yield 'blend_shape'

        log.debug("Built renderer mesh %s: %d vertices, %d frames",
                  mesh.name, mesh.vertex_count, len(mesh.blend_shape_frames))
        return MeshWithMaterials(mesh, materials)

    def _add_blend_shape(self, mesh, blend_shape, empty):
        n = mesh.vertex_count
        positions = blend_shape.positions.data
        if len(positions) == 0:
            # Keeps channel indices stable across the blend shape list
            mesh.add_blend_shape_frame(blend_shape.name, FRAME_WEIGHT, empty)
            return
        if len(positions) != n:
            log.warning("Blend shape %r of %s has %d position deltas for %d "
                        "vertices; partial-primitive blend shapes are not "
                        "supported, skipping", blend_shape.name, mesh.name,
                        len(positions), n)
            return
        normals = blend_shape.normals.data
        tangents = blend_shape.tangents.data
        mesh.add_blend_shape_frame(
            blend_shape.name, FRAME_WEIGHT, positions.copy(),
            normals.copy() if len(normals) == n else None,
            tangents.copy() if len(tangents) == n else None,
        )

    def build(self, material_from_index=None, scheduler=None):
        """
        Run every packaging stage.

        Args:
            material_from_index: Callable mapping a material index to the
                renderer's material handle.  Defaults to the index itself.
            scheduler: Optional callable invoked with each checkpoint name.
                Raising from it cancels the build; the partially built mesh
                is discarded.

        Returns:
            MeshWithMaterials
        """
        steps = self.build_steps(material_from_index)
        try:
            while True:
                try:
                    checkpoint = next(steps)
                except StopIteration as stop:
                    return stop.value
                if scheduler is not None:
                    scheduler(checkpoint)
        finally:
            steps.close()
