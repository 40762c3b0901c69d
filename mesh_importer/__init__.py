"""
Mesh Importer - glTF mesh decoding into renderer-ready buffers.

Decodes one mesh of a glTF 2.0 asset (.gltf or .glb) into a consolidated
vertex stream, an optional skin stream, a wound uint32 triangle list split
into submeshes, and blend shape frames.  Geometry is converted to the
renderer's handedness by a pluggable axis inverter, and legacy UniGLTF uv0
layouts are detected from the asset generator.

Pipeline:
    MeshSource  --decode_mesh-->  MeshContext  --MeshBuilder-->  RendererMesh

The accessor reader, material construction and GPU upload are left to the
caller; GltfAttributeReader covers the first for pygltflib documents.
"""

from .errors import (MeshImportError, UnsupportedIndexFormatError,
                     BlendShapeLengthError, AttributeLengthError)
from .axis import (AxisInverter, ReverseZ, ReverseX, NoInversion, UVConvention,
                   resolve_uv_convention)
from .mesh_source import MeshSource, PrimitiveSource, MorphTargetSource, mesh_source_from_gltf
from .accessor_reader import GltfAttributeReader
from .vertex_accumulator import (VertexAccumulator, VertexBuffer, SkinBuffer,
                                 normalize_bone_weights)
from .index_assembler import IndexAssembler, Submesh, flip_triangles
from .blend_shapes import BlendShape, BlendShapeBuilder
from .vertex_trimmer import drop_unused_vertices
from .renderer_mesh import RendererMesh, BlendShapeFrame, Bounds, MeshWithMaterials
from .mesh_builder import (BufferMode, MeshContext, MeshBuilder, decode_mesh,
                           select_buffer_mode, has_shared_vertex_buffer)


def import_mesh(path, mesh_index=0, inverter=None, material_from_index=None,
                scheduler=None):
    """
    High-level API to import one mesh from a glTF file.

    Loads the document, resolves the asset's UV convention from its
    generator string, decodes the mesh and runs the build pipeline.

    Args:
        path: Path to a .gltf or .glb file.
        mesh_index: Index of the mesh in the document (default 0).
        inverter: AxisInverter.  Default: ReverseZ().
        material_from_index: Callable mapping a material index to the
            renderer's material handle.  Default: the index itself.
        scheduler: Optional callable invoked at every build checkpoint.

    Returns:
        MeshWithMaterials: {
            'mesh': RendererMesh,
            'materials': list, one entry per submesh,
        }
    """
    import pygltflib

    gltf = pygltflib.GLTF2.load(path)
    generator = gltf.asset.generator if gltf.asset is not None else None

    source = mesh_source_from_gltf(gltf, mesh_index)
    reader = GltfAttributeReader(gltf)
    context = decode_mesh(source, reader, inverter,
                          resolve_uv_convention(generator))
    return MeshBuilder(context).build(material_from_index, scheduler)
