"""
End-to-end tests: .glb on disk -> pygltflib -> GltfAttributeReader ->
MeshSource -> RendererMesh.

Requires: pygltflib
"""

import os
import sys
import shutil
import tempfile

import numpy as np

from mesh_fixtures import Runner, build_glb

import pygltflib

from mesh_importer import import_mesh
from mesh_importer.accessor_reader import GltfAttributeReader
from mesh_importer.axis import NoInversion
from mesh_importer.mesh_source import mesh_source_from_gltf


QUAD_POSITIONS = [
    [0.0, 0.0, 0.0],
    [1.0, 0.0, 0.0],
    [1.0, 1.0, 0.0],
    [0.0, 1.0, 0.0],
    [9.0, 9.0, 9.0],    # never referenced
]
QUAD_INDICES = [0, 1, 2, 0, 2, 3]
QUAD_UVS = [[0.0, 1.0], [1.0, 1.0], [1.0, 0.0], [0.0, 0.0], [0.5, 0.5]]


def _with_glb(fn, **kwargs):
    tmp = tempfile.mkdtemp(prefix="mesh_importer_test_")
    try:
        path = os.path.join(tmp, "mesh.glb")
        build_glb(path, QUAD_POSITIONS, QUAD_INDICES, **kwargs)
        return fn(path)
    finally:
        shutil.rmtree(tmp, ignore_errors=True)


def test_reader_decodes_every_index_width():
    widths = {
        pygltflib.UNSIGNED_BYTE: np.uint8,
        pygltflib.UNSIGNED_SHORT: np.uint16,
        pygltflib.UNSIGNED_INT: np.uint32,
    }
    for component, dtype in widths.items():
        def check(path):
            gltf = pygltflib.GLTF2.load(path)
            reader = GltfAttributeReader(gltf)
            prim = gltf.meshes[0].primitives[0]
            indices = reader.read(prim.indices)
            assert indices.dtype == np.dtype(dtype), indices.dtype
            assert indices.tolist() == QUAD_INDICES
            positions = reader.read(prim.attributes.POSITION)
            assert positions.shape == (5, 3)
            assert reader.count(prim.attributes.POSITION) == 5
        _with_glb(check, index_component=component)


def test_mesh_source_from_gltf():
    def check(path):
        gltf = pygltflib.GLTF2.load(path)
        source = mesh_source_from_gltf(gltf, 0)
        assert source.name == "mesh"
        assert len(source.primitives) == 2
        assert source.target_names == ['smile']
        prim = source.primitives[0]
        assert prim.attribute('POSITION') is not None
        assert prim.attribute('NORMAL') is None
        assert prim.targets[0].POSITION is not None
        assert prim.targets[0].NORMAL is None
        assert [p.material for p in source.primitives] == [0, 1]
    deltas = [[[0.0, 0.0, 1.0]] * 5]
    _with_glb(check, morph_positions=deltas, target_names=['smile'],
              material_count=2, primitive_count=2)


def test_mesh_index_out_of_range():
    def check(path):
        gltf = pygltflib.GLTF2.load(path)
        try:
            mesh_source_from_gltf(gltf, 3)
        except ValueError:
            return
        raise AssertionError("Out-of-range mesh index was accepted")
    _with_glb(check)


def test_import_mesh_end_to_end():
    deltas = [[[0.0, 0.0, 1.0]] * 5]

    def check(path):
        seen = []
        result = import_mesh(path, inverter=NoInversion(),
                             material_from_index=lambda i: "m{}".format(i),
                             scheduler=seen.append)
        mesh = result.mesh
        # unreferenced fifth vertex trimmed
        assert mesh.vertex_count == 4
        assert mesh.indices.tolist() == [2, 1, 0, 3, 2, 0] * 2
        assert [(s.index_start, s.index_count) for s in mesh.submeshes] == [
            (0, 6), (6, 6)]
        assert result.materials == ["m0", "m1"]
        assert 'normals' in seen
        assert mesh.uv0[0].tolist() == [0.0, 0.0]
        assert [f.name for f in mesh.blend_shape_frames] == ['smile']
        assert mesh.blend_shape_frames[0].delta_positions.shape == (4, 3)
        assert np.allclose(mesh.bounds.max, [1.0, 1.0, 0.0])
    _with_glb(check, uvs=QUAD_UVS, morph_positions=deltas,
              target_names=['smile'], material_count=2, primitive_count=2)


def test_legacy_generator_flips_uv0():
    def check(path):
        mesh = import_mesh(path, inverter=NoInversion()).mesh
        assert mesh.uv0[0].tolist() == [0.0, -1.0], mesh.uv0[0]
    _with_glb(check, uvs=QUAD_UVS, generator="UniGLTF-1.15")


def test_default_inverter_mirrors_z():
    positions_z = [[0.0, 0.0, 2.0]] * 5

    def check(path):
        mesh = import_mesh(path).mesh
        assert np.allclose(mesh.positions[:, 2], -2.0)

    tmp = tempfile.mkdtemp(prefix="mesh_importer_test_")
    try:
        path = os.path.join(tmp, "flat.glb")
        build_glb(path, positions_z, QUAD_INDICES)
        check(path)
    finally:
        shutil.rmtree(tmp, ignore_errors=True)


def main():
    return Runner().run_module("mesh_importer glTF Import Tests", globals())


if __name__ == '__main__':
    sys.exit(main())
