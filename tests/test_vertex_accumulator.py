"""
Tests for vertex accumulation, axis inversion and UV conventions.
"""

import sys

import numpy as np

from mesh_fixtures import Runner, FakeAttributeReader

from mesh_importer.axis import (ReverseZ, ReverseX, NoInversion, UVConvention,
                                resolve_uv_convention, parse_generator_version)
from mesh_importer.errors import AttributeLengthError
from mesh_importer.mesh_source import PrimitiveSource
from mesh_importer.vertex_accumulator import (VertexAccumulator,
                                              normalize_bone_weights)


# ---------------------------------------------------------------------------
# Weight normalization
# ---------------------------------------------------------------------------

def test_normalize_weights_already_unit():
    """(0.5, 0.3, 0.1, 0.1) already sums to 1 and comes back unchanged."""
    w = normalize_bone_weights([[0.5, 0.3, 0.1, 0.1]])
    assert abs(float(w.sum()) - 1.0) < 1e-6, "sum {}".format(w.sum())
    assert np.allclose(w[0], [0.5, 0.3, 0.1, 0.1], atol=1e-6), w


def test_normalize_weights_scaled_by_sum():
    w = normalize_bone_weights([[0.5, 0.3, 0.1, 0.0]])
    assert abs(float(w.sum()) - 1.0) < 1e-6, "sum {}".format(w.sum())
    expected = np.array([0.5, 0.3, 0.1, 0.0]) / 0.9
    assert np.allclose(w[0], expected, atol=1e-6), w


def test_normalize_zero_weights_untouched():
    w = normalize_bone_weights([[0.0, 0.0, 0.0, 0.0], [2.0, 2.0, 0.0, 0.0]])
    assert w[0].tolist() == [0.0, 0.0, 0.0, 0.0]
    assert w[1].tolist() == [0.5, 0.5, 0.0, 0.0]


# ---------------------------------------------------------------------------
# Axis and UV conventions
# ---------------------------------------------------------------------------

def test_axis_inverters():
    v = [[1.0, 2.0, 3.0]]
    assert ReverseZ().invert_vector3(v).tolist() == [[1.0, 2.0, -3.0]]
    assert ReverseX().invert_vector3(v).tolist() == [[-1.0, 2.0, 3.0]]
    assert NoInversion().invert_vector3(v).tolist() == [[1.0, 2.0, 3.0]]


def test_uv_conventions():
    uv = [[0.25, 0.75]]
    assert UVConvention.REVERSE_UV.apply(uv).tolist() == [[0.25, 0.25]]
    assert UVConvention.LEGACY_FLIP_Y.apply(uv).tolist() == [[0.25, -0.75]]


def test_resolve_uv_convention():
    cases = [
        ("UniGLTF-1.15", UVConvention.LEGACY_FLIP_Y),
        ("UniGLTF-0.44", UVConvention.LEGACY_FLIP_Y),
        ("UniGLTF-1.16", UVConvention.REVERSE_UV),
        ("UniGLTF-2.0", UVConvention.REVERSE_UV),
        ("UniGLTF", UVConvention.LEGACY_FLIP_Y),
        ("UniGLTFX-1.0", UVConvention.REVERSE_UV),
        ("Khronos glTF Blender I/O v3.6.27", UVConvention.REVERSE_UV),
        ("", UVConvention.REVERSE_UV),
        (None, UVConvention.REVERSE_UV),
    ]
    for generator, expected in cases:
        got = resolve_uv_convention(generator)
        assert got is expected, "{!r}: {}".format(generator, got)


def test_parse_generator_version():
    assert parse_generator_version("UniGLTF-1.27") == ("UniGLTF", (1, 27))
    assert parse_generator_version("blender") is None


# ---------------------------------------------------------------------------
# Accumulation
# ---------------------------------------------------------------------------

def _primitive(reader, count, **extra):
    positions = np.arange(count * 3, dtype=np.float32).reshape(count, 3)
    attributes = {'POSITION': reader.add(positions)}
    for name, values in extra.items():
        dtype = np.uint16 if name == 'JOINTS_0' else np.float32
        attributes[name] = reader.add(values, dtype)
    return PrimitiveSource(attributes, indices=None)


def test_defaults_for_missing_attributes():
    reader = FakeAttributeReader()
    acc = VertexAccumulator(reader, NoInversion(), capacity=3)
    offset, count = acc.push_primitive(_primitive(reader, 3))
    assert (offset, count) == (0, 3)
    v = acc.vertices
    assert np.all(v.normals.data == 0.0)
    assert np.all(v.uv0.data == 0.0)
    assert np.all(v.uv1.data == 0.0)
    assert np.all(v.colors.data == 1.0)
    assert acc.has_normal is False
    assert acc.skin is None


def test_positions_and_normals_inverted():
    reader = FakeAttributeReader()
    acc = VertexAccumulator(reader, ReverseZ())
    normals = [[0.0, 0.0, 1.0]] * 2
    acc.push_primitive(_primitive(reader, 2, NORMAL=normals))
    assert acc.vertices.positions.data.tolist() == [
        [0.0, 1.0, -2.0], [3.0, 4.0, -5.0]]
    assert acc.vertices.normals.data.tolist() == [[0.0, 0.0, -1.0]] * 2
    assert acc.has_normal is True


def test_uv_sets_use_their_conventions():
    reader = FakeAttributeReader()
    acc = VertexAccumulator(reader, NoInversion(), UVConvention.LEGACY_FLIP_Y)
    acc.push_primitive(_primitive(reader, 1, TEXCOORD_0=[[0.5, 0.25]],
                                  TEXCOORD_1=[[0.5, 0.25]]))
    assert acc.vertices.uv0.data.tolist() == [[0.5, -0.25]]
    assert acc.vertices.uv1.data.tolist() == [[0.5, 0.75]]


def test_rgb_color_gets_alpha():
    reader = FakeAttributeReader()
    acc = VertexAccumulator(reader, NoInversion())
    acc.push_primitive(_primitive(reader, 1, COLOR_0=[[0.5, 0.25, 1.0]]))
    assert acc.vertices.colors.data.tolist() == [[0.5, 0.25, 1.0, 1.0]]


def test_skin_rows_normalized_and_aligned():
    reader = FakeAttributeReader()
    acc = VertexAccumulator(reader, NoInversion(), with_skin=True)
    acc.push_primitive(_primitive(
        reader, 2,
        JOINTS_0=[[1, 2, 3, 4], [0, 0, 0, 0]],
        WEIGHTS_0=[[0.5, 0.3, 0.1, 0.1], [0.0, 0.0, 0.0, 0.0]]))
    # second primitive has no skin attributes
    acc.push_primitive(_primitive(reader, 3))

    assert len(acc.skin) == len(acc.vertices) == 5
    assert acc.skin.joints.data[0].tolist() == [1, 2, 3, 4]
    sums = acc.skin.weights.data.sum(axis=1)
    assert abs(float(sums[0]) - 1.0) < 1e-6
    assert sums[1:].tolist() == [0.0, 0.0, 0.0, 0.0]


def test_second_primitive_offset():
    reader = FakeAttributeReader()
    acc = VertexAccumulator(reader, NoInversion(), capacity=5)
    acc.push_primitive(_primitive(reader, 2))
    offset, count = acc.push_primitive(_primitive(reader, 3))
    assert (offset, count) == (2, 3)
    assert len(acc) == 5


def test_attribute_length_mismatch_raises():
    reader = FakeAttributeReader()
    acc = VertexAccumulator(reader, NoInversion())
    prim = _primitive(reader, 3, NORMAL=[[0.0, 1.0, 0.0]] * 2)
    try:
        acc.push_primitive(prim)
    except AttributeLengthError as e:
        assert e.attribute == 'NORMAL'
        assert (e.length, e.expected) == (2, 3)
    else:
        raise AssertionError("Short NORMAL accessor was accepted")


def main():
    return Runner().run_module("mesh_importer VertexAccumulator Tests",
                               globals())


if __name__ == '__main__':
    sys.exit(main())
