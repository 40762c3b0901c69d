"""
In-memory renderer mesh resource.

RendererMesh is the hand-off record a GPU resource allocator consumes: the
vertex and skin streams, a uint32 triangle list with submesh ranges, bounds,
normals and tangents derived from the final topology, and the blend shape
frames.  MeshBuilder fills it stage by stage; nothing else holds a
reference until the build returns it.
"""

import logging

import numpy as np

log = logging.getLogger(__name__)

# Blend shape frames are added at full weight on a 0..100 scale
FRAME_WEIGHT = 100.0

_EPSILON = 1e-12


class Bounds(object):
    """Axis-aligned bounding box as center + extents."""

    def __init__(self, center=(0.0, 0.0, 0.0), extents=(0.0, 0.0, 0.0)):
        self.center = np.asarray(center, dtype=np.float32)
        self.extents = np.asarray(extents, dtype=np.float32)

    @property
    def min(self):
        return self.center - self.extents

    @property
    def max(self):
        return self.center + self.extents

    @classmethod
    def from_points(cls, points):
        points = np.asarray(points, dtype=np.float32).reshape(-1, 3)
        if len(points) == 0:
            return cls()
        lo = points.min(axis=0)
        hi = points.max(axis=0)
        return cls((lo + hi) * 0.5, (hi - lo) * 0.5)

    def __repr__(self):
        return "Bounds(center={}, extents={})".format(
            self.center.tolist(), self.extents.tolist())


class BlendShapeFrame(object):
    """One frame of a blend shape channel; normals/tangents may be None."""

    def __init__(self, name, weight, delta_positions, delta_normals=None,
                 delta_tangents=None):
        self.name = name
        self.weight = weight
        self.delta_positions = delta_positions
        self.delta_normals = delta_normals
        self.delta_tangents = delta_tangents

    def __repr__(self):
        return "BlendShapeFrame({!r}, weight={})".format(self.name, self.weight)


class MeshWithMaterials(object):
    """A finished RendererMesh plus one resolved material per submesh."""

    def __init__(self, mesh, materials):
        self.mesh = mesh
        self.materials = materials


def _normalize_rows(vectors):
    lengths = np.linalg.norm(vectors, axis=1)
    ok = lengths > _EPSILON
    out = np.zeros_like(vectors)
    out[ok] = vectors[ok] / lengths[ok][:, None]
    return out, ok


class RendererMesh(object):
    """Vertex/index streams and derived data for one mesh."""

    def __init__(self, name):
        self.name = name
        self.positions = np.zeros((0, 3), dtype=np.float32)
        self.normals = np.zeros((0, 3), dtype=np.float32)
        self.uv0 = np.zeros((0, 2), dtype=np.float32)
        self.uv1 = np.zeros((0, 2), dtype=np.float32)
        self.colors = np.zeros((0, 4), dtype=np.float32)
        self.joints = None
        self.weights = None
        self.tangents = np.zeros((0, 4), dtype=np.float32)
        self.indices = np.zeros(0, dtype=np.uint32)
        self.submeshes = []
        self.bounds = Bounds()
        self.blend_shape_frames = []

    @property
    def vertex_count(self):
        return len(self.positions)

    @property
    def has_skin(self):
        return self.joints is not None

    # -- streams -----------------------------------------------------------

    def set_vertex_buffer(self, vertices, skin=None):
        """Copy the vertex (and optional skin) stream out of decode buffers."""
        self.positions = vertices.positions.to_array()
        self.normals = vertices.normals.to_array()
        self.uv0 = vertices.uv0.to_array()
        self.uv1 = vertices.uv1.to_array()
        self.colors = vertices.colors.to_array()
        if skin is not None and len(skin) > 0:
            self.joints = skin.joints.to_array()
            self.weights = skin.weights.to_array()

    def set_index_buffer(self, indices, submeshes):
        indices = np.asarray(indices, dtype=np.uint32).reshape(-1)
        if len(indices) and int(indices.max()) >= self.vertex_count:
            raise ValueError(
                "Index {} out of range for {} vertices in {}".format(
                    int(indices.max()), self.vertex_count, self.name))
        self.indices = indices.copy()
        self.submeshes = list(submeshes)

    def triangles(self):
        return self.indices.astype(np.int64).reshape(-1, 3)

    # -- derived data ------------------------------------------------------

    def recalculate_bounds(self):
        self.bounds = Bounds.from_points(self.positions)
        return self.bounds

    def recalculate_normals(self):
        """
        Area-weighted smooth normals from the triangle list.

        Each face contributes cross(p1 - p0, p2 - p0) to its three vertices.
        Vertices not used by any triangle get a zero normal.
        """
        tris = self.triangles()
        pos = self.positions.astype(np.float64)
        accum = np.zeros_like(pos)
        if len(tris):
            p0 = pos[tris[:, 0]]
            face = np.cross(pos[tris[:, 1]] - p0, pos[tris[:, 2]] - p0)
            for k in range(3):
                np.add.at(accum, tris[:, k], face)
        normals, _ = _normalize_rows(accum)
        self.normals = normals.astype(np.float32)
        return self.normals

    def recalculate_tangents(self):
        """
        Per-vertex tangents (xyz + handedness w) using Lengyel's method.

        Tangents are Gram-Schmidt orthogonalized against the normals.  Where
        the UV mapping is degenerate an arbitrary vector perpendicular to
        the normal is used.
        """
        n_verts = self.vertex_count
        pos = self.positions.astype(np.float64)
        uv = self.uv0.astype(np.float64)
        normals = self.normals.astype(np.float64)
        tan1 = np.zeros((n_verts, 3), dtype=np.float64)
        tan2 = np.zeros((n_verts, 3), dtype=np.float64)

        tris = self.triangles()
        if len(tris):
            p0, p1, p2 = pos[tris[:, 0]], pos[tris[:, 1]], pos[tris[:, 2]]
            w0, w1, w2 = uv[tris[:, 0]], uv[tris[:, 1]], uv[tris[:, 2]]
            e1 = p1 - p0
            e2 = p2 - p0
            d1 = w1 - w0
            d2 = w2 - w0
            det = d1[:, 0] * d2[:, 1] - d1[:, 1] * d2[:, 0]
            r = np.zeros_like(det)
            usable = np.abs(det) > _EPSILON
            r[usable] = 1.0 / det[usable]
            sdir = (e1 * d2[:, 1:2] - e2 * d1[:, 1:2]) * r[:, None]
            tdir = (e2 * d1[:, 0:1] - e1 * d2[:, 0:1]) * r[:, None]
            for k in range(3):
                np.add.at(tan1, tris[:, k], sdir)
                np.add.at(tan2, tris[:, k], tdir)

        ortho = tan1 - normals * np.sum(normals * tan1, axis=1)[:, None]
        tangent, ok = _normalize_rows(ortho)

        if not ok.all():
            n = normals[~ok]
            axis = np.where(np.abs(n[:, 0:1]) < 0.9,
                            np.array([[1.0, 0.0, 0.0]]),
                            np.array([[0.0, 1.0, 0.0]]))
            fallback = axis - n * np.sum(n * axis, axis=1)[:, None]
            fallback, _ = _normalize_rows(fallback)
            tangent[~ok] = fallback

        handedness = np.where(
            np.sum(np.cross(normals, tangent) * tan2, axis=1) < 0.0, -1.0, 1.0)

        out = np.empty((n_verts, 4), dtype=np.float32)
        out[:, :3] = tangent
        out[:, 3] = handedness
        self.tangents = out
        return self.tangents

    # -- blend shapes ------------------------------------------------------

    def add_blend_shape_frame(self, name, weight, delta_positions,
                              delta_normals=None, delta_tangents=None):
        n = self.vertex_count
        for label, deltas in (('positions', delta_positions),
                              ('normals', delta_normals),
                              ('tangents', delta_tangents)):
            if deltas is not None and len(deltas) != n:
                raise ValueError(
                    "Blend shape {!r} delta {} has {} rows, mesh has {} "
                    "vertices".format(name, label, len(deltas), n))
        frame = BlendShapeFrame(name, weight, delta_positions,
                                delta_normals, delta_tangents)
        self.blend_shape_frames.append(frame)
        return frame
