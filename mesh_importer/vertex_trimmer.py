"""
Drop trailing vertices that no triangle references.

Some exporters write vertex buffers longer than the geometry drawn from
them.  After decode every per-vertex array (vertices, skin, populated blend
shape deltas) is cut to max(index) + 1 rows.
"""

import logging

log = logging.getLogger(__name__)


def drop_unused_vertices(context):
    """
    Truncate the per-vertex arrays of a decoded MeshContext in place.

    Idempotent: a second call finds nothing to remove.

    Args:
        context: MeshContext with vertices, skin, indices and blend_shapes.

    Returns:
        int: Number of vertex rows removed.
    """
    max_index = context.max_index()
    if max_index < 0:
        return 0

    count = max_index + 1
    before = len(context.vertices)
    context.vertices.truncate(count)
    if context.skin is not None:
        context.skin.truncate(count)
    for blend_shape in context.blend_shapes:
        blend_shape.truncate(count)

    removed = before - len(context.vertices)
    if removed > 0:
        log.info("Dropped %d unused trailing vertices from %s (%d -> %d)",
                 removed, context.name, before, len(context.vertices))
    return removed
