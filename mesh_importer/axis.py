"""
Coordinate-handedness and texture-coordinate conventions.

glTF is right-handed (+Y up, +Z forward towards the viewer).  Renderers that
use a left-handed frame mirror one axis on import; which axis is a property
of the caller, so the decoder takes an inverter object instead of
hardcoding a flip.  Every inverter works on (N, 3) float arrays and returns a
new array.

UV handling is resolved once per asset into a UVConvention:

    REVERSE_UV     - (u, v) -> (u, 1 - v).  glTF puts the texture origin at
                     the top-left, the renderer at the bottom-left.
    LEGACY_FLIP_Y  - (u, v) -> (u, -v).  Files written by the UniGLTF
                     exporter before 1.16, including the early releases
                     whose generator string is the bare name "UniGLTF",
                     stored uv0 pre-flipped this way.

Only TEXCOORD_0 is ever decoded with the legacy rule; TEXCOORD_1 always uses
REVERSE_UV.
"""

import enum
import re
import logging

import numpy as np

log = logging.getLogger(__name__)

# Generator string prefix and first fixed version for the legacy uv0 layout
LEGACY_GENERATOR = "UniGLTF"
LEGACY_VERSION = (1, 16)

_GENERATOR_RE = re.compile(r'^(?P<name>[A-Za-z]+)-(?P<major>\d+)\.(?P<minor>\d+)')


# ---------------------------------------------------------------------------
# Axis inverters
# ---------------------------------------------------------------------------

class AxisInverter(object):
    """Mirror one axis by multiplying with a constant sign vector."""

    sign = (1.0, 1.0, 1.0)

    def invert_vector3(self, vectors):
        """
        Args:
            vectors: (N, 3) array-like of positions, normals or deltas.

        Returns:
            numpy.ndarray: float32 (N, 3) copy with the axis mirrored.
        """
        vectors = np.asarray(vectors, dtype=np.float32).reshape(-1, 3)
        return vectors * np.asarray(self.sign, dtype=np.float32)

    def __repr__(self):
        return "{}()".format(type(self).__name__)


class ReverseZ(AxisInverter):
    """glTF right-handed -> left-handed by negating Z."""

    sign = (1.0, 1.0, -1.0)


class ReverseX(AxisInverter):
    """glTF right-handed -> left-handed by negating X."""

    sign = (-1.0, 1.0, 1.0)


class NoInversion(AxisInverter):
    """Keep glTF coordinates as-is."""

    def invert_vector3(self, vectors):
        return np.array(vectors, dtype=np.float32).reshape(-1, 3)


# ---------------------------------------------------------------------------
# UV conventions
# ---------------------------------------------------------------------------

class UVConvention(enum.Enum):
    REVERSE_UV = "reverse_uv"
    LEGACY_FLIP_Y = "legacy_flip_y"

    def apply(self, uvs):
        """
        Convert a (N, 2) array of glTF texture coordinates.

        Returns:
            numpy.ndarray: float32 (N, 2) copy.
        """
        out = np.array(uvs, dtype=np.float32).reshape(-1, 2)
        if self is UVConvention.LEGACY_FLIP_Y:
            out[:, 1] = -out[:, 1]
        else:
            out[:, 1] = 1.0 - out[:, 1]
        return out


def parse_generator_version(generator):
    """
    Split an asset generator string such as "UniGLTF-1.27" into its parts.

    Returns:
        tuple: (name, (major, minor)), or None when the string does not
        carry a dashed version.
    """
    if not generator:
        return None
    m = _GENERATOR_RE.match(generator.strip())
    if not m:
        return None
    return m.group('name'), (int(m.group('major')), int(m.group('minor')))


def resolve_uv_convention(generator, legacy_generator=LEGACY_GENERATOR,
                          legacy_version=LEGACY_VERSION):
    """
    Pick the uv0 decoding rule for an asset from its `asset.generator`.

    Args:
        generator: The asset's generator string (may be None).
        legacy_generator: Generator name whose older releases wrote the
            legacy layout.
        legacy_version: First (major, minor) release that writes the
            current layout.

    Returns:
        UVConvention
    """
    if generator and generator.strip() == legacy_generator:
        # Releases before versioned generator strings wrote the bare name
        log.info("Asset generator %r carries no version, using legacy uv0 "
                 "flip", generator)
        return UVConvention.LEGACY_FLIP_Y
    parsed = parse_generator_version(generator)
    if parsed is None:
        return UVConvention.REVERSE_UV
    name, version = parsed
    if name == legacy_generator and version < tuple(legacy_version):
        log.info("Asset generator %r predates %s-%d.%d, using legacy uv0 flip",
                 generator, legacy_generator,
                 legacy_version[0], legacy_version[1])
        return UVConvention.LEGACY_FLIP_Y
    return UVConvention.REVERSE_UV
