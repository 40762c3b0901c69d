"""
Exceptions raised while decoding a glTF mesh.

All of them are fatal for the mesh being decoded: the partially filled
buffers are discarded and nothing is handed to the renderer.  Degraded but
recoverable situations (missing normals, short target-name lists, partial
blend shapes) are logged as warnings instead and never raise.
"""


class MeshImportError(ValueError):
    """Base class for fatal mesh decode errors."""


class UnsupportedIndexFormatError(MeshImportError):
    """An index accessor uses a component type other than uint8/16/32."""

    def __init__(self, dtype):
        self.dtype = dtype
        super(UnsupportedIndexFormatError, self).__init__(
            "Unsupported index component type: {} "
            "(expected 8, 16 or 32-bit unsigned)".format(dtype))


class BlendShapeLengthError(MeshImportError):
    """A morph target delta array does not match its primitive's vertex count."""

    def __init__(self, channel, attribute, length, expected):
        self.channel = channel
        self.attribute = attribute
        self.length = length
        self.expected = expected
        super(BlendShapeLengthError, self).__init__(
            "Morph target {} {} has {} elements, primitive has {} "
            "vertices".format(channel, attribute, length, expected))


class AttributeLengthError(MeshImportError):
    """A vertex attribute accessor count differs from the POSITION count."""

    def __init__(self, attribute, length, expected):
        self.attribute = attribute
        self.length = length
        self.expected = expected
        super(AttributeLengthError, self).__init__(
            "Attribute {} has {} elements, POSITION has {}".format(
                attribute, length, expected))
