"""
Preallocated numpy storage with an append cursor.

Decode passes know the final element counts up front (accessor counts), so
every accumulation list is reserved once and then filled in place.  Growing
past the reservation is still allowed; it just costs a reallocation.
"""

import numpy as np


class GrowableArray(object):
    """
    Fixed-width rows appended into a reserved numpy buffer.

    Rows have `components` columns, or are scalars when `components` is None.
    """

    def __init__(self, dtype, components=None, capacity=0):
        self.dtype = np.dtype(dtype)
        self.components = components
        self._count = 0
        self._data = np.zeros(self._shape(max(capacity, 0)), dtype=self.dtype)

    def _shape(self, rows):
        if self.components is None:
            return (rows,)
        return (rows, self.components)

    def __len__(self):
        return self._count

    @property
    def capacity(self):
        return self._data.shape[0]

    @property
    def data(self):
        """View over the filled rows."""
        return self._data[:self._count]

    def reserve(self, capacity):
        if capacity <= self.capacity:
            return
        grown = np.zeros(self._shape(capacity), dtype=self.dtype)
        grown[:self._count] = self._data[:self._count]
        self._data = grown

    def extend(self, rows):
        """Append rows (cast to this array's dtype)."""
        rows = np.asarray(rows)
        n = rows.shape[0]
        if n == 0:
            return
        end = self._count + n
        if end > self.capacity:
            self.reserve(max(end, self.capacity * 2))
        self._data[self._count:end] = rows
        self._count = end

    def extend_fill(self, n, value):
        """Append `n` copies of `value`."""
        if n <= 0:
            return
        end = self._count + n
        if end > self.capacity:
            self.reserve(max(end, self.capacity * 2))
        self._data[self._count:end] = value
        self._count = end

    def truncate(self, count):
        """Drop rows past `count`.  Returns True if anything was removed."""
        if count >= self._count:
            return False
        self._count = max(count, 0)
        return True

    def to_array(self):
        """Copy of the filled rows."""
        return self.data.copy()
