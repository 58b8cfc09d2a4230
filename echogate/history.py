"""Circular history of far-end samples.

The lag search needs to look back up to the maximum lag plus one block into
the reference signal.  :class:`ReferenceHistory` keeps the most recent
``capacity`` far-end samples in a fixed numpy array addressed with modular
index arithmetic so that steady-state processing never resizes anything.
"""

from __future__ import annotations

from typing import Optional

import numpy as np


class ReferenceHistory:
    """Fixed-capacity ring buffer of reference samples.

    The buffer is zero-filled until enough far-end audio has been pushed to
    overwrite it.  ``cursor`` is the position the next sample will be written
    to, so the newest sample lives at offset ``-1`` and the oldest at offset
    ``0`` (equivalently ``-capacity``).

    Parameters
    ----------
    capacity:
        Number of samples retained.
    dtype:
        Floating point type of the stored samples.
    """

    def __init__(self, capacity: int, dtype: type = np.float64) -> None:
        self.capacity: int = max(int(capacity), 1)
        self.buffer: np.ndarray = np.zeros(self.capacity, dtype=dtype)
        self.cursor: int = 0

    def clear(self) -> None:
        """Zero the stored samples and rewind the cursor."""
        self.buffer.fill(0.0)
        self.cursor = 0

    def push(self, block: np.ndarray) -> None:
        """Append ``block`` and advance the cursor, overwriting the oldest data.

        Parameters
        ----------
        block:
            One-dimensional array of far-end samples.  Its length must not
            exceed ``capacity``.
        """

        n = len(block)
        end = self.cursor + n
        if end <= self.capacity:
            self.buffer[self.cursor : end] = block
        else:
            first = self.capacity - self.cursor
            self.buffer[self.cursor :] = block[:first]
            self.buffer[: n - first] = block[first:]
        self.cursor = end % self.capacity

    def read(self, offset: int) -> float:
        """Return the sample ``offset`` positions away from the cursor."""
        return float(self.buffer[(self.cursor + offset) % self.capacity])

    def gather(
        self,
        offsets: np.ndarray,
        out: Optional[np.ndarray] = None,
        index: Optional[np.ndarray] = None,
    ) -> np.ndarray:
        """Read many samples at once.

        Parameters
        ----------
        offsets:
            Integer array of signed offsets from the cursor.
        out:
            Optional destination array with the shape of ``offsets``.
        index:
            Optional integer scratch array with the shape of ``offsets`` used
            to hold the wrapped positions.  Supplying both ``out`` and
            ``index`` makes the call allocation free.

        Returns
        -------
        np.ndarray
            The gathered samples, ``out`` when it was provided.
        """

        if index is None:
            index = np.empty_like(offsets)
        np.add(offsets, self.cursor, out=index)
        # numpy's modulo already maps negative values into [0, capacity)
        np.mod(index, self.capacity, out=index)
        if out is None:
            return self.buffer[index]
        np.take(self.buffer, index, out=out)
        return out


__all__ = ["ReferenceHistory"]
