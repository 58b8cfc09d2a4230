"""Correlation based lag search between the reference history and a mic block.

For every candidate lag the block of reference samples ending ``lag`` samples
before the newest far-end block is compared with the current microphone
block.  Two scoring metrics are supported:

``ncc``
    Normalised cross-correlation, the dot product of both windows divided by
    the geometric mean of their powers.  Roughly in ``[-1, 1]``.
``amdf``
    One minus the summed absolute difference relative to the summed absolute
    values of both windows, clamped to ``[-1, 1]``.

All candidate windows are gathered into a pre-allocated matrix and scored in
one vectorised pass.
"""

from __future__ import annotations

from enum import Enum
from typing import NamedTuple

import numpy as np

from .constants import EPSILON
from .history import ReferenceHistory


class LagMetric(str, Enum):
    """Similarity metric used to score candidate lags."""

    NCC = "ncc"
    AMDF = "amdf"


class LagSearchResult(NamedTuple):
    """Outcome of a lag search over one block."""

    lag: int
    score: float
    reference_power: float
    mic_power: float


class LagSearch:
    """Scan a fixed set of candidate lags for the best matching delay.

    Parameters
    ----------
    block_size:
        Number of samples in each microphone block.
    max_lag:
        Largest candidate delay in samples (inclusive).
    lag_step:
        Spacing between candidate delays in samples.  Values below one are
        treated as one.
    metric:
        Scoring metric, see :class:`LagMetric`.
    """

    def __init__(
        self,
        block_size: int,
        max_lag: int,
        lag_step: int = 1,
        metric: LagMetric = LagMetric.NCC,
    ) -> None:
        self.block_size = int(block_size)
        self.metric = LagMetric(metric)
        self.lags: np.ndarray = np.arange(0, max(int(max_lag), 0) + 1, max(int(lag_step), 1))
        # Row k holds the history offsets of the window for ``lags[k]``.
        self.offsets: np.ndarray = (
            np.arange(self.block_size)[np.newaxis, :]
            - (self.block_size + self.lags)[:, np.newaxis]
        )
        self._index = np.empty_like(self.offsets)
        self._windows = np.empty(self.offsets.shape, dtype=np.float64)
        self._scratch = np.empty_like(self._windows)
        self._mic_abs = np.empty(self.block_size, dtype=np.float64)
        self._reference_power = np.empty(len(self.lags), dtype=np.float64)
        self._denom = np.empty(len(self.lags), dtype=np.float64)
        # Per-lag scores of the most recent search.
        self.scores: np.ndarray = np.empty(len(self.lags), dtype=np.float64)

    @property
    def max_lag(self) -> int:
        return int(self.lags[-1])

    def _ncc(self, windows: np.ndarray, mic: np.ndarray, mic_power: float) -> None:
        np.matmul(windows, mic, out=self.scores)
        np.multiply(self._reference_power, mic_power, out=self._denom)
        np.sqrt(self._denom, out=self._denom)
        np.divide(self.scores, self._denom, out=self.scores)

    def _amdf(self, windows: np.ndarray, mic: np.ndarray) -> None:
        np.abs(mic, out=self._mic_abs)
        mic_abs = max(float(self._mic_abs.sum()), EPSILON)
        np.subtract(windows, mic, out=self._scratch)
        np.abs(self._scratch, out=self._scratch)
        np.sum(self._scratch, axis=1, out=self.scores)
        np.abs(windows, out=self._scratch)
        np.sum(self._scratch, axis=1, out=self._denom)
        self._denom += mic_abs
        np.maximum(self._denom, EPSILON, out=self._denom)
        np.divide(self.scores, self._denom, out=self.scores)
        np.subtract(1.0, self.scores, out=self.scores)
        np.clip(self.scores, -1.0, 1.0, out=self.scores)

    def search(self, history: ReferenceHistory, mic: np.ndarray) -> LagSearchResult:
        """Return the best scoring lag for ``mic`` against ``history``.

        ``history`` must already contain the far-end block that is time
        aligned with ``mic``.  When several lags reach the same score the
        smallest one wins.  All intermediate results land in buffers sized
        at construction.

        Args:
            history: Reference history holding at least
                ``max_lag + block_size`` samples.
            mic: Microphone block of ``block_size`` float samples.

        Returns:
            The winning lag with its score, the floored reference power at
            that lag and the floored microphone power.
        """

        windows = history.gather(self.offsets, out=self._windows, index=self._index)
        mic_power = max(float(np.dot(mic, mic)), EPSILON)
        np.einsum("ij,ij->i", windows, windows, out=self._reference_power)
        np.maximum(self._reference_power, EPSILON, out=self._reference_power)

        if self.metric is LagMetric.AMDF:
            self._amdf(windows, mic)
        else:
            self._ncc(windows, mic, mic_power)

        # argmax keeps the first maximum, so equal scores resolve to the
        # smaller lag.
        best = int(np.argmax(self.scores))
        return LagSearchResult(
            lag=int(self.lags[best]),
            score=float(self.scores[best]),
            reference_power=float(self._reference_power[best]),
            mic_power=mic_power,
        )


__all__ = ["LagMetric", "LagSearchResult", "LagSearch"]
