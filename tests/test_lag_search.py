import numpy as np
import pytest

from echogate.history import ReferenceHistory
from echogate.lag_search import LagMetric, LagSearch

BLOCK = 160
MAX_LAG = 1280
STEP = 16


def _filled_history(stream: np.ndarray) -> ReferenceHistory:
    history = ReferenceHistory(MAX_LAG + 4 * BLOCK)
    for start in range(0, len(stream), BLOCK):
        history.push(stream[start : start + BLOCK])
    return history


def test_candidate_lags_cover_window() -> None:
    search = LagSearch(BLOCK, MAX_LAG, STEP)
    assert search.lags[0] == 0
    assert search.max_lag == MAX_LAG
    assert len(search.lags) == MAX_LAG // STEP + 1
    assert search.offsets.shape == (len(search.lags), BLOCK)
    assert search.offsets[0, -1] == -1
    assert search.offsets[1, 0] == -(BLOCK + STEP)


def test_lag_step_below_one_sample_is_one() -> None:
    search = LagSearch(4, 3, lag_step=0)
    assert search.lags.tolist() == [0, 1, 2, 3]


@pytest.mark.parametrize("metric", list(LagMetric))
def test_search_finds_delayed_copy(metric: LagMetric) -> None:
    rng = np.random.default_rng(1)
    stream = rng.normal(scale=0.3, size=12 * BLOCK)
    history = _filled_history(stream)
    lag = 320
    end = len(stream)
    mic = stream[end - BLOCK - lag : end - lag].copy()
    if metric is LagMetric.NCC:
        mic *= 0.5

    result = LagSearch(BLOCK, MAX_LAG, STEP, metric).search(history, mic)

    assert result.lag == lag
    assert result.score == pytest.approx(1.0, abs=1e-9)
    assert result.reference_power == pytest.approx(float(np.sum(stream[end - BLOCK - lag : end - lag] ** 2)))
    assert result.mic_power == pytest.approx(float(np.sum(mic**2)))


@pytest.mark.parametrize("metric", list(LagMetric))
def test_equal_scores_keep_smaller_lag(metric: LagMetric) -> None:
    rng = np.random.default_rng(2)
    # Dyadic sample values keep every sum exact, so repeated windows tie
    # bit for bit.
    pattern = rng.choice([-0.5, -0.25, 0.25, 0.5], size=BLOCK)
    last = rng.choice([-0.5, -0.25, 0.25, 0.5], size=BLOCK)
    stream = np.concatenate([np.tile(pattern, 11), last])
    history = _filled_history(stream)

    result = LagSearch(BLOCK, MAX_LAG, STEP, metric).search(history, pattern)

    assert result.lag == BLOCK
    assert result.score == pytest.approx(1.0)


def test_silent_inputs_give_finite_scores() -> None:
    history = ReferenceHistory(MAX_LAG + 4 * BLOCK)
    mic = np.zeros(BLOCK)
    for metric in LagMetric:
        result = LagSearch(BLOCK, MAX_LAG, STEP, metric).search(history, mic)
        assert np.isfinite(result.score)
        assert result.lag == 0
        assert result.reference_power == pytest.approx(1e-9)
        assert result.mic_power == pytest.approx(1e-9)


def _single_lag_score(reference: np.ndarray, mic: np.ndarray, metric: LagMetric) -> float:
    history = ReferenceHistory(len(reference))
    history.push(reference)
    return LagSearch(len(reference), 0, metric=metric).search(history, mic).score


def test_ncc_score_bounds() -> None:
    a = np.array([0.1, -0.4, 0.3, 0.2])
    assert _single_lag_score(a, a, LagMetric.NCC) == pytest.approx(1.0)
    assert _single_lag_score(a, -2.0 * a, LagMetric.NCC) == pytest.approx(-1.0)
    assert _single_lag_score(np.zeros(4), np.zeros(4), LagMetric.NCC) == 0.0


def test_amdf_score_bounds() -> None:
    a = np.array([0.1, -0.4, 0.3, 0.2])
    assert _single_lag_score(a, a, LagMetric.AMDF) == pytest.approx(1.0)
    # opposite signs: every difference equals the sum of magnitudes
    assert _single_lag_score(a, -a, LagMetric.AMDF) == pytest.approx(0.0)
    score = _single_lag_score(a, 0.5 * a, LagMetric.AMDF)
    assert 0.0 < score < 1.0


@pytest.mark.parametrize("metric", list(LagMetric))
def test_scores_buffer_is_reused(metric: LagMetric) -> None:
    rng = np.random.default_rng(3)
    search = LagSearch(BLOCK, MAX_LAG, STEP, metric)
    scores = search.scores
    history = ReferenceHistory(MAX_LAG + 4 * BLOCK)

    for _ in range(6):
        history.push(rng.normal(scale=0.3, size=BLOCK))
        result = search.search(history, rng.normal(scale=0.3, size=BLOCK))
        assert search.scores is scores
        best = int(np.argmax(scores))
        assert scores[best] == result.score
        assert search.lags[best] == result.lag
        assert np.all(np.isfinite(scores))
