import pytest

from conftest import PHQ9_THRESHOLDS
from errors import DuplicateThreshold, QuestionnaireConfigError, ScoreBelowAllThresholds
from risk import check_thresholds, classify, meets_level, risk_rank


class TestClassify:

    @pytest.mark.parametrize("score,label", [
        (0, "minimal"),
        (4, "minimal"),
        (4.99, "minimal"),
        (5, "mild"),
        (12, "moderate"),
        (19, "moderately severe"),
        (20, "severe"),
        (27, "severe"),
    ])
    def test_phq9_buckets(self, score, label):
        assert classify(score, PHQ9_THRESHOLDS) == label

    def test_unsorted_table_is_ordered_first(self):
        shuffled = list(reversed(PHQ9_THRESHOLDS))
        assert classify(12, shuffled) == "moderate"

    def test_score_below_all_thresholds(self):
        with pytest.raises(ScoreBelowAllThresholds):
            classify(-1, PHQ9_THRESHOLDS)

    def test_empty_table_is_rejected(self):
        with pytest.raises(ScoreBelowAllThresholds):
            classify(3, [])

    def test_duplicate_min_score(self):
        thresholds = [{"label": "low", "min_score": 0}, {"label": "also low", "min_score": 0}]
        with pytest.raises(DuplicateThreshold):
            classify(3, thresholds)

    @pytest.mark.parametrize("min_score", ["abc", "5", None, True])
    def test_non_numeric_min_score_is_rejected(self, min_score):
        thresholds = [{"label": "low", "min_score": 0}, {"label": "high", "min_score": min_score}]
        with pytest.raises(QuestionnaireConfigError):
            check_thresholds(thresholds)

    def test_monotonic_over_score_range(self):
        ranks = [risk_rank(classify(s / 2, PHQ9_THRESHOLDS), PHQ9_THRESHOLDS) for s in range(0, 55)]
        assert ranks == sorted(ranks)


class TestRiskOrdering:

    def test_rank_follows_min_score(self):
        assert risk_rank("minimal", PHQ9_THRESHOLDS) == 0
        assert risk_rank("severe", PHQ9_THRESHOLDS) == 4

    def test_meets_level(self):
        assert meets_level("severe", "moderately severe", PHQ9_THRESHOLDS)
        assert meets_level("moderately severe", "moderately severe", PHQ9_THRESHOLDS)
        assert not meets_level("moderate", "moderately severe", PHQ9_THRESHOLDS)
