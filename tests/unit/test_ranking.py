from sitiocompare.extract import MetricSubjectValue
from sitiocompare.models import Polarity
from sitiocompare.ranking import rank_subjects, summary_stats


def _values(**by_id):
    return [MetricSubjectValue(sid, sid, v, "") for sid, v in by_id.items()]


def test_ties_share_rank_and_skip():
    """Standard competition ranking: 1, 1, 3."""
    ranks = rank_subjects(_values(a=10, b=10, c=5), Polarity.BETTER)
    assert ranks == {"a": 1, "b": 1, "c": 3}


def test_worse_ranks_ascending():
    ranks = rank_subjects(_values(a=3, b=1, c=2), Polarity.WORSE)
    assert ranks == {"b": 1, "c": 2, "a": 3}


def test_neutral_ranks_descending():
    ranks = rank_subjects(_values(a=3, b=1, c=2), Polarity.NEUTRAL)
    assert ranks == {"a": 1, "c": 2, "b": 3}


def test_missing_values_are_unranked():
    ranks = rank_subjects(_values(a=None, b=4, c=8), Polarity.BETTER)
    assert ranks == {"c": 1, "b": 2}


def test_all_missing():
    assert rank_subjects(_values(a=None, b=None)) == {}
    stats = summary_stats(_values(a=None, b=None))
    assert (stats.min, stats.max, stats.average) == (None, None, None)


def test_summary_stats_ignores_missing():
    stats = summary_stats(_values(a=2, b=None, c=6))
    assert stats.min == 2
    assert stats.max == 6
    assert stats.average == 4
