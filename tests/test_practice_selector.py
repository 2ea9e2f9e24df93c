from mcq_app.constants.practice_constants import MASTERY_RATIO
from mcq_app.core.models import OutcomeRecord
from mcq_app.core.services.practice_selector import needs_practice, select_questions_needing_practice


def test_threshold_examples():
    assert needs_practice(OutcomeRecord(correct=1, incorrect=1))
    assert not needs_practice(OutcomeRecord(correct=2, incorrect=1))
    assert not needs_practice(OutcomeRecord(correct=0, incorrect=0))
    assert not needs_practice(OutcomeRecord(correct=5, incorrect=0))


def test_selects_missed_question():
    assert select_questions_needing_practice({0: OutcomeRecord(correct=0, incorrect=1)}) == {0}


def test_mastered_question_is_not_selected():
    assert select_questions_needing_practice({0: OutcomeRecord(correct=3, incorrect=1)}) == set()


def test_mixed_outcomes():
    outcomes = {
        0: OutcomeRecord(correct=0, incorrect=2),
        1: OutcomeRecord(correct=4, incorrect=2),
        2: OutcomeRecord(correct=3, incorrect=2),
        3: OutcomeRecord(),
    }
    assert select_questions_needing_practice(outcomes) == {0, 2}
    assert select_questions_needing_practice({}) == set()


def test_ratio_is_tunable():
    outcomes = {0: OutcomeRecord(correct=2, incorrect=1)}
    assert MASTERY_RATIO == 2
    assert select_questions_needing_practice(outcomes) == set()
    assert select_questions_needing_practice(outcomes, mastery_ratio=3) == {0}
