import json
import random

import pytest

from mcq_app.core.errors import ContentNotFound, InvalidQuizFormat, QuizAlreadyExists
from mcq_app.core.quiz_format import parse_quiz_document
from mcq_app.core.services.content_store import ContentStore, normalize_course_id, week_display_name

from conftest import quiz_payload


def test_list_courses_summarizes_weeks(content):
    courses = content.list_courses()
    assert [course.id for course in courses] == ['cog_psy']
    course = courses[0]
    assert course.name == 'Cognitive Psychology'
    assert course.description == 'Minds at work'
    assert [(week.id, week.name, week.question_count) for week in course.weeks] == [
        ('week1', 'Week 1', 3),
        ('week2', 'Week 2', 2),
    ]
    assert course.total_questions == 5


def test_weeks_sort_numerically(content, data_dir):
    (data_dir / 'courses' / 'cog_psy' / 'week10.json').write_text(json.dumps(quiz_payload(1)), encoding='utf-8')
    weeks = [week.id for week in content.get_course('cog_psy').weeks]
    assert weeks == ['week1', 'week2', 'week10']


def test_missing_course_or_quiz(content, tmp_path):
    with pytest.raises(ContentNotFound):
        content.get_course('unknown')
    with pytest.raises(ContentNotFound):
        content.get_quiz('cog_psy', 'week9')
    assert ContentStore(tmp_path / 'empty').list_courses() == []


def test_get_quiz_validates_stored_file(content, data_dir):
    (data_dir / 'courses' / 'cog_psy' / 'week3.json').write_text(json.dumps({'title': 'x'}), encoding='utf-8')
    with pytest.raises(InvalidQuizFormat):
        content.get_quiz('cog_psy', 'week3')


def test_identifiers_cannot_escape_data_dir(content):
    with pytest.raises(ValueError):
        content.get_quiz('..', 'week1')
    with pytest.raises(ValueError):
        content.quiz_exists('cog_psy', '../../etc/passwd')


def test_identifiers_reject_trailing_newline(content):
    with pytest.raises(ValueError):
        content.save_quiz('cog_psy\n', 'week9', parse_quiz_document(quiz_payload(1)))
    assert not (content.root / 'cog_psy\n').exists()


def test_save_quiz_refuses_overwrite_by_default(content):
    document = parse_quiz_document(quiz_payload(4, 'Replacement'))
    with pytest.raises(QuizAlreadyExists):
        content.save_quiz('cog_psy', 'week1', document)

    content.save_quiz('cog_psy', 'week1', document, overwrite=True)
    assert content.get_quiz('cog_psy', 'week1').title == 'Replacement'


def test_add_quiz_to_new_course(content):
    document = parse_quiz_document(quiz_payload(2, 'Neurons'))
    course, week_id, is_new = content.add_quiz_to_course('Intro  Neuro', document)

    assert is_new
    assert week_id == 'week1'
    assert course.id == 'intro_neuro'
    assert course.name == 'Intro  Neuro'
    assert course.description == 'Neurons'
    assert content.quiz_exists('intro_neuro', 'week1')


def test_add_quiz_to_existing_course_uses_next_week(content):
    document = parse_quiz_document(quiz_payload(1))
    course, week_id, is_new = content.add_quiz_to_course('cog_psy', document)
    assert not is_new
    assert week_id == 'week3'
    assert course.total_questions == 6


def test_get_all_questions_tags_sources_and_skips_bad_weeks(content, data_dir, caplog):
    (data_dir / 'courses' / 'cog_psy' / 'week3.json').write_text('not json', encoding='utf-8')
    questions = content.get_all_questions()

    assert len(questions) == 5
    sources = {(q.source.week_id, q.source.question_index) for q in questions}
    assert ('week2', 1) in sources
    assert all(q.source.course_name == 'Cognitive Psychology' for q in questions)
    assert 'week3' in caplog.text


def test_build_mastery_quiz_limits_sample(content):
    quiz = content.build_mastery_quiz(limit=4, rng=random.Random(3))
    assert len(quiz.questions) == 4
    assert len({(q.source.week_id, q.source.question_index) for q in quiz.questions}) == 4
    assert len(content.build_mastery_quiz(limit=50).questions) == 5


def test_list_and_read_files(content):
    listing = content.list_files()
    assert listing == [
        {
            'course': 'cog_psy',
            'weeks': [
                {'name': 'week1.json', 'path': 'cog_psy/week1.json'},
                {'name': 'week2.json', 'path': 'cog_psy/week2.json'},
            ],
        }
    ]
    assert json.loads(content.read_file('cog_psy/week2.json'))['title'] == 'Week 2'
    with pytest.raises(PermissionError):
        content.read_file('../../secrets.txt')
    with pytest.raises(ContentNotFound):
        content.read_file('cog_psy/week7.json')
    with pytest.raises(ValueError):
        content.read_file('cog_psy/week1\x00.json')


def test_name_helpers():
    assert normalize_course_id('  Cognitive   Psychology ') == 'cognitive_psychology'
    assert week_display_name('week12') == 'Week 12'
    assert week_display_name('midterm_review') == 'Midterm Review'
