import json
import os
import random
import sys

import pytest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from mcq_app.core.models import Question, QuizDocument
from mcq_app.core.practice_scheduler import PracticeScheduler
from mcq_app.core.services.content_store import ContentStore
from mcq_app.core.services.history_store import HistoryStore
from mcq_app.core.storage import InMemoryStore

ADMIN_TOKEN = 'test-admin-token'


def make_quiz(count=3, title='Sample Quiz'):
    questions = tuple(
        Question(
            text=f'Question {i}?',
            options=(f'{i}-a', f'{i}-b', f'{i}-c', f'{i}-d'),
            correct_index=i % 4,
        )
        for i in range(count)
    )
    return QuizDocument(title=title, questions=questions)


def quiz_payload(count=3, title='Week Quiz'):
    return {
        'title': title,
        'questions': [
            {
                'question': f'What is {i} + {i}?',
                'options': [str(2 * i), str(2 * i + 1), str(2 * i + 2)],
                'correctAnswer': 0,
            }
            for i in range(count)
        ],
    }


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def quiz():
    return make_quiz()


@pytest.fixture
def history():
    return HistoryStore(InMemoryStore())


@pytest.fixture
def data_dir(tmp_path):
    course_dir = tmp_path / 'courses' / 'cog_psy'
    course_dir.mkdir(parents=True)
    (course_dir / 'course.json').write_text(
        json.dumps({'name': 'Cognitive Psychology', 'description': 'Minds at work'}),
        encoding='utf-8',
    )
    (course_dir / 'week1.json').write_text(json.dumps(quiz_payload(3, 'Week 1')), encoding='utf-8')
    (course_dir / 'week2.json').write_text(json.dumps(quiz_payload(2, 'Week 2')), encoding='utf-8')
    return tmp_path


@pytest.fixture
def content(data_dir):
    return ContentStore(data_dir)


@pytest.fixture
def scheduler(content, history):
    return PracticeScheduler(content, history, admin_token=ADMIN_TOKEN, rng=random.Random(99))
