import random

import pytest
from fastapi.testclient import TestClient

from mcq_app.constants.network_constants import ADMIN_TOKEN_HEADER
from mcq_app.core.practice_scheduler import PracticeScheduler
from mcq_app.core.services.history_store import HistoryStore
from mcq_app.core.storage import JsonFileStore
from mcq_app.server.api_server import create_api_app

from conftest import ADMIN_TOKEN, quiz_payload


@pytest.fixture
def client(scheduler):
    return TestClient(create_api_app(scheduler))


def test_serves_browser_page(client):
    response = client.get('/')
    assert response.status_code == 200
    assert 'MCQ Practice' in response.text
    assert 'mathjax' in response.text


def test_list_and_get_courses(client):
    courses = client.get('/api/courses').json()
    assert courses[0]['id'] == 'cog_psy'
    assert courses[0]['total_questions'] == 5

    course = client.get('/api/courses/cog_psy').json()
    assert [week['id'] for week in course['weeks']] == ['week1', 'week2']
    assert client.get('/api/courses/biology').status_code == 404


def test_get_quiz_uses_wire_field_names(client):
    quiz = client.get('/api/quizzes/cog_psy/week1').json()
    assert quiz == quiz_payload(3, 'Week 1')
    assert client.get('/api/quizzes/cog_psy/week7').status_code == 404


def test_check_file(client):
    assert client.get('/api/check-file/cog_psy/week1').json() == {'exists': True}
    assert client.get('/api/check-file/cog_psy/week4').json() == {'exists': False}


def test_validate_quiz_reports_violations(client):
    body = client.post('/api/validate-quiz', json={'title': 'T', 'questions': [{'question': 'Q'}]}).json()
    assert body['is_valid'] is False
    assert body['violations']
    assert client.post('/api/validate-quiz', json=quiz_payload()).json() == {'is_valid': True, 'violations': []}


def test_save_quiz_conflict_and_overwrite(client):
    payload = {'courseId': 'cog_psy', 'weekId': 'week1', 'data': quiz_payload(1, 'New')}
    assert client.post('/api/save-quiz', json=payload).status_code == 409

    response = client.post('/api/save-quiz', json={**payload, 'overwrite': True})
    assert response.status_code == 200
    assert response.json()['path'] == 'cog_psy/week1.json'
    assert client.get('/api/quizzes/cog_psy/week1').json()['title'] == 'New'


def test_save_quiz_rejects_invalid_document(client):
    payload = {'courseId': 'cog_psy', 'weekId': 'week6', 'data': {'title': 'T', 'questions': []}}
    response = client.post('/api/save-quiz', json=payload)
    assert response.status_code == 422
    assert client.get('/api/check-file/cog_psy/week6').json() == {'exists': False}


def test_upload_creates_course(client):
    response = client.post(
        '/api/upload',
        json={'courseId': 'Social Psych', 'courseName': 'Social Psych', 'data': quiz_payload(2, 'Conformity')},
    )
    assert response.status_code == 201
    body = response.json()
    assert body['weekId'] == 'week1'
    assert body['isNewCourse'] is True
    assert body['course']['id'] == 'social_psych'


def test_linear_session_flow(client):
    view = client.post('/api/sessions', json={'course_id': 'cog_psy', 'week_id': 'week2'}).json()
    session_id = view['session_id']
    assert view['mode'] == 'linear'
    assert view['state'] == 'in_progress'
    assert view['current']['correct_index'] is None
    assert '<p>' in view['current']['question_html']

    assert client.post(f'/api/sessions/{session_id}/advance').status_code == 409

    answers = 0
    while not view['completed']:
        result = client.post(f'/api/sessions/{session_id}/answer', json={'selected_option_index': 0}).json()
        assert result['is_correct'] == (result['correct_index'] == 0)
        assert result['session']['current']['answered'] is True
        answers += 1
        view = client.post(f'/api/sessions/{session_id}/advance').json()

    assert answers == 2
    assert view['summary']['answered_instances'] == 2
    assert view['current'] is None

    history = client.get('/api/history/cog_psy/week2').json()
    assert sum(record['correct'] + record['incorrect'] for record in history['outcomes'].values()) == 2

    assert client.delete(f'/api/sessions/{session_id}').json() == {'abandoned': True}
    assert client.get(f'/api/sessions/{session_id}').status_code == 404


def test_session_errors(client):
    assert client.post('/api/sessions', json={'course_id': 'cog_psy', 'week_id': 'week9'}).status_code == 404
    assert client.post('/api/sessions', json={'course_id': 'cog_psy', 'week_id': 'week1', 'mode': 'random'}).status_code == 422

    session_id = client.post('/api/sessions', json={'course_id': 'cog_psy', 'week_id': 'week1'}).json()['session_id']
    assert client.post(f'/api/sessions/{session_id}/answer', json={'selected_option_index': 9}).status_code == 422
    assert client.post(f'/api/sessions/{session_id}/answer', json={'selected_option_index': 1}).status_code == 200
    assert client.post(f'/api/sessions/{session_id}/answer', json={'selected_option_index': 1}).status_code == 409


def test_mastery_session_requeues_missed_question(client):
    view = client.post('/api/sessions/mastery', json={'limit': 3}).json()
    session_id = view['session_id']
    assert view['mode'] == 'mastery'
    assert view['remaining'] == 3

    current = view['current']
    # Options are consecutive numbers and the smallest one is correct
    wrong_index = max(range(3), key=lambda i: int(current['options'][i]))
    result = client.post(f'/api/sessions/{session_id}/answer', json={'selected_option_index': wrong_index}).json()
    assert result['is_correct'] is False

    view = client.post(f'/api/sessions/{session_id}/advance').json()
    assert view['remaining'] == 3
    assert view['current']['source']['course_id'] == 'cog_psy'
    assert view['current']['original_index'] != current['original_index']


def test_admin_endpoints(client, history):
    assert client.get('/api/list-files').status_code == 403
    assert client.get('/api/list-files', headers={ADMIN_TOKEN_HEADER: 'nope'}).status_code == 403

    headers = {ADMIN_TOKEN_HEADER: ADMIN_TOKEN}
    listing = client.get('/api/list-files', headers=headers).json()
    assert listing[0]['weeks'][0]['path'] == 'cog_psy/week1.json'

    content = client.get('/api/file-content', params={'path': 'cog_psy/week1.json'}, headers=headers)
    assert content.status_code == 200
    assert '"title": "Week 1"' in content.text
    assert client.get('/api/file-content', params={'path': '../x.json'}, headers=headers).status_code == 403
    assert client.get('/api/file-content', params={'path': 'cog_psy/week1\x00.json'}, headers=headers).status_code == 422

    history.record_outcome('cog_psy', 'week1', 0, False)
    assert client.delete('/api/history/cog_psy', params={'week_id': 'week1'}).status_code == 403
    assert client.delete('/api/history/cog_psy', params={'week_id': 'week1'}, headers=headers).json() == {'cleared': 1}


def test_unreadable_history_degrades_to_empty(content, data_dir):
    history_path = data_dir / 'history.json'
    history_path.write_text('{not json', encoding='utf-8')
    scheduler = PracticeScheduler(content, HistoryStore(JsonFileStore(history_path)), rng=random.Random(5))
    client = TestClient(create_api_app(scheduler))

    response = client.post('/api/sessions', json={'course_id': 'cog_psy', 'week_id': 'week1'})
    assert response.status_code == 201

    history = client.get('/api/history/cog_psy/week1')
    assert history.status_code == 200
    assert history.json() == {'outcomes': {}, 'needs_practice': []}
