"""
API tests against the JSON test data.
"""

import itertools

import pytest

from app import create_app, VERSION
from config import TestConfig
from scheduler_core import has_time_conflict


class NoDefaultsConfig(TestConfig):
    DEFAULT_STUDENT_ID = None
    DEFAULT_TERM = None


class DefaultStudentConfig(TestConfig):
    DEFAULT_STUDENT_ID = 'S1001'
    DEFAULT_TERM = 'Spring 2025'


class MissingSupabaseConfig(TestConfig):
    DATA_BACKEND = 'supabase'
    SUPABASE_URL = None
    SUPABASE_KEY = None


@pytest.fixture
def client():
    app = create_app(NoDefaultsConfig)
    return app.test_client()


def post_build(client, **payload):
    return client.post('/api/schedule-builder', json=payload)


class TestScheduleBuilderRoute:

    def test_builds_schedule(self, client):
        """The sample student gets a full, conflict-free schedule."""
        resp = post_build(client, studentId='S1001', term='Spring 2025')
        assert resp.status_code == 200
        schedule = resp.get_json()['schedule']

        assert [s['course_code'] for s in schedule['sections']] == [
            'BUS311', 'FIN300', 'BUS150', 'ANT101', 'MAT210', 'FIN410',
        ]
        assert schedule['total_credits'] == 16
        assert schedule['term'] == 'Spring 2025'
        assert schedule['student_id'] == 'S1001'

        conflicts = schedule['schedule_conflicts']
        assert conflicts == [{
            'type': 'missing_requirement',
            'description': 'No available sections found for FIN420',
            'severity': 'medium',
            'affected_courses': ['FIN420'],
        }]

        stats = schedule['schedule_stats']
        assert stats['early_morning_classes'] == 0
        assert stats['back_to_back_classes'] == 2
        assert stats['preferred_day_pattern_classes'] == 3
        assert len(stats['time_blocks']) == 11
        assert "Course aligns with student goals: Supports the goal of working in asset management" \
            in schedule['explanations']

        for a, b in itertools.combinations(schedule['sections'], 2):
            assert not has_time_conflict(a['day_pattern'], a['start_time'], a['end_time'],
                                         b['day_pattern'], b['start_time'], b['end_time'])

    def test_saved_schedule_can_be_fetched(self, client):
        schedule = post_build(client, studentId='S1001', term='Spring 2025').get_json()['schedule']
        resp = client.get(f"/api/schedules/{schedule['schedule_id']}")
        assert resp.status_code == 200
        assert resp.get_json()['schedule'] == schedule

    def test_unknown_schedule(self, client):
        assert client.get('/api/schedules/does-not-exist').status_code == 404

    def test_simple_strategy(self, client):
        resp = post_build(client, studentId='S1001', term='Spring 2025', strategy='simple')
        assert resp.status_code == 200
        schedule = resp.get_json()['schedule']
        assert schedule['total_credits'] <= 18
        assert 'schedule_conflicts' not in schedule

    def test_missing_student(self, client):
        resp = post_build(client, term='Spring 2025')
        assert resp.status_code == 400
        assert resp.get_json() == {'error': 'Student ID is required'}

    def test_missing_term(self, client):
        resp = post_build(client, studentId='S1001')
        assert resp.status_code == 400
        assert resp.get_json() == {'error': 'Term is required'}

    def test_unknown_strategy(self, client):
        resp = post_build(client, studentId='S1001', term='Spring 2025', strategy='ilp')
        assert resp.status_code == 400

    def test_unknown_student_fails(self, client):
        resp = post_build(client, studentId='nobody', term='Spring 2025')
        assert resp.status_code == 500
        assert resp.get_json()['error'] == 'Failed to build schedule'

    def test_defaults_resolved_at_boundary(self):
        """Without a studentId the configured default student is used."""
        client = create_app(DefaultStudentConfig).test_client()
        resp = client.post('/api/schedule-builder', json={})
        assert resp.status_code == 200
        assert resp.get_json()['schedule']['student_id'] == 'S1001'


class TestHealth:

    def test_health(self, client):
        resp = client.get('/api/health')
        assert resp.status_code == 200
        data = resp.get_json()
        assert data['version'] == VERSION
        assert data['backend'] == 'json'
        assert data['strategies'] == ['optimized', 'simple']
        assert data['status'] == 'healthy'
        assert data['issues'] == []


class TestMissingCredentials:
    """Supabase selected without credentials: the app starts, requests fail cleanly."""

    @pytest.fixture
    def client(self):
        return create_app(MissingSupabaseConfig).test_client()

    def test_health_reports_degraded(self, client):
        data = client.get('/api/health').get_json()
        assert data['status'] == 'degraded'
        assert data['backend'] == 'supabase'
        assert any('SUPABASE_URL' in issue for issue in data['issues'])

    def test_build_fails_with_details(self, client):
        resp = post_build(client, studentId='S1001', term='Spring 2025')
        assert resp.status_code == 500
        assert resp.get_json() == {
            'error': 'Failed to build schedule',
            'details': 'Supabase URL and key are required',
        }

    def test_schedule_lookup_fails(self, client):
        resp = client.get('/api/schedules/anything')
        assert resp.status_code == 500
        assert resp.get_json()['error'] == 'Failed to load schedule'
