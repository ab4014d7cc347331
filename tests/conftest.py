"""
Shared fixtures and in-memory collaborators for the scheduler tests.
"""

import os
import sys

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
os.environ.setdefault('FLASK_ENV', 'testing')

import pytest

from scheduler_core import (
    IRequirementSource, ISectionCatalog, IScheduleStore, CourseSection, CORE, GEN_ED, ELECTIVE,
)


class FakeRequirementSource(IRequirementSource):
    def __init__(self, categories, priorities=None, commitments=None, credit_range=None):
        self.categories = categories
        self.priorities = priorities or []
        self.commitments = commitments or []
        self.credit_range = credit_range or {'min': 15, 'max': 18}
        self.calls = []

    def get_recommended_courses(self, student_id):
        self.calls.append(student_id)
        return {'categories': self.categories, 'ideal_credit_range': self.credit_range}

    def get_schedule_preferences(self, student_id):
        return self.priorities, self.commitments


class FakeSectionCatalog(ISectionCatalog):
    def __init__(self, sections):
        self.sections = sections
        self.calls = []

    def get_sections(self, course_code, term):
        self.calls.append((course_code, term))
        return [dict(row) for row in self.sections.get(course_code, [])]


class MemoryScheduleStore(IScheduleStore):
    def __init__(self):
        self.saved = []

    def save(self, schedule):
        self.saved.append(schedule)

    def get(self, schedule_id):
        for schedule in self.saved:
            if schedule.schedule_id == schedule_id:
                return schedule.to_dict()
        return None


class FailingScheduleStore(IScheduleStore):
    def save(self, schedule):
        raise RuntimeError("database is read-only")


def category(name, category_type, *recommendations, **extra):
    data = {'name': name, 'type': category_type, 'recommendations': list(recommendations)}
    data.update(extra)
    return data


def course(code, credits=3, **extra):
    data = {'course_code': code, 'course_title': f'{code} Title', 'credits': credits}
    data.update(extra)
    return data


def row(section_id, code, days, start, end, **extra):
    data = {
        'section_id': section_id,
        'course_code': code,
        'day_pattern': days,
        'start_time': start,
        'end_time': end,
        'instructor': 'Staff',
        'location': 'TBA',
    }
    data.update(extra)
    return data


def make_section(code, days, start, end, credits=3, requirement_type=ELECTIVE, **extra):
    data = row(f'{code}-01', code, days, start, end, credits=credits,
               requirement_type=requirement_type,
               priority={CORE: 100, GEN_ED: 50}.get(requirement_type, 25))
    data.update(extra)
    return CourseSection(data)


@pytest.fixture
def store():
    return MemoryScheduleStore()
