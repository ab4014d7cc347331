import json
import logging
import os
from typing import List, Dict, Optional, Tuple

import requests

from scheduler_core import (
    IAlignmentProvider, IRequirementSource, ISectionCatalog, IScheduleStore,
    StudentSchedule, SchedulerDataError, CORE, GEN_ED, ELECTIVE,
)
from models import db, SavedSchedule
from config import get_config

Config = get_config()
logger = logging.getLogger(__name__)


# --- Alignment ---

class StoredAlignmentProvider(IAlignmentProvider):
    """
    Uses alignment scores that were precomputed and stored with the recommendations.
    Scores are clamped to 0.0-1.0; missing scores stay missing.
    """
    def align(self, student_id: str, recommendations: List[Dict]) -> List[Dict]:
        aligned = []
        for rec in recommendations:
            rec = dict(rec)
            score = rec.get('alignment_score')
            if score is not None:
                try:
                    rec['alignment_score'] = min(1.0, max(0.0, float(score)))
                except (TypeError, ValueError):
                    logger.warning(f"Ignoring invalid alignment score {score!r} for {rec.get('course_code')}")
                    rec['alignment_score'] = None
            aligned.append(rec)
        return aligned


# --- Supabase (PostgREST over HTTP) ---

class SupabaseClient:
    """Minimal PostgREST client for the tables the scheduler touches."""
    def __init__(self, url: str, key: str, timeout: int = None):
        if not url or not key:
            raise SchedulerDataError("Supabase URL and key are required")
        self.base_url = url.rstrip('/') + '/rest/v1'
        self.timeout = timeout or Config.REQUEST_TIMEOUT
        self.session = requests.Session()
        self.session.headers.update({
            'apikey': key,
            'Authorization': f'Bearer {key}',
            'Content-Type': 'application/json',
        })

    def select(self, table: str, columns: str = '*', filters: Dict[str, str] = None,
               order: str = None, limit: int = None) -> List[Dict]:
        params = {'select': columns}
        for column, value in (filters or {}).items():
            params[column] = f'eq.{value}'
        if order:
            params['order'] = order
        if limit:
            params['limit'] = limit

        resp = self.session.get(f'{self.base_url}/{table}', params=params, timeout=self.timeout)
        resp.raise_for_status()
        rows = resp.json()
        if not isinstance(rows, list):
            raise SchedulerDataError(f"Unexpected response from {table}: {str(rows)[:200]}")
        return rows

    def insert(self, table: str, row: Dict) -> None:
        resp = self.session.post(
            f'{self.base_url}/{table}',
            json=row,
            headers={'Prefer': 'return=minimal'},
            timeout=self.timeout,
        )
        resp.raise_for_status()


def group_recommendations(rows: List[Dict], alignment_provider: IAlignmentProvider, student_id: str,
                          min_credits: int, max_credits: int) -> Dict:
    """
    Turns flat course_recommendations rows into the categorized structure the builders read:
    one 'Core Requirements' category, one category per gen-ed area, one per elective group.
    """
    by_type: Dict[str, List[Dict]] = {}
    for row in rows:
        by_type.setdefault(str(row.get('recommendation_type') or ELECTIVE).upper(), []).append(row)

    def to_recommendation(row: Dict) -> Dict:
        metadata = row.get('metadata') or {}
        return {
            'course_code': row.get('course_id'),
            'course_title': row.get('title'),
            'credits': row.get('credits'),
            'requirement_type': row.get('recommendation_type'),
            'category': row.get('category'),
            'note': row.get('reason'),
            'alignment_score': row.get('alignment_score'),
            'alignment_reason': row.get('alignment_reason'),
            'specific_courses': metadata.get('specific_courses'),
        }

    def make_category(name: str, category_type: str, group: List[Dict]) -> Dict:
        recs = alignment_provider.align(student_id, [to_recommendation(r) for r in group])
        credits = sum(r.get('credits') or 0 for r in group)
        return {
            'name': name,
            'type': category_type,
            'recommendations': recs,
            'credits_required': credits,
            'credits_recommended': credits,
        }

    categories = []

    core_rows = by_type.pop(CORE, [])
    if core_rows:
        categories.append(make_category('Core Requirements', CORE, core_rows))

    for category_type, default_name in ((GEN_ED, 'General Education'), (ELECTIVE, 'General Electives')):
        grouped: Dict[str, List[Dict]] = {}
        for row in by_type.pop(category_type, []):
            grouped.setdefault(row.get('category') or default_name, []).append(row)
        for name, group in grouped.items():
            categories.append(make_category(name, category_type, group))

    # Unknown recommendation types are scheduled with the electives
    for category_type, group in by_type.items():
        logger.warning(f"Unknown recommendation type {category_type}; treating as elective")
        categories.append(make_category(category_type.title(), category_type, group))

    return {
        'total_credits_recommended': sum(c['credits_recommended'] for c in categories),
        'ideal_credit_range': {'min': min_credits, 'max': max_credits},
        'categories': categories,
        'next_term': rows[0].get('term_recommended') if rows else None,
    }


class SupabaseRequirementSource(IRequirementSource):
    def __init__(self, client: SupabaseClient, alignment_provider: IAlignmentProvider = None,
                 min_credits: int = None, max_credits: int = None):
        self.client = client
        self.alignment_provider = alignment_provider or StoredAlignmentProvider()
        self.min_credits = min_credits or Config.MIN_CREDITS
        self.max_credits = max_credits or Config.MAX_CREDITS

    def get_recommended_courses(self, student_id: str) -> Dict:
        rows = self.client.select('course_recommendations', filters={'student_id': student_id}, order='priority')
        if not rows:
            raise SchedulerDataError(f"No course recommendations found for student {student_id}")

        logger.info(f"Found {len(rows)} recommendations for student {student_id}")
        return group_recommendations(rows, self.alignment_provider, student_id,
                                     self.min_credits, self.max_credits)

    def get_schedule_preferences(self, student_id: str) -> Tuple[List[str], List[str]]:
        rows = self.client.select('student_profiles', columns='schedule_priorities,commitments',
                                  filters={'student_id': student_id}, limit=1)
        if not rows:
            logger.info(f"No profile found for student {student_id}; building without preferences")
            return [], []
        profile = rows[0]
        return profile.get('schedule_priorities') or [], profile.get('commitments') or []


class SupabaseSectionCatalog(ISectionCatalog):
    def __init__(self, client: SupabaseClient):
        self.client = client

    def get_sections(self, course_code: str, term: str) -> List[Dict]:
        rows = self.client.select('course_sections', columns='*,courses(title,credits)',
                                  filters={'course_code': course_code, 'term': term})
        sections = []
        for row in rows:
            course = row.pop('courses', None) or {}
            row.setdefault('course_title', course.get('title'))
            if row.get('credits') is None:
                row['credits'] = course.get('credits')
            sections.append(row)
        return sections


class SupabaseScheduleStore(IScheduleStore):
    def __init__(self, client: SupabaseClient):
        self.client = client

    def save(self, schedule: StudentSchedule) -> None:
        data = schedule.to_dict()
        self.client.insert('student_schedules', {
            'schedule_id': schedule.schedule_id,
            'student_id': schedule.student_id,
            'registration_term': schedule.term,
            'sections': data['sections'],
            'total_credits': schedule.total_credits,
            'conflicts': data.get('schedule_conflicts'),
            'stats': data['schedule_stats'],
            'explanations': data['explanations'],
        })
        logger.info(f"Saved schedule {schedule.schedule_id} to Supabase")


# --- Local JSON file ---

class JsonDataRepository(IRequirementSource, ISectionCatalog):
    """
    Reads requirements, preferences and sections from one JSON document:
      {"students": {id: {"schedule_priorities": [...], "commitments": [...]}},
       "recommendations": {id: {"categories": [...], "ideal_credit_range": {...}}},
       "sections": [{"course_code": ..., "term": ..., ...}]}
    """
    def __init__(self, data_file: str, alignment_provider: IAlignmentProvider = None):
        self.data_file = data_file
        self.alignment_provider = alignment_provider or StoredAlignmentProvider()
        self.data_cache = {}
        self.load_data()

    def load_data(self):
        if not os.path.exists(self.data_file):
            logger.warning(f"Data file {self.data_file} not found. Starting with no data.")
            self.data_cache = {}
            return
        try:
            with open(self.data_file, 'r', encoding='utf-8') as f:
                self.data_cache = json.load(f)
        except ValueError as e:
            raise SchedulerDataError(f"Could not parse {self.data_file}: {e}") from e
        logger.info(f"Loaded advising data from {self.data_file}")

    def get_recommended_courses(self, student_id: str) -> Dict:
        recommendations = self.data_cache.get('recommendations', {}).get(student_id)
        if not recommendations:
            raise SchedulerDataError(f"No course recommendations found for student {student_id}")

        result = dict(recommendations)
        result['categories'] = []
        for category in recommendations.get('categories', []):
            category = dict(category)
            category['recommendations'] = self.alignment_provider.align(
                student_id, category.get('recommendations', [])
            )
            result['categories'].append(category)
        return result

    def get_schedule_preferences(self, student_id: str) -> Tuple[List[str], List[str]]:
        profile = self.data_cache.get('students', {}).get(student_id) or {}
        return list(profile.get('schedule_priorities', [])), list(profile.get('commitments', []))

    def get_sections(self, course_code: str, term: str) -> List[Dict]:
        return [
            dict(s) for s in self.data_cache.get('sections', [])
            if s.get('course_code') == course_code and s.get('term') == term
        ]


# --- Stores ---

class SqlScheduleStore(IScheduleStore):
    """Keeps a local copy of each built schedule (needs an application context)."""
    def save(self, schedule: StudentSchedule) -> None:
        db.session.add(SavedSchedule.from_schedule(schedule))
        try:
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

    def get(self, schedule_id: str) -> Optional[Dict]:
        saved = db.session.get(SavedSchedule, schedule_id)
        return saved.get_payload() if saved else None


class CompositeScheduleStore(IScheduleStore):
    """Writes to every store; one failing store does not stop the others."""
    def __init__(self, stores: List[IScheduleStore]):
        self.stores = stores

    def save(self, schedule: StudentSchedule) -> None:
        for store in self.stores:
            try:
                store.save(schedule)
            except Exception as e:
                logger.error(f"{type(store).__name__} failed to save schedule {schedule.schedule_id}: {e}")

    def get(self, schedule_id: str) -> Optional[Dict]:
        for store in self.stores:
            found = store.get(schedule_id)
            if found is not None:
                return found
        return None


class DataServiceFactory:
    """Backend collaborators, built on first use from the configured backend."""
    _config = None
    _requirement_source = None
    _section_catalog = None
    _schedule_store = None

    @staticmethod
    def configure(config):
        """Select the backend. Nothing is connected until a getter is called."""
        DataServiceFactory.reset()
        DataServiceFactory._config = config

    @staticmethod
    def _build():
        config = DataServiceFactory._config or Config
        if config.DATA_BACKEND == 'json':
            repo = JsonDataRepository(config.DATA_FILE_PATH)
            DataServiceFactory._requirement_source = repo
            DataServiceFactory._section_catalog = repo
            DataServiceFactory._schedule_store = SqlScheduleStore()
        elif config.DATA_BACKEND == 'supabase':
            client = SupabaseClient(config.SUPABASE_URL, config.SUPABASE_KEY, config.REQUEST_TIMEOUT)
            DataServiceFactory._requirement_source = SupabaseRequirementSource(
                client, min_credits=config.MIN_CREDITS, max_credits=config.MAX_CREDITS
            )
            DataServiceFactory._section_catalog = SupabaseSectionCatalog(client)
            DataServiceFactory._schedule_store = CompositeScheduleStore(
                [SupabaseScheduleStore(client), SqlScheduleStore()]
            )
        else:
            raise SchedulerDataError(f"Unknown DATA_BACKEND '{config.DATA_BACKEND}'")

    @staticmethod
    def get_requirement_source():
        if DataServiceFactory._requirement_source is None:
            DataServiceFactory._build()
        return DataServiceFactory._requirement_source

    @staticmethod
    def get_section_catalog():
        if DataServiceFactory._section_catalog is None:
            DataServiceFactory._build()
        return DataServiceFactory._section_catalog

    @staticmethod
    def get_schedule_store():
        if DataServiceFactory._schedule_store is None:
            DataServiceFactory._build()
        return DataServiceFactory._schedule_store

    @staticmethod
    def reset():
        DataServiceFactory._config = None
        DataServiceFactory._requirement_source = None
        DataServiceFactory._section_catalog = None
        DataServiceFactory._schedule_store = None
