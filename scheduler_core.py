from abc import ABC, abstractmethod
from typing import List, Dict, Optional, Tuple, Any

# --- Requirement Tiers ---

CORE = 'CORE'
GEN_ED = 'GEN_ED'
ELECTIVE = 'ELECTIVE'

TIER_PRIORITY = {
    CORE: 100,
    GEN_ED: 50,
    ELECTIVE: 25,
}

VALID_DAYS = 'MTWRF'
DAY_NAMES = {
    'M': 'Monday',
    'T': 'Tuesday',
    'W': 'Wednesday',
    'R': 'Thursday',
    'F': 'Friday',
}

CORE_RESOLUTION_OPTIONS = [
    'Consider alternative sections in a different term',
    'Review prerequisites and course sequencing',
    'Consult with academic advisor for course substitution options',
]


class SchedulerDataError(Exception):
    """Raised when upstream requirement or section data is missing or malformed."""


# --- Time Utilities ---

def time_to_minutes(time_str: str) -> int:
    """Convert 'HH:MM' (or 'HH:MM:SS') to minutes from midnight.

    Hours 1-7 are catalog shorthand for afternoon times and get 12 added,
    so '1:30' is 13:30. Hour 0 and hours 8-23 are taken literally.
    """
    parts = str(time_str).strip().split(':')
    hours = int(parts[0])
    minutes = int(parts[1]) if len(parts) > 1 and parts[1] else 0

    if 0 < hours < 8:
        hours += 12

    return hours * 60 + minutes


def normalize_time(time_str: str) -> str:
    """Return the time as zero-padded 24-hour 'HH:MM'."""
    total = time_to_minutes(time_str)
    return f"{total // 60:02d}:{total % 60:02d}"


def start_hour(time_str: str) -> int:
    return time_to_minutes(time_str) // 60


def has_time_conflict(pattern1: str, start1: str, end1: str,
                      pattern2: str, start2: str, end2: str) -> bool:
    """True when the patterns share a day and the time ranges overlap.

    Touching ranges (one ends exactly when the other starts) do not conflict.
    """
    if not any(day in pattern2 for day in pattern1):
        return False

    start1_min = time_to_minutes(start1)
    end1_min = time_to_minutes(end1)
    start2_min = time_to_minutes(start2)
    end2_min = time_to_minutes(end2)

    return not (end1_min <= start2_min or end2_min <= start1_min)


def expand_day_pattern(pattern: str) -> List[str]:
    """'MWF' -> ['Monday', 'Wednesday', 'Friday'] (always in week order)."""
    return [DAY_NAMES[day] for day in VALID_DAYS if day in pattern]


# --- Domain Models ---

class Requirement:
    """One recommendation category from the Requirement Source (e.g. 'Core Requirements')."""
    def __init__(self, category_data: Dict):
        self.name = category_data.get('name') or ''
        self.requirement_type = str(category_data.get('type') or ELECTIVE).upper()
        self.recommendations = category_data.get('recommendations') or []
        self.credits_required = category_data.get('credits_required', 0)
        self.satisfied = bool(category_data.get('satisfied', False))

    @property
    def tier(self) -> str:
        # Anything that is not core or gen-ed is scheduled with the electives
        if self.requirement_type in (CORE, GEN_ED):
            return self.requirement_type
        return ELECTIVE

    @property
    def priority(self) -> int:
        return TIER_PRIORITY[self.tier]

    def candidate_courses(self) -> List[Dict]:
        """Concrete courses that could satisfy this requirement, in listed order."""
        if self.satisfied:
            return []

        candidates = []
        for rec in self.recommendations:
            if rec.get('course_code'):
                candidates.append(rec)

            # Generic gen-ed / elective slots list the actual courses separately
            if self.tier != CORE:
                for specific in rec.get('specific_courses') or []:
                    code = specific.get('course_code') or specific.get('code')
                    if not code:
                        continue
                    candidates.append({
                        'course_code': code,
                        'course_title': specific.get('course_title') or specific.get('title'),
                        'credits': specific.get('credits'),
                        'alignment_score': specific.get('alignment_score'),
                        'alignment_reason': specific.get('alignment_reason'),
                    })
        return candidates

    def __repr__(self):
        return f"{self.name} ({self.requirement_type})"


class CourseSection:
    """One offered meeting pattern of a course, tagged with the requirement it satisfies."""
    def __init__(self, section_data: Dict):
        self.section_id = section_data.get('section_id')
        self.course_id = section_data.get('course_id')
        self.course_code = section_data.get('course_code', '')
        self.course_title = section_data.get('course_title') or ''
        self.section_code = section_data.get('section_code')
        self.day_pattern = (section_data.get('day_pattern') or '').upper()
        self.start_time = normalize_time(section_data['start_time'])
        self.end_time = normalize_time(section_data['end_time'])
        self.instructor = section_data.get('instructor')
        self.location = section_data.get('location')
        self.credits = float(section_data.get('credits') or 3)
        self.requirement_type = section_data.get('requirement_type', ELECTIVE)
        self.requirement_category = section_data.get('requirement_category')
        self.priority = section_data.get('priority', 0)
        self.alignment_score = section_data.get('alignment_score')
        self.alignment_reason = section_data.get('alignment_reason')
        # Filled in by the scorer
        self.score: Optional[float] = section_data.get('score')
        self.explanations: List[str] = list(section_data.get('explanations') or [])

        self._validate()

    def _validate(self):
        if not self.day_pattern or any(day not in VALID_DAYS for day in self.day_pattern):
            raise SchedulerDataError(
                f"Section {self.section_id} of {self.course_code} has invalid day pattern '{self.day_pattern}'"
            )
        if time_to_minutes(self.start_time) >= time_to_minutes(self.end_time):
            raise SchedulerDataError(
                f"Section {self.section_id} of {self.course_code} starts at {self.start_time} "
                f"but ends at {self.end_time}"
            )

    def conflicts_with(self, other: 'CourseSection') -> bool:
        return has_time_conflict(self.day_pattern, self.start_time, self.end_time,
                                 other.day_pattern, other.start_time, other.end_time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'section_id': self.section_id,
            'course_id': self.course_id,
            'course_code': self.course_code,
            'course_title': self.course_title,
            'section_code': self.section_code,
            'day_pattern': self.day_pattern,
            'start_time': self.start_time,
            'end_time': self.end_time,
            'instructor': self.instructor,
            'location': self.location,
            'credits': self.credits,
            'requirement_type': self.requirement_type,
            'requirement_category': self.requirement_category,
            'priority': self.priority,
            'alignment_score': self.alignment_score,
            'alignment_reason': self.alignment_reason,
            'score': self.score,
            'explanations': list(self.explanations),
        }

    def __repr__(self):
        return f"{self.course_code} {self.day_pattern} {self.start_time}-{self.end_time}"


class PreferenceRule:
    """A normalized, weighted scheduling preference."""
    def __init__(self, kind: str, value: Any, weight: float):
        self.kind = kind
        self.value = value
        self.weight = weight

    def to_dict(self) -> Dict[str, Any]:
        return {'type': self.kind, 'value': self.value, 'weight': self.weight}

    def __eq__(self, other):
        if not isinstance(other, PreferenceRule):
            return NotImplemented
        return (self.kind, self.value, self.weight) == (other.kind, other.value, other.weight)

    def __repr__(self):
        return f"PreferenceRule({self.kind}={self.value!r}, weight={self.weight})"


class ScheduleConflict:
    """A constraint the build could not fully honor."""
    TIME_CONFLICT = 'time_conflict'
    PREFERENCE_VIOLATION = 'preference_violation'
    MISSING_REQUIREMENT = 'missing_requirement'

    def __init__(self, kind: str, description: str, severity: str,
                 affected_courses: List[str] = None, resolution_options: List[str] = None):
        self.kind = kind
        self.description = description
        self.severity = severity
        self.affected_courses = affected_courses or []
        self.resolution_options = resolution_options

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'type': self.kind,
            'description': self.description,
            'severity': self.severity,
            'affected_courses': list(self.affected_courses),
        }
        if self.resolution_options:
            data['resolution_options'] = list(self.resolution_options)
        return data

    def __repr__(self):
        return f"ScheduleConflict({self.kind}, {self.severity}, {self.affected_courses})"


class StudentSchedule:
    """The output of one build. Not modified after it is returned."""
    def __init__(self, schedule_id: str, student_id: str, term: str,
                 sections: List[CourseSection], total_credits: float,
                 conflicts: List[ScheduleConflict] = None, stats: Dict = None,
                 explanations: List[str] = None, credit_range: Dict = None):
        self.schedule_id = schedule_id
        self.student_id = student_id
        self.term = term
        self.sections = sections
        self.total_credits = total_credits
        self.conflicts = conflicts or []
        self.stats = stats or {}
        self.explanations = explanations or []
        self.credit_range = credit_range

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'schedule_id': self.schedule_id,
            'student_id': self.student_id,
            'term': self.term,
            'sections': [s.to_dict() for s in self.sections],
            'total_credits': self.total_credits,
            'schedule_stats': self.stats,
            'explanations': list(self.explanations),
        }
        if self.credit_range:
            data['ideal_credit_range'] = dict(self.credit_range)
        # Omitted rather than null when the build had nothing to report
        if self.conflicts:
            data['schedule_conflicts'] = [c.to_dict() for c in self.conflicts]
        return data


# --- Interfaces (Strategy Pattern) ---

class ISchedulingStrategy(ABC):
    @abstractmethod
    def build(self, student_id: str, term: str) -> StudentSchedule:
        pass


# --- Interfaces (Adapter Pattern) ---

class IAlignmentProvider(ABC):
    @abstractmethod
    def align(self, student_id: str, recommendations: List[Dict]) -> List[Dict]:
        """Return the recommendations with alignment_score / alignment_reason filled in."""
        pass


class IRequirementSource(ABC):
    @abstractmethod
    def get_recommended_courses(self, student_id: str) -> Dict:
        pass

    @abstractmethod
    def get_schedule_preferences(self, student_id: str) -> Tuple[List[str], List[str]]:
        """Return (schedule_priorities, commitments) as stored free text."""
        pass


class ISectionCatalog(ABC):
    @abstractmethod
    def get_sections(self, course_code: str, term: str) -> List[Dict]:
        pass


class IScheduleStore(ABC):
    @abstractmethod
    def save(self, schedule: StudentSchedule) -> None:
        pass

    def get(self, schedule_id: str) -> Optional[Dict]:
        return None
