import logging
import uuid
from typing import List, Dict, Optional, Tuple

from scheduler_core import (
    ISchedulingStrategy, IRequirementSource, ISectionCatalog, IScheduleStore,
    CourseSection, PreferenceRule, Requirement, ScheduleConflict, StudentSchedule,
    SchedulerDataError, CORE, GEN_ED, ELECTIVE, TIER_PRIORITY, CORE_RESOLUTION_OPTIONS,
    time_to_minutes, start_hour, expand_day_pattern,
)
from preference_parser import PreferenceParser, TIME_OF_DAY, DAY_PATTERN, BACK_TO_BACK
from config import get_config

Config = get_config()
logger = logging.getLogger(__name__)

WEEKDAYS = ['Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday']
BACK_TO_BACK_GAP_MINUTES = 15
EARLY_MORNING_HOUR = 10


class SectionScorer:
    """Scores one candidate section against the student's preferences and the sections already placed."""

    EARLY_MORNING_PENALTY = 30
    AFTERNOON_BONUS = 20
    DAY_PATTERN_BONUS = 25
    BACK_TO_BACK_ADJUSTMENT = 15

    @classmethod
    def score(cls, section: CourseSection, preferences: List[PreferenceRule],
              existing_schedule: List[CourseSection]) -> Tuple[float, List[str]]:
        score = section.priority or 0
        explanations = []

        if section.alignment_score:
            score += section.alignment_score
            if section.alignment_reason:
                explanations.append(f"Course aligns with student goals: {section.alignment_reason}")

        for pref in preferences:
            if pref.kind == TIME_OF_DAY:
                hour = start_hour(section.start_time)
                if pref.value == 'no_early_morning' and hour < EARLY_MORNING_HOUR:
                    score -= cls.EARLY_MORNING_PENALTY * pref.weight
                    explanations.append(f"Early morning class (-{cls.EARLY_MORNING_PENALTY} points)")
                elif pref.value == 'afternoon' and hour >= 12:
                    score += cls.AFTERNOON_BONUS * pref.weight
                    explanations.append(f"Preferred afternoon time slot (+{cls.AFTERNOON_BONUS} points)")

            elif pref.kind == DAY_PATTERN:
                if section.day_pattern == pref.value:
                    score += cls.DAY_PATTERN_BONUS * pref.weight
                    explanations.append(
                        f"Matches preferred day pattern {pref.value} (+{cls.DAY_PATTERN_BONUS} points)"
                    )

            elif pref.kind == BACK_TO_BACK:
                if not cls._would_be_back_to_back(section, existing_schedule):
                    continue
                if pref.value is True:
                    score += cls.BACK_TO_BACK_ADJUSTMENT * pref.weight
                    explanations.append(
                        f"Creates preferred back-to-back scheduling (+{cls.BACK_TO_BACK_ADJUSTMENT} points)"
                    )
                elif pref.value is False:
                    score -= cls.BACK_TO_BACK_ADJUSTMENT * pref.weight
                    explanations.append(
                        f"Creates non-preferred back-to-back scheduling (-{cls.BACK_TO_BACK_ADJUSTMENT} points)"
                    )

        return score, explanations

    @staticmethod
    def _would_be_back_to_back(section: CourseSection, existing_schedule: List[CourseSection]) -> bool:
        start = time_to_minutes(section.start_time)
        for existing in existing_schedule:
            if section.conflicts_with(existing):
                continue
            if abs(start - time_to_minutes(existing.end_time)) <= BACK_TO_BACK_GAP_MINUTES:
                return True
        return False


# --- Shared build helpers ---

def compute_schedule_stats(sections: List[CourseSection], preferences: List[PreferenceRule]) -> Dict:
    """Early-morning count, back-to-back pairs, preferred-pattern matches and the weekly time blocks."""
    stats = {
        'early_morning_classes': 0,
        'back_to_back_classes': 0,
        'preferred_day_pattern_classes': 0,
        'time_blocks': [],
    }

    stats['early_morning_classes'] = sum(
        1 for s in sections if start_hour(s.start_time) < EARLY_MORNING_HOUR
    )

    day_map = {day: [] for day in WEEKDAYS}
    for section in sections:
        for day in expand_day_pattern(section.day_pattern):
            day_map[day].append({
                'day': day,
                'start_time': section.start_time,
                'end_time': section.end_time,
                'is_class': True,
                'course_code': section.course_code,
            })

    for day in WEEKDAYS:
        blocks = sorted(day_map[day], key=lambda b: time_to_minutes(b['start_time']))
        for current, following in zip(blocks, blocks[1:]):
            gap = time_to_minutes(following['start_time']) - time_to_minutes(current['end_time'])
            if gap <= BACK_TO_BACK_GAP_MINUTES:
                stats['back_to_back_classes'] += 1
        stats['time_blocks'].extend(blocks)

    preferred_pattern = PreferenceParser.preferred_day_pattern(preferences)
    if preferred_pattern:
        stats['preferred_day_pattern_classes'] = sum(
            1 for s in sections if s.day_pattern == preferred_pattern
        )

    return stats


def remove_duplicate_categories(sections: List[CourseSection], total_credits: float
                                ) -> Tuple[List[CourseSection], float, List[ScheduleConflict]]:
    """
    Keeps only the best-scored section for each gen-ed category.
    Returns (kept sections in original order, adjusted credits, one conflict per trimmed category).
    """
    by_category: Dict[str, List[CourseSection]] = {}
    for section in sections:
        if section.requirement_type == GEN_ED and section.requirement_category:
            by_category.setdefault(section.requirement_category, []).append(section)

    final_sections = list(sections)
    conflicts = []

    for category, members in by_category.items():
        if len(members) < 2:
            continue

        logger.info(f"Found {len(members)} courses in Gen Ed category {category}. "
                    f"Keeping only the highest scored one.")
        ranked = sorted(members, key=lambda s: s.score or 0, reverse=True)
        keep, removed = ranked[0], ranked[1:]

        final_sections = [s for s in final_sections if not any(s is r for r in removed)]
        for section in removed:
            total_credits -= section.credits

        removed_codes = [s.course_code for s in removed]
        conflicts.append(ScheduleConflict(
            ScheduleConflict.PREFERENCE_VIOLATION,
            f'Multiple courses found for Gen Ed category "{category}". '
            f'Kept {keep.course_code} and removed {", ".join(removed_codes)}',
            'low',
            affected_courses=removed_codes,
            resolution_options=[
                'Only one course per Gen Ed category is recommended',
                'Consider taking the removed courses in a future term',
            ],
        ))

    return final_sections, total_credits, conflicts


class _BuildState:
    """Sections committed so far in one build. Owned by a single build call."""
    def __init__(self):
        self.selected: List[CourseSection] = []
        self.credits = 0.0
        self.conflicts: List[ScheduleConflict] = []
        self.explanations: List[str] = []

    def has_conflict(self, section: CourseSection) -> bool:
        return any(section.conflicts_with(chosen) for chosen in self.selected)

    def commit(self, section: CourseSection):
        self.selected.append(section)
        self.credits += section.credits
        self.explanations.extend(section.explanations)


class BaseScheduleBuilder(ISchedulingStrategy):
    """Wiring shared by the strategies: collaborators, credit range, section tagging, persistence."""

    def __init__(self, requirement_source: IRequirementSource, section_catalog: ISectionCatalog,
                 schedule_store: Optional[IScheduleStore] = None,
                 min_credits: int = None, max_credits: int = None):
        self.requirement_source = requirement_source
        self.section_catalog = section_catalog
        self.schedule_store = schedule_store
        self.min_credits = min_credits if min_credits is not None else Config.MIN_CREDITS
        self.max_credits = max_credits if max_credits is not None else Config.MAX_CREDITS

    def _load_requirements(self, student_id: str, recommendations: Dict) -> List[Requirement]:
        if not isinstance(recommendations, dict) or not isinstance(recommendations.get('categories'), list):
            raise SchedulerDataError(f"Malformed recommendation data for student {student_id}")
        return [Requirement(category) for category in recommendations['categories']]

    def _credit_range(self, recommendations: Dict) -> Dict:
        ideal = recommendations.get('ideal_credit_range') or {}
        return {
            'min': ideal.get('min') or self.min_credits,
            'max': ideal.get('max') or self.max_credits,
        }

    def _load_preferences(self, student_id: str) -> List[PreferenceRule]:
        priorities, commitments = self.requirement_source.get_schedule_preferences(student_id)
        preferences = PreferenceParser.parse(priorities, commitments)
        logger.info(f"Loaded {len(preferences)} schedule preference(s) for student {student_id}")
        return preferences

    def _fetch_sections(self, course_code: str, term: str, candidate: Dict) -> List[CourseSection]:
        """Catalog rows for one course, tagged with the requirement they are being used for."""
        rows = self.section_catalog.get_sections(course_code, term) or []
        if not isinstance(rows, list):
            raise SchedulerDataError(f"Malformed section data for {course_code} in {term}")

        course = candidate['course']
        sections = []
        for row in rows:
            if not isinstance(row, dict):
                raise SchedulerDataError(f"Malformed section data for {course_code} in {term}: {row!r}")
            data = dict(row)
            data.update({
                'course_code': row.get('course_code') or course_code,
                'course_title': course.get('course_title') or row.get('course_title') or '',
                'credits': course.get('credits') or row.get('credits') or 3,
                'requirement_type': candidate['requirement_type'],
                'requirement_category': candidate['requirement_category'],
                'priority': candidate['priority'],
                'alignment_score': course.get('alignment_score'),
                'alignment_reason': course.get('alignment_reason'),
            })
            try:
                sections.append(CourseSection(data))
            except (KeyError, TypeError, ValueError) as e:
                raise SchedulerDataError(
                    f"Malformed section {row.get('section_id')} for {course_code}: {e}"
                ) from e
        return sections

    def _assemble(self, student_id: str, term: str, sections: List[CourseSection], credits: float,
                  conflicts: List[ScheduleConflict], preferences: List[PreferenceRule],
                  explanations: List[str], credit_range: Dict) -> StudentSchedule:
        schedule = StudentSchedule(
            schedule_id=str(uuid.uuid4()),
            student_id=student_id,
            term=term,
            sections=sections,
            total_credits=credits,
            conflicts=conflicts,
            stats=compute_schedule_stats(sections, preferences),
            explanations=explanations,
            credit_range=credit_range,
        )
        self._persist(schedule)
        return schedule

    def _persist(self, schedule: StudentSchedule):
        if self.schedule_store is None:
            return
        try:
            self.schedule_store.save(schedule)
        except Exception as e:
            # The computed schedule is still returned to the caller
            logger.error(f"Failed to save schedule {schedule.schedule_id} for student "
                         f"{schedule.student_id}: {e}")


class OptimizedScheduleBuilder(BaseScheduleBuilder):
    """
    Greedy, tiered schedule builder:
      1. core courses (always tried, 1-2 credit courses even past the ceiling)
      2. one section per gen-ed category, favouring outstanding categories
      3. electives while credits remain
    Earlier picks are never revisited.
    """

    GEN_ED_REPRESENTATIVE_CREDITS = 3
    REQUIRED_CATEGORY_BONUS = 30

    def build(self, student_id: str, term: str) -> StudentSchedule:
        logger.info(f"Building optimized schedule for student {student_id} for term {term}")

        recommendations = self.requirement_source.get_recommended_courses(student_id)
        requirements = self._load_requirements(student_id, recommendations)
        preferences = self._load_preferences(student_id)
        credit_range = self._credit_range(recommendations)
        max_credits = credit_range['max']

        candidates, remaining_categories = self._collect_candidates(requirements)
        logger.info(f"Found {len(remaining_categories)} different Gen Ed categories to include in the schedule")

        state = _BuildState()
        sections_by_course = self._load_sections(candidates, term, state)

        self._schedule_core(sections_by_course, preferences, max_credits, state)
        self._schedule_gen_eds(sections_by_course, preferences, max_credits, remaining_categories, state)
        self._schedule_electives(sections_by_course, preferences, max_credits, state)

        final_sections, credits, duplicate_conflicts = remove_duplicate_categories(state.selected, state.credits)
        state.conflicts.extend(duplicate_conflicts)

        logger.info(f"Built schedule with {len(final_sections)} section(s), {credits} credits, "
                    f"{len(state.conflicts)} conflict(s)")

        return self._assemble(student_id, term, final_sections, credits, state.conflicts,
                              preferences, state.explanations, credit_range)

    def _collect_candidates(self, requirements: List[Requirement]) -> Tuple[Dict[str, Dict], Dict[str, None]]:
        """
        Ordered course_code -> candidate info. Core claims codes first, then gen-ed, then electives.
        Also returns the outstanding gen-ed categories (as an ordered set).
        """
        candidates: Dict[str, Dict] = {}
        remaining_categories: Dict[str, None] = {}

        for tier in (CORE, GEN_ED, ELECTIVE):
            for requirement in requirements:
                if requirement.tier != tier:
                    continue
                if tier == GEN_ED and not requirement.satisfied:
                    remaining_categories[requirement.name] = None

                for course in requirement.candidate_courses():
                    code = course['course_code']
                    if code in candidates:
                        continue
                    candidates[code] = {
                        'course': course,
                        'priority': TIER_PRIORITY[tier],
                        'requirement_type': tier,
                        'requirement_category': requirement.name,
                    }

        return candidates, remaining_categories

    def _load_sections(self, candidates: Dict[str, Dict], term: str,
                       state: _BuildState) -> Dict[str, List[CourseSection]]:
        sections_by_course: Dict[str, List[CourseSection]] = {}

        for course_code, candidate in candidates.items():
            sections = self._fetch_sections(course_code, term, candidate)
            if sections:
                sections_by_course[course_code] = sections
                continue

            is_core = candidate['requirement_type'] == CORE
            logger.info(f"No available sections found for {course_code} in {term}")
            state.conflicts.append(ScheduleConflict(
                ScheduleConflict.MISSING_REQUIREMENT,
                f"No available sections found for {course_code}",
                'high' if is_core else 'medium',
                affected_courses=[course_code],
                resolution_options=list(CORE_RESOLUTION_OPTIONS) if is_core else None,
            ))

        return sections_by_course

    def _score_sections(self, sections: List[CourseSection], preferences: List[PreferenceRule],
                        state: _BuildState, bonus: float = 0):
        for section in sections:
            score, explanations = SectionScorer.score(section, preferences, state.selected)
            section.score = score + bonus
            section.explanations = explanations

    def _commit_best(self, sections: List[CourseSection], state: _BuildState) -> Optional[CourseSection]:
        """Commits the highest-scored section that fits; ties keep catalog order."""
        for section in sorted(sections, key=lambda s: s.score or 0, reverse=True):
            if not state.has_conflict(section):
                state.commit(section)
                logger.debug(f"Added {section!r} (score {section.score})")
                return section
        return None

    def _schedule_core(self, sections_by_course: Dict[str, List[CourseSection]],
                       preferences: List[PreferenceRule], max_credits: float, state: _BuildState):
        for course_code, sections in sections_by_course.items():
            if sections[0].requirement_type != CORE:
                continue

            course_credits = sections[0].credits
            if state.credits + course_credits > max_credits and course_credits > 2:
                logger.info(f"Skipping core course {course_code}: {course_credits} credits would exceed {max_credits}")
                continue

            self._score_sections(sections, preferences, state)
            if self._commit_best(sections, state):
                continue

            state.conflicts.append(ScheduleConflict(
                ScheduleConflict.MISSING_REQUIREMENT,
                f"Could not schedule required course {course_code} due to conflicts",
                'high',
                affected_courses=[course_code],
                resolution_options=list(CORE_RESOLUTION_OPTIONS),
            ))

    def _schedule_gen_eds(self, sections_by_course: Dict[str, List[CourseSection]],
                          preferences: List[PreferenceRule], max_credits: float,
                          remaining_categories: Dict[str, None], state: _BuildState):
        gen_ed_by_category: Dict[str, List[CourseSection]] = {}
        for sections in sections_by_course.values():
            if sections[0].requirement_type == GEN_ED:
                category = sections[0].requirement_category or ''
                gen_ed_by_category.setdefault(category, []).extend(sections)

        logger.info(f"Found {len(gen_ed_by_category)} Gen Ed categories with available sections")
        logger.info(f"Remaining Gen Ed categories to fulfill: {', '.join(remaining_categories)}")

        included_categories = set()

        for category, sections in gen_ed_by_category.items():
            if state.credits + self.GEN_ED_REPRESENTATIVE_CREDITS > max_credits:
                logger.info(f"Skipping Gen Ed category {category} due to credit limit")
                continue

            if category in included_categories:
                logger.info(f"Skipping Gen Ed category {category} because we already have a course from this category")
                continue

            is_required = category in remaining_categories
            if not is_required:
                logger.info(f"Category {category} is not in the remaining required categories, but will still consider it")

            bonus = self.REQUIRED_CATEGORY_BONUS if is_required else 0
            self._score_sections(sections, preferences, state, bonus=bonus)

            added = self._commit_best(sections, state)
            if added is None:
                logger.info(f"Could not add any courses from Gen Ed category {category} due to conflicts")
                continue

            included_categories.add(category)
            logger.info(f"Added Gen Ed course {added.course_code} from category {category}")
            if is_required:
                del remaining_categories[category]
                logger.info(f"Fulfilled required Gen Ed category: {category}")

        if remaining_categories:
            logger.info(f"Still need to fulfill {len(remaining_categories)} Gen Ed categories: "
                        f"{', '.join(remaining_categories)}")

    def _schedule_electives(self, sections_by_course: Dict[str, List[CourseSection]],
                            preferences: List[PreferenceRule], max_credits: float, state: _BuildState):
        for course_code, sections in sections_by_course.items():
            if sections[0].requirement_type in (CORE, GEN_ED):
                continue

            course_credits = sections[0].credits
            if state.credits + course_credits > max_credits:
                logger.debug(f"Skipping elective {course_code}: credit limit reached")
                continue

            self._score_sections(sections, preferences, state)
            if self._commit_best(sections, state) is None:
                logger.info(f"Could not fit elective {course_code} without a time conflict")


class SimpleScheduleBuilder(BaseScheduleBuilder):
    """
    First-fit builder: walks recommendations by tier, then alignment score,
    and takes the first catalog section of each course that fits.
    No preference scoring and no conflict records.
    """

    def build(self, student_id: str, term: str) -> StudentSchedule:
        logger.info(f"Building simple schedule for student {student_id} for term {term}")

        recommendations = self.requirement_source.get_recommended_courses(student_id)
        requirements = self._load_requirements(student_id, recommendations)
        preferences = self._load_preferences(student_id)
        credit_range = self._credit_range(recommendations)
        max_credits = credit_range['max']

        ranked = []
        for requirement in requirements:
            for course in requirement.candidate_courses():
                ranked.append((requirement, course))
        ranked.sort(key=lambda item: (-item[0].priority, -(item[1].get('alignment_score') or 0)))

        state = _BuildState()
        added_codes = set()
        covered_categories = set()

        for requirement, course in ranked:
            if state.credits >= max_credits:
                break

            course_code = course['course_code']
            if course_code in added_codes:
                continue
            if requirement.tier == GEN_ED and requirement.name in covered_categories:
                continue

            candidate = {
                'course': course,
                'priority': requirement.priority,
                'requirement_type': requirement.tier,
                'requirement_category': requirement.name,
            }
            for section in self._fetch_sections(course_code, term, candidate):
                if state.has_conflict(section):
                    continue
                if state.credits + section.credits > max_credits:
                    continue
                state.commit(section)
                added_codes.add(course_code)
                if requirement.tier == GEN_ED:
                    covered_categories.add(requirement.name)
                break

        return self._assemble(student_id, term, state.selected, state.credits, state.conflicts,
                              preferences, state.explanations, credit_range)


STRATEGIES = {
    'optimized': OptimizedScheduleBuilder,
    'simple': SimpleScheduleBuilder,
}


def get_strategy(name: str, *args, **kwargs) -> BaseScheduleBuilder:
    """Instantiate a strategy by name ('optimized' or 'simple')."""
    try:
        strategy_class = STRATEGIES[name]
    except KeyError:
        raise ValueError(f"Unknown scheduling strategy '{name}'. Choose one of: {', '.join(STRATEGIES)}")
    return strategy_class(*args, **kwargs)
