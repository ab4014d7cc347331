from typing import List
import logging

from scheduler_core import PreferenceRule

logger = logging.getLogger(__name__)

TIME_OF_DAY = 'time_of_day'
DAY_PATTERN = 'day_pattern'
BACK_TO_BACK = 'back_to_back'
OTHER = 'other'


class PreferenceParser:
    """
    Turns the schedule priorities a student picked during onboarding
    (e.g. "Avoid classes before 10am") into weighted rules for the scorer.
    """
    @staticmethod
    def parse(priorities: List[str], commitments: List[str] = None) -> List[PreferenceRule]:
        """
        Maps each priority string to one rule, keeping the input order.
        Commitments are accepted but do not produce rules yet.
        """
        rules = []

        for pref in priorities or []:
            if not isinstance(pref, str):
                logger.debug(f"Ignoring non-text preference: {pref!r}")
                continue
            rules.append(PreferenceParser.parse_one(pref))

        if commitments:
            logger.debug(f"{len(commitments)} extracurricular commitment(s) not used in scoring")

        return rules

    @staticmethod
    def parse_one(pref: str) -> PreferenceRule:
        if 'Avoid classes before 10am' in pref:
            return PreferenceRule(TIME_OF_DAY, 'no_early_morning', 1.0)

        if 'Prefer classes on ' in pref:
            # "Prefer classes on MWF" -> "MWF"
            pattern = pref.split('on ')[1].strip()
            return PreferenceRule(DAY_PATTERN, pattern, 0.8)

        if 'back-to-back' in pref:
            return PreferenceRule(BACK_TO_BACK, True, 0.6)

        return PreferenceRule(OTHER, pref, 0.5)

    @staticmethod
    def preferred_day_pattern(rules: List[PreferenceRule]):
        """Value of the first day_pattern rule, or None."""
        for rule in rules:
            if rule.kind == DAY_PATTERN:
                return rule.value
        return None
