"""
Scoring Service
Choice/text matching and test-case scoring for code items
"""
from collections import namedtuple
import logging

from examgate.services.errors import ExecutionAdapterError
from examgate.services.execution_adapter import format_stdin
from examgate.services.ledger import (
    LedgerEntry, case_passed, decode_entry, encode_ledger,
    parse_test_cases, split_ledger,
)
from examgate.services.submission import (
    CodeBundle, RawSubmission, as_code_bundle, parse_submission, submission_text,
)

logger = logging.getLogger(__name__)

# Plain snapshot of an Item; safe to hand to worker threads
ScorableItem = namedtuple(
    'ScorableItem', ['id', 'kind', 'marks', 'answer_key', 'test_cases', 'language']
)

ChoiceScore = namedtuple('ChoiceScore', ['correct', 'marks'])
CodeScore = namedtuple('CodeScore', ['marks', 'result_ledger', 'correct', 'entries'])
ItemScore = namedtuple('ItemScore', ['item_id', 'marks', 'correct', 'result_ledger'])

CODE_KIND = 'CODE'


def scorable_from_item(item):
    return ScorableItem(
        id=item.id,
        kind=item.kind,
        marks=item.marks or 0,
        answer_key=item.answer_key,
        test_cases=tuple(item.test_cases),
        language=item.language,
    )


def _normalize(value):
    return str(value).strip().lower()


class ScoringService:
    """Service for scoring answers"""

    def __init__(self, adapter, default_language='nodejs'):
        self.adapter = adapter
        self.default_language = default_language

    @staticmethod
    def score_choice_or_text(item, submitted_value):
        """
        Exact match after trimming and lower-casing both sides.
        Absent submissions are incorrect, never an error.
        """
        if submitted_value is None or item.answer_key is None:
            return ChoiceScore(False, 0)
        correct = _normalize(submitted_value) == _normalize(item.answer_key)
        return ChoiceScore(correct, item.marks if correct else 0)

    def resolve_language(self, item, bundle, current_language=None):
        return (
            bundle.language
            or current_language
            or item.language
            or self.default_language
        )

    def score_code(self, item, submission, current_language=None):
        """
        Score a code submission against the item's test cases.

        Each valid case is worth marks / case count; the returned ledger is
        rebuilt in test-case order regardless of which path produced it.
        """
        cases = parse_test_cases(item.test_cases)
        if not cases:
            logger.warning("Item %s has no valid test cases", item.id)
            return CodeScore(0, '', False, [])

        bundle = as_code_bundle(parse_submission(submission))

        if bundle.precomputed_results:
            entries = [decode_entry(raw) for raw in split_ledger(bundle.precomputed_results)]
            if self._ledger_matches_cases(entries, cases):
                return self._tally(item, entries)
            logger.warning(
                "Precomputed results for item %s do not match its test cases; re-running",
                item.id
            )

        if not bundle.code.strip():
            entries = [LedgerEntry(case.input, case.expected, '', False) for case in cases]
            return self._tally(item, entries)

        language = self.resolve_language(item, bundle, current_language)
        entries = [self._run_case(bundle.code, language, case) for case in cases]
        return self._tally(item, entries)

    def _run_case(self, code, language, case):
        try:
            result = self.adapter.execute(code, language, format_stdin(case.input))
        except ExecutionAdapterError as e:
            return LedgerEntry(case.input, case.expected, f"Error: {e}", False)

        if result.error:
            logger.info("Execution error for input %r: %s", case.input, result.error)
            return LedgerEntry(case.input, case.expected, f"Error: {result.error}", False)

        actual = (result.output or '').strip()
        return LedgerEntry(case.input, case.expected, actual, case_passed(case.expected, actual))

    @staticmethod
    def _ledger_matches_cases(entries, cases):
        if len(entries) != len(cases):
            return False
        return all(
            entry.input.strip() == case.input.strip()
            and entry.expected.strip() == case.expected.strip()
            for entry, case in zip(entries, cases)
        )

    @staticmethod
    def _tally(item, entries):
        passed = sum(1 for entry in entries if entry.passed)
        count = len(entries)
        marks = item.marks * passed / count if count else 0
        return CodeScore(
            marks=marks,
            result_ledger=encode_ledger(entries),
            correct=count > 0 and passed == count,
            entries=entries,
        )

    def score_item(self, item, value, current_language=None):
        """
        Dispatch on item kind. A wholly uncomputable item scores zero.
        """
        try:
            if item.kind == CODE_KIND:
                result = self.score_code(item, parse_submission(value), current_language)
                return ItemScore(item.id, result.marks, result.correct, result.result_ledger)

            if isinstance(value, (CodeBundle, RawSubmission)):
                value = submission_text(value)
            result = self.score_choice_or_text(item, value)
            return ItemScore(item.id, result.marks, result.correct, None)
        except Exception:
            logger.exception("Scoring failed for item %s; awarding zero", item.id)
            return ItemScore(item.id, 0, False, None)
