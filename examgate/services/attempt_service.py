"""
Attempt Service
Lifecycle of a student's attempt: join/resume, answer saves, finalization

State flow: NOT_STARTED → IN_PROGRESS → COMPLETED, or IN_PROGRESS → TIMED_OUT.
Nothing leaves COMPLETED.
"""
from collections import namedtuple
from concurrent.futures import ThreadPoolExecutor, as_completed, TimeoutError as FuturesTimeout
import logging
import re

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from examgate.extensions import db
from examgate.models import Assessment, Attempt, Answer, Item
from examgate.services.errors import (
    AlreadyCompleted, AlreadyEnded, AttemptNotInProgress, AttemptTimedOut,
    InvalidCode, NotAvailable, NotFound, NotYetOpen, ValidationError,
)
from examgate.services.execution_adapter import get_execution_adapter
from examgate.services.scoring_service import ItemScore, ScoringService, scorable_from_item
from examgate.services.submission import CodeBundle, serialize_value
from examgate.utils.helpers import now_utc

logger = logging.getLogger(__name__)

FinalizeResult = namedtuple(
    'FinalizeResult', ['attempt_id', 'score', 'answered_count', 'total_items']
)

JOIN_CODE_PATTERN = re.compile(r'^[A-Z0-9]{6}$')


def normalize_join_code(code):
    normalized = (code or '').strip().upper()
    if not JOIN_CODE_PATTERN.match(normalized):
        raise InvalidCode()
    return normalized


def _item_id(key):
    try:
        return int(key)
    except (TypeError, ValueError):
        return None


class AttemptService:
    """Owns every write to attempt and answer rows"""

    def __init__(self, scoring=None, config=None):
        self.config = config if config is not None else current_app.config
        self.scoring = scoring or ScoringService(
            get_execution_adapter(),
            default_language=self.config['EXECUTION_DEFAULT_LANGUAGE'],
        )

    # ================= LOOKUPS =================

    @staticmethod
    def find_assessment(code):
        code = normalize_join_code(code)
        assessment = Assessment.query.filter_by(join_code=code).first()
        if not assessment:
            raise InvalidCode()
        return assessment

    def published_assessment(self, code):
        assessment = self.find_assessment(code)
        if not assessment.is_published:
            raise NotAvailable()
        return assessment

    @staticmethod
    def find_attempt(assessment_id, student_id):
        return Attempt.query.filter_by(
            assessment_id=assessment_id,
            student_id=student_id
        ).first()

    def active_attempt(self, code, student_id):
        """The caller's IN_PROGRESS attempt for an assessment code"""
        assessment = self.published_assessment(code)
        attempt = self.find_attempt(assessment.id, student_id)
        if attempt is None:
            raise AttemptNotInProgress()
        self._ensure_writable(attempt)
        return assessment, attempt

    # ================= JOIN =================

    def join(self, code, student_id):
        """
        Join or resume an assessment.

        Returns:
            tuple: (attempt, is_new_attempt)
        """
        assessment = self.published_assessment(code)

        now = now_utc()
        if not assessment.has_started(now):
            raise NotYetOpen()
        if assessment.has_ended(now):
            raise AlreadyEnded()

        attempt = self.find_attempt(assessment.id, student_id)
        if attempt is not None:
            return self._resume(attempt, now)

        attempt = Attempt(
            assessment_id=assessment.id,
            student_id=student_id,
            status=Attempt.STATUS_IN_PROGRESS,
            started_at=now,
        )
        db.session.add(attempt)
        try:
            db.session.commit()
        except IntegrityError:
            # Lost a race with a concurrent join for the same pair
            db.session.rollback()
            existing = self.find_attempt(assessment.id, student_id)
            if existing is None:
                raise
            return self._resume(existing, now)

        logger.info("Attempt %s started for assessment %s by user %s",
                    attempt.id, assessment.join_code, student_id)
        return attempt, True

    def _resume(self, attempt, now):
        if attempt.status == Attempt.STATUS_IN_PROGRESS:
            logger.info("Continuing existing attempt %s", attempt.id)
            return attempt, False
        if attempt.status == Attempt.STATUS_COMPLETED:
            raise AlreadyCompleted()
        if attempt.status == Attempt.STATUS_TIMED_OUT:
            raise AttemptTimedOut()

        attempt.status = Attempt.STATUS_IN_PROGRESS
        attempt.started_at = now
        db.session.commit()
        return attempt, True

    # ================= SAVE =================

    def _ensure_writable(self, attempt):
        if attempt.status == Attempt.STATUS_COMPLETED:
            raise AlreadyCompleted('This exam attempt has already been completed')
        if attempt.status == Attempt.STATUS_TIMED_OUT:
            raise AttemptTimedOut()
        if attempt.status != Attempt.STATUS_IN_PROGRESS:
            raise AttemptNotInProgress()

        if self._expire_if_late(attempt):
            raise AttemptTimedOut()

    def _expire_if_late(self, attempt):
        """Move a live attempt past its deadline to TIMED_OUT; True if timed out"""
        if attempt.status == Attempt.STATUS_TIMED_OUT:
            return True
        deadline = attempt.deadline(self.config['ATTEMPT_GRACE_SECONDS'])
        if deadline is None or now_utc() <= deadline:
            return False
        attempt.status = Attempt.STATUS_TIMED_OUT
        db.session.commit()
        logger.info("Attempt %s timed out", attempt.id)
        return True

    @staticmethod
    def _item_for(attempt, item_id):
        item = db.session.get(Item, item_id) if item_id is not None else None
        if item is None or item.assessment_id != attempt.assessment_id:
            raise NotFound('Question not found in exam')
        return item

    @staticmethod
    def _upsert_answer(attempt, item, value):
        answer = Answer.query.filter_by(attempt_id=attempt.id, item_id=item.id).first()
        if answer is None:
            answer = Answer(attempt_id=attempt.id, item_id=item.id)
            db.session.add(answer)
        answer.value = value
        return answer

    def save_answer(self, attempt_id, item_id, value):
        """Upsert one answer; scoring is deferred to finalization"""
        attempt = db.session.get(Attempt, attempt_id)
        if attempt is None:
            raise NotFound('Attempt not found')
        self._ensure_writable(attempt)

        item = self._item_for(attempt, _item_id(item_id))
        stored = serialize_value(value, is_code=item.is_code)

        answer = self._upsert_answer(attempt, item, stored)
        try:
            db.session.commit()
        except IntegrityError:
            # Concurrent first save of the same item; last write wins
            db.session.rollback()
            answer = self._upsert_answer(attempt, item, stored)
            db.session.commit()
        return answer

    # ================= FINALIZE =================

    def _score_all(self, jobs, current_language):
        results = {}
        if not jobs:
            return results

        workers = max(1, min(self.config['SCORING_MAX_WORKERS'], len(jobs)))
        executor = ThreadPoolExecutor(max_workers=workers)
        futures = {
            executor.submit(self.scoring.score_item, item, value, current_language): item
            for item, value in jobs
        }
        try:
            for future in as_completed(futures, timeout=self.config['FINALIZE_TIMEOUT_SECONDS']):
                item = futures[future]
                results[item.id] = future.result()
        except FuturesTimeout:
            logger.warning("Scoring timed out; %d item(s) score zero",
                           len(jobs) - len(results))
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        for item, _ in jobs:
            results.setdefault(item.id, ItemScore(item.id, 0, False, None))
        return results

    def finalize(self, attempt_id, current_language=None):
        """
        Score every saved answer and complete the attempt in one transaction.

        Raises:
            AlreadyCompleted: the attempt was finalized before (or concurrently)
        """
        attempt = db.session.get(Attempt, attempt_id)
        if attempt is None:
            raise NotFound('Attempt not found')
        if attempt.is_completed:
            raise AlreadyCompleted('This exam attempt has already been completed')

        items = {item.id: item for item in attempt.assessment.items}
        answers = [
            answer for answer in Answer.query.filter_by(attempt_id=attempt.id).all()
            if answer.item_id in items
        ]
        jobs = [(scorable_from_item(items[answer.item_id]), answer.value) for answer in answers]
        scores = self._score_all(jobs, current_language)

        total = 0.0
        for answer in answers:
            result = scores[answer.item_id]
            answer.is_correct = bool(result.correct)
            answer.marks_awarded = float(result.marks)
            if result.result_ledger is not None:
                answer.result_ledger = result.result_ledger
            total += result.marks

        answered_count = sum(1 for answer in answers if answer.value not in (None, ''))

        try:
            db.session.flush()
            updated = Attempt.query.filter(
                Attempt.id == attempt.id,
                Attempt.status != Attempt.STATUS_COMPLETED
            ).update({
                'status': Attempt.STATUS_COMPLETED,
                'score': total,
                'ended_at': now_utc(),
            }, synchronize_session=False)
            if updated != 1:
                db.session.rollback()
                raise AlreadyCompleted('This exam attempt has already been completed')
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            raise

        logger.info("Attempt %s completed with score %s (%d answered)",
                    attempt_id, total, answered_count)
        return FinalizeResult(attempt_id, total, answered_count, len(items))

    def submit(self, code, student_id, answers=None, current_language=None):
        """
        Store submitted answers and finalize the caller's attempt.

        A student whose attempt reference was lost gets a fresh attempt,
        but a completed attempt is never finalized again. Answers sent after
        the deadline, or after the assessment was closed, are dropped and
        only what was saved in time is scored.
        """
        if answers is not None and not isinstance(answers, dict):
            raise ValidationError('Invalid answers format')

        assessment = self.find_assessment(code)
        attempt = self.find_attempt(assessment.id, student_id)

        if not assessment.is_published:
            # Closed by its owner; an open attempt can still be finalized
            if attempt is None:
                raise NotAvailable()
            if attempt.is_completed:
                raise AlreadyCompleted('This exam attempt has already been completed')
            logger.info("Assessment %s is %s; finalizing attempt %s with saved answers",
                        assessment.join_code, assessment.status, attempt.id)
            return self.finalize(attempt.id, current_language)

        if attempt is None:
            logger.warning("No attempt for user %s on %s; creating one at submit",
                           student_id, assessment.join_code)
            attempt = Attempt(
                assessment_id=assessment.id,
                student_id=student_id,
                status=Attempt.STATUS_IN_PROGRESS,
                started_at=now_utc(),
            )
            db.session.add(attempt)
            try:
                db.session.commit()
            except IntegrityError:
                db.session.rollback()
                attempt = self.find_attempt(assessment.id, student_id)
        if attempt.is_completed:
            raise AlreadyCompleted('This exam attempt has already been completed')

        if self._expire_if_late(attempt):
            if answers:
                logger.warning("Dropping %d answer(s) submitted after the deadline for attempt %s",
                               len(answers), attempt.id)
            return self.finalize(attempt.id, current_language)

        items = {item.id: item for item in assessment.items}
        for key, value in (answers or {}).items():
            item = items.get(_item_id(key))
            if item is None:
                logger.warning("Ignoring answer for unknown item %r", key)
                continue
            stored = serialize_value(value, current_language, is_code=item.is_code)
            self._upsert_answer(attempt, item, stored)

        return self.finalize(attempt.id, current_language)

    # ================= TEST RUNS =================

    def run_tests(self, code, student_id, item_id, source_code, language=None):
        """Run an item's test cases for the editor; persists nothing"""
        _, attempt = self.active_attempt(code, student_id)
        item = self._item_for(attempt, _item_id(item_id))
        if not item.is_code:
            raise ValidationError('Only code questions have test cases')

        bundle = CodeBundle(source_code or '', language, None)
        return self.scoring.score_code(scorable_from_item(item), bundle)
