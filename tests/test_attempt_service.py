from datetime import timedelta
import json

import pytest

from conftest import choice_item, code_item
from examgate.extensions import db
from examgate.models import Answer, Assessment, Attempt
from examgate.services import AttemptService
from examgate.services.errors import (
    AlreadyCompleted, AlreadyEnded, AttemptNotInProgress, AttemptTimedOut,
    InvalidCode, NotAvailable, NotFound, NotYetOpen, ValidationError,
)
from examgate.services.ledger import decode_ledger
from examgate.utils import now_utc


@pytest.fixture
def service(app):
    return AttemptService()


def attempts_for(assessment):
    return Attempt.query.filter_by(assessment_id=assessment.id).all()


class TestJoin:

    def test_join_is_idempotent(self, service, make_assessment, student):
        assessment = make_assessment([choice_item()])

        first, first_is_new = service.join(assessment.join_code, student.id)
        second, second_is_new = service.join(assessment.join_code, student.id)

        assert first_is_new is True
        assert second_is_new is False
        assert first.id == second.id
        assert first.status == Attempt.STATUS_IN_PROGRESS
        assert len(attempts_for(assessment)) == 1

    def test_code_is_normalized(self, service, make_assessment, student):
        assessment = make_assessment([choice_item()], code='ABC123')

        attempt, _ = service.join('  abc123 ', student.id)

        assert attempt.assessment_id == assessment.id

    @pytest.mark.parametrize('code', ['', 'ABC', 'ABC-12', 'ZZZZZZ'])
    def test_invalid_code(self, service, make_assessment, student, code):
        make_assessment([choice_item()], code='ABC123')

        with pytest.raises(InvalidCode):
            service.join(code, student.id)

    def test_unpublished(self, service, make_assessment, student):
        assessment = make_assessment([choice_item()], status=Assessment.STATUS_DRAFT)

        with pytest.raises(NotAvailable):
            service.join(assessment.join_code, student.id)

    def test_not_yet_open(self, service, make_assessment, student):
        assessment = make_assessment([choice_item()], start_offset=30, end_offset=90)

        with pytest.raises(NotYetOpen) as exc:
            service.join(assessment.join_code, student.id)

        assert exc.value.next_step == 'retry_later'
        assert attempts_for(assessment) == []

    def test_already_ended_creates_nothing(self, service, make_assessment, student):
        assessment = make_assessment([choice_item()], start_offset=-120, end_offset=-5)

        with pytest.raises(AlreadyEnded) as exc:
            service.join(assessment.join_code, student.id)

        assert exc.value.code == 'already_ended'
        assert attempts_for(assessment) == []

    def test_window_checked_before_existing_attempt(self, service, make_assessment, student):
        assessment = make_assessment([choice_item()], start_offset=-120, end_offset=-5)
        db.session.add(Attempt(assessment_id=assessment.id, student_id=student.id,
                               status=Attempt.STATUS_IN_PROGRESS, started_at=now_utc()))
        db.session.commit()

        with pytest.raises(AlreadyEnded):
            service.join(assessment.join_code, student.id)

    def test_completed_attempt_cannot_rejoin(self, service, make_assessment, student):
        assessment = make_assessment([choice_item()])
        attempt, _ = service.join(assessment.join_code, student.id)
        service.finalize(attempt.id)

        with pytest.raises(AlreadyCompleted) as exc:
            service.join(assessment.join_code, student.id)

        assert exc.value.message == 'You have already completed this exam'
        assert exc.value.next_step == 'results'

    def test_not_started_attempt_is_activated(self, service, make_assessment, student):
        assessment = make_assessment([choice_item()])
        db.session.add(Attempt(assessment_id=assessment.id, student_id=student.id))
        db.session.commit()

        attempt, is_new = service.join(assessment.join_code, student.id)

        assert is_new is True
        assert attempt.status == Attempt.STATUS_IN_PROGRESS
        assert attempt.started_at is not None


class TestSave:

    def test_save_upserts(self, service, make_assessment, student):
        assessment = make_assessment([choice_item()])
        item = assessment.items[0]
        attempt, _ = service.join(assessment.join_code, student.id)

        service.save_answer(attempt.id, item.id, 'Rome')
        service.save_answer(attempt.id, str(item.id), 'Paris')

        answers = Answer.query.filter_by(attempt_id=attempt.id).all()
        assert len(answers) == 1
        assert answers[0].value == 'Paris'
        assert answers[0].is_correct is None
        assert answers[0].marks_awarded is None

    def test_item_from_another_assessment(self, service, make_assessment, student):
        mine = make_assessment([choice_item()])
        other = make_assessment([choice_item()])
        attempt, _ = service.join(mine.join_code, student.id)

        with pytest.raises(NotFound, match='Question not found in exam'):
            service.save_answer(attempt.id, other.items[0].id, 'Paris')

    def test_save_after_completion(self, service, make_assessment, student):
        assessment = make_assessment([choice_item()])
        attempt, _ = service.join(assessment.join_code, student.id)
        service.finalize(attempt.id)

        with pytest.raises(AlreadyCompleted):
            service.save_answer(attempt.id, assessment.items[0].id, 'Paris')

    def test_save_past_deadline_times_out(self, service, make_assessment, student):
        assessment = make_assessment([choice_item()], start_offset=-180, end_offset=60, duration=30)
        attempt = Attempt(assessment_id=assessment.id, student_id=student.id,
                          status=Attempt.STATUS_IN_PROGRESS,
                          started_at=now_utc() - timedelta(minutes=120))
        db.session.add(attempt)
        db.session.commit()

        with pytest.raises(AttemptTimedOut) as exc:
            service.save_answer(attempt.id, assessment.items[0].id, 'Paris')

        assert exc.value.next_step == 'submit'
        assert db.session.get(Attempt, attempt.id).status == Attempt.STATUS_TIMED_OUT

    def test_code_answer_stored_as_text(self, service, make_assessment, student):
        assessment = make_assessment([code_item([('1', '1')])], kind=Assessment.KIND_CODE_BASED)
        attempt, _ = service.join(assessment.join_code, student.id)

        answer = service.save_answer(
            attempt.id, assessment.items[0].id, {'code': 'print(1)', 'language': 'python3'}
        )

        assert json.loads(answer.value) == {'code': 'print(1)', 'language': 'python3'}

    def test_active_attempt_required(self, service, make_assessment, student):
        assessment = make_assessment([choice_item()])

        with pytest.raises(AttemptNotInProgress):
            service.active_attempt(assessment.join_code, student.id)


class TestFinalize:

    def test_scores_saved_answers(self, service, make_assessment, student):
        assessment = make_assessment([
            choice_item(key='Paris', marks=2, order=0),
            choice_item(prompt='2 + 2?', key='4', marks=3, order=1),
        ])
        first, second = assessment.items
        attempt, _ = service.join(assessment.join_code, student.id)
        service.save_answer(attempt.id, first.id, ' paris')
        service.save_answer(attempt.id, second.id, '5')

        result = service.finalize(attempt.id)

        assert result.score == 2
        assert result.answered_count == 2
        assert result.total_items == 2
        attempt = db.session.get(Attempt, attempt.id)
        assert attempt.status == Attempt.STATUS_COMPLETED
        assert attempt.score == 2
        assert attempt.ended_at is not None
        marks = {a.item_id: (a.is_correct, a.marks_awarded) for a in attempt.answers}
        assert marks == {first.id: (True, 2.0), second.id: (False, 0.0)}

    def test_second_finalize_rejected_and_score_unchanged(self, service, make_assessment, student):
        assessment = make_assessment([choice_item()])
        attempt, _ = service.join(assessment.join_code, student.id)
        service.save_answer(attempt.id, assessment.items[0].id, 'Paris')
        service.finalize(attempt.id)

        answer = Answer.query.filter_by(attempt_id=attempt.id).one()
        answer.value = 'Rome'
        db.session.commit()

        with pytest.raises(AlreadyCompleted):
            service.finalize(attempt.id)

        assert db.session.get(Attempt, attempt.id).score == 2

    def test_code_item_scores_fraction_and_keeps_ledger(self, service, make_assessment,
                                                         student, adapter):
        adapter.outputs.update({'2\n3': '5\n', '10\n20': '31\n'})
        assessment = make_assessment(
            [code_item([('2,3', '5'), ('10,20', '30')], marks=10)],
            kind=Assessment.KIND_CODE_BASED,
        )
        attempt, _ = service.join(assessment.join_code, student.id)
        service.save_answer(attempt.id, assessment.items[0].id, {'code': 'print(a+b)'})

        result = service.finalize(attempt.id)

        assert result.score == 5
        answer = Answer.query.filter_by(attempt_id=attempt.id).one()
        assert answer.is_correct is False
        assert answer.marks_awarded == 5
        entries = decode_ledger(answer.result_ledger)
        assert [(e.input, e.expected, e.actual) for e in entries] == [
            ('2,3', '5', '5'),
            ('10,20', '30', '31'),
        ]
        assert [e.passed for e in entries] == [True, False]

    def test_unscorable_item_counts_zero(self, app, make_assessment, student):
        class ExplodingAdapter:
            def execute(self, *args, **kwargs):
                raise RuntimeError('runner crashed')

        app.extensions['examgate.execution'] = ExplodingAdapter()
        service = AttemptService()
        assessment = make_assessment([
            code_item([('1', '1')], marks=4, order=0),
            choice_item(marks=2, order=1),
        ])
        code, choice = assessment.items
        attempt, _ = service.join(assessment.join_code, student.id)
        service.save_answer(attempt.id, code.id, {'code': 'print(1)'})
        service.save_answer(attempt.id, choice.id, 'Paris')

        result = service.finalize(attempt.id)

        assert result.score == 2
        assert db.session.get(Attempt, attempt.id).status == Attempt.STATUS_COMPLETED

    def test_unknown_attempt(self, service):
        with pytest.raises(NotFound):
            service.finalize(999)


class TestSubmit:

    def test_submit_stores_answers_and_finalizes(self, service, make_assessment, student):
        assessment = make_assessment([choice_item()])
        item = assessment.items[0]
        service.join(assessment.join_code, student.id)

        result = service.submit(assessment.join_code, student.id, {str(item.id): 'Paris', 'bogus': 'x'})

        assert result.score == 2
        assert result.answered_count == 1

    def test_submit_without_attempt_creates_one(self, service, make_assessment, student):
        assessment = make_assessment([choice_item()])

        result = service.submit(assessment.join_code, student.id, {})

        attempt = db.session.get(Attempt, result.attempt_id)
        assert attempt.student_id == student.id
        assert attempt.status == Attempt.STATUS_COMPLETED
        assert result.score == 0

    def test_submit_twice(self, service, make_assessment, student):
        assessment = make_assessment([choice_item()])
        service.join(assessment.join_code, student.id)
        service.submit(assessment.join_code, student.id, {})

        with pytest.raises(AlreadyCompleted):
            service.submit(assessment.join_code, student.id, {})

    def test_timed_out_attempt_can_still_submit(self, service, make_assessment, student):
        assessment = make_assessment([choice_item()])
        db.session.add(Attempt(assessment_id=assessment.id, student_id=student.id,
                               status=Attempt.STATUS_TIMED_OUT, started_at=now_utc()))
        db.session.commit()

        result = service.submit(assessment.join_code, student.id, {})

        assert db.session.get(Attempt, result.attempt_id).status == Attempt.STATUS_COMPLETED

    def test_late_answers_are_ignored(self, service, make_assessment, student):
        assessment = make_assessment([
            choice_item(key='Paris', marks=2, order=0),
            choice_item(prompt='2 + 2?', key='4', marks=3, order=1),
        ], duration=5)
        first, second = assessment.items
        attempt = Attempt(assessment_id=assessment.id, student_id=student.id,
                          status=Attempt.STATUS_IN_PROGRESS,
                          started_at=now_utc() - timedelta(minutes=30))
        db.session.add(attempt)
        db.session.add(Answer(attempt=attempt, item_id=second.id, value='4'))
        db.session.commit()

        result = service.submit(assessment.join_code, student.id,
                                {str(first.id): 'Paris', str(second.id): '5'})

        assert result.score == 3
        answers = {a.item_id: a.value for a in Answer.query.filter_by(attempt_id=attempt.id)}
        assert answers == {second.id: '4'}
        assert db.session.get(Attempt, attempt.id).status == Attempt.STATUS_COMPLETED

    def test_timed_out_attempt_keeps_only_saved_answers(self, service, make_assessment, student):
        assessment = make_assessment([choice_item()])
        attempt = Attempt(assessment_id=assessment.id, student_id=student.id,
                          status=Attempt.STATUS_TIMED_OUT, started_at=now_utc())
        db.session.add(attempt)
        db.session.commit()

        result = service.submit(assessment.join_code, student.id,
                                {str(assessment.items[0].id): 'Paris'})

        assert result.score == 0
        assert Answer.query.filter_by(attempt_id=attempt.id).count() == 0

    def test_closed_assessment_finalizes_saved_answers(self, service, make_assessment, student):
        assessment = make_assessment([choice_item()])
        item = assessment.items[0]
        attempt, _ = service.join(assessment.join_code, student.id)
        service.save_answer(attempt.id, item.id, 'Paris')
        assessment.status = Assessment.STATUS_CANCELLED
        db.session.commit()

        result = service.submit(assessment.join_code, student.id, {str(item.id): 'Rome'})

        assert result.score == 2
        assert db.session.get(Attempt, attempt.id).status == Attempt.STATUS_COMPLETED

    def test_closed_assessment_without_attempt(self, service, make_assessment, student):
        assessment = make_assessment([choice_item()], status=Assessment.STATUS_COMPLETED)

        with pytest.raises(NotAvailable):
            service.submit(assessment.join_code, student.id, {})

    def test_answers_must_be_a_mapping(self, service, make_assessment, student):
        assessment = make_assessment([choice_item()])

        with pytest.raises(ValidationError):
            service.submit(assessment.join_code, student.id, ['Paris'])

    def test_code_submitted_with_current_language(self, service, make_assessment,
                                                   student, adapter):
        adapter.outputs['1'] = '1'
        assessment = make_assessment([code_item([('1', '1')], language=None)])
        item = assessment.items[0]
        service.join(assessment.join_code, student.id)

        result = service.submit(assessment.join_code, student.id,
                                {str(item.id): 'puts gets'}, current_language='ruby')

        assert result.score == 10
        assert adapter.calls[0][1] == 'ruby'
        stored = Answer.query.filter_by(item_id=item.id).one().value
        assert json.loads(stored) == {'code': 'puts gets', 'language': 'ruby'}


def test_run_tests_persists_nothing(service, make_assessment, student, adapter):
    adapter.outputs.update({'2': '4', '3': '9'})
    assessment = make_assessment([code_item([('2', '4'), ('3', '8')], marks=6)])
    item = assessment.items[0]
    attempt, _ = service.join(assessment.join_code, student.id)

    result = service.run_tests(assessment.join_code, student.id, item.id, 'print(n*n)', 'python3')

    assert result.marks == 3
    assert Answer.query.filter_by(attempt_id=attempt.id).count() == 0
