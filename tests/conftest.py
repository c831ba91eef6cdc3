from datetime import timedelta

import pytest
from werkzeug.security import generate_password_hash

from examgate import create_app
from examgate.extensions import db
from examgate.models import Assessment, Item, User
from examgate.services import proctor_registry
from examgate.services.errors import ExecutionAdapterError
from examgate.services.execution_adapter import ExecutionResult
from examgate.services.ledger import encode_test_case
from examgate.utils import now_utc


class FakeAdapter:
    """Answers execution requests from canned outputs keyed by stdin"""

    def __init__(self, outputs=None, errors=None, fail_on=None):
        self.outputs = dict(outputs or {})
        self.errors = dict(errors or {})
        self.fail_on = set(fail_on or ())
        self.calls = []

    def execute(self, source_code, language, standard_input=''):
        self.calls.append((source_code, language, standard_input))
        if standard_input in self.fail_on:
            raise ExecutionAdapterError('API request failed (502)')
        if standard_input in self.errors:
            return ExecutionResult(None, self.errors[standard_input])
        return ExecutionResult(self.outputs.get(standard_input, ''), None)


class FakeTimer:
    """threading.Timer stand-in that only fires when told to"""

    def __init__(self, interval, function, args=None, kwargs=None):
        self.interval = interval
        self.function = function
        self.args = args or ()
        self.kwargs = kwargs or {}
        self.daemon = False
        self.started = False
        self.cancelled = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        self.function(*self.args, **self.kwargs)


class TimerFactory:
    def __init__(self):
        self.timers = []

    def __call__(self, interval, function, args=None, kwargs=None):
        timer = FakeTimer(interval, function, args, kwargs)
        self.timers.append(timer)
        return timer

    @property
    def active(self):
        return [t for t in self.timers if t.started and not t.cancelled]


@pytest.fixture
def app():
    app = create_app('testing')
    app.extensions['examgate.execution'] = FakeAdapter()
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()
    for attempt_id in list(proctor_registry._monitors):
        proctor_registry.discard(attempt_id)


@pytest.fixture
def adapter(app):
    return app.extensions['examgate.execution']


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def timer_factory(monkeypatch):
    factory = TimerFactory()
    monkeypatch.setattr(proctor_registry, 'timer_factory', factory)
    return factory


@pytest.fixture
def make_user(app):
    def _make(username, role='student', password='secret'):
        user = User(username=username, password=generate_password_hash(password), role=role)
        db.session.add(user)
        db.session.commit()
        return user
    return _make


@pytest.fixture
def teacher(make_user):
    return make_user('ms_rivera', role='teacher')


@pytest.fixture
def student(make_user):
    return make_user('sam', role='student')


@pytest.fixture
def make_assessment(app, teacher):
    counter = {'n': 0}

    def _make(items, status=Assessment.STATUS_PUBLISHED, start_offset=-60, end_offset=60,
              duration=45, kind=Assessment.KIND_CHOICE_BASED, code=None):
        counter['n'] += 1
        now = now_utc()
        assessment = Assessment(
            title=f'Assessment {counter["n"]}',
            join_code=code or f'TEST{counter["n"]:02d}',
            kind=kind,
            total_marks=sum(item.marks for item in items),
            start_at=now + timedelta(minutes=start_offset),
            end_at=now + timedelta(minutes=end_offset),
            duration_minutes=duration,
            status=status,
            owner_id=teacher.id,
            items=items,
        )
        db.session.add(assessment)
        db.session.commit()
        return assessment
    return _make


def choice_item(prompt='Capital of France?', key='Paris', marks=2, order=0):
    item = Item(kind=Item.KIND_CHOICE, prompt=prompt, answer_key=key, marks=marks, order=order)
    item.set_options(['Paris', 'Rome', 'Berlin'])
    return item


def code_item(cases, marks=10, order=0, language='python3'):
    item = Item(kind=Item.KIND_CODE, prompt='Add the numbers', marks=marks, order=order,
                language=language)
    item.set_options([encode_test_case(i, o) for i, o in cases])
    return item


def login(client, username, password='secret'):
    response = client.post('/login', json={'username': username, 'password': password})
    assert response.status_code == 200
    return response
