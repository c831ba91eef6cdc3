"""
Test-case and result-ledger encoding

A code item stores each test case as ``input SEP1 expected``. After scoring,
the answer keeps one ledger entry per case, ``input SEP1 expected SEP2 actual``,
with entries joined by ``||``. Historical rows depend on these exact markers.
"""
from collections import namedtuple

TEST_CASE_SEPARATOR = '\u23f9'  # ⏹
OUTPUT_SEPARATOR = '\u23fa'  # ⏺
CASE_JOINER = '||'

TestCase = namedtuple('TestCase', ['input', 'expected'])
LedgerEntry = namedtuple('LedgerEntry', ['input', 'expected', 'actual', 'passed'])


def outputs_match(expected, actual):
    return (actual or '').strip() == (expected or '').strip()


def case_passed(expected, actual):
    """A case with a blank expected output never passes"""
    return bool((expected or '').strip()) and outputs_match(expected, actual)


def parse_test_case(raw):
    """Return a TestCase, or None when the entry is malformed or blank"""
    if not raw or TEST_CASE_SEPARATOR not in raw:
        return None
    parts = raw.split(TEST_CASE_SEPARATOR)
    case_input, expected = parts[0], parts[1]
    if not case_input.strip() and not expected.strip():
        return None
    return TestCase(case_input, expected)


def parse_test_cases(raw_cases):
    cases = []
    for raw in raw_cases or []:
        case = parse_test_case(raw)
        if case is not None:
            cases.append(case)
    return cases


def encode_test_case(case_input, expected):
    return f'{case_input}{TEST_CASE_SEPARATOR}{expected}'


def encode_entry(case_input, expected, actual):
    return f'{case_input}{TEST_CASE_SEPARATOR}{expected}{OUTPUT_SEPARATOR}{actual}'


def encode_ledger(entries):
    """Join (input, expected, actual[, passed]) entries in case order"""
    return CASE_JOINER.join(encode_entry(e[0], e[1], e[2]) for e in entries)


def decode_entry(raw):
    """Decode one ledger entry; pass/fail is recomputed, never read"""
    case_part, _, actual = raw.partition(OUTPUT_SEPARATOR)
    parts = case_part.split(TEST_CASE_SEPARATOR)
    case_input = parts[0]
    expected = parts[1] if len(parts) > 1 else ''
    has_output = OUTPUT_SEPARATOR in raw
    passed = has_output and case_passed(expected, actual)
    return LedgerEntry(case_input, expected, actual, passed)


def split_ledger(ledger):
    if not ledger:
        return []
    return ledger.split(CASE_JOINER)


def decode_ledger(ledger):
    return [decode_entry(raw) for raw in split_ledger(ledger) if raw.strip()]


def looks_like_ledger(value):
    return bool(value) and TEST_CASE_SEPARATOR in value and OUTPUT_SEPARATOR in value
