from examgate.services import ledger
from examgate.services.ledger import (
    LedgerEntry, decode_entry, decode_ledger, encode_ledger,
    encode_test_case, looks_like_ledger, parse_test_case, parse_test_cases,
)


def test_ledger_keeps_case_order_and_outcomes():
    entries = [
        LedgerEntry('2,3', '5', '5', True),
        LedgerEntry('10,20', '30', '31', False),
        LedgerEntry('1,1', '2', 'Error: timeout', False),
    ]

    encoded = encode_ledger(entries)
    decoded = decode_ledger(encoded)

    assert encoded.count('||') == 2
    assert decoded == entries


def test_test_case_markers():
    raw = encode_test_case('4', '16')

    assert raw == '4⏹16'
    assert parse_test_case(raw) == ledger.TestCase('4', '16')


def test_malformed_and_blank_cases_are_skipped():
    raw_cases = [
        '1⏹1',
        'no separator here',
        '',
        '  ⏹  ',
        '3⏹9',
    ]

    assert parse_test_cases(raw_cases) == [ledger.TestCase('1', '1'), ledger.TestCase('3', '9')]


def test_entry_without_output_marker_is_failed():
    entry = decode_entry('7⏹49')

    assert entry.actual == ''
    assert entry.passed is False


def test_blank_expected_never_passes():
    assert decode_entry('x⏹⏺').passed is False


def test_pass_is_recomputed_with_trimming():
    assert decode_entry('5⏹ 25 ⏺25\n').passed is True


def test_looks_like_ledger():
    assert looks_like_ledger('1⏹1⏺1')
    assert not looks_like_ledger('print(1)')
    assert not looks_like_ledger(None)
