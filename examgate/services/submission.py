"""
Submission variants

A submitted value is resolved once, at the boundary, into either a
RawSubmission (plain text: a choice, a text answer or bare source code) or a
CodeBundle carrying code, language and optionally a precomputed ledger.
"""
from collections import namedtuple
import json
import re

RawSubmission = namedtuple('RawSubmission', ['text'])
CodeBundle = namedtuple('CodeBundle', ['code', 'language', 'precomputed_results'])

# Markers an editor may append to the saved source
_RESULTS_MARKER = re.compile(r'//\s*TEST_RESULTS:\s*(.*)')
_LANGUAGE_MARKER = re.compile(r'//\s*LANGUAGE:\s*(.*)')


def _bundle_from_dict(data, default_language=None):
    precomputed = data.get('precomputedResults')
    if precomputed is None:
        precomputed = data.get('results')
    return CodeBundle(
        code=str(data.get('code') or ''),
        language=data.get('language') or default_language,
        precomputed_results=precomputed or None,
    )


def _bundle_from_markers(text, default_language=None):
    results_match = _RESULTS_MARKER.search(text)
    language_match = _LANGUAGE_MARKER.search(text)
    if not results_match and not language_match:
        return None

    code = text
    precomputed = None
    language = default_language
    if results_match:
        precomputed = results_match.group(1).strip() or None
        code = _RESULTS_MARKER.sub('', code, count=1)
    if language_match:
        language = language_match.group(1).strip() or default_language
        code = _LANGUAGE_MARKER.sub('', code, count=1)
    return CodeBundle(code.strip(), language, precomputed)


def parse_submission(value, default_language=None):
    """Resolve a stored or submitted value into a submission variant"""
    if isinstance(value, (CodeBundle, RawSubmission)):
        return value
    if isinstance(value, dict):
        return _bundle_from_dict(value, default_language)
    if value is None:
        return RawSubmission(None)

    text = str(value)
    stripped = text.strip()
    if stripped.startswith('{'):
        try:
            decoded = json.loads(stripped)
        except ValueError:
            decoded = None
        if isinstance(decoded, dict) and 'code' in decoded:
            return _bundle_from_dict(decoded, default_language)

    bundle = _bundle_from_markers(text, default_language)
    if bundle is not None:
        return bundle
    return RawSubmission(text)


def as_code_bundle(submission, default_language=None):
    """View any submission as code; raw text becomes the source"""
    if isinstance(submission, CodeBundle):
        if submission.language or not default_language:
            return submission
        return submission._replace(language=default_language)
    return CodeBundle(submission.text or '', default_language, None)


def submission_text(submission):
    if isinstance(submission, CodeBundle):
        return submission.code
    return submission.text


def serialize_value(value, current_language=None, is_code=False):
    """Turn a submitted value into the string stored on an Answer"""
    if isinstance(value, dict):
        data = dict(value)
        if is_code and current_language and not data.get('language'):
            data['language'] = current_language
        return json.dumps(data)
    if value is None:
        return None
    text = value if isinstance(value, str) else json.dumps(value)
    if is_code and current_language:
        parsed = parse_submission(text)
        if isinstance(parsed, RawSubmission):
            return json.dumps({'code': text, 'language': current_language})
    return text
