"""
Tests for the response normalizer.
"""

import json

import pytest

from src.claims.normalizer import extract_json_span, normalize_response, strip_code_fences


SAMPLES = [
    '```json\n{"a": 1}\n```',
    'Sure! Here is the analysis:\n{\n  "fraudRiskScore": 35,\n  "keyFindings": ["ok",],\n}\nLet me know.',
    '{"note": "spaces , inside }  strings", "list": [1, 2, ],}',
    '{"a": {"b": [1, 2,],},}',
    'Score {estimate}: {"fraudRiskScore": 30}',
    "no json here at all",
    "",
]


class TestFenceAndSpan:
    """Fences and surrounding prose are removed."""

    def test_strips_json_fence(self):
        assert normalize_response('```json\n{"a": 1}\n```') == '{"a":1}'

    def test_strips_bare_fence(self):
        assert normalize_response('```\n{"a": 1}\n```') == '{"a":1}'

    def test_keeps_outer_object_only(self):
        text = 'Here you go: {"a": {"b": 2}} hope this helps'
        assert normalize_response(text) == '{"a":{"b":2}}'

    def test_prose_braces_before_object_skipped(self):
        text = 'Score {estimate}: {"fraudRiskScore": 30, "riskLevel": "LOW"}'
        assert json.loads(normalize_response(text)) == {"fraudRiskScore": 30, "riskLevel": "LOW"}

    def test_prose_braces_after_object_skipped(self):
        text = '{"isValid": true,} see {notes} above'
        assert json.loads(normalize_response(text)) == {"isValid": True}

    def test_braces_inside_strings_do_not_end_span(self):
        text = 'Result: {"note": "closing } brace", "n": 1}'
        assert json.loads(normalize_response(text)) == {"note": "closing } brace", "n": 1}

    def test_text_without_braces_is_returned_trimmed(self):
        assert normalize_response("  not json  ") == "not json"

    def test_empty_input(self):
        assert normalize_response("") == ""

    def test_helpers(self):
        assert strip_code_fences("```json {} ```").strip() == "{}"
        assert extract_json_span("x {1} y") == "{1}"
        assert extract_json_span("nothing") == "nothing"


class TestStructureCleanup:
    """Trailing commas and whitespace around punctuation."""

    def test_trailing_commas_removed(self):
        cleaned = normalize_response('{"a": [1, 2,], "b": 3,}')
        assert json.loads(cleaned) == {"a": [1, 2], "b": 3}

    def test_nested_trailing_commas_removed(self):
        cleaned = normalize_response('{"a": {"b": [1, 2,],},}')
        assert json.loads(cleaned) == {"a": {"b": [1, 2]}}

    def test_trailing_comma_before_newline(self):
        cleaned = normalize_response('{\n  "a": "x",\n}')
        assert json.loads(cleaned) == {"a": "x"}

    def test_newlines_and_tabs_collapsed(self):
        cleaned = normalize_response('{\n\t"a":\r\n 1\n}')
        assert "\n" not in cleaned and "\t" not in cleaned and "\r" not in cleaned
        assert json.loads(cleaned) == {"a": 1}

    def test_string_literals_untouched(self):
        cleaned = normalize_response('{"note": "a , }  b : [ c ,]"}')
        assert json.loads(cleaned) == {"note": "a , }  b : [ c ,]"}

    def test_escaped_quotes_in_strings(self):
        cleaned = normalize_response(r'{"q": "say \"hi , \" now", "n": 1 ,}')
        assert json.loads(cleaned) == {"q": 'say "hi , " now', "n": 1}


class TestIdempotence:
    """normalize(normalize(x)) == normalize(x)."""

    @pytest.mark.parametrize("text", SAMPLES)
    def test_idempotent(self, text):
        once = normalize_response(text)
        assert normalize_response(once) == once
