"""Tests for JSON extraction from LLM output."""

from __future__ import annotations

import json

from error_analyzer.json_extract import extract_json


class TestExtractJson:
    def test_plain_object(self):
        assert json.loads(extract_json('{"a": 1}')) == {"a": 1}

    def test_fenced_block(self):
        text = 'Here you go:\n```json\n{"severity": "high"}\n```\nThanks'
        assert json.loads(extract_json(text)) == {"severity": "high"}

    def test_object_with_surrounding_prose(self):
        text = 'Analysis: {"severity": "low", "nested": {"x": 1}} done.'
        assert json.loads(extract_json(text)) == {"severity": "low", "nested": {"x": 1}}

    def test_braces_inside_strings_ignored(self):
        text = 'prefix {"fix": "use {curly} braces \\" and }"} suffix'
        assert json.loads(extract_json(text)) == {"fix": 'use {curly} braces " and }'}

    def test_no_object_returns_stripped_input(self):
        assert extract_json("  not json  ") == "not json"

    def test_unbalanced_returns_input(self):
        assert extract_json('{"a": 1') == '{"a": 1'
