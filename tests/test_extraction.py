import json

import pytest

from pdfquiz.schemas.quiz import PipelineFailure
from pdfquiz.services.extraction import (
    PartialArrayDecoder,
    extract_json_array,
    extract_json_object,
)

from conftest import chunk_text, make_questions


@pytest.mark.parametrize(
    "value",
    [
        make_questions(3),
        [],
        [1, "two", None, {"nested": [1, 2]}],
    ],
)
def test_extract_array_is_idempotent_on_clean_json(value):
    assert extract_json_array(json.dumps(value)) == value


def test_extract_array_from_prose_and_fences():
    questions = make_questions(2)
    text = f"Sure! Here you go:\n```json\n{json.dumps(questions)}\n```\nGood luck."
    assert extract_json_array(text) == questions


def test_extract_array_spans_first_to_last_bracket():
    # the greedy span swallows the trailing prose bracket, so parsing fails
    text = 'Result: [1, 2] and also [see notes]'
    result = extract_json_array(text)
    assert isinstance(result, PipelineFailure)
    assert result.stage == "extraction"


@pytest.mark.parametrize("text", ["I cannot help with that", "", "   ", None])
def test_extract_without_brackets_returns_failure(text):
    result = extract_json_array(text)
    assert isinstance(result, PipelineFailure)
    assert result.stage == "extraction"


def test_extract_array_invalid_json_returns_failure():
    result = extract_json_array("[{'question': 'single quotes'}]")
    assert isinstance(result, PipelineFailure)
    assert "invalid JSON" in result.message


def test_extract_object():
    text = 'Review below:\n{"review": "Good job", "recommendations": "Read chapter 2"}\nBye'
    assert extract_json_object(text) == {"review": "Good job", "recommendations": "Read chapter 2"}
    assert isinstance(extract_json_object("no braces here"), PipelineFailure)


def test_partial_decoder_emits_items_as_they_close():
    questions = make_questions(4)
    text = "Here: " + json.dumps(questions) + " done"
    decoder = PartialArrayDecoder()

    seen = []
    for piece in chunk_text(text, 7):
        seen.extend(decoder.feed(piece))

    assert seen == questions
    assert decoder.items == questions
    assert decoder.done


def test_partial_decoder_handles_brackets_inside_strings():
    items = [{"question": 'What does "[x]" mean, {really}?', "options": ["]", "[", "}", "{"], "answer": "]"}]
    decoder = PartialArrayDecoder()
    out = []
    for piece in chunk_text(json.dumps(items), 3):
        out.extend(decoder.feed(piece))
    assert out == items


def test_partial_decoder_scalars_and_incomplete_tail():
    decoder = PartialArrayDecoder()
    assert decoder.feed('[1, "a,b", tr') == [1, "a,b"]
    assert decoder.feed("ue, {\"k\":") == [True]
    assert decoder.feed("") == []
    assert not decoder.done
    assert decoder.feed(" 2}]") == [{"k": 2}]
    assert decoder.done


def test_partial_decoder_stops_at_unparsable_element():
    decoder = PartialArrayDecoder()
    assert decoder.feed('[{"a": 1}, {bad}, {"b": 2}]') == [{"a": 1}]
    assert decoder.done
    assert decoder.feed('[{"c": 3}]') == []
