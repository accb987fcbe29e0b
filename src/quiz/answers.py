"""
Answer encoding and normalization.

Stored and submitted answers are strings whose inner encoding depends on the
question type. This module is the single place that turns those strings into
an explicit ``AnswerEncoding`` and back:

- SingleAnswer: MULTIPLE_CHOICE, TRUE_FALSE, SHORT_ANSWER
- MultiAnswer: MULTIPLE_SELECT (JSON array of options),
  FILL_IN_THE_BLANK (JSON array, ;&&;-joined string, or one bare blank)
"""

from __future__ import annotations

import html
import json
import re
from dataclasses import dataclass
from typing import Union

from src.quiz.models import QuestionType

BLANK_DELIMITER = ";&&;"

_TAG_RE = re.compile(r"<[^>]+>")
_WHITESPACE_RE = re.compile(r"\s+")
# Zero-width space/joiners, BOM and no-break space; \s misses the first four
_INVISIBLE_RE = re.compile(r"[\u200b-\u200d\ufeff\u00a0]")
# Kana, CJK symbols/punctuation, ideographs (incl. extension A and compatibility),
# Hangul, fullwidth forms
_CJK_RE = re.compile(
    r"[\u3000-\u303f\u3040-\u30ff\u3400-\u4dbf\u4e00-\u9fff\uac00-\ud7af\uf900-\ufaff\uff00-\uffef]"
)
# Fullwidth ASCII (U+FF01..U+FF5E) and the ideographic space, folded to ASCII
_FULLWIDTH_TABLE = {code: code - 0xFEE0 for code in range(0xFF01, 0xFF5F)}
_FULLWIDTH_TABLE[0x3000] = ord(" ")


class AnswerDecodeError(ValueError):
    """An answer string does not match the encoding its question type requires."""


@dataclass(frozen=True)
class SingleAnswer:
    value: str


@dataclass(frozen=True)
class MultiAnswer:
    values: tuple[str, ...]


AnswerEncoding = Union[SingleAnswer, MultiAnswer]


def _parse_json_array(raw: str) -> list[str] | None:
    """Return the elements as strings if ``raw`` is a JSON array, else None."""
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError):
        return None
    if not isinstance(parsed, list):
        return None
    return [item if isinstance(item, str) else json.dumps(item, ensure_ascii=False) for item in parsed]


def decode_canonical(question_type: QuestionType, raw: str | None) -> AnswerEncoding:
    """
    Decode a stored correct answer.

    Raises:
        AnswerDecodeError: MULTIPLE_SELECT answer that is not a JSON array
    """
    raw = raw or ""

    if question_type == QuestionType.MULTIPLE_SELECT:
        values = _parse_json_array(raw or "[]")
        if values is None:
            raise AnswerDecodeError(f"Expected a JSON array of options, got {raw!r}")
        return MultiAnswer(tuple(values))

    if question_type == QuestionType.FILL_IN_THE_BLANK:
        values = _parse_json_array(raw)
        if values is not None:
            return MultiAnswer(tuple(values))
        if BLANK_DELIMITER in raw:
            return MultiAnswer(tuple(raw.split(BLANK_DELIMITER)))
        return MultiAnswer((raw,))

    return SingleAnswer(raw)


def decode_submission(question_type: QuestionType, raw: str | None) -> AnswerEncoding:
    """
    Decode a learner's submitted answer.

    Fill-in-the-blank submissions are a JSON array (one entry per blank) or a
    bare string for a single blank; an empty submission fills no blanks.

    Raises:
        AnswerDecodeError: MULTIPLE_SELECT submission that is not a JSON array
    """
    raw = raw or ""

    if question_type == QuestionType.MULTIPLE_SELECT:
        values = _parse_json_array(raw or "[]")
        if values is None:
            raise AnswerDecodeError(f"Expected a JSON array of options, got {raw!r}")
        return MultiAnswer(tuple(values))

    if question_type == QuestionType.FILL_IN_THE_BLANK:
        values = _parse_json_array(raw)
        if values is not None:
            return MultiAnswer(tuple(values))
        return MultiAnswer((raw,) if raw else ())

    return SingleAnswer(raw)


def encode_answer(answer: AnswerEncoding) -> str:
    """
    Serialize an answer back to its stored string form.

    Grading snapshots keep the stored answer string verbatim, so nothing in
    this package calls this; it is for tools that write answers into the bank.
    """
    if isinstance(answer, MultiAnswer):
        return json.dumps(list(answer.values), ensure_ascii=False, separators=(",", ":"))
    return answer.value


def blank_count(raw: str | None) -> int:
    """Number of input blanks a fill-in-the-blank answer needs."""
    answer = decode_canonical(QuestionType.FILL_IN_THE_BLANK, raw)
    return len(answer.values)


def contains_cjk(text: str) -> bool:
    return bool(_CJK_RE.search(text))


def normalize_text(text: str | None) -> str:
    """
    Normalize free text for comparison.

    Strips markup tags and entities, turns invisible characters into spaces,
    folds fullwidth ASCII and case, trims and collapses whitespace. Whitespace
    inside CJK text (including CJK punctuation and fullwidth forms) is
    formatting noise and is removed entirely.

    Compatibility characters such as superscripts and subscripts are kept:
    ``x²`` and ``x2`` are different answers.
    """
    if not text:
        return ""
    cleaned = html.unescape(_TAG_RE.sub("", text))
    cleaned = _INVISIBLE_RE.sub(" ", cleaned)
    cjk = contains_cjk(cleaned)
    cleaned = cleaned.translate(_FULLWIDTH_TABLE).casefold()
    if cjk:
        return _WHITESPACE_RE.sub("", cleaned)
    return _WHITESPACE_RE.sub(" ", cleaned).strip()
