"""Tests for keyword generation."""

import pytest

from shortlink.core.config import UNAMBIGUOUS_ALPHABET, settings
from shortlink.services.codegen import KeywordGenerator


@pytest.mark.service
class TestKeywordGenerator:

    def test_default_length_and_alphabet(self):
        generator = KeywordGenerator()

        keyword = generator.generate("elga.io")

        assert len(keyword) == settings.KEYWORD_LENGTH
        assert set(keyword) <= set(UNAMBIGUOUS_ALPHABET)

    def test_alphabet_has_no_ambiguous_glyphs(self):
        for glyph in "0Oo1lI":
            assert glyph not in UNAMBIGUOUS_ALPHABET

    def test_custom_length_and_alphabet(self):
        generator = KeywordGenerator(length=12, alphabet="ab")

        keyword = generator.generate("elga.io")

        assert len(keyword) == 12
        assert set(keyword) <= {"a", "b"}
        assert generator.keyspace == 2 ** 12

    def test_codes_are_not_repeated(self):
        generator = KeywordGenerator()

        codes = {generator.generate("elga.io") for _ in range(1000)}

        assert len(codes) == 1000

    def test_invalid_length(self):
        with pytest.raises(ValueError):
            KeywordGenerator(length=0)
