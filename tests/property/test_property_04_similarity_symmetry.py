"""Property-based tests for text similarity

Similarity is symmetric, bounded to [0, 1] and exactly 1 for identical text.
"""

from hypothesis import given, strategies as st

from pronunciation_engine.analysis.similarity import normalize_text, similarity, text_similarity


@given(first=st.text(max_size=40), second=st.text(max_size=40))
def test_similarity_is_symmetric_and_bounded(first, second):
    forward = similarity(first, second)

    assert forward == similarity(second, first)
    assert 0.0 <= forward <= 1.0


@given(text=st.text(max_size=40))
def test_identical_text_is_fully_similar(text):
    assert similarity(text, text) == 1.0
    assert text_similarity(text, text) == 1.0


PHRASE_ALPHABET = "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ .,!?"


@given(text=st.text(alphabet=PHRASE_ALPHABET, max_size=40))
def test_normalisation_ignores_case_and_punctuation(text):
    assert text_similarity(text.upper(), text.lower() + "!") == 1.0
    assert normalize_text(normalize_text(text)) == normalize_text(text)
