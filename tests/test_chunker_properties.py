"""Property-based tests for the text chunker."""

from hypothesis import given
from hypothesis import strategies as st

from potd_bot.chunker import CONTENT_BUDGET, ELLIPSIS, MAX_POST_LENGTH, chunk_text

words_strategy = st.lists(
    st.text(
        alphabet=st.characters(whitelist_categories=("Lu", "Ll", "Nd")),
        min_size=1,
        max_size=40,
    ),
    min_size=1,
    max_size=300,
)


def _strip_markers(chunks: list[str]) -> list[str]:
    stripped = []
    for i, chunk in enumerate(chunks):
        if i > 0:
            chunk = chunk.removeprefix(ELLIPSIS)
        if i < len(chunks) - 1:
            chunk = chunk.removesuffix(ELLIPSIS)
        stripped.append(chunk)
    return stripped


class TestChunkerProperties:
    """Property-based tests for chunk_text."""

    @given(words_strategy)
    def test_chunk_length_bound_property(self, words):
        """Every chunk is at most 300 characters long."""
        for chunk in chunk_text(" ".join(words)):
            assert len(chunk) <= MAX_POST_LENGTH

    @given(words_strategy)
    def test_word_sequence_reconstruction_property(self, words):
        """Removing the ellipsis markers gives back the original words in order."""
        chunks = chunk_text(" ".join(words))

        rebuilt = " ".join(_strip_markers(chunks)).split(" ")
        assert rebuilt == words

    @given(words_strategy)
    def test_single_chunk_when_short_property(self, words):
        """Text within the content budget is never split."""
        text = " ".join(words)
        chunks = chunk_text(text)

        if len(text) <= CONTENT_BUDGET:
            assert chunks == [text]
        else:
            assert len(chunks) > 1

    @given(
        st.text(
            alphabet=st.characters(whitelist_categories=("Ll",)),
            min_size=1,
            max_size=CONTENT_BUDGET,
        )
    )
    def test_single_word_has_no_ellipsis_property(self, word):
        assert chunk_text(word) == [word]
