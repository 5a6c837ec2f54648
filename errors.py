# Exceptions raised by the tagger.
#
# Callers that only care whether tagging worked can catch TaggerError;
# the subclasses say what went wrong.

from __future__ import annotations

from typing import Optional


class TaggerError(Exception):
    """For any problem encountered while training or applying a tagging model."""
    pass


class MalformedCorpusLine(TaggerError):
    """A training sentence whose tag line and word line have different lengths."""

    def __init__(
        self, line_number: int, num_tags: Optional[int], num_words: Optional[int]
    ) -> None:
        # A length of None means that side of the corpus ran out of lines.
        self.line_number = line_number
        self.num_tags = num_tags
        self.num_words = num_words
        if num_tags is None:
            detail = "tag file has no line for it"
        elif num_words is None:
            detail = "sentence file has no line for it"
        else:
            detail = f"{num_tags} tags but {num_words} words"
        super().__init__(f"corpus line {line_number}: {detail}")


class EmptyModel(TaggerError):
    """Training saw no usable sentences, so there is nothing to decode with."""
    pass


class NoPathFound(TaggerError):
    """The decoder reached a word that no state on any surviving path can transition to."""

    def __init__(self, position: int, word: str) -> None:
        self.position = position
        self.word = word
        super().__init__(
            f"no tag sequence reaches word {position} ({word!r}): "
            f"every tag before it has no known transitions"
        )
