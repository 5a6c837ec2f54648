# Tags, words, and reading aligned tag/sentence files.

from __future__ import annotations

import enum
import logging
from itertools import zip_longest
from pathlib import Path
from typing import Iterator, List, Sequence, Tuple, Union

from errors import MalformedCorpusLine

log = logging.getLogger(Path(__file__).stem)

##### TYPE DEFINITIONS (USED FOR TYPE ANNOTATIONS)

Word = str  # always lower-cased, see normalize_word
Tag = str   # always upper-cased, see normalize_tag
Tokens = Union[str, Sequence[str]]  # a whitespace-delimited line, or its tokens
TaggedLine = Tuple[List[str], List[str]]  # (tags, words) for one sentence


class Boundary(enum.Enum):
    """States that bracket a sentence but are never the tag of any word.

    An enum member never compares equal to a string, so a corpus that
    happens to use "#" or "<s>" as a real tag can't collide with it."""

    START = "<start>"

    def __repr__(self) -> str:
        return f"{type(self).__name__}.{self.name}"


State = Union[Tag, Boundary]  # a row key in the transition table

START_TAG: Boundary = Boundary.START


def state_order(state: State) -> Tuple[int, str]:
    """Sort key putting the start tag before every real tag, and real tags
    in lexicographic order."""
    if isinstance(state, Boundary):
        return (0, state.value)
    return (1, state)


##### NORMALIZATION

def normalize_word(word: str) -> Word:
    return word.lower()


def normalize_tag(tag: str) -> Tag:
    # "A" and "a" are the same state.
    return tag.upper()


def tokenize(tokens: Tokens) -> List[str]:
    """Split a line on whitespace; a sequence of tokens is copied as is."""
    if isinstance(tokens, str):
        return tokens.split()
    return list(tokens)


def normalize_words(words: Tokens) -> List[Word]:
    return [normalize_word(w) for w in tokenize(words)]


def normalize_tags(tags: Tokens) -> List[Tag]:
    return [normalize_tag(t) for t in tokenize(tags)]


##### READING FILES

def read_lines(file: Path) -> Iterator[List[str]]:
    """Iterator over the lines of file, each split into whitespace-delimited tokens.
    Tokens are returned exactly as they appear; case is left alone."""
    with open(file, encoding="utf-8") as f:
        for line in f:
            yield line.split()


def read_aligned_lines(
    tags_file: Path, sentences_file: Path, strict: bool = True
) -> Iterator[TaggedLine]:
    """Lazily pair up line i of tags_file with line i of sentences_file.

    Only the line counts are checked here: if one file runs out before the
    other, MalformedCorpusLine is raised at the first unpaired line.  Lines
    whose token counts differ are passed through for the trainer to reject,
    since the evaluator needs to see them too.

    With strict=False the longer file's leftover lines are still yielded,
    with None standing in for the side that ran out."""
    log.info(f"Reading tagged corpus from {tags_file} and {sentences_file}")
    pairs = zip_longest(read_lines(tags_file), read_lines(sentences_file))
    warned = False
    for line_number, (tags, words) in enumerate(pairs, start=1):
        if tags is None or words is None:
            if strict:
                log.error(f"{tags_file} and {sentences_file} have different numbers of lines")
                raise MalformedCorpusLine(
                    line_number,
                    None if tags is None else len(tags),
                    None if words is None else len(words),
                )
            if not warned:
                log.warning(
                    f"{tags_file} and {sentences_file} have different numbers of lines, "
                    f"from line {line_number} on"
                )
                warned = True
        yield tags, words
