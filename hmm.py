# Supervised estimation of a bigram hidden Markov model.
#
# We'll refer to the HMM states as "tags" and the HMM observations as
# "words", as in the rest of this code.  All scores are natural logs.

from __future__ import annotations

import logging
import math
import pickle
from collections import Counter, defaultdict
from pathlib import Path
from types import MappingProxyType
from typing import (
    DefaultDict,
    Dict,
    FrozenSet,
    Hashable,
    Iterable,
    Iterator,
    List,
    Mapping,
    Optional,
    Tuple,
)

import torch
from jaxtyping import Float
from torch import Tensor
from tqdm import tqdm  # type: ignore
from typeguard import typechecked

from corpus import (
    START_TAG,
    Boundary,
    State,
    Tag,
    TaggedLine,
    Tokens,
    Word,
    normalize_tags,
    normalize_words,
    read_aligned_lines,
    state_order,
)
from errors import EmptyModel, MalformedCorpusLine

log = logging.getLogger(Path(__file__).stem)

TransitionMatrix = Float[Tensor, "states tags"]  # row 0 is the start tag
EmissionMatrix = Float[Tensor, "tags words"]


###
# Finalized tables
###
class LogProbTable(Mapping[State, Mapping[Hashable, float]]):
    """A read-only table of conditional distributions, one row per state,
    stored as log-probabilities.

    Each row must be a proper distribution: its exponentiated values sum to 1
    (within ROW_TOLERANCE).  A state with no row is unknown, which is not the
    same thing as a state whose every entry has probability 0."""

    ROW_TOLERANCE = 1e-9

    def __init__(self, rows: Mapping[State, Mapping[Hashable, float]]) -> None:
        self._rows: Dict[State, Mapping[Hashable, float]] = {}
        for state, row in rows.items():
            self._check_row(state, row)
            self._rows[state] = MappingProxyType(dict(row))

    @classmethod
    def from_counts(cls, counts: Mapping[State, Mapping[Hashable, int]]) -> LogProbTable:
        """Normalize each row of counts into log p(column | row).
        Rows whose total count is 0 are left out."""
        rows = {}
        for state, row in counts.items():
            total = sum(row.values())
            if total == 0:
                continue
            rows[state] = {
                symbol: math.log(count / total)
                for symbol, count in row.items()
                if count > 0
            }
        return cls(rows)

    def _check_row(self, state: State, row: Mapping[Hashable, float]) -> None:
        if not row:
            raise ValueError(f"row {state!r} of {type(self).__name__} is empty")
        total = math.fsum(math.exp(lp) for lp in row.values())
        if abs(total - 1.0) > self.ROW_TOLERANCE:
            raise ValueError(
                f"row {state!r} of {type(self).__name__} sums to {total}, not 1"
            )

    def score(self, state: State, symbol: Hashable) -> Optional[float]:
        """log p(symbol | state), or None if the table has no such entry."""
        row = self._rows.get(state)
        if row is None:
            return None
        return row.get(symbol)

    def __getitem__(self, state: State) -> Mapping[Hashable, float]:
        return self._rows[state]

    def __iter__(self) -> Iterator[State]:
        return iter(self._rows)

    def __len__(self) -> int:
        return len(self._rows)

    def __reduce__(self):
        # MappingProxyType can't be pickled, so save plain dicts and
        # rebuild (and recheck) the table on load.
        return (type(self), ({s: dict(row) for s, row in self._rows.items()},))

    def __repr__(self) -> str:
        return f"{type(self).__name__}({len(self)} rows)"


class TransitionTable(LogProbTable):
    """log p(next tag | tag).  The start tag's row holds log p(first tag)."""

    def _check_row(self, state: State, row: Mapping[Hashable, float]) -> None:
        if START_TAG in row:
            raise ValueError(f"row {state!r} has a transition into the start tag")
        super()._check_row(state, row)


class EmissionTable(LogProbTable):
    """log p(word | tag).  The start tag emits nothing, so it has no row."""

    def _check_row(self, state: State, row: Mapping[Hashable, float]) -> None:
        if isinstance(state, Boundary):
            raise ValueError(f"{state!r} can't have an emission row")
        super()._check_row(state, row)


###
# The model
###
class HMMModel:
    """A finalized bigram HMM.  Nothing here changes after construction, so
    one model can be shared by any number of decoders, in any number of
    threads.

    >>> model = train([("DET N", "the dog")])
    >>> model.transition_score(model.start_tag, "DET")
    0.0
    """

    start_tag: Boundary = START_TAG

    def __init__(self, transitions: TransitionTable, emissions: EmissionTable) -> None:
        if START_TAG not in transitions:
            raise EmptyModel("model has no transitions out of the start tag")
        self._transitions = transitions
        self._emissions = emissions

        tags = set(emissions)
        for state, row in transitions.items():
            if not isinstance(state, Boundary):
                tags.add(state)
            tags.update(row)
        self._tags: Tuple[Tag, ...] = tuple(sorted(tags))
        self._vocab: FrozenSet[Word] = frozenset(
            word for row in emissions.values() for word in row
        )

    @property
    def transitions(self) -> TransitionTable:
        return self._transitions

    @property
    def emissions(self) -> EmissionTable:
        return self._emissions

    @property
    def tags(self) -> Tuple[Tag, ...]:
        """All real tags, sorted.  The start tag is not among them."""
        return self._tags

    @property
    def vocab(self) -> FrozenSet[Word]:
        return self._vocab

    def transition_score(self, tag: State, next_tag: Tag) -> Optional[float]:
        return self._transitions.score(tag, next_tag)

    def emission_score(self, tag: Tag, word: Word) -> Optional[float]:
        return self._emissions.score(tag, word)

    def has_transitions(self, tag: State) -> bool:
        return tag in self._transitions

    def successors(self, tag: State) -> Optional[Mapping[Tag, float]]:
        """The transition row of tag, or None if tag has no known transitions."""
        return self._transitions.get(tag)

    def knows_word(self, word: Word) -> bool:
        return word in self._vocab

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}({len(self._tags)} tags, "
            f"{len(self._vocab)} words)"
        )

    @typechecked
    def dense(self) -> Tuple[List[Tag], List[Word], TransitionMatrix, EmissionMatrix]:
        """Lay the tables out as matrices: lA[s, t] = log p(t | s) with the
        start tag as row 0, and lB[t, w] = log p(w | t).  Missing entries
        are -inf.  Returns (tags, vocab, lA, lB), where tags and vocab give
        the column orders."""
        tags = list(self._tags)
        vocab = sorted(self._vocab)
        t_index = {t: i for i, t in enumerate(tags)}
        w_index = {w: i for i, w in enumerate(vocab)}
        states: List[State] = [START_TAG, *tags]

        lA = torch.full((len(states), len(tags)), -math.inf, dtype=torch.float64)
        for s, state in enumerate(states):
            for tag, lp in (self.successors(state) or {}).items():
                lA[s, t_index[tag]] = lp

        lB = torch.full((len(tags), len(vocab)), -math.inf, dtype=torch.float64)
        for t, tag in enumerate(tags):
            for word, lp in self._emissions.get(tag, {}).items():
                lB[t, w_index[word]] = lp

        return tags, vocab, lA, lB

    def print_tables(self) -> None:
        """Print the transition and emission probabilities in a more
        human-readable format (tab-separated)."""
        tags, vocab, lA, lB = self.dense()
        A, B = torch.exp(lA), torch.exp(lB)
        print("Transition matrix A:")
        print("\t".join([""] + [f"({t}|...)" for t in tags]))
        for s, state in enumerate([START_TAG.value, *tags]):
            print("\t".join([str(state)] + [f"{A[s, t]:.3f}" for t in range(len(tags))]))
        print("\nEmission matrix B:")
        print("\t".join([""] + vocab))
        for t, tag in enumerate(tags):
            print("\t".join([tag] + [f"{B[t, w]:.3f}" for w in range(len(vocab))]))
        print("\n")

    def save(self, path: Path | str) -> None:
        if isinstance(path, str):
            path = Path(path)  # convert str argument to Path if needed
        log.info(f"Saving model to {path}")
        torch.save(self, path, pickle_protocol=pickle.HIGHEST_PROTOCOL)
        log.info(f"Saved model to {path}")

    @classmethod
    def load(cls, path: Path | str) -> HMMModel:
        if isinstance(path, str):
            path = Path(path)
        # torch.load is similar to pickle.load; the model is a full pickle,
        # not a state dict, so it needs weights_only=False (trusted files only).
        model = torch.load(path, weights_only=False)
        if not isinstance(model, cls):
            raise ValueError(
                f"Type Error: expected object of type {cls.__name__} but got "
                f"{model.__class__.__name__} from saved file {path}."
            )
        log.info(f"Loaded model from {path}")
        return model


###
# Training
###
class ModelTrainer:
    """Accumulates transition and emission counts from tagged sentences,
    then finalizes them into an HMMModel.

    The counts belong to the trainer and are never handed out: finalize()
    copies them into new read-only tables, so counts added afterward don't
    leak into a model that has already been returned."""

    def __init__(self) -> None:
        self._transition_counts: DefaultDict[State, Counter[Tag]] = defaultdict(Counter)
        self._emission_counts: DefaultDict[Tag, Counter[Word]] = defaultdict(Counter)
        self.sentences = 0  # sentences that contributed counts
        self.lines = 0      # sentences offered, including empty ones

    def add_sentence(
        self, tags: Tokens, words: Tokens, line_number: Optional[int] = None
    ) -> None:
        """Count one sentence.  Raises MalformedCorpusLine, without counting
        anything, if it has a different number of tags and words."""
        tag_seq = normalize_tags(tags)
        word_seq = normalize_words(words)
        if line_number is None:
            line_number = self.lines + 1
        if len(tag_seq) != len(word_seq):
            raise MalformedCorpusLine(line_number, len(tag_seq), len(word_seq))
        self.lines += 1
        if not tag_seq:
            log.debug(f"Skipping empty sentence on line {line_number}")
            return

        prev: State = START_TAG
        for tag, word in zip(tag_seq, word_seq):
            self._transition_counts[prev][tag] += 1
            self._emission_counts[tag][word] += 1
            prev = tag
        self.sentences += 1

    def add_corpus(self, corpus: Iterable[TaggedLine], progress: bool = False) -> None:
        """Count every (tags, words) sentence in corpus.  Line numbers in
        errors are 1-based positions within corpus.

        Either the whole corpus is counted or, if some line is malformed,
        none of it is."""
        staged = ModelTrainer()
        for tags, words in tqdm(corpus, desc="counting", leave=False, disable=not progress):
            staged.add_sentence(tags, words)
        self._merge(staged)

    def _merge(self, other: ModelTrainer) -> None:
        for state, row in other._transition_counts.items():
            self._transition_counts[state].update(row)
        for tag, row in other._emission_counts.items():
            self._emission_counts[tag].update(row)
        self.sentences += other.sentences
        self.lines += other.lines

    def finalize(self) -> HMMModel:
        """Turn the counts into log-probabilities and seal them in a model."""
        if self.sentences == 0:
            raise EmptyModel(f"no usable sentences among {self.lines} training lines")
        transitions = TransitionTable.from_counts(self._transition_counts)
        emissions = EmissionTable.from_counts(self._emission_counts)
        model = HMMModel(transitions, emissions)
        log.info(
            f"Trained on {self.sentences} sentences: {len(model.tags)} tags, "
            f"{len(model.vocab)} word types"
        )
        log.debug(
            "Transition rows: "
            + ", ".join(str(s) for s in sorted(transitions, key=state_order))
        )
        return model


def train(corpus: Iterable[TaggedLine], progress: bool = False) -> HMMModel:
    """Estimate a model from (tags, words) sentences in one go."""
    trainer = ModelTrainer()
    trainer.add_corpus(corpus, progress=progress)
    return trainer.finalize()


def train_from_files(
    tags_file: Path, sentences_file: Path, progress: bool = False
) -> HMMModel:
    """Estimate a model from a tags file and the sentences file it annotates,
    where line i of one goes with line i of the other."""
    return train(read_aligned_lines(tags_file, sentences_file), progress=progress)
