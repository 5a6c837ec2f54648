# Viterbi decoding for the bigram HMM in hmm.py.

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Tuple

from typeguard import typechecked

from corpus import START_TAG, State, Tag, Tokens, Word, normalize_words, state_order
from errors import NoPathFound
from hmm import HMMModel

log = logging.getLogger(Path(__file__).stem)

Frontier = Dict[State, float]        # best log-score of each reachable state
BackpointerRow = Dict[Tag, State]    # best predecessor of each reachable tag


@dataclass(frozen=True)
class Decoding:
    """The result of decoding one sentence."""

    tags: Tuple[Tag, ...]
    log_score: float  # score of the best path, penalties included
    unseen_words: Tuple[Tuple[int, Word], ...] = ()  # (position, word) not in the model's vocab

    def __len__(self) -> int:
        return len(self.tags)


class ViterbiDecoder:
    """Finds the most probable tag sequence for a sentence under an HMMModel.

    The decoder keeps no state between calls, so one decoder (or one model
    shared by many decoders) can serve concurrent callers."""

    def __init__(self, model: HMMModel) -> None:
        self.model = model

    def tag(self, words: Tokens, unseen_word_penalty: float) -> List[Tag]:
        return list(self.decode(words, unseen_word_penalty).tags)

    @typechecked
    def decode(self, words: Tokens, unseen_word_penalty: float) -> Decoding:
        """Tag a sentence, given as a whitespace-delimited string or a list of words.

        A word that a tag was never seen emitting is scored with
        unseen_word_penalty (a negative log-score) in place of its emission
        log-probability.  Raises NoPathFound if some word can't be reached
        at all, because every tag that could precede it has no known
        transitions."""
        if unseen_word_penalty >= 0:
            raise ValueError(f"{unseen_word_penalty=} but should be < 0")
        observations = normalize_words(words)
        if not observations:
            raise ValueError("Nothing to tag: the sentence has no words")

        frontier: Frontier = {START_TAG: 0.0}
        backpointers: List[BackpointerRow] = []
        unseen: List[Tuple[int, Word]] = []

        for j, word in enumerate(observations):
            if not self.model.knows_word(word):
                log.debug(f"Word {j} ({word!r}) is not in the vocab")
                unseen.append((j, word))
            frontier, backpointer = self._step(frontier, word, unseen_word_penalty)
            if not frontier:
                raise NoPathFound(j, word)
            backpointers.append(backpointer)

        best_tag, best_score = self._best_state(frontier)
        tags = self._backtrace(best_tag, backpointers)
        assert len(tags) == len(observations)
        return Decoding(tuple(tags), best_score, tuple(unseen))

    def _step(
        self, frontier: Frontier, word: Word, unseen_word_penalty: float
    ) -> Tuple[Dict[Tag, float], BackpointerRow]:
        """Extend every path in frontier by one word."""
        scores: Dict[Tag, float] = {}
        backpointer: BackpointerRow = {}

        # Visit predecessors in order and only replace on a strictly better
        # score, so exact ties go to the lexicographically smallest one.
        for cur in sorted(frontier, key=state_order):
            successors = self.model.successors(cur)
            if successors is None:
                continue  # cur never had a successor in training
            for nxt, transition in successors.items():
                emission = self.model.emission_score(nxt, word)
                candidate = frontier[cur] + transition + (
                    emission if emission is not None else unseen_word_penalty
                )
                if nxt not in scores or candidate > scores[nxt]:
                    scores[nxt] = candidate
                    backpointer[nxt] = cur
        return scores, backpointer

    @staticmethod
    def _best_state(frontier: Dict[Tag, float]) -> Tuple[Tag, float]:
        best_tag = None
        best_score = 0.0
        for tag in sorted(frontier, key=state_order):
            if best_tag is None or frontier[tag] > best_score:
                best_tag, best_score = tag, frontier[tag]
        assert best_tag is not None
        return best_tag, best_score

    @staticmethod
    def _backtrace(last_tag: Tag, backpointers: List[BackpointerRow]) -> List[Tag]:
        path: List[Tag] = []
        state: State = last_tag
        for backpointer in reversed(backpointers):
            path.append(state)
            state = backpointer[state]
        assert state is START_TAG
        path.reverse()
        return path
