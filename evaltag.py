#!/usr/bin/env python3
"""
Measure tagging accuracy: train (or load) a model, tag held-out sentences,
and count how many tags agree with the gold tags.

Lines that can't be scored token by token are counted separately instead of
as errors: lines whose gold tags and words differ in number, lines the
decoder has no path for, lines with no words at all, and lines past the end
of the shorter of the two test files.

Usage example:
  python evaltag.py --train data/brown-train-tags.txt data/brown-train-sentences.txt \\
      --test data/brown-test-tags.txt data/brown-test-sentences.txt
"""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional

from corpus import TaggedLine, normalize_tags, read_aligned_lines
from errors import NoPathFound, TaggerError
from tag import BATCH_PENALTY, add_model_source, add_verbosity, load_model, penalty_float, text_path
from viterbi import ViterbiDecoder

log = logging.getLogger(Path(__file__).stem)


@dataclass
class Evaluation:
    """Token-level tally for one test set.  The skipped lists hold 1-based
    line numbers."""

    correct: int = 0
    incorrect: int = 0
    mismatched: List[int] = field(default_factory=list)   # gold tags and words differ in length
    unreachable: List[int] = field(default_factory=list)  # decoder raised NoPathFound
    empty: List[int] = field(default_factory=list)        # no words and no tags
    unpaired: List[int] = field(default_factory=list)     # the other file has no such line

    @property
    def scored(self) -> int:
        return self.correct + self.incorrect

    @property
    def skipped(self) -> int:
        return (
            len(self.mismatched) + len(self.unreachable) + len(self.empty) + len(self.unpaired)
        )

    @property
    def accuracy(self) -> Optional[float]:
        if self.scored == 0:
            return None
        return self.correct / self.scored

    def __str__(self) -> str:
        summary = f"{self.correct} tags right and {self.incorrect} wrong"
        if self.accuracy is not None:
            summary += f" ({self.accuracy:.3%})"
        if self.skipped:
            summary += (
                f"; skipped {self.skipped} lines ({len(self.mismatched)} length mismatches, "
                f"{len(self.unreachable)} with no path, {len(self.empty)} empty"
            )
            if self.unpaired:
                summary += f", {len(self.unpaired)} unpaired"
            summary += ")"
        return summary


def evaluate(
    decoder: ViterbiDecoder,
    test_corpus: Iterable[TaggedLine],
    unseen_word_penalty: float = BATCH_PENALTY,
) -> Evaluation:
    """Tag the words of each (gold tags, words) line and compare with the gold tags.
    A line with None on one side has no partner in the other file; it is
    skipped as unpaired."""
    result = Evaluation()
    for line_number, (gold_line, words) in enumerate(test_corpus, start=1):
        if gold_line is None or words is None:
            result.unpaired.append(line_number)
            continue
        gold = normalize_tags(gold_line)
        if not words:
            if gold:
                result.mismatched.append(line_number)
            else:
                result.empty.append(line_number)
            continue
        try:
            predicted = decoder.tag(words, unseen_word_penalty)
        except NoPathFound as e:
            log.debug(f"line {line_number}: {e}")
            result.unreachable.append(line_number)
            continue
        if len(predicted) != len(gold):
            log.debug(
                f"line {line_number}: {len(gold)} gold tags for {len(predicted)} words"
            )
            result.mismatched.append(line_number)
            continue
        for p, g in zip(predicted, gold):
            if p == g:
                result.correct += 1
            else:
                result.incorrect += 1
    return result


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter
    )
    add_model_source(parser)
    parser.add_argument(
        "--test",
        type=text_path,
        nargs=2,
        action="append",
        required=True,
        metavar=("TAGS", "SENTENCES"),
        help="gold tags file and its sentences file (may be repeated)",
    )
    parser.add_argument("--penalty", type=penalty_float, default=BATCH_PENALTY,
                        help="log-score for a word a tag was never seen emitting")
    parser.add_argument("--show-skipped", action="store_true",
                        help="list the line numbers of skipped lines")
    add_verbosity(parser)
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    logging.basicConfig(level=args.logging_level)

    try:
        decoder = ViterbiDecoder(load_model(args))
        for tags_file, sentences_file in args.test:
            test_corpus = read_aligned_lines(tags_file, sentences_file, strict=False)
            result = evaluate(decoder, test_corpus, args.penalty)
            print(f"{sentences_file}: the tagger got {result}")
            if args.show_skipped and result.skipped:
                print(f"  length mismatches: {result.mismatched}")
                print(f"  no path: {result.unreachable}")
                print(f"  empty: {result.empty}")
                if result.unpaired:
                    print(f"  unpaired: {result.unpaired}")
    except TaggerError as e:
        log.critical(str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
