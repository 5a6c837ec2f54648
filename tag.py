#!/usr/bin/env python3
"""
Part-of-speech tagging with a bigram HMM: train a model, tag a file of
sentences, tag sentences typed at the console, or print the model's tables.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Iterable, List, Optional, TextIO

from corpus import Tag, TaggedLine, Tokens
from errors import NoPathFound, TaggerError
from hmm import HMMModel, train, train_from_files
from viterbi import ViterbiDecoder

log = logging.getLogger(Path(__file__).stem)

INTERACTIVE_PENALTY = -10.0  # unseen-word log-score for sentences typed at the console
BATCH_PENALTY = -15.0        # ... and for whole files
QUIT_COMMANDS = {"q"}        # compared after lower-casing


class Tagger:
    """The model currently in service, plus a way to replace it.

    A new model is published by rebinding a single attribute, and only once
    it has been fully trained, so every tag() call sees either the old
    model or the new one.  If retraining fails, the old model stays."""

    def __init__(self, model: HMMModel) -> None:
        self._decoder = ViterbiDecoder(model)

    @property
    def model(self) -> HMMModel:
        return self._decoder.model

    def publish(self, model: HMMModel) -> None:
        self._decoder = ViterbiDecoder(model)

    def retrain(self, corpus: Iterable[TaggedLine], progress: bool = False) -> HMMModel:
        model = train(corpus, progress=progress)  # raises before anything is replaced
        self.publish(model)
        return model

    def tag(self, words: Tokens, unseen_word_penalty: float = INTERACTIVE_PENALTY) -> List[Tag]:
        decoder = self._decoder  # one model for the whole call
        return decoder.tag(words, unseen_word_penalty)


def tag_file(
    tagger: Tagger,
    file: Path,
    out: Optional[TextIO] = None,
    unseen_word_penalty: float = BATCH_PENALTY,
) -> int:
    """Print the tags of each line of file on the corresponding output line.
    Blank lines, and lines with no possible tagging, come out blank.
    Returns the number of lines that couldn't be tagged."""
    failures = 0
    with open(file, encoding="utf-8") as f:
        for line_number, line in enumerate(f, start=1):
            if not line.split():
                print(file=out)
                continue
            try:
                tags = tagger.tag(line, unseen_word_penalty)
            except NoPathFound as e:
                log.warning(f"{file}:{line_number}: {e}")
                failures += 1
                print(file=out)
                continue
            print(" ".join(tags), file=out)
    if failures:
        log.warning(f"Couldn't tag {failures} lines of {file}")
    return failures


def console(
    tagger: Tagger,
    lines: Optional[Iterable[str]] = None,
    out: Optional[TextIO] = None,
    unseen_word_penalty: float = INTERACTIVE_PENALTY,
) -> None:
    """Tag sentences one line at a time until the user types q."""
    if lines is None:
        lines = sys.stdin
    print("Insert sentence to tag; enter Q to quit", file=out)
    for line in lines:
        if line.strip().lower() in QUIT_COMMANDS:
            break
        if not line.split():
            continue
        try:
            tags = tagger.tag(line, unseen_word_penalty)
        except NoPathFound as e:
            print(f"Can't tag that sentence: {e}", file=out)
            continue
        print(" ".join(tags), file=out)
    print("Console completed", file=out)


##### COMMAND LINE

def new_model_path(p: str) -> Path:
    path = Path(p)
    if path.suffix != ".model":
        raise argparse.ArgumentTypeError(f"{p} is not a .model file")
    return path


def model_path(p: str) -> Path:
    path = new_model_path(p)
    if not path.is_file():
        raise argparse.ArgumentTypeError(f"{p} does not exist")
    return path


def text_path(p: str) -> Path:
    path = Path(p)
    if not path.is_file():
        raise argparse.ArgumentTypeError(f"{p} does not exist")
    return path


def penalty_float(x: str) -> float:
    try:
        v = float(x)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Penalty must be a float, got {x!r}")
    if not v < 0:
        raise argparse.ArgumentTypeError(f"Penalty must be negative, got {v}")
    return v


def add_model_source(parser: argparse.ArgumentParser) -> None:
    """Options saying where the model comes from: a saved file, or training files."""
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--model", type=model_path, help="path to a model saved by `train`")
    source.add_argument(
        "--train",
        type=text_path,
        nargs=2,
        metavar=("TAGS", "SENTENCES"),
        help="train a model from a tags file and its sentences file",
    )


def add_verbosity(parser: argparse.ArgumentParser) -> None:
    parser.set_defaults(logging_level=logging.INFO)
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument(
        "-v", "--verbose", dest="logging_level", action="store_const", const=logging.DEBUG
    )
    verbosity.add_argument(
        "-q", "--quiet", dest="logging_level", action="store_const", const=logging.WARNING
    )


def load_model(args: argparse.Namespace) -> HMMModel:
    if args.model is not None:
        return HMMModel.load(args.model)
    tags_file, sentences_file = args.train
    return train_from_files(tags_file, sentences_file, progress=True)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    add_verbosity(parser)
    commands = parser.add_subparsers(dest="command", required=True)

    p = commands.add_parser("train", help="train a model and save it")
    p.add_argument("tags", type=text_path, help="file of tag lines")
    p.add_argument("sentences", type=text_path, help="file of sentence lines, aligned with tags")
    p.add_argument("-o", "--output", type=new_model_path, default=Path("tagger.model"),
                   help="where to save the model")

    p = commands.add_parser("file", help="tag every line of a file")
    p.add_argument("sentences", type=text_path, help="file of sentences to tag")
    add_model_source(p)
    p.add_argument("--penalty", type=penalty_float, default=BATCH_PENALTY,
                   help="log-score for a word a tag was never seen emitting")

    p = commands.add_parser("console", help="tag sentences typed at the console")
    add_model_source(p)
    p.add_argument("--penalty", type=penalty_float, default=INTERACTIVE_PENALTY,
                   help="log-score for a word a tag was never seen emitting")

    p = commands.add_parser("show", help="print the transition and emission tables")
    add_model_source(p)

    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    logging.basicConfig(level=args.logging_level)

    try:
        if args.command == "train":
            model = train_from_files(args.tags, args.sentences, progress=True)
            model.save(args.output)
            return

        tagger = Tagger(load_model(args))
        if args.command == "file":
            if tag_file(tagger, args.sentences, unseen_word_penalty=args.penalty):
                sys.exit(1)
        elif args.command == "console":
            console(tagger, unseen_word_penalty=args.penalty)
        elif args.command == "show":
            tagger.model.print_tables()
    except TaggerError as e:
        log.critical(str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
