from pathlib import Path
from typing import List

import pytest

from hmm import HMMModel, train

DATA = Path(__file__).resolve().parent.parent / "data"


def write_lines(path: Path, lines: List[str]) -> Path:
    path.write_text("".join(line + "\n" for line in lines), encoding="utf-8")
    return path


@pytest.fixture
def example_files():
    """(tags file, sentences file) of the small example corpus shipped in data/."""
    return DATA / "example-tags.txt", DATA / "example-sentences.txt"


@pytest.fixture
def pet_model() -> HMMModel:
    return train([("DET N V DET N", "the dog sees the cat")])


@pytest.fixture
def tied_model() -> HMMModel:
    # A and B are indistinguishable, so every choice between them is a tie.
    return train([("B C", "x y"), ("A C", "x y")])


@pytest.fixture
def corpus_files(tmp_path):
    def make(tags: List[str], sentences: List[str]):
        return (
            write_lines(tmp_path / "tags.txt", tags),
            write_lines(tmp_path / "sentences.txt", sentences),
        )
    return make
