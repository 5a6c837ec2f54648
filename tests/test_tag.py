import io

import pytest

import tag
from errors import EmptyModel, MalformedCorpusLine
from hmm import train
from tag import Tagger, console, tag_file

from conftest import write_lines


def test_tagger_tags_with_the_published_model(pet_model):
    tagger = Tagger(pet_model)
    assert tagger.model is pet_model
    assert tagger.tag("the dog sees a cat") == ["DET", "N", "V", "DET", "N"]


def test_retrain_publishes_the_new_model(pet_model):
    tagger = Tagger(pet_model)
    new_model = tagger.retrain([("PRO V", "i run")])
    assert tagger.model is new_model
    assert tagger.tag("i run") == ["PRO", "V"]


@pytest.mark.parametrize(
    "corpus, error",
    [([], EmptyModel), ([("PRO V", "i run"), ("N V", "dog")], MalformedCorpusLine)],
)
def test_failed_retrain_keeps_the_old_model(pet_model, corpus, error):
    tagger = Tagger(pet_model)
    with pytest.raises(error):
        tagger.retrain(corpus)
    assert tagger.model is pet_model
    assert tagger.tag("the cat") == ["DET", "N"]


def test_console_tags_until_quit(pet_model):
    lines = ["the dog sees the cat\n", "\n", "the cat\n", "Q\n", "the dog\n"]
    out = io.StringIO()
    console(Tagger(pet_model), lines, out)
    assert out.getvalue().splitlines() == [
        "Insert sentence to tag; enter Q to quit",
        "DET N V DET N",
        "DET N",
        "Console completed",
    ]


def test_console_reports_untaggable_sentences_and_goes_on():
    tagger = Tagger(train([("N V", "dog runs")]))
    out = io.StringIO()
    console(tagger, ["dog runs fast\n", "dog runs\n", "q"], out)
    lines = out.getvalue().splitlines()
    assert lines[1].startswith("Can't tag that sentence:")
    assert lines[2] == "N V"
    assert lines[-1] == "Console completed"


def test_console_stops_at_end_of_input(pet_model):
    out = io.StringIO()
    console(Tagger(pet_model), ["the cat"], out)
    assert out.getvalue().splitlines()[-1] == "Console completed"


def test_tag_file_keeps_lines_aligned(tmp_path, pet_model):
    sentences = write_lines(tmp_path / "test.txt", ["the dog", "", "the cat sees a dog"])
    out = io.StringIO()
    assert tag_file(Tagger(pet_model), sentences, out) == 0
    assert out.getvalue().splitlines() == ["DET N", "", "DET N V DET N"]


def test_tag_file_counts_untaggable_lines(tmp_path):
    sentences = write_lines(tmp_path / "test.txt", ["dog runs fast", "dog runs"])
    tagger = Tagger(train([("N V", "dog runs")]))
    out = io.StringIO()
    assert tag_file(tagger, sentences, out) == 1
    assert out.getvalue().splitlines() == ["", "N V"]


def test_train_then_show(tmp_path, capsys, example_files):
    model_file = tmp_path / "example.model"
    tag.main(["-q", "train", *map(str, example_files), "-o", str(model_file)])
    assert model_file.is_file()

    tag.main(["-q", "show", "--model", str(model_file)])
    assert "Emission matrix B:" in capsys.readouterr().out


def test_file_command(tmp_path, capsys, example_files):
    sentences = write_lines(tmp_path / "input.txt", ["i saw a saw ."])
    tag.main(["-q", "file", str(sentences), "--train", *map(str, example_files)])
    assert capsys.readouterr().out.splitlines() == ["PRO V DET N ."]


def test_bad_penalty_is_a_usage_error(tmp_path, example_files):
    sentences = write_lines(tmp_path / "input.txt", ["the dog"])
    with pytest.raises(SystemExit) as excinfo:
        tag.main(["file", str(sentences), "--train", *map(str, example_files), "--penalty", "3"])
    assert excinfo.value.code == 2


def test_malformed_training_files_exit_nonzero(tmp_path):
    tags_file = write_lines(tmp_path / "tags.txt", ["N V"])
    sentences_file = write_lines(tmp_path / "sentences.txt", ["dog"])
    with pytest.raises(SystemExit) as excinfo:
        tag.main(["-q", "train", str(tags_file), str(sentences_file), "-o", str(tmp_path / "x.model")])
    assert excinfo.value.code == 1


def test_train_only_saves_loadable_model_names(tmp_path, example_files):
    with pytest.raises(SystemExit) as excinfo:
        tag.main(["-q", "train", *map(str, example_files), "-o", str(tmp_path / "tagger.pt")])
    assert excinfo.value.code == 2
    assert not (tmp_path / "tagger.pt").exists()
