import math
import threading

import pytest

from errors import NoPathFound, TaggerError
from hmm import train, train_from_files
from viterbi import Decoding, ViterbiDecoder


def test_single_sentence_is_recovered():
    decoder = ViterbiDecoder(train([("N V", "dog runs")]))
    assert decoder.tag("dog runs", -10) == ["N", "V"]


def test_transitions_carry_an_unseen_word(pet_model):
    decoder = ViterbiDecoder(pet_model)
    assert decoder.tag("the dog sees a cat", -10) == ["DET", "N", "V", "DET", "N"]


def test_decoding_reports_score_and_unseen_words(pet_model):
    result = ViterbiDecoder(pet_model).decode("The dog sees A cat", -10)
    assert isinstance(result, Decoding)
    assert len(result) == 5
    assert result.unseen_words == ((3, "a"),)
    # log p(dog|N) + log p(cat|N) + penalty; every transition is certain
    assert result.log_score == pytest.approx(2 * math.log(0.5) - 10)


def test_output_has_one_tag_per_word(example_files):
    decoder = ViterbiDecoder(train_from_files(*example_files))
    for sentence in ["the dog saw the cat .", "i saw a saw .", "many fish saw the book ."]:
        assert len(decoder.tag(sentence, -10)) == len(sentence.split())


def test_example_corpus_sentences(example_files):
    decoder = ViterbiDecoder(train_from_files(*example_files))
    assert decoder.tag("i saw a saw .", -10) == ["PRO", "V", "DET", "N", "."]
    assert decoder.tag("the cat will see the dog .", -10) == ["DET", "N", "MOD", "V", "DET", "N", "."]


def test_words_may_be_given_as_a_list(pet_model):
    decoder = ViterbiDecoder(pet_model)
    assert decoder.tag(["The", "dog"], -10) == decoder.tag("the dog", -10)


def test_decoding_is_deterministic(example_files):
    model = train_from_files(*example_files)
    first = ViterbiDecoder(model).decode("a dog can see many fish .", -15)
    for _ in range(5):
        again = ViterbiDecoder(model).decode("a dog can see many fish .", -15)
        assert again == first
        assert again.log_score.hex() == first.log_score.hex()


def test_ties_go_to_the_smallest_predecessor(tied_model):
    decoder = ViterbiDecoder(tied_model)
    # A and B score the same on x, and both lead to C
    assert decoder.tag("x y", -10) == ["A", "C"]


def test_final_ties_go_to_the_smallest_tag(tied_model):
    assert ViterbiDecoder(tied_model).tag("x", -10) == ["A"]


def test_tie_break_ignores_training_order():
    forward = train([("A C", "x y"), ("B C", "x y")])
    backward = train([("B C", "x y"), ("A C", "x y")])
    assert ViterbiDecoder(forward).tag("x y", -10) == ViterbiDecoder(backward).tag("x y", -10)


def test_dead_end_raises_no_path_found():
    decoder = ViterbiDecoder(train([("N V", "dog runs")]))
    with pytest.raises(NoPathFound) as excinfo:
        decoder.tag("dog runs fast", -10)
    assert excinfo.value.position == 2
    assert excinfo.value.word == "fast"
    assert isinstance(excinfo.value, TaggerError)


def test_unseen_words_alone_still_decode(pet_model):
    assert ViterbiDecoder(pet_model).tag("xyzzy plugh", -10) == ["DET", "N"]


def test_penalty_must_be_negative(pet_model):
    with pytest.raises(ValueError):
        ViterbiDecoder(pet_model).decode("the dog", 0)


def test_empty_sentence_is_rejected(pet_model):
    with pytest.raises(ValueError):
        ViterbiDecoder(pet_model).decode("   ", -10)


def test_a_model_serves_many_decoders(pet_model):
    a, b = ViterbiDecoder(pet_model), ViterbiDecoder(pet_model)
    assert a.tag("the cat", -10) == b.tag("the cat", -10) == ["DET", "N"]


def test_one_model_decodes_from_many_threads(example_files):
    model = train_from_files(*example_files)
    sentence = "i saw a saw ."
    expected = ViterbiDecoder(model).decode(sentence, -15)
    results = [None] * 8

    def work(i):
        decoder = ViterbiDecoder(model)
        for _ in range(50):
            results[i] = decoder.decode(sentence, -15)

    threads = [threading.Thread(target=work, args=(i,)) for i in range(len(results))]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert results == [expected] * len(results)
    assert expected.tags == ("PRO", "V", "DET", "N", ".")
