import itertools

from agbench.core.classifier import MarkerSet, classify
from agbench.core.models import Outcome


def test_classify_scenarios():
    assert classify(False, 0, True, 0) is Outcome.SUCCEEDED
    assert classify(False, 0, True, 3) is Outcome.SUCCEEDED_WITH_WARNINGS
    assert classify(False, 1, False, 0) is Outcome.FAILED
    assert classify(False, 1, False, 7) is Outcome.FAILED


def test_timeout_wins_over_everything():
    for exit_code, present, markers in itertools.product([0, 1, -9, None], [True, False], [0, 5]):
        assert classify(True, exit_code, present, markers) is Outcome.TIMEOUT


def test_missing_artifact_fails_even_on_exit_zero():
    assert classify(False, 0, False, 0) is Outcome.FAILED


def test_classifier_is_total():
    seen = set()
    for timed_out, exit_code, present, markers in itertools.product(
        [True, False], [0, 1, 2, -15, None], [True, False], [0, 1, 100]
    ):
        out = classify(timed_out, exit_code, present, markers)
        assert isinstance(out, Outcome)
        seen.add(out)
    assert seen == set(Outcome)


def test_marker_count_is_per_line_and_case_insensitive():
    ms = MarkerSet()
    text = "All good\nERROR: bad thing\nan Exception and an error on one line\nTests Failed\n"
    assert ms.count(text) == 3


def test_marker_set_custom_patterns(tmp_path):
    ms = MarkerSet(("computer\\.",))
    log = tmp_path / "out.log"
    log.write_text("computer.files.write()\nprint('x')\nComputer.os.run()\n")
    assert ms.count_file(log) == 2
    assert ms.count_file(tmp_path / "missing.log") == 0


def test_empty_marker_set_counts_nothing():
    assert MarkerSet(()).count("error\nfailed\n") == 0
