from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from wareflow_import.services import progress
from wareflow_import.services.progress import ImportProgressBar, SafeProgressSink, scaled


def test_safe_sink_clamps_and_never_goes_backwards():
    seen = []
    sink = SafeProgressSink(lambda p, m: seen.append(p))
    for value in (-5, 30, 20, 150):
        sink(value, "step")
    assert seen == [0.0, 30.0, 30.0, 100.0]
    assert sink.last_percent == 100.0


def test_safe_sink_swallows_callback_errors():
    def explode(percent, message):
        raise RuntimeError("closed window")

    sink = SafeProgressSink(explode)
    with patch.object(progress, "logger") as logger:
        sink(10, "a")
        sink(20, "b")
    assert sink.failures == 2
    assert logger.warning.call_count == 2


def test_safe_sink_without_callback_still_tracks():
    sink = SafeProgressSink(None)
    sink(40, "x")
    assert sink.last_percent == 40.0


@pytest.mark.parametrize("sub, expected", [(0, 20.0), (50, 50.0), (100, 80.0), (200, 80.0)])
def test_scaled_maps_sub_range(sub, expected):
    seen = []
    scaled(lambda p, m: seen.append(p), 20, 80)(sub, "m")
    assert seen == [pytest.approx(expected)]


def test_progress_bar_disabled_without_tty():
    with patch.object(progress, "is_tty_enabled", return_value=False):
        bar = ImportProgressBar("import WH1")
    assert bar.pbar is None
    bar(50, "halfway")
    bar.close()


def test_progress_bar_updates_by_delta():
    fake = MagicMock()
    with patch.object(progress, "is_tty_enabled", return_value=True), patch.object(
        progress, "tqdm", return_value=fake
    ):
        with ImportProgressBar("import WH1") as bar:
            bar(30, "reading")
            bar(20, "late report")
            bar(100, "done")

    assert [c.args[0] for c in fake.update.call_args_list] == [30, 70]
    fake.set_postfix_str.assert_called_with("done")
    fake.close.assert_called_once()
