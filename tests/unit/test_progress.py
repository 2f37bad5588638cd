from __future__ import annotations

from unittest.mock import patch

from farmer_import.services.progress import ProgressTracker, is_tty_enabled


def test_disabled_tracker_still_counts():
    with ProgressTracker(3, enabled=False) as progress:
        progress.start_farmer(2, "Kwame Asante")
        progress.finish_farmer(success=True)
        progress.start_farmer(3, "Akosua Mensah")
        progress.finish_farmer(success=False)
        assert progress.pbar is None
    assert (progress.created, progress.failed, progress.processed) == (1, 1, 2)


def test_enabled_tracker_updates_bar():
    with patch("farmer_import.services.progress.tqdm") as mock_tqdm:
        bar = mock_tqdm.return_value
        progress = ProgressTracker(2, enabled=True)
        assert progress.enabled
        progress.start_farmer(2, "Kwame Asante")
        bar.set_description.assert_called_with("Creating farmers (row 2: Kwame Asante)")
        progress.finish_farmer(success=False)
        bar.update.assert_called_once_with(1)
        bar.set_postfix.assert_called_with(created=0, failed=1)
        progress.close()
        bar.close.assert_called_once()
        assert progress.pbar is None
        assert mock_tqdm.call_args.kwargs["unit"] == "farmer"


def test_long_names_are_shortened():
    with patch("farmer_import.services.progress.tqdm") as mock_tqdm:
        progress = ProgressTracker(1, enabled=True)
        progress.start_farmer(7, "Nana Kwabena Agyemang-Prempeh Boateng")
        desc = mock_tqdm.return_value.set_description.call_args.args[0]
        assert desc.endswith("...)")
        assert len(desc) < len("Creating farmers (row 7: Nana Kwabena Agyemang-Prempeh Boateng)")


def test_no_bar_for_empty_batch():
    with patch("farmer_import.services.progress.tqdm") as mock_tqdm:
        assert ProgressTracker(0, enabled=True).enabled is False
        mock_tqdm.assert_not_called()


def test_default_follows_tty():
    with patch("farmer_import.services.progress.is_tty_enabled", return_value=False):
        assert ProgressTracker(1).enabled is False
    with patch("farmer_import.services.progress.sys") as mock_sys:
        mock_sys.stdout.isatty.return_value = True
        assert is_tty_enabled() is True
