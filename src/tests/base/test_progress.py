from tqdm import tqdm

from cliphunt.base.progress import configure, get_config, progress_iter, report, set_progress


def test_progress_bar_is_opt_in():
    items = [1, 2, 3]
    configure(progress=False)

    assert progress_iter(items, desc="x") is items

    configure(progress=True)
    try:
        wrapped = progress_iter(items, desc="x", total=3)
        assert isinstance(wrapped, tqdm)
        assert list(wrapped) == items
    finally:
        configure(progress=False)


def test_configure_without_flags_keeps_setting():
    set_progress(True)
    try:
        configure()
        assert get_config().progress is True
    finally:
        set_progress(False)


def test_report_without_callback_is_noop():
    report(None, "stage", 50)

    updates = []
    report(lambda stage, pct: updates.append((stage, pct)), "stage", 50)
    assert updates == [("stage", 50)]
