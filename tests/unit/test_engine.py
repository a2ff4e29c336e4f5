"""Tests for the candidate search engine."""

import pytest

from tests.unit.fakes import FakeFileSystem
from ymmp_relink.cancellation import CancelToken
from ymmp_relink.core.search.engine import classify_candidates, normalize_roots, search_candidates
from ymmp_relink.errors import RelinkCancelled
from ymmp_relink.models.reference import Reference, RelinkStatus, SearchProgress


def _missing(index: int, path: str) -> Reference:
    return Reference(index=index, original_path=path, status=RelinkStatus.MISSING)


def test_normalize_roots_drops_blanks_and_case_duplicates() -> None:
    """Blank roots and roots differing only in case are dropped."""
    assert normalize_roots(["D:\\Media", "  ", "d:\\media", "E:\\Stock"]) == [
        "D:\\Media",
        "E:\\Stock",
    ]


@pytest.mark.parametrize(
    ("candidates", "status", "selected"),
    [
        ((), RelinkStatus.NOT_FOUND, None),
        (("/r/a.png",), RelinkStatus.UPDATED, "/r/a.png"),
        (("/r/a.png", "/s/a.png"), RelinkStatus.AMBIGUOUS, None),
    ],
)
def test_classify_candidates(
    candidates: tuple[str, ...], status: RelinkStatus, selected: str | None
) -> None:
    """Zero, one and several candidates map to their statuses."""
    update = classify_candidates(3, candidates)

    assert update.index == 3
    assert update.status is status
    assert update.candidates == candidates
    assert update.selected_candidate == selected


def test_single_match_in_any_case_is_auto_selected(fake_fs: FakeFileSystem) -> None:
    """One match is selected even when its case differs."""
    fake_fs.add_file("/r/deep/A.PNG")

    result = search_candidates([_missing(0, "C:\\old\\a.png")], ["/r"], fs=fake_fs)

    (update,) = result.updates
    assert update.status is RelinkStatus.UPDATED
    assert update.selected_candidate == "/r/deep/A.PNG"
    assert result.summary.updated == 1


def test_two_matches_are_ambiguous(fake_fs: FakeFileSystem) -> None:
    """Two matches leave the reference ambiguous with no selection."""
    fake_fs.add_file("/r/a.png")
    fake_fs.add_file("/s/a.png")

    result = search_candidates([_missing(0, "C:\\old\\a.png")], ["/r", "/s"], fs=fake_fs)

    (update,) = result.updates
    assert update.status is RelinkStatus.AMBIGUOUS
    assert update.candidates == ("/r/a.png", "/s/a.png")
    assert update.selected_candidate is None
    assert result.summary.ambiguous == 1


def test_no_match_is_not_found(fake_fs: FakeFileSystem) -> None:
    """A name found under no root is NOT_FOUND."""
    fake_fs.add_file("/r/b.png")

    result = search_candidates([_missing(0, "C:\\old\\a.png")], ["/r"], fs=fake_fs)

    (update,) = result.updates
    assert update.status is RelinkStatus.NOT_FOUND
    assert update.candidates == ()
    assert result.summary.not_found == 1


def test_bad_root_does_not_hide_match_in_another_root(fake_fs: FakeFileSystem) -> None:
    """An unlistable root does not prevent matches in other roots."""
    fake_fs.add_dir("/locked")
    fake_fs.broken_dirs.add("/locked")
    fake_fs.add_file("/ok/a.png")

    result = search_candidates([_missing(0, "a.png")], ["/locked", "/ok"], fs=fake_fs)

    assert result.updates[0].selected_candidate == "/ok/a.png"
    assert result.summary.enumeration_failures == 1
    assert result.summary.failed == 0


def test_shared_file_name_walks_each_root_once(fake_fs: FakeFileSystem) -> None:
    """References sharing a file name walk the roots only once."""
    fake_fs.add_file("/r/a.png")
    fake_fs.add_file("/s/sub/a.png")
    refs = [_missing(0, "C:\\one\\a.png"), _missing(1, "D:\\two\\A.png")]

    result = search_candidates(refs, ["/r", "/s"], fs=fake_fs)

    assert fake_fs.walks_of("/r") == 1
    assert fake_fs.walks_of("/s") == 1
    assert result.updates[0].candidates == result.updates[1].candidates


def test_only_searchable_references_are_processed(fake_fs: FakeFileSystem) -> None:
    """Existing and FAILED references are left out of a normal search."""
    fake_fs.add_file("/r/a.png")
    refs = [
        Reference(index=0, original_path="/r/a.png", status=RelinkStatus.EXISTING),
        _missing(1, "a.png"),
        Reference(index=2, original_path="b.png", status=RelinkStatus.FAILED, message="boom"),
    ]

    result = search_candidates(refs, ["/r"], fs=fake_fs)

    assert [u.index for u in result.updates] == [1]
    assert (result.summary.scanned, result.summary.missing, result.summary.skipped) == (3, 1, 1)


def test_retry_failed_includes_failed_references(fake_fs: FakeFileSystem) -> None:
    """retry_failed searches references that failed their probe."""
    refs = [Reference(index=0, original_path="b.png", status=RelinkStatus.FAILED)]

    result = search_candidates(refs, ["/r"], fs=fake_fs, retry_failed=True)

    assert [(u.index, u.status) for u in result.updates] == [(0, RelinkStatus.NOT_FOUND)]


def test_lookup_error_fails_only_that_reference(
    fake_fs: FakeFileSystem, monkeypatch: pytest.MonkeyPatch
) -> None:
    """An error looking up one name marks only that reference FAILED."""
    fake_fs.add_file("/r/b.png")
    original = fake_fs.list_files

    def flaky_list_files(directory: str) -> list[str]:
        files = original(directory)
        if len(fake_fs.list_calls) == 1:
            msg = "listing produced garbage"
            raise RuntimeError(msg)
        return files

    monkeypatch.setattr(fake_fs, "list_files", flaky_list_files)

    result = search_candidates([_missing(0, "a.png"), _missing(1, "b.png")], ["/r"], fs=fake_fs)

    assert result.updates[0].status is RelinkStatus.FAILED
    assert result.updates[0].message == "listing produced garbage"
    assert result.updates[1].status is RelinkStatus.UPDATED
    assert result.summary.failed == 1


def test_progress_is_reported_per_reference(fake_fs: FakeFileSystem) -> None:
    """Progress is reported once per processed reference."""
    events: list[SearchProgress] = []
    refs = [_missing(0, "a.png"), _missing(1, "b.png")]

    search_candidates(refs, ["/r"], fs=fake_fs, on_progress=events.append)

    assert events == [SearchProgress(1, 2, "a.png"), SearchProgress(2, 2, "b.png")]
    assert events[-1].is_terminal


def test_empty_search_reports_terminal_progress(fake_fs: FakeFileSystem) -> None:
    """A search with nothing to do still reports completion."""
    events: list[SearchProgress] = []

    result = search_candidates([], ["/r"], fs=fake_fs, on_progress=events.append)

    assert result.updates == ()
    assert events == [SearchProgress(0, 0)]


def test_cancellation_stops_before_terminal_progress(fake_fs: FakeFileSystem) -> None:
    """Cancelling stops the search and keeps the updates made so far."""
    cancel = CancelToken()
    events: list[SearchProgress] = []

    def on_progress(progress: SearchProgress) -> None:
        events.append(progress)
        cancel.cancel()

    refs = [_missing(0, "a.png"), _missing(1, "b.png"), _missing(2, "c.png")]
    with pytest.raises(RelinkCancelled) as excinfo:
        search_candidates(refs, ["/r"], fs=fake_fs, cancel=cancel, on_progress=on_progress)

    assert events == [SearchProgress(1, 3, "a.png")]
    assert not any(e.is_terminal for e in events)
    partial = excinfo.value.partial
    assert partial is not None
    assert [u.index for u in partial.updates] == [0]


def test_folded_look_alike_names_are_not_found(fake_fs: FakeFileSystem) -> None:
    """A name that only matches under full Unicode case folding is not a candidate."""
    fake_fs.add_file("/r/strasse.png")
    fake_fs.add_file("/r/file.png")
    refs = [_missing(0, "C:\\old\\straße.png"), _missing(1, "C:\\old\\\ufb01le.png")]

    result = search_candidates(refs, ["/r"], fs=fake_fs)

    assert [u.status for u in result.updates] == [RelinkStatus.NOT_FOUND, RelinkStatus.NOT_FOUND]
