"""Tests for the PageService."""
import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import pytest

from core.config import Settings
from models.page import normalize_title
from services import page_service as page_service_module
from services.exceptions import (
    ContentTooLargeError,
    DocumentNotFoundError,
    InvalidIdentityError,
    PartialSaveError,
)
from services.page_service import PageLocks, PageService
from services.patch_store import read_text_exact
from tests.conftest import START_MILLIS, FakeClock


class TestReadContent:
    """Tests for PageService.read_content()."""

    def test__read_content__missing_page(self, page_service: PageService) -> None:
        """A page without content raises DocumentNotFoundError."""
        with pytest.raises(DocumentNotFoundError) as exc_info:
            page_service.read_content("missing")
        assert exc_info.value.identity == "missing"

    def test__read_content__exact_text(self, page_service: PageService) -> None:
        """Line endings are returned untouched."""
        page_service.save("home", "a\r\nb")
        assert page_service.read_content("home") == "a\r\nb"

    def test__save__rejects_unnormalized_identity(self, page_service: PageService) -> None:
        """Raw titles are normalized before they reach the page service."""
        with pytest.raises(InvalidIdentityError):
            page_service.save("Home Page", "text")
        with pytest.raises(InvalidIdentityError):
            page_service.save("Home", "text")

        page_service.save(normalize_title("Home Page"), "first")
        page_service.save(normalize_title(" home page/"), "second")

        assert page_service.read_content("home-page") == "second"
        assert len(page_service.history.version_ids("home-page")) == 2

    def test__read_content__rejects_unsafe_identity(self, page_service: PageService) -> None:
        """Identities that escape the wiki directory are refused."""
        with pytest.raises(InvalidIdentityError):
            page_service.read_content("../etc/passwd")


class TestSave:
    """Tests for PageService.save()."""

    def test__save__first_save(self, page_service: PageService) -> None:
        """First save writes the page and one record keyed by the clock."""
        version_id = page_service.save("home", "Hello")

        assert version_id == START_MILLIS
        assert page_service.read_content("home") == "Hello"
        records = page_service.store.list_patches("home")
        assert list(records) == [version_id]
        assert page_service.history.reconstruct("home", version_id).content == "Hello"

    def test__save__returns_latest_key(self, page_service: PageService) -> None:
        """Each save's identifier becomes the latest version."""
        page_service.save("home", "one")
        latest = page_service.save("home", "two")
        assert page_service.history.version_ids("home")[-1] == latest

    def test__save__unchanged_content_still_recorded(self, page_service: PageService) -> None:
        """Saving identical content adds a version that replays to the same text."""
        page_service.save("home", "same")
        second = page_service.save("home", "same")

        assert len(page_service.history.version_ids("home")) == 2
        assert page_service.history.reconstruct("home", second).content == "same"

    def test__save__seeded_page_starts_from_empty(
        self, page_service: PageService, settings: Settings,
    ) -> None:
        """Content placed outside the wiki is not assumed to be in history."""
        (settings.wiki_dir / "seeded.md").write_text("written by hand", encoding="utf-8")
        assert page_service.store.list_patches("seeded") == {}

        version_id = page_service.save("seeded", "written by hand, then edited")

        result = page_service.history.reconstruct("seeded", version_id)
        assert result.content == "written by hand, then edited"
        assert result.position == 0

    def test__save__content_too_large(self, settings: Settings, clock: FakeClock) -> None:
        """Oversized content is rejected before anything is written."""
        service = PageService(settings.model_copy(update={"max_content_length": 5}), clock=clock)

        with pytest.raises(ContentTooLargeError) as exc_info:
            service.save("home", "too long")

        assert exc_info.value.limit == 5
        assert not service.layout.page_path("home").exists()
        assert not service.layout.history_dir.exists()

    def test__save__canonical_write_failure(
        self, page_service: PageService, monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """A failure after the patch write surfaces the orphan patch."""
        page_service.save("home", "one")

        def fail_write(path: Path, content: str) -> None:
            raise OSError("disk full")

        monkeypatch.setattr(page_service_module, "atomic_write_text", fail_write)

        with pytest.raises(PartialSaveError) as exc_info:
            page_service.save("home", "two")

        orphan = exc_info.value.patch_path
        assert orphan.exists()
        assert exc_info.value.version_id in page_service.store.list_patches("home")
        assert page_service.read_content("home") == "one"
        assert page_service.history.verify_history("home").consistent is False

    def test__save__patch_write_failure(
        self, page_service: PageService, monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """A failed patch write changes nothing."""
        page_service.save("home", "one")

        def fail_write(identity: str, version_id: int, payload: str) -> Path:
            raise OSError("read-only file system")

        monkeypatch.setattr(page_service.store, "write_patch", fail_write)

        with pytest.raises(OSError, match="read-only"):
            page_service.save("home", "two")

        assert page_service.read_content("home") == "one"
        assert len(page_service.store.list_patches("home")) == 1

    def test__save__logs(
        self, page_service: PageService, caplog: pytest.LogCaptureFixture,
    ) -> None:
        """Saves are logged at info level."""
        with caplog.at_level(logging.INFO, logger="services.page_service"):
            page_service.save("home", "Hello")
        assert "Saved home version" in caplog.text


class TestVersionCollisions:
    """Tests for version identifiers minted in the same millisecond."""

    def test__save__collision_overwrites_by_default(
        self, settings: Settings, caplog: pytest.LogCaptureFixture,
    ) -> None:
        """Two saves in one millisecond share a key: the mapping shrinks, no error."""
        service = PageService(settings, clock=FakeClock(step=0))

        first = service.save("home", "Hello")
        second = service.save("home", "Hello world")

        assert first == second
        assert len(service.store.list_patches("home")) == 1
        assert service.read_content("home") == "Hello world"
        assert "version identifier collision" in caplog.text
        assert service.history.reconstruct("home", second).content == "Hello world"
        assert service.history.verify_history("home").consistent is True

    def test__save__collision_with_earlier_versions(self, settings: Settings) -> None:
        """A record replacing the latest one still applies to the version before it."""
        clock = iter([1000, 2000, 2000, 3000]).__next__
        service = PageService(settings, clock=clock)

        first = service.save("home", "one")
        service.save("home", "two")
        replaced = service.save("home", "two, revised")
        latest = service.save("home", "three")

        assert service.history.version_ids("home") == [first, replaced, latest]
        assert service.history.reconstruct("home", first).content == "one"
        assert service.history.reconstruct("home", replaced).content == "two, revised"
        assert service.history.reconstruct("home", latest).content == "three"
        assert service.history.verify_history("home").consistent is True

    def test__save__clock_behind_latest(self, settings: Settings) -> None:
        """A clock that moved backwards still appends after the latest version."""
        service = PageService(settings, clock=FakeClock(step=-10))

        first = service.save("home", "one")
        second = service.save("home", "two")

        assert second == first + 1
        assert service.history.version_ids("home") == [first, second]
        assert service.history.reconstruct("home", first).content == "one"
        assert service.history.reconstruct("home", second).content == "two"

    def test__save__collision_bumped_when_enabled(self, settings: Settings) -> None:
        """With bumping enabled every save gets its own key."""
        bumped = settings.model_copy(update={"bump_colliding_versions": True})
        service = PageService(bumped, clock=FakeClock(step=0))

        ids = [service.save("home", text) for text in ("one", "two", "three")]

        assert ids == [START_MILLIS, START_MILLIS + 1, START_MILLIS + 2]
        assert service.history.reconstruct("home", ids[1]).content == "two"
        assert service.history.verify_history("home").consistent is True

    def test__save__clock_behind_latest_bumped(self, settings: Settings) -> None:
        """A clock that moved backwards still yields increasing identifiers when bumping."""
        bumped = settings.model_copy(update={"bump_colliding_versions": True})
        clock = FakeClock(step=-10)
        service = PageService(bumped, clock=clock)

        first = service.save("home", "one")
        second = service.save("home", "two")

        assert second == first + 1


class TestConcurrentSaves:
    """Tests for saves racing on the same page."""

    def test__save__serialized_per_page(self, settings: Settings) -> None:
        """Concurrent saves to one page leave a history that replays to the page."""
        bumped = settings.model_copy(update={"bump_colliding_versions": True})
        service = PageService(bumped, clock=FakeClock(step=1))
        contents = [f"revision {i}\n" * (i + 1) for i in range(16)]

        with ThreadPoolExecutor(max_workers=8) as pool:
            version_ids = list(pool.map(lambda text: service.save("home", text), contents))

        assert len(set(version_ids)) == len(contents)
        check = service.history.verify_history("home")
        assert check.num_versions == len(contents)
        assert check.consistent is True

    def test__page_locks__one_lock_per_identity(self) -> None:
        """The same identity always maps to the same lock."""
        locks = PageLocks()
        assert locks.for_page("a") is locks.for_page("a")
        assert locks.for_page("a") is not locks.for_page("b")


class TestGetPage:
    """Tests for PageService.get_page()."""

    def test__get_page__new_page(self, page_service: PageService) -> None:
        """A missing page is reported as new, not as an error."""
        view = page_service.get_page("missing")
        assert view.is_new is True
        assert view.content is None
        assert view.num_versions == 0

    def test__get_page__existing_page(self, page_service: PageService) -> None:
        """An existing page carries its content and version count."""
        page_service.save("home", "one")
        latest = page_service.save("home", "two")

        view = page_service.get_page("home")

        assert view.is_new is False
        assert view.content == "two"
        assert view.num_versions == 2
        assert view.latest_version_id == latest


class TestGetEditView:
    """Tests for PageService.get_edit_view()."""

    def test__get_edit_view__current(self, page_service: PageService) -> None:
        """Without a version the editor gets the current content."""
        page_service.save("home", "current")
        view = page_service.get_edit_view("home")
        assert view.content == "current"
        assert view.version_id is None
        assert view.fell_back is False

    def test__get_edit_view__new_page(self, page_service: PageService) -> None:
        """A new page starts with an empty editor."""
        assert page_service.get_edit_view("missing").content == ""

    def test__get_edit_view__at_version(self, page_service: PageService) -> None:
        """A stored version prefills the editor with that version's content."""
        first = page_service.save("home", "first")
        page_service.save("home", "second")

        view = page_service.get_edit_view("home", first)

        assert view.content == "first"
        assert view.version_id == first

    def test__get_edit_view__missing_version_falls_back(self, page_service: PageService) -> None:
        """An unknown version falls back to the current content."""
        page_service.save("home", "current")

        view = page_service.get_edit_view("home", 42)

        assert view.content == "current"
        assert view.version_id is None
        assert view.requested_version_id == 42
        assert view.fell_back is True


def test__save__writes_expected_files(page_service: PageService, settings: Settings) -> None:
    """Storage layout matches {identity}.md and versions/{identity}_{version}.md."""
    version_id = page_service.save("my-page", "text")

    assert read_text_exact(settings.wiki_dir / "my-page.md") == "text"
    assert (settings.wiki_dir / "versions" / f"my-page_{version_id}.md").is_file()
