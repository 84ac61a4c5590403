"""Unit tests for the FlickrExporter run."""

import json
from datetime import datetime
from unittest.mock import patch

import pytest

from flickr_exporter.api.executor import RequestExecutor
from flickr_exporter.main import FlickrExporter, default_run_dirname
from flickr_exporter.manifest.models import RunState
from flickr_exporter.models import FatalSetupError
from tests.helpers import fail, listing_page, make_response, ok

PERSON = "flickr.people.getInfo"
LISTING = "flickr.people.getPhotos"


@pytest.fixture
def exporter(client, manifest, sleeps):
    """Create an exporter that never waits."""
    executor = RequestExecutor(base_wait_seconds=0, sleep=sleeps.append)
    return FlickrExporter(client, manifest, executor=executor, item_delay_seconds=0.5, sleep=sleeps.append)


def test_default_run_dirname():
    """Test the timestamped run directory name."""
    assert (
        default_run_dirname("46658241@N06", datetime(2025, 9, 9, 12, 42, 42))
        == "flickr_46658241@N06_20250909_124242"
    )


def test_run_without_photos(exporter, manifest, fake_session):
    """Test a run over an empty account."""
    fake_session.add(PERSON, make_response(json_data=ok(person={"username": {"_content": "me"}})))
    fake_session.add(LISTING, make_response(json_data=listing_page(1, 0, [])))

    stats = exporter.run("me@N01")

    assert stats.attempted == 0
    assert exporter.state == RunState.DONE
    assert manifest.items_path.read_text(encoding="utf-8") == ""
    account = json.loads(manifest.account_info_path.read_text(encoding="utf-8"))
    assert account["person"]["username"]["_content"] == "me"
    report = json.loads(manifest.report_path.read_text(encoding="utf-8"))
    assert report["attempted"] == 0
    assert report["pages_fetched"] == 1
    assert report["truncated"] is False


def test_account_info_failure_is_not_fatal(exporter, manifest, fake_session):
    """Test that a failing account lookup is recorded as a sentinel."""
    fake_session.add(PERSON, make_response(json_data=fail("User not found")))
    fake_session.add(LISTING, make_response(json_data=listing_page(1, 0, [])))

    exporter.run("me@N01")

    account = json.loads(manifest.account_info_path.read_text(encoding="utf-8"))
    assert account == {"stat": "fail", "message": "User not found"}
    assert exporter.state == RunState.DONE


def test_existing_artifacts_are_reused(exporter, manifest, fake_session):
    """Test that account info and the item list are not fetched again."""
    manifest.write_account_info({"stat": "ok"})
    manifest.write_item_list([])

    exporter.run("me@N01")

    assert PERSON not in fake_session.keys()
    assert LISTING not in fake_session.keys()
    report = json.loads(manifest.report_path.read_text(encoding="utf-8"))
    assert "pages_fetched" not in report


def test_force_redoes_every_phase(exporter, manifest, fake_session):
    """Test that force fetches account info and the listing again."""
    manifest.write_account_info({"stat": "ok"})
    manifest.write_item_list([])
    fake_session.add(PERSON, make_response(json_data=ok(person={})))
    fake_session.add(LISTING, make_response(json_data=listing_page(1, 1, [])))

    exporter.run("me@N01", force=True)

    assert fake_session.count(PERSON) == 1
    assert fake_session.count(LISTING) == 1


def test_unreadable_item_list_is_fatal(exporter, manifest, fake_session):
    """Test that an item list that cannot be written or read stops the run."""
    manifest.write_account_info({"stat": "ok"})
    manifest.items_path.mkdir()
    fake_session.add(LISTING, make_response(json_data=listing_page(1, 1, [])))

    with pytest.raises(FatalSetupError):
        exporter.run("me@N01")
    assert exporter.state == RunState.ENUMERATING


def test_item_failures_are_counted(exporter, manifest, fake_session, sleeps):
    """Test that a failing item is counted and the loop goes on."""
    manifest.write_account_info({"stat": "ok"})
    manifest.write_item_list(
        [
            {"id": "1", "secret": "a", "title": "one", "url_o": "https://live.staticflickr.com/1_o.jpg"},
            {"id": "2", "secret": "b", "title": "two"},
        ]
    )
    for method in ("flickr.photos.getInfo", "flickr.photos.getExif", "flickr.photos.getSizes"):
        fake_session.add(method, make_response(json_data=fail()))
    fake_session.add("https://live.staticflickr.com/1_o.jpg", make_response(403, content=b"Forbidden"))

    stats = exporter.run("me@N01")

    assert stats.attempted == 2
    assert stats.failed_metadata == 2
    assert stats.failed_assets == 1
    assert stats.skipped_assets == 1
    assert stats.failed == 3
    assert exporter.state == RunState.DONE
    assert sleeps.count(0.5) == 2


def test_failed_account_info_is_retried_on_resume(exporter, manifest, fake_session):
    """Test that a saved failure sentinel does not stop a resume from looking up the account again."""
    fake_session.add(
        PERSON,
        make_response(500, content=b"Internal Server Error"),
        make_response(json_data=ok(person={"username": {"_content": "me"}})),
    )
    fake_session.add(LISTING, make_response(json_data=listing_page(1, 0, [])))

    exporter.run("me@N01")
    exporter.run("me@N01")

    assert fake_session.count(PERSON) == 2
    account = json.loads(manifest.account_info_path.read_text(encoding="utf-8"))
    assert account["stat"] == "ok"
    assert account["person"]["username"]["_content"] == "me"


def test_unwritable_account_info_is_fatal(exporter, manifest, fake_session):
    """Test that failing to save account info stops the run."""
    fake_session.add(PERSON, make_response(json_data=ok(person={})))

    with patch.object(manifest, "write_account_info", side_effect=PermissionError("denied")):
        with pytest.raises(FatalSetupError):
            exporter.run("me@N01")
    assert exporter.state == RunState.FETCHING_ACCOUNT_INFO


def test_failed_listing_is_enumerated_again_on_resume(exporter, manifest, fake_session):
    """Test that a run that fetched no listing page leaves no item list behind."""
    manifest.write_account_info({"stat": "ok"})
    fake_session.add(
        LISTING,
        make_response(503, content=b"Service Unavailable"),
        make_response(json_data=listing_page(1, 1, [{"id": "1", "secret": "a", "title": "one"}])),
    )

    with pytest.raises(FatalSetupError):
        exporter.run("me@N01")
    assert not manifest.has_item_list()

    stats = exporter.run("me@N01")

    assert fake_session.count(LISTING) == 2
    assert stats.attempted == 1
    assert [item.id for item in manifest.read_items()] == ["1"]
