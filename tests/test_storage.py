from pathlib import Path

import pytest

from models import SlideContent
from storage import JobStore


@pytest.fixture
def store(tmp_path):
    return JobStore(runs_dir=tmp_path)


def test_create_and_get(store):
    job = store.create("survey", 2, notion_page_id="abc")
    assert store.get(job.id) is job
    assert job.status == "pending"
    assert job.notion_page_id == "abc"


def test_update_replaces_fields(store):
    job = store.create("survey", 1)
    updated = store.update(job.id, status="processing")
    assert updated.status == "processing"
    assert store.get(job.id).status == "processing"
    assert job.status == "pending"


def test_unknown_status_rejected(store):
    job = store.create("survey", 1)
    with pytest.raises(ValueError):
        store.update(job.id, status="exploded")


def test_update_unknown_job(store):
    assert store.update("missing", status="failed") is None
    assert store.get("missing") is None


def test_files_written_under_job_dir(store, tmp_path):
    job = store.create("survey", 1)
    paths = store.save_outputs(job.id, [b"1", b"2", b"3"])
    assert [Path(p).name for p in paths] == ["slide_1.png", "slide_2.png", "slide_3.png"]
    assert all(Path(p).parent == tmp_path / job.id for p in paths)
    assert JobStore.read(paths[1]) == b"2"


def test_output_urls_and_dict(store):
    job = store.create("survey", 3)
    job = store.update(
        job.id,
        output_paths=store.save_outputs(job.id, [b"a", b"b", b"c"]),
        content=SlideContent(slide1=("a", "b"), slide2=("c", "d"), slide3=("e", "f"), caption="cap"),
        status="success",
    )
    data = job.to_dict()
    assert data["images"] == [f"/api/images/{job.id}/{n}" for n in (1, 2, 3)]
    assert data["designNumber"] == 3
    assert data["content"]["caption"] == "cap"
