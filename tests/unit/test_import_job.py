from __future__ import annotations

import pytest

from supasheet.errors import InvalidTransitionError
from supasheet.models.import_job import ImportJob, JobStatus
from supasheet.models.table_spec import TableSpec


def _job() -> ImportJob:
    return ImportJob(sheet_name="S", table_spec=TableSpec.from_names("s", ["a"]), rows=[{"a": 1}])


def test_happy_path():
    job = _job()
    for s in (JobStatus.PROVISIONING, JobStatus.LOADING, JobStatus.COMPLETED):
        job.advance(s)
    assert job.status.terminal
    assert job.history == [JobStatus.PENDING, JobStatus.PROVISIONING, JobStatus.LOADING, JobStatus.COMPLETED]


def test_fail_during_provisioning():
    job = _job()
    job.advance(JobStatus.PROVISIONING)
    job.fail("exists")
    assert job.status is JobStatus.FAILED
    assert job.error == "exists"


def test_fail_during_loading_with_rows_is_partial():
    job = _job()
    job.advance(JobStatus.PROVISIONING)
    job.advance(JobStatus.LOADING)
    job.fail("batch 2 rejected", rows_loaded=50)
    assert job.status is JobStatus.PARTIALLY_LOADED
    assert job.rows_loaded == 50


def test_fail_during_loading_without_rows_is_failed():
    job = _job()
    job.advance(JobStatus.PROVISIONING)
    job.advance(JobStatus.LOADING)
    job.fail("batch 1 rejected", rows_loaded=0)
    assert job.status is JobStatus.FAILED


@pytest.mark.parametrize(
    "path",
    [
        [JobStatus.LOADING],
        [JobStatus.COMPLETED],
        [JobStatus.PROVISIONING, JobStatus.COMPLETED],
        [JobStatus.PROVISIONING, JobStatus.PARTIALLY_LOADED],
    ],
)
def test_illegal_transitions(path):
    job = _job()
    with pytest.raises(InvalidTransitionError):
        for s in path:
            job.advance(s)


def test_terminal_states_accept_nothing():
    job = _job()
    job.advance(JobStatus.PROVISIONING)
    job.fail("x")
    with pytest.raises(InvalidTransitionError):
        job.advance(JobStatus.LOADING)
