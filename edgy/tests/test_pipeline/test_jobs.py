"""Unit tests for the in-memory JobStore."""

import asyncio

from edgy.core.pipeline.jobs import JobStatus, JobStore


class TestJobStore:

    def test_create_pending(self):
        store = JobStore()
        job = store.create("Shop.fig")

        assert job.status == JobStatus.PENDING
        assert job.created_at
        assert store.get(job.id) is job

    def test_status_transitions(self):
        store = JobStore()
        job = store.create("Shop.fig")

        store.set_status(job.id, JobStatus.PROCESSING)
        assert store.get(job.id).completed_at is None

        store.set_error(job.id, "boom")
        job = store.get(job.id)
        assert job.status == JobStatus.ERROR
        assert job.error == "boom"
        assert job.completed_at

    def test_save_result_completes(self):
        store = JobStore()
        job = store.create("Shop.fig")

        asyncio.run(store.save_result(job.id, {"analysis_id": job.id}, generated_layouts={"mf-1": {}}))

        saved = store.get(job.id)
        assert saved.status == JobStatus.COMPLETE
        assert saved.result == {"analysis_id": job.id}
        assert saved.generated_layouts == {"mf-1": {}}

    def test_save_result_unknown_job(self):
        asyncio.run(JobStore().save_result("missing", {}))

    def test_list_and_delete(self):
        store = JobStore()
        jobs = [store.create(f"f{i}.fig") for i in range(3)]

        assert len(store.list()) == 3
        assert len(store.list(limit=2)) == 2
        assert store.delete(jobs[0].id) is True
        assert store.delete(jobs[0].id) is False
        assert store.get(jobs[0].id) is None

    def test_to_dict_without_result(self):
        store = JobStore()
        job = store.create("Shop.fig")

        data = job.to_dict(include_result=False)

        assert data["status"] == "pending"
        assert "result" not in data
