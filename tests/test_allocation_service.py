import sys
import threading
import time
from collections import Counter
from pathlib import Path
from typing import get_args

import pytest
from pydantic import ValidationError as PayloadError

sys.path.append(str(Path(__file__).resolve().parents[1]))

from callroster.application import AllocationService, RedistributionOrchestrator
from callroster.core.config import AllocationSettings
from callroster.core.errors import ConflictError, NotFoundError, StateError, ValidationError
from callroster.core.schema import AgentCreate, AgentUpdate, TaskStatusUpdate
from callroster.domain import Task, TaskStatus
from callroster.infrastructure import InMemoryAllocationRepository, SpreadsheetRecordSource, TenantLocks

TENANT = "acme"


class CountingRepository(InMemoryAllocationRepository):
    def __init__(self) -> None:
        super().__init__()
        self.agent_queries = 0

    def list_agents(self, tenant_id, *, active_only=False):
        self.agent_queries += 1
        return super().list_agents(tenant_id, active_only=active_only)


class SlowRepository(InMemoryAllocationRepository):
    def __init__(self) -> None:
        super().__init__()
        self.slow = False

    def push_assigned_task(self, tenant_id, agent_id, task_id):
        if self.slow:
            time.sleep(0.001)
        super().push_assigned_task(tenant_id, agent_id, task_id)


@pytest.fixture()
def repository():
    return CountingRepository()


@pytest.fixture()
def service(repository):
    return AllocationService(repository, settings=AllocationSettings())


def _add_agents(service, *names, tenant=TENANT):
    return [
        service.create_agent(
            tenant,
            AgentCreate(name=name, email=f"{name.lower()}@example.com", mobile_number="5550000000"),
        ).agent_id
        for name in names
    ]


def _rows(count, start=0):
    return [{"FirstName": "Caller", "Phone": f"555{start + i:07d}", "Notes": ""} for i in range(count)]


def _loads(service, tenant=TENANT):
    return {agent.agent_id: agent.load for agent in service.list_agents(tenant)}


def _assert_consistent(service, tenant=TENANT):
    assert service.repository.assignment_violations(tenant) == []


def test_upload_spreads_tasks_fairly(service):
    first, second, third = _add_agents(service, "Ann", "Ben", "Cat")
    result = service.upload_records(TENANT, _rows(10))

    assert result.task_count == 10
    assert _loads(service) == {first: 4, second: 3, third: 3}
    assert result.distribution.metrics.base_tasks_per_agent == 3
    assert result.distribution.metrics.remaining_tasks == 1
    assert [a.agent_id for a in result.distribution.assignments] == [first, second, third]
    _assert_consistent(service)

    # consecutive records alternate between agents
    owners = [task.assigned_agent_id for task in reversed(service.list_tasks(TENANT))]
    assert owners[:4] == [first, second, third, first]


def test_second_upload_favours_least_loaded_agents(service):
    first, second = _add_agents(service, "Ann", "Ben")
    service.upload_records(TENANT, _rows(3))
    assert _loads(service) == {first: 2, second: 1}

    service.upload_records(TENANT, _rows(1, start=100))
    assert _loads(service) == {first: 2, second: 2}


def test_invalid_row_blocks_the_whole_upload(service):
    _add_agents(service, "Ann")
    rows = _rows(3)
    rows[1]["FirstName"] = "John123"

    with pytest.raises(ValidationError) as excinfo:
        service.upload_records(TENANT, rows)

    assert excinfo.value.errors == ["Some records failed validation"]
    assert [record["row_number"] for record in excinfo.value.failed_records] == [3]
    assert service.list_tasks(TENANT) == []


def test_empty_upload_does_not_query_agents(service, repository):
    _add_agents(service, "Ann")
    repository.agent_queries = 0

    with pytest.raises(ValidationError) as excinfo:
        service.upload_records(TENANT, [])

    assert excinfo.value.errors == ["No records found in file"]
    assert repository.agent_queries == 0


def test_upload_reactivates_an_inactive_pool(service):
    (agent_id,) = _add_agents(service, "Ann")
    service.update_agent(TENANT, agent_id, AgentUpdate(is_active=False))

    result = service.upload_records(TENANT, _rows(2))

    assert result.task_count == 2
    assert service.get_agent(TENANT, agent_id).is_active


def test_upload_rejects_phone_of_active_task(service):
    _add_agents(service, "Ann")
    service.upload_records(TENANT, _rows(1))

    with pytest.raises(ValidationError) as excinfo:
        service.upload_records(TENANT, _rows(1))
    assert excinfo.value.failed_records[0]["errors"] == ["Phone number already assigned to an active task"]

    task = service.list_tasks(TENANT)[0]
    service.update_task_status(TENANT, task.task_id, "completed")
    assert service.upload_records(TENANT, _rows(1)).task_count == 1


def test_redistribution_is_idempotent_in_counts(service):
    _add_agents(service, "Ann", "Ben", "Cat")
    service.upload_records(TENANT, _rows(10))
    (fourth,) = _add_agents(service, "Dan")

    after_create = _loads(service)
    assert sorted(after_create.values()) == [2, 2, 3, 3]
    assert after_create[fourth] == 2
    _assert_consistent(service)

    service.redistribute(TENANT)
    assert _loads(service) == after_create
    service.redistribute(TENANT)
    assert _loads(service) == after_create
    _assert_consistent(service)


def test_redistribution_covers_every_status(service):
    _add_agents(service, "Ann")
    service.upload_records(TENANT, _rows(4))
    tasks = service.list_tasks(TENANT)
    service.update_task_status(TENANT, tasks[0].task_id, "completed")
    service.update_task_status(TENANT, tasks[1].task_id, "in-progress")

    _add_agents(service, "Ben")

    assert sorted(_loads(service).values()) == [2, 2]
    _assert_consistent(service)


def test_deactivation_moves_work_to_active_agents(service):
    first, second, third = _add_agents(service, "Ann", "Ben", "Cat")
    service.upload_records(TENANT, _rows(10))

    service.update_agent(TENANT, third, AgentUpdate(is_active=False))

    assert _loads(service) == {first: 5, second: 5, third: 0}
    _assert_consistent(service)


def test_delete_agent_reassigns_its_tasks(service):
    first, second, third = _add_agents(service, "Ann", "Ben", "Cat")
    service.upload_records(TENANT, _rows(10))

    reassigned = service.delete_agent(TENANT, first)

    assert reassigned == 4
    assert _loads(service) == {second: 5, third: 5}
    assert len(service.list_tasks(TENANT)) == 10
    with pytest.raises(NotFoundError):
        service.get_agent(TENANT, first)
    _assert_consistent(service)


def test_reassign_from_uses_modulo_round_robin(service):
    first, second, third = _add_agents(service, "Ann", "Ben", "Cat")
    service.upload_records(TENANT, _rows(9))
    orchestrator = RedistributionOrchestrator(service.repository, TenantLocks())

    moved = orchestrator.reassign_from(TENANT, first)

    assert moved == 3
    assert service.get_agent(TENANT, first).assigned_tasks == []
    assert _loads(service) == {first: 0, second: 5, third: 4}
    _assert_consistent(service)


def test_deleting_last_active_agent_with_tasks_is_refused(service):
    (agent_id,) = _add_agents(service, "Ann")
    service.upload_records(TENANT, _rows(2))
    before = service.get_agent(TENANT, agent_id)

    with pytest.raises(StateError):
        service.delete_agent(TENANT, agent_id)

    assert service.get_agent(TENANT, agent_id) == before
    assert {task.assigned_agent_id for task in service.list_tasks(TENANT)} == {agent_id}


def test_deleting_idle_last_agent_is_allowed(service):
    (agent_id,) = _add_agents(service, "Ann")
    assert service.delete_agent(TENANT, agent_id) == 0
    assert service.list_agents(TENANT) == []


def test_duplicate_agent_email_conflicts(service):
    _add_agents(service, "Ann")
    with pytest.raises(ConflictError):
        _add_agents(service, "Ann")
    # other tenants have their own namespace
    _add_agents(service, "Ann", tenant="globex")


def test_task_status_and_deletion(service):
    (agent_id,) = _add_agents(service, "Ann")
    service.upload_records(TENANT, _rows(2))
    task = service.list_tasks(TENANT)[0]

    completed = service.update_task_status(TENANT, task.task_id, "completed")
    assert completed.completed_at is not None
    again = service.update_task_status(TENANT, task.task_id, "completed")
    assert again.completed_at == completed.completed_at
    reopened = service.update_task_status(TENANT, task.task_id, "pending")
    assert reopened.completed_at is None

    service.delete_task(TENANT, task.task_id)
    assert task.task_id not in service.get_agent(TENANT, agent_id).assigned_tasks
    assert len(service.list_tasks(TENANT)) == 1
    _assert_consistent(service)

    with pytest.raises(NotFoundError):
        service.delete_task(TENANT, task.task_id)


def test_tenants_are_isolated(service):
    (acme_agent,) = _add_agents(service, "Ann")
    (globex_agent,) = _add_agents(service, "Ben", tenant="globex")
    service.upload_records(TENANT, _rows(3))

    assert service.list_tasks("globex") == []
    assert service.get_agent("globex", globex_agent).assigned_tasks == []
    assert Counter(task.assigned_agent_id for task in service.list_tasks(TENANT)) == {acme_agent: 3}
    with pytest.raises(NotFoundError):
        service.get_agent("globex", acme_agent)


def _run_concurrently(*targets):
    threads = [threading.Thread(target=target) for target in targets]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)
    assert not any(thread.is_alive() for thread in threads)


def test_concurrent_redistributions_keep_references_consistent():
    repository = SlowRepository()
    service = AllocationService(repository, settings=AllocationSettings())
    _add_agents(service, "Ann", "Ben", "Cal")
    service.upload_records(TENANT, _rows(60))

    failures = []

    def redistribute():
        try:
            service.redistribute(TENANT)
        except Exception as exc:
            failures.append(exc)

    def add_agent():
        try:
            _add_agents(service, "Dan")
        except Exception as exc:
            failures.append(exc)

    repository.slow = True
    _run_concurrently(*[redistribute] * 6, add_agent)
    repository.slow = False

    assert failures == []
    _assert_consistent(service)
    assert sorted(_loads(service).values()) == [15, 15, 15, 15]
    assert all(task.assigned_agent_id for task in service.list_tasks(TENANT))


def test_tenant_locks_serialise_one_tenant_only():
    locks = TenantLocks()
    inside = {"acme": 0, "globex": 0}
    overlap = {"acme": 0, "globex": 0}
    guard = threading.Lock()

    def work(tenant_id):
        with locks.hold(tenant_id):
            with guard:
                inside[tenant_id] += 1
                overlap[tenant_id] = max(overlap[tenant_id], inside[tenant_id])
            time.sleep(0.01)
            with guard:
                inside[tenant_id] -= 1

    _run_concurrently(*[lambda: work("acme")] * 5, *[lambda: work("globex")] * 5)
    assert overlap == {"acme": 1, "globex": 1}

    other_tenant = []
    with locks.hold("acme"):
        _run_concurrently(lambda: other_tenant.append(locks.get("globex").acquire(timeout=1)))
    assert other_tenant == [True]


def test_task_status_payload_accepts_task_statuses_only():
    for status in get_args(TaskStatus):
        assert TaskStatusUpdate(status=status).status == status
    with pytest.raises(PayloadError):
        TaskStatusUpdate(status="archived")

    task = Task(task_id="t1", tenant_id=TENANT, name="Ann", phone="5550000001", sequence=1)
    assert task.status == "pending"
    assert task.is_active


def test_upload_records_reads_a_spreadsheet_source(service):
    ann, ben = _add_agents(service, "Ann", "Ben")
    source = SpreadsheetRecordSource(b"FirstName,Phone\nCara,5550000001\nDev,5550000002\n,\n", "calls.csv")

    result = service.upload_records(TENANT, source)

    assert result.task_count == 2
    assert _loads(service) == {ann: 1, ben: 1}
    _assert_consistent(service)
