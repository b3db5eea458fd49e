"""
Unit Tests: Provisioning

Test cases:
- First call creates database, container and procedure; later calls create nothing
- Concurrent initializers both succeed and leave exactly one of each object
- Existing procedures are not re-read from the package
- Store failures other than not-found/conflict raise ProvisioningError
"""

import asyncio

import pytest

from fakes import conflict, http_error
from smartoffice.data.exceptions import ProvisioningError
from smartoffice.data.procedures import load_procedure
from smartoffice.data.provisioning import ProvisioningManager


def ensure(manager, **overrides):
    arguments = dict(
        database_name="catalog-db",
        collection_name="controls",
        procedure_name="BulkImport",
        procedure_body=load_procedure,
    )
    arguments.update(overrides)
    return manager.ensure_ready(**arguments)


def test_first_call_creates_everything(provider, fake_client):
    result = asyncio.run(ensure(ProvisioningManager(provider), throughput_units=1000, partition_key_path="/category"))

    assert result.database_created and result.container_created and result.procedure_created
    assert fake_client.created == [
        ("database", "catalog-db"),
        ("container", "controls"),
        ("procedure", "BulkImport"),
    ]
    container = fake_client.container("catalog-db", "controls")
    assert container.partition_key_path == "/category"
    assert container.throughput == 1000
    assert container.procedures["BulkImport"]["body"] == load_procedure()


def test_second_call_creates_nothing(provider, fake_client):
    manager = ProvisioningManager(provider)

    async def run():
        await ensure(manager)
        before = len(fake_client.requests)
        result = await ensure(manager)
        return result, fake_client.requests[before:]

    result, requests = asyncio.run(run())

    assert not result.created_anything
    assert [operation for operation, _ in requests] == [
        "read_database",
        "read_container",
        "read_procedure",
    ]
    assert len(fake_client.created) == 3


def test_concurrent_initializers_both_succeed(provider, fake_client):
    async def run():
        return await asyncio.gather(
            ensure(ProvisioningManager(provider)),
            ensure(ProvisioningManager(provider)),
        )

    results = asyncio.run(run())

    assert sum(r.database_created for r in results) == 1
    assert sum(r.container_created for r in results) == 1
    assert sum(r.procedure_created for r in results) == 1
    assert sorted(kind for kind, _ in fake_client.created) == ["container", "database", "procedure"]


def test_conflict_on_create_counts_as_success(provider, fake_client):
    fake_client.fail_on["create_database"] = conflict("Database catalog-db")

    result = asyncio.run(ProvisioningManager(provider)._ensure_database(fake_client, "catalog-db"))

    assert result is False


def test_existing_procedure_body_is_not_loaded(provider):
    calls = []

    def body():
        calls.append(1)
        return load_procedure()

    async def run():
        await ensure(ProvisioningManager(provider), procedure_body=body)
        await ensure(ProvisioningManager(provider), procedure_body=body)

    asyncio.run(run())

    assert calls == [1]


def test_literal_procedure_body(provider, fake_client):
    asyncio.run(ensure(ProvisioningManager(provider), procedure_body="function bulkImport(docs) {}"))

    procedure = fake_client.container("catalog-db", "controls").procedures["BulkImport"]
    assert procedure == {"id": "BulkImport", "body": "function bulkImport(docs) {}"}


@pytest.mark.parametrize(
    "operation",
    ["read_database", "create_database", "create_container", "read_procedure", "create_procedure"],
)
def test_store_failures_raise_provisioning_error(provider, fake_client, operation):
    fake_client.fail_on[operation] = http_error(503, "Service unavailable")

    with pytest.raises(ProvisioningError) as excinfo:
        asyncio.run(ensure(ProvisioningManager(provider)))

    assert excinfo.value.status_code == 503
