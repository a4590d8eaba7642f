from datetime import UTC

import pytest
from kungfu import Error, Ok
from sqlalchemy.exc import SQLAlchemyError

from storefront.blob import BlobError, MemoryBlobStore, blob_store_from
from storefront.importing import (
    ImportErrorKind,
    ImportJobController,
    ImportQueue,
    ImportService,
    InvalidFileError,
    JobNotFoundError,
    JobStatus,
    NoStoreError,
    SourceUnavailableError,
    is_csv,
    upload_key,
)
from tests.helpers import err, ok

pytestmark = pytest.mark.anyio

CSV = b"name,price,stock\nLamp,19.90,3\nChair,,1\n"


def unreachable_database():
    raise SQLAlchemyError("database is down")


class DropsAfter:
    """Hands out real sessions, then fails once the allowance is used up."""

    def __init__(self, session_factory, *, sessions):
        self.session_factory = session_factory
        self.left = sessions

    def __call__(self):
        if self.left == 0:
            raise SQLAlchemyError("connection lost")
        self.left -= 1
        return self.session_factory()


@pytest.fixture
def blobs():
    return MemoryBlobStore()


@pytest.fixture
async def queue(database, blobs, clock):
    queue = ImportQueue(ImportJobController(database, blobs, clock=clock))
    await queue.start()
    yield queue
    await queue.stop(drain=False)


@pytest.fixture
def service(database, blobs, queue, clock):
    return ImportService(database, blobs, queue, clock=clock, max_upload_bytes=1024)


class TestUpload:
    async def test_stores_file_and_queues_job(self, service, seed, blobs, queue):
        store_id = await seed.store("owner-1")

        receipt = ok(await service.upload_and_import("owner-1", CSV, "products.csv", "text/csv"))

        assert receipt.filename == "products.csv"
        assert receipt.size == len(CSV)
        key = receipt.file_url.removeprefix("memory://blobs/")
        assert key.startswith("csv-uploads/owner-1/")
        assert key.endswith("-products.csv")
        assert blobs.metadata(key) == {
            "userId": "owner-1",
            "storeId": store_id,
            "originalName": "products.csv",
        }

        await queue.join()

        view = ok(await service.get_job_status(receipt.job_id))
        assert view.status is JobStatus.COMPLETED_WITH_ERRORS
        assert (view.total_rows, view.processed_rows, view.error_rows) == (2, 1, 1)
        assert view.progress == 100
        assert set(await seed.products_in(store_id)) == {"Lamp"}

    async def test_job_starts_pending(self, database, blobs, seed, clock):
        await seed.store("owner-1")
        idle = ImportQueue(ImportJobController(database, blobs, clock=clock))
        service = ImportService(database, blobs, idle, clock=clock)

        receipt = ok(await service.upload_and_import("owner-1", CSV, "products.csv", None))

        view = ok(await service.get_job_status(receipt.job_id))
        assert view.status is JobStatus.PENDING
        assert view.progress == 0
        assert idle.pending == 1

    async def test_non_csv_is_rejected(self, service, seed, blobs):
        await seed.store("owner-1")

        error = err(await service.upload_and_import("owner-1", b"%PDF", "report.pdf", "application/pdf"))

        assert isinstance(error, InvalidFileError)
        assert error.kind is ImportErrorKind.INVALID_FILE
        assert error.message == "Only CSV files are allowed"
        assert not error.too_large

    async def test_oversized_file_is_rejected(self, service, seed):
        await seed.store("owner-1")

        error = err(await service.upload_and_import("owner-1", b"x" * 2048, "big.csv", "text/csv"))

        assert isinstance(error, InvalidFileError)
        assert error.too_large

    async def test_user_without_store(self, service, blobs):
        error = err(await service.upload_and_import("stranger", CSV, "products.csv", "text/csv"))

        assert isinstance(error, NoStoreError)
        assert error.message == "User has no registered store"

    async def test_blob_failure_is_source_unavailable(self, database, queue, seed, clock):
        await seed.store("owner-1")

        async def put(key, data, content_type, metadata):
            return Error(BlobError("bucket full"))

        async def get(key):
            return Error(BlobError("not used"))

        async def delete(key):
            return Ok(False)

        service = ImportService(database, blob_store_from(put, get, delete), queue, clock=clock)

        error = err(await service.upload_and_import("owner-1", CSV, "products.csv", "text/csv"))

        assert isinstance(error, SourceUnavailableError)
        assert error.message == "bucket full"

    async def test_stopped_queue_is_source_unavailable(self, database, blobs, seed, clock):
        await seed.store("owner-1")
        stopped = ImportQueue(ImportJobController(database, blobs, clock=clock))
        await stopped.start()
        await stopped.stop()
        service = ImportService(database, blobs, stopped, clock=clock)

        error = err(await service.upload_and_import("owner-1", CSV, "products.csv", "text/csv"))

        assert isinstance(error, SourceUnavailableError)

    async def test_unreachable_database_is_source_unavailable(self, blobs, queue, clock):
        service = ImportService(unreachable_database, blobs, queue, clock=clock)

        error = err(await service.upload_and_import("owner-1", CSV, "products.csv", "text/csv"))

        assert isinstance(error, SourceUnavailableError)
        assert error.message == "Database unavailable"

    async def test_upload_is_removed_when_the_job_cannot_be_created(
        self, database, blobs, seed, clock
    ):
        await seed.store("owner-1")
        idle = ImportQueue(ImportJobController(database, blobs, clock=clock))
        service = ImportService(DropsAfter(database, sessions=1), blobs, idle, clock=clock)
        key = upload_key(
            "owner-1", "products.csv", int(clock().replace(tzinfo=UTC).timestamp() * 1000)
        )

        error = err(await service.upload_and_import("owner-1", CSV, "products.csv", "text/csv"))

        assert isinstance(error, SourceUnavailableError)
        assert error.message == "Database unavailable"
        assert key not in blobs
        assert idle.pending == 0


class TestJobStatus:
    async def test_unknown_job(self, service):
        error = err(await service.get_job_status("missing"))

        assert isinstance(error, JobNotFoundError)
        assert error.kind is ImportErrorKind.JOB_NOT_FOUND

    async def test_other_users_job_is_not_found(self, service, seed, queue):
        await seed.store("owner-1")
        receipt = ok(await service.upload_and_import("owner-1", CSV, "products.csv", "text/csv"))

        assert isinstance(err(await service.get_job_status(receipt.job_id, "owner-2")), JobNotFoundError)
        ok(await service.get_job_status(receipt.job_id, "owner-1"))

    async def test_unreachable_database_is_source_unavailable(self, blobs, queue, clock):
        service = ImportService(unreachable_database, blobs, queue, clock=clock)

        error = err(await service.get_job_status("job-1"))

        assert isinstance(error, SourceUnavailableError)
        assert error.kind is ImportErrorKind.SOURCE_UNAVAILABLE


class TestHelpers:
    @pytest.mark.parametrize(
        ("filename", "mime", "expected"),
        [
            ("products.csv", None, True),
            ("PRODUCTS.CSV", "application/octet-stream", True),
            ("export", "text/csv", True),
            ("export", "text/csv; charset=utf-8", True),
            ("export.txt", "application/vnd.ms-excel", True),
            ("export.txt", "text/plain", False),
            ("export", None, False),
        ],
    )
    def test_is_csv(self, filename, mime, expected):
        assert is_csv(filename, mime) is expected

    def test_upload_key_keeps_only_the_basename(self):
        assert upload_key("u1", "../../etc/passwd.csv", 1700) == "csv-uploads/u1/1700-passwd.csv"
        assert upload_key("u1", "C:\\data\\items.csv", 5) == "csv-uploads/u1/5-items.csv"
        assert upload_key("u1", "", 5) == "csv-uploads/u1/5-upload.csv"
