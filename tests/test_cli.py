import asyncio

import pytest

from storefront import cli, db
from tests.conftest import FrozenClock, Seed


@pytest.fixture
def database_url(tmp_path, monkeypatch):
    monkeypatch.setenv("STOREFRONT_BLOB_ROOT", str(tmp_path / "blobs"))
    monkeypatch.setattr(cli, "configure_logging", lambda *args, **kwargs: None)
    return f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}"


async def _seed_store(url: str, owner_id: str) -> None:
    session_factory, engine = await db.create_database(url)
    try:
        await Seed(session_factory, FrozenClock()).store(owner_id)
    finally:
        await engine.dispose()


class TestCli:
    def test_init_db(self, database_url, tmp_path, capsys):
        assert cli.main(["--database", database_url, "init-db"]) == 0

        assert (tmp_path / "cli.db").exists()
        assert "Schema ready" in capsys.readouterr().out

    def test_import_waits_for_the_job(self, database_url, tmp_path, capsys):
        asyncio.run(_seed_store(database_url, "owner-1"))
        source = tmp_path / "products.csv"
        source.write_bytes(b"name,price\nLamp,19.90\nChair,oops\n")

        code = cli.main(["--database", database_url, "import", str(source), "--user", "owner-1"])

        out = capsys.readouterr().out
        assert code == 0
        assert "COMPLETED_WITH_ERRORS total=2 processed=1 errors=1" in out
        assert "error report: file://blobs/csv-errors/" in out

    def test_import_fails_without_store(self, database_url, tmp_path, capsys):
        source = tmp_path / "products.csv"
        source.write_bytes(b"name,price\nLamp,1\n")

        code = cli.main(["--database", database_url, "import", str(source), "--user", "nobody"])

        assert code == 1
        assert "User has no registered store" in capsys.readouterr().err

    def test_import_missing_file(self, database_url, tmp_path):
        code = cli.main(
            ["--database", database_url, "import", str(tmp_path / "nope.csv"), "--user", "u"]
        )

        assert code == 2

    def test_reap(self, database_url, capsys):
        assert cli.main(["--database", database_url, "reap", "--minutes", "5"]) == 0

        assert "0 stale job(s) failed" in capsys.readouterr().err
