"""标签清理命令行工具测试"""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, scoped_session

from ytaggable import cli
from ytaggable.config import ConfigLoader
from ytaggable.orm import Base, CoreModel, db_manager, enable_sqlite_savepoints

from tests.helpers import Article, Tag


TAG_MODEL = "tests.helpers.taggable_models:Tag"


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch):
    """命令行会配置根日志器，测试中跳过"""
    monkeypatch.setattr(cli, "setup_root_logger", lambda **kwargs: None)
    monkeypatch.delenv("YTAG_DB_URL", raising=False)
    monkeypatch.delenv("YTAG_TAG_MODEL", raising=False)
    ConfigLoader.clear_cache()
    yield
    db_manager.dispose()


@pytest.fixture
def database_url(tmp_path):
    """准备文件数据库：1 个使用中的标签与 3 个无关联标签"""
    url = f"sqlite:///{tmp_path / 'tags.db'}"
    engine = enable_sqlite_savepoints(create_engine(url))
    Base.metadata.create_all(bind=engine)
    session_scope = scoped_session(sessionmaker(autocommit=False, autoflush=False, bind=engine))
    CoreModel.query = session_scope.query_property()

    Article(title="a1").save().tag("used")
    Tag.find_or_create("orphan")
    Tag.find_or_create("mine", user_id=7, type="topic")
    Tag.find_or_create("other", user_id=8)
    session_scope.commit()
    session_scope.remove()
    engine.dispose()
    return url


def _remaining_tags(url):
    engine = create_engine(url)
    session = sessionmaker(bind=engine)()
    try:
        return sorted(t.name for t in session.query(Tag).all())
    finally:
        session.close()
        engine.dispose()


class TestCleanupCli:

    def test_force_deletes_all_unused(self, database_url, capsys):
        code = cli.main(["--database-url", database_url, "--tag-model", TAG_MODEL, "--force"])

        out = capsys.readouterr().out
        assert code == 0
        assert "Looking for unused tags..." in out
        assert "Found 3 unused tags." in out
        assert "Successfully deleted 3 unused tags." in out
        assert _remaining_tags(database_url) == ["used"]

    def test_user_scope(self, database_url, capsys):
        code = cli.main(["--database-url", database_url, "--tag-model", TAG_MODEL, "--user", "7", "--force"])

        out = capsys.readouterr().out
        assert code == 0
        assert "Looking for unused tags for user 7..." in out
        assert "Found 1 unused tags." in out
        assert _remaining_tags(database_url) == ["orphan", "other", "used"]

    def test_global_scope(self, database_url, capsys):
        cli.main(["--database-url", database_url, "--tag-model", TAG_MODEL, "--global", "--force"])

        out = capsys.readouterr().out
        assert "Looking for unused global tags..." in out
        assert _remaining_tags(database_url) == ["mine", "other", "used"]

    def test_confirm_cancel(self, database_url, capsys, monkeypatch):
        monkeypatch.setattr("builtins.input", lambda prompt: "n")

        code = cli.main(["--database-url", database_url, "--tag-model", TAG_MODEL])

        out = capsys.readouterr().out
        assert code == 0
        assert "Cleanup cancelled." in out
        assert "| ID " in out
        assert "Global" in out
        assert "topic" in out
        assert "None" in out
        assert len(_remaining_tags(database_url)) == 4

    def test_confirm_yes(self, database_url, capsys, monkeypatch):
        monkeypatch.setattr("builtins.input", lambda prompt: "yes")

        code = cli.main(["--database-url", database_url, "--tag-model", TAG_MODEL, "--user", "8"])

        assert code == 0
        assert "Successfully deleted 1 unused tags." in capsys.readouterr().out
        assert _remaining_tags(database_url) == ["mine", "orphan", "used"]

    def test_deletes_through_tag_store(self, database_url, monkeypatch, capsys):
        calls = []
        original = Tag.cleanup_unused.__func__

        def recording_cleanup(cls, user_id=None, global_only=False):
            calls.append((user_id, global_only))
            return original(cls, user_id, global_only)

        monkeypatch.setattr(Tag, "cleanup_unused", classmethod(recording_cleanup))

        code = cli.main(["--database-url", database_url, "--tag-model", TAG_MODEL, "--user", "7", "--force"])

        assert code == 0
        assert calls == [(7, False)]
        assert "Successfully deleted 1 unused tags." in capsys.readouterr().out

    def test_nothing_to_delete(self, database_url, capsys):
        code = cli.main(["--database-url", database_url, "--tag-model", TAG_MODEL, "--user", "99"])

        out = capsys.readouterr().out
        assert code == 0
        assert "Found 0 unused tags." in out
        assert "Successfully" not in out

    def test_config_file(self, database_url, temp_file, capsys):
        path = temp_file(
            "cli/settings.yaml",
            f'tag_model: "{TAG_MODEL}"\ndatabase:\n  url: "{database_url}"\n',
        )

        code = cli.main(["--config", path, "--force"])

        assert code == 0
        assert _remaining_tags(database_url) == ["used"]


class TestCliErrors:

    def test_database_url_required(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            cli.main([])
        assert exc_info.value.code == 2
        assert "--database-url" in capsys.readouterr().err

    def test_user_and_global_exclusive(self):
        with pytest.raises(SystemExit) as exc_info:
            cli.main(["--database-url", "sqlite://", "--user", "1", "--global"])
        assert exc_info.value.code == 2

    def test_bad_tag_model(self, database_url):
        assert cli.main(["--database-url", database_url, "--tag-model", "no_such_pkg_xyz:Tag"]) == 1

    def test_not_a_tag_model(self, database_url):
        assert cli.main(["--database-url", database_url, "--tag-model", "tests.helpers.taggable_models:Article"]) == 1

    def test_missing_config_file(self, tmp_path):
        with pytest.raises(SystemExit) as exc_info:
            cli.main(["--config", str(tmp_path / "missing.yaml")])
        assert exc_info.value.code == 2


class TestFormatting:

    def test_format_table(self):
        table = cli.format_table([["1", "python", "Global", "None"]])
        lines = table.splitlines()

        assert lines[1] == "| ID | Name   | User ID | Type |"
        assert lines[3] == "| 1  | python | Global  | None |"
        assert lines[0] == lines[2] == lines[4]
