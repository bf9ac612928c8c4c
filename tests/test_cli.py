import io
import json

import pytest

from ermate.cli import main
from ermate.models import Column, Schema, Table
from ermate.serialization import from_json, to_json

DDL = """
CREATE TABLE users (id INTEGER PRIMARY KEY, name VARCHAR(255));
CREATE TABLE posts (id INTEGER PRIMARY KEY, user_id INTEGER REFERENCES users(id));
"""


def run_cli(capsys, *argv):
    """Run the CLI; returns (exit code, decoded stdout)."""
    with pytest.raises(SystemExit) as excinfo:
        main(list(argv))
    out = capsys.readouterr().out
    return excinfo.value.code, json.loads(out)


@pytest.fixture(name="ddl_file")
def ddl_file(tmp_path):
    path = tmp_path / "schema.sql"
    path.write_text(DDL, encoding="utf-8")
    return path


@pytest.fixture(name="blog_file")
def blog_file(tmp_path, blog):
    path = tmp_path / "blog.json"
    path.write_text(to_json(blog), encoding="utf-8")
    return path


class TestImportExport:
    def test_import_to_stdout(self, capsys, ddl_file):
        code, out = run_cli(capsys, "import-sql", "--file", str(ddl_file))
        assert code == 0
        assert [t["name"] for t in out["schema"]["tables"]] == ["users", "posts"]

    def test_import_from_stdin(self, capsys, monkeypatch):
        monkeypatch.setattr("sys.stdin", io.StringIO(DDL))
        code, out = run_cli(capsys, "import-sql", "--file", "-", "--dialect", "PostgreSQL")
        assert code == 0
        assert len(out["schema"]["relationships"]) == 1

    def test_import_to_file(self, capsys, ddl_file, tmp_path):
        target = tmp_path / "out.json"
        code, out = run_cli(capsys, "import-sql", "--file", str(ddl_file), "--output", str(target))
        assert code == 0
        assert out == {"status": "ok", "file_path": str(target), "tables": 2, "relationships": 1}
        assert len(from_json(target.read_text(encoding="utf-8")).tables) == 2

    def test_invalid_sql(self, capsys, tmp_path):
        path = tmp_path / "broken.sql"
        path.write_text("CREATE TABLE users (id INTEGER", encoding="utf-8")
        code, out = run_cli(capsys, "import-sql", "--file", str(path))
        assert code == 1
        assert out["status"] == "error"

    def test_export(self, capsys, blog_file):
        code, out = run_cli(capsys, "export-sql", "--file", str(blog_file), "--dialect", "MySQL")
        assert code == 0
        assert out["sql"].startswith("CREATE TABLE `users`")

    def test_export_to_file(self, capsys, blog_file, tmp_path):
        target = tmp_path / "blog.sql"
        code, _ = run_cli(capsys, "export-sql", "--file", str(blog_file), "--output", str(target))
        assert code == 0
        assert target.read_text(encoding="utf-8").startswith('CREATE TABLE "users"')

    def test_missing_file(self, capsys, tmp_path):
        code, out = run_cli(capsys, "export-sql", "--file", str(tmp_path / "nope.json"))
        assert code == 1
        assert out["status"] == "error"


class TestChecks:
    def test_valid(self, capsys, blog_file):
        code, out = run_cli(capsys, "validate", "--file", str(blog_file))
        assert code == 0
        assert out["status"] == "ok"
        assert out["summary"]["valid"] is True

    def test_invalid(self, capsys, tmp_path):
        schema = Schema(tables=(
            Table(id="t_1", name="users", columns=(Column(id="c_1", name="id", constraints=["PRIMARY KEY"]),)),
            Table(id="t_2", name="USERS", columns=(Column(id="c_2", name="id", constraints=["PRIMARY KEY"]),)),
        ))
        path = tmp_path / "dupes.json"
        path.write_text(to_json(schema), encoding="utf-8")
        code, out = run_cli(capsys, "validate", "--file", str(path))
        assert code == 2
        assert out["status"] == "invalid"
        assert out["issues"][0]["tableId"] == "t_2"

    def test_malformed_json(self, capsys, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text('{"version": 1, "tables": []}', encoding="utf-8")
        code, out = run_cli(capsys, "validate", "--file", str(path))
        assert code == 1
        assert out["error"] == "Invalid schema: missing relationships array"


class TestArrange:
    def test_layout_overwrites_input(self, capsys, blog_file):
        code, out = run_cli(capsys, "layout", "--file", str(blog_file))
        assert code == 0
        assert out["file_path"] == str(blog_file)
        tables = {t.name: t for t in from_json(blog_file.read_text(encoding="utf-8")).tables}
        assert tables["posts"].position.y < tables["users"].position.y

    def test_junction(self, capsys, blog_file, blog):
        users, posts = blog.tables
        target = blog_file.parent / "junction.json"
        code, out = run_cli(capsys, "junction", "--file", str(blog_file),
                            "--table-a", users.id, "--table-b", posts.id, "--output", str(target))
        assert code == 0
        assert out["tables"] == 3
        assert out["relationships"] == 3

    def test_junction_noop_is_an_error(self, capsys, blog_file):
        code, out = run_cli(capsys, "junction", "--file", str(blog_file),
                            "--table-a", "t_x", "--table-b", "t_y")
        assert code == 1
        assert "primary key" in out["error"]
