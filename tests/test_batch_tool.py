"""
Batch Tool CLI Tests
====================

Argument parsing, request building and paste-file loading. The HTTP client is
replaced by a stub.
"""

import json

import pytest

from utils.batch_tool import build_parser, build_request_body, cmd_commit, load_paste_rows, main


def _args(*argv):
    return build_parser().parse_args(list(argv))


class TestBuildRequestBody:

    @pytest.mark.readonly
    def test_tag_query(self):
        args = _args("preview", "ingredients", "--mode", "tags_any", "--value", "Stale|old",
                     "--op", "tags_remove", "--remove", "stale,old")
        body = build_request_body(args)

        assert body["mode"] == "query"
        assert body["filters"] == {"field": "tags", "mode": "tags_any", "value": ["Stale", "old"]}
        assert body["operation"] == {"type": "tags_remove", "payload": {"remove": ["stale", "old"]}}
        assert body["options"] == {"onlyImportedPlaceholders": False, "skipIfSame": True}

    @pytest.mark.readonly
    def test_description_query_with_options(self):
        args = _args("commit", "cocktails", "--mode", "regex", "--value", "^Imported",
                     "--op", "description_find_replace", "--find", "Imported", "--replace", "Fresh",
                     "--regex", "--only-placeholders", "--no-skip-same", "--select", "a", "--select", "b",
                     "--note", "cleanup", "--limit", "50")
        body = build_request_body(args)

        assert body["filters"] == {"field": "description", "mode": "regex", "value": "^Imported", "limit": 50}
        assert body["operation"]["payload"] == {
            "find": "Imported", "replace": "Fresh", "regex": True, "caseInsensitive": False,
        }
        assert body["options"] == {"onlyImportedPlaceholders": True, "skipIfSame": False}
        assert body["selectIds"] == ["a", "b"]
        assert body["note"] == "cleanup"

    @pytest.mark.readonly
    def test_query_needs_mode_and_op(self):
        with pytest.raises(ValueError):
            build_request_body(_args("preview", "ingredients", "--mode", "empty"))

    @pytest.mark.readonly
    def test_description_set_needs_text(self):
        with pytest.raises(ValueError):
            build_request_body(_args("preview", "ingredients", "--mode", "empty", "--op", "description_set"))


class TestLoadPasteRows:

    @pytest.mark.readonly
    def test_csv(self, tmp_path):
        path = tmp_path / "rows.csv"
        path.write_text(
            "id,name,description,tags\n"
            "ing-1,Lime,Fresh lime,Citrus|Sour\n"
            "ing-2,Mint,,\n"
            ",Orphan,x,y\n",
            encoding="utf-8",
        )
        rows = load_paste_rows(path, max_tags=8)

        assert rows == [
            {"id": "ing-1", "name": "Lime", "proposed": {"description": "Fresh lime", "tags": ["citrus", "sour"]}},
            {"id": "ing-2", "name": "Mint", "proposed": {}},
        ]

    @pytest.mark.readonly
    def test_json_rows(self, tmp_path):
        path = tmp_path / "rows.json"
        path.write_text(json.dumps([
            {"id": "ing-1", "proposed": {"description": "", "tags": '["A", "b"]'}},
            {"id": "ing-2", "description": "flat", "tags": ["X"]},
        ]), encoding="utf-8")
        rows = load_paste_rows(path, max_tags=8)

        assert rows[0] == {"id": "ing-1", "proposed": {"description": "", "tags": ["a", "b"]}}
        assert rows[1] == {"id": "ing-2", "proposed": {"description": "flat", "tags": ["x"]}}

    @pytest.mark.readonly
    def test_csv_without_id_column(self, tmp_path):
        path = tmp_path / "rows.csv"
        path.write_text("name,description\nLime,x\n", encoding="utf-8")
        with pytest.raises(ValueError):
            load_paste_rows(path, max_tags=8)


class _StubClient:
    def __init__(self, preview=None, job=None):
        self.calls = []
        self._preview = preview or {"willUpdate": 1, "skipped": 0, "missing": [], "rows": [], "warnings": {}}
        self._job = job or {"jobId": "j1", "status": "done", "counts": {}}

    def preview(self, body):
        self.calls.append(("preview", body))
        return self._preview

    def commit(self, body):
        self.calls.append(("commit", body))
        return {"jobId": "j1", "status": "pending"}

    def wait_for_job(self, job_id):
        self.calls.append(("wait", job_id))
        return self._job


class TestCommitCommand:

    @pytest.mark.readonly
    def test_yes_skips_prompt_and_waits(self, capsys):
        client = _StubClient()
        args = _args("commit", "ingredients", "--mode", "empty", "--op", "description_set",
                     "--text", "TBD", "--yes", "--wait")
        assert cmd_commit(client, args) == 0
        assert [c[0] for c in client.calls] == ["preview", "commit", "wait"]

    @pytest.mark.readonly
    def test_declined_prompt_does_not_commit(self, monkeypatch):
        monkeypatch.setattr("builtins.input", lambda _prompt: "n")
        client = _StubClient()
        args = _args("commit", "ingredients", "--mode", "empty", "--op", "description_set", "--text", "TBD")
        assert cmd_commit(client, args) == 1
        assert [c[0] for c in client.calls] == ["preview"]

    @pytest.mark.readonly
    def test_nothing_to_update(self):
        client = _StubClient(preview={"willUpdate": 0, "skipped": 3, "missing": [], "rows": []})
        args = _args("commit", "ingredients", "--mode", "empty", "--op", "description_set", "--text", "x", "--yes")
        assert cmd_commit(client, args) == 0
        assert [c[0] for c in client.calls] == ["preview"]

    @pytest.mark.readonly
    def test_failed_job_exit_code(self):
        client = _StubClient(job={"jobId": "j1", "status": "failed", "counts": {}, "errors": [{"message": "x"}]})
        args = _args("commit", "ingredients", "--mode", "empty", "--op", "description_set",
                     "--text", "x", "--yes", "--wait")
        assert cmd_commit(client, args) == 1


class TestMain:

    @pytest.mark.readonly
    def test_missing_paste_file_is_reported(self, tmp_path, capsys):
        code = main(["--url", "http://panel.test", "preview", "ingredients", "--paste", str(tmp_path / "gone.csv")])
        assert code == 2
        assert "❌" in capsys.readouterr().out


class _ExportClient:
    def list_rows(self, collection):
        return [{"id": "ck-1", "name": "Mojito", "description": "Rum, mint", "tags": "classic, tiki"}]


class TestExportCommand:

    @pytest.mark.creates_data
    def test_csv_round_trips_through_paste_loader(self, tmp_path):
        from utils.batch_tool import cmd_export

        out = tmp_path / "cocktails.csv"
        assert cmd_export(_ExportClient(), _args("export", "cocktails", "--out", str(out))) == 0

        rows = load_paste_rows(out, max_tags=8)
        assert rows == [{"id": "ck-1", "name": "Mojito",
                         "proposed": {"description": "Rum, mint", "tags": ["classic", "tiki"]}}]

    @pytest.mark.creates_data
    def test_json_by_suffix(self, tmp_path):
        from utils.batch_tool import cmd_export

        out = tmp_path / "cocktails.json"
        cmd_export(_ExportClient(), _args("export", "cocktails", "--out", str(out)))
        assert json.loads(out.read_text(encoding="utf-8"))[0]["id"] == "ck-1"
