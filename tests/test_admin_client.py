"""
Admin Client Tests
==================

The HTTP session is stubbed; no panel needs to be running.
"""

from unittest.mock import Mock

import pytest
import requests

from admin_client import AdminAPIError, AdminBatchClient, AdminClientError, JobWaitTimeout


def _response(status_code=200, payload=None, text=None):
    response = Mock()
    response.status_code = status_code
    response.text = text if text is not None else ("" if payload is None else "x")
    response.json = Mock(return_value=payload)
    return response


@pytest.fixture
def api():
    client = AdminBatchClient(base_url="http://panel.test/", admin_key="k", session_cookie="cookie-value")
    client.session.request = Mock()
    yield client
    client.close()


class TestRequests:

    @pytest.mark.readonly
    def test_headers_and_cookie(self):
        client = AdminBatchClient(base_url="http://panel.test", admin_key="k", session_cookie="c")
        try:
            assert client.session.headers["X-Admin-Key"] == "k"
            assert client.session.cookies.get("session") == "c"
        finally:
            client.close()

    @pytest.mark.readonly
    def test_preview_posts_body(self, api):
        api.session.request.return_value = _response(payload={"willUpdate": 1})
        body = {"mode": "paste", "collection": "ingredients", "rows": []}

        assert api.preview(body) == {"willUpdate": 1}
        method, url = api.session.request.call_args.args
        assert method == "POST"
        assert url == "http://panel.test/api/admin/batch/preview"
        assert api.session.request.call_args.kwargs["json"] == body

    @pytest.mark.readonly
    def test_job_endpoints(self, api):
        api.session.request.return_value = _response(payload={"jobId": "j1", "status": "pending"})
        api.rollback("j1")
        assert api.session.request.call_args.args == ("POST", "http://panel.test/api/admin/batch/jobs/j1/rollback")
        api.get_job("j1")
        assert api.session.request.call_args.args == ("GET", "http://panel.test/api/admin/batch/jobs/j1")

    @pytest.mark.readonly
    def test_list_rows(self, api):
        api.session.request.return_value = _response(payload=[])
        api.list_rows("cocktails")
        assert api.session.request.call_args.args[1].endswith("/list-cocktails")
        with pytest.raises(AdminClientError):
            api.list_rows("users")


class TestErrors:

    @pytest.mark.readonly
    def test_error_body_becomes_message(self, api):
        api.session.request.return_value = _response(404, {"error": "Not found"})
        with pytest.raises(AdminAPIError) as excinfo:
            api.get_job("nope")
        assert excinfo.value.status_code == 404
        assert excinfo.value.message == "Not found"
        assert "GET /jobs/nope" in str(excinfo.value)

    @pytest.mark.readonly
    def test_non_json_error(self, api):
        response = _response(502, text="Bad Gateway")
        response.json.side_effect = ValueError("no json")
        api.session.request.return_value = response
        with pytest.raises(AdminAPIError) as excinfo:
            api.list_jobs()
        assert excinfo.value.message == "HTTP 502"

    @pytest.mark.readonly
    def test_timeout(self, api):
        api.session.request.side_effect = requests.exceptions.Timeout()
        with pytest.raises(AdminClientError, match="timed out"):
            api.list_jobs()

    @pytest.mark.readonly
    def test_network_error(self, api):
        api.session.request.side_effect = requests.exceptions.ConnectionError("refused")
        with pytest.raises(AdminClientError, match="Network error"):
            api.list_jobs()


class TestWaitForJob:

    @pytest.mark.readonly
    def test_polls_until_terminal(self, api):
        api.session.request.side_effect = [
            _response(payload={"jobId": "j", "status": "pending"}),
            _response(payload={"jobId": "j", "status": "in_progress"}),
            _response(payload={"jobId": "j", "status": "done"}),
        ]
        sleeps = []
        job = api.wait_for_job("j", poll_interval=0.5, sleep=sleeps.append)
        assert job["status"] == "done"
        assert sleeps == [0.5, 0.5]

    @pytest.mark.readonly
    def test_timeout(self, api):
        api.session.request.return_value = _response(payload={"jobId": "j", "status": "pending"})
        with pytest.raises(JobWaitTimeout):
            api.wait_for_job("j", timeout=0, sleep=lambda _s: None)
