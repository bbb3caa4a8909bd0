import io
from http import HTTPStatus

from webcore.context import Context
from webcore.web import Exchange, HTTPError, Request, ResponseWriter, get_copy_payload_from_request


def test_copy_payload_leaves_body_readable():
    payload = b'{"a": 1}'
    request = Request(method="POST", body=io.BytesIO(payload))
    assert get_copy_payload_from_request(request) == payload
    assert request.body.read() == payload
    assert get_copy_payload_from_request(request) == payload


def test_copy_payload_without_body():
    assert get_copy_payload_from_request(Request()) is None


def test_headers_are_case_insensitive():
    request = Request(headers={"Authorization": "Bearer token"})
    assert request.headers.get("authorization") == "Bearer token"


def test_clone_binds_new_context_and_keeps_original():
    original_ctx = Context()
    request = Request(uri="/x", headers={"A": "1"}, context=original_ctx)
    new_ctx = original_ctx.with_value("k", "v")
    clone = request.clone(new_ctx)
    assert clone.context is new_ctx
    assert request.context is original_ctx
    assert clone.uri == request.uri
    clone.headers["A"] = "2"
    assert request.headers["A"] == "1"


def test_real_ip_prefers_first_forwarded_entry():
    request = Request(headers={"X-Forwarded-For": " 10.0.0.1 , 10.0.0.2", "X-Real-Ip": "10.0.0.9"}, remote_addr="127.0.0.1:80")
    assert request.real_ip() == "10.0.0.1"


def test_real_ip_uses_real_ip_header():
    assert Request(headers={"X-Real-Ip": "[::1]"}, remote_addr="127.0.0.1:80").real_ip() == "::1"


def test_real_ip_falls_back_to_remote_address():
    assert Request(remote_addr="192.0.2.5:4321").real_ip() == "192.0.2.5"
    assert Request(remote_addr="[2001:db8::1]:443").real_ip() == "2001:db8::1"
    assert Request(remote_addr="no-port").real_ip() == ""


def test_write_commits_ok_status():
    writer = ResponseWriter()
    assert writer.write(b"abc") == len(b"abc")
    assert writer.status == HTTPStatus.OK
    assert writer.body == b"abc"


def test_first_status_wins():
    writer = ResponseWriter()
    writer.write_header(HTTPStatus.CREATED)
    writer.write_header(HTTPStatus.NOT_FOUND)
    writer.write(b"x")
    assert writer.status == HTTPStatus.CREATED


def test_exchange_set_request_replaces_request():
    exchange = Exchange()
    replacement = Request(uri="/new")
    exchange.set_request(replacement)
    assert exchange.request is replacement


def test_http_error_carries_code_and_message():
    err = HTTPError(HTTPStatus.NOT_FOUND, "missing")
    assert err.code == HTTPStatus.NOT_FOUND
    assert err.message == "missing"
    assert "missing" in str(err)