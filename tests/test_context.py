import json
import logging
import uuid

import pytest

from webcore.context import (
    X_REQUEST_ID_CONTEXT,
    Context,
    ContextBuilder,
    JwtClaim,
    LogEntry,
    Role,
    Session,
    get_role_from_session,
    get_user_id_from_session,
    get_user_id_int_from_session,
    new_http_client_context,
    new_session,
)
from webcore.errors import CodeErrEntity


class _ListHandler(logging.Handler):
    def __init__(self):
        super().__init__()
        self.records = []

    def emit(self, record):
        self.records.append(record)


@pytest.fixture
def captured():
    logger = logging.getLogger("webcore-test-capture")
    logger.propagate = False
    logger.setLevel(logging.INFO)
    handler = _ListHandler()
    logger.addHandler(handler)
    yield logger, handler
    logger.removeHandler(handler)


def test_context_with_value_is_immutable():
    base = Context()
    child = base.with_value("k", "v")
    assert child.value("k") == "v"
    assert base.value("k") is None


def test_builder_round_trips_request_id():
    ctx = ContextBuilder(Context()).set_request_id("req-1").context()
    assert ContextBuilder(ctx).get_request_id() == "req-1"


def test_missing_request_id_is_random_uuid4():
    builder = ContextBuilder(Context())
    first = uuid.UUID(builder.get_request_id())
    second = uuid.UUID(builder.get_request_id())
    assert first.version == 4
    assert first != second


def test_missing_session_is_none():
    assert ContextBuilder().get_session() is None


def test_builder_round_trips_session():
    session = Session(user_id="7", privileges=frozenset({"read"}))
    ctx = ContextBuilder().set_session(session).context()
    assert ContextBuilder(ctx).get_session() == session


def test_logger_entry_fields_reach_handler(captured):
    logger, handler = captured
    entry = LogEntry(logger).with_field("request_id", "r1").with_fields({"status": 500})
    assert dict(entry.fields) == {"request_id": "r1", "status": 500}
    ctx = ContextBuilder().set_logger(entry).context()
    stored = ContextBuilder(ctx).get_logger()
    assert dict(stored.fields) == {"request_id": "r1", "status": 500}
    stored.error(ValueError("bad"))
    record = handler.records[0]
    assert record.levelno == logging.ERROR
    assert record.getMessage() == "bad"
    assert record.fields == {"request_id": "r1", "status": 500}


def test_with_field_does_not_change_original(captured):
    logger, _ = captured
    entry = LogEntry(logger)
    entry.with_field("a", 1)
    assert dict(entry.fields) == {}


def test_default_logger_writes_json_to_stdout(capsys):
    ContextBuilder().get_logger().with_field("request_id", "r9").info("hello")
    payload = json.loads(capsys.readouterr().out)
    assert payload["msg"] == "hello"
    assert payload["level"] == "info"
    assert payload["request_id"] == "r9"


def test_new_session_from_claim():
    claim = JwtClaim(sub="42", privileges=["a", "b"], role=Role(id=3, code="admin"))
    session = new_session(claim)
    assert session.user_id == "42"
    assert session.get_privileges() == ["a", "b"]
    assert session.role == Role(id=3, code="admin")
    assert session.get_user_id_int() == 42


def test_check_privileges():
    session = new_session(JwtClaim(sub="1", privileges=["read", "write"]))
    session.check_privilege("read")
    session.check_privileges(["read", "write"])
    with pytest.raises(CodeErrEntity) as info:
        session.check_privileges(["read", "delete"])
    assert info.value.code == "ERR403011"


@pytest.mark.parametrize("user_id", ["abc", "", "1.5", str(2**63), " 1"])
def test_user_id_int_rejects_non_int64(user_id):
    with pytest.raises(ValueError):
        Session(user_id=user_id).get_user_id_int()


def test_user_id_int_accepts_signed():
    assert Session(user_id="-12").get_user_id_int() == -12


def test_to_jwt_claim_maps_fields():
    claim = JwtClaim(iss="me", sub="5", exp=100, iat=50, jti="j", privileges=["p"], role=Role(1, "r"), platform="web")
    mapped = claim.to_jwt_claim()
    assert mapped["sub"] == claim.sub
    assert mapped["jti"] == claim.jti
    assert mapped["exp"] == claim.exp
    assert mapped["role"] == {"id": 1, "code": "r"}
    assert mapped["platform"] == "web"
    assert set(mapped) == {"sub", "iss", "iat", "exp", "jti", "privileges", "role", "platform"}


def test_session_helpers_without_session():
    ctx = Context()
    assert get_user_id_from_session(ctx) == ""
    assert get_role_from_session(ctx) == Role()
    with pytest.raises(CodeErrEntity) as info:
        get_user_id_int_from_session(ctx)
    assert info.value.code == "ERR401001"


def test_session_helpers_with_session():
    session = Session(user_id="99", role=Role(2, "user"))
    ctx = ContextBuilder().set_session(session).context()
    assert get_user_id_from_session(ctx) == "99"
    assert get_user_id_int_from_session(ctx) == 99
    assert get_role_from_session(ctx) == Role(2, "user")


def test_http_client_context_carries_request_id():
    ctx = ContextBuilder().set_request_id("abc").context()
    assert new_http_client_context(ctx).value(X_REQUEST_ID_CONTEXT) == "abc"