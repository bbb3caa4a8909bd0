# webcore

Building blocks for JSON web services: shared error codes, an immutable
request context, user sessions, authenticators, two rate limiters, a uniform
JSON response envelope and middleware that ties them together. Everything
works on the package's own small HTTP model (`webcore.web`), so handlers and
middleware are plain functions that take an `Exchange`.

## Installation

```
pip install webcore
```

To run the test suite:

```
pip install "webcore[test]"
pytest
```

## Modules

| Module | Purpose |
| --- | --- |
| `webcore.errors` | `CodeErr` error codes and the `CodeErrEntity` exceptions they describe; `append_code_err_map` registers or replaces entries. |
| `webcore.context` | `Context`, `ContextBuilder`, `LogEntry`, `Session`, `JwtClaim`, `Role` and the session helpers. |
| `webcore.health` | The `HealthCheck` payload. |
| `webcore.web` | `Request`, `ResponseWriter`, `Exchange`, `HTTPError` and `get_copy_payload_from_request`. |
| `webcore.response` | The `Response` envelope, its `Content`, `Paginator`, `Transformable`, `transform_list` and `transform_list_any`. |
| `webcore.output` | Builds success and error responses and writes them as JSON. |
| `webcore.locales` | English and Indonesian translators for validation messages, `FieldError` and `ValidationErrors`. |
| `webcore.auth` | `Authenticator`, `JwtSigner`, `AuthenticatorJwt`, `AuthenticatorJwtSingleSession`, `AuthenticatorHttpClient`. |
| `webcore.rate` | A token-bucket `Limiter` with `Reservation`s. |
| `webcore.sliding_window` | `RateLimiterSlidingWindowCacheStore`, a per-identifier request counter kept in a cache. |
| `webcore.middleware` | Request id, logging, CORS, authentication, role and privilege checks, rate limiting. |

## A handler end to end

```python
from webcore.middleware import cors_middleware, request_id_middleware
from webcore.output import custom_http_error_handler, write_response_ok
from webcore.web import Exchange, Request


def hello(exchange):
    write_response_ok(exchange, {"hello": "world"})


app = request_id_middleware(cors_middleware(hello))

exchange = Exchange(request=Request(method="GET", uri="/hello"))
try:
    app(exchange)
except Exception as err:
    custom_http_error_handler(err, exchange)

exchange.response.status   # 200
exchange.response.body     # b'{"status":true,"data":{"hello":"world"}}\n'
```

Middleware raise their errors; `custom_http_error_handler` turns any error
into the JSON envelope and logs it with its status.

## Errors

Each code is a module-level constant such as `ERR_UNAUTHORIZED_ACCESS`,
`ERR_FORBIDDEN_PRIVILEGE` or `ERR_TOO_MANY_REQUESTS`:

```python
from webcore.errors import ERR_UNAUTHORIZED_ACCESS

entity = ERR_UNAUTHORIZED_ACCESS.get_code_err_entity()
entity.code     # "ERR401001"
entity.status   # 401
entity.message  # "Unauthorized"
raise entity
```

Codes follow the pattern `ERRXXX0YY`: `XXX` is the HTTP status, `0` marks a
code defined by this package and `YY` is a running number.
`with_error(err)` returns the entity carrying the text of `err` as its
detailed message, and `with_args(*args)` attaches arguments for printf-style
verbs (`%s`, `%v`, `%d`, ...) in the message.

## Context and sessions

`Context` is an immutable mapping of request-scoped values; `with_value`
returns a new one. `ContextBuilder` reads and writes the well-known values:

```python
from webcore.context import ContextBuilder, JwtClaim, Role, new_session, get_user_id_from_session

claim = JwtClaim(sub="42", jti="abc", privileges=["orders:read"], role=Role(id=1, code="admin"))
ctx = ContextBuilder().set_request_id("req-1").set_session(new_session(claim)).context()

get_user_id_from_session(ctx)          # "42"
ContextBuilder(ctx).get_request_id()   # "req-1"
```

`get_request_id` returns a fresh random UUID when none is stored, and
`get_logger` falls back to a `LogEntry` on the package logger, which writes
indented JSON records to standard output at level INFO and above.
`Session.check_privilege` and `check_privileges` raise the
forbidden-privilege error; `get_user_id_int_from_session` raises the
unauthorized error when there is no session and `ValueError` when the user id
is not a 64-bit integer. `new_http_client_context` puts the request id under
the `X-Request-Id` key for outgoing calls.

## Responses

```python
from webcore.response import Paginator, new_response_entity

response = (
    new_response_entity()
    .with_status_code(200)
    .with_content_status(True)
    .with_data([{"id": 1}])
    .with_paginator(Paginator(page=1, per_page=20, total=1))
)
response.content.to_dict()
# {"status": True, "data": [{"id": 1}], "metadata": {"page": 1, "per_page": 20, "total": 1}}
```

Every `with_*` method returns a new `Response`. A `Response` is also an
exception, so a handler may raise it. Empty message, code, error, data and
metadata are left out of the JSON.

`webcore.output` offers:

- `response_ok(status_code, data, *metas)`: a success response; data that has
  a `transform()` method is replaced by its result.
- `response_err(err)`: an error response from a `CodeErrEntity`, anything with
  `get_code_err_entity()`, or else the general 500 error.
- `response_err_validation(err)`: for `ValidationErrors`, a 400 response whose
  data maps each lower-cased field name to its translated message.
- `write_json`, `write_response_ok`, `write_response_created` (always 201,
  whatever status is passed), `write_paging` and `custom_http_error_handler`.

The body is written with `Content-Type: application/json; charset=UTF-8`.
When the environment variable `APP_DEBUG` is `true`, the `error` field is
left out of the written body.

## Validation messages

`init_default_trans()` selects English and `init_id_trans()` Indonesian;
whichever is called first stays selected. `get_trans()` returns the selected
translator, choosing English if none is. `FieldError.translate` falls back to
the raw error text for tags without a message.

## Authentication

- `AuthenticatorJwt(signer)` asks a `JwtSigner` to validate the token and
  requires the `sub`, `jti`, `privileges` (a list of strings) and `role`
  claims, raising the matching unauthorized error otherwise.
- `AuthenticatorJwtSingleSession(authenticator, cache, whitelist_jti)` also
  requires the token's `jti` to be the one stored under
  `login:session:<platform>:<sub>`, unless it is whitelisted. `persist`
  stores it there until the claim's `exp`.
- `AuthenticatorHttpClient(http_client, base_url, path)` posts
  `{"token": ...}` to `<base_url>/<path>` with an `httpx.Client` and returns a
  claim holding the `sub` the service answers.

A cache is any object with `get(ctx, key)` returning bytes or `None` and
`store(ctx, key, value, expires_in)`.

## Middleware

```python
from webcore.middleware import auth_check_middleware, privilege_check_middleware

protected = auth_check_middleware(authenticator)(
    privilege_check_middleware(["orders:read"])(handler)
)
```

- `auth_check_middleware` requires `Authorization: Bearer token`, checks the
  token and puts the session on the request context.
  `auth_roles_check_middleware` also requires the role code to be one of the
  given roles.
- `privilege_check_middleware` requires the session to hold every privilege.
- `request_id_middleware` takes the `X-Request-Id` header or a new UUID,
  echoes it in the response and binds a logger to it.
- `logger_with_context_middleware` logs the URI, method, headers and body of
  each request, then either the error or `OK`.
- `cors_middleware` allows any origin and answers preflight requests with 204.
- `rate_limit_middleware(store, authenticator)` asks `store.allow` with the
  bearer token, or the client address without one, and raises the
  too-many-requests error when refused or when the store fails. The
  authenticator is not consulted.

## Rate limiting

```python
from webcore.rate import Limiter, every

limiter = Limiter(every(0.1), 5)   # 10 events per second, bursts of 5
if limiter.allow():
    ...
```

`reserve_n` returns a `Reservation` with `delay_from` and `cancel_at`;
`wait_n(n, timeout)` sleeps until allowed and raises `ValueError` when `n`
exceeds the burst, or `TimeoutError` when the wait would outlast the timeout.

`RateLimiterSlidingWindowCacheStore(time_window, burst_limit, expires_in, cache)`
allows `burst_limit` requests per `time_window` seconds for each identifier,
keeping the counters in a cache; it suits `rate_limit_middleware`.

## What the package does not do

It has no HTTP server, router or command: requests must be wrapped in
`Exchange` objects by the caller. It does not sign or verify JWTs itself
(supply a `JwtSigner`), ships no cache backend, and does not validate input
structures; it only translates and renders `ValidationErrors` produced
elsewhere.