"""Tests for the default ServeMux."""

from __future__ import annotations

import pytest
from conftest import make_client, text

from trellis import PatternConflictError, PatternError, ServeMux
from trellis.request import Request
from trellis.responses import JSONResponse

# =====================================================================
# Pattern parsing & matching
# =====================================================================


class TestPatternMatching:
    def test_exact_match_marker(self) -> None:
        mux = ServeMux()
        mux.handle("GET /users/{$}", text("users"))
        assert mux.match("GET", "/users/") is not None
        assert mux.match("GET", "/users/42") is None
        assert mux.match("GET", "/users") is None

    def test_trailing_slash_matches_subtree(self) -> None:
        mux = ServeMux()
        mux.handle("GET /static/", text("static"))
        assert mux.match("GET", "/static/") is not None
        assert mux.match("GET", "/static/css/site.css") is not None

    def test_single_wildcard(self) -> None:
        mux = ServeMux()
        mux.handle("GET /users/{id}/edit/{$}", text("edit"))
        result = mux.match("GET", "/users/7/edit/")
        assert result is not None
        assert result[1] == {"id": "7"}
        assert mux.match("GET", "/users//edit/") is None

    def test_remainder_wildcard(self) -> None:
        mux = ServeMux()
        mux.handle("GET /files/{path...}", text("files"))
        result = mux.match("GET", "/files/a/b/c.txt")
        assert result is not None
        assert result[1] == {"path": "a/b/c.txt"}

    def test_literal_beats_wildcard(self) -> None:
        mux = ServeMux()
        mux.handle("GET /users/{id}/{$}", text("detail"))
        mux.handle("GET /users/create/{$}", text("create"))
        pattern, params = mux.match("GET", "/users/create/")
        assert pattern.raw == "GET /users/create/{$}"
        assert params == {}

    def test_exact_beats_subtree(self) -> None:
        mux = ServeMux()
        mux.handle("/", text("root"))
        mux.handle("GET /{$}", text("index"))
        assert mux.match("GET", "/")[0].raw == "GET /{$}"
        assert mux.match("GET", "/anything")[0].raw == "/"

    def test_method_specific_beats_methodless(self) -> None:
        mux = ServeMux()
        mux.handle("/ping", text("any"))
        mux.handle("POST /ping", text("post"))
        assert mux.match("POST", "/ping")[0].raw == "POST /ping"
        assert mux.match("GET", "/ping")[0].raw == "/ping"

    def test_get_answers_head(self) -> None:
        mux = ServeMux()
        mux.handle("GET /x/{$}", text("x"))
        assert mux.match("HEAD", "/x/") is not None
        assert mux.match("POST", "/x/") is None

    def test_exact_head_beats_get_fallback(self) -> None:
        for order in (("GET", "HEAD"), ("HEAD", "GET")):
            mux = ServeMux()
            for method in order:
                mux.handle(f"{method} /x/{{$}}", text(method))
            assert mux.match("HEAD", "/x/")[0].raw == "HEAD /x/{$}"
            assert mux.match("GET", "/x/")[0].raw == "GET /x/{$}"

    def test_allowed_methods(self) -> None:
        mux = ServeMux()
        mux.handle("GET /x/{$}", text("x"))
        mux.handle("DELETE /x/{$}", text("x"))
        assert mux.allowed_methods("/x/") == {"GET", "HEAD", "DELETE"}
        assert mux.allowed_methods("/y/") == set()


class TestPatternErrors:
    def test_conflict_on_same_shape(self) -> None:
        mux = ServeMux()
        mux.handle("GET /users/{id}/{$}", text("a"))
        with pytest.raises(PatternConflictError, match="conflicts"):
            mux.handle("GET /users/{name}/{$}", text("b"))

    def test_same_path_different_method_is_fine(self) -> None:
        mux = ServeMux()
        mux.handle("GET /create/{$}", text("form"))
        mux.handle("POST /create/{$}", text("store"))
        assert len(mux.patterns) == 2

    @pytest.mark.parametrize(
        "pattern",
        [
            "GET users",
            "GET example.com/users",
            "GET /a/{$}/b",
            "GET /a/{rest...}/b",
            "GET /a/{bad-name}",
            "GET /a/x{id}",
            "GET /{id}/{id}",
        ],
    )
    def test_bad_patterns(self, pattern: str) -> None:
        with pytest.raises(PatternError):
            ServeMux().handle(pattern, text("x"))


# =====================================================================
# ASGI dispatch
# =====================================================================


@pytest.mark.asyncio
async def test_dispatch_sets_path_params() -> None:
    mux = ServeMux()

    async def show(scope, receive, send):
        request = Request(scope, receive)
        await JSONResponse({"id": request.path_value("id"), "pattern": scope["route_pattern"]}).send(send)

    mux.handle("GET /users/{id}/{$}", show)

    async with make_client(mux) as client:
        resp = await client.get("/users/42/")
        assert resp.status_code == 200
        assert resp.json() == {"id": "42", "pattern": "GET /users/{id}/{$}"}


@pytest.mark.asyncio
async def test_not_found() -> None:
    mux = ServeMux()
    mux.handle("GET /known/{$}", text("known"))

    async with make_client(mux) as client:
        resp = await client.get("/unknown/")
        assert resp.status_code == 404
        assert resp.text == "404 page not found\n"


@pytest.mark.asyncio
async def test_method_not_allowed() -> None:
    mux = ServeMux()
    mux.handle("GET /known/{$}", text("known"))
    mux.handle("PUT /known/{$}", text("known"))

    async with make_client(mux) as client:
        resp = await client.post("/known/")
        assert resp.status_code == 405
        assert resp.headers["allow"] == "GET, HEAD, PUT"


@pytest.mark.asyncio
async def test_redirects_to_trailing_slash() -> None:
    mux = ServeMux()
    mux.handle("GET /get-endpoint/{$}", text("Hello, World!"))

    async with make_client(mux) as client:
        resp = await client.get("/get-endpoint?x=1")
        assert resp.status_code == 301
        assert resp.headers["location"] == "/get-endpoint/?x=1"


@pytest.mark.asyncio
async def test_unknown_scope_type_is_ignored() -> None:
    mux = ServeMux()
    sent: list[dict] = []

    async def send(message):
        sent.append(message)

    await mux({"type": "custom", "path": "/"}, None, send)
    assert sent == []


@pytest.mark.asyncio
async def test_unmatched_websocket_is_closed() -> None:
    mux = ServeMux()
    mux.handle("POST /ws/{$}", text("not a socket"))
    sent: list[dict] = []

    async def send(message):
        sent.append(message)

    await mux({"type": "websocket", "path": "/ws/"}, None, send)
    assert sent == [{"type": "websocket.close", "code": 1000}]


@pytest.mark.asyncio
async def test_websocket_routes_like_get() -> None:
    mux = ServeMux()
    seen: list[dict] = []

    async def socket_handler(scope, receive, send):
        seen.append({"room": scope["path_params"]["room"], "pattern": scope["route_pattern"]})
        await send({"type": "websocket.accept"})

    mux.handle("GET /ws/{room}/{$}", socket_handler)
    sent: list[dict] = []

    async def send(message):
        sent.append(message)

    await mux({"type": "websocket", "path": "/ws/lobby/"}, None, send)
    assert seen == [{"room": "lobby", "pattern": "GET /ws/{room}/{$}"}]
    assert sent == [{"type": "websocket.accept"}]
