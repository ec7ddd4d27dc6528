"""
Swiftly: Dispatcher End-to-End Tests
=====================================

What:  Full request cycle through FastAPI → Dispatcher → handler → envelope.
How:   httpx AsyncClient over ASGITransport; kernels built per test.

What we test:
    ✅ Scenario 1: plain GET returns a success envelope
    ✅ Scenario 2: invalid POST body → code 20 with per-field detail
    ✅ Scenario 3: auth-required route without / with identity
    ✅ Scenario 4: a plugin sending the response stops the pipeline
    ✅ 404 / 405, malformed body, handler exceptions (dev vs production)
    ✅ Result pass-through rules, Endpoint mounting, custom codes
"""

import pytest
from httpx import ASGITransport, AsyncClient
from starlette.responses import PlainTextResponse

from swiftly import Endpoint, SchemaBuilder, define_plugin, endpoint, make_error, make_response
from swiftly.exceptions import ApiError, ConfigurationError, PermissionDeniedError
from swiftly.main import create_app


class TestScenarios:
    @pytest.mark.asyncio
    async def test_get_without_schema(self, kernel, client):
        """Scenario 1: handler payload wrapped in a success envelope."""
        kernel.get("/health")(lambda data, ctx: {"status": "up"})

        response = await client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["code"] == 0
        assert body["data"] == {"status": "up"}
        assert body["message"] == "Operation successful"
        assert body["timestamp"].endswith("Z")

    @pytest.mark.asyncio
    async def test_post_validation_failure(self, kernel, client):
        """Scenario 2: every failing field reported, handler never runs."""
        calls = []
        schema = SchemaBuilder().string("username", min=3).string("email", email=True).build()
        kernel.post("/users", schema=schema)(lambda data, ctx: calls.append(data))

        response = await client.post("/users", json={"username": "ab", "email": "bad"})
        assert response.status_code == 400
        body = response.json()
        assert body["code"] == 20
        assert set(body["detail"]) == {"username", "email"}
        assert calls == []

    @pytest.mark.asyncio
    async def test_post_validation_success_passes_coerced_data(self, kernel, client):
        schema = SchemaBuilder().string("username", min=3).number("age", int=True, optional=True).build()
        kernel.post("/users", schema=schema)(lambda data, ctx: data)

        response = await client.post("/users", json={"username": "alice", "age": "30", "extra": 1})
        assert response.json()["data"] == {"username": "alice", "age": 30}

    @pytest.mark.asyncio
    async def test_auth_required_without_identity(self, kernel, client):
        """Scenario 3a: no identity → LOGIN_REQUIRED (34), HTTP 401."""
        kernel.get("/secret", auth=True)(lambda data, ctx: "classified")

        response = await client.get("/secret")
        assert response.status_code == 401
        assert response.json()["code"] == 34

    @pytest.mark.asyncio
    async def test_auth_required_with_identity(self, make_kernel, serve):
        """Scenario 3b: a plugin supplies the identity → handler runs."""
        identify = define_plugin("identify", on_request=lambda ctx, data: setattr(ctx, "user", {"id": 1}))
        kernel = make_kernel(plugins=[identify])
        kernel.get("/secret", auth=True)(lambda data, ctx: ctx.user)

        async with serve(kernel) as client:
            response = await client.get("/secret")
        assert response.status_code == 200
        assert response.json()["data"] == {"id": 1}

    @pytest.mark.asyncio
    async def test_plugin_short_circuit(self, make_kernel, serve):
        """Scenario 4: order 0 sends, order 10 never runs."""
        mutations = []

        def gate(ctx, data):
            ctx.response.send(make_error(1001, "Closed for maintenance", registry=ctx.registry))

        kernel = make_kernel(plugins=[
            define_plugin("late", order=10, on_request=lambda ctx, data: mutations.append(ctx.path)),
            define_plugin("gate", order=0, on_request=gate),
        ])
        kernel.register_code(1001, "Closed", 503)
        handled = []
        kernel.get("/anything")(lambda data, ctx: handled.append(1))

        async with serve(kernel) as client:
            response = await client.get("/anything")
        assert response.status_code == 503
        assert response.json()["message"] == "Closed for maintenance"
        assert mutations == []
        assert handled == []


class TestRouting:
    @pytest.mark.asyncio
    async def test_not_found(self, client):
        response = await client.get("/nope")
        assert response.status_code == 404
        body = response.json()
        assert body["code"] == 10
        assert body["message"] == "Route GET /nope not found"

    @pytest.mark.asyncio
    async def test_method_not_allowed(self, kernel, client):
        kernel.get("/users/:id")(lambda data, ctx: None)
        kernel.delete("/users/:id")(lambda data, ctx: None)

        response = await client.post("/users/1", json={})
        assert response.status_code == 405
        assert response.json()["code"] == 11
        assert response.headers["allow"] == "DELETE, GET"

    @pytest.mark.asyncio
    async def test_trailing_slash_on_literal_route_is_not_found(self, kernel, client):
        kernel.get("/health")(lambda data, ctx: "up")

        response = await client.get("/health/")
        assert response.status_code == 404
        assert response.json()["code"] == 10
        assert "allow" not in response.headers

    @pytest.mark.asyncio
    async def test_params_and_query_merged_params_win(self, kernel, client):
        schema = SchemaBuilder().number("id", int=True).string("q", optional=True).build()
        kernel.get("/items/:id", schema=schema)(lambda data, ctx: data)

        response = await client.get("/items/5?id=9&q=lamp")
        assert response.json()["data"] == {"id": 5, "q": "lamp"}

    @pytest.mark.asyncio
    async def test_encoded_path_parameter(self, kernel, client):
        kernel.get("/files/:name")(lambda data, ctx: ctx.params["name"])
        response = await client.get("/files/a%2Fb")
        assert response.json()["data"] == "a/b"

    @pytest.mark.asyncio
    async def test_query_validation_failure(self, kernel, client):
        schema = SchemaBuilder().number("page", int=True, min=1).build()
        kernel.get("/list", schema=schema)(lambda data, ctx: data)

        response = await client.get("/list?page=0")
        assert response.status_code == 400
        assert "page" in response.json()["detail"]


class TestBodies:
    @pytest.mark.asyncio
    async def test_malformed_json(self, kernel, client):
        kernel.post("/users")(lambda data, ctx: data)

        response = await client.post(
            "/users", content=b"{not json", headers={"Content-Type": "application/json"}
        )
        assert response.status_code == 400
        assert response.json()["code"] == 24

    @pytest.mark.asyncio
    async def test_malformed_multipart(self, kernel, client):
        """An unparseable form is a format error, not a server error."""
        kernel.post("/upload")(lambda data, ctx: data)

        response = await client.post(
            "/upload",
            content=b"garbage-no-boundary",
            headers={"Content-Type": "multipart/form-data; boundary=xyz"},
        )
        assert response.status_code == 400
        body = response.json()
        assert body["code"] == 24
        assert body["message"].startswith("Malformed request body")

    @pytest.mark.asyncio
    async def test_form_body(self, kernel, client):
        schema = SchemaBuilder().string("name").number("qty", int=True).build()
        kernel.post("/orders", schema=schema)(lambda data, ctx: data)

        response = await client.post("/orders", data={"name": "lamp", "qty": "2"})
        assert response.json()["data"] == {"name": "lamp", "qty": 2}

    @pytest.mark.asyncio
    async def test_text_body_without_schema(self, kernel, client):
        kernel.post("/echo")(lambda data, ctx: data)
        response = await client.post("/echo", content=b"hello", headers={"Content-Type": "text/plain"})
        assert response.json()["data"] == "hello"

    @pytest.mark.asyncio
    async def test_empty_body_validates_as_empty_object(self, kernel, client):
        kernel.post("/users", schema=SchemaBuilder().string("name"))(lambda data, ctx: data)
        response = await client.post("/users")
        assert response.json()["detail"] == {"name": "name is required"}


class TestResults:
    @pytest.mark.asyncio
    async def test_envelope_passes_through(self, kernel, client):
        kernel.post("/things")(lambda data, ctx: make_response(0, "Created", {"id": 1}))
        response = await client.post("/things", json={})
        assert response.json()["message"] == "Created"

    @pytest.mark.asyncio
    async def test_raw_code_dict_passes_through(self, kernel, client):
        kernel.get("/legacy")(lambda data, ctx: {"code": 1, "msg": "legacy failure"})
        response = await client.get("/legacy")
        assert response.status_code == 400
        assert response.json() == {"code": 1, "msg": "legacy failure"}

    @pytest.mark.asyncio
    async def test_none_becomes_success(self, kernel, client):
        kernel.delete("/things/:id")(lambda data, ctx: None)
        response = await client.delete("/things/1")
        assert response.json()["code"] == 0
        assert response.json()["data"] is None

    @pytest.mark.asyncio
    async def test_starlette_response_passes_through(self, kernel, client):
        kernel.get("/robots.txt")(lambda data, ctx: PlainTextResponse("User-agent: *"))
        response = await client.get("/robots.txt")
        assert response.text == "User-agent: *"

    @pytest.mark.asyncio
    async def test_async_handler(self, kernel, client):
        async def handler(data, ctx):
            return ctx.method

        kernel.put("/verb")(handler)
        response = await client.put("/verb", json={})
        assert response.json()["data"] == "PUT"


class TestErrors:
    @pytest.mark.asyncio
    async def test_api_error_maps_to_its_code(self, kernel, client):
        def handler(data, ctx):
            raise PermissionDeniedError(message="Admins only")

        kernel.get("/admin")(handler)
        response = await client.get("/admin")
        assert response.status_code == 403
        assert response.json()["code"] == 33
        assert response.json()["message"] == "Admins only"

    @pytest.mark.asyncio
    async def test_custom_code(self, kernel, client):
        kernel.register_code(2001, "Insufficient balance", 402)

        def handler(data, ctx):
            raise ApiError(2001, detail={"balance": 3})

        kernel.post("/pay")(handler)
        response = await client.post("/pay", json={})
        assert response.status_code == 402
        body = response.json()
        assert body["message"] == "Insufficient balance"
        assert body["detail"] == {"balance": 3}

    @pytest.mark.asyncio
    async def test_unexpected_error_in_development(self, make_kernel, serve):
        kernel = make_kernel(environment="development")
        kernel.get("/boom")(lambda data, ctx: 1 / 0)

        async with serve(kernel) as client:
            response = await client.get("/boom")
        assert response.status_code == 500
        body = response.json()
        assert body["code"] == 12
        assert "division by zero" in body["message"]

    @pytest.mark.asyncio
    async def test_unexpected_error_redacted_in_production(self, make_kernel, serve):
        kernel = make_kernel(environment="production")
        kernel.get("/boom")(lambda data, ctx: 1 / 0)

        async with serve(kernel) as client:
            response = await client.get("/boom")
        body = response.json()
        assert body["code"] == 12
        assert "division" not in body["message"]
        assert body["detail"] is None

    @pytest.mark.asyncio
    async def test_plugin_request_error_still_answers_once(self, make_kernel, serve):
        def broken(ctx, data):
            raise RuntimeError("plugin exploded")

        seen = []
        kernel = make_kernel(plugins=[
            define_plugin("broken", on_request=broken),
            define_plugin("observer", order=-1, on_response=lambda ctx, data: seen.append(ctx.state.value)),
        ])
        async with serve(kernel) as client:
            response = await client.get("/anything")
        assert response.json()["code"] == 12
        assert seen == ["error"]

    @pytest.mark.asyncio
    async def test_response_hook_failure(self, make_kernel, serve):
        def broken(ctx, data):
            raise RuntimeError("hook exploded")

        def tag(ctx, data):
            ctx.response.headers["X-Trace"] = "abc123"

        kernel = make_kernel(plugins=[
            define_plugin("tag", order=0, on_request=tag),
            define_plugin("broken", order=1, on_response=broken),
        ])
        kernel.get("/ok")(lambda data, ctx: "fine")
        async with serve(kernel) as client:
            response = await client.get("/ok")
        assert response.status_code == 500
        assert response.json()["code"] == 12
        assert response.headers["x-trace"] == "abc123"
        assert response.headers["content-type"] == "application/json"

    @pytest.mark.asyncio
    async def test_request_before_startup(self, kernel):
        kernel.get("/ok")(lambda data, ctx: "fine")
        transport = ASGITransport(app=create_app(kernel))
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/ok")
        assert response.status_code == 503
        assert response.json()["code"] == 81


class TestAssembly:
    @pytest.mark.asyncio
    async def test_mount_endpoint(self, kernel, client):
        @endpoint("Create user", method="post", schema=SchemaBuilder().string("username", min=3))
        def create_user(data, ctx):
            return {"created": data["username"]}

        kernel.mount("/user/create", create_user)
        response = await client.post("/user/create", json={"username": "alice"})
        assert response.json()["data"] == {"created": "alice"}

    @pytest.mark.asyncio
    async def test_legacy_schema_declaration(self, kernel, client):
        legacy = {"fields": {"score": "Score,number,1,10,x*2=10"}, "required": ["score"]}
        kernel.post("/score", schema=legacy)(lambda data, ctx: data["score"])

        ok = await client.post("/score", json={"score": 5})
        bad = await client.post("/score", json={"score": 4})
        assert ok.json()["data"] == 5
        assert bad.json()["code"] == 20

    def test_endpoint_requires_handler(self):
        with pytest.raises(ConfigurationError):
            Endpoint(name="Broken", handler=None)

    def test_endpoint_requires_name(self):
        with pytest.raises(ConfigurationError):
            Endpoint(name="", handler=lambda data, ctx: None)

    def test_reserved_code_registration_fails(self, kernel):
        with pytest.raises(ConfigurationError):
            kernel.register_code(42, "Taken")

    @pytest.mark.asyncio
    async def test_production_startup_requires_secret(self, make_kernel):
        kernel = make_kernel(environment="production", jwt_secret="")
        with pytest.raises(ConfigurationError):
            await kernel.startup()


class TestCoreRoutes:
    @pytest.mark.asyncio
    async def test_health_check_and_info(self, make_kernel, serve):
        kernel = make_kernel(plugins=[define_plugin("noop", order=4)], core_routes=True)
        async with serve(kernel) as client:
            check = await client.get("/core/health/check")
            info = await client.get("/core/health/info")
            debug = await client.get("/core/debug/routes")

        assert check.json()["data"]["status"] == "ok"
        data = info.json()["data"]
        assert data["environment"] == "test"
        assert data["plugins"] == [{"name": "noop", "order": 4, "enabled": True}]
        assert data["routes"] == 2
        assert debug.status_code == 404

    @pytest.mark.asyncio
    async def test_debug_routes_in_development(self, make_kernel, serve):
        kernel = make_kernel(core_routes=True, environment="development")
        kernel.get("/users/:id")(lambda data, ctx: None)
        async with serve(kernel) as client:
            response = await client.get("/core/debug/routes")
        data = response.json()["data"]
        assert data["total"] == 4
        assert data["methods"] == {"GET": 4}
        assert data["prefixes"] == {"/core": 3, "/users": 1}
