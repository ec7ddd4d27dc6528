"""
Swiftly: Router Unit Tests
===========================

What we test:
    ✅ Literal routes match with empty params
    ✅ :param binding (URL-decoded), wildcard tails
    ✅ First registered candidate wins; duplicates replace in place
    ✅ Method filtering, "*" method, allowed_methods()
    ✅ Invalid patterns rejected at registration
"""

import pytest

from swiftly.exceptions import ConfigurationError
from swiftly.router import Router


def handler(data, ctx):
    return None


def other(data, ctx):
    return None


@pytest.fixture
def router():
    return Router()


class TestMatch:
    def test_literal_route_has_empty_params(self, router):
        router.register("GET", "/health", handler)
        match = router.match("GET", "/health")
        assert match.route.handler is handler
        assert match.params == {}

    def test_every_registered_literal_matches_itself(self, router):
        paths = ["/", "/a", "/a/b", "/user/list"]
        for path in paths:
            router.register("GET", path, handler)
        for path in paths:
            assert router.match("GET", path).params == {}

    def test_named_parameter(self, router):
        router.register("GET", "/user/:id", handler)
        assert router.match("GET", "/user/42").params == {"id": "42"}

    def test_parameter_is_url_decoded(self, router):
        router.register("GET", "/files/:name", handler)
        assert router.match("GET", "/files/my%20notes.txt").params == {"name": "my notes.txt"}

    def test_query_string_ignored(self, router):
        router.register("GET", "/user/:id", handler)
        assert router.match("GET", "/user/7?full=1").params == {"id": "7"}

    def test_segment_count_must_match(self, router):
        router.register("GET", "/user/:id", handler)
        assert router.match("GET", "/user/42/posts") is None
        assert router.match("GET", "/user") is None

    def test_literal_mismatch_aborts_candidate(self, router):
        router.register("GET", "/user/:id/posts", handler)
        assert router.match("GET", "/user/42/comments") is None

    def test_empty_segment_does_not_bind(self, router):
        router.register("GET", "/user/:id/posts", handler)
        match = router.match("GET", "/user//posts")
        assert match is not None
        assert "id" not in match.params

    def test_wildcard_tail(self, router):
        router.register("GET", "/static/*", handler)
        assert router.match("GET", "/static/css/site.css").params == {"*": "css/site.css"}
        assert router.match("GET", "/static").params == {"*": ""}

    def test_exact_literal_beats_earlier_parametric(self, router):
        router.register("GET", "/user/:id", handler)
        router.register("GET", "/user/me", other)
        assert router.match("GET", "/user/me").route.handler is other

    def test_first_registered_parametric_wins(self, router):
        router.register("GET", "/a/:x", handler)
        router.register("GET", "/a/:y", other)
        match = router.match("GET", "/a/1")
        assert match.route.handler is handler
        assert match.params == {"x": "1"}

    def test_method_filter(self, router):
        router.register("POST", "/user/:id", handler)
        assert router.match("GET", "/user/1") is None
        assert router.match("post", "/user/1") is not None

    def test_any_method(self, router):
        router.register("*", "/echo/:word", handler)
        router.register("*", "/ping", other)
        assert router.match("DELETE", "/echo/hi").params == {"word": "hi"}
        assert router.match("PUT", "/ping").route.handler is other


class TestRegistration:
    def test_duplicate_replaces_in_place(self, router, caplog):
        router.register("GET", "/a", handler)
        router.register("GET", "/b", handler)
        with caplog.at_level("WARNING", logger="swiftly.router"):
            router.register("GET", "/a", other)
        assert [r.pattern for r in router.routes] == ["/a", "/b"]
        assert router.match("GET", "/a").route.handler is other
        assert "registered twice" in caplog.text

    def test_pattern_must_start_with_slash(self, router):
        with pytest.raises(ConfigurationError):
            router.register("GET", "health", handler)

    def test_wildcard_must_be_last(self, router):
        with pytest.raises(ConfigurationError):
            router.register("GET", "/a/*/b", handler)

    def test_handler_must_be_callable(self, router):
        with pytest.raises(ConfigurationError):
            router.register("GET", "/a", None)

    def test_default_name_is_handler_name(self, router):
        assert router.register("GET", "/a", handler).name == "handler"


class TestAllowedMethods:
    def test_allowed_methods(self, router):
        router.register("GET", "/user/:id", handler)
        router.register("DELETE", "/user/:id", handler)
        assert router.allowed_methods("/user/1") == {"GET", "DELETE"}

    def test_no_route(self, router):
        router.register("GET", "/user/:id", handler)
        assert router.allowed_methods("/nothing") == set()

    def test_literal_variants_are_not_allowed_matches(self, router):
        """Trailing or doubled slashes miss a literal route under every method."""
        router.register("GET", "/health", handler)
        for url in ["/health/", "//health", "/health//"]:
            assert router.match("GET", url) is None
            assert router.allowed_methods(url) == set()

    def test_literal_route_other_method(self, router):
        router.register("GET", "/health", handler)
        assert router.allowed_methods("/health") == {"GET"}
