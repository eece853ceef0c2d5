"""Tests for the request context middleware helpers."""

import pytest
from starlette.requests import Request

from lifeline_api.src.middleware.request_context import _endpoint_label


def make_request(path, path_params=None):
    scope = {
        "type": "http",
        "method": "POST",
        "scheme": "http",
        "server": ("testserver", 80),
        "root_path": "",
        "path": path,
        "query_string": b"",
        "headers": [],
    }
    if path_params is not None:
        scope["path_params"] = path_params
    return Request(scope)


class TestEndpointLabel:
    """Metric labels use route templates with the full include prefix."""

    def test_path_params_replaced_by_name(self):
        request = make_request("/api/resources/abc/verify", {"resource_id": "abc"})
        assert _endpoint_label(request) == "/api/resources/{resource_id}/verify"

    def test_label_shared_across_ids(self):
        first = make_request("/api/resources/abc/verify", {"resource_id": "abc"})
        second = make_request("/api/resources/def/verify", {"resource_id": "def"})
        assert _endpoint_label(first) == _endpoint_label(second)

    @pytest.mark.parametrize("params", [None, {}])
    def test_static_route_keeps_path(self, params):
        assert _endpoint_label(make_request("/api/food/snap", params)) == "/api/food/snap"
