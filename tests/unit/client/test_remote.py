import httpx
import pytest

from src.client.remote import RemoteClient, RemoteError


def _client(handler: object) -> RemoteClient:
    return RemoteClient(
        httpx.AsyncClient(
            transport=httpx.MockTransport(handler),  # type: ignore[arg-type]
            base_url="http://test",
            headers={"X-User": "Bob:bob@example.com"},
        )
    )


class TestRemoteError:
    @pytest.mark.parametrize(
        ("status_code", "rejected"),
        [
            (None, False),
            (400, True),
            (409, True),
            (422, True),
            (408, False),
            (429, False),
            (500, False),
            (503, False),
        ],
    )
    def test_is_rejection(self, status_code: int | None, rejected: bool) -> None:
        assert RemoteError("x", status_code).is_rejection is rejected


class TestRemoteClient:
    async def test_sends_identity_and_body(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(201, json={"id": "f-1"})

        created = await _client(handler).report_fault("job-1", {"type": "engine"})

        assert created == {"id": "f-1"}
        assert seen[0].url.path == "/jobs/job-1/faults"
        assert seen[0].headers["X-User"] == "Bob:bob@example.com"

    async def test_error_detail(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(409, json={"detail": "6 sections remaining"})

        with pytest.raises(RemoteError) as exc_info:
            await _client(handler).submit_job("job-1")

        assert exc_info.value.status_code == 409
        assert str(exc_info.value) == "6 sections remaining"

    async def test_function_error_shape(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                400, json={"success": False, "error": {"message": "Bad token"}}
            )

        with pytest.raises(RemoteError, match="Bad token"):
            await _client(handler).register_push_token("t")

    async def test_transport_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("unreachable", request=request)

        with pytest.raises(RemoteError) as exc_info:
            await _client(handler).list_jobs()

        assert exc_info.value.status_code is None
        assert not exc_info.value.is_rejection

    async def test_media_upload_params(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(201, json={"id": "m-1"})

        await _client(handler).upload_media(
            "job-1", "job-1/1_a.jpg", b"jpeg", "exterior", caption="Front"
        )

        request = seen[0]
        assert request.method == "PUT"
        assert request.url.params["path"] == "job-1/1_a.jpg"
        assert request.url.params["caption"] == "Front"
        assert "step_id" not in request.url.params
        assert request.content == b"jpeg"
