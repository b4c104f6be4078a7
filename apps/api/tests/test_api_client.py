"""
Tests for the async coach API client (httpx MockTransport, no network).
"""
import asyncio
import json

import httpx
import pytest

from client.api_client import CoachApiClient, classify_error
from client.errors import ChatClientError, ChatErrorKind

BASE_URL = "https://api.test"


class FakeCredentials:
    def __init__(self, current="cached-token", refreshed="fresh-token"):
        self.current = current
        self.refreshed = refreshed
        self.refresh_calls = 0

    async def current_token(self):
        return self.current

    async def refresh_token(self):
        self.refresh_calls += 1
        return self.refreshed


def make_client(handler, credentials=None):
    http = httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(handler))
    return CoachApiClient(BASE_URL, credentials or FakeCredentials(), http=http)


def run(coro):
    return asyncio.run(coro)


class TestClassifyError:
    @pytest.mark.parametrize("status_code,body,kind", [
        (429, {"error": "MESSAGE_LIMIT_REACHED", "messageCount": 10}, ChatErrorKind.QUOTA_EXCEEDED),
        (200, {"error": "Rate limit exceeded"}, ChatErrorKind.QUOTA_EXCEEDED),
        (200, {"error": "AI_SERVICE_ERROR"}, ChatErrorKind.AI_UNAVAILABLE),
        (500, {"error": "AI_SERVICE_ERROR"}, ChatErrorKind.AI_UNAVAILABLE),
        (429, {"error": "RATE_LIMITED", "message": "Rate limit exceeded"}, ChatErrorKind.SERVER_ERROR),
        (429, None, ChatErrorKind.QUOTA_EXCEEDED),
        (401, {"error": "AUTH_INVALID"}, ChatErrorKind.AUTH_INVALID),
        (400, {"error": "BAD_REQUEST"}, ChatErrorKind.BAD_REQUEST),
        (403, {"error": "FORBIDDEN"}, ChatErrorKind.FORBIDDEN),
        (403, {"error": "COACH_LIMIT_REACHED"}, ChatErrorKind.FORBIDDEN),
        (404, {"error": "NOT_FOUND"}, ChatErrorKind.NOT_FOUND),
        (500, {"error": "INTERNAL_ERROR"}, ChatErrorKind.SERVER_ERROR),
        (502, "<html>bad gateway</html>", ChatErrorKind.SERVER_ERROR),
        (502, {"error": {"code": 5, "detail": "upstream"}}, ChatErrorKind.SERVER_ERROR),
        (403, {"error": ["FORBIDDEN"], "message": {"text": "no"}}, ChatErrorKind.FORBIDDEN),
    ])
    def test_mapping(self, status_code, body, kind):
        assert classify_error(status_code, body).kind == kind

    def test_quota_carries_server_count(self):
        error = classify_error(429, {"error": "MESSAGE_LIMIT_REACHED", "messageCount": 10})
        assert error.is_quota_exceeded
        assert error.message_count == 10

    def test_structured_error_field_is_not_a_code(self):
        error = classify_error(502, {"error": {"code": 5}, "messageCount": "ten"})
        assert error.kind == ChatErrorKind.SERVER_ERROR
        assert error.message == "Failed to get response"
        assert error.message_count is None


class TestSendChat:
    def test_uses_refreshed_token_and_wire_names(self):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={
                "response": "Try a two-minute start.", "chatId": "c1", "messageCount": 3,
            })

        credentials = FakeCredentials()
        reply = run(make_client(handler, credentials).send_chat("coach-1", "hi", chat_id="c1"))

        assert seen["auth"] == "Bearer fresh-token"
        assert seen["body"] == {"coachId": "coach-1", "message": "hi", "chatId": "c1"}
        assert credentials.refresh_calls == 1
        assert (reply.response, reply.chat_id, reply.message_count, reply.persisted) == (
            "Try a two-minute start.", "c1", 3, True,
        )

    def test_no_request_without_refreshed_token(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json={})

        client = make_client(handler, FakeCredentials(current="stale", refreshed=None))
        with pytest.raises(ChatClientError) as exc_info:
            run(client.send_chat("coach-1", "hi"))

        assert exc_info.value.kind == ChatErrorKind.AUTH_INVALID
        assert requests == []

    def test_error_body_with_success_status_is_an_error(self):
        def handler(request):
            return httpx.Response(200, json={"error": "AI_SERVICE_ERROR", "message": "try later"})

        with pytest.raises(ChatClientError) as exc_info:
            run(make_client(handler).send_chat("coach-1", "hi"))
        assert exc_info.value.kind == ChatErrorKind.AI_UNAVAILABLE

    def test_transport_failure_is_server_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(ChatClientError) as exc_info:
            run(make_client(handler).send_chat("coach-1", "hi"))
        assert exc_info.value.kind == ChatErrorKind.SERVER_ERROR


class TestOtherCalls:
    def test_open_and_history_use_current_token(self):
        seen = []

        def handler(request):
            seen.append((request.method, request.url.path, request.headers["Authorization"]))
            if request.url.path == "/v1/chats":
                return httpx.Response(200, json={"id": "c1", "coachId": "coach-1", "coachName": "Max"})
            return httpx.Response(200, json=[
                {"id": "t1", "chatId": "c1", "role": "user", "content": "hi",
                 "createdAt": "2026-03-01T10:00:00Z"},
            ])

        credentials = FakeCredentials()

        async def scenario():
            client = make_client(handler, credentials)
            opened = await client.open_chat("coach-1")
            turns = await client.list_turns(opened.id)
            await client.aclose()
            return opened, turns

        opened, turns = run(scenario())

        assert opened.coach_id == "coach-1"
        assert [t.content for t in turns] == ["hi"]
        assert all(auth == "Bearer cached-token" for _, _, auth in seen)
        assert credentials.refresh_calls == 0

    def test_usage(self):
        def handler(request):
            return httpx.Response(200, json={"messageCount": 4, "limit": 10, "entitled": False})

        usage = run(make_client(handler).get_usage())
        assert (usage.message_count, usage.limit, usage.entitled) == (4, 10, False)

    def test_missing_current_token_is_auth_invalid(self):
        def handler(request):
            return httpx.Response(200, json=[])

        with pytest.raises(ChatClientError) as exc_info:
            run(make_client(handler, FakeCredentials(current=None)).list_turns("c1"))
        assert exc_info.value.kind == ChatErrorKind.AUTH_INVALID


class TestMalformedResponses:
    def test_reply_without_response_text_is_server_error(self):
        def handler(request):
            return httpx.Response(200, json={"unexpected": True})

        with pytest.raises(ChatClientError) as exc_info:
            run(make_client(handler).send_chat("coach-1", "hi"))
        assert exc_info.value.kind == ChatErrorKind.SERVER_ERROR
        assert exc_info.value.message == "Malformed response"

    def test_object_error_with_success_status_is_server_error(self):
        def handler(request):
            return httpx.Response(200, json={"error": {"reason": "gateway"}})

        with pytest.raises(ChatClientError) as exc_info:
            run(make_client(handler).send_chat("coach-1", "hi"))
        assert exc_info.value.kind == ChatErrorKind.SERVER_ERROR

    def test_history_that_is_not_a_list_is_server_error(self):
        def handler(request):
            return httpx.Response(200, json={"turns": []})

        with pytest.raises(ChatClientError) as exc_info:
            run(make_client(handler).list_turns("c1"))
        assert exc_info.value.kind == ChatErrorKind.SERVER_ERROR

    def test_history_entry_missing_fields_is_server_error(self):
        def handler(request):
            return httpx.Response(200, json=[{"id": "t1", "role": "user"}])

        with pytest.raises(ChatClientError) as exc_info:
            run(make_client(handler).list_turns("c1"))
        assert exc_info.value.kind == ChatErrorKind.SERVER_ERROR

    @pytest.mark.parametrize("call,body", [
        ("open", {"id": "c1"}),
        ("usage", {"limit": 10}),
    ])
    def test_open_and_usage_shapes_are_checked(self, call, body):
        def handler(request):
            return httpx.Response(200, json=body)

        client = make_client(handler)
        coro = client.open_chat("coach-1") if call == "open" else client.get_usage()
        with pytest.raises(ChatClientError) as exc_info:
            run(coro)
        assert exc_info.value.kind == ChatErrorKind.SERVER_ERROR
