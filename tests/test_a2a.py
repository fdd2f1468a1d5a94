"""Tests for trust_gateway.a2a — task lifecycle and JSON-RPC error codes."""

import pytest

from trust_gateway.a2a import A2ARuntime, InMemoryTaskStore, Task, TaskState, message_text, text_message


class EchoExecutor:
    def __init__(self):
        self.seen = []

    async def execute(self, text):
        self.seen.append(text)
        return f"echo: {text}"


def rpc(method, params=None, rid=1):
    body = {"jsonrpc": "2.0", "id": rid, "method": method}
    if params is not None:
        body["params"] = params
    return body


def send_params(text="score agent 42"):
    return {"message": {"kind": "message", "messageId": "m1", "role": "user",
                        "parts": [{"kind": "text", "text": text}]}}


class TestMessageSend:
    @pytest.mark.asyncio
    async def test_send_returns_completed_task(self):
        executor = EchoExecutor()
        runtime = A2ARuntime(executor)
        resp = await runtime.handle(rpc("message/send", send_params()))
        task = resp["result"]
        assert resp["id"] == 1
        assert task["kind"] == "task"
        assert task["status"]["state"] == "completed"
        assert task["status"]["message"]["parts"][0]["text"] == "echo: score agent 42"
        assert [m["role"] for m in task["history"]] == ["user", "agent"]
        assert executor.seen == ["score agent 42"]
        assert len(runtime.store) == 1

    @pytest.mark.asyncio
    async def test_stream_is_answered_synchronously(self):
        resp = await A2ARuntime(EchoExecutor()).handle(rpc("message/stream", send_params("hi")))
        assert resp["result"]["status"]["state"] == "completed"

    @pytest.mark.asyncio
    async def test_context_id_is_kept(self):
        params = send_params()
        params["message"]["contextId"] = "ctx-1"
        resp = await A2ARuntime(EchoExecutor()).handle(rpc("message/send", params))
        assert resp["result"]["contextId"] == "ctx-1"

    @pytest.mark.asyncio
    async def test_missing_message_is_invalid_params(self):
        resp = await A2ARuntime(EchoExecutor()).handle(rpc("message/send", {}))
        assert resp["error"]["code"] == -32602


class TestTasks:
    @pytest.mark.asyncio
    async def test_get_with_history_length(self):
        runtime = A2ARuntime(EchoExecutor())
        task_id = (await runtime.handle(rpc("message/send", send_params())))["result"]["id"]
        resp = await runtime.handle(rpc("tasks/get", {"id": task_id, "historyLength": 1}, rid="g"))
        assert resp["id"] == "g"
        assert [m["role"] for m in resp["result"]["history"]] == ["agent"]

    @pytest.mark.asyncio
    async def test_get_rejects_negative_history_length(self):
        runtime = A2ARuntime(EchoExecutor())
        task_id = (await runtime.handle(rpc("message/send", send_params())))["result"]["id"]
        resp = await runtime.handle(rpc("tasks/get", {"id": task_id, "historyLength": -1}))
        assert resp["error"]["code"] == -32602

    @pytest.mark.asyncio
    async def test_get_unknown_task(self):
        resp = await A2ARuntime(EchoExecutor()).handle(rpc("tasks/get", {"id": "missing"}))
        assert resp["error"]["code"] == -32001

    @pytest.mark.asyncio
    async def test_cancel_completed_task_is_not_cancelable(self):
        runtime = A2ARuntime(EchoExecutor())
        task_id = (await runtime.handle(rpc("message/send", send_params())))["result"]["id"]
        resp = await runtime.handle(rpc("tasks/cancel", {"id": task_id}))
        assert resp["error"]["code"] == -32002

    @pytest.mark.asyncio
    async def test_cancel_working_task(self):
        store = InMemoryTaskStore()
        store.save(Task(id="t1", context_id="c1", state=TaskState.WORKING))
        resp = await A2ARuntime(EchoExecutor(), store).handle(rpc("tasks/cancel", {"id": "t1"}))
        assert resp["result"]["status"]["state"] == "canceled"

    @pytest.mark.asyncio
    async def test_cancel_unknown_task(self):
        resp = await A2ARuntime(EchoExecutor()).handle(rpc("tasks/cancel", {"id": "nope"}))
        assert resp["error"]["code"] == -32001


class TestErrors:
    @pytest.mark.asyncio
    async def test_unknown_method(self):
        resp = await A2ARuntime(EchoExecutor()).handle(rpc("agent/dance", {}, rid=9))
        assert resp == {"jsonrpc": "2.0", "id": 9, "error": {"code": -32601, "message": "Method not found"}}

    @pytest.mark.asyncio
    async def test_params_must_be_object(self):
        resp = await A2ARuntime(EchoExecutor()).handle(rpc("tasks/get", ["t1"]))
        assert resp["error"]["code"] == -32602

    @pytest.mark.asyncio
    async def test_push_config_is_not_supported(self):
        resp = await A2ARuntime(EchoExecutor()).handle(rpc("tasks/pushNotificationConfig/set", {}))
        assert resp["error"]["code"] == -32003

    @pytest.mark.asyncio
    async def test_resubscribe_is_unsupported(self):
        resp = await A2ARuntime(EchoExecutor()).handle(rpc("tasks/resubscribe", {"id": "t"}))
        assert resp["error"]["code"] == -32004

    @pytest.mark.asyncio
    async def test_wrong_version_is_invalid_request(self):
        resp = await A2ARuntime(EchoExecutor()).handle({"jsonrpc": "1.0", "id": 3, "method": "tasks/get"})
        assert resp["error"]["code"] == -32600
        assert resp["id"] == 3


class TestStore:
    def test_oldest_task_is_evicted(self):
        store = InMemoryTaskStore(max_tasks=2)
        for i in range(3):
            store.save(Task(id=f"t{i}", context_id="c"))
        assert len(store) == 2
        assert store.get("t0") is None
        assert store.get("t2") is not None

    def test_message_text_joins_text_parts(self):
        msg = text_message("user", "first", "c1")
        msg["parts"].append({"kind": "data", "data": {}})
        msg["parts"].append({"kind": "text", "text": "second"})
        assert message_text(msg) == "first\nsecond"
