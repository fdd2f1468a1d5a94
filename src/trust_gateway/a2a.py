"""
trust_gateway.a2a — Minimal A2A JSON-RPC runtime.

Supports ``message/send`` / ``message/stream`` (answered synchronously with a
completed task), ``tasks/get`` and ``tasks/cancel``. Tasks live in a bounded
in-memory store; nothing survives a restart.
"""

from __future__ import annotations

import uuid
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from trust_gateway.executor import TrustGatewayExecutor
from trust_gateway.jsonrpc import (
    INVALID_PARAMS,
    METHOD_NOT_FOUND,
    PUSH_NOTIFICATION_NOT_SUPPORTED,
    TASK_NOT_CANCELABLE,
    TASK_NOT_FOUND,
    UNSUPPORTED_OPERATION,
    JSONRPC_VERSION,
    JSONRPCError,
    error_response,
    invalid_request,
    request_id_of,
    success_response,
)
from trust_gateway.payment_gate import A2AMethod


class TaskState(str, Enum):
    SUBMITTED = "submitted"
    WORKING = "working"
    INPUT_REQUIRED = "input-required"
    COMPLETED = "completed"
    CANCELED = "canceled"
    FAILED = "failed"
    REJECTED = "rejected"

    @property
    def terminal(self) -> bool:
        return self in (TaskState.COMPLETED, TaskState.CANCELED, TaskState.FAILED, TaskState.REJECTED)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def text_message(role: str, text: str, context_id: str, task_id: Optional[str] = None) -> dict:
    message = {
        "kind": "message",
        "messageId": str(uuid.uuid4()),
        "role": role,
        "parts": [{"kind": "text", "text": text}],
        "contextId": context_id,
    }
    if task_id:
        message["taskId"] = task_id
    return message


def message_text(message: dict) -> str:
    parts = message.get("parts") or []
    return "\n".join(
        p["text"] for p in parts
        if isinstance(p, dict) and p.get("kind") == "text" and isinstance(p.get("text"), str)
    )


@dataclass
class Task:
    id: str
    context_id: str
    state: TaskState = TaskState.SUBMITTED
    status_message: Optional[dict] = None
    history: list[dict] = field(default_factory=list)
    updated_at: str = field(default_factory=_now)

    def transition(self, state: TaskState, message: Optional[dict] = None) -> None:
        self.state = state
        self.status_message = message
        self.updated_at = _now()

    def to_dict(self, history_length: Optional[int] = None) -> dict:
        status: dict[str, Any] = {"state": self.state.value, "timestamp": self.updated_at}
        if self.status_message is not None:
            status["message"] = self.status_message
        history = self.history
        if history_length is not None:
            history = history[-history_length:] if history_length > 0 else []
        return {
            "kind": "task",
            "id": self.id,
            "contextId": self.context_id,
            "status": status,
            "history": list(history),
        }


class InMemoryTaskStore:
    """Bounded task store; the oldest tasks are evicted first."""

    def __init__(self, max_tasks: int = 1000):
        self._tasks: OrderedDict[str, Task] = OrderedDict()
        self.max_tasks = max_tasks

    def get(self, task_id: str) -> Optional[Task]:
        return self._tasks.get(task_id)

    def save(self, task: Task) -> None:
        self._tasks[task.id] = task
        self._tasks.move_to_end(task.id)
        while len(self._tasks) > self.max_tasks:
            self._tasks.popitem(last=False)

    def __len__(self) -> int:
        return len(self._tasks)


def _params(body: dict) -> dict:
    params = body.get("params", {})
    if not isinstance(params, dict):
        raise JSONRPCError(INVALID_PARAMS, "Invalid params")
    return params


def _task_id(params: dict) -> str:
    task_id = params.get("id")
    if not isinstance(task_id, str) or not task_id:
        raise JSONRPCError(INVALID_PARAMS, "Invalid params: task id is required")
    return task_id


class A2ARuntime:
    """Dispatches a parsed JSON-RPC request object to a method handler."""

    def __init__(self, executor: TrustGatewayExecutor, store: Optional[InMemoryTaskStore] = None):
        self.executor = executor
        self.store = store if store is not None else InMemoryTaskStore()
        self._handlers = {
            A2AMethod.MESSAGE_SEND: self._send,
            A2AMethod.MESSAGE_STREAM: self._send,
            A2AMethod.TASKS_GET: self._get,
            A2AMethod.TASKS_CANCEL: self._cancel,
        }

    async def handle(self, body: Any) -> dict:
        """Return the JSON-RPC response object. Protocol errors never raise."""
        if not isinstance(body, dict):
            return error_response(None, invalid_request())
        rid = request_id_of(body)
        method = body.get("method")
        if body.get("jsonrpc") != JSONRPC_VERSION or not isinstance(method, str):
            return error_response(rid, invalid_request())

        kind = A2AMethod.classify(method)
        try:
            if kind is A2AMethod.UNKNOWN:
                raise JSONRPCError(METHOD_NOT_FOUND, "Method not found")
            handler = self._handlers.get(kind)
            if handler is None:
                code = (PUSH_NOTIFICATION_NOT_SUPPORTED if "pushNotificationConfig" in method
                        else UNSUPPORTED_OPERATION)
                raise JSONRPCError(code, f"{method} is not supported")
            result = await handler(_params(body))
        except JSONRPCError as e:
            return error_response(rid, e)
        return success_response(rid, result)

    async def _send(self, params: dict) -> dict:
        message = params.get("message")
        if not isinstance(message, dict) or not isinstance(message.get("parts"), list):
            raise JSONRPCError(INVALID_PARAMS, "Invalid params: message with parts is required")

        context_id = message.get("contextId") or str(uuid.uuid4())
        task = Task(id=str(uuid.uuid4()), context_id=context_id)
        user_message = {**message, "contextId": context_id, "taskId": task.id}
        task.history.append(user_message)
        task.transition(TaskState.WORKING)
        self.store.save(task)

        reply = await self.executor.execute(message_text(message))

        agent_message = text_message("agent", reply, context_id, task.id)
        task.history.append(agent_message)
        task.transition(TaskState.COMPLETED, agent_message)
        self.store.save(task)
        return task.to_dict()

    async def _get(self, params: dict) -> dict:
        task = self.store.get(_task_id(params))
        if task is None:
            raise JSONRPCError(TASK_NOT_FOUND, "Task not found")
        history_length = params.get("historyLength")
        if history_length is not None and (
            isinstance(history_length, bool) or not isinstance(history_length, int) or history_length < 0
        ):
            raise JSONRPCError(INVALID_PARAMS, "Invalid params: historyLength must be a non-negative integer")
        return task.to_dict(history_length)

    async def _cancel(self, params: dict) -> dict:
        task = self.store.get(_task_id(params))
        if task is None:
            raise JSONRPCError(TASK_NOT_FOUND, "Task not found")
        if task.state.terminal:
            raise JSONRPCError(TASK_NOT_CANCELABLE, "Task cannot be canceled")
        task.transition(TaskState.CANCELED)
        self.store.save(task)
        return task.to_dict()
