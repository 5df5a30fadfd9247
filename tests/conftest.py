from __future__ import annotations

import textwrap
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import pytest

from src.commands.errors import RemoteNotFound
from src.commands.types import RemoteCommand


class FakeRemoteRegistry:
    """In-memory command registry with per-call failure injection.

    `fail_create`, `fail_edit` and `fail_list` map a scope to the exception the
    next matching call raises.
    """

    def __init__(self) -> None:
        self.scopes: Dict[Optional[int], Dict[int, Dict[str, Any]]] = {}
        self.calls: List[Tuple[str, Optional[int]]] = []
        self.fail_create: Dict[Optional[int], Exception] = {}
        self.fail_edit: Dict[Optional[int], Exception] = {}
        self.fail_list: Dict[Optional[int], Exception] = {}
        self._next_id = 1000

    def _store(self, scope: Optional[int]) -> Dict[int, Dict[str, Any]]:
        return self.scopes.setdefault(scope, {})

    def _new_id(self) -> int:
        self._next_id += 1
        return self._next_id

    def seed(self, scope: Optional[int], name: str, **data: Any) -> RemoteCommand:
        """Put a command into the remote registry without recording a call."""
        cmd_id = self._new_id()
        payload = {"id": cmd_id, "name": name, **data}
        self._store(scope)[cmd_id] = payload
        return RemoteCommand.from_payload(payload, scope)

    def names(self, scope: Optional[int]) -> List[str]:
        return sorted(d["name"] for d in self._store(scope).values())

    def count(self, method: str, scope: Any = ...) -> int:
        return sum(1 for m, s in self.calls if m == method and (scope is ... or s == scope))

    async def list(self, scope: Optional[int]) -> List[RemoteCommand]:
        self.calls.append(("list", scope))
        if scope in self.fail_list:
            raise self.fail_list[scope]
        return [RemoteCommand.from_payload(d, scope) for d in self._store(scope).values()]

    async def create(self, scope: Optional[int], data: Dict[str, Any]) -> RemoteCommand:
        self.calls.append(("create", scope))
        if scope in self.fail_create:
            raise self.fail_create[scope]
        store = self._store(scope)
        for cmd_id, existing in store.items():
            if existing["name"] == data["name"]:
                store[cmd_id] = {**data, "id": cmd_id}
                return RemoteCommand.from_payload(store[cmd_id], scope)
        return self.seed(scope, **data)

    async def edit(self, scope: Optional[int], command_id: int, data: Dict[str, Any]) -> RemoteCommand:
        self.calls.append(("edit", scope))
        if scope in self.fail_edit:
            raise self.fail_edit.pop(scope)
        store = self._store(scope)
        if command_id not in store:
            raise RemoteNotFound(f"Unknown application command {command_id}")
        store[command_id] = {**data, "id": command_id}
        return RemoteCommand.from_payload(store[command_id], scope)

    async def delete(self, scope: Optional[int], command_id: int) -> None:
        self.calls.append(("delete", scope))
        store = self._store(scope)
        if command_id not in store:
            raise RemoteNotFound(f"Unknown application command {command_id}")
        del store[command_id]

    async def replace_all(self, scope: Optional[int], data: Sequence[Dict[str, Any]]) -> List[RemoteCommand]:
        self.calls.append(("replace_all", scope))
        self.scopes[scope] = {}
        return [self.seed(scope, **d) for d in data]


class ManualScheduler:
    """call_later stand-in; tests fire the pending callbacks themselves."""

    def __init__(self) -> None:
        self.pending: List[Tuple[float, Callable[[], None]]] = []

    def __call__(self, delay: float, callback: Callable[[], None]) -> None:
        self.pending.append((delay, callback))

    def fire_all(self) -> None:
        pending, self.pending = self.pending, []
        for _, callback in pending:
            callback()


@pytest.fixture()
def remote() -> FakeRemoteRegistry:
    return FakeRemoteRegistry()


@pytest.fixture()
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture()
def commands_root(tmp_path: Path) -> Path:
    root = tmp_path / "commands"
    root.mkdir()
    return root


@pytest.fixture()
def write_module(commands_root: Path) -> Callable[[str, str], Path]:
    """Write a command definition module relative to the commands root."""

    def _write(relative: str, body: str) -> Path:
        path = commands_root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(body), encoding="utf-8")
        return path

    return _write
