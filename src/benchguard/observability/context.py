import uuid
from contextvars import ContextVar

run_id: ContextVar[str] = ContextVar("run_id", default="")


def new_run_id() -> str:
    rid = f"r-{uuid.uuid4().hex[:12]}"
    run_id.set(rid)
    return rid


def get_run_id() -> str:
    current = run_id.get()
    if current:
        return current
    return new_run_id()


def clear_context() -> None:
    run_id.set("")
