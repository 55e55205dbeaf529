from __future__ import annotations

from contextvars import ContextVar

from pydantic import Field

from headshot_common.ids import RequestId, UserId, new_request_id
from headshot_common.utils import ContextVarManager, JsonModel, use_context_var


class RequestContext(JsonModel):
    request_id: RequestId = Field(default_factory=new_request_id)
    endpoint: str | None = None
    trigger: str | None = None

    user_id: UserId | None = None
    stripe_event_id: str | None = None

    @staticmethod
    def get() -> RequestContext:
        return _context_var.get()

    @staticmethod
    def get_or_none() -> RequestContext | None:
        return _context_var.get(None)

    @staticmethod
    def context(trigger: str | None = None) -> ContextVarManager[RequestContext]:
        return use_context_var(_context_var, RequestContext(trigger=trigger))


_context_var: ContextVar[RequestContext] = ContextVar("request_context")
