from .json_model import JsonModel, TJsonModel
from .msgspec import SerializationError, decode_json, encode_json, encode_json_str
from .utils import (
    ContextVarManager,
    blocking_run_async,
    cached_classmethod,
    deep_merge,
    get_logger,
    get_now,
    get_now_ms,
    is_dict,
    use_context_var,
)

__all__ = [
    "ContextVarManager",
    "JsonModel",
    "SerializationError",
    "TJsonModel",
    "blocking_run_async",
    "cached_classmethod",
    "decode_json",
    "deep_merge",
    "encode_json",
    "encode_json_str",
    "get_logger",
    "get_now",
    "get_now_ms",
    "is_dict",
    "use_context_var",
]
