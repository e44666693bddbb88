import importlib

from app.models.request_log import RequestLog


def import_all_models() -> None:
    for module_name in ("app.models.request_log",):
        importlib.import_module(module_name)


__all__ = ["RequestLog", "import_all_models"]
