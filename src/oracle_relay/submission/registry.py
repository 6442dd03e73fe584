# submission/registry.py
from oracle_relay.submission.base import TxSubmitter

SUBMITTER_REGISTRY: dict[str, type] = {}

def register_submitter(name: str):
    def decorator(cls):
        SUBMITTER_REGISTRY[name] = cls
        return cls
    return decorator


def build_submitter(name: str, **kwargs) -> TxSubmitter:
    if name not in SUBMITTER_REGISTRY:
        raise ValueError(f"Submitter '{name}' not found in registry.")
    return SUBMITTER_REGISTRY[name](**kwargs)
