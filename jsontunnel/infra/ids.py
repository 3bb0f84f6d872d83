import uuid


def new_run_id() -> str:
    """
    Reason:
    - One identifier ties together every attempt of a tunnel run.
    Benefit:
    - Grep one id and see the prompts, failures and final outcome in order.
    """
    return uuid.uuid4().hex


def new_stream_id() -> str:
    return uuid.uuid4().hex[:12]
