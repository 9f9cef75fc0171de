"""Cache key namespaces used by the analysis service."""


def result_key(product_id: str) -> str:
    """Terminal task record (long TTL)."""
    return f"result:{product_id}"


def status_key(product_id: str) -> str:
    """Latest status report (short TTL)."""
    return f"status:{product_id}"


def task_key(task_id: str) -> str:
    """Task index mapping a task id back to its product (medium TTL)."""
    return f"task:{task_id}"


def submission_key(product_id: str) -> str:
    """Marker held while a submission is in flight."""
    return f"submit:{product_id}"


def callback_key(task_id: str) -> str:
    """Marker claimed by the first terminal callback of a task."""
    return f"callback:{task_id}"
