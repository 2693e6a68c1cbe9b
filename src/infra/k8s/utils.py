"""Helpers for driving the async controller from synchronous code."""

from __future__ import annotations

import asyncio
import concurrent.futures
from collections.abc import Coroutine
from typing import Any, TypeVar

T = TypeVar("T")


def run_sync(coro: Coroutine[Any, Any, T]) -> T:
    """Run an async coroutine to completion from a blocking caller.

    The bootstrap stages are sequential, so each controller call gets its own
    event loop. When called from inside a running loop the coroutine is handed
    to a worker thread with a fresh loop instead.

    Example:
        from src.infra.k8s import get_k8s_controller, run_sync

        status = run_sync(
            get_k8s_controller().get_workload_status("Deployment", "argocd-server", "argocd")
        )
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)

    with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
        return pool.submit(asyncio.run, coro).result()
