"""异步适配器模块

构建步骤通常从同步代码调用，而执行核心是异步的。
这里提供同步入口：没有事件循环时新建一个，已在事件循环中时交给工作线程。
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import warnings
from typing import Awaitable, Optional, TypeVar

T = TypeVar("T")


class EventLoopState:
    """事件循环状态检测器"""

    @staticmethod
    def is_running() -> bool:
        """检测是否在运行中的事件循环内"""
        try:
            asyncio.get_running_loop()
            return True
        except RuntimeError:
            return False


class AsyncAdapter:
    """同步/异步适配器

    - 在已有事件循环中：在单独线程的新事件循环里执行
    - 在无事件循环环境中：直接创建新的事件循环
    """

    def __init__(self) -> None:
        self._thread_pool: Optional[concurrent.futures.ThreadPoolExecutor] = None

    def run_sync(self, coro: Awaitable[T]) -> T:
        """运行协程并返回结果，协程中的异常原样抛出"""
        if EventLoopState.is_running():
            return self._run_in_thread_pool(coro)
        return self._run_with_new_loop(coro)

    def _run_with_new_loop(self, coro: Awaitable[T]) -> T:
        """在新事件循环中运行协程"""
        try:
            return asyncio.run(coro)
        except RuntimeError as e:
            if "cannot be called from a running event loop" in str(e):
                warnings.warn(
                    "Falling back to thread pool execution due to event loop conflict",
                    RuntimeWarning,
                )
                return self._run_in_thread_pool(coro)
            raise

    def _run_in_thread_pool(self, coro: Awaitable[T]) -> T:
        """在工作线程中运行协程"""
        if self._thread_pool is None:
            self._thread_pool = concurrent.futures.ThreadPoolExecutor(
                max_workers=1, thread_name_prefix="pipeline-http-async"
            )

        def run_in_thread():
            new_loop = asyncio.new_event_loop()
            asyncio.set_event_loop(new_loop)
            try:
                return new_loop.run_until_complete(coro)
            finally:
                new_loop.close()

        future = self._thread_pool.submit(run_in_thread)
        return future.result()

    def __del__(self):
        """清理线程池资源"""
        if self._thread_pool:
            self._thread_pool.shutdown(wait=False)


# 全局适配器实例
_default_adapter = AsyncAdapter()


def smart_run(coro: Awaitable[T]) -> T:
    """同步运行协程的便捷函数"""
    return _default_adapter.run_sync(coro)
