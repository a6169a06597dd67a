"""
周期调度器 - 以固定间隔驱动一次完整的监控周期
同一时刻只运行一个周期，stop() 之后不会再开始新的周期
"""

import threading
from enum import Enum
from typing import Callable, Optional

from trading_agent.core.errors import InvalidParameterError
from trading_agent.utils.log import setup_logging

log = setup_logging(module_prefix='SCHEDULER')


class SchedulerState(Enum):
    STOPPED = "stopped"
    RUNNING = "running"


class CycleScheduler:
    """
    周期调度器

    工作线程在上一周期完成后等待 interval 再开始下一周期，
    周期之间通过周期锁串行化（包括 run_once 的手动调用）。
    """

    def __init__(self, cycle: Callable[[], None], name: str = 'monitor-cycle'):
        self._cycle = cycle
        self.name = name
        self._state = SchedulerState.STOPPED
        self._state_lock = threading.Lock()
        self._cycle_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._cycle_done = threading.Event()
        self._cycle_done.set()
        self._thread: Optional[threading.Thread] = None
        self.interval_ms: Optional[float] = None
        self.cycle_count = 0
        self.error_count = 0

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is SchedulerState.RUNNING

    def start(self, interval_ms: float) -> SchedulerState:
        """STOPPED -> RUNNING；已在运行时不做任何事"""
        if isinstance(interval_ms, bool) or not isinstance(interval_ms, (int, float)) or interval_ms <= 0:
            raise InvalidParameterError(f"interval_ms 必须为正数: {interval_ms!r}")

        with self._state_lock:
            if self._state is SchedulerState.RUNNING:
                log.debug("[SCHEDULER] 调度器已在运行，忽略重复启动")
                return self._state

            self.interval_ms = interval_ms
            stop_event = threading.Event()
            self._stop_event = stop_event
            self._thread = threading.Thread(
                target=self._run,
                args=(interval_ms / 1000.0, stop_event),
                name=self.name,
                daemon=True
            )
            self._state = SchedulerState.RUNNING
            self._thread.start()

        log.info(f"[SCHEDULER] 调度器已启动，周期间隔 {interval_ms}ms")
        return self._state

    def stop(self) -> SchedulerState:
        """RUNNING -> STOPPED；不打断正在进行的周期"""
        with self._state_lock:
            if self._state is SchedulerState.STOPPED:
                return self._state
            self._stop_event.set()
            self._state = SchedulerState.STOPPED

        log.info("[SCHEDULER] 调度器已停止")
        return self._state

    def run_once(self):
        """在调用线程上同步执行一个周期"""
        with self._cycle_lock:
            self._execute()

    def wait_for_cycle(self, timeout: Optional[float] = None) -> bool:
        """等待当前周期完成（没有进行中的周期时立即返回）"""
        return self._cycle_done.wait(timeout)

    def join(self, timeout: Optional[float] = None):
        """等待工作线程退出"""
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)

    def _run(self, interval: float, stop_event: threading.Event):
        while not stop_event.wait(interval):
            with self._cycle_lock:
                # 在周期锁内再次确认，保证 stop() 返回后不会开始新周期
                with self._state_lock:
                    if stop_event.is_set():
                        break
                    self._cycle_done.clear()
                self._execute()

    def _execute(self):
        self._cycle_done.clear()
        try:
            self._cycle()
        except Exception as e:
            self.error_count += 1
            log.error(f"[SCHEDULER] 周期执行异常: {e}")
        finally:
            self.cycle_count += 1
            self._cycle_done.set()
