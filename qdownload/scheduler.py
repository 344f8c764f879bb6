"""
Download Scheduler

Fixed pool of worker threads draining a pre-filled symbol queue. Each
worker runs one symbol at a time through the downloader; a failing
symbol never stops its worker or the run.
"""

import queue
import threading
import logging
from typing import Callable, Dict, List, Sequence

from .downloader import DownloadResult, DownloadStatus

logger = logging.getLogger(__name__)

DownloadFunc = Callable[[str], DownloadResult]


class DownloadScheduler:
    """Runs a download function over symbols with bounded parallelism."""

    def __init__(self, download_func: DownloadFunc, parallelism: int):
        """
        Initialize scheduler.

        Args:
            download_func: Downloads one symbol and returns its result
            parallelism: Number of worker threads
        """
        self.download_func = download_func
        self.parallelism = parallelism

        self._results: List[DownloadResult] = []
        self._results_lock = threading.Lock()

    def run(self, symbols: Sequence[str]) -> List[DownloadResult]:
        """
        Download all symbols and block until every worker is done.

        Args:
            symbols: Symbols to download

        Returns:
            One DownloadResult per symbol, in completion order
        """
        symbols_queue: queue.Queue = queue.Queue(maxsize=len(symbols))
        for symbol in symbols:
            symbols_queue.put_nowait(symbol)

        self._results = []

        logger.debug("Starting downloaders")

        workers = []
        for i in range(self.parallelism):
            worker = threading.Thread(
                target=self._worker,
                args=(symbols_queue,),
                name=f"downloader-{i}",
                daemon=True
            )
            worker.start()
            workers.append(worker)

        for worker in workers:
            worker.join()

        return list(self._results)

    def _worker(self, symbols_queue: queue.Queue):
        """Worker thread that downloads symbols until the queue is drained."""
        thread_name = threading.current_thread().name
        logger.debug(f"Worker {thread_name} started")

        while True:
            try:
                symbol = symbols_queue.get_nowait()
            except queue.Empty:
                break

            try:
                result = self.download_func(symbol)
            except Exception as e:
                logger.exception(f"[{symbol.upper()}] Unexpected download error: {e}")
                result = DownloadResult(symbol=symbol.upper(), status=DownloadStatus.FAILED,
                                        error=str(e))

            with self._results_lock:
                self._results.append(result)

        logger.debug(f"Worker {thread_name} stopped")


def summarize(results: Sequence[DownloadResult]) -> Dict[str, int]:
    """Count results per status."""
    summary = {status.value: 0 for status in DownloadStatus}
    for result in results:
        summary[result.status.value] += 1
    return summary
