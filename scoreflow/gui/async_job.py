"""Helper classes for running slow work in a background thread.

Score data is fetched from the network or the disk while the UI keeps
running.  This module defines a ``Job`` class and its ``JobSignals``
for that purpose.  It relies on Qt's ``QRunnable`` and signals/slots
mechanism: a consumer submits a ``Job`` to the global ``QThreadPool``
and connects to the ``result``, ``error`` and ``finished`` signals.

Example usage::

    from PyQt6.QtCore import QThreadPool
    from .async_job import Job

    job = Job(controller.prepare_block, source)
    job.signals.result.connect(lambda prepared: controller.complete_block(prepared, mount, token))
    job.signals.error.connect(lambda exc: controller.report_error("render", exc))
    QThreadPool.globalInstance().start(job)

Signals are delivered on the thread that connected them, so the
connected callbacks (and with them every call into the engraving
engine) run on the UI thread.  Only the job function itself runs in the
worker and must not touch the engine.
"""

from __future__ import annotations

from typing import Set

from PyQt6.QtCore import QObject, QRunnable, QThreadPool, pyqtSignal, pyqtSlot


class JobSignals(QObject):
    """Defines the signals available from a running job.

    ``result``
        Emitted with the return value of the function.

    ``error``
        Emitted with the exception object if the function raises, so
        receivers can tell a ``FetchError`` from anything else.

    ``finished``
        Emitted when the job is finished, regardless of success or
        failure.
    """

    result = pyqtSignal(object)
    error = pyqtSignal(object)
    finished = pyqtSignal()


class Job(QRunnable):
    """Wraps a callable for execution in a separate thread.

    :param fn: Callable to execute.
    :param args: Positional arguments to pass to ``fn``.
    :param kwargs: Keyword arguments to pass to ``fn``.
    """

    def __init__(self, fn, *args, **kwargs) -> None:
        super().__init__()
        self.fn = fn
        self.args = args
        self.kwargs = kwargs
        self.signals = JobSignals()

    @pyqtSlot()
    def run(self) -> None:
        try:
            result = self.fn(*self.args, **self.kwargs)
        except Exception as exc:
            self.signals.error.emit(exc)
        else:
            self.signals.result.emit(result)
        finally:
            self.signals.finished.emit()


_RUNNING: Set[Job] = set()


def start_job(fn, *args, on_result=None, on_error=None, **kwargs) -> Job:
    """Submit ``fn`` to the global thread pool and wire the callbacks.

    A reference to the job is kept until it finishes so that its signal
    object outlives the worker.
    """
    job = Job(fn, *args, **kwargs)
    if on_result is not None:
        job.signals.result.connect(on_result)
    if on_error is not None:
        job.signals.error.connect(on_error)
    _RUNNING.add(job)
    job.signals.finished.connect(lambda: _RUNNING.discard(job))
    QThreadPool.globalInstance().start(job)
    return job
