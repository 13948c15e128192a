"""
Exclusão mútua por técnico entre a checagem de conflito e a escrita.

O lock em memória cobre as threads deste processo (endpoints síncronos do
FastAPI rodam em threadpool). Entre processos, quem garante é o
SELECT ... FOR UPDATE na linha do técnico feito dentro da mesma transação
(ver store.get_technician).
"""
import threading
from contextlib import contextmanager
from typing import Dict

_registry_guard = threading.Lock()
_technician_locks: Dict[int, threading.Lock] = {}


def _lock_for(technician_id: int) -> threading.Lock:
    with _registry_guard:
        lock = _technician_locks.get(technician_id)
        if lock is None:
            lock = threading.Lock()
            _technician_locks[technician_id] = lock
        return lock


@contextmanager
def technician_lock(technician_id: int):
    lock = _lock_for(technician_id)
    with lock:
        yield
