import threading
import uuid
from contextlib import contextmanager

from .errors import DuplicateRequestError


class InFlightRequests:
    """
    Process-local set of request ids that are currently being handled.

    Used to reject a retried admin request while the first attempt is still
    running. The set lives in memory only, so a request retried after a
    restart (or against another process) is not recognised as a duplicate.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._ids = set()

    def __contains__(self, request_id):
        with self._lock:
            return request_id in self._ids

    def __len__(self):
        with self._lock:
            return len(self._ids)

    def add(self, request_id: str) -> None:
        with self._lock:
            if request_id in self._ids:
                raise DuplicateRequestError()
            self._ids.add(request_id)

    def discard(self, request_id: str) -> None:
        with self._lock:
            self._ids.discard(request_id)

    @contextmanager
    def claim(self, request_id: str = None):
        """
        Mark request_id as in flight for the duration of the block.

        A fresh uuid4 is used when no id is supplied. The id is released
        when the block exits, whether it returns or raises.
        """
        request_id = request_id or str(uuid.uuid4())
        self.add(request_id)
        try:
            yield request_id
        finally:
            self.discard(request_id)
