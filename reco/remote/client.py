"""Client side of remote recognition."""

import logging
import socket
import threading
from typing import Optional

from reco.remote.protocol import (
    CHUNK_SIZE, decode_response, encode_request, receive_message, send_message
)
from reco.core import RecognitionNotReadyError
from reco.types import FeatureMatchingResult, ImageRequest

logger = logging.getLogger(__name__)


class CloudRecognition:
    """
    Recognition backed by a remote RecognitionServer.

    Drop-in for ImageRecognition.match: requests are sent over a connected
    socket-like object and one request is in flight at a time.
    """

    def __init__(self, connection=None, chunk_size: int = CHUNK_SIZE):
        self.chunk_size = chunk_size
        self._connection = None
        self._lock = threading.Lock()
        if connection is not None:
            self.init(connection)

    def init(self, connection):
        """Attach an already connected socket-like object."""
        with self._lock:
            self._connection = connection

    def connect(self, host: str, port: int, timeout: Optional[float] = None):
        self.init(socket.create_connection((host, port), timeout=timeout))
        logger.info("Connected to recognition server %s:%d", host, port)

    @property
    def is_ready(self) -> bool:
        return self._connection is not None

    def match(self, request: ImageRequest) -> FeatureMatchingResult:
        """
        Send a request and wait for its result.

        Raises:
            RecognitionNotReadyError: No connection has been attached
            ConnectionError: The server closed the connection
            ValueError: The server answered with a malformed response
        """
        if not self.is_ready:
            raise RecognitionNotReadyError("Cloud recognition is not connected.")

        if request.is_empty:
            return FeatureMatchingResult()

        with self._lock:
            send_message(self._connection, encode_request(request), self.chunk_size)
            payload = receive_message(self._connection)

        if payload is None:
            raise ConnectionError("Recognition server closed the connection")

        status, transaction_id, result, errors = decode_response(payload)
        for error in errors:
            logger.warning("Transaction %s (%s): %s: %s", transaction_id, request.id,
                           error.get('result_code'), error.get('message'))
        return result

    def close(self):
        with self._lock:
            if self._connection is not None:
                self._connection.close()
                self._connection = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
