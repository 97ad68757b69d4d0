"""Server side of remote recognition."""

import logging
import socket
import threading
import uuid
from typing import Dict, Optional

from reco.remote.protocol import (
    CHUNK_SIZE, INTERNAL_ERROR, INVALID_REQUEST, NOT_READY,
    decode_request, encode_response, receive_message, send_message
)
from reco.core import ImageRecognition, RecognitionNotReadyError

logger = logging.getLogger(__name__)


class RecognitionServer:
    """Answer framed match requests with an ImageRecognition engine."""

    def __init__(self, engine: ImageRecognition, chunk_size: int = CHUNK_SIZE):
        self.engine = engine
        self.chunk_size = chunk_size
        self._listener: Optional[socket.socket] = None
        self._closing = False
        self._clients: Dict[threading.Thread, socket.socket] = {}
        self._clients_lock = threading.Lock()
        self.poll_interval = 0.5

    def handle_message(self, payload: bytes) -> bytes:
        """
        Process one request payload.

        Returns:
            Encoded response; failures become a ``failed`` response carrying
            an error entry
        """
        transaction_id = str(uuid.uuid4())

        try:
            request = decode_request(payload)
        except ValueError as e:
            logger.warning("Transaction %s: %s", transaction_id, e)
            return encode_response(transaction_id, errors=[(INVALID_REQUEST, str(e))])

        try:
            result = self.engine.match(request)
        except RecognitionNotReadyError as e:
            logger.error("Transaction %s: %s", transaction_id, e)
            return encode_response(transaction_id, errors=[(NOT_READY, str(e))])
        except Exception as e:
            logger.exception("Transaction %s: matching request %s failed", transaction_id, request.id)
            return encode_response(transaction_id, errors=[(INTERNAL_ERROR, str(e))])

        logger.debug("Transaction %s: request %s matched %d targets", transaction_id,
                     request.id, len(result.matches))
        return encode_response(transaction_id, result)

    def serve_connection(self, connection):
        """Answer requests on one connection until the peer closes it."""
        try:
            while True:
                payload = receive_message(connection)
                if payload is None:
                    break
                send_message(connection, self.handle_message(payload), self.chunk_size)
        except ConnectionError as e:
            logger.error("Connection error: %s", e)
        finally:
            connection.close()
            logger.debug("Client disconnected.")

    def serve_forever(self, host: str = '127.0.0.1', port: int = 0, ready: Optional[threading.Event] = None):
        """
        Accept connections and serve each on its own thread until ``shutdown``.

        Args:
            host: Interface to bind
            port: TCP port; 0 picks a free one (see ``address``)
            ready: Set once the socket is listening
        """
        with socket.create_server((host, port)) as listener:
            self._listener = listener
            logger.info("Recognition server listening on %s:%d", *listener.getsockname()[:2])
            if ready is not None:
                ready.set()

            listener.settimeout(self.poll_interval)
            while not self._closing:
                try:
                    connection, address = listener.accept()
                except socket.timeout:
                    continue
                logger.debug("Client connected from %s:%d", *address[:2])
                thread = threading.Thread(target=self._serve_client, args=(connection,), daemon=True)
                with self._clients_lock:
                    if self._closing:
                        connection.close()
                        break
                    self._clients[thread] = connection
                thread.start()

        self._listener = None
        self._closing = False
        logger.info("Recognition server stopped")

    def _serve_client(self, connection):
        try:
            self.serve_connection(connection)
        finally:
            with self._clients_lock:
                self._clients.pop(threading.current_thread(), None)

    @property
    def active_connections(self) -> int:
        with self._clients_lock:
            return len(self._clients)

    @property
    def address(self):
        return self._listener.getsockname()[:2] if self._listener is not None else None

    def shutdown(self, timeout: Optional[float] = None):
        """
        Stop accepting connections and end every open one.

        serve_forever returns within poll_interval. Open connections are shut
        down so their threads leave ``recv`` and are joined here.
        """
        with self._clients_lock:
            self._closing = True
            clients = list(self._clients.items())

        for thread, connection in clients:
            try:
                connection.shutdown(socket.SHUT_RDWR)
            except OSError:
                # already closed by the peer
                pass
        for thread, _ in clients:
            thread.join(timeout)
        logger.debug("Closed %d client connections", len(clients))
