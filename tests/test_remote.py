"""Tests for remote recognition."""

import json
import socket
import threading
import time

import numpy as np
import pytest
from reco.core import ImageRecognition, RecognitionNotReadyError
from reco.preprocessing.enhancement import ImageRequestBuilder
from reco.remote.client import CloudRecognition
from reco.remote.protocol import (
    HEADER, decode_request, decode_response, encode_request, encode_response,
    receive_message, send_message
)
from reco.remote.server import RecognitionServer
from reco.types import FeatureMatchingResult, ImageData, TargetMatchResult


class FakeConnection:
    """In-memory socket: records sends and replays a byte stream on recv."""

    def __init__(self, incoming=b''):
        self.sent = bytearray()
        self.incoming = bytearray(incoming)
        self.closed = False

    def sendall(self, data):
        self.sent.extend(data)

    def recv(self, size):
        # short reads exercise reassembly
        size = min(size, 1000)
        data = bytes(self.incoming[:size])
        del self.incoming[:size]
        return data

    def close(self):
        self.closed = True


class TestFraming:
    """Test chunked message framing."""

    def test_large_message_is_chunked(self):
        """Test payloads are split into chunk-sized frames with one end flag."""
        payload = bytes(range(256)) * 40
        connection = FakeConnection()
        send_message(connection, payload, chunk_size=4096)

        frames = []
        data = bytes(connection.sent)
        while data:
            length, end = HEADER.unpack(data[:HEADER.size])
            frames.append((length, end))
            data = data[HEADER.size + length:]

        assert frames == [(4096, 0), (4096, 0), (2048, 1)]

    def test_round_trip(self):
        """Test a message reassembles across chunks and short reads."""
        payload = b'x' * 10000
        sender = FakeConnection()
        send_message(sender, payload, chunk_size=4096)

        assert receive_message(FakeConnection(sender.sent)) == payload

    def test_empty_message(self):
        """Test an empty payload is still one end-flagged frame."""
        sender = FakeConnection()
        send_message(sender, b'')
        assert receive_message(FakeConnection(sender.sent)) == b''

    def test_clean_close(self):
        """Test a peer closing between messages returns None."""
        assert receive_message(FakeConnection()) is None

    def test_close_mid_message(self):
        """Test a truncated stream raises ConnectionError."""
        sender = FakeConnection()
        send_message(sender, b'y' * 100)
        with pytest.raises(ConnectionError):
            receive_message(FakeConnection(sender.sent[:50]))


class TestWireFormat:
    """Test request and response documents."""

    def test_request_round_trip(self):
        """Test request fields and pixels survive encoding."""
        image = np.random.RandomState(0).randint(0, 256, (40, 60), dtype=np.uint8)
        request = ImageRequestBuilder().with_grayscale().build(image, 'frame-1')

        restored = decode_request(encode_request(request))
        assert restored.id == 'frame-1'
        assert np.array_equal(restored.image, request.image)
        assert (restored.original_width, restored.original_height) == (60, 40)
        assert restored.is_grayscale and not restored.has_roi

    def test_request_uses_snake_case(self):
        """Test wire key names."""
        request = ImageRequestBuilder().build(np.zeros((4, 4), dtype=np.uint8), 'r')
        document = json.loads(encode_request(request))
        assert set(document) == {'id', 'mat', 'original_width', 'original_height', 'is_grayscale',
                                 'is_low_resolution', 'has_roi', 'has_gaussian_blur'}

    def test_malformed_request(self):
        """Test bad documents raise ValueError."""
        with pytest.raises(ValueError):
            decode_request(b'{not json')
        with pytest.raises(ValueError):
            decode_request(b'{"id": "x"}')
        with pytest.raises(ValueError):
            decode_request(b'[]')

    def test_response_round_trip(self):
        """Test match results survive encoding."""
        match = TargetMatchResult('t', ((0.0, 1.0), (2.0, 3.0), (4.0, 5.0), (6.0, 7.0)),
                                  3.0, 4.0, 12.5, (10.0, 20.0), tuple(np.eye(3).ravel()))
        status, transaction_id, result, errors = decode_response(
            encode_response('txn', FeatureMatchingResult((match,)))
        )
        assert status == 'success'
        assert transaction_id == 'txn'
        assert result.matches == (match,)
        assert errors == []

    def test_failed_response_is_empty(self):
        """Test failed responses carry errors and no matches."""
        status, _, result, errors = decode_response(encode_response('txn', errors=[('internal_error', 'boom')]))
        assert status == 'failed'
        assert not result.has_matches
        assert errors == [{'result_code': 'internal_error', 'message': 'boom'}]

    def test_malformed_response(self):
        """Test unknown status codes are rejected."""
        with pytest.raises(ValueError):
            decode_response(b'{"status_code": "maybe"}')


class TestServer:
    """Test request handling."""

    def test_invalid_request_gives_failed_response(self, engine):
        """Test garbage requests are answered, not raised."""
        engine.init([])
        status, _, _, errors = decode_response(RecognitionServer(engine).handle_message(b'garbage'))
        assert status == 'failed'
        assert errors[0]['result_code'] == 'invalid_request'

    def test_not_ready_gives_failed_response(self, engine):
        """Test an uninitialized engine is reported to the client."""
        request = ImageRequestBuilder().build(np.zeros((8, 8), dtype=np.uint8), 'r')
        status, _, _, errors = decode_response(RecognitionServer(engine).handle_message(encode_request(request)))
        assert status == 'failed'
        assert errors[0]['result_code'] == 'not_ready'


class TestCloudRecognition:
    """Test the client against a live server over a socket pair."""

    def test_not_ready_raises(self):
        """Test matching without a connection is an error."""
        client = CloudRecognition()
        assert not client.is_ready
        with pytest.raises(RecognitionNotReadyError):
            client.match(ImageRequestBuilder().build(np.zeros((4, 4), dtype=np.uint8)))

    def test_empty_request_skips_round_trip(self):
        """Test empty requests never reach the connection."""
        connection = FakeConnection()
        client = CloudRecognition(connection)
        assert not client.match(ImageRequestBuilder().build(None)).has_matches
        assert connection.sent == bytearray()

    def test_remote_match(self, textured_image):
        """Test a remote match returns the same target as a local one."""
        client_socket, server_socket = socket.socketpair()

        with ImageRecognition({"preprocessing": {"low_resolution": 320}}) as engine:
            engine.init([ImageData('poster', textured_image)])
            server = RecognitionServer(engine)
            thread = threading.Thread(target=server.serve_connection, args=(server_socket,))
            thread.start()

            with CloudRecognition(client_socket) as client:
                request = engine.request_builder.build(textured_image, 'frame')
                remote = client.match(request)
                again = client.match(request)

            thread.join(timeout=10)

        local_ids = ('poster',)
        assert remote.ids == local_ids
        assert again.ids == local_ids
        assert remote.matches[0].center_x == pytest.approx(320.0, abs=2.0)
        assert not thread.is_alive()

    def test_tcp_server(self, textured_image):
        """Test connecting to a listening server and shutting it down."""
        with ImageRecognition({"preprocessing": {"low_resolution": 320}}) as engine:
            engine.init([ImageData('poster', textured_image)])
            server = RecognitionServer(engine)
            server.poll_interval = 0.05
            ready = threading.Event()
            thread = threading.Thread(target=server.serve_forever, kwargs={'ready': ready})
            thread.start()
            assert ready.wait(timeout=10)

            host, port = server.address
            with CloudRecognition() as client:
                client.connect(host, port, timeout=30)
                assert client.is_ready
                result = client.match(engine.request_builder.build(textured_image, 'frame'))

            server.shutdown()
            thread.join(timeout=10)

        assert result.ids == ('poster',)
        assert not thread.is_alive()
        assert server.address is None

    def test_shutdown_closes_open_connections(self, engine):
        """Test shutdown ends idle client connections and joins their threads."""
        engine.init([])
        server = RecognitionServer(engine)
        server.poll_interval = 0.05
        ready = threading.Event()
        thread = threading.Thread(target=server.serve_forever, kwargs={'ready': ready})
        thread.start()
        assert ready.wait(timeout=10)

        client = socket.create_connection(server.address, timeout=10)
        for _ in range(200):
            if server.active_connections == 1:
                break
            time.sleep(0.01)
        assert server.active_connections == 1

        server.shutdown(timeout=10)
        thread.join(timeout=10)

        assert server.active_connections == 0
        assert not thread.is_alive()
        assert client.recv(1) == b''
        client.close()
