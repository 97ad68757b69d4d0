"""
Wire protocol for remote recognition.

Messages are UTF-8 JSON documents split into chunks. Each chunk carries a
5-byte big-endian header: payload length (uint32) and an end-of-message flag
(uint8). A receiver concatenates payloads until it sees the end flag.
"""

import base64
import json
import struct
from typing import Any, Dict, List, Optional, Tuple

import cv2
import numpy as np

from reco.types import FeatureMatchingResult, ImageRequest, TargetMatchResult, empty_image

CHUNK_SIZE = 4096
HEADER = struct.Struct('>IB')

STATUS_SUCCESS = "success"
STATUS_FAILED = "failed"

INVALID_REQUEST = "invalid_request"
NOT_READY = "not_ready"
INTERNAL_ERROR = "internal_error"


def send_message(connection, payload: bytes, chunk_size: int = CHUNK_SIZE):
    """Send one message over a socket-like object with ``sendall``."""
    if chunk_size <= 0:
        raise ValueError(f"Chunk size must be positive, got {chunk_size}")

    offset = 0
    while True:
        chunk = payload[offset:offset + chunk_size]
        offset += len(chunk)
        end = offset >= len(payload)
        connection.sendall(HEADER.pack(len(chunk), 1 if end else 0) + chunk)
        if end:
            return


def _recv_exact(connection, size: int) -> bytes:
    data = bytearray()
    while len(data) < size:
        packet = connection.recv(size - len(data))
        if not packet:
            break
        data.extend(packet)
    return bytes(data)


def receive_message(connection) -> Optional[bytes]:
    """
    Receive one message.

    Returns:
        The reassembled payload, or None when the peer closed cleanly
        between messages

    Raises:
        ConnectionError: The peer closed in the middle of a message
    """
    parts = []
    while True:
        header = _recv_exact(connection, HEADER.size)
        if not header and not parts:
            return None
        if len(header) < HEADER.size:
            raise ConnectionError("Connection closed inside a message header")

        length, end = HEADER.unpack(header)
        chunk = _recv_exact(connection, length)
        if len(chunk) < length:
            raise ConnectionError("Connection closed inside a message chunk")

        parts.append(chunk)
        if end:
            return b''.join(parts)


def encode_mat(image: np.ndarray) -> str:
    if image is None or image.size == 0:
        return ""
    ok, buffer = cv2.imencode('.png', image)
    if not ok:
        raise ValueError("Failed to encode request image")
    return base64.b64encode(buffer.tobytes()).decode('ascii')


def decode_mat(text: str) -> np.ndarray:
    if not text:
        return empty_image()
    buffer = np.frombuffer(base64.b64decode(text, validate=True), dtype=np.uint8)
    image = cv2.imdecode(buffer, cv2.IMREAD_UNCHANGED)
    if image is None:
        raise ValueError("Request image could not be decoded")
    return image


def encode_request(request: ImageRequest) -> bytes:
    document = {
        'id': request.id,
        'mat': encode_mat(request.image),
        'original_width': request.original_width,
        'original_height': request.original_height,
        'is_grayscale': request.is_grayscale,
        'is_low_resolution': request.is_low_resolution,
        'has_roi': request.has_roi,
        'has_gaussian_blur': request.has_gaussian_blur,
    }
    return json.dumps(document).encode('utf-8')


def decode_request(payload: bytes) -> ImageRequest:
    """Parse a request; raises ValueError on malformed input."""
    document = _load_object(payload, "request")
    try:
        return ImageRequest(
            id=str(document['id']),
            image=decode_mat(document['mat']),
            original_width=int(document['original_width']),
            original_height=int(document['original_height']),
            is_grayscale=bool(document.get('is_grayscale', False)),
            is_low_resolution=bool(document.get('is_low_resolution', False)),
            has_roi=bool(document.get('has_roi', False)),
            has_gaussian_blur=bool(document.get('has_gaussian_blur', False)),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise ValueError(f"Malformed request: {e}") from e


def _result_to_wire(match: TargetMatchResult) -> Dict[str, Any]:
    return {
        'id': match.id,
        'projected_region': [list(p) for p in match.projected_region],
        'size': list(match.size),
        'center_x': match.center_x,
        'center_y': match.center_y,
        'angle': match.angle,
        'homography': list(match.homography),
    }


def encode_response(transaction_id: str, result: Optional[FeatureMatchingResult] = None,
                    errors: Optional[List[Tuple[str, str]]] = None) -> bytes:
    """A ``success`` response when there are no errors, ``failed`` otherwise."""
    errors = errors or []
    document = {
        'status_code': STATUS_FAILED if errors else STATUS_SUCCESS,
        'transaction_id': transaction_id,
        'result': [_result_to_wire(m) for m in (result.matches if result else ())],
        'errors': [{'result_code': code, 'message': message} for code, message in errors],
    }
    return json.dumps(document).encode('utf-8')


def decode_response(payload: bytes) -> Tuple[str, str, FeatureMatchingResult, List[Dict[str, str]]]:
    """
    Parse a response.

    Returns:
        (status_code, transaction_id, result, errors); result is empty for
        failed responses

    Raises:
        ValueError: The payload is not a well-formed response
    """
    document = _load_object(payload, "response")
    try:
        status = document['status_code']
        transaction_id = str(document.get('transaction_id', ''))
        errors = list(document.get('errors') or [])
        if status == STATUS_FAILED:
            return status, transaction_id, FeatureMatchingResult(), errors
        if status != STATUS_SUCCESS:
            raise ValueError(f"unknown status {status!r}")

        matches = tuple(TargetMatchResult.from_dict(m) for m in document.get('result') or [])
        return status, transaction_id, FeatureMatchingResult(matches), errors
    except (KeyError, TypeError, ValueError) as e:
        raise ValueError(f"Malformed response: {e}") from e


def _load_object(payload: bytes, what: str) -> Dict[str, Any]:
    try:
        document = json.loads(payload.decode('utf-8'))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ValueError(f"Malformed {what}: {e}") from e
    if not isinstance(document, dict):
        raise ValueError(f"Malformed {what}: expected a JSON object")
    return document
