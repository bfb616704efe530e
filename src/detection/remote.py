"""
Remote detection client.

Posts the frame as a JPEG in a multipart `image` field and parses the JSON
detection list from the response. The body is streamed so a cancelled
token can close the connection instead of waiting for the whole response.
"""

from __future__ import annotations

import logging
from typing import List, Optional

import cv2
import numpy as np
import requests
from pydantic import ValidationError

from models.detection import DetectionResult
from models.errors import NetworkError, ParseError, PreprocessError
from models.frame import Frame
from runtime.cancellation import CancellationToken
from .schemas import DetectionResultModel


def encode_jpeg(frame: Frame, quality: int = 90) -> bytes:
    """Encode an RGB/RGBA frame as JPEG bytes."""
    if frame is None or frame.is_empty:
        raise PreprocessError("Frame is null or zero-sized")
    data = frame.data
    if data.ndim == 3:
        bgr = cv2.cvtColor(np.ascontiguousarray(data[:, :, :3]), cv2.COLOR_RGB2BGR)
    else:
        bgr = data
    ok, buf = cv2.imencode(".jpg", bgr, [int(cv2.IMWRITE_JPEG_QUALITY), int(quality)])
    if not ok:
        raise PreprocessError("JPEG encoding failed")
    return buf.tobytes()


class RemoteDetectionClient:
    def __init__(
        self,
        url: str,
        timeout: float = 4.0,
        session: Optional[requests.Session] = None,
        jpeg_quality: int = 90,
        chunk_size: int = 16384,
    ):
        if not url:
            raise ValueError("Remote detection URL is required")
        self.url = url
        self.timeout = timeout
        self.jpeg_quality = jpeg_quality
        self.chunk_size = chunk_size
        self._session = session or requests.Session()

    def detect(self, frame: Frame, cancel_token: Optional[CancellationToken] = None) -> DetectionResult:
        """
        Raises:
            PreprocessError: The frame could not be encoded.
            NetworkError: Transport failure, non-2xx status or cancellation.
            ParseError: The body is not a detection result.
        """
        jpg = encode_jpeg(frame, self.jpeg_quality)
        if cancel_token is not None and cancel_token.cancelled:
            raise NetworkError("Request cancelled before sending")

        files = {"image": ("frame.jpg", jpg, "image/jpeg")}
        try:
            response = self._session.post(self.url, files=files, timeout=self.timeout, stream=True)
        except requests.RequestException as e:
            raise NetworkError(str(e)) from e

        unregister = cancel_token.register(response.close) if cancel_token is not None else (lambda: None)
        try:
            response.raise_for_status()
            body = self._read_body(response, cancel_token)
        except requests.RequestException as e:
            raise NetworkError(str(e)) from e
        finally:
            unregister()
            response.close()

        return self._parse(body)

    def _read_body(self, response: requests.Response, cancel_token: Optional[CancellationToken]) -> bytes:
        chunks: List[bytes] = []
        try:
            for chunk in response.iter_content(chunk_size=self.chunk_size):
                if cancel_token is not None and cancel_token.cancelled:
                    raise NetworkError(f"Request cancelled: {cancel_token.reason}")
                if chunk:
                    chunks.append(chunk)
        except NetworkError:
            raise
        except Exception as e:
            if cancel_token is not None and cancel_token.cancelled:
                raise NetworkError(f"Request cancelled: {cancel_token.reason}") from e
            raise NetworkError(f"Error reading response body: {e}") from e
        return b"".join(chunks)

    def _parse(self, body: bytes) -> DetectionResult:
        try:
            model = DetectionResultModel.model_validate_json(body)
        except ValidationError as e:
            first = e.errors()[0]
            where = ".".join(str(p) for p in first.get("loc", ())) or "body"
            raise ParseError(f"JSON parse error at {where}: {first.get('msg')}") from e

        result = model.to_result(source="remote")
        logging.info(f"[Remote] Detection response: {len(result.detections)} objects")
        return result

    def close(self) -> None:
        self._session.close()
