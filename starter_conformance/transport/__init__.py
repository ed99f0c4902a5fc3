# SPDX-License-Identifier: Apache-2.0
"""Transport drivers: REST over httpx, streaming over websockets."""

from .rest import FilePart, JsonBody, MultipartBody, RawBody, RequestSpec, ResponseRecord, RestDriver
from .streaming import BINARY_TYPE, Frame, MessageLog, Session, SessionState, StreamingDriver

__all__ = [
    "FilePart",
    "JsonBody",
    "MultipartBody",
    "RawBody",
    "RequestSpec",
    "ResponseRecord",
    "RestDriver",
    "BINARY_TYPE",
    "Frame",
    "MessageLog",
    "Session",
    "SessionState",
    "StreamingDriver",
]
