"""扫描请求构造：图片 + 指令 + 响应结构约束 -> GenerateRequest。

纯函数，不做任何网络 I/O；输入为空或无法读取时抛出 EncodingError。
"""

import base64
import mimetypes
import os
from pathlib import Path
from typing import Any, BinaryIO, Dict, Optional, Union

from garden_core.domain.exceptions import EncodingError
from garden_core.domain.models import Content, GenerateRequest, InlineData, Part


DEFAULT_MIME_TYPE = "image/png"

ImageSource = Union[bytes, bytearray, memoryview, str, os.PathLike, BinaryIO]

ANALYSIS_RESPONSE_SCHEMA: Dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "health_percentage": {
            "type": "NUMBER",
            "description": "The estimated health of the plant as a percentage (0 to 100). Must be an integer.",
        },
        "predicted_disease": {
            "type": "STRING",
            "description": "The predicted disease or 'Healthy' if no disease is found. Must be concise.",
        },
        "home_remedies": {
            "type": "ARRAY",
            "description": (
                "A list of 3-5 actionable, home-based remedies using common household items like soap, "
                "baking soda, etc. The first item should always be a summary of the status."
            ),
            "items": {"type": "STRING"},
        },
    },
    "required": ["health_percentage", "predicted_disease", "home_remedies"],
}


def read_image(image: ImageSource) -> bytes:
    """把各种图片来源读成 bytes。"""

    if isinstance(image, (bytes, bytearray, memoryview)):
        data = bytes(image)
    elif isinstance(image, (str, os.PathLike)):
        try:
            data = Path(image).read_bytes()
        except OSError as e:
            raise EncodingError(code="IMAGE_UNREADABLE", message=str(e)) from e
    elif hasattr(image, "read"):
        try:
            data = image.read()
        except (OSError, ValueError) as e:
            raise EncodingError(code="IMAGE_UNREADABLE", message=str(e)) from e
        if not isinstance(data, (bytes, bytearray)):
            raise EncodingError(code="IMAGE_UNREADABLE", message="image stream is not binary")
        data = bytes(data)
    else:
        raise EncodingError(code="IMAGE_UNREADABLE", message=f"unsupported image source: {type(image).__name__}")
    if not data:
        raise EncodingError(code="IMAGE_EMPTY", message="image is empty")
    return data


def guess_mime_type(image: ImageSource, mime_type: Optional[str] = None) -> str:
    if mime_type:
        return mime_type
    name = image if isinstance(image, (str, os.PathLike)) else getattr(image, "name", None)
    if isinstance(name, (str, os.PathLike)):
        guessed, _ = mimetypes.guess_type(str(name))
        if guessed:
            return guessed
    return DEFAULT_MIME_TYPE


class MultimodalRequestBuilder:
    def build(
        self,
        image: ImageSource,
        mime_type: Optional[str],
        instruction: str,
        schema: Dict[str, Any] = ANALYSIS_RESPONSE_SCHEMA,
    ) -> GenerateRequest:
        data = base64.b64encode(read_image(image)).decode("ascii")
        return GenerateRequest(
            contents=[
                Content(
                    role="user",
                    parts=[
                        Part(text=instruction),
                        Part(inline_data=InlineData(mime_type=guess_mime_type(image, mime_type), data=data)),
                    ],
                )
            ],
            response_mime_type="application/json",
            response_schema=schema,
        )
