"""响应信封解码。

decode(envelope) 的三个步骤：
1. 取 candidates[0].content.parts[0].text，缺失或为空 -> EmptyResponseError。
2. 把文本解析成 JSON 对象，失败 -> SchemaViolationError。
   允许模型在 JSON 外面包一层 ```json 代码块或少量说明文字。
3. 用 AnalysisResult 校验字段类型，失败 -> SchemaViolationError。

解码失败是结构性错误，这里不做任何重试。
"""

import json
import logging
import re
from typing import Any, Dict, Optional

from pydantic import ValidationError as PydanticValidationError

from garden_core.domain.analysis import AnalysisResult
from garden_core.domain.exceptions import EmptyResponseError, SchemaViolationError
from garden_core.infrastructure.logging.logger import logger


_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)


def extract_text(envelope: Any) -> str:
    """取第一个候选的第一段文本。"""

    try:
        text = envelope["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        text = None
    if not isinstance(text, str) or not text.strip():
        raise EmptyResponseError(code="EMPTY_RESPONSE", message="API response was empty or malformed.")
    return text


def parse_json_object(text: str) -> Optional[Dict[str, Any]]:
    """依次尝试：整段解析、代码块内解析、第一个括号平衡的对象。"""

    stripped = text.strip()
    candidates = [stripped]
    fence = _FENCE_RE.search(stripped)
    if fence:
        candidates.append(fence.group(1).strip())
    start = stripped.find("{")
    if start >= 0:
        balanced = _balanced_object(stripped, start)
        if balanced:
            candidates.append(balanced)
    for candidate in candidates:
        try:
            data = json.loads(candidate)
        except ValueError:
            continue
        if isinstance(data, dict):
            return data
    return None


def _balanced_object(text: str, start: int) -> Optional[str]:
    depth = 0
    in_string = False
    escape = False
    for i in range(start, len(text)):
        ch = text[i]
        if escape:
            escape = False
            continue
        if ch == "\\":
            escape = in_string
            continue
        if ch == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start : i + 1]
    return None


class StructuredResponseDecoder:
    def decode(self, envelope: Any) -> AnalysisResult:
        text = extract_text(envelope)
        data = parse_json_object(text)
        if data is None:
            raise SchemaViolationError(code="INVALID_JSON", message="model output is not a JSON object")
        try:
            result = AnalysisResult.model_validate(data)
        except PydanticValidationError as e:
            fields = sorted({str(err["loc"][0]) for err in e.errors() if err["loc"]})
            raise SchemaViolationError(
                code="SCHEMA_VIOLATION",
                message=f"invalid fields: {', '.join(fields)}",
                fields=fields,
            ) from e
        if not 3 <= len(result.home_remedies) <= 5:
            logger.log(
                logging.WARNING,
                "Unexpected remedy count",
                extra={"extra": {"remedy_count": len(result.home_remedies)}},
            )
        return result
