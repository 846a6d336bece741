"""推理请求的统一数据模型。

本模块定义了发给推理端点的请求结构：

- Part: 一段内容，可以是文本，也可以是内联图片 (InlineData)。
- Content: 一轮对话内容（role + parts）。
- GenerateRequest: 一次完整的 generateContent 请求。

Provider 适配器（如 GeminiClient）只依赖这些模型，
并负责把它们转换成具体 API 的 JSON 请求体。
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional


# 推理端点的消息角色，与会话日志中的 ChatTurn.role 一致
Role = Literal["user", "model"]


@dataclass(frozen=True)
class InlineData:
    """内联二进制数据，data 为 base64 字符串。"""

    mime_type: str
    data: str


@dataclass(frozen=True)
class Part:
    text: Optional[str] = None
    inline_data: Optional[InlineData] = None


@dataclass
class Content:
    """一轮对话内容。"""

    role: Role
    parts: List[Part] = field(default_factory=list)


@dataclass
class GenerateRequest:
    """一次 generateContent 请求。

    - contents: 按时间顺序排列的对话内容，最后一条是本次的 user 输入。
    - response_mime_type / response_schema: 结构化输出约束，仅扫描请求使用。
    - system_instruction: 系统提示词，仅聊天请求使用。
    """

    contents: List[Content]
    response_mime_type: Optional[str] = None
    response_schema: Optional[Dict[str, Any]] = None
    system_instruction: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        """转换为推理端点的 JSON 请求体（camelCase 字段）。"""

        payload: Dict[str, Any] = {
            "contents": [
                {"role": c.role, "parts": [_part_to_payload(p) for p in c.parts]}
                for c in self.contents
            ]
        }
        if self.response_mime_type or self.response_schema:
            generation_config: Dict[str, Any] = {}
            if self.response_mime_type:
                generation_config["responseMimeType"] = self.response_mime_type
            if self.response_schema:
                generation_config["responseSchema"] = self.response_schema
            payload["generationConfig"] = generation_config
        if self.system_instruction:
            payload["systemInstruction"] = {"parts": [{"text": self.system_instruction}]}
        return payload


def _part_to_payload(part: Part) -> Dict[str, Any]:
    payload: Dict[str, Any] = {}
    if part.text is not None:
        payload["text"] = part.text
    if part.inline_data is not None:
        payload["inlineData"] = {
            "mimeType": part.inline_data.mime_type,
            "data": part.inline_data.data,
        }
    return payload
