"""植物扫描的结构化结果。"""

import math
from typing import Annotated, List, Union

from pydantic import BaseModel, ConfigDict, StrictFloat, StrictInt, StringConstraints, field_validator


HEALTHY_SENTINEL = "healthy"

# 去掉首尾空白后不能为空
NonBlankStr = Annotated[str, StringConstraints(strict=True, strip_whitespace=True, min_length=1)]


class AnalysisResult(BaseModel):
    """一次扫描的分析结果，只存在于调用方的临时状态中，不持久化。

    字段名与推理端点返回的 JSON 键一致。health_percentage 只做类型校验，
    超出 0-100 的有限值按原样保留；Infinity/NaN 视为类型错误。
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    health_percentage: Union[StrictInt, StrictFloat]
    predicted_disease: NonBlankStr
    home_remedies: List[NonBlankStr]

    @field_validator("health_percentage")
    @classmethod
    def _as_int(cls, v: Union[int, float]) -> int:
        if isinstance(v, float) and not math.isfinite(v):
            raise ValueError("health_percentage must be a finite number")
        return int(round(v))

    @property
    def remedies(self) -> List[str]:
        return list(self.home_remedies)

    @property
    def is_healthy(self) -> bool:
        return self.predicted_disease.strip().lower() == HEALTHY_SENTINEL

    @property
    def remedies_heading(self) -> str:
        return "General Care Tips" if self.is_healthy else "DIY Home Remedies"

    @property
    def health_band(self) -> str:
        """健康度分档：>=80 good，>=60 fair，其余 poor。"""

        if self.health_percentage >= 80:
            return "good"
        if self.health_percentage >= 60:
            return "fair"
        return "poor"
