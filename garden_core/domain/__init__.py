"""领域层模型与协议。

包含：
- models: 推理请求的 Content / Part / GenerateRequest 模型。
- analysis: 扫描结果 AnalysisResult。
- conversation: ChatTurn、ConversationIdentity、Subscription 与 ConversationStore 协议。
- exceptions: 业务异常类型定义。
"""
