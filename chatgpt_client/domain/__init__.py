"""领域层模型。

包含：
- models: 认证返回体、对话请求体、流式事件与 TurnOutcome。
- exceptions: 业务异常类型定义。
"""
