"""
Server Analytics - 游戏服务器状态采集与分析服务

负责：
- 每 5 分钟探测所有启用的服务器并写入快照
- 按时间范围计算在线率、平均/峰值人数
- 基于 30 天历史的（星期 × 小时）人数预测
- 按小时分桶供前端绘图
- 提供 REST API 给前端
"""

__version__ = "1.0.0"
