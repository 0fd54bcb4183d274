"""
异常定义

- ProbeError: 单台服务器探测失败（常规情况，转换为离线快照）
- StoreError: 存储层失败（系统性错误，向调用方传播）
- CollectionInProgressError: 已有采集任务在运行
"""


class AnalyticsError(Exception):
    """所有业务异常的基类"""


class ProbeError(AnalyticsError):
    """服务器状态探测失败（超时、拒绝连接、协议不匹配）"""


class StoreError(AnalyticsError):
    """数据库不可用或读写被拒绝"""


class CollectionInProgressError(AnalyticsError):
    """上一次采集尚未结束"""
