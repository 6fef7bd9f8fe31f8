"""SSEHub -- 进程内观众连接投递器

每个观众连接持有一个有界 asyncio.Queue，由 SSE 路由消费。
SSEHub 实现 ConnectionSender：连接不存在或队列已满视为永久失败，抛出 DeliveryError，
由 BroadcastEngine 负责从注册表中删除该连接。
"""

import asyncio

from scorebase.core.config import CONNECTION_QUEUE_SIZE
from scorebase.core.exceptions import DeliveryError


class SSEHub:
    """SSE 连接投递器 -- connection_id -> asyncio.Queue"""

    def __init__(self, queue_maxsize: int = CONNECTION_QUEUE_SIZE) -> None:
        self._queues: dict[str, asyncio.Queue[str]] = {}
        self._queue_maxsize = queue_maxsize

    def attach(self, connection_id: str) -> asyncio.Queue[str]:
        """为连接创建消息队列

        Args:
            connection_id: 观众连接 ID

        Returns:
            asyncio.Queue 实例，投递的消息会被推送到此队列
        """
        queue: asyncio.Queue[str] = asyncio.Queue(maxsize=self._queue_maxsize)
        self._queues[connection_id] = queue
        return queue

    def detach(self, connection_id: str) -> None:
        """移除连接队列（连接不存在时为 no-op）"""
        self._queues.pop(connection_id, None)

    def is_attached(self, connection_id: str) -> bool:
        return connection_id in self._queues

    @property
    def connection_count(self) -> int:
        return len(self._queues)

    async def send(self, connection_id: str, data: str) -> None:
        """投递一条已序列化的消息

        Raises:
            DeliveryError: 连接已不在本进程，或消费过慢导致队列已满
        """
        queue = self._queues.get(connection_id)
        if queue is None:
            raise DeliveryError(connection_id, "connection is not attached")
        try:
            queue.put_nowait(data)
        except asyncio.QueueFull:
            # 消费过慢的连接直接断开，观众重连后会收到 initial_snapshot
            self.detach(connection_id)
            raise DeliveryError(connection_id, "connection queue is full") from None
