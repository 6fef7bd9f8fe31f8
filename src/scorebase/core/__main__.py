"""CLI 入口模块 -- python -m scorebase.core <command>

支持的命令：
  reconcile-projections     补投影事件日志中尚未投影的事件
  purge-expired-events      删除超过保留窗口的事件
  purge-stale-connections   删除已过期的观众连接
"""

import asyncio
import sys

from .config import get_db_path, get_event_db_path

_USAGE = """用法: python -m scorebase.core <command>
命令:
  reconcile-projections     补投影事件日志中尚未投影的事件
  purge-expired-events      删除超过保留窗口的事件
  purge-stale-connections   删除已过期的观众连接"""


def main() -> None:
    """CLI 主入口"""
    if len(sys.argv) < 2:
        print(_USAGE)
        sys.exit(1)

    command = sys.argv[1]
    commands = {
        "reconcile-projections": reconcile_projections,
        "purge-expired-events": purge_expired_events,
        "purge-stale-connections": purge_stale_connections,
    }

    if command not in commands:
        print(f"未知命令: {command}")
        print(f"可用命令: {', '.join(commands)}")
        sys.exit(1)

    asyncio.run(commands[command]())


async def _open_stores():
    from .store import create_store_group

    db_path = get_db_path()
    event_db_path = get_event_db_path()
    print(f"投影库路径: {db_path}")
    print(f"事件库路径: {event_db_path}")
    return await create_store_group(db_path, event_db_path)


async def reconcile_projections() -> None:
    """执行投影对账"""
    from .projection import ProjectionEngine, reconcile
    from .standings import StandingsTrigger

    store_group = await _open_stores()
    print("开始对账 Projection...")

    try:
        report = await reconcile(
            store_group.event_store,
            ProjectionEngine(store_group),
            StandingsTrigger(store_group.standings_store),
        )
        print(
            f"对账完成: 共 {report.total_events} 条事件，"
            f"补投影 {report.replayed} 条，失败 {report.failed} 条，"
            f"重算积分榜 {report.standings_recalculated} 个赛季"
        )
    finally:
        await store_group.close()


async def purge_expired_events() -> None:
    """删除超过保留窗口的事件"""
    store_group = await _open_stores()
    try:
        deleted = await store_group.event_store.purge_expired()
        print(f"清理完成，删除 {deleted} 条过期事件")
    finally:
        await store_group.close()


async def purge_stale_connections() -> None:
    """删除已过期的观众连接"""
    store_group = await _open_stores()
    try:
        deleted = await store_group.connection_store.purge_expired()
        print(f"清理完成，删除 {deleted} 条过期连接")
    finally:
        await store_group.close()


if __name__ == "__main__":
    main()
