#!/usr/bin/env python
"""
本地 canister 连通性检查
"""

import argparse
import asyncio
import sys

from src.core.exceptions import CanisterClientError
from src.services.canister import create_local_client

# 旧版 dfx 在本地网络上分配的默认 canister ID
LEGACY_COUNTER_ID = "rdmx6-jaaaa-aaaaa-aaadq-cai"
LEGACY_CALLER_ID = "rrkah-fqaaa-aaaaa-aaaaq-cai"


async def check(counter_id: str, caller_id: str, read_counter: bool) -> int:
    print("\n正在检查本地 canister 连通性...\n")
    try:
        client = await create_local_client(counter_id, caller_id)
    except CanisterClientError as e:
        print(f"创建客户端失败: {e.message}")
        print("  - 确认本地副本已启动 (dfx start)")
        print("  - 确认 canister ID 正确")
        return 1

    async with client:
        print("客户端创建成功")
        print(f"Agent 身份: {client.who_am_i()}")
        if read_counter:
            try:
                print(f"计数器当前值: {await client.get()}")
            except CanisterClientError as e:
                print(f"读取计数器失败: {e.message}")
                return 1
    print()
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="检查本地 counter / caller canister 连通性")
    parser.add_argument("--counter", default=LEGACY_COUNTER_ID, help="counter canister ID")
    parser.add_argument("--caller", default=LEGACY_CALLER_ID, help="caller canister ID")
    parser.add_argument("--get", action="store_true", help="额外读取一次计数器")
    args = parser.parse_args()

    sys.exit(asyncio.run(check(args.counter, args.caller, args.get)))


if __name__ == "__main__":
    main()
