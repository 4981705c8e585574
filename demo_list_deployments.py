# demo_list_deployments.py
# Version: v1

r"""
Quick smoke test: page through Verso deployments the way a table view does.

Run with virtualenv active and env vars loaded:
  export VERSO_BASE_URL=https://verso.example.com   (or VERSO_MOCK_MODE=1)
  python demo_list_deployments.py
"""

import asyncio

from verso_console_mcp.config import VersoConfig
from verso_console_mcp.table import TableFetcher
from verso_console_mcp.tools.tasks import _make_client


async def main() -> None:
    cfg = VersoConfig.from_env()
    client = _make_client(cfg)

    async def fetch(flt):
        return await client.query("deployments", flt)

    fetcher = TableFetcher.create(fetch, limit=5)
    await fetcher.sort_by("deployedAt", "desc")

    while True:
        meta = fetcher.meta
        print(f"Page {meta.page} (total {meta.total}):")
        for d in fetcher.data:
            print(f"- {d.deployed_at} {d.installation} version={d.version}")

        if not fetcher.has_next_page:
            break
        await fetcher.next_page()


if __name__ == "__main__":
    asyncio.run(main())
