#!/usr/bin/env python3
"""
Report which follows column encoding the configured database uses,
and whether the optional social tables exist.

Run before pinning FOLLOW_COLUMNS or applying migration 002.
"""

import asyncio
import os
import sys

from sqlalchemy import text

# Add project root to sys.path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from bazaar.core.config import settings
from bazaar.infra.db import close_db_connection, get_engine, get_sessionmaker
from bazaar.social.follows import FollowGraph
from bazaar.social.schema_probe import KNOWN_FOLLOW_COLUMNS, SchemaProbe, SchemaProbeExhausted

OPTIONAL_TABLES = ["friend_requests", "user_blocks", "conversations", "conversation_participants"]


async def inspect_follow_schema():
    print(f"Connecting to database: {settings.database_url}")

    try:
        async with get_engine().connect() as conn:
            await conn.execute(text("SELECT 1"))
        print("Connection successful! Probing follows encoding...\n")

        graph = FollowGraph(get_sessionmaker(), KNOWN_FOLLOW_COLUMNS)
        probe = SchemaProbe(KNOWN_FOLLOW_COLUMNS)
        try:
            rows = await probe.run(lambda cols: graph.count_edges(cols, "__probe__", as_follower=True))
            print(f"✅ follows encoding: {probe.live} (probe query returned {rows} rows)")
            print(f"   pin it with FOLLOW_COLUMNS={probe.live.follower}:{probe.live.followee}")
        except SchemaProbeExhausted:
            print("❌ follows table matches none of the known encodings:")
            for candidate in KNOWN_FOLLOW_COLUMNS:
                print(f"   - {candidate}")

        print("\nOptional tables:")
        for name in OPTIONAL_TABLES:
            try:
                async with get_engine().connect() as conn:
                    await conn.execute(text(f"SELECT 1 FROM {name} LIMIT 1"))
                print(f"✅ {name}")
            except Exception as e:
                print(f"❌ {name}: {e.__class__.__name__}")

    except Exception as e:
        print(f"Error connecting to database: {e}")
    finally:
        await close_db_connection()


if __name__ == "__main__":
    asyncio.run(inspect_follow_schema())
