#!/usr/bin/env python3
# Copyright (C) 2024 FlowPlay Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Create a user account. Run: python -m flowplay_server.scripts.create_user"""

import asyncio
import getpass
import sys

from flowplay_server.config import get_settings
from flowplay_server.database import Database
from flowplay_server.errors import FlowPlayError
from flowplay_server.services.users import CredentialStore


async def main():
    settings = get_settings()
    database = Database(settings.database_url)
    await database.init_models()
    username = input("Username: ").strip()
    email = input("Email: ").strip()
    display_name = input("Display name (optional): ").strip() or None
    password = getpass.getpass("Password: ")

    try:
        async with database.session() as session:
            user, _ = await CredentialStore(session, settings).register(
                username, email, password, display_name
            )
    except FlowPlayError as e:
        print(e.message)
        sys.exit(1)
    finally:
        await database.dispose()
    print(f"User {user.username} created ({user.id}).")


if __name__ == "__main__":
    asyncio.run(main())
