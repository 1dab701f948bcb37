"""
Basic oauthstore usage example.

This example demonstrates the storage operations an OAuth2 server performs:
- Registering a client
- Saving and consuming an authorization code
- Issuing an access/refresh pair
- Loading by either token and revoking

Requires a Redis server; set OAUTHSTORE_REDIS_URL to point at it.
"""

import asyncio
import logging

from oauthstore import AccessData, AuthorizeData, DefaultClient, create_storage
from oauthstore.storage import NotFoundError


async def basic_example():
    """Demonstrate basic oauthstore usage"""
    print("Basic oauthstore Example")
    print("=" * 30)
    
    # 1. Create storage from OAUTHSTORE_* environment variables
    storage = create_storage()
    print(f"✓ Created storage with prefix {storage.key_prefix!r}")
    
    try:
        # 2. Register a client
        client = DefaultClient(
            id="basic-example-client",
            secret="example-secret",
            redirect_uri="https://app.example.com/callback",
        )
        await storage.create_client(client)
        print(f"✓ Registered client: {client.get_id()}")
        
        # 3. Save an authorization code, then consume it
        authorize = AuthorizeData(
            client=client,
            code="example-code",
            expires_in=600,
            scope="read",
            redirect_uri=client.redirect_uri,
        )
        await storage.save_authorize(authorize)
        authorize = await storage.load_authorize("example-code")
        await storage.remove_authorize("example-code")
        print(f"✓ Consumed authorization code for scope: {authorize.scope}")
        
        # 4. Issue an access/refresh pair
        await storage.save_access(AccessData(
            client=client,
            authorize_data=authorize,
            access_token="example-access-token",
            refresh_token="example-refresh-token",
            expires_in=3600,
            scope=authorize.scope,
        ))
        print("✓ Saved access data")
        
        # 5. Load by either token
        by_access = await storage.load_access("example-access-token")
        by_refresh = await storage.load_refresh("example-refresh-token")
        print(f"✓ Both tokens resolve to the same grant: {by_access == by_refresh}")
        
        # 6. Revoke through the refresh token
        await storage.remove_refresh("example-refresh-token")
        try:
            await storage.load_access("example-access-token")
        except NotFoundError:
            print("✓ Access token revoked along with refresh token")
        
        await storage.delete_client(client)
        
    finally:
        # 7. Cleanup
        await storage.close()
        print("✓ Storage closed")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(basic_example())
