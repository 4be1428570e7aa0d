import asyncio
import sys

from app.backend.src.core.errors import StorageError
from app.backend.src.core.logging import configure_logging
from app.backend.src.services.s3 import get_storage


async def init_storage() -> None:
    storage = get_storage()
    print(f"🚀 Bootstrapping bucket {storage.bucket}")
    await storage.await_ready()
    print("✅ Bucket and policy are ready!")


if __name__ == "__main__":
    configure_logging()
    try:
        asyncio.run(init_storage())
    except StorageError as exc:
        print(f"❌ Storage bootstrap failed: {exc.message}", file=sys.stderr)
        sys.exit(1)
