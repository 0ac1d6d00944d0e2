from dotenv import load_dotenv
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

load_dotenv(".env")

import asyncio
import base64

from app.services.uploads import get_cloudinary_client, get_policy, validate_upload

# 1x1 transparent PNG
PIXEL_PNG = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
)


async def main() -> None:
    policy = get_policy(sys.argv[1] if len(sys.argv) > 1 else "products")
    validate_upload(policy, "pixel.png", "image/png", len(PIXEL_PNG))
    client = get_cloudinary_client()
    try:
        out = await client.upload(policy, filename="pixel.png", content=PIXEL_PNG, content_type="image/png")
    finally:
        await client.aclose()
    print(out)


asyncio.run(main())
