import hashlib
import unittest

import httpx

from app.services.uploads import (
    MB,
    CloudinaryClient,
    UploadError,
    UploadRejected,
    build_policies,
    get_policy,
    sign_params,
    validate_upload,
)


class TestUploadPolicies(unittest.TestCase):
    def test_policy_table(self):
        policies = build_policies("shop")
        self.assertEqual(policies["products"].folder, "shop/products")
        self.assertEqual(policies["products"].max_bytes, 5 * MB)
        self.assertEqual(policies["avatars"].max_bytes, 2 * MB)
        self.assertEqual(policies["categories"].max_bytes, 3 * MB)
        self.assertEqual(policies["documents"].max_bytes, 10 * MB)
        self.assertEqual(policies["documents"].resource_type, "auto")
        self.assertIn("g_face", policies["avatars"].transformation)

    def test_unknown_kind(self):
        with self.assertRaises(UploadRejected):
            get_policy("videos")

    def test_accepts_valid_image(self):
        validate_upload(get_policy("products"), "shoe.PNG", "image/png", 1024)

    def test_rejects_oversized_file(self):
        with self.assertRaises(UploadRejected) as ctx:
            validate_upload(get_policy("avatars"), "me.jpg", "image/jpeg", 2 * MB + 1)
        self.assertIn("too large", str(ctx.exception))

    def test_rejects_non_image_for_image_kinds(self):
        with self.assertRaises(UploadRejected) as ctx:
            validate_upload(get_policy("products"), "invoice.pdf", "application/pdf", 1024)
        self.assertEqual(str(ctx.exception), "Only image files are allowed!")

    def test_documents_accept_pdf_but_not_gif(self):
        policy = get_policy("documents")
        validate_upload(policy, "licence.pdf", "application/pdf", 1024)
        with self.assertRaises(UploadRejected) as ctx:
            validate_upload(policy, "anim.gif", "image/gif", 1024)
        self.assertEqual(str(ctx.exception), "Only images and PDF files are allowed!")

    def test_rejects_unlisted_extension(self):
        with self.assertRaises(UploadRejected):
            validate_upload(get_policy("avatars"), "me.webp", "image/webp", 1024)

    def test_rejects_empty_file(self):
        with self.assertRaises(UploadRejected):
            validate_upload(get_policy("products"), "a.png", "image/png", 0)


class TestSignParams(unittest.TestCase):
    def test_signature_sorts_params_and_skips_empty(self):
        expected = hashlib.sha1(b"folder=shop/products&timestamp=1700000000secret").hexdigest()
        self.assertEqual(sign_params({"timestamp": 1700000000, "folder": "shop/products", "x": ""}, "secret"), expected)


class TestCloudinaryClient(unittest.IsolatedAsyncioTestCase):
    async def test_upload_posts_signed_form(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = request.content
            return httpx.Response(
                200,
                json={"secure_url": "https://res.cloudinary.com/demo/x.png", "public_id": "shop/products/x", "format": "png", "bytes": 3},
            )

        client = CloudinaryClient(cloud_name="demo", api_key="key", api_secret="secret", transport=httpx.MockTransport(handler))
        try:
            out = await client.upload(get_policy("products"), filename="x.png", content=b"abc", content_type="image/png")
        finally:
            await client.aclose()

        self.assertEqual(seen["url"], "https://api.cloudinary.com/v1_1/demo/image/upload")
        self.assertIn(b'name="signature"', seen["body"])
        self.assertIn(b'name="api_key"', seen["body"])
        self.assertEqual(out["url"], "https://res.cloudinary.com/demo/x.png")
        self.assertEqual(out["public_id"], "shop/products/x")

    async def test_error_status_raises(self):
        client = CloudinaryClient(
            cloud_name="demo",
            api_key="key",
            api_secret="secret",
            transport=httpx.MockTransport(lambda request: httpx.Response(401, text="bad signature")),
        )
        try:
            with self.assertRaises(UploadError):
                await client.upload(get_policy("avatars"), filename="a.png", content=b"abc", content_type="image/png")
        finally:
            await client.aclose()

    async def test_missing_credentials(self):
        client = CloudinaryClient(cloud_name="", api_key="", api_secret="")
        try:
            with self.assertRaises(UploadError):
                await client.upload(get_policy("avatars"), filename="a.png", content=b"abc", content_type="image/png")
        finally:
            await client.aclose()


if __name__ == "__main__":
    unittest.main()
