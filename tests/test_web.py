import io
import unittest
import zipfile

from fastapi.testclient import TestClient

from rangejpeg.web import ArchiveStore, app, content_disposition, store
from tests.imaging import image_bytes, noise_image, zip_bytes

# noise at this size lands well inside the default upper bound
SAMPLE_PNG = image_bytes(noise_image(96, 64, seed=9))


class TestWeb(unittest.TestCase):

    @classmethod
    def setUpClass(cls):
        cls.client = TestClient(app)

    def test_index_has_form(self):
        resp = self.client.get("/")
        self.assertEqual(resp.status_code, 200)
        self.assertIn('name="files"', resp.text)

    def test_api_process_and_download(self):
        files = [
            ("files", ("pics.zip", zip_bytes([("a.png", SAMPLE_PNG), ("b.jpg", b"broken")]), "application/zip")),
            ("files", ("c.heic", b"....", "image/heic")),
        ]
        resp = self.client.post(
            "/api/process",
            files=files,
            data={"speed": "fast", "min_side": "64", "master_name": "out.zip"},
        )
        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertEqual(body["outputs"], 1)
        self.assertEqual(len(body["summary"]), 1)
        self.assertTrue(body["summary"][0].startswith("pics: a.jpg -> "))
        self.assertTrue(any(s.startswith("pics: b.jpg") for s in body["skipped"]))
        self.assertTrue(any("HEIC" in s for s in body["skipped"]))

        dl = self.client.get(f"/download/{body['token']}")
        self.assertEqual(dl.status_code, 200)
        self.assertEqual(dl.headers["content-type"], "application/zip")
        self.assertIn('filename="out.zip"', dl.headers["content-disposition"])
        with zipfile.ZipFile(io.BytesIO(dl.content)) as zf:
            self.assertIn("pics_compressed/a.jpg", zf.namelist())

    def test_download_with_non_latin_archive_name(self):
        resp = self.client.post(
            "/api/process",
            files=[("files", ("shot.png", SAMPLE_PNG, "image/png"))],
            data={"min_side": "64", "master_name": "压缩.zip"},
        )
        self.assertEqual(resp.status_code, 200)
        dl = self.client.get(f"/download/{resp.json()['token']}")
        self.assertEqual(dl.status_code, 200)
        header = dl.headers["content-disposition"]
        self.assertIn("filename*=UTF-8''%E5%8E%8B%E7%BC%A9.zip", header)
        self.assertIn('filename="__.zip"', header)

    def test_html_process(self):
        resp = self.client.post(
            "/process",
            files=[("files", ("shot.png", SAMPLE_PNG, "image/png"))],
            data={"sharpen": "on", "min_side": "64"},
        )
        self.assertEqual(resp.status_code, 200)
        self.assertIn("/download/", resp.text)
        self.assertIn("shot.jpg -&gt; ", resp.text)

    def test_no_files(self):
        body = self.client.post("/api/process", data={"speed": "fast"}).json()
        self.assertIsNone(body["token"])
        self.assertEqual(body["message"], "Please upload at least one file.")

    def test_no_valid_inputs(self):
        resp = self.client.post("/process", files=[("files", ("notes.txt", b"hello", "text/plain"))])
        self.assertEqual(resp.status_code, 200)
        self.assertIn("No valid inputs", resp.text)
        self.assertNotIn("/download/", resp.text)

    def test_bad_option(self):
        resp = self.client.post(
            "/api/process",
            files=[("files", ("shot.png", SAMPLE_PNG, "image/png"))],
            data={"scale_min": "3"},
        )
        self.assertEqual(resp.status_code, 400)
        self.assertIn("min_downscale", resp.json()["detail"])

    def test_unknown_token(self):
        self.assertEqual(self.client.get("/download/nope").status_code, 404)


class TestContentDisposition(unittest.TestCase):

    def test_quotes_are_not_passed_through(self):
        header = content_disposition('a"b\\c.zip')
        self.assertTrue(header.startswith('attachment; filename="a_b_c.zip"; '))
        self.assertTrue(header.endswith("filename*=UTF-8''a%22b%5Cc.zip"))


class TestArchiveStore(unittest.TestCase):

    def test_evicts_oldest(self):
        s = ArchiveStore(max_entries=2)
        first = s.put(b"1", "a.zip")
        second = s.put(b"2", "b.zip")
        third = s.put(b"3", "c.zip")
        self.assertIsNone(s.get(first))
        self.assertEqual(s.get(second), (b"2", "b.zip"))
        self.assertEqual(s.get(third), (b"3", "c.zip"))
        self.assertEqual(len(s), 2)

    def test_module_store_is_shared(self):
        self.assertIsInstance(store, ArchiveStore)


if __name__ == "__main__":
    unittest.main()
