import io
import unittest
import zipfile

from rangejpeg.archive import archive_path, extract_zip, safe_relpath, write_archive
from rangejpeg.errors import DecodeFailure
from tests.imaging import zip_bytes


class TestExtractZip(unittest.TestCase):

    def test_skips_directories(self):
        raw = zip_bytes([("pics/", b""), ("pics/a.png", b"A"), ("b.pdf", b"B")])
        self.assertEqual(extract_zip(raw), [("pics/a.png", b"A"), ("b.pdf", b"B")])

    def test_malformed_archive(self):
        with self.assertRaises(DecodeFailure) as ctx:
            extract_zip(b"PK\x03\x04 nope", name="bad.zip")
        self.assertIn("bad.zip", str(ctx.exception))


class TestSafeRelpath(unittest.TestCase):

    def test_normalises(self):
        self.assertEqual(safe_relpath("a/./b/../c.png"), "a/c.png")
        self.assertEqual(safe_relpath("//root/x.png"), "root/x.png")
        self.assertEqual(safe_relpath("dir\\pic.png"), "dir/pic.png")

    def test_refuses_escapes(self):
        for rel in ("../x.png", "a/../../x.png", "..", ".", "/.."):
            self.assertIsNone(safe_relpath(rel), rel)


class TestWriteArchive(unittest.TestCase):

    def test_folders_precede_files(self):
        files = {
            archive_path("b", "x.jpg"): b"1",
            archive_path("a", "sub/y.jpg"): b"2",
        }
        raw = write_archive(["b", "a"], files)
        with zipfile.ZipFile(io.BytesIO(raw)) as zf:
            names = zf.namelist()
            self.assertEqual(zf.read("a_compressed/sub/y.jpg"), b"2")
        self.assertEqual(names[:2], ["b_compressed/", "a_compressed/"])
        self.assertEqual(sorted(names[2:]), ["a_compressed/sub/y.jpg", "b_compressed/x.jpg"])

    def test_archive_path(self):
        self.assertEqual(archive_path("lbl", "/p/q.jpg"), "lbl_compressed/p/q.jpg")


if __name__ == "__main__":
    unittest.main()
