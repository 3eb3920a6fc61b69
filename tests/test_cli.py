import io
import shutil
import tempfile
import unittest
import zipfile
from contextlib import redirect_stderr, redirect_stdout
from pathlib import Path

from rangejpeg.cli import main
from tests.imaging import image_bytes, noise_image, pdf_bytes


class TestCli(unittest.TestCase):

    def setUp(self):
        self.tmp = Path(tempfile.mkdtemp())

    def tearDown(self):
        shutil.rmtree(self.tmp, ignore_errors=True)

    def _run(self, *argv):
        out = io.StringIO()
        with redirect_stdout(out), redirect_stderr(io.StringIO()):
            code = main([str(a) for a in argv])
        return code, out.getvalue()

    def test_writes_archive(self):
        png = self.tmp / "photo.png"
        png.write_bytes(image_bytes(noise_image(80, 60)))
        pdf = self.tmp / "scan.pdf"
        pdf.write_bytes(pdf_bytes(2))
        output = self.tmp / "result.zip"

        code, out = self._run(png, pdf, "-o", output, "--min-kb", "1", "--threads", "2")
        self.assertEqual(code, 0)
        self.assertIn("photo.jpg -> ", out)
        with zipfile.ZipFile(output) as zf:
            names = [n for n in zf.namelist() if not n.endswith("/")]
        self.assertEqual(len(names), 3)
        self.assertTrue(any(n.endswith("/scan_p2.jpg") for n in names))

    def test_failures_give_exit_code_two(self):
        bad = self.tmp / "bad.jpg"
        bad.write_bytes(b"0123456789")
        code, out = self._run(bad, "-o", self.tmp / "out.zip")
        self.assertEqual(code, 2)
        self.assertIn("bad.jpg", out)

    def test_skipped_input_gives_exit_code_two(self):
        png = self.tmp / "photo.png"
        png.write_bytes(image_bytes(noise_image(80, 60)))
        notes = self.tmp / "notes.txt"
        notes.write_text("hello")
        code, out = self._run(png, notes, "-o", self.tmp / "out.zip", "--min-kb", "1")
        self.assertEqual(code, 2)
        self.assertIn("notes.txt: unsupported file type", out)
        self.assertTrue((self.tmp / "out.zip").exists())

    def test_no_valid_inputs(self):
        txt = self.tmp / "notes.txt"
        txt.write_text("hello")
        code, _ = self._run(txt, "-o", self.tmp / "out.zip")
        self.assertEqual(code, 1)
        self.assertFalse((self.tmp / "out.zip").exists())


if __name__ == "__main__":
    unittest.main()
