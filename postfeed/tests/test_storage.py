import os
import tempfile
import unittest

from postfeed.storage import InMemoryStorageClient, LocalStorageClient, accepts


class LocalStorageClientTests(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.root = os.path.join(self.tmp.name, "images")
        self.storage = LocalStorageClient(root=self.root)

    def tearDown(self):
        self.tmp.cleanup()

    def test_save_and_clear(self):
        path = self.storage.save_image("cat.png", b"png-bytes", "image/png")
        self.assertTrue(path.startswith("images/"))
        self.assertTrue(path.endswith("-cat.png"))
        on_disk = os.path.join(self.root, path.split("/", 1)[1])
        with open(on_disk, "rb") as f:
            self.assertEqual(f.read(), b"png-bytes")

        self.storage.clear_image(path)
        self.assertFalse(os.path.exists(on_disk))

    def test_save_strips_directories_from_filename(self):
        path = self.storage.save_image("../../evil.png", b"x", "image/png")
        self.assertTrue(path.endswith("-evil.png"))
        self.assertEqual(len(os.listdir(self.root)), 1)

    def test_clear_missing_image_is_logged(self):
        with self.assertLogs("postfeed.storage", level="WARNING"):
            self.storage.clear_image("images/missing.png")

    def test_clear_refuses_paths_outside_root(self):
        outside = os.path.join(self.tmp.name, "keep.txt")
        with open(outside, "w") as f:
            f.write("keep")
        with self.assertLogs("postfeed.storage", level="WARNING"):
            self.storage.clear_image("images/../keep.txt")
        self.assertTrue(os.path.exists(outside))


class StorageHelpersTests(unittest.TestCase):
    def test_accepts_only_png_and_jpeg(self):
        self.assertTrue(accepts("image/png"))
        self.assertTrue(accepts("image/jpg"))
        self.assertTrue(accepts("IMAGE/JPEG"))
        self.assertFalse(accepts("image/gif"))
        self.assertFalse(accepts(None))

    def test_in_memory_clear(self):
        storage = InMemoryStorageClient()
        path = storage.save_image("a.png", b"x", "image/png")
        storage.clear_image(path)
        self.assertEqual(storage.stored_objects, {})


if __name__ == "__main__":
    unittest.main()
