import os
import shutil
import tempfile
import threading
import unittest

from taxoclass.store.sqlite import SqliteHierarchyStore
from taxoclass.tests.hierarchy_store import HierarchyStoreSuite


class TestSqliteStore(HierarchyStoreSuite, unittest.TestCase):
    """Test SQLite backend using the common store test suite."""

    def setUp(self):
        self.tmp_dir = tempfile.mkdtemp()
        self.locator = os.path.join(self.tmp_dir, 'hierarchy.db')
        super().setUp()

    def tearDown(self):
        super().tearDown()
        shutil.rmtree(self.tmp_dir, ignore_errors=True)

    def test_backend_type(self):
        self.assertIsInstance(self.store, SqliteHierarchyStore)

    def test_persists_across_connections(self):
        self.store.save_classification('Q1', 'city', ['Q2'], 'capital')
        self.store.close()

        self.store = SqliteHierarchyStore(self.locator)
        node = self.store.get_hierarchy('Q1')
        self.assertEqual(node.category, 'city')
        self.assertEqual(node.parents, ['Q2'])

    def test_concurrent_saves(self):
        """Concurrent writers to one store do not fail."""
        def worker(n):
            for i in range(20):
                self.store.save_classification(f'Q{i}', f'cat{n}', [f'Q{i + 1}'])

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(self.store.get_stats()['nodes'], 20)


class TestSqliteMemoryStore(HierarchyStoreSuite, unittest.TestCase):

    def setUp(self):
        self.locator = ':memory:'
        super().setUp()


if __name__ == '__main__':
    unittest.main()
