"""Common test suite for hierarchy store backends.

Backend test classes mix this in with unittest.TestCase and set
self.locator before calling super().setUp().
"""

from taxoclass.models import DEAD_END_SENTINEL, IGNORED_SENTINEL, HierarchyNode
from taxoclass.store import get_hierarchy_store


class HierarchyStoreSuite:

    def setUp(self):
        self.store = get_hierarchy_store(self.locator)
        self.store.clear_all()

    def tearDown(self):
        self.store.close()

    def test_missing_classification(self):
        self.assertEqual(self.store.get_classification('Q1'), ('', False))

    def test_save_and_get_classification(self):
        self.store.save_classification('Q1', 'city', ['Q2'], 'capital')
        self.assertEqual(self.store.get_classification('Q1'), ('city', True))

    def test_empty_slot_is_found(self):
        self.store.save_classification('Q1', '', ['Q2'], 'labelled')
        self.assertEqual(self.store.get_classification('Q1'), ('', True))

    def test_sentinels_round_trip(self):
        self.store.save_classification('Q1', IGNORED_SENTINEL, [])
        self.store.save_classification('Q2', DEAD_END_SENTINEL, [])
        self.assertEqual(self.store.get_classification('Q1'), (IGNORED_SENTINEL, True))
        self.assertEqual(self.store.get_classification('Q2'), (DEAD_END_SENTINEL, True))

    def test_get_hierarchy(self):
        self.store.save_classification('Q1', 'city', ['Q2', 'Q3'], 'capital')
        node = self.store.get_hierarchy('Q1')
        self.assertEqual(node.qid, 'Q1')
        self.assertEqual(node.name, 'capital')
        self.assertEqual(node.parents, ['Q2', 'Q3'])
        self.assertEqual(node.category, 'city')
        self.assertIsNotNone(node.created_at)

    def test_missing_hierarchy(self):
        self.assertIsNone(self.store.get_hierarchy('Q404'))

    def test_last_writer_wins(self):
        self.store.save_classification('Q1', 'city', ['Q2'], 'one')
        self.store.save_classification('Q1', 'castle', ['Q3'], 'two')
        node = self.store.get_hierarchy('Q1')
        self.assertEqual(node.category, 'castle')
        self.assertEqual(node.parents, ['Q3'])
        self.assertEqual(node.name, 'two')

    def test_partial_update_keeps_structure(self):
        self.store.save_classification('Q1', '', ['Q2'], 'label')
        self.store.save_classification('Q1', IGNORED_SENTINEL)
        node = self.store.get_hierarchy('Q1')
        self.assertEqual(node.category, IGNORED_SENTINEL)
        self.assertEqual(node.parents, ['Q2'])
        self.assertEqual(node.name, 'label')

    def test_partial_insert(self):
        self.store.save_classification('Q1', IGNORED_SENTINEL)
        node = self.store.get_hierarchy('Q1')
        self.assertEqual(node.parents, [])
        self.assertEqual(node.name, '')

    def test_save_hierarchy(self):
        self.store.save_hierarchy(HierarchyNode(qid='Q1', name='n', parents=['Q2'], category='city'))
        self.assertEqual(self.store.get_classification('Q1'), ('city', True))
        self.store.save_hierarchy(HierarchyNode(qid='Q1', parents=[]))
        node = self.store.get_hierarchy('Q1')
        self.assertEqual(node.parents, [])
        self.assertEqual(node.category, '')

    def test_stats(self):
        self.store.save_classification('Q1', 'city', [])
        self.store.save_classification('Q2', IGNORED_SENTINEL, [])
        self.store.save_classification('Q3', DEAD_END_SENTINEL, [])
        self.store.save_classification('Q4', '', [], 'label')
        self.assertEqual(self.store.get_stats(), {
            'nodes': 4,
            'ignored': 1,
            'dead_ends': 1,
            'unresolved': 1,
            'categorized': 1,
        })

    def test_clear_all(self):
        self.store.save_classification('Q1', 'city', [])
        self.store.clear_all()
        self.assertIsNone(self.store.get_hierarchy('Q1'))
