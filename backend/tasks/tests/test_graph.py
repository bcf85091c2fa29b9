from django.test import SimpleTestCase

from tasks.graph import ancestors, build_adjacency, detect_cycles, path_exists
from tasks.hierarchy import aggregate, derive_status, rollup_progress
from tasks.models import TaskStatus


class PathExistsTests(SimpleTestCase):
    def test_follows_edges_outward_only(self):
        graph = {1: [2], 2: [3]}
        self.assertTrue(path_exists(graph, 1, 3))
        self.assertFalse(path_exists(graph, 3, 1))

    def test_terminates_on_diamond_and_loop(self):
        graph = {1: [2, 3], 2: [4], 3: [4], 4: [2]}
        self.assertTrue(path_exists(graph, 1, 4))
        self.assertFalse(path_exists(graph, 4, 1))

    def test_node_reaches_itself(self):
        self.assertTrue(path_exists({}, 5, 5))


class AncestorsTests(SimpleTestCase):
    def test_nearest_first(self):
        parents = {1: None, 2: 1, 3: 2, 4: 3}
        self.assertEqual(ancestors(parents, 4), [3, 2, 1])
        self.assertEqual(ancestors(parents, 1), [])

    def test_stops_on_corrupt_loop(self):
        parents = {1: 2, 2: 1}
        self.assertEqual(ancestors(parents, 1), [2])


class DetectCyclesTests(SimpleTestCase):
    def test_acyclic_graph_has_no_cycles(self):
        graph = build_adjacency([(1, 2), (2, 3), (1, 3)])
        self.assertEqual(detect_cycles(graph), [])

    def test_reports_cycle_rotated_to_smallest_id(self):
        graph = build_adjacency([(3, 1), (1, 2), (2, 3)])
        self.assertEqual(detect_cycles(graph), [[1, 2, 3, 1]])

    def test_build_adjacency_dedupes(self):
        self.assertEqual(build_adjacency([(1, 2), (1, 2), (1, 3)]), {1: [2, 3]})


class RollupArithmeticTests(SimpleTestCase):
    def test_progress_rounds_half_up(self):
        self.assertEqual(rollup_progress(2, 3), 67)
        self.assertEqual(rollup_progress(1, 3), 33)
        self.assertEqual(rollup_progress(1, 8), 13)
        self.assertEqual(rollup_progress(0, 4), 0)
        self.assertEqual(rollup_progress(4, 4), 100)

    def test_derived_status(self):
        self.assertEqual(derive_status(0, 2), TaskStatus.TODO)
        self.assertEqual(derive_status(1, 2), TaskStatus.IN_PROGRESS)
        self.assertEqual(derive_status(2, 2), TaskStatus.COMPLETED)

    def test_in_progress_children_do_not_count_as_completed(self):
        statuses = [TaskStatus.IN_PROGRESS, TaskStatus.IN_PROGRESS]
        self.assertEqual(aggregate(statuses), (0, TaskStatus.TODO))
