import sys
import os
import unittest
import numpy as np

# Add the project root to sys.path
script_dir = os.path.dirname(os.path.abspath(__file__))
project_root = os.path.dirname(script_dir)
sys.path.insert(0, project_root)

from avatardynamics.utils.scene_graph import SceneGraph
from avatardynamics.utils.data_types import (
    ColliderVolume,
    ContactSensor,
    DynamicsBone,
    InvalidReferenceError,
    PerformanceStats,
)
from avatardynamics.utils.constants import EDITOR_ONLY_TAG
from avatardynamics.utils.performance_stats import (
    PerformanceStatsCalculator,
    calculate_performance_stats,
)


def chain(graph, parent, prefix, length):
    """Append a straight chain of `length` nodes under `parent`, return the handles."""
    handles = []
    for i in range(length):
        parent = graph.add_node(f"{prefix}{i}", parent)
        handles.append(parent)
    return handles


class TestEndToEnd(unittest.TestCase):
    def test_single_bone_no_colliders(self):
        """Root R, bone on child N with two descendants, nothing else."""
        g = SceneGraph()
        r = g.add_node("R")
        n = g.add_node("N", r)
        a = g.add_node("A", n)
        g.add_node("B", a)

        stats = calculate_performance_stats(g, r, [DynamicsBone(node=n)], [], [])
        self.assertEqual(stats, PerformanceStats(
            dynamics_bone_count=1,
            affected_node_count=3,
            collider_count=0,
            collision_check_count=0,
            contact_count=0,
        ))

    def test_empty_avatar(self):
        g = SceneGraph()
        r = g.add_node("R")
        self.assertEqual(calculate_performance_stats(g, r, [], [], []), PerformanceStats())


class TestAffectedTransforms(unittest.TestCase):
    def setUp(self):
        # Root ─ A ─ B ─ C
        #      └ D
        self.graph = SceneGraph()
        g = self.graph
        self.root = g.add_node("Root")
        self.a, self.b, self.c = chain(g, self.root, "Chain", 3)
        self.d = g.add_node("D", self.root)

    def stats(self, *bones):
        return calculate_performance_stats(self.graph, self.root, list(bones), [], [])

    def test_no_ignores_counts_whole_subtree(self):
        self.assertEqual(self.stats(DynamicsBone(node=self.root)).affected_node_count, 5)

    def test_ignore_prunes_whole_subtree(self):
        """Ignoring A drops A, B and C, not just A."""
        g = SceneGraph()
        root = g.add_node("Root")
        a, b, c = chain(g, root, "Chain", 3)
        stats = calculate_performance_stats(g, root, [DynamicsBone(node=root, ignore_transforms=[a])], [], [])
        self.assertEqual(stats.affected_node_count, 1)

    def test_ignore_deep_node(self):
        self.assertEqual(self.stats(DynamicsBone(node=self.root, ignore_transforms=[self.c])).affected_node_count, 4)

    def test_null_ignore_entries(self):
        self.assertEqual(self.stats(DynamicsBone(node=self.root, ignore_transforms=[None])).affected_node_count, 5)

    def test_root_transform_override(self):
        """The owning node's own subtree is irrelevant once a root transform is set."""
        bone = DynamicsBone(node=self.d, root_transform=self.a)
        self.assertEqual(self.stats(bone).affected_node_count, 3)

    def test_overlapping_bones_are_not_deduplicated(self):
        stats = self.stats(DynamicsBone(node=self.root), DynamicsBone(node=self.a))
        self.assertEqual(stats.dynamics_bone_count, 2)
        self.assertEqual(stats.affected_node_count, 5 + 3)


class TestCollisionChecks(unittest.TestCase):
    def setUp(self):
        self.graph = SceneGraph()
        self.root = self.graph.add_node("Avatar")
        self.head = self.graph.add_node("Head", self.root)
        self.colliders = [ColliderVolume(id="head", node=self.head), ColliderVolume(id="chest", node=self.root)]

    def checks(self, *bones, colliders=None):
        colliders = self.colliders if colliders is None else colliders
        return calculate_performance_stats(self.graph, self.root, list(bones), colliders, []).collision_check_count

    def test_single_chain(self):
        """Five affected transforms, one chain: (5 - 1) * 1."""
        hair = self.graph.add_node("Hair", self.root)
        chain(self.graph, hair, "Hair", 4)
        self.assertEqual(self.checks(DynamicsBone(node=hair, colliders=["head"])), 4)

    def test_two_sibling_chains(self):
        """Five affected transforms over two chains: ((5 - 1) - 2) * 1."""
        skirt = self.graph.add_node("Skirt", self.root)
        chain(self.graph, skirt, "Front", 2)
        chain(self.graph, skirt, "Back", 2)
        self.assertEqual(self.checks(DynamicsBone(node=skirt, colliders=["head"])), 2)

    def test_multiplies_by_distinct_present_colliders(self):
        """Duplicates, nulls and colliders missing from the set are not charged."""
        hair = self.graph.add_node("Hair", self.root)
        chain(self.graph, hair, "Hair", 2)
        bone = DynamicsBone(node=hair, colliders=["head", "head", None, "ghost", "chest"])
        self.assertEqual(self.checks(bone), 2 * 2)

    def test_no_colliders_costs_nothing(self):
        hair = self.graph.add_node("Hair", self.root)
        chain(self.graph, hair, "Hair", 6)
        self.assertEqual(self.checks(DynamicsBone(node=hair)), 0)
        self.assertEqual(self.checks(DynamicsBone(node=hair, colliders=["ghost"])), 0)

    def test_ignored_direct_children_do_not_count_as_chains(self):
        tail = self.graph.add_node("Tail", self.root)
        chain(self.graph, tail, "L", 2)
        chain(self.graph, tail, "R", 2)
        ignored = chain(self.graph, tail, "X", 2)
        # without the ignore: affected 7, transforms 6 - 3 chains
        self.assertEqual(self.checks(DynamicsBone(node=tail, colliders=["head"])), 3)
        # with it: affected 5, transforms 4 - 2 chains
        self.assertEqual(self.checks(DynamicsBone(node=tail, ignore_transforms=[ignored[0]], colliders=["head"])), 2)

    def test_root_transform_override_uses_its_children(self):
        owner = self.graph.add_node("EarsComponent", self.root)
        ears = self.graph.add_node("Ears", self.root)
        chain(self.graph, ears, "EarL", 2)
        chain(self.graph, ears, "EarR", 1)
        bone = DynamicsBone(node=owner, root_transform=ears, colliders=["head"])
        self.assertEqual(self.checks(bone), (4 - 1) - 2)

    def test_collider_outside_set_after_filtering(self):
        hair = self.graph.add_node("Hair", self.root)
        chain(self.graph, hair, "Hair", 3)
        bone = DynamicsBone(node=hair, colliders=["head", "chest"])
        self.assertEqual(self.checks(bone, colliders=self.colliders[:1]), 3)


class TestColliderCount(unittest.TestCase):
    def setUp(self):
        self.graph = SceneGraph()
        g = self.graph
        self.root = g.add_node("Avatar")
        self.head = g.add_node("Head", self.root)
        self.hidden = g.add_node("Hidden", self.root, tag=EDITOR_ONLY_TAG)
        self.bones = [DynamicsBone(node=g.add_node(f"Hair{i}", self.root), colliders=["head"]) for i in range(3)]
        self.colliders = [
            ColliderVolume(id="head", node=self.head),
            ColliderVolume(id="hand", node=self.root),
            ColliderVolume(id="hidden_only", node=self.root),
        ]

    def test_shared_collider_counted_once(self):
        stats = calculate_performance_stats(self.graph, self.root, self.bones, self.colliders, [])
        self.assertEqual(stats.collider_count, 1)

    def test_duplicate_references_counted_once(self):
        bones = [DynamicsBone(node=self.root, colliders=["head", "head", "hand", None])]
        stats = calculate_performance_stats(self.graph, self.root, bones, self.colliders, [])
        self.assertEqual(stats.collider_count, 2)

    def test_references_from_excluded_bones_ignored(self):
        bones = self.bones + [DynamicsBone(node=self.hidden, colliders=["hidden_only"])]
        stats = calculate_performance_stats(self.graph, self.root, bones, self.colliders, [])
        self.assertEqual(stats.collider_count, 1)
        self.assertEqual(stats.dynamics_bone_count, 3)


class TestExclusionAndContacts(unittest.TestCase):
    def setUp(self):
        # Avatar
        # ├─ Tail (bone)   ─ Tail_End
        # ├─ Wing (EditorOnly, bone) ─ Wing_End
        # └─ Costume (EditorOnly) ─ Cape (bone) ─ Cape_End
        self.graph = SceneGraph()
        g = self.graph
        self.root = g.add_node("Avatar")
        self.tail = g.add_node("Tail", self.root)
        g.add_node("Tail_End", self.tail)
        self.wing = g.add_node("Wing", self.root, tag=EDITOR_ONLY_TAG)
        g.add_node("Wing_End", self.wing)
        self.costume = g.add_node("Costume", self.root, tag=EDITOR_ONLY_TAG)
        self.cape = g.add_node("Cape", self.costume)
        g.add_node("Cape_End", self.cape)
        self.bones = [DynamicsBone(node=n) for n in (self.tail, self.wing, self.cape)]

    def test_editor_only_bones_are_stripped(self):
        stats = calculate_performance_stats(self.graph, self.root, self.bones, [], [])
        self.assertEqual(stats.dynamics_bone_count, 1)
        self.assertEqual(stats.affected_node_count, 2)

    def test_exclusion_is_local(self):
        """Tagging the tail only removes the tail bone."""
        self.graph.set_tag(self.tail, EDITOR_ONLY_TAG)
        self.graph.set_tag(self.wing, "Untagged")
        stats = calculate_performance_stats(self.graph, self.root, self.bones, [], [])
        self.assertEqual(stats.dynamics_bone_count, 1)

    def test_tagged_avatar_root_keeps_its_bones(self):
        self.graph.set_tag(self.root, EDITOR_ONLY_TAG)
        stats = calculate_performance_stats(self.graph, self.root, self.bones, [], [])
        self.assertEqual(stats.dynamics_bone_count, 1)

    def test_contacts_are_not_filtered(self):
        contacts = [ContactSensor(node=self.wing, kind="sender"), ContactSensor(node=self.tail)]
        stats = calculate_performance_stats(self.graph, self.root, [], [], contacts)
        self.assertEqual(stats.contact_count, 2)


class TestCalculatorContract(unittest.TestCase):
    def setUp(self):
        self.graph = SceneGraph()
        g = self.graph
        self.root = g.add_node("Avatar")
        self.head = g.add_node("Head", self.root)
        hair = g.add_node("Hair", self.head)
        chain(g, hair, "HairL", 3)
        chain(g, hair, "HairR", 3)
        skirt = g.add_node("Skirt", self.root)
        for side in "FBLR":
            chain(g, skirt, f"Skirt{side}", 2)
        hidden = g.add_node("Hidden", self.root, tag=EDITOR_ONLY_TAG)
        self.bones = [
            DynamicsBone(node=hair, colliders=["head", "chest"], name="Hair"),
            DynamicsBone(node=skirt, colliders=["leg_l", "leg_r", "leg_l"], name="Skirt"),
            DynamicsBone(node=hidden, colliders=["head"], name="Hidden"),
        ]
        self.colliders = [
            ColliderVolume(id="head", node=self.head),
            ColliderVolume(id="chest", node=self.root),
            ColliderVolume(id="leg_l", node=self.root),
            ColliderVolume(id="leg_r", node=self.root),
        ]
        self.contacts = [ContactSensor(node=self.head), ContactSensor(node=self.root, kind="sender")]
        self.view = g.snapshot()

    def calculate(self, bones=None):
        bones = self.bones if bones is None else bones
        return calculate_performance_stats(self.view, self.root, bones, self.colliders, self.contacts)

    def test_expected_totals(self):
        stats = self.calculate()
        # hair: 7 transforms, (6 - 2) * 2 = 8 checks; skirt: 9 transforms, (8 - 4) * 2 = 8 checks
        self.assertEqual(stats.as_dict(), {
            "dynamics_bone_count": 2,
            "affected_node_count": 16,
            "collider_count": 4,
            "collision_check_count": 16,
            "contact_count": 2,
        })

    def test_all_fields_non_negative(self):
        values = np.array(list(self.calculate().as_dict().values()))
        self.assertTrue(np.all(values >= 0))

    def test_order_invariant(self):
        self.assertEqual(self.calculate(list(reversed(self.bones))), self.calculate())

    def test_idempotent(self):
        calculator = PerformanceStatsCalculator(self.view)
        first = calculator.calculate(self.root, self.bones, self.colliders, self.contacts)
        second = calculator.calculate(self.root, self.bones, self.colliders, self.contacts)
        self.assertEqual(first, second)

    def test_accepts_builder_graph(self):
        self.assertEqual(
            calculate_performance_stats(self.graph, self.root, self.bones, self.colliders, self.contacts),
            self.calculate(),
        )

    def test_bone_costs_match_totals(self):
        calculator = PerformanceStatsCalculator(self.view)
        costs = calculator.bone_costs(self.root, self.bones, self.colliders)
        stats = calculator.calculate(self.root, self.bones, self.colliders, self.contacts)
        self.assertEqual([c.name for c in costs], ["Hair", "Skirt"])
        self.assertEqual(sum(c.affected_transforms for c in costs), stats.affected_node_count)
        self.assertEqual(sum(c.collision_checks for c in costs), stats.collision_check_count)
        self.assertEqual(costs[0].collision_transforms, 4)
        self.assertEqual(costs[1].colliders, 2)

    def test_result_is_immutable(self):
        stats = self.calculate()
        with self.assertRaises(AttributeError):
            stats.contact_count = 0

    def test_invalid_references_fail_whole_call(self):
        bad_inputs = [
            (99, self.bones, self.colliders, self.contacts),
            (self.root, self.bones + [DynamicsBone(node=99)], self.colliders, self.contacts),
            (self.root, [DynamicsBone(node=self.head, root_transform=-3)], self.colliders, self.contacts),
            (self.root, [DynamicsBone(node=self.head, ignore_transforms=[500])], self.colliders, self.contacts),
            (self.root, self.bones, self.colliders + [ColliderVolume(id="x", node=77)], self.contacts),
            (self.root, self.bones, self.colliders, [ContactSensor(node=1000)]),
        ]
        calculator = PerformanceStatsCalculator(self.view)
        for args in bad_inputs:
            with self.assertRaises(InvalidReferenceError):
                calculator.calculate(*args)


if __name__ == "__main__":
    unittest.main()
