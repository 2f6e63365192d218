import unittest

from ap_query import analyzer
from ap_query.model import Stack, StackFile
from ap_query.pathtree import (
    aggregate_from_root,
    aggregate_paths,
    ancestor_path,
    descendant_path
)


def make_stack_file(*specs) -> StackFile:
    stacks = []
    for spec in specs:
        frames, count = spec[0], spec[1]
        thread = spec[2] if len(spec) > 2 else ""
        frame_list = frames.split(";")
        stacks.append(Stack(frame_list, [0] * len(frame_list), count, thread))
    return StackFile(tuple(stacks))


SCENARIO = make_stack_file(
    ("A.a;B.b;C.c", 10),
    ("A.a;B.b", 5),
    ("A.a;D.d", 3),
)


class TestPathAggregation(unittest.TestCase):
    def test_inclusive_and_self_weights(self):
        pt = aggregate_paths(SCENARIO, "A.a", descendant_path())
        self.assertEqual(pt.samples["A.a"], 18)
        self.assertEqual(pt.samples["A.a;B.b"], 15)
        self.assertEqual(pt.samples["A.a;B.b;C.c"], 10)
        self.assertEqual(pt.samples["A.a;D.d"], 3)
        self.assertEqual(pt.self_samples, {"A.a;B.b;C.c": 10, "A.a;B.b": 5, "A.a;D.d": 3})
        self.assertNotIn("A.a", pt.self_samples)

    def test_children_are_one_segment_deeper(self):
        pt = aggregate_paths(SCENARIO, "A.a", descendant_path())
        self.assertEqual(sorted(pt.children_of("A.a")), ["A.a;B.b", "A.a;D.d"])
        self.assertEqual(pt.children_of("A.a;B.b"), ["A.a;B.b;C.c"])
        self.assertEqual(pt.children_of("A.a;D.d"), [])
        self.assertEqual(pt.sorted_children("A.a"), ["A.a;B.b", "A.a;D.d"])

    def test_descendant_mode_uses_first_match(self):
        sf = make_stack_file(("R.run;X.rec;X.rec;Y.leaf", 4))
        pt = aggregate_paths(sf, "X.rec", descendant_path())
        self.assertEqual(pt.roots(), ["X.rec"])
        self.assertEqual(pt.samples["X.rec;X.rec;Y.leaf"], 4)
        self.assertEqual(pt.matched_names, {"X.rec"})

    def test_ancestor_mode_reverses_prefix(self):
        self.assertEqual(ancestor_path(["a.A.main", "b.B.run", "c.C.work"], 1), ["B.run", "A.main"])
        pt = aggregate_paths(SCENARIO, "B.b", ancestor_path)
        self.assertEqual(pt.samples, {"B.b": 15, "B.b;A.a": 15})

    def test_root_weight_equals_sum_of_stacks_through_root(self):
        sf = make_stack_file(
            ("A.a;B.b", 7),
            ("C.c;B.b", 2),
            ("A.a", 1),
        )
        pt = aggregate_from_root(sf)
        self.assertEqual(pt.samples["A.a"], 8)
        self.assertEqual(pt.samples["C.c"], 2)
        self.assertEqual(pt.roots(), ["A.a", "C.c"])

    def test_no_match_gives_empty_tree(self):
        pt = aggregate_paths(SCENARIO, "zzz", descendant_path())
        self.assertFalse(pt)
        self.assertEqual(pt.matched_names, set())

    def test_fqn_descendant_path(self):
        sf = make_stack_file(("com/x/App.main;com/x/Worker.run", 1))
        pt = aggregate_paths(sf, "App.main", descendant_path(fqn=True))
        self.assertIn("com.x.App.main;com.x.Worker.run", pt.samples)


class TestTreeRendering(unittest.TestCase):
    def test_tree_from_method(self):
        out = analyzer.tree(SCENARIO, "A.a", max_depth=4, min_pct=0.0)
        self.assertEqual(
            out,
            "[100.0%] A.a\n"
            "  [83.3%] B.b  ← self=27.8%\n"
            "    [55.6%] C.c  ← self=55.6%\n"
            "  [16.7%] D.d  ← self=16.7%\n"
        )

    def test_tree_without_method_starts_at_roots(self):
        sf = make_stack_file(
            ("A.main;B.process;C.work", 50, "main"),
            ("A.main;B.process;D.other", 30, "main"),
            ("A.main;E.helper", 20, "worker"),
        )
        out = analyzer.tree(sf, "", max_depth=4, min_pct=1.0)
        self.assertEqual(
            out,
            "[100.0%] A.main\n"
            "  [80.0%] B.process\n"
            "    [50.0%] C.work  ← self=50.0%\n"
            "    [30.0%] D.other  ← self=30.0%\n"
            "  [20.0%] E.helper  ← self=20.0%\n"
        )
        self.assertNotIn("no frames matching", out)

    def test_tree_without_method_after_thread_filter(self):
        sf = make_stack_file(
            ("Thread.run;Worker.execute;Task.process", 60, "worker-1"),
            ("Thread.run;Worker.execute;Task.compute", 40, "worker-1"),
            ("Thread.run;Main.start", 50, "main"),
        )
        out = analyzer.tree(sf.filter_by_thread("worker-1"), "", max_depth=5, min_pct=1.0)
        self.assertIn("Task.process", out)
        self.assertIn("[100.0%] Thread.run", out)
        self.assertNotIn("Main.start", out)

    def test_tree_roots_sorted_by_name(self):
        sf = make_stack_file(("Z.z", 90), ("A.a", 10))
        out = analyzer.tree(sf, "", max_depth=4, min_pct=0.0)
        self.assertEqual(out.splitlines()[0], "[10.0%] A.a  ← self=10.0%")

    def test_tree_multiple_matches_header(self):
        sf = make_stack_file(
            ("x.Foo.run;x.Foo.work", 6),
            ("y.Bar.run", 4),
        )
        out = analyzer.tree(sf, "run", max_depth=4, min_pct=1.0)
        self.assertEqual(
            out,
            "# matched 2 methods: Bar.run, Foo.run\n"
            "[40.0%] Bar.run  ← self=40.0%\n"
            "[60.0%] Foo.run\n"
            "  [60.0%] Foo.work  ← self=60.0%\n"
        )

    def test_tree_max_depth(self):
        sf = make_stack_file(("A.a;B.b;C.c;D.d", 1))
        out = analyzer.tree(sf, "A.a", max_depth=2, min_pct=0.0)
        self.assertEqual(out, "[100.0%] A.a\n  [100.0%] B.b\n")

    def test_tree_min_pct_prunes_subtree(self):
        sf = make_stack_file(("A.a;B.b", 99), ("A.a;C.c;D.d", 1))
        out = analyzer.tree(sf, "A.a", max_depth=10, min_pct=5.0)
        self.assertNotIn("C.c", out)
        self.assertNotIn("D.d", out)

    def test_tree_self_below_min_pct_hidden(self):
        sf = make_stack_file(("A.a;B.b", 95), ("A.a", 5))
        out = analyzer.tree(sf, "A.a", max_depth=4, min_pct=10.0)
        self.assertEqual(out, "[100.0%] A.a\n  [95.0%] B.b  ← self=95.0%\n")

    def test_tree_no_match(self):
        self.assertEqual(analyzer.tree(SCENARIO, "zzz"), "no frames matching 'zzz'\n")

    def test_tree_empty_profile(self):
        self.assertEqual(analyzer.tree(StackFile(), "A.a"), "")
        self.assertEqual(analyzer.tree(StackFile(), ""), "")

    def test_tree_equal_children_ordered_by_name(self):
        sf = make_stack_file(("A.a;C.c", 5), ("A.a;B.b", 5))
        out = analyzer.tree(sf, "A.a", max_depth=4, min_pct=0.0)
        self.assertLess(out.index("B.b"), out.index("C.c"))

    def test_deep_stack_does_not_recurse(self):
        depth = 1500
        frames = ";".join(f"F{i}.m" for i in range(depth))
        sf = make_stack_file((frames, 1))
        out = analyzer.tree(sf, "", max_depth=depth + 1, min_pct=0.0)
        rows = out.splitlines()
        self.assertEqual(len(rows), depth)
        self.assertTrue(rows[-1].startswith("  " * (depth - 1) + "[100.0%] F1499.m"))


class TestCallersRendering(unittest.TestCase):
    def test_callers_chain(self):
        out = analyzer.callers(SCENARIO, "C.c", max_depth=4, min_pct=0.0)
        self.assertEqual(out, "[55.6%] C.c\n  [55.6%] B.b\n    [55.6%] A.a\n")

    def test_callers_have_no_self_marker(self):
        out = analyzer.callers(SCENARIO, "B.b", max_depth=4, min_pct=0.0)
        self.assertEqual(out, "[83.3%] B.b\n  [83.3%] A.a\n")
        self.assertNotIn("self=", out)

    def test_callers_branching(self):
        sf = make_stack_file(
            ("Main.run;Svc.handle;Db.query", 6),
            ("Main.run;Job.tick;Db.query", 4),
        )
        out = analyzer.callers(sf, "Db.query", max_depth=4, min_pct=0.0)
        self.assertEqual(
            out,
            "[100.0%] Db.query\n"
            "  [60.0%] Svc.handle\n"
            "    [60.0%] Main.run\n"
            "  [40.0%] Job.tick\n"
            "    [40.0%] Main.run\n"
        )

    def test_callers_no_match_and_empty(self):
        self.assertEqual(analyzer.callers(SCENARIO, "zzz"), "no frames matching 'zzz'\n")
        self.assertEqual(analyzer.callers(StackFile(), "A.a"), "")


if __name__ == "__main__":
    unittest.main()
