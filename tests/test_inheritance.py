"""Tests for the scope tree: spawn, attribute fallthrough, isolation, destroy."""

from scopedigest import Scope


def _increment(new_value, old_value, scope):
    scope.counter += 1


class TestInheritance:
    def test_inherits_parent_attributes(self):
        parent = Scope()
        parent.a_value = [1, 2, 3]
        child = parent.spawn()
        assert child.a_value == [1, 2, 3]

    def test_parent_does_not_see_child_attributes(self):
        parent = Scope()
        child = parent.spawn()
        child.a_value = [1, 2, 3]
        assert "a_value" not in parent

    def test_reads_parent_attributes_defined_later(self):
        parent = Scope()
        child = parent.spawn()
        parent.a_value = [1, 2, 3]
        assert child.a_value == [1, 2, 3]

    def test_shared_container_mutation_is_visible_both_ways(self):
        parent = Scope()
        child = parent.spawn()
        parent.a_value = [1, 2, 3]
        child.a_value.append(4)
        assert parent.a_value == [1, 2, 3, 4]
        assert child.a_value == [1, 2, 3, 4]

    def test_can_watch_parent_attribute(self):
        parent = Scope()
        child = parent.spawn()
        parent.a_value = [1, 2, 3]
        child.counter = 0
        child.watch(lambda s: s.a_value, _increment, by_value=True)

        child.digest()
        assert child.counter == 1
        parent.a_value.append(4)
        child.digest()
        assert child.counter == 2

    def test_nested_at_any_depth(self):
        a = Scope()
        aa = a.spawn()
        aaa = aa.spawn()
        aab = aa.spawn()
        ab = a.spawn()
        abb = ab.spawn()

        a.value = 1
        assert [s.value for s in (aa, aaa, aab, ab, abb)] == [1, 1, 1, 1, 1]

        ab.another_value = 2
        assert abb.another_value == 2
        assert "another_value" not in aa
        assert "another_value" not in aaa

    def test_child_write_shadows_parent(self):
        parent = Scope()
        child = parent.spawn()
        parent.name = "Joe"
        child.name = "Jill"
        assert child.name == "Jill"
        assert parent.name == "Joe"

    def test_nested_attribute_write_does_not_shadow(self):
        parent = Scope()
        child = parent.spawn()
        parent.user = {"name": "Joe"}
        child.user["name"] = "Jill"
        assert child.user["name"] == "Jill"
        assert parent.user["name"] == "Jill"

    def test_delete_only_removes_local_value(self):
        parent = Scope()
        child = parent.spawn()
        parent.name = "Joe"
        child.name = "Jill"
        del child.name
        assert child.name == "Joe"


class TestTreeDigest:
    def test_does_not_digest_parents(self):
        parent = Scope()
        child = parent.spawn()
        parent.a_value = "abc"
        parent.watch(lambda s: s.a_value, lambda new, old, s: setattr(s, "a_value_was", new))

        child.digest()
        assert "a_value_was" not in child

    def test_keeps_record_of_children(self):
        parent = Scope()
        child1 = parent.spawn()
        child2 = parent.spawn()
        child2_1 = child2.spawn()

        assert parent.children == (child1, child2)
        assert child1.children == ()
        assert child2.children == (child2_1,)
        assert child2_1.parent is child2
        assert child2_1.root is parent

    def test_digests_children(self):
        parent = Scope()
        child = parent.spawn()
        parent.a_value = "abc"
        child.watch(lambda s: s.a_value, lambda new, old, s: setattr(s, "a_value_was", new))

        parent.digest()
        assert child.a_value_was == "abc"

    def test_apply_digests_from_root(self, scheduler):
        parent = Scope(scheduler=scheduler)
        child = parent.spawn()
        child2 = child.spawn()
        parent.a_value = "abc"
        parent.counter = 0
        parent.watch(lambda s: s.a_value, _increment)

        child2.apply(lambda s: None)
        assert parent.counter == 1

    def test_eval_async_schedules_root_digest(self, scheduler):
        parent = Scope(scheduler=scheduler)
        child = parent.spawn()
        child2 = child.spawn()
        parent.a_value = "abc"
        parent.counter = 0
        parent.watch(lambda s: s.a_value, _increment)

        child2.eval_async(lambda s: None)
        scheduler.run()
        assert parent.counter == 1

    def test_phase_shared_across_tree(self):
        parent = Scope()
        child = parent.spawn(isolated=True)
        phases = []
        child.watch(lambda s: phases.append(parent.phase))
        parent.digest()
        assert phases[0] == "digest"


class TestIsolated:
    def test_no_access_to_parent_attributes(self):
        parent = Scope()
        child = parent.spawn(isolated=True)
        parent.a_value = "abc"
        assert "a_value" not in child
        assert child.get("a_value") is None
        assert child.isolated is True

    def test_cannot_watch_parent_attributes(self):
        parent = Scope()
        child = parent.spawn(isolated=True)
        parent.a_value = "abc"
        seen = []
        child.watch(lambda s: s.get("a_value"), lambda new, old, s: seen.append(new))

        child.digest()
        assert seen == [None]

    def test_isolated_children_are_digested(self):
        parent = Scope()
        child = parent.spawn(isolated=True)
        child.a_value = "abc"
        child.watch(lambda s: s.a_value, lambda new, old, s: setattr(s, "a_value_was", new))

        parent.digest()
        assert child.a_value_was == "abc"

    def test_apply_digests_from_root(self, scheduler):
        parent = Scope(scheduler=scheduler)
        child = parent.spawn(isolated=True)
        child2 = child.spawn()
        parent.a_value = "abc"
        parent.counter = 0
        parent.watch(lambda s: s.a_value, _increment)

        child2.apply(lambda s: None)
        assert parent.counter == 1

    def test_eval_async_schedules_root_digest(self, scheduler):
        parent = Scope(scheduler=scheduler)
        child = parent.spawn(isolated=True)
        child2 = child.spawn()
        parent.a_value = "abc"
        parent.counter = 0
        parent.watch(lambda s: s.a_value, _increment)

        child2.eval_async(lambda s: None)
        scheduler.run()
        assert parent.counter == 1

    def test_eval_async_runs_on_isolated_scope(self, scheduler):
        parent = Scope(scheduler=scheduler)
        child = parent.spawn(isolated=True)

        child.eval_async(lambda s: setattr(s, "did_eval_async", True))
        scheduler.run()
        assert child.did_eval_async is True

    def test_apply_async_runs_on_isolated_scope(self, scheduler):
        parent = Scope(scheduler=scheduler)
        child = parent.spawn(isolated=True)

        child.apply_async(lambda s: setattr(s, "did_apply_async", True))
        parent.digest()
        assert child.did_apply_async is True

    def test_post_digest_runs_on_isolated_scope(self):
        parent = Scope()
        child = parent.spawn(isolated=True)

        child.post_digest(lambda: setattr(child, "did_post_digest", True))
        parent.digest()
        assert child.did_post_digest is True


class TestHierarchyParent:
    def test_other_scope_as_hierarchy_parent(self):
        prototype_parent = Scope()
        hierarchy_parent = Scope()
        child = prototype_parent.spawn(False, hierarchy_parent)

        prototype_parent.a = 42
        assert child.a == 42
        assert child.parent is hierarchy_parent
        assert child.root is hierarchy_parent

        child.counter = 0
        child.watch(lambda s: setattr(s, "counter", s.counter + 1))

        prototype_parent.digest()
        assert child.counter == 0

        hierarchy_parent.digest()
        assert child.counter == 2


class TestDestroy:
    def test_not_digested_after_destroy(self):
        parent = Scope()
        child = parent.spawn()
        child.a_value = [1, 2, 3]
        child.counter = 0
        child.watch(lambda s: s.a_value, _increment, by_value=True)

        parent.digest()
        assert child.counter == 1

        child.a_value.append(4)
        parent.digest()
        assert child.counter == 2

        child.destroy()
        child.a_value.append(5)
        parent.digest()
        assert child.counter == 2
        assert child not in parent.children
        assert child.destroyed is True

    def test_destroy_twice_is_noop(self):
        parent = Scope()
        child = parent.spawn()
        sibling = parent.spawn()

        child.destroy()
        child.destroy()
        assert parent.children == (sibling,)

    def test_descendants_are_not_notified(self):
        parent = Scope()
        child = parent.spawn()
        grandchild = child.spawn()
        grandchild.counter = 0
        grandchild.watch(lambda s: s.counter, lambda new, old, s: None)

        child.destroy()
        assert grandchild.destroyed is False
        assert child.children == (grandchild,)

    def test_watch_on_destroyed_scope_is_ignored(self):
        parent = Scope()
        child = parent.spawn()
        child.destroy()

        seen = []
        dispose = child.watch(lambda s: 1, lambda new, old, s: seen.append(new))
        dispose()
        child.digest()
        assert seen == []

    def test_destroy_during_digest(self):
        parent = Scope()
        child = parent.spawn()
        child.counter = 0
        parent.watch(lambda s: 1, lambda new, old, s: child.destroy())
        child.watch(lambda s: 1, _increment)

        parent.digest()
        assert child.counter == 0
