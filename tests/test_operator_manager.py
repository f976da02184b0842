"""Tests for resource_opr.manager module.

Uses recording fake operators to test ordering, owner-reference
propagation, error handling and purge without a real store.
"""

import logging
import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

from client.memory import InMemoryClient
from common import OwnerReference, StatusEntry, StatusType
from conftest import FUNCTION_API, TRIGGER_API, make_function, make_trigger
from resource_opr.callbacks import Callbacks
from resource_opr.context import Context
from resource_opr.errors import CallbackError, RemoteError
from resource_opr.generic import GenericOperator
from resource_opr.manager import Manager, OnError, Options
from resource_opr.triggers import OWNER_LABEL, TriggersOperator


class FakeOperator:
    """Operator that records calls and reports canned status entries."""

    def __init__(self, name, entries=(), apply_error=None, delete_error=None, log=None):
        self.name = name
        self.entries = list(entries)
        self.apply_error = apply_error
        self.delete_error = delete_error
        self.log = log if log is not None else []
        self.apply_calls = []
        self.delete_calls = []

    def apply(self, ctx, opts):
        self.apply_calls.append(opts)
        self.log.append(('apply', self.name))
        for entry in self.entries:
            for callback in opts.callbacks.post:
                callback(entry, None)
        if self.apply_error is not None:
            raise self.apply_error

    def delete(self, ctx, opts):
        self.delete_calls.append((ctx, opts))
        self.log.append(('delete', self.name))
        if self.delete_error is not None:
            raise self.delete_error

    def __repr__(self):
        return f"FakeOperator({self.name})"


def _owner_entry(name='a', uid='u1', status=StatusType.CREATED):
    return StatusEntry(status, api_version='v1', kind='Owner', name=name, uid=uid)


OWNER_A = OwnerReference('v1', 'Owner', 'a', 'u1')


class TestManagerApplyOrder:
    """Tests for parent/child ordering."""

    def test_parent_before_children(self):
        log = []
        parent = FakeOperator('parent', log=log)
        child1 = FakeOperator('child1', log=log)
        child2 = FakeOperator('child2', log=log)

        Manager([(parent, [child1, child2])]).do(Context.background(), Options())

        assert log == [('apply', 'parent'), ('apply', 'child1'), ('apply', 'child2')]

    def test_forest_entries_in_order(self):
        log = []
        forest = [
            (FakeOperator('p1', log=log), [FakeOperator('c1', log=log)]),
            (FakeOperator('p2', log=log), [FakeOperator('c2', log=log)]),
        ]
        Manager(forest).do(Context.background(), Options())
        assert [name for _, name in log] == ['p1', 'c1', 'p2', 'c2']

    def test_parent_receives_no_owner_references(self):
        parent = FakeOperator('parent')
        Manager([(parent, [])]).do(Context.background(), Options(set_owner_references=True))
        assert parent.apply_calls[0].owner_references == []

    def test_dry_run_flag(self):
        parent = FakeOperator('parent')
        child = FakeOperator('child')
        Manager([(parent, [child])]).do(Context.background(), Options(dry_run=True))
        assert parent.apply_calls[0].dry_run == ['All']
        assert child.apply_calls[0].dry_run == ['All']

    def test_no_dry_run_flag(self):
        parent = FakeOperator('parent')
        Manager([(parent, [])]).do(Context.background(), Options())
        assert parent.apply_calls[0].dry_run == []


class TestManagerFailures:
    """Tests for abort-on-first-error behavior."""

    def test_parent_failure_skips_children_and_later_entries(self):
        error = RemoteError('parent failed')
        child = FakeOperator('child')
        later_parent = FakeOperator('later')
        later_child = FakeOperator('later-child')
        forest = [
            (FakeOperator('parent', apply_error=error), [child]),
            (later_parent, [later_child]),
        ]

        with pytest.raises(RemoteError) as exc_info:
            Manager(forest).do(Context.background(), Options())

        assert exc_info.value is error
        assert child.apply_calls == []
        assert later_parent.apply_calls == []
        assert later_child.apply_calls == []

    def test_child_failure_skips_later_siblings(self):
        error = RemoteError('child1 failed')
        child1 = FakeOperator('child1', apply_error=error)
        child2 = FakeOperator('child2')
        later = FakeOperator('later')

        with pytest.raises(RemoteError) as exc_info:
            Manager([(FakeOperator('parent'), [child1, child2]), (later, [])]).do(
                Context.background(), Options(),
            )

        assert exc_info.value is error
        assert child2.apply_calls == []
        assert later.apply_calls == []

    def test_stop_issues_no_deletes(self):
        parent = FakeOperator('parent')
        child = FakeOperator('child', apply_error=RemoteError('boom'))

        with pytest.raises(RemoteError):
            Manager([(parent, [child])]).do(Context.background(), Options(on_error=OnError.STOP))

        assert parent.delete_calls == []
        assert child.delete_calls == []

    def test_non_operator_errors_propagate(self):
        parent = FakeOperator('parent', apply_error=KeyError('bug'))
        with pytest.raises(KeyError):
            Manager([(parent, [])]).do(Context.background(), Options())


class TestOwnerReferencePropagation:
    """Tests for owner-reference harvesting across parent and children."""

    def test_example_scenario(self):
        parent = FakeOperator('ParentA', entries=[_owner_entry('a', 'u1')])
        child1 = FakeOperator('Child1')
        child2 = FakeOperator('Child2')

        Manager([(parent, [child1, child2])]).do(
            Context.background(), Options(set_owner_references=True),
        )

        assert len(child1.apply_calls) == 1
        assert len(child2.apply_calls) == 1
        assert child1.apply_calls[0].owner_references == [OWNER_A]
        assert child2.apply_calls[0].owner_references == [OWNER_A]

    def test_example_scenario_child_failure(self):
        error = RemoteError('child1 failed')
        parent = FakeOperator('ParentA', entries=[_owner_entry('a', 'u1')])
        child1 = FakeOperator('Child1', apply_error=error)
        child2 = FakeOperator('Child2')

        with pytest.raises(RemoteError) as exc_info:
            Manager([(parent, [child1, child2])]).do(
                Context.background(), Options(set_owner_references=True),
            )

        assert exc_info.value is error
        assert child1.apply_calls[0].owner_references == [OWNER_A]
        assert child2.apply_calls == []

    def test_disabled_gives_empty_references(self):
        parent = FakeOperator('parent', entries=[_owner_entry('a', 'u1')])
        child = FakeOperator('child')

        Manager([(parent, [child])]).do(Context.background(), Options(set_owner_references=False))

        assert child.apply_calls[0].owner_references == []

    def test_only_successful_items_propagate(self):
        parent = FakeOperator('parent', entries=[
            _owner_entry('a', 'u1'),
            _owner_entry('b', 'u2', StatusType.APPLY_FAILED),
            _owner_entry('c', 'u3', StatusType.SKIPPED),
        ])
        child = FakeOperator('child')

        Manager([(parent, [child])]).do(Context.background(), Options(set_owner_references=True))

        assert child.apply_calls[0].owner_references == [
            OWNER_A,
            OwnerReference('v1', 'Owner', 'c', 'u3'),
        ]

    def test_references_do_not_leak_across_entries(self):
        parent1 = FakeOperator('p1', entries=[_owner_entry('a', 'u1')])
        parent2 = FakeOperator('p2', entries=[_owner_entry('b', 'u2')])
        child1 = FakeOperator('c1')
        child2 = FakeOperator('c2')

        Manager([(parent1, [child1]), (parent2, [child2])]).do(
            Context.background(), Options(set_owner_references=True),
        )

        assert child1.apply_calls[0].owner_references == [OWNER_A]
        assert child2.apply_calls[0].owner_references == [OwnerReference('v1', 'Owner', 'b', 'u2')]

    def test_user_callbacks_kept_and_not_mutated(self):
        seen = []
        user_post = lambda entry, err: seen.append(entry.name)  # noqa: E731
        callbacks = Callbacks(post=[user_post])
        parent = FakeOperator('parent', entries=[_owner_entry('a', 'u1')])

        Manager([(parent, [])]).do(
            Context.background(), Options(set_owner_references=True, callbacks=callbacks),
        )

        assert seen == ['a']
        assert callbacks.post == [user_post]
        assert len(parent.apply_calls[0].callbacks.post) == 2

    def test_harvester_rejects_unknown_results(self):
        class BadOperator(FakeOperator):
            def apply(self, ctx, opts):
                for callback in opts.callbacks.post:
                    callback({'kind': 'Owner'}, None)

        with pytest.raises(CallbackError, match='status entry'):
            Manager([(BadOperator('bad'), [])]).do(
                Context.background(), Options(set_owner_references=True),
            )


class TestNoneOperators:
    """Tests for None operators as no-ops."""

    def test_only_none_parents(self):
        Manager([(None, []), (None, [])]).do(Context.background(), Options(on_error=OnError.PURGE))

    def test_none_parent_children_get_no_references(self):
        child = FakeOperator('child')
        Manager([(None, [child])]).do(Context.background(), Options(set_owner_references=True))
        assert child.apply_calls[0].owner_references == []

    def test_none_child_skipped(self):
        parent = FakeOperator('parent')
        child = FakeOperator('child')
        Manager([(parent, [None, child])]).do(Context.background(), Options())
        assert len(child.apply_calls) == 1


class TestPurge:
    """Tests for purge on error."""

    def test_purges_every_parent_once(self):
        p1 = FakeOperator('p1')
        p2 = FakeOperator('p2', apply_error=RemoteError('p2 failed'))
        p3 = FakeOperator('p3')
        child = FakeOperator('child')

        with pytest.raises(RemoteError, match='p2 failed'):
            Manager([(p1, [child]), (None, []), (p2, []), (p3, [])]).do(
                Context.background(), Options(on_error=OnError.PURGE),
            )

        for parent in (p1, p2, p3):
            assert len(parent.delete_calls) == 1
        assert child.delete_calls == []
        assert p3.apply_calls == []

    def test_purge_uses_foreground_and_original_callbacks(self):
        callbacks = Callbacks(post=[lambda e, err: None])
        parent = FakeOperator('parent', apply_error=RemoteError('boom'))

        with pytest.raises(RemoteError):
            Manager([(parent, [])]).do(
                Context.background(),
                Options(on_error=OnError.PURGE, dry_run=True, callbacks=callbacks),
            )

        _, opts = parent.delete_calls[0]
        assert opts.propagation == 'Foreground'
        assert opts.dry_run == ['All']
        assert opts.callbacks is callbacks

    def test_purge_errors_do_not_mask_original(self, caplog):
        error = RemoteError('child failed')
        p1 = FakeOperator('p1', delete_error=RemoteError('delete p1 failed'))
        p2 = FakeOperator('p2', delete_error=RuntimeError('unexpected'))

        with caplog.at_level(logging.WARNING):
            with pytest.raises(RemoteError) as exc_info:
                Manager([(p1, [FakeOperator('child', apply_error=error)]), (p2, [])]).do(
                    Context.background(), Options(on_error=OnError.PURGE),
                )

        assert exc_info.value is error
        assert len(p2.delete_calls) == 1
        assert 'delete p1 failed' in caplog.text
        assert 'unexpected' in caplog.text

    def test_purge_runs_with_fresh_context(self):
        ctx = Context()
        ctx.cancel()
        parent = FakeOperator('parent', apply_error=RemoteError('cancelled'))

        with pytest.raises(RemoteError):
            Manager([(parent, [])]).do(ctx, Options(on_error=OnError.PURGE))

        purge_ctx, _ = parent.delete_calls[0]
        assert purge_ctx is not ctx
        assert purge_ctx.cancelled is False


class TestDestroy:
    """Tests for Manager.destroy."""

    def test_reverse_order_children_first(self):
        log = []
        forest = [
            (FakeOperator('p1', log=log), [FakeOperator('c1', log=log), FakeOperator('c2', log=log)]),
            (FakeOperator('p2', log=log), []),
        ]
        Manager(forest).destroy(Context.background(), Options())
        assert [name for _, name in log] == ['p2', 'c2', 'c1', 'p1']

    def test_stops_on_first_error(self):
        p1 = FakeOperator('p1')
        child = FakeOperator('child', delete_error=RemoteError('boom'))
        with pytest.raises(RemoteError):
            Manager([(p1, [child])]).destroy(Context.background(), Options())
        assert p1.delete_calls == []

    def test_propagation_and_dry_run(self):
        parent = FakeOperator('parent')
        Manager([(parent, [None]), (None, [])]).destroy(
            Context.background(), Options(dry_run=True), propagation='Orphan',
        )
        _, opts = parent.delete_calls[0]
        assert opts.propagation == 'Orphan'
        assert opts.dry_run == ['All']


class TestManagerWithStore:
    """End-to-end tests with real operators over in-memory stores."""

    def _forest(self, functions, triggers, trigger_names=('t1', 't2')):
        parent = GenericOperator(functions, make_function('fn'))
        child = TriggersOperator(triggers, *[make_trigger(n) for n in trigger_names])
        return [(parent, [child])]

    def test_apply_links_triggers_to_function(self):
        functions = InMemoryClient(FUNCTION_API, 'Function')
        triggers = InMemoryClient(TRIGGER_API, 'Trigger')
        ctx = Context.background()

        Manager(self._forest(functions, triggers)).do(ctx, Options(set_owner_references=True))

        fn_uid = functions.get(ctx, 'fn').uid
        for name in ('t1', 't2'):
            trigger = triggers.get(ctx, name)
            assert trigger.labels[OWNER_LABEL] == fn_uid
            assert trigger.owner_references == [
                OwnerReference(FUNCTION_API, 'Function', 'fn', fn_uid),
            ]

    def test_reapply_wipes_removed_trigger(self):
        functions = InMemoryClient(FUNCTION_API, 'Function')
        triggers = InMemoryClient(TRIGGER_API, 'Trigger')
        ctx = Context.background()

        Manager(self._forest(functions, triggers)).do(ctx, Options(set_owner_references=True))
        Manager(self._forest(functions, triggers, ('t1',))).do(ctx, Options(set_owner_references=True))

        assert triggers.names == ['t1']

    def test_triggers_without_owner_references_fail_and_purge(self):
        functions = InMemoryClient(FUNCTION_API, 'Function')
        triggers = InMemoryClient(TRIGGER_API, 'Trigger')
        ctx = Context.background()

        with pytest.raises(Exception, match='ownerID: not found'):
            Manager(self._forest(functions, triggers)).do(
                ctx, Options(set_owner_references=False, on_error=OnError.PURGE),
            )

        assert functions.names == []
        assert triggers.names == []

    def test_operator_mock_parent(self):
        parent = MagicMock()
        child = MagicMock()
        Manager([(parent, [child])]).do(Context.background(), Options())
        parent.apply.assert_called_once()
        child.apply.assert_called_once()
