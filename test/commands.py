"""
Commands module behavioral tests (tree, dispatch, delegation, faults, cleanup).

Scope
- Validate tree invariants (unique sibling names, single registration, no cycles).
- Validate the dispatch decisions and the exact fault messages they push.
- Validate deferred flag callbacks and terminating flags.
- Validate delegation (argument order, forwarded flags, ancestor flags).
- Validate positional contracts (none, bounded, unbounded).
- Validate that option tables and dispatch passes are closed on every path.

Conventions
- Test method names follow CamelCase per project convention.
- Tests use the public API (Command, command, invoke, Arity).
"""

from __future__ import annotations

import gc
import unittest
from unittest import TestCase, mock

from argtree.utils import Unset
from argtree import (
    Arity,
    Command,
    CommandExit,
    DelegatedCommandError,
    DispatchPass,
    InvalidOptionValueError,
    MissingArgumentsError,
    MissingOptionArgumentError,
    OptionTable,
    TooManyArgumentsError,
    UnexpectedArgumentError,
    UnexpectedOptionError,
    UnknownOptionError,
    command,
    invoke,
)


def messages(command):
    return [str(fault) for _, fault in command.failures()]


class Recorder:
    """Callable recording the order in which callbacks fire."""

    def __init__(self, log, label, result=None):
        self.log = log
        self.label = label
        self.result = result

    def __call__(self, subject):
        self.log.append(self.label)
        return self.result


class TestCommandTree(TestCase):
    """Registration invariants and tree helpers."""

    def testNameDefaultsToCallbackName(self):
        @command
        def deploy(cmd):
            """Deploy the thing.

            Longer text.
            """

        self.assertEqual(deploy.name, "deploy")
        self.assertEqual(deploy.descr, "Deploy the thing.")

    def testNameValidation(self):
        with self.assertRaises(ValueError):
            Command(name="-run")
        with self.assertRaises(ValueError):
            Command(name="two words")
        with self.assertRaises(TypeError):
            Command(name=3)

    def testConstructWithAndWithoutCallback(self):
        def deploy(cmd):
            pass

        with_callback = Command(deploy, name="deploy")
        without_callback = Command(name="bare")
        self.assertIs(with_callback.callback, deploy)
        self.assertIsNone(without_callback.callback)
        self.assertTrue(with_callback.run([]))
        self.assertTrue(without_callback.run([]))

    def testCallbackMustBeCallable(self):
        with self.assertRaises(TypeError):
            Command("nope", name="x")

    def testDuplicateSiblingNameRejected(self):
        root = Command(name="tool")
        Command(parent=root, name="run")
        with self.assertRaises(ValueError):
            Command(parent=root, name="run")

    def testSameNameAllowedUnderDifferentParents(self):
        root = Command(name="tool")
        one = Command(parent=root, name="one")
        two = Command(parent=root, name="two")
        Command(parent=one, name="list")
        Command(parent=two, name="list")
        self.assertEqual(set(one.children), {"list"})

    def testCommandRegisteredOnlyOnce(self):
        root = Command(name="tool")
        other = Command(name="other")
        child = Command(parent=root, name="child")
        with self.assertRaises(ValueError):
            other.add(child)

    def testCycleRejected(self):
        root = Command(name="tool")
        child = Command(parent=root, name="child")
        with self.assertRaises(ValueError):
            child.add(root)

    def testPathRouteAndRoot(self):
        root = Command(name="tool")
        data = Command(parent=root, name="data")
        kv = Command(parent=data, name="kv")
        self.assertIs(kv.root, root)
        self.assertEqual(kv.path, (root, data, kv))
        self.assertEqual(kv.route, "tool data kv")
        self.assertIsNone(root.parent)

    def testParentReferenceIsWeak(self):
        root = Command(name="tool")
        child = Command(parent=root, name="child")
        del root
        gc.collect()
        self.assertIsNone(child.parent)

    def testChildrenPreserveRegistrationOrder(self):
        root = Command(name="tool")
        for name in ("zeta", "alpha", "mid"):
            Command(parent=root, name=name)
        self.assertEqual(list(root.children), ["zeta", "alpha", "mid"])

    def testDecoratorFormOnCommand(self):
        root = Command(name="tool")

        @root.command(group="extras", expect=2)
        def pair(cmd):
            pass

        self.assertIs(pair.parent, root)
        self.assertEqual(pair.group, "extras")
        self.assertEqual(pair.expect, 2)

    def testExpectValidation(self):
        with self.assertRaises(ValueError):
            Command(name="x", expect=-1)
        with self.assertRaises(TypeError):
            Command(name="x", expect=True)
        self.assertIs(Command(name="x", expect="...").expect, Ellipsis)
        self.assertEqual(Command(name="x").expect_args(3).expect, 3)

    def testDuplicateFlagOnCommandRejected(self):
        root = Command(name="tool")
        root.flag("v", "verbose")
        with self.assertRaises(ValueError):
            root.flag("v", "version")
        with self.assertRaises(ValueError):
            root.add_flag("x", "verbose")

    def testRuntimeSwitchesInherit(self):
        root = Command(name="tool", colorful=True)
        child = Command(parent=root, name="child", fancy=True)
        self.assertTrue(child.colorful)
        self.assertTrue(child.fancy)
        self.assertFalse(root.fancy)
        self.assertFalse(child.shell)


class TestSettings(TestCase):
    """Settings propagation through the parent chain."""

    def testGetWalksAncestors(self):
        root = Command(name="tool")
        root.set("version", "1.0.0")
        leaf = Command(parent=Command(parent=root, name="mid"), name="leaf")
        self.assertEqual(leaf.get("version"), "1.0.0")
        self.assertIsNone(leaf.get("missing"))
        self.assertEqual(leaf.get("missing", "fallback"), "fallback")

    def testNearestSettingWins(self):
        root = Command(name="tool")
        child = Command(parent=root, name="child")
        root.set("version", "1")
        child.set("version", "2")
        self.assertEqual(child.get("version"), "2")
        self.assertEqual(root.get("version"), "1")

    def testSettingValuesMustBeStrings(self):
        with self.assertRaises(TypeError):
            Command(name="tool").set("version", 1)


class TestDispatchDecisions(TestCase):
    """Decision branches and their messages."""

    def testNoArgumentsExecutes(self):
        log = []
        root = Command(Recorder(log, "root"), name="tool")
        self.assertTrue(root.run([]))
        self.assertEqual(log, ["root"])

    def testUnknownOptionWithoutSubcommands(self):
        root = Command(name="tool")
        self.assertFalse(root.run(["--bogus"]))
        faults = list(root.errors)
        self.assertIsInstance(faults[0], UnknownOptionError)
        self.assertEqual(messages(root), ["unknown option: --bogus"])

    def testUnexpectedOptionWithoutPositional(self):
        root = Command(name="tool")
        Command(parent=root, name="run")
        self.assertFalse(root.run(["--bogus"]))
        self.assertIsInstance(list(root.errors)[0], UnexpectedOptionError)
        self.assertEqual(messages(root), ["unexpected option: --bogus"])

    def testUnexpectedArgument(self):
        log = []
        root = Command(Recorder(log, "root"), name="tool")
        Command(parent=root, name="run")
        self.assertFalse(root.run(["rnu"]))
        self.assertIsInstance(list(root.errors)[0], UnexpectedArgumentError)
        self.assertEqual(messages(root), ["unexpected argument: rnu"])
        self.assertEqual(log, [])

    def testUnexpectedArgumentHintSuggestsChild(self):
        root = Command(name="tool")
        Command(parent=root, name="run")
        root.run(["rnu"])
        self.assertIn("'run'", list(root.errors)[0].hint)

    def testTooManyArguments(self):
        root = Command(name="tool", expect=2)
        self.assertFalse(root.run(["a", "b", "c"]))
        self.assertIsInstance(list(root.errors)[0], TooManyArgumentsError)
        self.assertEqual(messages(root), ["too many arguments (expected up to 2, got 3)"])

    def testMissingOptionArgument(self):
        root = Command(name="tool")
        root.flag("o", "output", Arity.REQUIRED)
        self.assertFalse(root.run(["-o"]))
        self.assertIsInstance(list(root.errors)[0], MissingOptionArgumentError)
        self.assertEqual(messages(root), ["missing expected argument for option: -o"])

    def testMissingOptionArgumentStopsBeforeHandlers(self):
        log = []
        root = Command(Recorder(log, "root"), name="tool")
        root.flag("v").callback(Recorder(log, "-v"))
        root.flag("o", "output", Arity.REQUIRED)
        self.assertFalse(root.run(["-v", "--output"]))
        self.assertEqual(log, [])

    def testInvalidOptionValue(self):
        root = Command(name="tool")
        root.flag("n", "count", Arity.REQUIRED, type=int)
        self.assertFalse(root.run(["--count=many"]))
        self.assertIsInstance(list(root.errors)[0], InvalidOptionValueError)

    def testUnhandledFlagWithNonChildPositional(self):
        log = []
        root = Command(Recorder(log, "root"), name="tool", expect=...)
        Command(parent=root, name="run")
        self.assertTrue(root.run(["--bogus", "file"]))
        self.assertEqual(root.args, ("file",))
        self.assertEqual(log, ["root"])
        self.assertEqual(messages(root), [])

    def testUnhandledFlagWithNonChildPositionalFollowsContract(self):
        root = Command(name="tool")
        Command(parent=root, name="run")
        self.assertFalse(root.run(["--bogus", "file"]))
        self.assertEqual(messages(root), ["unexpected argument: file"])

    def testFaultsAreOwnedByTheFailingCommand(self):
        root = Command(name="tool")
        child = Command(parent=root, name="run")
        self.assertFalse(root.run(["run", "extra"]))
        self.assertEqual(len(root.errors), 0)
        self.assertEqual([str(fault) for fault in child.errors], ["unexpected argument: extra"])
        self.assertEqual([(step.name, str(fault)) for step, fault in root.failures()],
                         [("run", "unexpected argument: extra")])

    def testRunRejectsPlainString(self):
        with self.assertRaises(TypeError):
            Command(name="tool").run("a b")


class TestFlagValues(TestCase):
    """Parsed flag values and precedence."""

    def testShortAndLongYieldSameValue(self):
        root = Command(name="tool")
        output = root.flag("o", "output", Arity.REQUIRED, type=int)
        root.run(["-o", "7"])
        short = output.value
        root.run(["--output=7"])
        self.assertEqual(short, output.value)
        self.assertEqual(output.value, 7)

    def testLongOnlyFlagResolvedByName(self):
        root = Command(name="tool")
        dry = root.flag(Unset, "dry-run")
        self.assertTrue(root.run(["--dry-run"]))
        self.assertIs(dry.value, True)

    def testOptionalArgumentOmitted(self):
        root = Command(name="tool")
        color = root.flag("c", "color", Arity.OPTIONAL)
        root.run(["--color"])
        self.assertTrue(color.seen)
        self.assertIsNone(color.value)
        root.run(["-cauto"])
        self.assertEqual(color.value, "auto")

    def testFlagStateResetBetweenRuns(self):
        root = Command(name="tool", expect=...)
        verbose = root.flag("v")
        root.run(["-v", "a"])
        self.assertTrue(verbose.seen)
        self.assertEqual(root.args, ("a",))
        root.run([])
        self.assertFalse(verbose.seen)
        self.assertEqual(root.args, ())


class TestDeferredCallbacks(TestCase):
    """Flag callbacks run only once execution is certain."""

    def testHandlersRunInDiscoveryOrderBeforeCallback(self):
        log = []
        root = Command(Recorder(log, "root"), name="tool")
        root.flag("a").callback(Recorder(log, "-a"))
        root.flag("b").callback(Recorder(log, "-b"))
        self.assertTrue(root.run(["-b", "-a"]))
        self.assertEqual(log, ["-b", "-a", "root"])

    def testHandlerNotRunWhenParseFailsLater(self):
        log = []
        root = Command(name="tool")
        root.flag("x").callback(Recorder(log, "-x"))
        self.assertFalse(root.run(["-x", "--bogus"]))
        self.assertEqual(log, [])

    def testTerminatingHandlerSkipsCallback(self):
        log = []
        root = Command(Recorder(log, "root"), name="tool")
        root.flag("h", "help").callback(Recorder(log, "-h"), terminates=True)
        root.flag("a").callback(Recorder(log, "-a"))
        self.assertTrue(root.run(["-h", "-a"]))
        self.assertEqual(log, ["-h"])

    def testTerminatingHandlerBypassesArgumentMinimum(self):
        root = Command(name="tool", expect=1)
        root.flag("h").callback(lambda flag: None, terminates=True)
        self.assertTrue(root.run(["-h"]))

    def testHandlerPushedErrorStopsExecution(self):
        log = []
        root = Command(Recorder(log, "root"), name="tool")
        root.flag("x").callback(lambda flag: flag.command.fail("refused"))
        self.assertFalse(root.run(["-x"]))
        self.assertEqual(log, [])
        self.assertEqual(messages(root), ["refused"])

    def testTerminatingHandlerAfterPushedErrorFails(self):
        log = []
        root = Command(Recorder(log, "root"), name="tool")
        root.flag("x").callback(lambda flag: flag.command.fail("refused"))
        root.flag("h").callback(Recorder(log, "-h"), terminates=True)
        self.assertFalse(root.run(["-x", "-h"]))
        self.assertEqual(log, ["-h"])
        self.assertEqual(messages(root), ["refused"])

    def testHandlerExceptionBecomesDelegatedError(self):
        def explode(flag):
            raise RuntimeError("boom")

        root = Command(name="tool")
        root.flag("x").callback(explode)
        self.assertFalse(root.run(["-x"]))
        fault = list(root.errors)[0]
        self.assertIsInstance(fault, DelegatedCommandError)
        self.assertIsInstance(fault.options["cause"], RuntimeError)

    def testCallbackFailurePushedAfterExecution(self):
        root = Command(lambda cmd: cmd.fail("nope"), name="tool")
        self.assertFalse(root.run([]))
        self.assertEqual(messages(root), ["nope"])

    def testCallbackExceptionBecomesDelegatedError(self):
        def explode(cmd):
            raise KeyError("k")

        root = Command(explode, name="tool")
        self.assertFalse(root.run([]))
        self.assertIsInstance(list(root.errors)[0], DelegatedCommandError)


class TestDelegation(TestCase):
    """Routing to subcommands."""

    def setUp(self):
        self.log = []
        self.root = Command(Recorder(self.log, "root"), name="tool")
        self.verbose = self.root.flag("v", "verbose")
        self.verbose.callback(Recorder(self.log, "root -v"))
        self.child = Command(Recorder(self.log, "run"), self.root, name="run", expect=...)
        self.output = self.child.flag("o", "output", Arity.REQUIRED)

    def testChildReceivesArgumentsAfterItsName(self):
        self.assertTrue(self.root.run(["run", "a", "b"]))
        self.assertEqual(self.child.args, ("a", "b"))
        self.assertEqual(self.log, ["run"])
        self.assertIs(self.root.delegate, self.child)

    def testParentHandlersAndCallbackSkippedOnDelegation(self):
        self.assertTrue(self.root.run(["-v", "run"]))
        self.assertEqual(self.log, ["run"])
        self.assertTrue(self.verbose.seen)

    def testAncestorFlagReadableFromChild(self):
        seen = []
        leaf = Command(lambda cmd: seen.append(cmd.lookup("verbose").value), self.root, name="leaf")
        self.assertTrue(self.root.run(["leaf", "--verbose"]))
        self.assertEqual(seen, [True])
        self.assertIs(leaf.lookup("-v"), self.verbose)

    def testOnlyTheResolvedLeafExecutes(self):
        foo = Command(Recorder(self.log, "foo"), self.root, name="foo")
        bar = Command(Recorder(self.log, "bar"), foo, name="bar")
        self.assertTrue(self.root.run(["foo", "bar"]))
        self.assertEqual(self.log, ["bar"])
        self.assertIs(self.root.delegate, foo)
        self.assertIs(foo.delegate, bar)
        self.assertEqual(bar.args, ())

    def testAttachedShortArgumentForwardedToChild(self):
        self.assertTrue(self.root.run(["run", "-ofile", "a"]))
        self.assertEqual(self.output.value, "file")
        self.assertEqual(self.child.args, ("a",))

    def testClusterWithParentFlagForwardsRemainder(self):
        self.assertTrue(self.root.run(["run", "-vofile"]))
        self.assertTrue(self.verbose.seen)
        self.assertEqual(self.output.value, "file")

    def testUnhandledFlagsForwardedToChild(self):
        self.assertTrue(self.root.run(["--output=out.txt", "run", "a"]))
        self.assertEqual(self.output.value, "out.txt")
        self.assertEqual(self.child.args, ("a",))

    def testFlagsAfterChildNameReachChild(self):
        self.assertTrue(self.root.run(["run", "a", "--output=x", "b"]))
        self.assertEqual(self.output.value, "x")
        self.assertEqual(self.child.args, ("a", "b"))

    def testPositionalOrderPreservedThroughNesting(self):
        data = Command(parent=self.root, name="data")
        kv = Command(parent=data, name="kv", expect=...)
        self.assertTrue(self.root.run(["data", "kv", "one", "two", "three"]))
        self.assertEqual(kv.args, ("one", "two", "three"))

    def testChildResultPropagated(self):
        self.assertFalse(self.root.run(["run", "--bogus"]))
        self.assertEqual(len(self.root.errors), 0)
        self.assertEqual(messages(self.root), ["unknown option: --bogus"])


class TestContracts(TestCase):
    """Positional-argument contracts."""

    def testExactCountRejectsZeroAndTwo(self):
        log = []
        root = Command(Recorder(log, "root"), name="tool", expect=1)
        self.assertFalse(root.run([]))
        self.assertIsInstance(list(root.errors)[0], MissingArgumentsError)
        self.assertEqual([str(fault) for fault in root.errors], ["missing arguments (expected 1, got 0)"])
        self.assertFalse(root.run(["a", "b"]))
        self.assertIsInstance(list(root.errors)[0], TooManyArgumentsError)
        self.assertEqual(log, [])

    def testExactCountAcceptsOne(self):
        root = Command(name="tool", expect=1)
        self.assertTrue(root.run(["a"]))
        self.assertEqual(root.args, ("a",))

    def testAnyNeverErrorsOnCount(self):
        root = Command(name="tool", expect=...)
        self.assertTrue(root.run([]))
        self.assertTrue(root.run([str(index) for index in range(50)]))
        self.assertEqual(len(root.args), 50)

    def testZeroRejectsAny(self):
        root = Command(name="tool")
        self.assertFalse(root.run(["a"]))
        self.assertIsInstance(list(root.errors)[0], UnexpectedArgumentError)


class TestCleanup(TestCase):
    """Option tables and dispatch passes are closed on every path."""

    def capture(self, args, *, tree):
        tables, passes = [], []
        build = OptionTable.build

        def capture_table(registry):
            tables.append(table := build(registry))
            return table

        def capture_pass():
            passes.append(state := DispatchPass())
            return state

        with mock.patch.object(OptionTable, "build", side_effect=capture_table), \
                mock.patch("argtree.commands.DispatchPass", side_effect=capture_pass):
            result = tree.run(args)
        return result, tables, passes

    def tree(self):
        root = Command(name="tool")
        root.flag("o", "output", Arity.REQUIRED)
        Command(lambda cmd: None, root, name="run", expect=1)
        return root

    def testClosedAfterEveryPath(self):
        for args, expected in (
                ([], True),
                (["run", "a"], True),
                (["-o"], False),
                (["--bogus"], False),
                (["bogus"], False),
                (["run", "a", "b"], False),
                (["run"], False),
        ):
            with self.subTest(args=args):
                result, tables, passes = self.capture(args, tree=self.tree())
                self.assertIs(result, expected)
                self.assertTrue(tables)
                self.assertEqual(len(tables), len(passes))
                self.assertTrue(all(table.closed for table in tables))
                self.assertTrue(all(state.closed for state in passes))

    def testClosedWhenCallbackRaises(self):
        def explode(cmd):
            raise RuntimeError("boom")

        result, tables, passes = self.capture([], tree=Command(explode, name="tool"))
        self.assertFalse(result)
        self.assertTrue(tables[0].closed and passes[0].closed)


class TestInvoke(TestCase):
    """Library and shell surfacing."""

    def testInvokeRaisesCommandExit(self):
        root = Command(name="tool")
        with self.assertRaises(CommandExit) as context:
            invoke(root, "--bogus")
        self.assertEqual(context.exception.messages, ("unknown option: --bogus",))

    def testInvokeSplitsPromptLikeAShell(self):
        root = Command(name="tool", expect=...)
        invoke(root, "'a b' c")
        self.assertEqual(root.args, ("a b", "c"))

    def testInvokeWrapsPlainCallable(self):
        seen = []

        def hello(cmd):
            seen.append(cmd.name)

        invoke(hello, [])
        self.assertEqual(seen, ["hello"])

    def testInvokeRejectsNonCallable(self):
        with self.assertRaises(TypeError):
            invoke(42)

    def testShellModeExits(self):
        root = Command(name="tool", shell=True)
        with self.assertRaises(SystemExit) as context:
            invoke(root, ["--bogus"])
        self.assertEqual(context.exception.code, 1)

    def testMainExitCodes(self):
        root = Command(name="tool")
        with self.assertRaises(SystemExit) as context:
            root.main([])
        self.assertEqual(context.exception.code, 0)
        with mock.patch("argtree.commands.report") as report:
            with self.assertRaises(SystemExit) as context:
                root.main(["--bogus"])
        self.assertEqual(context.exception.code, 1)
        self.assertEqual([str(fault) for fault in report.call_args.args[0]], ["unknown option: --bogus"])


if __name__ == "__main__":
    unittest.main()
