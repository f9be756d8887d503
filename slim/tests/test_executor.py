from slim.executor import ExecutionState, StatementExecutor
from slim.interaction import SimpleInteraction
from slim.statements import EXCEPTION_STOP_TEST_TAG, EXCEPTION_TAG, VOID, Statement


def run(executor, *statements):
    return executor.execute(Statement.from_list(item) for item in statements)


def values(entries):
    return {entry.id: entry.value for entry in entries}


def make_executor():
    executor = StatementExecutor()
    run(executor, ["i1", "import", "slim_test_fixtures"], ["m1", "make", "testSlim", "TestSlim"])
    return executor


def test_new_executor_is_ready_and_empty():
    executor = StatementExecutor()
    assert executor.state is ExecutionState.READY
    assert executor.instances == {}
    assert executor.symbols == {}


def test_batch_runs_to_done():
    executor = make_executor()
    entries = run(executor, ["a", "call", "testSlim", "echoInt", "7"], ["b", "call", "testSlim", "nullMethod"])
    assert [entry.id for entry in entries] == ["a", "b"]
    assert values(entries) == {"a": "7", "b": VOID}
    assert executor.state is ExecutionState.DONE


def test_booleans_and_lists_are_converted():
    executor = make_executor()
    entries = run(
        executor,
        ["a", "call", "testSlim", "isTrue"],
        ["b", "call", "testSlim", "echoList", ["1", ["2"]]],
    )
    assert values(entries) == {"a": "true", "b": ["1", ["2"]]}


def test_stop_test_halts_the_batch():
    executor = make_executor()
    entries = run(
        executor,
        ["a", "call", "testSlim", "echoInt", "1"],
        ["b", "call", "testSlim", "throwStopping"],
        ["c", "call", "testSlim", "echoInt", "2"],
    )
    assert [entry.id for entry in entries] == ["a", "b"]
    assert entries[1].value.startswith(EXCEPTION_STOP_TEST_TAG)
    assert executor.state is ExecutionState.HALTED
    assert executor.halted_at == "b"


def test_stop_test_detected_by_class_name():
    executor = make_executor()
    entries = run(executor, ["a", "call", "testSlim", "throwCustomStop"], ["b", "call", "testSlim", "echoInt", "1"])
    assert len(entries) == 1
    assert entries[0].value == EXCEPTION_STOP_TEST_TAG + "StopTestHere: custom stop"


def test_stop_test_in_constructor_halts():
    executor = make_executor()
    entries = run(executor, ["m", "make", "x", "StoppingConstructor"], ["a", "call", "testSlim", "echoInt", "1"])
    assert [entry.id for entry in entries] == ["m"]
    assert entries[0].value.startswith(EXCEPTION_STOP_TEST_TAG)


def test_recoverable_failures_do_not_halt():
    executor = make_executor()
    entries = run(
        executor,
        ["a", "call", "testSlim", "throwNormal"],
        ["b", "make", "x", "ExplodingFixture"],
        ["c", "call", "nobody", "f"],
        ["d", "call", "testSlim", "noSuchFunction", "1"],
        ["e", "call", "testSlim", "throwSlimError"],
        ["f", "call", "testSlim"],
        ["g", "call", "testSlim", "echoInt", "5"],
    )
    result = values(entries)
    assert result["a"] == EXCEPTION_TAG + "ValueError: This is my exception"
    assert result["b"].startswith(EXCEPTION_TAG + "message:<<COULD_NOT_INVOKE_CONSTRUCTOR: ExplodingFixture[0]")
    assert "RuntimeError: boom" in result["b"]
    assert result["c"] == EXCEPTION_TAG + "message:<<NO_INSTANCE: nobody.f>>"
    assert result["d"] == EXCEPTION_TAG + "message:<<NO_METHOD_IN_CLASS: noSuchFunction[1] TestSlim.>>"
    assert result["e"] == EXCEPTION_TAG + "message:<<CUSTOM_TAG: fixture detail>>"
    assert result["f"].startswith(EXCEPTION_TAG + "message:<<MALFORMED_INSTRUCTION")
    assert result["g"] == "5"
    assert executor.state is ExecutionState.DONE


def test_constructor_arguments():
    executor = make_executor()
    entries = run(
        executor,
        ["m", "make", "other", "test slim", "hello"],
        ["a", "call", "other", "getConstructorArg"],
    )
    assert values(entries) == {"m": "OK", "a": "hello"}


def test_assign_and_symbol_substitution():
    executor = make_executor()
    entries = run(
        executor,
        ["s", "assign", "name", "world"],
        ["a", "call", "testSlim", "echoString", "hello $name, $unknown"],
        ["b", "callAndAssign", "n", "testSlim", "echoInt", "41"],
        ["c", "call", "testSlim", "echoString", "$n$name"],
        ["d", "call", "testSlim", "echoList", ["$name", ["$n"]]],
    )
    assert values(entries) == {
        "s": "OK",
        "a": "hello world, $unknown",
        "b": "41",
        "c": "41world",
        "d": ["world", ["41"]],
    }
    assert executor.symbols == {"name": "world", "n": 41}


def test_symbol_holding_object_can_be_made_into_instance():
    executor = make_executor()
    entries = run(
        executor,
        ["a", "callAndAssign", "obj", "testSlim", "createTestSlimWithString", "inner"],
        ["m", "make", "copy", "$obj"],
        ["b", "call", "copy", "getString"],
    )
    assert values(entries)["b"] == "inner"
    assert values(entries)["m"] == "OK"


def test_library_instances_answer_missing_methods():
    executor = make_executor()
    entries = run(
        executor,
        ["m", "make", "libraryEcho", "EchoLibrary"],
        ["a", "call", "testSlim", "libraryEcho", "x"],
        ["b", "call", "testSlim", "echoInt", "3"],
        ["c", "call", "nobody", "libraryEcho", "y"],
    )
    assert values(entries) == {"m": "OK", "a": "library:x", "b": "3", "c": "library:y"}


def test_release_drops_tables():
    executor = make_executor()
    run(executor, ["s", "assign", "x", "1"])
    executor.release()
    assert executor.instances == {}
    assert executor.symbols == {}
    assert executor.state is ExecutionState.READY
    entries = run(executor, ["a", "call", "testSlim", "echoInt", "1"])
    assert entries[0].value.startswith(EXCEPTION_TAG + "message:<<NO_INSTANCE")


def test_alternate_interaction_is_used():
    executor = StatementExecutor(SimpleInteraction())
    entries = run(
        executor,
        ["i", "import", "slim_test_fixtures"],
        ["m", "make", "t", "TestSlim"],
        ["a", "call", "t", "echoInt", "1"],
        ["b", "call", "t", "echo_int", "1"],
    )
    result = values(entries)
    assert "NO_METHOD_IN_CLASS" in result["a"]
    assert result["b"] == "1"


def test_broken_import_path_does_not_hide_later_ones():
    executor = StatementExecutor()
    entries = run(
        executor,
        ["i1", "import", "broken_fixture_module"],
        ["i2", "import", "slim_test_fixtures"],
        ["m1", "make", "t", "TestSlim"],
        ["m2", "make", "u", ".Foo"],
        ["a", "call", "t", "echoInt", "4"],
    )
    result = values(entries)
    assert result["m1"] == "OK"
    assert result["m2"] == EXCEPTION_TAG + "message:<<COULD_NOT_INVOKE_CONSTRUCTOR: .Foo[0] not found>>"
    assert result["a"] == "4"


def test_system_exit_from_fixture_is_an_ordinary_exception():
    executor = make_executor()
    entries = run(executor, ["a", "call", "testSlim", "exitProcess"], ["b", "call", "testSlim", "echoInt", "2"])
    assert values(entries) == {"a": EXCEPTION_TAG + "SystemExit: 3", "b": "2"}
    assert executor.state is ExecutionState.DONE
