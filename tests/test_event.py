# tests/test_event.py
import functools

import pytest

from pewpew.core.errors import MissingParameterError, NotCallableError
from pewpew.core.event import Event, listener_identity


class Greeter:
    def hello(self, ev, *params):
        return "hello"

    @classmethod
    def build(cls, ev, *params):
        return "built"


class CallableThing:
    def __call__(self, ev, *params):
        return "called"


def first(ev, *params):
    return 1


def second(ev, *params):
    return 2


def test_event_basic_accessors():
    subject = object()
    ev = Event(subject, "user.created", {"id": 42})
    assert ev.get_name() == "user.created"
    assert ev.name == "user.created"
    assert ev.get_subject() is subject
    assert ev.get_params() == {"id": 42}
    assert ev.get_return_value() is None
    assert ev.has_run() is False
    assert ev.has_listeners() is False


def test_params_from_list_get_positional_keys():
    ev = Event(None, "e", ["a", "b"])
    assert ev.get_params() == {0: "a", 1: "b"}
    assert Event(None, "s", "solo").get_params() == {0: "solo"}
    assert Event(None, "n").get_params() == {}


def test_get_params_is_a_copy():
    ev = Event(None, "e", {"k": 1})
    ev.get_params()["k"] = 99
    assert ev["k"] == 1


def test_parameter_item_access():
    ev = Event(None, "e", {"id": 42})
    assert "id" in ev
    assert ev["id"] == 42

    ev["name"] = "bob"
    assert ev["name"] == "bob"
    assert "name" in ev

    del ev["name"]
    assert "name" not in ev
    # deleting an absent key is a no-op
    del ev["never-there"]


def test_missing_parameter_raises():
    ev = Event(None, "x", {"present": 1})
    with pytest.raises(MissingParameterError) as ei:
        ev["missingKey"]
    assert 'The event "x" has no "missingKey" parameter.' == str(ei.value)
    assert ei.value.key == "missingKey"
    # still a KeyError for callers catching the builtin
    assert isinstance(ei.value, KeyError)


def test_notify_passes_event_then_param_values_in_order():
    seen = []

    def listener(ev, a, b):
        seen.append((ev, a, b))

    ev = Event(None, "e", {"a": 1, "b": 2})
    ev.add_listener(listener)
    ev.notify()
    assert seen == [(ev, 1, 2)]


def test_notify_merges_scalars_positionally_and_mappings_by_key():
    ev = Event(None, "user.created", {"id": 42})
    ev.add_listener(lambda e, i: {"logged": True}, identity="log")
    ev.add_listener(lambda e, i: 5, identity="welcome")
    assert ev.notify() == {"logged": True, 0: 5}


def test_set_return_value_rules():
    ev = Event(None, "e")
    ev.set_return_value("a")
    ev.set_return_value("b")
    assert ev.get_return_value() == {0: "a", 1: "b"}

    ev.set_return_value({1: "B", "k": "v"})
    assert ev.get_return_value() == {0: "a", 1: "B", "k": "v"}

    ev.set_return_value("c")
    assert ev.get_return_value() == {0: "a", 1: "B", "k": "v", 2: "c"}

    ev.set_return_value("fresh", wipe=True)
    assert ev.get_return_value() == {0: "fresh"}

    ev.set_return_value({}, wipe=True)
    assert ev.get_return_value() == {}


def test_none_results_are_appended_too():
    ev = Event(None, "e")
    ev.add_listener(first)
    ev.add_listener(lambda e: None, identity="nothing")
    assert ev.notify() == {0: 1, 1: None}


def test_listener_order_and_overwrite_keeps_position():
    ev = Event(None, "e")
    ev.add_listener(first)
    ev.add_listener(second)

    def first_again(e):
        return "replaced"

    ev.add_listener(first_again, identity=listener_identity(first))
    assert list(ev.get_listeners().values()) == [first_again, second]
    assert ev.notify() == {0: "replaced", 1: 2}


def test_adding_same_function_twice_registers_once():
    ev = Event(None, "e")
    ev.add_listener(first)
    ev.add_listener(first)
    assert len(ev.get_listeners()) == 1


def test_raising_listener_aborts_remaining_listeners():
    calls = []

    def ok(e):
        calls.append("ok")
        return "ok"

    def boom(e):
        calls.append("boom")
        raise ValueError("nope")

    def never(e):
        calls.append("never")

    ev = Event(None, "e")
    ev.add_listener(ok)
    ev.add_listener(boom)
    ev.add_listener(never)
    with pytest.raises(ValueError, match="nope"):
        ev.notify()
    assert calls == ["ok", "boom"]
    # the first result is kept, nothing after the failure
    assert ev.get_return_value() == {0: "ok"}


def test_reset_clears_run_flag_but_keeps_listeners_and_value():
    ev = Event(None, "e")
    ev.add_listener(first)
    ev.notify()
    ev.set_has_run()
    assert ev.has_run() is True

    ev.reset()
    assert ev.has_run() is False
    assert ev.has_listeners()
    assert ev.get_return_value() == {0: 1}

    # results accumulate across runs
    ev.notify()
    assert ev.get_return_value() == {0: 1, 1: 1}


def test_listener_identity_shapes():
    g1, g2 = Greeter(), Greeter()
    assert listener_identity(first) == f"{__name__}.first"
    assert listener_identity(Greeter.build) == "Greeter.build"
    assert listener_identity(g1.hello) == listener_identity(g1.hello)
    assert listener_identity(g1.hello) != listener_identity(g2.hello)
    assert listener_identity(g1.hello).endswith(".hello")
    assert listener_identity(len) == "builtins.len"


@pytest.mark.parametrize("fn", [
    lambda e: None,
    functools.partial(first),
    CallableThing(),
])
def test_underivable_identity_fails_loudly(fn):
    ev = Event(None, "e")
    with pytest.raises(NotCallableError):
        ev.add_listener(fn)
    assert not ev.has_listeners()


def test_explicit_identity_for_lambda():
    ev = Event(None, "e")
    key = ev.add_listener(lambda e: 3, identity="three")
    assert key == "three"
    assert list(ev.get_listeners()) == ["three"]


def test_event_add_listener_rejects_non_callable():
    with pytest.raises(NotCallableError):
        Event(None, "e").add_listener("not a function")


def test_bound_methods_of_two_instances_both_run():
    g1, g2 = Greeter(), Greeter()
    ev = Event(None, "e")
    ev.add_listener(g1.hello)
    ev.add_listener(g2.hello)
    ev.add_listener(Greeter.build)
    assert ev.notify() == {0: "hello", 1: "hello", 2: "built"}


def test_bool_keys_count_as_positions():
    # True and 1 are the same dict key, so appends must go past it
    ev = Event(None, "e")
    ev.set_return_value({True: "flag"})
    ev.set_return_value("a")
    ev.set_return_value("b")
    assert ev.get_return_value() == {1: "flag", 2: "a", 3: "b"}
    assert len(ev.get_return_value()) == 3
