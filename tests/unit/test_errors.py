"""Exception hierarchy contracts."""

import pytest

from flowstate.errors import (
    HINTS,
    ConfigurationError,
    DispatcherClosedError,
    FlowStateError,
    InvariantViolationError,
)


class TestExceptionHierarchy:
    @pytest.mark.unit
    @pytest.mark.smoke
    def test_all_exceptions_inherit_from_base(self):
        for exception_class in (
            ConfigurationError,
            DispatcherClosedError,
            InvariantViolationError,
        ):
            assert issubclass(exception_class, FlowStateError)

    @pytest.mark.unit
    def test_message_without_hint_is_unchanged(self):
        assert str(FlowStateError("plain message")) == "plain message"

    @pytest.mark.unit
    def test_hint_is_appended_to_message(self):
        err = ConfigurationError("bad value", hint=HINTS["unknown_dispatcher"])

        assert str(err).startswith("bad value. ")
        assert err.hint == HINTS["unknown_dispatcher"]
        assert err.args == ("bad value",)

    @pytest.mark.unit
    def test_invariant_violation_prefixes_stage_name(self):
        err = InvariantViolationError("impossible", stage_name="fold")

        assert str(err) == "[fold] impossible"
        assert err.stage_name == "fold"

    @pytest.mark.unit
    def test_message_is_stored_as_given(self):
        message = "capacity must be at least 1"
        err = FlowStateError(message)

        assert err.args == (message,)
        assert err.args[0] is message
        assert err.hint is None
